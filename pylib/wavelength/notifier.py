'''Compose and raise the "new episodes" alert.'''

import structlog

from wavelength.alerts import Alert, AlertSurface
from wavelength.models import PendingEpisodes, Subscriptions

APP_NAME = 'Wavelength'
ALERT_TAG = 'new-episodes'
ALERT_ICON = './icon-192.png'
APP_ENTRY = './'

logger = structlog.get_logger()


def compose_summary(count: int, pending: PendingEpisodes, subscriptions: Subscriptions) -> str:
    '''
    Alert body. One episode names it and its podcast; more get a count.
    '''
    if count != 1:
        return f'{count} new episodes across your library'
    first_feed = next(iter(pending), None)
    first_ep = pending[first_feed][0] if first_feed and pending[first_feed] else None
    pod = subscriptions.get(first_feed) if first_feed else None
    ep_title = (first_ep.title if first_ep else '') or 'New episode'
    pod_title = (pod.title if pod else '') or 'Your podcast'
    return f'{ep_title} — {pod_title}'


class Notifier:
    '''Raises alerts on a detected surface; a missing surface makes it a no-op.'''

    def __init__(self, surface: AlertSurface | None) -> None:
        self.surface = surface

    @property
    def available(self) -> bool:
        return self.surface is not None

    async def notify(self, count: int, pending: PendingEpisodes, subscriptions: Subscriptions) -> bool:
        '''Raise the summary alert. Returns True if an alert was raised.'''
        if self.surface is None:
            logger.info('no alert surface available', new=count)
            return False
        alert = Alert(
            title=APP_NAME,
            body=compose_summary(count, pending, subscriptions),
            tag=ALERT_TAG,
            icon=ALERT_ICON,
            badge=ALERT_ICON,
            renotify=True,
            data={'url': APP_ENTRY},
        )
        try:
            await self.surface.show(alert)
        except Exception:
            logger.warning('alert failed', surface=self.surface.name, exc_info=True)
            return False
        logger.info('alert raised', surface=self.surface.name, new=count)
        return True
