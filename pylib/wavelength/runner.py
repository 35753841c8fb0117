'''
Wire the engine from config. run_tick is the callback for the scheduler.
'''

import structlog

from wavelength.alerts import detect_alert_surface
from wavelength.clients import ClientHub
from wavelength.config import SyncConfig
from wavelength.engine import SyncEngine, SyncReport
from wavelength.fetchers import FeedFetcher, create_chain
from wavelength.notifier import Notifier
from wavelength.store import KVStore


def build_engine(config: SyncConfig, clients: ClientHub | None = None) -> SyncEngine:
    '''Engine with the store, fetcher chain and detected alert surface from config.'''
    fetcher = FeedFetcher(strategies=create_chain(config.strategies), timeout=config.fetch_timeout)
    return SyncEngine(
        KVStore(config.db_path),
        fetcher,
        Notifier(detect_alert_surface(config)),
        clients,
        lock_path=config.lock_path,
        concurrency=config.concurrency,
        write_attempts=config.write_attempts,
    )


async def run_tick(engine: SyncEngine) -> SyncReport:
    '''
    One tick of the scheduler: sync all feeds. Problems persisting results
    are logged here; they are also in the returned report.
    '''
    log = structlog.get_logger()
    report = await engine.run_sync()
    if report.skipped:
        log.info('tick skipped', reason=report.reason)
    elif not report.ok:
        log.error('tick could not persist results', errors=report.errors)
    return report
