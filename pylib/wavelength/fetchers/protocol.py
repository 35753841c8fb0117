'''
Transport strategies for retrieving a feed document.

The direct request path may be blocked or unreliable, so feeds can also be
requested through public relays. Each strategy knows how to address its
relay and how to get the document text out of the relay's response.
'''

from abc import ABC, abstractmethod
from urllib.parse import quote

import httpx


class TransportStrategy(ABC):
    '''Protocol for one way of requesting a feed.'''

    name: str = ''

    @abstractmethod
    def request_url(self, feed_url: str) -> str:
        '''URL to GET for feed_url.'''

    def extract_body(self, response: httpx.Response) -> str:
        '''Document text carried by a successful response.'''
        return response.text

    async def fetch(self, client: httpx.AsyncClient, feed_url: str) -> httpx.Response:
        return await client.get(self.request_url(feed_url))

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.name}>'


class DirectStrategy(TransportStrategy):
    '''Plain GET of the feed URL.'''

    name = 'direct'

    def request_url(self, feed_url: str) -> str:
        return feed_url


class AllOriginsStrategy(TransportStrategy):
    '''
    Relay through allorigins, which wraps the document in a JSON envelope:
    {"contents": "<rss ...", "status": {...}}
    '''

    name = 'allorigins'

    def __init__(self, base_url: str = 'https://api.allorigins.win/get?url=') -> None:
        self.base_url = base_url

    def request_url(self, feed_url: str) -> str:
        return f'{self.base_url}{quote(feed_url, safe="")}'

    def extract_body(self, response: httpx.Response) -> str:
        envelope = response.json()
        if not isinstance(envelope, dict):
            return ''
        contents = envelope.get('contents')
        return contents if isinstance(contents, str) else ''


class CorsProxyStrategy(TransportStrategy):
    '''Relay through corsproxy.io, which returns the raw body.'''

    name = 'corsproxy'

    def __init__(self, base_url: str = 'https://corsproxy.io/?') -> None:
        self.base_url = base_url

    def request_url(self, feed_url: str) -> str:
        return f'{self.base_url}{quote(feed_url, safe="")}'


STRATEGIES: dict[str, type[TransportStrategy]] = {
    'direct': DirectStrategy,
    'allorigins': AllOriginsStrategy,
    'corsproxy': CorsProxyStrategy,
}


def create_strategy(name: str, **kwargs) -> TransportStrategy:
    '''
    Factory function to create a transport strategy.

    Args:
        name: 'direct', 'allorigins' or 'corsproxy'
        **kwargs: Additional arguments for the strategy (e.g. base_url)

    Returns:
        TransportStrategy instance
    '''
    try:
        return STRATEGIES[name](**kwargs)
    except KeyError:
        raise ValueError(f'Unknown transport strategy: {name}') from None


def create_chain(names: list[str]) -> list[TransportStrategy]:
    '''Ordered strategy chain from names.'''
    return [create_strategy(n) for n in names]
