'''Feed fetcher: ordered fallback over transport strategies, with body sanity checks.'''

import asyncio
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import httpx
import structlog

from wavelength.fetchers.protocol import TransportStrategy, create_chain
from wavelength.models import Podcast
from wavelength.parser import parse_feed

logger = structlog.get_logger()

FETCH_TIMEOUT = 15.0
MIN_BODY_LENGTH = 100
FEED_MARKERS = ('<rss', '<feed', '<channel')


@dataclass
class FeedFetchResult:
    '''Outcome of fetching one feed: a podcast, or the reason it was skipped.'''

    url: str
    podcast: Podcast | None = None
    strategy: str | None = None
    reason: str | None = None
    attempts: list[tuple[str, str]] = field(default_factory=list)  # (strategy, rejection)

    @property
    def success(self) -> bool:
        return self.podcast is not None


def check_body(text: str | None) -> str | None:
    '''Rejection reason for a response body, or None if it looks like a feed.'''
    if not text or len(text) < MIN_BODY_LENGTH:
        return f'body shorter than {MIN_BODY_LENGTH} characters'
    if not any(marker in text for marker in FEED_MARKERS):
        return 'body has no feed markers'
    return None


class FeedFetcher:
    '''
    Fetch a feed through an ordered chain of strategies. The first strategy
    whose response passes the checks wins; every failure advances the chain.
    '''

    def __init__(
        self,
        strategies: list[TransportStrategy] | None = None,
        timeout: float = FETCH_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        parser: Callable[[str], Podcast | None] = parse_feed,
    ):
        self.strategies = strategies if strategies is not None else create_chain(['direct', 'allorigins', 'corsproxy'])
        self.timeout = timeout
        self.parser = parser
        self._client = client

    @asynccontextmanager
    async def _client_session(self):
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            yield client

    async def _try(self, client: httpx.AsyncClient, strategy: TransportStrategy, url: str) -> tuple[str | None, str]:
        '''(body, '') on success, (None, reason) on rejection.'''
        response = await strategy.fetch(client, url)
        if not response.is_success:
            return None, f'status {response.status_code}'
        body = strategy.extract_body(response)
        rejection = check_body(body)
        if rejection:
            return None, rejection
        return body, ''

    async def fetch_feed(self, url: str) -> FeedFetchResult:
        '''Fetch and parse url. Never raises for transport or parse failures.'''
        result = FeedFetchResult(url=url)
        async with self._client_session() as client:
            for strategy in self.strategies:
                try:
                    body, reason = await asyncio.wait_for(self._try(client, strategy, url), self.timeout)
                except asyncio.TimeoutError:
                    body, reason = None, f'timed out after {self.timeout:g}s'
                except Exception as e:
                    body, reason = None, f'{type(e).__name__}: {e}'
                if body is None:
                    logger.debug('strategy failed', feed=url, strategy=strategy.name, reason=reason)
                    result.attempts.append((strategy.name, reason))
                    continue
                result.strategy = strategy.name
                try:
                    result.podcast = await asyncio.to_thread(self.parser, body)
                except Exception as e:
                    result.reason = f'parse failed: {type(e).__name__}: {e}'
                    return result
                if result.podcast is None:
                    result.reason = 'parse failed: no channel or feed element'
                return result
        result.reason = 'all strategies failed'
        return result
