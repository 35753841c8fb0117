'''Feed fetchers: pluggable transport strategies and the fallback chain.'''

from wavelength.fetchers.feed import FeedFetcher, FeedFetchResult, check_body
from wavelength.fetchers.protocol import (
    AllOriginsStrategy,
    CorsProxyStrategy,
    DirectStrategy,
    TransportStrategy,
    create_chain,
    create_strategy,
)

__all__ = [
    'AllOriginsStrategy',
    'CorsProxyStrategy',
    'DirectStrategy',
    'FeedFetchResult',
    'FeedFetcher',
    'TransportStrategy',
    'check_body',
    'create_chain',
    'create_strategy',
]
