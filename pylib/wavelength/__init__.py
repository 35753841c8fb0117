'''Wavelength: background feed synchronization agent for a podcast library.'''

from wavelength.config import SyncConfig
from wavelength.engine import FeedOutcome, SyncEngine, SyncReport
from wavelength.models import Episode, Podcast
from wavelength.parser import parse_feed
from wavelength.store import KVStore

__version__ = '0.1.0'

__all__ = [
    'Episode',
    'FeedOutcome',
    'KVStore',
    'Podcast',
    'SyncConfig',
    'SyncEngine',
    'SyncReport',
    'parse_feed',
]
