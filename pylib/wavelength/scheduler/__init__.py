'''Periodic triggers for the sync engine. Swap via scheduler= param.'''

from wavelength.engine import SyncEngine
from wavelength.runner import run_tick
from wavelength.scheduler.asyncio_loop import AsyncioLoopScheduler

__all__ = ['AsyncioLoopScheduler', 'get_scheduler', 'sync_scheduler']


def get_scheduler(kind: str = 'asyncio', interval_seconds: float = 3600):
    '''
    Factory for scheduler. kind: asyncio (default), apscheduler (if installed).
    Both fire once on start, then every interval_seconds, never overlapping.
    '''
    if kind == 'asyncio':
        return AsyncioLoopScheduler(interval_seconds=interval_seconds)
    if kind == 'apscheduler':
        from wavelength.scheduler.apscheduler_impl import APSchedulerImpl
        return APSchedulerImpl(interval_seconds=interval_seconds)
    raise ValueError(f'unknown scheduler: {kind}')


def sync_scheduler(engine: SyncEngine, kind: str = 'asyncio', interval_seconds: float = 3600):
    '''Scheduler with run_tick for engine already registered. Call start() to begin.'''
    sched = get_scheduler(kind=kind, interval_seconds=interval_seconds)
    sched.schedule(run_tick, engine)
    return sched
