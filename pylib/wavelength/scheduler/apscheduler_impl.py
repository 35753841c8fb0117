'''APScheduler-based trigger. Install with: pip install wavelength[apscheduler]'''

from collections.abc import Callable, Coroutine
from datetime import datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger


class APSchedulerImpl:
    '''
    Interval job on APScheduler, first fired on start. Missed or overlapping
    fires collapse into one.
    '''

    def __init__(self, interval_seconds: float = 3600) -> None:
        self._interval = interval_seconds
        self._scheduler = AsyncIOScheduler()
        self._callback: Callable[..., Coroutine[Any, Any, Any]] | None = None
        self._args: tuple[Any, ...] = ()
        self._kwargs: dict[str, Any] = {}

    def schedule(
        self,
        callback: Callable[..., Coroutine[Any, Any, Any]],
        *args: Any,
        **kwargs: Any,
    ) -> None:
        self._callback = callback
        self._args = args
        self._kwargs = kwargs

    async def _job_wrapper(self) -> None:
        if self._callback:
            await self._callback(*self._args, **self._kwargs)

    async def start(self) -> None:
        if not self._callback:
            raise RuntimeError('No callback scheduled; call schedule() first')
        self._scheduler.add_job(
            self._job_wrapper,
            IntervalTrigger(seconds=self._interval),
            id='wavelength_sync',
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(),
        )
        self._scheduler.start()

    async def stop(self) -> None:
        self._scheduler.shutdown(wait=False)
