'''Interval trigger on a plain asyncio task.'''

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

import structlog

logger = structlog.get_logger()


class AsyncioLoopScheduler:
    '''
    Awaits the callback, then sleeps interval_seconds. A slow sync delays the
    next one instead of overlapping it.
    '''

    def __init__(self, interval_seconds: float = 3600) -> None:
        self._interval = interval_seconds
        self._callback: Callable[..., Coroutine[Any, Any, Any]] | None = None
        self._args: tuple[Any, ...] = ()
        self._kwargs: dict[str, Any] = {}
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    def schedule(
        self,
        callback: Callable[..., Coroutine[Any, Any, Any]],
        *args: Any,
        **kwargs: Any,
    ) -> None:
        self._callback = callback
        self._args = args
        self._kwargs = kwargs

    async def start(self) -> None:
        if not self._callback:
            raise RuntimeError('No callback scheduled; call schedule() first')
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self._callback(*self._args, **self._kwargs)
            except Exception:
                # The trigger outlives any single failed sync
                logger.exception('scheduled sync failed')
            try:
                await asyncio.wait_for(self._stop_event.wait(), self._interval)
            except asyncio.TimeoutError:
                pass
