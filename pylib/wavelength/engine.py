'''
Synchronization engine: refresh every subscribed feed, detect new episodes,
persist the merged state, then tell open clients or raise an alert.

One run at a time. Overlapping calls in a process join the run already in
flight; another process holding the run lock makes this run skip.
'''

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from filelock import FileLock, Timeout
from tenacity import retry, retry_if_result, stop_after_attempt, wait_exponential

from wavelength.clients import ClientHub
from wavelength.fetchers.feed import FeedFetcher, FeedFetchResult
from wavelength.models import (
    Episode,
    PendingEpisodes,
    Podcast,
    Subscriptions,
    dedupe_episodes,
    pending_from_record,
    pending_to_record,
    subscriptions_from_record,
    subscriptions_to_record,
)
from wavelength.notifier import Notifier
from wavelength.store import LAST_CHECK_KEY, NEW_EPS_KEY, PODS_KEY, KVStore

MESSAGE_TYPE = 'NEW_EPISODES'

logger = structlog.get_logger()


@dataclass
class FeedOutcome:
    '''What happened to one feed in a run.'''

    url: str
    status: str  # 'updated' | 'unchanged' | 'skipped'
    new_count: int = 0
    reason: str | None = None


@dataclass
class SyncReport:
    '''Caller-visible result of a run.'''

    feeds: list[FeedOutcome] = field(default_factory=list)
    new_count: int = 0
    persisted: bool | None = None  # None when there was nothing to persist
    last_check: int | None = None
    messaged: int = 0
    notified: bool = False
    skipped: bool = False
    reason: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def find_novel(prior: Podcast | None, fresh: Podcast) -> list[Episode]:
    '''Episodes in fresh whose audio_url is not in prior.'''
    known = prior.audio_urls() if prior else set()
    return [ep for ep in fresh.episodes if ep.audio_url not in known]


def merge_feed(url: str, fresh: Podcast, novel: list[Episode], subs: Subscriptions, pending: PendingEpisodes) -> None:
    '''Record novel episodes as pending and make fresh the feed's state.'''
    pending[url] = dedupe_episodes([*pending.get(url, []), *novel])
    subs[url] = fresh


class SyncEngine:
    '''Runs fetch, diff, merge, persist and delivery for all subscribed feeds.'''

    def __init__(
        self,
        store: KVStore,
        fetcher: FeedFetcher,
        notifier: Notifier,
        clients: ClientHub | None = None,
        *,
        lock_path: Path | None = None,
        concurrency: int = 4,
        write_attempts: int = 3,
        write_wait: float = 0.5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.notifier = notifier
        self.clients = clients or ClientHub()
        self.lock_path = lock_path
        self.concurrency = concurrency
        self.write_attempts = write_attempts
        self.write_wait = write_wait
        self.clock = clock
        self._inflight: asyncio.Future[SyncReport] | None = None

    async def run_sync(self) -> SyncReport:
        '''Run one synchronization, or join the one already running.'''
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._locked_run())
        else:
            logger.info('sync already running; joining it')
        return await asyncio.shield(self._inflight)

    async def _locked_run(self) -> SyncReport:
        if self.lock_path is None:
            return await self._run()
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(str(self.lock_path))
        try:
            lock.acquire(timeout=0)
        except Timeout:
            logger.warning('another sync holds the run lock; skipping', lock=str(self.lock_path))
            return SyncReport(skipped=True, reason='locked')
        try:
            return await self._run()
        finally:
            lock.release()

    async def _fetch_all(self, urls: list[str]) -> list[FeedFetchResult]:
        sem = asyncio.Semaphore(self.concurrency)

        async def _one(url: str) -> FeedFetchResult:
            async with sem:
                try:
                    return await self.fetcher.fetch_feed(url)
                except Exception as e:
                    logger.exception('fetcher raised', feed=url)
                    return FeedFetchResult(url=url, reason=f'fetcher error: {e}')

        return await asyncio.gather(*(_one(u) for u in urls))

    async def _write(self, items: dict[str, Any]) -> bool:
        @retry(
            stop=stop_after_attempt(self.write_attempts),
            wait=wait_exponential(multiplier=self.write_wait, max=4),
            retry=retry_if_result(lambda ok: not ok),
            retry_error_callback=lambda state: False,
        )
        async def _set() -> bool:
            return await self.store.set_many(items)

        return await _set()

    async def _deliver(self, report: SyncReport, subs: Subscriptions, pending: PendingEpisodes) -> None:
        message = {'type': MESSAGE_TYPE, 'newEps': pending_to_record(pending)}
        clients = await self.clients.match_all()
        for client in clients:
            try:
                await client.post_message(message)
                report.messaged += 1
            except Exception:
                logger.warning('client message failed', client=client.id, exc_info=True)
        if not clients or all(c.hidden for c in clients):
            report.notified = await self.notifier.notify(report.new_count, pending, subs)

    async def _run(self) -> SyncReport:
        report = SyncReport()
        subs = subscriptions_from_record(await self.store.get(PODS_KEY))
        if not subs:
            logger.info('no subscriptions; nothing to sync')
            return report
        pending = pending_from_record(await self.store.get(NEW_EPS_KEY))
        urls = list(subs)
        logger.info('sync started', feeds=len(urls))

        results = await self._fetch_all(urls)
        for url, result in zip(urls, results):
            if not result.success:
                logger.info('feed skipped', feed=url, reason=result.reason, attempts=result.attempts)
                report.feeds.append(FeedOutcome(url=url, status='skipped', reason=result.reason))
                continue
            novel = find_novel(subs.get(url), result.podcast)
            if not novel:
                report.feeds.append(FeedOutcome(url=url, status='unchanged'))
                continue
            merge_feed(url, result.podcast, novel, subs, pending)
            report.new_count += len(novel)
            report.feeds.append(FeedOutcome(url=url, status='updated', new_count=len(novel)))
            logger.info('feed updated', feed=url, new=len(novel), strategy=result.strategy)

        if report.new_count:
            # Both records commit together or not at all
            state = {NEW_EPS_KEY: pending_to_record(pending), PODS_KEY: subscriptions_to_record(subs)}
            report.persisted = await self._write(state)
            if not report.persisted:
                report.errors.append(f'could not persist {", ".join(state)}')

        now = int(self.clock() * 1000)
        if await self._write({LAST_CHECK_KEY: now}):
            report.last_check = now
        else:
            report.errors.append(f'could not persist {LAST_CHECK_KEY}')

        if report.new_count:
            await self._deliver(report, subs, pending)

        if report.errors:
            logger.error('sync finished with errors', new=report.new_count, errors=report.errors)
        else:
            logger.info('sync finished', new=report.new_count, messaged=report.messaged, notified=report.notified)
        return report
