'''CLI for the background feed synchronization agent.'''

import asyncio
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import fire
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from wavelength.config import SyncConfig
from wavelength.engine import SyncReport
from wavelength.models import pending_from_record, subscriptions_from_record
from wavelength.runner import build_engine, run_tick
from wavelength.scheduler import sync_scheduler
from wavelength.store import LAST_CHECK_KEY, NEW_EPS_KEY, PODS_KEY, KVStore


def _build_config(env_file: str = '.env', db: str = '', strategies: str = '', alerts: str = '') -> SyncConfig:
    '''Build SyncConfig from env, with optional CLI overrides.'''
    cfg = SyncConfig.from_env(env_file=Path(env_file) if env_file else None)
    overrides = {}
    if db:
        overrides['db_path'] = Path(db)
    if strategies:
        overrides['strategies'] = [s.strip() for s in strategies.split(',') if s.strip()]
    if alerts:
        overrides['alert_channel'] = alerts.lower()
    return replace(cfg, **overrides) if overrides else cfg


def _configure_plain_tracebacks() -> None:
    '''Use standard Python tracebacks instead of Rich's fancy format.'''
    from structlog.contextvars import merge_contextvars
    from structlog.dev import ConsoleRenderer, plain_traceback, set_exc_info
    from structlog.processors import StackInfoRenderer, TimeStamper, add_log_level

    structlog.configure(
        processors=[
            merge_contextvars,
            add_log_level,
            StackInfoRenderer(),
            set_exc_info,
            TimeStamper(fmt='%Y-%m-%d %H:%M:%S', utc=False),
            ConsoleRenderer(exception_formatter=plain_traceback),
        ],
    )


def _print_report(console: Console, report: SyncReport) -> None:
    if report.skipped:
        console.print(f'[yellow]Sync skipped[/yellow] ({report.reason})')
        return
    table = Table(title='Feeds')
    table.add_column('Feed')
    table.add_column('Status')
    table.add_column('New', justify='right')
    table.add_column('Reason')
    for outcome in report.feeds:
        table.add_row(outcome.url, outcome.status, str(outcome.new_count), outcome.reason or '')
    console.print(table)
    console.print(f'{report.new_count} new episode(s); messaged {report.messaged} client(s); alert raised: {report.notified}')
    for err in report.errors:
        console.print(f'[red]{err}[/red]')


def main() -> None:
    '''Wavelength: keep a podcast library's feeds fresh in the background.'''
    _configure_plain_tracebacks()
    fire.Fire({
        'run': run_once,
        'serve': serve,
        'status': status,
    })


def run_once(env_file: str = '.env', db: str = '', strategies: str = '', alerts: str = '') -> None:
    '''
    Run one sync: refresh every subscribed feed and announce new episodes.
    env_file: optional .env with WAVELENGTH_* settings
    db: path to the key-value database (default from WAVELENGTH_DB)
    strategies: comma-separated transport chain, e.g. direct,allorigins,corsproxy
    alerts: alert channel (auto | desktop | email | console | none)
    Exits with status 1 if results could not be persisted.
    '''
    config = _build_config(env_file, db, strategies, alerts)
    engine = build_engine(config)

    async def _once() -> SyncReport:
        try:
            return await run_tick(engine)
        finally:
            await engine.store.close()

    report = asyncio.run(_once())
    _print_report(Console(), report)
    if not report.ok:
        raise SystemExit(1)


def serve(
    env_file: str = '.env',
    db: str = '',
    strategies: str = '',
    alerts: str = '',
    interval: float = 0,
    scheduler: str = 'asyncio',
) -> None:
    '''
    Run scheduler: sync every interval seconds (default WAVELENGTH_INTERVAL, 1h).
    scheduler: asyncio (default) or apscheduler.
    '''
    console = Console()
    config = _build_config(env_file, db, strategies, alerts)
    interval = interval or config.interval
    engine = build_engine(config)

    sched = sync_scheduler(engine, kind=scheduler, interval_seconds=interval)

    console.print(Panel(f'Starting Wavelength sync (interval={interval:g}s, db={config.db_path})', title='Wavelength'))
    asyncio.run(_serve(sched, engine))


async def _serve(scheduler, engine) -> None:
    await scheduler.start()
    try:
        while True:
            await asyncio.sleep(3600)
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        await scheduler.stop()
        await engine.store.close()


def status(env_file: str = '.env', db: str = '') -> None:
    '''Show the last check time, subscriptions and episodes awaiting the app.'''
    config = _build_config(env_file, db)

    async def _read():
        store = KVStore(config.db_path)
        try:
            return (
                subscriptions_from_record(await store.get(PODS_KEY)),
                pending_from_record(await store.get(NEW_EPS_KEY)),
                await store.get(LAST_CHECK_KEY),
            )
        finally:
            await store.close()

    subs, pending, last_check = asyncio.run(_read())
    console = Console()
    checked = datetime.fromtimestamp(last_check / 1000).isoformat(sep=' ', timespec='seconds') if last_check else 'never'
    console.print(f'Last check: {checked}')
    table = Table(title=f'{len(subs)} subscription(s)')
    table.add_column('Podcast')
    table.add_column('Episodes', justify='right')
    table.add_column('Pending', justify='right')
    for url, pod in subs.items():
        table.add_row(pod.title or url, str(len(pod.episodes)), str(len(pending.get(url, []))))
    console.print(table)
