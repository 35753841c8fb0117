'''Agent configuration: environment variables, optionally seeded from a .env file.'''

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values

STRATEGY_NAMES = ('direct', 'allorigins', 'corsproxy')
ALERT_CHANNELS = ('auto', 'desktop', 'email', 'console', 'none')


def _split(raw: str) -> list[str]:
    return [p.strip() for p in raw.split(',') if p.strip()]


def _number(env: dict[str, str], name: str, default: str, cast=float):
    raw = env.get(name) or default
    try:
        return cast(raw)
    except ValueError as e:
        raise ValueError(f'{name} must be a number, got {raw!r}') from e


@dataclass
class SyncConfig:
    '''Configuration for a synchronization run and the serve loop.'''

    db_path: Path = Path('data/wavelength.db')
    strategies: list[str] = field(default_factory=lambda: list(STRATEGY_NAMES))
    fetch_timeout: float = 15.0
    concurrency: int = 4
    alert_channel: str = 'auto'
    email_to: list[str] = field(default_factory=list)
    interval: float = 3600
    write_attempts: int = 3

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        unknown = [s for s in self.strategies if s not in STRATEGY_NAMES]
        if unknown or not self.strategies:
            raise ValueError(f'Unknown transport strategies: {unknown or "(empty)"}. Use {", ".join(STRATEGY_NAMES)}.')
        if self.alert_channel not in ALERT_CHANNELS:
            raise ValueError(f'Unknown alert channel: {self.alert_channel}. Use {", ".join(ALERT_CHANNELS)}.')
        if self.concurrency < 1:
            raise ValueError('concurrency must be at least 1')
        if self.write_attempts < 1:
            raise ValueError('write_attempts must be at least 1')

    @property
    def lock_path(self) -> Path:
        '''Inter-process run lock, beside the database.'''
        return self.db_path.with_suffix(self.db_path.suffix + '.lock')

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> SyncConfig:
        '''
        Build config from env vars. Values in env_file (if it exists) fill in
        anything the process environment does not set.
        '''
        env: dict[str, str] = {}
        if env_file and Path(env_file).exists():
            env.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        env.update(os.environ)
        return cls(
            db_path=Path(env.get('WAVELENGTH_DB') or 'data/wavelength.db'),
            strategies=_split(env.get('WAVELENGTH_STRATEGIES') or ','.join(STRATEGY_NAMES)),
            fetch_timeout=_number(env, 'WAVELENGTH_FETCH_TIMEOUT', '15'),
            concurrency=_number(env, 'WAVELENGTH_CONCURRENCY', '4', int),
            alert_channel=(env.get('WAVELENGTH_ALERTS') or 'auto').lower(),
            email_to=_split(env.get('WAVELENGTH_EMAIL_TO', '')),
            interval=_number(env, 'WAVELENGTH_INTERVAL', '3600'),
            write_attempts=_number(env, 'WAVELENGTH_WRITE_ATTEMPTS', '3', int),
        )
