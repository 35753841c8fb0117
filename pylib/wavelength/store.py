'''
Persistent key-value mirror shared across sync runs.

One SQLite table of JSON values keyed by string. The schema is created on
first open. Reads never raise: a failed read looks like a missing key.
Writes report failure by returning False, since a lost write means the
same episodes get announced again on the next run.
'''

import asyncio
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

import structlog

PODS_KEY = 'pods'
NEW_EPS_KEY = 'new_eps'
LAST_CHECK_KEY = 'last_check'

SCHEMA = 'CREATE TABLE IF NOT EXISTS kv (k TEXT PRIMARY KEY, v TEXT NOT NULL)'

logger = structlog.get_logger()


class KVStore:
    '''Lazily opened SQLite key-value store. Safe to share between coroutines.'''

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._open_lock = asyncio.Lock()
        self._io_lock = threading.Lock()

    def _open(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.execute('PRAGMA busy_timeout = 5000')
        conn.execute(SCHEMA)
        conn.commit()
        return conn

    async def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            async with self._open_lock:
                if self._conn is None:
                    self._conn = await asyncio.to_thread(self._open)
        return self._conn

    def _read(self, conn: sqlite3.Connection, key: str) -> str | None:
        with self._io_lock:
            row = conn.execute('SELECT v FROM kv WHERE k = ?', (key,)).fetchone()
        return row[0] if row else None

    def _write(self, conn: sqlite3.Connection, rows: list[tuple[str, str]]) -> None:
        with self._io_lock:
            with conn:
                conn.executemany('INSERT OR REPLACE INTO kv (k, v) VALUES (?, ?)', rows)

    async def get(self, key: str) -> Any | None:
        '''Value for key, or None if missing or unreadable.'''
        try:
            conn = await self._connection()
            raw = await asyncio.to_thread(self._read, conn, key)
            return json.loads(raw) if raw is not None else None
        except (sqlite3.Error, OSError, ValueError) as e:
            logger.warning('store read failed', key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any) -> bool:
        '''Store value under key. Returns False if the write did not happen.'''
        return await self.set_many({key: value})

    async def set_many(self, items: dict[str, Any]) -> bool:
        '''
        Store several keys in one transaction: either all are written or none.
        Returns False if the write did not happen.
        '''
        try:
            rows = [(key, json.dumps(value)) for key, value in items.items()]
            conn = await self._connection()
            await asyncio.to_thread(self._write, conn, rows)
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            logger.error('store write failed', keys=list(items), error=str(e))
            return False
        return True

    async def close(self) -> None:
        async with self._open_lock:
            if self._conn is not None:
                conn, self._conn = self._conn, None
                await asyncio.to_thread(conn.close)
