# key-value persistence over a single sqlite table, internal to db package
import asyncio
import json
import os.path
import sqlite3
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncIterator, Optional

import aiosqlite

from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

KV_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS kv (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class PersistenceError(Exception):
    """Raised when a value could not be serialized or written."""

    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__(f"could not persist {key!r}: {cause}")
        self.key = key
        self.cause = cause


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


class KeyValueStore:
    """Async key-value store, one JSON document per key.

    The backing table is created on first use of a connection.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or config.DB_PATH
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def _init_db(self, conn: aiosqlite.Connection) -> None:
        _logger.info(f"Initializing key-value store at {self.path}...")
        await conn.executescript(KV_TABLE_DDL)
        await conn.commit()

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        if self.path != ":memory:":
            folder = os.path.dirname(self.path)
            if folder and not os.path.isdir(folder):
                os.makedirs(folder, exist_ok=True)
        conn = await aiosqlite.connect(self.path)
        if not self._initialized:
            async with self._init_lock:
                if not self._initialized:
                    await self._init_db(conn)
                    self._initialized = True
        try:
            yield conn
        finally:
            await conn.close()

    async def get_item(self, key: str) -> Any:
        """Return the decoded value stored under key, or None."""
        try:
            async with self.connect() as conn:
                cur = await conn.execute("SELECT value FROM kv WHERE key = ?;", (key,))
                row = await cur.fetchone()
                await cur.close()
        except sqlite3.Error as exc:
            _logger.error(f"Error reading {key!r}: {exc}")
            return None
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError as exc:
            _logger.error(f"Stored value for {key!r} is not valid JSON: {exc}")
            return None

    async def set_item(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value, default=_json_default)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(key, exc) from exc
        try:
            async with self.connect() as conn:
                await conn.execute(
                    """
                    INSERT INTO kv(key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value;
                    """,
                    (key, payload),
                )
                await conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(key, exc) from exc

    async def remove_item(self, key: str) -> None:
        try:
            async with self.connect() as conn:
                await conn.execute("DELETE FROM kv WHERE key = ?;", (key,))
                await conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(key, exc) from exc

    async def clear(self) -> None:
        try:
            async with self.connect() as conn:
                await conn.execute("DELETE FROM kv;")
                await conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError("*", exc) from exc
