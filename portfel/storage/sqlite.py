"""
SqliteStorage - Key/value persistence in a local SQLite file.

Usage:
    storage = SqliteStorage('data/portfel.db')
    await storage.connect()
    await storage.set('@portfel/portfolio', '[]')
    value = await storage.get('@portfel/portfolio')
    await storage.close()
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite

from portfel.errors import StorageError

logger = logging.getLogger(__name__)

SCHEMA = """
-- Key-value store (one JSON document per logical key)
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT
);
"""


class SqliteStorage:
    """aiosqlite-backed storage adapter."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._connection: Optional[aiosqlite.Connection] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def conn(self) -> aiosqlite.Connection:
        """Get database connection."""
        if not self._connection:
            raise RuntimeError("Storage not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> "SqliteStorage":
        """Connect to database and initialize schema."""
        if self._connection is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self._path)
            self._connection.row_factory = aiosqlite.Row
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA busy_timeout=30000")
            await self._connection.executescript(SCHEMA)
            await self._connection.commit()
            logger.info(f"Storage connected: {self._path}")
        return self

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def get(self, key: str) -> Optional[str]:
        try:
            cursor = await self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except (aiosqlite.Error, RuntimeError) as e:
            raise StorageError(key, str(e)) from e
        return row["value"] if row else None

    async def set(self, key: str, value: str) -> None:
        try:
            await self.conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, datetime.now(timezone.utc).isoformat()),
            )
            await self.conn.commit()
        except (aiosqlite.Error, RuntimeError) as e:
            raise StorageError(key, str(e)) from e

    async def remove(self, key: str) -> None:
        try:
            await self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            await self.conn.commit()
        except (aiosqlite.Error, RuntimeError) as e:
            raise StorageError(key, str(e)) from e

    async def keys(self) -> list[str]:
        """List all stored keys."""
        cursor = await self.conn.execute("SELECT key FROM kv ORDER BY key")
        rows = await cursor.fetchall()
        return [row["key"] for row in rows]
