"""Namespaced key-value store backed by a single SQLite table."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from relaybot.errors import StorageError
from relaybot.logging import get_logger
from relaybot.utils.helpers import ensure_dir

logger = get_logger(__name__)

_SCHEMA = "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"


class KeyValueStore:
    """
    JSON values stored under ``<namespace>:<key>`` rows.

    All sqlite work runs in a worker thread so the event loop never blocks on disk.
    Writes are last-write-wins; there is no transaction spanning a read and a write.
    """

    def __init__(self, db_path: Path, namespace: str = "user-chats"):
        self.db_path = Path(db_path)
        self.namespace = namespace
        self._conn: sqlite3.Connection | None = None
        self._conn_lock = threading.Lock()

    def _full_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def _connect(self) -> sqlite3.Connection:
        with self._conn_lock:
            if self._conn is None:
                ensure_dir(self.db_path.parent)
                # check_same_thread=False because calls arrive from asyncio.to_thread workers
                conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
                conn.execute(_SCHEMA)
                conn.commit()
                self._conn = conn
                logger.debug("kv_store_opened", path=str(self.db_path), namespace=self.namespace)
            return self._conn

    def _get_sync(self, key: str) -> Any | None:
        conn = self._connect()
        with self._conn_lock:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (self._full_key(key),)).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def _set_sync(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        conn = self._connect()
        with self._conn_lock:
            conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (self._full_key(key), payload),
            )
            conn.commit()

    async def _run(self, op: str, fn: Any, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except (sqlite3.Error, json.JSONDecodeError, OSError) as e:
            logger.error("kv_store_failed", op=op, namespace=self.namespace, error=str(e))
            raise StorageError(f"Key-value store {op} failed: {e}") from e

    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None when the key is absent."""
        return await self._run("get", self._get_sync, key)

    async def set(self, key: str, value: Any) -> None:
        await self._run("set", self._set_sync, key, value)

    def close(self) -> None:
        with self._conn_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
