"""SQLite database holding authorizations, the endpoint cache and the master key."""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterable, List, Optional

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS merchant_authorizations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    merchant_domain TEXT NOT NULL UNIQUE,
    scp_endpoint TEXT NOT NULL,
    customer_id TEXT NOT NULL,
    customer_email TEXT NOT NULL,
    access_token_encrypted TEXT NOT NULL,
    refresh_token_encrypted TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    scopes TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS endpoint_cache (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    domain TEXT NOT NULL UNIQUE,
    endpoint TEXT NOT NULL,
    capabilities TEXT,
    discovered_at TEXT NOT NULL,
    ttl INTEGER NOT NULL DEFAULT 86400
);

CREATE TABLE IF NOT EXISTS encryption_keys (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    key_material TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_customer_email
    ON merchant_authorizations(customer_email);
"""


class SQLiteDatabase:
    """Single shared connection with serialized access.

    The connection is opened lazily on first use and kept for the lifetime of
    the object. SQLite does not arbitrate between concurrent writers on one
    connection, so every statement runs under one lock and each mutation is
    committed before the call returns.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._db_path

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            if self._db_path.parent and not self._db_path.parent.exists():
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.info("Opening credential database at %s", self._db_path)
            conn = sqlite3.connect(self._db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA synchronous = FULL")
            conn.executescript(_SCHEMA)
            conn.commit()
            self._conn = conn
        return self._conn

    def execute(self, sql: str, params: Iterable[Any] = ()) -> int:
        """Run a mutation and commit it immediately; returns affected rows."""
        with self._lock:
            conn = self._connection()
            with conn:
                cursor = conn.execute(sql, tuple(params))
            return cursor.rowcount

    def fetch_one(self, sql: str, params: Iterable[Any] = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._connection().execute(sql, tuple(params)).fetchone()

    def fetch_all(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._connection().execute(sql, tuple(params)).fetchall()

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


__all__ = ["SQLiteDatabase"]
