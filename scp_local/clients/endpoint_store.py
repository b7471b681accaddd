"""Persistence for cached discovery results and the master key record."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import List, Optional

from scp_local.clients.sqlite_store import SQLiteDatabase
from scp_local.models.records import EndpointCacheEntry, SCPCapabilities, utcnow


class EndpointStore:
    """Endpoint cache keyed by domain, plus the singleton key row."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def cache_endpoint(self, entry: EndpointCacheEntry) -> None:
        capabilities = (
            entry.capabilities.model_dump_json(exclude_none=True)
            if entry.capabilities is not None
            else None
        )
        self._db.execute(
            """
            INSERT INTO endpoint_cache (domain, endpoint, capabilities, discovered_at, ttl)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(domain) DO UPDATE SET
                endpoint = excluded.endpoint,
                capabilities = excluded.capabilities,
                discovered_at = excluded.discovered_at,
                ttl = excluded.ttl
            """,
            (
                entry.domain,
                entry.endpoint,
                capabilities,
                entry.discovered_at.isoformat(),
                entry.ttl,
            ),
        )

    def get_cached_endpoint(
        self, domain: str, *, now: Optional[datetime] = None
    ) -> Optional[EndpointCacheEntry]:
        """Return the cache entry for ``domain`` unless it has outlived its ttl."""
        row = self._db.fetch_one(
            "SELECT * FROM endpoint_cache WHERE domain = ?", (domain,)
        )
        if not row:
            return None
        entry = self._row_to_entry(row)
        if entry.is_expired(now):
            return None
        return entry

    def list_cached_endpoints(self) -> List[EndpointCacheEntry]:
        rows = self._db.fetch_all(
            "SELECT * FROM endpoint_cache ORDER BY discovered_at DESC"
        )
        return [self._row_to_entry(row) for row in rows]

    def delete_cached_endpoint(self, domain: str) -> bool:
        return self._db.execute(
            "DELETE FROM endpoint_cache WHERE domain = ?", (domain,)
        ) > 0

    def purge_expired(self, *, now: Optional[datetime] = None) -> int:
        """Drop every entry past its ttl and return how many were removed."""
        removed = 0
        for entry in self.list_cached_endpoints():
            if entry.is_expired(now) and self.delete_cached_endpoint(entry.domain):
                removed += 1
        return removed

    def get_key_material(self) -> Optional[str]:
        row = self._db.fetch_one("SELECT key_material FROM encryption_keys WHERE id = 1")
        if not row:
            return None
        return row["key_material"]

    def store_key_material(self, key_material: str) -> bool:
        """Insert the singleton key row; returns False if one already exists."""
        inserted = self._db.execute(
            """
            INSERT INTO encryption_keys (id, key_material, created_at)
            VALUES (1, ?, ?)
            ON CONFLICT(id) DO NOTHING
            """,
            (key_material, utcnow().isoformat()),
        )
        return inserted > 0

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> EndpointCacheEntry:
        capabilities = row["capabilities"]
        return EndpointCacheEntry(
            domain=row["domain"],
            endpoint=row["endpoint"],
            capabilities=SCPCapabilities.model_validate(json.loads(capabilities))
            if capabilities
            else None,
            discovered_at=datetime.fromisoformat(row["discovered_at"]),
            ttl=row["ttl"],
        )


__all__ = ["EndpointStore"]
