"""Persistence for per-merchant authorization records."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import List, Optional

from scp_local.clients.sqlite_store import SQLiteDatabase
from scp_local.models.records import MerchantAuthorization, utcnow


class CredentialStore:
    """One authorization row per merchant domain.

    Token columns only ever receive envelopes produced by the token cipher;
    this class never sees plaintext tokens.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def store_authorization(self, auth: MerchantAuthorization) -> None:
        """Upsert by domain; an existing row keeps its id and ``created_at``."""
        self._db.execute(
            """
            INSERT INTO merchant_authorizations (
                merchant_domain,
                scp_endpoint,
                customer_id,
                customer_email,
                access_token_encrypted,
                refresh_token_encrypted,
                expires_at,
                scopes,
                created_at,
                updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(merchant_domain) DO UPDATE SET
                scp_endpoint = excluded.scp_endpoint,
                customer_id = excluded.customer_id,
                customer_email = excluded.customer_email,
                access_token_encrypted = excluded.access_token_encrypted,
                refresh_token_encrypted = excluded.refresh_token_encrypted,
                expires_at = excluded.expires_at,
                scopes = excluded.scopes,
                updated_at = excluded.updated_at
            """,
            (
                auth.merchant_domain,
                auth.scp_endpoint,
                auth.customer_id,
                auth.customer_email,
                auth.access_token_encrypted,
                auth.refresh_token_encrypted,
                auth.expires_at.isoformat(),
                json.dumps(list(auth.scopes)),
                auth.created_at.isoformat(),
                auth.updated_at.isoformat(),
            ),
        )

    def get_authorization(self, merchant_domain: str) -> Optional[MerchantAuthorization]:
        row = self._db.fetch_one(
            "SELECT * FROM merchant_authorizations WHERE merchant_domain = ?",
            (merchant_domain,),
        )
        if not row:
            return None
        return self._row_to_record(row)

    def list_authorizations(self) -> List[MerchantAuthorization]:
        rows = self._db.fetch_all(
            "SELECT * FROM merchant_authorizations ORDER BY updated_at DESC"
        )
        return [self._row_to_record(row) for row in rows]

    def update_tokens(
        self,
        merchant_domain: str,
        *,
        access_token_encrypted: str,
        refresh_token_encrypted: str,
        expires_at: datetime,
        updated_at: Optional[datetime] = None,
    ) -> bool:
        updated = self._db.execute(
            """
            UPDATE merchant_authorizations
            SET access_token_encrypted = ?,
                refresh_token_encrypted = ?,
                expires_at = ?,
                updated_at = ?
            WHERE merchant_domain = ?
            """,
            (
                access_token_encrypted,
                refresh_token_encrypted,
                expires_at.isoformat(),
                (updated_at or utcnow()).isoformat(),
                merchant_domain,
            ),
        )
        return updated > 0

    def delete_authorization(self, merchant_domain: str) -> bool:
        return self._db.execute(
            "DELETE FROM merchant_authorizations WHERE merchant_domain = ?",
            (merchant_domain,),
        ) > 0

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> MerchantAuthorization:
        return MerchantAuthorization(
            merchant_domain=row["merchant_domain"],
            scp_endpoint=row["scp_endpoint"],
            customer_id=row["customer_id"],
            customer_email=row["customer_email"],
            access_token_encrypted=row["access_token_encrypted"],
            refresh_token_encrypted=row["refresh_token_encrypted"],
            expires_at=datetime.fromisoformat(row["expires_at"]),
            scopes=json.loads(row["scopes"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


__all__ = ["CredentialStore"]
