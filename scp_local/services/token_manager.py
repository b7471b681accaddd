"""
Token lifecycle management: authorize, hand out valid access tokens, revoke.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from scp_local.clients.credential_store import CredentialStore
from scp_local.core.config import TokenSettings
from scp_local.core.errors import (
    IdentityConflictError,
    NotAuthorizedError,
    SCPLocalError,
)
from scp_local.models.records import (
    AuthorizationInfo,
    MerchantAuthorization,
    normalize_domain,
    utcnow,
)
from scp_local.services.authorization_flow import AuthorizationFlowEngine, PollTimer
from scp_local.services.discovery import DiscoveryResolver
from scp_local.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class AuthorizationStatus:
    ALREADY_AUTHORIZED = "already_authorized"
    AUTHORIZED = "authorized"
    REAUTHORIZED = "reauthorized"


@dataclass
class AuthorizationResult:
    status: str
    info: AuthorizationInfo
    added_scopes: List[str] = field(default_factory=list)
    removed_scopes: List[str] = field(default_factory=list)


class TokenLifecycleManager:
    """Single entry point for obtaining and managing merchant credentials."""

    def __init__(
        self,
        credential_store: CredentialStore,
        token_cipher: TokenCipherService,
        flow_engine: AuthorizationFlowEngine,
        discovery: DiscoveryResolver,
        token_settings: TokenSettings,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = credential_store
        self._cipher = token_cipher
        self._flow = flow_engine
        self._discovery = discovery
        self._refresh_threshold = timedelta(seconds=token_settings.token_refresh_threshold)
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._pending: Dict[str, PollTimer] = {}

    def _lock_for(self, domain: str) -> asyncio.Lock:
        lock = self._locks.get(domain)
        if lock is None:
            lock = self._locks[domain] = asyncio.Lock()
        return lock

    def _release_lock(self, domain: str) -> None:
        lock = self._locks.get(domain)
        if lock is not None and not lock.locked():
            del self._locks[domain]

    async def get_valid_access_token(self, domain: str) -> str:
        """Return a usable access token, refreshing it when close to expiry."""
        domain = normalize_domain(domain)
        async with self._lock_for(domain):
            record = self._store.get_authorization(domain)
            if record is None:
                raise NotAuthorizedError(domain)

            if record.expires_at - self._clock() >= self._refresh_threshold:
                return self._cipher.decrypt(record.access_token_encrypted)

            return await self._refresh(record)

    async def _refresh(self, record: MerchantAuthorization) -> str:
        domain = record.merchant_domain
        refresh_token = self._cipher.decrypt(record.refresh_token_encrypted)
        logger.info("Refreshing access token for %s", domain, extra={"domain": domain})

        refreshed_at = self._clock()
        tokens = await self._flow.refresh(record.scp_endpoint, refresh_token, domain=domain)

        self._store.update_tokens(
            domain,
            access_token_encrypted=self._cipher.encrypt(tokens.access_token),
            refresh_token_encrypted=self._cipher.encrypt(tokens.refresh_token),
            expires_at=refreshed_at + timedelta(seconds=tokens.expires_in),
            updated_at=refreshed_at,
        )

        updated = self._store.get_authorization(domain)
        if updated is None:
            raise NotAuthorizedError(domain)
        return self._cipher.decrypt(updated.access_token_encrypted)

    async def authorize(
        self,
        domain: str,
        email: str,
        scopes: List[str],
        *,
        timer: Optional[PollTimer] = None,
    ) -> AuthorizationResult:
        """Authorize ``email`` for ``scopes`` on ``domain``.

        An identical existing authorization is returned without any network
        call. A different email is refused; the caller must revoke first.
        The timer is registered so :meth:`cancel_pending` can abort the wait.
        """
        domain = normalize_domain(domain)
        existing = self._store.get_authorization(domain)
        added: List[str] = list(dict.fromkeys(scopes))
        removed: List[str] = []

        if existing is not None:
            if existing.customer_email != email:
                raise IdentityConflictError(domain, existing.customer_email, email)
            if existing.has_scopes(scopes):
                return AuthorizationResult(
                    status=AuthorizationStatus.ALREADY_AUTHORIZED,
                    info=AuthorizationInfo.from_record(existing),
                )
            previous = set(existing.scopes)
            added = [scope for scope in added if scope not in previous]
            removed = [scope for scope in existing.scopes if scope not in set(scopes)]
            logger.info(
                "Re-authorizing %s with scope changes (added=%s, removed=%s)",
                domain,
                added,
                removed,
                extra={"domain": domain},
            )

        timer = timer or PollTimer()
        self._pending[domain] = timer
        try:
            discovery = await self._discovery.discover(domain)
            tokens = await self._flow.authorize(
                discovery.endpoint,
                domain=domain,
                email=email,
                scopes=scopes,
                capabilities=discovery.capabilities,
                timer=timer,
            )
        finally:
            if self._pending.get(domain) is timer:
                del self._pending[domain]

        async with self._lock_for(domain):
            issued_at = self._clock()
            current = self._store.get_authorization(domain)
            record = MerchantAuthorization(
                merchant_domain=domain,
                scp_endpoint=discovery.endpoint,
                customer_id=tokens.customer_id or "",
                customer_email=tokens.email or email,
                access_token_encrypted=self._cipher.encrypt(tokens.access_token),
                refresh_token_encrypted=self._cipher.encrypt(tokens.refresh_token),
                expires_at=issued_at + timedelta(seconds=tokens.expires_in),
                scopes=tokens.granted_scopes or list(scopes),
                created_at=current.created_at if current else issued_at,
                updated_at=issued_at,
            )
            self._store.store_authorization(record)

        logger.info("Authorized %s", domain, extra={"domain": domain})
        return AuthorizationResult(
            status=AuthorizationStatus.REAUTHORIZED if existing else AuthorizationStatus.AUTHORIZED,
            info=AuthorizationInfo.from_record(record),
            added_scopes=added if existing else [],
            removed_scopes=removed,
        )

    async def revoke(self, domain: str) -> bool:
        """Revoke remotely if possible, then always delete the local record.

        Returns whether the merchant acknowledged the remote revocation.
        """
        domain = normalize_domain(domain)
        record = self._store.get_authorization(domain)
        if record is None:
            raise NotAuthorizedError(domain)

        remote_ok = False
        try:
            access_token = await self.get_valid_access_token(domain)
        except SCPLocalError as exc:
            logger.warning(
                "Could not obtain a token to revoke for %s: %s",
                domain,
                exc,
                extra={"domain": domain},
            )
        else:
            remote_ok = await self._flow.revoke(record.scp_endpoint, access_token, domain=domain)

        async with self._lock_for(domain):
            self._store.delete_authorization(domain)
        self._release_lock(domain)
        logger.info("Revoked authorization for %s", domain, extra={"domain": domain})
        return remote_ok

    def cancel_pending(self, domain: str) -> bool:
        """Abort an in-flight authorization for ``domain``; False if none is waiting."""
        timer = self._pending.get(normalize_domain(domain))
        if timer is None:
            return False
        timer.cancel()
        return True

    def get_authorization_info(self, domain: str) -> AuthorizationInfo:
        domain = normalize_domain(domain)
        record = self._store.get_authorization(domain)
        if record is None:
            return AuthorizationInfo(domain=domain, authorized=False)
        return AuthorizationInfo.from_record(record)

    def get_endpoint(self, domain: str) -> str:
        domain = normalize_domain(domain)
        record = self._store.get_authorization(domain)
        if record is None:
            raise NotAuthorizedError(domain)
        return record.scp_endpoint

    def list_authorizations(self) -> List[AuthorizationInfo]:
        return [AuthorizationInfo.from_record(r) for r in self._store.list_authorizations()]

    def has_valid_authorization(self, domain: str) -> bool:
        record = self._store.get_authorization(normalize_domain(domain))
        return record is not None and record.expires_at > self._clock()


__all__ = [
    "AuthorizationResult",
    "AuthorizationStatus",
    "TokenLifecycleManager",
]
