"""
Domain models for persisted credential material and endpoint metadata.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_domain(domain: str) -> str:
    """Canonical storage key for a merchant domain."""
    return domain.strip().lower().rstrip(".")


class RateLimitHint(BaseModel):
    """Optional rate-limit advice published by a merchant."""

    model_config = ConfigDict(extra="ignore")

    requests_per_minute: Optional[int] = None
    requests_per_hour: Optional[int] = None


class SCPCapabilities(BaseModel):
    """Capability descriptor served at ``<endpoint>/capabilities``."""

    model_config = ConfigDict(extra="ignore")

    version: Optional[str] = None
    protocol_version: Optional[str] = None
    scopes_supported: List[str] = Field(default_factory=list)
    authorization_endpoint: Optional[str] = None
    token_endpoint: Optional[str] = None
    revocation_endpoint: Optional[str] = None
    grant_types_supported: List[str] = Field(default_factory=list)
    code_challenge_methods_supported: List[str] = Field(default_factory=list)
    token_endpoint_auth_methods_supported: List[str] = Field(default_factory=list)
    magic_link_supported: Optional[bool] = None
    webhook_support: Optional[bool] = None
    rate_limit: Optional[RateLimitHint] = None

    def unsupported_scopes(self, requested: List[str]) -> List[str]:
        """Return requested scopes the merchant does not advertise.

        An empty ``scopes_supported`` list means the merchant did not publish
        one, so nothing can be validated.
        """
        if not self.scopes_supported:
            return []
        supported = set(self.scopes_supported)
        return [scope for scope in requested if scope not in supported]


class EndpointCacheEntry(BaseModel):
    """A discovery result cached per domain."""

    domain: str
    endpoint: str
    capabilities: Optional[SCPCapabilities] = None
    discovered_at: datetime = Field(default_factory=utcnow)
    ttl: int = 86400

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return now - self.discovered_at > timedelta(seconds=self.ttl)


class MerchantAuthorization(BaseModel):
    """One authorization per merchant domain; token fields are envelopes."""

    merchant_domain: str
    scp_endpoint: str
    customer_id: str
    customer_email: str
    access_token_encrypted: str
    refresh_token_encrypted: str
    expires_at: datetime
    scopes: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def has_scopes(self, scopes: List[str]) -> bool:
        return set(self.scopes) == set(scopes)


class AuthorizationInfo(BaseModel):
    """Token-free view of an authorization record."""

    domain: str
    authorized: bool
    customer_email: Optional[str] = None
    customer_id: Optional[str] = None
    scopes: List[str] = Field(default_factory=list)
    authorized_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: MerchantAuthorization) -> "AuthorizationInfo":
        return cls(
            domain=record.merchant_domain,
            authorized=True,
            customer_email=record.customer_email,
            customer_id=record.customer_id,
            scopes=list(record.scopes),
            authorized_at=record.created_at,
            expires_at=record.expires_at,
        )


__all__ = [
    "AuthorizationInfo",
    "EndpointCacheEntry",
    "MerchantAuthorization",
    "RateLimitHint",
    "SCPCapabilities",
    "normalize_domain",
    "utcnow",
]
