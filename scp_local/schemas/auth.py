"""Schemas for the local HTTP surface."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from scp_local.models.records import AuthorizationInfo, SCPCapabilities, normalize_domain


class AuthorizeRequest(BaseModel):
    """Payload asking the broker to authorize a merchant domain."""

    domain: str = Field(..., description="Merchant domain, e.g. acmestore.com.")
    email: str = Field(..., description="Email the customer uses with the merchant.")
    scopes: List[str] = Field(..., min_length=1, description="Scopes to request.")

    @field_validator("domain")
    @classmethod
    def _normalize_domain(cls, value: str) -> str:
        return normalize_domain(value)


class AuthorizeResponse(BaseModel):
    status: str
    authorization: AuthorizationInfo
    added_scopes: List[str] = Field(default_factory=list)
    removed_scopes: List[str] = Field(default_factory=list)


class RevokeResponse(BaseModel):
    domain: str
    revoked: bool = True
    remote_revoked: bool


class CancelResponse(BaseModel):
    domain: str
    cancelled: bool


class DiscoveryResponse(BaseModel):
    domain: str
    scp_endpoint: str
    discovery_method: str
    capabilities: Optional[SCPCapabilities] = None


class RPCCallRequest(BaseModel):
    method: str = Field(..., description="SCP method name, e.g. scp.get_orders.")
    params: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    error: str
    detail: str
    remediation: Optional[str] = None


__all__ = [
    "AuthorizeRequest",
    "AuthorizeResponse",
    "CancelResponse",
    "DiscoveryResponse",
    "ErrorResponse",
    "RPCCallRequest",
    "RevokeResponse",
]
