"""Schema exports."""

from .auth import (
    AuthorizeRequest,
    AuthorizeResponse,
    CancelResponse,
    DiscoveryResponse,
    ErrorResponse,
    RPCCallRequest,
    RevokeResponse,
)

__all__ = [
    "AuthorizeRequest",
    "AuthorizeResponse",
    "CancelResponse",
    "DiscoveryResponse",
    "ErrorResponse",
    "RPCCallRequest",
    "RevokeResponse",
]
