"""Expose constructed client wrappers."""

from .credential_store import CredentialStore
from .endpoint_store import EndpointStore
from .scp_oauth import SCPOAuthClient
from .scp_rpc import SCPRPCClient
from .sqlite_store import SQLiteDatabase

__all__ = [
    "CredentialStore",
    "EndpointStore",
    "SCPOAuthClient",
    "SCPRPCClient",
    "SQLiteDatabase",
]
