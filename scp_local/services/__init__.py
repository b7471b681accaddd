"""Service layer exports."""

from .authorization_flow import AuthorizationFlowEngine, PollTimer
from .discovery import DiscoveryResolver, DiscoveryResult
from .token_cipher import MasterKeyHandle, TokenCipherService, unlock_master_key
from .token_manager import AuthorizationResult, TokenLifecycleManager

__all__ = [
    "AuthorizationFlowEngine",
    "AuthorizationResult",
    "DiscoveryResolver",
    "DiscoveryResult",
    "MasterKeyHandle",
    "PollTimer",
    "TokenCipherService",
    "TokenLifecycleManager",
    "unlock_master_key",
]
