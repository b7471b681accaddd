"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    Services,
    build_services,
    get_discovery_resolver,
    get_rpc_client,
    get_services,
    get_token_manager,
)
from .config import get_app_settings

__all__ = [
    "Services",
    "build_services",
    "get_app_settings",
    "get_discovery_resolver",
    "get_rpc_client",
    "get_services",
    "get_token_manager",
]
