"""
Construction of the shared service graph and FastAPI accessors for it.

The graph is built once at startup by :func:`build_services` and handed to
the application; nothing here is cached at module level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from scp_local.clients import (
    CredentialStore,
    EndpointStore,
    SCPOAuthClient,
    SCPRPCClient,
    SQLiteDatabase,
)
from scp_local.core.config import AppSettings
from scp_local.services import (
    AuthorizationFlowEngine,
    DiscoveryResolver,
    TokenCipherService,
    TokenLifecycleManager,
    unlock_master_key,
)
from scp_local.services.discovery import TxtLookup

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler may need, built once per process."""

    database: SQLiteDatabase
    endpoint_store: EndpointStore
    credential_store: CredentialStore
    token_cipher: TokenCipherService
    discovery: DiscoveryResolver
    flow_engine: AuthorizationFlowEngine
    token_manager: TokenLifecycleManager
    rpc_client: SCPRPCClient

    def close(self) -> None:
        self.database.close()


def build_services(
    settings: AppSettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    txt_lookup: Optional[TxtLookup] = None,
) -> Services:
    """Open the store, unlock the master key, self-test it and wire the services.

    Raises :class:`~scp_local.core.errors.CryptoSelfTestError` when the
    encryption round-trip fails; callers must not continue in that case.
    """
    database = SQLiteDatabase(settings.storage.db_path)
    endpoint_store = EndpointStore(database)
    credential_store = CredentialStore(database)

    token_cipher = TokenCipherService(unlock_master_key(endpoint_store))
    token_cipher.run_self_test()

    discovery = DiscoveryResolver(
        endpoint_store,
        settings.discovery,
        settings.timeouts,
        txt_lookup=txt_lookup,
        transport=transport,
    )
    oauth_client = SCPOAuthClient(settings.flow, settings.timeouts, transport=transport)
    flow_engine = AuthorizationFlowEngine(oauth_client, settings.flow)
    token_manager = TokenLifecycleManager(
        credential_store,
        token_cipher,
        flow_engine,
        discovery,
        settings.tokens,
    )
    return Services(
        database=database,
        endpoint_store=endpoint_store,
        credential_store=credential_store,
        token_cipher=token_cipher,
        discovery=discovery,
        flow_engine=flow_engine,
        token_manager=token_manager,
        rpc_client=SCPRPCClient(settings.timeouts, transport=transport),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_token_manager(request: Request) -> TokenLifecycleManager:
    return get_services(request).token_manager


def get_discovery_resolver(request: Request) -> DiscoveryResolver:
    return get_services(request).discovery


def get_rpc_client(request: Request) -> SCPRPCClient:
    return get_services(request).rpc_client


__all__ = [
    "Services",
    "build_services",
    "get_discovery_resolver",
    "get_rpc_client",
    "get_services",
    "get_token_manager",
]
