"""
FastAPI routes exposing the credential broker to a local agent.

Raw tokens never leave these handlers; responses carry authorization
metadata only.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from scp_local.clients.scp_rpc import RPCErrorKind, SCPRPCClient, SCPRPCError, SCPTransportError
from scp_local.core.config import AppSettings
from scp_local.core.errors import (
    AuthorizationCancelledError,
    AuthorizationDeniedError,
    AuthorizationExpiredError,
    AuthorizationTimeoutError,
    CryptoIntegrityError,
    CryptoSelfTestError,
    DiscoveryNotFoundError,
    IdentityConflictError,
    NotAuthorizedError,
    SCPLocalError,
    UnsupportedScopeError,
)
from scp_local.dependencies import (
    get_app_settings,
    get_discovery_resolver,
    get_rpc_client,
    get_token_manager,
)
from scp_local.models.records import AuthorizationInfo, normalize_domain
from scp_local.schemas import (
    AuthorizeRequest,
    AuthorizeResponse,
    CancelResponse,
    DiscoveryResponse,
    ErrorResponse,
    RPCCallRequest,
    RevokeResponse,
)
from scp_local.services import DiscoveryResolver, TokenLifecycleManager

router = APIRouter()
logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (NotAuthorizedError, HTTPStatus.NOT_FOUND),
    (DiscoveryNotFoundError, HTTPStatus.NOT_FOUND),
    (IdentityConflictError, HTTPStatus.CONFLICT),
    (AuthorizationCancelledError, HTTPStatus.CONFLICT),
    (UnsupportedScopeError, HTTPStatus.BAD_REQUEST),
    (AuthorizationDeniedError, HTTPStatus.FORBIDDEN),
    (AuthorizationExpiredError, HTTPStatus.GONE),
    (AuthorizationTimeoutError, HTTPStatus.GATEWAY_TIMEOUT),
    (CryptoIntegrityError, HTTPStatus.INTERNAL_SERVER_ERROR),
    (CryptoSelfTestError, HTTPStatus.INTERNAL_SERVER_ERROR),
)


def status_for_error(exc: SCPLocalError) -> HTTPStatus:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return HTTPStatus.BAD_GATEWAY


async def scp_error_handler(request: Request, exc: SCPLocalError) -> JSONResponse:
    """Render broker failures with an actionable remediation."""
    status_code = status_for_error(exc)
    if status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.error("Request to %s failed: %s", request.url.path, exc)
    body = ErrorResponse(
        error=exc.__class__.__name__,
        detail=str(exc),
        remediation=exc.remediation,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "environment": settings.environment}


@router.get("/discover/{domain}", response_model=DiscoveryResponse)
async def discover_endpoint(
    domain: str,
    discovery: Annotated[DiscoveryResolver, Depends(get_discovery_resolver)],
) -> DiscoveryResponse:
    """Resolve a merchant domain to its SCP endpoint and capabilities."""
    result = await discovery.discover(domain)
    return DiscoveryResponse(
        domain=result.domain,
        scp_endpoint=result.endpoint,
        discovery_method=result.method,
        capabilities=result.capabilities,
    )


@router.post("/authorizations", response_model=AuthorizeResponse)
async def authorize_merchant(
    payload: AuthorizeRequest,
    token_manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
) -> AuthorizeResponse:
    """
    Authorize with a merchant. Blocks until the customer acts on the emailed
    magic link, the poll budget runs out, or the wait is cancelled through
    ``DELETE /authorizations/{domain}/pending``.
    """
    result = await token_manager.authorize(payload.domain, payload.email, payload.scopes)
    return AuthorizeResponse(
        status=result.status,
        authorization=result.info,
        added_scopes=result.added_scopes,
        removed_scopes=result.removed_scopes,
    )


@router.get("/authorizations", response_model=List[AuthorizationInfo])
async def list_authorizations(
    token_manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
) -> List[AuthorizationInfo]:
    return token_manager.list_authorizations()


@router.get("/authorizations/{domain}", response_model=AuthorizationInfo)
async def check_authorization(
    domain: str,
    token_manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
) -> AuthorizationInfo:
    return token_manager.get_authorization_info(domain)


@router.delete("/authorizations/{domain}", response_model=RevokeResponse)
async def revoke_authorization(
    domain: str,
    token_manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
) -> RevokeResponse:
    remote_revoked = await token_manager.revoke(domain)
    return RevokeResponse(domain=normalize_domain(domain), remote_revoked=remote_revoked)


@router.delete("/authorizations/{domain}/pending", response_model=CancelResponse)
async def cancel_pending_authorization(
    domain: str,
    token_manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
) -> CancelResponse:
    """Abort an authorization still waiting on the customer."""
    cancelled = token_manager.cancel_pending(domain)
    return CancelResponse(domain=normalize_domain(domain), cancelled=cancelled)


@router.post("/merchants/{domain}/rpc")
async def call_merchant(
    domain: str,
    payload: RPCCallRequest,
    token_manager: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
    rpc_client: Annotated[SCPRPCClient, Depends(get_rpc_client)],
) -> Dict[str, Any]:
    """Relay one JSON-RPC call to the merchant with a valid access token."""
    access_token = await token_manager.get_valid_access_token(domain)
    endpoint = token_manager.get_endpoint(domain)

    try:
        result = await rpc_client.call(endpoint, access_token, payload.method, payload.params)
    except SCPRPCError as exc:
        if exc.kind is RPCErrorKind.UNAUTHORIZED:
            remediation = f"Revoke and re-authorize {domain}."
        elif exc.kind is RPCErrorKind.FORBIDDEN:
            remediation = f"Re-authorize {domain} with the scope this method needs."
        elif exc.kind is RPCErrorKind.RATE_LIMITED:
            remediation = "Wait before calling this merchant again."
        elif exc.kind is RPCErrorKind.CUSTOMER_NOT_FOUND:
            remediation = "The merchant has no customer record for this email."
        else:
            remediation = "Check the method name and parameters."
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail={
                "error": exc.kind.name,
                "code": exc.code,
                "detail": str(exc),
                "remediation": remediation,
            },
        ) from exc
    except SCPTransportError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_GATEWAY, detail=str(exc)) from exc

    return {"domain": normalize_domain(domain), "method": payload.method, "result": result}


__all__ = ["router", "scp_error_handler", "status_for_error"]
