"""
Magic-link authorization flow.

The customer approves access on another channel (an emailed link), so the
flow initiates a PKCE request, polls for the decision at the interval the
merchant suggests, then exchanges the code for tokens::

    INIT -> PENDING -> AUTHORIZED -> EXCHANGED
                    -> DENIED | EXPIRED | TIMEOUT | CANCELLED
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from scp_local.clients.scp_oauth import (
    OOB_REDIRECT_URI,
    OAuthTokenEndpointError,
    SCPOAuthClient,
)
from scp_local.core.config import FlowSettings
from scp_local.core.errors import (
    AuthorizationCancelledError,
    AuthorizationDeniedError,
    AuthorizationExpiredError,
    AuthorizationTimeoutError,
    TokenExchangeFailedError,
    TokenRefreshFailedError,
    UnsupportedScopeError,
)
from scp_local.models.oauth import AuthorizationInitRequest, TokenResponse
from scp_local.models.records import SCPCapabilities
from scp_local.utils.pkce import generate_pkce, generate_state

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    INIT = "init"
    PENDING = "pending"
    AUTHORIZED = "authorized"
    EXCHANGED = "exchanged"
    DENIED = "denied"
    EXPIRED = "expired"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class PollTimer:
    """Interruptible wait between poll checks.

    Hand the same timer to whoever may need to abort the flow; ``cancel()``
    wakes a pending wait immediately.
    """

    def __init__(self) -> None:
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise AuthorizationCancelledError("Authorization cancelled by caller.")

    async def wait(self, seconds: float) -> None:
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()


@dataclass
class AuthorizationFlowSession:
    """In-memory state for one authorize-and-poll sequence. Never persisted."""

    endpoint: str
    domain: str
    email: str
    scopes: List[str]
    code_verifier: str = field(repr=False)
    state: str = field(repr=False)
    auth_request_id: Optional[str] = None
    poll_interval: float = 2.0
    status: FlowState = FlowState.INIT
    attempts: int = 0


class AuthorizationFlowEngine:
    """Drive the PKCE exchange, refresh and revocation against an SCP endpoint."""

    def __init__(self, oauth_client: SCPOAuthClient, flow_settings: FlowSettings) -> None:
        self._oauth = oauth_client
        self._settings = flow_settings

    @staticmethod
    def validate_scopes(
        domain: str, scopes: List[str], capabilities: Optional[SCPCapabilities]
    ) -> None:
        """Reject scopes the merchant does not list; no descriptor means no check."""
        if capabilities is None:
            return
        unsupported = capabilities.unsupported_scopes(scopes)
        if unsupported:
            raise UnsupportedScopeError(domain, unsupported, capabilities.scopes_supported)

    async def authorize(
        self,
        endpoint: str,
        *,
        domain: str,
        email: str,
        scopes: List[str],
        capabilities: Optional[SCPCapabilities] = None,
        timer: Optional[PollTimer] = None,
    ) -> TokenResponse:
        """Run the whole flow and return the exchanged token set."""
        self.validate_scopes(domain, scopes, capabilities)
        timer = timer or PollTimer()

        session = await self.start(endpoint, domain=domain, email=email, scopes=scopes)
        code = await self.wait_for_code(session, timer)
        return await self.exchange(session, code)

    async def start(
        self, endpoint: str, *, domain: str, email: str, scopes: List[str]
    ) -> AuthorizationFlowSession:
        pkce = generate_pkce()
        session = AuthorizationFlowSession(
            endpoint=endpoint,
            domain=domain,
            email=email,
            scopes=list(scopes),
            code_verifier=pkce.code_verifier,
            state=generate_state(),
            poll_interval=self._settings.poll_interval,
        )
        request = AuthorizationInitRequest(
            email=email,
            client_id=self._oauth.client_id,
            client_name=self._oauth.client_name,
            domain=domain,
            scopes=session.scopes,
            code_challenge=pkce.code_challenge,
            code_challenge_method=pkce.code_challenge_method,
            redirect_uri=OOB_REDIRECT_URI,
            state=session.state,
        )
        response = await self._oauth.initiate_authorization(endpoint, request)

        session.auth_request_id = response.auth_request_id
        if response.poll_interval:
            session.poll_interval = float(response.poll_interval)
        session.status = FlowState.PENDING
        logger.info(
            "Authorization requested for %s (email sent: %s)",
            domain,
            response.email_sent,
            extra={"domain": domain},
        )
        return session

    async def wait_for_code(self, session: AuthorizationFlowSession, timer: PollTimer) -> str:
        """Poll until the customer decides, the budget runs out, or the timer is cancelled."""
        max_attempts = self._settings.max_poll_attempts
        try:
            while session.attempts < max_attempts:
                timer.raise_if_cancelled()
                poll = await self._oauth.poll_authorization(
                    session.endpoint, session.auth_request_id or ""
                )
                session.attempts += 1

                if poll.status == "authorized" and poll.code:
                    session.status = FlowState.AUTHORIZED
                    return poll.code
                if poll.status == "denied":
                    session.status = FlowState.DENIED
                    raise AuthorizationDeniedError(poll.reason)
                if poll.status == "expired":
                    session.status = FlowState.EXPIRED
                    raise AuthorizationExpiredError()

                if session.attempts < max_attempts:
                    await timer.wait(session.poll_interval)
        except AuthorizationCancelledError:
            session.status = FlowState.CANCELLED
            logger.info("Authorization cancelled for %s", session.domain)
            raise

        session.status = FlowState.TIMEOUT
        raise AuthorizationTimeoutError(session.attempts)

    async def exchange(self, session: AuthorizationFlowSession, code: str) -> TokenResponse:
        try:
            tokens = await self._oauth.exchange_authorization_code(
                session.endpoint, code, session.code_verifier
            )
        except OAuthTokenEndpointError as exc:
            raise TokenExchangeFailedError(str(exc)) from exc

        if not tokens.customer_id or not tokens.email:
            raise TokenExchangeFailedError(
                "Token exchange response is missing the customer identity."
            )
        session.status = FlowState.EXCHANGED
        return tokens

    async def refresh(self, endpoint: str, refresh_token: str, *, domain: str) -> TokenResponse:
        """Use the refresh grant once; failures are fatal to the caller."""
        try:
            return await self._oauth.refresh_token(endpoint, refresh_token)
        except OAuthTokenEndpointError as exc:
            raise TokenRefreshFailedError(domain, str(exc)) from exc

    async def revoke(self, endpoint: str, token: str, *, domain: str) -> bool:
        """Best-effort remote revocation; returns whether the merchant accepted it."""
        try:
            await self._oauth.revoke_token(endpoint, token)
        except OAuthTokenEndpointError as exc:
            logger.warning(
                "Remote revocation failed for %s: %s", domain, exc, extra={"domain": domain}
            )
            return False
        return True


__all__ = [
    "AuthorizationFlowEngine",
    "AuthorizationFlowSession",
    "FlowState",
    "PollTimer",
]
