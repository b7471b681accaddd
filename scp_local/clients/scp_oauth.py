"""
SCP OAuth endpoints.

Thin HTTP wrapper around the magic-link authorization endpoints a merchant
exposes under its SCP endpoint: initiation, polling, token and revocation.
"""

from __future__ import annotations

from typing import Optional

import httpx

from scp_local.core.config import FlowSettings, TimeoutSettings
from scp_local.core.errors import AuthorizationRequestError
from scp_local.models.oauth import (
    AuthorizationInitRequest,
    AuthorizationInitResponse,
    PollResponse,
    TokenResponse,
)
from scp_local.utils.http import build_client, describe_transport_error, error_description

OOB_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"


class OAuthTokenEndpointError(Exception):
    """Raised when the token or revocation endpoint rejects a request."""


class SCPOAuthClient:
    """Call the SCP authorization endpoints with step-scoped timeouts."""

    def __init__(
        self,
        flow_settings: FlowSettings,
        timeouts: TimeoutSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._flow = flow_settings
        self._timeouts = timeouts
        self._transport = transport

    @property
    def client_id(self) -> str:
        return self._flow.client_id

    @property
    def client_name(self) -> str:
        return self._flow.client_name

    async def initiate_authorization(
        self, endpoint: str, request: AuthorizationInitRequest
    ) -> AuthorizationInitResponse:
        """Ask the merchant to email a magic link to the customer."""
        try:
            async with build_client(
                timeout=self._timeouts.initiate, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{endpoint}/authorize/init", json=request.model_dump()
                )
        except httpx.HTTPError as exc:
            raise AuthorizationRequestError(
                f"Authorization request failed: {describe_transport_error(exc)}"
            ) from exc

        if response.status_code >= 400:
            raise AuthorizationRequestError(
                error_description(response, "Authorization failed")
            )
        try:
            return AuthorizationInitResponse.model_validate(response.json())
        except ValueError as exc:
            raise AuthorizationRequestError(
                "Malformed authorization response from merchant."
            ) from exc

    async def poll_authorization(self, endpoint: str, auth_request_id: str) -> PollResponse:
        """Check whether the customer acted on the magic link."""
        params = {"auth_request_id": auth_request_id, "client_id": self.client_id}
        try:
            async with build_client(
                timeout=self._timeouts.poll, transport=self._transport
            ) as client:
                response = await client.get(
                    f"{endpoint}/authorize/poll",
                    params=params,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            raise AuthorizationRequestError(
                f"Poll failed: {describe_transport_error(exc)}"
            ) from exc

        if response.status_code >= 400:
            raise AuthorizationRequestError(error_description(response, "Poll failed"))
        try:
            return PollResponse.model_validate(response.json())
        except ValueError as exc:
            raise AuthorizationRequestError("Malformed poll response from merchant.") from exc

    async def exchange_authorization_code(
        self, endpoint: str, code: str, code_verifier: str
    ) -> TokenResponse:
        """Exchange an authorization code plus PKCE verifier for tokens."""
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": code_verifier,
            "client_id": self.client_id,
            "redirect_uri": OOB_REDIRECT_URI,
        }
        return await self._token_request(endpoint, payload, "Token exchange failed")

    async def refresh_token(self, endpoint: str, refresh_token: str) -> TokenResponse:
        """Request a new token set using a stored refresh token."""
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
        }
        return await self._token_request(endpoint, payload, "Token refresh failed")

    async def revoke_token(self, endpoint: str, token: str) -> None:
        payload = {"token": token, "client_id": self.client_id}
        try:
            async with build_client(
                timeout=self._timeouts.revoke, transport=self._transport
            ) as client:
                response = await client.post(f"{endpoint}/revoke", data=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenEndpointError(describe_transport_error(exc)) from exc

        if response.status_code >= 400:
            raise OAuthTokenEndpointError(
                f"Token revocation failed: {response.status_code} {response.reason_phrase}"
            )

    async def _token_request(
        self, endpoint: str, payload: dict, failure: str
    ) -> TokenResponse:
        try:
            async with build_client(
                timeout=self._timeouts.token, transport=self._transport
            ) as client:
                response = await client.post(f"{endpoint}/token", data=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenEndpointError(
                f"{failure}: {describe_transport_error(exc)}"
            ) from exc

        if response.status_code >= 400:
            raise OAuthTokenEndpointError(error_description(response, failure))

        try:
            return TokenResponse.model_validate(response.json())
        except ValueError as exc:
            raise OAuthTokenEndpointError(
                f"{failure}: incomplete token payload returned from merchant."
            ) from exc


__all__ = [
    "OAuthTokenEndpointError",
    "OOB_REDIRECT_URI",
    "SCPOAuthClient",
]
