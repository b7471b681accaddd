"""JSON-RPC client for SCP data calls made with a valid access token."""

from __future__ import annotations

import itertools
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from scp_local.core.config import TimeoutSettings
from scp_local.utils.http import build_client, describe_transport_error


class RPCErrorKind(Enum):
    UNAUTHORIZED = -32000
    FORBIDDEN = -32001
    NOT_FOUND = -32002
    RATE_LIMITED = -32003
    CUSTOMER_NOT_FOUND = -32004
    UNKNOWN = None

    @classmethod
    def from_code(cls, code: Optional[int]) -> "RPCErrorKind":
        for kind in cls:
            if kind.value is not None and kind.value == code:
                return kind
        return cls.UNKNOWN


class SCPRPCError(Exception):
    """Error object returned by a merchant, tagged with its kind."""

    def __init__(self, code: Optional[int], message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.kind = RPCErrorKind.from_code(code)
        self.data = data


class SCPTransportError(Exception):
    """The RPC call did not produce a JSON-RPC response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SCPRPCClient:
    """Post JSON-RPC 2.0 requests to ``<endpoint>/rpc``. Results are not stored."""

    def __init__(
        self,
        timeouts: TimeoutSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeouts = timeouts
        self._transport = transport
        self._ids = itertools.count(1)

    async def call(
        self,
        endpoint: str,
        access_token: str,
        method: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        request: Dict[str, Any] = {"jsonrpc": "2.0", "id": next(self._ids), "method": method}
        if params is not None:
            request["params"] = params

        try:
            async with build_client(timeout=self._timeouts.rpc, transport=self._transport) as client:
                response = await client.post(
                    f"{endpoint}/rpc",
                    json=request,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise SCPTransportError(describe_transport_error(exc)) from exc

        if response.status_code >= 400:
            raise SCPTransportError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise SCPTransportError("Invalid JSON-RPC response: not JSON") from exc

        error = payload.get("error") if isinstance(payload, dict) else None
        if error:
            raise SCPRPCError(error.get("code"), error.get("message", "RPC error"), error.get("data"))
        if not isinstance(payload, dict) or "result" not in payload:
            raise SCPTransportError("Invalid JSON-RPC response: missing result")
        return payload["result"]


__all__ = ["RPCErrorKind", "SCPRPCClient", "SCPRPCError", "SCPTransportError"]
