"""Tests for the merchant JSON-RPC client."""

from __future__ import annotations

import json

import httpx
import pytest

from scp_local.clients.scp_rpc import (
    RPCErrorKind,
    SCPRPCClient,
    SCPRPCError,
    SCPTransportError,
)
from scp_local.core.config import TimeoutSettings

ENDPOINT = "https://api.acme.example/v1"


def _client(handler) -> SCPRPCClient:
    return SCPRPCClient(TimeoutSettings(), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_call_posts_bearer_request_and_returns_result() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"orders": []}})

    client = _client(handler)
    result = await client.call(ENDPOINT, "access-1", "scp.get_orders", {"limit": 5})

    assert result == {"orders": []}
    request = seen[0]
    assert str(request.url) == f"{ENDPOINT}/rpc"
    assert request.headers["Authorization"] == "Bearer access-1"
    body = json.loads(request.content)
    assert body["jsonrpc"] == "2.0"
    assert body["method"] == "scp.get_orders"
    assert body["params"] == {"limit": 5}


@pytest.mark.asyncio
async def test_request_ids_increase() -> None:
    ids = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        ids.append(body["id"])
        assert "params" not in body
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": None})

    client = _client(handler)
    await client.call(ENDPOINT, "t", "scp.get_loyalty")
    await client.call(ENDPOINT, "t", "scp.get_loyalty")

    assert ids == [1, 2]


@pytest.mark.parametrize(
    ("code", "kind"),
    [
        (-32000, RPCErrorKind.UNAUTHORIZED),
        (-32001, RPCErrorKind.FORBIDDEN),
        (-32002, RPCErrorKind.NOT_FOUND),
        (-32003, RPCErrorKind.RATE_LIMITED),
        (-32004, RPCErrorKind.CUSTOMER_NOT_FOUND),
        (-32601, RPCErrorKind.UNKNOWN),
    ],
)
@pytest.mark.asyncio
async def test_error_objects_are_tagged(code: int, kind: RPCErrorKind) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": "nope"}},
        )

    with pytest.raises(SCPRPCError) as excinfo:
        await _client(handler).call(ENDPOINT, "t", "scp.get_orders")

    assert excinfo.value.kind is kind
    assert excinfo.value.code == code
    assert str(excinfo.value) == "nope"


@pytest.mark.asyncio
async def test_http_failure_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    with pytest.raises(SCPTransportError) as excinfo:
        await _client(handler).call(ENDPOINT, "t", "scp.get_orders")

    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_response_without_result_is_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1})

    with pytest.raises(SCPTransportError):
        await _client(handler).call(ENDPOINT, "t", "scp.get_orders")
