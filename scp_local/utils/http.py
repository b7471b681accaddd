"""HTTP helpers shared by the merchant-facing clients."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx


def build_client(
    *, timeout: float, transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """Create a short-lived client bound to one step's timeout."""
    return httpx.AsyncClient(timeout=timeout, transport=transport)


def error_description(response: httpx.Response, fallback: str) -> str:
    """Prefer the OAuth ``error_description`` over a bare status line."""
    try:
        payload: Dict[str, Any] = response.json()
    except ValueError:
        payload = {}
    if isinstance(payload, dict):
        description = payload.get("error_description") or payload.get("error")
        if isinstance(description, str) and description:
            return description
    return f"{fallback}: {response.status_code} {response.reason_phrase}"


def describe_transport_error(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return f"request timed out ({exc.__class__.__name__})"
    return f"{exc.__class__.__name__}: {exc}"


__all__ = ["build_client", "describe_transport_error", "error_description"]
