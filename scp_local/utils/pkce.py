"""PKCE (Proof Key for Code Exchange) utilities."""

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import NamedTuple

CODE_CHALLENGE_METHOD = "S256"


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


class PKCEPair(NamedTuple):
    code_verifier: str
    code_challenge: str
    code_challenge_method: str = CODE_CHALLENGE_METHOD


def generate_code_verifier() -> str:
    return _b64url(secrets.token_bytes(32))


def generate_code_challenge(verifier: str) -> str:
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_pkce() -> PKCEPair:
    verifier = generate_code_verifier()
    return PKCEPair(code_verifier=verifier, code_challenge=generate_code_challenge(verifier))


def generate_state() -> str:
    """Random anti-CSRF value sent with the initiation request."""
    return _b64url(secrets.token_bytes(32))


__all__ = [
    "CODE_CHALLENGE_METHOD",
    "PKCEPair",
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_pkce",
    "generate_state",
]
