"""Authenticated encryption for tokens stored at rest."""

from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass, field

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from scp_local.clients.endpoint_store import EndpointStore
from scp_local.core.errors import CryptoIntegrityError, CryptoSelfTestError

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 16
SALT_LENGTH = 32
AUTH_TAG_LENGTH = 16


@dataclass(frozen=True)
class MasterKeyHandle:
    """An unlocked master key. Only :func:`unlock_master_key` should build one."""

    key: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if len(self.key) != KEY_LENGTH:
            raise ValueError(f"Master key must be {KEY_LENGTH} bytes.")


def unlock_master_key(store: EndpointStore) -> MasterKeyHandle:
    """Load the master key record, creating it on first use."""
    material = store.get_key_material()
    if material is None:
        candidate = json.dumps(
            {
                "salt": secrets.token_bytes(SALT_LENGTH).hex(),
                "key": secrets.token_bytes(KEY_LENGTH).hex(),
            }
        )
        if store.store_key_material(candidate):
            logger.info("Created new master encryption key")
        material = store.get_key_material()
        if material is None:
            raise CryptoSelfTestError("Master key record could not be persisted.")

    try:
        key = bytes.fromhex(json.loads(material)["key"])
    except (ValueError, KeyError, TypeError) as exc:
        raise CryptoSelfTestError("Master key record is unreadable.") from exc
    return MasterKeyHandle(key=key)


class TokenCipherService:
    """Encrypt and decrypt sensitive strings with AES-256-GCM.

    Envelopes are JSON objects holding the hex-encoded IV, ciphertext and
    authentication tag.
    """

    def __init__(self, key_handle: MasterKeyHandle) -> None:
        self._aead = AESGCM(key_handle.key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the envelope."""
        iv = secrets.token_bytes(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        data, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return json.dumps({"iv": iv.hex(), "data": data.hex(), "tag": tag.hex()})

    def decrypt(self, envelope: str) -> str:
        """Verify and decrypt an envelope; nothing is returned on failure."""
        try:
            parsed = json.loads(envelope)
            iv = bytes.fromhex(parsed["iv"])
            data = bytes.fromhex(parsed["data"])
            tag = bytes.fromhex(parsed["tag"])
        except (ValueError, KeyError, TypeError) as exc:
            raise CryptoIntegrityError("Encrypted token envelope is malformed.") from exc

        if len(tag) != AUTH_TAG_LENGTH or len(iv) != IV_LENGTH:
            raise CryptoIntegrityError("Encrypted token envelope is malformed.")

        try:
            plaintext = self._aead.decrypt(iv, data + tag, None)
        except InvalidTag as exc:
            raise CryptoIntegrityError(
                "Failed to decrypt token; authentication tag mismatch."
            ) from exc
        return plaintext.decode("utf-8")

    def run_self_test(self) -> None:
        """Round-trip a random sample; raise if the output does not match."""
        sample = "test-token-" + secrets.token_hex(16)
        try:
            restored = self.decrypt(self.encrypt(sample))
        except CryptoIntegrityError as exc:
            raise CryptoSelfTestError("Encryption self-test failed to decrypt.") from exc
        if restored != sample:
            raise CryptoSelfTestError("Encryption self-test returned different data.")
        logger.info("Encryption self-test passed")


__all__ = [
    "MasterKeyHandle",
    "TokenCipherService",
    "unlock_master_key",
]
