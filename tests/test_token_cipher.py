try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

import pytest

from scp_local.clients import EndpointStore, SQLiteDatabase
from scp_local.core.errors import CryptoIntegrityError, CryptoSelfTestError
from scp_local.services.token_cipher import (
    AUTH_TAG_LENGTH,
    IV_LENGTH,
    MasterKeyHandle,
    TokenCipherService,
    unlock_master_key,
)


def test_token_cipher_roundtrip(cipher: TokenCipherService) -> None:
    plaintext = "sensitive-token"

    encrypted = cipher.encrypt(plaintext)
    assert plaintext not in encrypted

    envelope = json.loads(encrypted)
    assert set(envelope) == {"iv", "data", "tag"}
    assert len(bytes.fromhex(envelope["iv"])) == IV_LENGTH
    assert len(bytes.fromhex(envelope["tag"])) == AUTH_TAG_LENGTH

    assert cipher.decrypt(encrypted) == plaintext


def test_token_cipher_uses_fresh_iv(cipher: TokenCipherService) -> None:
    first = json.loads(cipher.encrypt("same-token"))
    second = json.loads(cipher.encrypt("same-token"))

    assert first["iv"] != second["iv"]
    assert first["data"] != second["data"]


def test_token_cipher_rejects_bad_ciphertext(cipher: TokenCipherService) -> None:
    with pytest.raises(CryptoIntegrityError):
        cipher.decrypt("not-valid")


@pytest.mark.parametrize("field", ["data", "tag"])
def test_token_cipher_detects_tampering(cipher: TokenCipherService, field: str) -> None:
    envelope = json.loads(cipher.encrypt("sensitive-token"))
    raw = bytearray(bytes.fromhex(envelope[field]))
    raw[0] ^= 0x01
    envelope[field] = raw.hex()

    with pytest.raises(CryptoIntegrityError):
        cipher.decrypt(json.dumps(envelope))


def test_token_cipher_rejects_other_key(cipher: TokenCipherService) -> None:
    encrypted = cipher.encrypt("sensitive-token")
    other = TokenCipherService(MasterKeyHandle(key=b"\x01" * 32))

    with pytest.raises(CryptoIntegrityError):
        other.decrypt(encrypted)


def test_master_key_survives_reopen(tmp_path) -> None:
    db_path = str(tmp_path / "tokens.db")

    first_db = SQLiteDatabase(db_path)
    encrypted = TokenCipherService(unlock_master_key(EndpointStore(first_db))).encrypt("token")
    first_db.close()

    second_db = SQLiteDatabase(db_path)
    try:
        reopened = TokenCipherService(unlock_master_key(EndpointStore(second_db)))
        assert reopened.decrypt(encrypted) == "token"
    finally:
        second_db.close()


def test_master_key_is_created_once(endpoint_store: EndpointStore) -> None:
    first = unlock_master_key(endpoint_store)
    second = unlock_master_key(endpoint_store)

    assert first.key == second.key
    assert endpoint_store.store_key_material("{}") is False


def test_master_key_handle_rejects_short_key() -> None:
    with pytest.raises(ValueError):
        MasterKeyHandle(key=b"short")


def test_unreadable_key_record_fails_self_test(endpoint_store: EndpointStore) -> None:
    endpoint_store.store_key_material("not-json")

    with pytest.raises(CryptoSelfTestError):
        unlock_master_key(endpoint_store)


def test_self_test_passes(cipher: TokenCipherService) -> None:
    cipher.run_self_test()


def test_self_test_reports_mismatch(
    cipher: TokenCipherService, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(cipher, "decrypt", lambda envelope: "something-else")

    with pytest.raises(CryptoSelfTestError):
        cipher.run_self_test()
