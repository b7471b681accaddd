"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from scp_local.clients import CredentialStore, EndpointStore, SQLiteDatabase
from scp_local.services import TokenCipherService, unlock_master_key


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def database(tmp_path):
    db = SQLiteDatabase(str(tmp_path / "tokens.db"))
    yield db
    db.close()


@pytest.fixture
def endpoint_store(database) -> EndpointStore:
    return EndpointStore(database)


@pytest.fixture
def credential_store(database) -> CredentialStore:
    return CredentialStore(database)


@pytest.fixture
def cipher(endpoint_store) -> TokenCipherService:
    return TokenCipherService(unlock_master_key(endpoint_store))
