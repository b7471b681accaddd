"""Persistence tests for authorization records and the endpoint cache."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from scp_local.clients import CredentialStore, EndpointStore
from scp_local.models.records import EndpointCacheEntry, MerchantAuthorization, SCPCapabilities

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _record(domain: str = "acme.example", **overrides) -> MerchantAuthorization:
    values = dict(
        merchant_domain=domain,
        scp_endpoint=f"https://{domain}/scp",
        customer_id="cust-1",
        customer_email="shopper@acme.example",
        access_token_encrypted="envelope-access",
        refresh_token_encrypted="envelope-refresh",
        expires_at=T0 + timedelta(hours=1),
        scopes=["orders:read"],
        created_at=T0,
        updated_at=T0,
    )
    values.update(overrides)
    return MerchantAuthorization(**values)


def test_store_and_get_authorization(credential_store: CredentialStore) -> None:
    credential_store.store_authorization(_record())

    stored = credential_store.get_authorization("acme.example")
    assert stored is not None
    assert stored.customer_email == "shopper@acme.example"
    assert stored.scopes == ["orders:read"]
    assert stored.expires_at == T0 + timedelta(hours=1)
    assert credential_store.get_authorization("other.example") is None


def test_upsert_keeps_created_at(credential_store: CredentialStore) -> None:
    credential_store.store_authorization(_record())
    later = T0 + timedelta(days=1)
    credential_store.store_authorization(
        _record(
            scopes=["orders:read", "loyalty:read"],
            access_token_encrypted="envelope-new",
            created_at=later,
            updated_at=later,
        )
    )

    stored = credential_store.get_authorization("acme.example")
    assert stored.created_at == T0
    assert stored.updated_at == later
    assert stored.access_token_encrypted == "envelope-new"
    assert stored.scopes == ["orders:read", "loyalty:read"]
    assert len(credential_store.list_authorizations()) == 1


def test_list_orders_most_recent_first(credential_store: CredentialStore) -> None:
    credential_store.store_authorization(_record("old.example"))
    credential_store.store_authorization(
        _record("new.example", updated_at=T0 + timedelta(minutes=5))
    )

    domains = [record.merchant_domain for record in credential_store.list_authorizations()]
    assert domains == ["new.example", "old.example"]


def test_update_tokens_only_touches_token_columns(credential_store: CredentialStore) -> None:
    credential_store.store_authorization(_record())
    new_expiry = T0 + timedelta(hours=2)

    assert credential_store.update_tokens(
        "acme.example",
        access_token_encrypted="a2",
        refresh_token_encrypted="r2",
        expires_at=new_expiry,
        updated_at=T0 + timedelta(hours=1),
    )

    stored = credential_store.get_authorization("acme.example")
    assert stored.access_token_encrypted == "a2"
    assert stored.refresh_token_encrypted == "r2"
    assert stored.expires_at == new_expiry
    assert stored.created_at == T0
    assert stored.customer_id == "cust-1"
    assert not credential_store.update_tokens(
        "missing.example",
        access_token_encrypted="a",
        refresh_token_encrypted="r",
        expires_at=new_expiry,
    )


def test_delete_authorization(credential_store: CredentialStore) -> None:
    credential_store.store_authorization(_record())

    assert credential_store.delete_authorization("acme.example") is True
    assert credential_store.get_authorization("acme.example") is None
    assert credential_store.delete_authorization("acme.example") is False


def test_endpoint_cache_respects_ttl(endpoint_store: EndpointStore) -> None:
    endpoint_store.cache_endpoint(
        EndpointCacheEntry(
            domain="acme.example",
            endpoint="https://acme.example/scp",
            discovered_at=T0,
            ttl=60,
        )
    )

    fresh = endpoint_store.get_cached_endpoint("acme.example", now=T0 + timedelta(seconds=60))
    assert fresh is not None
    assert fresh.endpoint == "https://acme.example/scp"
    assert endpoint_store.get_cached_endpoint("acme.example", now=T0 + timedelta(seconds=61)) is None


def test_endpoint_cache_keeps_capabilities(endpoint_store: EndpointStore) -> None:
    capabilities = SCPCapabilities(version="1.0", scopes_supported=["orders:read"])
    endpoint_store.cache_endpoint(
        EndpointCacheEntry(
            domain="acme.example",
            endpoint="https://acme.example/scp",
            capabilities=capabilities,
            discovered_at=T0,
        )
    )

    cached = endpoint_store.get_cached_endpoint("acme.example", now=T0)
    assert cached.capabilities == capabilities


def test_purge_expired_removes_stale_entries(endpoint_store: EndpointStore) -> None:
    endpoint_store.cache_endpoint(
        EndpointCacheEntry(domain="stale.example", endpoint="https://s", discovered_at=T0, ttl=10)
    )
    endpoint_store.cache_endpoint(
        EndpointCacheEntry(domain="fresh.example", endpoint="https://f", discovered_at=T0, ttl=3600)
    )

    removed = endpoint_store.purge_expired(now=T0 + timedelta(minutes=5))

    assert removed == 1
    assert [entry.domain for entry in endpoint_store.list_cached_endpoints()] == ["fresh.example"]
