"""
SCP endpoint discovery.

Resolution order: test override, demo endpoint, local cache, DNS TXT record,
``.well-known`` document, then the ``SCP-Endpoint`` response header.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver
import httpx

from scp_local.clients.endpoint_store import EndpointStore
from scp_local.core.config import DiscoverySettings, TimeoutSettings
from scp_local.core.errors import DiscoveryNotFoundError, DiscoveryTransportError
from scp_local.models.records import (
    EndpointCacheEntry,
    SCPCapabilities,
    normalize_domain,
    utcnow,
)
from scp_local.utils.http import build_client

logger = logging.getLogger(__name__)

DNS_QUERY_PREFIX = "_scp._tcp."
TXT_VERSION_PREFIX = "v=scp1"
WELL_KNOWN_PATH = "/.well-known/customer-context-protocol"
ENDPOINT_HEADER = "SCP-Endpoint"

_ENDPOINT_PATTERN = re.compile(r"endpoint=(https://\S+)")

TxtLookup = Callable[[str], Awaitable[List[str]]]


class DiscoveryMethod:
    TEST_OVERRIDE = "test_override"
    DEMO = "demo"
    CACHE = "cache"
    DNS_TXT = "dns_txt"
    WELL_KNOWN = "well_known"
    HTTP_HEADER = "http_header"


@dataclass
class Resolution:
    endpoint: str
    method: str
    cache_entry: Optional[EndpointCacheEntry] = None


@dataclass
class DiscoveryResult:
    domain: str
    endpoint: str
    method: str
    capabilities: Optional[SCPCapabilities] = None


def parse_scp_txt_record(txt: str) -> Optional[str]:
    """Return the endpoint advertised by an SCP TXT value, if it is one."""
    if not txt.startswith(TXT_VERSION_PREFIX):
        return None
    match = _ENDPOINT_PATTERN.search(txt)
    if not match:
        return None
    return match.group(1)


def _build_dns_lookup(nameserver: Optional[str], timeout: float) -> TxtLookup:
    async def lookup(name: str) -> List[str]:
        resolver = dns.asyncresolver.Resolver()
        if nameserver:
            resolver.nameservers = [nameserver]
        answer = await resolver.resolve(name, "TXT", lifetime=timeout)
        return [
            b"".join(rdata.strings).decode("utf-8", errors="replace") for rdata in answer
        ]

    return lookup


class DiscoveryResolver:
    """Resolve merchant domains to SCP endpoints, caching what DNS/HTTP find."""

    def __init__(
        self,
        endpoint_store: EndpointStore,
        settings: DiscoverySettings,
        timeouts: TimeoutSettings,
        *,
        txt_lookup: Optional[TxtLookup] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = endpoint_store
        self._settings = settings
        self._timeouts = timeouts
        self._txt_lookup = txt_lookup or _build_dns_lookup(
            settings.dns_resolver, timeouts.discovery
        )
        self._transport = transport
        self._clock = clock

    async def resolve(self, domain: str) -> Optional[str]:
        """Return the SCP endpoint for ``domain`` or ``None`` when every step misses."""
        domain = normalize_domain(domain)
        resolution = await self._resolve(domain)
        return resolution.endpoint if resolution else None

    async def discover(self, domain: str) -> DiscoveryResult:
        """Resolve ``domain`` and attach its capability descriptor when available."""
        domain = normalize_domain(domain)
        resolution = await self._resolve(domain)
        if resolution is None:
            raise DiscoveryNotFoundError(domain)

        cached = resolution.cache_entry
        if cached is not None and cached.capabilities is not None:
            return DiscoveryResult(
                domain=domain,
                endpoint=resolution.endpoint,
                method=resolution.method,
                capabilities=cached.capabilities,
            )

        capabilities = await self.fetch_capabilities(resolution.endpoint)
        if capabilities is not None and cached is not None:
            self._store.cache_endpoint(cached.model_copy(update={"capabilities": capabilities}))

        return DiscoveryResult(
            domain=domain,
            endpoint=resolution.endpoint,
            method=resolution.method,
            capabilities=capabilities,
        )

    async def fetch_capabilities(self, endpoint: str) -> Optional[SCPCapabilities]:
        """Fetch ``<endpoint>/capabilities``; any failure yields ``None``."""
        try:
            async with build_client(
                timeout=self._timeouts.capabilities, transport=self._transport
            ) as client:
                response = await client.get(
                    f"{endpoint}/capabilities", headers={"Accept": "application/json"}
                )
            response.raise_for_status()
            return SCPCapabilities.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Capabilities unavailable for %s: %s", endpoint, exc,
                extra={"endpoint": endpoint},
            )
            return None

    async def _resolve(self, domain: str) -> Optional[Resolution]:
        if self._settings.test_endpoint:
            logger.info(
                "Using test endpoint override for %s: %s",
                domain,
                self._settings.test_endpoint,
            )
            return Resolution(self._settings.test_endpoint, DiscoveryMethod.TEST_OVERRIDE)

        if self._settings.demo_mode:
            logger.info(
                "Demo mode enabled - using %s for %s", self._settings.demo_endpoint, domain
            )
            return Resolution(self._settings.demo_endpoint, DiscoveryMethod.DEMO)

        cached = self._store.get_cached_endpoint(domain, now=self._clock())
        if cached is not None:
            return Resolution(cached.endpoint, DiscoveryMethod.CACHE, cached)

        probes = (
            (DiscoveryMethod.DNS_TXT, self._try_dns),
            (DiscoveryMethod.WELL_KNOWN, self._try_well_known),
            (DiscoveryMethod.HTTP_HEADER, self._try_header),
        )
        for method, probe in probes:
            endpoint = await probe(domain)
            if endpoint:
                logger.info(
                    "Discovered SCP endpoint for %s via %s", domain, method,
                    extra={"domain": domain},
                )
                entry = EndpointCacheEntry(
                    domain=domain,
                    endpoint=endpoint,
                    discovered_at=self._clock(),
                    ttl=self._settings.dns_cache_ttl,
                )
                self._store.cache_endpoint(entry)
                return Resolution(endpoint, method, entry)

        logger.info("No SCP endpoint found for %s", domain, extra={"domain": domain})
        return None

    async def _try_dns(self, domain: str) -> Optional[str]:
        name = f"{DNS_QUERY_PREFIX}{domain}"
        try:
            records = await self._txt_lookup(name)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return None
        except dns.exception.DNSException as exc:
            raise DiscoveryTransportError(
                f"DNS lookup for {name} failed: {exc.__class__.__name__}"
            ) from exc

        for txt in records:
            endpoint = parse_scp_txt_record(txt)
            if endpoint:
                return endpoint
        return None

    async def _try_well_known(self, domain: str) -> Optional[str]:
        try:
            async with build_client(
                timeout=self._timeouts.discovery, transport=self._transport
            ) as client:
                response = await client.get(
                    f"https://{domain}{WELL_KNOWN_PATH}",
                    headers={"Accept": "application/json"},
                )
            if response.status_code != httpx.codes.OK:
                return None
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Well-known lookup failed for %s: %s", domain, exc)
            return None

        endpoint = data.get("endpoint") if isinstance(data, dict) else None
        if isinstance(endpoint, str) and endpoint:
            return endpoint
        return None

    async def _try_header(self, domain: str) -> Optional[str]:
        try:
            async with build_client(
                timeout=self._timeouts.discovery, transport=self._transport
            ) as client:
                response = await client.head(f"https://{domain}/")
        except httpx.HTTPError as exc:
            logger.debug("Header lookup failed for %s: %s", domain, exc)
            return None
        return response.headers.get(ENDPOINT_HEADER) or None


__all__ = [
    "DiscoveryMethod",
    "DiscoveryResolver",
    "DiscoveryResult",
    "parse_scp_txt_record",
]
