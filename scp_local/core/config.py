"""
Application configuration models and helpers.

Centralizes settings management so the HTTP surface, the setup check script
and tests share a consistent configuration surface.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DEMO_ENDPOINT = "https://demo.shoppercontextprotocol.io/v1"


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs so nested settings see a custom env file."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        os.environ[key] = value.strip().strip('"').strip("'")


def _default_db_path() -> str:
    return str(Path.home() / ".scp" / "tokens.db")


class StorageSettings(BaseSettings):
    """Location of the local credential database."""

    model_config = SettingsConfigDict(env_prefix="SCP_", env_file=".env", extra="ignore")

    db_path: str = Field(
        default_factory=_default_db_path,
        description="SQLite file holding authorizations, endpoint cache and the master key.",
    )


class DiscoverySettings(BaseSettings):
    """Endpoint discovery behaviour."""

    model_config = SettingsConfigDict(env_prefix="SCP_", env_file=".env", extra="ignore")

    test_endpoint: Optional[str] = Field(
        None,
        description="Forces this endpoint for every domain, bypassing discovery and caching.",
    )
    demo_mode: bool = False
    demo_endpoint: str = DEFAULT_DEMO_ENDPOINT
    dns_cache_ttl: int = Field(86400, description="Seconds a discovered endpoint stays cached.")
    dns_resolver: Optional[str] = Field(
        None,
        description="Optional nameserver address; the system resolver is used when omitted.",
    )


class FlowSettings(BaseSettings):
    """OAuth client identity and polling budget."""

    model_config = SettingsConfigDict(env_prefix="SCP_", env_file=".env", extra="ignore")

    client_id: str = "scp-mcp-server"
    client_name: str = "SCP MCP Server"
    poll_interval: float = Field(2.0, description="Default seconds between poll checks.")
    max_poll_attempts: int = Field(150, description="Poll checks before giving up.")


class TokenSettings(BaseSettings):
    """Token lifecycle configuration."""

    model_config = SettingsConfigDict(env_prefix="SCP_", env_file=".env", extra="ignore")

    token_refresh_threshold: int = Field(
        300,
        description="Refresh access tokens expiring within this many seconds.",
    )


class TimeoutSettings(BaseSettings):
    """Per-step network timeouts, in seconds."""

    model_config = SettingsConfigDict(env_prefix="SCP_TIMEOUT_", env_file=".env", extra="ignore")

    discovery: float = 5.0
    capabilities: float = 10.0
    poll: float = 10.0
    initiate: float = 30.0
    token: float = 30.0
    revoke: float = 30.0
    rpc: float = 30.0


class AppSettings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    storage: StorageSettings = Field(default_factory=StorageSettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    flow: FlowSettings = Field(default_factory=FlowSettings)
    tokens: TokenSettings = Field(default_factory=TokenSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_DEMO_ENDPOINT",
    "DiscoverySettings",
    "FlowSettings",
    "StorageSettings",
    "TimeoutSettings",
    "TokenSettings",
    "get_settings",
]
