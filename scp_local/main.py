"""
FastAPI application entrypoint for the SCP local credential broker.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from scp_local.api.routes import router as api_router
from scp_local.api.routes import scp_error_handler
from scp_local.core.config import AppSettings, get_settings
from scp_local.core.errors import SCPLocalError
from scp_local.core.logging import configure_logging
from scp_local.dependencies import Services, build_services


def create_app(
    settings: Optional[AppSettings] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """Factory for the FastAPI application.

    When ``services`` is omitted they are built during startup, which runs
    the encryption self-test and aborts startup if it fails.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = None
        if getattr(app.state, "services", None) is None:
            owned = app.state.services = build_services(settings)
        try:
            yield
        finally:
            if owned is not None:
                owned.close()
                app.state.services = None

    app = FastAPI(
        title="SCP Local Credential Broker",
        version="0.1.0",
        description="Discovers merchant SCP endpoints and manages encrypted customer authorizations.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services
    app.add_exception_handler(SCPLocalError, scp_error_handler)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
