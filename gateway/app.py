"""
FastAPI application factory for the API gateway.

The gateway owns CORS, request logging and the global rate ceiling, then
hands every other request to the auth service through the proxy router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import GatewaySettings, LoggingSettings
from errors import register_error_handlers
from gateway.limiter import RateLimitMiddleware, create_storage
from gateway.proxy import router as proxy_router
from infrastructure.http_client import HttpClient
from shared.log_context import setup_logging_middleware
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)

HEALTH_PATH = "/gateway-health"


def create_gateway_app(
    settings: Optional[GatewaySettings] = None,
    *,
    logging_settings: Optional[LoggingSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create the gateway app.

    ``transport`` replaces the network transport of the upstream client;
    tests pass an ``httpx.MockTransport``.
    """
    if settings is None:
        settings = GatewaySettings()
    if logging_settings is None:
        logging_settings = LoggingSettings()

    setup_logging(logging_settings.log_level, logging_settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.upstream = HttpClient(
            timeout=settings.proxy_timeout_seconds,
            base_url=settings.auth_service_url,
            transport=transport,
        )
        log.info("gateway_started", upstream=settings.auth_service_url)
        yield
        await app.state.upstream.aclose()

    app = FastAPI(title="api-gateway", docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.trusted_proxies = frozenset(settings.trusted_proxies)

    @app.get(HEALTH_PATH)
    async def gateway_health() -> dict:
        return {"message": "Welcome to api-gateway!"}

    # Starlette runs the last-added middleware first: CORS → logging → limiter
    app.add_middleware(
        RateLimitMiddleware,
        anonymous=settings.rate_limit_anonymous,
        authenticated=settings.rate_limit_authenticated,
        storage=create_storage(settings.rate_limit_storage_uri),
        exempt_paths=(HEALTH_PATH,),
        trusted_proxies=settings.trusted_proxies,
    )
    setup_logging_middleware(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.gateway_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type"],
    )

    register_error_handlers(app)
    app.include_router(proxy_router)

    return app
