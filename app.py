"""
FastAPI application factory for the auth service.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.otp_store import RedisExpiringStore
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from repositories.account_repository import (
    SELLERS_COLLECTION,
    USERS_COLLECTION,
    SellerRepository,
    UserRepository,
)
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.auth_service import AuthService
from services.otp_service import OtpService
from services.token_service import TokenService
from shared.log_context import setup_logging_middleware
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(
        settings.logging.log_level,
        settings.logging.log_format,
        is_production=settings.is_production,
    )

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri)
        db = mongo_client[settings.db.db_name]
        redis_client = await create_redis_client(settings.redis.redis_uri)
        http_client = HttpClient(timeout=10.0)

        users = UserRepository(db[USERS_COLLECTION])
        sellers = SellerRepository(db[SELLERS_COLLECTION])
        await users.ensure_indexes()
        await sellers.ensure_indexes()

        email_provider = ZeptoMailProvider(
            settings.email, http_client, app_url=settings.frontend_url
        )
        otp_service = OtpService(
            RedisExpiringStore(redis_client), email_provider, settings.otp
        )
        token_service = TokenService(settings.jwt)

        app.state.settings = settings
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.redis = redis_client
        app.state.http_client = http_client
        app.state.otp_service = otp_service
        app.state.token_service = token_service
        app.state.auth_service = AuthService(users, sellers, otp_service, token_service)

        log.info("auth_service_started", env=settings.env)
        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        await redis_client.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Cookies are sent cross-origin by the frontends, so credentials are on
    # and origins must be listed explicitly.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type"],
    )
    setup_logging_middleware(app)

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)

    return app
