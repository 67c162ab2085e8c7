"""
FastAPI application factory.
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
from infrastructure.cache.otp_throttle import OtpThrottle
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.email.factory import build_email_provider
from infrastructure.email.renderer import OtpEmailRenderer
from infrastructure.http_client import HttpClient
from repositories.account_repository import AccountRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.auth_service import AuthService
from services.otp_engine import OtpEngine
from services.token_issuer import TokenIssuer
from shared.crypto import SecretHasher
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def build_auth_service(
    settings: AppSettings,
    store,
    email_provider,
    throttle: Optional[OtpThrottle] = None,
) -> tuple[AuthService, TokenIssuer]:
    """Wire the lifecycle service and its collaborators around *store*."""
    hasher = SecretHasher(
        time_cost=settings.password_hash.argon2_time_cost,
        memory_cost=settings.password_hash.argon2_memory_cost,
        parallelism=settings.password_hash.argon2_parallelism,
    )
    otp_engine = OtpEngine(
        store,
        length=settings.otp.otp_length,
        ttl_seconds=settings.otp.otp_ttl_seconds,
        max_attempts=settings.otp.otp_max_attempts,
    )
    token_issuer = TokenIssuer(settings.jwt, store)
    service = AuthService(
        store=store,
        hasher=hasher,
        otp_engine=otp_engine,
        token_issuer=token_issuer,
        email_provider=email_provider,
        throttle=throttle,
    )
    return service, token_issuer


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(
        log_level=settings.logging.log_level,
        log_format=settings.logging.log_format,
        env=settings.env,
    )

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            environment=settings.env,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri,
            tz_aware=True,
            timeoutMS=settings.db.mongodb_timeout_ms,
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]
        app.state.settings = settings

        # Redis is optional; without it the resend cooldown is off
        redis_client = await create_redis_client(settings.redis.redis_uri)
        app.state.redis = redis_client

        repository = AccountRepository(app.state.db)
        await repository.ensure_indexes()

        http_client = HttpClient(timeout=settings.email.smtp_timeout_seconds)
        renderer = OtpEmailRenderer(
            app_name=settings.app_name,
            valid_minutes=max(1, settings.otp.otp_ttl_seconds // 60),
        )
        email_provider = build_email_provider(
            settings.email,
            renderer,
            http_client=http_client,
            is_production=settings.is_production,
        )
        throttle = OtpThrottle(
            redis_client, settings.otp.otp_resend_cooldown_seconds
        )
        app.state.auth_service, app.state.token_issuer = build_auth_service(
            settings, repository, email_provider, throttle
        )
        log.info(
            "app_started",
            env=settings.env,
            email_transport=type(email_provider).__name__,
            redis=redis_client is not None,
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)

    return app
