"""FastAPI application wiring for the user service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.handlers import register_exception_handlers
from .api.routes import router as auth_router
from .api.users import router as users_router
from .config import Settings, get_settings
from .domain.contracts import AccountStore, Mailer
from .domain.credentials import CredentialService
from .domain.service import AuthService
from .domain.verification import EmailVerificationService
from .mail import MailDispatcher, SmtpMailer
from .repository import AccountRepository
from .security.passwords import PasswordHasher
from .security.rate_limiter import FixedWindowRateLimiter
from .security.redis_rate_limiter import RedisFixedWindowRateLimiter
from .security.tokens import TokenService

logger = logging.getLogger(__name__)

settings = get_settings()


def build_auth_service(
    store: AccountStore,
    dispatcher: MailDispatcher,
    config: Settings,
) -> AuthService:
    """Compose the core services around one store, one mail dispatcher and one secret."""
    tokens = TokenService(
        config.jwt_secret,
        issuer=config.jwt_issuer,
        ttl_seconds=config.jwt_ttl_seconds,
    )
    verification = EmailVerificationService(
        store,
        dispatcher,
        frontend_url=config.frontend_url,
        ttl_seconds=config.verification_ttl_seconds,
    )
    credentials = CredentialService(
        store,
        PasswordHasher(rounds=config.password_hash_rounds),
        verification,
        dispatcher,
        tokens,
        check_password_first=config.login_check_password_first,
    )
    return AuthService(
        store,
        credentials,
        verification,
        tokens,
        expose_errors=config.is_development,
    )


def build_rate_limiter(config: Settings) -> FixedWindowRateLimiter | RedisFixedWindowRateLimiter:
    """Instantiate the configured rate limiter backend, preferring Redis when available."""
    if config.rate_limit_backend == "redis" and config.redis_url:
        try:
            import redis

            client = redis.from_url(config.redis_url)
            client.ping()
            logger.info("rate limiter configured for redis backend at %s", config.redis_url)
            return RedisFixedWindowRateLimiter(
                client,
                max_requests=config.rate_limit_requests,
                window_seconds=config.rate_limit_window_seconds,
            )
        except Exception as exc:  # pragma: no cover - depends on a live redis
            logger.warning("redis rate limiter unavailable, falling back to in-memory: %s", exc)

    logger.info("rate limiter using in-memory backend")
    return FixedWindowRateLimiter(
        max_requests=config.rate_limit_requests,
        window_seconds=config.rate_limit_window_seconds,
    )


def build_mail_dispatcher(config: Settings, mailer: Mailer | None = None) -> MailDispatcher:
    if mailer is None:
        mailer = SmtpMailer.from_settings(config)
        if not mailer.is_configured:
            logger.warning("SMTP_HOST is not set; verification emails cannot be delivered")
    return MailDispatcher(
        mailer,
        timeout_seconds=config.mail_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, mailer, services) for the app lifecycle."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    repository = AccountRepository(pool)
    repository.ensure_schema()
    dispatcher = build_mail_dispatcher(settings)
    app.state.pool = pool
    app.state.auth_service = build_auth_service(repository, dispatcher, settings)
    app.state.rate_limiter = build_rate_limiter(settings)
    logger.info("%s %s started (%s)", settings.app_name, settings.version, settings.environment)
    try:
        yield
    finally:
        dispatcher.shutdown()
        pool.close()
        pool.wait_close()


def create_app(config: Settings = settings, *, use_lifespan: bool = True) -> FastAPI:
    """Build the ASGI application; tests pass ``use_lifespan=False`` and wire state themselves."""
    application = FastAPI(
        title=config.app_name,
        version=config.version,
        lifespan=lifespan if use_lifespan else None,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )
    register_exception_handlers(application)

    @application.get("/health", tags=["health"])
    def health() -> dict[str, object]:
        """Return a minimal readiness indicator used by orchestration systems."""
        return {
            "success": True,
            "service": config.app_name,
            "status": "running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @application.get("/metrics", tags=["health"])
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    application.include_router(auth_router)
    application.include_router(users_router)
    return application


app = create_app()
