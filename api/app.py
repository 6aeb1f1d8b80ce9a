"""Application assembly.

create_app wires already-built services into a FastAPI app.
create_app_from_vault builds those services from Vault secrets and the
environment and is the ASGI entry point:

    uvicorn api.app:create_app_from_vault --factory
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router, create_test_router
from auth.config import AuthConfig, load_auth_config
from auth.database import AuthDatabase
from auth.magic_links import MagicLinkCodec, MagicLinkIssuer, MagicLinkValidator
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    get_auth_secrets,
    get_database_url,
    get_email_config,
    get_valkey_url,
)

logger = logging.getLogger(__name__)


def create_app(
    config: AuthConfig,
    auth_service: AuthService,
    session_manager: SessionManager,
    lifespan=None,
) -> FastAPI:
    """Create the FastAPI app with auth routes, guards and error handlers."""
    app = FastAPI(title=config.app_name, lifespan=lifespan)

    # Added last = outermost
    app.add_middleware(AuthMiddleware, session_manager=session_manager, auth_service=auth_service)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_auth_router(auth_service, session_manager))
    if config.enable_test_routes:
        logger.warning("Test routes enabled under /__tests")
        app.include_router(create_test_router(auth_service, session_manager), prefix="/__tests")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def closing_lifespan(postgres: PostgresClient, valkey: ValkeyClient):
    """Lifespan that releases the connection pool and Valkey client on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Shutting down, closing connections")
        try:
            valkey.close()
        finally:
            postgres.close()

    return lifespan


def build_auth_service(
    config: AuthConfig,
    postgres: PostgresClient,
    valkey: ValkeyClient,
    email_client: EmailGatewayClient,
) -> tuple[AuthService, SessionManager]:
    """Construct the auth components.

    Raises:
        ConfigError: If a secret or the public origin is missing.
    """
    codec = MagicLinkCodec(config.magic_link_secret)
    session_manager = SessionManager(config)

    auth_service = AuthService(
        config=config,
        auth_db=AuthDatabase(postgres),
        session_manager=session_manager,
        issuer=MagicLinkIssuer(codec, config.origin),
        validator=MagicLinkValidator(codec),
        rate_limiter=RateLimiter(valkey, config),
        email_client=email_client,
        security_logger=SecurityLogger(postgres),
    )
    return auth_service, session_manager


def create_app_from_vault() -> FastAPI:
    """Production entry point. Fails fast if any configuration is missing."""
    config = load_auth_config(get_auth_secrets())

    postgres = PostgresClient(get_database_url())
    valkey = ValkeyClient(get_valkey_url())
    auth_service, session_manager = build_auth_service(
        config,
        postgres=postgres,
        valkey=valkey,
        email_client=EmailGatewayClient(**get_email_config()),
    )

    logger.info(f"{config.app_name} auth service ready at {config.origin}")
    return create_app(
        config,
        auth_service,
        session_manager,
        lifespan=closing_lifespan(postgres, valkey),
    )
