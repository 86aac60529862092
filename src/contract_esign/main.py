"""FastAPI application entry point for the contract e-signature gateway.

Lifecycle:
    1. Startup: Initialize logging, check provider credentials, initialize
       the database (create tables in dev mode).
    2. Running: Serve the webhook, contract, and cron routes.
    3. Shutdown: Close the provider HTTP client and the database engine.

Run with:
    uvicorn contract_esign.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from contract_esign.config import get_settings
from contract_esign.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
    )

    # 2. Provider credentials: fatal in production, loud everywhere else
    from contract_esign.domain.exceptions import ConfigurationError
    from contract_esign.esign.factory import close_provider_client, get_request_signer

    signer = get_request_signer()
    if not signer.is_configured:
        if settings.is_production:
            raise ConfigurationError(
                "TENCENT_SECRET_ID and TENCENT_SECRET_KEY must be set in production"
            )
        logger.warning("app.signing_not_configured", env=settings.app_env)
    if not settings.callback_secret:
        logger.warning("app.callback_secret_not_configured", env=settings.app_env)

    # 3. Initialize database
    from contract_esign.infrastructure.database.engine import close_db, init_db

    await init_db()

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await close_provider_client()
    await close_db()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory - creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Contract E-Sign Gateway",
        description=(
            "Signed-request and status-synchronization gateway between "
            "contract records and an e-signature provider."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from contract_esign.api.middleware import setup_middleware

    setup_middleware(app)

    # --- Routes ---
    from contract_esign.api.routes.callback import router as callback_router
    from contract_esign.api.routes.contracts import router as contracts_router
    from contract_esign.api.routes.cron import router as cron_router
    from contract_esign.api.routes.health import router as health_router

    app.include_router(health_router)
    app.include_router(callback_router)
    app.include_router(contracts_router)
    app.include_router(cron_router)

    return app


# The app instance used by Uvicorn
app = create_app()
