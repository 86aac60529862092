"""Health check endpoint.

Verifies connectivity to PostgreSQL and reports whether the provider
credentials and webhook secret are configured. Secret values are never
returned.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from contract_esign.api.deps import get_app_settings, get_db_session_factory
from contract_esign.config import Settings
from contract_esign.logging_config import get_logger
from contract_esign.schemas.contract import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
    settings: Settings = Depends(get_app_settings),
) -> HealthResponse:
    """Check database connectivity and credential configuration."""
    db_status = "unknown"
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    signing_configured = bool(settings.tencent_secret_id and settings.tencent_secret_key)

    return HealthResponse(
        status="ok" if db_status == "healthy" and signing_configured else "degraded",
        version="0.1.0",
        database=db_status,
        signing_configured=signing_configured,
        callback_secret_configured=bool(settings.callback_secret),
    )
