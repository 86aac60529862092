"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
the provider client, services, and configuration. Tests replace them through
app.dependency_overrides.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from contract_esign.config import Settings, get_settings
from contract_esign.esign.callback_auth import CallbackAuthenticator
from contract_esign.esign.client import ProviderClient
from contract_esign.esign.factory import get_callback_authenticator, get_provider_client
from contract_esign.infrastructure.database.engine import get_async_session, get_session_factory
from contract_esign.infrastructure.locks import get_lock_registry
from contract_esign.services.callback_service import CallbackService
from contract_esign.services.contract_service import ContractService
from contract_esign.services.reconciler import StatusReconciler
from contract_esign.services.sync_service import SyncService

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


def get_db_session_factory() -> async_sessionmaker[AsyncSession]:
    """Provide the session factory for services that own their transactions."""
    return get_session_factory()


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()


def get_provider() -> ProviderClient:
    """Provide the shared provider client."""
    return get_provider_client()


def get_authenticator() -> CallbackAuthenticator:
    return get_callback_authenticator()


def get_reconciler(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
) -> StatusReconciler:
    return StatusReconciler(session_factory, get_lock_registry())


def get_sync_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
    provider: ProviderClient = Depends(get_provider),
    reconciler: StatusReconciler = Depends(get_reconciler),
    settings: Settings = Depends(get_app_settings),
) -> SyncService:
    return SyncService(
        session_factory,
        provider,
        reconciler,
        concurrency=settings.sync_concurrency,
    )


def get_callback_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
    authenticator: CallbackAuthenticator = Depends(get_authenticator),
    reconciler: StatusReconciler = Depends(get_reconciler),
) -> CallbackService:
    return CallbackService(session_factory, authenticator, reconciler)


async def get_contract_service(
    session: AsyncSession = Depends(get_db_session),
    provider: ProviderClient = Depends(get_provider),
    settings: Settings = Depends(get_app_settings),
) -> ContractService:
    return ContractService(session, provider, settings)
