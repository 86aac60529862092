"""Shared test fixtures for the contract e-signature gateway test suite.

Provides:
    - A temporary SQLite database (aiosqlite) with all tables created
    - A session factory, lock registry and reconciler bound to it
    - Factory helpers for contracts and signed webhook bodies
    - A controllable clock
    - An httpx client bound to the app with its dependencies overridden
"""

from __future__ import annotations

import json
import uuid
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine

from contract_esign.config import Settings
from contract_esign.domain.enums import ContractStatus
from contract_esign.esign.callback_auth import CallbackAuthenticator, compute_signature
from contract_esign.esign.signer import RequestSigner
from contract_esign.infrastructure.database.engine import make_session_factory
from contract_esign.infrastructure.database.orm_models import (
    AuditLog,
    Base,
    Contract,
    ContractStatusLog,
)
from contract_esign.infrastructure.database.repositories import (
    AuditRepository,
    ContractRepository,
    StatusLogRepository,
)
from contract_esign.infrastructure.locks import ContractLockRegistry
from contract_esign.services.reconciler import StatusReconciler

TEST_SECRET_ID = "AKIDz8krbsJ5yKBZQpn74WFkmLPx3EXAMPLE"
TEST_SECRET_KEY = "Gu5t9xGARNpq86cd98joQYCN3EXAMPLE"
CALLBACK_SECRET = "callback-test-secret"
NOW = 1_700_000_000


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = NOW) -> None:
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def locks() -> ContractLockRegistry:
    return ContractLockRegistry()


@pytest.fixture
def reconciler(session_factory, locks) -> StatusReconciler:
    return StatusReconciler(session_factory, locks)


@pytest.fixture
def make_contract(session_factory):
    """Insert a contract directly, bypassing the lifecycle services."""

    async def _make(
        status: ContractStatus = ContractStatus.PENDING_PARTY_B,
        flow_id: str | None = None,
        **overrides: Any,
    ) -> Contract:
        fields = {
            "contract_no": f"HT-{uuid.uuid4().hex[:10]}",
            "party_b_name": "Li Wei",
            "party_b_phone": "13800000000",
            "party_b_type": "PERSONAL",
            "template_id": "yDwFmUUckpstqfvzUE1h3jo",
            "form_data": {"amount": "1000"},
        }
        fields.update(overrides)
        contract = Contract(status=status.value, flow_id=flow_id, **fields)
        async with session_factory() as session, session.begin():
            session.add(contract)
        return contract

    return _make


# ---------------------------------------------------------------------------
# Provider Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def signer() -> RequestSigner:
    return RequestSigner(secret_id=TEST_SECRET_ID, secret_key=TEST_SECRET_KEY)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def signed_callback(payload: dict, timestamp: int = NOW, secret: str = CALLBACK_SECRET) -> tuple[bytes, dict]:
    """Serialize a webhook body and return it with its signature headers."""
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "X-Esign-Signature": compute_signature(secret, timestamp, body),
        "X-Esign-Timestamp": str(timestamp),
        "Content-Type": "application/json",
    }
    return body, headers


@pytest.fixture
def sign_callback():
    return signed_callback


# ---------------------------------------------------------------------------
# Read-back helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def fetch_contract(session_factory):
    async def _fetch(contract_id: uuid.UUID) -> Contract | None:
        async with session_factory() as session:
            return await ContractRepository(session).get_by_id(contract_id)

    return _fetch


@pytest.fixture
def fetch_logs(session_factory):
    async def _fetch(contract_id: uuid.UUID) -> list[ContractStatusLog]:
        async with session_factory() as session:
            return await StatusLogRepository(session).get_by_contract(contract_id)

    return _fetch


@pytest.fixture
def fetch_audits(session_factory):
    async def _fetch(contract_id: uuid.UUID | None = None) -> list[AuditLog]:
        async with session_factory() as session:
            if contract_id is not None:
                return await AuditRepository(session).get_by_contract(contract_id)
            result = await session.execute(select(AuditLog).order_by(AuditLog.created_at.asc()))
            return list(result.scalars().all())

    return _fetch


# ---------------------------------------------------------------------------
# API Fixtures
# ---------------------------------------------------------------------------

CRON_SECRET = "cron-test-secret"


@pytest.fixture
def api_settings() -> Settings:
    return Settings(
        _env_file=None,
        app_env="development",
        tencent_secret_id=TEST_SECRET_ID,
        tencent_secret_key=TEST_SECRET_KEY,
        esign_callback_secret=CALLBACK_SECRET,
        cron_secret=CRON_SECRET,
        party_a_signer_mobile="13900000000",
    )


@pytest.fixture
def api_provider() -> MagicMock:
    """Stand-in for ProviderClient; tests set return values per action."""
    provider = MagicMock()
    provider.describe_flow_info = AsyncMock()
    provider.describe_file_urls = AsyncMock()
    provider.create_flow = AsyncMock()
    provider.create_document = AsyncMock()
    provider.start_flow = AsyncMock()
    provider.create_flow_sign_url = AsyncMock()
    return provider


@pytest_asyncio.fixture
async def api_client(session_factory, api_settings, api_provider, clock):
    """httpx client bound to the app with database and provider overridden."""
    from contract_esign.api import deps
    from contract_esign.main import create_app

    async def _session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[deps.get_db_session] = _session
    app.dependency_overrides[deps.get_db_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_app_settings] = lambda: api_settings
    app.dependency_overrides[deps.get_provider] = lambda: api_provider
    app.dependency_overrides[deps.get_authenticator] = lambda: CallbackAuthenticator(
        secret=CALLBACK_SECRET, clock=clock
    )

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
