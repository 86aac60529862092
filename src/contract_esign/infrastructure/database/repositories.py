"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from contract_esign.domain.enums import ContractStatus
from contract_esign.infrastructure.database.orm_models import (
    AuditLog,
    Contract,
    ContractStatusLog,
)

if TYPE_CHECKING:
    import uuid
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from contract_esign.domain.enums import AuditAction, SyncSource


class ContractRepository:
    """Data access for contracts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, contract: Contract) -> Contract:
        """Insert a new contract."""
        self._session.add(contract)
        await self._session.flush()
        return contract

    async def get_by_id(self, contract_id: uuid.UUID) -> Contract | None:
        result = await self._session.execute(select(Contract).where(Contract.id == contract_id))
        return result.scalar_one_or_none()

    async def get_for_update(self, contract_id: uuid.UUID) -> Contract | None:
        """Fetch a contract with a row lock (SELECT ... FOR UPDATE).

        populate_existing refreshes an instance already in the identity map
        so the status read is the locked, committed one.
        """
        result = await self._session.execute(
            select(Contract)
            .where(Contract.id == contract_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_flow_id(self, flow_id: str) -> Contract | None:
        result = await self._session.execute(select(Contract).where(Contract.flow_id == flow_id))
        return result.scalar_one_or_none()

    async def list_pending(
        self,
        contract_ids: Sequence[uuid.UUID] | None = None,
        limit: int | None = None,
    ) -> list[Contract]:
        """Contracts awaiting a signature that have a remote flow, oldest first."""
        stmt = (
            select(Contract)
            .where(
                Contract.status.in_(
                    [ContractStatus.PENDING_PARTY_B.value, ContractStatus.PENDING_PARTY_A.value]
                ),
                Contract.flow_id.is_not(None),
            )
            .order_by(Contract.created_at.asc())
        )
        if contract_ids is not None:
            stmt = stmt.where(Contract.id.in_(list(contract_ids)))
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_status(self, contract: Contract, new_status: ContractStatus) -> Contract:
        """Update the status of a contract (call AFTER state machine validation)."""
        now = datetime.now(UTC)
        contract.status = new_status.value
        contract.updated_at = now
        if new_status is ContractStatus.COMPLETED and contract.completed_at is None:
            contract.completed_at = now
        await self._session.flush()
        return contract

    async def assign_flow(self, contract: Contract, flow_id: str) -> Contract:
        """Attach the remote flow id. A different existing id is never overwritten."""
        if contract.flow_id and contract.flow_id != flow_id:
            raise ValueError(
                f"Contract {contract.id} already bound to flow {contract.flow_id}"
            )
        contract.flow_id = flow_id
        await self._session.flush()
        return contract

    async def update_sign_url(
        self, contract: Contract, sign_url: str, expire_at: datetime
    ) -> Contract:
        contract.sign_url = sign_url
        contract.sign_url_expire_at = expire_at
        contract.updated_at = datetime.now(UTC)
        await self._session.flush()
        return contract


class StatusLogRepository:
    """Data access for the append-only transition log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(
        self,
        contract_id: uuid.UUID,
        from_status: ContractStatus | None,
        to_status: ContractStatus,
        source: SyncSource,
        remark: str,
    ) -> ContractStatusLog:
        entry = ContractStatusLog(
            contract_id=contract_id,
            from_status=from_status.value if from_status else None,
            to_status=to_status.value,
            source=source.value,
            remark=remark,
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def get_by_contract(self, contract_id: uuid.UUID) -> list[ContractStatusLog]:
        """All transitions for a contract, oldest first."""
        result = await self._session.execute(
            select(ContractStatusLog)
            .where(ContractStatusLog.contract_id == contract_id)
            .order_by(ContractStatusLog.created_at.asc())
        )
        return list(result.scalars().all())

    async def count_for_contract(self, contract_id: uuid.UUID) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(ContractStatusLog)
            .where(ContractStatusLog.contract_id == contract_id)
        )
        return int(result.scalar_one())


class AuditRepository:
    """Data access for the append-only audit log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        action: AuditAction,
        source: SyncSource,
        success: bool,
        outcome: str,
        flow_id: str | None = None,
        contract_id: uuid.UUID | None = None,
        error: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            action=action.value,
            source=source.value,
            flow_id=flow_id or None,
            contract_id=contract_id,
            success=success,
            outcome=outcome,
            error=error,
            details=details or {},
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def get_by_flow_id(self, flow_id: str) -> list[AuditLog]:
        result = await self._session.execute(
            select(AuditLog).where(AuditLog.flow_id == flow_id).order_by(AuditLog.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_by_contract(self, contract_id: uuid.UUID) -> list[AuditLog]:
        result = await self._session.execute(
            select(AuditLog)
            .where(AuditLog.contract_id == contract_id)
            .order_by(AuditLog.created_at.asc())
        )
        return list(result.scalars().all())
