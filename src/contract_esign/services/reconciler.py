"""Status Reconciler - folds provider status signals into local contract status.

Both triggers (webhook push and flow query) end here. One reconcile is:

    1. map the signal to a candidate status (or None: still in progress)
    2. under the per-contract lock and a row lock, read the current status
    3. no-op if the candidate is None or equals the current status
    4. ask the state machine; an illegal move is a REJECTED_TRANSITION result
    5. otherwise write the new status and its log entry in one transaction
    6. in a separate transaction, write an audit record of the attempt

Step 6 runs for every outcome, including failures, which are then re-raised.
Provider calls never happen here; callers fetch before reconciling so the
lock is only held across local reads and writes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from contract_esign.domain.enums import AuditAction, ContractStatus, ReconcileOutcome
from contract_esign.domain.exceptions import ContractNotFoundError
from contract_esign.domain.signals import ReconcileResult
from contract_esign.domain.state_machine import is_valid_transition
from contract_esign.domain.status_mapping import map_remote_status, remark_for
from contract_esign.infrastructure.database.repositories import (
    AuditRepository,
    ContractRepository,
    StatusLogRepository,
)
from contract_esign.infrastructure.locks import ContractLockRegistry, get_lock_registry
from contract_esign.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from contract_esign.domain.signals import RemoteStatusSignal

logger = get_logger(__name__)


class StatusReconciler:
    """Applies remote status signals to contracts with exactly-once effect."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: ContractLockRegistry | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._locks = locks or get_lock_registry()

    async def reconcile(self, contract_id: uuid.UUID, signal: RemoteStatusSignal) -> ReconcileResult:
        """Reconcile one signal against one contract.

        Returns a ReconcileResult for every business outcome. Faults
        (unknown contract, database errors) are audited and re-raised.
        """
        candidate = map_remote_status(signal)

        try:
            result = await self._decide_and_commit(contract_id, candidate, signal)
        except Exception as exc:
            logger.exception(
                "reconcile.failed",
                contract_id=str(contract_id),
                flow_id=signal.flow_id,
                source=signal.source.value,
            )
            failed = ReconcileResult(
                outcome=ReconcileOutcome.FAILED,
                contract_id=str(contract_id),
                from_status=None,
                to_status=candidate,
                message="Reconciliation failed",
                error=str(exc),
            )
            await self._audit(contract_id, signal, failed)
            raise

        await self._audit(contract_id, signal, result)
        return result

    async def _decide_and_commit(
        self,
        contract_id: uuid.UUID,
        candidate: ContractStatus | None,
        signal: RemoteStatusSignal,
    ) -> ReconcileResult:
        async with self._locks.hold(contract_id), self._session_factory() as session, session.begin():
            contracts = ContractRepository(session)
            contract = await contracts.get_for_update(contract_id)
            if contract is None:
                raise ContractNotFoundError(str(contract_id))

            current = ContractStatus(contract.status)

            if candidate is None:
                logger.debug(
                    "reconcile.in_progress",
                    contract_id=str(contract_id),
                    flow_status=signal.flow_status,
                )
                return ReconcileResult(
                    outcome=ReconcileOutcome.IN_PROGRESS,
                    contract_id=str(contract_id),
                    from_status=current,
                    to_status=None,
                    message="Signing still in progress, no update needed",
                )

            if candidate is current:
                logger.info(
                    "reconcile.up_to_date",
                    contract_id=str(contract_id),
                    status=current.value,
                    source=signal.source.value,
                )
                return ReconcileResult(
                    outcome=ReconcileOutcome.UP_TO_DATE,
                    contract_id=str(contract_id),
                    from_status=current,
                    to_status=None,
                    message=f"Status already {current.value}",
                )

            if not is_valid_transition(current, candidate):
                logger.warning(
                    "reconcile.transition_rejected",
                    contract_id=str(contract_id),
                    from_status=current.value,
                    to_status=candidate.value,
                    source=signal.source.value,
                )
                return ReconcileResult(
                    outcome=ReconcileOutcome.REJECTED_TRANSITION,
                    contract_id=str(contract_id),
                    from_status=current,
                    to_status=candidate,
                    message=f"Invalid state transition: {current.value} -> {candidate.value}",
                )

            await contracts.update_status(contract, candidate)
            await StatusLogRepository(session).append(
                contract_id=contract.id,
                from_status=current,
                to_status=candidate,
                source=signal.source,
                remark=remark_for(candidate, signal),
            )

        logger.info(
            "reconcile.updated",
            contract_id=str(contract_id),
            from_status=current.value,
            to_status=candidate.value,
            source=signal.source.value,
        )
        return ReconcileResult(
            outcome=ReconcileOutcome.UPDATED,
            contract_id=str(contract_id),
            from_status=current,
            to_status=candidate,
            message=f"Status updated: {current.value} -> {candidate.value}",
        )

    async def _audit(
        self,
        contract_id: uuid.UUID,
        signal: RemoteStatusSignal,
        result: ReconcileResult,
    ) -> None:
        async with self._session_factory() as session, session.begin():
            await AuditRepository(session).record(
                action=AuditAction.for_source(signal.source),
                source=signal.source,
                success=result.success,
                outcome=result.outcome.value,
                flow_id=signal.flow_id,
                contract_id=contract_id,
                error=result.error,
                details={"signal": signal.to_dict(), "result": result.to_dict()},
            )
