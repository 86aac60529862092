"""Sync Service - pull-based status reconciliation.

Two entry points:
    - sync_contract(): the manual "refresh status" action for one contract.
    - sync_pending(): the scheduled fallback for lost webhooks, which pulls
      every contract still awaiting signatures.

The provider query runs before the reconciler takes any lock. Provider
failures and unreadable responses become FAILED results (audited here, since the reconciler is never
reached); faults inside the reconciler are audited there and re-raised.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from contract_esign.domain.enums import AuditAction, ReconcileOutcome, SyncSource
from contract_esign.domain.exceptions import (
    ContractNotFoundError,
    EsignGatewayError,
    FlowNotStartedError,
    ProviderError,
)
from contract_esign.domain.signals import ReconcileResult
from contract_esign.domain.status_mapping import signal_from_flow_info
from contract_esign.infrastructure.database.repositories import (
    AuditRepository,
    ContractRepository,
)
from contract_esign.logging_config import get_logger

if TYPE_CHECKING:
    import uuid
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from contract_esign.esign.client import ProviderClient
    from contract_esign.services.reconciler import StatusReconciler

logger = get_logger(__name__)


@dataclass(frozen=True)
class SyncBatchResult:
    """Summary of one scheduled sync run.

    skipped counts successful no-ops (in progress, already current);
    failed counts provider failures, faults and rejected transitions.
    """

    total: int
    updated: int
    skipped: int
    failed: int
    details: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "details": self.details,
        }


class SyncService:
    """Queries the provider for flow status and hands the result to the reconciler."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        provider: ProviderClient,
        reconciler: StatusReconciler,
        concurrency: int = 5,
    ) -> None:
        self._session_factory = session_factory
        self._provider = provider
        self._reconciler = reconciler
        self._concurrency = max(1, concurrency)

    # ------------------------------------------------------------------
    # Single contract
    # ------------------------------------------------------------------

    async def sync_contract(
        self,
        contract_id: uuid.UUID,
        source: SyncSource = SyncSource.MANUAL,
    ) -> ReconcileResult:
        """Fetch the remote flow of one contract and reconcile it.

        Raises:
            ContractNotFoundError: Unknown contract id (audited).
            FlowNotStartedError: The contract has no remote flow yet (audited).
        """
        async with self._session_factory() as session:
            contract = await ContractRepository(session).get_by_id(contract_id)

        if contract is None:
            exc: EsignGatewayError = ContractNotFoundError(str(contract_id))
            await self._audit_failure(contract_id, None, source, exc)
            raise exc
        if not contract.flow_id:
            exc = FlowNotStartedError(str(contract_id))
            await self._audit_failure(contract_id, None, source, exc)
            raise exc

        try:
            flow_info = await self._provider.describe_flow_info(contract.flow_id)
        except EsignGatewayError as exc:
            logger.warning(
                "sync.provider_failed",
                contract_id=str(contract_id),
                flow_id=contract.flow_id,
                error=str(exc),
            )
            return await self._failed(
                contract_id, contract.flow_id, source, exc, "Failed to query signing flow status"
            )

        try:
            signal = signal_from_flow_info(flow_info, source=source)
        except Exception as exc:
            logger.exception("sync.parse_failed", contract_id=str(contract_id), flow_id=contract.flow_id)
            parse_error = ProviderError(
                "INVALID_RESPONSE", f"Unreadable flow information for {contract.flow_id}: {exc}"
            )
            return await self._failed(
                contract_id, contract.flow_id, source, parse_error, "Failed to read signing flow status"
            )
        return await self._reconciler.reconcile(contract_id, signal)

    async def _failed(
        self,
        contract_id: uuid.UUID,
        flow_id: str,
        source: SyncSource,
        exc: EsignGatewayError,
        message: str,
    ) -> ReconcileResult:
        await self._audit_failure(contract_id, flow_id, source, exc)
        return ReconcileResult(
            outcome=ReconcileOutcome.FAILED,
            contract_id=str(contract_id),
            from_status=None,
            to_status=None,
            message=message,
            error=str(exc),
        )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def sync_pending(
        self,
        contract_ids: Sequence[uuid.UUID] | None = None,
    ) -> SyncBatchResult:
        """Sync every awaiting-signature contract (or the given subset).

        Runs at most `concurrency` syncs at once and writes one summary
        audit record for the batch.
        """
        async with self._session_factory() as session:
            contracts = await ContractRepository(session).list_pending(contract_ids)
        targets = [(c.id, c.contract_no) for c in contracts]

        logger.info("sync.batch_started", total=len(targets), concurrency=self._concurrency)

        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_one(contract_id: uuid.UUID, contract_no: str) -> dict:
            async with semaphore:
                try:
                    result = await self.sync_contract(contract_id, source=SyncSource.SCHEDULED)
                except Exception as exc:
                    logger.exception("sync.contract_failed", contract_id=str(contract_id))
                    result = ReconcileResult(
                        outcome=ReconcileOutcome.FAILED,
                        contract_id=str(contract_id),
                        from_status=None,
                        to_status=None,
                        message="Sync failed",
                        error=str(exc),
                    )
            return {"contract_no": contract_no, **result.to_dict()}

        details = await asyncio.gather(*(run_one(cid, no) for cid, no in targets))

        updated = sum(1 for d in details if d["outcome"] == ReconcileOutcome.UPDATED.value)
        skipped = sum(
            1
            for d in details
            if d["outcome"] in (ReconcileOutcome.IN_PROGRESS.value, ReconcileOutcome.UP_TO_DATE.value)
        )
        batch = SyncBatchResult(
            total=len(details),
            updated=updated,
            skipped=skipped,
            failed=len(details) - updated - skipped,
            details=list(details),
        )

        async with self._session_factory() as session, session.begin():
            await AuditRepository(session).record(
                action=AuditAction.CRON_SYNC_STATUS,
                source=SyncSource.SCHEDULED,
                success=batch.failed == 0,
                outcome="batch",
                details=batch.to_dict(),
            )

        logger.info(
            "sync.batch_finished",
            total=batch.total,
            updated=batch.updated,
            skipped=batch.skipped,
            failed=batch.failed,
        )
        return batch

    async def _audit_failure(
        self,
        contract_id: uuid.UUID,
        flow_id: str | None,
        source: SyncSource,
        exc: EsignGatewayError,
    ) -> None:
        async with self._session_factory() as session, session.begin():
            await AuditRepository(session).record(
                action=AuditAction.for_source(source),
                source=source,
                success=False,
                outcome=ReconcileOutcome.FAILED.value,
                flow_id=flow_id,
                contract_id=contract_id,
                error=str(exc),
                details={"code": exc.code, "message": exc.message},
            )
