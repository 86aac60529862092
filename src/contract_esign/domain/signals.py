"""Value objects exchanged between the triggers and the reconciler.

A RemoteStatusSignal is what the provider told us, from either a webhook
push or a flow query. A ReconcileResult is what we did about it. Both are
immutable and serialisable for the audit log.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from contract_esign.domain.enums import (
    ApproverState,
    ContractStatus,
    ReconcileOutcome,
    SyncSource,
)


@dataclass(frozen=True)
class ApproverStatusEntry:
    """One approver's sub-status inside a flow.

    Attributes:
        state: Normalised sub-status.
        is_personal: True for an individual signer (Party B when PERSONAL).
        name: Approver display name, informational only.
    """

    state: ApproverState
    is_personal: bool = False
    name: str = ""

    def to_dict(self) -> dict:
        return {"state": self.state.value, "is_personal": self.is_personal, "name": self.name}


@dataclass(frozen=True)
class RemoteStatusSignal:
    """A provider-reported status for one remote flow.

    Attributes:
        flow_id: Remote flow identifier.
        flow_status: Raw remote flow status code (see RemoteFlowStatus).
        flow_message: Optional provider message (e.g. a rejection reason).
        approvers: Approver sub-statuses, possibly empty.
        source: Which trigger produced the signal.
        raw: The untouched payload, kept for forensic replay.
    """

    flow_id: str
    flow_status: int
    source: SyncSource
    flow_message: str = ""
    approvers: tuple[ApproverStatusEntry, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize for storage in the audit_logs.details JSON column."""
        return {
            "flow_id": self.flow_id,
            "flow_status": self.flow_status,
            "flow_message": self.flow_message,
            "approvers": [a.to_dict() for a in self.approvers],
            "source": self.source.value,
            "raw": self.raw,
        }


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of reconciling one signal against one contract."""

    outcome: ReconcileOutcome
    contract_id: str
    from_status: ContractStatus | None
    to_status: ContractStatus | None
    message: str
    error: str | None = None

    @property
    def updated(self) -> bool:
        return self.outcome is ReconcileOutcome.UPDATED

    @property
    def success(self) -> bool:
        """True for updates and for no-ops that needed no change."""
        return self.outcome in (
            ReconcileOutcome.UPDATED,
            ReconcileOutcome.IN_PROGRESS,
            ReconcileOutcome.UP_TO_DATE,
        )

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "contract_id": self.contract_id,
            "from_status": self.from_status.value if self.from_status else None,
            "to_status": self.to_status.value if self.to_status else None,
            "message": self.message,
            "error": self.error,
        }
