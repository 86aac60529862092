"""Domain enumerations for the contract e-signature gateway.

Local statuses are string enums (stored as-is in the database). Remote codes
are integer enums mirroring the provider's wire values; they are normalised
into local vocabulary by domain/status_mapping.py and never stored raw
outside the audit log.
"""

import enum


class ContractStatus(enum.StrEnum):
    """Lifecycle states of a contract.

    Transitions are enforced by ContractStateMachine.
    See domain/state_machine.py for the transition table.
    """

    DRAFT = "DRAFT"
    PENDING_PARTY_B = "PENDING_PARTY_B"
    PENDING_PARTY_A = "PENDING_PARTY_A"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    ContractStatus.DRAFT: "Draft",
    ContractStatus.PENDING_PARTY_B: "Awaiting Party B signature",
    ContractStatus.PENDING_PARTY_A: "Awaiting Party A approval",
    ContractStatus.COMPLETED: "Signed",
    ContractStatus.REJECTED: "Rejected",
    ContractStatus.EXPIRED: "Expired",
    ContractStatus.CANCELLED: "Cancelled",
}


class PartyType(enum.StrEnum):
    """Kind of counterparty being onboarded as Party B."""

    PERSONAL = "PERSONAL"
    ENTERPRISE = "ENTERPRISE"


class RemoteFlowStatus(enum.IntEnum):
    """Flow status codes reported by the provider."""

    SIGNING = 1
    COMPLETED = 2
    REJECTED = 3
    EXPIRED = 4
    CANCELLED = 5


class ApproverType(enum.IntEnum):
    """Approver type codes used by the provider."""

    ENTERPRISE = 0
    PERSONAL = 1
    ENTERPRISE_AUTO = 3


class ApproverState(enum.StrEnum):
    """Normalised approver sub-status.

    Webhooks and flow queries use different integer codes for the same
    states; both are translated into this vocabulary.
    """

    PENDING = "pending"
    FILLING = "filling"
    PENDING_CONFIRMATION = "pending_confirmation"
    SIGNED = "signed"
    REJECTED = "rejected"
    EXPIRED = "expired"
    PENDING_REVIEW = "pending_review"
    REVIEW_REJECTED = "review_rejected"
    UNKNOWN = "unknown"


class SyncSource(enum.StrEnum):
    """What triggered a reconciliation."""

    CALLBACK = "CALLBACK"
    MANUAL = "MANUAL"
    SCHEDULED = "SCHEDULED"
    SYSTEM = "SYSTEM"

    @property
    def remark_prefix(self) -> str:
        return _REMARK_PREFIXES[self]


_REMARK_PREFIXES = {
    SyncSource.CALLBACK: "[callback]",
    SyncSource.MANUAL: "[manual sync]",
    SyncSource.SCHEDULED: "[scheduled sync]",
    SyncSource.SYSTEM: "[system]",
}


class ReconcileOutcome(enum.StrEnum):
    """Discriminator for the result of one reconciliation attempt.

    UPDATED, IN_PROGRESS and UP_TO_DATE are success-shaped.
    REJECTED_TRANSITION is a business rejection, FAILED a fault.
    """

    UPDATED = "updated"
    IN_PROGRESS = "in_progress"
    UP_TO_DATE = "up_to_date"
    REJECTED_TRANSITION = "rejected_transition"
    FAILED = "failed"


class AuditAction(enum.StrEnum):
    """Types of records written to the audit_logs table."""

    ESIGN_CALLBACK = "ESIGN_CALLBACK"
    MANUAL_SYNC = "MANUAL_SYNC"
    SCHEDULED_SYNC = "SCHEDULED_SYNC"
    CRON_SYNC_STATUS = "CRON_SYNC_STATUS"

    @classmethod
    def for_source(cls, source: SyncSource) -> "AuditAction":
        if source is SyncSource.CALLBACK:
            return cls.ESIGN_CALLBACK
        if source is SyncSource.SCHEDULED:
            return cls.SCHEDULED_SYNC
        return cls.MANUAL_SYNC
