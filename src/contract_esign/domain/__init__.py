"""Domain layer - pure business logic with zero framework dependencies."""

from contract_esign.domain.enums import (
    ApproverState,
    AuditAction,
    ContractStatus,
    ReconcileOutcome,
    RemoteFlowStatus,
    SyncSource,
)
from contract_esign.domain.exceptions import (
    ConfigurationError,
    ContractNotFoundError,
    EsignGatewayError,
    InvalidStateTransitionError,
    ProviderError,
    TransientProviderError,
)
from contract_esign.domain.signals import (
    ApproverStatusEntry,
    ReconcileResult,
    RemoteStatusSignal,
)
from contract_esign.domain.state_machine import (
    ContractStateMachine,
    is_terminal,
    is_valid_transition,
    next_valid_statuses,
)

__all__ = [
    "ApproverState",
    "AuditAction",
    "ContractStatus",
    "ReconcileOutcome",
    "RemoteFlowStatus",
    "SyncSource",
    "ConfigurationError",
    "ContractNotFoundError",
    "EsignGatewayError",
    "InvalidStateTransitionError",
    "ProviderError",
    "TransientProviderError",
    "ApproverStatusEntry",
    "ReconcileResult",
    "RemoteStatusSignal",
    "ContractStateMachine",
    "is_terminal",
    "is_valid_transition",
    "next_valid_statuses",
]
