"""Contract State Machine Guard.

Uses python-statemachine to declare the contract lifecycle. The declared
transitions are the single source of truth: the pure query functions below
(is_valid_transition, next_valid_statuses, is_terminal) are derived from
the class definition once at import time and never mutate anything.

Transition table:
    DRAFT            -> PENDING_PARTY_B   (initiate_signing)
    DRAFT            -> CANCELLED         (cancel)
    PENDING_PARTY_B  -> PENDING_PARTY_A   (party_b_signed)
    PENDING_PARTY_B  -> COMPLETED         (flow_completed)
    PENDING_PARTY_B  -> REJECTED          (flow_rejected)
    PENDING_PARTY_B  -> EXPIRED           (flow_expired)
    PENDING_PARTY_B  -> CANCELLED         (cancel)
    PENDING_PARTY_A  -> COMPLETED         (flow_completed)
    PENDING_PARTY_A  -> REJECTED          (flow_rejected)
    PENDING_PARTY_A  -> CANCELLED         (cancel)

PENDING_PARTY_B -> COMPLETED exists for flows where Party A signs
automatically right after Party B.
"""

from __future__ import annotations

from types import MappingProxyType

from statemachine import State, StateMachine

from contract_esign.domain.enums import ContractStatus


class ContractStateMachine(StateMachine):
    """State machine that guards contract lifecycle transitions.

    Usage:
        sm = ContractStateMachine(current_status="DRAFT")
        sm.initiate_signing()  # transitions to PENDING_PARTY_B
        sm.status              # "PENDING_PARTY_B"
    """

    # --- States ---
    DRAFT = State("DRAFT", initial=True)
    PENDING_PARTY_B = State("PENDING_PARTY_B")
    PENDING_PARTY_A = State("PENDING_PARTY_A")
    COMPLETED = State("COMPLETED", final=True)
    REJECTED = State("REJECTED", final=True)
    EXPIRED = State("EXPIRED", final=True)
    CANCELLED = State("CANCELLED", final=True)

    # --- Events / Transitions ---
    initiate_signing = DRAFT.to(PENDING_PARTY_B)
    party_b_signed = PENDING_PARTY_B.to(PENDING_PARTY_A)
    flow_completed = PENDING_PARTY_B.to(COMPLETED) | PENDING_PARTY_A.to(COMPLETED)
    flow_rejected = PENDING_PARTY_B.to(REJECTED) | PENDING_PARTY_A.to(REJECTED)
    flow_expired = PENDING_PARTY_B.to(EXPIRED)
    cancel = (
        DRAFT.to(CANCELLED)
        | PENDING_PARTY_B.to(CANCELLED)
        | PENDING_PARTY_A.to(CANCELLED)
    )

    def __init__(self, current_status: str = "DRAFT") -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: A ContractStatus value (e.g., "PENDING_PARTY_B").
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=str(current_status))

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches ContractStatus)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


def _build_transition_table() -> MappingProxyType[ContractStatus, frozenset[ContractStatus]]:
    table: dict[ContractStatus, set[ContractStatus]] = {s: set() for s in ContractStatus}
    for state in ContractStateMachine.states:
        for transition in state.transitions:
            table[ContractStatus(transition.source.value)].add(
                ContractStatus(transition.target.value)
            )
    return MappingProxyType({k: frozenset(v) for k, v in table.items()})


TRANSITIONS = _build_transition_table()

# Every target status is entered by exactly one event.
_EVENT_BY_TARGET = {
    ContractStatus.PENDING_PARTY_B: "initiate_signing",
    ContractStatus.PENDING_PARTY_A: "party_b_signed",
    ContractStatus.COMPLETED: "flow_completed",
    ContractStatus.REJECTED: "flow_rejected",
    ContractStatus.EXPIRED: "flow_expired",
    ContractStatus.CANCELLED: "cancel",
}


def is_valid_transition(from_status: ContractStatus | str, to_status: ContractStatus | str) -> bool:
    """Return True when `from_status -> to_status` is a declared transition.

    Unknown status strings are never valid. Self-transitions are never valid.
    """
    try:
        source = ContractStatus(from_status)
        target = ContractStatus(to_status)
    except ValueError:
        return False
    return target in TRANSITIONS[source]


def next_valid_statuses(status: ContractStatus | str) -> frozenset[ContractStatus]:
    """Return every status reachable in one step (empty for terminal states)."""
    return TRANSITIONS[ContractStatus(status)]


def is_terminal(status: ContractStatus | str) -> bool:
    """A status is terminal when it has no outgoing transition."""
    return not next_valid_statuses(status)


def event_for(from_status: ContractStatus | str, to_status: ContractStatus | str) -> str:
    """Return the name of the event that performs `from_status -> to_status`.

    Raises:
        ValueError: If no event performs that transition.
    """
    if not is_valid_transition(from_status, to_status):
        raise ValueError(f"No event performs {from_status} -> {to_status}")
    return _EVENT_BY_TARGET[ContractStatus(to_status)]


def validate_transition(current_status: str, event_name: str) -> str:
    """Fire a named event from `current_status` and return the new status.

    Raises:
        TransitionNotAllowed: If the event cannot fire from the current status.
        ValueError: If the status or event name is invalid.
    """
    sm = ContractStateMachine(current_status=current_status)

    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status
