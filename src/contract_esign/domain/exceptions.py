"""Domain exceptions for the contract e-signature gateway.

These exceptions are framework-agnostic. The API layer's middleware
translates them into HTTP responses; the webhook endpoint builds its own
responses and only uses them for control flow.

Business outcomes of a reconciliation (no-op, already current, rejected
transition) are NOT exceptions; see domain/signals.py::ReconcileResult.
"""


class EsignGatewayError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "ESIGN_GATEWAY_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Configuration ---


class ConfigurationError(EsignGatewayError):
    """Raised when signing credentials or other required settings are missing.

    Never retryable. Surfaced at startup in production and at call time
    everywhere else.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="CONFIGURATION_ERROR")


# --- Webhook authentication ---


class CallbackAuthenticationError(EsignGatewayError):
    """Raised when a webhook delivery fails signature or freshness checks."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            message=f"Callback signature verification failed: {reason}",
            code="CALLBACK_AUTH_FAILED",
        )
        self.reason = reason


# --- Provider errors ---


class ProviderError(EsignGatewayError):
    """A non-retryable error reported by (or about) the e-signature provider."""

    retryable = False

    def __init__(self, code: str, message: str, request_id: str = "") -> None:
        super().__init__(message=message, code=code)
        self.request_id = request_id

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class TransientProviderError(ProviderError):
    """A provider-side or transport failure that may succeed on retry.

    Covers the provider's InternalError family, HTTP 5xx responses,
    timeouts and connection failures.
    """

    retryable = True


# --- State machine errors ---


class InvalidStateTransitionError(EsignGatewayError):
    """Raised when a caller forces a transition the state machine forbids.

    The reconciler never raises this; it reports a REJECTED_TRANSITION
    outcome instead. Direct lifecycle operations (initiate, cancel) do.
    """

    def __init__(self, current_state: str, attempted_state: str) -> None:
        super().__init__(
            message=f"Invalid state transition: {current_state} -> {attempted_state}",
            code="INVALID_STATE_TRANSITION",
        )
        self.current_state = current_state
        self.attempted_state = attempted_state


# --- Contract errors ---


class ContractNotFoundError(EsignGatewayError):
    """Raised when a contract ID (or remote flow ID) does not resolve."""

    def __init__(self, contract_id: str) -> None:
        super().__init__(
            message=f"Contract not found: {contract_id}",
            code="CONTRACT_NOT_FOUND",
        )
        self.contract_id = contract_id


class FlowNotStartedError(EsignGatewayError):
    """Raised when an operation needs a remote flow but none was started."""

    def __init__(self, contract_id: str) -> None:
        super().__init__(
            message=f"Contract has no signing flow yet: {contract_id}",
            code="FLOW_NOT_STARTED",
        )
        self.contract_id = contract_id


class ContractFlowError(EsignGatewayError):
    """Raised when a multi-step signing-flow operation fails.

    Attributes:
        step: Which step failed (INIT, CREATE_FLOW, CREATE_DOCUMENT,
              START_FLOW, SIGN_URL, REGENERATE, DOWNLOAD).
    """

    def __init__(self, message: str, code: str, step: str) -> None:
        super().__init__(message=message, code=code)
        self.step = step


class ContractStateError(EsignGatewayError):
    """Raised when a contract is not in a status that permits an operation.

    Distinct from InvalidStateTransitionError: no transition is attempted,
    e.g. downloading the document of a contract that is not yet COMPLETED.
    """

    def __init__(self, contract_id: str, status: str, operation: str) -> None:
        super().__init__(
            message=f"Cannot {operation} contract {contract_id} in status {status}",
            code="INVALID_CONTRACT_STATUS",
        )
        self.contract_id = contract_id
        self.status = status
        self.operation = operation
