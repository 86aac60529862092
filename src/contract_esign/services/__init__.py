"""Service layer - business logic orchestration."""

from contract_esign.services.callback_service import CallbackResponse, CallbackService
from contract_esign.services.contract_service import ContractService
from contract_esign.services.reconciler import StatusReconciler
from contract_esign.services.sync_service import SyncBatchResult, SyncService

__all__ = [
    "CallbackResponse",
    "CallbackService",
    "ContractService",
    "StatusReconciler",
    "SyncBatchResult",
    "SyncService",
]
