"""Pydantic API schemas."""

from contract_esign.schemas.contract import (
    BatchSyncResponse,
    CancelContractRequest,
    ContractDetailResponse,
    ContractResponse,
    CreateContractRequest,
    CronSyncRequest,
    DownloadUrlResponse,
    HealthResponse,
    StatusLogResponse,
    SyncData,
    SyncResponse,
)

__all__ = [
    "BatchSyncResponse",
    "CancelContractRequest",
    "ContractDetailResponse",
    "ContractResponse",
    "CreateContractRequest",
    "CronSyncRequest",
    "DownloadUrlResponse",
    "HealthResponse",
    "StatusLogResponse",
    "SyncData",
    "SyncResponse",
]
