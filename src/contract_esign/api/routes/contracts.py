"""Contract REST API routes.

Routes:
    POST   /api/v1/contracts                        - Create a contract draft
    GET    /api/v1/contracts/{id}                   - Contract detail with status log
    POST   /api/v1/contracts/{id}/initiate          - Start the signing flow
    POST   /api/v1/contracts/{id}/regenerate-link   - Issue a new Party B sign link
    POST   /api/v1/contracts/{id}/cancel            - Cancel the contract
    POST   /api/v1/contracts/{id}/sync              - Pull status from the provider
    GET    /api/v1/contracts/{id}/download          - Signed document URL
"""

from __future__ import annotations

import uuid  # noqa: TC003 - needed at runtime by FastAPI path params

from fastapi import APIRouter, Depends

from contract_esign.api.deps import get_contract_service, get_sync_service
from contract_esign.domain.enums import ReconcileOutcome, SyncSource
from contract_esign.logging_config import get_logger
from contract_esign.schemas.contract import (
    CancelContractRequest,
    ContractDetailResponse,
    ContractResponse,
    CreateContractRequest,
    DownloadUrlResponse,
    StatusLogResponse,
    SyncData,
    SyncResponse,
)
from contract_esign.services.contract_service import ContractService
from contract_esign.services.sync_service import SyncService

router = APIRouter(prefix="/api/v1/contracts", tags=["Contracts"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=ContractResponse,
    status_code=201,
    summary="Create a contract draft",
)
async def create_contract(
    request: CreateContractRequest,
    svc: ContractService = Depends(get_contract_service),
) -> ContractResponse:
    contract = await svc.create_draft(
        contract_no=request.contract_no,
        party_b_name=request.party_b_name,
        party_b_phone=request.party_b_phone,
        template_id=request.template_id,
        party_b_type=request.party_b_type,
        party_b_id_card=request.party_b_id_card,
        party_b_org_name=request.party_b_org_name,
        form_data=request.form_data,
    )
    return ContractResponse.model_validate(contract)


@router.get(
    "/{contract_id}",
    response_model=ContractDetailResponse,
    summary="Get contract detail",
)
async def get_contract(
    contract_id: uuid.UUID,
    svc: ContractService = Depends(get_contract_service),
) -> ContractDetailResponse:
    detail = await svc.get_detail(contract_id)
    return ContractDetailResponse(
        contract=ContractResponse.model_validate(detail["contract"]),
        status_label=detail["status_label"],
        allowed_events=detail["allowed_events"],
        status_logs=[StatusLogResponse.model_validate(log) for log in detail["status_logs"]],
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.post(
    "/{contract_id}/initiate",
    response_model=ContractResponse,
    summary="Start the signing flow",
)
async def initiate_contract(
    contract_id: uuid.UUID,
    svc: ContractService = Depends(get_contract_service),
) -> ContractResponse:
    """CreateFlow, CreateDocument, StartFlow, CreateFlowSignUrl. DRAFT -> PENDING_PARTY_B."""
    contract = await svc.initiate_signing(contract_id)
    return ContractResponse.model_validate(contract)


@router.post(
    "/{contract_id}/regenerate-link",
    response_model=ContractResponse,
    summary="Regenerate the Party B sign link",
)
async def regenerate_link(
    contract_id: uuid.UUID,
    svc: ContractService = Depends(get_contract_service),
) -> ContractResponse:
    contract = await svc.regenerate_sign_url(contract_id)
    return ContractResponse.model_validate(contract)


@router.post(
    "/{contract_id}/cancel",
    response_model=ContractResponse,
    summary="Cancel a contract",
)
async def cancel_contract(
    contract_id: uuid.UUID,
    request: CancelContractRequest,
    svc: ContractService = Depends(get_contract_service),
) -> ContractResponse:
    contract = await svc.cancel(contract_id, reason=request.reason)
    return ContractResponse.model_validate(contract)


# ---------------------------------------------------------------------------
# Status sync
# ---------------------------------------------------------------------------


@router.post(
    "/{contract_id}/sync",
    response_model=SyncResponse,
    summary="Sync status from the provider",
)
async def sync_contract(
    contract_id: uuid.UUID,
    sync: SyncService = Depends(get_sync_service),
) -> SyncResponse:
    """Query the remote flow and reconcile.

    Rejected transitions and provider failures are reported with
    success=false, not as HTTP errors.
    """
    result = await sync.sync_contract(contract_id, source=SyncSource.MANUAL)
    error = None
    if result.outcome is ReconcileOutcome.REJECTED_TRANSITION:
        error = result.message
    elif result.outcome is ReconcileOutcome.FAILED:
        error = result.error or result.message

    return SyncResponse(
        success=result.success,
        data=SyncData(
            updated=result.updated,
            outcome=result.outcome.value,
            from_status=result.from_status.value if result.from_status else None,
            to_status=result.to_status.value if result.updated and result.to_status else None,
            message=result.message,
        ),
        error=error,
    )


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------


@router.get(
    "/{contract_id}/download",
    response_model=DownloadUrlResponse,
    summary="Get the signed document URL",
)
async def download_contract(
    contract_id: uuid.UUID,
    svc: ContractService = Depends(get_contract_service),
) -> DownloadUrlResponse:
    file_url = await svc.get_download_url(contract_id)
    return DownloadUrlResponse(url=file_url.url, expire_time=file_url.expire_time)
