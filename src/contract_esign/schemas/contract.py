"""Pydantic schemas for the contract API.

Request/response shapes for the REST routes, kept separate from the ORM
models. The webhook endpoint is deliberately not modelled here: its body
must be verified byte-for-byte before it is parsed.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - needed at runtime by pydantic
from datetime import datetime  # noqa: TC003 - needed at runtime by pydantic
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from contract_esign.domain.enums import PartyType

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateContractRequest(BaseModel):
    """Request body for creating a contract draft."""

    contract_no: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Human-facing contract number (unique)",
        examples=["HT-2024-000123"],
    )
    party_b_name: str = Field(..., min_length=1, max_length=100, description="Party B signer name")
    party_b_phone: str = Field(
        ...,
        min_length=5,
        max_length=20,
        description="Party B mobile number, used by the provider to identify the signer",
    )
    party_b_type: PartyType = Field(default=PartyType.PERSONAL)
    party_b_id_card: str | None = Field(default=None, max_length=32)
    party_b_org_name: str | None = Field(
        default=None,
        max_length=200,
        description="Required by the provider when party_b_type is ENTERPRISE",
    )
    template_id: str = Field(..., min_length=1, max_length=64, description="Provider template id")
    form_data: dict[str, Any] = Field(
        default_factory=dict,
        description="Template component name -> value; empty values are not sent",
    )


class CancelContractRequest(BaseModel):
    reason: str = Field(default="", max_length=500)


class CronSyncRequest(BaseModel):
    """Optional body for the batch sync endpoint."""

    contract_ids: list[uuid.UUID] | None = Field(
        default=None,
        description="Limit the run to these contracts; default is every pending contract",
    )


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class ContractResponse(BaseModel):
    """Response schema for a contract."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    contract_no: str
    flow_id: str | None
    status: str
    party_b_name: str
    party_b_phone: str
    party_b_type: str
    party_b_org_name: str | None
    template_id: str
    form_data: dict
    sign_url: str | None
    sign_url_expire_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class StatusLogResponse(BaseModel):
    """Response schema for one transition log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    from_status: str | None
    to_status: str
    source: str
    remark: str
    created_at: datetime


class ContractDetailResponse(BaseModel):
    contract: ContractResponse
    status_label: str
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )
    status_logs: list[StatusLogResponse]


class SyncData(BaseModel):
    updated: bool
    outcome: str
    from_status: str | None
    to_status: str | None
    message: str


class SyncResponse(BaseModel):
    """Manual sync result. success is false for rejected transitions and failures."""

    success: bool
    data: SyncData
    error: str | None = None


class DownloadUrlResponse(BaseModel):
    url: str
    expire_time: int


class BatchSyncResponse(BaseModel):
    success: bool
    total: int
    updated: int
    skipped: int
    failed: int
    details: list[dict]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    signing_configured: bool = False
    callback_secret_configured: bool = False
