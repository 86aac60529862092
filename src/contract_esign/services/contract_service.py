"""Contract Service - lifecycle operations driven by operators.

Coordinates between:
    - Domain state machine (transition guard)
    - ProviderClient (flow creation, sign links, document download)
    - Repositories (contract, transition log)

Provider calls are made before any row is locked. The session is supplied
per request and committed by the caller (see get_async_session).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from contract_esign.domain.enums import ApproverType, ContractStatus, PartyType, SyncSource
from contract_esign.domain.exceptions import (
    ContractFlowError,
    ContractNotFoundError,
    ContractStateError,
    EsignGatewayError,
    FlowNotStartedError,
    InvalidStateTransitionError,
)
from contract_esign.domain.state_machine import (
    ContractStateMachine,
    event_for,
    is_valid_transition,
    validate_transition,
)
from contract_esign.esign.client import FlowApprover
from contract_esign.infrastructure.database.orm_models import Contract
from contract_esign.infrastructure.database.repositories import (
    ContractRepository,
    StatusLogRepository,
)
from contract_esign.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from contract_esign.config import Settings
    from contract_esign.esign.client import FileUrl, ProviderClient

logger = get_logger(__name__)


def build_approvers(contract: Contract, settings: Settings) -> list[FlowApprover]:
    """Party B signs first (order 0), then Party A's organization (order 1)."""
    if contract.party_b_type == PartyType.PERSONAL.value:
        party_b = FlowApprover(
            approver_type=ApproverType.PERSONAL,
            name=contract.party_b_name,
            mobile=contract.party_b_phone,
            id_card_number=contract.party_b_id_card or "",
            sign_order=0,
        )
    else:
        party_b = FlowApprover(
            approver_type=ApproverType.ENTERPRISE,
            name=contract.party_b_name,
            mobile=contract.party_b_phone,
            organization_name=contract.party_b_org_name or "",
            id_card_number=contract.party_b_id_card or "",
            sign_order=0,
        )

    party_a = FlowApprover(
        approver_type=ApproverType.ENTERPRISE,
        name=settings.party_a_signer_name,
        mobile=settings.party_a_signer_mobile,
        organization_name=settings.party_a_org_name,
        sign_order=1,
    )
    return [party_b, party_a]


def build_form_fields(form_data: dict[str, Any] | None) -> list[dict[str, str]]:
    """Template components as FormFields; empty values are skipped."""
    fields = []
    for name, value in (form_data or {}).items():
        if value is None or value == "":
            continue
        fields.append({"ComponentName": name, "ComponentValue": str(value)})
    return fields


def _from_timestamp(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=UTC)


class ContractService:
    """Manages the contract lifecycle outside of status reconciliation."""

    def __init__(
        self,
        session: AsyncSession,
        provider: ProviderClient,
        settings: Settings,
    ) -> None:
        self._session = session
        self._provider = provider
        self._settings = settings
        self._contract_repo = ContractRepository(session)
        self._log_repo = StatusLogRepository(session)

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    async def create_draft(
        self,
        contract_no: str,
        party_b_name: str,
        party_b_phone: str,
        template_id: str,
        party_b_type: PartyType = PartyType.PERSONAL,
        party_b_id_card: str | None = None,
        party_b_org_name: str | None = None,
        form_data: dict[str, Any] | None = None,
    ) -> Contract:
        """Create a new contract in DRAFT with its creation log entry."""
        contract = Contract(
            contract_no=contract_no,
            party_b_name=party_b_name,
            party_b_phone=party_b_phone,
            party_b_type=PartyType(party_b_type).value,
            party_b_id_card=party_b_id_card,
            party_b_org_name=party_b_org_name,
            template_id=template_id,
            form_data=form_data or {},
            status=ContractStatus.DRAFT.value,
        )
        contract = await self._contract_repo.create(contract)

        await self._log_repo.append(
            contract_id=contract.id,
            from_status=None,
            to_status=ContractStatus.DRAFT,
            source=SyncSource.SYSTEM,
            remark=f"{SyncSource.SYSTEM.remark_prefix} Contract created",
        )

        logger.info("contract.created", contract_id=str(contract.id), contract_no=contract_no)
        return contract

    # ------------------------------------------------------------------
    # Initiate signing
    # ------------------------------------------------------------------

    async def initiate_signing(self, contract_id: uuid.UUID) -> Contract:
        """CreateFlow -> CreateDocument -> StartFlow -> CreateFlowSignUrl.

        On success the contract gets its flow id and sign link and moves
        DRAFT -> PENDING_PARTY_B. On any provider failure the contract is
        left in DRAFT and ContractFlowError names the failed step.
        """
        contract = await self._get_contract_or_raise(contract_id)
        if not is_valid_transition(contract.status, ContractStatus.PENDING_PARTY_B):
            raise ContractFlowError(
                f"Contract must be DRAFT to initiate signing, current status: {contract.status}",
                code="INVALID_CONTRACT_STATUS",
                step="INIT",
            )
        if not contract.template_id:
            raise ContractFlowError("Contract has no template id", code="MISSING_TEMPLATE_ID", step="INIT")

        approvers = build_approvers(contract, self._settings)
        step = "CREATE_FLOW"
        flow_id: str | None = None
        try:
            flow_id = await self._provider.create_flow(
                flow_name=f"{contract.contract_no} - {contract.party_b_name}",
                approvers=approvers,
                unordered=False,
                flow_description=f"Contract no: {contract.contract_no}",
            )

            step = "CREATE_DOCUMENT"
            await self._provider.create_document(
                flow_id=flow_id,
                template_id=contract.template_id,
                form_fields=build_form_fields(contract.form_data) or None,
                file_names=[f"{contract.contract_no}.pdf"],
            )

            step = "START_FLOW"
            await self._provider.start_flow(flow_id)

            step = "SIGN_URL"
            sign_url = await self._provider.create_flow_sign_url(
                flow_id,
                approver=approvers[0],
                jump_url=self._settings.sign_complete_jump_url,
                url_type=0,
            )
        except EsignGatewayError as exc:
            logger.error(
                "contract.initiate_failed",
                contract_id=str(contract_id),
                step=step,
                flow_id=flow_id,
                error=str(exc),
            )
            raise ContractFlowError(
                f"Signing flow failed at {step}: {exc.message}",
                code=exc.code,
                step=step,
            ) from exc

        contract = await self._contract_repo.get_for_update(contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        self._fire_transition(contract, ContractStatus.PENDING_PARTY_B)

        await self._contract_repo.assign_flow(contract, flow_id)
        await self._contract_repo.update_sign_url(contract, sign_url.url, _from_timestamp(sign_url.expire_time))
        await self._contract_repo.update_status(contract, ContractStatus.PENDING_PARTY_B)
        await self._log_repo.append(
            contract_id=contract.id,
            from_status=ContractStatus.DRAFT,
            to_status=ContractStatus.PENDING_PARTY_B,
            source=SyncSource.SYSTEM,
            remark=f"{SyncSource.SYSTEM.remark_prefix} Signing flow initiated",
        )

        logger.info("contract.signing_initiated", contract_id=str(contract_id), flow_id=flow_id)
        return contract

    # ------------------------------------------------------------------
    # Sign link
    # ------------------------------------------------------------------

    async def regenerate_sign_url(self, contract_id: uuid.UUID) -> Contract:
        """Issue a fresh Party B sign link for a contract awaiting Party B."""
        contract = await self._get_contract_or_raise(contract_id)
        if contract.status != ContractStatus.PENDING_PARTY_B.value:
            raise ContractStateError(str(contract_id), contract.status, "regenerate sign link for")
        if not contract.flow_id:
            raise FlowNotStartedError(str(contract_id))

        approvers = build_approvers(contract, self._settings)
        try:
            sign_url = await self._provider.create_flow_sign_url(
                contract.flow_id,
                approver=approvers[0],
                jump_url=self._settings.sign_complete_jump_url,
                url_type=0,
            )
        except EsignGatewayError as exc:
            raise ContractFlowError(
                f"Failed to regenerate sign link: {exc.message}",
                code=exc.code,
                step="REGENERATE",
            ) from exc

        await self._contract_repo.update_sign_url(contract, sign_url.url, _from_timestamp(sign_url.expire_time))
        logger.info("contract.sign_url_regenerated", contract_id=str(contract_id))
        return contract

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    async def cancel(self, contract_id: uuid.UUID, reason: str = "") -> Contract:
        """Move a non-terminal contract to CANCELLED."""
        contract = await self._contract_repo.get_for_update(contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        old_status = ContractStatus(contract.status)

        self._fire_transition(contract, ContractStatus.CANCELLED)
        await self._contract_repo.update_status(contract, ContractStatus.CANCELLED)

        remark = f"{SyncSource.SYSTEM.remark_prefix} Contract cancelled"
        if reason:
            remark = f"{remark}: {reason}"
        await self._log_repo.append(
            contract_id=contract.id,
            from_status=old_status,
            to_status=ContractStatus.CANCELLED,
            source=SyncSource.SYSTEM,
            remark=remark,
        )

        logger.info("contract.cancelled", contract_id=str(contract_id), from_status=old_status.value)
        return contract

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_detail(self, contract_id: uuid.UUID) -> dict:
        """Contract, its transition log and the statuses it may move to next."""
        contract = await self._get_contract_or_raise(contract_id)
        logs = await self._log_repo.get_by_contract(contract.id)
        sm = ContractStateMachine(current_status=contract.status)
        return {
            "contract": contract,
            "status_label": ContractStatus(contract.status).label,
            "allowed_events": sm.get_allowed_events(),
            "status_logs": logs,
        }

    async def get_download_url(self, contract_id: uuid.UUID) -> FileUrl:
        """Download link for the signed PDF of a COMPLETED contract."""
        contract = await self._get_contract_or_raise(contract_id)
        if contract.status != ContractStatus.COMPLETED.value:
            raise ContractStateError(str(contract_id), contract.status, "download")
        if not contract.flow_id:
            raise FlowNotStartedError(str(contract_id))

        try:
            return await self._provider.describe_file_urls(contract.flow_id)
        except EsignGatewayError as exc:
            raise ContractFlowError(
                f"Failed to fetch contract file: {exc.message}",
                code=exc.code,
                step="DOWNLOAD",
            ) from exc

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_contract_or_raise(self, contract_id: uuid.UUID) -> Contract:
        contract = await self._contract_repo.get_by_id(contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    def _fire_transition(self, contract: Contract, target: ContractStatus) -> None:
        """Validate and fire a state machine transition.

        Raises InvalidStateTransitionError if the transition is illegal.
        """
        from statemachine.exceptions import TransitionNotAllowed

        try:
            validate_transition(contract.status, event_for(contract.status, target))
        except (ValueError, TransitionNotAllowed) as err:
            raise InvalidStateTransitionError(contract.status, target.value) from err
