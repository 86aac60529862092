"""Translate provider status vocabulary into local contract status.

Two entry points build a RemoteStatusSignal from raw provider data:
    - signal_from_callback()   for webhook bodies
    - signal_from_flow_info()  for DescribeFlowInfo query results

The two payloads encode approver sub-status with different integer codes
(a signed approver is 2 in a webhook and 3 in a query result), so both are
normalised into ApproverState before any decision is made.

map_remote_status() then collapses a signal into a candidate ContractStatus,
or None when the flow is still in progress.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from contract_esign.domain.enums import (
    ApproverState,
    ApproverType,
    ContractStatus,
    RemoteFlowStatus,
    SyncSource,
)
from contract_esign.domain.signals import ApproverStatusEntry, RemoteStatusSignal

# Webhook ApproverStatus codes
CALLBACK_APPROVER_STATES: Mapping[int, ApproverState] = {
    0: ApproverState.PENDING,
    1: ApproverState.FILLING,
    2: ApproverState.SIGNED,
    3: ApproverState.REJECTED,
    4: ApproverState.EXPIRED,
    5: ApproverState.PENDING_REVIEW,
    6: ApproverState.REVIEW_REJECTED,
}

# DescribeFlowInfo ApproveStatus codes
QUERY_APPROVER_STATES: Mapping[int, ApproverState] = {
    0: ApproverState.PENDING,
    1: ApproverState.FILLING,
    2: ApproverState.PENDING_CONFIRMATION,
    3: ApproverState.SIGNED,
    4: ApproverState.REJECTED,
}

_PERSONAL_TYPE_NAMES = frozenset({"PERSON", "PERSONAL", "INDIVIDUAL"})

_FLOW_STATUS_MAP: Mapping[RemoteFlowStatus, ContractStatus | None] = {
    RemoteFlowStatus.SIGNING: None,
    RemoteFlowStatus.COMPLETED: ContractStatus.COMPLETED,
    RemoteFlowStatus.REJECTED: ContractStatus.REJECTED,
    RemoteFlowStatus.EXPIRED: ContractStatus.EXPIRED,
    RemoteFlowStatus.CANCELLED: ContractStatus.CANCELLED,
}

_REMARKS: Mapping[ContractStatus, str] = {
    ContractStatus.PENDING_PARTY_A: "Party B signed, awaiting Party A approval",
    ContractStatus.COMPLETED: "Signing flow completed",
    ContractStatus.REJECTED: "Signing rejected",
    ContractStatus.EXPIRED: "Signing link expired",
    ContractStatus.CANCELLED: "Signing flow cancelled",
}


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _is_personal(approver_type: Any) -> bool:
    code = _to_int(approver_type)
    if code is not None:
        return code == ApproverType.PERSONAL
    if isinstance(approver_type, str):
        return approver_type.strip().upper() in _PERSONAL_TYPE_NAMES
    return False


def _approvers(
    items: Iterable[Mapping[str, Any]] | None,
    status_key: str,
    type_key: str,
    name_key: str,
    table: Mapping[int, ApproverState],
) -> tuple[ApproverStatusEntry, ...]:
    entries = []
    for item in items or ():
        if not isinstance(item, Mapping):
            continue
        code = _to_int(item.get(status_key))
        entries.append(
            ApproverStatusEntry(
                state=table.get(code, ApproverState.UNKNOWN) if code is not None else ApproverState.UNKNOWN,
                is_personal=_is_personal(item.get(type_key)),
                name=str(item.get(name_key) or ""),
            )
        )
    return tuple(entries)


def signal_from_callback(payload: Mapping[str, Any]) -> RemoteStatusSignal:
    """Build a signal from a webhook body (FlowId, FlowStatus, ApproverInfos, ...)."""
    return RemoteStatusSignal(
        flow_id=str(payload.get("FlowId") or ""),
        flow_status=_to_int(payload.get("FlowStatus")) or 0,
        flow_message=str(payload.get("FlowMessage") or ""),
        approvers=_approvers(
            payload.get("ApproverInfos"),
            status_key="ApproverStatus",
            type_key="ApproverType",
            name_key="ApproverName",
            table=CALLBACK_APPROVER_STATES,
        ),
        source=SyncSource.CALLBACK,
        raw=dict(payload),
    )


def signal_from_flow_info(
    flow_info: Mapping[str, Any],
    source: SyncSource = SyncSource.MANUAL,
) -> RemoteStatusSignal:
    """Build a signal from one DescribeFlowInfo FlowDetailInfos entry."""
    return RemoteStatusSignal(
        flow_id=str(flow_info.get("FlowId") or ""),
        flow_status=_to_int(flow_info.get("FlowStatus")) or 0,
        flow_message=str(flow_info.get("FlowMessage") or ""),
        approvers=_approvers(
            flow_info.get("FlowApproverInfos"),
            status_key="ApproveStatus",
            type_key="ApproveType",
            name_key="ApproveName",
            table=QUERY_APPROVER_STATES,
        ),
        source=source,
        raw=dict(flow_info),
    )


def all_approvers_signed(approvers: Iterable[ApproverStatusEntry]) -> bool:
    """True only for a non-empty list where every approver has signed."""
    approvers = tuple(approvers)
    return bool(approvers) and all(a.state is ApproverState.SIGNED for a in approvers)


def map_remote_status(signal: RemoteStatusSignal) -> ContractStatus | None:
    """Collapse a remote signal into a candidate local status.

    Rules:
        - COMPLETED / REJECTED / CANCELLED map directly.
        - EXPIRED maps to EXPIRED, except when every approver has signed:
          the provider's staging environment reports expiry on flows that
          were in fact fully signed, so that case becomes COMPLETED.
        - SIGNING maps to PENDING_PARTY_A once a personal approver has
          signed (Party B done, Party A gate remaining), otherwise None.
        - Unknown codes map to None.
    """
    try:
        flow_status = RemoteFlowStatus(signal.flow_status)
    except ValueError:
        return None

    candidate = _FLOW_STATUS_MAP[flow_status]

    if candidate is ContractStatus.EXPIRED and all_approvers_signed(signal.approvers):
        return ContractStatus.COMPLETED

    if flow_status is RemoteFlowStatus.SIGNING:
        # TODO: with more than two signer roles "a personal approver signed"
        # no longer identifies Party B; key on the approver's sign order instead.
        party_b_signed = any(
            a.is_personal and a.state is ApproverState.SIGNED for a in signal.approvers
        )
        return ContractStatus.PENDING_PARTY_A if party_b_signed else None

    return candidate


def remark_for(target: ContractStatus, signal: RemoteStatusSignal) -> str:
    """Status-specific remark for the transition log, prefixed with the trigger."""
    if target is ContractStatus.REJECTED and signal.flow_message:
        text = signal.flow_message
    else:
        text = _REMARKS.get(target, f"Status changed to {target.label}")
    return f"{signal.source.remark_prefix} {text}"
