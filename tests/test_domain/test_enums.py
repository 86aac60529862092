"""Tests for domain enumerations."""

from __future__ import annotations

from contract_esign.domain.enums import (
    ApproverType,
    AuditAction,
    ContractStatus,
    ReconcileOutcome,
    RemoteFlowStatus,
    SyncSource,
)


class TestContractStatus:
    def test_exactly_seven_statuses(self) -> None:
        expected = {
            "DRAFT", "PENDING_PARTY_B", "PENDING_PARTY_A",
            "COMPLETED", "REJECTED", "EXPIRED", "CANCELLED",
        }
        assert {s.value for s in ContractStatus} == expected

    def test_status_is_str_enum(self) -> None:
        assert isinstance(ContractStatus.DRAFT, str)
        assert ContractStatus.COMPLETED == "COMPLETED"

    def test_every_status_has_a_label(self) -> None:
        for status in ContractStatus:
            assert status.label


class TestRemoteCodes:
    def test_flow_status_codes(self) -> None:
        assert RemoteFlowStatus.SIGNING == 1
        assert RemoteFlowStatus.COMPLETED == 2
        assert RemoteFlowStatus.REJECTED == 3
        assert RemoteFlowStatus.EXPIRED == 4
        assert RemoteFlowStatus.CANCELLED == 5

    def test_approver_type_codes(self) -> None:
        assert ApproverType.ENTERPRISE == 0
        assert ApproverType.PERSONAL == 1
        assert ApproverType.ENTERPRISE_AUTO == 3


class TestSyncSource:
    def test_remark_prefixes(self) -> None:
        assert SyncSource.CALLBACK.remark_prefix == "[callback]"
        assert SyncSource.MANUAL.remark_prefix == "[manual sync]"
        assert SyncSource.SCHEDULED.remark_prefix == "[scheduled sync]"

    def test_audit_action_for_source(self) -> None:
        assert AuditAction.for_source(SyncSource.CALLBACK) is AuditAction.ESIGN_CALLBACK
        assert AuditAction.for_source(SyncSource.MANUAL) is AuditAction.MANUAL_SYNC
        assert AuditAction.for_source(SyncSource.SCHEDULED) is AuditAction.SCHEDULED_SYNC


class TestReconcileOutcome:
    def test_outcome_values(self) -> None:
        assert {o.value for o in ReconcileOutcome} == {
            "updated", "in_progress", "up_to_date", "rejected_transition", "failed",
        }
