"""Tests for the webhook pipeline: parse, authenticate, resolve, reconcile."""

from __future__ import annotations

import json

import pytest

from contract_esign.domain.enums import ContractStatus
from contract_esign.esign.callback_auth import CallbackAuthenticator, compute_signature
from contract_esign.services.callback_service import CallbackService

from conftest import CALLBACK_SECRET, NOW, FakeClock


@pytest.fixture
def service(session_factory, reconciler, clock: FakeClock) -> CallbackService:
    authenticator = CallbackAuthenticator(secret=CALLBACK_SECRET, clock=clock)
    return CallbackService(session_factory, authenticator, reconciler)


async def _deliver(service: CallbackService, sign_callback, payload: dict, **kwargs):
    body, headers = sign_callback(payload, **kwargs)
    return await service.handle(body, headers["X-Esign-Signature"], headers["X-Esign-Timestamp"])


class TestAccepted:
    @pytest.mark.asyncio
    async def test_completed_delivery(
        self, service, sign_callback, make_contract, fetch_contract, fetch_audits
    ) -> None:
        contract = await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-1")

        response = await _deliver(service, sign_callback, {"FlowId": "flow-1", "FlowStatus": 2})

        assert response.status_code == 200
        assert response.success is True
        assert response.outcome == "updated"
        assert response.data == {
            "contract_id": str(contract.id),
            "flow_id": "flow-1",
            "from_status": "PENDING_PARTY_B",
            "to_status": "COMPLETED",
        }
        assert (await fetch_contract(contract.id)).status == "COMPLETED"
        assert len(await fetch_audits()) == 1

    @pytest.mark.asyncio
    async def test_body_embedded_sign_cannot_cover_itself(
        self, service, make_contract, fetch_contract, fetch_audits
    ) -> None:
        contract = await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-2")
        unsigned = json.dumps({"FlowId": "flow-2", "FlowStatus": 2, "Timestamp": NOW}).encode()
        sign = compute_signature(CALLBACK_SECRET, NOW, unsigned)
        payload = json.loads(unsigned)
        payload["Sign"] = sign
        body = json.dumps(payload).encode()

        response = await service.handle(body)

        # HMAC covers the bytes received, which now include Sign itself
        assert response.status_code == 401
        assert response.message == "Signature verification failed: Sign embedded in the signed body"
        assert (await fetch_contract(contract.id)).status == "PENDING_PARTY_B"
        audits = await fetch_audits()
        assert audits[0].details["signature_source"] == "body"

    @pytest.mark.asyncio
    async def test_late_rejection_still_returns_200(self, service, sign_callback, make_contract) -> None:
        await make_contract(ContractStatus.COMPLETED, flow_id="flow-3")

        response = await _deliver(service, sign_callback, {"FlowId": "flow-3", "FlowStatus": 3})

        assert response.status_code == 200
        assert response.success is False
        assert response.outcome == "rejected_transition"
        assert response.message == "Invalid state transition: COMPLETED -> REJECTED"

    @pytest.mark.asyncio
    async def test_duplicate_delivery(self, service, sign_callback, make_contract, fetch_logs) -> None:
        contract = await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-4")
        payload = {"FlowId": "flow-4", "FlowStatus": 2}

        first = await _deliver(service, sign_callback, payload)
        second = await _deliver(service, sign_callback, payload)

        assert first.outcome == "updated"
        assert second.status_code == 200
        assert second.outcome == "up_to_date"
        assert len(await fetch_logs(contract.id)) == 1


class TestRejected:
    @pytest.mark.asyncio
    async def test_bad_signature_touches_nothing(
        self, service, sign_callback, make_contract, fetch_contract, fetch_logs, fetch_audits
    ) -> None:
        contract = await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-5")
        body, headers = sign_callback({"FlowId": "flow-5", "FlowStatus": 2}, secret="wrong-secret")

        response = await service.handle(body, headers["X-Esign-Signature"], headers["X-Esign-Timestamp"])

        assert response.status_code == 401
        assert response.message == "Signature verification failed"
        assert (await fetch_contract(contract.id)).status == "PENDING_PARTY_B"
        assert await fetch_logs(contract.id) == []
        audits = await fetch_audits()
        assert len(audits) == 1
        assert audits[0].outcome == "error"
        assert audits[0].flow_id == "flow-5"
        assert audits[0].details["signature_source"] == "header"

    @pytest.mark.asyncio
    async def test_required_fields_checked_before_signature(self, service, sign_callback) -> None:
        body, headers = sign_callback({"FlowStatus": 2}, secret="wrong-secret")

        response = await service.handle(body, headers["X-Esign-Signature"], headers["X-Esign-Timestamp"])

        assert response.status_code == 400
        assert response.message == "Missing required fields: FlowId"

    @pytest.mark.asyncio
    async def test_stale_timestamp(self, service, sign_callback, make_contract) -> None:
        await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-6")
        response = await _deliver(
            service, sign_callback, {"FlowId": "flow-6", "FlowStatus": 2}, timestamp=NOW - 301
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_json(self, service, fetch_audits) -> None:
        response = await service.handle(b"{not json", "ab" * 32, str(NOW))
        assert response.status_code == 400
        assert response.message == "Invalid JSON body"
        audits = await fetch_audits()
        assert audits[0].details["raw_body"] == "{not json"

    @pytest.mark.asyncio
    async def test_non_object_body(self, service) -> None:
        response = await service.handle(b"[1, 2]", "ab" * 32, str(NOW))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_signature_fields(self, service) -> None:
        response = await service.handle(json.dumps({"FlowId": "f", "FlowStatus": 2}).encode())
        assert response.status_code == 400
        assert response.message == "Missing required fields: Sign, Timestamp"

    @pytest.mark.asyncio
    async def test_missing_flow_status(self, service, sign_callback) -> None:
        response = await _deliver(service, sign_callback, {"FlowId": "flow-7"})
        assert response.status_code == 400
        assert response.message == "Missing required fields: FlowStatus"

    @pytest.mark.asyncio
    async def test_non_integer_flow_status(self, service, sign_callback) -> None:
        response = await _deliver(service, sign_callback, {"FlowId": "flow-7", "FlowStatus": "done"})
        assert response.status_code == 400
        assert response.message == "FlowStatus must be an integer"

    @pytest.mark.asyncio
    async def test_unknown_flow(self, service, sign_callback, fetch_audits) -> None:
        response = await _deliver(service, sign_callback, {"FlowId": "flow-ghost", "FlowStatus": 2})
        assert response.status_code == 404
        assert response.message == "No contract for flow flow-ghost"
        assert response.data == {"flow_id": "flow-ghost"}
        assert len(await fetch_audits()) == 1

    @pytest.mark.asyncio
    async def test_body_shape(self, service) -> None:
        response = await service.handle(b"", None, None)
        assert response.to_body() == {
            "success": False,
            "outcome": "error",
            "message": "Invalid JSON body",
            "data": {},
        }
