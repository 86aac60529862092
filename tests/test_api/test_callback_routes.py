"""HTTP-level tests for the provider webhook endpoint."""

from __future__ import annotations

import pytest

from contract_esign.domain.enums import ContractStatus

from conftest import NOW

URL = "/api/callback/esign"


class TestCallbackEndpoint:
    @pytest.mark.asyncio
    async def test_liveness(self, api_client) -> None:
        response = await api_client.get(URL)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert isinstance(body["timestamp"], int)

    @pytest.mark.asyncio
    async def test_signed_completion(self, api_client, sign_callback, make_contract, fetch_contract) -> None:
        contract = await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-1")
        body, headers = sign_callback({"FlowId": "flow-1", "FlowStatus": 2})

        response = await api_client.post(URL, content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "updated"
        assert response.json()["data"]["to_status"] == "COMPLETED"
        assert "X-Request-ID" in response.headers
        assert (await fetch_contract(contract.id)).status == "COMPLETED"

    @pytest.mark.asyncio
    async def test_raw_bytes_are_verified(self, api_client, sign_callback, make_contract) -> None:
        await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-2")
        body, headers = sign_callback({"FlowId": "flow-2", "FlowStatus": 2})
        # same JSON value, different bytes
        reformatted = body.replace(b", ", b",")

        response = await api_client.post(URL, content=reformatted, headers=headers)

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_stale_delivery(self, api_client, sign_callback, make_contract) -> None:
        await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-3")
        body, headers = sign_callback({"FlowId": "flow-3", "FlowStatus": 2}, timestamp=NOW - 600)
        response = await api_client.post(URL, content=body, headers=headers)
        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_malformed_body(self, api_client) -> None:
        response = await api_client.post(URL, content=b"not-json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_flow(self, api_client, sign_callback) -> None:
        body, headers = sign_callback({"FlowId": "flow-ghost", "FlowStatus": 2})
        response = await api_client.post(URL, content=body, headers=headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_rejected_transition_is_acknowledged(self, api_client, sign_callback, make_contract) -> None:
        await make_contract(ContractStatus.COMPLETED, flow_id="flow-4")
        body, headers = sign_callback({"FlowId": "flow-4", "FlowStatus": 3})

        response = await api_client.post(URL, content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["outcome"] == "rejected_transition"
