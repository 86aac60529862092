"""HTTP-level tests for the scheduled sync endpoint and the health check."""

from __future__ import annotations

import pytest

from contract_esign.domain.enums import ContractStatus

from conftest import CRON_SECRET, TEST_SECRET_KEY

URL = "/api/cron/sync-status"


class TestCronAuth:
    @pytest.mark.asyncio
    async def test_missing_credentials(self, api_client, api_provider) -> None:
        response = await api_client.get(URL)
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"
        api_provider.describe_flow_info.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_wrong_bearer(self, api_client) -> None:
        response = await api_client.get(URL, headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_bearer_header(self, api_client) -> None:
        response = await api_client.get(URL, headers={"Authorization": f"Bearer {CRON_SECRET}"})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_query_secret(self, api_client) -> None:
        response = await api_client.post(URL, params={"secret": CRON_SECRET})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_no_secret_configured_allows(self, api_client, api_settings) -> None:
        api_settings.cron_secret = ""
        response = await api_client.get(URL)
        assert response.status_code == 200


class TestCronSync:
    @pytest.mark.asyncio
    async def test_batch_summary(self, api_client, api_provider, make_contract) -> None:
        await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="f-1", contract_no="HT-1")
        await make_contract(ContractStatus.PENDING_PARTY_A, flow_id="f-2", contract_no="HT-2")
        await make_contract(ContractStatus.DRAFT, contract_no="HT-3")

        answers = {
            "f-1": {"FlowId": "f-1", "FlowStatus": 2},
            "f-2": {"FlowId": "f-2", "FlowStatus": 1},
        }

        async def describe(flow_id: str) -> dict:
            return answers[flow_id]

        api_provider.describe_flow_info.side_effect = describe

        response = await api_client.get(URL, headers={"Authorization": f"Bearer {CRON_SECRET}"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert (body["total"], body["updated"], body["skipped"], body["failed"]) == (2, 1, 1, 0)
        assert {d["contract_no"] for d in body["details"]} == {"HT-1", "HT-2"}

    @pytest.mark.asyncio
    async def test_subset_by_body(self, api_client, api_provider, make_contract) -> None:
        target = await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="f-1")
        await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="f-2")
        api_provider.describe_flow_info.return_value = {"FlowId": "f-1", "FlowStatus": 1}

        response = await api_client.post(
            URL,
            json={"contract_ids": [str(target.id)]},
            headers={"Authorization": f"Bearer {CRON_SECRET}"},
        )

        assert response.status_code == 200
        assert response.json()["total"] == 1
        api_provider.describe_flow_info.assert_awaited_once_with("f-1")


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, api_client) -> None:
        response = await api_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == "healthy"
        assert body["signing_configured"] is True
        assert body["callback_secret_configured"] is True

    @pytest.mark.asyncio
    async def test_degraded_without_credentials(self, api_client, api_settings) -> None:
        api_settings.tencent_secret_id = ""
        response = await api_client.get("/health")
        body = response.json()
        assert body["status"] == "degraded"
        assert body["signing_configured"] is False
        assert TEST_SECRET_KEY not in response.text
