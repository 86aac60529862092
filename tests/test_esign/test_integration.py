"""Integration tests against the REAL e-signature provider.

These tests hit the provider API and require:
    - TENCENT_SECRET_ID and TENCENT_SECRET_KEY set in the environment
    - ESIGN_OPERATOR_ID set to an operator of the test organization

Run with:
    pytest tests/test_esign/test_integration.py -v -s

Marked with @pytest.mark.integration so CI can skip them with:
    pytest -m "not integration"
"""

from __future__ import annotations

import os

import httpx
import pytest

from contract_esign.domain.exceptions import ProviderError
from contract_esign.esign.client import ProviderClient
from contract_esign.esign.signer import RequestSigner

pytestmark = pytest.mark.integration

SECRET_ID = os.environ.get("TENCENT_SECRET_ID", "")
SECRET_KEY = os.environ.get("TENCENT_SECRET_KEY", "")
OPERATOR_ID = os.environ.get("ESIGN_OPERATOR_ID", "")
HOST = os.environ.get("ESIGN_HOST", "ess.tencentcloudapi.com")


@pytest.mark.skipif(not (SECRET_ID and SECRET_KEY and OPERATOR_ID), reason="provider credentials not set")
class TestProviderIntegration:
    @pytest.mark.asyncio
    async def test_signature_is_accepted(self) -> None:
        """An unknown flow id must fail on the flow, not on authentication."""
        async with httpx.AsyncClient() as http:
            client = ProviderClient(
                signer=RequestSigner(SECRET_ID, SECRET_KEY, host=HOST),
                http_client=http,
                operator_id=OPERATOR_ID,
                max_attempts=2,
            )
            with pytest.raises(ProviderError) as exc_info:
                await client.describe_flow_info("nonexistent-flow-id")

        print(f"\n  Provider answered: {exc_info.value.code} ({exc_info.value.request_id})")
        assert not exc_info.value.code.startswith("AuthFailure")
