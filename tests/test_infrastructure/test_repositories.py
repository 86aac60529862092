"""Tests for repository behaviour that the services rely on."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from contract_esign.domain.enums import ContractStatus, SyncSource
from contract_esign.infrastructure.database.repositories import (
    ContractRepository,
    StatusLogRepository,
)


class TestContractRepository:
    @pytest.mark.asyncio
    async def test_get_by_flow_id(self, session_factory, make_contract) -> None:
        contract = await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-1")
        async with session_factory() as session:
            repo = ContractRepository(session)
            assert (await repo.get_by_flow_id("flow-1")).id == contract.id
            assert await repo.get_by_flow_id("flow-unknown") is None

    @pytest.mark.asyncio
    async def test_flow_id_is_unique(self, make_contract) -> None:
        await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-dup")
        with pytest.raises(IntegrityError):
            await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-dup")

    @pytest.mark.asyncio
    async def test_assign_flow_never_rebinds(self, session_factory, make_contract) -> None:
        contract = await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-1")
        async with session_factory() as session, session.begin():
            repo = ContractRepository(session)
            stored = await repo.get_by_id(contract.id)
            await repo.assign_flow(stored, "flow-1")
            with pytest.raises(ValueError, match="already bound"):
                await repo.assign_flow(stored, "flow-2")

    @pytest.mark.asyncio
    async def test_completion_stamps_completed_at(self, session_factory, make_contract) -> None:
        contract = await make_contract(ContractStatus.PENDING_PARTY_A, flow_id="flow-1")
        async with session_factory() as session, session.begin():
            repo = ContractRepository(session)
            stored = await repo.get_for_update(contract.id)
            await repo.update_status(stored, ContractStatus.COMPLETED)
            assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_list_pending(self, session_factory, make_contract) -> None:
        waiting_b = await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="f-b")
        waiting_a = await make_contract(ContractStatus.PENDING_PARTY_A, flow_id="f-a")
        await make_contract(ContractStatus.PENDING_PARTY_B)
        await make_contract(ContractStatus.COMPLETED, flow_id="f-done")
        await make_contract(ContractStatus.DRAFT)

        async with session_factory() as session:
            repo = ContractRepository(session)
            pending = await repo.list_pending()
            subset = await repo.list_pending([waiting_a.id])
            limited = await repo.list_pending(limit=1)

        assert [c.id for c in pending] == [waiting_b.id, waiting_a.id]
        assert [c.id for c in subset] == [waiting_a.id]
        assert [c.id for c in limited] == [waiting_b.id]


class TestStatusLogRepository:
    @pytest.mark.asyncio
    async def test_append_and_count(self, session_factory, make_contract) -> None:
        contract = await make_contract(ContractStatus.PENDING_PARTY_B, flow_id="flow-1")
        async with session_factory() as session, session.begin():
            logs = StatusLogRepository(session)
            await logs.append(
                contract_id=contract.id,
                from_status=ContractStatus.PENDING_PARTY_B,
                to_status=ContractStatus.PENDING_PARTY_A,
                source=SyncSource.CALLBACK,
                remark="[callback] Party B signed, awaiting Party A approval",
            )
            assert await logs.count_for_contract(contract.id) == 1
            entries = await logs.get_by_contract(contract.id)

        assert entries[0].source == "CALLBACK"
        assert entries[0].from_status == "PENDING_PARTY_B"
