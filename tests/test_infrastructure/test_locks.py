"""Tests for the per-contract lock registry."""

from __future__ import annotations

import asyncio
import uuid

import pytest

from contract_esign.infrastructure.locks import ContractLockRegistry, get_lock_registry


class TestContractLockRegistry:
    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self, locks: ContractLockRegistry) -> None:
        key = uuid.uuid4()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold(key):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]

    @pytest.mark.asyncio
    async def test_different_keys_do_not_contend(self, locks: ContractLockRegistry) -> None:
        first, second = uuid.uuid4(), uuid.uuid4()
        async with locks.hold(first):
            assert locks.is_locked(first)
            assert not locks.is_locked(second)
            async with locks.hold(second):
                assert locks.is_locked(second)

    @pytest.mark.asyncio
    async def test_entries_are_released(self, locks: ContractLockRegistry) -> None:
        key = uuid.uuid4()
        async with locks.hold(key):
            assert len(locks) == 1
        assert len(locks) == 0
        assert not locks.is_locked(key)

    @pytest.mark.asyncio
    async def test_released_after_exception(self, locks: ContractLockRegistry) -> None:
        key = uuid.uuid4()
        with pytest.raises(RuntimeError):
            async with locks.hold(key):
                raise RuntimeError("boom")
        assert len(locks) == 0

    def test_process_wide_singleton(self) -> None:
        assert get_lock_registry() is get_lock_registry()
