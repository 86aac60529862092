"""Per-contract serialization point.

Reconciles for the same contract run one at a time; reconciles for
different contracts never contend. Entries are reference-counted and
removed when the last holder or waiter leaves, so the registry does not
grow with the number of contracts ever seen.

This serializes within one process. Across processes the row lock taken by
ContractRepository.get_for_update provides the same guarantee.

Usage:
    locks = get_lock_registry()
    async with locks.hold(contract.id):
        ...  # read current status, decide, write status + log, commit
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

from contract_esign.logging_config import get_logger

logger = get_logger(__name__)


class ContractLockRegistry:
    """Keyed asyncio locks with automatic cleanup."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._refs: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._refs[key] = self._refs.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._refs[key] -= 1
            if self._refs[key] == 0:
                del self._refs[key]
                del self._locks[key]


_registry: ContractLockRegistry | None = None


def get_lock_registry() -> ContractLockRegistry:
    """Return the process-wide registry (lazy singleton)."""
    global _registry
    if _registry is None:
        _registry = ContractLockRegistry()
    return _registry
