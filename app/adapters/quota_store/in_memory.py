"""In-memory quota store.

Notes:
- Per-process only: every worker keeps its own counters, so this backend is
  meant for local development and tests.
- Coroutine-safe: a single asyncio.Lock serializes every mutation.
"""

from __future__ import annotations

import asyncio

from app.adapters.quota_store.base import AbstractQuotaStore, ConsumeResult, validate_amount


class InMemoryQuotaStore(AbstractQuotaStore):
    """Quota store keeping counters and exempt addresses in dictionaries."""

    def __init__(self, *, exempt_addresses: list[str] | None = None) -> None:
        self._lock = asyncio.Lock()
        self._consumed: dict[str, int] = {}
        # dict keeps insertion order, which is the list order admins see
        self._exempt: dict[str, None] = dict.fromkeys(exempt_addresses or [])

    async def get_consumed(self, identity: str) -> int:
        async with self._lock:
            return self._consumed.get(identity, 0)

    async def increment(self, identity: str, amount: int) -> int:
        amount = validate_amount(amount)
        async with self._lock:
            total = self._consumed.get(identity, 0) + amount
            self._consumed[identity] = total
            return total

    async def consume(self, identity: str, amount: int, *, ceiling: int) -> ConsumeResult:
        amount = validate_amount(amount)
        async with self._lock:
            current = self._consumed.get(identity, 0)
            if current >= ceiling:
                return ConsumeResult(applied=False, consumed=current)
            total = min(ceiling, current + amount)
            self._consumed[identity] = total
            return ConsumeResult(applied=True, consumed=total)

    async def reset(self, identity: str) -> None:
        async with self._lock:
            self._consumed.pop(identity, None)

    async def list_exempt_addresses(self) -> list[str]:
        async with self._lock:
            return list(self._exempt)

    async def add_exempt_address(self, address: str) -> bool:
        async with self._lock:
            if address in self._exempt:
                return False
            self._exempt[address] = None
            return True

    async def remove_exempt_address(self, address: str) -> bool:
        async with self._lock:
            if address not in self._exempt:
                return False
            del self._exempt[address]
            return True
