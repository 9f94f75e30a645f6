"""Redis-backed quota store.

Keys:
- ``<prefix>:usage:<identity>`` integer consumption counter, no expiry.
- ``<prefix>:exempt-addresses`` sorted set of exempt addresses scored by
  insertion time, so ZRANGE returns them in the order they were added.

Check-and-increment runs as a Lua script, which Redis executes atomically,
so concurrent records for the same identity can never overshoot the ceiling.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.adapters.quota_store.base import AbstractQuotaStore, ConsumeResult, validate_amount
from app.core.errors import StoreUnavailableError
from app.core.logging import hash_identity

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Returns: [consumed_after, applied (1/0)]
CONSUME_WITH_CEILING_LUA = """
local key = KEYS[1]
local amount = tonumber(ARGV[1])
local ceiling = tonumber(ARGV[2])

local current = tonumber(redis.call('GET', key) or '0')
if current >= ceiling then
    return {current, 0}
end

local total = math.min(ceiling, current + amount)
redis.call('SET', key, total)
return {total, 1}
"""


class RedisQuotaStore(AbstractQuotaStore):
    """Quota store backed by a shared Redis instance."""

    def __init__(
        self,
        client: Redis,
        *,
        key_prefix: str = "voice-quota",
        timeout_seconds: float = 2.0,
    ) -> None:
        """Initialize the store.

        Args:
            client: redis.asyncio client created with decode_responses=True.
            key_prefix: Namespace for all keys written by this store.
            timeout_seconds: Upper bound for each backend round trip.

        Raises:
            ValueError: If timeout_seconds is not positive.
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self._client = client
        self._usage_prefix = f"{key_prefix}:usage"
        self._exempt_key = f"{key_prefix}:exempt-addresses"
        self._timeout = timeout_seconds
        self._consume_script = client.register_script(CONSUME_WITH_CEILING_LUA)

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str, timeout_seconds: float) -> "RedisQuotaStore":
        """Build a store with its own client from a connection URL."""
        client = Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=timeout_seconds,
            socket_timeout=timeout_seconds,
        )
        return cls(client, key_prefix=key_prefix, timeout_seconds=timeout_seconds)

    def usage_key(self, identity: str) -> str:
        return f"{self._usage_prefix}:{identity}"

    @property
    def exempt_key(self) -> str:
        return self._exempt_key

    async def _run(self, operation: str, awaitable: Awaitable[T], *, identity: str | None = None) -> T:
        """Await a backend call under the store timeout.

        Raises:
            StoreUnavailableError: On connection errors or timeout. A timed-out
                write is reported as failed even if Redis applied it later.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            extra: dict[str, Any] = {
                "operation": operation,
                "error_type": type(exc).__name__,
                "timeout_s": self._timeout,
            }
            if identity is not None:
                extra["identity_hash"] = hash_identity(identity)
            logger.error("quota_store.unavailable", extra=extra)
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Quota store is unavailable",
                details={"operation": operation, "timeout_s": self._timeout},
            ) from exc

    async def get_consumed(self, identity: str) -> int:
        value = await self._run("get_consumed", self._client.get(self.usage_key(identity)), identity=identity)
        return int(value) if value else 0

    async def increment(self, identity: str, amount: int) -> int:
        amount = validate_amount(amount)
        total = await self._run(
            "increment",
            self._client.incrby(self.usage_key(identity), amount),
            identity=identity,
        )
        return int(total)

    async def consume(self, identity: str, amount: int, *, ceiling: int) -> ConsumeResult:
        amount = validate_amount(amount)
        consumed, applied = await self._run(
            "consume",
            self._consume_script(keys=[self.usage_key(identity)], args=[amount, ceiling]),
            identity=identity,
        )
        return ConsumeResult(applied=int(applied) == 1, consumed=int(consumed))

    async def reset(self, identity: str) -> None:
        await self._run("reset", self._client.delete(self.usage_key(identity)), identity=identity)

    async def list_exempt_addresses(self) -> list[str]:
        members = await self._run("list_exempt", self._client.zrange(self._exempt_key, 0, -1))
        return list(members)

    async def add_exempt_address(self, address: str) -> bool:
        added = await self._run(
            "add_exempt",
            self._client.zadd(self._exempt_key, {address: time.time()}, nx=True),
        )
        return int(added) == 1

    async def remove_exempt_address(self, address: str) -> bool:
        removed = await self._run("remove_exempt", self._client.zrem(self._exempt_key, address))
        return int(removed) == 1

    async def ping(self) -> None:
        await self._run("ping", self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()
