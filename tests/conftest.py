"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before anything imports app.core.config, so
the global settings object is built for an in-memory store with a known
admin password.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("QUOTA_STORE_BACKEND", "memory")
os.environ.setdefault("QUOTA_UNIT", "calls")
os.environ.setdefault("QUOTA_MAXIMUM", "1")
os.environ.setdefault("ADMIN_PASSWORD", "test-admin-password")
os.environ.setdefault("LOG_FORMAT", "plain")

import pytest  # noqa: E402

from app.adapters.quota_store.in_memory import InMemoryQuotaStore  # noqa: E402
from app.core.errors import StoreUnavailableError  # noqa: E402


class FakeClock:
    """Deterministic monotonic clock for TTL logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FlakyQuotaStore(InMemoryQuotaStore):
    """In-memory store whose backend can be switched off to simulate an outage."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.available = True

    def _check(self, operation: str) -> None:
        if not self.available:
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Quota store is unavailable",
                details={"operation": operation},
            )

    async def get_consumed(self, identity):
        self._check("get_consumed")
        return await super().get_consumed(identity)

    async def increment(self, identity, amount):
        self._check("increment")
        return await super().increment(identity, amount)

    async def consume(self, identity, amount, *, ceiling):
        self._check("consume")
        return await super().consume(identity, amount, ceiling=ceiling)

    async def reset(self, identity):
        self._check("reset")
        return await super().reset(identity)

    async def list_exempt_addresses(self):
        self._check("list_exempt")
        return await super().list_exempt_addresses()

    async def add_exempt_address(self, address):
        self._check("add_exempt")
        return await super().add_exempt_address(address)

    async def remove_exempt_address(self, address):
        self._check("remove_exempt")
        return await super().remove_exempt_address(address)

    async def ping(self):
        self._check("ping")


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def flaky_store() -> FlakyQuotaStore:
    return FlakyQuotaStore()
