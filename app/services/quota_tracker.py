"""Per-identity call quota enforcement.

Answers "may this visitor start a voice session?" and records what a session
consumed. Running out of quota is a normal result; only store failures raise.

State per identity::

    UNSEEN -> HAS_QUOTA -> EXHAUSTED
                  ^            |
                  +-- reset ---+

EXEMPT is reached only through identity resolution and never exhausts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from app.adapters.quota_store.base import AbstractQuotaStore, validate_amount
from app.core.errors import StoreUnavailableError
from app.core.logging import hash_identity
from app.services.identity import EXEMPT_IDENTITY

logger = logging.getLogger(__name__)


class QuotaUnit(str, Enum):
    CALLS = "calls"
    SECONDS = "seconds"


class QuotaState(str, Enum):
    """Where an identity stands relative to its quota."""

    AVAILABLE = "available"
    EXHAUSTED = "exhausted"
    EXEMPT = "exempt"
    DISABLED = "disabled"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class QuotaPolicy:
    """Single configured maximum expressed in calls or seconds."""

    unit: QuotaUnit
    maximum: int

    def __post_init__(self) -> None:
        if self.maximum < 1:
            raise ValueError("maximum must be >= 1")


@dataclass(frozen=True)
class QuotaStatus:
    allowed: bool
    remaining: int
    limit: int
    unit: QuotaUnit
    state: QuotaState


@dataclass(frozen=True)
class UsageResult:
    success: bool
    remaining: int
    limit: int
    unit: QuotaUnit
    state: QuotaState


class QuotaTracker:
    """Combines the quota store with the configured policy.

    Exempt identities bypass the store entirely, for reads and writes alike,
    so they leave no usage records behind.
    """

    def __init__(
        self,
        store: AbstractQuotaStore,
        policy: QuotaPolicy,
        *,
        enabled: bool = True,
    ) -> None:
        self._store = store
        self._policy = policy
        self._enabled = enabled

    @property
    def policy(self) -> QuotaPolicy:
        return self._policy

    def _status(self, *, allowed: bool, remaining: int, state: QuotaState) -> QuotaStatus:
        return QuotaStatus(
            allowed=allowed,
            remaining=remaining,
            limit=self._policy.maximum,
            unit=self._policy.unit,
            state=state,
        )

    def _usage(self, *, success: bool, remaining: int, state: QuotaState) -> UsageResult:
        return UsageResult(
            success=success,
            remaining=remaining,
            limit=self._policy.maximum,
            unit=self._policy.unit,
            state=state,
        )

    def _bypass_state(self, identity: str) -> QuotaState | None:
        if identity == EXEMPT_IDENTITY:
            return QuotaState.EXEMPT
        if not self._enabled:
            return QuotaState.DISABLED
        return None

    async def check_available(self, identity: str) -> QuotaStatus:
        """Report whether identity may start a session.

        Fails closed: if the store cannot be read the caller is denied with
        state UNAVAILABLE, distinct from EXHAUSTED.
        """
        maximum = self._policy.maximum

        bypass = self._bypass_state(identity)
        if bypass is not None:
            return self._status(allowed=True, remaining=maximum, state=bypass)

        try:
            consumed = await self._store.get_consumed(identity)
        except StoreUnavailableError as exc:
            logger.error(
                "quota.check_failed_closed",
                extra={"identity_hash": hash_identity(identity), "error_code": exc.code},
            )
            return self._status(allowed=False, remaining=0, state=QuotaState.UNAVAILABLE)

        remaining = max(0, maximum - consumed)
        state = QuotaState.AVAILABLE if remaining > 0 else QuotaState.EXHAUSTED
        logger.info(
            "quota.checked",
            extra={
                "identity_hash": hash_identity(identity),
                "consumed": consumed,
                "remaining": remaining,
                "unit": self._policy.unit.value,
            },
        )
        return self._status(allowed=remaining > 0, remaining=remaining, state=state)

    async def record_usage(self, identity: str, amount: int) -> UsageResult:
        """Record consumption, re-checking the quota atomically in the store.

        Not idempotent: every call adds amount. A final amount that overflows
        the budget is clamped to the maximum rather than rejected.

        Raises:
            InvalidAmountError: If amount is negative, fractional or non-finite.
            StoreUnavailableError: If the usage could not be recorded.
        """
        amount = validate_amount(amount)
        maximum = self._policy.maximum

        bypass = self._bypass_state(identity)
        if bypass is not None:
            return self._usage(success=True, remaining=maximum, state=bypass)

        result = await self._store.consume(identity, amount, ceiling=maximum)
        remaining = max(0, maximum - result.consumed)
        state = QuotaState.AVAILABLE if remaining > 0 else QuotaState.EXHAUSTED

        if not result.applied:
            logger.warning(
                "quota.exhausted",
                extra={
                    "identity_hash": hash_identity(identity),
                    "amount": amount,
                    "unit": self._policy.unit.value,
                },
            )
            return self._usage(success=False, remaining=0, state=QuotaState.EXHAUSTED)

        logger.info(
            "quota.recorded",
            extra={
                "identity_hash": hash_identity(identity),
                "amount": amount,
                "consumed": result.consumed,
                "remaining": remaining,
                "unit": self._policy.unit.value,
            },
        )
        return self._usage(success=True, remaining=remaining, state=state)

    async def reset(self, identity: str) -> None:
        """Return identity to full quota (administrative)."""
        await self._store.reset(identity)
        logger.info("quota.reset", extra={"identity_hash": hash_identity(identity)})
