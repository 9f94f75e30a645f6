"""Quota store interfaces.

The tracker and the exemption registry depend on this abstraction, not on a
concrete backend. Every backend must make `consume` atomic per identity.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.core.errors import InvalidAmountError


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of an atomic increment-with-ceiling.

    Attributes:
        applied: False when consumption had already reached the ceiling.
        consumed: Total consumption after the operation.
    """

    applied: bool
    consumed: int


def validate_amount(amount: object) -> int:
    """Validate a consumption amount before it reaches the store.

    Args:
        amount: Value supplied by the caller.

    Returns:
        The amount as a non-negative int.

    Raises:
        InvalidAmountError: If the amount is negative, fractional, non-finite
            or not a number at all.
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidAmountError(
            code="invalid_amount",
            message="Amount must be a number",
            details={"amount": repr(amount)},
        )
    if isinstance(amount, float):
        if not math.isfinite(amount) or not amount.is_integer():
            raise InvalidAmountError(
                code="invalid_amount",
                message="Amount must be a finite whole number",
                details={"amount": repr(amount)},
            )
        amount = int(amount)
    if amount < 0:
        raise InvalidAmountError(
            code="invalid_amount",
            message="Amount must be >= 0",
            details={"amount": repr(amount)},
        )
    return amount


class AbstractQuotaStore(ABC):
    """Persistent consumption counters plus the exemption list.

    Implementations raise StoreUnavailableError for any backend failure or
    timeout. They never clamp counters on their own except through `consume`.
    """

    @abstractmethod
    async def get_consumed(self, identity: str) -> int:
        """Return consumption recorded for identity (0 when absent)."""
        raise NotImplementedError

    @abstractmethod
    async def increment(self, identity: str, amount: int) -> int:
        """Atomically add amount and return the new total."""
        raise NotImplementedError

    @abstractmethod
    async def consume(self, identity: str, amount: int, *, ceiling: int) -> ConsumeResult:
        """Atomically add amount unless consumption already reached ceiling.

        The stored total is clamped to ceiling, so the last partial unit of a
        budget is absorbed instead of rejected.

        Args:
            identity: Identity the consumption belongs to.
            amount: Non-negative amount to add.
            ceiling: Policy maximum for this identity.

        Returns:
            ConsumeResult describing whether the amount was applied.
        """
        raise NotImplementedError

    @abstractmethod
    async def reset(self, identity: str) -> None:
        """Drop consumption for identity back to zero."""
        raise NotImplementedError

    @abstractmethod
    async def list_exempt_addresses(self) -> list[str]:
        """Return exempt addresses in insertion order."""
        raise NotImplementedError

    @abstractmethod
    async def add_exempt_address(self, address: str) -> bool:
        """Persist address as exempt. Returns False if it already was."""
        raise NotImplementedError

    @abstractmethod
    async def remove_exempt_address(self, address: str) -> bool:
        """Remove address from the list. Returns False if it was absent."""
        raise NotImplementedError

    async def ping(self) -> None:
        """Check the backend is reachable."""

    async def close(self) -> None:
        """Release backend resources."""
