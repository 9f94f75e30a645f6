"""Allow-list of network addresses that bypass the call quota.

The list is persisted in the quota store and read through a process-local
snapshot. Admin writes replace the snapshot immediately; changes made by
other server instances become visible within one TTL.
"""

from __future__ import annotations

import ipaddress
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from app.adapters.quota_store.base import AbstractQuotaStore
from app.core.errors import ValidationAppError
from app.utils.snapshot_cache import SnapshotCache

logger = logging.getLogger(__name__)


def parse_addresses(addresses: str | None) -> list[str]:
    """Parse a comma-separated address list, dropping blanks and duplicates.

    Examples:
        >>> parse_addresses("127.0.0.1, ::1,127.0.0.1")
        ['127.0.0.1', '::1']
        >>> parse_addresses(None)
        []
    """
    if not addresses:
        return []
    parsed = (item.strip() for item in addresses.split(","))
    return list(dict.fromkeys(item for item in parsed if item))


def normalize_address(address: str) -> str:
    """Validate an IPv4/IPv6 address and return its canonical text form.

    Raises:
        ValidationAppError: If the value is not an IP address.
    """
    try:
        return str(ipaddress.ip_address(address.strip()))
    except ValueError as exc:
        raise ValidationAppError(
            code="invalid_address",
            message="Address must be a valid IPv4 or IPv6 address",
            details={"address": address[:64]},
        ) from exc


@dataclass(frozen=True)
class ExemptionChange:
    """Result of an admin write: the updated list and whether it changed."""

    addresses: list[str]
    changed: bool


class ExemptionRegistry:
    """Cached exemption list with explicit start/stop lifecycle."""

    def __init__(
        self,
        store: AbstractQuotaStore,
        *,
        ttl_seconds: float = 60.0,
        default_addresses: Iterable[str] = ("127.0.0.1",),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._cache: SnapshotCache[frozenset[str]] = SnapshotCache(
            self._load,
            fallback=frozenset(default_addresses),
            ttl_seconds=ttl_seconds,
            clock=clock,
            name="exemptions",
        )

    @property
    def cache(self) -> SnapshotCache[frozenset[str]]:
        return self._cache

    async def _load(self) -> frozenset[str]:
        return frozenset(await self._store.list_exempt_addresses())

    async def start(self) -> None:
        await self._cache.start()

    async def stop(self) -> None:
        await self._cache.stop()

    async def refresh_if_stale(self) -> None:
        await self._cache.refresh_if_stale()

    def is_exempt(self, address: str) -> bool:
        """Check the in-memory snapshot. Never touches the store."""
        try:
            canonical = str(ipaddress.ip_address(address.strip()))
        except ValueError:
            return False  # stored entries are always valid addresses
        return canonical in self._cache.value

    async def list_addresses(self) -> list[str]:
        """Read the authoritative list from the store and refresh the snapshot."""
        addresses = await self._store.list_exempt_addresses()
        self._cache.replace(frozenset(addresses))
        return addresses

    async def add(self, address: str) -> ExemptionChange:
        """Add an address. Adding an existing member is a no-op success."""
        address = normalize_address(address)
        added = await self._store.add_exempt_address(address)
        self._cache.invalidate()
        addresses = await self.list_addresses()
        logger.info(
            "exemption.added" if added else "exemption.duplicate",
            extra={"entries": len(addresses)},
        )
        return ExemptionChange(addresses=addresses, changed=added)

    async def remove(self, address: str) -> ExemptionChange:
        """Remove an address. Removing a non-member is a no-op success."""
        address = normalize_address(address)
        removed = await self._store.remove_exempt_address(address)
        self._cache.invalidate()
        addresses = await self.list_addresses()
        logger.info(
            "exemption.removed" if removed else "exemption.not_found",
            extra={"entries": len(addresses)},
        )
        return ExemptionChange(addresses=addresses, changed=removed)
