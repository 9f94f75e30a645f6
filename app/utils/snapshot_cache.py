"""In-process snapshot cache with TTL refresh and push invalidation.

Holds one value loaded by an async loader. Readers get the last good
snapshot without blocking. A snapshot is never older than one TTL while
the refresh loop is running or readers call `refresh_if_stale`; if a
refresh fails the previous snapshot keeps being served.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Generic, TypeVar

from app.core.errors import AppError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotCache(Generic[T]):
    """Cache for a single value refreshed from a slower source.

    Attributes:
        ttl_seconds: Maximum age of the snapshot before it is considered stale.
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[T]],
        *,
        fallback: T,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "snapshot",
    ) -> None:
        """Initialize the cache.

        Args:
            loader: Coroutine function returning a fresh value.
            fallback: Value served until the first successful load.
            ttl_seconds: Snapshot time-to-live.
            clock: Monotonic time source, injectable for tests.
            name: Label used in log events.

        Raises:
            ValueError: If ttl_seconds is not positive.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        self._loader = loader
        self._value = fallback
        self._ttl = ttl_seconds
        self._clock = clock
        self._name = name
        self._loaded_at: float | None = None
        self._invalidated = False
        self._failed_at: float | None = None
        self._refresh_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._refreshes = 0
        self._failures = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"SnapshotCache(name={self._name!r}, ttl_seconds={self._ttl}, "
            f"loaded={self.has_loaded}, refreshes={self._refreshes}, failures={self._failures})"
        )

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def value(self) -> T:
        """Return the current snapshot (last good value or the fallback)."""
        return self._value

    @property
    def has_loaded(self) -> bool:
        return self._loaded_at is not None

    def is_stale(self) -> bool:
        if self._loaded_at is None or self._invalidated:
            return True
        return self._clock() - self._loaded_at >= self._ttl

    def invalidate(self) -> None:
        """Mark the snapshot stale so the next refresh reloads it."""
        self._invalidated = True
        self._failed_at = None

    def replace(self, value: T) -> None:
        """Install a value that is known to be current (push update)."""
        self._value = value
        self._loaded_at = self._clock()
        self._invalidated = False

    async def refresh(self) -> bool:
        """Reload the snapshot from the loader.

        Returns:
            True if a new snapshot was installed, False if the load failed and
            the previous snapshot is still being served.
        """
        async with self._refresh_lock:
            return await self._load()

    async def _load(self) -> bool:
        try:
            value = await self._loader()
        except AppError as exc:
            self._failures += 1
            self._failed_at = self._clock()
            logger.warning(
                "snapshot.refresh_failed",
                extra={
                    "cache_name": self._name,
                    "error_code": exc.code,
                    "serving": "last_good" if self.has_loaded else "fallback",
                },
            )
            return False

        self.replace(value)
        self._refreshes += 1
        self._failed_at = None
        logger.debug("snapshot.refreshed", extra={"cache_name": self._name})
        return True

    def _wants_pull(self) -> bool:
        if not self.is_stale():
            return False
        return self._failed_at is None or self._clock() - self._failed_at >= self._ttl

    async def refresh_if_stale(self) -> bool:
        """Refresh only when the snapshot has expired or was invalidated.

        At most one pull refresh runs at a time. Callers arriving while a load
        is in flight return immediately and keep reading the current snapshot.
        After a failed load, pull refreshes back off for one TTL so an outage
        does not add a store round trip to every request; the periodic task
        keeps retrying.
        """
        if not self._wants_pull() or self._refresh_lock.locked():
            return False
        async with self._refresh_lock:
            if not self._wants_pull():
                return False
            return await self._load()

    async def start(self) -> None:
        """Load once and start the periodic refresh task."""
        if self._task is not None:
            return
        await self.refresh()
        self._task = asyncio.create_task(self._run(), name=f"{self._name}-refresh")
        logger.info(
            "snapshot.refresh_loop_started",
            extra={"cache_name": self._name, "ttl_s": self._ttl},
        )

    async def stop(self) -> None:
        """Cancel the periodic refresh task."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("snapshot.refresh_loop_stopped", extra={"cache_name": self._name})

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._ttl)
            try:
                await self.refresh()
            except Exception:
                # Keep the loop alive; the next tick retries.
                logger.exception("snapshot.refresh_crashed", extra={"cache_name": self._name})

    def stats(self) -> dict[str, int | float | bool]:
        """Return lightweight cache metrics without exposing the value."""
        return {
            "ttl_seconds": self._ttl,
            "loaded": self.has_loaded,
            "stale": self.is_stale(),
            "refreshes": self._refreshes,
            "failures": self._failures,
        }
