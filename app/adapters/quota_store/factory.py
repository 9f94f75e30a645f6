"""Factory for creating the configured quota store."""

from app.adapters.quota_store.base import AbstractQuotaStore
from app.adapters.quota_store.in_memory import InMemoryQuotaStore
from app.adapters.quota_store.redis_store import RedisQuotaStore
from app.core.config import settings
from app.core.errors import ConfigurationAppError


def create_quota_store() -> AbstractQuotaStore:
    """Instantiate the quota store selected by QUOTA_STORE_BACKEND.

    Returns:
        AbstractQuotaStore: Configured store instance.

    Raises:
        ConfigurationAppError: If the Redis backend is selected without a URL.
    """
    backend = settings.quota.store_backend

    if backend == "memory":
        return InMemoryQuotaStore()

    if backend == "redis":
        if not settings.redis.url:
            raise ConfigurationAppError(
                code="redis_url_not_configured",
                message="Redis store selected but REDIS_URL is not configured",
                details={
                    "setting": "REDIS_URL",
                    "hint": "Set REDIS_URL or use QUOTA_STORE_BACKEND=memory for local runs",
                },
            )
        return RedisQuotaStore.from_url(
            settings.redis.url,
            key_prefix=settings.quota.key_prefix,
            timeout_seconds=settings.redis.timeout_seconds,
        )

    raise ConfigurationAppError(
        code="unknown_store_backend",
        message=f"Unknown quota store backend: '{backend}'. Supported backends: redis, memory",
        details={"setting": "QUOTA_STORE_BACKEND"},
    )
