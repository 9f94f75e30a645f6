"""Quota store adapters.

Counters and the exemption list live behind one abstract store so the
service can run against Redis in production and an in-process backend in
development and tests.
"""

from app.adapters.quota_store.base import AbstractQuotaStore, ConsumeResult, validate_amount
from app.adapters.quota_store.factory import create_quota_store
from app.adapters.quota_store.in_memory import InMemoryQuotaStore
from app.adapters.quota_store.redis_store import RedisQuotaStore

__all__ = [
    "AbstractQuotaStore",
    "ConsumeResult",
    "InMemoryQuotaStore",
    "RedisQuotaStore",
    "create_quota_store",
    "validate_amount",
]
