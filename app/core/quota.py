"""FastAPI dependencies exposing the quota components.

The components are built once per application in the lifespan handler and
parked on ``app.state``; routes only ever see them through these functions,
so tests can swap any of them by overriding the dependency.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from app.adapters.quota_store.base import AbstractQuotaStore
from app.core.config import Settings
from app.services.exemption_registry import ExemptionRegistry, parse_addresses
from app.services.identity import ConnectionMetadata, IdentityResolver, fingerprint_metadata
from app.services.quota_tracker import QuotaPolicy, QuotaTracker, QuotaUnit


@dataclass
class QuotaComponents:
    store: AbstractQuotaStore
    registry: ExemptionRegistry
    resolver: IdentityResolver
    tracker: QuotaTracker

    async def start(self) -> None:
        await self.registry.start()

    async def shutdown(self) -> None:
        await self.registry.stop()
        await self.store.close()


def build_quota_components(store: AbstractQuotaStore, cfg: Settings) -> QuotaComponents:
    """Wire registry, resolver and tracker around an existing store."""
    registry = ExemptionRegistry(
        store,
        ttl_seconds=cfg.quota.exemption_cache_ttl_seconds,
        default_addresses=parse_addresses(cfg.quota.default_exempt_addresses),
    )
    policy = QuotaPolicy(unit=QuotaUnit(cfg.quota.unit), maximum=cfg.quota.maximum)
    return QuotaComponents(
        store=store,
        registry=registry,
        resolver=IdentityResolver(registry),
        tracker=QuotaTracker(store, policy, enabled=cfg.quota.enabled),
    )


def get_quota_components(request: Request) -> QuotaComponents:
    return request.app.state.quota


def get_quota_tracker(request: Request) -> QuotaTracker:
    return get_quota_components(request).tracker


def get_exemption_registry(request: Request) -> ExemptionRegistry:
    return get_quota_components(request).registry


def get_connection_metadata(request: Request) -> ConnectionMetadata:
    return ConnectionMetadata.from_headers(request.headers)


def get_client_fingerprint(request: Request) -> str:
    """Fingerprint of the caller even when its address is exempt."""
    return fingerprint_metadata(get_connection_metadata(request))


async def resolve_identity(request: Request) -> str:
    """Resolve the caller's identity, reloading the exemption snapshot if stale."""
    components = get_quota_components(request)
    await components.registry.refresh_if_stale()
    return components.resolver.resolve(get_connection_metadata(request))
