from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.quota import QuotaComponents, get_quota_components

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe. Does not touch the store."""

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(
    components: Annotated[QuotaComponents, Depends(get_quota_components)],
) -> dict:
    """Readiness probe: pings the quota store.

    Raises:
        StoreUnavailableError: 503 when the store cannot be reached.
    """
    await components.store.ping()
    return {
        "status": "ok",
        "exemption_cache": components.registry.cache.stats(),
    }
