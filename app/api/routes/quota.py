from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.quota import get_connection_metadata, get_quota_tracker, resolve_identity
from app.schemas.quota import (
    ClientAddressResponse,
    QuotaStatusResponse,
    RecordUsageRequest,
    RecordUsageResponse,
)
from app.services.identity import ConnectionMetadata, extract_client_address
from app.services.quota_tracker import QuotaTracker

router = APIRouter(tags=["Quota"])


@router.get("/quota", response_model=QuotaStatusResponse)
async def get_quota_status(
    identity: Annotated[str, Depends(resolve_identity)],
    tracker: Annotated[QuotaTracker, Depends(get_quota_tracker)],
) -> QuotaStatusResponse:
    """Check whether the caller may start a voice session.

    Called by the voice widget before the session handshake. A store outage
    yields ``allowed=false`` with ``state="unavailable"`` so the widget can
    show a retry-later message instead of "no calls remaining".
    """
    status = await tracker.check_available(identity)
    return QuotaStatusResponse.from_status(status)


@router.post("/quota/usage", response_model=RecordUsageResponse)
async def record_usage(
    payload: RecordUsageRequest,
    identity: Annotated[str, Depends(resolve_identity)],
    tracker: Annotated[QuotaTracker, Depends(get_quota_tracker)],
) -> RecordUsageResponse:
    """Record consumption when a session ends or periodically while it runs.

    Not idempotent: retries must be de-duplicated by the caller. Returns
    ``success=false`` when no quota was left; a 503 means nothing was recorded.
    """
    result = await tracker.record_usage(identity, payload.amount)
    return RecordUsageResponse.from_result(result)


@router.get("/client-ip", response_model=ClientAddressResponse)
async def get_client_ip(
    metadata: Annotated[ConnectionMetadata, Depends(get_connection_metadata)],
) -> ClientAddressResponse:
    """Return the caller's address so an admin can copy it into the exempt list."""
    return ClientAddressResponse(ip=extract_client_address(metadata))
