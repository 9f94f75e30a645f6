from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.auth import verify_admin_password
from app.core.quota import get_exemption_registry, get_client_fingerprint, get_quota_tracker
from app.schemas.admin import (
    ExemptAddressesResponse,
    ExemptAddressRequest,
    ResetQuotaRequest,
    ResetQuotaResponse,
)
from app.services.exemption_registry import ExemptionRegistry
from app.services.quota_tracker import QuotaTracker

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(verify_admin_password)],
)

Registry = Annotated[ExemptionRegistry, Depends(get_exemption_registry)]


@router.get("/exempt-addresses", response_model=ExemptAddressesResponse)
async def list_exempt_addresses(registry: Registry) -> ExemptAddressesResponse:
    """List addresses that bypass the call quota."""
    return ExemptAddressesResponse(addresses=await registry.list_addresses())


@router.post("/exempt-addresses", response_model=ExemptAddressesResponse)
async def add_exempt_address(
    payload: ExemptAddressRequest,
    registry: Registry,
) -> ExemptAddressesResponse:
    """Exempt an address. Adding an address twice is not an error."""
    change = await registry.add(payload.address)
    message = "Address added to exempt list" if change.changed else "Address is already exempt"
    return ExemptAddressesResponse(message=message, addresses=change.addresses)


@router.delete("/exempt-addresses/{address}", response_model=ExemptAddressesResponse)
async def remove_exempt_address(address: str, registry: Registry) -> ExemptAddressesResponse:
    """Remove an address. Removing an unknown address is not an error."""
    change = await registry.remove(address)
    message = "Address removed from exempt list" if change.changed else "Address was not exempt"
    return ExemptAddressesResponse(message=message, addresses=change.addresses)


@router.post("/quota/reset", response_model=ResetQuotaResponse)
async def reset_quota(
    payload: ResetQuotaRequest,
    caller_identity: Annotated[str, Depends(get_client_fingerprint)],
    tracker: Annotated[QuotaTracker, Depends(get_quota_tracker)],
) -> ResetQuotaResponse:
    """Give an identity its full quota back (defaults to the caller's own)."""
    identity = payload.identity or caller_identity
    await tracker.reset(identity)
    return ResetQuotaResponse(success=True, identity=identity)
