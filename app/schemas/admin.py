"""Pydantic schemas for administrative endpoints."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class ExemptAddressRequest(BaseModel):
    address: str = Field(
        ...,
        description="IPv4 or IPv6 address to exempt from the call quota.",
        min_length=1,
        max_length=64,
    )


class ExemptAddressesResponse(BaseModel):
    message: str | None = Field(default=None, description="Outcome of a write, if any.")
    addresses: List[str] = Field(
        default_factory=list,
        description="Exempt addresses in the order they were added.",
    )


class ResetQuotaRequest(BaseModel):
    identity: str | None = Field(
        default=None,
        description="Identity to reset. Defaults to the identity of the calling client.",
        min_length=1,
    )


class ResetQuotaResponse(BaseModel):
    success: bool
    identity: str
