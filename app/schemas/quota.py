"""Pydantic schemas for quota endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.services.quota_tracker import QuotaState, QuotaStatus, QuotaUnit, UsageResult


class QuotaStatusResponse(BaseModel):
    """Whether the caller may start a voice session right now."""

    allowed: bool = Field(..., description="True when a new session may start.")
    remaining: int = Field(..., description="Quota left, in `unit`.", ge=0)
    limit: int = Field(..., description="Configured maximum per visitor, in `unit`.")
    unit: QuotaUnit = Field(..., description="'calls' or 'seconds'.")
    state: QuotaState = Field(
        ...,
        description=(
            "available | exhausted | exempt | disabled | unavailable. "
            "'exhausted' means no quota left; 'unavailable' means the store could not be read."
        ),
    )

    @classmethod
    def from_status(cls, status: QuotaStatus) -> "QuotaStatusResponse":
        return cls(
            allowed=status.allowed,
            remaining=status.remaining,
            limit=status.limit,
            unit=status.unit,
            state=status.state,
        )


class RecordUsageRequest(BaseModel):
    amount: int = Field(
        1,
        description="Consumption to record: 1 per call, or elapsed whole seconds.",
        ge=0,
    )


class RecordUsageResponse(BaseModel):
    """Outcome of recording consumption. success=false means no quota was left."""

    success: bool
    remaining: int = Field(..., ge=0)
    limit: int
    unit: QuotaUnit
    state: QuotaState

    @classmethod
    def from_result(cls, result: UsageResult) -> "RecordUsageResponse":
        return cls(
            success=result.success,
            remaining=result.remaining,
            limit=result.limit,
            unit=result.unit,
            state=result.state,
        )


class ClientAddressResponse(BaseModel):
    ip: str = Field(..., description="Source address as seen through the proxy headers.")
