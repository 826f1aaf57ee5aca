"""Booking schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, AwareDatetime, BaseModel, ConfigDict, Field

from app.core.enums import (
    BookingStatusEnum,
    FundingSourceEnum,
    LessonTypeEnum,
    PaymentStatusEnum,
    RefundStatusEnum,
)
from app.modules.scheduling.schemas import SlotRead


class BookingActionRequest(BaseModel):
    """Envelope accepted by the lesson booking endpoint."""

    action: str
    payload: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("payload", "bookingData"),
    )


class BookingCreateRequest(BaseModel):
    """create payload."""

    model_config = ConfigDict(populate_by_name=True)

    student_id: UUID = Field(alias="studentId")
    scheduled_at: AwareDatetime = Field(alias="scheduledAt")
    lesson_type: str = Field(alias="lessonType", min_length=1, max_length=64)
    duration: int | None = Field(default=None, ge=1, le=240)


class BookingCancelRequest(BaseModel):
    """cancel payload."""

    model_config = ConfigDict(populate_by_name=True)

    booking_id: UUID = Field(alias="bookingId")
    reason: str | None = Field(default=None, max_length=512)


class BookingRead(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    user_id: UUID
    lesson_type: LessonTypeEnum
    scheduled_at: datetime
    duration_minutes: int
    price: int
    payment_status: PaymentStatusEnum
    funding_source: FundingSourceEnum
    google_calendar_event_id: str | None
    google_meet_link: str | None
    status: BookingStatusEnum
    cancelled_at: datetime | None
    cancelled_by: UUID | None
    cancellation_reason: str | None
    refund_status: RefundStatusEnum | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SideEffectResult(BaseModel):
    """Outcome of a best-effort step run after the commit point."""

    name: str
    ok: bool
    reason: str | None = None


class BookingCreateResponse(BaseModel):
    success: bool = True
    booking: BookingRead
    message: str
    side_effects: list[SideEffectResult] = Field(default_factory=list)


class BookingCancelResponse(BaseModel):
    success: bool = True
    refund: str
    refund_status: RefundStatusEnum
    message: str
    side_effects: list[SideEffectResult] = Field(default_factory=list)


class AvailableSlotsResponse(BaseModel):
    success: bool = True
    slots: list[SlotRead]
