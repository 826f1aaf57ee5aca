"""Booking ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin, value_enum
from app.core.enums import (
    BookingStatusEnum,
    FundingSourceEnum,
    LessonTypeEnum,
    PaymentStatusEnum,
    RefundStatusEnum,
)

if TYPE_CHECKING:
    from app.modules.students.models import Student

# Name of the EXCLUDE USING gist constraint created by the migration.
NO_OVERLAP_CONSTRAINT = "ex_lesson_bookings_no_overlap"


class Booking(BaseModelMixin, Base):
    """Scheduled lesson booking."""

    __tablename__ = "lesson_bookings"
    __table_args__ = (
        CheckConstraint("price >= 0", name="price_non_negative"),
        CheckConstraint("ends_at > scheduled_at", name="interval_order"),
        CheckConstraint(
            "(price > 0 AND payment_status = 'pending') OR (price = 0 AND payment_status = 'paid')",
            name="payment_matches_price",
        ),
    )

    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("students.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    lesson_type: Mapped[LessonTypeEnum] = mapped_column(
        value_enum(LessonTypeEnum, "lesson_type_enum"),
        nullable=False,
    )
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=50, nullable=False)

    price: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_status: Mapped[PaymentStatusEnum] = mapped_column(
        value_enum(PaymentStatusEnum, "booking_payment_status_enum"),
        nullable=False,
    )
    funding_source: Mapped[FundingSourceEnum] = mapped_column(
        value_enum(FundingSourceEnum, "funding_source_enum"),
        nullable=False,
    )

    google_calendar_event_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    google_meet_link: Mapped[str | None] = mapped_column(String(512), nullable=True)

    status: Mapped[BookingStatusEnum] = mapped_column(
        value_enum(BookingStatusEnum, "booking_status_enum"),
        default=BookingStatusEnum.SCHEDULED,
        nullable=False,
        index=True,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    refund_status: Mapped[RefundStatusEnum | None] = mapped_column(
        value_enum(RefundStatusEnum, "refund_status_enum"),
        nullable=True,
    )

    student: Mapped["Student"] = relationship()
