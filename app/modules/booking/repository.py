"""Booking repository layer."""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import (
    BookingStatusEnum,
    FundingSourceEnum,
    LessonTypeEnum,
    PaymentStatusEnum,
    RefundStatusEnum,
)
from app.modules.booking.models import Booking


class BookingRepository:
    """DB operations for the booking ledger."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def count_overlapping_scheduled(self, start_at: datetime, end_at: datetime) -> int:
        # Half-open intervals: touching bookings do not overlap.
        stmt = select(func.count()).where(
            Booking.status == BookingStatusEnum.SCHEDULED,
            Booking.scheduled_at < end_at,
            Booking.ends_at > start_at,
        )
        return int((await self.session.scalar(stmt)) or 0)

    async def create_booking(
        self,
        booking_id: UUID,
        student_id: UUID,
        user_id: UUID,
        lesson_type: LessonTypeEnum,
        scheduled_at: datetime,
        duration_minutes: int,
        price: int,
        payment_status: PaymentStatusEnum,
        funding_source: FundingSourceEnum,
        google_calendar_event_id: str,
        google_meet_link: str | None,
    ) -> Booking:
        """Insert scheduled booking and commit; rolls the session back on failure."""
        booking = Booking(
            id=booking_id,
            student_id=student_id,
            user_id=user_id,
            lesson_type=lesson_type,
            scheduled_at=scheduled_at,
            ends_at=scheduled_at + timedelta(minutes=duration_minutes),
            duration_minutes=duration_minutes,
            price=price,
            payment_status=payment_status,
            funding_source=funding_source,
            google_calendar_event_id=google_calendar_event_id,
            google_meet_link=google_meet_link,
            status=BookingStatusEnum.SCHEDULED,
        )
        self.session.add(booking)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return booking

    async def get_owned_booking(self, booking_id: UUID, user_id: UUID) -> Booking | None:
        stmt = select(Booking).where(Booking.id == booking_id, Booking.user_id == user_id)
        return await self.session.scalar(stmt)

    async def list_bookings_for_user(
        self,
        user_id: UUID,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        base_stmt: Select[tuple[Booking]] = select(Booking).where(Booking.user_id == user_id)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Booking.scheduled_at.desc()).limit(limit).offset(offset)
        items = list((await self.session.scalars(stmt)).all())
        return items, total

    async def mark_cancelled(
        self,
        booking: Booking,
        *,
        cancelled_at: datetime,
        cancelled_by: UUID,
        reason: str | None,
        refund_status: RefundStatusEnum,
    ) -> bool:
        """Move scheduled booking to cancelled and commit.

        Returns False when the row was no longer scheduled, so a booking is
        cancelled at most once even under concurrent requests.
        """
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == BookingStatusEnum.SCHEDULED)
            .values(
                status=BookingStatusEnum.CANCELLED,
                cancelled_at=cancelled_at,
                cancelled_by=cancelled_by,
                cancellation_reason=reason,
                refund_status=refund_status,
            )
            .execution_options(synchronize_session="fetch")
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return result.rowcount == 1
