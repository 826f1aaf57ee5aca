from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any
from uuid import UUID, uuid4

from app.core.enums import (
    BookingStatusEnum,
    FundingSourceEnum,
    LessonTypeEnum,
    PaymentStatusEnum,
    RefundStatusEnum,
    StudentPlanEnum,
)
from app.modules.booking.pricing import PricingResolver
from app.modules.booking.service import BookingService
from app.modules.calendar.schemas import CalendarEventCreate, CalendarEventRef
from app.modules.scheduling.service import SlotAvailabilityChecker


@dataclass
class FakeStudent:
    id: UUID
    full_name: str
    email: str
    plan: StudentPlanEnum | None = None
    romaji_name: str | None = None
    line_user_id: str | None = None

    @property
    def display_name(self) -> str:
        return self.romaji_name or self.full_name


@dataclass
class FakeBooking:
    id: UUID
    student_id: UUID
    user_id: UUID
    lesson_type: LessonTypeEnum
    scheduled_at: datetime
    ends_at: datetime
    duration_minutes: int
    price: int
    payment_status: PaymentStatusEnum
    funding_source: FundingSourceEnum
    google_calendar_event_id: str | None = None
    google_meet_link: str | None = None
    status: BookingStatusEnum = BookingStatusEnum.SCHEDULED
    cancelled_at: datetime | None = None
    cancelled_by: UUID | None = None
    cancellation_reason: str | None = None
    refund_status: RefundStatusEnum | None = None


@dataclass
class FakeWindow:
    day_of_week: int
    start_time: time
    end_time: time
    is_available: bool = True


class FakeBookingRepository:
    def __init__(self, bookings: dict[UUID, FakeBooking] | None = None) -> None:
        self.bookings: dict[UUID, FakeBooking] = bookings or {}
        self.create_error: BaseException | None = None
        self.cancel_error: Exception | None = None

    async def count_overlapping_scheduled(self, start_at: datetime, end_at: datetime) -> int:
        return sum(
            1
            for booking in self.bookings.values()
            if booking.status == BookingStatusEnum.SCHEDULED
            and booking.scheduled_at < end_at
            and booking.ends_at > start_at
        )

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
    ) -> FakeBooking:
        if self.create_error is not None:
            raise self.create_error
        booking = FakeBooking(
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
        )
        self.bookings[booking.id] = booking
        return booking

    async def get_owned_booking(self, booking_id: UUID, user_id: UUID) -> FakeBooking | None:
        booking = self.bookings.get(booking_id)
        if booking is None or booking.user_id != user_id:
            return None
        return booking

    async def mark_cancelled(
        self,
        booking: FakeBooking,
        *,
        cancelled_at: datetime,
        cancelled_by: UUID,
        reason: str | None,
        refund_status: RefundStatusEnum,
    ) -> bool:
        if self.cancel_error is not None:
            raise self.cancel_error
        if booking.status != BookingStatusEnum.SCHEDULED:
            return False
        booking.status = BookingStatusEnum.CANCELLED
        booking.cancelled_at = cancelled_at
        booking.cancelled_by = cancelled_by
        booking.cancellation_reason = reason
        booking.refund_status = refund_status
        return True

    async def list_bookings_for_user(
        self,
        user_id: UUID,
        limit: int,
        offset: int,
    ) -> tuple[list[FakeBooking], int]:
        owned = sorted(
            (booking for booking in self.bookings.values() if booking.user_id == user_id),
            key=lambda booking: booking.scheduled_at,
            reverse=True,
        )
        return owned[offset : offset + limit], len(owned)


class FakeStudentRepository:
    def __init__(self, students: list[FakeStudent]) -> None:
        self.students = {student.id: student for student in students}

    async def get_student_by_id(self, student_id: UUID) -> FakeStudent | None:
        return self.students.get(student_id)


class FakeSchedulingRepository:
    def __init__(self, windows: list[FakeWindow] | None = None) -> None:
        self.windows = windows or []

    async def list_active_windows(self, day_of_week: int) -> list[FakeWindow]:
        return sorted(
            (w for w in self.windows if w.day_of_week == day_of_week and w.is_available),
            key=lambda w: w.start_time,
        )


class FakeCreditLedger:
    def __init__(self, credits: dict[UUID, int] | None = None, claimed: set[UUID] | None = None) -> None:
        self.credits = credits or {}
        self.claimed = claimed or set()
        self.debit_error: Exception | None = None
        self.restore_error: Exception | None = None
        self.claim_calls: list[tuple[UUID, UUID, datetime]] = []
        self.debit_calls = 0
        self.restore_calls = 0

    async def get_available_credits(self, student_id: UUID) -> int:
        return self.credits.get(student_id, 0)

    async def is_eligible_for_consultation(self, student_id: UUID) -> bool:
        return student_id not in self.claimed

    async def use_lesson_credit(self, student_id: UUID) -> None:
        self.debit_calls += 1
        if self.debit_error is not None:
            raise self.debit_error
        self.credits[student_id] = self.credits.get(student_id, 0) - 1

    async def restore_lesson_credit(self, student_id: UUID) -> None:
        self.restore_calls += 1
        if self.restore_error is not None:
            raise self.restore_error
        self.credits[student_id] = self.credits.get(student_id, 0) + 1

    async def mark_consultation_claimed(self, student_id: UUID, booking_id: UUID, claimed_at: datetime) -> None:
        self.claim_calls.append((student_id, booking_id, claimed_at))
        self.claimed.add(student_id)


class FakeCalendarGateway:
    def __init__(self) -> None:
        self.events: dict[str, CalendarEventCreate] = {}
        self.deleted: list[str] = []
        self.create_error: Exception | None = None
        self.delete_error: Exception | None = None

    async def create(self, details: CalendarEventCreate) -> CalendarEventRef:
        if self.create_error is not None:
            raise self.create_error
        event_id = f"evt-{uuid4().hex[:8]}"
        self.events[event_id] = details
        return CalendarEventRef(event_id=event_id, join_link=f"https://meet.google.com/{event_id}")

    async def update(self, event_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        return {"id": event_id, **changes}

    async def delete(self, event_id: str) -> bool:
        self.deleted.append(event_id)
        if self.delete_error is not None:
            raise self.delete_error
        self.events.pop(event_id, None)
        return True


class FakeNotificationChannel:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.error: Exception | None = None

    async def send_text(self, recipient: str, text: str) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((recipient, text))


@dataclass
class ServiceHarness:
    service: BookingService
    bookings: FakeBookingRepository
    ledger: FakeCreditLedger
    calendar: FakeCalendarGateway
    notifications: FakeNotificationChannel
    scheduling: FakeSchedulingRepository
    students: list[FakeStudent] = field(default_factory=list)


def make_service(
    *,
    now: datetime,
    students: list[FakeStudent],
    ledger: FakeCreditLedger | None = None,
    bookings: dict[UUID, FakeBooking] | None = None,
    windows: list[FakeWindow] | None = None,
) -> ServiceHarness:
    booking_repo = FakeBookingRepository(bookings)
    scheduling_repo = FakeSchedulingRepository(windows)
    credit_ledger = ledger or FakeCreditLedger()
    calendar = FakeCalendarGateway()
    notifications = FakeNotificationChannel()
    service = BookingService(
        booking_repository=booking_repo,
        student_repository=FakeStudentRepository(students),
        slot_checker=SlotAvailabilityChecker(
            booking_repo,
            scheduling_repo,
            timezone="Asia/Tokyo",
            slot_duration_minutes=50,
        ),
        pricing_resolver=PricingResolver(credit_ledger, standard_price=4000),
        calendar_gateway=calendar,
        credit_ledger=credit_ledger,
        notification_channel=notifications,
        default_duration_minutes=50,
        refund_window_hours=24,
        timezone="Asia/Tokyo",
        now_provider=lambda: now,
    )
    return ServiceHarness(
        service=service,
        bookings=booking_repo,
        ledger=credit_ledger,
        calendar=calendar,
        notifications=notifications,
        scheduling=scheduling_repo,
        students=students,
    )


def make_booking(
    *,
    user_id: UUID,
    student_id: UUID,
    scheduled_at: datetime,
    price: int = 4000,
    payment_status: PaymentStatusEnum = PaymentStatusEnum.PENDING,
    funding_source: FundingSourceEnum = FundingSourceEnum.PAID,
    lesson_type: LessonTypeEnum = LessonTypeEnum.STANDARD,
    event_id: str | None = "evt-existing",
    duration_minutes: int = 50,
) -> FakeBooking:
    return FakeBooking(
        id=uuid4(),
        student_id=student_id,
        user_id=user_id,
        lesson_type=lesson_type,
        scheduled_at=scheduled_at,
        ends_at=scheduled_at + timedelta(minutes=duration_minutes),
        duration_minutes=duration_minutes,
        price=price,
        payment_status=payment_status,
        funding_source=funding_source,
        google_calendar_event_id=event_id,
        google_meet_link=f"https://meet.google.com/{event_id}" if event_id else None,
    )


def next_weekday(start: date, weekday: int) -> date:
    """Next date on or after start whose Sunday-based weekday matches."""
    offset = (weekday - start.isoweekday() % 7) % 7
    return start + timedelta(days=offset)
