"""Booking orchestration: create, cancel and slot listing workflows.

A booking touches three systems that fail independently: the booking ledger
(this database), the credit ledger procedures and the external calendar.
Everything before the booking row is committed aborts the workflow and undoes
the calendar event; everything after is best-effort and reported back as
``SideEffectResult`` entries.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Protocol, TypeVar
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from fastapi import Depends
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import (
    BookingActionEnum,
    FundingSourceEnum,
    LessonTypeEnum,
    PaymentStatusEnum,
    RefundStatusEnum,
)
from app.core.metrics import record_side_effect, record_workflow
from app.modules.billing.ledger import CreditLedger, get_credit_ledger
from app.modules.booking.models import NO_OVERLAP_CONSTRAINT, Booking
from app.modules.booking.policy import evaluate_cancellation
from app.modules.booking.pricing import PriceQuote, PricingResolver
from app.modules.booking.repository import BookingRepository
from app.modules.booking.schemas import (
    AvailableSlotsResponse,
    BookingActionRequest,
    BookingCancelRequest,
    BookingCancelResponse,
    BookingCreateRequest,
    BookingCreateResponse,
    BookingRead,
    SideEffectResult,
)
from app.modules.calendar.gateway import CalendarGateway, get_calendar_gateway
from app.modules.calendar.schemas import CalendarEventCreate, CalendarEventRef
from app.modules.identity.service import Principal
from app.modules.notifications.channel import NotificationChannel, get_notification_channel
from app.modules.scheduling.repository import SchedulingRepository
from app.modules.scheduling.schemas import AvailableSlotsRequest
from app.modules.scheduling.service import SlotAvailabilityChecker
from app.modules.students.models import Student
from app.modules.students.repository import StudentRepository
from app.shared.exceptions import (
    CalendarException,
    ConflictException,
    InvalidActionException,
    InvalidPayloadException,
    NotFoundException,
    PersistenceException,
    SlotUnavailableException,
    UnauthenticatedException,
)
from app.shared.utils import add_minutes, utc_now

settings = get_settings()
logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)

PAYMENT_REQUIRED_MESSAGE = "Booking created - please complete payment"
CONFIRMED_MESSAGE = "Booking confirmed!"
CANCELLED_MESSAGE = "Booking cancelled successfully"


class BookingStore(Protocol):
    async def count_overlapping_scheduled(self, start_at: datetime, end_at: datetime) -> int: ...

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
    ) -> Booking: ...

    async def get_owned_booking(self, booking_id: UUID, user_id: UUID) -> Booking | None: ...

    async def mark_cancelled(
        self,
        booking: Booking,
        *,
        cancelled_at: datetime,
        cancelled_by: UUID,
        reason: str | None,
        refund_status: RefundStatusEnum,
    ) -> bool: ...

    async def list_bookings_for_user(
        self,
        user_id: UUID,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]: ...


class StudentStore(Protocol):
    async def get_student_by_id(self, student_id: UUID) -> Student | None: ...


def payment_status_for(price: int) -> PaymentStatusEnum:
    """Bookings with a price wait for payment; free ones are settled."""
    return PaymentStatusEnum.PENDING if price > 0 else PaymentStatusEnum.PAID


def _is_overlap_violation(exc: Exception) -> bool:
    return isinstance(exc, IntegrityError) and NO_OVERLAP_CONSTRAINT in str(exc.orig)


def _parse_payload(model: type[PayloadT], payload: dict[str, Any]) -> PayloadT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        first_error = exc.errors()[0]
        location = ".".join(str(part) for part in first_error["loc"])
        raise InvalidPayloadException(f"{location}: {first_error['msg']}") from exc


class BookingService:
    """Booking orchestrator with compensation on failed persistence."""

    def __init__(
        self,
        booking_repository: BookingStore,
        student_repository: StudentStore,
        slot_checker: SlotAvailabilityChecker,
        pricing_resolver: PricingResolver,
        calendar_gateway: CalendarGateway,
        credit_ledger: CreditLedger,
        notification_channel: NotificationChannel,
        *,
        default_duration_minutes: int | None = None,
        refund_window_hours: int | None = None,
        timezone: str | None = None,
        now_provider: Callable[[], datetime] = utc_now,
    ) -> None:
        self.booking_repository = booking_repository
        self.student_repository = student_repository
        self.slot_checker = slot_checker
        self.pricing_resolver = pricing_resolver
        self.calendar_gateway = calendar_gateway
        self.credit_ledger = credit_ledger
        self.notification_channel = notification_channel
        self.default_duration_minutes = default_duration_minutes or settings.booking_default_duration_minutes
        self.refund_window_hours = (
            refund_window_hours if refund_window_hours is not None else settings.booking_refund_window_hours
        )
        self.timezone = ZoneInfo(timezone or settings.booking_timezone)
        self.now_provider = now_provider

    async def dispatch(self, request: BookingActionRequest, principal: Principal | None) -> BaseModel:
        """Route an action envelope to its workflow."""
        try:
            action = BookingActionEnum(request.action)
        except ValueError as exc:
            raise InvalidActionException(f"Invalid action: {request.action}") from exc

        match action:
            case BookingActionEnum.CREATE:
                return await self.create_booking(_parse_payload(BookingCreateRequest, request.payload), principal)
            case BookingActionEnum.CANCEL:
                return await self.cancel_booking(_parse_payload(BookingCancelRequest, request.payload), principal)
            case BookingActionEnum.GET_AVAILABLE_SLOTS:
                slots_request = _parse_payload(AvailableSlotsRequest, request.payload)
                return await self.get_available_slots(slots_request)

    async def create_booking(
        self,
        payload: BookingCreateRequest,
        principal: Principal | None,
    ) -> BookingCreateResponse:
        """Check, price, create calendar event, persist, then run side effects."""
        try:
            booking, student = await self._commit_new_booking(payload, principal)
        except Exception:
            record_workflow(BookingActionEnum.CREATE, "aborted")
            raise
        record_workflow(BookingActionEnum.CREATE, "committed")

        side_effects = await self._run_post_create_effects(booking, student)
        return BookingCreateResponse(
            booking=BookingRead.model_validate(booking),
            message=PAYMENT_REQUIRED_MESSAGE if booking.price > 0 else CONFIRMED_MESSAGE,
            side_effects=side_effects,
        )

    async def _commit_new_booking(
        self,
        payload: BookingCreateRequest,
        principal: Principal | None,
    ) -> tuple[Booking, Student]:
        if principal is None:
            raise UnauthenticatedException("Not authenticated")

        student = await self.student_repository.get_student_by_id(payload.student_id)
        if student is None:
            raise NotFoundException("Student not found")

        duration = payload.duration or self.default_duration_minutes
        scheduled_at = payload.scheduled_at
        if not await self.slot_checker.is_available(scheduled_at, duration):
            raise SlotUnavailableException("This time slot is no longer available")

        quote = await self.pricing_resolver.resolve(payload.lesson_type, student.plan, student.id)

        booking_id = uuid4()
        event = await self._create_calendar_event(booking_id, student, payload, scheduled_at, duration)
        booking = await self._persist_booking(
            booking_id=booking_id,
            student=student,
            principal=principal,
            lesson_type=LessonTypeEnum(payload.lesson_type),
            scheduled_at=scheduled_at,
            duration=duration,
            quote=quote,
            event=event,
        )
        return booking, student

    async def _create_calendar_event(
        self,
        booking_id: UUID,
        student: Student,
        payload: BookingCreateRequest,
        scheduled_at: datetime,
        duration: int,
    ) -> CalendarEventRef:
        details = CalendarEventCreate(
            booking_id=booking_id,
            student_name=student.display_name,
            student_email=student.email,
            lesson_type=LessonTypeEnum(payload.lesson_type),
            duration=duration,
            start_time=scheduled_at,
            end_time=add_minutes(scheduled_at, duration),
        )
        try:
            return await self.calendar_gateway.create(details)
        except CalendarException:
            raise
        except Exception as exc:
            raise CalendarException("Failed to create calendar event") from exc

    async def _persist_booking(
        self,
        *,
        booking_id: UUID,
        student: Student,
        principal: Principal,
        lesson_type: LessonTypeEnum,
        scheduled_at: datetime,
        duration: int,
        quote: PriceQuote,
        event: CalendarEventRef,
    ) -> Booking:
        try:
            return await self.booking_repository.create_booking(
                booking_id=booking_id,
                student_id=student.id,
                user_id=principal.id,
                lesson_type=lesson_type,
                scheduled_at=scheduled_at,
                duration_minutes=duration,
                price=quote.price,
                payment_status=payment_status_for(quote.price),
                funding_source=quote.funding_source,
                google_calendar_event_id=event.event_id,
                google_meet_link=event.join_link,
            )
        except Exception as exc:
            await self._compensate_calendar_event(event.event_id, booking_id)
            if _is_overlap_violation(exc):
                raise SlotUnavailableException("This time slot is no longer available") from exc
            logger.error("Booking %s could not be persisted: %s", booking_id, exc)
            raise PersistenceException("Failed to save booking") from exc
        except BaseException:
            # Cancelled mid-insert: the row never committed, the event must not outlive it.
            await self._compensate_calendar_event(event.event_id, booking_id)
            raise

    async def _compensate_calendar_event(self, event_id: str, booking_id: UUID) -> None:
        try:
            await self.calendar_gateway.delete(event_id)
        except Exception:
            logger.exception(
                "Compensation failed: calendar event %s for unsaved booking %s was not deleted",
                event_id,
                booking_id,
            )
            record_side_effect("calendar_compensation", ok=False)
            return
        record_side_effect("calendar_compensation", ok=True)

    async def _run_post_create_effects(self, booking: Booking, student: Student) -> list[SideEffectResult]:
        results: list[SideEffectResult] = []

        if FundingSourceEnum(booking.funding_source).is_included:
            results.append(
                await self._run_side_effect(
                    "credit_debit",
                    lambda: self.credit_ledger.use_lesson_credit(booking.student_id),
                ),
            )

        if booking.lesson_type == LessonTypeEnum.FIRST_TIME_FREE:
            results.append(
                await self._run_side_effect(
                    "consultation_claim",
                    lambda: self.credit_ledger.mark_consultation_claimed(
                        booking.student_id,
                        booking.id,
                        self.now_provider(),
                    ),
                ),
            )

        if student.line_user_id:
            text = self._confirmation_text(booking, student)
            results.append(
                await self._run_side_effect(
                    "confirmation_notification",
                    lambda: self.notification_channel.send_text(student.line_user_id, text),
                ),
            )
        else:
            logger.info("Student %s has no messaging recipient; confirmation skipped", student.id)

        return results

    def _confirmation_text(self, booking: Booking, student: Student) -> str:
        local_start = booking.scheduled_at.astimezone(self.timezone)
        lines = [
            f"{student.display_name}, your lesson is booked for {local_start:%Y-%m-%d %H:%M}.",
            f"Duration: {booking.duration_minutes} minutes",
        ]
        if booking.google_meet_link:
            lines.append(f"Join: {booking.google_meet_link}")
        if booking.price > 0:
            lines.append("Payment is required to confirm this lesson.")
        return "\n".join(lines)

    async def _run_side_effect(
        self,
        name: str,
        operation: Callable[[], Awaitable[object]],
    ) -> SideEffectResult:
        try:
            await operation()
        except Exception as exc:
            logger.exception("Booking side effect %s failed", name)
            record_side_effect(name, ok=False)
            return SideEffectResult(name=name, ok=False, reason=str(exc) or exc.__class__.__name__)
        record_side_effect(name, ok=True)
        return SideEffectResult(name=name, ok=True)

    async def cancel_booking(
        self,
        payload: BookingCancelRequest,
        principal: Principal | None,
    ) -> BookingCancelResponse:
        """Cancel owned booking, then release calendar event and credit."""
        if principal is None:
            raise UnauthenticatedException("Not authenticated")

        booking = await self.booking_repository.get_owned_booking(payload.booking_id, principal.id)
        if booking is None:
            raise NotFoundException("Booking not found")

        now = self.now_provider()
        decision = evaluate_cancellation(
            scheduled_at=booking.scheduled_at,
            now=now,
            payment_status=booking.payment_status,
            price=booking.price,
            funding_source=booking.funding_source,
            refund_window_hours=self.refund_window_hours,
        )

        try:
            cancelled = await self.booking_repository.mark_cancelled(
                booking,
                cancelled_at=now,
                cancelled_by=principal.id,
                reason=payload.reason,
                refund_status=decision.refund_status,
            )
        except Exception as exc:
            record_workflow(BookingActionEnum.CANCEL, "aborted")
            raise PersistenceException("Failed to cancel booking") from exc
        if not cancelled:
            record_workflow(BookingActionEnum.CANCEL, "aborted")
            raise ConflictException("Booking is already cancelled")
        record_workflow(BookingActionEnum.CANCEL, "committed")

        side_effects: list[SideEffectResult] = []
        event_id = booking.google_calendar_event_id
        if event_id:
            side_effects.append(
                await self._run_side_effect("calendar_delete", lambda: self.calendar_gateway.delete(event_id)),
            )
        if decision.restore_credit:
            side_effects.append(
                await self._run_side_effect(
                    "credit_restore",
                    lambda: self.credit_ledger.restore_lesson_credit(booking.student_id),
                ),
            )

        return BookingCancelResponse(
            refund=decision.refund_message,
            refund_status=decision.refund_status,
            message=CANCELLED_MESSAGE,
            side_effects=side_effects,
        )

    async def get_available_slots(self, payload: AvailableSlotsRequest) -> AvailableSlotsResponse:
        """List bookable slots for a calendar date."""
        slots = await self.slot_checker.list_slots(payload.date)
        return AvailableSlotsResponse(slots=slots)

    async def list_bookings(
        self,
        principal: Principal,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        """List bookings owned by principal."""
        return await self.booking_repository.list_bookings_for_user(principal.id, limit, offset)


async def get_booking_service(
    session: AsyncSession = Depends(get_db_session),
    calendar_gateway: CalendarGateway = Depends(get_calendar_gateway),
    notification_channel: NotificationChannel = Depends(get_notification_channel),
    credit_ledger: CreditLedger = Depends(get_credit_ledger),
) -> BookingService:
    """Dependency provider for booking service."""
    booking_repository = BookingRepository(session)
    return BookingService(
        booking_repository=booking_repository,
        student_repository=StudentRepository(session),
        slot_checker=SlotAvailabilityChecker(booking_repository, SchedulingRepository(session)),
        pricing_resolver=PricingResolver(credit_ledger, standard_price=settings.booking_standard_price),
        calendar_gateway=calendar_gateway,
        credit_ledger=credit_ledger,
        notification_channel=notification_channel,
    )
