"""Core enums used across modules."""

from enum import StrEnum


class LessonTypeEnum(StrEnum):
    """Kind of lesson a student asks to book."""

    STANDARD = "standard"
    RETENTION = "retention"
    FIRST_TIME_FREE = "first_time_free"


class StudentPlanEnum(StrEnum):
    """Subscription plan of a student."""

    A = "A"
    B = "B"
    C1 = "C1"
    C2 = "C2"


class CreditTierEnum(StrEnum):
    """Plan tier that carries included lesson credits."""

    LITE = "lite"
    PRO = "pro"


class FundingSourceEnum(StrEnum):
    """What pays for a booking."""

    PAID = "paid"
    RETENTION = "retention"
    FIRST_TIME = "first_time"
    INCLUDED_LITE = "included_lite"
    INCLUDED_PRO = "included_pro"

    @property
    def is_included(self) -> bool:
        return self in (FundingSourceEnum.INCLUDED_LITE, FundingSourceEnum.INCLUDED_PRO)


class BookingStatusEnum(StrEnum):
    """Booking lifecycle status."""

    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class PaymentStatusEnum(StrEnum):
    """Payment status of a booking."""

    PENDING = "pending"
    PAID = "paid"


class RefundStatusEnum(StrEnum):
    """Refund status stamped on cancellation."""

    NONE = "none"
    PENDING = "pending"


class BookingActionEnum(StrEnum):
    """Actions accepted by the lesson booking endpoint."""

    CREATE = "create"
    CANCEL = "cancel"
    GET_AVAILABLE_SLOTS = "getAvailableSlots"
