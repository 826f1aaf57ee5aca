"""Cancellation refund policy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.core.enums import FundingSourceEnum, PaymentStatusEnum, RefundStatusEnum
from app.shared.utils import hours_between

REFUND_PENDING_MESSAGE = "Refund will be processed within 3-5 business days"
NO_REFUND_MESSAGE = "No refund available (less than {hours} hours notice)"
NOT_APPLICABLE_MESSAGE = "N/A"


@dataclass(frozen=True, slots=True)
class CancellationDecision:
    hours_until: float
    refund_status: RefundStatusEnum
    restore_credit: bool
    has_refund_notice: bool
    refund_window_hours: int = 24

    @property
    def refund_message(self) -> str:
        if self.refund_status == RefundStatusEnum.PENDING:
            return REFUND_PENDING_MESSAGE
        if not self.has_refund_notice:
            return NO_REFUND_MESSAGE.format(hours=self.refund_window_hours)
        return NOT_APPLICABLE_MESSAGE


def evaluate_cancellation(
    *,
    scheduled_at: datetime,
    now: datetime,
    payment_status: PaymentStatusEnum,
    price: int,
    funding_source: FundingSourceEnum,
    refund_window_hours: int = 24,
) -> CancellationDecision:
    """Decide refund and credit restoration from notice given before the lesson.

    ``hours_until`` is negative for lessons that already started.
    """
    hours_until = hours_between(now, scheduled_at)
    has_refund_notice = hours_until >= refund_window_hours

    refund_status = RefundStatusEnum.NONE
    if payment_status == PaymentStatusEnum.PAID and price > 0 and has_refund_notice:
        refund_status = RefundStatusEnum.PENDING

    return CancellationDecision(
        hours_until=hours_until,
        refund_status=refund_status,
        restore_credit=FundingSourceEnum(funding_source).is_included and has_refund_notice,
        has_refund_notice=has_refund_notice,
        refund_window_hours=refund_window_hours,
    )
