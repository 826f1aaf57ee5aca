"""Lesson pricing and eligibility rules."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from app.core.enums import CreditTierEnum, FundingSourceEnum, LessonTypeEnum, StudentPlanEnum
from app.modules.billing.ledger import CreditLedger
from app.shared.exceptions import IneligibleException, InvalidLessonTypeException

PLAN_CREDIT_TIERS: dict[StudentPlanEnum, CreditTierEnum] = {
    StudentPlanEnum.C1: CreditTierEnum.LITE,
    StudentPlanEnum.C2: CreditTierEnum.PRO,
}

INCLUDED_FUNDING: dict[CreditTierEnum, FundingSourceEnum] = {
    CreditTierEnum.LITE: FundingSourceEnum.INCLUDED_LITE,
    CreditTierEnum.PRO: FundingSourceEnum.INCLUDED_PRO,
}


@dataclass(frozen=True, slots=True)
class PriceQuote:
    price: int
    funding_source: FundingSourceEnum


class PricingResolver:
    """Resolve price and funding source for a requested lesson."""

    def __init__(self, credit_ledger: CreditLedger, *, standard_price: int) -> None:
        self.credit_ledger = credit_ledger
        self.standard_price = standard_price

    async def resolve(
        self,
        lesson_type: LessonTypeEnum | str,
        student_plan: StudentPlanEnum | None,
        student_id: UUID,
    ) -> PriceQuote:
        try:
            lesson_type = LessonTypeEnum(lesson_type)
        except ValueError as exc:
            raise InvalidLessonTypeException(f"Invalid lesson type: {lesson_type}") from exc

        match lesson_type:
            case LessonTypeEnum.STANDARD:
                return await self._resolve_standard(student_plan, student_id)
            case LessonTypeEnum.RETENTION:
                return PriceQuote(price=0, funding_source=FundingSourceEnum.RETENTION)
            case LessonTypeEnum.FIRST_TIME_FREE:
                if not await self.credit_ledger.is_eligible_for_consultation(student_id):
                    raise IneligibleException("Not eligible for first-time consultation")
                return PriceQuote(price=0, funding_source=FundingSourceEnum.FIRST_TIME)

    async def _resolve_standard(self, student_plan: StudentPlanEnum | None, student_id: UUID) -> PriceQuote:
        tier = PLAN_CREDIT_TIERS.get(student_plan) if student_plan is not None else None
        if tier is not None and await self.credit_ledger.get_available_credits(student_id) > 0:
            return PriceQuote(price=0, funding_source=INCLUDED_FUNDING[tier])
        return PriceQuote(price=self.standard_price, funding_source=FundingSourceEnum.PAID)
