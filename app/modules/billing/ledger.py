"""Credit ledger client.

The ledger exposes its balance operations as database procedures. Each call
runs in its own short transaction so a ledger failure never leaks into the
booking session.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import get_session_factory
from app.modules.billing.models import FirstTimeConsultation


class CreditLedger(Protocol):
    """Remote procedures owned by the credit ledger."""

    async def get_available_credits(self, student_id: UUID) -> int:
        """Return unused included lessons for student."""

    async def is_eligible_for_consultation(self, student_id: UUID) -> bool:
        """Return True if student can still claim the free consultation."""

    async def use_lesson_credit(self, student_id: UUID) -> None:
        """Debit one included lesson."""

    async def restore_lesson_credit(self, student_id: UUID) -> None:
        """Credit back one included lesson."""

    async def mark_consultation_claimed(
        self,
        student_id: UUID,
        booking_id: UUID,
        claimed_at: datetime,
    ) -> None:
        """Record that the free consultation was used by booking."""


class SqlCreditLedger:
    """Credit ledger backed by PostgreSQL procedures."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_available_credits(self, student_id: UUID) -> int:
        async with self.session_factory() as session:
            value = await session.scalar(select(func.get_available_credits(student_id)))
        return max(int(value or 0), 0)

    async def is_eligible_for_consultation(self, student_id: UUID) -> bool:
        async with self.session_factory() as session:
            value = await session.scalar(select(func.is_eligible_for_consultation(student_id)))
        return bool(value)

    async def use_lesson_credit(self, student_id: UUID) -> None:
        async with self.session_factory() as session, session.begin():
            await session.execute(select(func.use_lesson_credit(student_id)))

    async def restore_lesson_credit(self, student_id: UUID) -> None:
        async with self.session_factory() as session, session.begin():
            await session.execute(select(func.restore_lesson_credit(student_id)))

    async def mark_consultation_claimed(
        self,
        student_id: UUID,
        booking_id: UUID,
        claimed_at: datetime,
    ) -> None:
        stmt = (
            insert(FirstTimeConsultation)
            .values(student_id=student_id, claimed=True, claimed_at=claimed_at, booking_id=booking_id)
            .on_conflict_do_update(
                index_elements=[FirstTimeConsultation.student_id],
                set_={
                    "claimed": True,
                    "claimed_at": claimed_at,
                    "booking_id": booking_id,
                    "updated_at": func.now(),
                },
            )
        )
        async with self.session_factory() as session, session.begin():
            await session.execute(stmt)


def get_credit_ledger() -> CreditLedger:
    """Dependency provider for the credit ledger client."""
    return SqlCreditLedger(get_session_factory())
