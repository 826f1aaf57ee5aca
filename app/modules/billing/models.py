"""Credit ledger ORM models.

Rows here are owned by the ledger procedures; the booking core reads and
writes them only through ``app.modules.billing.ledger``.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin, value_enum
from app.core.enums import CreditTierEnum


class LessonCredit(BaseModelMixin, Base):
    """Unused included lessons per student and plan tier."""

    __tablename__ = "lesson_credits"
    __table_args__ = (CheckConstraint("credits_remaining >= 0", name="credits_non_negative"),)

    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tier: Mapped[CreditTierEnum] = mapped_column(
        value_enum(CreditTierEnum, "credit_tier_enum"),
        nullable=False,
    )
    credits_remaining: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    credits_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class FirstTimeConsultation(BaseModelMixin, Base):
    """Free first-time consultation entitlement."""

    __tablename__ = "first_time_consultations"

    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    claimed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    booking_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("lesson_bookings.id", ondelete="SET NULL"),
        nullable=True,
    )
