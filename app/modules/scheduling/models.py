"""Scheduling ORM models."""

from __future__ import annotations

from datetime import time

from sqlalchemy import Boolean, CheckConstraint, SmallInteger, Time
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin


class AvailabilityWindow(BaseModelMixin, Base):
    """Recurring teacher working hours; day_of_week 0 is Sunday."""

    __tablename__ = "teacher_availability"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="day_of_week_range"),
        CheckConstraint("end_time > start_time", name="window_order"),
    )

    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
