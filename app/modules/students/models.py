"""Student ORM models."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin, value_enum
from app.core.enums import StudentPlanEnum


class Student(BaseModelMixin, Base):
    """Student record filled in from the onboarding questionnaire."""

    __tablename__ = "students"

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    romaji_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    plan: Mapped[StudentPlanEnum | None] = mapped_column(
        value_enum(StudentPlanEnum, "student_plan_enum"),
        nullable=True,
    )
    line_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    @property
    def display_name(self) -> str:
        return self.romaji_name or self.full_name
