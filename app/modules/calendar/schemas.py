"""Calendar gateway schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.core.enums import LessonTypeEnum


class CalendarEventCreate(BaseModel):
    """Details for a lesson event; booking_id doubles as idempotency key."""

    booking_id: UUID
    student_name: str
    student_email: str
    lesson_type: LessonTypeEnum
    duration: int
    start_time: datetime
    end_time: datetime


class CalendarEventRef(BaseModel):
    """Created event reference."""

    event_id: str
    join_link: str | None = None
