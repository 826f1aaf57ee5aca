"""Student repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.students.models import Student


class StudentRepository:
    """Read access to student records."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_student_by_id(self, student_id: UUID) -> Student | None:
        stmt = select(Student).where(Student.id == student_id)
        return await self.session.scalar(stmt)
