"""Scheduling repository layer."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.scheduling.models import AvailabilityWindow


class SchedulingRepository:
    """Read access to teacher availability windows."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_active_windows(self, day_of_week: int) -> list[AvailabilityWindow]:
        stmt = (
            select(AvailabilityWindow)
            .where(
                AvailabilityWindow.day_of_week == day_of_week,
                AvailabilityWindow.is_available.is_(True),
            )
            .order_by(AvailabilityWindow.start_time.asc())
        )
        return list((await self.session.scalars(stmt)).all())
