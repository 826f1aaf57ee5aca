"""Slot availability checking and slot generation."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Protocol
from zoneinfo import ZoneInfo

from app.core.config import get_settings
from app.modules.scheduling.models import AvailabilityWindow
from app.modules.scheduling.schemas import SlotRead
from app.shared.utils import add_minutes, ensure_utc

settings = get_settings()


class OverlapStore(Protocol):
    async def count_overlapping_scheduled(self, start_at: datetime, end_at: datetime) -> int:
        """Count scheduled bookings intersecting [start_at, end_at)."""


class AvailabilityStore(Protocol):
    async def list_active_windows(self, day_of_week: int) -> list[AvailabilityWindow]:
        """Return active windows for weekday (0 is Sunday)."""


def day_of_week(day: date) -> int:
    """Weekday number with Sunday as 0, matching stored availability windows."""
    return day.isoweekday() % 7


class SlotAvailabilityChecker:
    """Decide whether a start time is free and list bookable slots for a day.

    The overlap check is a plain read. Two concurrent create requests can both
    see a slot as free; the exclusion constraint on ``lesson_bookings`` rejects
    the second insert.
    """

    def __init__(
        self,
        booking_repository: OverlapStore,
        scheduling_repository: AvailabilityStore,
        *,
        timezone: str | None = None,
        slot_duration_minutes: int | None = None,
    ) -> None:
        self.booking_repository = booking_repository
        self.scheduling_repository = scheduling_repository
        self.timezone = ZoneInfo(timezone or settings.booking_timezone)
        self.slot_duration_minutes = slot_duration_minutes or settings.booking_default_duration_minutes

    async def is_available(self, start_at: datetime, duration_minutes: int) -> bool:
        """Return True iff no scheduled booking overlaps [start, start + duration)."""
        start_at = ensure_utc(start_at)
        end_at = add_minutes(start_at, duration_minutes)
        overlapping = await self.booking_repository.count_overlapping_scheduled(start_at, end_at)
        return overlapping == 0

    async def list_slots(self, day: date) -> list[SlotRead]:
        """Generate available hourly slots for day from active windows."""
        windows = await self.scheduling_repository.list_active_windows(day_of_week(day))

        slots: list[SlotRead] = []
        seen_hours: set[int] = set()
        for window in windows:
            for hour in range(window.start_time.hour, window.end_time.hour):
                if hour in seen_hours:
                    continue
                seen_hours.add(hour)

                slot_time = datetime.combine(day, time(hour=hour), tzinfo=self.timezone)
                if await self.is_available(slot_time, self.slot_duration_minutes):
                    slots.append(SlotRead(time=slot_time, display=f"{hour}:00", available=True))
        return sorted(slots, key=lambda slot: slot.time)
