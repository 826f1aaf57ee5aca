"""Scheduling schemas."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel


class AvailableSlotsRequest(BaseModel):
    """getAvailableSlots payload."""

    date: date


class SlotRead(BaseModel):
    """Bookable start time derived from availability windows."""

    time: datetime
    display: str
    available: bool = True
