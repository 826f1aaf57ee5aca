"""Shared utility functions."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def add_minutes(dt: datetime, minutes: int) -> datetime:
    """Return datetime shifted by whole minutes."""
    return dt + timedelta(minutes=minutes)


def hours_between(start: datetime, end: datetime) -> float:
    """Return signed number of hours from start to end."""
    return (end - start).total_seconds() / 3600
