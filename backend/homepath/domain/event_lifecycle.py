# backend/homepath/domain/event_lifecycle.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .enums import EventStatus
from .errors import InvalidInput


@dataclass(frozen=True)
class EventTiming:
    is_past: bool
    is_ongoing: bool
    is_upcoming: bool

    def as_dict(self) -> dict:
        return {
            "is_past": self.is_past,
            "is_ongoing": self.is_ongoing,
            "is_upcoming": self.is_upcoming,
        }


def timing(event: Any, *, now: datetime) -> EventTiming:
    """
    Exactly one flag is true for any window with start < end.
    """
    start_at = event.start_date
    end_at = event.end_date
    if now < start_at:
        return EventTiming(is_past=False, is_ongoing=False, is_upcoming=True)
    if now > end_at:
        return EventTiming(is_past=True, is_ongoing=False, is_upcoming=False)
    return EventTiming(is_past=False, is_ongoing=True, is_upcoming=False)


def ensure_window(start_at: datetime, end_at: datetime) -> None:
    if end_at <= start_at:
        raise InvalidInput("end_date must be after start_date")


def complete(event: Any, *, now: datetime, outcome: Optional[str] = None) -> None:
    event.status = EventStatus.COMPLETED.value
    event.completed_at = now
    if outcome is not None:
        event.outcome = outcome


def postpone(event: Any, new_start: datetime, new_end: Optional[datetime] = None) -> None:
    """
    Move the event window. Without new_end the original duration is kept.

    The caller checks that new_start lies in the future.
    """
    if new_end is None:
        new_end = new_start + (event.end_date - event.start_date)
    ensure_window(new_start, new_end)

    event.start_date = new_start
    event.end_date = new_end
    event.status = EventStatus.POSTPONED.value
