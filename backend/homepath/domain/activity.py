# backend/homepath/domain/activity.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

SOURCE_COUNT = 4


@dataclass(frozen=True)
class ActivityRecord:
    type: str
    action: str
    title: str
    description: str
    related_property_title: Optional[str]
    date: datetime
    icon: str
    category: Optional[str]

    def as_dict(self) -> dict:
        return {
            "type": self.type,
            "action": self.action,
            "title": self.title,
            "description": self.description,
            "related_property_title": self.related_property_title,
            "date": self.date.isoformat(),
            "icon": self.icon,
            "category": self.category,
        }


def per_source_limit(limit: int) -> int:
    """
    Each of the four sources gets limit // 4 rows; the remainder is dropped,
    so limit=21 can never yield more than 20 records. Limits below 4 still
    fetch one row per source and rely on the final trim.
    """
    if int(limit) <= 0:
        return 0
    return max(1, int(limit) // SOURCE_COUNT)


def from_step(step: Any, titles: Mapping[int, str]) -> ActivityRecord:
    return ActivityRecord(
        type="step",
        action="updated",
        title=f"Step updated: {step.name}",
        description=f"Status: {step.status}",
        related_property_title=titles.get(step.property_id),
        date=step.updated_at,
        icon="task",
        category=step.category,
    )


def from_document(doc: Any, titles: Mapping[int, str]) -> ActivityRecord:
    return ActivityRecord(
        type="document",
        action="uploaded",
        title=f"Document uploaded: {doc.name}",
        description=f"Category: {doc.category}",
        related_property_title=titles.get(doc.property_id),
        date=doc.created_at,
        icon="document",
        category=doc.category,
    )


def from_event(event: Any, titles: Mapping[int, str]) -> ActivityRecord:
    return ActivityRecord(
        type="event",
        action="created",
        title=f"Event created: {event.title}",
        description=f"Type: {event.event_type}",
        related_property_title=titles.get(event.property_id) if event.property_id is not None else None,
        date=event.created_at,
        icon="calendar",
        category=event.event_type,
    )


def from_property(prop: Any) -> ActivityRecord:
    return ActivityRecord(
        type="property",
        action="created",
        title=f"New property: {prop.title}",
        description=f"City: {prop.city}",
        related_property_title=prop.title,
        date=prop.created_at,
        icon="home",
        category=prop.status,
    )


def merge_activity(sources: Iterable[Iterable[ActivityRecord]], *, limit: int) -> list[ActivityRecord]:
    """
    Concatenate the per-source lists, sort newest first and keep `limit`.

    A full stable sort, not a k-way merge: sources need not be pre-sorted,
    and equal timestamps keep their input order.
    """
    combined: list[ActivityRecord] = []
    for src in sources:
        combined.extend(src)
    combined.sort(key=lambda a: a.date, reverse=True)
    return combined[: max(0, int(limit))]
