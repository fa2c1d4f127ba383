# backend/homepath/services/activity_feed.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import desc

from ..config import settings
from ..domain.activity import (
    ActivityRecord,
    from_document,
    from_event,
    from_property,
    from_step,
    merge_activity,
    per_source_limit,
)
from ..domain.errors import InvalidInput
from ..models import CalendarEvent, Document, Property, Step
from .store import PortfolioStore, gather
from .visibility import document_scope, event_visibility, resolve_portfolio, step_scope, window

MAX_LIMIT = 100
MAX_DAYS = 365


def compute_recent_activity(
    store: PortfolioStore,
    *,
    user_id: int,
    now: datetime,
    limit: Optional[int] = None,
    days: Optional[int] = None,
) -> list[ActivityRecord]:
    """
    Unified feed of recent step updates, document uploads, event and property
    creations, newest first.

    Each source is capped at limit // 4 (at least one row) before merging.
    """
    limit = settings.activity_default_limit if limit is None else int(limit)
    days = settings.activity_default_days if days is None else int(days)
    if not 1 <= limit <= MAX_LIMIT:
        raise InvalidInput(f"limit must be between 1 and {MAX_LIMIT}")
    if not 1 <= days <= MAX_DAYS:
        raise InvalidInput(f"days must be between 1 and {MAX_DAYS}")

    since = now - timedelta(days=days)
    per_source = per_source_limit(limit)

    scope = resolve_portfolio(store, user_id=user_id)
    ids = scope.property_ids

    r = gather(
        "recent_activity",
        {
            "steps": lambda: store.find(
                Step,
                step_scope(ids),
                window(Step.updated_at, start=since),
                order_by=(desc(Step.updated_at), desc(Step.id)),
                limit=per_source,
            ),
            "documents": lambda: store.find(
                Document,
                document_scope(ids),
                window(Document.created_at, start=since),
                order_by=(desc(Document.created_at), desc(Document.id)),
                limit=per_source,
            ),
            "events": lambda: store.find(
                CalendarEvent,
                event_visibility(user_id),
                window(CalendarEvent.created_at, start=since),
                order_by=(desc(CalendarEvent.created_at), desc(CalendarEvent.id)),
                limit=per_source,
            ),
            "properties": lambda: store.find(
                Property,
                Property.id.in_(list(ids)),
                window(Property.created_at, start=since),
                order_by=(desc(Property.created_at), desc(Property.id)),
                limit=per_source,
            ),
        },
    )

    titles = scope.titles
    return merge_activity(
        [
            [from_step(s, titles) for s in r["steps"]],
            [from_document(d, titles) for d in r["documents"]],
            [from_event(e, titles) for e in r["events"]],
            [from_property(p) for p in r["properties"]],
        ],
        limit=limit,
    )
