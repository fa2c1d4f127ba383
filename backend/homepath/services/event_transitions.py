# backend/homepath/services/event_transitions.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import desc

from ..domain import event_lifecycle
from ..domain.enums import PENDING_EVENT_STATUSES, EventStatus, EventType, Priority, coerce
from ..domain.errors import InvalidInput
from ..models import CalendarEvent
from ..schemas import EventCreate, EventStatsOut, EventUpdate
from .dashboard_rollups import zero_filled_counts
from .events_facade import journal
from .ownership import must_get_event, must_get_property, must_get_step, require_owner
from .store import Page, PortfolioStore, gather
from .visibility import before, check_page, event_visibility, month_bounds, window

UPCOMING_DEFAULT_DAYS = 7
UPCOMING_LIMIT = 20
OVERDUE_LIMIT = 50
EVENT_PAGE_LIMIT = 50
STATS_UPCOMING_DAYS = 7

# fields an edit may set but never clear
_REQUIRED_FIELDS = ("title", "event_type", "priority", "start_date", "end_date")


def _snapshot(ev: CalendarEvent) -> dict[str, Any]:
    return {
        "status": ev.status,
        "start_date": ev.start_date,
        "end_date": ev.end_date,
        "outcome": ev.outcome,
        "is_active": ev.is_active,
    }


def create_event(store: PortfolioStore, *, user_id: int, payload: EventCreate, now: datetime) -> CalendarEvent:
    event_lifecycle.ensure_window(payload.start_date, payload.end_date)

    property_id: Optional[int] = None
    if payload.property_id is not None:
        property_id = must_get_property(store, user_id=user_id, property_id=payload.property_id).id
    if payload.step_id is not None:
        _, prop = must_get_step(store, user_id=user_id, step_id=payload.step_id)
        if property_id is not None and prop.id != property_id:
            raise InvalidInput("step does not belong to this property")
        property_id = prop.id

    ev = CalendarEvent(
        owner_id=int(user_id),
        property_id=property_id,
        step_id=payload.step_id,
        title=payload.title,
        description=payload.description,
        event_type=coerce(EventType, payload.event_type).value,
        status=EventStatus.SCHEDULED.value,
        priority=coerce(Priority, payload.priority).value,
        start_date=payload.start_date,
        end_date=payload.end_date,
        location=payload.location,
        created_at=now,
        updated_at=now,
    )
    store.add(ev)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="event.create",
        entity_type="CalendarEvent",
        entity_id=ev.id,
        event_type="calendar_event_created",
        property_id=property_id,
        after=_snapshot(ev),
        payload={"event_id": int(ev.id), "type": ev.event_type},
    )
    store.commit()
    return store.refresh(ev)


def update_event(
    store: PortfolioStore,
    *,
    user_id: int,
    event_id: int,
    payload: EventUpdate,
    now: datetime,
) -> CalendarEvent:
    """
    Owner-only edit of the event details. The resulting window must still be
    chronological; status and postponement have their own operations.
    """
    ev = must_get_event(store, user_id=user_id, event_id=event_id)
    require_owner(ev, user_id=user_id)

    changes = payload.model_dump(exclude_unset=True)
    for name in _REQUIRED_FIELDS:
        if name in changes and changes[name] is None:
            raise InvalidInput(f"{name} cannot be cleared")
    if "event_type" in changes:
        changes["event_type"] = coerce(EventType, changes["event_type"]).value
    if "priority" in changes:
        changes["priority"] = coerce(Priority, changes["priority"]).value
    event_lifecycle.ensure_window(
        changes.get("start_date", ev.start_date),
        changes.get("end_date", ev.end_date),
    )

    prior = _snapshot(ev)
    for name, value in changes.items():
        setattr(ev, name, value)
    ev.updated_at = now
    store.add(ev)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="event.update",
        entity_type="CalendarEvent",
        entity_id=ev.id,
        event_type="calendar_event_updated",
        property_id=ev.property_id,
        before=prior,
        after=_snapshot(ev),
        payload={"event_id": int(ev.id), "fields": sorted(changes)},
    )
    store.commit()
    return store.refresh(ev)


def transition_event_status(
    store: PortfolioStore,
    *,
    user_id: int,
    event_id: int,
    status: EventStatus | str,
    now: datetime,
    outcome: Optional[str] = None,
) -> CalendarEvent:
    """
    Owner or sharee. completed stamps completed_at and keeps the outcome;
    any other status is a plain overwrite.
    """
    new_status = coerce(EventStatus, status)
    ev = must_get_event(store, user_id=user_id, event_id=event_id)

    prior = _snapshot(ev)
    old = ev.status
    if new_status is EventStatus.COMPLETED:
        event_lifecycle.complete(ev, now=now, outcome=outcome)
    else:
        ev.status = new_status.value
    ev.updated_at = now
    store.add(ev)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="event.status",
        entity_type="CalendarEvent",
        entity_id=ev.id,
        event_type="calendar_event_status_changed",
        property_id=ev.property_id,
        before=prior,
        after=_snapshot(ev),
        payload={"event_id": int(ev.id), "from": old, "to": ev.status},
    )
    store.commit()
    return store.refresh(ev)


def postpone_event(
    store: PortfolioStore,
    *,
    user_id: int,
    event_id: int,
    new_start: datetime,
    now: datetime,
    new_end: Optional[datetime] = None,
) -> CalendarEvent:
    ev = must_get_event(store, user_id=user_id, event_id=event_id)
    require_owner(ev, user_id=user_id)

    if new_start <= now:
        raise InvalidInput("new start date must be in the future")
    if new_end is not None and new_end <= new_start:
        raise InvalidInput("new end date must be after the new start date")

    prior = _snapshot(ev)
    event_lifecycle.postpone(ev, new_start, new_end)
    ev.updated_at = now
    store.add(ev)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="event.postpone",
        entity_type="CalendarEvent",
        entity_id=ev.id,
        event_type="calendar_event_postponed",
        property_id=ev.property_id,
        before=prior,
        after=_snapshot(ev),
        payload={"event_id": int(ev.id), "start_date": ev.start_date, "end_date": ev.end_date},
    )
    store.commit()
    return store.refresh(ev)


def delete_event(store: PortfolioStore, *, user_id: int, event_id: int, now: datetime) -> None:
    ev = must_get_event(store, user_id=user_id, event_id=event_id)
    require_owner(ev, user_id=user_id)

    prior = _snapshot(ev)
    ev.is_active = False
    ev.updated_at = now
    store.add(ev)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="event.delete",
        entity_type="CalendarEvent",
        entity_id=ev.id,
        event_type="calendar_event_deleted",
        property_id=ev.property_id,
        before=prior,
        after=_snapshot(ev),
    )
    store.commit()


def get_event(store: PortfolioStore, *, user_id: int, event_id: int) -> CalendarEvent:
    return must_get_event(store, user_id=user_id, event_id=event_id)


def list_upcoming_events(
    store: PortfolioStore,
    *,
    user_id: int,
    now: datetime,
    days: int = UPCOMING_DEFAULT_DAYS,
) -> list[CalendarEvent]:
    if not 1 <= int(days) <= 365:
        raise InvalidInput("days must be between 1 and 365")
    return store.find(
        CalendarEvent,
        event_visibility(user_id),
        CalendarEvent.status.in_(PENDING_EVENT_STATUSES),
        window(CalendarEvent.start_date, start=now, end=now + timedelta(days=int(days))),
        order_by=(CalendarEvent.start_date, CalendarEvent.id),
        limit=UPCOMING_LIMIT,
    )


def list_overdue_events(store: PortfolioStore, *, user_id: int, now: datetime) -> list[CalendarEvent]:
    return store.find(
        CalendarEvent,
        event_visibility(user_id),
        CalendarEvent.status.in_(PENDING_EVENT_STATUSES),
        before(CalendarEvent.end_date, now),
        order_by=(desc(CalendarEvent.start_date), desc(CalendarEvent.id)),
        limit=OVERDUE_LIMIT,
    )


def list_events(
    store: PortfolioStore,
    *,
    user_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    property_id: Optional[int] = None,
    event_type: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    page: int = 1,
    limit: int = EVENT_PAGE_LIMIT,
) -> Page[CalendarEvent]:
    """
    Visible events whose start falls in [start, end], oldest start first.
    """
    check_page(page, limit)
    if start is not None and end is not None and end < start:
        raise InvalidInput("end must not be before start")

    criteria = [event_visibility(user_id), window(CalendarEvent.start_date, start=start, end=end)]
    if property_id is not None:
        criteria.append(CalendarEvent.property_id == int(property_id))
    if event_type is not None:
        criteria.append(CalendarEvent.event_type == coerce(EventType, event_type).value)
    if status is not None:
        criteria.append(CalendarEvent.status == coerce(EventStatus, status).value)
    if priority is not None:
        criteria.append(CalendarEvent.priority == coerce(Priority, priority).value)

    return store.page(
        CalendarEvent,
        *criteria,
        order_by=(CalendarEvent.start_date, CalendarEvent.id),
        page=page,
        limit=limit,
    )


def compute_event_stats(store: PortfolioStore, *, user_id: int, now: datetime) -> EventStatsOut:
    visible = event_visibility(user_id)
    pending = CalendarEvent.status.in_(PENDING_EVENT_STATUSES)
    month_start, month_end = month_bounds(now)

    r = gather(
        "calendar_stats",
        {
            "total": lambda: store.count(CalendarEvent, visible),
            "this_month": lambda: store.count(
                CalendarEvent, visible, window(CalendarEvent.start_date, start=month_start, end=month_end)
            ),
            "upcoming": lambda: store.count(
                CalendarEvent,
                visible,
                pending,
                window(CalendarEvent.start_date, start=now, end=now + timedelta(days=STATS_UPCOMING_DAYS)),
            ),
            "overdue": lambda: store.count(CalendarEvent, visible, pending, before(CalendarEvent.end_date, now)),
            "by_type": lambda: store.aggregate_group(
                CalendarEvent, visible, group_by=[CalendarEvent.event_type], reducers={"count": ("count", None)}
            ),
            "by_status": lambda: store.aggregate_group(
                CalendarEvent, visible, group_by=[CalendarEvent.status], reducers={"count": ("count", None)}
            ),
        },
    )

    return EventStatsOut(
        total=int(r["total"]),
        this_month=int(r["this_month"]),
        upcoming=int(r["upcoming"]),
        overdue=int(r["overdue"]),
        by_type=zero_filled_counts(EventType, r["by_type"], report="calendar_stats"),
        by_status=zero_filled_counts(EventStatus, r["by_status"], report="calendar_stats"),
    )
