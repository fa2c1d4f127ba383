# backend/homepath/routers/calendar.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..domain import event_lifecycle
from ..models import CalendarEvent
from ..schemas import (
    EventCreate,
    EventOut,
    EventPage,
    EventPostpone,
    EventStatsOut,
    EventStatusUpdate,
    EventUpdate,
    naive_utc,
)
from ..services import event_transitions
from ..services.store import PortfolioStore

router = APIRouter(prefix="/calendar", tags=["calendar"])


def event_out(ev: CalendarEvent, *, now: datetime) -> EventOut:
    out = EventOut.model_validate(ev)
    t = event_lifecycle.timing(ev, now=now)
    out.is_past = t.is_past
    out.is_ongoing = t.is_ongoing
    out.is_upcoming = t.is_upcoming
    return out


@router.get("/events", response_model=EventPage)
def list_events(
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    property_id: Optional[int] = Query(default=None, alias="property"),
    event_type: Optional[str] = Query(default=None, alias="type"),
    status: Optional[str] = Query(default=None),
    priority: Optional[str] = Query(default=None),
    page: int = Query(default=1),
    limit: int = Query(default=event_transitions.EVENT_PAGE_LIMIT),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    now = datetime.utcnow()
    result = event_transitions.list_events(
        PortfolioStore(db),
        user_id=p.user_id,
        start=naive_utc(start),
        end=naive_utc(end),
        property_id=property_id,
        event_type=event_type,
        status=status,
        priority=priority,
        page=page,
        limit=limit,
    )
    return EventPage(
        items=[event_out(e, now=now) for e in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.get("/stats", response_model=EventStatsOut)
def calendar_stats(db: Session = Depends(get_db), p=Depends(get_principal)):
    return event_transitions.compute_event_stats(PortfolioStore(db), user_id=p.user_id, now=datetime.utcnow())


@router.get("/upcoming", response_model=list[EventOut])
def upcoming_events(
    days: int = Query(default=event_transitions.UPCOMING_DEFAULT_DAYS, ge=1, le=365),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    now = datetime.utcnow()
    rows = event_transitions.list_upcoming_events(PortfolioStore(db), user_id=p.user_id, now=now, days=days)
    return [event_out(e, now=now) for e in rows]


@router.get("/overdue", response_model=list[EventOut])
def overdue_events(db: Session = Depends(get_db), p=Depends(get_principal)):
    now = datetime.utcnow()
    rows = event_transitions.list_overdue_events(PortfolioStore(db), user_id=p.user_id, now=now)
    return [event_out(e, now=now) for e in rows]


@router.post("/events", response_model=EventOut, status_code=201)
def create_event(payload: EventCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    now = datetime.utcnow()
    row = event_transitions.create_event(PortfolioStore(db), user_id=p.user_id, payload=payload, now=now)
    return event_out(row, now=now)


@router.get("/events/{event_id}", response_model=EventOut)
def get_event(event_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = event_transitions.get_event(PortfolioStore(db), user_id=p.user_id, event_id=event_id)
    return event_out(row, now=datetime.utcnow())


@router.put("/events/{event_id}", response_model=EventOut)
def update_event(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    now = datetime.utcnow()
    row = event_transitions.update_event(
        PortfolioStore(db), user_id=p.user_id, event_id=event_id, payload=payload, now=now
    )
    return event_out(row, now=now)


@router.put("/events/{event_id}/status", response_model=EventOut)
def update_event_status(
    event_id: int,
    payload: EventStatusUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    now = datetime.utcnow()
    row = event_transitions.transition_event_status(
        PortfolioStore(db),
        user_id=p.user_id,
        event_id=event_id,
        status=payload.status,
        outcome=payload.outcome,
        now=now,
    )
    return event_out(row, now=now)


@router.post("/events/{event_id}/postpone", response_model=EventOut)
def postpone_event(
    event_id: int,
    payload: EventPostpone,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    now = datetime.utcnow()
    row = event_transitions.postpone_event(
        PortfolioStore(db),
        user_id=p.user_id,
        event_id=event_id,
        new_start=payload.new_start_date,
        new_end=payload.new_end_date,
        now=now,
    )
    return event_out(row, now=now)


@router.delete("/events/{event_id}", status_code=204)
def delete_event(event_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    event_transitions.delete_event(PortfolioStore(db), user_id=p.user_id, event_id=event_id, now=datetime.utcnow())
