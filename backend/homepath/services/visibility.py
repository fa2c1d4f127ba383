# backend/homepath/services/visibility.py
from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from sqlalchemy import and_, desc, or_, select, true
from sqlalchemy.sql.elements import ColumnElement

from ..domain.enums import PERIOD_DAYS, AnalyticsPeriod
from ..domain.errors import InvalidInput
from ..models import (
    CalendarEvent,
    Document,
    DocumentShare,
    EventShare,
    Property,
    PropertyShare,
    Step,
)
from .store import PortfolioStore

# -----------------------------------------------------------------------------
# Query scoping
# -----------------------------------------------------------------------------
# Every portfolio read goes through these helpers so the owner-or-shared
# union and the soft-delete flag are applied the same way on every path.
# -----------------------------------------------------------------------------


def property_visibility(user_id: int) -> ColumnElement:
    shared_ids = select(PropertyShare.property_id).where(PropertyShare.user_id == int(user_id))
    return and_(
        Property.is_active.is_(True),
        or_(Property.owner_id == int(user_id), Property.id.in_(shared_ids)),
    )


def property_ownership(user_id: int) -> ColumnElement:
    return and_(Property.is_active.is_(True), Property.owner_id == int(user_id))


def event_visibility(user_id: int) -> ColumnElement:
    shared_ids = select(EventShare.event_id).where(EventShare.user_id == int(user_id))
    return and_(
        CalendarEvent.is_active.is_(True),
        or_(CalendarEvent.owner_id == int(user_id), CalendarEvent.id.in_(shared_ids)),
    )


def step_scope(property_ids: Sequence[int]) -> ColumnElement:
    return and_(Step.is_active.is_(True), Step.property_id.in_(list(property_ids)))


def document_scope(property_ids: Sequence[int]) -> ColumnElement:
    return and_(Document.is_active.is_(True), Document.property_id.in_(list(property_ids)))


def document_visibility(user_id: int, property_ids: Sequence[int]) -> ColumnElement:
    """
    Documents of a visible property, plus documents shared individually.
    """
    shared_ids = select(DocumentShare.document_id).where(DocumentShare.user_id == int(user_id))
    return and_(
        Document.is_active.is_(True),
        or_(Document.property_id.in_(list(property_ids)), Document.id.in_(shared_ids)),
    )


def window(column: Any, *, start: Optional[datetime] = None, end: Optional[datetime] = None) -> ColumnElement:
    """
    start <= column <= end; either bound may be omitted.
    """
    clauses = []
    if start is not None:
        clauses.append(column >= start)
    if end is not None:
        clauses.append(column <= end)
    return and_(*clauses) if clauses else true()


def value_range(column: Any, low: Optional[float], high: Optional[float], *, name: str) -> ColumnElement:
    if low is not None and high is not None and low > high:
        raise InvalidInput(f"min_{name} must not exceed max_{name}")
    return window(column, start=low, end=high)


def contains(column: Any, term: str) -> ColumnElement:
    """Case-insensitive substring match."""
    return column.ilike(f"%{term.strip()}%")


def before(column: Any, moment: datetime) -> ColumnElement:
    return column < moment


MAX_PAGE_LIMIT = 100


def check_page(page: int, limit: int) -> None:
    if int(page) < 1:
        raise InvalidInput("page must be 1 or more")
    if not 1 <= int(limit) <= MAX_PAGE_LIMIT:
        raise InvalidInput(f"limit must be between 1 and {MAX_PAGE_LIMIT}")


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """
    [first instant of the month, last instant of the month] for `now`.
    """
    start = datetime(now.year, now.month, 1)
    last_day = calendar.monthrange(now.year, now.month)[1]
    end = datetime(now.year, now.month, last_day, 23, 59, 59, 999999)
    return start, end


def parse_period(period: Any) -> AnalyticsPeriod:
    if isinstance(period, AnalyticsPeriod):
        return period
    try:
        return AnalyticsPeriod(str(period))
    except ValueError:
        allowed = ", ".join(p.value for p in AnalyticsPeriod)
        raise InvalidInput(f"period must be one of: {allowed}")


def period_start(period: Any, *, now: datetime) -> datetime:
    return now - timedelta(days=PERIOD_DAYS[parse_period(period)])


@dataclass(frozen=True)
class PortfolioScope:
    """
    The caller's visible property set, resolved once per report and reused
    by every sub-query of that report.
    """

    user_id: int
    property_ids: tuple[int, ...]
    titles: dict[int, str] = field(default_factory=dict)


def resolve_portfolio(store: PortfolioStore, *, user_id: int) -> PortfolioScope:
    rows = store.find(
        Property,
        property_visibility(user_id),
        order_by=(desc(Property.created_at), desc(Property.id)),
    )
    return PortfolioScope(
        user_id=int(user_id),
        property_ids=tuple(int(p.id) for p in rows),
        titles={int(p.id): str(p.title) for p in rows},
    )
