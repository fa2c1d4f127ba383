# backend/homepath/services/dashboard_rollups.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, TypeVar

from sqlalchemy import case, extract, select

from ..config import settings
from ..domain.alerts import derive_alerts
from ..domain.enums import (
    ACTIVE_PROPERTY_STATUSES,
    OPEN_STEP_STATUSES,
    PENDING_EVENT_STATUSES,
    CostCategory,
    DocumentCategory,
    EventStatus,
    EventType,
    PropertyStatus,
    StepCategory,
    StepStatus,
)
from ..domain.errors import DependencyFailure
from ..models import CalendarEvent, Document, Property, Step, StepCost
from ..schemas import (
    AlertOut,
    AnalyticsOut,
    CalendarOverview,
    CostCategoryOut,
    DocumentsOverview,
    EventSuccessOut,
    MonthBucketOut,
    OverviewOut,
    OverviewSummary,
    PropertiesOverview,
    StatusValueOut,
    StepDurationOut,
    StepsOverview,
)
from .store import PortfolioStore, gather
from .visibility import (
    before,
    document_scope,
    event_visibility,
    month_bounds,
    parse_period,
    period_start,
    resolve_portfolio,
    step_scope,
    window,
)

log = logging.getLogger("homepath.reports")

E = TypeVar("E", bound=Enum)

SECONDS_PER_DAY = 24 * 60 * 60


def round_half_up_to(x: float, places: int) -> float:
    """Half-up rounding, so 0.05 -> 0.1 and 2.5 -> 3 the way the dashboards always showed them."""
    factor = 10 ** places
    return math.floor(float(x) * factor + 0.5) / factor


def percent_of(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return int(round_half_up_to(100.0 * part / whole, 0))


def closed_key(enum_cls: type[E], raw: Any, *, report: str) -> E:
    """
    Stored grouping keys must belong to the closed enumeration; anything else
    means the table holds data this engine does not understand.
    """
    try:
        return enum_cls(str(raw))
    except ValueError as e:
        log.error(
            "unknown stored enum value",
            extra={"report": report, "enum": enum_cls.__name__, "value": raw},
        )
        raise DependencyFailure(f"unknown {enum_cls.__name__} value in storage: {raw!r}") from e


def zero_filled_counts(enum_cls: type[E], grouped: Mapping[Any, Mapping[str, Any]], *, report: str) -> dict[E, int]:
    out: dict[E, int] = {member: 0 for member in enum_cls}
    for raw, vals in grouped.items():
        out[closed_key(enum_cls, raw, report=report)] = int(vals.get("count") or 0)
    return out


# -----------------------------------------------------------------------------
# Overview
# -----------------------------------------------------------------------------


def compute_overview(store: PortfolioStore, *, user_id: int, now: datetime) -> OverviewOut:
    """
    Dashboard overview for one caller.

    Counts are taken over the caller's visible portfolio (owned + shared,
    active). Steps and documents are scoped through the property set, which is
    resolved once; calendar events carry their own owner/share visibility.
    """
    scope = resolve_portfolio(store, user_id=user_id)
    ids = scope.property_ids

    near_term_end = now + timedelta(days=settings.near_term_step_days)
    upcoming_events_end = now + timedelta(days=settings.upcoming_event_days)
    month_start, month_end = month_bounds(now)

    steps_in_scope = step_scope(ids)
    docs_in_scope = document_scope(ids)
    events_visible = event_visibility(user_id)
    open_steps = Step.status.in_(OPEN_STEP_STATUSES)
    pending_events = CalendarEvent.status.in_(PENDING_EVENT_STATUSES)

    r = gather(
        "overview",
        {
            "properties_by_status": lambda: store.aggregate_group(
                Property,
                Property.id.in_(list(ids)),
                group_by=[Property.status],
                reducers={"count": ("count", None), "value": ("sum", Property.price_amount)},
            ),
            "steps_total": lambda: store.count(Step, steps_in_scope),
            "steps_by_status": lambda: store.aggregate_group(
                Step, steps_in_scope, group_by=[Step.status], reducers={"count": ("count", None)}
            ),
            "steps_overdue": lambda: store.count(
                Step, steps_in_scope, open_steps, Step.deadline.is_not(None), before(Step.deadline, now)
            ),
            "steps_upcoming": lambda: store.count(
                Step, steps_in_scope, open_steps, window(Step.deadline, start=now, end=near_term_end)
            ),
            "documents_total": lambda: store.count(Document, docs_in_scope),
            "documents_by_category": lambda: store.aggregate_group(
                Document, docs_in_scope, group_by=[Document.category], reducers={"count": ("count", None)}
            ),
            "documents_this_month": lambda: store.count(
                Document, docs_in_scope, window(Document.created_at, start=month_start)
            ),
            "events_upcoming": lambda: store.count(
                CalendarEvent,
                events_visible,
                pending_events,
                window(CalendarEvent.start_date, start=now, end=upcoming_events_end),
            ),
            "events_overdue": lambda: store.count(
                CalendarEvent, events_visible, pending_events, before(CalendarEvent.end_date, now)
            ),
            "events_this_month": lambda: store.count(
                CalendarEvent,
                events_visible,
                window(CalendarEvent.start_date, start=month_start, end=month_end),
            ),
        },
    )

    by_status: dict[PropertyStatus, StatusValueOut] = {s: StatusValueOut() for s in PropertyStatus}
    for raw, vals in r["properties_by_status"].items():
        key = closed_key(PropertyStatus, raw, report="overview")
        by_status[key] = StatusValueOut(count=int(vals["count"] or 0), value=float(vals["value"] or 0.0))

    total_value = float(sum(v.value for v in by_status.values()))
    active = sum(by_status[PropertyStatus(s)].count for s in ACTIVE_PROPERTY_STATUSES)
    completed_purchases = by_status[PropertyStatus.KEYS_RECEIVED].count

    steps_by_status = zero_filled_counts(StepStatus, r["steps_by_status"], report="overview")
    steps_total = int(r["steps_total"])
    steps_completed = steps_by_status[StepStatus.COMPLETED]
    global_progress = percent_of(steps_completed, steps_total)

    alerts = derive_alerts(
        overdue_steps=int(r["steps_overdue"]),
        upcoming_steps=int(r["steps_upcoming"]),
        overdue_events=int(r["events_overdue"]),
    )

    return OverviewOut(
        properties=PropertiesOverview(
            total=len(ids),
            by_status=by_status,
            total_value=total_value,
        ),
        steps=StepsOverview(
            total=steps_total,
            completed=steps_completed,
            overdue=int(r["steps_overdue"]),
            upcoming=int(r["steps_upcoming"]),
            progress=global_progress,
            by_status=steps_by_status,
        ),
        documents=DocumentsOverview(
            total=int(r["documents_total"]),
            recent=int(r["documents_this_month"]),
            by_category=zero_filled_counts(DocumentCategory, r["documents_by_category"], report="overview"),
        ),
        calendar=CalendarOverview(
            upcoming_events=int(r["events_upcoming"]),
            overdue_events=int(r["events_overdue"]),
            events_this_month=int(r["events_this_month"]),
        ),
        alerts=[AlertOut(**a.as_dict()) for a in alerts],
        summary=OverviewSummary(
            active_properties=active,
            completed_purchases=completed_purchases,
            total_investment=total_value,
            global_progress=global_progress,
        ),
    )


# -----------------------------------------------------------------------------
# Analytics
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class DurationStat:
    category: str
    avg_days: float
    min_days: float
    max_days: float
    count: int


def step_duration_stats(steps: Iterable[Any]) -> list[DurationStat]:
    """
    Per-category duration of completed steps, in fractional days.

    Steps missing either actual_start or actual_end are skipped. Output is in
    first-seen category order.
    """
    buckets: dict[str, list[float]] = {}
    for s in steps:
        start_at: Optional[datetime] = getattr(s, "actual_start", None)
        end_at: Optional[datetime] = getattr(s, "actual_end", None)
        if start_at is None or end_at is None:
            continue
        days = (end_at - start_at).total_seconds() / SECONDS_PER_DAY
        buckets.setdefault(str(s.category), []).append(days)

    out: list[DurationStat] = []
    for category, values in buckets.items():
        out.append(
            DurationStat(
                category=category,
                avg_days=round_half_up_to(sum(values) / len(values), 1),
                min_days=round_half_up_to(min(values), 1),
                max_days=round_half_up_to(max(values), 1),
                count=len(values),
            )
        )
    return out


def compute_analytics(
    store: PortfolioStore,
    *,
    user_id: int,
    now: datetime,
    period: Any = None,
) -> AnalyticsOut:
    """
    Trend analytics over a trailing window.

    - properties created in the window, bucketed by calendar month
    - duration stats of completed steps (whole visible portfolio)
    - per event-type completion rate for events created in the window
    - cost totals per category, amount > 0 only, largest first
    """
    p = parse_period(period if period is not None else settings.analytics_default_period)
    start = period_start(p, now=now)

    scope = resolve_portfolio(store, user_id=user_id)
    ids = list(scope.property_ids)
    steps_in_scope = step_scope(ids)

    visible_step_ids = select(Step.id).where(steps_in_scope)

    r = gather(
        "analytics",
        {
            "by_month": lambda: store.aggregate_group(
                Property,
                Property.id.in_(ids),
                window(Property.created_at, start=start),
                group_by=[extract("year", Property.created_at), extract("month", Property.created_at)],
                reducers={"count": ("count", None), "value": ("sum", Property.price_amount)},
            ),
            "completed_steps": lambda: store.find(
                Step,
                steps_in_scope,
                Step.status == StepStatus.COMPLETED.value,
                Step.actual_start.is_not(None),
                Step.actual_end.is_not(None),
                order_by=(Step.id,),
            ),
            "events_by_type": lambda: store.aggregate_group(
                CalendarEvent,
                event_visibility(user_id),
                window(CalendarEvent.created_at, start=start),
                group_by=[CalendarEvent.event_type],
                reducers={
                    "total": ("count", None),
                    "completed": (
                        "sum",
                        case((CalendarEvent.status == EventStatus.COMPLETED.value, 1), else_=0),
                    ),
                    "cancelled": (
                        "sum",
                        case((CalendarEvent.status == EventStatus.CANCELLED.value, 1), else_=0),
                    ),
                },
            ),
            "costs": lambda: store.aggregate_group(
                StepCost,
                StepCost.step_id.in_(visible_step_ids),
                StepCost.amount > 0,
                group_by=[StepCost.category],
                reducers={
                    "total": ("sum", StepCost.amount),
                    "count": ("count", None),
                    "average": ("avg", StepCost.amount),
                },
            ),
        },
    )

    months = sorted(r["by_month"].items(), key=lambda kv: (int(kv[0][0]), int(kv[0][1])))
    properties_by_month = [
        MonthBucketOut(
            period=f"{int(y):04d}-{int(m):02d}",
            properties=int(vals["count"] or 0),
            value=float(vals["value"] or 0.0),
        )
        for (y, m), vals in months
    ]

    step_durations = [
        StepDurationOut(
            category=closed_key(StepCategory, d.category, report="analytics"),
            avg_days=d.avg_days,
            min_days=d.min_days,
            max_days=d.max_days,
            count=d.count,
        )
        for d in step_duration_stats(r["completed_steps"])
    ]

    event_success: list[EventSuccessOut] = []
    for raw, vals in sorted(r["events_by_type"].items(), key=lambda kv: str(kv[0])):
        total = int(vals["total"] or 0)
        if total <= 0:
            continue
        completed = int(vals["completed"] or 0)
        event_success.append(
            EventSuccessOut(
                type=closed_key(EventType, raw, report="analytics"),
                total=total,
                completed=completed,
                cancelled=int(vals["cancelled"] or 0),
                success_rate=round_half_up_to(100.0 * completed / total, 1),
            )
        )

    costs = [
        CostCategoryOut(
            category=closed_key(CostCategory, raw, report="analytics"),
            total=float(vals["total"] or 0.0),
            count=int(vals["count"] or 0),
            average=round_half_up_to(float(vals["average"] or 0.0), 2),
        )
        for raw, vals in r["costs"].items()
    ]
    costs.sort(key=lambda c: c.total, reverse=True)

    return AnalyticsOut(
        period=p.value,
        window_start=start,
        properties_by_month=properties_by_month,
        step_durations=step_durations,
        event_success_rate=event_success,
        costs_by_category=costs,
    )
