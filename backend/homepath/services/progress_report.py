# backend/homepath/services/progress_report.py
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import desc

from ..config import settings
from ..domain.enums import Priority, PropertyStatus, StepCategory, StepStatus
from ..domain.property_progress import progress_for_status
from ..domain import step_lifecycle
from ..models import Property, Step
from ..schemas import (
    CriticalStepOut,
    CurrentStepOut,
    ProgressAlertsOut,
    ProgressCountsOut,
    ProgressPropertyOut,
    PropertyProgressOut,
)
from .dashboard_rollups import closed_key, percent_of
from .store import PortfolioStore
from .visibility import property_visibility, step_scope


def next_critical_step(steps: Iterable[Any]) -> Optional[Any]:
    """
    First todo step with high priority and a deadline, by (order, id).
    """
    candidates = [
        s
        for s in steps
        if str(s.status) == StepStatus.TODO.value
        and str(s.priority) == Priority.HIGH.value
        and s.deadline is not None
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda s: (int(s.order), int(s.id)))


def _property_progress(prop: Property, steps: list[Step], *, now: datetime) -> PropertyProgressOut:
    total = len(steps)
    completed = sum(1 for s in steps if s.status == StepStatus.COMPLETED.value)
    in_progress = sum(1 for s in steps if s.status == StepStatus.IN_PROGRESS.value)
    overdue = sum(1 for s in steps if step_lifecycle.is_overdue(s, now=now))

    current = None
    if prop.current_step_id is not None:
        cur = next((s for s in steps if s.id == prop.current_step_id), None)
        if cur is not None:
            current = CurrentStepOut(
                id=cur.id,
                name=cur.name,
                category=closed_key(StepCategory, cur.category, report="progress"),
                status=closed_key(StepStatus, cur.status, report="progress"),
            )

    critical = next_critical_step(steps)
    urgent_until = now + timedelta(days=settings.near_term_step_days)

    return PropertyProgressOut(
        property=ProgressPropertyOut(
            id=prop.id,
            title=prop.title,
            status=closed_key(PropertyStatus, prop.status, report="progress"),
            status_progress=progress_for_status(prop.status),
            price_amount=float(prop.price_amount or 0.0),
            price_currency=prop.price_currency,
            city=prop.city,
            created_at=prop.created_at,
        ),
        current_step=current,
        progress=ProgressCountsOut(
            percentage=percent_of(completed, total),
            completed=completed,
            in_progress=in_progress,
            total=total,
            overdue=overdue,
        ),
        next_critical_step=(
            CriticalStepOut(
                id=critical.id,
                name=critical.name,
                category=closed_key(StepCategory, critical.category, report="progress"),
                deadline=critical.deadline,
            )
            if critical is not None
            else None
        ),
        alerts=ProgressAlertsOut(
            has_overdue=overdue > 0,
            # past deadlines count as urgent too
            has_urgent=critical is not None and critical.deadline <= urgent_until,
        ),
    )


def compute_progress(store: PortfolioStore, *, user_id: int, now: datetime) -> list[PropertyProgressOut]:
    """
    Per-property progress for every visible property, newest first.

    Steps for the whole portfolio are fetched in one query and grouped here.
    """
    props: list[Property] = store.find(
        Property,
        property_visibility(user_id),
        order_by=(desc(Property.created_at), desc(Property.id)),
    )
    if not props:
        return []

    steps = store.find(Step, step_scope([p.id for p in props]), order_by=(Step.order, Step.id))
    by_property: dict[int, list[Step]] = defaultdict(list)
    for s in steps:
        by_property[int(s.property_id)].append(s)

    return [_property_progress(p, by_property.get(int(p.id), []), now=now) for p in props]
