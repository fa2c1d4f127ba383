# backend/homepath/domain/step_lifecycle.py
from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Iterable, Optional

from .enums import OPEN_STEP_STATUSES, StepStatus

# -----------------------------------------------------------------------------
# Step lifecycle
# -----------------------------------------------------------------------------
# todo -> in_progress -> completed, with cancelled / on_hold as side exits.
# Transitions are caller-driven; only start() and complete() stamp dates.
#
# completion_percentage is never written directly by callers: every status or
# checklist change goes through recompute_completion().
# -----------------------------------------------------------------------------

IN_PROGRESS_FLOOR = 10
SECONDS_PER_DAY = 24 * 60 * 60


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _status(step: Any) -> str:
    s = getattr(step, "status", None)
    if isinstance(s, StepStatus):
        return s.value
    return str(s or "")


def checklist_completion(checklist: Optional[Iterable[Any]]) -> int:
    """
    Percentage of checked items, 100 for an empty checklist.
    """
    items = list(checklist or [])
    if not items:
        return 100
    done = sum(1 for it in items if bool(getattr(it, "completed", False)))
    return _round_half_up(100.0 * done / len(items))


def recompute_completion(step: Any) -> int:
    """
    completed   -> 100
    in_progress -> checklist ratio, never below 10
    todo        -> 0
    anything else keeps its current value.

    An in-progress step with no checklist has nothing ticked yet, so it sits
    at the floor rather than at the 100 the display ratio reports.
    """
    status = _status(step)
    current = int(getattr(step, "completion_percentage", 0) or 0)

    if status == StepStatus.COMPLETED.value:
        value = 100
    elif status == StepStatus.IN_PROGRESS.value:
        items = list(getattr(step, "checklist", None) or [])
        ratio = checklist_completion(items) if items else 0
        value = max(ratio, IN_PROGRESS_FLOOR)
    elif status == StepStatus.TODO.value:
        value = 0
    else:
        value = current

    step.completion_percentage = value
    return value


def start(step: Any, *, now: datetime) -> bool:
    """
    todo -> in_progress, stamping actual_start. Returns False (and leaves the
    step untouched) from any other state.
    """
    if _status(step) != StepStatus.TODO.value:
        return False
    step.status = StepStatus.IN_PROGRESS.value
    step.actual_start = now
    recompute_completion(step)
    return True


def complete(step: Any, *, now: datetime) -> None:
    step.status = StepStatus.COMPLETED.value
    step.actual_end = now
    step.completion_percentage = 100


def set_status(step: Any, status: str, *, now: datetime) -> str:
    """
    Apply a requested status. Routes the two privileged transitions through
    start()/complete(); everything else is a plain overwrite.

    Returns the previous status.
    """
    old = _status(step)
    new = status.value if isinstance(status, StepStatus) else str(status)

    if new == StepStatus.IN_PROGRESS.value and old == StepStatus.TODO.value:
        start(step, now=now)
    elif new == StepStatus.COMPLETED.value:
        complete(step, now=now)
    else:
        step.status = new
        recompute_completion(step)
    return old


def is_overdue(step: Any, *, now: datetime) -> bool:
    deadline = getattr(step, "deadline", None)
    if deadline is None:
        return False
    if _status(step) not in OPEN_STEP_STATUSES:
        return False
    return deadline < now


def _days_between(start_at: Optional[datetime], end_at: Optional[datetime]) -> Optional[int]:
    if start_at is None or end_at is None:
        return None
    return math.ceil((end_at - start_at).total_seconds() / SECONDS_PER_DAY)


def actual_duration_days(step: Any) -> Optional[int]:
    return _days_between(getattr(step, "actual_start", None), getattr(step, "actual_end", None))


def estimated_duration_days(step: Any) -> Optional[int]:
    return _days_between(getattr(step, "planned_start", None), getattr(step, "planned_end", None))
