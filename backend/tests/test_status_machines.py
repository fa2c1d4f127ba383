# backend/tests/test_status_machines.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import pytest

from homepath.domain import event_lifecycle, step_lifecycle
from homepath.domain.errors import InvalidInput
from homepath.domain.property_progress import price_per_square_meter, progress_for_status

NOW = datetime(2026, 3, 15, 12, 0, 0)


@dataclass
class Item:
    item: str
    completed: bool = False


@dataclass
class S:
    status: str = "todo"
    checklist: list = field(default_factory=list)
    completion_percentage: int = 0
    deadline: Optional[datetime] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None


@dataclass
class Ev:
    start_date: datetime
    end_date: datetime
    status: str = "scheduled"
    completed_at: Optional[datetime] = None
    outcome: Optional[str] = None


def test_property_progress_table():
    expected = {
        "searching": 10,
        "visiting": 20,
        "offer_made": 40,
        "compromis_signed": 60,
        "loan_pending": 75,
        "final_signature": 90,
        "keys_received": 100,
        "cancelled": 0,
    }
    for status, pct in expected.items():
        assert progress_for_status(status) == pct
    assert progress_for_status("archived") == 0
    assert progress_for_status(None) == 0


def test_price_per_square_meter():
    assert price_per_square_meter(250000, 50) == 5000
    assert price_per_square_meter(0, 50) is None


def test_in_progress_with_empty_checklist_is_floored_at_10():
    s = S(status="in_progress")
    assert step_lifecycle.recompute_completion(s) == 10
    assert s.completion_percentage == 10


def test_in_progress_follows_checklist_ratio():
    s = S(status="in_progress", checklist=[Item("a", True), Item("b", True), Item("c")])
    assert step_lifecycle.recompute_completion(s) == 67

    s.checklist = [Item("a"), Item("b")]
    assert step_lifecycle.recompute_completion(s) == 10


def test_completed_is_100_regardless_of_checklist():
    s = S(status="completed", checklist=[Item("a"), Item("b")])
    assert step_lifecycle.recompute_completion(s) == 100


def test_todo_resets_and_on_hold_keeps_value():
    s = S(status="todo", completion_percentage=40)
    assert step_lifecycle.recompute_completion(s) == 0

    s = S(status="on_hold", completion_percentage=40)
    assert step_lifecycle.recompute_completion(s) == 40


def test_checklist_completion_display():
    assert step_lifecycle.checklist_completion([]) == 100
    assert step_lifecycle.checklist_completion([Item("a", True), Item("b")]) == 50


def test_start_only_from_todo():
    s = S(status="todo")
    assert step_lifecycle.start(s, now=NOW) is True
    assert s.status == "in_progress"
    assert s.actual_start == NOW

    later = NOW + timedelta(days=1)
    assert step_lifecycle.start(s, now=later) is False
    assert s.actual_start == NOW


def test_complete_stamps_end_from_any_state():
    s = S(status="on_hold", completion_percentage=30)
    step_lifecycle.complete(s, now=NOW)
    assert s.status == "completed"
    assert s.actual_end == NOW
    assert s.completion_percentage == 100


def test_set_status_routes_privileged_transitions():
    s = S(status="todo")
    old = step_lifecycle.set_status(s, "in_progress", now=NOW)
    assert old == "todo"
    assert s.actual_start == NOW
    assert s.completion_percentage == 10

    step_lifecycle.set_status(s, "cancelled", now=NOW)
    assert s.status == "cancelled"
    assert s.completion_percentage == 10


def test_overdue_only_for_open_steps():
    past = NOW - timedelta(days=1)
    assert step_lifecycle.is_overdue(S(status="todo", deadline=past), now=NOW) is True
    assert step_lifecycle.is_overdue(S(status="in_progress", deadline=past), now=NOW) is True
    assert step_lifecycle.is_overdue(S(status="completed", deadline=past), now=NOW) is False
    assert step_lifecycle.is_overdue(S(status="cancelled", deadline=past), now=NOW) is False
    assert step_lifecycle.is_overdue(S(status="todo", deadline=NOW), now=NOW) is False
    assert step_lifecycle.is_overdue(S(status="todo"), now=NOW) is False


def test_durations_round_up_to_whole_days():
    s = S(actual_start=NOW, actual_end=NOW + timedelta(days=2, hours=1))
    assert step_lifecycle.actual_duration_days(s) == 3
    assert step_lifecycle.estimated_duration_days(s) is None


@pytest.mark.parametrize(
    "offset_hours, expected",
    [
        (-1, (False, False, True)),
        (0, (False, True, False)),
        (1, (False, True, False)),
        (2, (False, True, False)),
        (3, (True, False, False)),
    ],
)
def test_event_flags_are_exclusive(offset_hours, expected):
    ev = Ev(start_date=NOW, end_date=NOW + timedelta(hours=2))
    t = event_lifecycle.timing(ev, now=NOW + timedelta(hours=offset_hours))
    assert (t.is_past, t.is_ongoing, t.is_upcoming) == expected
    assert sum(t.as_dict().values()) == 1


def test_postpone_without_end_keeps_duration():
    ev = Ev(start_date=NOW, end_date=NOW + timedelta(minutes=90))
    new_start = NOW + timedelta(days=3)
    event_lifecycle.postpone(ev, new_start)
    assert ev.start_date == new_start
    assert ev.end_date - ev.start_date == timedelta(minutes=90)
    assert ev.status == "postponed"


def test_postpone_rejects_inverted_window():
    ev = Ev(start_date=NOW, end_date=NOW + timedelta(hours=1))
    with pytest.raises(InvalidInput):
        event_lifecycle.postpone(ev, NOW + timedelta(days=2), NOW + timedelta(days=1))


def test_complete_event_records_outcome():
    ev = Ev(start_date=NOW, end_date=NOW + timedelta(hours=1))
    event_lifecycle.complete(ev, now=NOW, outcome="offer accepted")
    assert ev.status == "completed"
    assert ev.completed_at == NOW
    assert ev.outcome == "offer accepted"
