# backend/tests/test_dashboard_overview.py
from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from homepath.domain.enums import DocumentCategory, PropertyStatus, StepStatus
from homepath.domain.errors import DependencyFailure
from homepath.models import Document, Property
from homepath.schemas import PropertyShareIn
from homepath.services import property_ops
from homepath.services.dashboard_rollups import compute_overview, percent_of, round_half_up_to
from homepath.services.store import PortfolioStore

NOW = datetime(2026, 3, 15, 12, 0, 0)


def _doc(property_id: int, user_id: int, *, category: str = "contrat", created_at=NOW) -> Document:
    return Document(
        property_id=property_id,
        uploaded_by_user_id=user_id,
        name="doc",
        category=category,
        doc_type="pdf",
        original_name="a.pdf",
        filename="a.pdf",
        storage_path="x/a.pdf",
        mime_type="application/pdf",
        size_bytes=10,
        created_at=created_at,
        updated_at=created_at,
    )


def test_rounding_is_half_up():
    assert round_half_up_to(2.5, 0) == 3
    assert round_half_up_to(0.05, 1) == 0.1
    assert percent_of(1, 3) == 33
    assert percent_of(2, 3) == 67
    assert percent_of(5, 0) == 0


def test_overview_for_empty_portfolio_is_zero_filled(store, make_user):
    u = make_user("empty@x.local")
    out = compute_overview(store, user_id=u.id, now=NOW)

    assert out.properties.total == 0
    assert set(out.properties.by_status) == set(PropertyStatus)
    assert all(v.count == 0 for v in out.properties.by_status.values())
    assert set(out.steps.by_status) == set(StepStatus)
    assert set(out.documents.by_category) == set(DocumentCategory)
    assert out.steps.progress == 0
    assert out.alerts == []


def test_overview_counts(store, db_session, make_user, make_property, make_step, make_event):
    owner = make_user("owner@x.local")
    other = make_user("other@x.local")

    p1 = make_property(owner.id, title="A", price=100000, status="visiting")
    p2 = make_property(owner.id, title="B", price=300000, status="keys_received")
    foreign = make_property(other.id, title="Not mine", price=999999)

    make_step(p1.id, order=1, status="completed")
    make_step(p1.id, order=2, status="todo", deadline=NOW - timedelta(days=2))
    make_step(p1.id, order=3, status="in_progress", deadline=NOW + timedelta(days=3))
    make_step(p2.id, order=1, status="completed", deadline=NOW - timedelta(days=5))
    make_step(foreign.id, order=1, status="todo", deadline=NOW - timedelta(days=1))

    db_session.add(_doc(p1.id, owner.id, category="contrat"))
    db_session.add(_doc(p1.id, owner.id, category="photo", created_at=NOW - timedelta(days=40)))
    db_session.add(_doc(foreign.id, other.id))
    db_session.commit()

    make_event(owner.id, start=NOW + timedelta(days=1), end=NOW + timedelta(days=1, hours=1))
    make_event(owner.id, start=NOW - timedelta(days=2), end=NOW - timedelta(days=2) + timedelta(hours=1))
    make_event(
        owner.id,
        start=NOW - timedelta(days=3),
        end=NOW - timedelta(days=3) + timedelta(hours=1),
        status="completed",
    )
    make_event(other.id, start=NOW + timedelta(days=1), end=NOW + timedelta(days=1, hours=1))

    out = compute_overview(store, user_id=owner.id, now=NOW)

    assert out.properties.total == 2
    assert out.properties.by_status[PropertyStatus.VISITING].count == 1
    assert out.properties.by_status[PropertyStatus.KEYS_RECEIVED].value == 300000.0
    assert out.properties.total_value == 400000.0

    assert out.steps.total == 4
    assert out.steps.completed == 2
    assert out.steps.overdue == 1
    assert out.steps.upcoming == 1
    assert out.steps.progress == 50
    assert out.steps.by_status[StepStatus.TODO] == 1

    assert out.documents.total == 2
    assert out.documents.recent == 1
    assert out.documents.by_category[DocumentCategory.PHOTO] == 1

    assert out.calendar.upcoming_events == 1
    assert out.calendar.overdue_events == 1
    assert out.calendar.events_this_month == 3

    assert [a.type for a in out.alerts] == ["warning", "info", "error"]

    assert out.summary.active_properties == 1
    assert out.summary.completed_purchases == 1
    assert out.summary.total_investment == 400000.0
    assert out.summary.global_progress == 50


def test_shared_property_is_counted_for_the_sharee(store, make_user, make_property):
    owner = make_user("owner@x.local")
    friend = make_user("friend@x.local")
    p = make_property(owner.id)
    property_ops.share_property(
        store, user_id=owner.id, property_id=p.id, payload=PropertyShareIn(user_email="Friend@x.local"), now=NOW
    )

    out = compute_overview(store, user_id=friend.id, now=NOW)
    assert out.properties.total == 1


def test_deleted_property_drops_out(store, make_user, make_property):
    owner = make_user("owner@x.local")
    p = make_property(owner.id)
    property_ops.delete_property(store, user_id=owner.id, property_id=p.id, now=NOW)

    assert compute_overview(store, user_id=owner.id, now=NOW).properties.total == 0


def test_unknown_stored_status_fails_the_report(store, db_session, make_user, make_property):
    owner = make_user("owner@x.local")
    p = make_property(owner.id)
    row = db_session.get(Property, p.id)
    row.status = "archived"
    db_session.commit()

    with pytest.raises(DependencyFailure):
        compute_overview(store, user_id=owner.id, now=NOW)


def test_late_sub_query_failure_aborts_the_overview(store, make_user, make_property, monkeypatch):
    owner = make_user("owner@x.local")
    make_property(owner.id, default_steps=True)

    real_count = PortfolioStore.count
    calls = []

    def flaky_count(self, model, *criteria):
        calls.append(model.__name__)
        # the seventh count is events_overdue, after the step and document counts succeeded
        if len(calls) == 7:
            raise DependencyFailure("count:CalendarEvent failed")
        return real_count(self, model, *criteria)

    monkeypatch.setattr(PortfolioStore, "count", flaky_count)

    out = None
    with pytest.raises(DependencyFailure):
        out = compute_overview(store, user_id=owner.id, now=NOW)
    assert out is None
    assert calls == ["Step", "Step", "Step", "Document", "Document", "CalendarEvent", "CalendarEvent"]
