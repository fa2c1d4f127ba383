# backend/tests/test_dashboard_analytics.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import pytest

from homepath.domain.enums import CostCategory, EventType, StepCategory
from homepath.domain.errors import InvalidInput
from homepath.models import StepCost
from homepath.services.dashboard_rollups import compute_analytics, step_duration_stats

NOW = datetime(2026, 3, 15, 12, 0, 0)


@dataclass
class Done:
    category: str
    actual_start: Optional[datetime]
    actual_end: Optional[datetime]


def test_duration_stats_skip_missing_dates():
    steps = [
        Done("visite", NOW, NOW + timedelta(days=2)),
        Done("visite", NOW, NOW + timedelta(days=4)),
        Done("visite", None, NOW),
        Done("offre", NOW, None),
        Done("offre", NOW, NOW + timedelta(hours=36)),
    ]
    stats = step_duration_stats(steps)

    assert [s.category for s in stats] == ["visite", "offre"]
    visite, offre = stats
    assert (visite.avg_days, visite.min_days, visite.max_days, visite.count) == (3.0, 2.0, 4.0, 2)
    assert (offre.avg_days, offre.count) == (1.5, 1)


def test_duration_stats_empty():
    assert step_duration_stats([]) == []


def test_bad_period_is_invalid_input(store, make_user):
    u = make_user("a@x.local")
    with pytest.raises(InvalidInput):
        compute_analytics(store, user_id=u.id, now=NOW, period="2weeks")


def test_analytics(store, db_session, make_user, make_property, make_step, make_event):
    owner = make_user("owner@x.local")

    make_property(owner.id, title="Jan", price=100000, now=datetime(2026, 1, 10))
    p_feb = make_property(owner.id, title="Feb", price=150000, now=datetime(2026, 2, 3))
    make_property(owner.id, title="Feb 2", price=50000, now=datetime(2026, 2, 20))
    make_property(owner.id, title="Old", price=1, now=datetime(2025, 6, 1))

    s1 = make_step(
        p_feb.id,
        order=1,
        status="completed",
        category="visite",
        actual_start=datetime(2026, 2, 4),
        actual_end=datetime(2026, 2, 6),
    )
    make_step(p_feb.id, order=2, status="completed", category="offre", actual_start=datetime(2026, 2, 7))
    s3 = make_step(p_feb.id, order=3, status="in_progress", category="financement")

    db_session.add_all(
        [
            StepCost(step_id=s1.id, category="notary", amount=800.0, created_at=NOW),
            StepCost(step_id=s3.id, category="notary", amount=1200.0, created_at=NOW),
            StepCost(step_id=s3.id, category="agency", amount=5000.0, created_at=NOW),
            StepCost(step_id=s3.id, category="moving", amount=0.0, created_at=NOW),
        ]
    )
    db_session.commit()

    make_event(owner.id, start=NOW, end=NOW + timedelta(hours=1), event_type="visite", status="completed")
    make_event(owner.id, start=NOW, end=NOW + timedelta(hours=1), event_type="visite", status="cancelled")
    make_event(owner.id, start=NOW, end=NOW + timedelta(hours=1), event_type="visite")
    make_event(owner.id, start=NOW, end=NOW + timedelta(hours=1), event_type="appel", status="completed")
    make_event(
        owner.id,
        start=NOW,
        end=NOW + timedelta(hours=1),
        event_type="signature",
        created_at=NOW - timedelta(days=400),
    )

    out = compute_analytics(store, user_id=owner.id, now=NOW, period="3months")

    assert out.period == "3months"
    assert out.window_start == NOW - timedelta(days=90)

    assert [(m.period, m.properties, m.value) for m in out.properties_by_month] == [
        ("2026-01", 1, 100000.0),
        ("2026-02", 2, 200000.0),
    ]

    assert len(out.step_durations) == 1
    d = out.step_durations[0]
    assert d.category is StepCategory.VISITE
    assert (d.avg_days, d.count) == (2.0, 1)

    by_type = {e.type: e for e in out.event_success_rate}
    assert set(by_type) == {EventType.VISITE, EventType.APPEL}
    visite = by_type[EventType.VISITE]
    assert (visite.total, visite.completed, visite.cancelled) == (3, 1, 1)
    assert visite.success_rate == 33.3
    assert by_type[EventType.APPEL].success_rate == 100.0

    assert [(c.category, c.total, c.count) for c in out.costs_by_category] == [
        (CostCategory.AGENCY, 5000.0, 1),
        (CostCategory.NOTARY, 2000.0, 2),
    ]
    assert out.costs_by_category[1].average == 1000.0


def test_analytics_default_period(store, make_user):
    u = make_user("a@x.local")
    out = compute_analytics(store, user_id=u.id, now=NOW)
    assert out.period == "6months"
    assert out.properties_by_month == []
    assert out.costs_by_category == []
