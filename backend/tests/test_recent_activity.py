# backend/tests/test_recent_activity.py
from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from homepath.domain.errors import InvalidInput
from homepath.services.activity_feed import compute_recent_activity

NOW = datetime(2026, 3, 15, 12, 0, 0)


def test_limit_21_yields_at_most_20(store, make_user, make_property, make_step, make_event):
    owner = make_user("owner@x.local")
    props = [make_property(owner.id, title=f"p{i}", now=NOW - timedelta(hours=i)) for i in range(6)]
    for i in range(6):
        make_step(props[0].id, order=i + 1, updated_at=NOW - timedelta(minutes=i))
        make_event(owner.id, start=NOW, end=NOW + timedelta(hours=1), created_at=NOW - timedelta(minutes=i))

    out = compute_recent_activity(store, user_id=owner.id, now=NOW, limit=21, days=7)

    assert len(out) <= 20
    assert sum(1 for r in out if r.type == "property") == 5
    assert sum(1 for r in out if r.type == "step") == 5
    dates = [r.date for r in out]
    assert dates == sorted(dates, reverse=True)


def test_window_and_titles(store, make_user, make_property, make_step):
    owner = make_user("owner@x.local")
    p = make_property(owner.id, title="Canal flat", now=NOW - timedelta(days=30))
    make_step(p.id, order=1, name="Visit", updated_at=NOW - timedelta(days=1))
    make_step(p.id, order=2, name="Stale", updated_at=NOW - timedelta(days=10))

    out = compute_recent_activity(store, user_id=owner.id, now=NOW, limit=20, days=7)

    assert [r.title for r in out] == ["Step updated: Visit"]
    assert out[0].related_property_title == "Canal flat"
    assert out[0].icon == "task"


def test_other_users_activity_is_hidden(store, make_user, make_property):
    owner = make_user("owner@x.local")
    stranger = make_user("stranger@x.local")
    make_property(owner.id)

    assert compute_recent_activity(store, user_id=stranger.id, now=NOW) == []


@pytest.mark.parametrize("limit, days", [(0, 7), (101, 7), (20, 0), (20, 366)])
def test_out_of_range_parameters(store, make_user, limit, days):
    u = make_user("a@x.local")
    with pytest.raises(InvalidInput):
        compute_recent_activity(store, user_id=u.id, now=NOW, limit=limit, days=days)


@pytest.mark.parametrize("limit, expected", [(1, 1), (2, 2), (3, 2), (4, 2)])
def test_small_limits_still_return_activity(store, make_user, make_property, make_step, limit, expected):
    owner = make_user("owner@x.local")
    p = make_property(owner.id, title="Loft", now=NOW - timedelta(hours=1))
    make_step(p.id, order=1, name="Offer", updated_at=NOW - timedelta(minutes=5))

    out = compute_recent_activity(store, user_id=owner.id, now=NOW, limit=limit, days=7)

    assert len(out) == expected
    assert out[0].title == "Step updated: Offer"
