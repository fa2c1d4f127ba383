# backend/tests/test_event_transitions.py
from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from homepath.domain.enums import EventStatus, EventType
from homepath.domain.errors import Forbidden, InvalidInput, NotFound
from homepath.models import EventShare, WorkflowEvent
from homepath.schemas import EventCreate, EventUpdate
from homepath.services import event_transitions, step_transitions

NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture()
def people(make_user):
    return make_user("owner@x.local"), make_user("friend@x.local"), make_user("stranger@x.local")


@pytest.fixture()
def shared_event(db_session, people, make_event):
    owner, friend, _ = people
    ev = make_event(owner.id, start=NOW + timedelta(days=1), end=NOW + timedelta(days=1, hours=2))
    db_session.add(EventShare(event_id=ev.id, user_id=friend.id, role="viewer", shared_at=NOW))
    db_session.commit()
    return ev


def test_create_event_links_step_property(store, people, make_property):
    owner, _, _ = people
    prop = make_property(owner.id, default_steps=True)
    steps = step_transitions.list_property_steps(store, user_id=owner.id, property_id=prop.id)

    ev = event_transitions.create_event(
        store,
        user_id=owner.id,
        payload=EventCreate(
            title="Notary meeting",
            event_type="rendez_vous_notaire",
            start_date=NOW + timedelta(days=3),
            end_date=NOW + timedelta(days=3, hours=1),
            step_id=steps[5].id,
        ),
        now=NOW,
    )
    assert ev.status == "scheduled"
    assert ev.property_id == prop.id
    assert ev.owner_id == owner.id


def test_create_event_rejects_bad_window_and_foreign_property(store, people, make_property):
    owner, _, stranger = people
    prop = make_property(owner.id)

    with pytest.raises(InvalidInput):
        event_transitions.create_event(
            store,
            user_id=owner.id,
            payload=EventCreate(title="Oops", event_type="appel", start_date=NOW, end_date=NOW),
            now=NOW,
        )
    with pytest.raises(NotFound):
        event_transitions.create_event(
            store,
            user_id=stranger.id,
            payload=EventCreate(
                title="Sneaky",
                event_type="appel",
                start_date=NOW,
                end_date=NOW + timedelta(hours=1),
                property_id=prop.id,
            ),
            now=NOW,
        )


def test_sharee_can_complete(store, people, shared_event):
    _, friend, _ = people
    out = event_transitions.transition_event_status(
        store, user_id=friend.id, event_id=shared_event.id, status="completed", outcome="went well", now=NOW
    )
    assert out.status == "completed"
    assert out.completed_at == NOW
    assert out.outcome == "went well"


def test_stranger_cannot_see_event(store, people, shared_event):
    _, _, stranger = people
    with pytest.raises(NotFound):
        event_transitions.transition_event_status(
            store, user_id=stranger.id, event_id=shared_event.id, status="confirmed", now=NOW
        )


def test_postpone(store, people, shared_event):
    owner, friend, _ = people

    with pytest.raises(Forbidden):
        event_transitions.postpone_event(
            store, user_id=friend.id, event_id=shared_event.id, new_start=NOW + timedelta(days=5), now=NOW
        )
    with pytest.raises(InvalidInput):
        event_transitions.postpone_event(
            store, user_id=owner.id, event_id=shared_event.id, new_start=NOW - timedelta(hours=1), now=NOW
        )
    with pytest.raises(InvalidInput):
        event_transitions.postpone_event(
            store,
            user_id=owner.id,
            event_id=shared_event.id,
            new_start=NOW + timedelta(days=5),
            new_end=NOW + timedelta(days=4),
            now=NOW,
        )

    out = event_transitions.postpone_event(
        store, user_id=owner.id, event_id=shared_event.id, new_start=NOW + timedelta(days=5), now=NOW
    )
    assert out.status == "postponed"
    assert out.start_date == NOW + timedelta(days=5)
    assert out.end_date == NOW + timedelta(days=5, hours=2)


def test_delete_is_owner_only(store, people, shared_event):
    owner, friend, _ = people
    with pytest.raises(Forbidden):
        event_transitions.delete_event(store, user_id=friend.id, event_id=shared_event.id, now=NOW)

    event_transitions.delete_event(store, user_id=owner.id, event_id=shared_event.id, now=NOW)
    with pytest.raises(NotFound):
        event_transitions.get_event(store, user_id=owner.id, event_id=shared_event.id)


def test_upcoming_and_overdue_listings(store, people, make_event):
    owner, _, _ = people
    soon = make_event(owner.id, start=NOW + timedelta(days=2), end=NOW + timedelta(days=2, hours=1))
    sooner = make_event(owner.id, start=NOW + timedelta(days=1), end=NOW + timedelta(days=1, hours=1))
    make_event(owner.id, start=NOW + timedelta(days=20), end=NOW + timedelta(days=20, hours=1))
    missed = make_event(owner.id, start=NOW - timedelta(days=2), end=NOW - timedelta(days=2, hours=-1))
    make_event(
        owner.id,
        start=NOW - timedelta(days=3),
        end=NOW - timedelta(days=3, hours=-1),
        status="completed",
    )

    upcoming = event_transitions.list_upcoming_events(store, user_id=owner.id, now=NOW)
    assert [e.id for e in upcoming] == [sooner.id, soon.id]

    assert len(event_transitions.list_upcoming_events(store, user_id=owner.id, now=NOW, days=30)) == 3

    overdue = event_transitions.list_overdue_events(store, user_id=owner.id, now=NOW)
    assert [e.id for e in overdue] == [missed.id]

    with pytest.raises(InvalidInput):
        event_transitions.list_upcoming_events(store, user_id=owner.id, now=NOW, days=0)


def test_update_event_rechecks_window(store, db_session, people, shared_event):
    owner, friend, _ = people
    later = NOW + timedelta(minutes=30)

    out = event_transitions.update_event(
        store,
        user_id=owner.id,
        event_id=shared_event.id,
        payload=EventUpdate(title="Visit with the agent", priority="high", location="12 quai Saint-Vincent"),
        now=later,
    )
    assert out.title == "Visit with the agent"
    assert out.priority == "high"
    assert out.location == "12 quai Saint-Vincent"
    assert out.updated_at == later

    wf = db_session.query(WorkflowEvent).filter(WorkflowEvent.event_type == "calendar_event_updated").one()
    assert wf.created_at == later

    # moving only the end before the stored start is rejected
    with pytest.raises(InvalidInput):
        event_transitions.update_event(
            store,
            user_id=owner.id,
            event_id=shared_event.id,
            payload=EventUpdate(end_date=shared_event.start_date - timedelta(hours=1)),
            now=NOW,
        )
    with pytest.raises(InvalidInput):
        event_transitions.update_event(
            store, user_id=owner.id, event_id=shared_event.id, payload=EventUpdate(title=None), now=NOW
        )
    with pytest.raises(Forbidden):
        event_transitions.update_event(
            store, user_id=friend.id, event_id=shared_event.id, payload=EventUpdate(title="Mine now"), now=NOW
        )


def test_list_events_filters_and_pages(store, people, make_event, make_property):
    owner, _, stranger = people
    prop = make_property(owner.id)
    past = make_event(owner.id, start=NOW - timedelta(days=5), end=NOW - timedelta(days=5, hours=-1), property_id=prop.id)
    first = make_event(owner.id, start=NOW + timedelta(days=1), end=NOW + timedelta(days=1, hours=1))
    signing = make_event(
        owner.id, start=NOW + timedelta(days=2), end=NOW + timedelta(days=2, hours=1), event_type="signature"
    )
    far = make_event(owner.id, start=NOW + timedelta(days=10), end=NOW + timedelta(days=10, hours=1))
    make_event(stranger.id, start=NOW + timedelta(days=1), end=NOW + timedelta(days=1, hours=1))

    everything = event_transitions.list_events(store, user_id=owner.id)
    assert [e.id for e in everything.items] == [past.id, first.id, signing.id, far.id]
    assert everything.total == 4

    windowed = event_transitions.list_events(store, user_id=owner.id, start=NOW, end=NOW + timedelta(days=3))
    assert [e.id for e in windowed.items] == [first.id, signing.id]

    assert [e.id for e in event_transitions.list_events(store, user_id=owner.id, event_type="signature").items] == [
        signing.id
    ]
    assert [e.id for e in event_transitions.list_events(store, user_id=owner.id, property_id=prop.id).items] == [
        past.id
    ]

    event_transitions.update_event(store, user_id=owner.id, event_id=far.id, payload=EventUpdate(priority="urgent"), now=NOW)
    assert [e.id for e in event_transitions.list_events(store, user_id=owner.id, priority="urgent").items] == [far.id]

    second_page = event_transitions.list_events(store, user_id=owner.id, page=2, limit=3)
    assert [e.id for e in second_page.items] == [far.id]
    assert second_page.total == 4
    assert second_page.pages == 2


@pytest.mark.parametrize(
    "params",
    [
        {"start": NOW, "end": NOW - timedelta(days=1)},
        {"limit": 0},
        {"limit": 101},
        {"page": 0},
        {"event_type": "party"},
        {"status": "done"},
    ],
)
def test_list_events_rejects_bad_filters(store, people, params):
    owner, _, _ = people
    with pytest.raises(InvalidInput):
        event_transitions.list_events(store, user_id=owner.id, **params)


def test_event_stats(store, people, make_event):
    owner, _, stranger = people
    make_event(owner.id, start=NOW + timedelta(days=1), end=NOW + timedelta(days=1, hours=1))
    make_event(owner.id, start=NOW + timedelta(days=20), end=NOW + timedelta(days=20, hours=1), event_type="signature")
    make_event(owner.id, start=NOW - timedelta(days=2), end=NOW - timedelta(days=2, hours=-1))
    make_event(owner.id, start=NOW - timedelta(days=3), end=NOW - timedelta(days=3, hours=-1), status="completed")
    make_event(stranger.id, start=NOW + timedelta(days=1), end=NOW + timedelta(days=1, hours=1))

    stats = event_transitions.compute_event_stats(store, user_id=owner.id, now=NOW)

    assert stats.total == 4
    assert stats.this_month == 3
    assert stats.upcoming == 1
    assert stats.overdue == 1
    assert stats.by_type[EventType.VISITE] == 3
    assert stats.by_type[EventType.SIGNATURE] == 1
    assert stats.by_type[EventType.APPEL] == 0
    assert stats.by_status[EventStatus.SCHEDULED] == 3
    assert stats.by_status[EventStatus.COMPLETED] == 1
    assert stats.by_status[EventStatus.POSTPONED] == 0
    assert len(stats.by_type) == 12
