# backend/tests/test_api.py
from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError

from homepath.auth import issue_token
from homepath.domain.errors import DependencyFailure
from homepath.models import AppUser
from homepath.services.store import PortfolioStore

OWNER = {"X-User-Email": "owner@demo.local"}
STRANGER = {"X-User-Email": "stranger@demo.local"}


def _property_body(**over) -> dict:
    body = {
        "title": "Loft in Nantes",
        "street": "3 rue Kervegan",
        "city": "Nantes",
        "postal_code": "44000",
        "price_amount": 310000,
        "surface": 72,
        "rooms": 3,
    }
    body.update(over)
    return body


def test_health(client):
    r = client.get("/api/meta/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.headers.get("X-Request-ID")


def test_missing_identity_is_401(client):
    r = client.get("/api/dashboard/overview")
    assert r.status_code == 401


def test_property_flow_and_dashboard(client):
    r = client.post("/api/properties", json=_property_body(), headers=OWNER)
    assert r.status_code == 201, r.text
    prop = r.json()
    assert prop["progress_percentage"] == 10
    assert prop["price_per_square_meter"] == 4306

    r = client.get(f"/api/steps/property/{prop['id']}", headers=OWNER)
    assert r.status_code == 200
    steps = r.json()
    assert len(steps) == 11
    assert steps[0]["status"] == "in_progress"

    r = client.put(f"/api/steps/{steps[0]['id']}/status", json={"status": "completed"}, headers=OWNER)
    assert r.status_code == 200
    assert r.json()["completion_percentage"] == 100

    r = client.get("/api/dashboard/overview", headers=OWNER)
    assert r.status_code == 200
    body = r.json()
    assert body["properties"]["total"] == 1
    assert body["properties"]["by_status"]["searching"]["count"] == 1
    assert body["steps"]["completed"] == 1
    assert body["summary"]["global_progress"] == 9

    r = client.get("/api/dashboard/progress", headers=OWNER)
    assert r.status_code == 200
    assert r.json()[0]["progress"]["completed"] == 1

    r = client.get("/api/dashboard/recent-activity", params={"limit": 8}, headers=OWNER)
    assert r.status_code == 200
    assert 0 < len(r.json()) <= 8

    r = client.get(f"/api/properties/{prop['id']}/history", headers=OWNER)
    assert r.status_code == 200
    assert r.json()[0]["event_type"] == "step_status_changed"


def test_invisible_property_is_404(client):
    r = client.post("/api/properties", json=_property_body(), headers=OWNER)
    pid = r.json()["id"]

    assert client.get(f"/api/properties/{pid}", headers=STRANGER).status_code == 404
    assert client.get(f"/api/steps/property/{pid}", headers=STRANGER).status_code == 404


def test_bad_postal_code_is_422(client):
    r = client.post("/api/properties", json=_property_body(postal_code="ABCDE"), headers=OWNER)
    assert r.status_code == 422


def test_bad_period_is_400(client):
    r = client.get("/api/dashboard/analytics", params={"period": "2weeks"}, headers=OWNER)
    assert r.status_code == 400
    assert "period" in r.json()["detail"]


def test_analytics_ok(client):
    r = client.get("/api/dashboard/analytics", params={"period": "1year"}, headers=OWNER)
    assert r.status_code == 200
    assert r.json()["period"] == "1year"


def test_recent_activity_limit_bounds(client):
    r = client.get("/api/dashboard/recent-activity", params={"limit": 0}, headers=OWNER)
    assert r.status_code == 422


def test_calendar_flow(client):
    start = (datetime.utcnow() + timedelta(days=2)).replace(microsecond=0)
    r = client.post(
        "/api/calendar/events",
        json={
            "title": "Bank meeting",
            "event_type": "rendez_vous_banque",
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(hours=1)).isoformat(),
        },
        headers=OWNER,
    )
    assert r.status_code == 201, r.text
    ev = r.json()
    assert ev["is_upcoming"] is True

    r = client.get("/api/calendar/upcoming", headers=OWNER)
    assert [e["id"] for e in r.json()] == [ev["id"]]

    r = client.post(
        f"/api/calendar/events/{ev['id']}/postpone",
        json={"new_start_date": (start + timedelta(days=3)).isoformat()},
        headers=OWNER,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "postponed"

    assert client.get(f"/api/calendar/events/{ev['id']}", headers=STRANGER).status_code == 404


def test_storage_failure_is_opaque_500(client, db_session, monkeypatch):
    # provision the caller before storage breaks
    assert client.get("/api/dashboard/overview", headers=OWNER).status_code == 200

    def boom(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "execute", boom)

    r = client.get("/api/dashboard/overview", headers=OWNER)
    assert r.status_code == 500
    assert r.json() == {"detail": "internal error"}


def test_bearer_token(client, db_session):
    user = AppUser(email="jwt@demo.local", display_name="jwt", created_at=datetime.utcnow())
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)

    token = issue_token(user.id)
    r = client.get("/api/dashboard/progress", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json() == []

    expired = issue_token(user.id, now=datetime.utcnow() - timedelta(days=30))
    r = client.get("/api/dashboard/progress", headers={"Authorization": f"Bearer {expired}"})
    assert r.status_code == 401

    r = client.get("/api/dashboard/progress", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


def test_property_listing_and_edit(client):
    client.post("/api/properties", json=_property_body(), headers=OWNER)
    r = client.post("/api/properties", json=_property_body(title="Maison in Rezé", city="Rezé", price_amount=420000), headers=OWNER)
    pid = r.json()["id"]

    r = client.get("/api/properties", params={"min_price": 400000, "limit": 5}, headers=OWNER)
    assert r.status_code == 200
    body = r.json()
    assert [p["id"] for p in body["items"]] == [pid]
    assert (body["total"], body["page"], body["limit"], body["pages"]) == (1, 1, 5, 1)

    assert client.get("/api/properties", params={"min_price": 5, "max_price": 1}, headers=OWNER).status_code == 400
    assert client.get("/api/properties", params={"sort_by": "rooms"}, headers=OWNER).status_code == 400

    r = client.put(f"/api/properties/{pid}", json={"rooms": 5, "notes": "garden"}, headers=OWNER)
    assert r.status_code == 200, r.text
    assert r.json()["rooms"] == 5
    assert r.json()["status"] == "searching"

    assert client.put(f"/api/properties/{pid}", json={"rooms": 6}, headers=STRANGER).status_code == 404


def test_step_edit(client):
    pid = client.post("/api/properties", json=_property_body(), headers=OWNER).json()["id"]
    steps = client.get(f"/api/steps/property/{pid}", headers=OWNER).json()

    r = client.put(f"/api/steps/{steps[3]['id']}", json={"name": "Visit the cellar", "priority": "high"}, headers=OWNER)
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "Visit the cellar"
    assert r.json()["priority"] == "high"

    r = client.put(f"/api/steps/{steps[3]['id']}", json={"order": steps[0]["order"]}, headers=OWNER)
    assert r.status_code == 400


def test_calendar_listing_stats_and_edit(client):
    start = (datetime.utcnow() + timedelta(days=2)).replace(microsecond=0)
    ids = []
    for title, kind in (("Bank meeting", "rendez_vous_banque"), ("Second visit", "visite")):
        r = client.post(
            "/api/calendar/events",
            json={
                "title": title,
                "event_type": kind,
                "start_date": start.isoformat(),
                "end_date": (start + timedelta(hours=1)).isoformat(),
            },
            headers=OWNER,
        )
        ids.append(r.json()["id"])

    r = client.get("/api/calendar/events", params={"type": "visite"}, headers=OWNER)
    assert r.status_code == 200
    assert [e["id"] for e in r.json()["items"]] == [ids[1]]

    r = client.get("/api/calendar/events", params={"limit": 1, "page": 2}, headers=OWNER)
    assert r.json()["total"] == 2
    assert len(r.json()["items"]) == 1

    r = client.get("/api/calendar/stats", headers=OWNER)
    assert r.status_code == 200
    stats = r.json()
    assert stats["total"] == 2
    assert stats["upcoming"] == 2
    assert stats["by_type"]["visite"] == 1
    assert stats["by_status"]["scheduled"] == 2

    r = client.put(f"/api/calendar/events/{ids[0]}", json={"location": "Agence du centre"}, headers=OWNER)
    assert r.status_code == 200, r.text
    assert r.json()["location"] == "Agence du centre"

    r = client.put(
        f"/api/calendar/events/{ids[0]}", json={"end_date": (start - timedelta(hours=1)).isoformat()}, headers=OWNER
    )
    assert r.status_code == 400


def test_late_overview_sub_query_failure_is_opaque_500(client, monkeypatch):
    assert client.get("/api/dashboard/overview", headers=OWNER).status_code == 200

    real_count = PortfolioStore.count
    calls = []

    def flaky_count(self, model, *criteria):
        calls.append(model.__name__)
        if len(calls) == 7:
            raise DependencyFailure("count:CalendarEvent failed")
        return real_count(self, model, *criteria)

    monkeypatch.setattr(PortfolioStore, "count", flaky_count)

    r = client.get("/api/dashboard/overview", headers=OWNER)
    assert r.status_code == 500
    assert r.json() == {"detail": "internal error"}
    assert len(calls) == 7
