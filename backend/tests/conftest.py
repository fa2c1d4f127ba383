# backend/tests/conftest.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from homepath import models  # noqa: F401
from homepath.db import Base, get_db
from homepath.main import create_app
from homepath.models import AppUser, CalendarEvent, Step
from homepath.schemas import PropertyCreate
from homepath.services import property_ops
from homepath.services.store import PortfolioStore

NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture()
def db_session(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def store(db_session) -> PortfolioStore:
    return PortfolioStore(db_session)


@pytest.fixture()
def client(db_session):
    app = create_app()

    def _db():
        yield db_session

    app.dependency_overrides[get_db] = _db
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_user(db_session):
    def _make(email: str) -> AppUser:
        u = AppUser(email=email, display_name=email.split("@")[0], created_at=NOW)
        db_session.add(u)
        db_session.commit()
        db_session.refresh(u)
        return u

    return _make


@pytest.fixture()
def make_property(store):
    def _make(
        user_id: int,
        *,
        title: str = "Flat in Lyon",
        price: float = 200000.0,
        status: str = "searching",
        now: datetime = NOW,
        default_steps: bool = False,
    ):
        return property_ops.create_property(
            store,
            user_id=user_id,
            payload=PropertyCreate(
                title=title,
                street="1 rue de la Republique",
                city="Lyon",
                postal_code="69001",
                price_amount=price,
                surface=50,
                rooms=2,
                status=status,
            ),
            now=now,
            with_default_steps=default_steps,
        )

    return _make


@pytest.fixture()
def make_step(db_session):
    """Raw step rows, so tests can place them in any state."""

    def _make(
        property_id: int,
        *,
        order: int,
        name: Optional[str] = None,
        status: str = "todo",
        category: str = "visite",
        priority: str = "medium",
        deadline: Optional[datetime] = None,
        actual_start: Optional[datetime] = None,
        actual_end: Optional[datetime] = None,
        updated_at: datetime = NOW,
    ) -> Step:
        s = Step(
            property_id=property_id,
            name=name or f"step {order}",
            category=category,
            status=status,
            priority=priority,
            order=order,
            deadline=deadline,
            actual_start=actual_start,
            actual_end=actual_end,
            completion_percentage=100 if status == "completed" else 0,
            created_at=NOW,
            updated_at=updated_at,
        )
        db_session.add(s)
        db_session.commit()
        db_session.refresh(s)
        return s

    return _make


@pytest.fixture()
def make_event(db_session):
    def _make(
        owner_id: int,
        *,
        start: datetime,
        end: datetime,
        title: str = "Visit",
        event_type: str = "visite",
        status: str = "scheduled",
        property_id: Optional[int] = None,
        created_at: datetime = NOW,
    ) -> CalendarEvent:
        ev = CalendarEvent(
            owner_id=owner_id,
            property_id=property_id,
            title=title,
            event_type=event_type,
            status=status,
            start_date=start,
            end_date=end,
            created_at=created_at,
            updated_at=created_at,
        )
        db_session.add(ev)
        db_session.commit()
        db_session.refresh(ev)
        return ev

    return _make
