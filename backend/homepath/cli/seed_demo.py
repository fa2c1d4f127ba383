# backend/homepath/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from homepath.auth import issue_token
from homepath.db import Base, SessionLocal, engine
from homepath.domain.enums import CostCategory, DocumentCategory, EventType, Priority, PropertyStatus
from homepath.models import AppUser, Property
from homepath.schemas import DocumentRegister, EventCreate, PropertyCreate, StepCostIn
from homepath.services import document_ops, event_transitions, property_ops, step_transitions
from homepath.services.store import PortfolioStore


@dataclass(frozen=True)
class SeedResult:
    user_email: str
    user_id: int
    property_id: Optional[int]
    token: Optional[str]


def _get_or_create_user(db: Session, email: str, display_name: str) -> AppUser:
    email = email.strip().lower()
    row = db.query(AppUser).filter(AppUser.email == email).one_or_none()
    if row:
        return row
    row = AppUser(email=email, display_name=display_name)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _seed_portfolio(store: PortfolioStore, *, user_id: int, now: datetime) -> Property:
    prop = property_ops.create_property(
        store,
        user_id=user_id,
        payload=PropertyCreate(
            title="Two-bedroom near the canal",
            street="12 quai de Valmy",
            city="Paris",
            postal_code="75010",
            price_amount=420000,
            surface=56,
            rooms=3,
            bedrooms=2,
            bathrooms=1,
            status=PropertyStatus.VISITING,
        ),
        now=now,
    )

    steps = step_transitions.list_property_steps(store, user_id=user_id, property_id=prop.id)
    first_visit = steps[1]
    step_transitions.transition_step_status(store, user_id=user_id, step_id=first_visit.id, status="in_progress", now=now)

    step_transitions.add_step_cost(
        store,
        user_id=user_id,
        step_id=first_visit.id,
        payload=StepCostIn(category=CostCategory.DIAGNOSTICS, label="Pre-visit survey", amount=350),
        now=now,
    )

    event_transitions.create_event(
        store,
        user_id=user_id,
        payload=EventCreate(
            title="Second visit with the agent",
            event_type=EventType.VISITE,
            priority=Priority.HIGH,
            start_date=now + timedelta(days=2),
            end_date=now + timedelta(days=2, hours=1),
            location="12 quai de Valmy, Paris",
            property_id=prop.id,
            step_id=steps[2].id,
        ),
        now=now,
    )

    document_ops.register_document(
        store,
        user_id=user_id,
        payload=DocumentRegister(
            property_id=prop.id,
            step_id=first_visit.id,
            name="Floor plan",
            category=DocumentCategory.PLAN,
            original_name="plan.pdf",
            filename="plan-demo.pdf",
            storage_path="uploads/demo/plan-demo.pdf",
            mime_type="application/pdf",
            size_bytes=248_000,
        ),
        now=now,
    )
    return prop


def seed_demo(
    *,
    user_email: str = "demo@homepath.local",
    user_name: str = "Demo",
    create_sample_property: bool = True,
    issue_demo_token: bool = False,
) -> SeedResult:
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        user = _get_or_create_user(db, user_email, user_name)
        store = PortfolioStore(db)

        property_id: Optional[int] = None
        if create_sample_property:
            prop = db.query(Property).filter(Property.owner_id == user.id, Property.is_active.is_(True)).first()
            if not prop:
                prop = _seed_portfolio(store, user_id=int(user.id), now=datetime.utcnow())
            property_id = int(prop.id)

        token = issue_token(int(user.id)) if issue_demo_token else None
        return SeedResult(user_email=user.email, user_id=int(user.id), property_id=property_id, token=token)
    finally:
        db.close()
