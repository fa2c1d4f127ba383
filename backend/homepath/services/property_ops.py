# backend/homepath/services/property_ops.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import desc, or_

from ..domain import step_lifecycle
from ..domain.enums import Currency, Priority, PropertyStatus, ShareRole, StepCategory, StepStatus, coerce
from ..domain.errors import InvalidInput, NotFound
from ..models import AppUser, Property, PropertyShare, Step
from ..schemas import PropertyCreate, PropertyShareIn, PropertyUpdate
from .events_facade import journal
from .ownership import must_get_property, must_own_property
from .store import Page, PortfolioStore
from .visibility import check_page, contains, property_visibility, value_range

log = logging.getLogger("homepath.properties")

# Purchase workflow every new property starts with: (name, category)
DEFAULT_STEPS: tuple[tuple[str, StepCategory], ...] = (
    ("Active search", StepCategory.RECHERCHE),
    ("First visit", StepCategory.VISITE),
    ("Second visit", StepCategory.VISITE),
    ("Make an offer", StepCategory.OFFRE),
    ("Negotiation", StepCategory.OFFRE),
    ("Sign the compromis", StepCategory.COMPROMIS),
    ("Loan application", StepCategory.FINANCEMENT),
    ("Property diagnostics", StepCategory.DIAGNOSTICS),
    ("Loan approval", StepCategory.FINANCEMENT),
    ("Final signature", StepCategory.SIGNATURE),
    ("Key handover", StepCategory.REMISE_CLES),
)


def _snapshot(prop: Property) -> dict[str, Any]:
    return {
        "title": prop.title,
        "status": prop.status,
        "current_step_id": prop.current_step_id,
        "price_amount": prop.price_amount,
        "is_active": prop.is_active,
    }


def _default_steps(property_id: int, *, now: datetime) -> list[Step]:
    steps = []
    for order, (name, category) in enumerate(DEFAULT_STEPS, start=1):
        step = Step(
            property_id=property_id,
            name=name,
            category=category.value,
            status=StepStatus.TODO.value,
            priority=Priority.MEDIUM.value,
            order=order,
            completion_percentage=0,
            created_at=now,
            updated_at=now,
        )
        if order == 1:
            step_lifecycle.start(step, now=now)
        steps.append(step)
    return steps


PROPERTY_SORTS = {
    "created_at": Property.created_at,
    "price": Property.price_amount,
    "surface": Property.surface,
    "title": Property.title,
}
PROPERTY_PAGE_LIMIT = 10

# columns a partial update may not clear
_REQUIRED_FIELDS = (
    "title",
    "street",
    "city",
    "postal_code",
    "country",
    "price_amount",
    "price_currency",
    "surface",
    "rooms",
)


def list_properties(
    store: PortfolioStore,
    *,
    user_id: int,
    status: Optional[str] = None,
    city: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    min_surface: Optional[float] = None,
    max_surface: Optional[float] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = PROPERTY_PAGE_LIMIT,
) -> Page[Property]:
    """
    Visible properties, filtered and paginated. `search` matches title,
    description, street and city.
    """
    check_page(page, limit)
    column = PROPERTY_SORTS.get(sort_by)
    if column is None:
        raise InvalidInput(f"sort_by must be one of: {', '.join(PROPERTY_SORTS)}")
    if sort_order not in ("asc", "desc"):
        raise InvalidInput("sort_order must be asc or desc")

    criteria = [
        property_visibility(user_id),
        value_range(Property.price_amount, min_price, max_price, name="price"),
        value_range(Property.surface, min_surface, max_surface, name="surface"),
    ]
    if status is not None:
        criteria.append(Property.status == coerce(PropertyStatus, status).value)
    if city and city.strip():
        criteria.append(contains(Property.city, city))
    if search and search.strip():
        criteria.append(
            or_(
                contains(Property.title, search),
                contains(Property.description, search),
                contains(Property.street, search),
                contains(Property.city, search),
            )
        )

    if sort_order == "desc":
        order_by = (desc(column), desc(Property.id))
    else:
        order_by = (column, Property.id)
    return store.page(Property, *criteria, order_by=order_by, page=page, limit=limit)


def get_property(store: PortfolioStore, *, user_id: int, property_id: int) -> Property:
    return must_get_property(store, user_id=user_id, property_id=property_id)


def create_property(
    store: PortfolioStore,
    *,
    user_id: int,
    payload: PropertyCreate,
    now: datetime,
    with_default_steps: bool = True,
) -> Property:
    prop = Property(
        owner_id=int(user_id),
        title=payload.title.strip(),
        description=payload.description,
        street=payload.street,
        city=payload.city,
        postal_code=payload.postal_code,
        country=payload.country,
        price_amount=float(payload.price_amount),
        price_currency=coerce(Currency, payload.price_currency).value,
        surface=float(payload.surface),
        rooms=int(payload.rooms),
        bedrooms=payload.bedrooms,
        bathrooms=payload.bathrooms,
        status=coerce(PropertyStatus, payload.status).value,
        notes=payload.notes,
        created_at=now,
        updated_at=now,
    )
    store.add(prop)

    if with_default_steps:
        steps = _default_steps(prop.id, now=now)
        for s in steps:
            store.add(s)
        prop.current_step_id = steps[0].id
        store.add(prop)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="property.create",
        entity_type="Property",
        entity_id=prop.id,
        event_type="property_created",
        property_id=prop.id,
        after=_snapshot(prop),
        payload={"property_id": int(prop.id), "default_steps": bool(with_default_steps)},
    )
    store.commit()
    log.info("property created", extra={"user_id": user_id, "property_id": prop.id})
    return store.refresh(prop)


def update_property_status(
    store: PortfolioStore,
    *,
    user_id: int,
    property_id: int,
    status: PropertyStatus | str,
    now: datetime,
    current_step_id: Optional[int] = None,
) -> Property:
    new_status = coerce(PropertyStatus, status)
    prop = must_own_property(store, user_id=user_id, property_id=property_id)

    if current_step_id is not None:
        step = store.find_one(
            Step,
            Step.id == int(current_step_id),
            Step.property_id == prop.id,
            Step.is_active.is_(True),
        )
        if step is None:
            raise InvalidInput("current step does not belong to this property")

    prior = _snapshot(prop)
    prop.status = new_status.value
    if current_step_id is not None:
        prop.current_step_id = int(current_step_id)
    prop.updated_at = now
    store.add(prop)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="property.status",
        entity_type="Property",
        entity_id=prop.id,
        event_type="property_status_changed",
        property_id=prop.id,
        before=prior,
        after=_snapshot(prop),
        payload={"from": prior["status"], "to": prop.status},
    )
    store.commit()
    return store.refresh(prop)


def update_property(
    store: PortfolioStore,
    *,
    user_id: int,
    property_id: int,
    payload: PropertyUpdate,
    now: datetime,
) -> Property:
    prop = must_own_property(store, user_id=user_id, property_id=property_id)

    changes = payload.model_dump(exclude_unset=True)
    for name in _REQUIRED_FIELDS:
        if name in changes and changes[name] is None:
            raise InvalidInput(f"{name} cannot be cleared")
    if "title" in changes:
        changes["title"] = changes["title"].strip()
    if "price_currency" in changes:
        changes["price_currency"] = coerce(Currency, changes["price_currency"]).value

    prior = _snapshot(prop)
    for name, value in changes.items():
        setattr(prop, name, value)
    prop.updated_at = now
    store.add(prop)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="property.update",
        entity_type="Property",
        entity_id=prop.id,
        event_type="property_updated",
        property_id=prop.id,
        before=prior,
        after=_snapshot(prop),
        payload={"fields": sorted(changes)},
    )
    store.commit()
    return store.refresh(prop)


def share_property(
    store: PortfolioStore,
    *,
    user_id: int,
    property_id: int,
    payload: PropertyShareIn,
    now: datetime,
) -> Property:
    prop = must_own_property(store, user_id=user_id, property_id=property_id)

    target = store.find_one(AppUser, AppUser.email == payload.user_email.strip().lower())
    if target is None:
        raise NotFound("user not found")
    if int(target.id) == int(prop.owner_id):
        raise InvalidInput("cannot share a property with its owner")

    role = coerce(ShareRole, payload.role).value
    share = store.find_one(
        PropertyShare,
        PropertyShare.property_id == prop.id,
        PropertyShare.user_id == int(target.id),
    )
    if share is None:
        share = PropertyShare(property_id=prop.id, user_id=int(target.id), role=role, shared_at=now)
    else:
        share.role = role
    store.add(share)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="property.share",
        entity_type="Property",
        entity_id=prop.id,
        event_type="property_shared",
        property_id=prop.id,
        after={"user_id": int(target.id), "role": role},
    )
    store.commit()
    return store.refresh(prop)


def delete_property(store: PortfolioStore, *, user_id: int, property_id: int, now: datetime) -> None:
    prop = must_own_property(store, user_id=user_id, property_id=property_id)

    prior = _snapshot(prop)
    prop.is_active = False
    prop.updated_at = now
    store.add(prop)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="property.delete",
        entity_type="Property",
        entity_id=prop.id,
        event_type="property_deleted",
        property_id=prop.id,
        before=prior,
        after=_snapshot(prop),
    )
    store.commit()
