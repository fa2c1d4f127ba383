# backend/homepath/services/ownership.py
from __future__ import annotations

from ..domain.errors import Forbidden, NotFound
from ..models import CalendarEvent, Document, Property, Step
from .store import PortfolioStore
from .visibility import document_visibility, event_visibility, property_visibility, resolve_portfolio


def must_get_property(store: PortfolioStore, *, user_id: int, property_id: int) -> Property:
    row = store.find_one(Property, Property.id == int(property_id), property_visibility(user_id))
    if not row:
        raise NotFound("property not found")
    return row


def must_own_property(store: PortfolioStore, *, user_id: int, property_id: int) -> Property:
    row = must_get_property(store, user_id=user_id, property_id=property_id)
    require_owner(row, user_id=user_id)
    return row


def require_owner(row: Property | CalendarEvent, *, user_id: int) -> None:
    if int(row.owner_id) != int(user_id):
        raise Forbidden("only the owner can do this")


def must_get_step(store: PortfolioStore, *, user_id: int, step_id: int) -> tuple[Step, Property]:
    """
    Active step whose property the caller can see.
    """
    step = store.find_one(Step, Step.id == int(step_id), Step.is_active.is_(True))
    if not step:
        raise NotFound("step not found")
    prop = store.find_one(Property, Property.id == int(step.property_id), property_visibility(user_id))
    if not prop:
        raise NotFound("step not found")
    return step, prop


def must_get_event(store: PortfolioStore, *, user_id: int, event_id: int) -> CalendarEvent:
    row = store.find_one(CalendarEvent, CalendarEvent.id == int(event_id), event_visibility(user_id))
    if not row:
        raise NotFound("event not found")
    return row


def must_get_document(store: PortfolioStore, *, user_id: int, document_id: int) -> Document:
    scope = resolve_portfolio(store, user_id=user_id)
    row = store.find_one(
        Document,
        Document.id == int(document_id),
        document_visibility(user_id, scope.property_ids),
    )
    if not row:
        raise NotFound("document not found")
    return row


def must_own_document(store: PortfolioStore, *, user_id: int, document_id: int) -> tuple[Document, Property]:
    """
    Document management belongs to the owner of the property it is filed under.
    """
    doc = must_get_document(store, user_id=user_id, document_id=document_id)
    prop = store.get(Property, doc.property_id)
    if prop is None or int(prop.owner_id) != int(user_id):
        raise Forbidden("only the property owner can do this")
    return doc, prop
