# backend/homepath/routers/properties.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..domain.property_progress import price_per_square_meter, progress_for_status
from ..models import Property
from ..schemas import PropertyCreate, PropertyOut, PropertyPage, PropertyShareIn, PropertyStatusUpdate, PropertyUpdate
from ..services import property_ops
from ..services.events_facade import journal
from ..services.ownership import must_get_property
from ..services.store import PortfolioStore

router = APIRouter(prefix="/properties", tags=["properties"])


def property_out(prop: Property) -> PropertyOut:
    out = PropertyOut.model_validate(prop)
    out.progress_percentage = progress_for_status(prop.status)
    out.price_per_square_meter = price_per_square_meter(prop.price_amount, prop.surface)
    return out


@router.post("", response_model=PropertyOut, status_code=201)
def create_property(payload: PropertyCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = property_ops.create_property(PortfolioStore(db), user_id=p.user_id, payload=payload, now=datetime.utcnow())
    return property_out(row)


@router.get("", response_model=PropertyPage)
def list_properties(
    status: Optional[str] = Query(default=None),
    city: Optional[str] = Query(default=None),
    min_price: Optional[float] = Query(default=None, ge=0),
    max_price: Optional[float] = Query(default=None, ge=0),
    min_surface: Optional[float] = Query(default=None, ge=0),
    max_surface: Optional[float] = Query(default=None, ge=0),
    search: Optional[str] = Query(default=None),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc"),
    page: int = Query(default=1),
    limit: int = Query(default=property_ops.PROPERTY_PAGE_LIMIT),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    result = property_ops.list_properties(
        PortfolioStore(db),
        user_id=p.user_id,
        status=status,
        city=city,
        min_price=min_price,
        max_price=max_price,
        min_surface=min_surface,
        max_surface=max_surface,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return PropertyPage(
        items=[property_out(r) for r in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.get("/{property_id}", response_model=PropertyOut)
def get_property(property_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return property_out(property_ops.get_property(PortfolioStore(db), user_id=p.user_id, property_id=property_id))


@router.put("/{property_id}", response_model=PropertyOut)
def update_property(
    property_id: int,
    payload: PropertyUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    row = property_ops.update_property(
        PortfolioStore(db),
        user_id=p.user_id,
        property_id=property_id,
        payload=payload,
        now=datetime.utcnow(),
    )
    return property_out(row)


@router.put("/{property_id}/status", response_model=PropertyOut)
def update_property_status(
    property_id: int,
    payload: PropertyStatusUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    row = property_ops.update_property_status(
        PortfolioStore(db),
        user_id=p.user_id,
        property_id=property_id,
        status=payload.status,
        current_step_id=payload.current_step_id,
        now=datetime.utcnow(),
    )
    return property_out(row)


@router.post("/{property_id}/share", response_model=PropertyOut)
def share_property(
    property_id: int,
    payload: PropertyShareIn,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    row = property_ops.share_property(
        PortfolioStore(db),
        user_id=p.user_id,
        property_id=property_id,
        payload=payload,
        now=datetime.utcnow(),
    )
    return property_out(row)


@router.delete("/{property_id}", status_code=204)
def delete_property(property_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    property_ops.delete_property(PortfolioStore(db), user_id=p.user_id, property_id=property_id, now=datetime.utcnow())


@router.get("/{property_id}/history", response_model=list[dict])
def property_history(
    property_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    """
    Workflow events recorded against the property, newest first.
    """
    store = PortfolioStore(db)
    must_get_property(store, user_id=p.user_id, property_id=property_id)
    rows = journal.list_for_property(store, property_id=property_id, limit=limit)
    return [
        {
            "id": r.id,
            "event_type": r.event_type,
            "actor_user_id": r.actor_user_id,
            "payload": r.payload,
            "created_at": r.created_at,
        }
        for r in rows
    ]
