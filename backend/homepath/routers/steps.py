# backend/homepath/routers/steps.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..domain import step_lifecycle
from ..models import Step
from ..schemas import (
    ChecklistItemIn,
    ChecklistReplace,
    StepCostIn,
    StepCostOut,
    StepCreate,
    StepOut,
    StepReorder,
    StepStatusUpdate,
    StepUpdate,
)
from ..services import step_transitions
from ..services.store import PortfolioStore

router = APIRouter(prefix="/steps", tags=["steps"])


def step_out(step: Step, *, now: datetime) -> StepOut:
    out = StepOut.model_validate(step)
    out.is_overdue = step_lifecycle.is_overdue(step, now=now)
    out.checklist_completion = step_lifecycle.checklist_completion(step.checklist)
    out.actual_duration_days = step_lifecycle.actual_duration_days(step)
    out.estimated_duration_days = step_lifecycle.estimated_duration_days(step)
    return out


@router.get("/property/{property_id}", response_model=list[StepOut])
def list_steps(property_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    now = datetime.utcnow()
    rows = step_transitions.list_property_steps(PortfolioStore(db), user_id=p.user_id, property_id=property_id)
    return [step_out(s, now=now) for s in rows]


@router.get("/{step_id}", response_model=StepOut)
def get_step(step_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = step_transitions.get_step(PortfolioStore(db), user_id=p.user_id, step_id=step_id)
    return step_out(row, now=datetime.utcnow())


@router.post("", response_model=StepOut, status_code=201)
def create_step(payload: StepCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    now = datetime.utcnow()
    row = step_transitions.create_step(PortfolioStore(db), user_id=p.user_id, payload=payload, now=now)
    return step_out(row, now=now)


@router.put("/{step_id}", response_model=StepOut)
def update_step(step_id: int, payload: StepUpdate, db: Session = Depends(get_db), p=Depends(get_principal)):
    now = datetime.utcnow()
    row = step_transitions.update_step(PortfolioStore(db), user_id=p.user_id, step_id=step_id, payload=payload, now=now)
    return step_out(row, now=now)


@router.put("/{step_id}/status", response_model=StepOut)
def update_step_status(
    step_id: int,
    payload: StepStatusUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    now = datetime.utcnow()
    row = step_transitions.transition_step_status(
        PortfolioStore(db), user_id=p.user_id, step_id=step_id, status=payload.status, now=now
    )
    return step_out(row, now=now)


@router.put("/{step_id}/checklist", response_model=StepOut)
def replace_checklist(
    step_id: int,
    payload: ChecklistReplace,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    now = datetime.utcnow()
    row = step_transitions.replace_step_checklist(
        PortfolioStore(db), user_id=p.user_id, step_id=step_id, items=payload.checklist, now=now
    )
    return step_out(row, now=now)


@router.post("/{step_id}/checklist-item", response_model=StepOut)
def add_checklist_item(
    step_id: int,
    payload: ChecklistItemIn,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    now = datetime.utcnow()
    row = step_transitions.append_checklist_item(
        PortfolioStore(db), user_id=p.user_id, step_id=step_id, item=payload, now=now
    )
    return step_out(row, now=now)


@router.post("/{step_id}/costs", response_model=StepCostOut, status_code=201)
def add_cost(step_id: int, payload: StepCostIn, db: Session = Depends(get_db), p=Depends(get_principal)):
    return step_transitions.add_step_cost(
        PortfolioStore(db), user_id=p.user_id, step_id=step_id, payload=payload, now=datetime.utcnow()
    )


@router.post("/reorder", response_model=list[StepOut])
def reorder_steps(payload: StepReorder, db: Session = Depends(get_db), p=Depends(get_principal)):
    now = datetime.utcnow()
    rows = step_transitions.reorder_steps(
        PortfolioStore(db), user_id=p.user_id, property_id=payload.property_id, items=payload.steps, now=now
    )
    return [step_out(s, now=now) for s in rows]


@router.delete("/{step_id}", status_code=204)
def delete_step(step_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    step_transitions.delete_step(PortfolioStore(db), user_id=p.user_id, step_id=step_id, now=datetime.utcnow())
