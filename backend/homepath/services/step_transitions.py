# backend/homepath/services/step_transitions.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from ..domain import step_lifecycle
from ..domain.enums import CostCategory, Currency, Priority, StepCategory, StepStatus, coerce
from ..domain.errors import InvalidInput, NotFound
from ..models import Step, StepChecklistItem, StepCost
from ..schemas import ChecklistItemIn, StepCostIn, StepCreate, StepOrderItem, StepUpdate
from .events_facade import journal
from .ownership import must_get_property, must_get_step, must_own_property, require_owner
from .store import PortfolioStore

log = logging.getLogger("homepath.steps")

# fields an edit may set but never clear
_REQUIRED_FIELDS = ("name", "category", "priority", "order")


def _snapshot(step: Step) -> dict[str, Any]:
    return {
        "status": step.status,
        "order": step.order,
        "priority": step.priority,
        "deadline": step.deadline,
        "completion_percentage": step.completion_percentage,
        "checklist": len(step.checklist or []),
        "is_active": step.is_active,
    }


def _order_taken(store: PortfolioStore, *, property_id: int, order: int, exclude_id: Optional[int] = None) -> bool:
    criteria = [
        Step.property_id == int(property_id),
        Step.is_active.is_(True),
        Step.order == int(order),
    ]
    if exclude_id is not None:
        criteria.append(Step.id != int(exclude_id))
    return store.count(Step, *criteria) > 0


def _checklist_rows(items: Iterable[ChecklistItemIn], *, user_id: int, now: datetime) -> list[StepChecklistItem]:
    rows = []
    for pos, it in enumerate(items):
        rows.append(
            StepChecklistItem(
                position=pos,
                item=it.item,
                completed=bool(it.completed),
                completed_at=now if it.completed else None,
                completed_by_user_id=int(user_id) if it.completed else None,
                notes=it.notes,
            )
        )
    return rows


# -----------------------------------------------------------------------------
# Reads
# -----------------------------------------------------------------------------


def list_property_steps(store: PortfolioStore, *, user_id: int, property_id: int) -> list[Step]:
    must_get_property(store, user_id=user_id, property_id=property_id)
    return store.find(
        Step,
        Step.property_id == int(property_id),
        Step.is_active.is_(True),
        order_by=(Step.order, Step.id),
    )


def get_step(store: PortfolioStore, *, user_id: int, step_id: int) -> Step:
    step, _ = must_get_step(store, user_id=user_id, step_id=step_id)
    return step


# -----------------------------------------------------------------------------
# Mutations
# -----------------------------------------------------------------------------


def create_step(store: PortfolioStore, *, user_id: int, payload: StepCreate, now: datetime) -> Step:
    prop = must_own_property(store, user_id=user_id, property_id=payload.property_id)

    if payload.planned_start and payload.planned_end and payload.planned_end < payload.planned_start:
        raise InvalidInput("planned_end must not be before planned_start")
    if _order_taken(store, property_id=prop.id, order=payload.order):
        raise InvalidInput(f"a step with order {payload.order} already exists")

    step = Step(
        property_id=prop.id,
        name=payload.name,
        description=payload.description,
        category=coerce(StepCategory, payload.category).value,
        status=StepStatus.TODO.value,
        priority=coerce(Priority, payload.priority).value,
        order=int(payload.order),
        planned_start=payload.planned_start,
        planned_end=payload.planned_end,
        deadline=payload.deadline,
        notes=payload.notes,
        completion_percentage=0,
        created_at=now,
        updated_at=now,
    )
    step.checklist = _checklist_rows(payload.checklist, user_id=user_id, now=now)
    step_lifecycle.recompute_completion(step)
    store.add(step)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="step.create",
        entity_type="Step",
        entity_id=step.id,
        event_type="step_created",
        property_id=prop.id,
        after=_snapshot(step),
        payload={"step_id": int(step.id), "order": step.order, "category": step.category},
    )
    store.commit()
    return store.refresh(step)


def update_step(store: PortfolioStore, *, user_id: int, step_id: int, payload: StepUpdate, now: datetime) -> Step:
    """
    Owner-only edit of a step's plan: naming, category, priority, dates and
    order. Status, checklist and costs have their own operations.
    """
    step, prop = must_get_step(store, user_id=user_id, step_id=step_id)
    require_owner(prop, user_id=user_id)

    changes = payload.model_dump(exclude_unset=True)
    for name in _REQUIRED_FIELDS:
        if name in changes and changes[name] is None:
            raise InvalidInput(f"{name} cannot be cleared")
    if "category" in changes:
        changes["category"] = coerce(StepCategory, changes["category"]).value
    if "priority" in changes:
        changes["priority"] = coerce(Priority, changes["priority"]).value

    planned_start = changes.get("planned_start", step.planned_start)
    planned_end = changes.get("planned_end", step.planned_end)
    if planned_start and planned_end and planned_end < planned_start:
        raise InvalidInput("planned_end must not be before planned_start")
    if "order" in changes and _order_taken(
        store, property_id=prop.id, order=changes["order"], exclude_id=step.id
    ):
        raise InvalidInput(f"a step with order {changes['order']} already exists")

    before = _snapshot(step)
    for name, value in changes.items():
        setattr(step, name, value)
    step.updated_at = now
    store.add(step)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="step.update",
        entity_type="Step",
        entity_id=step.id,
        event_type="step_updated",
        property_id=prop.id,
        before=before,
        after=_snapshot(step),
        payload={"step_id": int(step.id), "fields": sorted(changes)},
    )
    store.commit()
    return store.refresh(step)


def transition_step_status(
    store: PortfolioStore,
    *,
    user_id: int,
    step_id: int,
    status: StepStatus | str,
    now: datetime,
) -> Step:
    """
    Owner or any sharee may move a step. in_progress from todo stamps
    actual_start, completed stamps actual_end; everything else overwrites.
    """
    new_status = coerce(StepStatus, status)
    step, prop = must_get_step(store, user_id=user_id, step_id=step_id)

    before = _snapshot(step)
    old = step_lifecycle.set_status(step, new_status.value, now=now)
    step.updated_at = now
    store.add(step)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="step.status",
        entity_type="Step",
        entity_id=step.id,
        event_type="step_status_changed",
        property_id=prop.id,
        before=before,
        after=_snapshot(step),
        payload={"step_id": int(step.id), "from": old, "to": step.status},
    )
    store.commit()
    log.info(
        "step status changed",
        extra={"user_id": user_id, "property_id": prop.id, "step_id": step.id},
    )
    return store.refresh(step)


def replace_step_checklist(
    store: PortfolioStore,
    *,
    user_id: int,
    step_id: int,
    items: list[ChecklistItemIn],
    now: datetime,
) -> Step:
    """
    Replace the whole checklist. Completed items are stamped with now and the
    caller, then completion is recomputed.
    """
    step, prop = must_get_step(store, user_id=user_id, step_id=step_id)

    before = _snapshot(step)
    step.checklist = _checklist_rows(items, user_id=user_id, now=now)
    step_lifecycle.recompute_completion(step)
    step.updated_at = now
    store.add(step)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="step.checklist",
        entity_type="Step",
        entity_id=step.id,
        event_type="step_checklist_replaced",
        property_id=prop.id,
        before=before,
        after=_snapshot(step),
        payload={"step_id": int(step.id), "items": len(step.checklist)},
    )
    store.commit()
    return store.refresh(step)


def append_checklist_item(
    store: PortfolioStore,
    *,
    user_id: int,
    step_id: int,
    item: ChecklistItemIn,
    now: datetime,
) -> Step:
    step, prop = must_get_step(store, user_id=user_id, step_id=step_id)
    require_owner(prop, user_id=user_id)

    before = _snapshot(step)
    step.checklist.append(
        StepChecklistItem(
            position=len(step.checklist),
            item=item.item,
            completed=False,
            notes=item.notes,
        )
    )
    step_lifecycle.recompute_completion(step)
    step.updated_at = now
    store.add(step)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="step.checklist_item",
        entity_type="Step",
        entity_id=step.id,
        event_type="step_checklist_item_added",
        property_id=prop.id,
        before=before,
        after=_snapshot(step),
        payload={"step_id": int(step.id), "item": item.item},
    )
    store.commit()
    return store.refresh(step)


def reorder_steps(
    store: PortfolioStore,
    *,
    user_id: int,
    property_id: int,
    items: list[StepOrderItem],
    now: datetime,
) -> list[Step]:
    """
    Apply new orders to some or all of a property's steps.

    The resulting order set must stay unique among active steps.
    """
    prop = must_own_property(store, user_id=user_id, property_id=property_id)
    steps = store.find(Step, Step.property_id == prop.id, Step.is_active.is_(True))
    by_id = {int(s.id): s for s in steps}

    requested: dict[int, int] = {}
    for it in items:
        if int(it.id) not in by_id:
            raise NotFound("step not found")
        if int(it.id) in requested:
            raise InvalidInput(f"step {it.id} listed twice")
        requested[int(it.id)] = int(it.order)

    final = {sid: requested.get(sid, int(s.order)) for sid, s in by_id.items()}
    if len(set(final.values())) != len(final):
        raise InvalidInput("step orders must be unique within a property")

    before = {sid: int(s.order) for sid, s in by_id.items()}
    for sid, order in requested.items():
        step = by_id[sid]
        if step.order != order:
            step.order = order
            step.updated_at = now
            store.add(step)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="step.reorder",
        entity_type="Property",
        entity_id=prop.id,
        event_type="steps_reordered",
        property_id=prop.id,
        before={"orders": before},
        after={"orders": final},
        payload={"steps": len(requested)},
    )
    store.commit()
    return store.find(
        Step,
        Step.property_id == prop.id,
        Step.is_active.is_(True),
        order_by=(Step.order, Step.id),
    )


def delete_step(store: PortfolioStore, *, user_id: int, step_id: int, now: datetime) -> None:
    step, prop = must_get_step(store, user_id=user_id, step_id=step_id)
    require_owner(prop, user_id=user_id)

    before = _snapshot(step)
    step.is_active = False
    step.updated_at = now
    store.add(step)
    if prop.current_step_id == step.id:
        prop.current_step_id = None
        prop.updated_at = now
        store.add(prop)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="step.delete",
        entity_type="Step",
        entity_id=step.id,
        event_type="step_deleted",
        property_id=prop.id,
        before=before,
        after=_snapshot(step),
        payload={"step_id": int(step.id)},
    )
    store.commit()


def add_step_cost(
    store: PortfolioStore,
    *,
    user_id: int,
    step_id: int,
    payload: StepCostIn,
    now: datetime,
) -> StepCost:
    step, prop = must_get_step(store, user_id=user_id, step_id=step_id)
    require_owner(prop, user_id=user_id)

    cost = StepCost(
        step_id=step.id,
        category=coerce(CostCategory, payload.category).value,
        label=payload.label,
        amount=float(payload.amount),
        currency=coerce(Currency, payload.currency).value,
        created_at=now,
    )
    store.add(cost)
    step.updated_at = now
    store.add(step)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="step.cost",
        entity_type="StepCost",
        entity_id=cost.id,
        event_type="step_cost_added",
        property_id=prop.id,
        after={"category": cost.category, "amount": cost.amount, "currency": cost.currency},
        payload={"step_id": int(step.id), "cost_id": int(cost.id)},
    )
    store.commit()
    return store.refresh(cost)
