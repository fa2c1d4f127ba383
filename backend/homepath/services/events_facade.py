# backend/homepath/services/events_facade.py
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import desc

from ..models import AuditEvent, WorkflowEvent
from .store import PortfolioStore, storage_errors


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, ensure_ascii=False, default=str)


def _loads(s: Optional[str]) -> dict[str, Any]:
    if not s:
        return {}
    try:
        return json.loads(s)
    except ValueError:
        return {}


@dataclass(frozen=True)
class WorkflowEventOut:
    id: int
    property_id: Optional[int]
    actor_user_id: Optional[int]
    event_type: str
    payload: dict[str, Any]
    created_at: Optional[datetime]


class ChangeJournal:
    """
    Who-changed-what for every mutation: one AuditEvent (before/after
    snapshots) and one WorkflowEvent (property timeline entry).

    Rows are stamped with the mutation's `now` and flushed into the caller's
    transaction; the caller commits, so a mutation and its journal entries
    land together.

    Mutations import:
        from .events_facade import journal
    """

    def record(
        self,
        store: PortfolioStore,
        *,
        now: datetime,
        actor_user_id: int,
        action: str,
        entity_type: str,
        entity_id: Any,
        event_type: str,
        property_id: Optional[int] = None,
        before: Optional[dict[str, Any]] = None,
        after: Optional[dict[str, Any]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> WorkflowEvent:
        audit = AuditEvent(
            actor_user_id=int(actor_user_id),
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            before_json=_dumps(before),
            after_json=_dumps(after),
            created_at=now,
        )
        event = WorkflowEvent(
            property_id=int(property_id) if property_id is not None else None,
            actor_user_id=int(actor_user_id),
            event_type=event_type,
            payload_json=_dumps(payload or {}),
            created_at=now,
        )
        with storage_errors(action):
            store.db.add_all([audit, event])
            store.db.flush()
        return event

    def list_for_property(self, store: PortfolioStore, *, property_id: int, limit: int = 50) -> list[WorkflowEventOut]:
        rows = store.find(
            WorkflowEvent,
            WorkflowEvent.property_id == int(property_id),
            order_by=(desc(WorkflowEvent.id),),
            limit=int(limit),
        )
        return [
            WorkflowEventOut(
                id=int(r.id),
                property_id=r.property_id,
                actor_user_id=r.actor_user_id,
                event_type=r.event_type,
                payload=_loads(r.payload_json),
                created_at=r.created_at,
            )
            for r in rows
        ]


journal = ChangeJournal()
