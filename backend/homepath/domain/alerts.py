# backend/homepath/domain/alerts.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Alert:
    type: str  # warning | info | error
    title: str
    message: str
    count: int
    priority: str  # high | medium

    def as_dict(self) -> dict:
        return {
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "count": self.count,
            "priority": self.priority,
        }


def derive_alerts(*, overdue_steps: int, upcoming_steps: int, overdue_events: int) -> list[Alert]:
    """
    Dashboard alerts from the overview counts.

    Emission order is fixed (overdue steps, upcoming steps, overdue events);
    zero counts emit nothing. Recomputed on every call, no suppression.
    """
    alerts: list[Alert] = []

    if overdue_steps > 0:
        alerts.append(
            Alert(
                type="warning",
                title="Overdue steps",
                message=f"You have {overdue_steps} overdue step(s)",
                count=int(overdue_steps),
                priority="high",
            )
        )

    if upcoming_steps > 0:
        alerts.append(
            Alert(
                type="info",
                title="Upcoming steps",
                message=f"{upcoming_steps} step(s) due in the next 7 days",
                count=int(upcoming_steps),
                priority="medium",
            )
        )

    if overdue_events > 0:
        alerts.append(
            Alert(
                type="error",
                title="Overdue events",
                message=f"{overdue_events} event(s) past their end date and still open",
                count=int(overdue_events),
                priority="high",
            )
        )

    return alerts
