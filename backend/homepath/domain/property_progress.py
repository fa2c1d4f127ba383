# backend/homepath/domain/property_progress.py
from __future__ import annotations

from typing import Any

from .enums import PropertyStatus

# Purchase lifecycle -> displayed progress. Cancelled is 0 wherever the
# purchase stopped.
STATUS_PROGRESS: dict[str, int] = {
    PropertyStatus.SEARCHING.value: 10,
    PropertyStatus.VISITING.value: 20,
    PropertyStatus.OFFER_MADE.value: 40,
    PropertyStatus.COMPROMIS_SIGNED.value: 60,
    PropertyStatus.LOAN_PENDING.value: 75,
    PropertyStatus.FINAL_SIGNATURE.value: 90,
    PropertyStatus.KEYS_RECEIVED.value: 100,
    PropertyStatus.CANCELLED.value: 0,
}


def progress_for_status(status: Any) -> int:
    """Unknown or missing statuses map to 0."""
    if isinstance(status, PropertyStatus):
        status = status.value
    return STATUS_PROGRESS.get(str(status or ""), 0)


def price_per_square_meter(price_amount: float | None, surface: float | None) -> int | None:
    if not price_amount or not surface:
        return None
    return int(round(float(price_amount) / float(surface)))
