# backend/homepath/domain/enums.py
from __future__ import annotations

from enum import Enum
from typing import Any, TypeVar

from .errors import InvalidInput

E = TypeVar("E", bound=Enum)


class PropertyStatus(str, Enum):
    SEARCHING = "searching"
    VISITING = "visiting"
    OFFER_MADE = "offer_made"
    COMPROMIS_SIGNED = "compromis_signed"
    LOAN_PENDING = "loan_pending"
    FINAL_SIGNATURE = "final_signature"
    KEYS_RECEIVED = "keys_received"
    CANCELLED = "cancelled"


class ShareRole(str, Enum):
    VIEWER = "viewer"
    EDITOR = "editor"


class Currency(str, Enum):
    EUR = "EUR"
    USD = "USD"


class StepCategory(str, Enum):
    RECHERCHE = "recherche"
    VISITE = "visite"
    OFFRE = "offre"
    COMPROMIS = "compromis"
    FINANCEMENT = "financement"
    DIAGNOSTICS = "diagnostics"
    SIGNATURE = "signature"
    REMISE_CLES = "remise_cles"
    AUTRE = "autre"


class StepStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class CostCategory(str, Enum):
    NOTARY = "notary"
    AGENCY = "agency"
    LOAN = "loan"
    INSURANCE = "insurance"
    DIAGNOSTICS = "diagnostics"
    WORKS = "works"
    TAXES = "taxes"
    MOVING = "moving"
    OTHER = "other"


class DocumentCategory(str, Enum):
    CONTRAT = "contrat"
    DIAGNOSTIC = "diagnostic"
    FACTURE = "facture"
    PHOTO = "photo"
    PLAN = "plan"
    COMPROMIS = "compromis"
    ACTE_VENTE = "acte_vente"
    PRET = "pret"
    ASSURANCE = "assurance"
    EXPERTISE = "expertise"
    CORRESPONDANCE = "correspondance"
    AUTRE = "autre"


class DocumentType(str, Enum):
    PDF = "pdf"
    IMAGE = "image"
    DOCUMENT = "document"
    SPREADSHEET = "spreadsheet"
    PRESENTATION = "presentation"
    VIDEO = "video"
    AUDIO = "audio"
    ARCHIVE = "archive"
    OTHER = "other"


class DocumentPermission(str, Enum):
    VIEW = "view"
    DOWNLOAD = "download"
    EDIT = "edit"


class EventType(str, Enum):
    VISITE = "visite"
    RENDEZ_VOUS_NOTAIRE = "rendez_vous_notaire"
    RENDEZ_VOUS_BANQUE = "rendez_vous_banque"
    SIGNATURE = "signature"
    REMISE_CLES = "remise_cles"
    EXPERTISE = "expertise"
    DIAGNOSTIC = "diagnostic"
    REUNION = "reunion"
    APPEL = "appel"
    ECHEANCE = "echeance"
    RAPPEL = "rappel"
    AUTRE = "autre"


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"


class AnalyticsPeriod(str, Enum):
    ONE_MONTH = "1month"
    THREE_MONTHS = "3months"
    SIX_MONTHS = "6months"
    ONE_YEAR = "1year"


PERIOD_DAYS: dict[AnalyticsPeriod, int] = {
    AnalyticsPeriod.ONE_MONTH: 30,
    AnalyticsPeriod.THREE_MONTHS: 90,
    AnalyticsPeriod.SIX_MONTHS: 180,
    AnalyticsPeriod.ONE_YEAR: 365,
}

# Steps that still have work ahead of them (overdue / near-term candidates)
OPEN_STEP_STATUSES = (StepStatus.TODO.value, StepStatus.IN_PROGRESS.value)

# Events still waiting to happen
PENDING_EVENT_STATUSES = (EventStatus.SCHEDULED.value, EventStatus.CONFIRMED.value)

# Properties whose purchase is still moving
ACTIVE_PROPERTY_STATUSES = tuple(
    s.value for s in PropertyStatus if s not in (PropertyStatus.KEYS_RECEIVED, PropertyStatus.CANCELLED)
)


def coerce(enum_cls: type[E], value: Any) -> E:
    """Caller-supplied value -> enum member, InvalidInput when outside the set."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value))
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInput(f"{enum_cls.__name__} must be one of: {allowed}")
