# backend/homepath/schemas.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Optional, List

from pydantic import AfterValidator, BaseModel, Field, ConfigDict, model_validator

from .domain.enums import (
    CostCategory,
    Currency,
    DocumentCategory,
    DocumentPermission,
    DocumentType,
    EventStatus,
    EventType,
    Priority,
    PropertyStatus,
    ShareRole,
    StepCategory,
    StepStatus,
)


def naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive UTC; offset-aware input is converted.
    if v is None or v.tzinfo is None:
        return v
    return v.astimezone(timezone.utc).replace(tzinfo=None)


UtcDatetime = Annotated[datetime, AfterValidator(naive_utc)]


# -------------------- Properties --------------------

class PropertyCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)

    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    postal_code: str = Field(pattern=r"^[0-9]{5}$")
    country: str = "France"

    price_amount: float = Field(ge=0)
    price_currency: Currency = Currency.EUR

    surface: float = Field(gt=0)
    rooms: int = Field(ge=1)
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[int] = Field(default=None, ge=0)

    status: PropertyStatus = PropertyStatus.SEARCHING
    notes: Optional[str] = Field(default=None, max_length=2000)


class PropertyShareIn(BaseModel):
    user_email: str
    role: ShareRole = ShareRole.VIEWER


class PropertyStatusUpdate(BaseModel):
    status: PropertyStatus
    current_step_id: Optional[int] = None


class PropertyUpdate(BaseModel):
    """
    Partial edit of the listing itself; status goes through the status route.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    street: Optional[str] = Field(default=None, min_length=1)
    city: Optional[str] = Field(default=None, min_length=1)
    postal_code: Optional[str] = Field(default=None, pattern=r"^[0-9]{5}$")
    country: Optional[str] = Field(default=None, min_length=1)
    price_amount: Optional[float] = Field(default=None, ge=0)
    price_currency: Optional[Currency] = None
    surface: Optional[float] = Field(default=None, gt=0)
    rooms: Optional[int] = Field(default=None, ge=1)
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=2000)


class PropertyOut(BaseModel):
    id: int
    owner_id: int
    title: str
    description: Optional[str] = None
    street: str
    city: str
    postal_code: str
    country: str
    price_amount: float
    price_currency: str
    surface: float
    rooms: int
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    status: PropertyStatus
    current_step_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    # derived
    progress_percentage: int = 0
    price_per_square_meter: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class PropertyPage(BaseModel):
    items: List[PropertyOut]
    total: int
    page: int
    limit: int
    pages: int


# -------------------- Steps --------------------

class ChecklistItemIn(BaseModel):
    item: str = Field(min_length=1, max_length=255)
    completed: bool = False
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _strip(self):
        self.item = self.item.strip()
        if not self.item:
            raise ValueError("checklist item cannot be blank")
        return self


class ChecklistReplace(BaseModel):
    checklist: List[ChecklistItemIn]


class ChecklistItemOut(BaseModel):
    id: int
    position: int
    item: str
    completed: bool
    completed_at: Optional[datetime] = None
    completed_by_user_id: Optional[int] = None
    notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class StepCostIn(BaseModel):
    category: CostCategory
    label: Optional[str] = Field(default=None, max_length=160)
    amount: float = Field(ge=0)
    currency: Currency = Currency.EUR


class StepCostOut(BaseModel):
    id: int
    category: CostCategory
    label: Optional[str] = None
    amount: float
    currency: str
    model_config = ConfigDict(from_attributes=True)


class StepCreate(BaseModel):
    property_id: int
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: StepCategory
    priority: Priority = Priority.MEDIUM
    order: int = Field(ge=1)
    planned_start: Optional[UtcDatetime] = None
    planned_end: Optional[UtcDatetime] = None
    deadline: Optional[UtcDatetime] = None
    checklist: List[ChecklistItemIn] = Field(default_factory=list)
    notes: Optional[str] = Field(default=None, max_length=1000)


class StepUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[StepCategory] = None
    priority: Optional[Priority] = None
    order: Optional[int] = Field(default=None, ge=1)
    planned_start: Optional[UtcDatetime] = None
    planned_end: Optional[UtcDatetime] = None
    deadline: Optional[UtcDatetime] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class StepStatusUpdate(BaseModel):
    status: StepStatus


class StepOrderItem(BaseModel):
    id: int
    order: int = Field(ge=1)


class StepReorder(BaseModel):
    property_id: int
    steps: List[StepOrderItem]


class StepOut(BaseModel):
    id: int
    property_id: int
    name: str
    description: Optional[str] = None
    category: StepCategory
    status: StepStatus
    priority: Priority
    order: int
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    deadline: Optional[datetime] = None
    completion_percentage: int
    checklist: List[ChecklistItemOut] = Field(default_factory=list)
    costs: List[StepCostOut] = Field(default_factory=list)
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    # derived
    is_overdue: bool = False
    checklist_completion: int = 100
    actual_duration_days: Optional[int] = None
    estimated_duration_days: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


# -------------------- Documents --------------------

class DocumentRegister(BaseModel):
    """
    Metadata of a file the upload collaborator already stored.
    """

    property_id: int
    step_id: Optional[int] = None
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    category: DocumentCategory
    original_name: str
    filename: str
    storage_path: str
    mime_type: str = Field(min_length=1)
    size_bytes: int = Field(ge=0)
    checksum: Optional[str] = None
    expiration_date: Optional[UtcDatetime] = None


class DocumentVersionIn(BaseModel):
    filename: str
    storage_path: str
    size_bytes: int = Field(ge=0)
    mime_type: Optional[str] = None
    changelog: Optional[str] = None


class DocumentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[DocumentCategory] = None
    expiration_date: Optional[UtcDatetime] = None


class DocumentShareIn(BaseModel):
    user_email: str
    permission: DocumentPermission = DocumentPermission.VIEW


class DocumentVersionOut(BaseModel):
    id: int
    version: str
    filename: str
    size_bytes: int
    uploaded_by_user_id: int
    changelog: Optional[str] = None
    uploaded_at: datetime
    model_config = ConfigDict(from_attributes=True)


class DocumentOut(BaseModel):
    id: int
    property_id: int
    step_id: Optional[int] = None
    uploaded_by_user_id: int
    name: str
    description: Optional[str] = None
    category: DocumentCategory
    doc_type: DocumentType
    original_name: str
    mime_type: str
    size_bytes: int
    checksum: Optional[str] = None
    version: str
    download_count: int
    last_downloaded_at: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    versions: List[DocumentVersionOut] = Field(default_factory=list)
    created_at: datetime

    # derived
    formatted_size: str = ""
    is_expired: bool = False

    model_config = ConfigDict(from_attributes=True)


# -------------------- Calendar --------------------

class EventCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: Optional[str] = None
    event_type: EventType
    priority: Priority = Priority.MEDIUM
    start_date: UtcDatetime
    end_date: UtcDatetime
    location: Optional[str] = None
    property_id: Optional[int] = None
    step_id: Optional[int] = None


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = None
    event_type: Optional[EventType] = None
    priority: Optional[Priority] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    location: Optional[str] = None


class EventStatusUpdate(BaseModel):
    status: EventStatus
    outcome: Optional[str] = None


class EventPostpone(BaseModel):
    new_start_date: UtcDatetime
    new_end_date: Optional[UtcDatetime] = None


class EventOut(BaseModel):
    id: int
    owner_id: int
    property_id: Optional[int] = None
    step_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    event_type: EventType
    status: EventStatus
    priority: Priority
    start_date: datetime
    end_date: datetime
    location: Optional[str] = None
    outcome: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    # derived
    is_past: bool = False
    is_ongoing: bool = False
    is_upcoming: bool = False

    model_config = ConfigDict(from_attributes=True)


class EventPage(BaseModel):
    items: List[EventOut]
    total: int
    page: int
    limit: int
    pages: int


class EventStatsOut(BaseModel):
    total: int
    this_month: int
    upcoming: int
    overdue: int
    by_type: dict[EventType, int]
    by_status: dict[EventStatus, int]


# -------------------- Dashboard: shared --------------------

class AlertOut(BaseModel):
    type: str
    title: str
    message: str
    count: int
    priority: str
    model_config = ConfigDict(from_attributes=True)


class ActivityOut(BaseModel):
    type: str
    action: str
    title: str
    description: str
    related_property_title: Optional[str] = None
    date: datetime
    icon: str
    category: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


# -------------------- Dashboard: overview --------------------

class StatusValueOut(BaseModel):
    count: int = 0
    value: float = 0.0


class PropertiesOverview(BaseModel):
    total: int
    by_status: dict[PropertyStatus, StatusValueOut]
    total_value: float


class StepsOverview(BaseModel):
    total: int
    completed: int
    overdue: int
    upcoming: int
    progress: int
    by_status: dict[StepStatus, int]


class DocumentsOverview(BaseModel):
    total: int
    recent: int
    by_category: dict[DocumentCategory, int]


class CalendarOverview(BaseModel):
    upcoming_events: int
    overdue_events: int
    events_this_month: int


class OverviewSummary(BaseModel):
    active_properties: int
    completed_purchases: int
    total_investment: float
    global_progress: int


class OverviewOut(BaseModel):
    properties: PropertiesOverview
    steps: StepsOverview
    documents: DocumentsOverview
    calendar: CalendarOverview
    alerts: List[AlertOut]
    summary: OverviewSummary


# -------------------- Dashboard: progress --------------------

class ProgressPropertyOut(BaseModel):
    id: int
    title: str
    status: PropertyStatus
    status_progress: int
    price_amount: float
    price_currency: str
    city: str
    created_at: datetime


class CurrentStepOut(BaseModel):
    id: int
    name: str
    category: StepCategory
    status: StepStatus


class ProgressCountsOut(BaseModel):
    percentage: int
    completed: int
    in_progress: int
    total: int
    overdue: int


class CriticalStepOut(BaseModel):
    id: int
    name: str
    category: StepCategory
    deadline: datetime


class ProgressAlertsOut(BaseModel):
    has_overdue: bool
    has_urgent: bool


class PropertyProgressOut(BaseModel):
    property: ProgressPropertyOut
    current_step: Optional[CurrentStepOut] = None
    progress: ProgressCountsOut
    next_critical_step: Optional[CriticalStepOut] = None
    alerts: ProgressAlertsOut


# -------------------- Dashboard: analytics --------------------

class MonthBucketOut(BaseModel):
    period: str  # YYYY-MM
    properties: int
    value: float


class StepDurationOut(BaseModel):
    category: StepCategory
    avg_days: float
    min_days: float
    max_days: float
    count: int


class EventSuccessOut(BaseModel):
    type: EventType
    total: int
    completed: int
    cancelled: int
    success_rate: float


class CostCategoryOut(BaseModel):
    category: CostCategory
    total: float
    count: int
    average: float


class AnalyticsOut(BaseModel):
    period: str
    window_start: datetime
    properties_by_month: List[MonthBucketOut]
    step_durations: List[StepDurationOut]
    event_success_rate: List[EventSuccessOut]
    costs_by_category: List[CostCategoryOut]
