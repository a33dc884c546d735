"""
Pydantic models for emergency alerts.

An alert is one tracked incident. Its location is the location of the
first report and never moves. Later witnesses of the same incident are
appended to `reporters`; `report_count` always mirrors that list.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from typing import Optional, List, Dict
from enum import Enum
import uuid

from rapidaid.core.exceptions import DuplicateReporter
from rapidaid.models.base import Coordinate, ServiceType, utc_now


ANONYMOUS_USER = "ANONYMOUS"


class AlertStatus(str, Enum):
    """
    Alert lifecycle:
    PENDING → ACKNOWLEDGED → RESOLVED, with CANCELLED reachable from any
    non-terminal state and PENDING → RESOLVED allowed directly.
    """
    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = (AlertStatus.PENDING, AlertStatus.ACKNOWLEDGED)
TERMINAL_STATUSES = (AlertStatus.RESOLVED, AlertStatus.CANCELLED)


class AlertPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


PRIORITY_BY_TYPE: Dict[ServiceType, AlertPriority] = {
    ServiceType.POLICE: AlertPriority.HIGH,
    ServiceType.FIRE: AlertPriority.CRITICAL,
    ServiceType.AMBULANCE: AlertPriority.CRITICAL,
}

DEFAULT_DESCRIPTIONS: Dict[ServiceType, str] = {
    ServiceType.POLICE: "Police assistance required",
    ServiceType.FIRE: "Fire emergency - assistance required",
    ServiceType.AMBULANCE: "Medical emergency - ambulance required",
}


def priority_for(alert_type: ServiceType) -> AlertPriority:
    return PRIORITY_BY_TYPE[ServiceType(alert_type)]


class Reporter(BaseModel):
    """One user's submission contributing to an alert. Immutable once appended."""
    user_id: str
    user_phone: Optional[str] = None
    reported_at: datetime = Field(default_factory=utc_now)
    location: Coordinate

    class Config:
        frozen = True


class StatusHistoryEntry(BaseModel):
    """Status transition history entry (audit trail)."""
    from_status: str = Field(..., description="Previous status, empty for creation")
    to_status: str = Field(..., description="New status")
    changed_by: str = Field(default="system", description="Who made the change")
    timestamp: datetime = Field(default_factory=utc_now)
    note: Optional[str] = None


class Alert(BaseModel):
    """The central incident record, owned exclusively by the alert store."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Document ID")
    type: ServiceType
    status: AlertStatus = AlertStatus.PENDING
    priority: AlertPriority = AlertPriority.HIGH
    location: Coordinate = Field(..., description="Location of the first report")
    user_id: str = ANONYMOUS_USER
    user_phone: Optional[str] = None
    description: Optional[str] = None
    # Bound once at creation, never re-resolved
    facility_id: Optional[str] = None
    facility_name: Optional[str] = None
    distance_km: Optional[float] = None
    notification_sent: bool = False
    is_aggregated: bool = False
    reporters: List[Reporter] = Field(default_factory=list)
    report_count: int = 0
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    response_time: Optional[datetime] = None
    resolved_time: Optional[datetime] = None

    @model_validator(mode="after")
    def _sync_report_count(self) -> "Alert":
        # Denormalized; the reporter list is the source of truth
        self.report_count = len(self.reporters)
        return self

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def has_reporter(self, user_id: str) -> bool:
        return any(reporter.user_id == user_id for reporter in self.reporters)

    def add_reporter(self, reporter: Reporter) -> None:
        """
        Append a reporter and recompute the count.

        Raises:
            DuplicateReporter: if the user already reported this alert
                (the alert is left untouched)
        """
        if self.has_reporter(reporter.user_id):
            raise DuplicateReporter(self.id, reporter.user_id)
        self.reporters.append(reporter)
        self.report_count = len(self.reporters)

    def to_document(self) -> dict:
        """Plain dict for Firestore (enums flattened to their values)."""
        data = self.model_dump(mode="python")
        data["type"] = self.type.value
        data["status"] = self.status.value
        data["priority"] = self.priority.value
        return data

    @classmethod
    def from_document(cls, data: dict, doc_id: Optional[str] = None) -> "Alert":
        if doc_id is not None:
            data = {**data, "id": doc_id}
        return cls.model_validate(data)


class IncomingReport(BaseModel):
    """
    A validated report handed to the core. Produced at the boundary;
    the core never sees untyped request bodies.
    """
    user_id: str = ANONYMOUS_USER
    user_phone: Optional[str] = None
    type: ServiceType
    location: Coordinate
    description: Optional[str] = Field(None, max_length=1000)

    @field_validator("user_id", mode="before")
    @classmethod
    def _default_anonymous(cls, value):
        if value is None or not str(value).strip():
            return ANONYMOUS_USER
        return str(value).strip()

    def to_reporter(self, reported_at: datetime) -> Reporter:
        return Reporter(
            user_id=self.user_id,
            user_phone=self.user_phone,
            reported_at=reported_at,
            location=self.location,
        )


class AlertCreateRequest(BaseModel):
    """
    Incoming POST body. Accepts the mobile client's camelCase keys
    (userId, userPhone) as well as snake_case.
    """
    type: Optional[ServiceType] = Field(None, description="Required unless the route fixes it")
    lat: float = Field(..., ge=-90, le=90, description="Reporter latitude")
    lng: float = Field(..., ge=-180, le=180, description="Reporter longitude")
    user_id: Optional[str] = Field(None, alias="userId")
    user_phone: Optional[str] = Field(None, alias="userPhone")
    description: Optional[str] = Field(None, max_length=1000)

    class Config:
        populate_by_name = True
        extra = "ignore"
        json_schema_extra = {
            "example": {
                "type": "fire",
                "lat": 22.5726,
                "lng": 88.3639,
                "userId": "user-42",
                "userPhone": "9876543210",
                "description": "Smoke from the third floor",
            }
        }


class StatusUpdateRequest(BaseModel):
    """Generic status change used by facility-side dashboards."""
    status: AlertStatus
    changed_by: str = Field(default="facility", max_length=100)
    note: Optional[str] = Field(None, max_length=500)


class ResolveRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=1000, description="Resolution note, replaces description")
    changed_by: str = Field(default="facility", max_length=100)


class MergeResult(BaseModel):
    """Outcome of the aggregation check."""
    merged: bool
    alert: Optional[Alert] = None


class DispatchResult(BaseModel):
    """Outcome of dispatching a new incident."""
    alert: Alert
    facility_id: str
    facility_name: str
    distance_km: float
    notification_sent: bool


class SubmissionOutcome(str, Enum):
    CREATED = "created"
    MERGED = "merged"
    DUPLICATE = "duplicate"


class DispatchSummary(BaseModel):
    facility_id: str
    facility_name: str
    distance_km: float
    notification_sent: bool


class SubmissionResult(BaseModel):
    """What the caller of submit_report gets back."""
    outcome: SubmissionOutcome
    merged: bool
    duplicate: bool = False
    alert: Alert
    report_count: int
    dispatch: Optional[DispatchSummary] = None
    message: Optional[str] = None
