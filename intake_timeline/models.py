from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

EntryKind = Literal["event", "complaint", "companyResponse"]
SubmissionStatus = Literal["draft", "submitted", "reviewed"]
TimelineMode = Literal["chronological", "custom"]

EVENT_TYPE_LABELS: Dict[str, str] = {
    "harassment": "Harassment/Discrimination",
    "wrongful-termination": "Wrongful Termination",
    "wage-violation": "Wage/Hour Violation",
    "safety-violation": "Safety Violation",
    "retaliation": "Retaliation",
    "policy-violation": "Policy Violation",
    "other": "Other",
}


def event_type_label(value: str) -> str:
    return EVENT_TYPE_LABELS.get(value, value)


def _new_id() -> str:
    return uuid4().hex


class IntakeModel(BaseModel):
    """Base for every intake record: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class Attachment(IntakeModel):
    id: str = Field(default_factory=_new_id)
    name: str
    type: str = Field(default="application/octet-stream", description="MIME type reported by the client")
    size: int = Field(default=0, ge=0, description="Size in bytes")
    url: Optional[str] = Field(
        default=None,
        description="Download URL. Absent while the upload is pending or when it failed.",
    )


class TimelineEvent(IntakeModel):
    """A workplace incident authored by the claimant."""

    id: str = Field(default_factory=_new_id)
    type: str = Field(default="other", description="Incident category, see EVENT_TYPE_LABELS")
    title: str
    description: str = ""
    approximate_date: str = Field(
        default="",
        description="Exact YYYY-MM-DD date or free text such as 'Summer 2023'",
    )
    details: Dict[str, Any] = Field(default_factory=dict)
    attachments: List[Attachment] = Field(default_factory=list)
    complaint_id: Optional[str] = None
    did_complain: Optional[bool] = None
    complaint_to: Optional[str] = None
    complaint_date: Optional[str] = None
    company_did_respond: Optional[bool] = None
    company_response_date: Optional[str] = None
    company_response_details: Optional[str] = None

    @field_validator("approximate_date", mode="before")
    def _none_to_empty(cls, value):  # type: ignore[override]
        return "" if value is None else value


class Complaint(IntakeModel):
    """A complaint lodged by the claimant. May cover several events."""

    id: str = Field(default_factory=_new_id)
    user_id: str = ""
    title: str
    description: str = ""
    approximate_date: str = Field(default="", description="When the underlying incident happened")
    complaint_to: str = ""
    complaint_date: str = Field(default="", description="When the complaint was lodged")
    status: str = "pending"
    related_event_ids: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("related_event_ids")
    def _dedupe_related(cls, value: List[str]) -> List[str]:  # type: ignore[override]
        return list(dict.fromkeys(value))


class ContactInfo(IntakeModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    birthday: str = ""
    emergency_contact_name: str = ""
    emergency_contact_phone: str = ""

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name.strip(), self.last_name.strip()) if part)


class EmployerInfo(IntakeModel):
    company_name: str = ""
    location: str = ""
    job_title: str = ""
    start_date: str = ""
    end_date: str = ""
    pay_rate: str = ""
    employment_type: str = ""
    use_exact_start_date: Optional[bool] = None
    use_exact_end_date: Optional[bool] = None


class TimelineSubmission(IntakeModel):
    """Aggregate root persisted in the document store, one per user."""

    id: Optional[str] = None
    user_id: str
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    employer_info: EmployerInfo = Field(default_factory=EmployerInfo)
    events: List[TimelineEvent] = Field(default_factory=list)
    complaints: List[Complaint] = Field(default_factory=list)
    status: SubmissionStatus = "draft"
    submitted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TimelineEntry(IntakeModel):
    """One row of the merged timeline.

    ``kind`` is fixed when the entry is built, so renderers and the reorder
    controller never have to guess which record an entry came from. Only
    ``kind == "event"`` entries correspond to stored events; the others are
    projections recomputed on every pass.
    """

    id: str
    kind: EntryKind = "event"
    type: str = ""
    title: str = ""
    description: str = ""
    approximate_date: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)
    attachments: List[Attachment] = Field(default_factory=list)
    complaint_id: Optional[str] = None
    source_id: str = Field(default="", description="Id of the event or complaint this entry derives from")

    @property
    def is_synthetic(self) -> bool:
        return self.kind != "event"

    @property
    def is_complaint(self) -> bool:
        return self.kind == "complaint"

    @property
    def is_company_response(self) -> bool:
        return self.kind == "companyResponse"


# --- request / response bodies -------------------------------------------------


class ParseDateRequest(IntakeModel):
    text: str = Field(default="", max_length=500)


class ParseDateResponse(IntakeModel):
    text: str
    instant: datetime
    is_exact: bool
    display: str


class TimelineRequest(IntakeModel):
    events: List[TimelineEvent] = Field(default_factory=list)
    complaints: List[Complaint] = Field(default_factory=list)
    mode: TimelineMode = "chronological"
    custom_order: List[str] = Field(default_factory=list)


class TimelineResponse(IntakeModel):
    mode: TimelineMode
    custom_order: List[str]
    entries: List[TimelineEntry]
    total_entries: int


class SortRequest(IntakeModel):
    entries: List[TimelineEntry]


class SortResponse(IntakeModel):
    entries: List[TimelineEntry]


class ReorderRequest(IntakeModel):
    order: List[str]
    dragged_id: str
    target_index: int


class ReorderResponse(IntakeModel):
    order: List[str]
    moved: bool


class SubmissionRequest(IntakeModel):
    user_id: str = Field(..., min_length=1, max_length=200)
    user_email: str = Field(default="", max_length=320)
    user_name: str = Field(default="", max_length=200)
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    employer_info: EmployerInfo = Field(default_factory=EmployerInfo)
    events: List[TimelineEvent] = Field(default_factory=list)
    complaints: List[Complaint] = Field(default_factory=list)
    status: SubmissionStatus = "submitted"

    @field_validator("user_id")
    def _strip_user_id(cls, value: str) -> str:  # type: ignore[override]
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("userId must not be blank.")
        return cleaned

    @model_validator(mode="after")
    def _ensure_events(self) -> "SubmissionRequest":
        if self.status == "submitted" and not self.events:
            raise ValueError("Add at least one timeline event before submitting.")
        return self


class NotificationResult(IntakeModel):
    success: bool
    message: str
    message_id: Optional[str] = None


class SubmissionResponse(IntakeModel):
    id: str
    created: bool
    submission: TimelineSubmission
    notification: NotificationResult


class DraftValue(IntakeModel):
    value: Any = None
    ttl_seconds: Optional[int] = Field(default=None, ge=1)


class DraftResponse(IntakeModel):
    key: str
    value: Any = None
    expires_at: Optional[datetime] = None


class AttachmentUploadResponse(IntakeModel):
    attachments: List[Attachment]
    uploaded: int
    failed: int


class ComplaintRequest(IntakeModel):
    """Either opens a new complaint about ``event`` or links it to ``complaint_id``."""

    user_id: str = ""
    event: TimelineEvent
    complaints: List[Complaint] = Field(default_factory=list)
    complaint_id: Optional[str] = None
    title: str = ""
    description: str = ""
    complaint_to: str = ""
    complaint_date: str = ""

    @model_validator(mode="after")
    def _new_complaint_fields(self) -> "ComplaintRequest":
        if not self.complaint_id and not (self.title and self.description and self.complaint_to and self.complaint_date):
            raise ValueError("A new complaint needs title, description, complaintTo and complaintDate.")
        return self


class ComplaintResponse(IntakeModel):
    event: TimelineEvent
    complaints: List[Complaint]


class EventDeleteRequest(IntakeModel):
    events: List[TimelineEvent] = Field(default_factory=list)
    complaints: List[Complaint] = Field(default_factory=list)
    event_id: str


class EventListResponse(IntakeModel):
    events: List[TimelineEvent]
    complaints: List[Complaint]


class TimelineMoveRequest(TimelineRequest):
    dragged_id: str
    target_index: int


class SubmissionStatusUpdate(IntakeModel):
    status: SubmissionStatus
