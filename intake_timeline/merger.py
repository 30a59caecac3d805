from __future__ import annotations

from typing import Iterable, List

from .models import Complaint, TimelineEntry, TimelineEvent

COMPLAINT_ENTRY_PREFIX = "complaint_"
COMPANY_RESPONSE_ENTRY_PREFIX = "company_response_"
DEFAULT_RESPONSE_DESCRIPTION = "Company responded to the complaint"


def event_entry(event: TimelineEvent) -> TimelineEntry:
    return TimelineEntry(
        id=event.id,
        kind="event",
        type=event.type,
        title=event.title,
        description=event.description,
        approximate_date=event.approximate_date,
        details=dict(event.details),
        attachments=[attachment.model_copy() for attachment in event.attachments],
        complaint_id=event.complaint_id or None,
        source_id=event.id,
    )


def complaint_entry(complaint: Complaint) -> TimelineEntry:
    # Complaints sit on the timeline at the date they were lodged; the
    # incident date travels along in details.
    return TimelineEntry(
        id=f"{COMPLAINT_ENTRY_PREFIX}{complaint.id}",
        kind="complaint",
        type="Complaint",
        title=complaint.title,
        description=complaint.description,
        approximate_date=complaint.complaint_date,
        details={
            "complaintTo": complaint.complaint_to,
            "incidentDate": complaint.approximate_date,
            "relatedEventIds": list(complaint.related_event_ids),
        },
        attachments=[],
        complaint_id=complaint.id,
        source_id=complaint.id,
    )


def has_company_response(event: TimelineEvent) -> bool:
    return bool(event.company_did_respond and event.company_response_date)


def company_response_entry(event: TimelineEvent) -> TimelineEntry:
    return TimelineEntry(
        id=f"{COMPANY_RESPONSE_ENTRY_PREFIX}{event.id}",
        kind="companyResponse",
        type="Company Response",
        title=f"Company Response to {event.title}",
        description=event.company_response_details or DEFAULT_RESPONSE_DESCRIPTION,
        approximate_date=event.company_response_date or "",
        details={
            "originalEventId": event.id,
            "originalEventTitle": event.title,
            "responseDetails": event.company_response_details,
        },
        attachments=[],
        source_id=event.id,
    )


def synthetic_entries(
    events: Iterable[TimelineEvent],
    complaints: Iterable[Complaint],
) -> List[TimelineEntry]:
    """Complaint and company-response entries derived from the live records."""

    entries = [complaint_entry(complaint) for complaint in complaints]
    entries.extend(company_response_entry(event) for event in events if has_company_response(event))
    return entries


def merge_for_timeline(
    events: Iterable[TimelineEvent],
    complaints: Iterable[Complaint],
) -> List[TimelineEntry]:
    """Project events, complaints and company responses into one entry list.

    The result is events, then complaints, then responses, in input order.
    Ordering is left to the sorter. Inputs are only read; every entry is a
    fresh object, so callers may re-run this on each change.
    """

    events_list = list(events)
    merged = [event_entry(event) for event in events_list]
    merged.extend(synthetic_entries(events_list, complaints))
    return merged


def is_synthetic_id(entry_id: str) -> bool:
    return entry_id.startswith(COMPLAINT_ENTRY_PREFIX) or entry_id.startswith(COMPANY_RESPONSE_ENTRY_PREFIX)


__all__ = [
    "complaint_entry",
    "company_response_entry",
    "event_entry",
    "is_synthetic_id",
    "merge_for_timeline",
    "synthetic_entries",
]
