from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence, Tuple

from .models import Complaint, TimelineEvent


class ComplaintNotFoundError(LookupError):
    """Raised when an event is linked to a complaint that does not exist."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_complaint_for_event(
    event: TimelineEvent,
    *,
    user_id: str,
    title: str,
    description: str,
    complaint_to: str,
    complaint_date: str,
) -> Tuple[TimelineEvent, Complaint]:
    """Open a new complaint about ``event``.

    The complaint's incident date is the event's date; ``complaint_date`` is
    when it was lodged. Returns an updated copy of the event pointing at
    the complaint, together with the complaint.
    """

    now = _now()
    complaint = Complaint(
        user_id=user_id,
        title=title,
        description=description,
        approximate_date=event.approximate_date,
        complaint_to=complaint_to,
        complaint_date=complaint_date,
        status="pending",
        related_event_ids=[event.id],
        created_at=now,
        updated_at=now,
    )
    linked = event.model_copy(
        update={
            "complaint_id": complaint.id,
            "did_complain": True,
            "complaint_to": complaint_to,
            "complaint_date": complaint_date,
        }
    )
    return linked, complaint


def link_event_to_complaint(
    complaints: Sequence[Complaint],
    event_id: str,
    complaint_id: str,
) -> List[Complaint]:
    if not any(complaint.id == complaint_id for complaint in complaints):
        raise ComplaintNotFoundError(f"Complaint {complaint_id!r} does not exist.")

    updated: List[Complaint] = []
    for complaint in complaints:
        if complaint.id == complaint_id and event_id not in complaint.related_event_ids:
            complaint = complaint.model_copy(
                update={
                    "related_event_ids": [*complaint.related_event_ids, event_id],
                    "updated_at": _now(),
                }
            )
        updated.append(complaint)
    return updated


def remove_event(
    events: Sequence[TimelineEvent],
    complaints: Sequence[Complaint],
    event_id: str,
) -> Tuple[List[TimelineEvent], List[Complaint]]:
    """Delete an event and drop it from every complaint that referenced it."""

    remaining = [event for event in events if event.id != event_id]
    updated: List[Complaint] = []
    for complaint in complaints:
        if event_id in complaint.related_event_ids:
            complaint = complaint.model_copy(
                update={
                    "related_event_ids": [eid for eid in complaint.related_event_ids if eid != event_id],
                    "updated_at": _now(),
                }
            )
        updated.append(complaint)
    return remaining, updated

