from __future__ import annotations

from html import escape
from typing import List, Optional, Sequence

from .date_parser import format_event_date
from .models import TimelineEntry, TimelineMode, TimelineSubmission, event_type_label
from .reorder import ReorderController

BADGE_CLASSES = {
    "event": "badge-event",
    "complaint": "badge-complaint",
    "companyResponse": "badge-response",
}
DATE_LABELS = {
    "event": "",
    "complaint": "Complaint Date: ",
    "companyResponse": "Response Date: ",
}


def _badge_label(entry: TimelineEntry) -> str:
    if entry.is_complaint:
        return "Complaint"
    if entry.is_company_response:
        return "Company Response"
    return event_type_label(entry.type)


def _render_entry(entry: TimelineEntry, titles: dict) -> List[str]:
    parts: List[str] = []
    parts.append("    <div class=\"entry entry-" + escape(entry.kind) + "\">")
    parts.append("        <div class=\"entry-header\">")
    parts.append("            <span class=\"badge " + BADGE_CLASSES[entry.kind] + "\">" + escape(_badge_label(entry)) + "</span>")
    parts.append(
        "            <span class=\"entry-date\">"
        + escape(DATE_LABELS[entry.kind] + format_event_date(entry.approximate_date))
        + "</span>"
    )
    parts.append("        </div>")
    parts.append("        <div class=\"entry-title\">" + escape(entry.title) + "</div>")
    if entry.description:
        parts.append("        <div class=\"entry-body\">" + escape(entry.description) + "</div>")

    if entry.is_complaint:
        complained_to = entry.details.get("complaintTo") or ""
        incident = entry.details.get("incidentDate") or ""
        if complained_to:
            parts.append("        <div class=\"entry-meta\">Complained to: " + escape(complained_to) + "</div>")
        if incident:
            parts.append("        <div class=\"entry-meta\">Incident date: " + escape(format_event_date(incident)) + "</div>")
        related = [titles.get(event_id, event_id) for event_id in entry.details.get("relatedEventIds") or []]
        if related:
            parts.append("        <div class=\"entry-meta\">Related events: " + escape(", ".join(related)) + "</div>")

    if entry.attachments:
        names = ", ".join(escape(attachment.name) for attachment in entry.attachments)
        parts.append("        <div class=\"entry-meta\">Attachments: " + names + "</div>")
    parts.append("    </div>")
    return parts


def render_review_html(
    submission: TimelineSubmission,
    *,
    mode: TimelineMode = "chronological",
    custom_order: Optional[Sequence[str]] = None,
) -> str:
    """Stand-alone printable HTML of a submission and its merged timeline."""

    controller = ReorderController(submission.events, mode=mode, custom_order=custom_order)
    entries = controller.display(submission.complaints)
    titles = {event.id: event.title for event in submission.events}
    contact = submission.contact_info
    employer = submission.employer_info

    parts: List[str] = []
    parts.append("<!DOCTYPE html>")
    parts.append("<html lang=\"en\">")
    parts.append("<head>")
    parts.append("    <meta charset=\"utf-8\" />")
    parts.append("    <title>Timeline Review</title>")
    parts.append("    <style>")
    parts.append("        @page { size: Letter portrait; margin: 20mm; }")
    parts.append("        body { font-family: system-ui, -apple-system, 'Segoe UI', sans-serif; color: #222; }")
    parts.append("        h2 { font-size: 13pt; border-bottom: 1px solid #aaa; padding-bottom: 2pt; }")
    parts.append("        .field { font-size: 10pt; margin: 2pt 0; }")
    parts.append("        .entry { margin-top: 8pt; padding-left: 8pt; border-left: 2px solid #bfdbfe; break-inside: avoid; }")
    parts.append("        .entry-complaint { border-left-color: #f97316; }")
    parts.append("        .entry-companyResponse { border-left-color: #22c55e; }")
    parts.append("        .badge { font-size: 8pt; padding: 0 4pt; border-radius: 4px; margin-right: 4pt; }")
    parts.append("        .badge-event { background: #dbeafe; }")
    parts.append("        .badge-complaint { background: #ffedd5; }")
    parts.append("        .badge-response { background: #dcfce7; }")
    parts.append("        .entry-title { font-weight: bold; }")
    parts.append("        .entry-body, .entry-meta { font-size: 10pt; }")
    parts.append("    </style>")
    parts.append("</head>")
    parts.append("<body>")
    parts.append("    <h1>Timeline Review</h1>")

    parts.append("    <h2>Contact Information</h2>")
    parts.append("    <div class=\"field\">Name: " + escape(contact.full_name) + "</div>")
    parts.append("    <div class=\"field\">Email: " + escape(contact.email) + "</div>")
    parts.append("    <div class=\"field\">Phone: " + escape(contact.phone) + "</div>")
    parts.append("    <div class=\"field\">Address: " + escape(contact.address) + "</div>")

    parts.append("    <h2>Employer Information</h2>")
    parts.append("    <div class=\"field\">Company: " + escape(employer.company_name) + "</div>")
    parts.append("    <div class=\"field\">Location: " + escape(employer.location) + "</div>")
    parts.append("    <div class=\"field\">Job Title: " + escape(employer.job_title) + "</div>")
    parts.append(
        "    <div class=\"field\">Employment Type: "
        + escape(employer.employment_type.replace("-", " ").capitalize())
        + "</div>"
    )
    parts.append("    <div class=\"field\">Start Date: " + escape(format_event_date(employer.start_date)) + "</div>")
    parts.append(
        "    <div class=\"field\">End Date: "
        + escape(format_event_date(employer.end_date) if employer.end_date else "Current")
        + "</div>"
    )
    if employer.pay_rate:
        parts.append("    <div class=\"field\">Pay Rate: " + escape(employer.pay_rate) + "</div>")

    heading = "Chronological" if controller.mode == "chronological" else "Custom Order"
    parts.append("    <h2>Timeline Events (" + str(len(submission.events)) + ") - " + heading + "</h2>")
    if not entries:
        parts.append("    <p>No events have been added to your timeline.</p>")
    for entry in entries:
        parts.extend(_render_entry(entry, titles))

    parts.append("</body>")
    parts.append("</html>")
    return "\n".join(parts)
