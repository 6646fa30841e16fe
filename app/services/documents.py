from typing import Any, List, Mapping
from urllib.parse import unquote

# (field, label) in the order they appear on the printed ticket
DOCUMENT_SECTIONS = [
    ("category", "Category"),
    ("sub_category", "Sub-category"),
    ("priority", "Priority"),
    ("status", "Status"),
    ("building", "Building"),
    ("location", "Location"),
    ("opened", "Date Opened"),
    ("reported_by", "Reported By"),
    ("contact_info", "Contact Info"),
    ("detectedBy", "Detected By"),
    ("time_detected", "Time Detected"),
    ("impacted", "Impacted Services"),
    ("description", "Description"),
    ("root_cause", "Root Cause"),
    ("actions_taken", "Actions Taken"),
    ("assigned_to", "Assigned To"),
    ("escalation_history", "Escalation History"),
    ("resolution_summary", "Resolution Summary"),
    ("resolution_time", "Resolution Time"),
    ("closed", "Date Closed"),
    ("duration", "Duration"),
    ("sla_breach", "SLA Breach"),
    ("post_review", "Post Review"),
]


def render_ticket_document(ticket: Mapping[str, Any]) -> str:
    """Plain-text rendering of a ticket for download."""
    title = f"Incident Ticket {ticket.get('ticket_id', '')}"
    lines: List[str] = [title, "=" * len(title), ""]
    for field, label in DOCUMENT_SECTIONS:
        value = ticket.get(field)
        if not value:
            continue
        if field == "assigned_to":
            value = ", ".join(name for name in str(value).split(";") if name)
        lines.append(f"{label}: {value}")

    attachments = ticket.get("attachments") or []
    if attachments:
        lines.extend(["", "Attachments:"])
        lines.extend(f"  - {unquote(url.rsplit('/', 1)[-1])}" for url in attachments)
    return "\n".join(lines) + "\n"
