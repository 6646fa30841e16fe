from datetime import datetime
from typing import Any, Dict, Mapping, Optional

class TicketStatus:
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"

    ALL = (OPEN, IN_PROGRESS, RESOLVED, CLOSED)

# Cleared when a ticket is reopened (Open / In Progress).
RESOLUTION_FIELDS = ["resolution_summary", "resolution_time", "duration", "sla_breach", "post_review"]

CLOSED_FORMAT = "%Y-%m-%d %H:%M"

_TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    value = value.strip()
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''}"


def calculate_duration(opened: Optional[str], closed: Optional[str]) -> str:
    """Render closed - opened as e.g. '1 day 2 hrs 5 mins'; '' when not computable."""
    start = parse_timestamp(opened)
    end = parse_timestamp(closed)
    if start is None or end is None:
        return ""
    seconds = int((end - start).total_seconds())
    if seconds < 0:
        return ""
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes = seconds // 60

    parts = []
    if days:
        parts.append(_plural(days, "day"))
    if hours:
        parts.append(_plural(hours, "hr"))
    if minutes:
        parts.append(_plural(minutes, "min"))
    return " ".join(parts) if parts else "0 mins"


class TicketLifecycle:
    """
    Side effects a caller applies when a ticket enters a new status.

    The store persists whatever it is given; this only fills in the fields the
    web client would otherwise compute. Values already in the change set win.
    """

    def __init__(self, clock=None):
        self.clock = clock or datetime.now

    def is_transition(self, current: Mapping[str, Any], changes: Mapping[str, Any]) -> bool:
        new_status = changes.get("status")
        return new_status in TicketStatus.ALL and new_status != current.get("status")

    def apply(self, current: Mapping[str, Any], changes: Mapping[str, Any]) -> Dict[str, Any]:
        result = dict(changes)
        if not self.is_transition(current, changes):
            return result

        new_status = changes["status"]
        if new_status == TicketStatus.CLOSED:
            closed = result.get("closed") or self.clock().strftime(CLOSED_FORMAT)
            result["closed"] = closed
            opened = result.get("opened", current.get("opened"))
            result.setdefault("duration", calculate_duration(opened, closed))
            return result

        result.setdefault("closed", "")
        if new_status in (TicketStatus.OPEN, TicketStatus.IN_PROGRESS):
            for field in RESOLUTION_FIELDS:
                result.setdefault(field, "")
        elif new_status == TicketStatus.RESOLVED:
            result.setdefault("duration", "")
        return result
