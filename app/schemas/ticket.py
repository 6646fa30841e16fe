from pydantic import BaseModel, Field
from typing import List
from enum import Enum

class TicketStatusEnum(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"

class HistoryEntryResponse(BaseModel):
    ticket_id: str
    timestamp: str = Field(..., description="UTC ISO-8601 time of the mutation.")
    action: str = Field(..., description="create, update or delete.")
    changes: str = Field("", description="JSON snapshot of the input that triggered the mutation.")
    editor: str = Field("", description="Who made the change, when known.")


class TicketResponse(BaseModel):
    """
    A ticket as stored. Every field is text except `attachments`, which is
    returned as the list of public URLs of the stored files.
    """
    ticket_id: str
    category: str = ""
    sub_category: str = ""
    opened: str = ""
    reported_by: str = ""
    contact_info: str = ""
    priority: str = ""
    building: str = ""
    location: str = ""
    impacted: str = ""
    description: str = ""
    detectedBy: str = ""
    time_detected: str = ""
    root_cause: str = ""
    actions_taken: str = ""
    status: str = Field("", description="Open, In Progress, Resolved or Closed; not validated by the store.")
    assigned_to: str = Field("", description="Engineer names joined with ';'.")
    resolution_summary: str = ""
    resolution_time: str = ""
    duration: str = ""
    post_review: str = ""
    attachments: List[str] = []
    escalation_history: str = ""
    closed: str = ""
    sla_breach: str = ""

class DeleteResponse(BaseModel):
    success: bool = True
    ticket_id: str
