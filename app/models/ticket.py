from sqlalchemy import Column, Integer, String, Text
from app.core.db import Base

class TicketRecord(Base):
    """
    One ticket row. `id` only preserves insertion order; `ticket_id` is the
    business identifier and is deliberately not unique at this layer.
    """
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(String(64), nullable=False, index=True)
    category = Column(String(100), nullable=False, default="", index=True)
    sub_category = Column(String(100), nullable=False, default="")
    opened = Column(String(32), nullable=False, default="")
    reported_by = Column(String(255), nullable=False, default="")
    contact_info = Column(String(255), nullable=False, default="")
    priority = Column(String(16), nullable=False, default="")
    building = Column(String(16), nullable=False, default="")
    location = Column(String(255), nullable=False, default="")
    impacted = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    detectedBy = Column(String(100), nullable=False, default="")
    time_detected = Column(String(32), nullable=False, default="")
    root_cause = Column(Text, nullable=False, default="")
    actions_taken = Column(Text, nullable=False, default="")
    status = Column(String(32), nullable=False, default="")
    assigned_to = Column(Text, nullable=False, default="")
    resolution_summary = Column(Text, nullable=False, default="")
    resolution_time = Column(String(32), nullable=False, default="")
    duration = Column(String(64), nullable=False, default="")
    post_review = Column(String(8), nullable=False, default="")
    attachments = Column(Text, nullable=False, default="")
    escalation_history = Column(Text, nullable=False, default="")
    closed = Column(String(32), nullable=False, default="")
    sla_breach = Column(String(8), nullable=False, default="")

class HistoryRecord(Base):
    """
    Append-only audit line for a ticket mutation.
    """
    __tablename__ = "ticket_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(String(64), nullable=False, index=True)
    timestamp = Column(String(32), nullable=False, default="")
    action = Column(String(16), nullable=False, default="")
    changes = Column(Text, nullable=False, default="")
    editor = Column(String(255), nullable=False, default="")
