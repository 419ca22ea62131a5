"""Audit-log data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single audit-log entry."""

    id: str
    event_type: str  # e.g. "message_sent", "conversation_read"
    actor: str  # viewer id or component that created this event
    data: dict  # self-contained details for display
    timestamp: datetime
