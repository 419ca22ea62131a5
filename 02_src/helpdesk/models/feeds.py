"""Change notifications exchanged through the EventBus."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Topic(str, Enum):
    """EventBus topics."""

    CONVERSATIONS = "conversations"
    MESSAGES = "messages"


@dataclass
class ChangeEvent:
    """Something changed in the backend; feeds re-read their snapshot."""

    id: str
    topic: Topic
    conversation_id: str | None  # None means "any conversation"
    source: str  # operation that published
    timestamp: datetime
