"""Help-chat data models."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


class ConversationStatus(str, Enum):
    """Lifecycle of a help conversation."""

    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


class ConversationType(str, Enum):
    """What the end user is asking about."""

    GENERAL = "general"
    BUG = "bug"
    FEATURE = "feature"
    HELP = "help"


class Priority(str, Enum):
    """Conversation priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class SenderRole(str, Enum):
    """Which side of the conversation a message comes from."""

    USER = "user"
    ADMIN = "admin"

    @property
    def other(self) -> "SenderRole":
        return SenderRole.USER if self is SenderRole.ADMIN else SenderRole.ADMIN


@dataclass(frozen=True)
class Viewer:
    """The person looking at the console."""

    id: str
    name: str
    role: SenderRole = SenderRole.ADMIN
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is SenderRole.ADMIN


@dataclass
class Conversation:
    """A help-chat thread between one end user and the support role."""

    id: str
    subject: str
    user_id: str
    user_name: str
    created_at: datetime
    user_email: str | None = None
    status: ConversationStatus = ConversationStatus.OPEN
    type: ConversationType = ConversationType.GENERAL
    priority: Priority = Priority.MEDIUM
    admin_unread_count: int = 0
    user_unread_count: int = 0
    last_message: str | None = None
    last_message_at: datetime | None = None
    page: str | None = None

    def unread_for(self, role: SenderRole) -> int:
        """Unread counter as seen by the given role."""
        if role is SenderRole.ADMIN:
            return self.admin_unread_count
        return self.user_unread_count

    def with_unread_cleared(self, role: SenderRole) -> "Conversation":
        if role is SenderRole.ADMIN:
            return replace(self, admin_unread_count=0)
        return replace(self, user_unread_count=0)


MergeKey = tuple[str, str]


@dataclass
class ChatMessage:
    """A single help-chat message.

    ``is_optimistic`` marks an entry inserted locally before the backend
    acknowledged it. Once a confirmed message replaces it, the entry keeps
    its local ``id`` and the server id moves to ``confirmed_id``.
    """

    id: str
    conversation_id: str
    sender: SenderRole
    sender_id: str
    sender_name: str
    body: str
    timestamp: datetime
    sender_email: str | None = None
    read: bool = False
    is_optimistic: bool = False
    confirmed_id: str | None = None

    @property
    def merge_key(self) -> MergeKey:
        return (self.sender_id, self.body)


@dataclass(frozen=True)
class Notice:
    """Transient user-visible status message."""

    level: str  # "success", "error", "info"
    text: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
