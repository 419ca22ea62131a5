"""Conversation list filtering."""

from dataclasses import dataclass

from ..models import Conversation, ConversationStatus, ConversationType, Priority

ALL = "all"


def _normalize(value, enum_cls):
    if value is None or value == ALL:
        return None
    return enum_cls(value)


@dataclass(frozen=True)
class ConversationFilter:
    """Search box plus type/priority/status selectors; ``all`` disables one."""

    search: str = ""
    type: ConversationType | None = None
    priority: Priority | None = None
    status: ConversationStatus | None = None

    @classmethod
    def build(
        cls,
        search: str | None = None,
        type: str | None = None,
        priority: str | None = None,
        status: str | None = None,
    ) -> "ConversationFilter":
        """Build from raw selector values; raises ValueError on unknown ones."""
        return cls(
            search=(search or "").strip(),
            type=_normalize(type, ConversationType),
            priority=_normalize(priority, Priority),
            status=_normalize(status, ConversationStatus),
        )

    @property
    def is_active(self) -> bool:
        return bool(self.search) or any(
            v is not None for v in (self.type, self.priority, self.status)
        )

    def cleared(self) -> "ConversationFilter":
        return ConversationFilter()

    def matches(self, conversation: Conversation) -> bool:
        if self.search:
            needle = self.search.lower()
            haystack = (
                conversation.subject,
                conversation.user_name,
                conversation.user_email,
                conversation.last_message,
            )
            if not any(field and needle in field.lower() for field in haystack):
                return False

        if self.type is not None and conversation.type != self.type:
            return False
        if self.priority is not None and conversation.priority != self.priority:
            return False
        if self.status is not None and conversation.status != self.status:
            return False

        return True

    def apply(self, conversations: list[Conversation]) -> list[Conversation]:
        return [c for c in conversations if self.matches(c)]
