"""Core data models for the help-chat console."""

from .chat import (
    ChatMessage,
    Conversation,
    ConversationStatus,
    ConversationType,
    MergeKey,
    Notice,
    Priority,
    SenderRole,
    Viewer,
)
from .feeds import ChangeEvent, Topic
from .tracing import TraceEvent

__all__ = [
    # Chat
    "Conversation",
    "ChatMessage",
    "ConversationStatus",
    "ConversationType",
    "Priority",
    "SenderRole",
    "Viewer",
    "Notice",
    "MergeKey",
    # Feeds
    "ChangeEvent",
    "Topic",
    # Audit
    "TraceEvent",
]
