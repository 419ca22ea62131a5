"""Help-chat console core."""

from .app import Application, IApplication
from .backend import HelpChatBackend, IHelpChatBackend, Subscription
from .event_bus import EventBus, IEventBus
from .models import (
    ChangeEvent,
    ChatMessage,
    Conversation,
    ConversationStatus,
    ConversationType,
    Notice,
    Priority,
    SenderRole,
    Topic,
    TraceEvent,
    Viewer,
)
from .storage import ConversationNotFoundError, IStorage, Storage
from .sync import (
    ConversationFilter,
    HelpChatSession,
    IChatView,
    ScrollAction,
    ScrollGeometry,
    merge_messages,
)
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "Conversation",
    "ChatMessage",
    "ConversationStatus",
    "ConversationType",
    "Priority",
    "SenderRole",
    "Viewer",
    "Notice",
    "ChangeEvent",
    "Topic",
    "TraceEvent",
    # Components
    "IStorage",
    "Storage",
    "ConversationNotFoundError",
    "IEventBus",
    "EventBus",
    "ITracker",
    "Tracker",
    "IHelpChatBackend",
    "HelpChatBackend",
    "Subscription",
    # Sync
    "HelpChatSession",
    "IChatView",
    "ConversationFilter",
    "ScrollAction",
    "ScrollGeometry",
    "merge_messages",
]
