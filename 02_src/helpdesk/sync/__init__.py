"""Help-chat synchronization: feeds, optimistic merge, scrolling, read tracking."""

from .filters import ConversationFilter
from .merge import merge_messages
from .scroll import ScrollAction, ScrollGeometry, ScrollPhase, ScrollTracker
from .session import HelpChatSession, IChatView, NullChatView
from .timers import ScheduledTask

__all__ = [
    "ConversationFilter",
    "merge_messages",
    "ScrollAction",
    "ScrollGeometry",
    "ScrollPhase",
    "ScrollTracker",
    "HelpChatSession",
    "IChatView",
    "NullChatView",
    "ScheduledTask",
]
