"""Backend module."""

from .backend import HelpChatBackend, IHelpChatBackend
from .feeds import Subscription

__all__ = ["HelpChatBackend", "IHelpChatBackend", "Subscription"]
