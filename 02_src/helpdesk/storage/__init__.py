"""Storage module."""

from .storage import ConversationNotFoundError, IStorage, Storage

__all__ = ["ConversationNotFoundError", "IStorage", "Storage"]
