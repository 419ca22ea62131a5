"""API route factories."""

from . import control, conversations, feeds, observability

__all__ = ["control", "conversations", "feeds", "observability"]
