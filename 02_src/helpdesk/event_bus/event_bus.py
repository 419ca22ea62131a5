"""EventBus implementation for backend change notifications."""

import asyncio
import uuid
from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import ChangeEvent, Topic

logger = get_logger(__name__)


TopicHandler = Callable[[ChangeEvent], Awaitable[None]]


class IEventBus(Protocol):
    """In-memory pub/sub for ChangeEvents."""

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        ...

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Remove a handler; unknown handlers are ignored."""
        ...

    async def publish(self, event: ChangeEvent) -> None:
        """Call every subscriber of the event's topic."""
        ...


class EventBus:
    """In-memory pub/sub event bus."""

    def __init__(self):
        self._subscribers: dict[Topic, list[TopicHandler]] = {
            topic: [] for topic in Topic
        }

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        self._subscribers[topic].append(handler)

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Remove a handler; unknown handlers are ignored."""
        handlers = self._subscribers[topic]
        if handler in handlers:
            handlers.remove(handler)

    def subscriber_count(self, topic: Topic) -> int:
        return len(self._subscribers[topic])

    async def publish(self, event: ChangeEvent) -> None:
        """Call every subscriber of the event's topic."""
        if not event.id:
            event.id = str(uuid.uuid4())

        # Snapshot: handlers may unsubscribe while we await
        handlers = list(self._subscribers.get(event.topic, []))
        if not handlers:
            return

        results = await asyncio.gather(
            *[handler(event) for handler in handlers],
            return_exceptions=True,
        )

        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(
                    "Error in %s handler %r: %s",
                    event.topic.value,
                    handler,
                    result,
                    exc_info=result,
                )
