"""Help-chat backend with push-feed semantics over Storage + EventBus."""

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Protocol

from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import (
    ChangeEvent,
    ChatMessage,
    Conversation,
    ConversationStatus,
    SenderRole,
    Topic,
)
from ..storage import IStorage
from ..tracker import ITracker
from .feeds import ErrorCallback, SnapshotCallback, Subscription

logger = get_logger(__name__)


class IHelpChatBackend(Protocol):
    """Conversation/message backend the sync engine talks to."""

    async def subscribe_to_conversations(
        self,
        user_id: str | None,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Live feed of conversations (all when user_id is None)."""
        ...

    async def subscribe_to_messages(
        self,
        conversation_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Live feed of one conversation's confirmed messages."""
        ...

    async def create_conversation(
        self, conversation: Conversation, initial_message: ChatMessage | None = None
    ) -> Conversation:
        """Create a conversation (and its first message); returns it with its id."""
        ...

    async def add_message(self, message: ChatMessage) -> str:
        """Store a message; returns the server-assigned id."""
        ...

    async def update_conversation_status(
        self, conversation_id: str, status: ConversationStatus
    ) -> None:
        """Change a conversation's status."""
        ...

    async def mark_as_read(
        self, conversation_id: str, viewer_id: str, is_admin: bool
    ) -> int:
        """Mark a conversation read for the viewer's role."""
        ...


class HelpChatBackend:
    """Reference backend: SQLite persistence, EventBus-driven push feeds."""

    def __init__(
        self,
        storage: IStorage,
        event_bus: IEventBus,
        tracker: ITracker | None = None,
    ):
        self._storage = storage
        self._event_bus = event_bus
        self._tracker = tracker

    # Feeds
    async def subscribe_to_conversations(
        self,
        user_id: str | None,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Live feed of conversations (all when user_id is None)."""

        async def fetch() -> list[Conversation]:
            return await self._storage.list_conversations(user_id)

        subscription = Subscription(
            self._event_bus,
            Topic.CONVERSATIONS,
            fetch,
            on_snapshot,
            on_error=on_error,
            name=f"conversations:{user_id or '*'}",
        )
        await subscription.start()
        return subscription

    async def subscribe_to_messages(
        self,
        conversation_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Live feed of one conversation's confirmed messages."""

        async def fetch() -> list[ChatMessage]:
            return await self._storage.get_messages(conversation_id)

        def matches(event: ChangeEvent) -> bool:
            return event.conversation_id in (None, conversation_id)

        subscription = Subscription(
            self._event_bus,
            Topic.MESSAGES,
            fetch,
            on_snapshot,
            on_error=on_error,
            matches=matches,
            name=f"messages:{conversation_id}",
        )
        await subscription.start()
        return subscription

    # One-shot reads
    async def get_conversations(self, user_id: str | None = None) -> list[Conversation]:
        return await self._storage.list_conversations(user_id)

    async def get_conversation(self, conversation_id: str) -> Conversation:
        return await self._storage.get_conversation(conversation_id)

    async def get_messages(self, conversation_id: str) -> list[ChatMessage]:
        # Raises ConversationNotFoundError for unknown ids
        await self._storage.get_conversation(conversation_id)
        return await self._storage.get_messages(conversation_id)

    # Writes
    async def create_conversation(
        self, conversation: Conversation, initial_message: ChatMessage | None = None
    ) -> Conversation:
        """Create a conversation; returns it with its assigned id.

        With ``initial_message`` the conversation and its first message are
        stored together: either both exist afterwards or neither does.
        """
        if not conversation.subject.strip():
            raise ValueError("Conversation subject cannot be empty")

        draft = replace(conversation, id=conversation.id or str(uuid.uuid4()))
        first = None
        if initial_message is not None:
            first = self._prepare_message(replace(initial_message, conversation_id=draft.id))

        created = await self._storage.create_conversation(draft, first)
        logger.info(
            "Conversation created",
            extra={"context": {"conversation_id": created.id, "user_id": created.user_id}},
        )

        await self._publish(Topic.CONVERSATIONS, created.id, "create_conversation")
        await self._track(
            "conversation_created",
            created.user_id,
            {
                "conversation_id": created.id,
                "subject": created.subject,
                "type": created.type.value,
                "priority": created.priority.value,
            },
        )
        if first is not None:
            await self._publish(Topic.MESSAGES, created.id, "create_conversation")
            await self._track_message(first)
        return created

    async def add_message(self, message: ChatMessage) -> str:
        """Store a message; returns the server-assigned id.

        The recipient role's unread counter is bumped and the conversation's
        last-message summary updated in the same transaction as the insert.
        """
        stored = self._prepare_message(message)
        message_id = await self._storage.add_message(stored)

        await self._publish(Topic.MESSAGES, stored.conversation_id, "add_message")
        await self._publish(Topic.CONVERSATIONS, stored.conversation_id, "add_message")
        await self._track_message(stored)
        return message_id

    def _prepare_message(self, message: ChatMessage) -> ChatMessage:
        body = message.body.strip()
        if not body:
            raise ValueError("Message body cannot be empty")
        return replace(
            message,
            id=str(uuid.uuid4()),
            sender=SenderRole(message.sender),
            body=body,
            timestamp=message.timestamp or datetime.now(timezone.utc),
            read=False,
            is_optimistic=False,
            confirmed_id=None,
        )

    async def _track_message(self, message: ChatMessage) -> None:
        await self._track(
            "message_sent",
            message.sender_id,
            {
                "conversation_id": message.conversation_id,
                "message_id": message.id,
                "sender": message.sender.value,
                "body_summary": message.body[:100],
            },
        )

    async def update_conversation(self, conversation_id: str, **fields: Any) -> None:
        """Update conversation fields and notify the conversation feeds."""
        await self._storage.update_conversation(conversation_id, **fields)
        await self._publish(Topic.CONVERSATIONS, conversation_id, "update_conversation")
        await self._track(
            "conversation_updated",
            "backend",
            {"conversation_id": conversation_id, "fields": sorted(fields)},
        )

    async def update_conversation_status(
        self, conversation_id: str, status: ConversationStatus
    ) -> None:
        """Change a conversation's status."""
        await self.update_conversation(
            conversation_id, status=ConversationStatus(status)
        )

    async def mark_as_read(
        self, conversation_id: str, viewer_id: str, is_admin: bool
    ) -> int:
        """Mark a conversation read for the viewer's role."""
        reader = SenderRole.ADMIN if is_admin else SenderRole.USER
        marked = await self._storage.mark_messages_read(conversation_id, reader)

        await self._publish(Topic.MESSAGES, conversation_id, "mark_as_read")
        await self._publish(Topic.CONVERSATIONS, conversation_id, "mark_as_read")
        await self._track(
            "conversation_read",
            viewer_id,
            {
                "conversation_id": conversation_id,
                "reader": reader.value,
                "messages_marked": marked,
            },
        )
        return marked

    async def _publish(self, topic: Topic, conversation_id: str | None, source: str) -> None:
        await self._event_bus.publish(
            ChangeEvent(
                id=str(uuid.uuid4()),
                topic=topic,
                conversation_id=conversation_id,
                source=source,
                timestamp=datetime.now(timezone.utc),
            )
        )

    async def _track(self, event_type: str, actor: str, data: dict) -> None:
        if self._tracker:
            await self._tracker.track(event_type=event_type, actor=actor, data=data)
