"""HelpChatSession: live state of one help-chat viewer."""

from dataclasses import replace
from datetime import datetime, timezone
from functools import partial
from typing import Protocol

from ..backend import IHelpChatBackend, Subscription
from ..config import SyncSettings
from ..logging_config import get_logger
from ..models import (
    ChatMessage,
    Conversation,
    ConversationStatus,
    ConversationType,
    Notice,
    Priority,
    Viewer,
)
from .filters import ConversationFilter
from .merge import merge_messages
from .scroll import ScrollAction, ScrollGeometry, ScrollPhase, ScrollTracker
from .timers import ScheduledTask

logger = get_logger(__name__)


class IChatView(Protocol):
    """What the session tells the UI."""

    def conversations_changed(self, conversations: list[Conversation]) -> None:
        """Conversation list (after filters) changed."""
        ...

    def unread_total_changed(self, total: int) -> None:
        """Badge counter changed."""
        ...

    def messages_changed(self, messages: list[ChatMessage]) -> None:
        """Active conversation's message list changed."""
        ...

    def scroll_requested(self, action: ScrollAction) -> None:
        """Scroll the message list (SNAP_TO_BOTTOM) or flag new messages."""
        ...

    def new_messages_indicator_changed(self, visible: bool) -> None:
        """Show or hide the jump-to-newest affordance."""
        ...

    def notice_posted(self, notice: Notice) -> None:
        """Show a transient notice."""
        ...

    def notice_expired(self, notice: Notice) -> None:
        """Hide a transient notice."""
        ...


class NullChatView:
    """View that ignores everything (headless sessions)."""

    def conversations_changed(self, conversations: list[Conversation]) -> None:
        pass

    def unread_total_changed(self, total: int) -> None:
        pass

    def messages_changed(self, messages: list[ChatMessage]) -> None:
        pass

    def scroll_requested(self, action: ScrollAction) -> None:
        pass

    def new_messages_indicator_changed(self, visible: bool) -> None:
        pass

    def notice_posted(self, notice: Notice) -> None:
        pass

    def notice_expired(self, notice: Notice) -> None:
        pass


class HelpChatSession:
    """
    Owns the conversation list and the active conversation's messages for
    one viewer, kept in sync with the backend's push feeds.

    Resources (the two feed subscriptions and every timer) are released by
    ``close()``; switching conversations releases the message subscription
    and the conversation-scoped timers before anything new is established.
    """

    def __init__(
        self,
        backend: IHelpChatBackend,
        viewer: Viewer,
        view: IChatView | None = None,
        settings: SyncSettings | None = None,
    ):
        self._backend = backend
        self._viewer = viewer
        self._view = view or NullChatView()
        self._settings = settings or SyncSettings()

        self.conversations: list[Conversation] = []
        self.unread_total = 0
        self.selected_id: str | None = None
        self.messages: list[ChatMessage] = []
        self.notices: list[Notice] = []
        self.filter = ConversationFilter()
        self.visible = True
        self.scroll = ScrollTracker(self._settings.near_bottom_px)

        self._conversation_sub: Subscription | None = None
        self._message_sub: Subscription | None = None
        self._auto_mark = ScheduledTask("auto-mark-read", self._auto_mark_fire)
        self._scroll_throttle = ScheduledTask("scroll", self._apply_scroll)
        self._pending_geometry: ScrollGeometry | None = None
        self._notice_timers: dict[int, ScheduledTask] = {}
        self._optimistic_seq = 0
        # Bumped on every selection; a subscription is only kept by the latest
        self._select_seq = 0
        self._closed = False

    # Lifecycle
    async def __aenter__(self) -> "HelpChatSession":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def viewer(self) -> Viewer:
        return self._viewer

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def message_subscription(self) -> Subscription | None:
        return self._message_sub

    @property
    def conversation_subscription(self) -> Subscription | None:
        return self._conversation_sub

    async def open(self) -> None:
        """Subscribe to the conversation feed (once)."""
        self._ensure_open()
        if self._conversation_sub is not None and self._conversation_sub.active:
            return

        scope = None if self._viewer.is_admin else self._viewer.id
        logger.info(
            "Opening help-chat session",
            extra={"context": {"viewer_id": self._viewer.id, "role": self._viewer.role.value}},
        )
        subscription = await self._backend.subscribe_to_conversations(
            scope,
            self._on_conversations,
            on_error=partial(self._on_feed_error, None),
        )
        if self._closed:
            subscription.cancel()
            return
        # A feed that failed on its first snapshot is not kept, so open() can retry
        self._conversation_sub = subscription if subscription.active else None

    async def close(self) -> None:
        """Release every subscription and timer. Idempotent."""
        if self._closed:
            return
        self._closed = True

        self._release_conversation()
        if self._conversation_sub is not None:
            self._conversation_sub.cancel()
            self._conversation_sub = None
        for timer in self._notice_timers.values():
            timer.cancel()
        self._notice_timers.clear()
        logger.info(
            "Help-chat session closed",
            extra={"context": {"viewer_id": self._viewer.id}},
        )

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("HelpChatSession is closed")

    # Conversations
    @property
    def selected_conversation(self) -> Conversation | None:
        if self.selected_id is None:
            return None
        for conversation in self.conversations:
            if conversation.id == self.selected_id:
                return conversation
        return None

    @property
    def visible_conversations(self) -> list[Conversation]:
        return self.filter.apply(self.conversations)

    def set_filter(
        self,
        search: str | None = None,
        type: str | None = None,
        priority: str | None = None,
        status: str | None = None,
    ) -> list[Conversation]:
        """Replace the list filters; returns the visible conversations."""
        self.filter = ConversationFilter.build(search, type, priority, status)
        visible = self.visible_conversations
        self._view.conversations_changed(visible)
        return visible

    def clear_filters(self) -> list[Conversation]:
        self.filter = self.filter.cleared()
        visible = self.visible_conversations
        self._view.conversations_changed(visible)
        return visible

    def _unread(self, conversation: Conversation | None) -> int:
        if conversation is None:
            return 0
        return conversation.unread_for(self._viewer.role)

    def _on_conversations(self, snapshot: list[Conversation]) -> None:
        if self._closed:
            return

        unread_before = self._unread(self.selected_conversation)
        self.conversations = list(snapshot)
        self._view.conversations_changed(self.visible_conversations)
        self._refresh_unread_total()

        # Counters land after the message push; only mark while following along
        if (
            self._unread(self.selected_conversation) > unread_before
            and self.scroll.was_near_bottom
        ):
            self._check_auto_mark()

    def _refresh_unread_total(self) -> None:
        # Reported on its own channel so the badge does not redraw the chat
        total = sum(self._unread(c) for c in self.conversations)
        if total != self.unread_total:
            self.unread_total = total
            self._view.unread_total_changed(total)

    async def select_conversation(self, conversation_id: str | None) -> None:
        """Show another conversation (None closes the chat pane)."""
        self._ensure_open()
        if (
            conversation_id == self.selected_id
            and self._message_sub is not None
            and self._message_sub.active
        ):
            return

        self._release_conversation()
        self._select_seq += 1
        selection = self._select_seq
        self.selected_id = conversation_id
        self.messages = []
        self.scroll.reset()
        self._view.messages_changed(self.messages)
        self._view.new_messages_indicator_changed(False)

        if conversation_id is None:
            return

        logger.info(
            "Conversation selected",
            extra={"context": {"viewer_id": self._viewer.id, "conversation_id": conversation_id}},
        )
        subscription = await self._backend.subscribe_to_messages(
            conversation_id,
            partial(self._on_messages, selection),
            on_error=partial(self._on_feed_error, selection),
        )
        if self._closed or selection != self._select_seq:
            # Superseded while subscribing, possibly by the same conversation
            subscription.cancel()
            return
        if not subscription.active:
            return
        self._message_sub = subscription

        self._check_auto_mark(self._settings.auto_mark_initial_delay)

    def _release_conversation(self) -> None:
        if self._message_sub is not None:
            self._message_sub.cancel()
            self._message_sub = None
        self._auto_mark.cancel()
        self._scroll_throttle.cancel()
        self._pending_geometry = None

    # Messages
    def _on_messages(self, selection: int, snapshot: list[ChatMessage]) -> None:
        if self._closed or selection != self._select_seq:
            return

        was_initial = self.scroll.phase is ScrollPhase.INITIAL_LOAD
        self.messages = merge_messages(self.messages, snapshot)
        self._view.messages_changed(self.messages)

        action = self._apply_scroll_action(self.scroll.on_messages(self.messages, self._viewer.id))

        # Someone else wrote and the viewer is following along
        if (
            not was_initial
            and action is ScrollAction.SNAP_TO_BOTTOM
            and self.messages[-1].sender_id != self._viewer.id
        ):
            self._check_auto_mark()

    async def send_message(self, text: str) -> ChatMessage | None:
        """Show the message immediately, then hand it to the backend.

        Returns the optimistic entry, or None when there is nothing to send.
        """
        self._ensure_open()
        body = text.strip()
        if not body or self.selected_id is None:
            return None

        self._optimistic_seq += 1
        optimistic = ChatMessage(
            id=f"temp-{self._optimistic_seq}-{self._viewer.id}",
            conversation_id=self.selected_id,
            sender=self._viewer.role,
            sender_id=self._viewer.id,
            sender_name=self._viewer.name,
            sender_email=self._viewer.email,
            body=body,
            timestamp=datetime.now(timezone.utc),
            is_optimistic=True,
        )

        # Must be in the list before the backend can push its confirmation
        self.messages = [*self.messages, optimistic]
        self._view.messages_changed(self.messages)
        self._apply_scroll_action(self.scroll.on_messages(self.messages, self._viewer.id))

        try:
            await self._backend.add_message(replace(optimistic, id="", is_optimistic=False))
        except Exception as e:
            logger.error(
                "Error sending message: %s",
                e,
                exc_info=True,
                extra={"context": {"conversation_id": optimistic.conversation_id}},
            )
            self._post_notice("error", "Failed to send message")
        return optimistic

    async def create_conversation(
        self,
        subject: str,
        initial_message: str,
        type: ConversationType | str = ConversationType.GENERAL,
        priority: Priority | str = Priority.MEDIUM,
        page: str | None = None,
    ) -> Conversation | None:
        """Open a new conversation with its first message and select it."""
        self._ensure_open()
        subject = subject.strip()
        body = initial_message.strip()
        if not subject or not body:
            return None

        now = datetime.now(timezone.utc)
        draft = Conversation(
            id="",
            subject=subject,
            user_id=self._viewer.id,
            user_name=self._viewer.name,
            user_email=self._viewer.email,
            created_at=now,
            type=ConversationType(type),
            priority=Priority(priority),
            last_message=body,
            last_message_at=now,
            page=page,
        )

        first_message = ChatMessage(
            id="",
            conversation_id="",
            sender=self._viewer.role,
            sender_id=self._viewer.id,
            sender_name=self._viewer.name,
            sender_email=self._viewer.email,
            body=body,
            timestamp=now,
        )

        try:
            created = await self._backend.create_conversation(draft, first_message)
        except Exception as e:
            logger.error("Error creating conversation: %s", e, exc_info=True)
            self._post_notice("error", "Failed to create conversation")
            return None

        await self.select_conversation(created.id)
        return created

    async def update_status(
        self, conversation_id: str, status: ConversationStatus | str
    ) -> bool:
        """Change a conversation's status; the feed brings the new state."""
        self._ensure_open()
        status = ConversationStatus(status)
        try:
            await self._backend.update_conversation_status(conversation_id, status)
        except Exception as e:
            logger.error(
                "Error updating conversation status: %s",
                e,
                exc_info=True,
                extra={"context": {"conversation_id": conversation_id, "status": status.value}},
            )
            self._post_notice("error", "Failed to update status")
            return False

        self._post_notice("success", f"Conversation marked as {status.value}")
        return True

    # Read tracking
    async def mark_as_read(self) -> bool:
        """Mark the selected conversation read for this viewer."""
        self._ensure_open()
        conversation_id = self.selected_id
        if conversation_id is None:
            return False

        try:
            await self._backend.mark_as_read(
                conversation_id, self._viewer.id, self._viewer.is_admin
            )
        except Exception as e:
            logger.error(
                "Error marking conversation as read: %s",
                e,
                exc_info=True,
                extra={"context": {"conversation_id": conversation_id}},
            )
            self._post_notice("error", "Failed to mark conversation as read")
            return False

        if self._closed:
            return True

        self.conversations = [
            c.with_unread_cleared(self._viewer.role) if c.id == conversation_id else c
            for c in self.conversations
        ]
        self._view.conversations_changed(self.visible_conversations)
        self._refresh_unread_total()
        return True

    def set_visible(self, visible: bool) -> None:
        """The chat pane was shown or hidden (minimized, other tab, ...)."""
        self.visible = visible
        if visible:
            self._check_auto_mark()
        else:
            self._auto_mark.cancel()

    def _is_viewing(self) -> bool:
        return not self._closed and self.visible and self.selected_id is not None

    def _check_auto_mark(self, delay: float | None = None) -> None:
        if not self._is_viewing() or self._unread(self.selected_conversation) == 0:
            return
        if delay is None:
            delay = self._settings.auto_mark_debounce
        self._auto_mark.schedule(delay)

    async def _auto_mark_fire(self) -> None:
        # Re-check: state may have moved on while we waited
        if not self._is_viewing() or self._unread(self.selected_conversation) == 0:
            return
        await self.mark_as_read()

    # Scrolling
    def handle_scroll(self, geometry: ScrollGeometry) -> None:
        """Scroll event from the message container (throttled).

        At most one evaluation per throttle window; it uses the latest geometry.
        """
        if self._closed:
            return
        self._pending_geometry = geometry
        self._scroll_throttle.schedule_if_idle(self._settings.scroll_throttle)

    async def _apply_scroll(self) -> None:
        geometry = self._pending_geometry
        self._pending_geometry = None
        if geometry is None or self._closed:
            return

        before = self.scroll.show_new_messages
        at_bottom = self.scroll.on_scroll(geometry)
        if self.scroll.show_new_messages != before:
            self._view.new_messages_indicator_changed(self.scroll.show_new_messages)

        if at_bottom:
            self._check_auto_mark()

    def jump_to_bottom(self) -> None:
        """Viewer clicked the jump-to-newest affordance."""
        self._apply_scroll_action(self.scroll.jump_to_bottom())
        self._check_auto_mark()

    def _apply_scroll_action(self, action: ScrollAction) -> ScrollAction:
        if action is ScrollAction.NONE:
            return action
        self._view.scroll_requested(action)
        self._view.new_messages_indicator_changed(self.scroll.show_new_messages)
        return action

    # Notices
    def _post_notice(self, level: str, text: str) -> Notice:
        notice = Notice(level=level, text=text)
        self.notices.append(notice)
        self._view.notice_posted(notice)

        if not self._closed:
            timer = ScheduledTask("notice", partial(self._expire_notice, notice))
            self._notice_timers[id(notice)] = timer
            timer.schedule(self._settings.notice_ttl)
        return notice

    async def _expire_notice(self, notice: Notice) -> None:
        self._notice_timers.pop(id(notice), None)
        if notice in self.notices:
            self.notices.remove(notice)
            self._view.notice_expired(notice)

    def _on_feed_error(self, selection: int | None, error: Exception) -> None:
        # The subscription already logged and stopped itself; no retry
        if self._closed:
            return
        if selection is None:
            self._conversation_sub = None
        elif selection == self._select_seq:
            self._message_sub = None
        else:
            return
        self._post_notice("error", "Live updates stopped")
