"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from helpdesk.config import SyncSettings  # noqa: E402
from helpdesk.models import (  # noqa: E402
    ChatMessage,
    Conversation,
    SenderRole,
    Viewer,
)

BASE_TIME = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def make_message(
    id: str,
    body: str,
    sender_id: str = "user_1",
    sender: SenderRole = SenderRole.USER,
    minutes: int = 0,
    conversation_id: str = "conv1",
    optimistic: bool = False,
) -> ChatMessage:
    """Build a message at BASE_TIME + minutes."""
    return ChatMessage(
        id=id,
        conversation_id=conversation_id,
        sender=sender,
        sender_id=sender_id,
        sender_name=sender_id,
        body=body,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        is_optimistic=optimistic,
    )


def make_conversation(
    id: str = "conv1",
    user_id: str = "user_1",
    admin_unread: int = 0,
    user_unread: int = 0,
    **fields,
) -> Conversation:
    return Conversation(
        id=id,
        subject=fields.pop("subject", f"Subject {id}"),
        user_id=user_id,
        user_name=fields.pop("user_name", user_id),
        created_at=fields.pop("created_at", BASE_TIME),
        admin_unread_count=admin_unread,
        user_unread_count=user_unread,
        **fields,
    )


class RecordingView:
    """IChatView that remembers every call."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.conversations: list[Conversation] = []
        self.messages: list[ChatMessage] = []
        self.message_history: list[list[ChatMessage]] = []
        self.unread_totals: list[int] = []
        self.scrolls: list = []
        self.indicator: bool = False
        self.notices: list = []
        self.expired: list = []

    def conversations_changed(self, conversations):
        self.calls.append(("conversations", len(conversations)))
        self.conversations = conversations

    def unread_total_changed(self, total):
        self.calls.append(("unread_total", total))
        self.unread_totals.append(total)

    def messages_changed(self, messages):
        self.calls.append(("messages", len(messages)))
        self.messages = messages
        self.message_history.append(list(messages))

    def scroll_requested(self, action):
        self.calls.append(("scroll", action))
        self.scrolls.append(action)

    def new_messages_indicator_changed(self, visible):
        self.calls.append(("indicator", visible))
        self.indicator = visible

    def notice_posted(self, notice):
        self.calls.append(("notice", notice.level, notice.text))
        self.notices.append(notice)

    def notice_expired(self, notice):
        self.expired.append(notice)


class FakeSubscription:
    """Subscription stand-in driven by FakeBackend."""

    def __init__(self, backend, kind, key, on_snapshot, on_error):
        self.backend = backend
        self.kind = kind
        self.key = key
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True
        self.cancel_count = 0

    def cancel(self):
        self.cancel_count += 1
        if self.active:
            self.active = False
            self.backend.log.append(f"cancel {self.kind}:{self.key}")

    def push(self, snapshot):
        if self.active:
            self.on_snapshot(list(snapshot))


class FakeBackend:
    """Scriptable backend: tests push snapshots and inject failures."""

    def __init__(self):
        self.log: list[str] = []
        self.conversations: list[Conversation] = []
        self.messages: dict[str, list[ChatMessage]] = {}
        self.subscriptions: list[FakeSubscription] = []
        self.sent: list[ChatMessage] = []
        self.read_calls: list[tuple] = []
        self.status_calls: list[tuple] = []
        self.fail_send = False
        self.fail_create = False
        self.fail_status = False
        self.fail_read = False
        self.echo_sends = False
        self._next_id = 0

    def _subscribe(self, kind, key, on_snapshot, on_error, snapshot):
        self.log.append(f"subscribe {kind}:{key}")
        sub = FakeSubscription(self, kind, key, on_snapshot, on_error)
        self.subscriptions.append(sub)
        sub.push(snapshot)
        return sub

    async def subscribe_to_conversations(self, user_id, on_snapshot, on_error=None):
        return self._subscribe(
            "conversations", user_id or "*", on_snapshot, on_error, self.conversations
        )

    async def subscribe_to_messages(self, conversation_id, on_snapshot, on_error=None):
        return self._subscribe(
            "messages",
            conversation_id,
            on_snapshot,
            on_error,
            self.messages.get(conversation_id, []),
        )

    def active(self, kind, key=None):
        return [
            s
            for s in self.subscriptions
            if s.active and s.kind == kind and (key is None or s.key == key)
        ]

    def push_conversations(self, conversations):
        self.conversations = list(conversations)
        for sub in self.active("conversations"):
            sub.push(self.conversations)

    def push_messages(self, conversation_id, messages):
        self.messages[conversation_id] = list(messages)
        for sub in self.active("messages", conversation_id):
            sub.push(self.messages[conversation_id])

    async def create_conversation(self, conversation, initial_message=None):
        if self.fail_create:
            raise ConnectionError("backend unavailable")
        self._next_id += 1
        conversation.id = f"new{self._next_id}"
        if initial_message is not None:
            initial_message.conversation_id = conversation.id
            initial_message.id = f"srv{self._next_id}"
            self.sent.append(initial_message)
            self.messages[conversation.id] = [initial_message]
        self.push_conversations([conversation, *self.conversations])
        return conversation

    async def add_message(self, message):
        if self.fail_send:
            raise ConnectionError("backend unavailable")
        self._next_id += 1
        message.id = f"srv{self._next_id}"
        self.sent.append(message)
        if self.echo_sends:
            self.push_messages(
                message.conversation_id,
                [*self.messages.get(message.conversation_id, []), message],
            )
        return message.id

    async def update_conversation_status(self, conversation_id, status):
        if self.fail_status:
            raise ConnectionError("backend unavailable")
        self.status_calls.append((conversation_id, status))

    async def mark_as_read(self, conversation_id, viewer_id, is_admin):
        if self.fail_read:
            raise ConnectionError("backend unavailable")
        self.read_calls.append((conversation_id, viewer_id, is_admin))
        return 0


@pytest.fixture
def fast_settings():
    """Short timers so debounce tests finish quickly."""
    return SyncSettings(
        near_bottom_px=50,
        auto_mark_debounce=0.02,
        auto_mark_initial_delay=0.05,
        scroll_throttle=0.01,
        notice_ttl=0.05,
    )


@pytest.fixture
def admin():
    return Viewer(id="admin_1", name="Dispatch Admin", role=SenderRole.ADMIN)


@pytest.fixture
def end_user():
    return Viewer(id="user_1", name="Engineer Ruiz", role=SenderRole.USER)


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from helpdesk.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def event_bus():
    from helpdesk.event_bus import EventBus

    return EventBus()


@pytest.fixture
def tracker(storage, event_bus):
    from helpdesk.tracker import Tracker

    return Tracker(event_bus=event_bus, storage=storage)


@pytest.fixture
def backend(storage, event_bus, tracker):
    from helpdesk.backend import HelpChatBackend

    return HelpChatBackend(storage, event_bus, tracker)
