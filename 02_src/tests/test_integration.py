"""Integration tests: sessions on both sides of a conversation over the real backend."""

import asyncio
import os
import tempfile

import pytest

from helpdesk.app import Application
from helpdesk.models import ConversationStatus, SenderRole, Viewer

from conftest import RecordingView

SETTLE = 0.15


@pytest.fixture
async def app(fast_settings):
    """Create and start a test application."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    app = Application(db_path=db_path, settings=fast_settings)
    await app.start()

    yield app

    await app.stop()
    os.unlink(db_path)


@pytest.mark.asyncio
async def test_full_flow(app: Application):
    """End user opens a conversation, admin answers, both sides stay in sync."""
    admin_view = RecordingView()
    user_view = RecordingView()
    admin = await app.open_session(
        Viewer(id="admin_1", name="Dispatch Admin", role=SenderRole.ADMIN), admin_view
    )
    user = await app.open_session(
        Viewer(id="ff_0142", name="Engineer Ruiz", role=SenderRole.USER), user_view
    )

    created = await user.create_conversation(
        "Cannot submit GAR", "The submit button stays disabled.", type="bug"
    )
    assert created is not None

    # Admin inbox shows it as unread
    assert [c.id for c in admin.conversations] == [created.id]
    assert admin.unread_total == 1

    # Admin opens it: messages arrive, and after the initial delay it is marked read
    await admin.select_conversation(created.id)
    assert [m.body for m in admin.messages] == ["The submit button stays disabled."]
    await asyncio.sleep(SETTLE)
    assert admin.unread_total == 0
    assert (await app.storage.get_conversation(created.id)).admin_unread_count == 0

    # Admin replies: the optimistic entry is confirmed in place
    optimistic = await admin.send_message("Looking into it now")
    assert [m.id for m in admin.messages][-1] == optimistic.id
    assert not admin.messages[-1].is_optimistic
    assert admin.messages[-1].confirmed_id is not None
    assert len(admin.messages) == 2

    # The user sees the reply and is following the bottom, so it gets marked read
    assert [m.body for m in user.messages][-1] == "Looking into it now"
    await asyncio.sleep(SETTLE)
    assert (await app.storage.get_conversation(created.id)).user_unread_count == 0

    # Status change reaches the user's list through the feed
    assert await admin.update_status(created.id, ConversationStatus.RESOLVED)
    assert user.conversations[0].status is ConversationStatus.RESOLVED
    assert admin.notices[-1].text == "Conversation marked as resolved"

    # Audit log
    events = await app.storage.get_trace_events(limit=100)
    types = {e.event_type for e in events}
    assert {
        "conversation_created",
        "message_sent",
        "conversation_read",
        "conversation_updated",
        "bus_change_published",
    } <= types


@pytest.mark.asyncio
async def test_end_user_only_sees_own_conversations(app: Application):
    first = await app.open_session(Viewer(id="u1", name="One", role=SenderRole.USER))
    second = await app.open_session(Viewer(id="u2", name="Two", role=SenderRole.USER))

    await first.create_conversation("Mine", "hello")

    assert [c.subject for c in first.conversations] == ["Mine"]
    assert second.conversations == []


@pytest.mark.asyncio
async def test_local_id_stable_across_later_pushes(app: Application):
    """A confirmed optimistic message keeps its id when more messages arrive."""
    user = await app.open_session(Viewer(id="u1", name="One", role=SenderRole.USER))
    admin = await app.open_session(Viewer(id="a1", name="Admin", role=SenderRole.ADMIN))
    created = await user.create_conversation("Subject", "hello")
    await admin.select_conversation(created.id)

    sent = await admin.send_message("first reply")
    await user.send_message("thanks")

    ids = [m.id for m in admin.messages]
    assert sent.id in ids
    assert len(ids) == 3
