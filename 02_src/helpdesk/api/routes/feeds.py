"""WebSocket routes streaming feed snapshots."""

import asyncio
from typing import Any, Callable

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ...app import Application
from ...logging_config import get_logger
from ...storage import ConversationNotFoundError
from ..schemas import ConversationResponse, MessageResponse

logger = get_logger(__name__)

# Pushed on the queue when the feed fails
_FEED_FAILED = object()


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


async def _pump(
    websocket: WebSocket,
    queue: asyncio.Queue,
    encode: Callable[[list], Any],
) -> None:
    """Forward snapshots until the client leaves or the feed fails."""
    disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        while True:
            next_snapshot = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait(
                {next_snapshot, disconnected},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if disconnected in done:
                next_snapshot.cancel()
                return

            snapshot = next_snapshot.result()
            if snapshot is _FEED_FAILED:
                await websocket.close(code=1011)
                return
            await websocket.send_json(encode(snapshot))
    finally:
        disconnected.cancel()


def create_feeds_router(app: Application) -> APIRouter:
    """Create feeds router."""
    router = APIRouter(tags=["feeds"])

    @router.websocket("/ws/conversations")
    async def conversations_feed(websocket: WebSocket, user_id: str | None = None):
        """Full conversation list on connect and after every change."""
        await websocket.accept()
        queue: asyncio.Queue = asyncio.Queue()
        subscription = await app.backend.subscribe_to_conversations(
            user_id,
            queue.put_nowait,
            on_error=lambda e: queue.put_nowait(_FEED_FAILED),
        )
        try:
            await _pump(
                websocket,
                queue,
                lambda snapshot: [
                    ConversationResponse.from_model(c).model_dump(mode="json")
                    for c in snapshot
                ],
            )
        finally:
            subscription.cancel()

    @router.websocket("/ws/conversations/{conversation_id}/messages")
    async def messages_feed(websocket: WebSocket, conversation_id: str):
        """Full message list of one conversation on connect and after every change."""
        await websocket.accept()
        try:
            await app.backend.get_conversation(conversation_id)
        except ConversationNotFoundError:
            await websocket.close(code=4404)
            return

        queue: asyncio.Queue = asyncio.Queue()
        subscription = await app.backend.subscribe_to_messages(
            conversation_id,
            queue.put_nowait,
            on_error=lambda e: queue.put_nowait(_FEED_FAILED),
        )
        try:
            await _pump(
                websocket,
                queue,
                lambda snapshot: [
                    MessageResponse.from_model(m).model_dump(mode="json")
                    for m in snapshot
                ],
            )
        finally:
            subscription.cancel()
            logger.debug("Message feed socket closed for %s", conversation_id)

    return router
