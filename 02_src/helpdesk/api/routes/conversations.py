"""Conversation and message API routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from ...models import ChatMessage, Conversation, SenderRole
from ...storage import ConversationNotFoundError
from ...sync import ConversationFilter
from ..schemas import (
    ConversationCreateRequest,
    ConversationResponse,
    MarkReadRequest,
    MarkReadResponse,
    MessageCreatedResponse,
    MessageCreateRequest,
    MessageResponse,
    StatusUpdateRequest,
)


def create_conversations_router(app: Application) -> APIRouter:
    """Create conversations router."""
    router = APIRouter(prefix="/api/conversations", tags=["conversations"])

    @router.get("", response_model=list[ConversationResponse])
    async def list_conversations(
        user_id: str | None = Query(None, description="Only this user's conversations"),
        search: str | None = Query(None),
        type: str | None = Query(None, description="general, bug, feature, help or all"),
        priority: str | None = Query(None, description="low, medium, high, urgent or all"),
        status: str | None = Query(None, description="open, in-progress, resolved or all"),
    ) -> list[ConversationResponse]:
        """List conversations, most recent activity first."""
        try:
            selection = ConversationFilter.build(search, type, priority, status)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        try:
            conversations = await app.backend.get_conversations(user_id)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        return [ConversationResponse.from_model(c) for c in selection.apply(conversations)]

    @router.post("", response_model=ConversationResponse, status_code=201)
    async def create_conversation(request: ConversationCreateRequest) -> ConversationResponse:
        """Open a conversation with its first message."""
        now = datetime.now(timezone.utc)
        try:
            conversation = await app.backend.create_conversation(
                Conversation(
                    id="",
                    subject=request.subject,
                    user_id=request.user_id,
                    user_name=request.user_name,
                    user_email=request.user_email,
                    created_at=now,
                    type=request.type,
                    priority=request.priority,
                    last_message=request.initial_message,
                    last_message_at=now,
                    page=request.page,
                ),
                ChatMessage(
                    id="",
                    conversation_id="",
                    sender=SenderRole.USER,
                    sender_id=request.user_id,
                    sender_name=request.user_name,
                    sender_email=request.user_email,
                    body=request.initial_message,
                    timestamp=now,
                ),
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        return ConversationResponse.from_model(conversation)

    @router.get("/{conversation_id}", response_model=ConversationResponse)
    async def get_conversation(conversation_id: str) -> ConversationResponse:
        try:
            conversation = await app.backend.get_conversation(conversation_id)
        except ConversationNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return ConversationResponse.from_model(conversation)

    @router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
    async def get_messages(conversation_id: str) -> list[MessageResponse]:
        """Confirmed messages, oldest first."""
        try:
            messages = await app.backend.get_messages(conversation_id)
        except ConversationNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return [MessageResponse.from_model(m) for m in messages]

    @router.post(
        "/{conversation_id}/messages",
        response_model=MessageCreatedResponse,
        status_code=201,
    )
    async def send_message(
        conversation_id: str, request: MessageCreateRequest
    ) -> MessageCreatedResponse:
        """Post a message into a conversation."""
        try:
            message_id = await app.backend.add_message(
                ChatMessage(
                    id="",
                    conversation_id=conversation_id,
                    sender=request.sender,
                    sender_id=request.sender_id,
                    sender_name=request.sender_name,
                    sender_email=request.sender_email,
                    body=request.body,
                    timestamp=datetime.now(timezone.utc),
                )
            )
        except ConversationNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return MessageCreatedResponse(id=message_id)

    @router.patch("/{conversation_id}/status", response_model=ConversationResponse)
    async def update_status(
        conversation_id: str, request: StatusUpdateRequest
    ) -> ConversationResponse:
        """Move a conversation to another status."""
        try:
            await app.backend.update_conversation_status(conversation_id, request.status)
            conversation = await app.backend.get_conversation(conversation_id)
        except ConversationNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return ConversationResponse.from_model(conversation)

    @router.post("/{conversation_id}/read", response_model=MarkReadResponse)
    async def mark_read(conversation_id: str, request: MarkReadRequest) -> MarkReadResponse:
        """Mark the conversation read for the viewer's role."""
        try:
            marked = await app.backend.mark_as_read(
                conversation_id, request.viewer_id, request.is_admin
            )
        except ConversationNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return MarkReadResponse(marked=marked)

    return router
