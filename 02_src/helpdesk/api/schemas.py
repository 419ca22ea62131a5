"""Request/response models for the HTTP API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..models import (
    ChatMessage,
    Conversation,
    ConversationStatus,
    ConversationType,
    Priority,
    SenderRole,
    TraceEvent,
)


class ConversationCreateRequest(BaseModel):
    """New conversation opened by an end user."""

    subject: str = Field(min_length=1)
    initial_message: str = Field(min_length=1)
    user_id: str
    user_name: str = "User"
    user_email: str | None = None
    type: ConversationType = ConversationType.GENERAL
    priority: Priority = Priority.MEDIUM
    page: str | None = None


class MessageCreateRequest(BaseModel):
    """Message posted into a conversation."""

    sender: SenderRole
    sender_id: str
    sender_name: str
    sender_email: str | None = None
    body: str = Field(min_length=1)


class MessageCreatedResponse(BaseModel):
    id: str


class StatusUpdateRequest(BaseModel):
    status: ConversationStatus


class MarkReadRequest(BaseModel):
    viewer_id: str
    is_admin: bool = True


class MarkReadResponse(BaseModel):
    marked: int


class ConversationResponse(BaseModel):
    """Response model for conversation."""

    id: str
    subject: str
    user_id: str
    user_name: str
    user_email: str | None
    status: ConversationStatus
    type: ConversationType
    priority: Priority
    admin_unread_count: int
    user_unread_count: int
    last_message: str | None
    last_message_at: datetime | None
    page: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, conversation: Conversation) -> "ConversationResponse":
        return cls(
            id=conversation.id,
            subject=conversation.subject,
            user_id=conversation.user_id,
            user_name=conversation.user_name,
            user_email=conversation.user_email,
            status=conversation.status,
            type=conversation.type,
            priority=conversation.priority,
            admin_unread_count=conversation.admin_unread_count,
            user_unread_count=conversation.user_unread_count,
            last_message=conversation.last_message,
            last_message_at=conversation.last_message_at,
            page=conversation.page,
            created_at=conversation.created_at,
        )


class MessageResponse(BaseModel):
    """Response model for message."""

    id: str
    conversation_id: str
    sender: SenderRole
    sender_id: str
    sender_name: str
    sender_email: str | None
    body: str
    timestamp: datetime
    read: bool

    @classmethod
    def from_model(cls, message: ChatMessage) -> "MessageResponse":
        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            sender=message.sender,
            sender_id=message.sender_id,
            sender_name=message.sender_name,
            sender_email=message.sender_email,
            body=message.body,
            timestamp=message.timestamp,
            read=message.read,
        )


class TraceEventResponse(BaseModel):
    """Response model for audit event."""

    id: str
    event_type: str
    actor: str
    data: dict[str, Any]
    timestamp: datetime

    @classmethod
    def from_model(cls, event: TraceEvent) -> "TraceEventResponse":
        return cls(
            id=event.id,
            event_type=event.event_type,
            actor=event.actor,
            data=event.data,
            timestamp=event.timestamp,
        )


class StatusResponse(BaseModel):
    status: str
