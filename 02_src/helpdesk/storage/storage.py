"""SQLite storage implementation."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    ChatMessage,
    Conversation,
    ConversationStatus,
    ConversationType,
    Priority,
    SenderRole,
    TraceEvent,
)


class ConversationNotFoundError(LookupError):
    """No conversation with the given id."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


# Columns update_conversation() accepts
UPDATABLE_FIELDS = {
    "subject",
    "status",
    "type",
    "priority",
    "admin_unread_count",
    "user_unread_count",
    "last_message",
    "last_message_at",
    "page",
}

_CONVERSATION_COLUMNS = (
    "id, subject, user_id, user_name, user_email, status, type, priority, "
    "admin_unread_count, user_unread_count, last_message, last_message_at, "
    "page, created_at"
)

_MESSAGE_COLUMNS = (
    "id, conversation_id, sender, sender_id, sender_name, sender_email, "
    "body, timestamp, read"
)


def _to_db_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_db_time(value: str | None) -> datetime | None:
    if not value:
        return None
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _to_db_value(name: str, value: Any) -> Any:
    if name in ("status", "type", "priority"):
        enum_cls = {
            "status": ConversationStatus,
            "type": ConversationType,
            "priority": Priority,
        }[name]
        return enum_cls(value).value
    if name == "last_message_at":
        return _to_db_time(value)
    return value


def _row_to_conversation(row: tuple) -> Conversation:
    return Conversation(
        id=row[0],
        subject=row[1],
        user_id=row[2],
        user_name=row[3],
        user_email=row[4],
        status=ConversationStatus(row[5]),
        type=ConversationType(row[6]),
        priority=Priority(row[7]),
        admin_unread_count=row[8],
        user_unread_count=row[9],
        last_message=row[10],
        last_message_at=_from_db_time(row[11]),
        page=row[12],
        created_at=_from_db_time(row[13]),
    )


def _row_to_message(row: tuple) -> ChatMessage:
    return ChatMessage(
        id=row[0],
        conversation_id=row[1],
        sender=SenderRole(row[2]),
        sender_id=row[3],
        sender_name=row[4],
        sender_email=row[5],
        body=row[6],
        timestamp=_from_db_time(row[7]),
        read=bool(row[8]),
    )


class IStorage(Protocol):
    """Persistent storage for conversations, messages and the audit log."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Conversations
    async def create_conversation(
        self, conversation: Conversation, initial_message: ChatMessage | None = None
    ) -> Conversation:
        """Insert a conversation (and its first message) in one transaction."""
        ...

    async def get_conversation(self, conversation_id: str) -> Conversation:
        """Get a conversation or raise ConversationNotFoundError."""
        ...

    async def list_conversations(self, user_id: str | None = None) -> list[Conversation]:
        """List conversations, most recent activity first."""
        ...

    async def update_conversation(self, conversation_id: str, **fields: Any) -> None:
        """Update selected conversation fields."""
        ...

    # Messages
    async def add_message(self, message: ChatMessage) -> str:
        """Save a message and update the conversation's counters and summary."""
        ...

    async def get_messages(self, conversation_id: str) -> list[ChatMessage]:
        """Messages of a conversation, oldest first."""
        ...

    async def mark_messages_read(self, conversation_id: str, reader: SenderRole) -> int:
        """Mark the other side's messages read and reset the reader's counter."""
        ...

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save an audit event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get audit events with optional filters, newest first."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    # Conversations
    async def create_conversation(
        self, conversation: Conversation, initial_message: ChatMessage | None = None
    ) -> Conversation:
        """Insert a conversation, assigning an id when it has none.

        An ``initial_message`` is stored in the same transaction, with the
        counters and last-message summary it implies.
        """
        conn = self._require_conn()

        if not conversation.id:
            conversation.id = str(uuid.uuid4())

        try:
            await self._insert_conversation(conn, conversation)
            if initial_message is not None:
                initial_message.conversation_id = conversation.id
                await self._insert_message(conn, initial_message)
        except Exception:
            await conn.rollback()
            raise
        await conn.commit()

        if initial_message is None:
            return conversation
        return await self.get_conversation(conversation.id)

    async def _insert_conversation(
        self, conn: aiosqlite.Connection, conversation: Conversation
    ) -> None:
        await conn.execute(
            f"""
            INSERT INTO conversations ({_CONVERSATION_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                conversation.id,
                conversation.subject,
                conversation.user_id,
                conversation.user_name,
                conversation.user_email,
                ConversationStatus(conversation.status).value,
                ConversationType(conversation.type).value,
                Priority(conversation.priority).value,
                conversation.admin_unread_count,
                conversation.user_unread_count,
                conversation.last_message,
                _to_db_time(conversation.last_message_at),
                conversation.page,
                _to_db_time(conversation.created_at),
            ),
        )

    async def get_conversation(self, conversation_id: str) -> Conversation:
        """Get a conversation or raise ConversationNotFoundError."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"SELECT {_CONVERSATION_COLUMNS} FROM conversations WHERE id = ?",
            (conversation_id,),
        )
        row = await cursor.fetchone()
        if not row:
            raise ConversationNotFoundError(conversation_id)
        return _row_to_conversation(row)

    async def list_conversations(self, user_id: str | None = None) -> list[Conversation]:
        """List conversations, most recent activity first."""
        conn = self._require_conn()

        where_clause = "WHERE user_id = ?" if user_id else ""
        params = (user_id,) if user_id else ()
        cursor = await conn.execute(
            f"""
            SELECT {_CONVERSATION_COLUMNS}
            FROM conversations
            {where_clause}
            ORDER BY COALESCE(last_message_at, created_at) DESC, created_at DESC
            """,
            params,
        )
        rows = await cursor.fetchall()
        return [_row_to_conversation(row) for row in rows]

    async def update_conversation(self, conversation_id: str, **fields: Any) -> None:
        """Update selected conversation fields."""
        conn = self._require_conn()

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update conversation fields: {sorted(unknown)}")
        if not fields:
            return

        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = [_to_db_value(name, value) for name, value in fields.items()]
        params.append(conversation_id)

        cursor = await conn.execute(
            f"UPDATE conversations SET {assignments} WHERE id = ?",
            params,
        )
        if cursor.rowcount == 0:
            raise ConversationNotFoundError(conversation_id)
        await conn.commit()

    # Messages
    async def add_message(self, message: ChatMessage) -> str:
        """Save a message, returning its id.

        The recipient's unread counter and the conversation's last-message
        summary change in the same transaction as the insert.
        """
        conn = self._require_conn()

        try:
            await self._insert_message(conn, message)
        except Exception:
            await conn.rollback()
            raise
        await conn.commit()
        return message.id

    async def _insert_message(self, conn: aiosqlite.Connection, message: ChatMessage) -> None:
        if not message.id:
            message.id = str(uuid.uuid4())
        sender = SenderRole(message.sender)

        await self._bump_unread(conn, message.conversation_id, sender.other)
        await conn.execute(
            f"""
            INSERT INTO messages ({_MESSAGE_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.conversation_id,
                sender.value,
                message.sender_id,
                message.sender_name,
                message.sender_email,
                message.body,
                _to_db_time(message.timestamp),
                int(message.read),
            ),
        )
        await self._set_last_message(conn, message)

    async def _bump_unread(
        self, conn: aiosqlite.Connection, conversation_id: str, role: SenderRole
    ) -> None:
        column = (
            "admin_unread_count" if role is SenderRole.ADMIN else "user_unread_count"
        )
        cursor = await conn.execute(
            f"UPDATE conversations SET {column} = {column} + 1 WHERE id = ?",
            (conversation_id,),
        )
        if cursor.rowcount == 0:
            raise ConversationNotFoundError(conversation_id)

    async def _set_last_message(self, conn: aiosqlite.Connection, message: ChatMessage) -> None:
        await conn.execute(
            "UPDATE conversations SET last_message = ?, last_message_at = ? WHERE id = ?",
            (message.body, _to_db_time(message.timestamp), message.conversation_id),
        )

    async def get_messages(self, conversation_id: str) -> list[ChatMessage]:
        """Messages of a conversation, oldest first."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM messages
            WHERE conversation_id = ?
            ORDER BY timestamp ASC, rowid ASC
            """,
            (conversation_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_message(row) for row in rows]

    async def mark_messages_read(self, conversation_id: str, reader: SenderRole) -> int:
        """Mark the other side's messages read and reset the reader's counter."""
        conn = self._require_conn()

        column = (
            "admin_unread_count" if reader is SenderRole.ADMIN else "user_unread_count"
        )
        cursor = await conn.execute(
            f"UPDATE conversations SET {column} = 0 WHERE id = ?",
            (conversation_id,),
        )
        if cursor.rowcount == 0:
            raise ConversationNotFoundError(conversation_id)

        cursor = await conn.execute(
            """
            UPDATE messages SET read = 1
            WHERE conversation_id = ? AND sender = ? AND read = 0
            """,
            (conversation_id, reader.other.value),
        )
        marked = cursor.rowcount
        await conn.commit()
        return marked

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save an audit event."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO trace_events (id, event_type, actor, data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data, default=str),
                _to_db_time(event.timestamp),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get audit events with optional filters, newest first."""
        conn = self._require_conn()

        conditions = []
        params: list[Any] = []

        if after:
            conditions.append("timestamp > ?")
            params.append(_to_db_time(after))
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                data=json.loads(row[3]),
                timestamp=_from_db_time(row[4]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        for table in ("messages", "conversations", "trace_events"):
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
