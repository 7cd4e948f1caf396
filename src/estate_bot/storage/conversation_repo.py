"""Conversation repository with CRUD, message history and returning-visitor lookup."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from estate_bot.log import get_logger
from estate_bot.storage.database import Database
from estate_bot.storage.models import ConversationRecord, MessageRecord

logger = get_logger(__name__)

_CONTACT_COLUMNS = {"name": "user_name", "email": "user_email", "phone": "user_phone"}


class ConversationRepository:
    """CRUD over conversations and their append-only message log."""

    def __init__(self, db: Database):
        self._db = db

    async def create(self, session_key: str) -> ConversationRecord:
        cursor = await self._db.conn.execute(
            "INSERT INTO conversations (session_key) VALUES (?)", (session_key,)
        )
        await self._db.conn.commit()
        record = await self.get(cursor.lastrowid)  # type: ignore[arg-type]
        assert record is not None
        logger.info("conversation_created", conversation_id=record.id, session_key=session_key)
        return record

    async def get(self, conversation_id: int) -> Optional[ConversationRecord]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    async def get_active(self, session_key: str) -> Optional[ConversationRecord]:
        """Return the newest active conversation for a session key."""
        cursor = await self._db.conn.execute(
            """SELECT * FROM conversations
               WHERE session_key = ? AND status = 'active'
               ORDER BY id DESC
               LIMIT 1""",
            (session_key,),
        )
        row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    async def close(self, conversation_id: int) -> None:
        await self._db.conn.execute(
            """UPDATE conversations
               SET status = 'closed', updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')
               WHERE id = ?""",
            (conversation_id,),
        )
        await self._db.conn.commit()
        logger.info("conversation_closed", conversation_id=conversation_id)

    async def update_contact(self, conversation_id: int, info: dict[str, str]) -> None:
        """Copy collected contact fields onto the conversation row (only empty columns)."""
        for field_name, column in _CONTACT_COLUMNS.items():
            value = info.get(field_name)
            if not value:
                continue
            await self._db.conn.execute(
                f"UPDATE conversations SET {column} = ? WHERE id = ? AND {column} IS NULL",
                (value, conversation_id),
            )
        await self._db.conn.commit()

    async def record_response(self, conversation_id: int, source: str, tokens: int) -> None:
        await self._db.conn.execute(
            """UPDATE conversations
               SET last_response_source = ?,
                   total_tokens = total_tokens + ?,
                   updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')
               WHERE id = ?""",
            (source, tokens, conversation_id),
        )
        await self._db.conn.commit()

    async def find_returning_visitor(
        self, email: Optional[str] = None, phone: Optional[str] = None, exclude_id: Optional[int] = None
    ) -> Optional[ConversationRecord]:
        """Find the most recent earlier conversation with the same email or phone."""
        if not email and not phone:
            return None
        clauses, params = [], []
        if email:
            clauses.append("LOWER(user_email) = LOWER(?)")
            params.append(email)
        if phone:
            clauses.append("user_phone = ?")
            params.append(phone)
        sql = f"SELECT * FROM conversations WHERE ({' OR '.join(clauses)})"
        if exclude_id is not None:
            sql += " AND id != ?"
            params.append(exclude_id)
        sql += " ORDER BY id DESC LIMIT 1"
        cursor = await self._db.conn.execute(sql, params)
        row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    async def save_message(self, record: MessageRecord) -> int:
        """Append a message and return its ID."""
        cursor = await self._db.conn.execute(
            """INSERT INTO messages
               (conversation_id, role, content, source, provider, model, tokens)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                record.conversation_id,
                record.role,
                record.content,
                record.source,
                record.provider,
                record.model,
                record.tokens,
            ),
        )
        await self._db.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    async def get_history(self, conversation_id: int, limit: int = 50) -> list[MessageRecord]:
        """Return the last ``limit`` messages of a conversation, oldest first."""
        cursor = await self._db.conn.execute(
            """SELECT * FROM (
                   SELECT * FROM messages WHERE conversation_id = ?
                   ORDER BY id DESC LIMIT ?
               ) ORDER BY id ASC""",
            (conversation_id, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    @staticmethod
    def _row_to_conversation(row) -> ConversationRecord:
        return ConversationRecord(
            id=row["id"],
            session_key=row["session_key"],
            status=row["status"],
            user_name=row["user_name"],
            user_email=row["user_email"],
            user_phone=row["user_phone"],
            last_response_source=row["last_response_source"],
            total_tokens=row["total_tokens"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_message(row) -> MessageRecord:
        return MessageRecord(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"],
            source=row["source"],
            provider=row["provider"],
            model=row["model"],
            tokens=row["tokens"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
