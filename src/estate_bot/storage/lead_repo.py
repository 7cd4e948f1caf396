"""Stores tour requests and agent contact submissions collected by the assistant."""

from __future__ import annotations

from estate_bot.log import get_logger
from estate_bot.storage.database import Database
from estate_bot.storage.models import LeadSubmission

logger = get_logger(__name__)


class LeadRepository:
    def __init__(self, db: Database):
        self._db = db

    async def save(self, lead: LeadSubmission) -> int:
        cursor = await self._db.conn.execute(
            """INSERT INTO lead_submissions
               (conversation_id, form_type, listing_id, first_name, last_name,
                email, phone, message, inquiry_type, status, source)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                lead.conversation_id,
                lead.form_type,
                lead.listing_id,
                lead.first_name,
                lead.last_name,
                lead.email,
                lead.phone,
                lead.message,
                lead.inquiry_type,
                lead.status,
                lead.source,
            ),
        )
        await self._db.conn.commit()
        lead_id = cursor.lastrowid
        logger.info("lead_saved", lead_id=lead_id, form_type=lead.form_type, listing_id=lead.listing_id)
        return lead_id  # type: ignore[return-value]

    async def list_for_conversation(self, conversation_id: int) -> list[LeadSubmission]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM lead_submissions WHERE conversation_id = ? ORDER BY id",
            (conversation_id,),
        )
        rows = await cursor.fetchall()
        return [
            LeadSubmission(
                id=row["id"],
                conversation_id=row["conversation_id"],
                form_type=row["form_type"],
                listing_id=row["listing_id"],
                first_name=row["first_name"],
                last_name=row["last_name"],
                email=row["email"],
                phone=row["phone"],
                message=row["message"],
                inquiry_type=row["inquiry_type"],
                status=row["status"],
                source=row["source"],
            )
            for row in rows
        ]
