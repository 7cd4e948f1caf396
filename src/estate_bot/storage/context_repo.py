"""Persistence for per-conversation context (criteria, shown entities, active entity)."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from estate_bot.log import get_logger
from estate_bot.storage.database import Database
from estate_bot.storage.models import ContextRecord

logger = get_logger(__name__)


class ContextRepository:
    """Load/save one ContextRecord per conversation; save is a single atomic upsert."""

    def __init__(self, db: Database):
        self._db = db

    async def load(self, conversation_id: int) -> Optional[ContextRecord]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM conversation_context WHERE conversation_id = ?",
            (conversation_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return ContextRecord(
            conversation_id=row["conversation_id"],
            collected_info=json.loads(row["collected_info_json"]),
            search_criteria=json.loads(row["search_criteria_json"]),
            shown_entities=json.loads(row["shown_entities_json"]),
            active_entity_id=row["active_entity_id"],
            active_entity=json.loads(row["active_entity_json"]) if row["active_entity_json"] else None,
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    async def save(self, record: ContextRecord) -> None:
        await self._db.conn.execute(
            """INSERT INTO conversation_context
               (conversation_id, collected_info_json, search_criteria_json,
                shown_entities_json, active_entity_id, active_entity_json)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(conversation_id) DO UPDATE SET
                   collected_info_json = excluded.collected_info_json,
                   search_criteria_json = excluded.search_criteria_json,
                   shown_entities_json = excluded.shown_entities_json,
                   active_entity_id = excluded.active_entity_id,
                   active_entity_json = excluded.active_entity_json,
                   updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')""",
            (
                record.conversation_id,
                json.dumps(record.collected_info),
                json.dumps(record.search_criteria),
                json.dumps(record.shown_entities),
                record.active_entity_id,
                json.dumps(record.active_entity, default=str) if record.active_entity is not None else None,
            ),
        )
        await self._db.conn.commit()
        logger.debug(
            "context_saved",
            conversation_id=record.conversation_id,
            shown=len(record.shown_entities),
            active_entity_id=record.active_entity_id,
        )
