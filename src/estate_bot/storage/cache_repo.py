"""Response cache keyed by question hash with an optional context hash."""

from __future__ import annotations

import hashlib
import json
import time
from typing import Any, Optional

from estate_bot.log import get_logger
from estate_bot.storage.database import Database
from estate_bot.storage.models import CacheEntry

logger = get_logger(__name__)


def question_hash(question: str) -> str:
    return hashlib.md5(question.strip().lower().encode("utf-8")).hexdigest()


def context_hash(context: dict[str, Any] | None) -> Optional[str]:
    """Stable hash of a context mapping; empty context hashes to None (context-agnostic)."""
    if not context:
        return None
    canonical = json.dumps(context, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


class CacheRepository:
    def __init__(self, db: Database):
        self._db = db

    async def lookup(
        self,
        question: str,
        context: dict[str, Any] | None = None,
        now: float | None = None,
        allow_generic: bool = True,
    ) -> Optional[CacheEntry]:
        """Find an unexpired entry, preferring a context-specific one, and count the hit.

        With ``allow_generic`` off only an entry stored under the same context matches.
        """
        now = time.time() if now is None else now
        q_hash = question_hash(question)
        c_hash = context_hash(context)

        cursor = await self._db.conn.execute(
            """SELECT * FROM response_cache
               WHERE question_hash = ?
                 AND ((? AND context_hash IS NULL) OR context_hash = ?)
                 AND (expires_at IS NULL OR expires_at > ?)
               ORDER BY (context_hash IS NOT NULL AND context_hash = ?) DESC, id DESC
               LIMIT 1""",
            (q_hash, int(allow_generic), c_hash, now, c_hash),
        )
        row = await cursor.fetchone()
        if row is None:
            return None

        await self._db.conn.execute(
            "UPDATE response_cache SET hit_count = hit_count + 1, last_accessed = ? WHERE id = ?",
            (now, row["id"]),
        )
        await self._db.conn.commit()
        entry = self._row_to_entry(row)
        entry.hit_count += 1
        entry.last_accessed = now
        return entry

    async def store(
        self,
        question: str,
        response: str,
        response_type: str,
        confidence: float,
        ttl: int,
        context: dict[str, Any] | None = None,
        tokens_used: int = 0,
        now: float | None = None,
    ) -> int:
        now = time.time() if now is None else now
        cursor = await self._db.conn.execute(
            """INSERT INTO response_cache
               (question_hash, context_hash, question, response, response_type,
                confidence, tokens_used, expires_at, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                question_hash(question),
                context_hash(context),
                question,
                response,
                response_type,
                confidence,
                tokens_used,
                now + ttl,
                now,
            ),
        )
        await self._db.conn.commit()
        logger.debug("response_cached", response_type=response_type, ttl=ttl)
        return cursor.lastrowid  # type: ignore[return-value]

    async def purge_expired(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        cursor = await self._db.conn.execute(
            "DELETE FROM response_cache WHERE expires_at IS NOT NULL AND expires_at <= ?", (now,)
        )
        await self._db.conn.commit()
        return cursor.rowcount

    @staticmethod
    def _row_to_entry(row) -> CacheEntry:
        return CacheEntry(
            id=row["id"],
            question_hash=row["question_hash"],
            context_hash=row["context_hash"],
            question=row["question"],
            response=row["response"],
            response_type=row["response_type"],
            confidence=row["confidence"],
            tokens_used=row["tokens_used"],
            hit_count=row["hit_count"],
            expires_at=row["expires_at"],
            last_accessed=row["last_accessed"],
            created_at=row["created_at"],
        )
