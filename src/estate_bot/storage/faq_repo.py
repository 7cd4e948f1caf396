"""FAQ knowledge base: exact question lookup and FTS5 keyword candidates."""

from __future__ import annotations

from typing import Iterable, Optional

from estate_bot.log import get_logger
from estate_bot.storage.database import Database
from estate_bot.storage.models import FaqEntry

logger = get_logger(__name__)


def _fts_query(keywords: Iterable[str]) -> str:
    """Build an FTS5 OR-query with every term quoted, so user text can't break the syntax."""
    terms = []
    for word in keywords:
        cleaned = word.replace('"', "").strip()
        if cleaned:
            terms.append(f'"{cleaned}"')
    return " OR ".join(terms)


class FaqRepository:
    def __init__(self, db: Database):
        self._db = db

    async def add(self, entry: FaqEntry) -> int:
        cursor = await self._db.conn.execute(
            """INSERT INTO faq (question, answer, keywords, category, is_active)
               VALUES (?, ?, ?, ?, ?)""",
            (entry.question, entry.answer, entry.keywords, entry.category, int(entry.is_active)),
        )
        await self._db.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    async def find_exact(self, question: str) -> Optional[FaqEntry]:
        cursor = await self._db.conn.execute(
            """SELECT * FROM faq
               WHERE is_active = 1 AND LOWER(TRIM(question)) = LOWER(TRIM(?))
               LIMIT 1""",
            (question,),
        )
        row = await cursor.fetchone()
        return self._row_to_entry(row) if row else None

    async def search_keywords(self, keywords: list[str], limit: int = 5) -> list[FaqEntry]:
        """Return active FAQ entries ranked by full-text relevance to the keywords."""
        query = _fts_query(keywords)
        if not query:
            return []
        cursor = await self._db.conn.execute(
            """SELECT f.* FROM faq f
               JOIN faq_fts s ON f.id = s.rowid
               WHERE faq_fts MATCH ? AND f.is_active = 1
               ORDER BY rank
               LIMIT ?""",
            (query, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_entry(row) for row in rows]

    async def increment_usage(self, faq_id: int) -> None:
        await self._db.conn.execute(
            "UPDATE faq SET usage_count = usage_count + 1 WHERE id = ?", (faq_id,)
        )
        await self._db.conn.commit()

    async def count(self) -> int:
        cursor = await self._db.conn.execute("SELECT COUNT(*) FROM faq WHERE is_active = 1")
        row = await cursor.fetchone()
        return int(row[0])

    @staticmethod
    def _row_to_entry(row) -> FaqEntry:
        return FaqEntry(
            id=row["id"],
            question=row["question"],
            answer=row["answer"],
            keywords=row["keywords"],
            category=row["category"],
            is_active=bool(row["is_active"]),
            usage_count=row["usage_count"],
        )
