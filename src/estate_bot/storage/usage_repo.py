"""Per-provider daily request counters used for local rate limiting and cost tracking."""

from __future__ import annotations

from datetime import date

from estate_bot.storage.database import Database
from estate_bot.storage.models import UsageRecord


def today() -> str:
    return date.today().isoformat()


class UsageRepository:
    def __init__(self, db: Database):
        self._db = db

    async def get(self, provider: str, day: str | None = None) -> UsageRecord:
        day = day or today()
        cursor = await self._db.conn.execute(
            "SELECT * FROM provider_usage WHERE provider = ? AND day = ?", (provider, day)
        )
        row = await cursor.fetchone()
        if row is None:
            return UsageRecord(provider=provider, day=day)
        return UsageRecord(
            provider=row["provider"],
            day=row["day"],
            request_count=row["request_count"],
            prompt_tokens=row["prompt_tokens"],
            completion_tokens=row["completion_tokens"],
            estimated_cost=row["estimated_cost"],
        )

    async def record(
        self,
        provider: str,
        prompt_tokens: int,
        completion_tokens: int,
        cost: float,
        day: str | None = None,
    ) -> None:
        await self._db.conn.execute(
            """INSERT INTO provider_usage
               (provider, day, request_count, prompt_tokens, completion_tokens, estimated_cost)
               VALUES (?, ?, 1, ?, ?, ?)
               ON CONFLICT(provider, day) DO UPDATE SET
                   request_count = request_count + 1,
                   prompt_tokens = prompt_tokens + excluded.prompt_tokens,
                   completion_tokens = completion_tokens + excluded.completion_tokens,
                   estimated_cost = estimated_cost + excluded.estimated_cost""",
            (provider, day or today(), prompt_tokens, completion_tokens, cost),
        )
        await self._db.conn.commit()
