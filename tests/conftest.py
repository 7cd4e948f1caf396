"""Shared fixtures: temp SQLite database, repositories, sample listings and a scripted provider."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Optional

import pytest
import yaml

from estate_bot.ai.providers.base import ChatMessage, ProviderAdapter, ProviderReply, TokenUsage, ToolCallRequest
from estate_bot.ai.tools.base import ToolSpec
from estate_bot.config import ProviderConfig
from estate_bot.core.context import ConversationContext
from estate_bot.data.memory import InMemoryListingService
from estate_bot.storage.cache_repo import CacheRepository
from estate_bot.storage.context_repo import ContextRepository
from estate_bot.storage.conversation_repo import ConversationRepository
from estate_bot.storage.database import Database
from estate_bot.storage.faq_repo import FaqRepository
from estate_bot.storage.lead_repo import LeadRepository
from estate_bot.storage.usage_repo import UsageRepository

PROJECT_ROOT = Path(__file__).parent.parent
TODAY = date(2026, 10, 17)


class FakeProvider(ProviderAdapter):
    """Replays scripted replies; an Exception in the script is raised instead."""

    def __init__(
        self,
        name: str = "fake",
        replies: Optional[list] = None,
        api_key: Optional[str] = "test-key",
        default_model: str = "fake-model",
        function_calling: bool = True,
        usage: Optional[UsageRepository] = None,
        daily_limit: int = 1000,
    ):
        super().__init__(
            ProviderConfig(api_key=api_key, default_model=default_model, daily_message_limit=daily_limit),
            usage,
        )
        self.name = name
        self._replies = list(replies or [])
        self._function_calling = function_calling
        self.calls: list[dict] = []

    def supports_function_calling(self, model: Optional[str] = None) -> bool:
        return self._function_calling

    async def _send(
        self, messages: list[ChatMessage], system: str, model: str, tools: list[ToolSpec]
    ) -> ProviderReply:
        self.calls.append({"messages": list(messages), "system": system, "model": model, "tools": tools})
        if not self._replies:
            raise AssertionError(f"{self.name}: no scripted reply left")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def text_reply(text: str, prompt: int = 10, completion: int = 5) -> ProviderReply:
    return ProviderReply(text=text, finish_reason="stop", usage=TokenUsage(prompt, completion))


def tool_reply(*calls: tuple[str, dict], prompt: int = 10, completion: int = 5) -> ProviderReply:
    requests = [ToolCallRequest(id=f"call_{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)]
    return ProviderReply(tool_calls=requests, finish_reason="tool_calls", usage=TokenUsage(prompt, completion))


@pytest.fixture
def sample_listings() -> list[dict]:
    data = yaml.safe_load((PROJECT_ROOT / "sample_data" / "listings.yaml").read_text(encoding="utf-8"))
    return data["listings"]


@pytest.fixture
def data_service(sample_listings) -> InMemoryListingService:
    return InMemoryListingService(sample_listings, today=TODAY)


@pytest.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "test.db"))
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def conversation_repo(db) -> ConversationRepository:
    return ConversationRepository(db)


@pytest.fixture
def context_repo(db) -> ContextRepository:
    return ContextRepository(db)


@pytest.fixture
def cache_repo(db) -> CacheRepository:
    return CacheRepository(db)


@pytest.fixture
def faq_repo(db) -> FaqRepository:
    return FaqRepository(db)


@pytest.fixture
def lead_repo(db) -> LeadRepository:
    return LeadRepository(db)


@pytest.fixture
def usage_repo(db) -> UsageRepository:
    return UsageRepository(db)


@pytest.fixture
async def conversation(conversation_repo):
    return await conversation_repo.create("test-session")


@pytest.fixture
async def context(conversation, context_repo) -> ConversationContext:
    return await ConversationContext.load(conversation.id, context_repo)
