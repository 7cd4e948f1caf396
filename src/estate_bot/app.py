"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml

from estate_bot.ai.cascade import ResponseCascade
from estate_bot.ai.handler import ChatHandler
from estate_bot.ai.providers.base import ProviderAdapter
from estate_bot.ai.router import ModelRouter
from estate_bot.ai.tools.registry import ToolRegistry
from estate_bot.config import AppConfig, ProviderConfig
from estate_bot.core.session import SessionManager
from estate_bot.data.memory import InMemoryListingService
from estate_bot.data.service import DataService
from estate_bot.log import get_logger
from estate_bot.storage.cache_repo import CacheRepository
from estate_bot.storage.context_repo import ContextRepository
from estate_bot.storage.conversation_repo import ConversationRepository
from estate_bot.storage.database import Database
from estate_bot.storage.faq_repo import FaqRepository
from estate_bot.storage.lead_repo import LeadRepository
from estate_bot.storage.models import FaqEntry
from estate_bot.storage.usage_repo import UsageRepository

logger = get_logger(__name__)

PROVIDER_NAMES = ("anthropic", "openai", "gemini")


class EstateBotApp:
    """Top-level application orchestrator."""

    def __init__(self, config: AppConfig, data: Optional[DataService] = None):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.conversation_repo = ConversationRepository(self.db)
        self.context_repo = ContextRepository(self.db)
        self.cache_repo = CacheRepository(self.db)
        self.faq_repo = FaqRepository(self.db)
        self.lead_repo = LeadRepository(self.db)
        self.usage_repo = UsageRepository(self.db)
        self.session_manager = SessionManager(self.conversation_repo)
        self.tool_registry = ToolRegistry()
        self._data = data
        self.router: Optional[ModelRouter] = None
        self.handler: Optional[ChatHandler] = None

    @property
    def data(self) -> DataService:
        if self._data is None:
            self._data = InMemoryListingService.from_yaml(self.config.data.listings_path)
        return self._data

    async def start(self) -> None:
        """Initialize storage and build the turn pipeline."""
        await self.db.initialize()

        providers = {name: self.create_provider(name) for name in PROVIDER_NAMES}
        self.router = ModelRouter(providers, self.config.routing, self.tool_registry)
        cascade = ResponseCascade(
            self.faq_repo,
            self.cache_repo,
            self.data,
            self.router,
            self.config.cascade,
            site_name=self.config.bot.name,
        )
        self.handler = ChatHandler(
            self.session_manager,
            cascade,
            self.data,
            self.context_repo,
            self.lead_repo,
            self.config.bot,
            site_url=self.config.data.site_url,
        )

        stats = self.router.get_stats()
        if not stats["available_providers"]:
            logger.warning("no_ai_providers", hint="set an api_key for anthropic, openai or gemini")
        logger.info("estate_bot_started", providers=stats["available_providers"])

    async def stop(self) -> None:
        await self.db.close()
        logger.info("estate_bot_stopped")

    async def import_faq(self, path: str | Path) -> int:
        """Load FAQ entries from a YAML list of question/answer/keywords/category mappings."""
        items = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or []
        if isinstance(items, dict):
            items = items.get("faq", [])
        added = 0
        for item in items:
            if not item.get("question") or not item.get("answer"):
                logger.warning("faq_entry_skipped", entry=item)
                continue
            keywords = item.get("keywords", "")
            if isinstance(keywords, list):
                keywords = " ".join(keywords)
            await self.faq_repo.add(
                FaqEntry(
                    question=item["question"],
                    answer=item["answer"],
                    keywords=keywords,
                    category=item.get("category", "general"),
                )
            )
            added += 1
        logger.info("faq_imported", path=str(path), count=added)
        return added

    def create_provider(self, name: str) -> ProviderAdapter:
        cfg: Optional[ProviderConfig] = getattr(self.config.providers, name, None)
        if cfg is None:
            raise ValueError(f"Unknown AI provider: {name}")
        match name:
            case "anthropic":
                from estate_bot.ai.providers.anthropic_provider import AnthropicProvider

                return AnthropicProvider(cfg, self.usage_repo)
            case "openai":
                from estate_bot.ai.providers.openai_provider import OpenAIProvider

                return OpenAIProvider(cfg, self.usage_repo)
            case "gemini":
                from estate_bot.ai.providers.gemini_provider import GeminiProvider

                return GeminiProvider(cfg, self.usage_repo)
            case _:
                raise ValueError(f"Unknown AI provider: {name}")
