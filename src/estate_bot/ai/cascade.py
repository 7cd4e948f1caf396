"""Response resolution cascade: FAQ, cache, structured data, templates, then AI."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from estate_bot.ai.answers import DataAnswerer, can_answer_with_data
from estate_bot.ai.classifier import classify
from estate_bot.ai.data_mapper import DataMapping, DataReferenceMapper
from estate_bot.ai.intent import IntentAnalysis, analyze_intent
from estate_bot.ai.router import TOOL_QUERY_TYPES, ModelRouter, RouteContext
from estate_bot.ai.scoring import FaqScorer, extract_keywords
from estate_bot.ai.templates import fill_template, match_template
from estate_bot.config import CascadeConfig
from estate_bot.core.context import ConversationContext
from estate_bot.core.types import ResponseSource
from estate_bot.data.service import DataService
from estate_bot.log import get_logger
from estate_bot.storage.cache_repo import CacheRepository
from estate_bot.storage.faq_repo import FaqRepository
from estate_bot.storage.models import FaqEntry

logger = get_logger(__name__)


@dataclass
class CascadeResult:
    answer: str
    source: ResponseSource
    confidence: float
    tokens_used: int = 0
    data: Any = None
    processing_time_ms: int = 0
    requires_agent: bool = False
    routing: dict[str, Any] = field(default_factory=dict)
    provider: Optional[str] = None
    model: Optional[str] = None


class ResponseCascade:
    """Resolves one question through increasingly expensive strategies.

    The first stage whose confidence clears its threshold wins. Router errors from the AI
    stage propagate to the caller.
    """

    def __init__(
        self,
        faq_repo: FaqRepository,
        cache_repo: CacheRepository,
        data: DataService,
        router: ModelRouter,
        config: Optional[CascadeConfig] = None,
        scorer: Optional[FaqScorer] = None,
        mapper: Optional[DataReferenceMapper] = None,
        answerer: Optional[DataAnswerer] = None,
        site_name: str = "",
    ):
        self._faq = faq_repo
        self._cache = cache_repo
        self._data = data
        self._router = router
        self._config = config or CascadeConfig()
        self._scorer = scorer or FaqScorer(self._config.faq_scoring)
        self._mapper = mapper or DataReferenceMapper()
        self._answerer = answerer or DataAnswerer(data)
        self._site_name = site_name

    @property
    def config(self) -> CascadeConfig:
        return self._config

    async def resolve(
        self,
        question: str,
        context: ConversationContext,
        route_context: Optional[RouteContext] = None,
    ) -> CascadeResult:
        start = time.monotonic()
        result = await self._resolve(question, context, route_context or RouteContext())
        result.processing_time_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "cascade_resolved",
            source=str(result.source),
            confidence=round(result.confidence, 3),
            tokens=result.tokens_used,
            elapsed_ms=result.processing_time_ms,
        )
        return result

    async def _resolve(
        self, question: str, context: ConversationContext, route_context: RouteContext
    ) -> CascadeResult:
        cfg = self._config
        requires_agent = analyze_intent(question).requires_agent

        entry, score = await self.check_faq(question)
        if entry is not None and score >= cfg.high_confidence:
            await self._faq.increment_usage(entry.id)  # type: ignore[arg-type]
            return CascadeResult(
                entry.answer, ResponseSource.FAQ, score, data={"faq_id": entry.id}, requires_agent=requires_agent
            )

        cache_context = context.cache_key_context()
        # With a numbered list on screen, a generic entry could bind "the second one" to nothing.
        cached = await self._cache.lookup(question, cache_context, allow_generic=not context.shown_entities)
        if cached is not None:
            logger.debug("cache_hit", response_type=cached.response_type, hits=cached.hit_count)
            return CascadeResult(
                cached.response,
                ResponseSource.CACHE,
                cached.confidence,
                data={"cached_type": cached.response_type},
                requires_agent=requires_agent,
            )

        intent = analyze_intent(question, await self._data.known_cities())
        mapping = self._mapper.map_question(question)

        if can_answer_with_data(intent, mapping, cfg.medium_confidence):
            answer = await self._answerer.answer(question, intent, mapping)
            if answer is not None and answer.confidence >= cfg.medium_confidence:
                await self._cache.store(
                    question, answer.answer, str(ResponseSource.DATABASE), answer.confidence,
                    cfg.cache_ttl_long, cache_context,
                )
                return CascadeResult(
                    answer.answer,
                    ResponseSource.DATABASE,
                    answer.confidence,
                    data=answer.data,
                    requires_agent=intent.requires_agent,
                )

        # A refinement like "thanks, now show me condos" still belongs to the AI stage.
        if classify(question) not in TOOL_QUERY_TYPES:
            template = match_template(question)
            if template is not None and template.confidence >= cfg.medium_confidence:
                text = fill_template(template.text, context.get_collected_field("name"), self._site_name)
                await self._cache.store(
                    question, text, str(ResponseSource.TEMPLATE), template.confidence,
                    cfg.cache_ttl_medium, cache_context,
                )
                return CascadeResult(
                    text,
                    ResponseSource.TEMPLATE,
                    template.confidence,
                    data={"template": template.key},
                    requires_agent=intent.requires_agent,
                )

        return await self._ask_ai(question, context, route_context, intent, mapping, cache_context)

    async def check_faq(self, question: str) -> tuple[Optional[FaqEntry], float]:
        """Best FAQ entry and its score; an exact question match scores 1.0."""
        exact = await self._faq.find_exact(question)
        if exact is not None:
            return exact, 1.0

        best: Optional[FaqEntry] = None
        best_score = 0.0
        for candidate in await self._faq.search_keywords(extract_keywords(question)):
            score = self._scorer.score(question, candidate)
            if score > best_score:
                best, best_score = candidate, score
        return best, best_score

    async def _ask_ai(
        self,
        question: str,
        context: ConversationContext,
        route_context: RouteContext,
        intent: IntentAnalysis,
        mapping: DataMapping,
        cache_context: dict[str, Any],
    ) -> CascadeResult:
        relevant = await self._answerer.gather_relevant_data(intent.entities)
        ai_context = self.build_ai_context(intent, mapping, relevant, context)
        system = "\n\n".join(p for p in (route_context.system, ai_context) if p)

        routed = await self._router.route(question, replace(route_context, system=system))

        confidence = self._config.ai_confidence
        # Tool runs update the conversation context or record leads; a cache replay would skip them.
        if confidence >= self._config.medium_confidence and not routed.tool_calls_made:
            await self._cache.store(
                question, routed.text, str(ResponseSource.AI), confidence,
                self._config.cache_ttl_short, cache_context, tokens_used=routed.tokens.total,
            )

        return CascadeResult(
            routed.text,
            ResponseSource.AI,
            confidence,
            tokens_used=routed.tokens.total,
            data={
                "tool_calls": [c.name for c in routed.tool_calls_made],
                "tool_iterations": routed.tool_iterations,
            },
            requires_agent=intent.requires_agent,
            routing=routed.routing,
            provider=routed.provider,
            model=routed.model,
        )

    def build_ai_context(
        self,
        intent: IntentAnalysis,
        mapping: DataMapping,
        relevant: dict[str, Any],
        context: ConversationContext,
    ) -> str:
        parts = [
            "## Question Analysis\n"
            f"Intent: {intent.type}\n"
            f"Action: {intent.action or 'none'}\n"
            f"Entities: {json.dumps(intent.entities, default=str)}"
        ]
        available = self._mapper.generate_ai_context(mapping)
        if available:
            parts.append("## Available Data\n" + available)
        if relevant:
            parts.append("## Relevant Data\n" + json.dumps(relevant, default=str, indent=2))
        conversation = context.build_ai_context_string()
        if conversation:
            parts.append(conversation)
        return "\n\n".join(parts)
