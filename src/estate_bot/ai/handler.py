"""Turn handler: session -> lock -> context -> cascade -> persisted reply."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from estate_bot.ai.cascade import CascadeResult, ResponseCascade
from estate_bot.ai.conversation import build_messages, build_system_prompt
from estate_bot.ai.router import RouteContext
from estate_bot.ai.tools.executor import ToolExecutor
from estate_bot.config import BotConfig
from estate_bot.core.context import ConversationContext
from estate_bot.core.session import SessionManager
from estate_bot.core.types import ResponseSource, Role
from estate_bot.data.service import DataService
from estate_bot.errors import ProviderError, RoutingError
from estate_bot.log import bind_conversation, get_logger
from estate_bot.storage.context_repo import ContextRepository
from estate_bot.storage.lead_repo import LeadRepository
from estate_bot.storage.models import MessageRecord

logger = get_logger(__name__)

FAQ_FALLBACK_NOTE = (
    "\n\n(Note: I'm currently using my FAQ knowledge base. "
    "For more detailed help, please contact us directly.)"
)
APOLOGY = (
    "I'm having trouble connecting to my AI service right now. "
    "Please try again later or contact us directly."
)


@dataclass
class TurnReply:
    text: str
    source: str
    conversation_id: Optional[int] = None
    confidence: float = 0.0
    tokens_used: int = 0
    provider: Optional[str] = None
    model: Optional[str] = None
    requires_agent: bool = False
    routing: dict[str, Any] = field(default_factory=dict)


class ChatHandler:
    """Handles one user turn end-to-end. Turns on one conversation never interleave."""

    def __init__(
        self,
        session_manager: SessionManager,
        cascade: ResponseCascade,
        data: DataService,
        context_repo: ContextRepository,
        lead_repo: Optional[LeadRepository] = None,
        bot_config: Optional[BotConfig] = None,
        site_url: str = "https://example.com",
    ):
        self._sessions = session_manager
        self._cascade = cascade
        self._data = data
        self._context_repo = context_repo
        self._leads = lead_repo
        self._bot = bot_config or BotConfig()
        self._site_url = site_url

    async def handle(self, session_key: str, text: str) -> Optional[TurnReply]:
        """Process one incoming message. Blank input yields None."""
        text = text.strip()
        if not text:
            return None

        if text.lower() == "/reset":
            conversation = await self._sessions.reset(session_key)
            return TurnReply("Conversation reset. Starting fresh.", "command", conversation.id)

        conversation = await self._sessions.get_conversation(session_key)
        conversation_id: int = conversation.id  # type: ignore[assignment]

        async with self._sessions.lock(conversation_id):
            bind_conversation(conversation_id, session_key)
            repo = self._sessions.repo

            history = build_messages(await repo.get_history(conversation_id, self._bot.history_limit))
            if history and history[-1].role == Role.USER:
                history.pop()
            await repo.save_message(MessageRecord(conversation_id, str(Role.USER), text))

            context = await ConversationContext.load(conversation_id, self._context_repo)
            executor = ToolExecutor(self._data, context, self._leads, repo, self._site_url)
            route_context = RouteContext(
                system=build_system_prompt(self._bot), history=history, executor=executor
            )

            try:
                result = await self._cascade.resolve(text, context, route_context)
            except (RoutingError, ProviderError) as e:
                logger.error("ai_error", code=e.code, error=str(e))
                result = await self._fallback(text)

            await repo.save_message(
                MessageRecord(
                    conversation_id,
                    str(Role.ASSISTANT),
                    result.answer,
                    source=str(result.source),
                    provider=result.provider,
                    model=result.model,
                    tokens=result.tokens_used,
                )
            )
            await repo.record_response(conversation_id, str(result.source), result.tokens_used)
            await context.save()

        return TurnReply(
            text=result.answer,
            source=str(result.source),
            conversation_id=conversation_id,
            confidence=result.confidence,
            tokens_used=result.tokens_used,
            provider=result.provider,
            model=result.model,
            requires_agent=result.requires_agent,
            routing=result.routing,
        )

    async def _fallback(self, question: str) -> CascadeResult:
        """Last resort when no provider could answer: any FAQ above the low band, else an apology."""
        entry, score = await self._cascade.check_faq(question)
        if entry is not None and score >= self._cascade.config.low_confidence:
            logger.info("faq_fallback", faq_id=entry.id, score=round(score, 3))
            return CascadeResult(entry.answer + FAQ_FALLBACK_NOTE, ResponseSource.FALLBACK, score)
        return CascadeResult(APOLOGY, ResponseSource.FALLBACK, 0.0)
