"""Model router: cost-aware provider selection with ordered fallback."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from estate_bot.ai.classifier import classify
from estate_bot.ai.providers.base import ChatMessage, ProviderAdapter, ProviderResult
from estate_bot.ai.tool_runner import run_tool_loop
from estate_bot.ai.tools.executor import ToolExecutor
from estate_bot.ai.tools.registry import ToolRegistry
from estate_bot.config import RoutingConfig
from estate_bot.core.types import QueryType
from estate_bot.errors import AllProvidersFailed, NoProvidersConfigured, ProviderError
from estate_bot.log import get_logger

logger = get_logger(__name__)

UNKNOWN_COST_RANK = 99
TOOL_QUERY_TYPES = frozenset({QueryType.PROPERTY_SEARCH, QueryType.MARKET_ANALYSIS})


@dataclass(frozen=True)
class ProviderSpec:
    provider: str
    model: str
    cost_rank: int = UNKNOWN_COST_RANK

    def __str__(self) -> str:
        return f"{self.provider}:{self.model}"


@dataclass
class RouteContext:
    """Everything a provider needs besides the new user message."""

    system: str = ""
    history: list[ChatMessage] = field(default_factory=list)
    executor: Optional[ToolExecutor] = None


def parse_spec(spec: str) -> tuple[str, Optional[str]]:
    provider, _, model = spec.partition(":")
    return provider.strip(), (model.strip() or None)


class ModelRouter:
    def __init__(
        self,
        providers: dict[str, ProviderAdapter],
        config: Optional[RoutingConfig] = None,
        tool_registry: Optional[ToolRegistry] = None,
    ):
        self._providers = providers
        self._config = config or RoutingConfig()
        self._tools = tool_registry or ToolRegistry()

    @property
    def providers(self) -> dict[str, ProviderAdapter]:
        return dict(self._providers)

    def cost_rank(self, provider: str) -> int:
        return self._config.cost_ranks.get(provider, UNKNOWN_COST_RANK)

    def _registered(self) -> list[str]:
        return [name for name, adapter in self._providers.items() if adapter.has_credentials]

    def build_chain(self, query_type: QueryType) -> list[ProviderSpec]:
        """Ordered provider/model entries to try for a query type."""
        registered = self._registered()

        if not self._config.enabled:
            return [ProviderSpec(n, self._providers[n].default_model, self.cost_rank(n)) for n in registered]

        chain: list[ProviderSpec] = []
        for entry in self._config.chains.get(str(query_type), []):
            provider, model = parse_spec(entry)
            if provider not in registered:
                continue
            spec = ProviderSpec(provider, model or self._providers[provider].default_model, self.cost_rank(provider))
            if spec not in chain:
                chain.append(spec)

        if self._config.cost_optimization:
            chain.sort(key=lambda s: s.cost_rank)

        listed = {s.provider for s in chain}
        for name in registered:
            if name not in listed:
                chain.append(ProviderSpec(name, self._providers[name].default_model, self.cost_rank(name)))
        return chain

    async def route(
        self, message: str, context: Optional[RouteContext] = None, query_type: Optional[QueryType] = None
    ) -> ProviderResult:
        context = context or RouteContext()
        query_type = query_type or classify(message)
        chain = self.build_chain(query_type)
        logger.info("route_start", query_type=str(query_type), chain=[str(s) for s in chain])

        if not chain:
            raise NoProvidersConfigured("No AI providers configured")

        attempts: list[tuple[str, ProviderError]] = []
        for position, spec in enumerate(chain):
            adapter = self._providers[spec.provider]
            if not await adapter.is_available():
                logger.info("provider_skipped", provider=spec.provider, reason="unavailable")
                continue

            use_tools = (
                query_type in TOOL_QUERY_TYPES
                and context.executor is not None
                and adapter.supports_function_calling(spec.model)
            )
            messages = list(context.history) + [ChatMessage.user(message)]
            try:
                if use_tools:
                    result = await run_tool_loop(
                        adapter,
                        messages,
                        self._tools.all_tools(),
                        context.executor,  # type: ignore[arg-type]
                        system=context.system,
                        model=spec.model,
                    )
                else:
                    result = await adapter.chat(messages, system=context.system, model=spec.model)
            except ProviderError as e:
                attempts.append((str(spec), e))
                logger.warning(
                    "provider_failed",
                    provider=spec.provider,
                    model=spec.model,
                    code=e.code,
                    status=getattr(e, "status", None),
                    error=str(e),
                )
                if not self._config.fallback_enabled:
                    raise
                continue

            result.routing = {
                "query_type": str(query_type),
                "provider_used": spec.provider,
                "model_used": result.model or spec.model,
                "tools_enabled": use_tools,
                "fallback_used": position > 0,
            }
            logger.info("route_done", **result.routing, total_tokens=result.tokens.total)
            return result

        raise AllProvidersFailed(attempts)

    def get_stats(self) -> dict[str, Any]:
        registered = self._registered()
        return {
            "routing_enabled": self._config.enabled,
            "cost_optimization": self._config.cost_optimization,
            "fallback_enabled": self._config.fallback_enabled,
            "providers": list(self._providers),
            "providers_available": len(registered),
            "available_providers": registered,
            "chains": {str(qt): [str(s) for s in self.build_chain(qt)] for qt in QueryType},
        }
