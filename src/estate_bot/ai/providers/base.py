"""Provider adapter contract and the vendor-neutral transcript types."""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from estate_bot.ai.tools.base import ToolSpec
from estate_bot.config import ProviderConfig
from estate_bot.errors import InvalidResponseFormat, MissingCredential, ProviderRequestFailed, RateLimitExceeded
from estate_bot.log import get_logger
from estate_bot.storage.usage_repo import UsageRepository

logger = get_logger(__name__)


@dataclass
class ToolCallRequest:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCallRecord:
    name: str
    arguments: dict[str, Any]
    success: bool


@dataclass
class ChatMessage:
    """One transcript entry. ``role`` is user, assistant or tool."""

    role: str
    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    name: Optional[str] = None  # tool name, for role == "tool"

    @classmethod
    def user(cls, text: str) -> ChatMessage:
        return cls(role="user", content=text)

    @classmethod
    def assistant(cls, text: str, tool_calls: list[ToolCallRequest] | None = None) -> ChatMessage:
        return cls(role="assistant", content=text, tool_calls=list(tool_calls or []))

    @classmethod
    def tool_result(cls, call: ToolCallRequest, content: str) -> ChatMessage:
        return cls(role="tool", content=content, tool_call_id=call.id, name=call.name)


@dataclass
class TokenUsage:
    prompt: int = 0
    completion: int = 0

    @property
    def total(self) -> int:
        return self.prompt + self.completion

    def add(self, other: TokenUsage) -> None:
        self.prompt += other.prompt
        self.completion += other.completion

    def as_dict(self) -> dict[str, int]:
        return {"prompt": self.prompt, "completion": self.completion, "total": self.total}


@dataclass
class ProviderReply:
    """A single round trip: final text and/or requested tool calls."""

    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""


@dataclass
class ProviderResult:
    """The final answer of a provider for one turn, after any tool rounds."""

    text: str
    provider: str
    model: str
    tokens: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: Optional[str] = None
    response_time_ms: int = 0
    tool_calls_made: list[ToolCallRecord] = field(default_factory=list)
    tool_iterations: int = 0
    role: str = "assistant"
    routing: dict[str, Any] = field(default_factory=dict)


# USD per 1M tokens: model prefix -> (input, output)
Pricing = dict[str, tuple[float, float]]


class ProviderAdapter(ABC):
    """Uniform face over one LLM vendor.

    Subclasses only translate: ``_send`` turns the neutral transcript into the vendor's wire
    format, performs one request and maps SDK errors into the ProviderError taxonomy.
    """

    name: str = ""
    PRICING: Pricing = {}
    DEFAULT_PRICING: tuple[float, float] = (0.0, 0.0)

    def __init__(self, config: ProviderConfig, usage: Optional[UsageRepository] = None):
        self.config = config
        self._usage = usage

    @property
    def default_model(self) -> str:
        return self.config.default_model

    @property
    def has_credentials(self) -> bool:
        return bool(self.config.api_key)

    def supports_function_calling(self, model: Optional[str] = None) -> bool:
        return True

    async def daily_limit_reached(self) -> bool:
        if self._usage is None:
            return False
        record = await self._usage.get(self.name)
        return record.request_count >= self.config.daily_message_limit

    async def is_available(self) -> bool:
        return self.has_credentials and not await self.daily_limit_reached()

    def estimate_cost(self, prompt_tokens: int, completion_tokens: int, model: Optional[str] = None) -> float:
        model = model or self.default_model
        rates = self.DEFAULT_PRICING
        for prefix in sorted(self.PRICING, key=len, reverse=True):
            if model.startswith(prefix):
                rates = self.PRICING[prefix]
                break
        return (prompt_tokens / 1_000_000) * rates[0] + (completion_tokens / 1_000_000) * rates[1]

    async def track_usage(self, usage: TokenUsage, model: str) -> None:
        if self._usage is None:
            return
        cost = self.estimate_cost(usage.prompt, usage.completion, model)
        await self._usage.record(self.name, usage.prompt, usage.completion, cost)

    async def complete(
        self,
        messages: list[ChatMessage],
        system: str = "",
        model: Optional[str] = None,
        tools: Optional[list[ToolSpec]] = None,
        timeout: Optional[float] = None,
    ) -> ProviderReply:
        """One request. Raises a ProviderError subclass on any failure."""
        if not self.has_credentials:
            raise MissingCredential(self.name, f"No API key configured for {self.name}")
        if await self.daily_limit_reached():
            raise RateLimitExceeded(self.name, "Daily message limit reached")

        model = model or self.default_model
        if timeout is None:
            timeout = self.config.tool_timeout if tools else self.config.chat_timeout

        logger.debug("provider_request", provider=self.name, model=model, message_count=len(messages))
        try:
            reply = await asyncio.wait_for(self._send(messages, system, model, list(tools or [])), timeout)
        except asyncio.TimeoutError as e:
            raise ProviderRequestFailed(self.name, f"Request timed out after {timeout:.0f}s") from e

        logger.debug(
            "provider_response",
            provider=self.name,
            model=reply.model or model,
            prompt_tokens=reply.usage.prompt,
            completion_tokens=reply.usage.completion,
            finish_reason=reply.finish_reason,
            tool_calls=len(reply.tool_calls),
        )
        await self.track_usage(reply.usage, model)
        if not reply.model:
            reply.model = model
        return reply

    async def chat(
        self, messages: list[ChatMessage], system: str = "", model: Optional[str] = None
    ) -> ProviderResult:
        """Plain chat without tools."""
        start = time.monotonic()
        reply = await self.complete(messages, system, model)
        if not reply.text.strip():
            raise InvalidResponseFormat(self.name, "Empty response from provider")
        return ProviderResult(
            text=reply.text,
            provider=self.name,
            model=reply.model,
            tokens=reply.usage,
            finish_reason=reply.finish_reason,
            response_time_ms=int((time.monotonic() - start) * 1000),
        )

    @abstractmethod
    async def _send(
        self, messages: list[ChatMessage], system: str, model: str, tools: list[ToolSpec]
    ) -> ProviderReply:
        ...
