"""Anthropic Messages API adapter."""

from __future__ import annotations

from typing import Any, Optional

import anthropic

from estate_bot.ai.providers.base import ChatMessage, ProviderAdapter, ProviderReply, TokenUsage, ToolCallRequest
from estate_bot.ai.tools.base import ToolSpec
from estate_bot.config import ProviderConfig
from estate_bot.errors import ProviderAPIError, ProviderRequestFailed, RateLimitExceeded
from estate_bot.storage.usage_repo import UsageRepository


def to_anthropic_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Tool results following an assistant tool_use turn are grouped into one user message."""
    wire: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "tool":
            block = {"type": "tool_result", "tool_use_id": msg.tool_call_id, "content": msg.content}
            last = wire[-1] if wire else None
            if last and last["role"] == "user" and isinstance(last["content"], list):
                last["content"].append(block)
            else:
                wire.append({"role": "user", "content": [block]})
        elif msg.role == "assistant" and msg.tool_calls:
            content: list[dict[str, Any]] = []
            if msg.content:
                content.append({"type": "text", "text": msg.content})
            for call in msg.tool_calls:
                content.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments})
            wire.append({"role": "assistant", "content": content})
        else:
            wire.append({"role": msg.role, "content": msg.content})
    return wire


class AnthropicProvider(ProviderAdapter):
    name = "anthropic"
    PRICING = {
        "claude-3-haiku": (0.25, 1.25),
        "claude-3-sonnet": (3.00, 15.00),
        "claude-3-opus": (15.00, 75.00),
        "claude-3-5-sonnet": (3.00, 15.00),
        "claude-3-5-haiku": (1.00, 5.00),
    }
    DEFAULT_PRICING = (0.25, 1.25)

    def __init__(self, config: ProviderConfig, usage: Optional[UsageRepository] = None):
        super().__init__(config, usage)
        self._client: Optional[anthropic.AsyncAnthropic] = None

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                max_retries=self.config.max_retries,
            )
        return self._client

    async def _send(
        self, messages: list[ChatMessage], system: str, model: str, tools: list[ToolSpec]
    ) -> ProviderReply:
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": self.config.max_tokens,
            "messages": to_anthropic_messages(messages),
            "temperature": self.config.temperature,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = [t.to_anthropic() for t in tools]

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.RateLimitError as e:
            raise RateLimitExceeded(self.name, str(e)) from e
        except anthropic.APIStatusError as e:
            raise ProviderAPIError(self.name, e.status_code, str(e)) from e
        except anthropic.APIConnectionError as e:
            raise ProviderRequestFailed(self.name, str(e)) from e

        text_parts, tool_calls = [], []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCallRequest(id=block.id, name=block.name, arguments=dict(block.input or {})))
        return ProviderReply(
            text="\n".join(text_parts),
            tool_calls=tool_calls,
            finish_reason=response.stop_reason,
            usage=TokenUsage(response.usage.input_tokens, response.usage.output_tokens),
            model=response.model,
        )
