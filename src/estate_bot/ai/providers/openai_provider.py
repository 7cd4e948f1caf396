"""OpenAI Chat Completions adapter."""

from __future__ import annotations

import json
from typing import Any, Optional

import openai

from estate_bot.ai.providers.base import ChatMessage, ProviderAdapter, ProviderReply, TokenUsage, ToolCallRequest
from estate_bot.ai.tools.base import ToolSpec
from estate_bot.config import ProviderConfig
from estate_bot.errors import InvalidResponseFormat, ProviderAPIError, ProviderRequestFailed, RateLimitExceeded
from estate_bot.storage.usage_repo import UsageRepository

_NO_FUNCTION_CALLING = ("gpt-3.5-turbo-instruct",)


def to_openai_messages(messages: list[ChatMessage], system: str = "") -> list[dict[str, Any]]:
    wire: list[dict[str, Any]] = []
    if system:
        wire.append({"role": "system", "content": system})
    for msg in messages:
        if msg.role == "tool":
            wire.append({"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content})
        elif msg.role == "assistant" and msg.tool_calls:
            wire.append(
                {
                    "role": "assistant",
                    "content": msg.content or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                        }
                        for call in msg.tool_calls
                    ],
                }
            )
        else:
            wire.append({"role": msg.role, "content": msg.content})
    return wire


class OpenAIProvider(ProviderAdapter):
    name = "openai"
    PRICING = {
        "gpt-3.5-turbo": (0.50, 1.50),
        "gpt-4": (30.00, 60.00),
        "gpt-4-turbo": (10.00, 30.00),
        "gpt-4o": (5.00, 15.00),
        "gpt-4o-mini": (0.15, 0.60),
    }
    DEFAULT_PRICING = (0.50, 1.50)

    def __init__(self, config: ProviderConfig, usage: Optional[UsageRepository] = None):
        super().__init__(config, usage)
        self._client: Optional[openai.AsyncOpenAI] = None

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                max_retries=self.config.max_retries,
            )
        return self._client

    def supports_function_calling(self, model: Optional[str] = None) -> bool:
        model = model or self.default_model
        return not model.startswith(_NO_FUNCTION_CALLING)

    async def _send(
        self, messages: list[ChatMessage], system: str, model: str, tools: list[ToolSpec]
    ) -> ProviderReply:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": to_openai_messages(messages, system),
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            kwargs["tools"] = [t.to_openai() for t in tools]
            kwargs["tool_choice"] = "auto"

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.RateLimitError as e:
            raise RateLimitExceeded(self.name, str(e)) from e
        except openai.APIStatusError as e:
            raise ProviderAPIError(self.name, e.status_code, str(e)) from e
        except openai.APIConnectionError as e:
            raise ProviderRequestFailed(self.name, str(e)) from e

        if not response.choices:
            raise InvalidResponseFormat(self.name, "Response has no choices")
        choice = response.choices[0]

        tool_calls = []
        for call in choice.message.tool_calls or []:
            try:
                arguments = json.loads(call.function.arguments or "{}")
            except json.JSONDecodeError as e:
                raise InvalidResponseFormat(self.name, f"Malformed tool arguments for {call.function.name}") from e
            tool_calls.append(ToolCallRequest(id=call.id, name=call.function.name, arguments=arguments))

        usage = response.usage
        return ProviderReply(
            text=choice.message.content or "",
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
            usage=TokenUsage(usage.prompt_tokens, usage.completion_tokens) if usage else TokenUsage(),
            model=response.model,
        )
