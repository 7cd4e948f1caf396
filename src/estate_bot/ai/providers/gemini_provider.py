"""Google Gemini adapter (google-genai SDK)."""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from estate_bot.ai.providers.base import ChatMessage, ProviderAdapter, ProviderReply, TokenUsage, ToolCallRequest
from estate_bot.ai.tools.base import ToolSpec
from estate_bot.config import ProviderConfig
from estate_bot.errors import InvalidResponseFormat, ProviderAPIError, ProviderRequestFailed, RateLimitExceeded
from estate_bot.storage.usage_repo import UsageRepository


def _tool_payload(content: str) -> dict[str, Any]:
    try:
        decoded = json.loads(content)
    except json.JSONDecodeError:
        return {"result": content}
    return decoded if isinstance(decoded, dict) else {"result": decoded}


def to_gemini_contents(messages: list[ChatMessage]) -> list[types.Content]:
    """Gemini has user/model roles; function responses travel in a user turn."""
    contents: list[types.Content] = []
    for msg in messages:
        if msg.role == "tool":
            part = types.Part(
                function_response=types.FunctionResponse(name=msg.name, response=_tool_payload(msg.content))
            )
            last = contents[-1] if contents else None
            if last and last.role == "user" and last.parts and last.parts[0].function_response:
                last.parts.append(part)
            else:
                contents.append(types.Content(role="user", parts=[part]))
        elif msg.role == "assistant":
            parts = [types.Part(text=msg.content)] if msg.content else []
            parts.extend(
                types.Part(function_call=types.FunctionCall(name=call.name, args=call.arguments))
                for call in msg.tool_calls
            )
            contents.append(types.Content(role="model", parts=parts))
        else:
            contents.append(types.Content(role="user", parts=[types.Part(text=msg.content)]))
    return contents


class GeminiProvider(ProviderAdapter):
    name = "gemini"
    PRICING = {
        "gemini-pro": (0.50, 1.50),
        "gemini-1.5-pro": (3.50, 10.50),
        "gemini-1.5-flash": (0.075, 0.30),
        "gemini-ultra": (10.00, 30.00),
    }
    DEFAULT_PRICING = (0.075, 0.30)

    def __init__(self, config: ProviderConfig, usage: Optional[UsageRepository] = None):
        super().__init__(config, usage)
        self._client: Optional[genai.Client] = None

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.config.api_key)
        return self._client

    def supports_function_calling(self, model: Optional[str] = None) -> bool:
        model = model or self.default_model
        return "gemini-1.5" in model or "gemini-pro" in model or "gemini-2" in model

    def _config(self, system: str, tools: list[ToolSpec]) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(
            temperature=self.config.temperature,
            max_output_tokens=self.config.max_tokens,
        )
        if system:
            config.system_instruction = system
        if tools:
            config.tools = [
                types.Tool(function_declarations=[types.FunctionDeclaration(**t.to_gemini()) for t in tools])
            ]
            config.automatic_function_calling = types.AutomaticFunctionCallingConfig(disable=True)
        return config

    async def _send(
        self, messages: list[ChatMessage], system: str, model: str, tools: list[ToolSpec]
    ) -> ProviderReply:
        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=to_gemini_contents(messages),
                config=self._config(system, tools),
            )
        except genai_errors.APIError as e:
            if e.code == 429:
                raise RateLimitExceeded(self.name, str(e)) from e
            raise ProviderAPIError(self.name, e.code, str(e)) from e
        except httpx.HTTPError as e:
            raise ProviderRequestFailed(self.name, str(e)) from e

        if not response.candidates:
            raise InvalidResponseFormat(self.name, "Response has no candidates")
        candidate = response.candidates[0]

        text_parts, tool_calls = [], []
        for index, part in enumerate(candidate.content.parts if candidate.content else []):
            if part.function_call:
                call = part.function_call
                tool_calls.append(
                    ToolCallRequest(id=call.id or f"call_{index}", name=call.name, arguments=dict(call.args or {}))
                )
            elif part.text:
                text_parts.append(part.text)

        meta = response.usage_metadata
        usage = TokenUsage(
            (meta.prompt_token_count or 0) if meta else 0,
            (meta.candidates_token_count or 0) if meta else 0,
        )
        finish = candidate.finish_reason
        return ProviderReply(
            text="".join(text_parts),
            tool_calls=tool_calls,
            finish_reason=str(finish.value if hasattr(finish, "value") else finish) if finish else None,
            usage=usage,
            model=model,
        )
