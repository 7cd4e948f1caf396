"""Iterative tool execution loop shared by every provider."""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from estate_bot.ai.providers.base import (
    ChatMessage,
    ProviderAdapter,
    ProviderResult,
    TokenUsage,
    ToolCallRecord,
    ToolCallRequest,
)
from estate_bot.ai.tools.base import ToolResult, ToolSpec
from estate_bot.ai.tools.executor import ToolExecutor
from estate_bot.errors import MaxIterationsReached
from estate_bot.log import get_logger

logger = get_logger(__name__)

MAX_ITERATIONS = 5


async def run_tool_loop(
    provider: ProviderAdapter,
    messages: list[ChatMessage],
    tools: list[ToolSpec],
    executor: ToolExecutor,
    system: str = "",
    model: Optional[str] = None,
    timeout: Optional[float] = None,
    max_iterations: int = MAX_ITERATIONS,
) -> ProviderResult:
    """Run request/tool rounds until the provider answers without tool calls.

    ``messages`` is extended in place with assistant tool-call turns and tool results. Token
    usage accumulates across every round trip. Raises MaxIterationsReached at the bound.
    """
    start = time.monotonic()
    tokens = TokenUsage()
    calls_made: list[ToolCallRecord] = []
    model = model or provider.default_model

    for iteration in range(1, max_iterations + 1):
        reply = await provider.complete(messages, system=system, model=model, tools=tools, timeout=timeout)
        tokens.add(reply.usage)

        if not reply.tool_calls:
            logger.info(
                "tool_loop_done",
                provider=provider.name,
                iterations=iteration,
                tool_calls=len(calls_made),
                total_tokens=tokens.total,
            )
            messages.append(ChatMessage.assistant(reply.text))
            return ProviderResult(
                text=reply.text,
                provider=provider.name,
                model=reply.model or model,
                tokens=tokens,
                finish_reason=reply.finish_reason,
                response_time_ms=int((time.monotonic() - start) * 1000),
                tool_calls_made=calls_made,
                tool_iterations=iteration,
            )

        messages.append(ChatMessage.assistant(reply.text, reply.tool_calls))

        async def _execute_one(call: ToolCallRequest) -> tuple[ToolCallRequest, ToolResult]:
            return call, await executor.execute(call.name, call.arguments)

        results = await asyncio.gather(*(_execute_one(c) for c in reply.tool_calls))

        for call, result in results:
            messages.append(ChatMessage.tool_result(call, result.to_json()))
            calls_made.append(ToolCallRecord(name=call.name, arguments=call.arguments, success=result.success))
            logger.debug("tool_result", tool_name=call.name, success=result.success, iteration=iteration)

    logger.warning("tool_loop_max_iterations", provider=provider.name, iterations=max_iterations)
    raise MaxIterationsReached(provider.name, max_iterations, tokens.total)
