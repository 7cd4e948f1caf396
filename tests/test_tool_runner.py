"""Tests for the provider-agnostic tool loop."""

import json

import pytest

from estate_bot.ai.providers.base import ChatMessage
from estate_bot.ai.tool_runner import run_tool_loop
from estate_bot.ai.tools.executor import ToolExecutor
from estate_bot.ai.tools.registry import ToolRegistry
from estate_bot.errors import MaxIterationsReached

from conftest import FakeProvider, text_reply, tool_reply


@pytest.fixture
def executor(data_service, context):
    return ToolExecutor(data_service, context)


@pytest.fixture
def tools():
    return ToolRegistry().all_tools()


async def test_final_answer_without_tools(executor, tools):
    provider = FakeProvider(replies=[text_reply("Hi there")])
    messages = [ChatMessage.user("hello")]

    result = await run_tool_loop(provider, messages, tools, executor)

    assert result.text == "Hi there"
    assert result.tool_iterations == 1
    assert result.tool_calls_made == []
    assert result.tokens.total == 15
    assert messages[-1].role == "assistant"


async def test_search_then_answer(executor, tools, context):
    provider = FakeProvider(
        replies=[
            tool_reply(("search_properties", {"city": "Reading"})),
            text_reply("Found 2 homes in Reading."),
        ]
    )
    messages = [ChatMessage.user("homes in Reading")]

    result = await run_tool_loop(provider, messages, tools, executor, system="sys")

    assert result.text == "Found 2 homes in Reading."
    assert result.tool_iterations == 2
    assert result.tokens.total == 30
    assert [(c.name, c.success) for c in result.tool_calls_made] == [("search_properties", True)]

    roles = [m.role for m in messages]
    assert roles == ["user", "assistant", "tool", "assistant"]
    tool_message = messages[2]
    assert tool_message.tool_call_id == "call_0"
    assert json.loads(tool_message.content)["data"]["count"] == 2

    # the second request sees the tool result
    assert provider.calls[1]["messages"][2].role == "tool"
    assert provider.calls[0]["system"] == "sys"
    assert context.search_criteria == {"city": "Reading"}


async def test_max_iterations_raises_with_tokens(executor, tools):
    provider = FakeProvider(replies=[tool_reply(("get_market_stats", {"stat_type": "total_active"}))] * 5)

    with pytest.raises(MaxIterationsReached) as exc_info:
        await run_tool_loop(provider, [ChatMessage.user("stats")], tools, executor)

    assert exc_info.value.iterations == 5
    assert exc_info.value.tokens_used == 75
    assert exc_info.value.code == "max_iterations"


async def test_unknown_tool_fed_back_as_failure(executor, tools):
    provider = FakeProvider(replies=[tool_reply(("launch_rocket", {})), text_reply("Sorry, I can't do that.")])
    messages = [ChatMessage.user("launch")]

    result = await run_tool_loop(provider, messages, tools, executor)

    assert result.text == "Sorry, I can't do that."
    assert result.tool_calls_made[0].success is False
    payload = json.loads(messages[2].content)
    assert payload == {"success": False, "error": "Unknown tool: launch_rocket", "error_code": "unknown_tool"}


async def test_parallel_calls_in_one_round(executor, tools):
    provider = FakeProvider(
        replies=[
            tool_reply(
                ("get_market_stats", {"stat_type": "total_active", "city": "Salem"}),
                ("get_neighborhood_info", {"neighborhood": "Wakefield"}),
            ),
            text_reply("Here is the overview."),
        ]
    )
    messages = [ChatMessage.user("compare Salem and Wakefield")]

    result = await run_tool_loop(provider, messages, tools, executor)

    assert result.tool_iterations == 2
    assert [c.name for c in result.tool_calls_made] == ["get_market_stats", "get_neighborhood_info"]
    tool_messages = [m for m in messages if m.role == "tool"]
    assert [m.tool_call_id for m in tool_messages] == ["call_0", "call_1"]
    assert len(messages[1].tool_calls) == 2
