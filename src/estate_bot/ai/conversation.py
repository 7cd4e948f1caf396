"""Convert stored conversation history into provider-neutral chat messages."""

from __future__ import annotations

from estate_bot.ai.providers.base import ChatMessage
from estate_bot.config import BotConfig
from estate_bot.core.types import Role
from estate_bot.storage.models import MessageRecord


def build_messages(history: list[MessageRecord]) -> list[ChatMessage]:
    """Turn stored user/assistant records into an alternating transcript.

    Leading assistant turns are dropped (every vendor wants the user to speak first) and
    consecutive records with the same role are merged, which happens when a turn was
    interrupted after the user message was stored.
    """
    messages: list[ChatMessage] = []
    for record in history:
        if record.role not in (Role.USER, Role.ASSISTANT) or not record.content:
            continue
        if not messages and record.role != Role.USER:
            continue
        if messages and messages[-1].role == record.role:
            messages[-1].content = f"{messages[-1].content}\n\n{record.content}"
            continue
        messages.append(ChatMessage(role=str(record.role), content=record.content))
    return messages


def build_system_prompt(bot: BotConfig) -> str:
    return f"{bot.system_prompt}\n\nYou are {bot.name}."
