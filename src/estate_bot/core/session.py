"""Session manager mapping session keys to conversations, with one lock per conversation."""

from __future__ import annotations

import asyncio
import weakref

from estate_bot.log import get_logger
from estate_bot.storage.conversation_repo import ConversationRepository
from estate_bot.storage.models import ConversationRecord

logger = get_logger(__name__)


class SessionManager:
    """Resolves the active conversation for a session key and serializes turns per conversation."""

    def __init__(self, conversation_repo: ConversationRepository):
        self._repo = conversation_repo
        # A lock lives only while some turn holds or awaits it.
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()
        self._create_lock = asyncio.Lock()

    async def get_conversation(self, session_key: str) -> ConversationRecord:
        """Get or create the active conversation for a session key."""
        async with self._create_lock:
            conversation = await self._repo.get_active(session_key)
            if conversation is None:
                conversation = await self._repo.create(session_key)
            return conversation

    async def reset(self, session_key: str) -> ConversationRecord:
        """Close the active conversation (if any) and start a new one."""
        async with self._create_lock:
            current = await self._repo.get_active(session_key)
            if current is not None:
                await self._repo.close(current.id)  # type: ignore[arg-type]
            conversation = await self._repo.create(session_key)
        logger.info("session_reset", session_key=session_key, conversation_id=conversation.id)
        return conversation

    def lock(self, conversation_id: int) -> asyncio.Lock:
        """The mutual-exclusion lock guarding one conversation's read-modify-write turn."""
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    @property
    def repo(self) -> ConversationRepository:
        return self._repo
