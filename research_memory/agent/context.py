"""Prompt context assembly around the memory engine.

Downstream prompt builders rely on the ordering of the rendered context:
recent transcript first, similarity-ranked memories second.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from research_memory.chat.history import ConversationHistory
from research_memory.chat.store import ChatStore
from research_memory.config import settings
from research_memory.memory.engine import MemoryEngine
from research_memory.memory.models import MemoryKind, MemorySearchResult

logger = logging.getLogger(__name__)

RESPONSE_PREVIEW_CHARS = 200


def _preview(text: str, limit: int = RESPONSE_PREVIEW_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def format_memories(memories: list[MemorySearchResult]) -> str:
    """Render ranked memories for injection into the prompt."""
    if not memories:
        return ""

    lines = ["RELEVANT PAST CONVERSATIONS:"]
    for index, memory in enumerate(memories, start=1):
        lines.append(
            f"{index}. [{memory.timestamp.strftime('%Y-%m-%d %H:%M')}, "
            f"similarity {memory.similarity:.2f}] Q: {memory.query or memory.content}\n"
            f"   A: {_preview(memory.response)}"
        )
    return "\n".join(lines)


@dataclass
class PromptContext:
    """Transcript and memory context gathered for one query."""

    history: str = ""
    memories: list[MemorySearchResult] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.history and not self.memories

    def render(self) -> str:
        parts = [self.history, format_memories(self.memories)]
        return "\n\n".join(p for p in parts if p)


class MemoryContext:
    """Fuses conversation history with ranked memories and records exchanges."""

    def __init__(
        self,
        engine: MemoryEngine,
        history: ConversationHistory,
        chat_store: ChatStore | None = None,
        memory_limit: int = 5,
        timeout: float | None = None,
    ) -> None:
        self._engine = engine
        self._history = history
        self._chat_store = chat_store
        self._memory_limit = memory_limit
        self._timeout = timeout if timeout is not None else settings.context_timeout_seconds

    async def _history_text(self, session_id: str | None) -> str:
        if not session_id:
            return ""
        try:
            return await asyncio.wait_for(self._history.get_context(session_id), self._timeout)
        except TimeoutError:
            logger.warning("Conversation history timed out for session %s", session_id)
            return ""

    async def _memories(
        self, query: str, user_id: str, session_id: str | None
    ) -> list[MemorySearchResult]:
        if not self._engine.is_ready():
            return []
        try:
            return await asyncio.wait_for(
                self._engine.search(query, user_id, self._memory_limit, session_id),
                self._timeout,
            )
        except TimeoutError:
            logger.warning("Memory search timed out for user %s", user_id)
            return []

    async def build(self, query: str, user_id: str, session_id: str | None = None) -> PromptContext:
        """Gather transcript and memories concurrently, each under the timeout."""
        history, memories = await asyncio.gather(
            self._history_text(session_id),
            self._memories(query, user_id, session_id),
        )
        return PromptContext(history=history, memories=memories)

    async def record_exchange(
        self,
        query: str,
        response: str,
        user_id: str,
        session_id: str | None = None,
        sources: Sequence[str] = (),
        kind: MemoryKind = MemoryKind.CONVERSATION,
        confidence: float | None = None,
    ) -> str:
        """Persist both turns to the transcript and store the exchange as a memory.

        Never raises for backend trouble; returns the engine's id or sentinel.
        """
        if self._chat_store is not None and session_id:
            try:
                await self._chat_store.add_message(session_id, "user", query)
                await self._chat_store.add_message(
                    session_id,
                    "assistant",
                    response,
                    metadata={"sources": list(sources), "confidence": confidence},
                )
            except Exception:
                logger.exception("Failed to append exchange to session %s", session_id)

        return await self._engine.store(
            query,
            user_id,
            session_id=session_id,
            query=query,
            response=response,
            sources=sources,
            kind=kind,
            confidence=confidence,
        )

    async def delete_session(self, session_id: str) -> bool:
        """Delete a chat session, then its memories.

        Returns whether the session existed. Memory cleanup failures are
        logged and do not fail the deletion.
        """
        if self._chat_store is None:
            raise RuntimeError("MemoryContext has no chat store")

        deleted = await self._chat_store.delete_session(session_id)
        if deleted and self._engine.is_ready():
            try:
                await self._engine.delete_session_memories(session_id)
            except Exception:
                logger.exception("Failed to delete memories for session %s", session_id)
        return deleted
