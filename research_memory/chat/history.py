"""Conversation history rendered as LLM context.

No ranking here: the context is always the tail window of the session. Any
failure yields an empty string so history can never block a response.
"""

from __future__ import annotations

import logging

from research_memory.chat.models import ChatMessage
from research_memory.chat.store import ChatStore
from research_memory.config import settings

logger = logging.getLogger(__name__)

HISTORY_INSTRUCTION = (
    "IMPORTANT: Use this conversation history to understand the context. "
    'If the user asks follow-up questions using words like "its", "this", "that", '
    '"they", "them", "those", "it", refer to the previous conversation to understand '
    "what they're referring to. Pay special attention to the most recent exchanges "
    "for context."
)


def format_messages(messages: list[ChatMessage]) -> str:
    """Number messages from 1 as ``"{i}. {Role} ({HH:MM:SS}): {content}"``."""
    lines = []
    for index, message in enumerate(messages, start=1):
        role = "User" if message.role == "user" else "Assistant"
        time_text = message.timestamp.strftime("%H:%M:%S")
        lines.append(f"{index}. {role} ({time_text}): {message.content}")
    return "\n\n".join(lines)


class ConversationHistory:
    """Reads the recent transcript of a session from the chat store."""

    def __init__(self, chat_store: ChatStore, window: int | None = None) -> None:
        self._chat_store = chat_store
        self._window = window if window is not None else settings.conversation_window_size

    async def _load(self, session_id: str, count: int) -> list[ChatMessage]:
        if not session_id:
            return []
        try:
            return await self._chat_store.get_messages(session_id, limit=count)
        except Exception:
            logger.exception("Failed to load conversation history for %s", session_id)
            return []

    async def get_context(self, session_id: str) -> str:
        """Last N messages wrapped with the follow-up resolution instruction."""
        messages = await self._load(session_id, self._window)
        if not messages:
            return ""
        return f"CONVERSATION HISTORY:\n{format_messages(messages)}\n\n{HISTORY_INSTRUCTION}"

    async def get_recent_context(self, session_id: str, count: int = 3) -> str:
        """The last *count* messages, formatted without the wrapper."""
        return format_messages(await self._load(session_id, count))

    async def has_history(self, session_id: str) -> bool:
        return bool(await self._load(session_id, 1))
