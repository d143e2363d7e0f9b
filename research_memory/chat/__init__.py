"""Chat sessions: persistence and transcript context."""

from research_memory.chat.history import ConversationHistory
from research_memory.chat.models import ChatMessage, ChatSession, ChatStats
from research_memory.chat.store import ChatStore

__all__ = [
    "ChatMessage",
    "ChatSession",
    "ChatStats",
    "ChatStore",
    "ConversationHistory",
]
