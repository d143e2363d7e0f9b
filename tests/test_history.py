"""Tests for conversation history context."""

from unittest.mock import AsyncMock

from research_memory.chat.history import (
    HISTORY_INSTRUCTION,
    ConversationHistory,
    format_messages,
)
from research_memory.chat.models import ChatMessage
from research_memory.chat.store import ChatStore


def test_format_messages() -> None:
    messages = [
        ChatMessage("chat_1", "user", "What is solar power?", created_at="2026-01-15T09:00:05+00:00"),
        ChatMessage("chat_1", "assistant", "Energy from sunlight.", created_at="2026-01-15T09:00:09+00:00"),
    ]
    assert format_messages(messages) == (
        "1. User (09:00:05): What is solar power?\n\n"
        "2. Assistant (09:00:09): Energy from sunlight."
    )


def test_format_messages_empty() -> None:
    assert format_messages([]) == ""


async def test_get_context_wraps_transcript(chat_store: ChatStore) -> None:
    session = await chat_store.create_session("u1")
    await chat_store.add_message(session.id, "user", "What is solar power?")
    await chat_store.add_message(session.id, "assistant", "Energy from sunlight.")

    context = await ConversationHistory(chat_store).get_context(session.id)
    assert context.startswith("CONVERSATION HISTORY:\n1. User (")
    assert "2. Assistant (" in context
    assert context.endswith(f"\n\n{HISTORY_INSTRUCTION}")


async def test_get_context_uses_window(chat_store: ChatStore) -> None:
    session = await chat_store.create_session("u1")
    for i in range(6):
        await chat_store.add_message(session.id, "user", f"message {i}")

    context = await ConversationHistory(chat_store, window=2).get_context(session.id)
    assert "message 3" not in context
    assert "1. User" in context and "message 4" in context
    assert "2. User" in context and "message 5" in context


async def test_get_context_empty_session(chat_store: ChatStore) -> None:
    session = await chat_store.create_session("u1")
    history = ConversationHistory(chat_store)
    assert await history.get_context(session.id) == ""
    assert await history.get_context("") == ""
    assert await history.has_history(session.id) is False


async def test_get_context_swallows_store_errors() -> None:
    store = AsyncMock(spec=ChatStore)
    store.get_messages.side_effect = RuntimeError("database is locked")
    history = ConversationHistory(store)
    assert await history.get_context("chat_1") == ""
    assert await history.has_history("chat_1") is False


async def test_get_recent_context(chat_store: ChatStore) -> None:
    session = await chat_store.create_session("u1")
    for i in range(5):
        await chat_store.add_message(session.id, "user", f"message {i}")

    history = ConversationHistory(chat_store)
    recent = await history.get_recent_context(session.id)
    assert "CONVERSATION HISTORY" not in recent
    assert recent.count("User (") == 3
    assert "message 2" in recent and "message 1" not in recent
    assert await history.has_history(session.id) is True


async def test_zero_window_yields_no_history(chat_store: ChatStore) -> None:
    session = await chat_store.create_session("u1")
    await chat_store.add_message(session.id, "user", "hello")

    assert await ConversationHistory(chat_store, window=0).get_context(session.id) == ""
