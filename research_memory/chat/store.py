"""ChatStore: aiosqlite CRUD for chat sessions and their messages."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import aiosqlite

from research_memory.chat.models import ChatMessage, ChatSession, ChatStats
from research_memory.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_SESSIONS = """
CREATE TABLE IF NOT EXISTS chat_sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

_CREATE_MESSAGES = """
CREATE TABLE IF NOT EXISTS chat_messages (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TEXT NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}'
)
"""

_CREATE_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_sessions_user ON chat_sessions (user_id, updated_at)",
    "CREATE INDEX IF NOT EXISTS idx_messages_session ON chat_messages (session_id)",
)

_SESSION_COLUMNS = "id, user_id, title, created_at, updated_at"
_MESSAGE_COLUMNS = "id, session_id, role, content, created_at, metadata"


class ChatStore:
    """Persists chat sessions in SQLite.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            await db.execute(_CREATE_SESSIONS)
            await db.execute(_CREATE_MESSAGES)
            for statement in _CREATE_INDEXES:
                await db.execute(statement)
            await db.commit()
            self._initialised = True
        return db

    # -- Sessions --------------------------------------------------------------

    async def create_session(self, user_id: str, title: str | None = None) -> ChatSession:
        """Insert a new, empty session."""
        session = ChatSession(user_id=user_id, title=title or "")
        db = await self._connect()
        try:
            await db.execute(
                f"INSERT INTO chat_sessions ({_SESSION_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                session.to_row(),
            )
            await db.commit()
            logger.info("Created chat session: %s", session.id)
            return session
        finally:
            await db.close()

    async def get_session(self, session_id: str) -> ChatSession | None:
        """Fetch a session with all its messages, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_SESSION_COLUMNS} FROM chat_sessions WHERE id = ?", (session_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            session = ChatSession.from_row(row)
            cursor = await db.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM chat_messages "
                "WHERE session_id = ? ORDER BY rowid",
                (session_id,),
            )
            session.messages = [ChatMessage.from_row(r) for r in await cursor.fetchall()]
            return session
        finally:
            await db.close()

    async def list_user_sessions(self, user_id: str, limit: int = 10) -> list[ChatSession]:
        """Return a user's sessions, most recently updated first (without messages)."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_SESSION_COLUMNS} FROM chat_sessions WHERE user_id = ? "
                "ORDER BY updated_at DESC, rowid DESC LIMIT ?",
                (user_id, limit),
            )
            return [ChatSession.from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    async def search_sessions(self, user_id: str, text: str, limit: int = 5) -> list[ChatSession]:
        """Find a user's sessions with a message containing *text* (case-insensitive)."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT DISTINCT s.id, s.user_id, s.title, s.created_at, s.updated_at "
                "FROM chat_sessions s JOIN chat_messages m ON m.session_id = s.id "
                "WHERE s.user_id = ? AND instr(lower(m.content), lower(?)) > 0 "
                "ORDER BY s.updated_at DESC LIMIT ?",
                (user_id, text, limit),
            )
            return [ChatSession.from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    async def update_title(self, session_id: str, title: str) -> bool:
        """Rename a session. Returns True if a row was updated."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE chat_sessions SET title = ?, updated_at = ? WHERE id = ?",
                (title, datetime.now(UTC).isoformat(), session_id),
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and its messages. Returns True if the session existed."""
        db = await self._connect()
        try:
            await db.execute("DELETE FROM chat_messages WHERE session_id = ?", (session_id,))
            cursor = await db.execute("DELETE FROM chat_sessions WHERE id = ?", (session_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
            if deleted:
                logger.info("Deleted chat session: %s", session_id)
            return deleted
        finally:
            await db.close()

    # -- Messages --------------------------------------------------------------

    async def add_message(
        self,
        session_id: str,
        role: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> ChatMessage | None:
        """Append a message and bump the session's ``updated_at``.

        Returns None (and writes nothing) when the session does not exist.
        """
        message = ChatMessage(
            session_id=session_id, role=role, content=content, metadata=metadata or {}
        )
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE chat_sessions SET updated_at = ? WHERE id = ?",
                (message.created_at, session_id),
            )
            if cursor.rowcount == 0:
                logger.warning("Message dropped: unknown chat session %s", session_id)
                return None
            await db.execute(
                f"INSERT INTO chat_messages ({_MESSAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                message.to_row(),
            )
            await db.commit()
            return message
        finally:
            await db.close()

    async def get_messages(self, session_id: str, limit: int | None = None) -> list[ChatMessage]:
        """Return a session's messages oldest first; with *limit*, only the last N."""
        db = await self._connect()
        try:
            if limit is None:
                cursor = await db.execute(
                    f"SELECT {_MESSAGE_COLUMNS} FROM chat_messages "
                    "WHERE session_id = ? ORDER BY rowid",
                    (session_id,),
                )
                return [ChatMessage.from_row(r) for r in await cursor.fetchall()]

            cursor = await db.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM chat_messages "
                "WHERE session_id = ? ORDER BY rowid DESC LIMIT ?",
                (session_id, limit),
            )
            rows = await cursor.fetchall()
            return [ChatMessage.from_row(r) for r in reversed(rows)]
        finally:
            await db.close()

    # -- Stats -----------------------------------------------------------------

    async def get_stats(self, user_id: str) -> ChatStats:
        """Session/message totals for a user, plus sessions active in the last 7 days."""
        week_ago = (datetime.now(UTC) - timedelta(days=7)).isoformat()
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM chat_sessions WHERE user_id = ?", (user_id,)
            )
            sessions = (await cursor.fetchone())[0]
            cursor = await db.execute(
                "SELECT COUNT(*) FROM chat_messages m "
                "JOIN chat_sessions s ON m.session_id = s.id WHERE s.user_id = ?",
                (user_id,),
            )
            messages = (await cursor.fetchone())[0]
            cursor = await db.execute(
                "SELECT COUNT(*) FROM chat_sessions WHERE user_id = ? AND updated_at >= ?",
                (user_id, week_ago),
            )
            recent = (await cursor.fetchone())[0]
        finally:
            await db.close()

        return ChatStats(
            total_sessions=sessions,
            total_messages=messages,
            average_messages_per_session=round(messages / sessions) if sessions else 0,
            recent_sessions=recent,
        )
