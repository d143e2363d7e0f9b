"""Chat session and message data models."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class ChatMessage:
    """A single conversation turn.

    Attributes:
        id: Unique identifier (``msg_<hex>``).
        session_id: Owning chat session.
        role: ``"user"`` or ``"assistant"``.
        content: Message text.
        created_at: ISO 8601 timestamp.
        metadata: Free-form extras (sources, confidence, search_used, ...).
    """

    session_id: str
    role: str
    content: str
    id: str = field(default_factory=lambda: f"msg_{uuid.uuid4().hex}")
    created_at: str = field(default_factory=_now_iso)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def timestamp(self) -> datetime:
        ts = datetime.fromisoformat(self.created_at)
        return ts if ts.tzinfo else ts.replace(tzinfo=UTC)

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``chat_messages`` column order."""
        return (
            self.id,
            self.session_id,
            self.role,
            self.content,
            self.created_at,
            json.dumps(self.metadata),
        )

    @classmethod
    def from_row(cls, row: tuple) -> ChatMessage:
        return cls(
            id=row[0],
            session_id=row[1],
            role=row[2],
            content=row[3],
            created_at=row[4],
            metadata=json.loads(row[5]) if row[5] else {},
        )


@dataclass
class ChatSession:
    """A conversation owned by one user. ``messages`` are oldest first."""

    user_id: str
    title: str = ""
    id: str = field(default_factory=lambda: f"chat_{uuid.uuid4().hex}")
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = ""
    messages: list[ChatMessage] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.title:
            self.title = f"Chat {datetime.now(UTC).strftime('%Y-%m-%d')}"
        if not self.updated_at:
            self.updated_at = self.created_at

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``chat_sessions`` column order."""
        return (self.id, self.user_id, self.title, self.created_at, self.updated_at)

    @classmethod
    def from_row(cls, row: tuple) -> ChatSession:
        return cls(
            id=row[0],
            user_id=row[1],
            title=row[2],
            created_at=row[3],
            updated_at=row[4],
        )


@dataclass
class ChatStats:
    """Per-user session and message counts."""

    total_sessions: int
    total_messages: int
    average_messages_per_session: int
    recent_sessions: int
