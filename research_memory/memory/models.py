"""Data models for stored memories and search results."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

SOURCES_DELIMITER = "|"
NO_SESSION = ""


class MemoryKind(str, Enum):
    """Provenance tag for a stored interaction."""

    CONVERSATION = "conversation"
    WEB_SEARCH = "web_search"
    DOCUMENT = "document"
    SUMMARY = "summary"

    @classmethod
    def parse(cls, value: str | None) -> MemoryKind:
        try:
            return cls(value)
        except ValueError:
            return cls.CONVERSATION


def _now() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: str | None) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is present.

    Unparsable or missing values map to the Unix epoch so the record simply
    scores zero recency.
    """
    if not value:
        return datetime.fromtimestamp(0, UTC)
    try:
        ts = datetime.fromisoformat(value)
    except ValueError:
        return datetime.fromtimestamp(0, UTC)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


class MemoryRecord(BaseModel):
    """One stored user/assistant interaction.

    Records are immutable once written; there is no update operation.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    user_id: str
    session_id: str | None = None
    query: str = ""
    response: str = ""
    sources: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_now)
    kind: MemoryKind = MemoryKind.CONVERSATION
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @property
    def is_orphaned(self) -> bool:
        """True for legacy records written without a session scope."""
        return not self.session_id

    # -- Storage boundary ------------------------------------------------------

    def to_attributes(self) -> dict[str, str]:
        """Serialize to the flat string attributes kept by the vector store."""
        return {
            "content": self.content,
            "userId": self.user_id,
            "sessionId": self.session_id or NO_SESSION,
            "query": self.query,
            "response": self.response,
            "sources": SOURCES_DELIMITER.join(self.sources),
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "confidence": "" if self.confidence is None else str(self.confidence),
        }

    @classmethod
    def from_attributes(cls, record_id: str, attributes: dict[str, str]) -> MemoryRecord:
        """Rebuild a record from vector store attributes.

        Missing attributes fall back to defaults so that partially written or
        legacy entries can still be listed and deleted.
        """
        return cls(**_fields_from_attributes(record_id, attributes))


def _fields_from_attributes(record_id: str, attributes: dict[str, str]) -> dict:
    raw_sources = attributes.get("sources") or ""
    raw_confidence = attributes.get("confidence") or ""
    try:
        confidence = float(raw_confidence) if raw_confidence else None
    except ValueError:
        confidence = None
    if confidence is not None and not 0.0 <= confidence <= 1.0:
        confidence = None

    return {
        "id": record_id,
        "content": attributes.get("content") or "",
        "user_id": attributes.get("userId") or "",
        "session_id": attributes.get("sessionId") or None,
        "query": attributes.get("query") or "",
        "response": attributes.get("response") or "",
        "sources": [s for s in raw_sources.split(SOURCES_DELIMITER) if s],
        "timestamp": parse_timestamp(attributes.get("timestamp")),
        "kind": MemoryKind.parse(attributes.get("kind")),
        "confidence": confidence,
    }


class MemorySearchResult(MemoryRecord):
    """A memory record scored against a query.

    ``similarity`` comes from the vector store; ``score`` is the combined
    similarity/recency ranking score computed at query time and never persisted.
    """

    similarity: float = Field(ge=0.0, le=1.0)
    score: float = 0.0

    @classmethod
    def from_match(
        cls,
        record_id: str,
        attributes: dict[str, str],
        similarity: float,
        score: float = 0.0,
    ) -> MemorySearchResult:
        fields = _fields_from_attributes(record_id, attributes)
        return cls(**fields, similarity=similarity, score=score)


class MemoryStats(BaseModel):
    """Memory counts, optionally scoped to a single user."""

    total: int
    by_kind: dict[str, int]
    approximate: bool = False
