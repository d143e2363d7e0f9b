"""Vector store capability interface and an in-process implementation.

The engine only needs a narrow surface (upsert, query, scroll, delete, count),
so any backend is wrapped in an adapter satisfying :class:`VectorStore`.
There is no filtered delete; the engine resolves ids first.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class AttributeFilter:
    """Conjunction of attribute equality and inequality predicates.

    Attributes:
        equals: Every key must be present with exactly this value.
        not_equals: No key may carry this value. A missing key counts as the
            empty string, so ``{"sessionId": ""}`` also excludes records
            written without the attribute.
    """

    equals: dict[str, str] = field(default_factory=dict)
    not_equals: dict[str, str] = field(default_factory=dict)

    def matches(self, attributes: dict[str, str]) -> bool:
        for key, value in self.equals.items():
            if attributes.get(key) != value:
                return False
        for key, value in self.not_equals.items():
            if attributes.get(key, "") == value:
                return False
        return True


@dataclass(frozen=True)
class VectorMatch:
    """One store hit. ``similarity`` is 0.0 for unranked enumeration."""

    id: str
    attributes: dict[str, str]
    similarity: float = 0.0


@runtime_checkable
class VectorStore(Protocol):
    """Protocol that all vector store adapters must satisfy.

    Every method raises :class:`StoreUnavailable` on backend failure.
    """

    @property
    def name(self) -> str:
        """Backend identifier (e.g. 'qdrant', 'memory')."""
        ...

    async def ping(self) -> None:
        """Validate connectivity and prepare the collection."""
        ...

    async def upsert(self, record_id: str, vector: list[float], attributes: dict[str, str]) -> None:
        ...

    async def query(
        self, vector: list[float], flt: AttributeFilter | None, top_k: int
    ) -> list[VectorMatch]:
        """Return up to *top_k* matches, most similar first."""
        ...

    async def scroll(self, flt: AttributeFilter | None, limit: int) -> list[VectorMatch]:
        """Enumerate up to *limit* records matching *flt*, unranked."""
        ...

    async def delete_by_ids(self, ids: list[str]) -> int:
        """Delete the given ids. Returns how many actually existed."""
        ...

    async def count(self, flt: AttributeFilter | None = None) -> int:
        ...


def cosine_similarity(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


@dataclass
class _Entry:
    vector: list[float]
    attributes: dict[str, str]


class InMemoryVectorStore:
    """Dict-backed store with exact cosine search.

    Used for local development (``VECTOR_BACKEND=memory``) and tests. Equal
    similarities keep insertion order.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "memory"

    def __len__(self) -> int:
        return len(self._entries)

    async def ping(self) -> None:
        return None

    async def upsert(self, record_id: str, vector: list[float], attributes: dict[str, str]) -> None:
        async with self._lock:
            self._entries[record_id] = _Entry(vector=list(vector), attributes=dict(attributes))

    async def query(
        self, vector: list[float], flt: AttributeFilter | None, top_k: int
    ) -> list[VectorMatch]:
        async with self._lock:
            scored = [
                VectorMatch(
                    id=record_id,
                    attributes=dict(entry.attributes),
                    similarity=max(0.0, min(1.0, cosine_similarity(vector, entry.vector))),
                )
                for record_id, entry in self._entries.items()
                if flt is None or flt.matches(entry.attributes)
            ]
        scored.sort(key=lambda m: m.similarity, reverse=True)
        return scored[:top_k]

    async def scroll(self, flt: AttributeFilter | None, limit: int) -> list[VectorMatch]:
        async with self._lock:
            matches = [
                VectorMatch(id=record_id, attributes=dict(entry.attributes))
                for record_id, entry in self._entries.items()
                if flt is None or flt.matches(entry.attributes)
            ]
        return matches[:limit]

    async def delete_by_ids(self, ids: list[str]) -> int:
        deleted = 0
        async with self._lock:
            for record_id in ids:
                if self._entries.pop(record_id, None) is not None:
                    deleted += 1
        return deleted

    async def count(self, flt: AttributeFilter | None = None) -> int:
        async with self._lock:
            if flt is None:
                return len(self._entries)
            return sum(1 for entry in self._entries.values() if flt.matches(entry.attributes))
