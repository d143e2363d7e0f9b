"""Shared test fixtures."""

import math
from datetime import UTC, datetime
from pathlib import Path

import pytest

from research_memory.chat.store import ChatStore
from research_memory.memory.engine import MemoryEngine
from research_memory.memory.vector_store import InMemoryVectorStore

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)


class Clock:
    """Settable clock injected into the engine."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class StubEmbedder:
    """Maps known texts to fixed 2-d vectors; unknown text is orthogonal to ``[1, 0]``.

    A query embedded as ``[1, 0]`` therefore scores exactly ``x`` against a
    record embedded as ``[x, sqrt(1 - x^2)]``.
    """

    dimension = 2

    def __init__(self) -> None:
        self.vectors: dict[str, list[float]] = {}

    def at(self, text: str, similarity: float) -> None:
        self.vectors[text] = [similarity, math.sqrt(max(0.0, 1.0 - similarity**2))]

    async def embed(self, text: str) -> list[float]:
        return list(self.vectors.get(text, [0.0, 1.0]))


@pytest.fixture
def clock() -> Clock:
    return Clock(NOW)


@pytest.fixture
def embedder() -> StubEmbedder:
    """Stub embedder with the query ``"q"`` pinned to ``[1, 0]``."""
    stub = StubEmbedder()
    stub.vectors["q"] = [1.0, 0.0]
    return stub


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
async def engine(vector_store, embedder, clock) -> MemoryEngine:
    """A ready engine over the in-memory store."""
    e = MemoryEngine(store=vector_store, embedder=embedder, clock=clock)
    await e.initialize()
    return e


@pytest.fixture
def chat_store(tmp_path: Path) -> ChatStore:
    """Create a ChatStore backed by a temp database."""
    return ChatStore(db_path=tmp_path / "test.db")
