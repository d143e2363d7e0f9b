"""Session-scoped semantic memory: models, embeddings, vector stores and the engine."""

from research_memory.memory.engine import MEMORY_DISABLED, MEMORY_ERROR, MemoryEngine
from research_memory.memory.errors import (
    EmbeddingUnavailable,
    InvalidArgument,
    MemoryEngineError,
    NotInitialized,
    StoreUnavailable,
)
from research_memory.memory.models import MemoryKind, MemoryRecord, MemorySearchResult, MemoryStats
from research_memory.memory.vector_store import AttributeFilter, InMemoryVectorStore, VectorStore

__all__ = [
    "MEMORY_DISABLED",
    "MEMORY_ERROR",
    "AttributeFilter",
    "EmbeddingUnavailable",
    "InMemoryVectorStore",
    "InvalidArgument",
    "MemoryEngine",
    "MemoryEngineError",
    "MemoryKind",
    "MemoryRecord",
    "MemorySearchResult",
    "MemoryStats",
    "NotInitialized",
    "StoreUnavailable",
    "VectorStore",
]
