"""Session-scoped semantic memory engine.

Stores every exchange as an embedded record in the vector store and answers
"which past exchanges matter for this query, in this conversation?".

Two failure policies apply:

- Hot path (``store``, ``search``): never raise for backend trouble. A broken
  memory subsystem degrades the assistant to "no memory context".
- Explicit management (``get_user_memories``, ``delete_*``, ``get_stats``):
  raise :class:`NotInitialized` / :class:`StoreUnavailable` so the caller can
  report the failure.

Construct one engine at startup and share it; it keeps no per-request state.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from research_memory.config import Settings
from research_memory.memory.embedding import Embedder, create_embedder
from research_memory.memory.errors import InvalidArgument, NotInitialized, StoreUnavailable
from research_memory.memory.models import (
    MemoryKind,
    MemoryRecord,
    MemorySearchResult,
    MemoryStats,
)
from research_memory.memory.ranking import RankingPolicy, build_search_filter, rank
from research_memory.memory.vector_store import AttributeFilter, InMemoryVectorStore, VectorStore

logger = logging.getLogger(__name__)

MEMORY_DISABLED = "memory_disabled"
MEMORY_ERROR = "memory_error"

# Fallback breakdown when per-kind counts are unavailable. An approximation
# only, flagged as such on the returned stats.
KIND_RATIOS = {
    MemoryKind.CONVERSATION: 0.6,
    MemoryKind.WEB_SEARCH: 0.3,
    MemoryKind.DOCUMENT: 0.1,
    MemoryKind.SUMMARY: 0.0,
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _require_user(user_id: str) -> None:
    if not user_id or not user_id.strip():
        raise InvalidArgument("user_id is required")


class MemoryEngine:
    """Store/search/delete/stats policy over a :class:`VectorStore`."""

    def __init__(
        self,
        store: VectorStore | None,
        embedder: Embedder,
        policy: RankingPolicy | None = None,
        page_size: int = 1000,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._policy = policy or RankingPolicy()
        self._page_size = page_size
        self._clock = clock
        self._ready = False
        self._init_task: asyncio.Task[bool] | None = None

    @classmethod
    def from_settings(cls, config: Settings) -> MemoryEngine:
        """Build an engine for the configured vector backend.

        A qdrant backend without ``QDRANT_URL`` yields an engine with no store,
        which never becomes ready.
        """
        store: VectorStore | None = None
        if config.vector_backend == "memory":
            store = InMemoryVectorStore()
            logger.info("Memory engine: in-process vector store")
        elif config.memory_configured:
            from research_memory.memory.qdrant_store import QdrantVectorStore

            store = QdrantVectorStore(
                collection=config.memory_collection,
                dimension=config.embedding_dimension,
                url=config.qdrant_url,
                api_key=config.qdrant_api_key,
            )
            logger.info("Memory engine: Qdrant at %s", config.qdrant_url)
        else:
            logger.warning("Memory engine disabled; set QDRANT_URL to enable")

        policy = RankingPolicy(
            similarity_threshold=config.memory_similarity_threshold,
            similarity_weight=config.memory_similarity_weight,
            recency_weight=config.memory_recency_weight,
            recency_window=timedelta(hours=config.memory_recency_window_hours),
            min_candidates=config.memory_min_candidates,
        )
        return cls(
            store=store,
            embedder=create_embedder(config),
            policy=policy,
            page_size=config.memory_page_size,
        )

    # -- Lifecycle -------------------------------------------------------------

    async def initialize(self) -> bool:
        """Connect to the store once. Later and concurrent calls share the attempt."""
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        return await asyncio.shield(self._init_task)

    async def _initialize(self) -> bool:
        if self._store is None:
            return False
        try:
            await self._store.ping()
        except Exception:
            logger.exception("Failed to initialize memory store (memory disabled)")
            return False
        self._ready = True
        logger.info("Memory engine ready (%s)", self._store.name)
        return True

    def is_ready(self) -> bool:
        return self._ready

    def status(self) -> dict[str, Any]:
        return {
            "ready": self._ready,
            "backend": self._store.name if self._store is not None else None,
            "collection": getattr(self._store, "collection", None),
            "embedding_dimension": self._embedder.dimension,
        }

    def _require_ready(self) -> VectorStore:
        if not self._ready or self._store is None:
            raise NotInitialized("Memory engine is not initialized")
        return self._store

    # -- Write -----------------------------------------------------------------

    async def store(
        self,
        content: str,
        user_id: str,
        *,
        session_id: str | None = None,
        query: str = "",
        response: str = "",
        sources: Sequence[str] = (),
        kind: MemoryKind = MemoryKind.CONVERSATION,
        confidence: float | None = None,
    ) -> str:
        """Embed and persist one interaction.

        Returns:
            The new memory id, ``MEMORY_DISABLED`` when the engine is not
            ready, or ``MEMORY_ERROR`` when embedding or the store failed.
        """
        _require_user(user_id)
        if not self._ready or self._store is None:
            logger.warning("Memory engine not ready, skipping memory storage")
            return MEMORY_DISABLED

        try:
            record = MemoryRecord(
                id=str(uuid.uuid4()),
                content=content,
                user_id=user_id,
                session_id=session_id or None,
                query=query,
                response=response,
                sources=list(sources),
                timestamp=self._clock(),
                kind=kind,
                confidence=confidence,
            )
            vector = await self._embedder.embed(content)
            await self._store.upsert(record.id, vector, record.to_attributes())
        except Exception:
            logger.exception("Failed to store memory for user %s", user_id)
            return MEMORY_ERROR

        logger.info(
            "Stored memory %s [%s] session=%s", record.id, record.kind.value, session_id or "-"
        )
        return record.id

    # -- Read ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        user_id: str,
        limit: int = 10,
        session_id: str | None = None,
    ) -> list[MemorySearchResult]:
        """Return up to *limit* relevant memories, best first.

        Scoped to *session_id* when given, otherwise to any non-orphaned
        session of the user. Returns ``[]`` rather than raising when the
        engine is unavailable.
        """
        _require_user(user_id)
        if limit <= 0:
            raise InvalidArgument("limit must be positive")
        if not self._ready or self._store is None:
            return []

        try:
            vector = await self._embedder.embed(query)
            matches = await self._store.query(
                vector,
                build_search_filter(user_id, session_id),
                self._policy.candidate_count(limit),
            )
            results = rank(
                matches,
                user_id=user_id,
                session_id=session_id,
                limit=limit,
                now=self._clock(),
                policy=self._policy,
            )
        except Exception:
            logger.exception("Memory search failed for user %s", user_id)
            return []

        logger.debug(
            "Memory search: %d candidates, %d results (session=%s)",
            len(matches),
            len(results),
            session_id or "-",
        )
        return results

    async def get_user_memories(self, user_id: str) -> list[MemoryRecord]:
        """Enumerate a user's memories (all sessions, orphans included), newest first."""
        _require_user(user_id)
        store = self._require_ready()
        matches = await store.scroll(AttributeFilter(equals={"userId": user_id}), self._page_size)
        records = [MemoryRecord.from_attributes(m.id, m.attributes) for m in matches]
        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    # -- Delete ----------------------------------------------------------------

    async def delete_memory(self, memory_id: str) -> bool:
        """Delete one memory. Returns False when it does not exist."""
        store = self._require_ready()
        if not memory_id:
            return False
        deleted = await store.delete_by_ids([memory_id])
        if deleted:
            logger.info("Deleted memory: %s", memory_id)
        return deleted > 0

    async def delete_session_memories(self, session_id: str) -> int:
        """Delete every memory scoped to *session_id*. Returns the count."""
        if not session_id:
            raise InvalidArgument("session_id is required")
        self._require_ready()
        count = await self._delete_matching(AttributeFilter(equals={"sessionId": session_id}))
        logger.info("Deleted %d memories for session %s", count, session_id)
        return count

    async def delete_user_memories(self, user_id: str) -> int:
        """Delete every memory owned by *user_id*. Returns the count."""
        _require_user(user_id)
        self._require_ready()
        count = await self._delete_matching(AttributeFilter(equals={"userId": user_id}))
        logger.info("Deleted %d memories for user %s", count, user_id)
        return count

    async def _delete_matching(self, flt: AttributeFilter) -> int:
        """Enumerate-then-delete in pages until nothing matches."""
        store = self._require_ready()
        total = 0
        while True:
            page = await store.scroll(flt, self._page_size)
            if not page:
                break
            deleted = await store.delete_by_ids([m.id for m in page])
            total += deleted
            if deleted == 0 or len(page) < self._page_size:
                break
        return total

    # -- Stats -----------------------------------------------------------------

    async def get_stats(self, user_id: str | None = None) -> MemoryStats:
        """Count memories globally or for one user, broken down by kind."""
        store = self._require_ready()
        scope = {"userId": user_id} if user_id else {}
        total = await store.count(AttributeFilter(equals=scope) if scope else None)

        try:
            by_kind = {
                kind.value: await store.count(
                    AttributeFilter(equals={**scope, "kind": kind.value})
                )
                for kind in MemoryKind
            }
        except StoreUnavailable:
            logger.warning("Per-kind memory counts unavailable, using estimated ratios")
            by_kind = {kind.value: int(total * ratio) for kind, ratio in KIND_RATIOS.items()}
            return MemoryStats(total=total, by_kind=by_kind, approximate=True)

        return MemoryStats(total=total, by_kind=by_kind)
