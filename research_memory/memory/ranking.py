"""Retrieval policy: filter construction, thresholding, isolation and ranking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from research_memory.memory.models import NO_SESSION, MemorySearchResult, parse_timestamp
from research_memory.memory.vector_store import AttributeFilter, VectorMatch


@dataclass(frozen=True)
class RankingPolicy:
    """Tunable constants for memory retrieval."""

    similarity_threshold: float = 0.7
    similarity_weight: float = 0.7
    recency_weight: float = 0.3
    recency_window: timedelta = timedelta(hours=24)
    min_candidates: int = 10

    def candidate_count(self, limit: int) -> int:
        """How many store candidates to fetch for a result page of *limit*."""
        return max(limit * 2, self.min_candidates)

    def recency(self, timestamp: datetime, now: datetime) -> float:
        """Linear decay from 1.0 (now) to 0.0 (one window ago or older)."""
        window = self.recency_window.total_seconds()
        if window <= 0:
            return 0.0
        age = (now - timestamp).total_seconds()
        return min(1.0, max(0.0, 1.0 - age / window))

    def score(self, similarity: float, recency: float) -> float:
        return self.similarity_weight * similarity + self.recency_weight * recency


def build_search_filter(user_id: str, session_id: str | None) -> AttributeFilter:
    """Scope a search to one user and either one session or any real session.

    Orphaned records (empty ``sessionId``) never match: an explicit session id
    is never the empty string, and the default scope excludes it outright.
    """
    if session_id:
        return AttributeFilter(equals={"userId": user_id, "sessionId": session_id})
    return AttributeFilter(equals={"userId": user_id}, not_equals={"sessionId": NO_SESSION})


def violates_scope(match: VectorMatch, user_id: str, session_id: str | None) -> bool:
    """Application-side re-check of the store filter."""
    attrs = match.attributes
    if attrs.get("userId") != user_id:
        return True
    found = attrs.get("sessionId") or NO_SESSION
    if found == NO_SESSION:
        return True
    return bool(session_id) and found != session_id


def rank(
    matches: list[VectorMatch],
    *,
    user_id: str,
    session_id: str | None,
    limit: int,
    now: datetime,
    policy: RankingPolicy,
) -> list[MemorySearchResult]:
    """Threshold, isolate, score and truncate store candidates.

    ``sorted`` is stable, so equal scores keep the store's return order.
    """
    results: list[MemorySearchResult] = []
    for match in matches:
        if match.similarity < policy.similarity_threshold:
            continue
        if violates_scope(match, user_id, session_id):
            continue
        recency = policy.recency(parse_timestamp(match.attributes.get("timestamp")), now)
        results.append(
            MemorySearchResult.from_match(
                match.id,
                match.attributes,
                match.similarity,
                score=policy.score(match.similarity, recency),
            )
        )

    results = sorted(results, key=lambda r: r.score, reverse=True)
    return results[:limit]
