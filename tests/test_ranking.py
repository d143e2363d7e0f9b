"""Tests for the retrieval policy: recency decay, scoring and filters."""

from datetime import UTC, datetime, timedelta

import pytest

from research_memory.memory.ranking import (
    RankingPolicy,
    build_search_filter,
    rank,
    violates_scope,
)
from research_memory.memory.vector_store import VectorMatch

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)


def _match(match_id: str, similarity: float, age: timedelta = timedelta(0), **attrs) -> VectorMatch:
    attributes = {
        "userId": "u1",
        "sessionId": "s1",
        "content": match_id,
        "timestamp": (NOW - age).isoformat(),
    }
    attributes.update(attrs)
    return VectorMatch(id=match_id, attributes=attributes, similarity=similarity)


# -- recency -------------------------------------------------------------------


class TestRecency:
    def test_now_is_one(self):
        assert RankingPolicy().recency(NOW, NOW) == 1.0

    def test_window_boundary_is_zero(self):
        assert RankingPolicy().recency(NOW - timedelta(hours=24), NOW) == 0.0

    def test_older_than_window_is_zero(self):
        assert RankingPolicy().recency(NOW - timedelta(days=30), NOW) == 0.0

    def test_halfway(self):
        assert RankingPolicy().recency(NOW - timedelta(hours=12), NOW) == pytest.approx(0.5)

    def test_future_timestamp_capped_at_one(self):
        assert RankingPolicy().recency(NOW + timedelta(hours=1), NOW) == 1.0

    def test_never_negative(self):
        policy = RankingPolicy(recency_window=timedelta(hours=1))
        for hours in (1, 2, 48, 10_000):
            assert policy.recency(NOW - timedelta(hours=hours), NOW) >= 0.0


class TestScore:
    def test_weights(self):
        assert RankingPolicy().score(0.9, 0.5) == pytest.approx(0.63 + 0.15)

    def test_candidate_count(self):
        policy = RankingPolicy()
        assert policy.candidate_count(1) == 10
        assert policy.candidate_count(5) == 10
        assert policy.candidate_count(6) == 12


# -- filters -------------------------------------------------------------------


class TestBuildSearchFilter:
    def test_scoped_requires_exact_session(self):
        flt = build_search_filter("u1", "s1")
        assert flt.equals == {"userId": "u1", "sessionId": "s1"}
        assert flt.not_equals == {}

    def test_default_excludes_orphans(self):
        flt = build_search_filter("u1", None)
        assert flt.equals == {"userId": "u1"}
        assert flt.not_equals == {"sessionId": ""}
        assert not flt.matches({"userId": "u1", "sessionId": ""})
        assert not flt.matches({"userId": "u1"})
        assert flt.matches({"userId": "u1", "sessionId": "s9"})


class TestViolatesScope:
    def test_matching_session_ok(self):
        assert not violates_scope(_match("a", 0.9), "u1", "s1")

    def test_other_session(self):
        assert violates_scope(_match("a", 0.9, sessionId="s2"), "u1", "s1")

    def test_orphan_always_violates(self):
        assert violates_scope(_match("a", 0.9, sessionId=""), "u1", None)
        assert violates_scope(_match("a", 0.9, sessionId=""), "u1", "s1")

    def test_other_user(self):
        assert violates_scope(_match("a", 0.9, userId="u2"), "u1", None)


# -- rank ----------------------------------------------------------------------


def _rank(matches, limit=10, session_id="s1", policy=None):
    return rank(
        matches,
        user_id="u1",
        session_id=session_id,
        limit=limit,
        now=NOW,
        policy=policy or RankingPolicy(),
    )


def test_rank_orders_by_combined_score():
    results = _rank(
        [
            _match("stale-but-close", 0.95, timedelta(hours=30)),
            _match("fresh", 0.80),
            _match("mid", 0.90, timedelta(hours=6)),
        ]
    )
    # fresh 0.86, mid 0.855, stale 0.665
    assert [r.id for r in results] == ["fresh", "mid", "stale-but-close"]


def test_rank_keeps_store_order_for_ties():
    matches = [_match(f"m{i}", 0.9) for i in range(5)]
    assert [r.id for r in _rank(matches)] == ["m0", "m1", "m2", "m3", "m4"]


def test_rank_applies_threshold():
    results = _rank([_match("low", 0.6999), _match("edge", 0.7), _match("high", 0.75)])
    assert {r.id for r in results} == {"edge", "high"}
    assert all(r.similarity >= 0.7 for r in results)


def test_rank_custom_threshold():
    policy = RankingPolicy(similarity_threshold=0.8)
    assert [r.id for r in _rank([_match("a", 0.75), _match("b", 0.85)], policy=policy)] == ["b"]


def test_rank_truncates():
    matches = [_match(f"m{i}", 0.9) for i in range(5)]
    assert len(_rank(matches, limit=2)) == 2


def test_rank_drops_scope_violations():
    results = _rank(
        [_match("ok", 0.9), _match("other", 0.99, sessionId="s2"), _match("orphan", 0.99, sessionId="")]
    )
    assert [r.id for r in results] == ["ok"]


def test_rank_result_scores_and_fields():
    [result] = _rank([_match("a", 0.9, timedelta(hours=12), kind="document", sources="x|y")])
    assert result.score == pytest.approx(0.7 * 0.9 + 0.3 * 0.5)
    assert result.similarity == 0.9
    assert result.sources == ["x", "y"]
    assert result.kind.value == "document"


def test_rank_missing_timestamp_scores_zero_recency():
    match = VectorMatch(id="a", attributes={"userId": "u1", "sessionId": "s1"}, similarity=0.9)
    [result] = _rank([match])
    assert result.score == pytest.approx(0.63)
