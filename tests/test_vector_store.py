"""Tests for the in-process vector store and attribute filters."""

import pytest

from research_memory.memory.vector_store import (
    AttributeFilter,
    InMemoryVectorStore,
    VectorStore,
    cosine_similarity,
)


@pytest.fixture
async def store() -> InMemoryVectorStore:
    s = InMemoryVectorStore()
    await s.upsert("a", [1.0, 0.0], {"userId": "u1", "sessionId": "s1", "kind": "conversation"})
    await s.upsert("b", [0.6, 0.8], {"userId": "u1", "sessionId": "s2", "kind": "document"})
    await s.upsert("c", [0.0, 1.0], {"userId": "u2", "sessionId": "", "kind": "conversation"})
    return s


def test_satisfies_protocol() -> None:
    assert isinstance(InMemoryVectorStore(), VectorStore)


# -- AttributeFilter ---------------------------------------------------------


class TestAttributeFilter:
    def test_empty_matches_everything(self):
        assert AttributeFilter().matches({})

    def test_equals(self):
        flt = AttributeFilter(equals={"userId": "u1"})
        assert flt.matches({"userId": "u1"})
        assert not flt.matches({"userId": "u2"})
        assert not flt.matches({})

    def test_not_equals_treats_missing_as_empty(self):
        flt = AttributeFilter(not_equals={"sessionId": ""})
        assert flt.matches({"sessionId": "s1"})
        assert not flt.matches({"sessionId": ""})
        assert not flt.matches({})


def test_cosine_similarity() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 0.0]) == 0.0


# -- query -------------------------------------------------------------------


async def test_query_orders_by_similarity(store: InMemoryVectorStore) -> None:
    matches = await store.query([1.0, 0.0], None, 10)
    assert [m.id for m in matches] == ["a", "b", "c"]
    assert matches[0].similarity == pytest.approx(1.0)
    assert matches[1].similarity == pytest.approx(0.6)


async def test_query_applies_filter_and_top_k(store: InMemoryVectorStore) -> None:
    matches = await store.query([1.0, 0.0], AttributeFilter(equals={"userId": "u1"}), 1)
    assert [m.id for m in matches] == ["a"]


async def test_query_clamps_negative_similarity(store: InMemoryVectorStore) -> None:
    matches = await store.query([-1.0, 0.0], AttributeFilter(equals={"userId": "u1"}), 10)
    assert all(m.similarity >= 0.0 for m in matches)


async def test_query_returns_attribute_copies(store: InMemoryVectorStore) -> None:
    [match] = await store.query([1.0, 0.0], None, 1)
    match.attributes["userId"] = "tampered"
    [again] = await store.query([1.0, 0.0], None, 1)
    assert again.attributes["userId"] == "u1"


# -- scroll / delete / count ---------------------------------------------------


async def test_scroll(store: InMemoryVectorStore) -> None:
    matches = await store.scroll(AttributeFilter(equals={"userId": "u1"}), 10)
    assert [m.id for m in matches] == ["a", "b"]
    assert all(m.similarity == 0.0 for m in matches)
    assert len(await store.scroll(None, 2)) == 2


async def test_delete_by_ids_counts_existing_only(store: InMemoryVectorStore) -> None:
    assert await store.delete_by_ids(["a", "missing"]) == 1
    assert await store.delete_by_ids(["a"]) == 0
    assert len(store) == 2


async def test_count(store: InMemoryVectorStore) -> None:
    assert await store.count() == 3
    assert await store.count(AttributeFilter(equals={"kind": "conversation"})) == 2
    assert await store.count(AttributeFilter(equals={"userId": "nobody"})) == 0


async def test_upsert_replaces(store: InMemoryVectorStore) -> None:
    await store.upsert("a", [0.0, 1.0], {"userId": "u9", "sessionId": "s9"})
    assert len(store) == 3
    [match] = await store.scroll(AttributeFilter(equals={"userId": "u9"}), 10)
    assert match.id == "a"
