"""Qdrant adapter for the :class:`VectorStore` protocol.

Attributes are stored as the point payload. Point ids are the engine's uuid4
strings, which Qdrant accepts natively.
"""

from __future__ import annotations

import logging
import uuid

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    IsEmptyCondition,
    MatchValue,
    PayloadField,
    PayloadSchemaType,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from research_memory.memory.errors import StoreUnavailable
from research_memory.memory.vector_store import AttributeFilter, VectorMatch

logger = logging.getLogger(__name__)

INDEXED_FIELDS = ("userId", "sessionId", "kind")


def build_filter(flt: AttributeFilter | None) -> Filter | None:
    """Translate an :class:`AttributeFilter` into a Qdrant payload filter."""
    if flt is None or (not flt.equals and not flt.not_equals):
        return None
    must = [
        FieldCondition(key=key, match=MatchValue(value=value))
        for key, value in flt.equals.items()
    ]
    must_not: list = []
    for key, value in flt.not_equals.items():
        must_not.append(FieldCondition(key=key, match=MatchValue(value=value)))
        if value == "":
            # A missing key counts as "", which MatchValue alone does not cover.
            must_not.append(IsEmptyCondition(is_empty=PayloadField(key=key)))
    return Filter(must=must or None, must_not=must_not or None)


def _is_point_id(value: str) -> bool:
    """Qdrant ids are unsigned ints or UUIDs; anything else cannot exist."""
    if value.isdigit():
        return True
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def _payload(raw: dict | None) -> dict[str, str]:
    return {str(k): "" if v is None else str(v) for k, v in (raw or {}).items()}


class QdrantVectorStore:
    """Thin adapter over ``AsyncQdrantClient`` for a single collection."""

    def __init__(
        self,
        collection: str,
        dimension: int,
        url: str | None = None,
        api_key: str | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        self._collection = collection
        self._dimension = dimension
        if client is None:
            client = AsyncQdrantClient(url=url, api_key=api_key or None)
        self._client = client

    @property
    def name(self) -> str:
        return "qdrant"

    @property
    def collection(self) -> str:
        return self._collection

    async def ping(self) -> None:
        """Ensure the collection and its payload indexes exist."""
        try:
            if not await self._client.collection_exists(self._collection):
                await self._client.create_collection(
                    collection_name=self._collection,
                    vectors_config=VectorParams(size=self._dimension, distance=Distance.COSINE),
                )
                logger.info(
                    "Created Qdrant collection %s (%d dims)", self._collection, self._dimension
                )
            # Idempotent; also covers collections created without indexes.
            for field_name in INDEXED_FIELDS:
                await self._client.create_payload_index(
                    collection_name=self._collection,
                    field_name=field_name,
                    field_schema=PayloadSchemaType.KEYWORD,
                )
        except Exception as exc:
            raise StoreUnavailable(f"Qdrant collection check failed: {exc}") from exc

    async def upsert(self, record_id: str, vector: list[float], attributes: dict[str, str]) -> None:
        try:
            await self._client.upsert(
                collection_name=self._collection,
                points=[PointStruct(id=record_id, vector=vector, payload=attributes)],
            )
        except Exception as exc:
            raise StoreUnavailable(f"Qdrant upsert failed: {exc}") from exc

    async def query(
        self, vector: list[float], flt: AttributeFilter | None, top_k: int
    ) -> list[VectorMatch]:
        try:
            response = await self._client.query_points(
                collection_name=self._collection,
                query=vector,
                query_filter=build_filter(flt),
                limit=top_k,
                with_payload=True,
            )
        except Exception as exc:
            raise StoreUnavailable(f"Qdrant query failed: {exc}") from exc

        # Cosine scores range over [-1, 1]; the engine works in [0, 1].
        return [
            VectorMatch(
                id=str(point.id),
                attributes=_payload(point.payload),
                similarity=max(0.0, min(1.0, float(point.score))),
            )
            for point in response.points
        ]

    async def scroll(self, flt: AttributeFilter | None, limit: int) -> list[VectorMatch]:
        try:
            records, _next = await self._client.scroll(
                collection_name=self._collection,
                scroll_filter=build_filter(flt),
                limit=limit,
                with_payload=True,
                with_vectors=False,
            )
        except Exception as exc:
            raise StoreUnavailable(f"Qdrant scroll failed: {exc}") from exc
        return [VectorMatch(id=str(r.id), attributes=_payload(r.payload)) for r in records]

    async def delete_by_ids(self, ids: list[str]) -> int:
        ids = [i for i in ids if _is_point_id(i)]
        if not ids:
            return 0
        try:
            existing = await self._client.retrieve(
                collection_name=self._collection,
                ids=ids,
                with_payload=False,
                with_vectors=False,
            )
            found = [str(r.id) for r in existing]
            if found:
                await self._client.delete(
                    collection_name=self._collection,
                    points_selector=PointIdsList(points=found),
                )
        except Exception as exc:
            raise StoreUnavailable(f"Qdrant delete failed: {exc}") from exc
        return len(found)

    async def count(self, flt: AttributeFilter | None = None) -> int:
        try:
            result = await self._client.count(
                collection_name=self._collection,
                count_filter=build_filter(flt),
                exact=True,
            )
        except Exception as exc:
            raise StoreUnavailable(f"Qdrant count failed: {exc}") from exc
        return result.count

    async def close(self) -> None:
        await self._client.close()
