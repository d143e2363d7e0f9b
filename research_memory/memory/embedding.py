"""Text embedding backends.

Two implementations share the :class:`Embedder` protocol:

- :class:`HashEmbedder`: deterministic feature-hashing embedding with no
  external calls. The default. Stable across processes and suited to lexical-overlap recall.
- :class:`HttpEmbedder`: an OpenAI-compatible ``/embeddings`` endpoint.
  Fails closed with :class:`EmbeddingUnavailable`.

Similarity scores are only meaningful relative to whichever embedder the
engine is configured with; the 0.70 threshold was tuned for neither.
"""

from __future__ import annotations

import hashlib
import logging
import math
import re
from typing import Protocol, runtime_checkable

import httpx

from research_memory.config import Settings
from research_memory.memory.errors import EmbeddingUnavailable

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")


@runtime_checkable
class Embedder(Protocol):
    """Maps text to a fixed-dimension vector."""

    @property
    def dimension(self) -> int: ...

    async def embed(self, text: str) -> list[float]: ...


class HashEmbedder:
    """Signed feature hashing over word unigrams and bigrams, L2-normalised."""

    def __init__(self, dimension: int = 1024) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed(self, text: str) -> list[float]:
        return self.embed_sync(text)

    def embed_sync(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        tokens = _TOKEN_RE.findall(text.lower())
        features = tokens + [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
        for feature in features:
            digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
            value = int.from_bytes(digest, "big")
            bucket = value % self._dimension
            sign = 1.0 if (value >> 63) & 1 else -1.0
            vector[bucket] += sign

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            return vector
        return [v / norm for v in vector]


class HttpEmbedder:
    """Embeddings from an OpenAI-compatible HTTP API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str,
        dimension: int,
        timeout: float = 20.0,
    ) -> None:
        self._url = api_url.rstrip("/") + "/embeddings"
        self._api_key = api_key
        self._model = model
        self._dimension = dimension
        self._timeout = timeout

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed(self, text: str) -> list[float]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        body = {"model": self._model, "input": text, "dimensions": self._dimension}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, headers=headers, json=body)
        except httpx.HTTPError as exc:
            raise EmbeddingUnavailable(f"Embedding request failed: {exc}") from exc

        if resp.status_code != 200:
            raise EmbeddingUnavailable(
                f"Embedding API returned {resp.status_code}: {resp.text[:200]}"
            )

        try:
            vector = [float(v) for v in resp.json()["data"][0]["embedding"]]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise EmbeddingUnavailable("Malformed embedding response") from exc

        if len(vector) != self._dimension:
            raise EmbeddingUnavailable(
                f"Embedding dimension mismatch: expected {self._dimension}, got {len(vector)}"
            )
        return vector


def create_embedder(config: Settings) -> Embedder:
    """Build the embedder selected by ``EMBEDDING_BACKEND``."""
    if config.embedding_backend == "http":
        logger.info("Embeddings: HTTP backend (%s)", config.embedding_model)
        return HttpEmbedder(
            api_url=config.embedding_api_url,
            api_key=config.embedding_api_key,
            model=config.embedding_model,
            dimension=config.embedding_dimension,
        )
    logger.info("Embeddings: hash backend (%d dims)", config.embedding_dimension)
    return HashEmbedder(config.embedding_dimension)
