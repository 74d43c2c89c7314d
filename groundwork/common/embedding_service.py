"""
Embedding Gateway

Thin orchestration over an injected embedding capability.
Owns batching correctness and similarity math; the provider owns the
network, caching and retries.
"""

import asyncio
import logging
import threading
from typing import Callable, List, Optional, Sequence

import numpy as np

from .errors import (
    EmbeddingCountMismatchError,
    EmbeddingDimensionError,
    EmbeddingTransportError,
    GroundworkError,
)
from .schemas import QueryEmbedding

logger = logging.getLogger("groundwork.common.embedding")

EmbedFn = Callable[[List[str]], Sequence[Sequence[float]]]


def _preview(text: str, limit: int = 60) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


class EmbeddingGateway:
    """
    Embedding gateway for the retrieval pipeline.

    The embedding capability is passed in explicitly, so tests can inject a
    deterministic fake and production code any provider's ``embed``.

    Usage:
        provider = create_embedding_provider(config.embedding)
        gateway = EmbeddingGateway(provider.embed, model=provider.model)
        vectors = gateway.embed_batch(["first text", "second text"])
    """

    def __init__(self, embed_fn: EmbedFn, model: str = ""):
        """
        Initialize the gateway.

        Args:
            embed_fn: Callable mapping a list of texts to one vector per text
            model: Model label, used in logs only
        """
        self._embed_fn = embed_fn
        self._model = model
        self._call_count = 0
        self._count_lock = threading.Lock()

    @property
    def model(self) -> str:
        return self._model

    @property
    def call_count(self) -> int:
        """Provider calls made so far; safe to read while worker threads embed"""
        with self._count_lock:
            return self._call_count

    def embed_batch(self, texts: List[str], batch_id: Optional[str] = None) -> List[List[float]]:
        """
        Embed a batch of texts with a single call to the provider.

        Args:
            texts: Texts to embed
            batch_id: Identifier reported in errors (e.g. the file id)

        Returns:
            One vector per text, in input order

        Raises:
            EmbeddingTransportError: the provider failed
            EmbeddingCountMismatchError: vector count differs from text count
            EmbeddingDimensionError: vectors in the batch differ in length
        """
        if not texts:
            return []
        return self._embed_raw(list(texts), batch_id=batch_id, item_count=len(texts))

    def _embed_raw(
        self,
        texts: List[str],
        batch_id: Optional[str] = None,
        item_count: Optional[int] = None,
    ) -> List[List[float]]:
        # batch_id / item_count only add context to error messages
        with self._count_lock:
            self._call_count += 1
        try:
            raw = self._embed_fn(texts)
        except GroundworkError:
            raise
        except Exception as e:
            raise EmbeddingTransportError(
                f"Failed to generate embeddings: {e}",
                batch_id=batch_id,
                item_count=item_count,
            ) from e

        if isinstance(raw, np.ndarray):
            vectors = raw.tolist()
        else:
            vectors = [list(map(float, v)) for v in raw]

        if len(vectors) != len(texts):
            raise EmbeddingCountMismatchError(
                f"Provider returned {len(vectors)} vectors for {len(texts)} texts",
                batch_id=batch_id,
                item_count=item_count,
            )

        dims = {len(v) for v in vectors}
        if len(dims) > 1 or 0 in dims:
            raise EmbeddingDimensionError(
                f"Provider returned vectors of inconsistent length {sorted(dims)} (batch={batch_id})"
            )

        logger.debug("Embedded batch %s: %d texts, dim=%d", batch_id, len(texts), dims.pop())
        return vectors

    def embed_query(self, text: str, query_id: Optional[str] = None) -> QueryEmbedding:
        """
        Embed a single query text.

        Returns:
            QueryEmbedding carrying both the text and its vector
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        try:
            vectors = self._embed_raw([text])
        except EmbeddingTransportError as e:
            # Keep the subclass so callers can tell a count mismatch from a transport failure
            raise type(e)(
                f"Failed to generate query embedding: {e.message}",
                query_id=query_id or _preview(text),
            ) from e

        return QueryEmbedding(text=text, embedding=vectors[0])

    async def aembed_batch(self, texts: List[str], batch_id: Optional[str] = None) -> List[List[float]]:
        """Run :meth:`embed_batch` in a worker thread."""
        return await asyncio.to_thread(self.embed_batch, texts, batch_id)

    async def aembed_query(self, text: str, query_id: Optional[str] = None) -> QueryEmbedding:
        """Run :meth:`embed_query` in a worker thread."""
        return await asyncio.to_thread(self.embed_query, text, query_id)

    @staticmethod
    def similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
        """
        Cosine similarity between two vectors.

        Returns exactly 0.0 when either vector has zero magnitude.

        Raises:
            EmbeddingDimensionError: vectors differ in length
        """
        v1 = np.asarray(vec1, dtype=np.float64)
        v2 = np.asarray(vec2, dtype=np.float64)

        if v1.shape != v2.shape:
            raise EmbeddingDimensionError(f"Vector dimension mismatch: {v1.shape} vs {v2.shape}")

        norm1 = np.linalg.norm(v1)
        norm2 = np.linalg.norm(v2)
        if norm1 == 0 or norm2 == 0:
            return 0.0

        return float(np.dot(v1, v2) / (norm1 * norm2))

    @staticmethod
    def batch_similarity(query_vec: Sequence[float], vectors: Sequence[Sequence[float]]) -> List[float]:
        """
        Cosine similarity between a query and many vectors.

        Same semantics as :meth:`similarity`, row by row.
        """
        if len(vectors) == 0:
            return []

        query = np.asarray(query_vec, dtype=np.float64)
        lengths = {len(v) for v in vectors}
        if lengths != {query.shape[0]}:
            bad = sorted(lengths - {query.shape[0]})
            raise EmbeddingDimensionError(
                f"Vector dimension mismatch: query has {query.shape[0]}, chunks have {bad}"
            )

        matrix = np.asarray(vectors, dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query

        scores = np.zeros(len(vectors), dtype=np.float64)
        nonzero = norms > 0
        scores[nonzero] = dots[nonzero] / norms[nonzero]

        return scores.tolist()
