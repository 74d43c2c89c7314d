"""
Vector Search

Exhaustive similarity ranking of transcript chunks against a query.
No index structure: every chunk is scored, which suits per-request
collections in the low thousands.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from ..common.embedding_service import EmbeddingGateway
from ..common.errors import GroundworkError, SearchError
from ..common.schemas import EvidenceItem, RetrievalFailure, TranscriptChunk

logger = logging.getLogger("groundwork.retriever.search")

QUESTION_TEMPLATE = "Question: {question}. Find relevant content that answers this question."

SCORE_PRECISION = 12


@dataclass
class SearchResult:
    """A chunk with its similarity to one query"""
    chunk: TranscriptChunk
    similarity: float
    rank: int  # 1-based, assigned after filtering; never an identity

    @property
    def chunk_id(self) -> str:
        return self.chunk.id

    def to_evidence(self) -> EvidenceItem:
        return EvidenceItem(
            chunk_id=self.chunk.id,
            source_file_id=self.chunk.source_file_id,
            source_label=self.chunk.source_label,
            content=self.chunk.content,
            similarity=self.similarity,
            rank=self.rank,
        )


@dataclass
class SearchOptions:
    """Filter settings; ``None`` means the operation's own default"""
    top_k: Optional[int] = None
    similarity_threshold: Optional[float] = None

    def resolve(self, top_k: int, similarity_threshold: float) -> "SearchOptions":
        return SearchOptions(
            top_k=self.top_k if self.top_k is not None else top_k,
            similarity_threshold=(
                self.similarity_threshold
                if self.similarity_threshold is not None
                else similarity_threshold
            ),
        )


def rerank(results: Sequence[SearchResult]) -> List[SearchResult]:
    """Assign dense 1..N ranks in the given order."""
    return [replace(r, rank=i) for i, r in enumerate(results, start=1)]


def _filter_sort_truncate(results: List[SearchResult], options: SearchOptions) -> List[SearchResult]:
    # Filter first so truncation never admits a below-threshold result
    kept = [r for r in results if r.similarity >= options.similarity_threshold]
    # list.sort is stable: ties keep their incoming order. Scores equal to
    # SCORE_PRECISION places tie, so float noise from averaging cannot reorder them.
    kept.sort(key=lambda r: round(r.similarity, SCORE_PRECISION), reverse=True)
    return rerank(kept[: max(options.top_k, 0)])


class VectorSearchEngine:
    """
    Ranks embedded transcript chunks by cosine similarity.

    Features:
    - Threshold then top-K filtering with dense ranks
    - Many-query search with optional failure isolation
    - Question-to-passage search with a retrieval template
    - Deduplication and average-based fusion across searches
    """

    def __init__(self, gateway: EmbeddingGateway):
        """
        Initialize search engine.

        Args:
            gateway: EmbeddingGateway used to embed query text
        """
        self._gateway = gateway

    @property
    def gateway(self) -> EmbeddingGateway:
        return self._gateway

    def search(
        self,
        query_vector: Sequence[float],
        chunks: Sequence[TranscriptChunk],
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        """
        Rank chunks against a query vector.

        Args:
            query_vector: Embedded query
            chunks: Embedded chunks to score
            options: top_k (default 5) and similarity_threshold (default 0.7)

        Returns:
            At most top_k results at or above the threshold, ranked 1..N

        Raises:
            SearchError: a chunk has no embedding
            EmbeddingDimensionError: a chunk embedding differs in length from the query
        """
        opts = (options or SearchOptions()).resolve(top_k=5, similarity_threshold=0.7)

        if not chunks:
            return []

        missing = [c.id for c in chunks if not c.has_embedding]
        if missing:
            raise SearchError(f"Chunks without embeddings cannot be searched: {', '.join(missing[:5])}")

        scores = self._gateway.batch_similarity(query_vector, [c.embedding for c in chunks])
        results = [
            SearchResult(chunk=chunk, similarity=score, rank=0)
            for chunk, score in zip(chunks, scores)
        ]

        return _filter_sort_truncate(results, opts)

    async def search_text(
        self,
        query: str,
        chunks: Sequence[TranscriptChunk],
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        """Embed ``query`` fresh and rank ``chunks`` against it."""
        query_embedding = await self._gateway.aembed_query(query)
        return self.search(query_embedding.embedding, chunks, options)

    async def search_many(
        self,
        queries: Sequence[str],
        chunks: Sequence[TranscriptChunk],
        options: Optional[SearchOptions] = None,
        failures: Optional[List[RetrievalFailure]] = None,
    ) -> Dict[str, List[SearchResult]]:
        """
        Run an independent search per query.

        Each query is embedded on its own; nothing is batched across queries.

        Args:
            queries: Query texts
            chunks: Embedded chunks to score
            options: Passed to every search
            failures: When given, a failing query is left out of the result
                and recorded here instead of aborting the others

        Returns:
            Mapping of query text to its ranked results, in query order
        """
        results: Dict[str, List[SearchResult]] = {}

        for query in queries:
            try:
                results[query] = await self.search_text(query, chunks, options)
            except GroundworkError as e:
                if failures is None:
                    raise
                logger.warning("Search failed for query %r: %s", query[:60], e)
                failures.append(RetrievalFailure(stage=e.stage, message=e.message, question=query))

        return results

    async def find_relevant_for_question(
        self,
        question: str,
        chunks: Sequence[TranscriptChunk],
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        """
        Find passages that answer a guide question.

        The question is wrapped in a retrieval template before embedding.
        Defaults are looser than :meth:`search` (top_k 3, threshold 0.6)
        because question-to-passage matching is noisier.
        """
        opts = (options or SearchOptions()).resolve(top_k=3, similarity_threshold=0.6)
        enhanced_query = QUESTION_TEMPLATE.format(question=question)
        return await self.search_text(enhanced_query, chunks, opts)

    @staticmethod
    def dedupe(results: Sequence[SearchResult]) -> List[TranscriptChunk]:
        """Unique chunks referenced by ``results``, first-seen order."""
        seen = set()
        unique_chunks = []

        for result in results:
            if result.chunk.id not in seen:
                seen.add(result.chunk.id)
                unique_chunks.append(result.chunk)

        return unique_chunks

    @staticmethod
    def combine(
        all_results: Sequence[SearchResult],
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        """
        Fuse results from several searches into one ranking.

        Occurrences below the threshold are dropped, the rest are grouped by
        chunk id and their similarities averaged. Chunks that are relevant
        across searches outrank a single high score. Equal averages keep the
        order in which the chunks were first seen.

        Args:
            all_results: Results gathered from independent searches
            options: top_k (default 10) and similarity_threshold (default 0.5)
        """
        opts = (options or SearchOptions()).resolve(top_k=10, similarity_threshold=0.5)

        # chunk id -> [chunk, total similarity, count]; dicts keep first-seen order
        chunk_scores: Dict[str, list] = {}
        for result in all_results:
            if result.similarity < opts.similarity_threshold:
                continue
            entry = chunk_scores.get(result.chunk.id)
            if entry:
                entry[1] += result.similarity
                entry[2] += 1
            else:
                chunk_scores[result.chunk.id] = [result.chunk, result.similarity, 1]

        combined = [
            SearchResult(chunk=chunk, similarity=total / count, rank=0)
            for chunk, total, count in chunk_scores.values()
        ]

        return _filter_sort_truncate(combined, opts)
