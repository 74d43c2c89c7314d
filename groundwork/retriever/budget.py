"""
Retrieval budget.

Shrinks per-question evidence as the transcript batch grows. Derived once
per request and shared read-only by every per-question retrieval.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

from .vector_search import SearchResult, rerank

logger = logging.getLogger("groundwork.retriever.budget")

LARGE_BATCH_FILES = 20  # above this, evidence per question is halved
COST_OPTIMIZATION_FILES = 10  # above this, cost optimization switches on
DEFAULT_MAX_CHUNKS = 10
REDUCED_MAX_CHUNKS = 5


@dataclass(frozen=True)
class RetrievalBudget:
    """Request-scoped evidence limits"""
    max_chunks_per_question: int
    cost_optimization_enabled: bool


def derive_budget(file_count: int) -> RetrievalBudget:
    """
    Compute the budget for a batch of ``file_count`` transcripts.

    >>> derive_budget(25)
    RetrievalBudget(max_chunks_per_question=5, cost_optimization_enabled=True)
    >>> derive_budget(5)
    RetrievalBudget(max_chunks_per_question=10, cost_optimization_enabled=False)
    """
    return RetrievalBudget(
        max_chunks_per_question=REDUCED_MAX_CHUNKS if file_count > LARGE_BATCH_FILES else DEFAULT_MAX_CHUNKS,
        cost_optimization_enabled=file_count > COST_OPTIMIZATION_FILES,
    )


def cap_per_source(
    results: Sequence[SearchResult],
    budget: RetrievalBudget,
    file_count: int,
) -> List[SearchResult]:
    """
    Limit how many results each transcript source may contribute.

    Each source label keeps at most ``max(1, max_chunks // file_count)`` of
    its best-ranked results; overall rank order is preserved and ranks are
    reassigned. A no-op unless the budget enables cost optimization.
    """
    if not budget.cost_optimization_enabled or file_count <= 0:
        return list(results)

    per_source = max(1, budget.max_chunks_per_question // file_count)
    counts: Dict[str, int] = {}
    kept: List[SearchResult] = []
    for result in results:
        label = result.chunk.source_label
        if counts.get(label, 0) < per_source:
            counts[label] = counts.get(label, 0) + 1
            kept.append(result)

    logger.debug("Cost optimization: limited to %d chunks per source for %d files", per_source, file_count)
    return rerank(kept)
