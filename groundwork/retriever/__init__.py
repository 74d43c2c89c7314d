"""
Retriever - Guide-Aligned Evidence Retrieval

Finds the transcript passages that ground each discussion-guide question.

Key Components:
- VectorSearchEngine: Ranks embedded chunks against a query, fuses rankings
- RetrievalBudget: Request-scoped evidence limits derived from batch size
- RetrievalOrchestrator: Per question x per file search with fan-out

Pipeline:
1. Embed transcript chunks (one batched call per file)
2. Embed each guide question with a retrieval template
3. Rank each file's chunks, fuse across files by average similarity
4. Trim to the budget and hand evidence to the report builder
"""

from .budget import RetrievalBudget, derive_budget, cap_per_source
from .vector_search import VectorSearchEngine, SearchResult, SearchOptions
from .orchestrator import RetrievalOrchestrator, RetrievalReport

__all__ = [
    "RetrievalBudget",
    "derive_budget",
    "cap_per_source",
    "VectorSearchEngine",
    "SearchResult",
    "SearchOptions",
    "RetrievalOrchestrator",
    "RetrievalReport",
]
