"""
Keyword fallback.

When vector search finds nothing for a question, chunks sharing a keyword
with the question are offered at a fixed score instead.
"""

import re
from typing import List, Sequence

from ..common.schemas import TranscriptChunk
from .vector_search import SearchResult, rerank

FALLBACK_SIMILARITY = 0.5
FALLBACK_MAX_RESULTS = 5

STOP_WORDS = {
    "the", "and", "but", "are", "was", "were", "been", "being", "have", "has",
    "had", "does", "did", "from", "over", "under", "again", "further", "then",
    "once", "here", "there", "when", "where", "why", "how", "all", "any",
    "both", "each", "few", "more", "most", "other", "some", "such", "nor",
    "not", "only", "own", "same", "than", "too", "very", "can", "will",
    "just", "should", "now", "what", "which", "who", "whom", "this", "that",
    "these", "those", "your", "you", "about", "with", "tell",
}


def extract_keywords(text: str) -> List[str]:
    """Lowercased words longer than 3 characters, minus stop words, deduplicated"""
    words = re.findall(r"\b\w+\b", text.lower())
    keywords = [w for w in words if len(w) > 3 and w not in STOP_WORDS]
    return list(dict.fromkeys(keywords))


def keyword_search(
    question: str,
    chunks: Sequence[TranscriptChunk],
    max_results: int = FALLBACK_MAX_RESULTS,
) -> List[SearchResult]:
    """
    Rank chunks containing any question keyword, in chunk order.

    Every match scores ``FALLBACK_SIMILARITY``; a question without usable
    keywords matches nothing.
    """
    keywords = extract_keywords(question)
    if not keywords:
        return []

    patterns = [re.compile(rf"\b{re.escape(k)}\b", re.IGNORECASE) for k in keywords]
    matches = [
        SearchResult(chunk=chunk, similarity=FALLBACK_SIMILARITY, rank=0)
        for chunk in chunks
        if any(p.search(chunk.content) for p in patterns)
    ]
    return rerank(matches[:max_results])
