"""
Groundwork

Guide-aligned semantic retrieval for qualitative research.

Turns a discussion guide into an ordered list of themed questions, embeds
pre-chunked interview transcripts, and selects the transcript passages that
ground each question for a downstream report builder.

Philosophy:
- Guide order is the output order
- Evidence is ranked from vectors, never from cached scores
- A failed request fails loudly; rankings are never silently partial

Usage:
    from groundwork.common import load_config, EmbeddingGateway
    from groundwork.guide import parse_guide
    from groundwork.retriever import VectorSearchEngine, RetrievalOrchestrator
"""

__version__ = "0.1.0"
