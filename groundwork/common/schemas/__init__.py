"""
Groundwork Schemas

Pydantic models for guide questions, transcript chunks and evidence.
"""

from .models import (
    DEFAULT_THEME,
    GuideQuestion,
    TranscriptChunk,
    TranscriptFile,
    QueryEmbedding,
    EvidenceItem,
    QuestionEvidence,
    RetrievalFailure,
    RetrievalMetrics,
)

__all__ = [
    "DEFAULT_THEME",
    "GuideQuestion",
    "TranscriptChunk",
    "TranscriptFile",
    "QueryEmbedding",
    "EvidenceItem",
    "QuestionEvidence",
    "RetrievalFailure",
    "RetrievalMetrics",
]
