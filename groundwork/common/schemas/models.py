"""
Retrieval Data Model

Shapes exchanged with the outside world: guide questions coming in,
transcript chunks from the chunker, and the evidence handed to the report
builder. Wire format is camelCase (``sourceFileId``); Python code uses
snake_case attributes.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_THEME = "General"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


# ============================================================================
# Inputs
# ============================================================================

class GuideQuestion(_WireModel):
    """A themed question from a discussion guide. Order is meaningful."""
    theme: str = Field(default=DEFAULT_THEME, description="Section the question belongs to")
    question: str = Field(..., min_length=1)


class TranscriptChunk(_WireModel):
    """
    A bounded transcript excerpt produced by the external chunker.

    Only ``id``, ``content`` and ``embedding`` are read here; offsets and
    token counts are carried through untouched.
    """
    id: str = Field(..., min_length=1, description="Stable chunk identity")
    content: str
    start_char: int = 0
    end_char: int = 0
    token_count: int = 0
    embedding: Optional[List[float]] = None
    source_file_id: str = ""
    source_label: str = ""

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def with_embedding(self, embedding: List[float]) -> "TranscriptChunk":
        """Return a copy carrying ``embedding``; the original is never mutated."""
        return self.model_copy(update={"embedding": list(embedding)})


class TranscriptFile(_WireModel):
    """All chunks of one transcript file, in chunker order."""
    file_id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1, description="Participant label shown in reports")
    chunks: List[TranscriptChunk] = Field(default_factory=list)

    @property
    def is_embedded(self) -> bool:
        return all(c.has_embedding for c in self.chunks)


class QueryEmbedding(_WireModel):
    """A query vector kept alongside the text it was computed from."""
    text: str
    embedding: List[float]


# ============================================================================
# Outputs
# ============================================================================

class EvidenceItem(_WireModel):
    """One ranked passage handed to the report builder."""
    chunk_id: str
    source_file_id: str
    source_label: str
    content: str
    similarity: float
    rank: int = Field(..., ge=1)


class QuestionEvidence(_WireModel):
    """Evidence for a single guide question, in rank order."""
    theme: str
    question: str
    evidence: List[EvidenceItem] = Field(default_factory=list)
    used_keyword_fallback: bool = False


class RetrievalFailure(_WireModel):
    """An isolated failure recorded instead of aborting the request."""
    stage: str
    message: str
    file_id: Optional[str] = None
    question: Optional[str] = None

    def describe(self) -> str:
        where = []
        if self.file_id:
            where.append(f"file={self.file_id}")
        if self.question:
            where.append(f"question={self.question[:60]!r}")
        location = f" ({', '.join(where)})" if where else ""
        return f"{self.stage}{location}: {self.message}"


class RetrievalMetrics(_WireModel):
    """Per-request counters. Contains no transcript text."""
    files_count: int = 0
    questions_count: int = 0
    chunks_embedded: int = 0
    embedding_calls: int = 0
    evidence_count: int = 0
    coverage_rate: float = 0.0
    failures_count: int = 0
    latency_ms: float = 0.0
