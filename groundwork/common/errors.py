"""
Error taxonomy for the retrieval pipeline.

Every error carries the pipeline stage that raised it so a request fails
with one descriptive reason: parsing, embedding, or search.
"""

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .schemas import RetrievalFailure

STAGE_PARSING = "parsing"
STAGE_EMBEDDING = "embedding"
STAGE_SEARCH = "search"


class GroundworkError(Exception):
    """Base error. ``str(err)`` is ``"[<stage>] <message>"``."""

    stage = "unknown"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if stage:
            self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"


# Parsing / validation


class InputValidationError(GroundworkError):
    """Request shape is invalid; raised before any embedding work."""
    stage = STAGE_PARSING


class GuideFormatError(InputValidationError):
    """Guide is neither a list of questions nor a string."""


# Embedding


class EmbeddingTransportError(GroundworkError):
    """The embedding capability failed (timeout, quota, malformed response)."""

    stage = STAGE_EMBEDDING

    def __init__(
        self,
        message: str,
        batch_id: Optional[str] = None,
        query_id: Optional[str] = None,
        item_count: Optional[int] = None,
    ):
        context = []
        if batch_id is not None:
            context.append(f"batch={batch_id}")
        if query_id is not None:
            context.append(f"query={query_id}")
        if item_count is not None:
            context.append(f"items={item_count}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)
        self.batch_id = batch_id
        self.query_id = query_id
        self.item_count = item_count


class EmbeddingCountMismatchError(EmbeddingTransportError):
    """Provider returned a different number of vectors than texts sent."""


class RetrievalTimeoutError(GroundworkError):
    """The request deadline expired while waiting on embedding calls."""
    stage = STAGE_EMBEDDING


# Search


class EmbeddingDimensionError(GroundworkError):
    """Two vectors of different lengths were compared."""
    stage = STAGE_SEARCH


class SearchError(GroundworkError):
    """A chunk collection cannot be searched (e.g. missing embeddings)."""
    stage = STAGE_SEARCH


class AggregateRetrievalError(GroundworkError):
    """Several isolated failures left nothing to return."""

    def __init__(self, message: str, failures: List["RetrievalFailure"], stage: Optional[str] = None):
        details = "; ".join(f.describe() for f in failures)
        super().__init__(f"{message}: {details}" if details else message, stage)
        self.failures = list(failures)
