"""
Request validation.

Rejects malformed requests synchronously, before any embedding work starts.
"""

from collections.abc import Mapping
from typing import Any, List, Optional, Sequence

from .config import ValidationConfig
from .errors import InputValidationError
from .schemas import GuideQuestion, TranscriptFile


def _question_of(item: Any) -> Optional[str]:
    if isinstance(item, GuideQuestion):
        return item.question
    if isinstance(item, Mapping):
        return item.get("question")
    return None


def validate_guide(guide: Any, limits: Optional[ValidationConfig] = None) -> None:
    """Check the guide is a list of questions or a string within limits."""
    limits = limits or ValidationConfig()

    if guide is None:
        raise InputValidationError("No discussion guide provided")

    if isinstance(guide, str):
        if len(guide) > limits.max_guide_chars:
            raise InputValidationError("Guide text exceeds maximum size limit")
        return

    if isinstance(guide, (list, tuple)):
        if not guide:
            raise InputValidationError("No discussion guide provided")
        if len(guide) > limits.max_guide_questions:
            raise InputValidationError(
                f"Maximum of {limits.max_guide_questions} guide questions allowed"
            )
        for item in guide:
            question = _question_of(item)
            if not isinstance(question, str) or not question.strip():
                raise InputValidationError("Each guide item must have a question property")
            theme = item.get("theme") if isinstance(item, Mapping) else None
            if theme is not None and not isinstance(theme, str):
                raise InputValidationError("Guide item theme must be a string")
        return

    raise InputValidationError("Guide must be an array or string")


def validate_files(files: Any, limits: Optional[ValidationConfig] = None) -> None:
    """Check transcript files carry ids, labels and well-formed chunks."""
    limits = limits or ValidationConfig()

    if not isinstance(files, (list, tuple)) or not files:
        raise InputValidationError("No transcript files provided")

    if limits.max_files is not None and len(files) > limits.max_files:
        raise InputValidationError(f"Maximum of {limits.max_files} files allowed")

    seen_files = set()
    for file in files:
        if not isinstance(file, TranscriptFile):
            raise InputValidationError(
                f"Transcript files must be TranscriptFile records, got {type(file).__name__}"
            )
        if file.file_id in seen_files:
            raise InputValidationError(f"Duplicate transcript file id: {file.file_id}")
        seen_files.add(file.file_id)

        total_chars = 0
        seen_chunks = set()
        for chunk in file.chunks:
            if not chunk.content or not chunk.content.strip():
                raise InputValidationError(
                    f"Chunk {chunk.id} in file {file.file_id} has no content"
                )
            if chunk.id in seen_chunks:
                raise InputValidationError(
                    f"Duplicate chunk id {chunk.id} in file {file.file_id}"
                )
            seen_chunks.add(chunk.id)
            total_chars += len(chunk.content)

        if total_chars > limits.max_file_chars:
            raise InputValidationError(f"File {file.file_id} exceeds maximum size limit")


def validate_request(guide: Any, files: Any, limits: Optional[ValidationConfig] = None) -> None:
    """
    Validate a whole retrieval request.

    Raises:
        InputValidationError: describing the first problem found
    """
    validate_files(files, limits)
    validate_guide(guide, limits)


def validate_min_questions(questions: Sequence[GuideQuestion], minimum: int) -> List[GuideQuestion]:
    """
    Reject a parsed guide with fewer than ``minimum`` questions.

    The parser degrades to an empty list on unstructured text; callers that
    need a usable guide check the count here.
    """
    if len(questions) < minimum:
        raise InputValidationError(
            f"Guide yielded {len(questions)} questions, at least {minimum} required"
        )
    return list(questions)
