"""
Guide Parser

Parses discussion guides into an ordered list of themed questions.
Accepts either pre-structured question lists or free text with section
headers and bulleted / numbered items.
"""

import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, List, Sequence, Union

from pydantic import ValidationError

from ..common.errors import GuideFormatError
from ..common.schemas import DEFAULT_THEME, GuideQuestion

logger = logging.getLogger("groundwork.guide.parser")

# "A. Warm-up", "2. Current practices", "IV. Wrap-up"
SECTION_HEADER_RE = re.compile(r"^([A-Z]\.|[0-9]+\.|[IVX]+\.)\s*(.+)$", re.IGNORECASE)
BULLET_RE = re.compile(r"^\s*[*\-•]\s+(.+)$")
NUMBERED_ITEM_RE = re.compile(r"^\s*\d+[.)\s]\s*(.+)$")

# Items mentioning any of these are housekeeping, not research questions
BOILERPLATE_KEYWORDS = (
    "thank you",
    "gdpr",
    "consent",
    "minutes",
    "introduction",
    "confidential",
    "recording",
    "disclosure",
    "welcome",
    "agenda",
)

MIN_QUESTION_LENGTH = 10  # candidates this short or shorter are dropped

GuideInput = Union[str, Sequence[Union[GuideQuestion, Mapping]]]


def _is_boilerplate(text: str) -> bool:
    text_lower = text.lower()
    return any(keyword in text_lower for keyword in BOILERPLATE_KEYWORDS)


def _coerce_item(item: Any) -> GuideQuestion:
    """Fill a missing theme on a pre-structured guide item"""
    if isinstance(item, GuideQuestion):
        return item if item.theme else GuideQuestion(theme=DEFAULT_THEME, question=item.question)

    if isinstance(item, Mapping):
        question = item.get("question")
        if isinstance(question, str) and question:
            try:
                return GuideQuestion(theme=item.get("theme") or DEFAULT_THEME, question=question)
            except ValidationError as e:
                raise GuideFormatError(f"Invalid guide item {question[:60]!r}: {e.errors()[0]['msg']}") from e

    raise GuideFormatError("Each guide item must have a question property")


def _has_question(item: Any) -> bool:
    if isinstance(item, GuideQuestion):
        return bool(item.question)
    if isinstance(item, Mapping):
        return bool(item.get("question"))
    return False


def parse_guide_text(guide_text: str) -> List[GuideQuestion]:
    """
    Parse a free-text discussion guide.

    Section headers set the current theme; bulleted and numbered items
    become questions under it. Prose lines are ignored, so text without
    recognizable structure yields an empty list.

    Example:
        A. Warm-up
        * Please introduce yourself.

        ->  [GuideQuestion(theme="Warm-up", question="Please introduce yourself.")]
    """
    questions: List[GuideQuestion] = []
    current_theme = DEFAULT_THEME

    for line in guide_text.split("\n"):
        line_stripped = line.strip()

        # Skip empty lines
        if not line_stripped:
            continue

        header_match = SECTION_HEADER_RE.match(line_stripped)
        if header_match:
            current_theme = header_match.group(2).strip()
            continue

        bullet_match = BULLET_RE.match(line_stripped)
        numbered_match = NUMBERED_ITEM_RE.match(line_stripped)
        if not bullet_match and not numbered_match:
            continue

        # Bullet wins when a line matches both
        candidate = (bullet_match or numbered_match).group(1).strip()

        if _is_boilerplate(candidate):
            logger.debug("Skipping boilerplate item: %s", candidate)
            continue
        if len(candidate) <= MIN_QUESTION_LENGTH:
            logger.debug("Skipping short item: %s", candidate)
            continue

        questions.append(GuideQuestion(theme=current_theme, question=candidate))

    return questions


def parse_guide(guide: GuideInput) -> List[GuideQuestion]:
    """
    Parse a guide into ordered ``GuideQuestion`` entries.

    Args:
        guide: A list of ``{theme, question}`` items (mappings or
            GuideQuestion) or the raw guide text

    Returns:
        Questions in discovery order; missing themes become "General"

    Raises:
        GuideFormatError: guide is neither a question list nor a string
    """
    if isinstance(guide, str):
        questions = parse_guide_text(guide)
        logger.info("Parsed %d questions from guide text", len(questions))
        return questions

    if isinstance(guide, (list, tuple)) and guide and _has_question(guide[0]):
        return [_coerce_item(item) for item in guide]

    raise GuideFormatError(
        "Invalid guide format. Must be an array of {theme, question} objects or a string"
    )


def parse_guide_file(path: Union[str, Path]) -> List[GuideQuestion]:
    """
    Parse a UTF-8 guide file.

    Raises:
        FileNotFoundError: the file does not exist
    """
    guide_path = Path(path)
    if not guide_path.exists():
        raise FileNotFoundError(f"Guide file not found: {path}")

    return parse_guide(guide_path.read_text(encoding="utf-8"))
