"""
Guide - Discussion Guide Parsing

Turns a discussion guide into the ordered, themed questions that drive
retrieval. Output order is guide order.
"""

from .guide_parser import (
    BOILERPLATE_KEYWORDS,
    parse_guide,
    parse_guide_file,
    parse_guide_text,
)

__all__ = [
    "BOILERPLATE_KEYWORDS",
    "parse_guide",
    "parse_guide_file",
    "parse_guide_text",
]
