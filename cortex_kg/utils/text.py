"""
Text helpers shared by ingestion and the graph store.
"""

from __future__ import annotations

import re

FILE_PLACEHOLDER_PREFIX = "[File:"

_AI_GENERATED_PREFIX_RE = re.compile(r"^\[AI-Generated Content based on:.*?\]\n\n")


def clean_label(name: str, max_length: int = 180) -> str:
    """Trim whitespace and truncate to a storable label."""
    return name.strip()[:max_length]


def strip_generated_prefix(content: str) -> str:
    """Remove the marker placed in front of generated stand-in content."""
    return _AI_GENERATED_PREFIX_RE.sub("", content, count=1)


def is_processable(content: str | None, min_length: int = 20) -> bool:
    """
    Whether document content is worth extracting into the graph.

    Placeholder content (metadata stored when text extraction failed) and very
    short content are skipped.
    """
    if not content:
        return False
    if content.startswith(FILE_PLACEHOLDER_PREFIX):
        return False
    return len(content) >= min_length
