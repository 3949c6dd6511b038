"""
Word-level diffing that renders differences as annotations.

The key components:
1. Tokenizer - splits text into words, whitespace, and punctuation tokens
2. DiffSegment - one equal, inserted, deleted or substituted run of text
3. diff_words() - produces segments from two texts
4. render_segments() - writes segments using the annotation grammar

Placeholder tokens produced by the protect step are plain word characters,
so each one is always a single token and is never split by the diff.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from difflib import SequenceMatcher
from enum import Enum

logger = logging.getLogger(__name__)

# Tokenizer pattern:
# - \s+ : whitespace runs
# - [\w]+(?:['\u2019\u2018\-][\w]+)* : word tokens, including hyphenated/apostrophe words
# - [^\w\s] : single punctuation characters
TOKENIZER_PATTERN = re.compile(r"(\s+|[\w]+(?:['\u2019\u2018\-][\w]+)*|[^\w\s])")


def tokenize(text: str) -> list[str]:
    """Tokenize text into words, whitespace, and punctuation tokens.

    Args:
        text: The text to tokenize

    Returns:
        List of tokens preserving the original text when joined

    Example:
        >>> tokenize("non-disclosure, party's")
        ['non-disclosure', ',', ' ', "party's"]
    """
    return TOKENIZER_PATTERN.findall(text)


def is_whitespace_token(token: str) -> bool:
    """Check if a token is whitespace-only."""
    return token.isspace()


class SegmentType(Enum):
    """Kinds of diff segments."""

    EQUAL = "equal"
    INSERT = "insert"
    DELETE = "delete"
    REPLACE = "replace"


@dataclass
class DiffSegment:
    """A run of text with its diff classification.

    Attributes:
        type: Segment kind
        old_text: Text from the first input (empty for insertions)
        new_text: Text from the second input (empty for deletions)
    """

    type: SegmentType
    old_text: str = ""
    new_text: str = ""


def diff_words(old_text: str, new_text: str) -> list[DiffSegment]:
    """Compute a word-level diff between two texts.

    Whitespace-only differences are suppressed (the old whitespace is kept)
    unless they sit next to a content change.

    Args:
        old_text: Canonical text
        new_text: Rendered text

    Returns:
        Segments in order; joining each segment's surviving text rebuilds
        new_text apart from suppressed whitespace differences
    """
    old_tokens = tokenize(old_text)
    new_tokens = tokenize(new_text)

    matcher = SequenceMatcher(None, old_tokens, new_tokens, autojunk=False)
    opcodes = matcher.get_opcodes()

    segments: list[DiffSegment] = []
    for index, (tag, i1, i2, j1, j2) in enumerate(opcodes):
        deleted = "".join(old_tokens[i1:i2])
        inserted = "".join(new_tokens[j1:j2])

        if tag == "equal":
            segments.append(DiffSegment(SegmentType.EQUAL, deleted, inserted))
            continue

        whitespace_only = all(is_whitespace_token(t) for t in old_tokens[i1:i2]) and all(
            is_whitespace_token(t) for t in new_tokens[j1:j2]
        )
        if whitespace_only and not _next_to_change(opcodes, index):
            segments.append(DiffSegment(SegmentType.EQUAL, deleted, deleted))
            continue

        if tag == "delete":
            segments.append(DiffSegment(SegmentType.DELETE, old_text=deleted))
        elif tag == "insert":
            segments.append(DiffSegment(SegmentType.INSERT, new_text=inserted))
        else:
            segments.append(DiffSegment(SegmentType.REPLACE, deleted, inserted))

    return _merge_equal(segments)


def _next_to_change(opcodes: list[tuple[str, int, int, int, int]], index: int) -> bool:
    """Return True if the opcode at index borders another non-equal opcode."""
    before = index > 0 and opcodes[index - 1][0] != "equal"
    after = index < len(opcodes) - 1 and opcodes[index + 1][0] != "equal"
    return before or after


def _merge_equal(segments: list[DiffSegment]) -> list[DiffSegment]:
    merged: list[DiffSegment] = []
    for segment in segments:
        if merged and segment.type == SegmentType.EQUAL and merged[-1].type == SegmentType.EQUAL:
            merged[-1] = DiffSegment(
                SegmentType.EQUAL,
                merged[-1].old_text + segment.old_text,
                merged[-1].new_text + segment.new_text,
            )
        else:
            merged.append(segment)
    return merged


def _wrap(text: str, opening: str, closing: str) -> str:
    """Wrap the non-whitespace core of text, leaving edge whitespace outside."""
    core = text.strip()
    if not core:
        return text
    lead = text[: len(text) - len(text.lstrip())]
    trail = text[len(text.rstrip()) :]
    return f"{lead}{opening}{core}{closing}{trail}"


def render_segments(segments: list[DiffSegment]) -> str:
    """Render diff segments with insertion, deletion and substitution markup.

    Example:
        >>> render_segments(diff_words("Text A.", "Text A, modified."))
        'Text A{++, modified++}.'
    """
    parts: list[str] = []
    for segment in segments:
        if segment.type == SegmentType.EQUAL:
            parts.append(segment.old_text)
        elif segment.type == SegmentType.INSERT:
            parts.append(_wrap(segment.new_text, "{++", "++}"))
        elif segment.type == SegmentType.DELETE:
            parts.append(_wrap(segment.old_text, "{--", "--}"))
        else:
            old_core = segment.old_text.strip()
            new_core = segment.new_text.strip()
            if not old_core:
                parts.append(_wrap(segment.new_text, "{++", "++}"))
            elif not new_core:
                parts.append(_wrap(segment.old_text, "{--", "--}"))
            else:
                lead = segment.old_text[: len(segment.old_text) - len(segment.old_text.lstrip())]
                trail = segment.new_text[len(segment.new_text.rstrip()) :]
                parts.append(f"{lead}{{~~{old_core}~>{new_core}~~}}{trail}")
    return "".join(parts)


def annotate_diff(old_text: str, new_text: str) -> str:
    """Diff two texts and render the result as annotated text."""
    return render_segments(diff_words(old_text, new_text))
