"""CriticMarkup grammar used for reconciled output.

This module provides:
1. Parsing annotated text into structured annotations
2. Accepted-text views with offset maps back to the annotated text
3. Annotation counts for import statistics

Grammar:
    - Insertion: {++inserted text++}
    - Deletion: {--deleted text--}
    - Substitution: {~~old~>new~~}
    - Comment: {>>author: comment text<<}
    - Marked comment anchor: [anchor text]{marked}

The converter's own highlight form ``[text]{.mark}`` is accepted wherever a
marked span is, so text produced by either side can be stripped.

See: http://criticmarkup.com/
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .constants import ANNOTATION_DELIMITERS


class AnnotationType(Enum):
    """Types of annotations in reconciled text."""

    INSERTION = "insertion"
    DELETION = "deletion"
    SUBSTITUTION = "substitution"
    COMMENT = "comment"
    MARKED = "marked"


@dataclass
class Annotation:
    """A single annotation found in text.

    Attributes:
        type: The kind of annotation
        text: Inserted, deleted, old (substitution), comment or marked text
        replacement: For substitutions, the new text
        position: Offset of the opening delimiter
        end_position: Offset one past the closing delimiter
        text_start: Offset of ``text`` inside the annotated string
    """

    type: AnnotationType
    text: str
    replacement: str | None = None
    position: int = 0
    end_position: int = 0
    text_start: int = 0


@dataclass
class AnnotationCounts:
    """Number of each annotation kind in a text.

    Attributes:
        insertions: Count of {++ ++}
        deletions: Count of {-- --}
        substitutions: Count of {~~ ~> ~~}
        comments: Count of {>> <<}
    """

    insertions: int = 0
    deletions: int = 0
    substitutions: int = 0
    comments: int = 0

    @property
    def total(self) -> int:
        """Sum of all annotation kinds."""
        return self.insertions + self.deletions + self.substitutions + self.comments

    def __str__(self) -> str:
        """Get string representation of the counts."""
        return (
            f"{self.insertions} insertions, {self.deletions} deletions, "
            f"{self.substitutions} substitutions, {self.comments} comments"
        )


# Individual patterns, exported for callers that rewrite one construct
INSERTION_PATTERN = re.compile(r"\{\+\+(.*?)\+\+\}", re.DOTALL)
DELETION_PATTERN = re.compile(r"\{--(.*?)--\}", re.DOTALL)
SUBSTITUTION_PATTERN = re.compile(r"\{~~(.*?)~>(.*?)~~\}", re.DOTALL)
COMMENT_PATTERN = re.compile(r"\{>>(.*?)<<\}", re.DOTALL)
MARKED_PATTERN = re.compile(r"\[([^\[\]]*)\]\{(?:marked|\.mark)\}")

# Single alternation so overlapping constructs are consumed left to right
_ANNOTATION_PATTERN = re.compile(
    r"\{\+\+(?P<ins>.*?)\+\+\}"
    r"|\{--(?P<del>.*?)--\}"
    r"|\{~~(?P<old>.*?)~>(?P<new>.*?)~~\}"
    r"|\{>>(?P<comment>.*?)<<\}"
    r"|\[(?P<marked>[^\[\]]*)\]\{(?:marked|\.mark)\}",
    re.DOTALL,
)


def parse_annotations(text: str) -> list[Annotation]:
    """Parse every annotation in text, in document order.

    Args:
        text: Annotated text

    Returns:
        List of Annotation objects sorted by position

    Example:
        >>> [a.type.value for a in parse_annotations("a {++b++} {>>R: c<<}")]
        ['insertion', 'comment']
    """
    annotations: list[Annotation] = []
    for match in _ANNOTATION_PATTERN.finditer(text):
        kind = match.lastgroup
        if kind == "new":
            # lastgroup reports the last closed group of the substitution
            kind = "old"

        if kind == "ins":
            annotations.append(
                Annotation(
                    AnnotationType.INSERTION,
                    match.group("ins"),
                    position=match.start(),
                    end_position=match.end(),
                    text_start=match.start("ins"),
                )
            )
        elif kind == "del":
            annotations.append(
                Annotation(
                    AnnotationType.DELETION,
                    match.group("del"),
                    position=match.start(),
                    end_position=match.end(),
                    text_start=match.start("del"),
                )
            )
        elif kind == "old":
            annotations.append(
                Annotation(
                    AnnotationType.SUBSTITUTION,
                    match.group("old"),
                    replacement=match.group("new"),
                    position=match.start(),
                    end_position=match.end(),
                    text_start=match.start("old"),
                )
            )
        elif kind == "comment":
            annotations.append(
                Annotation(
                    AnnotationType.COMMENT,
                    match.group("comment"),
                    position=match.start(),
                    end_position=match.end(),
                    text_start=match.start("comment"),
                )
            )
        else:
            annotations.append(
                Annotation(
                    AnnotationType.MARKED,
                    match.group("marked"),
                    position=match.start(),
                    end_position=match.end(),
                    text_start=match.start("marked"),
                )
            )
    return annotations


def accepted_view(text: str) -> tuple[str, list[int]]:
    """Build the accepted-changes view of annotated text with an offset map.

    Insertions and marked spans keep their text, deletions and comments are
    dropped, and substitutions keep their new text.

    Args:
        text: Annotated text

    Returns:
        Tuple of (view, offsets) where ``offsets[i]`` is the index in ``text``
        of character ``i`` of the view

    Example:
        >>> view, offsets = accepted_view("a {--b--}c")
        >>> view
        'a c'
        >>> offsets
        [0, 1, 9]
    """
    chars: list[str] = []
    offsets: list[int] = []
    cursor = 0

    def keep(start: int, end: int) -> None:
        chars.append(text[start:end])
        offsets.extend(range(start, end))

    for match in _ANNOTATION_PATTERN.finditer(text):
        keep(cursor, match.start())
        if match.group("ins") is not None:
            keep(match.start("ins"), match.end("ins"))
        elif match.group("old") is not None:
            keep(match.start("new"), match.end("new"))
        elif match.group("marked") is not None:
            keep(match.start("marked"), match.end("marked"))
        cursor = match.end()
    keep(cursor, len(text))

    return "".join(chars), offsets


def strip_annotations(text: str) -> str:
    """Return the accepted text, with every annotation resolved.

    Example:
        >>> strip_annotations("The {~~old~>new~~} text{>>R: note<<}")
        'The new text'
    """
    return accepted_view(text)[0]


def count_annotations(text: str) -> AnnotationCounts:
    """Count insertions, deletions, substitutions and comments in text."""
    counts = AnnotationCounts()
    for annotation in parse_annotations(text):
        if annotation.type == AnnotationType.INSERTION:
            counts.insertions += 1
        elif annotation.type == AnnotationType.DELETION:
            counts.deletions += 1
        elif annotation.type == AnnotationType.SUBSTITUTION:
            counts.substitutions += 1
        elif annotation.type == AnnotationType.COMMENT:
            counts.comments += 1
    return counts


def has_annotations(text: str) -> bool:
    """Return True if text contains any annotation."""
    return _ANNOTATION_PATTERN.search(text) is not None


def contains_delimiter(text: str) -> bool:
    """Return True if text contains any annotation delimiter."""
    return any(delimiter in text for delimiter in ANNOTATION_DELIMITERS)
