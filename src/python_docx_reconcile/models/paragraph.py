"""
Paragraph alignment results from reconciliation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Verdict(Enum):
    """What happened to a paragraph between source and rendered text."""

    UNCHANGED = "unchanged"
    MODIFIED = "modified"
    DELETED = "deleted"
    INSERTED = "inserted"


@dataclass(frozen=True)
class ParagraphAlignment:
    """Pairing of one source paragraph with a rendered paragraph.

    Inserted paragraphs have no source paragraph, so ``source_index`` is None
    for them; deleted and retained-heading paragraphs have no rendered index.

    Attributes:
        source_index: Index of the canonical paragraph, None for insertions
        rendered_index: Index of the paired rendered paragraph, if any
        verdict: Outcome for the paragraph
        score: Similarity score of the pairing (0 when unpaired)
    """

    source_index: int | None
    rendered_index: int | None
    verdict: Verdict
    score: float = 0.0
