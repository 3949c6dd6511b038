"""
Result classes for reconciliation operations.

This module provides result types that carry the produced text together
with the counts and messages callers need to report what happened.
"""

from dataclasses import dataclass, field

from .criticmarkup import AnnotationCounts
from .models.comment import PlacedComment
from .models.paragraph import ParagraphAlignment, Verdict


@dataclass
class PlacementResult:
    """Result of placing a list of comments.

    Attributes:
        text: Buffer with comment markers inserted
        placements: Placements that were applied, in comment order
        unmatched: Number of comments that could not be placed
        duplicates: One message per anchor that occurred more than once
    """

    text: str
    placements: list[PlacedComment] = field(default_factory=list)
    unmatched: int = 0
    duplicates: list[str] = field(default_factory=list)

    @property
    def placed(self) -> int:
        """Number of comments inserted."""
        return len(self.placements)

    def __str__(self) -> str:
        """Get string representation of the result."""
        msg = f"Placed {self.placed} comment(s)"
        if self.unmatched:
            msg += f", {self.unmatched} unmatched"
        if self.duplicates:
            msg += f", {len(self.duplicates)} ambiguous anchor(s)"
        return msg


@dataclass
class ReconcileResult:
    """Result of reconciling source paragraphs against rendered paragraphs.

    Attributes:
        text: Annotated text
        alignments: One alignment per source paragraph, then one per
            inserted rendered paragraph
        images_matched: Rendered images paired with source images
        tables_matched: Rendered tables paired with source tables
    """

    text: str
    alignments: list[ParagraphAlignment] = field(default_factory=list)
    images_matched: int = 0
    tables_matched: int = 0

    def count(self, verdict: Verdict) -> int:
        """Number of paragraphs with the given verdict."""
        return sum(1 for a in self.alignments if a.verdict == verdict)

    def __str__(self) -> str:
        """Get string representation of the result."""
        return ", ".join(f"{self.count(v)} {v.value}" for v in Verdict)


@dataclass
class ConversionResult:
    """Result of converting converter track-change spans to annotations.

    Attributes:
        text: Converted text
        insertions: Number of insertion spans converted
        deletions: Number of deletion spans converted
    """

    text: str
    insertions: int = 0
    deletions: int = 0

    @property
    def has_changes(self) -> bool:
        """True when any tracked change was found."""
        return self.insertions + self.deletions > 0

    def __str__(self) -> str:
        """Get string representation of the result."""
        return f"Converted {self.insertions} insertions, {self.deletions} deletions"


@dataclass
class RestoreResult:
    """Result of restoring cross-references or images from the registry.

    Attributes:
        text: Text with references restored
        restored: Number of references or images restored
        messages: One line per restoration, for reporting
    """

    text: str
    restored: int = 0
    messages: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        """Get string representation of the result."""
        return f"Restored {self.restored} reference(s)"


@dataclass
class ImportStats:
    """Statistics for one import.

    Attributes:
        annotations: Annotation counts in the final text
        comments_placed: Comments inserted into the text
        comments_unmatched: Comments that could not be placed
        tracked_insertions: Insertion spans found in the rendered text
        tracked_deletions: Deletion spans found in the rendered text
        crossrefs_restored: Rendered references turned back into labels
        images_restored: Rendered images turned back into registry images
    """

    annotations: AnnotationCounts = field(default_factory=AnnotationCounts)
    comments_placed: int = 0
    comments_unmatched: int = 0
    tracked_insertions: int = 0
    tracked_deletions: int = 0
    crossrefs_restored: int = 0
    images_restored: int = 0

    def __str__(self) -> str:
        """Get string representation of the statistics."""
        lines = [
            f"Annotations: {self.annotations}",
            f"Comments: {self.comments_placed} placed, {self.comments_unmatched} unmatched",
        ]
        if self.tracked_insertions or self.tracked_deletions:
            lines.append(
                f"Track changes: {self.tracked_insertions} insertions, "
                f"{self.tracked_deletions} deletions"
            )
        if self.crossrefs_restored or self.images_restored:
            lines.append(
                f"Restored: {self.crossrefs_restored} cross-references, "
                f"{self.images_restored} images"
            )
        return "\n".join(lines)


@dataclass
class ImportResult:
    """Result of importing a reviewed document.

    Attributes:
        text: Annotated markdown
        stats: Import statistics
        placement: Comment placement details, None when there were no comments
        messages: Warnings and restoration notes, in the order they occurred
    """

    text: str
    stats: ImportStats = field(default_factory=ImportStats)
    placement: PlacementResult | None = None
    messages: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        """Get string representation of the result."""
        return str(self.stats)
