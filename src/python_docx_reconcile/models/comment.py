"""
Comment records read from the rendered document and their placements.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CommentRecord:
    """A reviewer comment from the comments part.

    Attributes:
        id: Comment identifier shared with the range markers
        author: Comment author, "Unknown" when the attribute is missing
        date: Date portion (YYYY-MM-DD) of the comment timestamp, may be empty
        text: Comment body, paragraphs joined with a space
    """

    id: str
    author: str
    date: str
    text: str

    @property
    def marker(self) -> str:
        """The inline comment annotation for this comment."""
        return f"{{>>{self.author}: {self.text}<<}}"


@dataclass(frozen=True)
class PlacedComment:
    """The resolved insertion point of one comment.

    Attributes:
        comment_id: Identifier of the placed comment
        position: Offset in the buffer where the comment marker goes
        anchor_text: Buffer text to wrap as the marked span, or None
        anchor_end: Offset one past the marked span, or None
        strategy: Name of the strategy that produced the position
    """

    comment_id: str
    position: int
    anchor_text: str | None = None
    anchor_end: int | None = None
    strategy: str = ""

    @property
    def has_span(self) -> bool:
        """True when the placement wraps an anchor span."""
        return self.anchor_text is not None and self.anchor_end is not None
