"""
Anchor records and the text nodes they are computed from.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TextNode:
    """A text-bearing element of the main document part.

    Attributes:
        text: Decoded text contributed to the plain-text stream
        markup_index: Position of the element in document (storage) order
        text_start: Offset of the first character in the plain text
        text_end: Offset one past the last character in the plain text
    """

    text: str
    markup_index: int
    text_start: int
    text_end: int


@dataclass(frozen=True)
class AnchorRecord:
    """Where a reviewer comment was attached in the rendered document.

    A point comment (an empty selection) has an empty ``anchor_text`` and
    ``is_empty`` set, but still carries ``document_position`` so it can be
    placed by position or by context.

    Attributes:
        anchor_text: Selected text, including tracked deletions inside the range
        before: Plain-text context preceding the anchor
        after: Plain-text context following the anchor
        document_position: Plain-text offset of the start of the range
        document_length: Length of the full plain text
        is_empty: True for a zero-length selection
    """

    anchor_text: str
    before: str
    after: str
    document_position: int
    document_length: int
    is_empty: bool = False
