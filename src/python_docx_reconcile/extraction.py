"""
Entity extraction from a reviewed .docx package.

Reads the main document part and the comments part and produces:

- the plain text of the document (every ``w:t`` in storage order)
- one AnchorRecord per comment range, with surrounding context and the
  plain-text offset where the range starts
- the reviewer comments themselves
- the document's tables as cell grids

Positions of comment markers are expressed as indices in document order
(the order ``lxml`` iterates the tree, which is the order the elements are
stored in the part). A marker index is mapped to a plain-text offset by
finding the first text node at or after it.

Example:
    >>> result = extract_entities("reviewed.docx")
    >>> result.anchors["0"].anchor_text
    'the selected words'
"""

from __future__ import annotations

import bisect
import logging
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from lxml import etree

from .config import DEFAULT_SETTINGS, ReconcileSettings
from .constants import COMMENTS_PART, DOCUMENT_PART, w
from .errors import MissingEndMarkerWarning
from .models.anchor import AnchorRecord, TextNode
from .models.comment import CommentRecord
from .models.table import TableGrid
from .package import OOXMLPackage
from .tables import extract_tables

logger = logging.getLogger(__name__)

PackageSource = str | Path | BinaryIO | bytes | OOXMLPackage

# Sentence start inside the preceding window: terminal punctuation, whitespace,
# then an upper-case letter and the rest of that sentence up to the anchor.
_SENTENCE_START = re.compile(r"[.!?]\s+[A-Z][^.!?]*$")
_SENTENCE_END = re.compile(r"[.!?]\s")


@dataclass
class ExtractionResult:
    """Everything extracted from one rendered document.

    Attributes:
        full_text: Concatenated text of every text node
        anchors: Comment id to AnchorRecord
        comments: Comments in comments-part order
        tables: Tables in document order
        nodes: The text nodes full_text was built from
        warnings: Partial-data problems encountered during extraction
    """

    full_text: str = ""
    anchors: dict[str, AnchorRecord] = field(default_factory=dict)
    comments: list[CommentRecord] = field(default_factory=list)
    tables: list[TableGrid] = field(default_factory=list)
    nodes: list[TextNode] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _as_package(source: PackageSource) -> OOXMLPackage:
    if isinstance(source, OOXMLPackage):
        return source
    return OOXMLPackage.open(source)


def collect_text_nodes(root: etree._Element) -> list[TextNode]:
    """Collect every ``w:t`` element with its document-order index and text span.

    Args:
        root: Root element of the main document part

    Returns:
        Text nodes in storage order; their texts concatenate to the full text
    """
    nodes: list[TextNode] = []
    offset = 0
    for index, element in enumerate(root.iter()):
        if element.tag != w("t"):
            continue
        text = element.text or ""
        nodes.append(TextNode(text, index, offset, offset + len(text)))
        offset += len(text)
    return nodes


def markup_to_text_offset(nodes: list[TextNode], markup_index: int) -> int:
    """Map a document-order element index to a plain-text offset.

    Returns the start offset of the first text node at or after the index.
    An index before every node maps to 0 and an index after the last node
    maps to the end of the text.

    Args:
        nodes: Text nodes from collect_text_nodes()
        markup_index: Document-order index of a marker element

    Returns:
        Plain-text offset
    """
    if not nodes:
        return 0
    keys = [node.markup_index for node in nodes]
    position = bisect.bisect_left(keys, markup_index)
    if position >= len(nodes):
        return nodes[-1].text_end
    return nodes[position].text_start


def context_before(
    text: str, position: int, window: int = 150, fallback: int = 80
) -> str:
    """Return the context preceding a position, trimmed to a sentence start.

    Args:
        text: Full plain text
        position: Offset the context ends at
        window: Characters examined before the position
        fallback: Characters kept when no sentence start is in the window

    Returns:
        Trimmed context string
    """
    chunk = text[max(0, position - window) : position]
    match = _SENTENCE_START.search(chunk)
    if match:
        return chunk[match.start() + 1 :].strip()
    return chunk[-fallback:].strip() if fallback else ""


def context_after(text: str, position: int, window: int = 150, fallback: int = 80) -> str:
    """Return the context following a position, trimmed to a sentence end.

    Args:
        text: Full plain text
        position: Offset the context starts at
        window: Characters examined after the position
        fallback: Characters kept when no sentence end is in the window

    Returns:
        Trimmed context string
    """
    chunk = text[position : position + window]
    match = _SENTENCE_END.search(chunk)
    if match:
        return chunk[: match.start() + 1].strip()
    return chunk[:fallback].strip()


def _first_markers(root: etree._Element, tag: str) -> dict[str, int]:
    """Index markers of one kind by comment id, keeping the first occurrence."""
    markers: dict[str, int] = {}
    for index, element in enumerate(root.iter()):
        if element.tag != tag:
            continue
        comment_id = element.get(w("id"))
        if comment_id is None:
            continue
        if comment_id in markers:
            logger.debug(
                "Ignoring duplicate %s for comment %s", etree.QName(tag).localname, comment_id
            )
            continue
        markers[comment_id] = index
    return markers


def _range_text(elements: list[etree._Element], start: int, end: int) -> str:
    """Concatenate ``w:t`` and ``w:delText`` between two document-order indices."""
    pieces: list[str] = []
    for element in elements[start + 1 : end]:
        if element.tag in (w("t"), w("delText")):
            pieces.append(element.text or "")
    return "".join(pieces)


def extract_comment_anchors(
    source: PackageSource,
    settings: ReconcileSettings = DEFAULT_SETTINGS,
    problems: list[str] | None = None,
) -> tuple[str, dict[str, AnchorRecord]]:
    """Extract the plain text and the anchor of every comment range.

    A range with a start marker but no end marker is skipped with a
    warning. A range whose end marker does not follow its start marker, or
    whose selection contains no text, is a point comment.

    Args:
        source: The .docx file, its bytes, a stream or an opened package
        settings: Context window sizes
        problems: Optional list that receives partial-data messages

    Returns:
        Tuple of (full plain text, comment id to AnchorRecord)

    Raises:
        PackageError: If the package cannot be opened or parsed
    """
    package = _as_package(source)
    root = package.get_part(DOCUMENT_PART)
    if root is None:
        message = f"{package.name}: missing {DOCUMENT_PART}"
        logger.warning(message)
        if problems is not None:
            problems.append(message)
        return "", {}

    elements = list(root.iter())
    nodes = collect_text_nodes(root)
    full_text = "".join(node.text for node in nodes)
    starts = _first_markers(root, w("commentRangeStart"))
    ends = _first_markers(root, w("commentRangeEnd"))

    anchors: dict[str, AnchorRecord] = {}
    for comment_id, start_index in starts.items():
        end_index = ends.get(comment_id)
        if end_index is None:
            message = f"Comment {comment_id} has no end marker; skipped"
            logger.warning(message)
            warnings.warn(message, MissingEndMarkerWarning, stacklevel=2)
            if problems is not None:
                problems.append(message)
            continue

        position = markup_to_text_offset(nodes, start_index)
        if end_index <= start_index:
            anchor_text = ""
            end_position = position
        else:
            anchor_text = _range_text(elements, start_index, end_index).strip()
            end_position = max(position, markup_to_text_offset(nodes, end_index))

        anchors[comment_id] = AnchorRecord(
            anchor_text=anchor_text,
            before=context_before(
                full_text, position, settings.context_window, settings.context_fallback
            ),
            after=context_after(
                full_text, end_position, settings.context_window, settings.context_fallback
            ),
            document_position=position,
            document_length=len(full_text),
            is_empty=not anchor_text,
        )

    logger.debug("Extracted %d comment anchor(s) from %s", len(anchors), package.name)
    return full_text, anchors


def extract_comments(source: PackageSource) -> list[CommentRecord]:
    """Read the reviewer comments from the comments part.

    Args:
        source: The .docx file, its bytes, a stream or an opened package

    Returns:
        Comments in the order they are stored; empty if there is no comments part

    Raises:
        PackageError: If the package cannot be opened or parsed
    """
    package = _as_package(source)
    root = package.get_part(COMMENTS_PART)
    if root is None:
        logger.debug("%s has no %s", package.name, COMMENTS_PART)
        return []

    comments: list[CommentRecord] = []
    for element in root.iter(w("comment")):
        paragraphs = []
        for paragraph in element.iter(w("p")):
            text = "".join(t.text or "" for t in paragraph.iter(w("t")))
            if text.strip():
                paragraphs.append(text.strip())
        comments.append(
            CommentRecord(
                id=element.get(w("id"), ""),
                author=element.get(w("author")) or "Unknown",
                date=(element.get(w("date")) or "")[:10],
                text=" ".join(paragraphs).strip(),
            )
        )
    return comments


def extract_entities(
    source: PackageSource, settings: ReconcileSettings = DEFAULT_SETTINGS
) -> ExtractionResult:
    """Extract text, comment anchors, comments and tables in one pass.

    Args:
        source: The .docx file, its bytes, a stream or an opened package
        settings: Context window sizes

    Returns:
        ExtractionResult

    Raises:
        PackageError: If the package cannot be opened or parsed
    """
    package = _as_package(source)
    problems: list[str] = []
    full_text, anchors = extract_comment_anchors(package, settings, problems)
    root = package.get_part(DOCUMENT_PART)

    return ExtractionResult(
        full_text=full_text,
        anchors=anchors,
        comments=extract_comments(package),
        tables=extract_tables(root),
        nodes=collect_text_nodes(root) if root is not None else [],
        warnings=problems,
    )
