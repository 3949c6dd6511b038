"""
Comment placement: insert reviewer comments into an annotated text buffer.

Placement happens in two phases. First every comment gets a PlacedComment:
a buffer offset and, when the anchor text was found, the span to mark.
Then the placements are applied from the last offset to the first, so an
insertion never shifts an offset that has not been applied yet.

A comment is placed by one of:

- position interpolation, when the caller knows which section of the
  rendered document the buffer corresponds to (``position+text``,
  ``position+partial`` or ``position-only``)
- the anchor locator, with context scoring when the anchor occurs more
  than once

A comment that cannot be placed is counted as unmatched and left out.

Example:
    >>> comments = [CommentRecord("0", "Ana", "2024-01-02", "Cite this")]
    >>> anchors = {"0": AnchorRecord("results", "", "", 0, 0)}
    >>> place_comments("The results hold.", comments, anchors).text
    'The {>>Ana: Cite this<<}[results]{marked} hold.'
"""

from __future__ import annotations

import logging

from .config import DEFAULT_SETTINGS, ReconcileSettings
from .constants import MARKED_ATTRIBUTE
from .criticmarkup import contains_delimiter
from .locator import SearchText, locate
from .models.anchor import AnchorRecord
from .models.comment import CommentRecord, PlacedComment
from .normalization import search_form
from .results import PlacementResult
from .sections import SectionBoundary

logger = logging.getLogger(__name__)


def interpolate_position(
    document_position: int,
    boundary: SectionBoundary,
    buffer_length: int,
) -> int | None:
    """Map a rendered-document offset proportionally onto a buffer.

    Args:
        document_position: Plain-text offset in the rendered document
        boundary: The rendered section the buffer corresponds to
        buffer_length: Length of the buffer

    Returns:
        Buffer offset, or None for an empty section
    """
    section_length = boundary.end - boundary.start
    if section_length <= 0:
        return None
    relative = max(0, document_position - boundary.start)
    proportion = min(relative / section_length, 1.0)
    return int(proportion * buffer_length)


def snap_to_word_boundary(text: str, position: int, window: int = 50) -> int:
    """Move a position forward to the next space within a small window.

    The window is centered on the position; the first space at or after its
    center wins. The position is unchanged when there is none.
    """
    half = window // 2
    start = max(0, position - half)
    chunk = text[start : min(len(text), position + half)]
    space = chunk.find(" ", half)
    if space != -1 and space < window:
        return start + space
    return position


def _place_by_position(
    comment: CommentRecord,
    anchor: AnchorRecord,
    text: str,
    folded: str,
    boundary: SectionBoundary,
    settings: ReconcileSettings,
) -> PlacedComment | None:
    target = interpolate_position(anchor.document_position, boundary, len(text))
    if target is None:
        return None
    position = snap_to_word_boundary(text, target, settings.snap_window)

    if anchor.anchor_text and not anchor.is_empty:
        window_start = max(0, position - settings.local_search_window)
        window_end = min(len(text), position + settings.local_search_window)
        local = folded[window_start:window_end]

        needle = search_form(anchor.anchor_text)
        index = local.find(needle)
        if index != -1:
            start = window_start + index
            end = start + len(needle)
            return PlacedComment(comment.id, start, text[start:end], end, "position+text")

        words = " ".join(anchor.anchor_text.split()[:4])
        if len(words) >= 10:
            needle = search_form(words)
            index = local.find(needle)
            if index != -1:
                start = window_start + index
                end = start + len(needle)
                return PlacedComment(comment.id, start, text[start:end], end, "position+partial")

    return PlacedComment(comment.id, position, strategy="position-only")


def _context_words(context: str, min_len: int) -> list[str]:
    return [word for word in search_form(context).split() if len(word) > min_len]


def score_candidate(
    folded: str,
    start: int,
    end: int,
    before: str,
    after: str,
    settings: ReconcileSettings = DEFAULT_SETTINGS,
) -> int:
    """Score how well the context around a candidate span matches.

    Each context keyword (longer than ``context_keyword_min_len``) found in
    the window on its side adds ``context_keyword_bonus``; the verbatim
    ``context_exact_chars`` nearest the anchor add ``context_exact_bonus``.

    Args:
        folded: Search form of the buffer
        start: Candidate start offset
        end: Candidate end offset
        before: Context preceding the anchor in the rendered document
        after: Context following the anchor in the rendered document
        settings: Scoring weights

    Returns:
        Integer score, higher is better
    """
    score = 0
    if before:
        window = folded[max(0, start - len(before) - settings.context_slack) : start]
        for word in _context_words(before, settings.context_keyword_min_len):
            if word in window:
                score += settings.context_keyword_bonus
        if search_form(before[-settings.context_exact_chars :]) in window:
            score += settings.context_exact_bonus
    if after:
        window = folded[end : end + len(after) + settings.context_slack]
        for word in _context_words(after, settings.context_keyword_min_len):
            if word in window:
                score += settings.context_keyword_bonus
        if search_form(after[: settings.context_exact_chars]) in window:
            score += settings.context_exact_bonus
    return score


def choose_candidate(
    spans: list[tuple[int, int]],
    folded: str,
    before: str,
    after: str,
    used: set[int],
    settings: ReconcileSettings = DEFAULT_SETTINGS,
) -> tuple[int, int]:
    """Pick one of several candidate spans and claim it.

    Candidates already claimed by an earlier comment are skipped. The best
    context score wins and ties go to the earliest offset. When every
    candidate is claimed, the first one is reused.

    Args:
        spans: Candidate (start, end) spans in buffer order
        folded: Search form of the buffer
        before: Context preceding the anchor
        after: Context following the anchor
        used: Offsets claimed so far in this placement run; updated in place
        settings: Scoring weights

    Returns:
        The chosen (start, end) span
    """
    best = next((span for span in spans if span[0] not in used), spans[0])
    best_score = -1
    for span in spans:
        if span[0] in used:
            continue
        score = score_candidate(folded, span[0], span[1], before, after, settings)
        if score > best_score or (score == best_score and span[0] < best[0]):
            best_score = score
            best = span
    used.add(best[0])
    return best


def apply_placements(text: str, placements: list[PlacedComment], markers: dict[str, str]) -> str:
    """Insert comment markers into text from the last offset to the first.

    A placement with a span replaces it by the marker followed by the
    marked span. A span that contains annotation delimiters, or that runs
    into a position already written, is not wrapped; its marker is inserted
    on its own instead. A marker inserted on its own is separated from a
    preceding word by a space.

    Args:
        text: Buffer to insert into
        placements: Placements in any order
        markers: Marker text by comment id

    Returns:
        Buffer with every marker inserted
    """
    result = text
    floor = len(text)
    for placement in sorted(placements, key=lambda p: p.position, reverse=True):
        marker = markers[placement.comment_id]
        position = placement.position
        end = placement.anchor_end

        if placement.has_span and end <= floor and not contains_delimiter(result[position:end]):
            span = result[position:end]
            result = f"{result[:position]}{marker}[{span}]{MARKED_ATTRIBUTE}{result[end:]}"
        else:
            if position > 0 and not result[position - 1].isspace():
                marker = " " + marker
            result = result[:position] + marker + result[position:]
        floor = position
    return result


def place_comments(
    text: str,
    comments: list[CommentRecord],
    anchors: dict[str, AnchorRecord],
    section_boundary: SectionBoundary | None = None,
    settings: ReconcileSettings = DEFAULT_SETTINGS,
    quiet: bool = False,
) -> PlacementResult:
    """Place every comment into text.

    Args:
        text: Buffer (typically the annotated markdown)
        comments: Comments in the order they were extracted
        anchors: Anchor records by comment id
        section_boundary: Rendered-document section the buffer corresponds
            to; enables position interpolation
        settings: Locator and scoring parameters
        quiet: Log unmatched and ambiguous comments at debug level

    Returns:
        PlacementResult with the updated text and counts
    """
    search = SearchText(text)
    used: set[int] = set()
    placements: list[PlacedComment] = []
    duplicates: list[str] = []
    unmatched = 0

    for comment in comments:
        anchor = anchors.get(comment.id)
        if anchor is None:
            unmatched += 1
            continue

        if section_boundary is not None:
            placed = _place_by_position(
                comment, anchor, text, search.folded, section_boundary, settings
            )
            if placed is not None:
                placements.append(placed)
                continue

        result = locate(anchor.anchor_text, search, anchor.before, anchor.after, settings)
        if not result.found:
            unmatched += 1
            logger.debug("Comment %s: no strategy located its anchor", comment.id)
            continue

        if len(result.spans) == 1:
            start, end = result.spans[0]
        else:
            if result.resolved_anchor:
                shown = result.resolved_anchor[:40]
                if len(result.resolved_anchor) > 40:
                    shown += "..."
                duplicates.append(f'"{shown}" appears {len(result.spans)} times')
            start, end = choose_candidate(
                result.spans, search.folded, anchor.before, anchor.after, used, settings
            )

        if result.resolved_anchor is not None and end > start:
            placements.append(
                PlacedComment(comment.id, start, text[start:end], end, result.strategy)
            )
        else:
            placements.append(PlacedComment(comment.id, start, strategy=result.strategy))

    markers = {comment.id: comment.marker for comment in comments}
    placed_text = apply_placements(text, placements, markers)

    log = logger.debug if quiet else logger.warning
    if unmatched:
        log("%d comment(s) could not be matched to anchor text", unmatched)
    if duplicates:
        log(
            "Duplicate anchor text found (using context and tie-breaks for placement): %s",
            "; ".join(duplicates),
        )

    return PlacementResult(placed_text, placements, unmatched, duplicates)
