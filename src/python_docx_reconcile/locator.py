"""
Anchor location: find where a comment's selected text lives in a text buffer.

The buffer may differ from the rendered document the anchor came from:
whitespace may have been reflowed, annotations may split the anchor, the
reviewer may have edited inside it, or the selection may be empty. Each of
those cases is handled by one strategy, and the strategies are tried in a
fixed order until one finds something:

1. ``direct``: the anchor as a case-insensitive substring
2. ``normalized``: both sides with whitespace runs collapsed
3. ``stripped``: the buffer with annotations resolved to accepted text
4. ``partial-start``: the first 6 down to 3 words of a long anchor
5. ``context-both`` / ``context-before`` / ``context-after``: the position
   between the surrounding context strings
6. ``split-match``: a single distinctive word of the anchor
7. ``fuzzy``: best approximate alignment (only when enabled)

An empty anchor goes straight to the context strategies.

Every comparison uses a same-length search form of both strings, and every
derived view keeps an offset map, so all returned spans are offsets into the
raw buffer.

Example:
    >>> result = locate("quick fox", "The Quick fox and the quick fox.")
    >>> result.offsets, result.strategy
    ([4, 22], 'direct')
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from .config import DEFAULT_SETTINGS, ReconcileSettings
from .criticmarkup import accepted_view
from .errors import AnchorNotFoundError
from .normalization import collapse_whitespace, search_form

logger = logging.getLogger(__name__)

# Separators tried by the split-match strategy, in order
SPLIT_SEPARATORS = (" ", ", ", ". ", " - ", " – ")


@dataclass
class LocateResult:
    """Outcome of locating one anchor.

    Attributes:
        spans: Raw (start, end) offsets of every candidate, in buffer order;
            context strategies report zero-width spans
        resolved_anchor: The part of the anchor that actually matched, or
            None when the position came from context alone
        strategy: Name of the strategy that produced the spans
    """

    spans: list[tuple[int, int]] = field(default_factory=list)
    resolved_anchor: str | None = None
    strategy: str = "failed"

    @property
    def offsets(self) -> list[int]:
        """Start offset of every candidate."""
        return [start for start, _ in self.spans]

    @property
    def found(self) -> bool:
        """True when at least one candidate was found."""
        return bool(self.spans)

    def __str__(self) -> str:
        """Get string representation of the result."""
        if not self.spans:
            return "Anchor not found"
        return f"{len(self.spans)} candidate(s) via {self.strategy}: {self.offsets}"


class SearchText:
    """A buffer with the search views the strategies need.

    The case-folded form always has the buffer's length. The collapsed and
    accepted views are built on first use and carry offset maps back to the
    raw buffer.

    Args:
        raw: The buffer being searched
    """

    def __init__(self, raw: str) -> None:
        self.raw = raw
        self.folded = search_form(raw)
        self._collapsed: tuple[str, list[int]] | None = None
        self._accepted: tuple[str, list[int]] | None = None

    @property
    def collapsed(self) -> tuple[str, list[int]]:
        """Folded buffer with whitespace runs collapsed, plus offset map."""
        if self._collapsed is None:
            self._collapsed = collapse_whitespace(self.folded)
        return self._collapsed

    @property
    def accepted(self) -> tuple[str, list[int]]:
        """Folded buffer with annotations resolved, plus offset map."""
        if self._accepted is None:
            self._accepted = accepted_view(self.folded)
        return self._accepted


def find_all(haystack: str, needle: str) -> list[int]:
    """Return the start of every occurrence of needle, overlapping ones included."""
    if not needle:
        return []
    positions = []
    index = haystack.find(needle)
    while index != -1:
        positions.append(index)
        index = haystack.find(needle, index + 1)
    return positions


def _map_spans(starts: list[int], length: int, offsets: list[int]) -> list[tuple[int, int]]:
    """Translate view matches of a given length to raw spans via an offset map."""
    return [(offsets[s], offsets[s + length - 1] + 1) for s in starts]


def _find_in(text: SearchText, needle: str) -> list[tuple[int, int]]:
    return [(s, s + len(needle)) for s in find_all(text.folded, needle)]


def _find_accepted(text: SearchText, needle: str) -> list[tuple[int, int]]:
    view, offsets = text.accepted
    return _map_spans(find_all(view, needle), len(needle), offsets)


Strategy = Callable[[str, SearchText, str, str, ReconcileSettings], LocateResult | None]


def direct_match(
    anchor: str, text: SearchText, before: str, after: str, settings: ReconcileSettings
) -> LocateResult | None:
    """Strategy 1: the anchor as-is."""
    spans = _find_in(text, search_form(anchor))
    return LocateResult(spans, anchor, "direct") if spans else None


def normalized_match(
    anchor: str, text: SearchText, before: str, after: str, settings: ReconcileSettings
) -> LocateResult | None:
    """Strategy 2: whitespace runs collapsed on both sides."""
    needle = collapse_whitespace(search_form(anchor))[0].strip()
    view, offsets = text.collapsed
    spans = _map_spans(find_all(view, needle), len(needle), offsets)
    return LocateResult(spans, anchor, "normalized") if spans else None


def stripped_match(
    anchor: str, text: SearchText, before: str, after: str, settings: ReconcileSettings
) -> LocateResult | None:
    """Strategy 3: search the accepted text, ignoring annotation markup."""
    spans = _find_accepted(text, search_form(anchor))
    return LocateResult(spans, anchor, "stripped") if spans else None


def partial_start_match(
    anchor: str, text: SearchText, before: str, after: str, settings: ReconcileSettings
) -> LocateResult | None:
    """Strategy 4: the leading words of a long anchor.

    Tries the first ``truncation_max_words`` words down to
    ``truncation_min_words``, skipping any prefix shorter than
    ``truncation_min_chars``, against the raw then the accepted buffer.
    """
    words = anchor.split()
    if len(words) <= settings.truncation_min_words:
        return None

    longest = min(settings.truncation_max_words, len(words))
    for n in range(longest, settings.truncation_min_words - 1, -1):
        partial = " ".join(words[:n])
        if len(partial) < settings.truncation_min_chars:
            continue
        needle = search_form(partial)
        spans = _find_in(text, needle)
        if spans:
            return LocateResult(spans, partial, "partial-start")
        spans = _find_accepted(text, needle)
        if spans:
            return LocateResult(spans, partial, "partial-start-stripped")
    return None


def context_match(
    anchor: str, text: SearchText, before: str, after: str, settings: ReconcileSettings
) -> LocateResult | None:
    """Strategy 5: the position between the surrounding context strings.

    With both contexts, the tail of ``before`` must be followed by the head
    of ``after`` within ``context_max_gap`` characters. Otherwise a shorter
    tail of ``before`` (last occurrence) or head of ``after`` (first
    occurrence) is used alone. The result is a zero-width span.
    """
    haystack = text.folded

    if before and after:
        tail = search_form(before[-settings.context_both_chars :])
        head = search_form(after[: settings.context_both_chars])
        before_index = haystack.find(tail)
        if before_index != -1:
            search_start = before_index + len(tail)
            after_index = haystack.find(head, search_start)
            if after_index != -1 and after_index - search_start < settings.context_max_gap:
                return LocateResult([(search_start, search_start)], None, "context-both")

    if before:
        tail = search_form(before[-settings.context_single_chars :])
        before_index = haystack.rfind(tail)
        if before_index != -1:
            position = before_index + len(tail)
            return LocateResult([(position, position)], None, "context-before")

    if after:
        head = search_form(after[: settings.context_single_chars])
        after_index = haystack.find(head)
        if after_index != -1:
            return LocateResult([(after_index, after_index)], None, "context-after")

    return None


def split_match(
    anchor: str, text: SearchText, before: str, after: str, settings: ReconcileSettings
) -> LocateResult | None:
    """Strategy 6: one distinctive part of the anchor.

    Handles anchors that join old and new wording ("neophyte alien"). A part
    must be at least ``token_min_chars`` long and occur fewer than
    ``token_max_occurrences`` times.
    """
    for separator in SPLIT_SEPARATORS:
        if separator not in anchor:
            continue
        for part in anchor.split(separator):
            if len(part) < settings.token_min_chars:
                continue
            spans = _find_in(text, search_form(part))
            if 0 < len(spans) < settings.token_max_occurrences:
                return LocateResult(spans, part, "split-match")
    return None


def fuzzy_match(
    anchor: str, text: SearchText, before: str, after: str, settings: ReconcileSettings
) -> LocateResult | None:
    """Strategy 7: best approximate alignment, when ``fuzzy_threshold`` is set."""
    if settings.fuzzy_threshold is None:
        return None
    from .fuzzy import fuzzy_find

    found = fuzzy_find(text.folded, search_form(anchor), settings.fuzzy_threshold)
    if found is None:
        return None
    start, end, score = found
    logger.debug("Fuzzy anchor match at %d (similarity %.2f)", start, score)
    return LocateResult([(start, end)], text.raw[start:end], "fuzzy")


ANCHOR_STRATEGIES: tuple[Strategy, ...] = (
    direct_match,
    normalized_match,
    stripped_match,
    partial_start_match,
    context_match,
    split_match,
    fuzzy_match,
)


def locate(
    anchor: str,
    haystack: str | SearchText,
    before: str = "",
    after: str = "",
    settings: ReconcileSettings = DEFAULT_SETTINGS,
) -> LocateResult:
    """Locate an anchor in a buffer with the strategy cascade.

    Args:
        anchor: Selected text of the comment (may be empty)
        haystack: Buffer to search, or a prepared SearchText for repeated calls
        before: Context preceding the anchor in the rendered document
        after: Context following the anchor in the rendered document
        settings: Strategy parameters

    Returns:
        LocateResult; ``found`` is False when every strategy failed
    """
    text = haystack if isinstance(haystack, SearchText) else SearchText(haystack)

    if not anchor or not anchor.strip():
        result = context_match("", text, before, after, settings)
        return result or LocateResult(strategy="empty-anchor")

    anchor = anchor.strip()
    for strategy in ANCHOR_STRATEGIES:
        result = strategy(anchor, text, before, after, settings)
        if result is not None:
            logger.debug("Anchor %r located via %s at %s", anchor[:40], result.strategy, result.offsets)
            return result

    return LocateResult()


def locate_or_raise(
    anchor: str,
    haystack: str | SearchText,
    before: str = "",
    after: str = "",
    settings: ReconcileSettings = DEFAULT_SETTINGS,
) -> LocateResult:
    """Like locate(), but raise when nothing is found.

    Raises:
        AnchorNotFoundError: If no strategy finds the anchor
    """
    result = locate(anchor, haystack, before, after, settings)
    if not result.found:
        tried = [s.__name__ for s in ANCHOR_STRATEGIES]
        if not anchor or not anchor.strip():
            tried = [context_match.__name__]
        raise AnchorNotFoundError(anchor, tried)
    return result
