"""
Restore cross-references and images that the rendered document flattened.

When markdown is rendered, ``@fig:map`` becomes "Figure 1" and
``![Caption](figures/map.png){#fig:map}`` becomes an image with a
"Figure 1: Caption" caption stored under a generic ``media/`` path. The
image registry written at export time maps display numbers, labels and
captions back to the source, which lets these be undone.

Both functions accept a ``restored_labels`` set. Passing the same set to
both (and across sections of one document) makes sure a labelled figure
gets its ``{#fig:label}`` anchor only once, even when tracked changes
leave an old and a new copy of it in the text.

Example:
    >>> registry = build_image_registry("![Map](figs/map.png){#fig:map}")
    >>> restore_crossrefs("As shown in Figure 1.", registry).text
    'As shown in @fig:map.'
"""

from __future__ import annotations

import logging
import re

from .registry import ImageRegistry, caption_key
from .results import RestoreResult

logger = logging.getLogger(__name__)

_MARKED_REFERENCE = re.compile(
    r"\[(Figure|Table|Fig\.?)\]\{\.mark\}\s*\[(\d+|S\d+)\]\{\.mark\}", re.IGNORECASE
)
_PLAIN_REFERENCE = re.compile(
    r"(?<!!)\b(Figure|Fig\.?|Table|Tbl\.?)\s+(\d+|S\d+)\b(?!\s*:)", re.IGNORECASE
)
_DUPLICATE_CAPTION = re.compile(
    r"(!\[[^\]]+\]\([^)]+\)(?:\{[^}]*\})?)\s*\n+\s*(?:Figure|Fig\.?|Table|Tbl\.?)\s+\d+[:.]?\s*[^\n]+",
    re.IGNORECASE,
)
_NUMBERED_IMAGE = re.compile(
    r"!\[(Figure|Fig\.?|Table|Tbl\.?)\s+(\d+|S\d+)[:.]?\s*([^\]]*)\]\(([^)]+)\)(?:\{[^}]*\})?",
    re.IGNORECASE,
)

# Caption runs to the end of the line or to an annotation closer
_LABEL_CAPTION = re.compile(
    r"@(fig|tbl):([a-zA-Z0-9_-]+):\s*((?:(?![+\-~]{2}\})[^\n])+)", re.IGNORECASE
)
_TABLE_WRAPPED_CAPTION = re.compile(
    r"\|\s*@(fig|tbl):([a-zA-Z0-9_-]+):\s*([^|]+)\s*\|", re.IGNORECASE
)
_EMPTY_CAPTION_TABLE = re.compile(r"\|\s*\|\s*\n\|:--:\|\s*\n")
_NUMBERED_CAPTION_LINE = re.compile(
    r"^(Figure|Fig\.?)\s+(\d+|S\d+)[.:]\s*([^\n]+)", re.IGNORECASE | re.MULTILINE
)
_MEDIA_IMAGE = re.compile(r"!\[([^\]]*)\]\(media/[^)]+\)")


def _label_type(kind: str) -> str:
    return "tbl" if kind.lower().startswith("t") else "fig"


def restore_crossrefs(
    text: str,
    registry: ImageRegistry | None,
    restored_labels: set[str] | None = None,
) -> RestoreResult:
    """Turn rendered "Figure N" references and captions back into labels.

    - ``[Figure]{.mark} [1]{.mark}`` becomes ``@fig:label`` (or ``@fig:fig1``
      when the number is unknown)
    - plain "Figure 1" / "Table 2" become ``@fig:label`` / ``@tbl:label``
      when the registry knows the number
    - a caption line repeated under its image is dropped
    - ``![Figure 1: Caption](media/x.png)`` becomes the registry image with
      its anchor, for the first occurrence of each figure only

    Args:
        text: Converted rendered text
        registry: Image registry, or None
        restored_labels: Labels already restored; updated in place

    Returns:
        RestoreResult
    """
    if restored_labels is None:
        restored_labels = set()
    messages: list[str] = []
    restored = 0

    def lookup(label_type: str, number: str):
        if registry is None:
            return None
        return registry.by_number.get(f"{label_type}:{number}")

    def marked_reference(match: re.Match[str]) -> str:
        nonlocal restored
        label_type = _label_type(match.group(1))
        number = match.group(2)
        restored += 1
        entry = lookup(label_type, number)
        if entry is not None and entry.label:
            return f"@{label_type}:{entry.label}"
        messages.append(f"Restored {match.group(1)} {number} (no label found, using placeholder)")
        return f"@{label_type}:fig{number}"

    def plain_reference(match: re.Match[str]) -> str:
        nonlocal restored
        label_type = _label_type(match.group(1))
        entry = lookup(label_type, match.group(2))
        if entry is not None and entry.label:
            restored += 1
            return f"@{label_type}:{entry.label}"
        return match.group(0)

    def numbered_image(match: re.Match[str]) -> str:
        nonlocal restored
        label_type = _label_type(match.group(1))
        number = match.group(2)
        entry = lookup(label_type, number)
        if entry is not None:
            key = f"{label_type}:{entry.label or number}"
            if key in restored_labels:
                messages.append(f"Skipped duplicate {label_type}:{entry.label} (already restored)")
                return f"![{entry.caption}]({entry.path})"
            restored_labels.add(key)
            restored += 1
            messages.append(f"Restored image {label_type}:{entry.label} from Figure {number}")
            return f"![{entry.caption}]({entry.path}){{#{label_type}:{entry.label}}}"
        return f"![{match.group(3).strip()}]({match.group(4)})"

    result = _MARKED_REFERENCE.sub(marked_reference, text)
    result = _PLAIN_REFERENCE.sub(plain_reference, result)
    result = _DUPLICATE_CAPTION.sub(r"\1", result)
    result = _NUMBERED_IMAGE.sub(numbered_image, result)

    logger.debug("Restored %d cross-reference(s)", restored)
    return RestoreResult(result, restored, messages)


def restore_images(
    text: str,
    registry: ImageRegistry | None,
    restored_labels: set[str] | None = None,
) -> RestoreResult:
    """Turn flattened images and captions back into registry images.

    Handles, in order: captions wrapped in a one-cell table, ``@fig:label:
    caption`` lines, ``Figure N: caption`` lines, and ``media/`` images whose
    caption matches a registry caption.

    Args:
        text: Converted rendered text
        registry: Image registry, or None
        restored_labels: Labels already restored; updated in place

    Returns:
        RestoreResult; text is unchanged when there is no registry
    """
    if registry is None or not registry.figures:
        return RestoreResult(text, 0, ["No image registry found"])
    if restored_labels is None:
        restored_labels = set()
    messages: list[str] = []
    restored = 0

    def by_label(source: str):
        def replace(match: re.Match[str]) -> str:
            nonlocal restored
            label_type, label = match.group(1).lower(), match.group(2)
            key = f"{label_type}:{label}"
            entry = registry.by_label.get(key)
            if entry is None:
                return match.group(0)
            if key in restored_labels:
                messages.append(f"Skipped duplicate {key}{source}")
                return f"![{entry.caption}]({entry.path})"
            restored_labels.add(key)
            restored += 1
            messages.append(f"Restored {key} from {source.strip() or 'registry'}")
            return f"![{entry.caption}]({entry.path}){{#{key}}}"

        return replace

    def numbered_caption(match: re.Match[str]) -> str:
        nonlocal restored
        number = match.group(2)
        entry = registry.by_number.get(f"fig:{number}")
        if entry is None:
            return match.group(0)
        key = f"fig:{entry.label}"
        if key in restored_labels:
            messages.append(f"Skipped duplicate Figure {number} (already restored)")
            return f"![{entry.caption}]({entry.path})"
        restored_labels.add(key)
        restored += 1
        messages.append(f"Restored Figure {number} by number lookup")
        return f"![{entry.caption}]({entry.path}){{#fig:{entry.label}}}"

    def media_image(match: re.Match[str]) -> str:
        nonlocal restored
        caption = match.group(1)
        if not caption.strip():
            return match.group(0)
        entry = registry.by_caption.get(caption_key(caption))
        if entry is None:
            return match.group(0)
        key = f"{entry.type}:{entry.label}" if entry.label else None
        shown = caption_key(caption)[:30]
        if key and key in restored_labels:
            messages.append(f"Skipped duplicate by caption match: {shown}...")
            return f"![{entry.caption}]({entry.path})"
        restored += 1
        messages.append(f"Restored image by caption match: {shown}...")
        if key is None:
            return f"![{entry.caption}]({entry.path})"
        restored_labels.add(key)
        return f"![{entry.caption}]({entry.path}){{#{key}}}"

    result = _TABLE_WRAPPED_CAPTION.sub(by_label(" table wrapper"), text)
    result = _LABEL_CAPTION.sub(by_label(""), result)
    result = _EMPTY_CAPTION_TABLE.sub("", result)
    result = _NUMBERED_CAPTION_LINE.sub(numbered_caption, result)
    result = _MEDIA_IMAGE.sub(media_image, result)

    logger.debug("Restored %d image(s) from registry", restored)
    return RestoreResult(result, restored, messages)
