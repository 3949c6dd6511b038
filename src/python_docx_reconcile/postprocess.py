"""
Rewrites applied to converted and annotated text.

This module provides:
1. convert_tracked_spans() - converter track-change spans to annotations
2. cleanup_annotations() - merging, repair and removal of empty annotations
3. fix_citation_annotations() - keeping citations and math the diff
   mistook for reviewer edits
4. convert_visible_comments() - ``[Author: text]`` notes to comment annotations

The document converter writes tracked changes as attribute spans::

    [new words]{.insertion author="Ana" date="..."}
    [old words]{.deletion author="Ana" date="..."}
    [anchor]{.comment-start id="0" author="Ana"}[]{.comment-end id="0"}
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .results import ConversionResult

logger = logging.getLogger(__name__)

# Span content may hold one level of nested brackets
_NESTED_SPAN = r"\[([^\[\]]*(?:\[[^\[\]]*\][^\[\]]*)*)\]"
_FLAT_SPAN = r"\[([^\]]*)\]"

_COMMENT_START = re.compile(r"\[([^\]]*)\]\{\.comment-start[^}]*\}")
_COMMENT_END = re.compile(r"\[\]\{\.comment-end[^}]*\}")
_MARK_SPAN = re.compile(r"\[([^\]]*)\]\{\.mark\}")

# [Author: note] but not links, attribute spans or citations
VISIBLE_COMMENT_PATTERN = re.compile(r"\[([^\]:@]+):\s*([^\]]+)\](?![({])")

_TABLE_SEPARATOR = re.compile(r"^-+(\s+-+)+\s*$")
_COLUMN_GAP = re.compile(r"\S+\s{2,}\S+")
_CATEGORY_ROW = re.compile(r"^\*[^*]+\*\s*$")

# Capitalised name, optionally followed by "et al."
_UPPER = "A-ZÀ-ÖØ-Þ"
_AUTHOR = rf"[{_UPPER}][^\W\d_]*(?:\s+et\s+al\.?)?"
_YEAR = r"\d{4}[a-z]?"
_AUTHOR_YEARS = rf"{_AUTHOR}\s+{_YEAR}(?:[;,]\s*{_AUTHOR}\s+{_YEAR})*"


@dataclass
class VisibleComment:
    """A reviewer note typed into the document text.

    Attributes:
        author: Text before the colon
        text: Text after the colon
        position: Offset of the opening bracket
    """

    author: str
    text: str
    position: int


def _convert_span_kind(text: str, span: str, kind: str, wrapper: tuple[str, str]) -> tuple[str, int]:
    count = 0
    pattern = re.compile(span + r"\{\." + kind + r"[^}]*\}")

    def replace(match: re.Match[str]) -> str:
        nonlocal count
        content = match.group(1)
        if not content.strip():
            return ""
        count += 1
        return f"{wrapper[0]}{content}{wrapper[1]}"

    return pattern.sub(replace, text), count


def convert_tracked_spans(text: str) -> ConversionResult:
    """Translate converter track-change and comment spans.

    Insertion and deletion spans become ``{++ ++}`` and ``{-- --}``; empty
    ones are dropped. Spans with nested brackets are handled first, then
    the remaining flat spans are converted repeatedly until nothing
    changes. Comment spans keep only their anchor text, since comments are
    placed separately, and ``[x]{.mark}`` highlights are unwrapped.

    Args:
        text: Converter output

    Returns:
        ConversionResult with the converted text and change counts

    Example:
        >>> convert_tracked_spans('a [b]{.insertion author="R"} c').text
        'a {++b++} c'
    """
    insertions = deletions = 0

    text, added = _convert_span_kind(text, _NESTED_SPAN, "insertion", ("{++", "++}"))
    insertions += added
    text, removed = _convert_span_kind(text, _NESTED_SPAN, "deletion", ("{--", "--}"))
    deletions += removed

    while True:
        previous = text
        text, added = _convert_span_kind(text, _FLAT_SPAN, "insertion", ("{++", "++}"))
        insertions += added
        text, removed = _convert_span_kind(text, _FLAT_SPAN, "deletion", ("{--", "--}"))
        deletions += removed
        if text == previous:
            break

    text = _COMMENT_START.sub(r"\1", text)
    text = _COMMENT_END.sub("", text)
    text = _MARK_SPAN.sub(r"\1", text)

    if insertions or deletions:
        logger.info(
            "Found %d insertion(s) and %d deletion(s) from track changes", insertions, deletions
        )
    return ConversionResult(text, insertions, deletions)


def _is_table_separator(line: str) -> bool:
    return bool(_TABLE_SEPARATOR.match(line.strip()))


def _table_continues(lines: list[str], index: int) -> bool:
    """Look past a blank line inside a simple table for more table content."""
    for ahead in range(index + 1, min(len(lines), index + 20)):
        stripped = lines[ahead].strip()
        if not stripped:
            continue
        if _is_table_separator(stripped) or _COLUMN_GAP.search(stripped):
            return True
        if _CATEGORY_ROW.match(stripped):
            return True
        if lines[ahead].startswith("  "):
            continue
        return False
    return False


def _collapse_prose_spaces(text: str) -> str:
    """Collapse repeated spaces, except in pipe tables and space-aligned tables."""
    lines = text.split("\n")
    in_table = False
    output: list[str] = []

    for index, line in enumerate(lines):
        if _is_table_separator(line):
            in_table = True
            output.append(line)
            continue

        if in_table:
            if not line.strip() and not _table_continues(lines, index):
                in_table = False
            output.append(line)
            continue

        if _COLUMN_GAP.search(line):
            following = next(
                (candidate for candidate in lines[index + 1 :] if candidate.strip()), ""
            )
            if _is_table_separator(following):
                output.append(line)
                continue

        if line.strip().startswith("|"):
            output.append(line)
            continue

        output.append(re.sub(r"  +", " ", line))

    return "\n".join(output)


def cleanup_annotations(text: str) -> str:
    """Tidy annotated text.

    - adjacent deletion and insertion (either order) become a substitution
    - wrappers damaged by overlapping edits are repaired
    - empty insertions and deletions are removed
    - repeated spaces are collapsed outside tables

    Example:
        >>> cleanup_annotations("a {--old--} {++new++}  b")
        'a {~~old~>new~~} b'
    """
    text = re.sub(r"\{--(.+?)--\}\s*\{\+\+(.+?)\+\+\}", r"{~~\1~>\2~~}", text)
    text = re.sub(r"\{\+\+(.+?)\+\+\}\s*\{--(.+?)--\}", r"{~~\2~>\1~~}", text)

    # {--key~>critical~~} lost its substitution opener
    text = re.sub(r"\{--([^}]+?)~>([^}]+?)~~\}", r"{~~\1~>\2~~}", text)
    # halves of a split substitution
    text = re.sub(r"\{~~([^~]+)\s*--\}", r"{--\1--}", text)
    text = re.sub(r"\{\+\+([^+]+)~~\}", r"{++\1++}", text)

    text = re.sub(r"\{--\s*--\}", "", text)
    text = re.sub(r"\{\+\+\s*\+\+\}", "", text)

    return _collapse_prose_spaces(text)


def fix_citation_annotations(text: str) -> str:
    """Undo edits that only reflect how citations and math were rendered.

    A rendered document shows ``[@smith2020]`` as "(Smith 2020)" and
    ``$p$`` as "p". When such elements reach the diff unprotected, the
    diff reports them as reviewer edits. This keeps the markdown form of
    deleted or substituted citations and math, and removes inserted
    rendered citations and their fragments.

    Args:
        text: Annotated text

    Returns:
        Text with rendering artifacts removed
    """
    # Math that was deleted or substituted by its rendered form
    text = re.sub(r"\{--(\$[^$]+\$)--\}", r"\1", text)
    text = re.sub(r"\{--(\$\$[^$]+\$\$)--\}", r"\1", text)
    text = re.sub(r"\{~~(\$[^$]+\$)~>[^~]+~~\}", r"\1", text)
    text = re.sub(r"\{~~(\$\$[^$]+\$\$)~>[^~]+~~\}", r"\1", text)

    # Citation substituted by its rendered form
    text = re.sub(r"\{~~(\[@[^\]]+\])~>[^~]+~~\}", r"\1", text)

    def keep_leading_citation(match: re.Match[str]) -> str:
        citation, old, new = match.group(1), match.group(2).strip(), match.group(3).strip()
        if not old and not new:
            return citation
        if old != new:
            return f"{citation} {{~~{old}~>{new}~~}}"
        return f"{citation} {match.group(3)}"

    text = re.sub(r"\{~~(\[@[^\]]+\])\s*([^~]*)~>([^~]*)~~\}", keep_leading_citation, text)

    text = re.sub(r"\{--(\[@[^\]]+\])--\}", r"\1", text)
    text = re.sub(r"\{\+\+\([A-Z][^)]*\d{4}[^)]*\)\+\+\}", "", text)

    # Citations split across substitution boundaries
    text = re.sub(r"\{~~(@[A-Za-z]+\d{4})~>[^~]+~~\}", r"[\1]", text)
    text = re.sub(r"\{~~\[@~>[^~]*~~\}([A-Za-z]+\d{4})\]", r"[@\1]", text)
    text = re.sub(r"\{~~;\s*@([A-Za-z]+\d{4})\]~>[^~]*~~\}", r"; [@\1]", text)

    # Inserted rendered citations and fragments of them
    fragments = [
        rf"\{{\+\+\({_AUTHOR_YEARS}\)\+\+\}}",
        rf"\{{\+\+\({_AUTHOR_YEARS}\)\.\s*\+\+\}}",
        rf"\{{\+\+{_YEAR}(?:[;,]\s*(?:{_AUTHOR}\s+)?{_YEAR})*\)\.?\s*\+\+\}}",
        rf"\{{\+\+{_YEAR}\)\.?\s*\+\+\}}",
        rf"\{{\+\+\(?{_AUTHOR}\s*\+\+\}}",
        rf"\{{\+\+[;,]\s*{_AUTHOR}\s+{_YEAR}\+\+\}}",
        rf"\{{\+\+{_AUTHOR_YEARS}\)\.?\s*\+\+\}}",
    ]
    for fragment in fragments:
        text = re.sub(fragment, "", text)

    text = re.sub(r"  +", " ", text)
    text = re.sub(r"\s+\.", ".", text)
    text = re.sub(r"\s+,", ",", text)

    text = re.sub(r"\{~~\s*~>\s*~~\}", "", text)
    text = re.sub(r"\{\+\+\s*\+\+\}", "", text)
    text = re.sub(r"\{--\s*--\}", "", text)
    return text


def parse_visible_comments(text: str) -> list[VisibleComment]:
    """Find ``[Author: text]`` notes typed into the document."""
    return [
        VisibleComment(match.group(1).strip(), match.group(2).strip(), match.start())
        for match in VISIBLE_COMMENT_PATTERN.finditer(text)
    ]


def convert_visible_comments(text: str) -> str:
    """Turn ``[Author: text]`` notes into comment annotations.

    Example:
        >>> convert_visible_comments("Done [Ana: check this] here.")
        'Done {>>Ana: check this<<} here.'
    """
    return VISIBLE_COMMENT_PATTERN.sub(r"{>>\1: \2<<}", text)
