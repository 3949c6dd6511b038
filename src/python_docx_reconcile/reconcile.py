"""
Paragraph reconciliation: diff the markdown source against rendered text.

Both texts are split into paragraphs on blank lines. Each source paragraph
is paired with the most similar of the next few unconsumed rendered
paragraphs, using a bag-of-words score. Paired paragraphs are compared with
markdown syntax stripped from the source side and whitespace collapsed on
both sides, so hard-wrapped source lines match reflowed rendered text:

- identical text keeps the source paragraph verbatim
- different text becomes a word-level diff, behind the source paragraph's
  heading, list or blockquote marker

Unpaired source paragraphs are deleted, except headings, which renderers
routinely drop and which are always kept. Rendered paragraphs left over at
the end are insertions.

reconcile_documents() wraps this with placeholder protection so that
tables, images, anchors, cross-references, math and citations pass through
the diff untouched.

Example:
    >>> reconcile_paragraphs("# Results\\n\\nText A.", "Text A, modified.").text
    '# Results\\n\\nText A{++, modified++}.'
"""

from __future__ import annotations

import logging
import re

from .config import DEFAULT_SETTINGS, ReconcileSettings
from .models.paragraph import ParagraphAlignment, Verdict
from .models.placeholder import ElementKind
from .models.table import TableGrid
from .normalization import squash_whitespace
from .protect import (
    PlaceholderProtector,
    match_images,
    match_tables,
    replace_rendered_citations,
    replace_rendered_math,
    restore_all,
)
from .registry import ImageRegistry
from .results import ReconcileResult
from .tables import inject_tables
from .word_diff import annotate_diff

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\n+")
_HEADING_PREFIX = re.compile(r"^(#{1,6}\s+)")
_LIST_PREFIX = re.compile(r"^(\s*[-*+]\s+|\s*\d+\.\s+)")
_QUOTE_PREFIX = re.compile(r"^(>\s*)")

# Markdown constructs removed before comparing with rendered text, in order
_MARKDOWN_SYNTAX: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\A---.*?---\n*", re.DOTALL), ""),  # front matter
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),
    (re.compile(r"(\*\*|__)(.*?)\1"), r"\2"),
    (re.compile(r"(\*|_)(.*?)\1"), r"\2"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),  # links
    (re.compile(r"!\[([^\]]*)\]\([^)]+\)"), ""),  # images
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"```.*?```", re.DOTALL), ""),
    (re.compile(r"^>\s*", re.MULTILINE), ""),
    (re.compile(r"^[-*_]{3,}\s*$", re.MULTILINE), ""),  # horizontal rules
    (re.compile(r"^\s*[-*+]\s+", re.MULTILINE), ""),
    (re.compile(r"^\s*\d+\.\s+", re.MULTILINE), ""),
    (re.compile(r"\|"), " "),
    (re.compile(r"^[-:]+$", re.MULTILINE), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
]


def split_paragraphs(text: str) -> list[str]:
    """Split text on blank lines."""
    return _PARAGRAPH_BREAK.split(text)


def extract_markdown_prefix(line: str) -> tuple[str, str]:
    """Split a line into its structural marker and its content.

    Example:
        >>> extract_markdown_prefix("## Methods")
        ('## ', 'Methods')
        >>> extract_markdown_prefix("Plain text")
        ('', 'Plain text')
    """
    for pattern in (_HEADING_PREFIX, _LIST_PREFIX, _QUOTE_PREFIX):
        match = pattern.match(line)
        if match:
            return match.group(1), line[match.end(1) :]
    return "", line


def is_heading(prefix: str) -> bool:
    """Return True if a prefix from extract_markdown_prefix() is a heading marker."""
    return bool(_HEADING_PREFIX.match(prefix))


def strip_markdown_syntax(markdown: str) -> str:
    """Reduce markdown to the plain text a renderer would show.

    Example:
        >>> strip_markdown_syntax("# Title\\n\\nSome **bold** and [a link](x.html).")
        'Title\\n\\nSome bold and a link.'
    """
    text = markdown
    for pattern, replacement in _MARKDOWN_SYNTAX:
        text = pattern.sub(replacement, text)
    return text.strip()


def paragraph_similarity(source_content: str, rendered: str) -> float:
    """Bag-of-words similarity between source content and a rendered paragraph.

    The number of rendered words present in the source's word set, divided
    by the larger of the source word-set size and the rendered word count.
    """
    source_words = set(source_content.lower().split())
    rendered_words = rendered.lower().split()
    denominator = max(len(source_words), len(rendered_words))
    if denominator == 0:
        return 0.0
    common = sum(1 for word in rendered_words if word in source_words)
    return common / denominator


def align_paragraphs(
    source: list[str],
    rendered: list[str],
    settings: ReconcileSettings = DEFAULT_SETTINGS,
) -> list[ParagraphAlignment]:
    """Pair source paragraphs with rendered paragraphs in one forward pass.

    Verdicts are provisional: a paired paragraph is reported as MODIFIED and
    reconcile_paragraphs() downgrades it to UNCHANGED after comparing text.
    Unpaired headings are reported as UNCHANGED since they are kept.

    Args:
        source: Source paragraphs
        rendered: Rendered paragraphs
        settings: Similarity threshold, lookahead and heading rescue length

    Returns:
        One alignment per non-empty source paragraph, then one per
        leftover non-empty rendered paragraph
    """
    alignments: list[ParagraphAlignment] = []
    cursor = 0

    for index, paragraph in enumerate(source):
        if not paragraph.strip():
            continue
        prefix, content = extract_markdown_prefix(paragraph.split("\n")[0])

        best = -1
        best_score = 0.0
        for candidate in range(cursor, min(cursor + settings.lookahead, len(rendered))):
            score = paragraph_similarity(content, rendered[candidate])
            if score > best_score and score > settings.similarity_threshold:
                best_score = score
                best = candidate

        if best == -1 and prefix and cursor < len(rendered):
            heading_start = content.lower()[: settings.heading_rescue_chars]
            if heading_start in rendered[cursor].lower():
                best = cursor

        if best >= 0:
            alignments.append(ParagraphAlignment(index, best, Verdict.MODIFIED, best_score))
            cursor = best + 1
        elif is_heading(prefix):
            alignments.append(ParagraphAlignment(index, None, Verdict.UNCHANGED))
        else:
            alignments.append(ParagraphAlignment(index, None, Verdict.DELETED))

    for leftover in range(cursor, len(rendered)):
        if rendered[leftover].strip():
            alignments.append(ParagraphAlignment(None, leftover, Verdict.INSERTED))

    return alignments


def reconcile_paragraphs(
    source: str,
    rendered: str,
    settings: ReconcileSettings = DEFAULT_SETTINGS,
) -> ReconcileResult:
    """Annotate source text with the differences found in rendered text.

    Args:
        source: Markdown source (without annotations)
        rendered: Rendered text, paragraphs separated by blank lines
        settings: Alignment parameters

    Returns:
        ReconcileResult with the annotated text and final verdicts
    """
    source_paragraphs = split_paragraphs(source)
    rendered_paragraphs = split_paragraphs(rendered)
    alignments = align_paragraphs(source_paragraphs, rendered_paragraphs, settings)

    output: list[str] = []
    final: list[ParagraphAlignment] = []
    for alignment in alignments:
        if alignment.source_index is None:
            output.append(f"{{++{rendered_paragraphs[alignment.rendered_index]}++}}")
            final.append(alignment)
            continue

        paragraph = source_paragraphs[alignment.source_index]
        if alignment.rendered_index is None:
            if alignment.verdict == Verdict.DELETED:
                output.append(f"{{--{paragraph}--}}")
            else:
                output.append(paragraph)
            final.append(alignment)
            continue

        prefix, _ = extract_markdown_prefix(paragraph.split("\n")[0])
        stripped = squash_whitespace(strip_markdown_syntax(paragraph))
        normalized = squash_whitespace(rendered_paragraphs[alignment.rendered_index])
        if stripped == normalized:
            output.append(paragraph)
            verdict = Verdict.UNCHANGED
        else:
            output.append(prefix + annotate_diff(stripped, normalized))
            verdict = Verdict.MODIFIED
        final.append(
            ParagraphAlignment(
                alignment.source_index, alignment.rendered_index, verdict, alignment.score
            )
        )

    return ReconcileResult("\n\n".join(output), final)


def reconcile_documents(
    source: str,
    rendered: str,
    tables: list[TableGrid] | None = None,
    registry: ImageRegistry | None = None,
    settings: ReconcileSettings = DEFAULT_SETTINGS,
) -> ReconcileResult:
    """Reconcile a markdown source with rendered text, protecting atomic elements.

    The rendered document's tables replace the converter's flattened tables
    first. Both sides are then protected; rendered images and tables that
    correspond to source ones take over the source tokens, and rendered
    math and citations are swapped for the source tokens they came from.
    After reconciliation every token is restored.

    Args:
        source: Markdown source (without annotations)
        rendered: Rendered text from the document converter
        tables: Tables extracted from the rendered document
        registry: Image registry for display-number matching
        settings: Alignment and image matching parameters

    Returns:
        ReconcileResult with fully restored text
    """
    rendered = inject_tables(rendered, tables or [])

    source_side = PlaceholderProtector("", reserved=(source, rendered)).protect_all(source)
    rendered_side = PlaceholderProtector("W", reserved=(source, rendered)).protect_all(
        rendered, (ElementKind.TABLE, ElementKind.IMAGE)
    )

    image_mapping = match_images(
        source_side.records_of(ElementKind.IMAGE),
        rendered_side.records_of(ElementKind.IMAGE),
        registry,
        settings,
    )
    table_mapping = match_tables(
        source_side.records_of(ElementKind.TABLE), rendered_side.records_of(ElementKind.TABLE)
    )

    rendered_text = rendered_side.text
    for rendered_token, source_token in {**table_mapping, **image_mapping}.items():
        rendered_text = rendered_text.replace(rendered_token, source_token)
    rendered_text = replace_rendered_math(rendered_text, source_side.records_of(ElementKind.MATH))
    rendered_text = replace_rendered_citations(
        rendered_text, source_side.records_of(ElementKind.CITATION)
    )

    result = reconcile_paragraphs(source_side.text, rendered_text, settings)
    result.text = restore_all(result.text, source_side, rendered_side)
    result.images_matched = len(image_mapping)
    result.tables_matched = len(table_mapping)

    logger.debug("Reconciled paragraphs: %s", result)
    return result
