"""
Import a reviewed Word document back into annotated markdown.

The document converter (run separately) turns the reviewed .docx into
text. That text carries tracked changes as attribute spans when the
reviewer worked with track changes on, and is plain text otherwise. This
module combines it with what the .docx itself holds:

1. comments, anchors and tables are extracted from the .docx
2. rendered "Figure N" references and images are restored from the
   image registry
3. converter track-change spans become annotations; when there are none
   and the markdown source is available, the source is reconciled
   paragraph by paragraph against the rendered text instead
4. comments are placed into the annotated text and the result is tidied
"""

from __future__ import annotations

import logging

from .config import DEFAULT_SETTINGS, ReconcileSettings
from .criticmarkup import count_annotations, strip_annotations
from .crossrefs import restore_crossrefs, restore_images
from .extraction import PackageSource, extract_entities
from .placement import place_comments
from .postprocess import (
    cleanup_annotations,
    convert_tracked_spans,
    convert_visible_comments,
    fix_citation_annotations,
)
from .reconcile import reconcile_documents
from .registry import ImageRegistry
from .results import ImportResult, ImportStats
from .sections import SectionBoundary

logger = logging.getLogger(__name__)


def import_reviewed_document(
    docx: PackageSource,
    rendered_text: str,
    source_text: str | None = None,
    registry: ImageRegistry | None = None,
    settings: ReconcileSettings = DEFAULT_SETTINGS,
    section_boundary: SectionBoundary | None = None,
    restored_labels: set[str] | None = None,
    quiet: bool = False,
) -> ImportResult:
    """Build annotated markdown from a reviewed document.

    Args:
        docx: The reviewed .docx (path, bytes, stream or opened package)
        rendered_text: Converter output for the same document
        source_text: Markdown the document was rendered from. Only used
            when the rendered text carries no tracked changes.
        registry: Image registry written when the document was exported
        settings: Calibration parameters
        section_boundary: Where the text lies in the rendered document,
            when importing a single section
        restored_labels: Figure labels already given their anchor; pass the
            same set when importing several sections of one document.
            Updated in place.
        quiet: Log comment placement problems at debug level

    Returns:
        ImportResult with the annotated text, statistics and messages

    Raises:
        PackageError: If the .docx cannot be read

    Example:
        >>> result = import_reviewed_document("reviewed.docx", converted, source)
        >>> print(result.stats)
    """
    entities = extract_entities(docx, settings)
    messages = list(entities.warnings)
    stats = ImportStats()
    if restored_labels is None:
        restored_labels = set()

    crossrefs = restore_crossrefs(rendered_text, registry, restored_labels)
    messages.extend(crossrefs.messages)
    stats.crossrefs_restored = crossrefs.restored

    conversion = convert_tracked_spans(crossrefs.text)
    stats.tracked_insertions = conversion.insertions
    stats.tracked_deletions = conversion.deletions

    text = conversion.text
    if registry is not None:
        images = restore_images(text, registry, restored_labels)
        messages.extend(images.messages)
        stats.images_restored = images.restored
        text = images.text

    if conversion.has_changes or source_text is None:
        logger.debug("Using tracked text as the annotated result")
    else:
        reconciled = reconcile_documents(
            strip_annotations(source_text), text, entities.tables, registry, settings
        )
        logger.debug("%s", reconciled)
        text = cleanup_annotations(reconciled.text)
        text = fix_citation_annotations(text)
        text = convert_visible_comments(text)

    placement = None
    if entities.comments:
        placement = place_comments(
            text, entities.comments, entities.anchors, section_boundary, settings, quiet
        )
        text = placement.text
        stats.comments_placed = placement.placed
        stats.comments_unmatched = placement.unmatched
        if placement.unmatched:
            messages.append(
                f"{placement.unmatched} comment(s) could not be matched to anchor text"
            )
        messages.extend(f"Duplicate anchor: {entry}" for entry in placement.duplicates)

    text = cleanup_annotations(text)
    stats.annotations = count_annotations(text)

    logger.info("Import finished: %s", stats.annotations)
    return ImportResult(text, stats, placement, messages)
