"""
python_docx_reconcile - Bring reviewer feedback in Word documents back into markdown.

A markdown manuscript is rendered to .docx and sent out for review. This
package takes the reviewed document and produces the markdown source
annotated with the reviewer's edits ({++ins++}, {--del--}, {~~old~>new~~})
and comments ({>>author: text<<}), keeping tables, images, labels,
cross-references, math and citations intact.

Example:
    >>> from python_docx_reconcile import import_reviewed_document
    >>> result = import_reviewed_document("reviewed.docx", converted_text, source_text)
    >>> print(result.stats)
"""

__version__ = "0.1.0"
__all__ = [
    "import_reviewed_document",
    "extract_entities",
    "ExtractionResult",
    "OOXMLPackage",
    "PlaceholderProtector",
    "ProtectedText",
    "restore_all",
    "locate",
    "locate_or_raise",
    "LocateResult",
    "place_comments",
    "reconcile_paragraphs",
    "reconcile_documents",
    "restore_crossrefs",
    "restore_images",
    "ImageRegistry",
    "build_image_registry",
    "read_image_registry",
    "write_image_registry",
    "ReconcileSettings",
    "DEFAULT_SETTINGS",
    "load_settings",
    "SectionBoundary",
    "find_section_boundary",
    "load_sections_config",
    "convert_tracked_spans",
    "cleanup_annotations",
    "count_annotations",
    "strip_annotations",
    "DocxReconcileError",
    "PackageError",
    "ConfigurationError",
    "RegistryError",
    "AnchorNotFoundError",
    "MissingEndMarkerWarning",
    "PlacementResult",
    "ReconcileResult",
    "ImportResult",
    "ImportStats",
    # Data model
    "AnchorRecord",
    "CommentRecord",
    "PlacedComment",
    "TableGrid",
    "ElementKind",
    "Verdict",
]

from .config import DEFAULT_SETTINGS, ReconcileSettings, load_settings
from .criticmarkup import count_annotations, strip_annotations
from .crossrefs import restore_crossrefs, restore_images
from .errors import (
    AnchorNotFoundError,
    ConfigurationError,
    DocxReconcileError,
    MissingEndMarkerWarning,
    PackageError,
    RegistryError,
)
from .extraction import ExtractionResult, extract_entities
from .importer import import_reviewed_document
from .locator import LocateResult, locate, locate_or_raise
from .models import (
    AnchorRecord,
    CommentRecord,
    ElementKind,
    PlacedComment,
    TableGrid,
    Verdict,
)
from .package import OOXMLPackage
from .placement import place_comments
from .postprocess import cleanup_annotations, convert_tracked_spans
from .protect import PlaceholderProtector, ProtectedText, restore_all
from .reconcile import reconcile_documents, reconcile_paragraphs
from .registry import (
    ImageRegistry,
    build_image_registry,
    read_image_registry,
    write_image_registry,
)
from .results import ImportResult, ImportStats, PlacementResult, ReconcileResult
from .sections import SectionBoundary, find_section_boundary, load_sections_config
