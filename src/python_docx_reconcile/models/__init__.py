"""
Data model classes for python_docx_reconcile.

These are plain value objects passed between the extraction, location,
placement and reconciliation stages.
"""

from python_docx_reconcile.models.anchor import AnchorRecord, TextNode
from python_docx_reconcile.models.comment import CommentRecord, PlacedComment
from python_docx_reconcile.models.paragraph import ParagraphAlignment, Verdict
from python_docx_reconcile.models.placeholder import ElementKind, PlaceholderToken
from python_docx_reconcile.models.table import TableGrid

__all__ = [
    "AnchorRecord",
    "TextNode",
    "CommentRecord",
    "PlacedComment",
    "ParagraphAlignment",
    "Verdict",
    "ElementKind",
    "PlaceholderToken",
    "TableGrid",
]
