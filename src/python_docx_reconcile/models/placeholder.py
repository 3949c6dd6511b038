"""
Placeholder tokens that stand in for atomic markdown elements while diffing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ElementKind(Enum):
    """Kinds of protected elements, in protection order (outermost first)."""

    TABLE = "table"
    IMAGE = "image"
    ANCHOR = "anchor"
    CROSSREF = "crossref"
    MATH = "math"
    CITATION = "citation"


@dataclass(frozen=True)
class PlaceholderToken:
    """One protected element and the token that replaced it.

    Attributes:
        original: The exact text that was replaced
        placeholder: The token now standing in for it
        kind: Which kind of element was protected
        metadata: Kind-specific details (image caption and label, math form)
    """

    original: str
    placeholder: str
    kind: ElementKind
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
