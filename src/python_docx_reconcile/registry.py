"""
Image registry: figure and table labels, display numbers, paths and captions.

The registry is built from the markdown source before export and stored
next to the project in ``.rev/image-registry.json`` so a later import can
map rendered "Figure 3" references and media paths back to the source.

Example:
    >>> registry = build_image_registry("![Map](figs/map.png){#fig:map}")
    >>> registry.by_number["fig:1"].label
    'map'
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .constants import (
    CAPTION_KEY_LENGTH,
    REGISTRY_DIRNAME,
    REGISTRY_FILENAME,
    REGISTRY_VERSION,
)
from .errors import RegistryError

logger = logging.getLogger(__name__)

# ![caption](path){#fig:label ...}: caption, path, label type and label
IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)(?:\{#(fig|tbl):([^}\s]+)[^}]*\})?")

# {#fig:label}, {#tbl:label}, {#eq:label} anchors in document order
LABEL_ANCHOR_PATTERN = re.compile(r"\{#(fig|tbl|eq):([^}\s]+)[^}]*\}")


def caption_key(caption: str) -> str:
    """Return the lookup key for a caption: first 50 characters, lower-cased."""
    return caption[:CAPTION_KEY_LENGTH].lower().strip()


@dataclass
class FigureEntry:
    """One image in the markdown source.

    Attributes:
        caption: Caption text as written in the source
        path: Image path as written in the source
        label: Label without its type prefix, or None
        type: "fig" or "tbl"
        number: Display number ("3", or "S2" for supplementary), if known
    """

    caption: str
    path: str
    label: str | None = None
    type: str = "fig"
    number: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the registry file format (number omitted when unknown)."""
        data: dict[str, Any] = {
            "caption": self.caption,
            "path": self.path,
            "label": self.label,
            "type": self.type,
        }
        if self.number is not None:
            data["number"] = self.number
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FigureEntry:
        """Build an entry from one registry file record."""
        number = data.get("number")
        return cls(
            caption=str(data.get("caption") or ""),
            path=str(data.get("path") or ""),
            label=data.get("label") or None,
            type=data.get("type") or "fig",
            number=str(number) if number is not None else None,
        )


@dataclass
class ImageRegistry:
    """Figures plus lookups by label, display number and caption.

    Keys are ``"fig:map"`` style for labels, ``"fig:3"`` style for numbers
    and caption_key() for captions.
    """

    figures: list[FigureEntry] = field(default_factory=list)
    by_label: dict[str, FigureEntry] = field(default_factory=dict)
    by_number: dict[str, FigureEntry] = field(default_factory=dict)
    by_caption: dict[str, FigureEntry] = field(default_factory=dict)
    created: str | None = None

    def add(self, entry: FigureEntry) -> None:
        """Append an entry and index it."""
        self.figures.append(entry)
        if entry.label:
            self.by_label[f"{entry.type}:{entry.label}"] = entry
        if entry.number:
            self.by_number[f"{entry.type}:{entry.number}"] = entry
        if entry.caption:
            self.by_caption[caption_key(entry.caption)] = entry

    def __len__(self) -> int:
        return len(self.figures)


def build_crossref_numbers(content: str, supplementary: bool = False) -> dict[str, str]:
    """Number labelled figures, tables and equations in document order.

    Each label type is counted separately, starting at 1.

    Args:
        content: Markdown source
        supplementary: Prefix numbers with "S" (supplementary material)

    Returns:
        Mapping of ``"type:label"`` to display number

    Example:
        >>> build_crossref_numbers("![a](a.png){#fig:a} ![b](b.png){#fig:b}")
        {'fig:a': '1', 'fig:b': '2'}
    """
    counters: dict[str, int] = {}
    numbers: dict[str, str] = {}
    prefix = "S" if supplementary else ""
    for match in LABEL_ANCHOR_PATTERN.finditer(content):
        key = f"{match.group(1)}:{match.group(2)}"
        if key in numbers:
            continue
        counters[match.group(1)] = counters.get(match.group(1), 0) + 1
        numbers[key] = f"{prefix}{counters[match.group(1)]}"
    return numbers


def build_image_registry(
    content: str, crossref_numbers: dict[str, str] | None = None
) -> ImageRegistry:
    """Build the registry of every image in the markdown source.

    Args:
        content: Markdown source
        crossref_numbers: Display numbers by ``"type:label"``; computed from
            content when not given

    Returns:
        ImageRegistry
    """
    if crossref_numbers is None:
        crossref_numbers = build_crossref_numbers(content)

    registry = ImageRegistry()
    for match in IMAGE_PATTERN.finditer(content):
        caption, path, label_type, label = match.groups()
        entry = FigureEntry(caption=caption, path=path, label=label, type=label_type or "fig")
        if label:
            entry.number = crossref_numbers.get(f"{entry.type}:{label}")
        registry.add(entry)

    logger.debug("Registered %d image(s)", len(registry))
    return registry


def registry_path(directory: str | Path) -> Path:
    """Return the registry file location for a project directory."""
    return Path(directory) / REGISTRY_DIRNAME / REGISTRY_FILENAME


def write_image_registry(directory: str | Path, registry: ImageRegistry) -> Path:
    """Write the registry to ``<directory>/.rev/image-registry.json``.

    Args:
        directory: Project directory
        registry: Registry to persist

    Returns:
        Path of the written file

    Raises:
        RegistryError: If the file cannot be written
    """
    path = registry_path(directory)
    data = {
        "version": REGISTRY_VERSION,
        "created": datetime.now(timezone.utc).isoformat(),
        "figures": [entry.to_dict() for entry in registry.figures],
    }
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    except OSError as e:
        raise RegistryError(f"Failed to write image registry {path}: {e}") from e
    return path


def read_image_registry(directory: str | Path) -> ImageRegistry | None:
    """Read the registry written by write_image_registry().

    Args:
        directory: Project directory

    Returns:
        The registry, or None when the file is missing or unreadable
    """
    path = registry_path(directory)
    if not path.exists():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        registry = ImageRegistry(created=data.get("created"))
        for record in data.get("figures") or []:
            registry.add(FigureEntry.from_dict(record))
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.warning("Ignoring unreadable image registry %s: %s", path, e)
        return None

    return registry
