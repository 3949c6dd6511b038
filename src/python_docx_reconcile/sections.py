"""
Section configuration and section lookup in rendered text.

A manuscript is often kept as one markdown file per section and rendered
into a single document. ``sections.yaml`` maps each file to the heading it
starts with::

    sections:
      introduction.md:
        header: Introduction
        aliases: [Background]
        order: 1
      methods.md: Methods

The import side uses it to split the rendered text back into sections and
to find where a section lies in the rendered document, which enables
position-based comment placement.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .errors import ConfigurationError
from .normalization import search_form

logger = logging.getLogger(__name__)

_HEADING_PREFIX = re.compile(r"^#{1,6}\s+")
_MARKDOWN_HEADING = re.compile(r"^(#{1,6})\s+(.+)$")

# Fraction of the configured header's words that must appear in a heading
HEADING_OVERLAP = 0.7


@dataclass
class SectionConfig:
    """One entry of ``sections.yaml``.

    Attributes:
        file: Markdown file name of the section
        header: Primary heading text
        aliases: Other headings the section may appear under
        order: Build order, None when unspecified
    """

    file: str
    header: str
    aliases: list[str] = field(default_factory=list)
    order: int | None = None


@dataclass
class ExtractedSection:
    """A section found in rendered text.

    Attributes:
        file: Markdown file the section belongs to
        header: Heading line as it appears in the text
        content: Heading, a blank line, then the section body
    """

    file: str
    header: str
    content: str


@dataclass(frozen=True)
class SectionBoundary:
    """Plain-text extent of one section in the rendered document.

    Attributes:
        start: Offset of the section heading
        end: Offset of the next section heading, or the end of the text
    """

    start: int
    end: int

    @property
    def length(self) -> int:
        """Number of characters in the section."""
        return self.end - self.start


def load_sections_config(path: str | Path) -> dict[str, SectionConfig]:
    """Load ``sections.yaml``.

    An entry may be a bare header string or a mapping with ``header``,
    ``aliases`` and ``order``.

    Args:
        path: Path to the YAML file

    Returns:
        Section configs by file name, in file order

    Raises:
        ConfigurationError: If the file is missing, unparsable or malformed
    """
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Sections file not found: {file_path}")

    try:
        with open(file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML file {file_path}: {e}") from e

    entries = (data or {}).get("sections") if isinstance(data, dict) else None
    if entries is None:
        raise ConfigurationError(f"{file_path}: missing 'sections' mapping")
    if not isinstance(entries, dict):
        raise ConfigurationError(f"{file_path}: 'sections' must be a mapping")

    sections: dict[str, SectionConfig] = {}
    errors: list[str] = []
    for name, value in entries.items():
        if isinstance(value, str):
            sections[name] = SectionConfig(name, value)
        elif isinstance(value, dict) and isinstance(value.get("header"), str):
            aliases = value.get("aliases") or []
            if not isinstance(aliases, list):
                errors.append(f"{name}: aliases must be a list")
                continue
            sections[name] = SectionConfig(
                name, value["header"], [str(a) for a in aliases], value.get("order")
            )
        else:
            errors.append(f"{name}: expected a header string or a mapping with 'header'")

    if errors:
        raise ConfigurationError(f"Invalid sections file {file_path}", errors)
    return sections


def ordered_sections(sections: dict[str, SectionConfig]) -> list[str]:
    """Return section file names in build order (unordered sections last)."""
    return [
        name
        for name, _ in sorted(
            sections.items(), key=lambda item: 999 if item[1].order is None else item[1].order
        )
    ]


def match_heading(
    heading: str, sections: dict[str, SectionConfig]
) -> tuple[str, SectionConfig] | None:
    """Find the section a heading belongs to.

    A heading matches its configured header or one of the aliases
    (case-insensitive), or contains at least 70% of the header's words.

    Args:
        heading: Heading text, with or without a ``#`` prefix
        sections: Section configs by file name

    Returns:
        Tuple of (file name, config), or None
    """
    normalized = _HEADING_PREFIX.sub("", heading).lower().strip()
    heading_words = normalized.split()

    for name, config in sections.items():
        if config.header.lower().strip() == normalized:
            return name, config
        if any(alias.lower().strip() == normalized for alias in config.aliases):
            return name, config

        header_words = config.header.lower().split()
        matches = sum(1 for word in header_words if word in heading_words)
        if header_words and matches >= len(header_words) * HEADING_OVERLAP:
            return name, config

    return None


def extract_sections_from_text(
    text: str, sections: dict[str, SectionConfig]
) -> list[ExtractedSection]:
    """Split rendered text into configured sections.

    Markdown headings are matched against the config. Short lines without a
    period are also tried, since converters sometimes lose heading styles.
    Text before the first matched heading is dropped.

    Args:
        text: Rendered text
        sections: Section configs by file name

    Returns:
        Sections in text order
    """
    result: list[ExtractedSection] = []
    current: tuple[str, str] | None = None
    content: list[str] = []

    def flush() -> None:
        if current is not None:
            file_name, header = current
            body = "\n".join(content).strip()
            result.append(ExtractedSection(file_name, header, f"{header}\n\n{body}".strip()))

    for line in text.split("\n"):
        stripped = line.strip()
        matched = None
        if _MARKDOWN_HEADING.match(stripped):
            matched = match_heading(stripped, sections)
        elif stripped and len(stripped) < 100 and "." not in stripped:
            matched = match_heading(stripped, sections)

        if matched:
            flush()
            current = (matched[0], stripped)
            content = []
        else:
            content.append(line)

    flush()
    logger.debug("Found %d configured section(s) in text", len(result))
    return result


def find_section_boundary(
    full_text: str, header: str, next_header: str | None = None
) -> SectionBoundary | None:
    """Find where a section lies in the plain text of a rendered document.

    The section starts at the first case-insensitive occurrence of its
    heading text and ends at the next section's heading (searched after the
    start), or at the end of the text.

    Args:
        full_text: Plain text of the rendered document
        header: Heading of the section, with or without ``#`` prefix
        next_header: Heading of the following section, if any

    Returns:
        SectionBoundary, or None when the heading does not occur
    """
    folded = search_form(full_text)
    needle = search_form(_HEADING_PREFIX.sub("", header).strip())
    if not needle:
        return None

    start = folded.find(needle)
    if start == -1:
        logger.debug("Section heading %r not found in document text", header)
        return None

    end = len(full_text)
    if next_header:
        next_needle = search_form(_HEADING_PREFIX.sub("", next_header).strip())
        if next_needle:
            next_start = folded.find(next_needle, start + len(needle))
            if next_start != -1:
                end = next_start

    return SectionBoundary(start, end)
