"""
Read-only access to the parts of a rendered .docx package.

The reconciler only ever reads the main document and the comments part,
so the archive is loaded into memory once and parts are parsed on demand.
"""

from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path
from typing import BinaryIO

from lxml import etree

from .errors import PackageError

logger = logging.getLogger(__name__)


class OOXMLPackage:
    """An opened OOXML ZIP package held in memory.

    Example:
        >>> pkg = OOXMLPackage.open("reviewed.docx")
        >>> root = pkg.get_part("word/document.xml")
        >>> pkg.has_part("word/comments.xml")
        True
    """

    def __init__(self, parts: dict[str, bytes], name: str) -> None:
        """Initialize from already-read part bytes.

        Use `open()` or `from_bytes()` instead of calling this directly.

        Args:
            parts: Mapping of part name to raw bytes
            name: File name used in error messages
        """
        self._parts = parts
        self._name = name

    @classmethod
    def open(
        cls, source: str | Path | BinaryIO | bytes, name: str | None = None
    ) -> OOXMLPackage:
        """Open a package from a path, a file-like object or raw bytes.

        Args:
            source: Path to the .docx file, a binary stream or its bytes
            name: Name used in error messages for streams and bytes

        Returns:
            OOXMLPackage with every part loaded

        Raises:
            PackageError: If the file is missing or is not a readable ZIP archive
        """
        if isinstance(source, bytes):
            return cls.from_bytes(source, name or "<bytes>")

        if isinstance(source, str | Path):
            source_path = Path(source)
            name = str(source_path)
            if not source_path.exists():
                raise PackageError(name, "document not found")
            zip_source: Path | BinaryIO = source_path
        else:
            name = name or getattr(source, "name", None) or "<stream>"
            zip_source = source

        if not zipfile.is_zipfile(zip_source):
            raise PackageError(name, "not a valid .docx (ZIP) file")

        if hasattr(zip_source, "seek"):
            zip_source.seek(0)

        try:
            with zipfile.ZipFile(zip_source, "r") as archive:
                parts = {info.filename: archive.read(info) for info in archive.infolist()}
        except (zipfile.BadZipFile, OSError, RuntimeError) as e:
            raise PackageError(name, f"failed to read archive: {e}") from e

        logger.debug("Opened %s with %d parts", name, len(parts))
        return cls(parts, name)

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "<bytes>") -> OOXMLPackage:
        """Open a package from the bytes of a .docx file."""
        return cls.open(io.BytesIO(data), name=name)

    @property
    def name(self) -> str:
        """File name (or stream description) used in messages."""
        return self._name

    @property
    def part_names(self) -> list[str]:
        """Names of every part in the package, in archive order."""
        return list(self._parts)

    def has_part(self, part_name: str) -> bool:
        """Return True if the package contains the named part."""
        return part_name in self._parts

    def read_bytes(self, part_name: str) -> bytes | None:
        """Return the raw bytes of a part, or None if it doesn't exist."""
        return self._parts.get(part_name)

    def read_text(self, part_name: str) -> str | None:
        """Return a part decoded as UTF-8, or None if it doesn't exist."""
        data = self._parts.get(part_name)
        if data is None:
            return None
        return data.decode("utf-8", errors="replace")

    def get_part(self, part_name: str) -> etree._Element | None:
        """Get a package part as a parsed XML element.

        Args:
            part_name: Relative path within the package (e.g., "word/document.xml")

        Returns:
            Root element of the part, or None if the part doesn't exist

        Raises:
            PackageError: If the part is not well-formed XML
        """
        data = self._parts.get(part_name)
        if data is None:
            return None

        parser = etree.XMLParser(remove_blank_text=False, resolve_entities=False)
        try:
            return etree.fromstring(data, parser)
        except etree.XMLSyntaxError as e:
            raise PackageError(self._name, f"malformed XML: {e}", part=part_name) from e
