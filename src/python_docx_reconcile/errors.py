"""
Custom exception classes for python_docx_reconcile package.

Only unusable input is fatal. Heuristic failures (an anchor that cannot be
located, a missing package part) degrade to warnings and counts instead of
exceptions, so most callers only ever need to handle PackageError.
"""

from pathlib import Path


class DocxReconcileError(Exception):
    """Base exception for all python_docx_reconcile errors."""

    pass


class PackageError(DocxReconcileError):
    """Raised when a rendered document package cannot be opened or parsed.

    Attributes:
        path: The offending file (or a description of an in-memory source)
        reason: What went wrong
        part: The package part being read, when the failure is part-specific
    """

    def __init__(self, path: str | Path, reason: str, part: str | None = None) -> None:
        self.path = str(path)
        self.reason = reason
        self.part = part
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format an error message naming the file and part."""
        msg = f"{self.path}: {self.reason}"
        if self.part:
            msg += f" (part '{self.part}')"
        return msg


class ConfigurationError(DocxReconcileError):
    """Raised when a settings or sections file is invalid.

    Attributes:
        message: Summary of the problem
        errors: Individual validation failures
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.message = message
        self.errors = errors or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the message with one line per validation failure."""
        msg = self.message
        if self.errors:
            msg += "\n\nErrors:\n"
            for error in self.errors:
                msg += f"  • {error}\n"
        return msg


class RegistryError(DocxReconcileError):
    """Raised when the image registry cannot be written."""

    pass


class AnchorNotFoundError(DocxReconcileError):
    """Raised when no locator strategy finds an anchor.

    Attributes:
        anchor: The anchor text that was searched for
        strategies: Names of the strategies that were attempted
    """

    def __init__(self, anchor: str, strategies: list[str] | None = None) -> None:
        self.anchor = anchor
        self.strategies = strategies or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format a message listing the strategies that were tried."""
        shown = self.anchor if len(self.anchor) <= 60 else self.anchor[:57] + "..."
        msg = f"Could not locate anchor '{shown}'"
        if self.strategies:
            msg += f"\n\nTried: {', '.join(self.strategies)}"
        return msg


class MissingEndMarkerWarning(UserWarning):
    """Warning issued when a comment range has a start marker but no end marker."""

    pass
