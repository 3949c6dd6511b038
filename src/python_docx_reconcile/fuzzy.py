"""
Fuzzy anchor matching support for text that changed slightly after review.

This module provides the optional last-resort anchor strategy using the
rapidfuzz library, which finds the best approximate alignment of an anchor
inside a larger text. It is enabled by setting ``fuzzy_threshold``.

Example:
    >>> from python_docx_reconcile.fuzzy import fuzzy_find
    >>> start, end, score = fuzzy_find("The producti0n products", "production products", 0.85)
    >>> start
    4
"""

from __future__ import annotations


def _import_fuzz():
    try:
        from rapidfuzz import fuzz
    except ImportError as e:
        raise ImportError(
            "rapidfuzz is required for fuzzy matching. "
            'Install it with: pip install "python-docx-reconcile[fuzzy]"'
        ) from e
    return fuzz


def fuzzy_ratio(text: str, pattern: str) -> float:
    """Return the similarity of two strings between 0.0 and 1.0.

    Raises:
        ImportError: If rapidfuzz is not installed
    """
    fuzz = _import_fuzz()
    return fuzz.ratio(text, pattern) / 100.0


def fuzzy_find(text: str, pattern: str, threshold: float = 0.9) -> tuple[int, int, float] | None:
    """Find the best approximate occurrence of pattern in text.

    Uses rapidfuzz's partial-ratio alignment, which slides the shorter
    string over the longer one and reports where the best match lies.

    Args:
        text: The text to search in
        pattern: The text to search for
        threshold: Similarity threshold (0.0 to 1.0)

    Returns:
        Tuple (start, end, similarity) in text coordinates, or None when no
        alignment reaches the threshold

    Raises:
        ImportError: If rapidfuzz is not installed
        ValueError: If threshold is not between 0 and 1
    """
    fuzz = _import_fuzz()

    if not 0 <= threshold <= 1:
        raise ValueError(f"Threshold must be between 0 and 1, got {threshold}")
    if not pattern or not text:
        return None

    alignment = fuzz.partial_ratio_alignment(pattern, text, score_cutoff=threshold * 100)
    if alignment is None:
        return None
    # dest_* always refers to the second argument
    return alignment.dest_start, alignment.dest_end, alignment.score / 100.0
