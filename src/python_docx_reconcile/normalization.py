"""
Length-preserving text normalization for case-insensitive matching.

Every function that produces a *search view* of a text either keeps the
length of the text unchanged or returns an offset map, so a match found in
the view can always be translated back to an offset in the original text.

Example:
    >>> fold_case("İstanbul ÉTÉ")
    'İstanbul été'
    >>> view, offsets = collapse_whitespace("a \\n b")
    >>> view, offsets
    ('a b', [0, 1, 4])
"""

from __future__ import annotations

import re

# One-for-one replacements applied before comparison. Every entry maps a single
# character to a single character so offsets are unaffected.
_SPECIAL_CHAR_MAP = str.maketrans(
    {
        # Quotes
        "\u2018": "'",  # Left single quotation mark
        "\u2019": "'",  # Right single quotation mark
        "\u201c": '"',  # Left double quotation mark
        "\u201d": '"',  # Right double quotation mark
        # Dashes
        "\u2013": "-",  # En dash
        "\u2014": "-",  # Em dash
        "\u2010": "-",  # Hyphen
        "\u2011": "-",  # Non-breaking hyphen
        "\u2212": "-",  # Minus sign
        # Spaces
        "\u00a0": " ",  # No-break space
        "\u202f": " ",  # Narrow no-break space
    }
)

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_special_chars(text: str) -> str:
    """Replace typographic quotes, dashes and no-break spaces with ASCII.

    Word documents carry smart quotes and en/em dashes where the markdown
    source usually has straight quotes and hyphens. The replacement is
    strictly one character for one character.

    Args:
        text: Text to normalize

    Returns:
        Normalized text of the same length
    """
    return text.translate(_SPECIAL_CHAR_MAP)


def fold_case(text: str) -> str:
    """Lower-case text without changing its length.

    ``str.lower()`` may expand a character (for example U+0130 becomes two
    code points), which would shift every later offset. Such characters are
    left as they are.

    Args:
        text: Text to fold

    Returns:
        Folded text where ``len(result) == len(text)``
    """
    if text.isascii():
        return text.lower()
    folded = []
    for char in text:
        lower = char.lower()
        folded.append(lower if len(lower) == 1 else char)
    return "".join(folded)


def search_form(text: str) -> str:
    """Return the same-length form used for all case-insensitive comparisons."""
    return fold_case(normalize_special_chars(text))


def collapse_whitespace(text: str) -> tuple[str, list[int]]:
    """Collapse every whitespace run to a single space, keeping an offset map.

    Args:
        text: Text to collapse

    Returns:
        Tuple of (collapsed text, offsets) where ``offsets[i]`` is the index in
        ``text`` of character ``i`` of the collapsed text
    """
    chars: list[str] = []
    offsets: list[int] = []
    in_space = False
    for index, char in enumerate(text):
        if char.isspace():
            if in_space:
                continue
            in_space = True
            chars.append(" ")
        else:
            in_space = False
            chars.append(char)
        offsets.append(index)
    return "".join(chars), offsets


def squash_whitespace(text: str) -> str:
    """Collapse all whitespace (including newlines) to single spaces and strip."""
    return _WHITESPACE_RUN.sub(" ", text).strip()
