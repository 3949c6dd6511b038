"""
Placeholder protection for atomic markdown elements during diffing.

Tables, images, figure/table anchors, cross-references, math and citations
must come through a word-level diff intact: a reviewer never "deletes half
of a citation". Each element is replaced by a token made only of word
characters (``XREFBLOCK0ENDXREF``), which the diff treats as a single word,
and restored afterward.

Protection always runs in a fixed order, outermost first::

    TABLE -> IMAGE -> ANCHOR -> CROSSREF -> MATH -> CITATION

and restoration runs in exactly the reverse order. ProtectedText enforces
this: records are grouped per kind and can only be restored through it.

A token that ends up inside an annotation created by the diff is re-threaded:

- ``{--a TOKEN b--}`` becomes ``{--a--} element {--b--}`` (elements are never deleted)
- ``{++a TOKEN b++}`` becomes ``{++a++} element {++b++}``
- ``{~~old TOKEN~>new~~}`` collapses to the element when the rest is unchanged,
  otherwise keeps a substitution for the surviving text next to the element

Example:
    >>> protector = PlaceholderProtector()
    >>> protected = protector.protect_all("See @fig:map [@smith2020].")
    >>> protected.text
    'See XREFBLOCK0ENDXREF CITEREF0ENDCITE.'
    >>> protected.restore(protected.text)
    'See @fig:map [@smith2020].'
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from .config import DEFAULT_SETTINGS, ReconcileSettings
from .criticmarkup import parse_annotations
from .models.placeholder import ElementKind, PlaceholderToken
from .normalization import squash_whitespace
from .registry import ImageRegistry

logger = logging.getLogger(__name__)

PROTECTION_ORDER: tuple[ElementKind, ...] = (
    ElementKind.TABLE,
    ElementKind.IMAGE,
    ElementKind.ANCHOR,
    ElementKind.CROSSREF,
    ElementKind.MATH,
    ElementKind.CITATION,
)

# Token prefix and suffix per kind; the counter (and any namespace) sits between
_TOKEN_AFFIXES: dict[ElementKind, tuple[str, str]] = {
    ElementKind.TABLE: ("TABLEBLOCK", "ENDTABLE"),
    ElementKind.IMAGE: ("IMAGEBLOCK", "ENDIMAGE"),
    ElementKind.ANCHOR: ("ANCHORBLOCK", "ENDANCHOR"),
    ElementKind.CROSSREF: ("XREFBLOCK", "ENDXREF"),
    ElementKind.MATH: ("MATHBLOCK", "ENDMATH"),
    ElementKind.CITATION: ("CITEREF", "ENDCITE"),
}

# Kinds whose rendered form replaces them in the converted text ("Figure 1"
# for @fig:map); a substitution of the bare token collapses to the element.
_RENDERED_FORM_KINDS = {ElementKind.CROSSREF, ElementKind.MATH, ElementKind.CITATION}

# Pipe table with optional caption line; must contain a |--- separator row
TABLE_PATTERN = re.compile(
    r"(?:^(?:\*\*)?Table[^\n]*\n\n?)?(?:^\|[^\n]*\|[ \t]*(?:\n|$))+", re.MULTILINE
)
_TABLE_SEPARATOR = re.compile(r"^\|\s*:?-{3,}", re.MULTILINE)

IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)(?:\{([^}]+)\})?")
ANCHOR_PATTERN = re.compile(r"\{#(?:fig|tbl|eq|sec|lst):[^}]+\}")
CROSSREF_PATTERN = re.compile(r"@(?:fig|tbl|eq|sec|lst):[a-zA-Z0-9_-]+")
DISPLAY_MATH_PATTERN = re.compile(r"\$\$([^$]+)\$\$")
INLINE_MATH_PATTERN = re.compile(r"\$([^$\n]+)\$")
CITATION_PATTERN = re.compile(r"\[@[^\]]+\]")

# Author-year citations as rendered by a citation processor:
# (Smith 2020), (Smith et al. 2020a; Jones & Lee 2019), (Smith 2019, 2020)
_NAME = r"[A-Z][a-zé]+(?:\s+et\s+al\.?)?"
RENDERED_CITATION_PATTERN = re.compile(
    rf"\((?:{_NAME}(?:\s*[&,;]\s*{_NAME})*\s+\d{{4}}[a-z]?"
    rf"(?:\s*[,;]\s*(?:{_NAME}\s+)?\d{{4}}[a-z]?)*)\)"
)

_FIGURE_NUMBER = re.compile(r"^(?:Figure|Fig\.?|Table|Tbl\.?)\s+(\d+|S\d+)[:.]?\s*", re.IGNORECASE)
_LABEL_IN_ATTRIBUTES = re.compile(r"#(?:fig|tbl):([a-zA-Z0-9_-]+)")


def simplify_math(latex: str) -> str:
    """Approximate the text a LaTeX expression renders to in a Word document.

    Example:
        >>> simplify_math(r"\\frac{a}{b} \\cdot \\hat{x}")
        'a/b · x'
    """
    text = re.sub(r"\\text\{([^}]+)\}", r"\1", latex)
    text = re.sub(r"\\hat\{([^}]+)\}", r"\1", text)
    text = re.sub(r"\\bar\{([^}]+)\}", r"\1", text)
    text = re.sub(r"\\frac\{([^}]+)\}\{([^}]+)\}", r"\1/\2", text)
    text = re.sub(r"\\sum_([a-z])", "Σ", text)
    text = text.replace("\\sum", "Σ")
    text = text.replace("\\cdot", "·")
    text = text.replace("\\quad", " ")
    text = text.replace("\\,", " ")
    text = text.replace("\\_", "_")
    text = text.replace("\\{", "{").replace("\\}", "}")
    text = text.replace("\\", "")
    text = re.sub(r"[{}]", "", text)
    return squash_whitespace(text)


def _image_metadata(match: re.Match[str]) -> dict[str, str | None]:
    caption, path, attributes = match.group(1), match.group(2), match.group(3)
    label = None
    if attributes:
        label_match = _LABEL_IN_ATTRIBUTES.search(attributes)
        if label_match:
            label = label_match.group(1)
    number_match = _FIGURE_NUMBER.match(caption)
    return {
        "caption": caption.strip(),
        "path": path,
        "label": label,
        "figure_number": number_match.group(1) if number_match else None,
    }


class PlaceholderProtector:
    """Issues placeholder tokens for one side of a comparison.

    Tokens are numbered per kind. The namespace distinguishes the two sides
    of a comparison (the canonical side uses ``""``, the rendered side
    ``"W"``). If any reserved text already contains a token prefix, the
    namespace is extended until no issued token can collide with it.

    Args:
        namespace: Prefix placed between the kind prefix and the counter
        reserved: Texts that tokens must never collide with
    """

    def __init__(self, namespace: str = "", reserved: tuple[str, ...] = ()) -> None:
        while any(
            f"{prefix}{namespace}" in text
            for prefix, _ in _TOKEN_AFFIXES.values()
            for text in reserved
        ):
            namespace += "Q"
        self.namespace = namespace
        self._counters = {kind: 0 for kind in ElementKind}

    def next_token(self, kind: ElementKind) -> str:
        """Return a new token for kind."""
        prefix, suffix = _TOKEN_AFFIXES[kind]
        token = f"{prefix}{self.namespace}{self._counters[kind]}{suffix}"
        self._counters[kind] += 1
        return token

    def protect(self, text: str, kind: ElementKind) -> tuple[str, list[PlaceholderToken]]:
        """Replace every element of one kind with a token.

        Args:
            text: Text to protect
            kind: Which elements to replace

        Returns:
            Tuple of (text with tokens, records in order of appearance)
        """
        wrapped = [(a.position, a.end_position) for a in parse_annotations(text)]
        records: list[PlaceholderToken] = []

        def substitute(match: re.Match[str], metadata: dict | None = None) -> str:
            original = match.group(0)
            replacement_tail = ""
            if kind == ElementKind.TABLE and original.endswith("\n"):
                # The final line break belongs to the surrounding text
                original = original[:-1]
                replacement_tail = "\n"
            token = self.next_token(kind)
            metadata = dict(metadata or {})
            if any(start <= match.start() < end for start, end in wrapped):
                metadata["in_annotation"] = True
            records.append(PlaceholderToken(original, token, kind, metadata))
            return token + replacement_tail

        if kind == ElementKind.TABLE:

            def table(match: re.Match[str]) -> str:
                if not _TABLE_SEPARATOR.search(match.group(0)):
                    return match.group(0)
                return substitute(match)

            text = TABLE_PATTERN.sub(table, text)
        elif kind == ElementKind.IMAGE:
            text = IMAGE_PATTERN.sub(lambda mt: substitute(mt, _image_metadata(mt)), text)
        elif kind == ElementKind.ANCHOR:
            text = ANCHOR_PATTERN.sub(substitute, text)
        elif kind == ElementKind.CROSSREF:
            text = CROSSREF_PATTERN.sub(substitute, text)
        elif kind == ElementKind.MATH:
            # Display math first so $$...$$ is never read as two inline spans
            text = DISPLAY_MATH_PATTERN.sub(
                lambda mt: substitute(
                    mt, {"display": True, "simplified": simplify_math(mt.group(1))}
                ),
                text,
            )
            wrapped = [(a.position, a.end_position) for a in parse_annotations(text)]
            text = INLINE_MATH_PATTERN.sub(
                lambda mt: substitute(
                    mt, {"display": False, "simplified": simplify_math(mt.group(1))}
                ),
                text,
            )
        else:
            text = CITATION_PATTERN.sub(substitute, text)

        return text, records

    def protect_all(
        self, text: str, kinds: tuple[ElementKind, ...] = PROTECTION_ORDER
    ) -> ProtectedText:
        """Protect the requested kinds, always in protection order.

        Args:
            text: Text to protect
            kinds: Subset of kinds to protect (order is ignored)

        Returns:
            ProtectedText holding the tokenized text and its records
        """
        protected = ProtectedText(text=text)
        for kind in PROTECTION_ORDER:
            if kind not in kinds:
                continue
            protected.text, records = self.protect(protected.text, kind)
            protected.records[kind] = records
        logger.debug(
            "Protected %s",
            ", ".join(f"{len(r)} {k.value}" for k, r in protected.records.items() if r) or "nothing",
        )
        return protected


@dataclass
class ProtectedText:
    """Tokenized text plus the records needed to restore it.

    Attributes:
        text: Text with tokens in place of protected elements
        records: Records per kind, each list in order of appearance
    """

    text: str
    records: dict[ElementKind, list[PlaceholderToken]] = field(default_factory=dict)

    def records_of(self, kind: ElementKind) -> list[PlaceholderToken]:
        """Return the records of one kind."""
        return self.records.get(kind, [])

    def restore(self, text: str) -> str:
        """Restore every record, innermost kind first."""
        return restore_all(text, self)


def restore_all(text: str, *sides: ProtectedText) -> str:
    """Restore the records of one or more sides in reverse protection order.

    For each kind (citations first, tables last) the records of every side
    are restored in the order the sides are given.

    Args:
        text: Text containing tokens
        *sides: ProtectedText objects whose tokens may appear in text

    Returns:
        Text with every token replaced by its element
    """
    for kind in reversed(PROTECTION_ORDER):
        for side in sides:
            text = restore(text, side.records_of(kind))
    return text


def restore(text: str, records: list[PlaceholderToken]) -> str:
    """Restore a list of records of one kind.

    Args:
        text: Text containing tokens
        records: Records to restore

    Returns:
        Text with each record's token replaced by its original element
    """
    for record in records:
        if record.placeholder not in text:
            continue
        if not record.metadata.get("in_annotation"):
            text = _restore_in_wrappers(text, record)
        text = text.replace(record.placeholder, record.original)
    return text


def _split_wrapper(fragment: str, opening: str, closing: str) -> str:
    """Re-wrap the text left on one side of an element, keeping edge whitespace."""
    core = fragment.strip()
    if not core:
        return fragment
    lead = fragment[: len(fragment) - len(fragment.lstrip())]
    trail = fragment[len(fragment.rstrip()) :]
    return f"{lead}{opening}{core}{closing}{trail}"


def _join(text: str, element: str, kind: ElementKind) -> str:
    if not text:
        return element
    if kind == ElementKind.ANCHOR:
        separator = ""
    elif kind == ElementKind.TABLE:
        separator = "\n\n"
    else:
        separator = " "
    return f"{text}{separator}{element}"


def _change(old: str, new: str) -> str:
    """Render the annotation for old text becoming new text."""
    if not old:
        return f"{{++{new}++}}" if new else ""
    if not new:
        return f"{{--{old}--}}"
    return f"{{~~{old}~>{new}~~}}"


def _restore_in_wrappers(text: str, record: PlaceholderToken) -> str:
    """Move a token out of any deletion, insertion or substitution around it."""
    token = re.escape(record.placeholder)
    original = record.original
    kind = record.kind

    def unwrap(opening: str, closing: str, closing_pattern: str) -> None:
        nonlocal text
        inner = rf"((?:(?!{closing_pattern}).)*?)"
        pattern = re.compile(re.escape(opening) + inner + token + inner + closing_pattern, re.DOTALL)
        text = pattern.sub(
            lambda mt: _split_wrapper(mt.group(1), opening, closing)
            + original
            + _split_wrapper(mt.group(2), opening, closing),
            text,
        )

    unwrap("{--", "--}", r"--\}")
    unwrap("{++", "++}", r"\+\+\}")

    side = r"((?:(?!~>|~~\}).)*?)"
    tail = r"((?:(?!~~\}).)*?)"

    def old_side(mt: re.Match[str]) -> str:
        old_rest = squash_whitespace(f"{mt.group(1)} {mt.group(2)}")
        new = squash_whitespace(mt.group(3))
        if old_rest == new:
            return _join(new, original, kind)
        if not old_rest and kind in _RENDERED_FORM_KINDS:
            return original
        return _join(_change(old_rest, new), original, kind)

    def new_side(mt: re.Match[str]) -> str:
        old = squash_whitespace(mt.group(1))
        new_rest = squash_whitespace(f"{mt.group(2)} {mt.group(3)}")
        if old == new_rest:
            return _join(new_rest, original, kind)
        return _join(_change(old, new_rest), original, kind)

    text = re.compile(r"\{~~" + side + token + side + r"~>" + tail + r"~~\}", re.DOTALL).sub(
        old_side, text
    )
    text = re.compile(r"\{~~" + side + r"~>" + tail + token + tail + r"~~\}", re.DOTALL).sub(
        new_side, text
    )
    return text


def replace_rendered_math(text: str, math_records: list[PlaceholderToken]) -> str:
    """Swap the rendered form of protected math in converted text for its token.

    Only the first occurrence of each simplified form is replaced, and forms
    shorter than two characters are skipped as too ambiguous.
    """
    for record in math_records:
        simplified = record.metadata.get("simplified") or ""
        if len(simplified) >= 2 and simplified in text:
            text = text.replace(simplified, record.placeholder, 1)
    return text


def replace_rendered_citations(text: str, citation_records: list[PlaceholderToken]) -> str:
    """Swap rendered author-year citations for the canonical citation tokens, in order.

    At most one rendered citation is consumed per canonical citation.
    """
    remaining = iter(citation_records)

    def swap(match: re.Match[str]) -> str:
        record = next(remaining, None)
        return record.placeholder if record else match.group(0)

    return RENDERED_CITATION_PATTERN.sub(swap, text)


def _strip_figure_number(caption: str) -> str:
    return re.sub(
        r"^(?:Figure|Fig\.?|Table|Tbl\.?)\s+\d+[:.]?\s*", "", caption, flags=re.IGNORECASE
    )


def _file_name(path: str) -> str:
    return path.rsplit("/", 1)[-1].lower()


def match_images(
    canonical: list[PlaceholderToken],
    rendered: list[PlaceholderToken],
    registry: ImageRegistry | None = None,
    settings: ReconcileSettings = DEFAULT_SETTINGS,
) -> dict[str, str]:
    """Pair rendered-side image tokens with canonical-side image tokens.

    Each rendered image is scored against every unused canonical image:
    equal labels, a registry display-number match, equal caption prefixes
    (or overlapping captions), and equal file names. The best pairing is
    accepted when it reaches ``settings.image_min_score``. Pairing is greedy
    in rendered order and each canonical image is used at most once.

    Args:
        canonical: Image records from the canonical side
        rendered: Image records from the rendered side
        registry: Optional registry for display-number lookups
        settings: Scoring weights and threshold

    Returns:
        Mapping of rendered token to canonical token
    """
    mapping: dict[str, str] = {}
    used: set[str] = set()

    for word_image in rendered:
        best: PlaceholderToken | None = None
        best_score = 0
        word_meta = word_image.metadata

        for original in canonical:
            if original.placeholder in used:
                continue
            orig_meta = original.metadata
            score = 0

            if word_meta.get("label") and word_meta.get("label") == orig_meta.get("label"):
                score += settings.image_label_weight

            number = word_meta.get("figure_number")
            if number and registry is not None:
                entry = registry.by_number.get(f"fig:{number}")
                if entry is not None and entry.label and entry.label == orig_meta.get("label"):
                    score += settings.image_number_weight

            word_caption = _strip_figure_number(word_meta.get("caption") or "").lower()[:50]
            orig_caption = (orig_meta.get("caption") or "").lower()[:50]
            if word_caption and orig_caption:
                if word_caption == orig_caption:
                    score += settings.image_caption_weight
                elif orig_caption[:30] in word_caption or word_caption[:30] in orig_caption:
                    score += settings.image_caption_overlap_weight

            if _file_name(word_meta.get("path") or "") == _file_name(orig_meta.get("path") or ""):
                score += settings.image_filename_weight

            if score > best_score:
                best_score = score
                best = original

        if best is not None and best_score >= settings.image_min_score:
            mapping[word_image.placeholder] = best.placeholder
            used.add(best.placeholder)

    logger.debug("Matched %d of %d rendered image(s)", len(mapping), len(rendered))
    return mapping


def _table_words(table: str) -> str:
    return squash_whitespace(re.sub(r"[|:\-]+", " ", table)).lower()


def match_tables(
    canonical: list[PlaceholderToken], rendered: list[PlaceholderToken]
) -> dict[str, str]:
    """Pair rendered tables with canonical tables in order when their cells agree.

    A rendered table is paired with the canonical table at the same index
    when both contain the same cell text, ignoring pipe layout, alignment
    rows and whitespace.

    Returns:
        Mapping of rendered token to canonical token
    """
    mapping: dict[str, str] = {}
    for word_table, original in zip(rendered, canonical):
        if _table_words(word_table.original) == _table_words(original.original):
            mapping[word_table.placeholder] = original.placeholder
    return mapping
