"""
Tests for placeholder protection and restoration of atomic markdown elements.
"""

import pytest

from python_docx_reconcile import build_image_registry
from python_docx_reconcile.models import ElementKind
from python_docx_reconcile.models.placeholder import PlaceholderToken
from python_docx_reconcile.protect import (
    PROTECTION_ORDER,
    PlaceholderProtector,
    match_images,
    match_tables,
    replace_rendered_citations,
    replace_rendered_math,
    restore,
    restore_all,
    simplify_math,
)

FULL_DOCUMENT = (
    "Intro @fig:map and $x$ [@doe2021].\n\n"
    "| a | b |\n|---|---|\n| 1 | 2 |\n\n"
    "![Map](m.png){#fig:map}\n\n"
    "Equation $$E = mc^2$$ here {#eq:energy}."
)

XREF = PlaceholderToken("@fig:a", "XREFBLOCK0ENDXREF", ElementKind.CROSSREF)


class TestProtectAll:
    """Tests for protecting every kind at once."""

    def test_crossref_and_citation(self):
        """Cross-references and citations become word tokens."""
        protected = PlaceholderProtector().protect_all("See @fig:map [@smith2020].")
        assert protected.text == "See XREFBLOCK0ENDXREF CITEREF0ENDCITE."
        assert protected.restore(protected.text) == "See @fig:map [@smith2020]."

    def test_round_trip(self):
        """Restoring unmodified protected text gives back the original."""
        protected = PlaceholderProtector().protect_all(FULL_DOCUMENT)
        assert "@fig" not in protected.text
        assert "$" not in protected.text
        assert "|" not in protected.text
        assert protected.restore(protected.text) == FULL_DOCUMENT

    @pytest.mark.parametrize("text", ["", "plain prose without elements", "price is 5 dollars"])
    def test_zero_instances(self, text):
        """Text without elements passes through unchanged."""
        protected = PlaceholderProtector().protect_all(text)
        assert protected.text == text
        assert all(records == [] for records in protected.records.values())
        assert protected.restore(text) == text

    def test_records_per_kind(self):
        """Records are grouped by kind in order of appearance."""
        protected = PlaceholderProtector().protect_all(FULL_DOCUMENT)
        assert [r.original for r in protected.records_of(ElementKind.CROSSREF)] == ["@fig:map"]
        assert [r.original for r in protected.records_of(ElementKind.ANCHOR)] == ["{#eq:energy}"]
        assert len(protected.records_of(ElementKind.MATH)) == 2
        assert len(protected.records_of(ElementKind.TABLE)) == 1
        assert len(protected.records_of(ElementKind.IMAGE)) == 1

    def test_subset_of_kinds(self):
        """Only the requested kinds are protected."""
        protected = PlaceholderProtector("W").protect_all(
            FULL_DOCUMENT, (ElementKind.TABLE, ElementKind.IMAGE)
        )
        assert "@fig:map" in protected.text
        assert "TABLEBLOCKW0ENDTABLE" in protected.text
        assert "IMAGEBLOCKW0ENDIMAGE" in protected.text

    def test_protection_order(self):
        """Tables are protected first and citations last."""
        assert PROTECTION_ORDER[0] == ElementKind.TABLE
        assert PROTECTION_ORDER[-1] == ElementKind.CITATION


class TestTokens:
    """Tests for token naming."""

    def test_namespaces(self):
        """The rendered side uses its own namespace."""
        assert PlaceholderProtector().next_token(ElementKind.IMAGE) == "IMAGEBLOCK0ENDIMAGE"
        assert PlaceholderProtector("W").next_token(ElementKind.IMAGE) == "IMAGEBLOCKW0ENDIMAGE"

    def test_counter_per_kind(self):
        """Each kind is numbered separately."""
        protector = PlaceholderProtector()
        assert protector.next_token(ElementKind.MATH) == "MATHBLOCK0ENDMATH"
        assert protector.next_token(ElementKind.MATH) == "MATHBLOCK1ENDMATH"
        assert protector.next_token(ElementKind.CITATION) == "CITEREF0ENDCITE"

    def test_salt_avoids_collisions(self):
        """A namespace is extended when the text already contains a token prefix."""
        protector = PlaceholderProtector("", reserved=("literal XREFBLOCK0 in prose",))
        assert protector.namespace == "Q"
        assert protector.next_token(ElementKind.CROSSREF) == "XREFBLOCKQ0ENDXREF"


class TestProtectKinds:
    """Tests for individual element kinds."""

    def test_table_requires_separator(self):
        """Pipe lines without a separator row are not a table."""
        text, records = PlaceholderProtector().protect("| a | b |\n", ElementKind.TABLE)
        assert records == []
        assert text == "| a | b |\n"

    def test_table_keeps_trailing_newline(self):
        """The line break after a table stays in the text."""
        text, records = PlaceholderProtector().protect(
            "Intro\n\n| a | b |\n|---|---|\n| 1 | 2 |\n\nAfter", ElementKind.TABLE
        )
        assert text == "Intro\n\nTABLEBLOCK0ENDTABLE\n\nAfter"
        assert records[0].original == "| a | b |\n|---|---|\n| 1 | 2 |"

    def test_image_metadata(self):
        """Image records carry caption, path, label and figure number."""
        _, records = PlaceholderProtector().protect(
            "![Figure 2: Map of sites](media/image1.png)", ElementKind.IMAGE
        )
        metadata = records[0].metadata
        assert metadata["caption"] == "Figure 2: Map of sites"
        assert metadata["path"] == "media/image1.png"
        assert metadata["label"] is None
        assert metadata["figure_number"] == "2"

    def test_image_label(self):
        """The label is read from the attribute block."""
        _, records = PlaceholderProtector().protect(
            "![Map](figs/map.png){#fig:map width=50%}", ElementKind.IMAGE
        )
        assert records[0].metadata["label"] == "map"

    def test_display_math_before_inline(self):
        """Display math is never read as two inline spans."""
        text, records = PlaceholderProtector().protect("Let $$x^2$$ and $y$.", ElementKind.MATH)
        assert text == "Let MATHBLOCK0ENDMATH and MATHBLOCK1ENDMATH."
        assert records[0].metadata["display"] is True
        assert records[1].metadata["display"] is False

    def test_in_annotation_flag(self):
        """Elements already inside an annotation are flagged."""
        _, records = PlaceholderProtector().protect("{--see @fig:a--}", ElementKind.CROSSREF)
        assert records[0].metadata["in_annotation"] is True

    def test_simplify_math(self):
        """LaTeX is reduced to its approximate rendered text."""
        assert simplify_math(r"\frac{a}{b} \cdot \hat{x}") == "a/b · x"
        assert simplify_math(r"\text{rate}_i") == "rate_i"


class TestRestoreInWrappers:
    """Tests for restoring tokens that the diff wrapped in annotations."""

    def test_deletion_split_around_element(self):
        """An element is never deleted; the rest of the deletion is kept."""
        text = restore("{--old XREFBLOCK0ENDXREF words--}", [XREF])
        assert text == "{--old--} @fig:a {--words--}"

    def test_insertion_of_bare_token(self):
        """An insertion holding only the token becomes the element."""
        assert restore("x {++XREFBLOCK0ENDXREF++} y", [XREF]) == "x @fig:a y"

    def test_substitution_by_rendered_form(self):
        """A token replaced by its rendered form collapses to the element."""
        assert restore("See {~~XREFBLOCK0ENDXREF~>Figure 1~~}.", [XREF]) == "See @fig:a."

    def test_substitution_with_unchanged_rest(self):
        """An unchanged rest of the old side is kept before the element."""
        assert restore("{~~see XREFBLOCK0ENDXREF~>see~~}", [XREF]) == "see @fig:a"

    def test_token_on_new_side(self):
        """A token on the new side keeps the real change next to it."""
        text = restore("{~~old~>new XREFBLOCK0ENDXREF~~}", [XREF])
        assert text == "{~~old~>new~~} @fig:a"

    def test_flagged_record_replaced_in_place(self):
        """A record that was inside an annotation originally is restored in place."""
        record = PlaceholderToken(
            "@fig:a", "XREFBLOCK0ENDXREF", ElementKind.CROSSREF, {"in_annotation": True}
        )
        assert restore("{--see XREFBLOCK0ENDXREF--}", [record]) == "{--see @fig:a--}"

    def test_restore_all_reverse_order(self):
        """Inner kinds are restored before outer kinds, across both sides."""
        source = PlaceholderProtector().protect_all("Cited [@a] here.")
        rendered = PlaceholderProtector("W").protect_all(
            "![Chart](c.png)", (ElementKind.IMAGE,)
        )
        text = f"{source.text} {rendered.text}"
        assert restore_all(text, source, rendered) == "Cited [@a] here. ![Chart](c.png)"


class TestRenderedForms:
    """Tests for swapping rendered forms for canonical tokens."""

    def test_rendered_math(self):
        """The first occurrence of the simplified form is replaced."""
        protected = PlaceholderProtector().protect_all(r"Ratio $\frac{a}{b}$ and $x$.")
        records = protected.records_of(ElementKind.MATH)
        text = replace_rendered_math("Ratio a/b and x, also a/b.", records)
        assert text == "Ratio MATHBLOCK0ENDMATH and x, also a/b."

    def test_rendered_citations_in_order(self):
        """Rendered author-year citations take the canonical tokens in order."""
        protected = PlaceholderProtector().protect_all("As [@smith2020] and [@jones2019].")
        records = protected.records_of(ElementKind.CITATION)
        text = replace_rendered_citations(
            "As (Smith 2020) and (Jones et al. 2019a), see (Lee 2018).", records
        )
        assert text == "As CITEREF0ENDCITE and CITEREF1ENDCITE, see (Lee 2018)."


class TestMatching:
    """Tests for pairing rendered images and tables with source ones."""

    def setup_method(self):
        self.source = PlaceholderProtector().protect_all(
            "![Map of sites](figs/map.png){#fig:map}\n\n![Chart](figs/chart.png)"
        )

    def test_image_by_caption(self):
        """A rendered image with a numbered caption matches by caption text."""
        rendered = PlaceholderProtector("W").protect_all(
            "![Figure 1: Map of sites](media/image1.png)", (ElementKind.IMAGE,)
        )
        mapping = match_images(
            self.source.records_of(ElementKind.IMAGE), rendered.records_of(ElementKind.IMAGE)
        )
        assert mapping == {"IMAGEBLOCKW0ENDIMAGE": "IMAGEBLOCK0ENDIMAGE"}

    def test_image_by_file_name_and_registry(self):
        """Registry numbers and file names contribute to the score."""
        registry = build_image_registry("![Map of sites](figs/map.png){#fig:map}")
        rendered = PlaceholderProtector("W").protect_all(
            "![Figure 1: Different](media/map.png)", (ElementKind.IMAGE,)
        )
        mapping = match_images(
            self.source.records_of(ElementKind.IMAGE),
            rendered.records_of(ElementKind.IMAGE),
            registry,
        )
        assert mapping == {"IMAGEBLOCKW0ENDIMAGE": "IMAGEBLOCK0ENDIMAGE"}

    def test_unrelated_image_not_matched(self):
        """An image with nothing in common stays unmatched."""
        rendered = PlaceholderProtector("W").protect_all(
            "![Photo](media/image9.png)", (ElementKind.IMAGE,)
        )
        mapping = match_images(
            self.source.records_of(ElementKind.IMAGE), rendered.records_of(ElementKind.IMAGE)
        )
        assert mapping == {}

    def test_tables_with_same_cells(self):
        """Tables pair by index when their cells agree."""
        source = PlaceholderProtector().protect_all("| a | b |\n|---|---|\n| 1 | 2 |")
        rendered = PlaceholderProtector("W").protect_all(
            "| a  | b |\n|:---|---:|\n| 1 | 2 |", (ElementKind.TABLE,)
        )
        mapping = match_tables(
            source.records_of(ElementKind.TABLE), rendered.records_of(ElementKind.TABLE)
        )
        assert mapping == {"TABLEBLOCKW0ENDTABLE": "TABLEBLOCK0ENDTABLE"}

    def test_tables_with_different_cells(self):
        """Tables with edited cells are not paired."""
        source = PlaceholderProtector().protect_all("| a | b |\n|---|---|\n| 1 | 2 |")
        rendered = PlaceholderProtector("W").protect_all(
            "| a | b |\n|---|---|\n| 1 | 3 |", (ElementKind.TABLE,)
        )
        mapping = match_tables(
            source.records_of(ElementKind.TABLE), rendered.records_of(ElementKind.TABLE)
        )
        assert mapping == {}
