"""
Tests for entity extraction: plain text, comment anchors, comments and tables.
"""

import warnings

import pytest

from python_docx_reconcile import MissingEndMarkerWarning, OOXMLPackage, extract_entities
from python_docx_reconcile.extraction import (
    context_after,
    context_before,
    extract_comment_anchors,
    extract_comments,
    markup_to_text_offset,
)
from python_docx_reconcile.models import TextNode

POINT_AND_DELETION_BODY = """
<w:p>
  <w:r><w:t>First part.</w:t></w:r>
  <w:commentRangeStart w:id="1"/>
  <w:commentRangeEnd w:id="1"/>
  <w:r><w:t> Second part with </w:t></w:r>
  <w:commentRangeStart w:id="2"/>
  <w:del w:id="9" w:author="Ana"><w:r><w:delText>old </w:delText></w:r></w:del>
  <w:r><w:t>wording</w:t></w:r>
  <w:commentRangeEnd w:id="2"/>
  <w:r><w:t>.</w:t></w:r>
</w:p>
"""

MISSING_END_BODY = """
<w:p>
  <w:commentRangeStart w:id="0"/>
  <w:r><w:t>Never closed.</w:t></w:r>
</w:p>
"""

TABLE_BODY = """
<w:tbl>
  <w:tblGrid><w:gridCol/><w:gridCol/><w:gridCol/></w:tblGrid>
  <w:tr>
    <w:tc><w:tcPr><w:gridSpan w:val="2"/></w:tcPr><w:p><w:r><w:t>Wide</w:t></w:r></w:p></w:tc>
    <w:tc><w:p><w:r><w:t>C</w:t></w:r></w:p></w:tc>
  </w:tr>
  <w:tr>
    <w:tc><w:tcPr><w:vMerge w:val="restart"/></w:tcPr><w:p><w:r><w:t>A</w:t></w:r></w:p></w:tc>
    <w:tc><w:p><w:r><w:t>x|y</w:t></w:r></w:p></w:tc>
    <w:tc><w:p><w:r><w:t>1</w:t></w:r></w:p></w:tc>
  </w:tr>
  <w:tr>
    <w:tc><w:tcPr><w:vMerge/></w:tcPr><w:p/></w:tc>
    <w:tc><w:p><w:r><w:t>z</w:t></w:r></w:p></w:tc>
    <w:tc><w:p><m:oMath><m:r><m:t>n+1</m:t></m:r></m:oMath></w:p></w:tc>
  </w:tr>
</w:tbl>
"""


class TestAnchors:
    """Tests for comment anchor extraction."""

    def test_one_anchor_per_comment(self, reviewed_docx) -> None:
        """Test that every closed comment range yields exactly one anchor."""
        result = extract_entities(reviewed_docx)
        assert list(result.anchors) == ["0"]

    def test_anchor_text_and_position(self, reviewed_docx) -> None:
        """Test anchor text and its plain-text offset."""
        result = extract_entities(reviewed_docx)
        anchor = result.anchors["0"]
        assert anchor.anchor_text == "Cite this claim"
        assert result.full_text[anchor.document_position :].startswith("Cite this claim")
        assert anchor.document_length == len(result.full_text)
        assert not anchor.is_empty

    def test_anchor_context(self, reviewed_docx) -> None:
        """Test context strings on both sides of the anchor."""
        anchor = extract_entities(reviewed_docx).anchors["0"]
        assert anchor.before.endswith("The results hold.")
        assert anchor.after == "in the text."

    def test_point_comment(self, make_docx) -> None:
        """Test that an empty selection gives a point comment with a position."""
        result = extract_entities(make_docx(POINT_AND_DELETION_BODY))
        anchor = result.anchors["1"]
        assert anchor.is_empty
        assert anchor.anchor_text == ""
        assert anchor.document_position == len("First part.")

    def test_deleted_text_included_in_anchor(self, make_docx) -> None:
        """Test that tracked deletions inside the range are part of the anchor."""
        result = extract_entities(make_docx(POINT_AND_DELETION_BODY))
        assert result.anchors["2"].anchor_text == "old wording"
        assert "old" not in result.full_text

    def test_missing_end_marker_skipped(self, make_docx) -> None:
        """Test that a range without an end marker is skipped with a warning."""
        path = make_docx(MISSING_END_BODY)
        with pytest.warns(MissingEndMarkerWarning):
            result = extract_entities(path)
        assert result.anchors == {}
        assert any("no end marker" in warning for warning in result.warnings)

    def test_anchor_api_returns_full_text(self, reviewed_docx) -> None:
        """Test the anchor-only entry point."""
        full_text, anchors = extract_comment_anchors(reviewed_docx)
        assert full_text == "ResultsThe results hold. Cite this claim in the text."
        assert set(anchors) == {"0"}


class TestTextNodes:
    """Tests for text nodes and offset mapping."""

    def test_nodes_join_to_full_text(self, make_docx) -> None:
        """Test that the node texts concatenate to the full text."""
        result = extract_entities(make_docx(POINT_AND_DELETION_BODY))
        assert "".join(node.text for node in result.nodes) == result.full_text

    def test_node_offsets_are_contiguous(self, reviewed_docx) -> None:
        """Test that each node starts where the previous one ended."""
        nodes = extract_entities(reviewed_docx).nodes
        for previous, node in zip(nodes, nodes[1:]):
            assert node.text_start == previous.text_end

    def test_markup_to_text_offset(self) -> None:
        """Test mapping of document-order indices to text offsets."""
        nodes = [TextNode("ab", 3, 0, 2), TextNode("cd", 7, 2, 4)]
        assert markup_to_text_offset(nodes, 0) == 0
        assert markup_to_text_offset(nodes, 5) == 2
        assert markup_to_text_offset(nodes, 7) == 2
        assert markup_to_text_offset(nodes, 99) == 4
        assert markup_to_text_offset([], 5) == 0


class TestContext:
    """Tests for the context helpers."""

    def test_before_trims_to_sentence_start(self) -> None:
        """Test that preceding context starts at the last sentence start."""
        text = "Old sentence. New sentence begins "
        assert context_before(text, len(text)) == "New sentence begins"

    def test_before_falls_back_to_tail(self) -> None:
        """Test the fallback when no sentence start is in the window."""
        text = "x" * 200
        assert context_before(text, 200, window=150, fallback=80) == "x" * 80

    def test_after_trims_to_sentence_end(self) -> None:
        """Test that following context stops after the first sentence end."""
        assert context_after("words here. More after.", 0) == "words here."


class TestComments:
    """Tests for reading the comments part."""

    def test_comment_fields(self, reviewed_docx) -> None:
        """Test id, author, date and joined paragraph text."""
        comments = extract_comments(reviewed_docx)
        assert len(comments) == 1
        comment = comments[0]
        assert comment.id == "0"
        assert comment.author == "Ana"
        assert comment.date == "2024-03-05"
        assert comment.text == "Please cite. Which source?"

    def test_missing_author_defaults_to_unknown(self, make_docx) -> None:
        """Test the default author name."""
        path = make_docx(
            "<w:p><w:r><w:t>x</w:t></w:r></w:p>",
            '<w:comment w:id="4"><w:p><w:r><w:t>Note</w:t></w:r></w:p></w:comment>',
        )
        comment = extract_comments(path)[0]
        assert comment.author == "Unknown"
        assert comment.date == ""

    def test_no_comments_part(self, make_docx) -> None:
        """Test that a document without comments yields an empty list."""
        assert extract_comments(make_docx("<w:p><w:r><w:t>x</w:t></w:r></w:p>")) == []

    def test_marker(self, reviewed_docx) -> None:
        """Test the inline annotation for a comment."""
        comment = extract_comments(reviewed_docx)[0]
        assert comment.marker == "{>>Ana: Please cite. Which source?<<}"


class TestTables:
    """Tests for table extraction."""

    def test_grid_span_filler(self, make_docx) -> None:
        """Test that a horizontally merged cell is followed by an empty filler."""
        table = extract_entities(make_docx(TABLE_BODY)).tables[0]
        assert table.rows[0] == ["Wide", "", "C"]

    def test_vertical_merge_continuation(self, make_docx) -> None:
        """Test that vertical merge continuations are empty."""
        table = extract_entities(make_docx(TABLE_BODY)).tables[0]
        assert table.rows[1][0] == "A"
        assert table.rows[2][0] == ""

    def test_pipe_escaped_and_math_text(self, make_docx) -> None:
        """Test pipe escaping and equation text inside cells."""
        table = extract_entities(make_docx(TABLE_BODY)).tables[0]
        assert table.rows[1][1] == "x\\|y"
        assert table.rows[2][2] == "n+1"

    def test_to_markdown(self, make_docx) -> None:
        """Test pipe table rendering of an extracted table."""
        table = extract_entities(make_docx(TABLE_BODY)).tables[0]
        lines = table.to_markdown().split("\n")
        assert lines[0] == "| Wide |  | C |"
        assert lines[1] == "|---|---|---|"
        assert len(lines) == 4


class TestMissingParts:
    """Tests for packages with missing parts."""

    def test_missing_document_part(self, make_docx) -> None:
        """Test that a package without a main part extracts nothing and warns."""
        result = extract_entities(make_docx(None))
        assert result.full_text == ""
        assert result.anchors == {}
        assert any("word/document.xml" in warning for warning in result.warnings)

    def test_accepts_opened_package(self, reviewed_docx) -> None:
        """Test extraction from an already opened package and from bytes."""
        package = OOXMLPackage.open(reviewed_docx)
        assert extract_entities(package).anchors["0"].anchor_text == "Cite this claim"
        data = reviewed_docx.read_bytes()
        assert extract_entities(data).comments[0].author == "Ana"

    def test_no_warning_without_comments(self, make_docx) -> None:
        """Test that a plain document extracts cleanly."""
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            result = extract_entities(make_docx("<w:p><w:r><w:t>Plain.</w:t></w:r></w:p>"))
        assert result.full_text == "Plain."
        assert result.comments == []
