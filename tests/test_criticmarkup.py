"""Tests for the annotation grammar helpers."""

from python_docx_reconcile.criticmarkup import (
    AnnotationType,
    accepted_view,
    contains_delimiter,
    count_annotations,
    has_annotations,
    parse_annotations,
    strip_annotations,
)


class TestParse:
    """Tests for parse_annotations()."""

    def test_simple_insertion(self):
        """Parse a simple insertion."""
        annotations = parse_annotations("Hello {++world++}!")
        assert len(annotations) == 1
        assert annotations[0].type == AnnotationType.INSERTION
        assert annotations[0].text == "world"
        assert annotations[0].position == 6
        assert annotations[0].end_position == 17
        assert annotations[0].text_start == 9

    def test_substitution(self):
        """Parse old and new text of a substitution."""
        annotation = parse_annotations("a {~~old~>new~~} b")[0]
        assert annotation.type == AnnotationType.SUBSTITUTION
        assert annotation.text == "old"
        assert annotation.replacement == "new"

    def test_mixed_in_order(self):
        """Parse every kind, in document order."""
        text = "{--d--} {++i++} {>>R: c<<} [m]{marked} [h]{.mark}"
        kinds = [a.type for a in parse_annotations(text)]
        assert kinds == [
            AnnotationType.DELETION,
            AnnotationType.INSERTION,
            AnnotationType.COMMENT,
            AnnotationType.MARKED,
            AnnotationType.MARKED,
        ]

    def test_multiline_deletion(self):
        """Deletions may span paragraphs."""
        annotation = parse_annotations("{--first\n\nsecond--}")[0]
        assert annotation.text == "first\n\nsecond"


class TestAcceptedView:
    """Tests for accepted text with offset maps."""

    def test_offsets_point_into_annotated_text(self):
        """Every view character maps back to the same character."""
        text = "The {~~old~>new~~} text{>>R: note<<} {++here++}."
        view, offsets = accepted_view(text)
        assert view == "The new text here."
        assert all(text[offset] == char for char, offset in zip(view, offsets))

    def test_strip_annotations(self):
        """Strip resolves every annotation to accepted text."""
        assert strip_annotations("The {~~old~>new~~} text{>>R: note<<}") == "The new text"
        assert strip_annotations("[x]{.mark} and [y]{marked}") == "x and y"

    def test_plain_text_unchanged(self):
        """Text without annotations is its own view."""
        view, offsets = accepted_view("plain")
        assert view == "plain"
        assert offsets == [0, 1, 2, 3, 4]


class TestCounts:
    """Tests for count_annotations()."""

    def test_counts(self):
        """Count each kind; marked spans are not counted."""
        counts = count_annotations("{++a++} {--b--} {~~c~>d~~} {>>R: e<<} [x]{marked}")
        assert counts.insertions == 1
        assert counts.deletions == 1
        assert counts.substitutions == 1
        assert counts.comments == 1
        assert counts.total == 4

    def test_str(self):
        """Counts render as a summary line."""
        assert str(count_annotations("{++a++}")) == (
            "1 insertions, 0 deletions, 0 substitutions, 0 comments"
        )


class TestDelimiters:
    """Tests for delimiter detection."""

    def test_contains_delimiter(self):
        """Any opening or closing delimiter is detected."""
        assert contains_delimiter("a {++ b")
        assert contains_delimiter("x~>y")
        assert not contains_delimiter("plain [text]")

    def test_has_annotations(self):
        """A complete annotation is required."""
        assert has_annotations("a {--b--}")
        assert not has_annotations("a {-- b")
