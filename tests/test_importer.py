"""
Tests for importing a reviewed document into annotated markdown.
"""

import pytest

from python_docx_reconcile import (
    PackageError,
    SectionBoundary,
    build_image_registry,
    import_reviewed_document,
)

TRACKED = (
    'Results\n\nThe results [firmly]{.insertion author="Ana"} hold. '
    '[Cite this claim]{.comment-start id="0" author="Ana"}[]{.comment-end id="0"} in the text.'
)
MARKER = "{>>Ana: Please cite. Which source?<<}"


class TestTrackedImport:
    """Tests for converter output carrying tracked changes."""

    def test_changes_and_comment(self, reviewed_docx):
        """Tracked spans become annotations and the comment is placed."""
        result = import_reviewed_document(reviewed_docx, TRACKED)
        assert result.text == (
            "Results\n\nThe results {++firmly++} hold. "
            f"{MARKER}[Cite this claim]{{marked}} in the text."
        )
        assert result.stats.tracked_insertions == 1
        assert result.stats.comments_placed == 1
        assert result.stats.comments_unmatched == 0
        assert result.stats.annotations.insertions == 1
        assert result.stats.annotations.comments == 1

    def test_source_ignored_with_tracked_changes(self, reviewed_docx):
        """Tracked changes take precedence over reconciling the source."""
        result = import_reviewed_document(reviewed_docx, TRACKED, "# Something else entirely")
        assert "Something else" not in result.text
        assert "{++firmly++}" in result.text

    def test_placement_details(self, reviewed_docx):
        """The placement result is kept for reporting."""
        result = import_reviewed_document(reviewed_docx, TRACKED)
        assert result.placement is not None
        assert result.placement.placements[0].strategy == "direct"
        assert "Comments: 1 placed, 0 unmatched" in str(result)


class TestReconciledImport:
    """Tests for plain converter output reconciled against the source."""

    SOURCE = "# Results\n\nThe results hold. Cite this claim in the text."
    RENDERED = "Results\n\nThe results clearly hold. Cite this claim in the text."

    def test_diff_and_comment(self, reviewed_docx):
        """Reviewer edits are recovered by diffing and the comment is placed."""
        result = import_reviewed_document(reviewed_docx, self.RENDERED, self.SOURCE)
        assert result.text == (
            "# Results\n\nThe results {++clearly++} hold. "
            f"{MARKER}[Cite this claim]{{marked}} in the text."
        )
        assert result.stats.tracked_insertions == 0
        assert result.stats.annotations.insertions == 1

    def test_source_annotations_stripped(self, reviewed_docx):
        """Annotations already in the source are resolved before diffing."""
        source = "# Results\n\nThe results {++do++} hold. Cite this claim in the text."
        rendered = "Results\n\nThe results do hold. Cite this claim in the text."
        result = import_reviewed_document(reviewed_docx, rendered, source)
        assert result.stats.annotations.insertions == 0
        assert "The results do hold." in result.text

    def test_section_boundary(self, reviewed_docx):
        """A section boundary switches placement to position interpolation."""
        result = import_reviewed_document(
            reviewed_docx,
            self.RENDERED,
            self.SOURCE,
            section_boundary=SectionBoundary(0, 53),
        )
        assert result.placement.placements[0].strategy == "position+text"
        assert "[Cite this claim]{marked}" in result.text


class TestRegistryRestoration:
    """Tests for cross-reference and image restoration during import."""

    def test_reference_restored(self, make_docx):
        """Rendered figure references come back as labels."""
        docx = make_docx("<w:p><w:r><w:t>As shown in Figure 1.</w:t></w:r></w:p>")
        registry = build_image_registry("![Map](figs/map.png){#fig:map}")
        result = import_reviewed_document(docx, "As shown in Figure 1.", registry=registry)
        assert result.text == "As shown in @fig:map."
        assert result.stats.crossrefs_restored == 1

    def test_image_restored_once(self, make_docx):
        """A figure left twice by tracked changes gets one anchor."""
        docx = make_docx("<w:p><w:r><w:t>Map</w:t></w:r></w:p>")
        registry = build_image_registry("![Map of sites](figs/map.png){#fig:map}")
        rendered = (
            "![Figure 1: Map of sites](media/image1.png)\n\n"
            "[@fig:map: Map of sites]{.insertion author=\"R\"}"
        )
        result = import_reviewed_document(docx, rendered, registry=registry)
        assert result.text.count("{#fig:map}") == 1
        assert result.stats.images_restored == 0
        assert any("Skipped duplicate" in message for message in result.messages)

    def test_labels_shared_across_sections(self, make_docx):
        """Sections imported with one label set anchor a figure only once."""
        docx = make_docx("<w:p><w:r><w:t>Map</w:t></w:r></w:p>")
        registry = build_image_registry("![Map of sites](figs/map.png){#fig:map}")
        rendered = "![Figure 1: Map of sites](media/image1.png)"
        restored_labels: set[str] = set()

        first = import_reviewed_document(
            docx, rendered, registry=registry, restored_labels=restored_labels
        )
        second = import_reviewed_document(
            docx, rendered, registry=registry, restored_labels=restored_labels
        )

        assert first.text == "![Map of sites](figs/map.png){#fig:map}"
        assert second.text == "![Map of sites](figs/map.png)"
        assert restored_labels == {"fig:map"}


class TestImportErrors:
    """Tests for unusable input and degraded results."""

    def test_unreadable_document(self, tmp_path):
        """An unreadable .docx raises PackageError."""
        path = tmp_path / "broken.docx"
        path.write_text("not a zip")
        with pytest.raises(PackageError):
            import_reviewed_document(path, "text")

    def test_no_comments(self, make_docx):
        """A document without comments has no placement."""
        docx = make_docx("<w:p><w:r><w:t>Plain.</w:t></w:r></w:p>")
        result = import_reviewed_document(docx, "Plain.")
        assert result.placement is None
        assert result.text == "Plain."

    def test_unmatched_comment_reported(self, reviewed_docx):
        """A comment whose anchor is gone is counted and reported."""
        result = import_reviewed_document(reviewed_docx, "Completely different words.", quiet=True)
        assert result.stats.comments_unmatched == 1
        assert "1 comment(s) could not be matched to anchor text" in result.messages
