"""Shared fixtures: minimal reviewed .docx packages built with zipfile."""

import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest

WORD_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

CONTENT_TYPES = """<?xml version="1.0" encoding="UTF-8"?>
<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">
  <Default Extension="xml" ContentType="application/xml"/>
  <Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>
  <Override PartName="/word/document.xml" ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>
  <Override PartName="/word/comments.xml" ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.comments+xml"/>
</Types>"""

ROOT_RELS = """<?xml version="1.0" encoding="UTF-8"?>
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
<Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" Target="word/document.xml"/>
</Relationships>"""


def document_xml(body: str) -> str:
    """Wrap body XML in a w:document element."""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<w:document xmlns:w="{WORD_NS}" xmlns:m="http://schemas.openxmlformats.org/officeDocument/2006/math">
<w:body>
{body}
</w:body>
</w:document>"""


def comments_xml(comments: str) -> str:
    """Wrap w:comment elements in a w:comments element."""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<w:comments xmlns:w="{WORD_NS}">
{comments}
</w:comments>"""


def build_docx(path: Path, body: str | None, comments: str | None = None) -> Path:
    """Write a .docx with the given body XML and optional comment elements."""
    with zipfile.ZipFile(path, "w") as docx:
        docx.writestr("[Content_Types].xml", CONTENT_TYPES)
        docx.writestr("_rels/.rels", ROOT_RELS)
        if body is not None:
            docx.writestr("word/document.xml", document_xml(body))
        if comments is not None:
            docx.writestr("word/comments.xml", comments_xml(comments))
    return path


@pytest.fixture
def make_docx(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory that writes test documents into tmp_path."""

    def factory(body: str | None, comments: str | None = None, name: str = "reviewed.docx"):
        return build_docx(tmp_path / name, body, comments)

    return factory


REVIEWED_BODY = """
<w:p><w:r><w:t>Results</w:t></w:r></w:p>
<w:p>
  <w:r><w:t>The results hold. </w:t></w:r>
  <w:commentRangeStart w:id="0"/>
  <w:r><w:t>Cite this claim</w:t></w:r>
  <w:commentRangeEnd w:id="0"/>
  <w:r><w:commentReference w:id="0"/></w:r>
  <w:r><w:t> in the text.</w:t></w:r>
</w:p>
"""

REVIEWED_COMMENTS = """
<w:comment w:id="0" w:author="Ana" w:initials="A" w:date="2024-03-05T10:00:00Z">
  <w:p><w:r><w:t>Please cite.</w:t></w:r></w:p>
  <w:p><w:r><w:t>Which source?</w:t></w:r></w:p>
</w:comment>
"""


@pytest.fixture
def reviewed_docx(make_docx: Callable[..., Path]) -> Path:
    """A document with one heading, one paragraph and one comment."""
    return make_docx(REVIEWED_BODY, REVIEWED_COMMENTS)
