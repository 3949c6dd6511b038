"""
Table extraction from WordprocessingML and injection into converted text.

Document converters flatten tables into loose text, so tables are read
directly from the XML, expanded into rectangular grids and rendered back
as pipe tables in place of the converter's rendering.
"""

from __future__ import annotations

import logging

from lxml import etree

from .constants import m, w
from .models.table import TableGrid

logger = logging.getLogger(__name__)


def _cell_text(cell: etree._Element) -> str:
    """Extract the text of a table cell.

    Paragraphs are joined with a space. Equations contribute their OMML
    text, or ``[math]`` when they carry none. Pipes are escaped so the cell
    can be written into a pipe table.
    """
    paragraphs: list[str] = []
    for paragraph in cell.iter(w("p")):
        pieces: list[str] = []
        for element in paragraph.iter(w("t"), m("oMath")):
            if element.tag == w("t"):
                # Text inside an equation is collected with the equation itself
                if any(ancestor.tag == m("oMath") for ancestor in element.iterancestors()):
                    continue
                pieces.append(element.text or "")
            else:
                math_text = "".join(t.text or "" for t in element.iter(m("t")))
                pieces.append(math_text or "[math]")
        text = "".join(pieces).strip()
        if text:
            paragraphs.append(text)

    text = " ".join(paragraphs)
    text = " ".join(text.split())
    return text.replace("|", "\\|")


def _grid_span(cell: etree._Element) -> int:
    """Return the number of grid columns a cell spans."""
    span = cell.find(f"{w('tcPr')}/{w('gridSpan')}")
    if span is None:
        return 1
    try:
        return max(1, int(span.get(w("val"), "1")))
    except ValueError:
        return 1


def _is_merge_continuation(cell: etree._Element) -> bool:
    """Return True for a vertically merged cell that continues the cell above.

    A ``vMerge`` element without ``val="restart"`` marks a continuation.
    """
    merge = cell.find(f"{w('tcPr')}/{w('vMerge')}")
    if merge is None:
        return False
    return merge.get(w("val")) != "restart"


def parse_table(table: etree._Element) -> TableGrid:
    """Convert a ``w:tbl`` element into a TableGrid.

    Horizontal merges are followed by empty filler cells so later cells keep
    their columns, and vertical-merge continuations become empty strings.

    Args:
        table: The ``w:tbl`` element

    Returns:
        TableGrid with one list of cell strings per row
    """
    rows: list[list[str]] = []
    for row in table.findall(w("tr")):
        cells: list[str] = []
        for cell in row.findall(w("tc")):
            text = "" if _is_merge_continuation(cell) else _cell_text(cell)
            cells.append(text)
            cells.extend([""] * (_grid_span(cell) - 1))
        rows.append(cells)

    grid_cols = table.findall(f"{w('tblGrid')}/{w('gridCol')}")
    if grid_cols:
        column_count = len(grid_cols)
    else:
        column_count = max((len(r) for r in rows), default=0)

    return TableGrid(rows=rows, column_count=column_count)


def extract_tables(root: etree._Element | None) -> list[TableGrid]:
    """Extract every top-level table of a document part, in document order.

    Tables nested inside another table's cells are part of that cell's text
    and are not returned separately.

    Args:
        root: Root element of ``word/document.xml``, or None

    Returns:
        List of TableGrid objects (empty when root is None)
    """
    if root is None:
        return []

    tables: list[TableGrid] = []
    for table in root.iter(w("tbl")):
        if any(ancestor.tag == w("tbl") for ancestor in table.iterancestors()):
            continue
        grid = parse_table(table)
        if grid.rows:
            tables.append(grid)

    logger.debug("Extracted %d table(s)", len(tables))
    return tables


def _unescape(cell: str) -> str:
    return cell.replace("\\|", "|")


def inject_tables(text: str, tables: list[TableGrid]) -> str:
    """Replace the converter's flattened tables with pipe tables.

    For each table, the region from its first header cell to its last body
    cell is located in the text, widened to blank-line paragraph boundaries
    and replaced with the table's pipe rendering. Tables are searched for in
    order, each one after the previous replacement. A table whose cells
    cannot be found is left alone.

    Args:
        text: Text produced by the document converter
        tables: Tables extracted from the same document

    Returns:
        Text with every locatable table replaced
    """
    result = text
    cursor = 0

    for table in tables:
        header = [c for c in table.rows[0] if c] if table.rows else []
        last_row = [c for c in table.rows[-1] if c] if table.rows else []
        if not header or not last_row:
            continue

        first_cell = _unescape(header[0])
        last_cell = _unescape(last_row[-1])

        start = result.find(first_cell, cursor)
        if start == -1:
            logger.debug("Table header cell %r not found; table left as converted", first_cell)
            continue
        end = result.find(last_cell, start)
        if end == -1:
            continue

        region_start = result.rfind("\n\n", cursor, start)
        region_start = cursor if region_start == -1 else region_start + 2

        region_end = result.find("\n\n", end + len(last_cell))
        if region_end == -1:
            region_end = len(result)

        markdown = table.to_markdown()
        result = result[:region_start] + markdown + result[region_end:]
        cursor = region_start + len(markdown)

    return result
