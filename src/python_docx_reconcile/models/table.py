"""
Tables extracted from the rendered document as rectangular cell grids.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class TableGrid:
    """A table as rows of cell strings.

    Cell text is already escaped for pipe-table output. Rows may be shorter
    than ``column_count``; rendering pads them.

    Attributes:
        rows: Cell text per row, merged cells already expanded
        column_count: Declared grid width, or the widest row
    """

    rows: list[list[str]] = field(default_factory=list)
    column_count: int = 0

    @property
    def row_count(self) -> int:
        """Number of rows in the table."""
        return len(self.rows)

    @property
    def width(self) -> int:
        """Column count used for rendering."""
        widest = max((len(row) for row in self.rows), default=0)
        return max(self.column_count, widest)

    def to_markdown(self) -> str:
        """Render as a pipe table: header row, separator row, body rows.

        Example:
            >>> TableGrid([["a", "b"], ["1", "2"]], 2).to_markdown()
            '| a | b |\\n|---|---|\\n| 1 | 2 |'
        """
        if not self.rows:
            return ""

        width = self.width
        lines = []
        for index, row in enumerate(self.rows):
            cells = row + [""] * (width - len(row))
            lines.append("| " + " | ".join(cells) + " |")
            if index == 0:
                lines.append("|" + "|".join(["---"] * width) + "|")
        return "\n".join(lines)
