"""Column-aligned text tables."""

import sys
from typing import TextIO, TypeAlias

Row: TypeAlias = tuple[str, ...]


class TablePrinter:
    """Collects rows of cells and free-text lines, and renders them with aligned columns.

    Column widths depend on every row, so nothing is written until all rows
    have been inserted.
    """

    def __init__(self, columns: int):
        if columns < 1:
            raise ValueError(f"A table needs at least one column, got {columns}")
        self.columns = columns
        self.widths = [0] * columns
        self._lines: list[Row | str] = []

    def __len__(self) -> int:
        return len(self._lines)

    def insert(self, row: list[str] | tuple[str, ...]) -> None:
        """Add a row of exactly ``columns`` cells."""
        if len(row) != self.columns:
            raise ValueError(f"Expected {self.columns} cells, got {len(row)}: {row!r}")
        for i, cell in enumerate(row):
            self.widths[i] = max(self.widths[i], len(cell))
        self._lines.append(tuple(row))

    def insert_line(self, text: str) -> None:
        """Add a line that is printed as-is, outside the column layout."""
        self._lines.append(text)

    def render(self) -> str:
        out = []
        last = self.columns - 1
        for line in self._lines:
            if isinstance(line, str):
                out.append(line + "\n")
                continue
            cells = [cell if i == last else cell.ljust(self.widths[i] + 1) for i, cell in enumerate(line)]
            out.append("".join(cells) + "\n")
        return "".join(out)

    def output(self, stream: TextIO | None = None) -> None:
        (stream or sys.stdout).write(self.render())
