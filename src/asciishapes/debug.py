"""
Debug utilities for asciishapes.

This module provides tools for understanding and troubleshooting
conversions. They work on the text side of the pipeline: grids, their
working copies and the boundary cell sets found in them.

Key Components:
- diff_cells: The cells where two grids or texts differ
- visual_diff: Show those cells row by row
- GridInspector: Utilities for inspecting grid state
- format_cell_set: Show a boundary set drawn over its grid

Usage:
    >>> diagram = convert(text, ConversionOptions(debug=True))
    >>> rows = diagram.trace.get_grid_at_stage("work_grid")

    # For comparing expected vs actual grids:
    >>> from asciishapes.debug import visual_diff
    >>> print(visual_diff(expected_grid, actual_grid))
"""

from typing import Dict, Iterable, List, Tuple, Union

from .cellset import CellSet
from .grid import BLANK, BOUNDARIES, OUT_OF_BOUNDS, TextGrid
from .models import Cell

GridOrText = Union[TextGrid, str]


def _as_grid(value: GridOrText) -> TextGrid:
    if isinstance(value, TextGrid):
        return value
    return TextGrid.from_lines(value.split("\n"))


def _char_at(grid: TextGrid, x: int, y: int) -> str:
    char = grid.get_at(x, y)
    return BLANK if char == OUT_OF_BOUNDS else char


def diff_cells(expected: GridOrText, actual: GridOrText) -> CellSet:
    """
    Find the cells whose characters differ between two grids.

    Cells past the edge of the smaller grid count as blank, so trailing
    blanks never show up as differences.
    """
    exp_grid, act_grid = _as_grid(expected), _as_grid(actual)
    width = max(exp_grid.width, act_grid.width)
    height = max(exp_grid.height, act_grid.height)
    return CellSet(
        Cell(x, y)
        for y in range(height)
        for x in range(width)
        if _char_at(exp_grid, x, y) != _char_at(act_grid, x, y)
    )


def visual_diff(expected: GridOrText, actual: GridOrText, mark: str = "^") -> str:
    """
    Show where two grids differ, cell by cell.

    Every row holding a difference is printed from both grids, followed by
    a row with mark under each differing cell. The differing cells are
    listed at the end as (x, y) pairs.

    Example:
        >>> print(visual_diff("+--+\\n|  |", "+--+\\n|  :"))
    """
    output: List[str] = ["=" * 60, "VISUAL DIFF", "=" * 60]
    cells = diff_cells(expected, actual)
    if not cells:
        output.append("No differences found.")
        return "\n".join(output)

    exp_grid, act_grid = _as_grid(expected), _as_grid(actual)
    width = max(exp_grid.width, act_grid.width)
    rows = sorted({cell.y for cell in cells})
    output.append(f"Found {len(cells)} differing cell(s) on {len(rows)} row(s)")
    output.append("")
    for y in rows:
        expected_row = "".join(_char_at(exp_grid, x, y) for x in range(width))
        actual_row = "".join(_char_at(act_grid, x, y) for x in range(width))
        marks = "".join(mark if Cell(x, y) in cells else " " for x in range(width))
        output.append(f"{y:3d}: E |{expected_row}|")
        output.append(f"     A |{actual_row}|")
        output.append(f"       |{marks}|")

    listed = ", ".join(str(cell) for cell in list(cells)[:10])
    output.append("")
    output.append(f"Cells: {listed}{' ...' if len(cells) > 10 else ''}")
    return "\n".join(output)


def format_cell_set(grid: TextGrid, cells: Iterable[Cell], mark: str = "#") -> str:
    """
    Draw a set of cells over a grid.

    Cells of the set are replaced by mark, so a boundary set can be checked
    against the diagram it was found in.

    Example:
        >>> print(format_cell_set(grid, boundaries))
    """
    return GridInspector(grid).overlay(cells, mark)


class GridInspector:
    """
    Utilities for inspecting grid state.

    Provides methods for finding specific characters, extracting rows,
    columns and regions, and drawing cell sets over the grid.
    """

    def __init__(self, grid: TextGrid):
        """
        Initialize the inspector.

        Args:
            grid: The grid to inspect
        """
        self._grid = grid

    def find_char(self, char: str) -> List[Tuple[int, int]]:
        """
        Find all positions of a specific character.

        Returns:
            List of (x, y) tuples where the character appears
        """
        return [
            (cell.x, cell.y) for cell in self._grid.cells() if self._grid.get(cell) == char
        ]

    def find_chars(self, chars: str) -> List[Tuple[int, int, str]]:
        """
        Find all positions of any character in the given set.

        Args:
            chars: String of characters to find (e.g., "+/\\")

        Returns:
            List of (x, y, char) tuples
        """
        char_set = set(chars)
        return [
            (cell.x, cell.y, self._grid.get(cell))
            for cell in self._grid.cells()
            if self._grid.get(cell) in char_set
        ]

    def get_row(self, y: int) -> str:
        return self._grid.get_row(y)

    def get_column(self, x: int) -> str:
        """Get a single column as a string."""
        if 0 <= x < self._grid.width:
            return "".join(self._grid.get_at(x, y) for y in range(self._grid.height))
        return ""

    def get_region(self, x: int, y: int, width: int, height: int) -> str:
        """
        Get a rectangular region of the grid.

        Cells outside the grid come out blank.

        Returns:
            Multi-line string of the region
        """
        return self._grid.get_sub_grid(x, y, width, height).to_string()

    def count_char(self, char: str) -> int:
        return len(self.find_char(char))

    def get_boundary_chars_count(self) -> Dict[str, int]:
        """Count every line-drawing character that is part of a boundary."""
        counts: Dict[str, int] = {}
        for cell in self._grid.get_all_boundaries():
            char = self._grid.get(cell)
            if char in BOUNDARIES:
                counts[char] = counts.get(char, 0) + 1
        return counts

    def overlay(self, cells: Iterable[Cell], mark: str = "#") -> str:
        """Render the grid with the given cells replaced by mark."""
        marked = self._grid.copy()
        marked.fill_cells_with(CellSet(cells), mark)
        return marked.to_string()
