"""
Sets of grid cells.

A CellSet behaves like a mathematical set of Cell values but remembers the
order cells were added in, so every traversal over it is deterministic. Most
boundary algorithms of the converter produce and consume CellSets: flood
fills return them, boundary sets are classified as open, closed or mixed,
and shapes are traced from them.
"""

import logging
import re
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Optional, Tuple

import networkx as nx

from .models import Cell

if TYPE_CHECKING:
    from .abstraction import AbstractionGrid
    from .grid import TextGrid

logger = logging.getLogger(__name__)


class BoundaryType(Enum):
    """Topology of a boundary set."""

    CLOSED = "closed"
    OPEN = "open"
    MIXED = "mixed"
    UNDETERMINED = "undetermined"


class _FillResult(Enum):
    HAS_CLOSED_AREA = "has_closed_area"
    NOT_CLOSED = "not_closed"
    UNDETERMINED = "undetermined"


class CellSet:
    """
    An insertion-ordered set of cells.

    Example:
        >>> cells = CellSet([Cell(1, 1), Cell(2, 1)])
        >>> Cell(2, 1) in cells
        True
        >>> cells.to_cells_string()
        '(1,1)/(2,1)'
    """

    def __init__(self, cells: Optional[Iterable[Cell]] = None):
        self._cells: Dict[Cell, None] = dict.fromkeys(cells) if cells else {}

    def add(self, cell: Cell) -> None:
        self._cells[cell] = None

    def add_all(self, cells: Iterable[Cell]) -> None:
        for cell in cells:
            self._cells[cell] = None

    def remove(self, cell: Cell) -> None:
        self._cells.pop(cell, None)

    def subtract_set(self, other: "CellSet") -> None:
        """Remove every cell of other from this set, in place."""
        for cell in other:
            self._cells.pop(cell, None)

    def union(self, other: "CellSet") -> "CellSet":
        result = self.copy()
        result.add_all(other)
        return result

    def difference(self, other: "CellSet") -> "CellSet":
        return CellSet(cell for cell in self if cell not in other)

    def has_common_cells(self, other: "CellSet") -> bool:
        smaller, larger = (self, other) if len(self) <= len(other) else (other, self)
        return any(cell in larger for cell in smaller)

    def copy(self) -> "CellSet":
        return CellSet(self._cells)

    def size(self) -> int:
        return len(self._cells)

    def get_first(self) -> Cell:
        """Return the cell added first."""
        if not self._cells:
            raise ValueError("CellSet is empty")
        return next(iter(self._cells))

    def __contains__(self, cell: object) -> bool:
        return cell in self._cells

    def __iter__(self) -> Iterator[Cell]:
        return iter(list(self._cells))

    def __len__(self) -> int:
        return len(self._cells)

    def __bool__(self) -> bool:
        return bool(self._cells)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CellSet):
            return NotImplemented
        return self._cells.keys() == other._cells.keys()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"CellSet({self.to_cells_string()!r})"

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @property
    def min_x(self) -> int:
        return min(cell.x for cell in self._cells)

    @property
    def max_x(self) -> int:
        return max(cell.x for cell in self._cells)

    @property
    def min_y(self) -> int:
        return min(cell.y for cell in self._cells)

    @property
    def max_y(self) -> int:
        return max(cell.y for cell in self._cells)

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    def translate(self, dx: int, dy: int) -> "CellSet":
        return CellSet(cell.offset(dx, dy) for cell in self)

    def make_scaled_one_third_equivalent(self) -> "CellSet":
        """Map cells of a 3x abstraction grid back to source cells."""
        scaled = {Cell(cell.x // 3, cell.y // 3) for cell in self}
        return CellSet(sorted(scaled, key=Cell.sort_key))

    def to_cells_string(self) -> str:
        """Serialize as ``(x,y)/(x,y)/...`` in iteration order."""
        return "/".join(f"({cell.x},{cell.y})" for cell in self)

    # ------------------------------------------------------------------
    # Connectivity within a grid
    # ------------------------------------------------------------------

    def is_line_end(self, cell: Cell, grid: "TextGrid") -> bool:
        """True if cell has exactly one connected neighbour inside this set."""
        return grid.get_isolated_copy(self).is_lines_end(cell)

    def follow_cell(
        self, cell: Cell, grid: "TextGrid", came_from: Optional[Cell] = None
    ) -> "CellSet":
        """Cells of this set a line continues to from cell."""
        return grid.get_isolated_copy(self).follow_cell(cell, came_from)

    def get_local_grid(
        self, grid: "TextGrid", margin: int
    ) -> Tuple["TextGrid", "CellSet", int, int]:
        """Cut out the grid around this set, keeping some context."""
        origin_x, origin_y = self.min_x - margin, self.min_y - margin
        local = grid.get_sub_grid(
            origin_x, origin_y, self.width + 2 * margin, self.height + 2 * margin
        )
        return local, self.translate(-origin_x, -origin_y), origin_x, origin_y

    def _abstraction(
        self, grid: "TextGrid", margin: int = 2
    ) -> Tuple["AbstractionGrid", int, int]:
        from .abstraction import AbstractionGrid

        local, cells, origin_x, origin_y = self.get_local_grid(grid, margin)
        return AbstractionGrid(local, cells), origin_x, origin_y

    def get_type(self, grid: "TextGrid") -> BoundaryType:
        """
        Classify this boundary set.

        Two tests are combined. Tracing walks the set from a line end (or
        from its first cell) and reports CLOSED only if it comes back to the
        start without meeting a junction. Filling floods the outside of the
        set on the abstraction grid and reports whether anything stayed
        enclosed. A set with an enclosed area whose trace is open is MIXED.
        """
        if not self._cells:
            return BoundaryType.UNDETERMINED
        if len(self._cells) == 1:
            return BoundaryType.OPEN

        traced = self._type_by_tracing(grid)
        filled = self._type_by_filling(grid)
        if filled == _FillResult.HAS_CLOSED_AREA:
            if traced == BoundaryType.OPEN:
                return BoundaryType.MIXED
            return BoundaryType.CLOSED
        if filled == _FillResult.NOT_CLOSED:
            return BoundaryType.OPEN
        return BoundaryType.UNDETERMINED

    def _type_by_tracing(self, grid: "TextGrid") -> BoundaryType:
        work = grid.get_isolated_copy(self)
        start = next((cell for cell in self if work.is_lines_end(cell)), None)
        if start is None:
            start = self.get_first()

        next_cells = work.follow_cell(start)
        if not next_cells:
            return BoundaryType.OPEN
        previous, cell = start, next_cells.get_first()
        for _ in range(len(self._cells) + 1):
            if cell == start:
                return BoundaryType.CLOSED
            next_cells = work.follow_cell(cell, previous)
            if len(next_cells) != 1:
                return BoundaryType.OPEN
            previous, cell = cell, next_cells.get_first()
        return BoundaryType.OPEN

    def _type_by_filling(self, grid: "TextGrid") -> _FillResult:
        abstraction, _, _ = self._abstraction(grid)
        buffer = abstraction.get_copy_of_internal_buffer()
        if not buffer.is_blank(Cell(0, 0)):
            return _FillResult.UNDETERMINED
        buffer.fill_continuous_area(0, 0, "*")
        if any(buffer.is_blank(cell) for cell in buffer.cells()):
            return _FillResult.HAS_CLOSED_AREA
        return _FillResult.NOT_CLOSED

    def get_filled_equivalent(self, grid: "TextGrid") -> "CellSet":
        """
        Return this set plus every cell it encloses.

        Open sets enclose nothing and are returned as a copy.
        """
        if self.get_type(grid) == BoundaryType.OPEN:
            return self.copy()

        x_range = range(self.min_x - 1, self.max_x + 2)
        y_range = range(self.min_y - 1, self.max_y + 2)
        seed = Cell(x_range[0], y_range[0])
        outside = {seed}
        stack = [seed]
        while stack:
            cell = stack.pop()
            for neighbour in (cell.north(), cell.south(), cell.east(), cell.west()):
                if (
                    neighbour.x in x_range
                    and neighbour.y in y_range
                    and neighbour not in outside
                    and neighbour not in self
                ):
                    outside.add(neighbour)
                    stack.append(neighbour)
        return CellSet(
            Cell(x, y) for y in y_range for x in x_range if Cell(x, y) not in outside
        )

    def break_into_distinct_boundaries(
        self, grid: Optional["TextGrid"] = None
    ) -> List["CellSet"]:
        """
        Split this set into connected pieces.

        With a grid the pieces are the connected line networks found on the
        abstraction grid, so lines that merely touch stay apart. Without a
        grid, cells sharing a side are connected.
        """
        if not self._cells:
            return []
        if grid is not None:
            abstraction, origin_x, origin_y = self._abstraction(grid)
            return [
                shape.translate(origin_x, origin_y)
                for shape in abstraction.get_distinct_shapes()
            ]

        graph = nx.Graph()
        for cell in self:
            graph.add_node(cell)
            for neighbour in (cell.west(), cell.north()):
                if neighbour in self:
                    graph.add_edge(cell, neighbour)
        return [
            CellSet(sorted(component, key=Cell.sort_key))
            for component in nx.connected_components(graph)
        ]

    def break_truly_mixed_boundaries(self, grid: "TextGrid") -> List["CellSet"]:
        """
        Split a mixed set into its open tails and the rest.

        Each tail runs from a line end up to and including the junction it
        meets. The rest keeps those junctions so that it can still close.
        """
        work = grid.get_isolated_copy(self)
        tails: List[CellSet] = []
        visited_ends = set()
        junctions = CellSet()

        for start in self:
            if start in visited_ends or not work.is_lines_end(start):
                continue
            visited_ends.add(start)
            tail = CellSet([start])
            previous, cell = start, work.follow_cell(start).get_first()
            while True:
                tail.add(cell)
                if work.is_lines_end(cell):
                    visited_ends.add(cell)
                    break
                next_cells = work.follow_cell(cell, previous)
                if len(next_cells) != 1:
                    if len(next_cells) > 1:
                        junctions.add(cell)
                    break
                previous, cell = cell, next_cells.get_first()
            tails.append(tail)

        rest = self.copy()
        for tail in tails:
            rest.subtract_set(tail)
        result = list(tails)
        # Junctions alone are no boundary of their own.
        if rest.difference(junctions):
            rest.add_all(junctions)
            result.append(rest)
        logger.debug("Broke mixed set into %d tails", len(tails))
        return result

    @staticmethod
    def remove_duplicate_sets(sets: List["CellSet"]) -> List["CellSet"]:
        """Drop sets equal to an earlier one, keeping the first occurrence."""
        unique: List[CellSet] = []
        for cell_set in sets:
            if not any(cell_set == kept for kept in unique):
                unique.append(cell_set)
        return unique


CELL_PATTERN = re.compile(r"\(\s*(-?\d+)\s*,\s*(-?\d+)\s*\)")


def cell_set_from_cells_string(text: str) -> CellSet:
    """
    Parse a ``(x,y)/(x,y)/...`` string into a CellSet.

    Blanks around the numbers are allowed.

    Raises:
        ValueError: If a part is not a coordinate pair
    """
    cells = CellSet()
    if not text.strip():
        return cells
    for part in text.split("/"):
        match = CELL_PATTERN.fullmatch(part.strip())
        if match is None:
            raise ValueError(f"Malformed cell {part!r} in {text!r}")
        cells.add(Cell(int(match.group(1)), int(match.group(2))))
    return cells
