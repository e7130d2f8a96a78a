"""
Abstraction grid: a 3x resolution view of the boundary cells of a grid.

Every boundary cell of the source grid becomes a 3x3 block. The source
character stays at the block center and an arm of ``-`` or ``|`` is drawn
toward every side the cell connects to:

    ...      .|.      ...      .|.
    -+-      .+-      .+-      -+-
    .|.      .|.      .|.      ...
    (T)      (K)     (corner)  (inverse T)

(dots stand for blank cells).

Straight line characters always get a full run through the block. Block
corners stay blank, so two shapes that only touch diagonally in the source
can never be joined by a flood fill, and a ``+`` crossing turns into an
explicit four-way junction.
"""

import logging
from typing import Dict, FrozenSet, List, Tuple

import networkx as nx

from .cellset import CellSet
from .grid import HORIZONTAL_LINES, VERTICAL_LINES, TextGrid
from .models import Cell, Direction

logger = logging.getLogger(__name__)

SCALE = 3

_FULL_HORIZONTAL = frozenset({Direction.EAST, Direction.WEST})
_FULL_VERTICAL = frozenset({Direction.NORTH, Direction.SOUTH})

# Arm position inside a block and the character drawn there.
_ARMS: Dict[Direction, Tuple[int, int, str]] = {
    Direction.NORTH: (1, 0, "|"),
    Direction.EAST: (2, 1, "-"),
    Direction.SOUTH: (1, 2, "|"),
    Direction.WEST: (0, 1, "-"),
}


def block_arms(grid: TextGrid, cell: Cell) -> FrozenSet[Direction]:
    """
    Decide which arms the 3x3 block of a source cell gets.

    Returns:
        The sides to draw arms toward; empty if the cell is not a boundary
    """
    if not grid.is_boundary(cell):
        return frozenset()
    char = grid.get(cell)
    if char in HORIZONTAL_LINES:
        return _FULL_HORIZONTAL
    if char in VERTICAL_LINES:
        return _FULL_VERTICAL
    return grid.get_connections(cell)


class AbstractionGrid:
    """
    Three times enlarged rendering of selected boundary cells.

    Example:
        >>> abstraction = AbstractionGrid(grid, grid.get_all_boundaries())
        >>> shapes = abstraction.get_distinct_shapes()
    """

    def __init__(self, grid: TextGrid, cells: CellSet):
        """
        Build the abstraction grid.

        Args:
            grid: Source grid used for classification
            cells: Cells to render; non-boundary cells are skipped
        """
        self._source_width = grid.width
        self._source_height = grid.height
        self._grid = TextGrid(grid.width * SCALE, grid.height * SCALE)
        for cell in cells:
            arms = block_arms(grid, cell)
            if not arms:
                continue
            base_x, base_y = cell.x * SCALE, cell.y * SCALE
            self._grid.set_at(base_x + 1, base_y + 1, grid.get(cell))
            for direction in arms:
                dx, dy, char = _ARMS[direction]
                self._grid.set_at(base_x + dx, base_y + dy, char)

    @property
    def width(self) -> int:
        """Width of the source grid."""
        return self._source_width

    @property
    def height(self) -> int:
        """Height of the source grid."""
        return self._source_height

    def get_copy_of_internal_buffer(self) -> TextGrid:
        return self._grid.copy()

    @staticmethod
    def to_source_cell(cell: Cell) -> Cell:
        return Cell(cell.x // SCALE, cell.y // SCALE)

    @staticmethod
    def sub_cell_position(cell: Cell) -> Tuple[int, int]:
        """Position of an expanded cell within its block, each 0, 1 or 2."""
        return cell.x % SCALE, cell.y % SCALE

    def get_as_text_grid(self) -> TextGrid:
        """Collapse back to source size, marking rendered cells with ``*``."""
        result = TextGrid(self._source_width, self._source_height)
        for cell in self._grid.cells():
            if not self._grid.is_blank(cell):
                result.set(self.to_source_cell(cell), "*")
        return result

    def get_distinct_shapes(self) -> List[CellSet]:
        """
        Find the separate line networks.

        Returns:
            One CellSet of source cells per connected component of the
            enlarged grid, in row-major order of their first cell
        """
        graph = nx.Graph()
        for cell in self._grid.cells():
            if self._grid.is_blank(cell):
                continue
            graph.add_node(cell)
            for neighbour in (cell.west(), cell.north()):
                if self._grid.is_in_bounds(neighbour) and not self._grid.is_blank(
                    neighbour
                ):
                    graph.add_edge(cell, neighbour)

        shapes = []
        for component in nx.connected_components(graph):
            source_cells = {self.to_source_cell(cell) for cell in component}
            shapes.append(CellSet(sorted(source_cells, key=Cell.sort_key)))
        logger.debug("Found %d distinct shapes", len(shapes))
        return shapes
