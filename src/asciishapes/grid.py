"""
Text grid and cell classification.

The TextGrid owns the character matrix of a diagram and answers every
question about what a cell means: is it part of a horizontal or vertical
line, a corner, a junction, the loose end of a line, an arrowhead? All such
answers are computed from the characters on demand, so they can never go
stale when a working copy of the grid is modified.

A cell "connects" toward a neighbour when both characters can carry a line
across their shared side. ``-`` and ``=`` carry lines east and west, ``|``
and ``:`` north and south, ``+`` and ``*`` in every direction. ``/`` and
``\\`` only form corners: ``/`` joins east with south or north with west,
``\\`` joins west with south or north with east.

Grids loaded from text are normalized: tabs are expanded, ragged rows are
padded, a blank border of two cells is added on every side, bullets become
``•`` and human readable color codes (``cRED``) become hex codes (``cE32``).
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Iterator, List, Optional, Tuple, Union

from .cellset import CellSet
from .models import (
    Cell,
    CellColorPair,
    CellTagPair,
    Direction,
    color_from_code,
)
from .patterns import POINT_MARKER_CRITERIA, match_arrowhead

logger = logging.getLogger(__name__)

BLANK = " "
# Returned for cells outside the grid; never part of any character class.
OUT_OF_BOUNDS = "\0"
# Written by boundary expansion into the cells it has visited.
FILL_MARKER = "\x01"

DEFAULT_TAB_SIZE = 8
BORDER = 2

HORIZONTAL_LINES = frozenset("-=")
VERTICAL_LINES = frozenset("|:")
CORNERS = frozenset("+/\\")
ROUND_CORNERS = frozenset("/\\")
POINT_MARKERS = frozenset("*")
ARROWHEADS = frozenset("<>^vV")
DASHED_LINES = frozenset(":~=")
JUNCTIONS = CORNERS | POINT_MARKERS
BOUNDARIES = HORIZONTAL_LINES | VERTICAL_LINES | JUNCTIONS

HUMAN_COLOR_CODES: Dict[str, str] = {
    "GRE": "9D9",
    "BLU": "55B",
    "PNK": "FAA",
    "RED": "E32",
    "YEL": "FF3",
    "BLK": "000",
}

_NO_DIRECTIONS: FrozenSet[Direction] = frozenset()
_ALL_DIRECTIONS: FrozenSet[Direction] = frozenset(Direction)
_CAPABILITIES: Dict[str, FrozenSet[Direction]] = {
    **{c: frozenset({Direction.EAST, Direction.WEST}) for c in HORIZONTAL_LINES},
    **{c: frozenset({Direction.NORTH, Direction.SOUTH}) for c in VERTICAL_LINES},
    **{c: _ALL_DIRECTIONS for c in JUNCTIONS},
}
# The pairs of sides a diagonal corner character can join.
_CORNER_PAIRS: Dict[str, Tuple[FrozenSet[Direction], ...]] = {
    "/": (
        frozenset({Direction.EAST, Direction.SOUTH}),
        frozenset({Direction.NORTH, Direction.WEST}),
    ),
    "\\": (
        frozenset({Direction.WEST, Direction.SOUTH}),
        frozenset({Direction.NORTH, Direction.EAST}),
    ),
}


class CellType(Enum):
    """Coarse classification of a single cell."""

    BLANK = "blank"
    TEXT = "text"
    HORIZONTAL_LINE = "horizontal_line"
    VERTICAL_LINE = "vertical_line"
    CORNER = "corner"
    CROSS_ON_LINE = "cross_on_line"
    INTERSECTION = "intersection"
    STUB = "stub"
    ARROWHEAD = "arrowhead"


@dataclass(frozen=True)
class CellClass:
    """
    Everything the classifier knows about one cell.

    Attributes:
        char: The character at the cell
        cell_type: Coarse classification
        connections: Directions the cell carries a line to
        boundary: Part of some line or shape outline
        round: Round corner
        dashed: Holds a dashed line character
        point: Corner, junction or line end
        line_end: Boundary cell with exactly one connection
        in_markup_tag: Covered by a {tag} span
        in_color_code: Covered by a cXXX span
    """

    char: str
    cell_type: CellType
    connections: FrozenSet[Direction]
    boundary: bool
    round: bool
    dashed: bool
    point: bool
    line_end: bool
    in_markup_tag: bool = False
    in_color_code: bool = False


class TextGrid:
    """
    A rectangular matrix of characters.

    Coordinates are (x, y) with the origin in the top-left corner. Reading
    outside the grid returns OUT_OF_BOUNDS; writing outside it is ignored.
    """

    LINE_SPLIT = re.compile(r"\r?\n")
    MARKUP_TAG_PATTERN = re.compile(r"\{([^{}\s]+)\}")
    COLOR_CODE_PATTERN = re.compile(r"(?<![A-Za-z0-9])c[0-9A-F]{3}(?![A-Za-z0-9])")
    HUMAN_COLOR_CODE_PATTERN = re.compile(
        r"(?<![A-Za-z0-9])c(" + "|".join(HUMAN_COLOR_CODES) + r")(?![A-Za-z0-9])"
    )
    BULLET_PATTERN = re.compile(r"(?<= )[o*](?= [A-Za-z0-9])")
    STRING_PATTERN = re.compile(r"[^ ]+(?: [^ ]+)*")

    def __init__(self, width: int = 0, height: int = 0):
        if width < 0 or height < 0:
            raise ValueError(f"Invalid grid size: {width}x{height}")
        self._width = width
        self._rows: List[List[str]] = [[BLANK] * width for _ in range(height)]

    @classmethod
    def from_lines(cls, lines: List[str]) -> "TextGrid":
        """
        Build a grid from rows as they are, padding short rows with blanks.

        No border is added and no characters are replaced.
        """
        width = max((len(line) for line in lines), default=0)
        grid = cls(width, len(lines))
        for y, line in enumerate(lines):
            grid._rows[y][: len(line)] = list(line)
        return grid

    @classmethod
    def from_text(cls, text: str, tab_size: int = DEFAULT_TAB_SIZE) -> "TextGrid":
        """
        Load and normalize diagram text.

        Args:
            text: The diagram, rows separated by newlines
            tab_size: Tab stop distance used for tab expansion

        Returns:
            A grid with a blank border of two cells around the content
        """
        lines = cls.LINE_SPLIT.split(text)
        while lines and not lines[-1].strip():
            lines.pop()
        lines = [line.expandtabs(max(tab_size, 0)) for line in lines]

        width = max((len(line) for line in lines), default=0)
        padding = " " * BORDER
        blank_row = " " * (width + 2 * BORDER)
        rows = [blank_row] * BORDER
        rows.extend(padding + line.ljust(width) + padding for line in lines)
        rows.extend([blank_row] * BORDER)

        grid = cls.from_lines(rows)
        grid.replace_bullets()
        grid.replace_human_color_codes()
        logger.debug("Loaded %dx%d grid", grid.width, grid.height)
        return grid

    @classmethod
    def load_from(
        cls,
        path: Union[str, Path],
        encoding: str = "utf-8",
        tab_size: int = DEFAULT_TAB_SIZE,
    ) -> "TextGrid":
        """Read a diagram file and load it with from_text()."""
        text = Path(path).read_text(encoding=encoding)
        return cls.from_text(text, tab_size=tab_size)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return len(self._rows)

    def is_in_bounds(self, cell: Cell) -> bool:
        return 0 <= cell.x < self._width and 0 <= cell.y < len(self._rows)

    def get(self, cell: Cell) -> str:
        if self.is_in_bounds(cell):
            return self._rows[cell.y][cell.x]
        return OUT_OF_BOUNDS

    def get_at(self, x: int, y: int) -> str:
        return self.get(Cell(x, y))

    def set(self, cell: Cell, char: str) -> None:
        if self.is_in_bounds(cell):
            self._rows[cell.y][cell.x] = char

    def set_at(self, x: int, y: int, char: str) -> None:
        self.set(Cell(x, y), char)

    def get_row(self, y: int) -> str:
        if 0 <= y < len(self._rows):
            return "".join(self._rows[y])
        return ""

    def get_rows(self) -> List[str]:
        return ["".join(row) for row in self._rows]

    def cells(self) -> Iterator[Cell]:
        """Iterate over every cell in row-major order."""
        for y in range(self.height):
            for x in range(self._width):
                yield Cell(x, y)

    def copy(self) -> "TextGrid":
        grid = TextGrid()
        grid._width = self._width
        grid._rows = [row[:] for row in self._rows]
        return grid

    def make_blank_copy(self) -> "TextGrid":
        """Return a blank grid of the same size."""
        return TextGrid(self._width, self.height)

    def get_isolated_copy(self, cells: CellSet) -> "TextGrid":
        """Return a same-sized grid holding only the given cells."""
        grid = self.make_blank_copy()
        self.copy_cells_to(cells, grid)
        return grid

    def copy_cells_to(self, cells: CellSet, target: "TextGrid") -> None:
        for cell in cells:
            target.set(cell, self.get(cell))

    def fill_cells_with(self, cells: CellSet, char: str) -> None:
        for cell in cells:
            self.set(cell, char)

    def get_sub_grid(self, x: int, y: int, width: int, height: int) -> "TextGrid":
        """Copy a window of the grid; cells outside this grid come out blank."""
        grid = TextGrid(width, height)
        for row in range(height):
            for col in range(width):
                char = self.get_at(x + col, y + row)
                if char != OUT_OF_BOUNDS:
                    grid._rows[row][col] = char
        return grid

    def get_testing_sub_grid(self, cell: Cell) -> "TextGrid":
        """Return the 3x3 window centered on cell."""
        return self.get_sub_grid(cell.x - 1, cell.y - 1, 3, 3)

    def to_string(self) -> str:
        return "\n".join(self.get_rows())

    def __str__(self) -> str:
        return self.to_string()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TextGrid):
            return NotImplemented
        return self._width == other._width and self._rows == other._rows

    __hash__ = None  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def _sub_rows(self, pattern: re.Pattern, replacement) -> None:
        for y, row in enumerate(self.get_rows()):
            new_row = pattern.sub(replacement, row)
            if new_row != row:
                self._rows[y] = list(new_row)

    def replace_bullets(self) -> None:
        """Turn ``o`` and ``*`` list bullets into ``•`` so they are not lines."""
        self._sub_rows(self.BULLET_PATTERN, "•")

    def replace_human_color_codes(self) -> None:
        self._sub_rows(
            self.HUMAN_COLOR_CODE_PATTERN,
            lambda match: "c" + HUMAN_COLOR_CODES[match.group(1)],
        )

    def replace_type_on_line(self) -> None:
        """
        Replace letters and digits sitting on a line with line characters.

        A character between two horizontal line characters becomes the
        western one, between two vertical ones the northern one, and a
        character on both becomes a ``+``.
        """
        replacements: List[Tuple[Cell, str]] = []
        for cell in self.cells():
            if not self.get(cell).isalnum():
                continue
            west, east = self.get(cell.west()), self.get(cell.east())
            north, south = self.get(cell.north()), self.get(cell.south())
            horizontal = west in HORIZONTAL_LINES and east in HORIZONTAL_LINES
            vertical = north in VERTICAL_LINES and south in VERTICAL_LINES
            if horizontal and vertical:
                replacements.append((cell, "+"))
            elif horizontal:
                replacements.append((cell, west))
            elif vertical:
                replacements.append((cell, north))
        for cell, char in replacements:
            self.set(cell, char)

    def replace_point_markers_on_line(self) -> CellSet:
        """
        Replace ``*`` point markers sitting on lines with ``+``.

        Returns:
            The cells that held point markers
        """
        markers = CellSet(
            cell
            for cell in self.cells()
            if self.get(cell) in POINT_MARKERS and self.is_point_marker_on_line(cell)
        )
        self.fill_cells_with(markers, "+")
        return markers

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def is_blank(self, cell: Cell) -> bool:
        return self.get(cell) == BLANK

    def _candidate_connections(self, cell: Cell) -> FrozenSet[Direction]:
        capabilities = _CAPABILITIES.get(self.get(cell), _NO_DIRECTIONS)
        found = set()
        for direction in capabilities:
            neighbour = self.get(direction.step(cell))
            if direction.opposite() in _CAPABILITIES.get(neighbour, _NO_DIRECTIONS):
                found.add(direction)
        return frozenset(found)

    def _own_connections(self, cell: Cell) -> FrozenSet[Direction]:
        candidates = self._candidate_connections(cell)
        pairs = _CORNER_PAIRS.get(self.get(cell))
        if pairs is None:
            return candidates
        joined: FrozenSet[Direction] = _NO_DIRECTIONS
        for pair in pairs:
            if pair <= candidates:
                joined |= pair
        return joined

    def _mutual_connections(self, cell: Cell) -> FrozenSet[Direction]:
        return frozenset(
            direction
            for direction in self._own_connections(cell)
            if direction.opposite() in self._own_connections(direction.step(cell))
        )

    def _is_lone_junction_pair(self, cell: Cell, direction: Direction) -> bool:
        # Two junction characters side by side ("C++") are text when either
        # of them has no other connection.
        neighbour = direction.step(cell)
        if self.get(cell) not in JUNCTIONS or self.get(neighbour) not in JUNCTIONS:
            return False
        return (
            len(self._mutual_connections(cell)) == 1
            or len(self._mutual_connections(neighbour)) == 1
        )

    def get_connections(self, cell: Cell) -> FrozenSet[Direction]:
        """
        Directions in which this cell and its neighbour join a line.

        The relation is symmetric: a cell connects to its neighbour exactly
        when the neighbour connects back.
        """
        return frozenset(
            direction
            for direction in self._mutual_connections(cell)
            if not self._is_lone_junction_pair(cell, direction)
        )

    def is_horizontal_line(self, cell: Cell) -> bool:
        """A dash with a connected neighbour or an arrowhead beside it."""
        if self.get(cell) not in HORIZONTAL_LINES:
            return False
        if self.get_connections(cell):
            return True
        return self.get(cell.west()) == "<" or self.get(cell.east()) == ">"

    def is_vertical_line(self, cell: Cell) -> bool:
        if self.get(cell) not in VERTICAL_LINES:
            return False
        if self.get_connections(cell):
            return True
        return self.get(cell.north()) == "^" or self.get(cell.south()) in "vV"

    def is_line(self, cell: Cell) -> bool:
        return self.is_horizontal_line(cell) or self.is_vertical_line(cell)

    def is_boundary(self, cell: Cell) -> bool:
        char = self.get(cell)
        if char in HORIZONTAL_LINES:
            return self.is_horizontal_line(cell)
        if char in VERTICAL_LINES:
            return self.is_vertical_line(cell)
        if char in JUNCTIONS:
            return bool(self.get_connections(cell))
        return False

    def _junction_connections(self, cell: Cell) -> FrozenSet[Direction]:
        if self.get(cell) not in JUNCTIONS or not self.is_boundary(cell):
            return _NO_DIRECTIONS
        return self.get_connections(cell)

    def is_corner(self, cell: Cell) -> bool:
        connections = self._junction_connections(cell)
        if len(connections) != 2:
            return False
        first, second = connections
        return first != second.opposite()

    def is_round_corner(self, cell: Cell) -> bool:
        return self.get(cell) in ROUND_CORNERS and self.is_corner(cell)

    def is_intersection(self, cell: Cell) -> bool:
        """A junction joining three or four lines."""
        return len(self._junction_connections(cell)) >= 3

    def is_cross_on_line(self, cell: Cell) -> bool:
        connections = self._junction_connections(cell)
        if len(connections) != 2:
            return False
        first, second = connections
        return first == second.opposite()

    def is_stub(self, cell: Cell) -> bool:
        return len(self._junction_connections(cell)) == 1

    def is_lines_end(self, cell: Cell) -> bool:
        """A boundary cell with exactly one connected neighbour."""
        return self.is_boundary(cell) and len(self.get_connections(cell)) == 1

    def is_point_cell(self, cell: Cell) -> bool:
        """Cells that become points of a shape outline."""
        return (
            self.is_corner(cell)
            or self.is_intersection(cell)
            or self.is_stub(cell)
            or self.is_lines_end(cell)
        )

    def cell_contains_dashed_line_char(self, cell: Cell) -> bool:
        return self.get(cell) in DASHED_LINES

    def get_arrowhead_direction(self, cell: Cell) -> Optional[Direction]:
        """Return the direction the arrowhead at cell points to, if any."""
        if self.get(cell) not in ARROWHEADS:
            return None
        return match_arrowhead(self.get_testing_sub_grid(cell))

    def is_arrowhead(self, cell: Cell) -> bool:
        return self.get_arrowhead_direction(cell) is not None

    def is_point_marker_on_line(self, cell: Cell) -> bool:
        if self.get(cell) not in POINT_MARKERS or not self.is_boundary(cell):
            return False
        return POINT_MARKER_CRITERIA.is_any_matched_by(self.get_testing_sub_grid(cell))

    def get_cell_type(self, cell: Cell) -> CellType:
        char = self.get(cell)
        if char == BLANK or char == OUT_OF_BOUNDS:
            return CellType.BLANK
        if self.is_horizontal_line(cell):
            return CellType.HORIZONTAL_LINE
        if self.is_vertical_line(cell):
            return CellType.VERTICAL_LINE
        if self.is_corner(cell):
            return CellType.CORNER
        if self.is_intersection(cell):
            return CellType.INTERSECTION
        if self.is_cross_on_line(cell):
            return CellType.CROSS_ON_LINE
        if self.is_stub(cell):
            return CellType.STUB
        if self.is_arrowhead(cell):
            return CellType.ARROWHEAD
        return CellType.TEXT

    def classify(self) -> Dict[Cell, CellClass]:
        """
        Classify every cell of the grid.

        The result is rebuilt from the characters on each call; classifying
        an unchanged grid twice gives equal results.
        """
        tag_cells = set()
        for pair in self.find_markup_tags():
            tag_cells.update(self.span_cells(pair.cell, pair.length))
        color_cells = set()
        for pair in self.find_color_codes():
            color_cells.update(self.span_cells(pair.cell, pair.length))

        result: Dict[Cell, CellClass] = {}
        for cell in self.cells():
            result[cell] = CellClass(
                char=self.get(cell),
                cell_type=self.get_cell_type(cell),
                connections=self.get_connections(cell),
                boundary=self.is_boundary(cell),
                round=self.is_round_corner(cell),
                dashed=self.cell_contains_dashed_line_char(cell),
                point=self.is_point_cell(cell),
                line_end=self.is_lines_end(cell),
                in_markup_tag=cell in tag_cells,
                in_color_code=cell in color_cells,
            )
        return result

    def follow_cell(self, cell: Cell, blocked: Optional[Cell] = None) -> CellSet:
        """
        Return the cells a line continues to from cell.

        Args:
            cell: Cell to follow from
            blocked: Cell to leave out, usually the one we came from

        Returns:
            Zero, one or (at junctions) several connected neighbours
        """
        result = CellSet()
        for direction in Direction:
            if direction in self.get_connections(cell):
                neighbour = direction.step(cell)
                if neighbour != blocked:
                    result.add(neighbour)
        return result

    def get_all_boundaries(self) -> CellSet:
        return CellSet(cell for cell in self.cells() if self.is_boundary(cell))

    def get_all_non_blank(self) -> CellSet:
        return CellSet(cell for cell in self.cells() if not self.is_blank(cell))

    # ------------------------------------------------------------------
    # Filling
    # ------------------------------------------------------------------

    def fill_continuous_area(self, x: int, y: int, char: str) -> CellSet:
        """
        Flood fill the blank area containing (x, y) with char.

        Args:
            x: Seed column
            y: Seed row
            char: Fill character (must not be blank)

        Returns:
            The cells that were filled

        Raises:
            ValueError: If the seed is outside the grid or not blank
        """
        seed = Cell(x, y)
        if not self.is_in_bounds(seed):
            raise ValueError(f"Fill seed {seed} is outside the grid")
        if not self.is_blank(seed):
            raise ValueError(f"Fill seed {seed} is not blank")
        if char == BLANK:
            raise ValueError("Cannot fill with blank")

        filled = CellSet()
        stack = [seed]
        self.set(seed, char)
        while stack:
            cell = stack.pop()
            filled.add(cell)
            for neighbour in (cell.north(), cell.south(), cell.east(), cell.west()):
                if self.is_blank(neighbour):
                    self.set(neighbour, char)
                    stack.append(neighbour)
        return filled

    def find_boundaries_expanding_from(self, seed: Cell) -> CellSet:
        """
        Flood fill the region of the seed's character and collect its rim.

        Every visited cell is overwritten with FILL_MARKER, so repeated calls
        on one grid never revisit a region.

        Returns:
            The cells touching the filled region on one of their four sides,
            in row-major order
        """
        if not self.is_in_bounds(seed):
            raise ValueError(f"Seed {seed} is outside the grid")
        old_char = self.get(seed)
        if old_char == FILL_MARKER:
            return CellSet()

        boundaries = set()
        stack = [seed]
        self.set(seed, FILL_MARKER)
        while stack:
            cell = stack.pop()
            for neighbour in (cell.north(), cell.south(), cell.east(), cell.west()):
                if not self.is_in_bounds(neighbour):
                    continue
                char = self.get(neighbour)
                if char == old_char:
                    self.set(neighbour, FILL_MARKER)
                    stack.append(neighbour)
                elif char != FILL_MARKER:
                    boundaries.add(neighbour)
        return CellSet(sorted(boundaries, key=Cell.sort_key))

    # ------------------------------------------------------------------
    # Annotations and text
    # ------------------------------------------------------------------

    def span_cells(self, start: Cell, length: int) -> List[Cell]:
        return [Cell(start.x + i, start.y) for i in range(length)]

    def blank_span(self, start: Cell, length: int) -> None:
        for cell in self.span_cells(start, length):
            self.set(cell, BLANK)

    def find_markup_tags(self) -> List[CellTagPair]:
        """Find every ``{tag}`` span in row-major order."""
        tags = []
        for y, row in enumerate(self.get_rows()):
            for match in self.MARKUP_TAG_PATTERN.finditer(row):
                tags.append(CellTagPair(Cell(match.start(), y), match.group(1)))
        return tags

    def find_color_codes(self) -> List[CellColorPair]:
        """Find every color code span that is not inside a markup tag."""
        codes = []
        for y, row in enumerate(self.get_rows()):
            tag_columns = set()
            for match in self.MARKUP_TAG_PATTERN.finditer(row):
                tag_columns.update(range(match.start(), match.end()))
            for match in self.COLOR_CODE_PATTERN.finditer(row):
                if tag_columns.intersection(range(match.start(), match.end())):
                    continue
                code = match.group(0)
                codes.append(
                    CellColorPair(Cell(match.start(), y), color_from_code(code), code)
                )
        return codes

    def remove_non_text(self) -> None:
        """Blank out every boundary and arrowhead cell, leaving only text."""
        doomed = [
            cell
            for cell in self.cells()
            if self.is_boundary(cell) or self.is_arrowhead(cell)
        ]
        for cell in doomed:
            self.set(cell, BLANK)

    def find_strings(self) -> List[Tuple[Cell, str]]:
        """
        Find the runs of text in the grid.

        Words separated by a single blank belong to the same string; two or
        more blanks start a new one.
        """
        strings = []
        for y, row in enumerate(self.get_rows()):
            for match in self.STRING_PATTERN.finditer(row):
                strings.append((Cell(match.start(), y), match.group(0)))
        return strings
