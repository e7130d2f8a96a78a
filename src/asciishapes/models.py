"""
Data models for diagram conversion.

This module contains the small value types shared by the grid, the shape
builder and the diagram: grid coordinates, shape points, annotation records
and positioned text labels. They carry no behaviour beyond simple geometry
helpers so that every other module can import them without cycles.

Classes:
    Cell: Immutable (x, y) coordinate into a text grid.
    Direction: One of the four orthogonal directions.
    PointType: Kind of a shape point (normal or round corner).
    ShapeType: Classification of a finished diagram shape.
    ShapePoint: Mutable point in pixel space owned by one shape.
    CustomShapeDefinition: Configuration for a custom markup tag.
    CellTagPair: A markup tag found at a cell.
    CellColorPair: A color code found at a cell.
    DiagramText: A positioned text label.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

Color = Tuple[int, int, int]

BLACK: Color = (0, 0, 0)
WHITE: Color = (255, 255, 255)


def color_from_code(code: str) -> Color:
    """
    Convert a color code such as ``cF0A`` into an RGB tuple.

    Each hex digit is scaled by 17, so ``F`` becomes 255 and ``8`` becomes 136.

    Args:
        code: Four character code starting with ``c``

    Returns:
        (r, g, b) tuple

    Raises:
        ValueError: If the code is not a ``c`` followed by three hex digits
    """
    if len(code) != 4 or code[0] != "c":
        raise ValueError(f"Invalid color code: {code!r}")
    try:
        return tuple(int(digit, 16) * 17 for digit in code[1:])  # type: ignore
    except ValueError as exc:
        raise ValueError(f"Invalid color code: {code!r}") from exc


def is_dark(color: Color) -> bool:
    """Return True if text drawn on this color should be white."""
    r, g, b = color
    return (0.299 * r + 0.587 * g + 0.114 * b) / 255 < 0.5


@dataclass(frozen=True)
class Cell:
    """
    A coordinate into a text grid.

    Cells compare and hash by coordinates only, never by the character
    stored at that position.

    Attributes:
        x: Column (0-based from the left)
        y: Row (0-based from the top)
    """

    x: int
    y: int

    def north(self) -> "Cell":
        return Cell(self.x, self.y - 1)

    def south(self) -> "Cell":
        return Cell(self.x, self.y + 1)

    def east(self) -> "Cell":
        return Cell(self.x + 1, self.y)

    def west(self) -> "Cell":
        return Cell(self.x - 1, self.y)

    def north_west(self) -> "Cell":
        return Cell(self.x - 1, self.y - 1)

    def north_east(self) -> "Cell":
        return Cell(self.x + 1, self.y - 1)

    def south_west(self) -> "Cell":
        return Cell(self.x - 1, self.y + 1)

    def south_east(self) -> "Cell":
        return Cell(self.x + 1, self.y + 1)

    def offset(self, dx: int, dy: int) -> "Cell":
        """Return the cell displaced by (dx, dy)."""
        return Cell(self.x + dx, self.y + dy)

    def sort_key(self) -> Tuple[int, int]:
        """Row-major ordering key."""
        return (self.y, self.x)

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


class Direction(Enum):
    """The four orthogonal directions a line can leave a cell in."""

    NORTH = (0, -1)
    EAST = (1, 0)
    SOUTH = (0, 1)
    WEST = (-1, 0)

    @property
    def dx(self) -> int:
        return self.value[0]

    @property
    def dy(self) -> int:
        return self.value[1]

    def opposite(self) -> "Direction":
        return _OPPOSITES[self]

    def is_horizontal(self) -> bool:
        return self.dy == 0

    def step(self, cell: Cell) -> Cell:
        """Return the neighbour of cell in this direction."""
        return Cell(cell.x + self.dx, cell.y + self.dy)


_OPPOSITES = {
    Direction.NORTH: Direction.SOUTH,
    Direction.SOUTH: Direction.NORTH,
    Direction.EAST: Direction.WEST,
    Direction.WEST: Direction.EAST,
}


class PointType(Enum):
    """Kind of a shape point."""

    NORMAL = "normal"
    ROUND = "round"


class ShapeType(Enum):
    """Classification of a diagram shape, used by renderers to pick a style."""

    SIMPLE = "simple"
    ARROWHEAD = "arrowhead"
    POINT_MARKER = "point_marker"
    DOCUMENT = "document"
    STORAGE = "storage"
    IO = "io"
    DECISION = "decision"
    MANUAL_OPERATION = "manual_operation"
    TRAPEZOID = "trapezoid"
    ELLIPSE = "ellipse"
    CUSTOM = "custom"


@dataclass
class ShapePoint:
    """
    A point of a diagram shape in pixel space.

    Points are mutable because common-edge separation and anchor snapping
    move them after the shape is built.

    Attributes:
        x: Horizontal pixel coordinate
        y: Vertical pixel coordinate
        type: Normal or round corner
    """

    x: float
    y: float
    type: PointType = PointType.NORMAL

    def is_round(self) -> bool:
        return self.type == PointType.ROUND

    def same_position(self, other: "ShapePoint") -> bool:
        return self.x == other.x and self.y == other.y

    def scale(self, factor: float) -> None:
        self.x *= factor
        self.y *= factor


@dataclass
class CustomShapeDefinition:
    """
    Definition of a custom shape referenced by a markup tag.

    Attributes:
        tag: Tag name as written between braces (e.g. "mytag" for {mytag})
        filename: Path of the image a renderer substitutes for the shape
        stretches: Whether the image stretches to the shape bounds
        drops_shadow: Whether the shape drops a shadow
        has_border: Whether the renderer draws the box outline too
        comment: Free-form description
    """

    tag: str
    filename: Optional[str] = None
    stretches: bool = False
    drops_shadow: bool = True
    has_border: bool = False
    comment: Optional[str] = None

    def __str__(self) -> str:
        return f"Custom shape: {{{self.tag}}} -> {self.filename}"


@dataclass(frozen=True)
class CellTagPair:
    """A markup tag found at a cell (the cell holds the opening brace)."""

    cell: Cell
    tag: str

    @property
    def length(self) -> int:
        return len(self.tag) + 2


@dataclass(frozen=True)
class CellColorPair:
    """A color code found at a cell (the cell holds the leading ``c``)."""

    cell: Cell
    color: Color
    code: str

    @property
    def length(self) -> int:
        return len(self.code)


@dataclass
class DiagramText:
    """
    A positioned text label.

    Attributes:
        x: Pixel x of the left edge of the first cell
        y: Pixel y of the top edge of the first cell
        text: The label text
        cell: First grid cell of the label
        color: Text color
        on_line: True if the label sits on a line and needs an outline
        outline_color: Outline color used when on_line is set
    """

    x: float
    y: float
    text: str
    cell: Cell
    color: Color = BLACK
    on_line: bool = False
    outline_color: Color = WHITE

    def __str__(self) -> str:
        return f"{self.text!r} at ({self.x}, {self.y})"
