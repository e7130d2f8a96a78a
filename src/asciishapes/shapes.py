"""
Diagram shapes and the builders that trace them from boundary cells.

Closed boundary sets become polygons whose points sit on the middle of
their corner cells. Open boundary sets become polylines: each line end (and
each junction reached while tracing) starts or stops a polyline, so a
branching network turns into a CompositeDiagramShape of several simple
shapes. Arrowheads and point markers get shapes of their own.

All coordinates are pixels: cell (x, y) spans [x * cell_width,
(x + 1) * cell_width) horizontally and the same with cell_height vertically.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Deque,
    FrozenSet,
    Iterator,
    List,
    Optional,
    Set,
    Tuple,
    Union,
)

from .cellset import BoundaryType, CellSet
from .grid import DASHED_LINES, HORIZONTAL_LINES, VERTICAL_LINES, TextGrid
from .models import (
    BLACK,
    WHITE,
    Cell,
    Color,
    CustomShapeDefinition,
    Direction,
    PointType,
    ShapePoint,
    ShapeType,
)

if TYPE_CHECKING:
    from .diagram import Diagram

logger = logging.getLogger(__name__)


class MalformedShapeError(ValueError):
    """Raised when a boundary cell set cannot be turned into a shape."""


def cell_min_x(cell: Cell, cell_width: float) -> float:
    return cell.x * cell_width


def cell_mid_x(cell: Cell, cell_width: float) -> float:
    return cell.x * cell_width + cell_width / 2


def cell_max_x(cell: Cell, cell_width: float) -> float:
    return (cell.x + 1) * cell_width


def cell_min_y(cell: Cell, cell_height: float) -> float:
    return cell.y * cell_height


def cell_mid_y(cell: Cell, cell_height: float) -> float:
    return cell.y * cell_height + cell_height / 2


def cell_max_y(cell: Cell, cell_height: float) -> float:
    return (cell.y + 1) * cell_height


def _direction_between(start: ShapePoint, end: ShapePoint) -> Optional[Direction]:
    """Main direction of travel from start to end."""
    dx, dy = end.x - start.x, end.y - start.y
    if dx == 0 and dy == 0:
        return None
    if abs(dx) >= abs(dy):
        return Direction.EAST if dx > 0 else Direction.WEST
    return Direction.SOUTH if dy > 0 else Direction.NORTH


def _overlap(a1: float, a2: float, b1: float, b2: float) -> bool:
    """True if the ranges [a1, a2] and [b1, b2] share more than a point."""
    return max(min(a1, a2), min(b1, b2)) < min(max(a1, a2), max(b1, b2))


@dataclass(eq=False)
class DiagramShape:
    """
    A polygon or polyline of the diagram.

    Attributes:
        points: Ordered points; a closed shape implicitly returns to the first
        closed: True for polygons
        stroke_dashed: Draw the outline dashed
        drops_shadow: Draw a shadow behind the shape
        fill_color: Fill color, None when unset
        stroke_color: Outline color
        type: Shape classification
        definition: Custom shape definition for CUSTOM shapes
        arrow_at_start: An arrowhead sits at the first point
        arrow_at_end: An arrowhead sits at the last point
    """

    points: List[ShapePoint] = field(default_factory=list)
    closed: bool = False
    stroke_dashed: bool = False
    drops_shadow: bool = True
    fill_color: Optional[Color] = None
    stroke_color: Color = BLACK
    type: ShapeType = ShapeType.SIMPLE
    definition: Optional[CustomShapeDefinition] = None
    arrow_at_start: bool = False
    arrow_at_end: bool = False

    def add_to_points(self, point: ShapePoint) -> None:
        self.points.append(point)

    def get_point(self, index: int) -> ShapePoint:
        return self.points[index]

    @property
    def is_rounded(self) -> bool:
        return any(point.is_round() for point in self.points)

    @property
    def is_arrow_terminated(self) -> bool:
        return self.arrow_at_start or self.arrow_at_end

    def get_bounds(self) -> Tuple[float, float, float, float]:
        """Return (min_x, min_y, max_x, max_y) of the points."""
        if not self.points:
            return (0.0, 0.0, 0.0, 0.0)
        xs = [point.x for point in self.points]
        ys = [point.y for point in self.points]
        return (min(xs), min(ys), max(xs), max(ys))

    def get_center(self) -> Tuple[float, float]:
        min_x, min_y, max_x, max_y = self.get_bounds()
        return ((min_x + max_x) / 2, (min_y + max_y) / 2)

    def calculate_area(self) -> float:
        """Polygon area by the shoelace formula; zero for open shapes."""
        if not self.closed or len(self.points) < 3:
            return 0.0
        total = 0.0
        for current, following in zip(self.points, self.points[1:] + self.points[:1]):
            total += current.x * following.y - following.x * current.y
        return abs(total) / 2

    def contains(self, x: float, y: float) -> bool:
        """Point-in-polygon test by ray casting; open shapes contain nothing."""
        if not self.closed or len(self.points) < 3:
            return False
        inside = False
        previous = self.points[-1]
        for point in self.points:
            if (point.y > y) != (previous.y > y):
                crossing_x = (previous.x - point.x) * (y - point.y) / (
                    previous.y - point.y
                ) + point.x
                if x < crossing_x:
                    inside = not inside
            previous = point
        return inside

    def get_edges(self) -> List["ShapeEdge"]:
        pairs = list(zip(self.points, self.points[1:]))
        if self.closed and len(self.points) > 2:
            pairs.append((self.points[-1], self.points[0]))
        return [ShapeEdge(start, end, self) for start, end in pairs]

    def scale(self, factor: float) -> None:
        for point in self.points:
            point.scale(factor)

    def equals_shape(self, other: "DiagramShape") -> bool:
        """Same kind of outline over the same point positions."""
        if self.closed != other.closed or self.type != other.type:
            return False
        if len(self.points) != len(other.points):
            return False
        positions = sorted((point.x, point.y) for point in self.points)
        other_positions = sorted((point.x, point.y) for point in other.points)
        return positions == other_positions

    def connect_ends_to_anchors(self, grid: TextGrid, diagram: "Diagram") -> None:
        """
        Make the ends of an open shape meet what they point at.

        An end pointing at a boundary cell, possibly across one arrowhead,
        is extended to the middle of that cell. Any other end is moved to
        the edge of its own cell. Ends sitting on junctions stay put.
        """
        if self.closed or len(self.points) < 2:
            return
        self.arrow_at_start = self._connect_end(
            self.points[0], self.points[1], grid, diagram
        )
        self.arrow_at_end = self._connect_end(
            self.points[-1], self.points[-2], grid, diagram
        )

    def _connect_end(
        self,
        end: ShapePoint,
        previous: ShapePoint,
        grid: TextGrid,
        diagram: "Diagram",
    ) -> bool:
        direction = _direction_between(previous, end)
        if direction is None:
            return False
        cell = diagram.get_cell_for(
            end.x - direction.dx * 0.5, end.y - direction.dy * 0.5
        )
        if cell is None or grid.is_intersection(cell):
            return False

        target = direction.step(cell)
        has_arrow = grid.get_arrowhead_direction(target) == direction
        if has_arrow:
            target = direction.step(target)

        if grid.is_boundary(target):
            if direction.is_horizontal():
                end.x = diagram.get_cell_mid_x(target)
            else:
                end.y = diagram.get_cell_mid_y(target)
        elif end.x == diagram.get_cell_mid_x(cell) and end.y == diagram.get_cell_mid_y(
            cell
        ):
            self._move_end_to_cell_edge(end, cell, direction, diagram)
        return has_arrow

    @staticmethod
    def _move_end_to_cell_edge(
        end: ShapePoint, cell: Cell, direction: Direction, diagram: "Diagram"
    ) -> None:
        if direction == Direction.EAST:
            end.x = diagram.get_cell_max_x(cell)
        elif direction == Direction.WEST:
            end.x = diagram.get_cell_min_x(cell)
        elif direction == Direction.SOUTH:
            end.y = diagram.get_cell_max_y(cell)
        else:
            end.y = diagram.get_cell_min_y(cell)

    def __str__(self) -> str:
        kind = "closed" if self.closed else "open"
        points = ", ".join(f"({p.x:g}, {p.y:g})" for p in self.points)
        return f"{self.type.value} {kind} shape [{points}]"


class CompositeDiagramShape:
    """A group of open shapes traced from one branching line network."""

    def __init__(self, shapes: Optional[List[DiagramShape]] = None):
        self.shapes: List[DiagramShape] = list(shapes) if shapes else []

    def add_to_shapes(self, shape: DiagramShape) -> None:
        self.shapes.append(shape)

    def get_shapes(self) -> List[DiagramShape]:
        return self.shapes

    def scale(self, factor: float) -> None:
        for shape in self.shapes:
            shape.scale(factor)

    def connect_ends_to_anchors(self, grid: TextGrid, diagram: "Diagram") -> None:
        for shape in self.shapes:
            shape.connect_ends_to_anchors(grid, diagram)

    def __iter__(self) -> Iterator[DiagramShape]:
        return iter(self.shapes)

    def __len__(self) -> int:
        return len(self.shapes)

    @classmethod
    def create_from_boundary_cells(
        cls,
        grid: TextGrid,
        boundary_cells: CellSet,
        cell_width: float,
        cell_height: float,
        all_round: bool = False,
    ) -> Optional["ShapeResult"]:
        """
        Trace an open boundary set into polylines.

        Tracing starts at every line end in turn and follows the line until
        it reaches another line end or a junction. At a junction the
        untraced branches are queued and traced later, starting from the
        junction, so no branch is lost and no segment is traced twice.

        Args:
            grid: Grid the boundary cells were found in
            boundary_cells: An open boundary set
            cell_width: Pixel width of one cell
            cell_height: Pixel height of one cell
            all_round: Make every corner round

        Returns:
            A DiagramShape for a single polyline, a CompositeDiagramShape
            for several, or None for an empty set

        Raises:
            ValueError: If the set is not open
            MalformedShapeError: If the set has no line end or a traced
                polyline has fewer than two points
        """
        if not boundary_cells:
            return None
        if len(boundary_cells) == 1:
            return _make_single_cell_line(
                grid, boundary_cells.get_first(), cell_width, cell_height
            )
        if boundary_cells.get_type(grid) != BoundaryType.OPEN:
            raise ValueError(
                f"Boundary {boundary_cells.to_cells_string()} is not open"
            )

        work = grid.get_isolated_copy(boundary_cells)
        ends = [cell for cell in boundary_cells if work.is_lines_end(cell)]
        if not ends:
            raise MalformedShapeError(
                f"Open boundary {boundary_cells.to_cells_string()} has no line end"
            )

        walked: Set[FrozenSet[Cell]] = set()
        pending: Deque[Tuple[Cell, Optional[Cell]]] = deque(
            (end, None) for end in ends
        )
        shapes: List[DiagramShape] = []
        step_limit = 4 * len(boundary_cells) + 4
        while pending:
            start, first = pending.popleft()
            if first is None:
                first_steps = work.follow_cell(start)
                if not first_steps:
                    continue
                first = first_steps.get_first()
            if frozenset((start, first)) in walked:
                continue
            shape = _trace_open_path(
                work,
                start,
                first,
                walked,
                pending,
                cell_width,
                cell_height,
                all_round,
                step_limit,
            )
            if len(shape.points) < 2:
                raise MalformedShapeError(
                    f"Line from {start} traced to fewer than two points"
                )
            shapes.append(shape)

        if not shapes:
            raise MalformedShapeError(
                f"Open boundary {boundary_cells.to_cells_string()} gave no lines"
            )
        if len(shapes) == 1:
            return shapes[0]
        return cls(shapes)


ShapeResult = Union[DiagramShape, CompositeDiagramShape]


def _trace_open_path(
    work: TextGrid,
    start: Cell,
    first: Cell,
    walked: Set[FrozenSet[Cell]],
    pending: Deque[Tuple[Cell, Optional[Cell]]],
    cell_width: float,
    cell_height: float,
    all_round: bool,
    step_limit: int,
) -> DiagramShape:
    shape = DiagramShape()
    shape.add_to_points(
        make_point_for_cell(start, work, cell_width, cell_height, all_round)
    )
    dashed = work.cell_contains_dashed_line_char(start)
    previous, cell = start, first
    for _ in range(step_limit):
        walked.add(frozenset((previous, cell)))
        dashed = dashed or work.cell_contains_dashed_line_char(cell)
        if work.is_point_cell(cell):
            shape.add_to_points(
                make_point_for_cell(cell, work, cell_width, cell_height, all_round)
            )
        if cell == start or work.is_lines_end(cell):
            break
        next_cells = work.follow_cell(cell, previous)
        if len(next_cells) == 1:
            previous, cell = cell, next_cells.get_first()
            continue
        for branch in next_cells:
            if frozenset((cell, branch)) not in walked:
                pending.append((cell, branch))
        break
    else:
        raise MalformedShapeError(f"Line from {start} does not terminate")
    shape.stroke_dashed = dashed
    return shape


def _make_single_cell_line(
    grid: TextGrid, cell: Cell, cell_width: float, cell_height: float
) -> DiagramShape:
    """A line one cell long spans its cell from edge to edge."""
    char = grid.get(cell)
    if char in HORIZONTAL_LINES:
        y = cell_mid_y(cell, cell_height)
        points = [
            ShapePoint(cell_min_x(cell, cell_width), y),
            ShapePoint(cell_max_x(cell, cell_width), y),
        ]
    elif char in VERTICAL_LINES:
        x = cell_mid_x(cell, cell_width)
        points = [
            ShapePoint(x, cell_min_y(cell, cell_height)),
            ShapePoint(x, cell_max_y(cell, cell_height)),
        ]
    else:
        raise MalformedShapeError(f"Cell {cell} ({char!r}) cannot form a line")
    return DiagramShape(points=points, stroke_dashed=char in DASHED_LINES)


def make_point_for_cell(
    cell: Cell,
    grid: TextGrid,
    cell_width: float,
    cell_height: float,
    all_round: bool = False,
) -> ShapePoint:
    """
    Create the shape point for a corner, junction or line end cell.

    Raises:
        MalformedShapeError: If the cell cannot be a point of a shape
    """
    x = cell_mid_x(cell, cell_width)
    y = cell_mid_y(cell, cell_height)
    if grid.is_corner(cell):
        if all_round or grid.is_round_corner(cell):
            return ShapePoint(x, y, PointType.ROUND)
        return ShapePoint(x, y, PointType.NORMAL)
    if grid.is_intersection(cell) or grid.is_lines_end(cell):
        return ShapePoint(x, y, PointType.NORMAL)
    raise MalformedShapeError(
        f"Cell {cell} ({grid.get(cell)!r}) is not a corner or line end"
    )


def create_closed_from_boundary_cells(
    grid: TextGrid,
    boundary_cells: CellSet,
    cell_width: float,
    cell_height: float,
    all_round: bool = False,
) -> Optional[DiagramShape]:
    """
    Trace a closed boundary set into a polygon through its corners.

    Returns:
        The polygon, or None if the set does not trace into a simple loop
    """
    if not boundary_cells:
        return None
    work = grid.get_isolated_copy(boundary_cells)
    shape = DiagramShape(closed=True)

    start = boundary_cells.get_first()
    if work.is_corner(start):
        shape.add_to_points(
            make_point_for_cell(start, work, cell_width, cell_height, all_round)
        )
    next_cells = work.follow_cell(start)
    if not next_cells:
        return None
    previous, cell = start, next_cells.get_first()
    for _ in range(len(boundary_cells) + 1):
        if cell == start:
            break
        if work.is_corner(cell):
            shape.add_to_points(
                make_point_for_cell(cell, work, cell_width, cell_height, all_round)
            )
        next_cells = work.follow_cell(cell, previous)
        if len(next_cells) != 1:
            logger.debug("Closed boundary breaks off at %s", cell)
            return None
        previous, cell = cell, next_cells.get_first()
    else:
        return None

    if len(shape.points) < 3:
        return None
    shape.stroke_dashed = any(
        work.cell_contains_dashed_line_char(cell) for cell in boundary_cells
    )
    return shape


def create_arrowhead(
    grid: TextGrid, cell: Cell, cell_width: float, cell_height: float
) -> Optional[DiagramShape]:
    """Create the filled triangle of the arrowhead at cell, if it is one."""
    direction = grid.get_arrowhead_direction(cell)
    if direction is None:
        return None
    min_x, mid_x, max_x = (
        cell_min_x(cell, cell_width),
        cell_mid_x(cell, cell_width),
        cell_max_x(cell, cell_width),
    )
    min_y, mid_y, max_y = (
        cell_min_y(cell, cell_height),
        cell_mid_y(cell, cell_height),
        cell_max_y(cell, cell_height),
    )
    if direction == Direction.NORTH:
        corners = [(min_x, max_y), (mid_x, min_y), (max_x, max_y)]
    elif direction == Direction.SOUTH:
        corners = [(min_x, min_y), (mid_x, max_y), (max_x, min_y)]
    elif direction == Direction.EAST:
        corners = [(min_x, min_y), (max_x, mid_y), (min_x, max_y)]
    else:
        corners = [(max_x, min_y), (min_x, mid_y), (max_x, max_y)]
    return DiagramShape(
        points=[ShapePoint(x, y) for x, y in corners],
        closed=True,
        drops_shadow=False,
        fill_color=BLACK,
        type=ShapeType.ARROWHEAD,
    )


def create_point_marker(
    cell: Cell, cell_width: float, cell_height: float
) -> DiagramShape:
    """A point marker is a single point; renderers draw it as a small circle."""
    return DiagramShape(
        points=[ShapePoint(cell_mid_x(cell, cell_width), cell_mid_y(cell, cell_height))],
        drops_shadow=False,
        fill_color=WHITE,
        type=ShapeType.POINT_MARKER,
    )


class ShapeEdge:
    """A straight side of a shape, sharing its end points with the shape."""

    def __init__(self, start: ShapePoint, end: ShapePoint, owner: DiagramShape):
        self.start = start
        self.end = end
        self.owner = owner

    def is_horizontal(self) -> bool:
        return self.start.y == self.end.y and self.start.x != self.end.x

    def is_vertical(self) -> bool:
        return self.start.x == self.end.x and self.start.y != self.end.y

    def touches_with(self, other: "ShapeEdge") -> bool:
        """True if two edges of different shapes run over each other."""
        if self.owner is other.owner:
            return False
        if self.is_horizontal() and other.is_horizontal():
            return self.start.y == other.start.y and _overlap(
                self.start.x, self.end.x, other.start.x, other.end.x
            )
        if self.is_vertical() and other.is_vertical():
            return self.start.x == other.start.x and _overlap(
                self.start.y, self.end.y, other.start.y, other.end.y
            )
        return False

    def move_inwards_by(self, offset: float) -> None:
        """Move the edge toward the inside of its shape."""
        mid_x = (self.start.x + self.end.x) / 2
        mid_y = (self.start.y + self.end.y) / 2
        if self.is_horizontal():
            dy = offset if self.owner.contains(mid_x, mid_y + offset / 2) else -offset
            self.start.y += dy
            self.end.y += dy
        elif self.is_vertical():
            dx = offset if self.owner.contains(mid_x + offset / 2, mid_y) else -offset
            self.start.x += dx
            self.end.x += dx

    def __str__(self) -> str:
        return (
            f"({self.start.x:g}, {self.start.y:g}) -> ({self.end.x:g}, {self.end.y:g})"
        )


def separate_common_edges(shapes: List[DiagramShape], offset: float) -> None:
    """
    Pull apart edges of neighbouring shapes that lie on top of each other.

    Each touching edge is moved inwards into its own shape once, so two
    boxes sharing a wall are drawn with a visible gap.
    """
    edges = [edge for shape in shapes for edge in shape.get_edges()]
    touching: List[ShapeEdge] = []
    for index, edge in enumerate(edges):
        for other in edges[index + 1 :]:
            if edge.touches_with(other):
                touching.extend((edge, other))

    moved: Set[int] = set()
    for edge in touching:
        if id(edge) in moved:
            continue
        edge.move_inwards_by(offset)
        moved.add(id(edge))
    if moved:
        logger.debug("Separated %d common edges", len(moved))


def storage_draw_key(shape: DiagramShape) -> float:
    """Sort key putting the bottom-most storage shape first."""
    return -shape.get_center()[1]


def order_for_drawing(shapes: List[DiagramShape]) -> List[DiagramShape]:
    """
    Order shapes the way a renderer must paint them.

    Storage shapes come first, the bottom-most one first, because each
    storage cylinder overlaps the one below it. Other shapes follow from the
    largest area to the smallest so nested boxes stay visible, and point
    markers come last. Ties keep their original order.
    """
    storage = [shape for shape in shapes if shape.type == ShapeType.STORAGE]
    markers = [shape for shape in shapes if shape.type == ShapeType.POINT_MARKER]
    others = [
        shape
        for shape in shapes
        if shape.type not in (ShapeType.STORAGE, ShapeType.POINT_MARKER)
    ]
    storage.sort(key=storage_draw_key)
    others.sort(key=lambda shape: -shape.calculate_area())
    return storage + others + markers
