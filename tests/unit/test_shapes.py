"""
Tests for the shapes module.

These tests verify shape geometry and the builders that trace polygons and
polylines out of boundary cell sets.
"""

import pytest

from asciishapes.cellset import CellSet
from asciishapes.grid import TextGrid
from asciishapes.models import BLACK, Cell, PointType, ShapePoint, ShapeType
from asciishapes.shapes import (
    CompositeDiagramShape,
    DiagramShape,
    MalformedShapeError,
    ShapeEdge,
    create_arrowhead,
    create_closed_from_boundary_cells,
    create_point_marker,
    order_for_drawing,
    separate_common_edges,
)

CW, CH = 10, 14


def rectangle(x1, y1, x2, y2, **kwargs):
    points = [ShapePoint(x1, y1), ShapePoint(x2, y1), ShapePoint(x2, y2), ShapePoint(x1, y2)]
    return DiagramShape(points=points, closed=True, **kwargs)


def positions(shape):
    return [(point.x, point.y) for point in shape.points]


class TestDiagramShape:
    """Tests for shape geometry."""

    def test_area_and_bounds(self):
        shape = rectangle(0, 0, 40, 20)
        assert shape.calculate_area() == 800
        assert shape.get_bounds() == (0, 0, 40, 20)
        assert shape.get_center() == (20, 10)

    def test_contains(self):
        """Points inside the polygon are contained."""
        shape = rectangle(0, 0, 40, 20)
        assert shape.contains(10, 10)
        assert not shape.contains(50, 10)

    def test_open_shapes_have_no_area(self):
        """Polylines enclose nothing."""
        line = DiagramShape(points=[ShapePoint(0, 0), ShapePoint(10, 0)])
        assert line.calculate_area() == 0
        assert not line.contains(5, 0)
        assert len(line.get_edges()) == 1

    def test_closed_edges_wrap_around(self):
        assert len(rectangle(0, 0, 1, 1).get_edges()) == 4

    def test_scale(self):
        """Scaling multiplies every point."""
        shape = rectangle(1, 2, 3, 4)
        shape.scale(2)
        assert positions(shape)[0] == (2, 4)
        assert positions(shape)[2] == (6, 8)

    def test_composite_scale(self):
        """Composite shapes scale their children alike."""
        composite = CompositeDiagramShape([rectangle(1, 1, 2, 2)])
        composite.add_to_shapes(rectangle(3, 3, 4, 4))
        composite.scale(10)
        assert [positions(shape)[0] for shape in composite] == [(10, 10), (30, 30)]
        assert len(composite) == 2

    def test_equals_shape(self):
        """Equal outlines are equal regardless of start point."""
        first = rectangle(0, 0, 10, 10)
        second = DiagramShape(
            points=first.points[2:] + first.points[:2], closed=True
        )
        assert first.equals_shape(second)
        assert not first.equals_shape(rectangle(0, 0, 10, 11))
        assert not first.equals_shape(rectangle(0, 0, 10, 10, type=ShapeType.STORAGE))

    def test_flags(self):
        shape = DiagramShape(points=[ShapePoint(0, 0, PointType.ROUND)])
        assert shape.is_rounded
        assert not shape.is_arrow_terminated
        shape.arrow_at_end = True
        assert shape.is_arrow_terminated


class TestClosedShapes:
    """Tests for polygons traced from closed boundary sets."""

    def test_square(self, square_grid):
        """A box becomes a polygon through its four corners."""
        shape = create_closed_from_boundary_cells(
            square_grid, square_grid.get_all_boundaries(), CW, CH
        )
        assert shape.closed
        assert positions(shape) == [(25, 35), (85, 35), (85, 91), (25, 91)]
        assert not shape.is_rounded
        assert not shape.stroke_dashed

    def test_all_round(self, square_grid):
        """Forcing round corners rounds every point."""
        shape = create_closed_from_boundary_cells(
            square_grid, square_grid.get_all_boundaries(), CW, CH, all_round=True
        )
        assert all(point.is_round() for point in shape.points)

    def test_round_corner_characters(self):
        grid = TextGrid.from_text("/--\\\n|  |\n\\--/")
        shape = create_closed_from_boundary_cells(
            grid, grid.get_all_boundaries(), CW, CH
        )
        assert len(shape.points) == 4
        assert all(point.is_round() for point in shape.points)

    def test_dashed_box(self):
        """One dashed character makes the whole outline dashed."""
        grid = TextGrid.from_text("+==+\n|  |\n+--+")
        shape = create_closed_from_boundary_cells(
            grid, grid.get_all_boundaries(), CW, CH
        )
        assert shape.stroke_dashed

    def test_empty_set(self, square_grid):
        assert create_closed_from_boundary_cells(square_grid, CellSet(), CW, CH) is None


class TestOpenShapes:
    """Tests for polylines traced from open boundary sets."""

    def test_straight_line(self):
        """A line becomes a two point polyline between its ends."""
        grid = TextGrid.from_text("-----")
        shape = CompositeDiagramShape.create_from_boundary_cells(
            grid, grid.get_all_boundaries(), CW, CH
        )
        assert isinstance(shape, DiagramShape)
        assert not shape.closed
        assert positions(shape) == [(25, 35), (65, 35)]

    def test_bent_line(self):
        """Corners become points of the polyline."""
        grid = TextGrid.from_text("--+\n  |")
        shape = CompositeDiagramShape.create_from_boundary_cells(
            grid, grid.get_all_boundaries(), CW, CH
        )
        assert positions(shape) == [(25, 35), (45, 35), (45, 49)]

    def test_dashed_line(self):
        grid = TextGrid.from_text("--==")
        shape = CompositeDiagramShape.create_from_boundary_cells(
            grid, grid.get_all_boundaries(), CW, CH
        )
        assert shape.stroke_dashed

    def test_branching_network(self):
        """A T junction splits into one polyline per branch."""
        grid = TextGrid.from_text("-----+-----\n     |")
        result = CompositeDiagramShape.create_from_boundary_cells(
            grid, grid.get_all_boundaries(), CW, CH
        )
        assert isinstance(result, CompositeDiagramShape)
        assert len(result) == 3
        for shape in result.get_shapes():
            assert len(shape.points) == 2
            assert (75, 35) in positions(shape)

    def test_single_cell_line(self):
        """A one cell line spans its cell from edge to edge."""
        grid = TextGrid.from_text("->")
        shape = CompositeDiagramShape.create_from_boundary_cells(
            grid, grid.get_all_boundaries(), CW, CH
        )
        assert positions(shape) == [(20, 35), (30, 35)]

    def test_single_cell_that_is_no_line(self):
        """A lone junction cannot form a line."""
        grid = TextGrid.from_text("+")
        with pytest.raises(MalformedShapeError):
            CompositeDiagramShape.create_from_boundary_cells(
                grid, CellSet([Cell(2, 2)]), CW, CH
            )

    def test_closed_set_rejected(self, square_grid):
        """Only open sets trace into polylines."""
        with pytest.raises(ValueError):
            CompositeDiagramShape.create_from_boundary_cells(
                square_grid, square_grid.get_all_boundaries(), CW, CH
            )

    def test_empty_set(self, square_grid):
        assert (
            CompositeDiagramShape.create_from_boundary_cells(
                square_grid, CellSet(), CW, CH
            )
            is None
        )


class TestSpecialShapes:
    """Tests for arrowheads and point markers."""

    def test_arrowhead(self):
        """Arrowheads are black triangles without a shadow."""
        grid = TextGrid.from_text("->")
        shape = create_arrowhead(grid, Cell(3, 2), CW, CH)
        assert positions(shape) == [(30, 28), (40, 35), (30, 42)]
        assert shape.type == ShapeType.ARROWHEAD
        assert shape.closed
        assert shape.fill_color == BLACK
        assert not shape.drops_shadow

    def test_no_arrowhead(self):
        grid = TextGrid.from_text("->")
        assert create_arrowhead(grid, Cell(2, 2), CW, CH) is None

    def test_point_marker(self):
        """A point marker is a single point in the middle of its cell."""
        shape = create_point_marker(Cell(3, 2), CW, CH)
        assert positions(shape) == [(35, 35)]
        assert shape.type == ShapeType.POINT_MARKER


class TestLayout:
    """Tests for edge separation and draw order."""

    def test_separate_common_edges(self):
        """Shared walls move apart into their own shapes."""
        left = rectangle(0, 0, 10, 10)
        right = rectangle(10, 0, 20, 10)
        separate_common_edges([left, right], 2)
        assert left.points[1].x == 8
        assert left.points[2].x == 8
        assert right.points[0].x == 12
        assert right.points[3].x == 12
        assert left.points[0].x == 0

    def test_edges_of_one_shape_never_touch(self):
        shape = rectangle(0, 0, 10, 10)
        edges = shape.get_edges()
        assert not edges[0].touches_with(ShapeEdge(edges[0].start, edges[0].end, shape))

    def test_order_for_drawing(self):
        """Storage bottom-up first, then large to small, markers last."""
        marker = create_point_marker(Cell(1, 1), CW, CH)
        small = rectangle(0, 0, 5, 5)
        large = rectangle(0, 0, 50, 50)
        upper = rectangle(0, 0, 10, 10, type=ShapeType.STORAGE)
        lower = rectangle(0, 20, 10, 30, type=ShapeType.STORAGE)
        ordered = order_for_drawing([marker, small, upper, large, lower])
        assert ordered == [lower, upper, large, small, marker]
