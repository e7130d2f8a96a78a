"""Integration tests for converting whole diagrams."""

import pytest

from asciishapes import ConversionOptions, Diagram, ShapeType, convert, render_to_png

FLOW = """
+--------+      +--------+
| Start  |----->| Work   |
+--------+      +---+----+
                    |
                    v
                +--------+
                | {d}    |
                | Done   |
                +--------+
"""


def by_kind(diagram):
    closed = [
        s for s in diagram.shapes if s.closed and s.type != ShapeType.ARROWHEAD
    ]
    lines = [s for s in diagram.get_all_diagram_shapes() if not s.closed]
    arrows = [s for s in diagram.shapes if s.type == ShapeType.ARROWHEAD]
    return closed, lines, arrows


class TestFixtureFiles:
    """Conversions of the diagrams under tests/text."""

    def test_square(self, square_grid):
        diagram = Diagram(square_grid)
        (shape,) = diagram.shapes
        assert shape.closed
        assert shape.calculate_area() == 60 * 56

    def test_u_shape(self, u_grid):
        """A concave outline is one polygon through all eight corners."""
        diagram = Diagram(u_grid)
        (shape,) = diagram.shapes
        assert shape.closed
        assert len(shape.points) == 8
        assert shape.calculate_area() == 170 * 84 - 50 * 42

    def test_s_shape(self, s_grid):
        """The box missing a corner turns into an open line."""
        diagram = Diagram(s_grid)
        closed, lines, arrows = by_kind(diagram)
        assert len(closed) == 2
        assert not arrows
        (line,) = lines
        assert len(line.points) == 5

    def test_fixtures_with_debug(self, u_grid, s_grid, square_grid):
        """Tracing does not change the result."""
        for grid in (u_grid, s_grid, square_grid):
            plain = Diagram(grid)
            traced = Diagram(grid, ConversionOptions(debug=True))
            assert len(plain.shapes) == len(traced.shapes)
            assert traced.trace.get_grid_at_stage("work_grid") is not None


class TestFlowDiagram:
    """A small flow chart: boxes, arrows, a branch off a box and a tag."""

    @pytest.fixture
    def diagram(self):
        return convert(FLOW)

    def test_counts(self, diagram):
        closed, lines, arrows = by_kind(diagram)
        assert len(closed) == 3
        assert len(lines) == 2
        assert len(arrows) == 2
        assert not diagram.warnings

    def test_horizontal_arrow(self, diagram):
        _, lines, _ = by_kind(diagram)
        (line,) = [s for s in lines if s.points[0].y == s.points[-1].y]
        assert sorted(p.x for p in line.points) == [115, 185]
        assert line.is_arrow_terminated

    def test_line_out_of_box_bottom(self, diagram):
        """The branch starts on the box wall and ends on the next box."""
        _, lines, _ = by_kind(diagram)
        (line,) = [s for s in lines if s.points[0].x == s.points[-1].x]
        assert line.points[0].x == 225
        assert sorted(p.y for p in line.points) == [77, 119]
        assert line.is_arrow_terminated

    def test_document_tag(self, diagram):
        closed, _, _ = by_kind(diagram)
        documents = [s for s in closed if s.type == ShapeType.DOCUMENT]
        assert len(documents) == 1
        assert min(p.y for p in documents[0].points) == 119

    def test_labels(self, diagram):
        assert [label.text for label in diagram.text_objects] == [
            "Start",
            "Work",
            "Done",
        ]

    def test_render(self, diagram, tmp_path):
        output = render_to_png(diagram, str(tmp_path / "flow.png"))
        assert (tmp_path / "flow.png").exists()
        assert output.endswith("flow.png")
