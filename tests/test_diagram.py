"""Tests for the Diagram converter."""

import logging

import pytest

from asciishapes import (
    ConversionOptions,
    CustomShapeDefinition,
    Diagram,
    MalformedShapeError,
    ShapeType,
    TextGrid,
    convert,
    convert_file,
)
from asciishapes.models import WHITE

BOX_WITH_TAIL = "+---+\n|   +----\n+---+"

STACKED_BOXES = "+-----+\n|  A  |\n+-----+\n+-----+\n|  B  |\n+-----+"

SIDE_BY_SIDE_BOXES = "+--++--+\n|A ||B |\n+--++--+"

BRIDGED_BOXES = "+---+ +---+\n|   +++   |\n+---+ +---+"

COLORED_BOX = """+--------+
| cBLU   |
| text   |
+--------+"""


def closed_shapes(diagram):
    return [
        shape
        for shape in diagram.shapes
        if shape.closed and shape.type != ShapeType.ARROWHEAD
    ]


def open_shapes(diagram):
    return [shape for shape in diagram.get_all_diagram_shapes() if not shape.closed]


def sorted_positions(shape):
    return sorted((point.x, point.y) for point in shape.points)


class TestTwoBoxes:
    """Two boxes joined by an arrow."""

    @pytest.fixture
    def diagram(self, two_boxes_input):
        return convert(two_boxes_input)

    def test_shape_count(self, diagram):
        """Two boxes, one line and one arrowhead."""
        assert len(diagram.shapes) == 4
        assert len(closed_shapes(diagram)) == 2
        assert not diagram.composite_shapes
        assert not diagram.warnings

    def test_size(self, diagram):
        assert (diagram.width, diagram.height) == (190, 112)

    def test_boxes(self, diagram):
        boxes = sorted(closed_shapes(diagram), key=lambda shape: shape.points[0].x)
        assert sorted_positions(boxes[0]) == [(25, 49), (25, 77), (65, 49), (65, 77)]
        assert all(box.drops_shadow for box in boxes)

    def test_line_meets_both_boxes(self, diagram):
        """The line runs from the wall of one box to the wall of the other."""
        (line,) = open_shapes(diagram)
        assert sorted_positions(line) == [(65, 63), (125, 63)]

    def test_arrow_flag(self, diagram):
        """The line is arrow terminated at the end pointing into B."""
        (line,) = open_shapes(diagram)
        assert line.is_arrow_terminated
        assert not (line.arrow_at_start and line.arrow_at_end)
        arrow_point = line.points[-1] if line.arrow_at_end else line.points[0]
        assert arrow_point.x == 125

    def test_arrowhead(self, diagram):
        (arrowhead,) = [s for s in diagram.shapes if s.type == ShapeType.ARROWHEAD]
        assert sorted_positions(arrowhead) == [(110, 56), (110, 70), (120, 63)]
        assert not arrowhead.drops_shadow

    def test_labels(self, diagram):
        """Text labels sit at the top left of their first cell."""
        labels = [(label.text, label.x, label.y) for label in diagram.text_objects]
        assert labels == [("A", 40, 56), ("B", 140, 56)]
        assert not any(label.on_line for label in diagram.text_objects)

    def test_draw_order(self, diagram):
        """Boxes are painted before the line."""
        ordered = diagram.get_shapes_in_draw_order()
        assert len(ordered) == 4
        assert ordered[0].closed and ordered[1].closed
        assert not ordered[-1].closed


class TestDividedBox:
    """A box divided in two by an inner wall."""

    def test_outer_outline_is_dropped(self, nested_input):
        """Only the two halves become shapes."""
        diagram = convert(nested_input)
        assert len(diagram.shapes) == 2
        assert len(diagram.text_objects) == 2

    def test_common_edge_separated(self, nested_input):
        """The shared wall moves into each half."""
        diagram = convert(nested_input)
        left = diagram.find_smallest_shape_containing(45, 63)
        right = diagram.find_smallest_shape_containing(125, 63)
        assert left is not right
        assert max(point.x for point in left.points) == 83
        assert min(point.x for point in right.points) == 87

    def test_common_edge_kept(self, nested_input):
        diagram = convert(nested_input, ConversionOptions(separate_common_edges=False))
        left = diagram.find_smallest_shape_containing(45, 63)
        assert max(point.x for point in left.points) == 85


class TestTouchingBoxes:
    """Boxes drawn flush against each other."""

    def test_stacked(self):
        """The strip between two stacked boxes is not a shape."""
        diagram = convert(STACKED_BOXES)
        boxes = closed_shapes(diagram)
        assert len(boxes) == 2
        assert not open_shapes(diagram)
        assert [label.text for label in diagram.text_objects] == ["A", "B"]

    def test_side_by_side(self):
        diagram = convert(SIDE_BY_SIDE_BOXES)
        boxes = sorted(closed_shapes(diagram), key=lambda shape: shape.points[0].x)
        assert len(boxes) == 2
        assert max(p.x for p in boxes[0].points) < min(p.x for p in boxes[1].points)

    def test_empty_strip_is_traced_as_dropped(self, debug_options):
        diagram = Diagram(TextGrid.from_text(STACKED_BOXES), debug_options)
        dropped = diagram.trace.get_decisions_by_action("dropped")
        assert [decision.boundary_type for decision in dropped] == ["closed"]
        assert len(diagram.trace.get_decisions_by_action("closed_shape")) == 2

    def test_stacked_storage_draw_order(self):
        """Stacked storage shapes are painted from the bottom up."""
        text = STACKED_BOXES.replace("  A  ", " {s} ").replace("  B  ", " {s} ")
        diagram = convert(text)
        ordered = diagram.get_shapes_in_draw_order()
        assert [shape.type for shape in ordered] == [ShapeType.STORAGE] * 2
        assert ordered[0].get_center()[1] > ordered[1].get_center()[1]


class TestMixedBoundaries:
    """Boxes with lines sticking out of them."""

    def test_box_with_tail(self):
        """The box and its tail become separate shapes."""
        diagram = convert(BOX_WITH_TAIL)
        assert len(closed_shapes(diagram)) == 1
        (line,) = open_shapes(diagram)
        assert sorted_positions(line) == [(65, 49), (110, 49)]
        assert not line.is_arrow_terminated

    def test_branching_lines_are_composite(self):
        diagram = convert("-----+-----\n     |")
        assert len(diagram.composite_shapes) == 1
        assert len(diagram.get_all_diagram_shapes()) == 3


class TestLinesAndMarkers:
    """Free standing lines, point markers and text on lines."""

    def test_free_line_ends_reach_cell_edges(self):
        diagram = convert("-----")
        (line,) = diagram.shapes
        assert sorted_positions(line) == [(20, 35), (70, 35)]

    def test_point_marker(self):
        """A star on a line adds a marker and keeps the line whole."""
        diagram = convert("----*----")
        markers = [s for s in diagram.shapes if s.type == ShapeType.POINT_MARKER]
        lines = [s for s in diagram.shapes if s.type == ShapeType.SIMPLE]
        assert len(markers) == 1
        assert sorted_positions(markers[0]) == [(65, 35)]
        assert len(lines) == 1
        assert sorted_positions(lines[0]) == [(20, 35), (110, 35)]

    def test_text_on_line(self):
        """A letter on a line is part of the line and an outlined label."""
        diagram = convert("---x---")
        assert len(diagram.shapes) == 1
        (label,) = diagram.text_objects
        assert label.text == "x"
        assert label.on_line

    def test_dashed_box(self):
        diagram = convert("+==+\n|  |\n+--+")
        assert diagram.shapes[0].stroke_dashed

    def test_all_corners_round(self, options):
        options.all_corners_round = True
        diagram = convert("+--+\n|  |\n+--+", options)
        assert diagram.shapes[0].is_rounded

    def test_no_shadows(self, two_boxes_input):
        diagram = convert(two_boxes_input, ConversionOptions(drop_shadows=False))
        assert not any(shape.drops_shadow for shape in diagram.shapes)

    def test_lone_junction_beside_a_corner(self):
        """A plus touching only a corner is text and the corner ends a line."""
        diagram = convert(" |\n+/")
        (line,) = diagram.shapes
        assert not line.closed
        assert sorted_positions(line) == [(35, 28), (35, 56)]
        assert [label.text for label in diagram.text_objects] == ["+"]


class TestColorCodes:
    """Tests for cXXX color codes."""

    def test_fill_and_text_color(self):
        """The code fills its box and dark fills get white text."""
        diagram = convert(COLORED_BOX)
        (box,) = diagram.shapes
        assert box.fill_color == (85, 85, 187)
        (label,) = diagram.text_objects
        assert label.text == "text"
        assert label.color == WHITE

    def test_ignore(self):
        """Ignored codes are hidden but not applied."""
        diagram = convert(COLORED_BOX, ConversionOptions(color_code_mode="ignore"))
        assert diagram.shapes[0].fill_color is None
        assert [label.text for label in diagram.text_objects] == ["text"]

    def test_render(self):
        """Rendered codes stay in the text."""
        diagram = convert(COLORED_BOX, ConversionOptions(color_code_mode="render"))
        assert diagram.shapes[0].fill_color is None
        assert [label.text for label in diagram.text_objects] == ["c55B", "text"]

    def test_code_outside_shapes(self, caplog):
        """A code with no shape around it is reported."""
        with caplog.at_level(logging.WARNING, logger="asciishapes"):
            diagram = convert("cRED")
        assert len(diagram.warnings) == 1
        assert "not in a shape" in caplog.text


class TestMarkupTags:
    """Tests for {tag} markup."""

    def test_built_in_tag(self):
        diagram = convert("+-----+\n| {d} |\n+-----+")
        assert diagram.shapes[0].type == ShapeType.DOCUMENT
        assert diagram.text_objects == []

    def test_storage_tag(self):
        diagram = convert("+-----+\n| {s} |\n+-----+")
        assert diagram.shapes[0].type == ShapeType.STORAGE

    def test_ignore(self):
        diagram = convert(
            "+-----+\n| {d} |\n+-----+", ConversionOptions(tag_mode="ignore")
        )
        assert diagram.shapes[0].type == ShapeType.SIMPLE
        assert diagram.text_objects == []

    def test_render(self):
        diagram = convert(
            "+-----+\n| {d} |\n+-----+", ConversionOptions(tag_mode="render")
        )
        assert diagram.shapes[0].type == ShapeType.SIMPLE
        assert [label.text for label in diagram.text_objects] == ["{d}"]

    def test_unknown_tag(self, caplog):
        """Unknown tags are reported and kept as text."""
        with caplog.at_level(logging.WARNING, logger="asciishapes"):
            diagram = convert("+------+\n| {zz} |\n+------+")
        assert len(diagram.warnings) == 1
        assert "Unknown markup tag {zz}" in caplog.text
        assert [label.text for label in diagram.text_objects] == ["{zz}"]
        assert diagram.shapes[0].type == ShapeType.SIMPLE

    def test_custom_shape(self):
        options = ConversionOptions()
        definition = CustomShapeDefinition(tag="cloud", drops_shadow=False)
        options.add_custom_shape(definition)
        diagram = convert("+---------+\n| {cloud} |\n+---------+", options)
        (shape,) = diagram.shapes
        assert shape.type == ShapeType.CUSTOM
        assert shape.definition is definition
        assert not shape.drops_shadow


class TestDiagramApi:
    """Tests for geometry helpers and entry points."""

    def test_cell_geometry(self, two_boxes_input):
        diagram = convert(two_boxes_input)
        assert diagram.get_cell_for(45, 63).x == 4
        assert diagram.get_cell_for(45, 63).y == 4
        assert diagram.get_cell_for(-1, 0) is None
        assert diagram.get_cell_for(diagram.width, 0) is None

    def test_grid_is_not_modified(self, square_grid):
        before = square_grid.copy()
        Diagram(square_grid)
        assert square_grid == before

    def test_convert_file(self, tmp_path, two_boxes_input):
        path = tmp_path / "boxes.txt"
        path.write_text(two_boxes_input, encoding="utf-8")
        diagram = convert_file(path)
        assert len(diagram.shapes) == 4

    def test_tab_size(self):
        """Tabs are expanded before conversion."""
        diagram = convert("\t-----", ConversionOptions(tab_size=4))
        (line,) = diagram.shapes
        assert min(point.x for point in line.points) == 60

    def test_empty_input(self):
        diagram = convert("")
        assert diagram.shapes == []
        assert diagram.text_objects == []

    def test_text_grid_entry(self):
        diagram = Diagram(TextGrid.from_text("+-+\n| |\n+-+"))
        assert len(diagram.shapes) == 1

    def test_junction_that_cannot_form_a_line(self):
        """A lone plus left between two boxes is a structural error."""
        with pytest.raises(MalformedShapeError, match="cannot form a line"):
            convert(BRIDGED_BOXES)

    def test_conversion_after_error(self, two_boxes_input):
        """A failed conversion leaves nothing behind for the next one."""
        with pytest.raises(MalformedShapeError):
            convert(BRIDGED_BOXES)
        diagram = convert(two_boxes_input)
        assert len(diagram.shapes) == 4
        assert not diagram.warnings
