"""Tests for the abstraction grid."""

from asciishapes.abstraction import SCALE, AbstractionGrid, block_arms
from asciishapes.cellset import CellSet
from asciishapes.grid import TextGrid
from asciishapes.models import Cell, Direction


def whole_grid(grid):
    return CellSet(grid.cells())


class TestBlocks:
    """Tests for the 3x3 expansion of single cells."""

    def test_intersection_block(self):
        """A crossing becomes an explicit four-way junction."""
        grid = TextGrid.from_lines([" | ", "-+-", " | "])
        buffer = AbstractionGrid(grid, whole_grid(grid)).get_copy_of_internal_buffer()
        assert buffer.get_sub_grid(3, 3, 3, 3).get_rows() == [" | ", "-+-", " | "]

    def test_corner_block(self):
        """A corner gets arms toward its two lines only."""
        grid = TextGrid.from_lines(["+-", "| "])
        buffer = AbstractionGrid(grid, whole_grid(grid)).get_copy_of_internal_buffer()
        assert buffer.get_sub_grid(0, 0, 3, 3).get_rows() == ["   ", " +-", " | "]

    def test_line_blocks_are_full_runs(self):
        """Line characters run through their block even at a line end."""
        grid = TextGrid.from_lines(["--"])
        assert block_arms(grid, Cell(0, 0)) == frozenset(
            {Direction.EAST, Direction.WEST}
        )

    def test_text_has_no_block(self):
        """Cells that are not boundaries stay blank."""
        grid = TextGrid.from_lines(["a-b"])
        assert block_arms(grid, Cell(1, 0)) == frozenset()
        buffer = AbstractionGrid(grid, whole_grid(grid)).get_copy_of_internal_buffer()
        assert not buffer.get_all_non_blank()

    def test_sizes(self, square_grid):
        """The buffer is three times the source size."""
        abstraction = AbstractionGrid(square_grid, whole_grid(square_grid))
        buffer = abstraction.get_copy_of_internal_buffer()
        assert (abstraction.width, abstraction.height) == (11, 9)
        assert (buffer.width, buffer.height) == (11 * SCALE, 9 * SCALE)

    def test_coordinate_mapping(self):
        """Expanded cells map back to their source cell and position."""
        assert AbstractionGrid.to_source_cell(Cell(8, 7)) == Cell(2, 2)
        assert AbstractionGrid.sub_cell_position(Cell(8, 7)) == (2, 1)


class TestBoundaries:
    """Tests for boundary expansion on the abstraction buffer."""

    def test_find_boundaries_expanding_from_square(self, square_grid, add_square):
        """The rim of the box interior in expanded coordinates."""
        buffer = AbstractionGrid(
            square_grid, whole_grid(square_grid)
        ).get_copy_of_internal_buffer()
        boundaries = buffer.find_boundaries_expanding_from(Cell(8, 8))
        assert boundaries.size() == 56

        expected = CellSet()
        add_square(expected, 8, 7, 17, 1)
        add_square(expected, 8, 19, 17, 1)
        add_square(expected, 7, 8, 1, 11)
        add_square(expected, 25, 8, 1, 11)
        assert boundaries == expected

    def test_seed_does_not_matter(self, square_grid):
        """Any seed in the same region finds the same rim."""
        abstraction = AbstractionGrid(square_grid, whole_grid(square_grid))
        first = abstraction.get_copy_of_internal_buffer()
        second = abstraction.get_copy_of_internal_buffer()
        assert first.find_boundaries_expanding_from(
            Cell(8, 8)
        ) == second.find_boundaries_expanding_from(Cell(20, 15))

    def test_rim_maps_back_to_outline(self, square_grid):
        """Scaled back, the rim is the box outline."""
        buffer = AbstractionGrid(
            square_grid, whole_grid(square_grid)
        ).get_copy_of_internal_buffer()
        rim = buffer.find_boundaries_expanding_from(Cell(8, 8))
        assert rim.make_scaled_one_third_equivalent() == (
            square_grid.get_all_boundaries()
        )


class TestDistinctShapes:
    """Tests for splitting a grid into line networks."""

    def test_two_boxes_and_a_line(self, two_boxes_input):
        """Boxes and the line between them are separate networks."""
        grid = TextGrid.from_text(two_boxes_input)
        shapes = AbstractionGrid(grid, grid.get_all_boundaries()).get_distinct_shapes()
        assert sorted(len(shape) for shape in shapes) == [4, 12, 12]

    def test_as_text_grid(self, square_grid):
        """Collapsed back, rendered cells are starred."""
        text = AbstractionGrid(square_grid, whole_grid(square_grid)).get_as_text_grid()
        assert text.get_row(2) == "  *******  "
        assert text.get_row(3) == "  *     *  "
