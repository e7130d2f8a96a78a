"""Pytest configuration and shared fixtures for asciishapes tests."""

from pathlib import Path

import pytest

from asciishapes import CellSet, ConversionOptions, TextGrid
from asciishapes.models import Cell

TEXT_DIR = Path(__file__).parent / "text"


def add_square_to_cell_set(cells: CellSet, x: int, y: int, width: int, height: int):
    """Add every cell of a width x height rectangle at (x, y)."""
    for xx in range(width):
        for yy in range(height):
            cells.add(Cell(x + xx, y + yy))
    return cells


@pytest.fixture
def add_square():
    """The rectangle helper, for building expected cell sets."""
    return add_square_to_cell_set


@pytest.fixture
def text_dir():
    """Directory holding the diagram fixtures."""
    return TEXT_DIR


@pytest.fixture
def square_grid():
    """A 7x5 box loaded from file."""
    return TextGrid.load_from(TEXT_DIR / "simple_square01.txt")


@pytest.fixture
def u_grid():
    """A U shaped outline loaded from file."""
    return TextGrid.load_from(TEXT_DIR / "simple_U01.txt")


@pytest.fixture
def s_grid():
    """Two boxes on top and one below, with one corner missing."""
    return TextGrid.load_from(TEXT_DIR / "simple_S01.txt")


@pytest.fixture
def two_boxes_input():
    """Two boxes joined by an arrow."""
    return """
+---+     +---+
| A |---->| B |
+---+     +---+
"""


@pytest.fixture
def nested_input():
    """A box divided in two by an inner wall."""
    return """
+-----+-----+
|     |     |
|  A  |  B  |
|     |     |
+-----+-----+
"""


@pytest.fixture
def options():
    """Default ConversionOptions instance."""
    return ConversionOptions()


@pytest.fixture
def debug_options():
    """Options that record a conversion trace."""
    return ConversionOptions(debug=True)
