"""
asciishapes - Shapes from ASCII box drawings

A Python library that recognizes boxes, lines, arrows and text in ASCII art
and turns them into positioned geometric shapes.

Example:
    >>> from asciishapes import convert
    >>> diagram = convert('''
    ... +-----+     +-----+
    ... | cGRE|---->|  B  |
    ... +-----+     +-----+
    ... ''')
    >>> for shape in diagram.get_shapes_in_draw_order():
    ...     print(shape)

Debug Mode Example:
    >>> diagram = convert("+--+\\n|  |\\n+--+", ConversionOptions(debug=True))
    >>> print(diagram.trace.summary())
"""

from .abstraction import AbstractionGrid
from .cellset import BoundaryType, CellSet, cell_set_from_cells_string
from .debug import GridInspector, diff_cells, format_cell_set, visual_diff
from .diagram import BUILT_IN_TAGS, Diagram, convert, convert_file
from .grid import CellClass, CellType, TextGrid
from .models import (
    Cell,
    CellColorPair,
    CellTagPair,
    CustomShapeDefinition,
    DiagramText,
    Direction,
    PointType,
    ShapePoint,
    ShapeType,
)
from .options import ConversionOptions, MarkupMode
from .patterns import GridPattern, GridPatternGroup
from .png_renderer import PNGRenderer, render_to_png
from .shapes import CompositeDiagramShape, DiagramShape, MalformedShapeError
from .tracer import BoundaryDecision, ConversionTrace, PipelineStage

__version__ = "0.3.0"

__all__ = [
    # Main API
    "convert",
    "convert_file",
    "Diagram",
    "ConversionOptions",
    "MarkupMode",
    "BUILT_IN_TAGS",
    # Grid
    "TextGrid",
    "CellType",
    "CellClass",
    "Cell",
    "Direction",
    "CellSet",
    "BoundaryType",
    "cell_set_from_cells_string",
    "AbstractionGrid",
    "GridPattern",
    "GridPatternGroup",
    # Shapes
    "DiagramShape",
    "CompositeDiagramShape",
    "MalformedShapeError",
    "ShapePoint",
    "PointType",
    "ShapeType",
    "CustomShapeDefinition",
    "DiagramText",
    "CellTagPair",
    "CellColorPair",
    # Rendering
    "PNGRenderer",
    "render_to_png",
    # Debug/Tracing (for development and debugging)
    "ConversionTrace",
    "PipelineStage",
    "BoundaryDecision",
    "GridInspector",
    "diff_cells",
    "format_cell_set",
    "visual_diff",
]
