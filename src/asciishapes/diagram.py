"""
Diagram: turns a text grid into shapes and text labels.

The conversion works on a copy of the grid (the work grid) with markup tags
and color codes blanked out, letters sitting on lines turned into line
characters and point markers turned into plain junctions. From there:

1. The boundary cells are split into separate line networks on the
   abstraction grid.
2. For every network, each blank region of its abstraction grid is flood
   filled; the cells around each region form one boundary set.
3. Boundary sets are classified as closed, open or mixed. Mixed sets
   (boxes with lines sticking out of them) are split into their closed
   and open parts, and sets that only repeat the union of smaller
   closed sets are dropped.
4. Closed sets become polygons, open sets polylines anchored to what they
   point at. Color codes and markup tags then restyle the smallest polygon
   they sit in, arrowheads and point markers are added, and the remaining
   text becomes labels.

Example:
    >>> diagram = convert('''
    ... +---+    +---+
    ... | A |--->| B |
    ... +---+    +---+
    ... ''')
    >>> len(diagram.shapes)
    4
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .abstraction import AbstractionGrid
from .cellset import BoundaryType, CellSet
from .grid import TextGrid
from .models import (
    WHITE,
    Cell,
    CellColorPair,
    CellTagPair,
    DiagramText,
    ShapeType,
    is_dark,
)
from .options import ConversionOptions, MarkupMode
from .shapes import (
    CompositeDiagramShape,
    DiagramShape,
    cell_max_x,
    cell_max_y,
    cell_mid_x,
    cell_mid_y,
    cell_min_x,
    cell_min_y,
    create_arrowhead,
    create_closed_from_boundary_cells,
    create_point_marker,
    order_for_drawing,
    separate_common_edges,
)
from .tracer import ConversionTrace

logger = logging.getLogger(__name__)

BUILT_IN_TAGS: Dict[str, ShapeType] = {
    "d": ShapeType.DOCUMENT,
    "s": ShapeType.STORAGE,
    "io": ShapeType.IO,
    "c": ShapeType.DECISION,
    "mo": ShapeType.MANUAL_OPERATION,
    "tr": ShapeType.TRAPEZOID,
    "o": ShapeType.ELLIPSE,
}

# Context kept around a line network when its abstraction grid is built.
REGION_MARGIN = 2

Span = Tuple[Cell, int]


class Diagram:
    """
    The shapes and text labels of a converted grid.

    Attributes:
        options: Options the diagram was built with
        cell_width: Pixel width of one grid cell
        cell_height: Pixel height of one grid cell
        width: Pixel width of the diagram
        height: Pixel height of the diagram
        shapes: Polygons, single polylines, arrowheads and point markers
        composite_shapes: Branching line networks
        text_objects: Positioned text labels
        warnings: Problems found in the input that did not stop conversion
        trace: Pipeline trace when options.debug is set
    """

    def __init__(self, grid: TextGrid, options: Optional[ConversionOptions] = None):
        """
        Convert a grid.

        Args:
            grid: A loaded (normalized) text grid; it is not modified
            options: Conversion options, defaults if omitted

        Raises:
            MalformedShapeError: If a line network cannot be traced
        """
        self.options = options or ConversionOptions()
        self.cell_width = self.options.cell_width
        self.cell_height = self.options.cell_height
        self.width = grid.width * self.cell_width
        self.height = grid.height * self.cell_height

        self.shapes: List[DiagramShape] = []
        self.composite_shapes: List[CompositeDiagramShape] = []
        self.text_objects: List[DiagramText] = []
        self.warnings: List[str] = []
        self.trace: Optional[ConversionTrace] = None
        if self.options.debug:
            self.trace = ConversionTrace(input_text=grid.to_string())

        self._build(grid)

    # ------------------------------------------------------------------
    # Cell geometry
    # ------------------------------------------------------------------

    def get_cell_for(self, x: float, y: float) -> Optional[Cell]:
        """Return the cell containing a pixel position, None outside."""
        if x < 0 or y < 0 or x >= self.width or y >= self.height:
            return None
        return Cell(int(x // self.cell_width), int(y // self.cell_height))

    def get_cell_min_x(self, cell: Cell) -> float:
        return cell_min_x(cell, self.cell_width)

    def get_cell_mid_x(self, cell: Cell) -> float:
        return cell_mid_x(cell, self.cell_width)

    def get_cell_max_x(self, cell: Cell) -> float:
        return cell_max_x(cell, self.cell_width)

    def get_cell_min_y(self, cell: Cell) -> float:
        return cell_min_y(cell, self.cell_height)

    def get_cell_mid_y(self, cell: Cell) -> float:
        return cell_mid_y(cell, self.cell_height)

    def get_cell_max_y(self, cell: Cell) -> float:
        return cell_max_y(cell, self.cell_height)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def get_all_diagram_shapes(self) -> List[DiagramShape]:
        """All shapes with composite shapes flattened into their children."""
        result = list(self.shapes)
        for composite in self.composite_shapes:
            result.extend(composite.get_shapes())
        return result

    def get_shapes_in_draw_order(self) -> List[DiagramShape]:
        return order_for_drawing(self.get_all_diagram_shapes())

    def find_smallest_shape_containing(
        self, x: float, y: float
    ) -> Optional[DiagramShape]:
        """Smallest closed shape (not an arrowhead) containing the point."""
        candidates = [
            shape
            for shape in self.shapes
            if shape.closed
            and shape.type != ShapeType.ARROWHEAD
            and shape.contains(x, y)
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda shape: shape.calculate_area())

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)
        if self.trace is not None:
            self.trace.add_warning(message)

    def _stage(self, name: str, data: dict, grid: Optional[TextGrid] = None) -> None:
        logger.debug("%s: %s", name, data)
        if self.trace is not None:
            self.trace.add_stage(name, data, grid)

    def _decide(self, stage: str, cells: CellSet, kind: str, action: str) -> None:
        if self.trace is not None:
            self.trace.add_decision(stage, cells.to_cells_string(), kind, action)

    def _build(self, grid: TextGrid) -> None:
        tags, color_codes = self._find_annotations(grid)
        self._stage(
            "annotations", {"tags": len(tags), "color_codes": len(color_codes)}
        )

        work_grid = grid.copy()
        for tag in tags:
            work_grid.blank_span(tag.cell, tag.length)
        for code in color_codes:
            work_grid.blank_span(code.cell, code.length)
        work_grid.replace_type_on_line()
        point_markers = work_grid.replace_point_markers_on_line()
        self._stage("work_grid", {"point_markers": len(point_markers)}, work_grid)

        boundary_sets = self._find_boundary_sets(work_grid)
        closed_sets, open_sets = self._resolve_boundary_sets(work_grid, boundary_sets)

        all_round = self.options.all_corners_round
        for cells in closed_sets:
            shape = create_closed_from_boundary_cells(
                work_grid, cells, self.cell_width, self.cell_height, all_round
            )
            if shape is None:
                logger.debug("Closed set %s gave no shape", cells.to_cells_string())
                continue
            shape.drops_shadow = self.options.drop_shadows
            self.shapes.append(shape)
        if self.options.separate_common_edges:
            offset = min(self.cell_width, self.cell_height) / 5
            separate_common_edges(list(self.shapes), offset)
        self._stage("closed_shapes", {"shapes": len(self.shapes)})

        for cells in open_sets:
            result = CompositeDiagramShape.create_from_boundary_cells(
                work_grid, cells, self.cell_width, self.cell_height, all_round
            )
            if result is None:
                continue
            result.connect_ends_to_anchors(work_grid, self)
            if isinstance(result, CompositeDiagramShape):
                for shape in result:
                    shape.drops_shadow = self.options.drop_shadows
                self.composite_shapes.append(result)
            else:
                result.drops_shadow = self.options.drop_shadows
                self.shapes.append(result)
        self._stage(
            "open_shapes",
            {"shapes": len(self.shapes), "composites": len(self.composite_shapes)},
        )

        hidden: List[Span] = []
        hidden.extend(self._apply_color_codes(color_codes))
        hidden.extend(self._apply_markup_tags(tags))
        self._stage("markup", {"hidden_spans": len(hidden)})

        for cell in work_grid.cells():
            arrowhead = create_arrowhead(
                work_grid, cell, self.cell_width, self.cell_height
            )
            if arrowhead is not None:
                self.shapes.append(arrowhead)
        for cell in point_markers:
            self.shapes.append(
                create_point_marker(cell, self.cell_width, self.cell_height)
            )
        self._remove_duplicate_shapes()

        self._extract_text(grid, work_grid, hidden)
        self._stage("text", {"labels": len(self.text_objects)})

    def _find_annotations(
        self, grid: TextGrid
    ) -> Tuple[List[CellTagPair], List[CellColorPair]]:
        """
        Find the markup tags and color codes the options ask to process.

        Unknown tags are reported and left in place as text.
        """
        tags: List[CellTagPair] = []
        if self.options.tag_mode != MarkupMode.RENDER:
            for pair in grid.find_markup_tags():
                if pair.tag in BUILT_IN_TAGS or self.options.get_custom_shape(pair.tag):
                    tags.append(pair)
                elif self.options.tag_mode == MarkupMode.USE:
                    self._warn(f"Unknown markup tag {{{pair.tag}}} at {pair.cell}")

        color_codes: List[CellColorPair] = []
        if self.options.color_code_mode != MarkupMode.RENDER:
            color_codes = grid.find_color_codes()
        return tags, color_codes

    def _find_boundary_sets(self, work_grid: TextGrid) -> List[CellSet]:
        """Collect the boundary of every blank region around every network."""
        abstraction = AbstractionGrid(work_grid, work_grid.get_all_boundaries())
        networks = abstraction.get_distinct_shapes()
        self._stage("distinct_shapes", {"networks": len(networks)})

        boundary_sets: List[CellSet] = []
        for network in networks:
            local, cells, origin_x, origin_y = network.get_local_grid(
                work_grid, REGION_MARGIN
            )
            buffer = AbstractionGrid(local, cells).get_copy_of_internal_buffer()
            for seed in buffer.cells():
                if not buffer.is_blank(seed):
                    continue
                boundaries = buffer.find_boundaries_expanding_from(seed)
                if boundaries:
                    boundary_sets.append(
                        boundaries.make_scaled_one_third_equivalent().translate(
                            origin_x, origin_y
                        )
                    )

        unique = CellSet.remove_duplicate_sets(boundary_sets)
        self._stage(
            "boundary_sets", {"found": len(boundary_sets), "unique": len(unique)}
        )
        return unique

    def _resolve_boundary_sets(
        self, work_grid: TextGrid, boundary_sets: List[CellSet]
    ) -> Tuple[List[CellSet], List[CellSet]]:
        """
        Sort boundary sets into closed and open ones.

        Returns:
            (closed sets, open sets)
        """
        closed: List[CellSet] = []
        opened: List[CellSet] = []
        mixed: List[CellSet] = []
        for cells in boundary_sets:
            kind = cells.get_type(work_grid)
            if kind == BoundaryType.CLOSED and not self._has_interior(work_grid, cells):
                self._decide("classified", cells, kind.value, "dropped")
                continue
            if kind == BoundaryType.CLOSED:
                closed.append(cells)
            elif kind == BoundaryType.OPEN:
                opened.append(cells)
            elif kind == BoundaryType.MIXED:
                mixed.append(cells)
            self._decide("classified", cells, kind.value, kind.value)
        self._stage(
            "classified",
            {"closed": len(closed), "open": len(opened), "mixed": len(mixed)},
        )

        pieces: List[CellSet] = []
        for cells in mixed:
            if closed:
                remainder = cells.copy()
                for closed_cells in closed:
                    remainder.subtract_set(closed_cells)
                if not remainder:
                    self._decide("mixed", cells, "mixed", "covered_by_closed")
                    continue
                kind = remainder.get_type(work_grid)
                if kind == BoundaryType.OPEN:
                    pieces.extend(remainder.break_into_distinct_boundaries(work_grid))
                elif kind == BoundaryType.MIXED:
                    pieces.extend(remainder.break_truly_mixed_boundaries(work_grid))
                else:
                    pieces.append(remainder)
            else:
                pieces.extend(cells.break_truly_mixed_boundaries(work_grid))
            self._decide("mixed", cells, "mixed", "split_mixed")

        candidates = CellSet.remove_duplicate_sets(closed + opened + pieces)
        candidates = self._remove_obsolete_sets(work_grid, candidates)

        final_closed: List[CellSet] = []
        final_open: List[CellSet] = []
        for cells in candidates:
            kind = cells.get_type(work_grid)
            if kind == BoundaryType.CLOSED and not self._has_interior(work_grid, cells):
                self._decide("resolved", cells, kind.value, "dropped")
            elif kind == BoundaryType.CLOSED:
                final_closed.append(cells)
                self._decide("resolved", cells, kind.value, "closed_shape")
            elif kind == BoundaryType.OPEN:
                final_open.append(cells)
                self._decide("resolved", cells, kind.value, "open_shape")
            else:
                logger.warning("Dropping %s set %s", kind.value, cells.to_cells_string())
                self._decide("resolved", cells, kind.value, "dropped")
        self._stage(
            "resolved", {"closed": len(final_closed), "open": len(final_open)}
        )
        return final_closed, final_open

    @staticmethod
    def _has_interior(work_grid: TextGrid, cells: CellSet) -> bool:
        """
        True if a closed set encloses at least one grid cell.

        Boxes drawn flush against each other enclose a strip that only
        exists between their rims on the abstraction grid.
        """
        return len(cells.get_filled_equivalent(work_grid)) > len(cells)

    def _remove_obsolete_sets(
        self, work_grid: TextGrid, boundary_sets: List[CellSet]
    ) -> List[CellSet]:
        """
        Drop sets that are exactly the union of the sets they overlap.

        The outline of a box divided in two is found both as a whole and as
        its two halves; the whole is obsolete.
        """
        filled = [cells.get_filled_equivalent(work_grid) for cells in boundary_sets]
        obsolete = set()
        for index, area in enumerate(filled):
            group = [index] + [
                other
                for other, other_area in enumerate(filled)
                if other != index and area.has_common_cells(other_area)
            ]
            if len(group) < 3:
                continue
            largest = max(group, key=lambda i: len(filled[i]))
            union = CellSet()
            for member in group:
                if member != largest:
                    union.add_all(filled[member])
            if union == filled[largest]:
                obsolete.add(largest)

        for index in sorted(obsolete):
            self._decide("obsolete", boundary_sets[index], "closed", "obsolete")
        return [cells for i, cells in enumerate(boundary_sets) if i not in obsolete]

    def _apply_color_codes(self, color_codes: List[CellColorPair]) -> List[Span]:
        """Fill shapes with their color codes; return the spans to hide."""
        if self.options.color_code_mode == MarkupMode.IGNORE:
            return [(code.cell, code.length) for code in color_codes]

        hidden: List[Span] = []
        for code in color_codes:
            shape = self.find_smallest_shape_containing(
                self.get_cell_mid_x(code.cell), self.get_cell_mid_y(code.cell)
            )
            if shape is None:
                self._warn(f"Color code {code.code} at {code.cell} is not in a shape")
                continue
            shape.fill_color = code.color
            hidden.append((code.cell, code.length))
        return hidden

    def _apply_markup_tags(self, tags: List[CellTagPair]) -> List[Span]:
        """Restyle shapes with their markup tags; return the spans to hide."""
        if self.options.tag_mode == MarkupMode.IGNORE:
            return [(tag.cell, tag.length) for tag in tags]

        hidden: List[Span] = []
        for tag in tags:
            shape = self.find_smallest_shape_containing(
                self.get_cell_mid_x(tag.cell), self.get_cell_mid_y(tag.cell)
            )
            if shape is None:
                self._warn(f"Markup tag {{{tag.tag}}} at {tag.cell} is not in a shape")
                continue
            definition = self.options.get_custom_shape(tag.tag)
            if definition is not None:
                shape.type = ShapeType.CUSTOM
                shape.definition = definition
                shape.drops_shadow = definition.drops_shadow
            else:
                shape.type = BUILT_IN_TAGS[tag.tag]
            hidden.append((tag.cell, tag.length))
        return hidden

    def _remove_duplicate_shapes(self) -> None:
        unique: List[DiagramShape] = []
        for shape in self.shapes:
            if not any(shape.equals_shape(kept) for kept in unique):
                unique.append(shape)
        if len(unique) != len(self.shapes):
            logger.debug("Removed %d duplicate shapes", len(self.shapes) - len(unique))
        self.shapes = unique

    def _extract_text(
        self, grid: TextGrid, work_grid: TextGrid, hidden: List[Span]
    ) -> None:
        text_grid = grid.copy()
        text_grid.remove_non_text()
        for cell, length in hidden:
            text_grid.blank_span(cell, length)

        for cell, string in text_grid.find_strings():
            label = DiagramText(
                x=self.get_cell_min_x(cell),
                y=self.get_cell_min_y(cell),
                text=string,
                cell=cell,
            )
            shape = self.find_smallest_shape_containing(
                self.get_cell_mid_x(cell), self.get_cell_mid_y(cell)
            )
            if shape is not None and shape.fill_color and is_dark(shape.fill_color):
                label.color = WHITE
            span = text_grid.span_cells(cell, len(string))
            label.on_line = any(work_grid.is_boundary(c) for c in span)
            self.text_objects.append(label)


def convert(text: str, options: Optional[ConversionOptions] = None) -> Diagram:
    """
    Convert diagram text in one call.

    Args:
        text: The ASCII diagram
        options: Conversion options, defaults if omitted

    Returns:
        The converted Diagram
    """
    options = options or ConversionOptions()
    return Diagram(TextGrid.from_text(text, tab_size=options.tab_size), options)


def convert_file(
    path: Union[str, Path], options: Optional[ConversionOptions] = None
) -> Diagram:
    """Load a diagram file with the options' encoding and convert it."""
    options = options or ConversionOptions()
    grid = TextGrid.load_from(path, encoding=options.encoding, tab_size=options.tab_size)
    return Diagram(grid, options)
