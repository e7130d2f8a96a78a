"""
Small template matching over grid windows.

A GridPattern is a list of equally long template rows. Each template row is
compiled once, at construction, into a regular expression that must match the
corresponding row of a candidate grid in full. Patterns are immutable after
construction, so the module-level criteria tables below can be shared by any
number of conversions.

Template tokens:
    .       any character
    b       blank
    !       anything but blank
    1 - 8   a line character able to connect toward the center from that
            position, numbered clockwise from the north-west:

                1 2 3
                8 . 4
                7 6 5

    a       an arrowhead character
    other   the character itself
"""

import re
from typing import Dict, Optional, Protocol, Sequence, Tuple

from .models import Direction

# Characters that can carry a line into the center of a 3x3 window.
ENTRY_POINTS: Dict[str, str] = {
    "1": "\\",
    "2": "|:+\\/*",
    "3": "/",
    "4": "-=+\\/*",
    "5": "\\",
    "6": "|:+\\/*",
    "7": "/",
    "8": "-=+\\/*",
}

ARROWHEAD_CHARS = "<>^vV"


class GridLike(Protocol):
    """Anything exposing rows of characters, such as a TextGrid."""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def get_row(self, y: int) -> str: ...


def _compile_token(token: str) -> str:
    if token == ".":
        return "."
    if token == "b":
        return " "
    if token == "!":
        return "[^ ]"
    if token == "a":
        return "[" + re.escape(ARROWHEAD_CHARS) + "]"
    if token in ENTRY_POINTS:
        return "[" + re.escape(ENTRY_POINTS[token]) + "]"
    return re.escape(token)


class GridPattern:
    """
    A fixed template matched against a same-sized grid window.

    Example:
        >>> east_arrow = GridPattern("...", "8>.", "...")
        >>> east_arrow.is_matched_by(grid.get_testing_sub_grid(cell))
    """

    def __init__(self, *rows: str):
        if not rows:
            rows = ("...", "...", "...")
        widths = {len(row) for row in rows}
        if len(widths) != 1:
            raise ValueError(f"Pattern rows must have equal length: {rows!r}")
        self.rows: Tuple[str, ...] = tuple(rows)
        self._regexps: Tuple[re.Pattern, ...] = tuple(
            re.compile("".join(_compile_token(t) for t in row), re.DOTALL)
            for row in rows
        )

    @property
    def width(self) -> int:
        return len(self.rows[0])

    @property
    def height(self) -> int:
        return len(self.rows)

    def is_matched_by(self, grid: GridLike) -> bool:
        """
        Check whether the grid window matches this template.

        A window of a different size never matches.
        """
        if grid.width != self.width or grid.height != self.height:
            return False
        for y, regexp in enumerate(self._regexps):
            if regexp.fullmatch(grid.get_row(y)) is None:
                return False
        return True

    def __repr__(self) -> str:
        return f"GridPattern{self.rows!r}"


class GridPatternGroup:
    """An ordered collection of patterns tried one after the other."""

    def __init__(self, patterns: Sequence[GridPattern]):
        self.patterns: Tuple[GridPattern, ...] = tuple(patterns)

    def is_any_matched_by(self, grid: GridLike) -> bool:
        return self.first_match(grid) is not None

    def is_all_matched_by(self, grid: GridLike) -> bool:
        return all(pattern.is_matched_by(grid) for pattern in self.patterns)

    def first_match(self, grid: GridLike) -> Optional[GridPattern]:
        """Return the first pattern (in priority order) matching the grid."""
        for pattern in self.patterns:
            if pattern.is_matched_by(grid):
                return pattern
        return None

    def __len__(self) -> int:
        return len(self.patterns)


# Arrowheads, keyed by the direction the arrow points to. The line feeding an
# arrowhead enters from the opposite side.
ARROWHEAD_CRITERIA: Tuple[Tuple[Direction, GridPatternGroup], ...] = (
    (Direction.NORTH, GridPatternGroup([GridPattern("...", ".^.", ".6.")])),
    (Direction.EAST, GridPatternGroup([GridPattern("...", "8>.", "...")])),
    (
        Direction.SOUTH,
        GridPatternGroup(
            [GridPattern(".2.", ".v.", "..."), GridPattern(".2.", ".V.", "...")]
        ),
    ),
    (Direction.WEST, GridPatternGroup([GridPattern("...", ".<4", "...")])),
)

# A point marker sits on at least one line.
POINT_MARKER_CRITERIA = GridPatternGroup(
    [
        GridPattern("...", "8*.", "..."),
        GridPattern("...", ".*4", "..."),
        GridPattern(".2.", ".*.", "..."),
        GridPattern("...", ".*.", ".6."),
    ]
)


def match_arrowhead(grid: GridLike) -> Optional[Direction]:
    """
    Find the direction of the arrowhead at the center of a 3x3 window.

    Returns:
        The direction the arrowhead points to, or None
    """
    for direction, group in ARROWHEAD_CRITERIA:
        if group.is_any_matched_by(grid):
            return direction
    return None
