"""
Conversion options.

A ConversionOptions instance carries every setting the converter reads.
Invalid values are rejected on construction with a ValueError.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union

from .grid import DEFAULT_TAB_SIZE
from .models import CustomShapeDefinition


class MarkupMode(Enum):
    """
    What to do with markup tags or color codes.

    USE applies them and hides them from the text, IGNORE only hides them,
    RENDER leaves them in the text without applying them.
    """

    USE = "use"
    IGNORE = "ignore"
    RENDER = "render"


@dataclass
class ConversionOptions:
    """
    Settings for converting a text grid into a diagram.

    Attributes:
        tab_size: Tab stop distance used when loading text
        all_corners_round: Make every corner round
        separate_common_edges: Pull apart edges shared by two shapes
        tag_mode: Handling of {tag} markup
        color_code_mode: Handling of cXXX color codes
        custom_shapes: Custom shape definitions keyed by tag name
        cell_width: Pixel width of one grid cell
        cell_height: Pixel height of one grid cell
        drop_shadows: Give boxes and lines a shadow
        encoding: Character encoding used when loading files
        debug: Record a ConversionTrace on the diagram
    """

    tab_size: int = DEFAULT_TAB_SIZE
    all_corners_round: bool = False
    separate_common_edges: bool = True
    tag_mode: Union[MarkupMode, str] = MarkupMode.USE
    color_code_mode: Union[MarkupMode, str] = MarkupMode.USE
    custom_shapes: Dict[str, CustomShapeDefinition] = field(default_factory=dict)
    cell_width: int = 10
    cell_height: int = 14
    drop_shadows: bool = True
    encoding: str = "utf-8"
    debug: bool = False

    def __post_init__(self):
        if self.tab_size < 0:
            raise ValueError(f"tab_size must not be negative, got {self.tab_size}")
        if self.cell_width <= 0 or self.cell_height <= 0:
            raise ValueError(
                f"Cell size must be positive, got "
                f"{self.cell_width}x{self.cell_height}"
            )
        self.tag_mode = self._to_mode(self.tag_mode)
        self.color_code_mode = self._to_mode(self.color_code_mode)
        for tag, definition in self.custom_shapes.items():
            if tag != definition.tag:
                raise ValueError(
                    f"Custom shape registered as {tag!r} is defined for "
                    f"{definition.tag!r}"
                )

    @staticmethod
    def _to_mode(mode: Union[MarkupMode, str]) -> MarkupMode:
        if isinstance(mode, MarkupMode):
            return mode
        try:
            return MarkupMode(str(mode).lower())
        except ValueError:
            valid = ", ".join(m.value for m in MarkupMode)
            raise ValueError(
                f"Invalid markup mode {mode!r}, use one of: {valid}"
            ) from None

    def set_markup_mode(self, mode: Union[MarkupMode, str]) -> None:
        """Set the handling of both tags and color codes."""
        self.tag_mode = self._to_mode(mode)
        self.color_code_mode = self.tag_mode

    def add_custom_shape(self, definition: CustomShapeDefinition) -> None:
        self.custom_shapes[definition.tag] = definition

    def get_custom_shape(self, tag: str) -> Optional[CustomShapeDefinition]:
        return self.custom_shapes.get(tag)
