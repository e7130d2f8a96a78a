"""
PNG Renderer module for converted diagrams.

Renders a Diagram as a PNG preview. Shapes are painted in draw order with
an offset shadow, then text labels on top. The preview follows the shape
geometry closely but is not meant to be pixel exact.
"""

import os
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from .diagram import Diagram
from .models import BLACK, WHITE, Color, ShapeType
from .shapes import DiagramShape

Point = Tuple[float, float]


class PNGRenderer:
    """Renders diagrams as PNG images."""

    def __init__(
        self,
        scale: int = 2,
        font_path: Optional[str] = None,
        shadow_offset: int = 3,
        dash_length: int = 4,
    ):
        self.scale = scale
        self.font_path = font_path
        self.shadow_offset = shadow_offset
        self.dash_length = dash_length

        # Colors
        self.bg_color: Color = WHITE
        self.shadow_color: Color = (160, 160, 160)

        self.font = None
        self._font_size = 0

    def _get_font(self, size: int):
        """Get a monospace font of the given pixel size."""
        if self.font is not None and self._font_size == size:
            return self.font

        font_options = []
        if self.font_path:
            font_options.append(self.font_path)
        font_options.extend(
            [
                "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
                "/usr/share/fonts/truetype/liberation/LiberationMono-Regular.ttf",
                "/usr/share/fonts/truetype/freefont/FreeMono.ttf",
                "/System/Library/Fonts/Menlo.ttc",
                "C:/Windows/Fonts/consola.ttf",
            ]
        )

        self._font_size = size
        for path in font_options:
            if os.path.exists(path):
                try:
                    self.font = ImageFont.truetype(path, size)
                    return self.font
                except OSError:
                    continue

        # Fallback to default font
        self.font = ImageFont.load_default()
        return self.font

    def _xy(self, points: Sequence[Point], dx: float = 0, dy: float = 0) -> List[Point]:
        return [((x + dx) * self.scale, (y + dy) * self.scale) for x, y in points]

    def render_image(self, diagram: Diagram) -> Image.Image:
        """
        Paint the diagram into a new image.

        Args:
            diagram: A converted diagram

        Returns:
            The RGB image, diagram size times scale
        """
        width = max(1, int(diagram.width * self.scale))
        height = max(1, int(diagram.height * self.scale))
        img = Image.new("RGB", (width, height), self.bg_color)
        draw = ImageDraw.Draw(img)

        shapes = diagram.get_shapes_in_draw_order()

        # Draw shadows first
        for shape in shapes:
            if shape.drops_shadow and len(shape.points) > 1:
                self._draw_shape(draw, shape, shadow=True)

        for shape in shapes:
            if shape.type == ShapeType.POINT_MARKER:
                self._draw_point_marker(draw, shape, diagram)
            else:
                self._draw_shape(draw, shape)

        self._draw_text(draw, diagram)
        return img

    def render(self, diagram: Diagram, output_path: str = "diagram.png") -> str:
        """
        Render the diagram as a PNG image.

        Args:
            diagram: A converted diagram
            output_path: Path to save the PNG file

        Returns:
            Path to the saved PNG file
        """
        img = self.render_image(diagram)
        img.save(output_path, "PNG")
        return output_path

    def _outline(self, shape: DiagramShape) -> List[Point]:
        """Outline points of a shape, with tagged shapes drawn by their bounds."""
        points = [(point.x, point.y) for point in shape.points]
        if not shape.closed or len(points) < 3:
            return points

        min_x, min_y, max_x, max_y = shape.get_bounds()
        mid_x, mid_y = (min_x + max_x) / 2, (min_y + max_y) / 2
        slant = (max_x - min_x) / 6
        if shape.type == ShapeType.DECISION:
            return [(mid_x, min_y), (max_x, mid_y), (mid_x, max_y), (min_x, mid_y)]
        if shape.type == ShapeType.IO:
            return [
                (min_x + slant, min_y),
                (max_x, min_y),
                (max_x - slant, max_y),
                (min_x, max_y),
            ]
        if shape.type == ShapeType.MANUAL_OPERATION:
            return [
                (min_x, min_y),
                (max_x, min_y),
                (max_x - slant, max_y),
                (min_x + slant, max_y),
            ]
        if shape.type == ShapeType.TRAPEZOID:
            return [
                (min_x + slant, min_y),
                (max_x - slant, min_y),
                (max_x, max_y),
                (min_x, max_y),
            ]
        return points

    def _draw_shape(
        self, draw: ImageDraw.ImageDraw, shape: DiagramShape, shadow: bool = False
    ) -> None:
        offset = self.shadow_offset if shadow else 0
        line_width = max(1, self.scale)
        stroke = self.shadow_color if shadow else shape.stroke_color
        points = self._xy(self._outline(shape), offset, offset)

        if not shape.closed:
            self._draw_polyline(draw, points, stroke, line_width, shape.stroke_dashed)
            return

        if shadow:
            fill: Optional[Color] = self.shadow_color
        elif shape.fill_color is not None:
            fill = shape.fill_color
        else:
            fill = WHITE

        if shape.type in (ShapeType.ELLIPSE, ShapeType.STORAGE):
            min_x, min_y, max_x, max_y = shape.get_bounds()
            box = self._xy([(min_x, min_y), (max_x, max_y)], offset, offset)
            if shape.type == ShapeType.ELLIPSE:
                draw.ellipse(box, fill=fill, outline=stroke, width=line_width)
            else:
                self._draw_storage(draw, box, fill, stroke, line_width)
            return

        if shape.type == ShapeType.ARROWHEAD:
            draw.polygon(points, fill=stroke if not shadow else fill)
            return

        if shape.stroke_dashed and not shadow:
            draw.polygon(points, fill=fill)
            self._draw_polyline(draw, points + points[:1], stroke, line_width, True)
        elif shape.is_rounded and len(points) == 4:
            xs = [x for x, _ in points]
            ys = [y for _, y in points]
            draw.rounded_rectangle(
                [min(xs), min(ys), max(xs), max(ys)],
                radius=3 * self.scale,
                fill=fill,
                outline=stroke,
                width=line_width,
            )
        else:
            draw.polygon(points, fill=fill, outline=stroke, width=line_width)

    def _draw_storage(
        self,
        draw: ImageDraw.ImageDraw,
        box: List[Point],
        fill: Color,
        stroke: Color,
        line_width: int,
    ) -> None:
        """Draw a cylinder filling the box."""
        (x1, y1), (x2, y2) = box
        cap = (y2 - y1) / 5
        draw.ellipse([x1, y2 - cap, x2, y2], fill=fill, outline=stroke, width=line_width)
        # The body hides the upper half of the bottom cap.
        draw.rectangle([x1, y1 + cap / 2, x2, y2 - cap / 2], fill=fill)
        draw.line([(x1, y1 + cap / 2), (x1, y2 - cap / 2)], fill=stroke, width=line_width)
        draw.line([(x2, y1 + cap / 2), (x2, y2 - cap / 2)], fill=stroke, width=line_width)
        draw.ellipse([x1, y1, x2, y1 + cap], fill=fill, outline=stroke, width=line_width)

    def _draw_polyline(
        self,
        draw: ImageDraw.ImageDraw,
        points: List[Point],
        color: Color,
        line_width: int,
        dashed: bool,
    ) -> None:
        if len(points) < 2:
            return
        if not dashed:
            draw.line(points, fill=color, width=line_width)
            return

        dash = self.dash_length * self.scale
        for (x1, y1), (x2, y2) in zip(points, points[1:]):
            length = ((x2 - x1) ** 2 + (y2 - y1) ** 2) ** 0.5
            if length == 0:
                continue
            ux, uy = (x2 - x1) / length, (y2 - y1) / length
            position = 0.0
            while position < length:
                end = min(position + dash, length)
                draw.line(
                    [
                        (x1 + ux * position, y1 + uy * position),
                        (x1 + ux * end, y1 + uy * end),
                    ],
                    fill=color,
                    width=line_width,
                )
                position += 2 * dash

    def _draw_point_marker(
        self, draw: ImageDraw.ImageDraw, shape: DiagramShape, diagram: Diagram
    ) -> None:
        """Draw a point marker as a small outlined circle."""
        point = shape.get_point(0)
        radius = min(diagram.cell_width, diagram.cell_height) / 3
        box = self._xy(
            [(point.x - radius, point.y - radius), (point.x + radius, point.y + radius)]
        )
        draw.ellipse(
            box,
            fill=shape.fill_color or WHITE,
            outline=shape.stroke_color,
            width=max(1, self.scale),
        )

    def _draw_text(self, draw: ImageDraw.ImageDraw, diagram: Diagram) -> None:
        font = self._get_font(int(diagram.cell_height * self.scale * 0.8))
        for label in diagram.text_objects:
            x, y = label.x * self.scale, label.y * self.scale
            if label.on_line:
                bbox = draw.textbbox((x, y), label.text, font=font)
                draw.rectangle(bbox, fill=label.outline_color)
            draw.text((x, y), label.text, fill=label.color or BLACK, font=font)


def render_to_png(
    diagram: Diagram, output_path: str = "diagram.png", **kwargs
) -> str:
    """
    Convenience function to render a diagram to PNG.

    Args:
        diagram: A converted diagram
        output_path: Path to save the PNG file
        **kwargs: Additional parameters for PNGRenderer

    Returns:
        Path to the saved PNG file
    """
    renderer = PNGRenderer(**kwargs)
    return renderer.render(diagram, output_path)
