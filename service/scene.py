"""Retained scene graph for render_short_video.

Coordinates are center-origin: (0, 0) is the middle of the parent, x grows to
the right and y grows downward. Properties are plain fields; derived values
such as absolute positions and sizes are recomputed on demand.
"""

from __future__ import annotations

import os
from typing import Any, Iterator, Sequence, Tuple

from PIL import Image, ImageFont

from domain.short_video import (
    FONT_LOAD_CODE,
    IMAGE_FILE_CODE,
    Rgba,
    RenderValidationError,
    TextAlignment,
)
from service.timeline import Easing, Process, ease_in_out_cubic, tween

BOLD_WEIGHT = 600
LINE_HEIGHT_RATIO = 1.2

Point = Tuple[float, float]


def clamp(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))


def lerp(start: float, end: float, progress: float) -> float:
    return start + (end - start) * progress


def lerp_rgba(start: Rgba, end: Rgba, progress: float) -> Rgba:
    """Interpolate two RGBA colors, clamping overshooting easings."""
    red, green, blue, alpha = (
        int(round(clamp(lerp(start[index], end[index], progress), 0, 255)))
        for index in range(4)
    )
    return (red, green, blue, alpha)


def interpolate(start: Any, end: Any, progress: float) -> Any:
    if isinstance(end, tuple) and len(end) == 4:
        return lerp_rgba(start, end, progress)
    if isinstance(end, tuple):
        return tuple(lerp(a, b, progress) for a, b in zip(start, end))
    return lerp(start, end, progress)


class FontBook:
    """Loads Pillow fonts per size and weight and measures text."""

    def __init__(
        self, regular_font_file: str | None = None, bold_font_file: str | None = None
    ) -> None:
        self.regular_font_file = regular_font_file
        self.bold_font_file = bold_font_file
        self._cache: dict[Tuple[str | None, int], ImageFont.FreeTypeFont] = {}

    def font(self, size: int, weight: int = 400) -> ImageFont.FreeTypeFont:
        """Return a cached font for the size and weight."""
        font_file_path = self.regular_font_file
        if weight >= BOLD_WEIGHT and self.bold_font_file:
            font_file_path = self.bold_font_file
        size = max(1, int(round(size)))
        cache_key = (font_file_path, size)
        cached_font = self._cache.get(cache_key)
        if cached_font is not None:
            return cached_font
        if font_file_path is None:
            font = ImageFont.load_default(size=size)
        else:
            try:
                font = ImageFont.truetype(
                    font_file_path, size=size, layout_engine=ImageFont.Layout.BASIC
                )
            except Exception as exc:
                raise RenderValidationError(
                    FONT_LOAD_CODE,
                    f"failed to load font {font_file_path} at size {size}",
                ) from exc
        self._cache[cache_key] = font
        return font

    def bbox(
        self, text: str, size: int, weight: int = 400, stroke_width: int = 0
    ) -> Tuple[float, float, float, float]:
        """Text bounding box relative to its middle anchor."""
        if not text:
            return (0.0, 0.0, 0.0, 0.0)
        left, top, right, bottom = self.font(size, weight).getbbox(
            text, anchor="mm", stroke_width=stroke_width
        )
        return (float(left), float(top), float(right), float(bottom))

    def space_width(self, size: int, weight: int = 400) -> float:
        return float(self.font(size, weight).getlength(" "))


def load_image(image_path: str) -> Image.Image:
    """Load an image as RGBA."""
    if not os.path.isfile(image_path):
        raise RenderValidationError(IMAGE_FILE_CODE, f"image not found: {image_path}")
    try:
        with Image.open(image_path) as opened:
            image = opened.convert("RGBA")
    except Exception as exc:
        raise RenderValidationError(
            IMAGE_FILE_CODE, f"failed to read image: {image_path}"
        ) from exc
    return image


class Node:
    """Base node owning an ordered list of children."""

    def __init__(
        self,
        x: float = 0.0,
        y: float = 0.0,
        scale: float = 1.0,
        opacity: float = 1.0,
        z_index: int = 0,
    ) -> None:
        self.x = x
        self.y = y
        self.scale = scale
        self.opacity = opacity
        self.z_index = z_index
        self.parent: Node | None = None
        self.children: list[Node] = []

    def add(self, child: "Node") -> "Node":
        """Attach child as the last child of this node."""
        if child.parent is not None:
            child.remove()
        child.parent = self
        self.children.append(child)
        return child

    def remove(self) -> None:
        """Detach this node from its parent."""
        if self.parent is None:
            return
        self.parent.children.remove(self)
        self.parent = None

    @property
    def position(self) -> Point:
        return (self.x, self.y)

    @position.setter
    def position(self, value: Point) -> None:
        self.x, self.y = value

    def absolute_scale(self) -> float:
        if self.parent is None:
            return self.scale
        return self.parent.absolute_scale() * self.scale

    def absolute_position(self) -> Point:
        if self.parent is None:
            return (self.x, self.y)
        parent_x, parent_y = self.parent.absolute_position()
        parent_scale = self.parent.absolute_scale()
        return (parent_x + self.x * parent_scale, parent_y + self.y * parent_scale)

    def absolute_opacity(self) -> float:
        if self.parent is None:
            return self.opacity
        return self.parent.absolute_opacity() * self.opacity

    def to_local(self, point: Point) -> Point:
        """Convert an absolute point into this node's child coordinates."""
        origin_x, origin_y = self.absolute_position()
        scale = self.absolute_scale() or 1.0
        return ((point[0] - origin_x) / scale, (point[1] - origin_y) / scale)

    def size(self) -> Tuple[float, float]:
        return (0.0, 0.0)

    def layout(self) -> None:
        """Recompute derived layout for this subtree."""
        for child in self.children:
            child.layout()

    def sorted_children(self) -> list["Node"]:
        return sorted(self.children, key=lambda child: child.z_index)

    def walk(self) -> Iterator["Node"]:
        yield self
        for child in self.children:
            yield from child.walk()

    def animate(
        self,
        name: str,
        target: Any,
        seconds: float,
        easing: Easing = ease_in_out_cubic,
    ) -> Process:
        """Tween a property from its value at tween start to target."""
        start = getattr(self, name)

        def update(progress: float) -> None:
            setattr(self, name, interpolate(start, target, progress))

        yield from tween(seconds, update, easing)


class View(Node):
    """Scene root sized to the output frame."""

    def __init__(self, width: int, height: int, font_book: FontBook) -> None:
        super().__init__()
        self.width = width
        self.height = height
        self.font_book = font_book

    def size(self) -> Tuple[float, float]:
        return (float(self.width), float(self.height))


class TextNode(Node):
    """A single line of styled text drawn around its middle anchor."""

    def __init__(
        self,
        text: str,
        font_book: FontBook,
        font_size: int,
        fill: Rgba,
        font_weight: int = 400,
        stroke: Rgba | None = None,
        stroke_width: int = 0,
        shadow_color: Rgba | None = None,
        shadow_blur: float = 0.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.text = text
        self.font_book = font_book
        self.font_size = font_size
        self.fill = fill
        self.font_weight = font_weight
        self.stroke = stroke
        self.stroke_width = stroke_width
        self.shadow_color = shadow_color
        self.shadow_blur = shadow_blur

    def local_bbox(self) -> Tuple[float, float, float, float]:
        stroke_width = self.stroke_width if self.stroke is not None else 0
        return self.font_book.bbox(
            self.text, self.font_size, self.font_weight, stroke_width
        )

    def size(self) -> Tuple[float, float]:
        left, top, right, bottom = self.local_bbox()
        return (right - left, bottom - top)

    def absolute_bounds(self) -> Tuple[float, float, float, float]:
        """Rendered bounding box in absolute coordinates."""
        left, top, right, bottom = self.local_bbox()
        center_x, center_y = self.absolute_position()
        scale = self.absolute_scale()
        return (
            center_x + left * scale,
            center_y + top * scale,
            center_x + right * scale,
            center_y + bottom * scale,
        )


class TextRun(Node):
    """Inline container that flows its text children into wrapped lines."""

    def __init__(
        self,
        font_book: FontBook,
        max_width: float,
        alignment: TextAlignment = TextAlignment.CENTER,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.font_book = font_book
        self.max_width = max_width
        self.alignment = alignment

    def add(self, child: Node) -> Node:
        added = super().add(child)
        self.layout()
        return added

    def words(self) -> list[TextNode]:
        return [child for child in self.children if isinstance(child, TextNode)]

    def layout(self) -> None:
        words = self.words()
        if not words:
            return
        lines: list[list[Tuple[TextNode, float]]] = [[]]
        line_width = 0.0
        gap = self.font_book.space_width(words[0].font_size, words[0].font_weight)
        for word in words:
            word_width = word.size()[0]
            needed = word_width if not lines[-1] else line_width + gap + word_width
            if lines[-1] and needed > self.max_width:
                lines.append([])
                needed = word_width
            lines[-1].append((word, word_width))
            line_width = needed

        line_height = max(word.font_size for word in words) * LINE_HEIGHT_RATIO
        top = -line_height * len(lines) / 2.0
        for line_index, line in enumerate(lines):
            total = sum(width for _, width in line) + gap * (len(line) - 1)
            if self.alignment == TextAlignment.LEFT:
                cursor = -self.max_width / 2.0
            else:
                cursor = -total / 2.0
            center_y = top + line_height * (line_index + 0.5)
            for word, width in line:
                word.x = cursor + width / 2.0
                word.y = center_y
                cursor += width + gap
        super().layout()

    def size(self) -> Tuple[float, float]:
        words = self.words()
        if not words:
            return (0.0, 0.0)
        bounds = [word.absolute_bounds() for word in words]
        scale = self.absolute_scale() or 1.0
        width = (max(b[2] for b in bounds) - min(b[0] for b in bounds)) / scale
        height = (max(b[3] for b in bounds) - min(b[1] for b in bounds)) / scale
        return (width, height)


class RectNode(Node):
    """Filled, optionally rounded rectangle centered on its position."""

    def __init__(
        self,
        width: float,
        height: float,
        fill: Rgba | None = None,
        radius: float = 0.0,
        stroke: Rgba | None = None,
        stroke_width: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.width = width
        self.height = height
        self.fill = fill
        self.radius = radius
        self.stroke = stroke
        self.stroke_width = stroke_width

    def size(self) -> Tuple[float, float]:
        return (self.width, self.height)


class ImageNode(Node):
    """Bitmap scaled to a display height, keeping its aspect ratio."""

    def __init__(
        self,
        image: Image.Image,
        height: float | None = None,
        width: float | None = None,
        brightness: float = 1.0,
        blur: float = 0.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.image = image
        self.display_height = height
        self.display_width = width
        self.brightness = brightness
        self.blur = blur

    def size(self) -> Tuple[float, float]:
        native_width, native_height = self.image.size
        if self.display_width is not None and self.display_height is not None:
            return (self.display_width, self.display_height)
        if self.display_height is not None:
            return (native_width * self.display_height / native_height, self.display_height)
        if self.display_width is not None:
            return (self.display_width, native_height * self.display_width / native_width)
        return (float(native_width), float(native_height))


class LineNode(Node):
    """Straight segment between two local points."""

    def __init__(
        self,
        points: Sequence[Point],
        stroke: Rgba,
        line_width: float = 2.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.points = [tuple(point) for point in points]
        self.stroke = stroke
        self.line_width = line_width


class CircleNode(Node):
    """Filled circle with a diameter."""

    def __init__(self, diameter: float, fill: Rgba, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.diameter = diameter
        self.fill = fill

    def size(self) -> Tuple[float, float]:
        return (self.diameter, self.diameter)
