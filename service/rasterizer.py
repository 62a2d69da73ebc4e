"""Rasterize the scene graph into Pillow frames."""

from __future__ import annotations

from typing import Callable, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageEnhance, ImageFilter

from domain.short_video import GradientBackground, Rgba
from service.scene import (
    CircleNode,
    ImageNode,
    LineNode,
    Node,
    RectNode,
    TextNode,
    View,
    clamp,
)

MIN_VISIBLE_OPACITY = 1.0 / 255.0


def generate_dithered_gradient(
    top_rgba: Rgba, bottom_rgba: Rgba, width: int, height: int, seed: int | None
) -> Image.Image:
    """Vertical top-to-bottom gradient with sub-pixel noise to hide banding."""
    top_color = np.array(top_rgba[:3], dtype=np.float32)
    bottom_color = np.array(bottom_rgba[:3], dtype=np.float32)
    alpha = np.linspace(0.0, 1.0, num=height, dtype=np.float32)[:, np.newaxis, np.newaxis]
    gradient_array = np.broadcast_to(
        (1.0 - alpha) * top_color + alpha * bottom_color, (height, width, 3)
    ).copy()

    noise = np.random.default_rng(seed).random((height, width, 3), dtype=np.float32) - 0.5
    gradient_array += noise

    np.clip(gradient_array, 0, 255, out=gradient_array)
    return Image.fromarray(gradient_array.astype(np.uint8))


def build_background(
    width: int,
    height: int,
    background_rgba: Rgba,
    gradient: GradientBackground | None = None,
    seed: int | None = None,
) -> Image.Image:
    """Opaque RGB base frame. Shapes blend onto it with their ink alpha."""
    if gradient is not None:
        return generate_dithered_gradient(
            gradient.top_rgba, gradient.bottom_rgba, width, height, seed
        )
    red, green, blue, _ = background_rgba
    return Image.new("RGB", (width, height), color=(red, green, blue))


def scale_alpha(image: Image.Image, opacity: float) -> Image.Image:
    """Return image with its alpha channel multiplied by opacity."""
    if opacity >= 1.0:
        return image
    faded = image.copy()
    faded.putalpha(faded.getchannel("A").point(lambda value: int(value * opacity)))
    return faded


def with_opacity(color: Rgba, opacity: float) -> Rgba:
    red, green, blue, alpha = color
    return (red, green, blue, int(round(alpha * clamp(opacity, 0.0, 1.0))))


class FrameRasterizer:
    """Draws a View onto a copy of the background for each frame."""

    def __init__(self, view: View, background: Image.Image) -> None:
        self.view = view
        self.background = background
        self.origin = (view.width / 2.0, view.height / 2.0)
        self._painters: dict[type, Callable[[Image.Image, Node, float, float], None]] = {
            TextNode: self.draw_text,
            RectNode: self.draw_rect,
            ImageNode: self.draw_image,
            LineNode: self.draw_line,
            CircleNode: self.draw_circle,
        }

    def render(self) -> Image.Image:
        """Lay out the scene and draw one RGB frame."""
        self.view.layout()
        frame = self.background.copy()
        for child in self.view.sorted_children():
            self.draw_node(frame, child, 1.0, 1.0)
        return frame

    def render_bytes(self) -> bytes:
        return self.render().tobytes()

    def to_pixels(self, node: Node) -> Tuple[float, float]:
        x_value, y_value = node.absolute_position()
        return (self.origin[0] + x_value, self.origin[1] + y_value)

    def draw_node(
        self, frame: Image.Image, node: Node, parent_scale: float, parent_opacity: float
    ) -> None:
        opacity = parent_opacity * clamp(node.opacity, 0.0, 1.0)
        scale = parent_scale * node.scale
        if opacity < MIN_VISIBLE_OPACITY or scale <= 0:
            return
        painter = self._painters.get(type(node))
        if painter is not None:
            painter(frame, node, scale, opacity)
        for child in node.sorted_children():
            self.draw_node(frame, child, scale, opacity)

    def draw_text(self, frame: Image.Image, node: TextNode, scale: float, opacity: float) -> None:
        if not node.text:
            return
        font = node.font_book.font(node.font_size * scale, node.font_weight)
        stroke_width = int(round(node.stroke_width * scale)) if node.stroke is not None else 0
        left, top, right, bottom = (
            int(round(value))
            for value in font.getbbox(node.text, anchor="mm", stroke_width=stroke_width)
        )
        center_x, center_y = self.to_pixels(node)

        if node.shadow_color is not None:
            blur_radius = max(0.0, node.shadow_blur * scale)
            padding = int(round(blur_radius * 2))
            shadow = Image.new(
                "RGBA",
                (max(1, right - left + padding * 2), max(1, bottom - top + padding * 2)),
                (0, 0, 0, 0),
            )
            ImageDraw.Draw(shadow).text(
                (padding - left, padding - top),
                node.text,
                font=font,
                fill=node.shadow_color,
                stroke_width=stroke_width,
                stroke_fill=node.shadow_color,
                anchor="mm",
            )
            if blur_radius > 0:
                shadow = shadow.filter(ImageFilter.GaussianBlur(blur_radius))
            shadow = scale_alpha(shadow, opacity)
            frame.paste(
                shadow,
                (int(round(center_x + left)) - padding, int(round(center_y + top)) - padding),
                shadow,
            )

        sprite = Image.new(
            "RGBA", (max(1, right - left), max(1, bottom - top)), (0, 0, 0, 0)
        )
        ImageDraw.Draw(sprite).text(
            (-left, -top),
            node.text,
            font=font,
            fill=node.fill,
            stroke_width=stroke_width,
            stroke_fill=node.stroke,
            anchor="mm",
        )
        sprite = scale_alpha(sprite, opacity)
        frame.paste(sprite, (int(round(center_x + left)), int(round(center_y + top))), sprite)

    def draw_rect(self, frame: Image.Image, node: RectNode, scale: float, opacity: float) -> None:
        center_x, center_y = self.to_pixels(node)
        half_width = node.width * scale / 2.0
        half_height = node.height * scale / 2.0
        box = (
            center_x - half_width,
            center_y - half_height,
            center_x + half_width,
            center_y + half_height,
        )
        ImageDraw.Draw(frame, "RGBA").rounded_rectangle(
            box,
            radius=node.radius * scale,
            fill=with_opacity(node.fill, opacity) if node.fill else None,
            outline=with_opacity(node.stroke, opacity) if node.stroke else None,
            width=int(round(node.stroke_width * scale)),
        )

    def draw_image(self, frame: Image.Image, node: ImageNode, scale: float, opacity: float) -> None:
        width, height = node.size()
        pixel_width = int(round(width * scale))
        pixel_height = int(round(height * scale))
        if pixel_width < 1 or pixel_height < 1:
            return
        image = node.image.resize((pixel_width, pixel_height), Image.Resampling.BILINEAR)
        if node.brightness != 1.0:
            alpha_channel = image.getchannel("A")
            image = ImageEnhance.Brightness(image.convert("RGB")).enhance(
                max(0.0, node.brightness)
            )
            image = image.convert("RGBA")
            image.putalpha(alpha_channel)
        if node.blur > 0:
            image = image.filter(ImageFilter.GaussianBlur(node.blur * scale))
        image = scale_alpha(image, opacity)
        center_x, center_y = self.to_pixels(node)
        frame.paste(
            image,
            (int(round(center_x - pixel_width / 2.0)), int(round(center_y - pixel_height / 2.0))),
            image,
        )

    def draw_line(self, frame: Image.Image, node: LineNode, scale: float, opacity: float) -> None:
        if len(node.points) < 2:
            return
        center_x, center_y = self.to_pixels(node)
        points = [
            (center_x + point_x * scale, center_y + point_y * scale)
            for point_x, point_y in node.points
        ]
        ImageDraw.Draw(frame, "RGBA").line(
            points,
            fill=with_opacity(node.stroke, opacity),
            width=max(1, int(round(node.line_width * scale))),
        )

    def draw_circle(self, frame: Image.Image, node: CircleNode, scale: float, opacity: float) -> None:
        center_x, center_y = self.to_pixels(node)
        radius = node.diameter * scale / 2.0
        ImageDraw.Draw(frame, "RGBA").ellipse(
            (center_x - radius, center_y - radius, center_x + radius, center_y + radius),
            fill=with_opacity(node.fill, opacity),
        )
