"""Pixel tests for frame rasterization."""

from __future__ import annotations

from PIL import Image

from domain.short_video import GradientBackground
from service.rasterizer import FrameRasterizer, build_background
from service.scene import (
    CircleNode,
    FontBook,
    ImageNode,
    LineNode,
    Node,
    RectNode,
    TextNode,
    View,
)

WIDTH = 64
HEIGHT = 96
RED = (255, 0, 0, 255)
RED_PIXEL = (255, 0, 0)
BLACK_PIXEL = (0, 0, 0)


def build_rasterizer(background=(0, 0, 0, 255)) -> tuple[View, FrameRasterizer]:
    view = View(WIDTH, HEIGHT, FontBook())
    return view, FrameRasterizer(view, build_background(WIDTH, HEIGHT, background))


def test_empty_scene_renders_the_background() -> None:
    """Frames are raw RGB of the configured size."""
    _, rasterizer = build_rasterizer((10, 20, 30, 255))

    frame_bytes = rasterizer.render_bytes()

    assert len(frame_bytes) == WIDTH * HEIGHT * 3
    assert frame_bytes[:6] == bytes([10, 20, 30, 10, 20, 30])


def test_gradient_background_is_seeded() -> None:
    """The same seed produces identical dithered gradients."""
    gradient = GradientBackground((0, 0, 0, 255), (200, 100, 50, 255))

    first = build_background(WIDTH, HEIGHT, (0, 0, 0, 255), gradient, seed=4)
    second = build_background(WIDTH, HEIGHT, (0, 0, 0, 255), gradient, seed=4)

    assert first.tobytes() == second.tobytes()
    assert first.getpixel((0, 0)) == (0, 0, 0)
    bottom = first.getpixel((WIDTH // 2, HEIGHT - 1))
    assert all(abs(actual - expected) <= 1 for actual, expected in zip(bottom, (200, 100, 50)))


def test_rect_is_drawn_around_its_center() -> None:
    """Positions are relative to the frame center."""
    view, rasterizer = build_rasterizer()
    view.add(RectNode(10, 10, fill=RED, x=10, y=-20))

    frame = rasterizer.render()

    assert frame.getpixel((WIDTH // 2 + 10, HEIGHT // 2 - 20)) == RED_PIXEL
    assert frame.getpixel((WIDTH // 2, HEIGHT // 2)) == BLACK_PIXEL


def test_opacity_blends_with_the_background() -> None:
    """Half-transparent nodes blend; invisible nodes are skipped."""
    view, rasterizer = build_rasterizer()
    view.add(RectNode(10, 10, fill=RED, opacity=0.5))
    view.add(RectNode(10, 10, fill=(0, 255, 0, 255), x=20, opacity=0.0))

    frame = rasterizer.render()

    red, green, _ = frame.getpixel((WIDTH // 2, HEIGHT // 2))
    assert abs(red - 128) <= 2
    assert green == 0
    assert frame.getpixel((WIDTH // 2 + 20, HEIGHT // 2)) == BLACK_PIXEL


def test_translucent_shapes_let_the_background_through() -> None:
    """Fill alpha and node opacity both blend rects, lines and circles."""
    view, rasterizer = build_rasterizer((0, 0, 255, 255))
    view.add(RectNode(10, 10, fill=(0, 0, 0, 200), x=-20))
    view.add(LineNode([(-5, 0), (5, 0)], (255, 0, 0, 255), line_width=6, opacity=0.3))
    view.add(CircleNode(10, fill=(0, 255, 0, 255), x=20, opacity=0.3))

    frame = rasterizer.render()

    rect_pixel = frame.getpixel((WIDTH // 2 - 20, HEIGHT // 2))
    line_pixel = frame.getpixel((WIDTH // 2, HEIGHT // 2))
    circle_pixel = frame.getpixel((WIDTH // 2 + 20, HEIGHT // 2))
    assert rect_pixel[0] == 0 and 45 <= rect_pixel[2] <= 65
    assert 60 <= line_pixel[0] <= 95 and 160 <= line_pixel[2] <= 195
    assert 60 <= circle_pixel[1] <= 95 and 160 <= circle_pixel[2] <= 195


def test_parent_scale_moves_and_grows_children() -> None:
    """Children inherit their parent's scale."""
    view, rasterizer = build_rasterizer()
    group = view.add(Node(scale=2.0))
    group.add(CircleNode(6, fill=RED, x=10))

    frame = rasterizer.render()

    assert frame.getpixel((WIDTH // 2 + 20, HEIGHT // 2)) == RED_PIXEL
    assert frame.getpixel((WIDTH // 2 + 28, HEIGHT // 2)) == BLACK_PIXEL


def test_z_index_orders_drawing() -> None:
    """Higher z-index nodes are drawn on top."""
    view, rasterizer = build_rasterizer()
    view.add(RectNode(10, 10, fill=RED, z_index=2))
    view.add(RectNode(10, 10, fill=(0, 0, 255, 255), z_index=1))

    frame = rasterizer.render()

    assert frame.getpixel((WIDTH // 2, HEIGHT // 2)) == RED_PIXEL


def test_image_brightness_darkens_pixels() -> None:
    """Zero brightness turns an image black while keeping its alpha."""
    view, rasterizer = build_rasterizer((255, 255, 255, 255))
    view.add(ImageNode(Image.new("RGBA", (8, 8), RED), height=20, brightness=0.0))

    frame = rasterizer.render()

    assert frame.getpixel((WIDTH // 2, HEIGHT // 2)) == BLACK_PIXEL
    assert frame.getpixel((2, 2)) == (255, 255, 255)


def test_text_changes_pixels() -> None:
    """Text is drawn with the node fill."""
    view, rasterizer = build_rasterizer()
    font_book = view.font_book
    view.add(TextNode("H", font_book, font_size=40, fill=(255, 255, 255, 255)))

    frame = rasterizer.render()

    assert frame.convert("L").getextrema()[1] > 200
