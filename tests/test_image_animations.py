"""Tests for slide image animations and the slideshow."""

from __future__ import annotations

import random

import pytest
from PIL import Image

from domain.effects import (
    FilterEffectType,
    ImageAnimationConfig,
    ImageAnimationMode,
    PanType,
    ShutterType,
    ZoomType,
)
from service.image_animations import (
    SlideShow,
    apply_shutter_transition,
    build_slide_configs,
    execute_image_animations,
)
from service.scene import FontBook, ImageNode, Node, RectNode, View
from service.timeline import Timeline, run_process


def build_image_node() -> ImageNode:
    return ImageNode(Image.new("RGBA", (40, 20), (200, 10, 10, 255)), height=100)


def sample_property(
    node: ImageNode, config: ImageAnimationConfig, duration: float, name: str, fps: int = 100
) -> dict[float, float]:
    """Run one slide animation and record a property on every frame."""
    timeline = Timeline(fps)
    timeline.spawn(execute_image_animations(node, config, duration))
    values = {}
    for time_value in timeline.frames(int(round(duration * fps)) + 1):
        values[round(time_value, 2)] = getattr(node, name)
    return values


def test_zoom_in_ends_at_intensity() -> None:
    """zoomIn scales from 1 to 1 + intensity at the image base position."""
    node = build_image_node()
    config = ImageAnimationConfig(zoom=ZoomType.ZOOM_IN, zoom_intensity=0.2)

    task = run_process(execute_image_animations(node, config, 1.0), fps=30, max_seconds=3.0)

    assert task.done
    assert task.local_time == pytest.approx(1.0)
    assert node.scale == pytest.approx(1.2)
    assert node.y == pytest.approx(-50.0)


def test_zoom_in_out_peaks_halfway() -> None:
    """zoomInOut reaches its peak at the midpoint and returns to 1."""
    node = build_image_node()
    config = ImageAnimationConfig(zoom=ZoomType.ZOOM_IN_OUT, zoom_intensity=0.15)

    values = sample_property(node, config, 1.0, "scale")

    assert values[0.5] == pytest.approx(1.15)
    assert values[1.0] == pytest.approx(1.0)


def test_pan_left_crosses_the_pan_distance() -> None:
    """panLeft moves from +d/2 to -d/2."""
    node = build_image_node()
    config = ImageAnimationConfig(pan=PanType.PAN_LEFT, pan_distance=100.0)

    values = sample_property(node, config, 1.0, "x")

    assert values[0.0] == pytest.approx(50.0)
    assert values[1.0] == pytest.approx(-50.0)


def test_fade_shutter_reveals_the_image() -> None:
    """The fade shutter starts hidden and is opaque after half a second."""
    node = build_image_node()
    config = ImageAnimationConfig(shutter=ShutterType.FADE)

    values = sample_property(node, config, 2.0, "opacity")

    assert values[0.0] == pytest.approx(0.0)
    assert values[0.5] == pytest.approx(1.0)
    assert values[2.0] == pytest.approx(1.0)


def test_flash_returns_to_normal_brightness() -> None:
    """Flash peaks quickly, then settles back to 1."""
    node = build_image_node()
    config = ImageAnimationConfig(shutter=ShutterType.FLASH)

    values = sample_property(node, config, 1.0, "brightness")

    assert values[0.1] == pytest.approx(3.0)
    assert values[0.3] == pytest.approx(1.0)
    assert values[1.0] == pytest.approx(1.0)


def test_fade_out_filter_holds_then_hides() -> None:
    """fadeOut keeps the image visible for 90 % of the slide."""
    node = build_image_node()
    config = ImageAnimationConfig(filter_effect=FilterEffectType.FADE_OUT)

    values = sample_property(node, config, 1.0, "opacity")

    assert values[0.5] == pytest.approx(1.0)
    assert values[1.0] == pytest.approx(0.0)


def test_shutter_transition_swaps_content_and_removes_bars() -> None:
    """Bars close, the callback fires, and the bars are gone afterwards."""
    view = View(100, 200, FontBook())
    swapped: list[float] = []
    timeline = Timeline(30)
    timeline.spawn(apply_shutter_transition(view, lambda: swapped.append(timeline.time), 0.9))

    timeline.run(0.1)
    bars = [child for child in view.children if isinstance(child, RectNode)]
    assert len(bars) == 2
    timeline.run(2.0)

    assert swapped == [pytest.approx(0.3)]
    assert timeline.idle
    assert not any(isinstance(child, RectNode) for child in view.children)


def test_slideshow_fills_the_total_duration() -> None:
    """Slides share the duration and transitions come out of each share."""
    view = View(100, 200, FontBook())
    container = view.add(Node())
    first = Image.new("RGBA", (10, 10), (255, 0, 0, 255))
    second = Image.new("RGBA", (10, 10), (0, 0, 255, 255))
    configs = build_slide_configs(ImageAnimationMode.ALTERNATING, 2, random.Random(1))
    slide_show = SlideShow(view, container, [first, second], configs, image_height=100)

    task = run_process(slide_show.play_slides(2.0), fps=30, max_seconds=5.0)

    assert task.local_time == pytest.approx(2.0)
    assert slide_show.image_node.image is second
    assert slide_show.image_node.scale == pytest.approx(1.0)
    assert [config.zoom for config in configs] == [ZoomType.ZOOM_IN, ZoomType.ZOOM_OUT]


def test_random_slide_configs_are_seeded() -> None:
    """The same seed picks the same random animations."""
    first = build_slide_configs(ImageAnimationMode.RANDOM, 5, random.Random(7))
    second = build_slide_configs(ImageAnimationMode.RANDOM, 5, random.Random(7))

    assert first == second


def test_chosen_filter_runs_on_every_slide() -> None:
    """An explicit filter is applied in both slide modes."""
    alternating = build_slide_configs(
        ImageAnimationMode.ALTERNATING, 3, random.Random(1), FilterEffectType.BLUR_IN
    )
    randomized = build_slide_configs(
        ImageAnimationMode.RANDOM, 3, random.Random(1), FilterEffectType.BLUR_IN
    )

    assert {config.filter_effect for config in alternating} == {FilterEffectType.BLUR_IN}
    assert {config.filter_effect for config in randomized} == {FilterEffectType.BLUR_IN}
    assert build_slide_configs(ImageAnimationMode.ALTERNATING, 1, random.Random(1))[
        0
    ].filter_effect == FilterEffectType.NONE


def test_random_mode_picks_filters() -> None:
    """Without an explicit filter, random mode draws one per slide."""
    configs = build_slide_configs(ImageAnimationMode.RANDOM, 40, random.Random(3))

    assert len({config.filter_effect for config in configs}) > 1


def test_slideshow_plays_the_slide_filter() -> None:
    """brightnessIn keeps the first slide dark, then restores it."""
    view = View(100, 200, FontBook())
    container = view.add(Node())
    configs = build_slide_configs(
        ImageAnimationMode.ALTERNATING, 1, random.Random(1), FilterEffectType.BRIGHTNESS_IN
    )
    slide_show = SlideShow(
        view, container, [Image.new("RGBA", (10, 10), (255, 0, 0, 255))], configs, 100
    )
    timeline = Timeline(30)
    timeline.spawn(slide_show.play_slides(1.0))

    timeline.run(0.5)
    assert slide_show.image_node.brightness == pytest.approx(0.0)
    timeline.run(2.0)
    assert slide_show.image_node.brightness == pytest.approx(1.0)
    assert timeline.idle
