"""Slide image animations: zoom, pan, shutter and filter effects."""

from __future__ import annotations

import random
from typing import Callable, Sequence

from PIL import Image

from domain.effects import (
    FilterEffectType,
    ImageAnimationConfig,
    ImageAnimationMode,
    PanType,
    ShutterType,
    ZoomType,
)
from domain.short_video import INVALID_CONFIG_CODE, RenderValidationError
from service.scene import ImageNode, Node, RectNode, View
from service.timeline import (
    Process,
    all_of,
    ease_in_out_quad,
    ease_in_quad,
    ease_out_quad,
    wait_for,
)

FLASH_PEAK_BRIGHTNESS = 3.0
FLASH_RISE_SECONDS = 0.1
FLASH_FALL_SECONDS = 0.2
BLINK_WINDOW_RATIO = 0.4
BLINK_WINDOW_MAX_SECONDS = 0.6
BLINK_SETTLE_SECONDS = 0.2
FADE_MAX_SECONDS = 0.5
FILTER_HOLD_RATIO = 0.9
MAX_BLUR = 30.0
SLIDE_FADE_SECONDS = 0.3
SHUTTER_Z_INDEX = 1000
SHUTTER_COLOR = (0, 0, 0, 255)
ALTERNATING_ZOOM_INTENSITY = 0.15

ImageHandler = Callable[[ImageNode, ImageAnimationConfig, float], Process]


def zoom_in(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
    image.scale = 1.0
    yield from image.animate("scale", 1.0 + config.zoom_intensity, duration, ease_in_out_quad)


def zoom_out(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
    image.scale = 1.0 + config.zoom_intensity
    yield from image.animate("scale", 1.0, duration, ease_in_out_quad)


def zoom_in_out(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
    image.scale = 1.0
    yield from image.animate(
        "scale", 1.0 + config.zoom_intensity, duration / 2.0, ease_in_out_quad
    )
    yield from image.animate("scale", 1.0, duration / 2.0, ease_in_out_quad)


def zoom_static(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
    image.scale = 1.0
    yield from wait_for(duration)


def pan_horizontal(direction: float) -> ImageHandler:
    def handler(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
        half = config.pan_distance / 2.0
        image.x = -direction * half
        yield from image.animate("x", direction * half, duration, ease_in_out_quad)

    return handler


def pan_vertical(direction: float) -> ImageHandler:
    def handler(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
        half = config.pan_distance / 2.0
        image.y = config.base_y - direction * half
        yield from image.animate("y", config.base_y + direction * half, duration, ease_in_out_quad)

    return handler


def pan_none(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
    image.x = 0.0
    image.y = config.base_y
    yield from wait_for(duration)


def flash(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
    """Brighten sharply, settle back, then hold."""
    yield from image.animate("brightness", FLASH_PEAK_BRIGHTNESS, FLASH_RISE_SECONDS, ease_out_quad)
    yield from image.animate("brightness", 1.0, FLASH_FALL_SECONDS, ease_in_quad)
    yield from wait_for(duration - FLASH_RISE_SECONDS - FLASH_FALL_SECONDS)


def blink(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
    """Blink on and off, then stay visible."""
    window = min(duration * BLINK_WINDOW_RATIO, BLINK_WINDOW_MAX_SECONDS)
    blink_seconds = window / config.blink_count
    image.opacity = 0.0
    for _ in range(config.blink_count):
        yield from image.animate("opacity", 1.0, blink_seconds / 2.0, ease_in_out_quad)
        yield from image.animate("opacity", 0.0, blink_seconds / 2.0, ease_in_out_quad)
    yield from image.animate("opacity", 1.0, BLINK_SETTLE_SECONDS, ease_in_out_quad)
    yield from wait_for(duration - window - BLINK_SETTLE_SECONDS)


def fade(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
    fade_seconds = min(FADE_MAX_SECONDS, duration * 0.5)
    image.opacity = 0.0
    yield from image.animate("opacity", 1.0, fade_seconds, ease_in_out_quad)
    yield from wait_for(duration - fade_seconds)


def shutter_hold(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
    # the bars run between slides in SlideShow.play_slides
    yield from wait_for(duration)


def shutter_none(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
    image.opacity = 1.0
    image.brightness = 1.0
    yield from wait_for(duration)


def hold_then_animate(name: str, start: float, end: float) -> ImageHandler:
    """Keep a property at start for most of the slide, then animate to end."""

    def handler(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
        hold_seconds = duration * FILTER_HOLD_RATIO
        setattr(image, name, start)
        yield from wait_for(hold_seconds)
        yield from image.animate(name, end, duration - hold_seconds, ease_in_out_quad)

    return handler


def animate_then_hold(name: str, start: float, end: float) -> ImageHandler:
    """Animate a property to end early in the slide, then keep it."""

    def handler(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
        animate_seconds = duration * (1.0 - FILTER_HOLD_RATIO)
        setattr(image, name, start)
        yield from image.animate(name, end, animate_seconds, ease_in_out_quad)
        yield from wait_for(duration - animate_seconds)

    return handler


def no_filter(image: ImageNode, config: ImageAnimationConfig, duration: float) -> Process:
    yield from wait_for(duration)


ZOOM_HANDLERS = {
    ZoomType.ZOOM_IN: zoom_in,
    ZoomType.ZOOM_OUT: zoom_out,
    ZoomType.ZOOM_IN_OUT: zoom_in_out,
    ZoomType.STATIC: zoom_static,
}

PAN_HANDLERS = {
    PanType.PAN_LEFT: pan_horizontal(-1.0),
    PanType.PAN_RIGHT: pan_horizontal(1.0),
    PanType.PAN_UP: pan_vertical(-1.0),
    PanType.PAN_DOWN: pan_vertical(1.0),
    PanType.NONE: pan_none,
}

SHUTTER_HANDLERS = {
    ShutterType.FLASH: flash,
    ShutterType.BLINK: blink,
    ShutterType.FADE: fade,
    ShutterType.SHUTTER_TRANSITION: shutter_hold,
    ShutterType.NONE: shutter_none,
}

FILTER_HANDLERS = {
    FilterEffectType.FADE_IN: hold_then_animate("opacity", 0.0, 1.0),
    FilterEffectType.FADE_OUT: hold_then_animate("opacity", 1.0, 0.0),
    FilterEffectType.BLUR_IN: animate_then_hold("blur", MAX_BLUR, 0.0),
    FilterEffectType.BLUR_OUT: hold_then_animate("blur", 0.0, MAX_BLUR),
    FilterEffectType.BRIGHTNESS_IN: hold_then_animate("brightness", 0.0, 1.0),
    FilterEffectType.BRIGHTNESS_OUT: hold_then_animate("brightness", 1.0, 0.0),
    FilterEffectType.NONE: no_filter,
}


def reset_geometry(image: ImageNode, config: ImageAnimationConfig) -> None:
    """Place the image at the start of its zoom and pan."""
    image.scale = 1.0 + config.zoom_intensity if config.zoom == ZoomType.ZOOM_OUT else 1.0
    image.x = 0.0
    image.y = config.base_y
    image.brightness = 1.0
    image.blur = 0.0


def apply_initial_state(image: ImageNode, config: ImageAnimationConfig) -> None:
    reset_geometry(image, config)
    hidden = config.shutter in (ShutterType.BLINK, ShutterType.FADE)
    image.opacity = 0.0 if hidden else 1.0


def execute_image_animations(
    image: ImageNode, config: ImageAnimationConfig, duration: float
) -> Process:
    """Run zoom, pan, shutter and filter effects together."""
    apply_initial_state(image, config)
    yield from all_of(
        ZOOM_HANDLERS[config.zoom](image, config, duration),
        PAN_HANDLERS[config.pan](image, config, duration),
        SHUTTER_HANDLERS[config.shutter](image, config, duration),
        FILTER_HANDLERS[config.filter_effect](image, config, duration),
    )


def apply_shutter_transition(
    view: View, on_transition: Callable[[], None], duration: float
) -> Process:
    """Close two black bars over the frame, swap content, and reopen."""
    bar_height = view.height / 2.0
    open_offset = view.height * 0.75
    closed_offset = view.height * 0.25
    top_bar = RectNode(
        view.width, bar_height, fill=SHUTTER_COLOR, y=-open_offset, z_index=SHUTTER_Z_INDEX
    )
    bottom_bar = RectNode(
        view.width, bar_height, fill=SHUTTER_COLOR, y=open_offset, z_index=SHUTTER_Z_INDEX
    )
    view.add(top_bar)
    view.add(bottom_bar)
    step = duration / 3.0

    yield from all_of(
        top_bar.animate("y", -closed_offset, step, ease_in_out_quad),
        bottom_bar.animate("y", closed_offset, step, ease_in_out_quad),
    )
    on_transition()
    yield from wait_for(step)
    yield from all_of(
        top_bar.animate("y", -open_offset, step, ease_in_out_quad),
        bottom_bar.animate("y", open_offset, step, ease_in_out_quad),
    )
    top_bar.remove()
    bottom_bar.remove()


def alternating_slide_configs(
    count: int, filter_effect: FilterEffectType = FilterEffectType.NONE
) -> list[ImageAnimationConfig]:
    """Zoom in on even slides and out on odd ones."""
    return [
        ImageAnimationConfig(
            zoom=ZoomType.ZOOM_IN if index % 2 == 0 else ZoomType.ZOOM_OUT,
            zoom_intensity=ALTERNATING_ZOOM_INTENSITY,
            filter_effect=filter_effect,
        )
        for index in range(count)
    ]


def random_slide_configs(
    count: int, rng: random.Random, filter_effect: FilterEffectType | None = None
) -> list[ImageAnimationConfig]:
    """Pick zoom, pan, transition and filter at random for every slide.

    A given filter_effect is used on every slide instead of a random one.
    """
    return [
        ImageAnimationConfig(
            zoom=rng.choice(list(ZoomType)),
            pan=rng.choice(list(PanType)),
            shutter=rng.choice(list(ShutterType)),
            filter_effect=(
                rng.choice(list(FilterEffectType)) if filter_effect is None else filter_effect
            ),
        )
        for _ in range(count)
    ]


def build_slide_configs(
    mode: ImageAnimationMode,
    count: int,
    rng: random.Random,
    filter_effect: FilterEffectType | None = None,
) -> list[ImageAnimationConfig]:
    if mode == ImageAnimationMode.RANDOM:
        return random_slide_configs(count, rng, filter_effect)
    return alternating_slide_configs(count, filter_effect or FilterEffectType.NONE)


class SlideShow:
    """Cycles slide images inside a container node."""

    def __init__(
        self,
        view: View,
        container: Node,
        images: Sequence[Image.Image],
        configs: Sequence[ImageAnimationConfig],
        image_height: float,
    ) -> None:
        if not images:
            raise RenderValidationError(INVALID_CONFIG_CODE, "slideshow needs images")
        if len(images) != len(configs):
            raise RenderValidationError(
                INVALID_CONFIG_CODE, "slideshow needs one config per image"
            )
        self.view = view
        self.images = list(images)
        self.configs = list(configs)
        self.image_node = ImageNode(self.images[0], height=image_height)
        apply_initial_state(self.image_node, self.configs[0])
        container.add(self.image_node)

    def show(self, index: int) -> None:
        self.image_node.image = self.images[index]
        reset_geometry(self.image_node, self.configs[index])

    def transition_to(self, index: int) -> Process:
        """Swap to slide index using its transition."""
        config = self.configs[index]
        if config.shutter == ShutterType.SHUTTER_TRANSITION:
            yield from apply_shutter_transition(
                self.view, lambda: self.show(index), config.shutter_seconds
            )
            return
        yield from self.image_node.animate("opacity", 0.0, SLIDE_FADE_SECONDS)
        self.show(index)
        if config.shutter not in (ShutterType.BLINK, ShutterType.FADE):
            yield from self.image_node.animate("opacity", 1.0, SLIDE_FADE_SECONDS)

    def transition_seconds(self, index: int) -> float:
        config = self.configs[index]
        if config.shutter == ShutterType.SHUTTER_TRANSITION:
            return config.shutter_seconds
        if config.shutter in (ShutterType.BLINK, ShutterType.FADE):
            return SLIDE_FADE_SECONDS
        return SLIDE_FADE_SECONDS * 2

    def play_slides(self, total_seconds: float) -> Process:
        """Give every slide an equal share of total_seconds."""
        slide_seconds = total_seconds / len(self.images)
        for index, config in enumerate(self.configs):
            animation_seconds = slide_seconds
            if index > 0:
                yield from self.transition_to(index)
                animation_seconds = max(0.0, slide_seconds - self.transition_seconds(index))
            yield from execute_image_animations(self.image_node, config, animation_seconds)
