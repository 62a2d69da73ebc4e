"""Animated header text effects."""

from __future__ import annotations

import random
from typing import Callable

from domain.effects import HeaderEffectConfig, HeaderEffectType
from domain.short_video import Rgba, parse_hex_color_to_rgba
from service.scene import FontBook, ImageNode, Node, TextNode, View, lerp_rgba, load_image
from service.timeline import (
    EPSILON,
    Process,
    all_of,
    ease_in_out_quad,
    ease_out_back,
    ease_out_quad,
    sequence,
    wait_for,
)

CURSOR = "|"
CURSOR_VISIBLE_RATIO = 0.7
HEADER_STROKE_WIDTH = 3
HIGHLIGHT_STROKE_WIDTH = 5
EXTRUDE_NEAR_COLOR = parse_hex_color_to_rgba("#1E293B")
EXTRUDE_FAR_COLOR = parse_hex_color_to_rgba("#000000")
EXTRUDE_OFFSET = 2
DEFAULT_EXTRUDE_LAYERS = 5
DEFAULT_PUNCH_INTENSITY = 1.3
DEFAULT_SHAKE_INTENSITY = 10.0
SHAKE_COUNT = 10
TYPING_SECONDS = 2.0
PAUSE_SECONDS = 2.0
CLEAR_SECONDS = 0.5
SPLIT_START_OFFSET = 400
RAINBOW_COLORS = tuple(
    parse_hex_color_to_rgba(value)
    for value in ("#FF0000", "#FF7F00", "#FFFF00", "#00FF00", "#0000FF", "#4B0082", "#9400D3")
)
RAINBOW_CYCLES = 2
COLOR_RESTORE_SECONDS = 0.3
BACKGROUND_BLUR = 3.0
BACKGROUND_BRIGHTNESS = 0.3
BACKGROUND_OPACITY = 0.7

HeaderHandler = Callable[["SlideHeader", HeaderEffectConfig, float], Process]


class SlideHeader:
    """Header line that plays one effect at a time."""

    def __init__(
        self,
        view: View,
        container: Node,
        text: str,
        config: HeaderEffectConfig,
        font_book: FontBook,
        rng: random.Random,
    ) -> None:
        self.view = view
        self.container = container
        self.text = text
        self.config = config
        self.font_book = font_book
        self.rng = rng
        self.extra_nodes: list[Node] = []
        self.is_playing = False
        self.text_node = TextNode(
            text,
            font_book,
            font_size=config.font_size,
            fill=config.text_color,
            font_weight=config.font_weight,
            stroke=config.stroke_color,
            stroke_width=HEADER_STROKE_WIDTH,
            opacity=0.0,
        )
        container.add(self.text_node)

    def track(self, node: Node, parent: Node | None = None) -> Node:
        """Add a node that belongs to the running effect."""
        (parent or self.container).add(node)
        self.extra_nodes.append(node)
        return node

    def make_text(self, text: str, fill: Rgba, **kwargs: object) -> TextNode:
        return TextNode(
            text,
            self.font_book,
            font_size=self.config.font_size,
            fill=fill,
            font_weight=self.config.font_weight,
            stroke=self.config.stroke_color,
            **kwargs,
        )

    def play_effect(self, duration: float | None = None) -> Process:
        """Run the configured effect; a second call while playing is ignored."""
        if self.is_playing:
            return
        self.is_playing = True
        handler = HEADER_EFFECT_HANDLERS[self.config.effect]
        try:
            yield from handler(self, self.config, duration or self.config.duration_seconds)
        finally:
            self.is_playing = False

    def cleanup(self) -> None:
        for node in self.extra_nodes:
            node.remove()
        self.extra_nodes = []

    def stop_effect(self) -> None:
        """Remove effect nodes and restore the plain header."""
        self.cleanup()
        self.is_playing = False
        node = self.text_node
        node.text = self.text
        node.scale = 1.0
        node.x = 0.0
        node.y = 0.0
        node.opacity = 1.0
        node.fill = self.config.text_color
        node.stroke_width = HEADER_STROKE_WIDTH

    def change_effect(self, config: HeaderEffectConfig) -> Process:
        self.stop_effect()
        self.config = config
        self.text_node.opacity = 0.0
        yield from self.play_effect()

    def change_text(self, text: str) -> None:
        self.text = text
        self.text_node.text = text


def fade_in(header: SlideHeader, config: HeaderEffectConfig, duration: float) -> Process:
    yield from header.text_node.animate("opacity", 1.0, duration, ease_in_out_quad)


def extrude_3d(header: SlideHeader, config: HeaderEffectConfig, duration: float) -> Process:
    """Stacked dark copies behind the text give it depth."""
    node = header.text_node
    layers = int(config.intensity or DEFAULT_EXTRUDE_LAYERS)
    for index in range(1, layers + 1):
        header.track(
            header.make_text(
                header.text,
                lerp_rgba(EXTRUDE_NEAR_COLOR, EXTRUDE_FAR_COLOR, index / layers),
                x=node.x + index * EXTRUDE_OFFSET,
                y=node.y + index * EXTRUDE_OFFSET,
                opacity=max(0.0, 0.8 - index * 0.1),
                z_index=-index,
            )
        )
    node.stroke_width = 2
    yield from all_of(
        node.animate("opacity", 1.0, duration, ease_out_back),
        sequence(
            node.animate("scale", 1.1, duration * 0.3, ease_out_back),
            node.animate("scale", 1.0, duration * 0.7, ease_in_out_quad),
        ),
    )


def type_text(node: TextNode, text: str, seconds: float) -> Process:
    """Reveal text one character at a time with a blinking cursor."""
    if not text:
        yield from wait_for(seconds)
        return
    char_seconds = seconds / len(text)
    for index in range(len(text)):
        node.text = text[:index] + CURSOR
        yield from wait_for(char_seconds * CURSOR_VISIBLE_RATIO)
        node.text = text[:index]
        yield from wait_for(char_seconds * (1.0 - CURSOR_VISIBLE_RATIO))
    node.text = text


def typewriter(header: SlideHeader, config: HeaderEffectConfig, duration: float) -> Process:
    header.text_node.opacity = 1.0
    yield from type_text(header.text_node, header.text, duration)


def infinite_typewriter(
    header: SlideHeader, config: HeaderEffectConfig, duration: float
) -> Process:
    """Type, pause and clear repeatedly until duration runs out."""
    node = header.text_node
    node.opacity = 1.0
    remaining = duration
    while remaining > EPSILON:
        typing_seconds = min(TYPING_SECONDS, remaining)
        yield from type_text(node, header.text, typing_seconds)
        remaining -= typing_seconds

        pause_seconds = min(PAUSE_SECONDS, remaining)
        yield from wait_for(pause_seconds)
        remaining -= pause_seconds
        if remaining <= EPSILON:
            break

        node.text = ""
        clear_seconds = min(CLEAR_SECONDS, remaining)
        yield from wait_for(clear_seconds)
        remaining -= clear_seconds


def punch_zoom(header: SlideHeader, config: HeaderEffectConfig, duration: float) -> Process:
    node = header.text_node
    node.opacity = 1.0
    node.scale = 0.8
    intensity = config.intensity or DEFAULT_PUNCH_INTENSITY
    yield from node.animate("scale", intensity, duration * 0.2, ease_out_quad)
    yield from node.animate("scale", 1.0, duration * 0.8, ease_out_back)


def highlight_words(
    header: SlideHeader, config: HeaderEffectConfig, duration: float
) -> Process:
    """Split the header into words and pop highlighted ones."""
    if not config.highlight_words:
        yield from fade_in(header, config, duration)
        return
    node = header.text_node
    node.opacity = 0.0
    words = header.text.split()
    gap = header.font_book.space_width(config.font_size, config.font_weight) * 1.5
    widths = []
    for word in words:
        left, _, right, _ = header.font_book.bbox(word, config.font_size, config.font_weight)
        widths.append(right - left)
    cursor = -(sum(widths) + gap * (len(words) - 1)) / 2.0

    word_nodes = []
    for word, width in zip(words, widths):
        is_highlight = word in config.highlight_words
        word_node = header.make_text(
            word,
            config.highlight_color if is_highlight else config.text_color,
            stroke_width=HIGHLIGHT_STROKE_WIDTH if is_highlight else HEADER_STROKE_WIDTH,
            x=cursor + width / 2.0,
            y=node.y,
            opacity=0.0,
        )
        header.track(word_node)
        word_nodes.append((word_node, is_highlight))
        cursor += width + gap

    for index, (word_node, is_highlight) in enumerate(word_nodes):
        yield from all_of(
            word_node.animate("opacity", 1.0, 0.3, ease_out_quad),
            sequence(
                word_node.animate("scale", 1.2 if is_highlight else 1.0, 0.3, ease_out_back),
                word_node.animate("scale", 1.1 if is_highlight else 1.0, 0.2, ease_in_out_quad),
            ),
        )
        if index < len(word_nodes) - 1:
            yield from wait_for(0.1)


def background_image(
    header: SlideHeader, config: HeaderEffectConfig, duration: float
) -> Process:
    """Fade in a dimmed, blurred full-frame image behind the header."""
    if not config.background_image:
        yield from fade_in(header, config, duration)
        return
    backdrop = ImageNode(
        load_image(config.background_image),
        height=header.view.height,
        width=header.view.width,
        opacity=0.0,
        blur=BACKGROUND_BLUR,
        brightness=BACKGROUND_BRIGHTNESS,
        z_index=-1,
    )
    header.track(backdrop, parent=header.view)
    yield from backdrop.animate("opacity", BACKGROUND_OPACITY, duration, ease_in_out_quad)
    yield from header.text_node.animate("opacity", 1.0, duration * 0.5, ease_out_quad)


def glow_effect(header: SlideHeader, config: HeaderEffectConfig, duration: float) -> Process:
    node = header.text_node
    node.opacity = 1.0
    original_fill = node.fill
    yield from all_of(
        node.animate("fill", config.glow_color, duration * 0.3, ease_in_out_quad),
        sequence(
            node.animate("scale", 1.1, duration * 0.3, ease_in_out_quad),
            node.animate("scale", 1.0, duration * 0.7, ease_in_out_quad),
        ),
    )
    yield from node.animate("fill", original_fill, COLOR_RESTORE_SECONDS, ease_in_out_quad)


def bounce_in(header: SlideHeader, config: HeaderEffectConfig, duration: float) -> Process:
    node = header.text_node
    node.scale = 0.0
    node.opacity = 1.0
    yield from node.animate("scale", 1.0, duration, ease_out_back)


def slide_split(header: SlideHeader, config: HeaderEffectConfig, duration: float) -> Process:
    """Slide the two halves of the header in from the sides."""
    node = header.text_node
    node.opacity = 0.0
    middle = len(header.text) // 2
    halves = (header.text[:middle], header.text[middle:])
    targets = []
    for direction, half in zip((-1.0, 1.0), halves):
        left, _, right, _ = header.font_book.bbox(half, config.font_size, config.font_weight)
        half_node = header.make_text(
            half,
            config.text_color,
            stroke_width=HEADER_STROKE_WIDTH,
            x=direction * SPLIT_START_OFFSET,
            y=node.y,
        )
        header.track(half_node)
        targets.append(half_node.animate("x", direction * (right - left) / 2.0, duration, ease_out_back))
    yield from all_of(*targets)


def rainbow_text(header: SlideHeader, config: HeaderEffectConfig, duration: float) -> Process:
    node = header.text_node
    node.opacity = 1.0
    step = duration / (len(RAINBOW_COLORS) * RAINBOW_CYCLES)
    for _ in range(RAINBOW_CYCLES):
        for color in RAINBOW_COLORS:
            yield from node.animate("fill", color, step, ease_in_out_quad)
    yield from node.animate("fill", config.text_color, COLOR_RESTORE_SECONDS, ease_in_out_quad)


def shake_emphasis(
    header: SlideHeader, config: HeaderEffectConfig, duration: float
) -> Process:
    node = header.text_node
    node.opacity = 1.0
    origin_x = node.x
    intensity = config.intensity or DEFAULT_SHAKE_INTENSITY
    step = duration / SHAKE_COUNT
    for _ in range(SHAKE_COUNT):
        offset = (header.rng.random() - 0.5) * intensity
        yield from node.animate("x", origin_x + offset, step / 2.0, ease_in_out_quad)
        yield from node.animate("x", origin_x, step / 2.0, ease_in_out_quad)


HEADER_EFFECT_HANDLERS: dict[HeaderEffectType, HeaderHandler] = {
    HeaderEffectType.EXTRUDE_3D: extrude_3d,
    HeaderEffectType.TYPEWRITER: typewriter,
    HeaderEffectType.INFINITE_TYPEWRITER: infinite_typewriter,
    HeaderEffectType.PUNCH_ZOOM: punch_zoom,
    HeaderEffectType.HIGHLIGHT_WORDS: highlight_words,
    HeaderEffectType.BACKGROUND_IMAGE: background_image,
    HeaderEffectType.GLOW_EFFECT: glow_effect,
    HeaderEffectType.BOUNCE_IN: bounce_in,
    HeaderEffectType.SLIDE_SPLIT: slide_split,
    HeaderEffectType.RAINBOW_TEXT: rainbow_text,
    HeaderEffectType.SHAKE_EMPHASIS: shake_emphasis,
    HeaderEffectType.NONE: fade_in,
}
