"""Caption scheduler: word batches highlighted in sync with the audio."""

from __future__ import annotations

from typing import Sequence

from domain.short_video import CaptionSettings, Rgba, Word
from service.caption_plan import (
    CaptionBatch,
    CaptionPlan,
    build_caption_plan,
    compute_fade_seconds,
    compute_word_gaps,
)
from service.scene import FontBook, Node, RectNode, TextNode, TextRun
from service.timeline import Process, all_of, settle, tween, wait_for

FADE_START_OPACITY = 0.5
HIGHLIGHT_PADDING = 10
HIGHLIGHT_RADIUS = 10
BACKGROUND_Z_INDEX = 1
TEXT_Z_INDEX = 2


def build_word_node(
    word: Word, settings: CaptionSettings, font_book: FontBook, fill: Rgba
) -> TextNode:
    """Create a caption word styled from the caption settings."""
    return TextNode(
        word.text,
        font_book,
        font_size=settings.font_size,
        fill=fill,
        font_weight=settings.font_weight,
        stroke=settings.border_color,
        stroke_width=settings.border_width if settings.border_color else 0,
        shadow_color=settings.shadow_color,
        shadow_blur=settings.shadow_blur,
        opacity=FADE_START_OPACITY if settings.fade_in_enabled else 1.0,
        z_index=TEXT_Z_INDEX,
    )


def add_word_background(container: Node, word_node: TextNode, fill: Rgba) -> RectNode:
    """Place a rounded rectangle behind a laid-out word."""
    left, top, right, bottom = word_node.absolute_bounds()
    center_x, center_y = container.to_local(((left + right) / 2.0, (top + bottom) / 2.0))
    scale = container.absolute_scale() or 1.0
    background = RectNode(
        width=(right - left) / scale + HIGHLIGHT_PADDING * 2,
        height=(bottom - top) / scale + HIGHLIGHT_PADDING * 2,
        fill=fill,
        radius=HIGHLIGHT_RADIUS,
        x=center_x,
        y=center_y,
        z_index=BACKGROUND_Z_INDEX,
    )
    container.add(background)
    return background


def highlight_current_word(
    container: Node,
    words: Sequence[Word],
    word_nodes: Sequence[TextNode],
    highlight_color: Rgba,
    background_color: Rgba | None,
) -> Process:
    """Highlight each word of a batch for exactly its spoken duration."""
    for word, word_node, gap in zip(words, word_nodes, compute_word_gaps(words)):
        yield from wait_for(gap)
        original_fill = word_node.fill
        word_node.fill = highlight_color
        background = None
        if background_color is not None:
            background = add_word_background(container, word_node, background_color)

        yield from wait_for(word.duration)
        word_node.fill = original_fill
        if background is not None:
            background.remove()


def fade_in_words(word_nodes: Sequence[TextNode], seconds: float) -> Process:
    """Raise every word's opacity to 1 together."""
    starts = [node.opacity for node in word_nodes]

    def update(progress: float) -> None:
        for node, start in zip(word_nodes, starts):
            node.opacity = start + (1.0 - start) * progress

    yield from tween(seconds, update)


def reveal_batch(
    container: Node,
    text_run: TextRun,
    batch: CaptionBatch,
    settings: CaptionSettings,
    font_book: FontBook,
    settle_first: bool,
) -> Process:
    """Show all words at once and highlight them in turn."""
    word_nodes = []
    for word in batch.words:
        word_node = build_word_node(word, settings, font_book, settings.base_color)
        text_run.add(word_node)
        word_nodes.append(word_node)
    if settle_first:
        yield from settle()

    yield from all_of(
        fade_in_words(word_nodes, batch.fade_seconds),
        highlight_current_word(
            container,
            batch.words,
            word_nodes,
            settings.effective_highlight_color,
            settings.highlight_background_color,
        ),
        wait_for(batch.display_seconds),
    )


def stream_batch(
    container: Node,
    text_run: TextRun,
    batch: CaptionBatch,
    settings: CaptionSettings,
    font_book: FontBook,
    settle_first: bool,
) -> Process:
    """Append words one at a time as they are spoken."""
    for index, (word, gap) in enumerate(zip(batch.words, batch.word_gaps)):
        yield from wait_for(gap)
        word_node = build_word_node(
            word, settings, font_book, settings.effective_highlight_color
        )
        text_run.add(word_node)
        if settle_first and index == 0:
            yield from settle()
        background = None
        if settings.highlight_background_color is not None:
            background = add_word_background(
                container, word_node, settings.highlight_background_color
            )

        yield from all_of(
            wait_for(word.duration),
            word_node.animate("opacity", 1.0, compute_fade_seconds(word)),
        )
        word_node.fill = settings.base_color
        if background is not None:
            background.remove()

    yield from wait_for(batch.trailing_hold_seconds)


def play_caption_plan(
    container: Node,
    plan: CaptionPlan,
    settings: CaptionSettings,
    font_book: FontBook,
    max_width: float,
) -> Process:
    yield from wait_for(plan.initial_wait_seconds)
    for batch in plan.batches:
        text_run = TextRun(font_book, max_width, settings.alignment, z_index=TEXT_Z_INDEX)
        container.add(text_run)
        play_batch = stream_batch if settings.stream_mode else reveal_batch
        yield from play_batch(
            container, text_run, batch, settings, font_book, batch.index == 0
        )
        text_run.remove()
        yield from wait_for(batch.wait_after_seconds)


def display_words(
    container: Node,
    words: Sequence[Word],
    settings: CaptionSettings,
    font_book: FontBook,
    frame_width: int,
) -> Process:
    """Validate the words and return the caption process.

    Validation runs immediately so configuration errors surface before the
    timeline starts, not on the first frame.
    """
    plan = build_caption_plan(words, settings)
    max_width = frame_width * settings.max_width_percent / 100.0
    return play_caption_plan(container, plan, settings, font_book, max_width)
