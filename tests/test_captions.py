"""Frame-sampled tests for the caption scheduler."""

from __future__ import annotations

from typing import Sequence

import pytest

from domain.short_video import (
    EMPTY_WORDS_CODE,
    CaptionSettings,
    RenderValidationError,
    Word,
)
from service.captions import display_words
from service.scene import FontBook, Node, RectNode, TextNode, View
from service.timeline import Timeline

BASE = (255, 255, 255, 255)
HIGHLIGHT = (255, 215, 0, 255)
FPS = 100


def scenario_words() -> list[Word]:
    return [Word("남자", 0.0, 0.4), Word("는", 0.4, 0.5), Word("간다", 0.6, 1.0)]


def snapshot(container: Node) -> list[tuple[str, tuple[int, int, int, int], float]]:
    """Visible caption words as (text, fill, opacity)."""
    return [
        (node.text, node.fill, node.opacity)
        for node in container.walk()
        if isinstance(node, TextNode)
    ]


def count_backgrounds(container: Node) -> int:
    return sum(1 for node in container.walk() if isinstance(node, RectNode))


def run_captions(
    words: Sequence[Word],
    settings: CaptionSettings,
    sample_times: Sequence[float],
    total_seconds: float = 2.2,
) -> dict[float, tuple[list, int]]:
    """Run the caption process and snapshot the container at sample times."""
    font_book = FontBook()
    view = View(1080, 1920, font_book)
    container = view.add(Node(y=672))
    timeline = Timeline(FPS, on_settle=view.layout)
    timeline.spawn(display_words(container, words, settings, font_book, 1080))

    snapshots = {}
    for time_value in timeline.frames(int(round(total_seconds * FPS))):
        key = round(time_value, 2)
        if key in sample_times:
            snapshots[key] = (snapshot(container), count_backgrounds(container))
    return snapshots


def test_batches_highlight_each_word_in_turn() -> None:
    """Two-word batches highlight exactly the spoken word."""
    settings = CaptionSettings(words_per_batch=2)
    snapshots = run_captions(
        scenario_words(), settings, (0.2, 0.45, 0.55, 0.7, 1.5, 2.05)
    )

    assert snapshots[0.2][0] == [("남자", HIGHLIGHT, 1.0), ("는", BASE, 1.0)]
    assert snapshots[0.45][0] == [("남자", BASE, 1.0), ("는", HIGHLIGHT, 1.0)]
    assert snapshots[0.55][0] == []
    assert snapshots[0.7][0] == [("간다", HIGHLIGHT, 1.0)]
    assert snapshots[1.5][0] == [("간다", BASE, 1.0)]
    assert snapshots[2.05][0] == []


def test_at_most_one_word_is_highlighted() -> None:
    """No sampled frame shows two highlighted words."""
    words = [
        Word("하나", 0.0, 0.3),
        Word("둘", 0.3, 0.55),
        Word("셋", 0.6, 0.8),
        Word("넷", 0.8, 1.1),
        Word("다섯", 1.2, 1.5),
    ]
    font_book = FontBook()
    view = View(1080, 1920, font_book)
    container = view.add(Node())
    timeline = Timeline(FPS, on_settle=view.layout)
    timeline.spawn(
        display_words(container, words, CaptionSettings(words_per_batch=3), font_book, 1080)
    )

    for _ in timeline.frames(300):
        highlighted = [entry for entry in snapshot(container) if entry[1] == HIGHLIGHT]
        assert len(highlighted) <= 1


def test_stream_mode_appends_words_as_spoken() -> None:
    """Stream mode grows one run and fades each new word in."""
    settings = CaptionSettings(words_per_batch=3, stream_mode=True)
    snapshots = run_captions(
        scenario_words(), settings, (0.0, 0.05, 0.2, 0.45, 0.55, 0.7, 1.5, 2.05)
    )

    first_text, first_fill, first_opacity = snapshots[0.0][0][0]
    assert (first_text, first_fill) == ("남자", HIGHLIGHT)
    assert first_opacity == pytest.approx(0.5)
    assert len(snapshots[0.0][0]) == 1
    assert 0.5 < snapshots[0.05][0][0][2] < 1.0
    assert snapshots[0.2][0] == [("남자", HIGHLIGHT, 1.0)]
    assert snapshots[0.45][0] == [("남자", BASE, 1.0), ("는", HIGHLIGHT, 1.0)]
    assert snapshots[0.55][0] == [("남자", BASE, 1.0), ("는", BASE, 1.0)]
    assert snapshots[0.7][0] == [
        ("남자", BASE, 1.0),
        ("는", BASE, 1.0),
        ("간다", HIGHLIGHT, 1.0),
    ]
    assert [entry[1] for entry in snapshots[1.5][0]] == [BASE, BASE, BASE]
    assert snapshots[2.05][0] == []


def test_highlight_background_follows_the_spoken_word() -> None:
    """A rounded background appears only while a word is highlighted."""
    settings = CaptionSettings(
        words_per_batch=2, highlight_background_color=(0, 0, 0, 200)
    )
    snapshots = run_captions(scenario_words(), settings, (0.2, 0.55, 0.7, 1.5))

    assert snapshots[0.2][1] == 1
    assert snapshots[0.55][1] == 0
    assert snapshots[0.7][1] == 1
    assert snapshots[1.5][1] == 0


def test_missing_highlight_color_falls_back_to_base() -> None:
    """Without a highlight color the spoken word keeps the base color."""
    settings = CaptionSettings(words_per_batch=2, highlight_color=None)
    snapshots = run_captions(scenario_words(), settings, (0.2,))

    assert [entry[1] for entry in snapshots[0.2][0]] == [BASE, BASE]


def test_display_words_validates_before_scheduling() -> None:
    """Empty input fails when the process is built, not on the first frame."""
    font_book = FontBook()
    container = View(1080, 1920, font_book)

    with pytest.raises(RenderValidationError) as error_info:
        display_words(container, [], CaptionSettings(), font_book, 1080)

    assert error_info.value.code == EMPTY_WORDS_CODE
