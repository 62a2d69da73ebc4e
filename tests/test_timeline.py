"""Unit tests for the virtual-clock scheduler."""

from __future__ import annotations

import pytest

from domain.short_video import RenderValidationError
from service.timeline import (
    EASINGS,
    Timeline,
    all_of,
    delay,
    next_frame,
    run_process,
    sequence,
    settle,
    tween,
    wait_for,
)


def test_chained_waits_do_not_drift() -> None:
    """One hundred 10 ms waits finish on the frame at one second."""
    timeline = Timeline(30)
    finished_frames: list[int] = []

    def process():
        for _ in range(100):
            yield from wait_for(0.01)
        finished_frames.append(timeline.frame)

    task = timeline.spawn(process())
    timeline.run(5.0)

    assert finished_frames == [30]
    assert task.local_time == pytest.approx(1.0)


def test_all_of_resumes_at_latest_child() -> None:
    """A join ends when its slowest child ends."""
    timeline = Timeline(10)
    resumed_at: list[float] = []

    def process():
        yield from all_of(wait_for(0.2), wait_for(0.5))
        resumed_at.append(timeline.time)
        yield from wait_for(0.25)

    task = timeline.spawn(process())
    timeline.run(5.0)

    assert resumed_at == [pytest.approx(0.5)]
    assert task.local_time == pytest.approx(0.75)


def test_settle_does_not_consume_time() -> None:
    """Settling runs the layout hook without advancing the clock."""
    settle_calls: list[float] = []
    timeline = Timeline(10, on_settle=lambda: settle_calls.append(timeline.time))
    observed: list[float] = []

    def process():
        yield from settle()
        observed.append(timeline.time)
        yield from wait_for(0.3)
        observed.append(timeline.time)

    timeline.spawn(process())
    timeline.run(2.0)

    assert settle_calls == [0.0]
    assert observed == [0.0, pytest.approx(0.3)]


def test_tween_updates_every_frame_and_ends_at_one() -> None:
    """A tween reports per-frame progress and finishes exactly at 1."""
    progress_values: list[float] = []

    run_process(tween(0.5, progress_values.append), fps=10, max_seconds=2.0)

    assert progress_values == pytest.approx([0.0, 0.2, 0.4, 0.6, 0.8, 1.0])


def test_zero_length_tween_applies_final_value_without_yielding() -> None:
    """Non-positive durations jump straight to the end state."""
    progress_values: list[float] = []

    commands = list(tween(0.0, progress_values.append))

    assert commands == []
    assert progress_values == [1.0]


def test_sequence_and_delay_run_in_order() -> None:
    """Sequenced processes start after the previous one ends."""
    timeline = Timeline(10)
    events: list[tuple[str, float]] = []

    def mark(name: str):
        events.append((name, timeline.time))
        yield from next_frame()

    timeline.spawn(sequence(delay(0.2, mark("first")), delay(0.3, mark("second"))))
    timeline.run(2.0)

    assert [name for name, _ in events] == ["first", "second"]
    assert events[0][1] == pytest.approx(0.2)
    assert events[1][1] == pytest.approx(0.6)


def test_frames_yield_frame_times() -> None:
    """Iterating frames exposes the virtual time of each frame."""
    timeline = Timeline(4)

    assert list(timeline.frames(5)) == [0.0, 0.25, 0.5, 0.75, 1.0]


def test_easings_start_at_zero_and_end_at_one() -> None:
    """Every named easing maps 0 to 0 and 1 to 1."""
    for easing in EASINGS.values():
        assert easing(0.0) == pytest.approx(0.0, abs=1e-9)
        assert easing(1.0) == pytest.approx(1.0)


def test_invalid_fps_is_rejected() -> None:
    """A timeline needs a positive frame rate."""
    with pytest.raises(RenderValidationError):
        Timeline(0)


def test_unknown_command_raises() -> None:
    """Yielding something that is not a command is a programming error."""

    def process():
        yield "bogus"

    timeline = Timeline(10)
    timeline.spawn(process())

    with pytest.raises(TypeError):
        timeline.tick()
