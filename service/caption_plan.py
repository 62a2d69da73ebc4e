"""Caption timing plan for render_short_video."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence, Tuple

from domain.short_video import (
    EMPTY_WORDS_CODE,
    INVALID_CAPTION_CODE,
    INVALID_CONFIG_CODE,
    CaptionSettings,
    RenderValidationError,
    Word,
)

MAX_FADE_SECONDS = 0.1


@dataclass(frozen=True)
class CaptionBatch:
    """A contiguous group of words shown together."""

    index: int
    words: Tuple[Word, ...]
    word_gaps: Tuple[float, ...]
    duration_seconds: float
    trailing_hold_seconds: float
    fade_seconds: float
    wait_after_seconds: float

    def __post_init__(self) -> None:
        if not self.words:
            raise RenderValidationError(EMPTY_WORDS_CODE, "caption batch has no words")
        if len(self.word_gaps) != len(self.words):
            raise RenderValidationError(
                INVALID_CONFIG_CODE, "word_gaps must match the batch words"
            )

    @property
    def text(self) -> str:
        return " ".join(word.text for word in self.words)

    @property
    def start(self) -> float:
        return self.words[0].start

    @property
    def end(self) -> float:
        return self.words[-1].end

    @property
    def display_seconds(self) -> float:
        """Time the batch stays on screen, including any trailing hold."""
        return self.duration_seconds + self.trailing_hold_seconds


@dataclass(frozen=True)
class CaptionPlan:
    """Waits and batch durations driving the caption scheduler."""

    initial_wait_seconds: float
    batches: Tuple[CaptionBatch, ...]

    def __post_init__(self) -> None:
        if not self.batches:
            raise RenderValidationError(EMPTY_WORDS_CODE, "caption plan has no batches")
        if self.initial_wait_seconds < 0:
            raise RenderValidationError(
                INVALID_CONFIG_CODE, "initial wait must be non-negative"
            )

    @property
    def total_seconds(self) -> float:
        """Scheduled time measured from the first word's start."""
        return sum(
            batch.display_seconds + batch.wait_after_seconds for batch in self.batches
        )

    @property
    def end_seconds(self) -> float:
        """Virtual time at which the caption scheduler finishes."""
        return self.initial_wait_seconds + self.total_seconds


def partition_batches(
    words: Sequence[Word], words_per_batch: int
) -> Tuple[Tuple[Word, ...], ...]:
    """Split words into consecutive batches; the last may be shorter."""
    if words_per_batch < 1:
        raise RenderValidationError(
            INVALID_CAPTION_CODE, "words_per_batch must be at least 1"
        )
    return tuple(
        tuple(words[index : index + words_per_batch])
        for index in range(0, len(words), words_per_batch)
    )


def compute_gap(previous_end: float, next_start: float) -> float:
    """Silence between two words, never negative."""
    return max(0.0, next_start - previous_end)


def compute_word_gaps(batch: Sequence[Word]) -> Tuple[float, ...]:
    """Gap before each word in a batch, zero for the first."""
    gaps = [0.0]
    for previous, current in zip(batch, batch[1:]):
        gaps.append(compute_gap(previous.end, current.start))
    return tuple(gaps)


def compute_fade_seconds(word: Word) -> float:
    """Reveal window: half the word's duration, capped at 0.1 s."""
    return min(MAX_FADE_SECONDS, word.duration * 0.5)


def build_caption_plan(words: Sequence[Word], settings: CaptionSettings) -> CaptionPlan:
    """Build the caption plan for a non-empty word sequence."""
    if not words:
        raise RenderValidationError(EMPTY_WORDS_CODE, "caption words are empty")

    groups = partition_batches(words, settings.words_per_batch)
    batches: list[CaptionBatch] = []
    for index, group in enumerate(groups):
        is_last = index == len(groups) - 1
        wait_after = 0.0 if is_last else compute_gap(group[-1].end, groups[index + 1][0].start)
        batches.append(
            CaptionBatch(
                index=index,
                words=group,
                word_gaps=compute_word_gaps(group),
                duration_seconds=max(0.0, group[-1].end - group[0].start),
                trailing_hold_seconds=settings.trailing_hold_seconds if is_last else 0.0,
                fade_seconds=compute_fade_seconds(group[0]),
                wait_after_seconds=wait_after,
            )
        )

    return CaptionPlan(
        initial_wait_seconds=max(0.0, words[0].start), batches=tuple(batches)
    )


def seconds_to_frame(seconds: float, fps: int) -> int:
    """First frame index at or after seconds."""
    return int(round(seconds * fps))


def caption_plan_to_dict(plan: CaptionPlan, fps: int) -> dict[str, Any]:
    """Serialize a caption plan for inspection."""
    cursor = plan.initial_wait_seconds
    batches = []
    for batch in plan.batches:
        batches.append(
            {
                "index": batch.index,
                "text": batch.text,
                "show_seconds": round(cursor, 6),
                "hide_seconds": round(cursor + batch.display_seconds, 6),
                "show_frame": seconds_to_frame(cursor, fps),
                "hide_frame": seconds_to_frame(cursor + batch.display_seconds, fps),
                "word_gaps": [round(gap, 6) for gap in batch.word_gaps],
                "fade_seconds": round(batch.fade_seconds, 6),
                "wait_after_seconds": round(batch.wait_after_seconds, 6),
            }
        )
        cursor += batch.display_seconds + batch.wait_after_seconds
    return {
        "initial_wait_seconds": round(plan.initial_wait_seconds, 6),
        "total_seconds": round(plan.total_seconds, 6),
        "end_seconds": round(plan.end_seconds, 6),
        "batches": batches,
    }
