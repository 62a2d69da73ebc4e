"""Tests for assembling the short video scene."""

from __future__ import annotations

import pytest
from PIL import Image

from domain.effects import (
    EffectSelection,
    HeaderEffectConfig,
    HeaderEffectType,
    LineEffectType,
    ParticleEffectType,
)
from domain.short_video import CaptionSettings, ShortVideoConfig, VideoMetadata, Word
from service.background_effects import LineEffect, ParticleEffect
from service.composition import build_short_scene
from service.rasterizer import FrameRasterizer, build_background
from service.scene import FontBook, ImageNode, TextNode
from service.timeline import Timeline

WIDTH = 108
HEIGHT = 192
FPS = 10


def build_config(duration_seconds: float = 2.0) -> ShortVideoConfig:
    return ShortVideoConfig(
        output_video_file="short.mp4",
        width=WIDTH,
        height=HEIGHT,
        fps=FPS,
        duration_seconds=duration_seconds,
        background_rgba=(0, 0, 0, 255),
        background_gradient=None,
        fonts_dir=None,
        seed=3,
    )


def build_metadata() -> VideoMetadata:
    return VideoMetadata(
        audio_path=None,
        image_paths=("one.png", "two.png"),
        words=(Word("남자", 0.0, 0.4), Word("는", 0.4, 0.5), Word("간다", 0.6, 1.0)),
    )


def build_images() -> list[Image.Image]:
    return [
        Image.new("RGBA", (30, 20), (255, 0, 0, 255)),
        Image.new("RGBA", (30, 20), (0, 0, 255, 255)),
    ]


def test_scene_finishes_within_the_video_duration() -> None:
    """Every concurrent process completes by the last frame."""
    font_book = FontBook()
    effects = EffectSelection(
        header=HeaderEffectConfig(effect=HeaderEffectType.TYPEWRITER),
    )
    scene = build_short_scene(
        build_config(),
        build_metadata(),
        CaptionSettings(words_per_batch=2),
        effects,
        font_book,
        build_images(),
        header_text="title",
    )
    timeline = Timeline(FPS, on_settle=scene.view.layout)
    timeline.spawn(scene.process)
    rasterizer = FrameRasterizer(scene.view, build_background(WIDTH, HEIGHT, (0, 0, 0, 255)))

    frame_sizes = [len(rasterizer.render_bytes()) for _ in timeline.frames(21)]

    assert timeline.idle
    assert set(frame_sizes) == {WIDTH * HEIGHT * 3}
    assert scene.caption_plan.end_seconds == pytest.approx(2.0)
    assert any(isinstance(node, LineEffect) for node in scene.view.children)
    assert any(isinstance(node, ParticleEffect) for node in scene.view.children)
    header_texts = [
        node.text for node in scene.view.walk() if isinstance(node, TextNode)
    ]
    assert "title" in header_texts


def test_disabled_effects_and_missing_images() -> None:
    """Effects set to none and an empty image list add no nodes."""
    effects = EffectSelection(
        line_effect=LineEffectType.NONE, particle_effect=ParticleEffectType.NONE
    )
    metadata = VideoMetadata(audio_path=None, image_paths=(), words=build_metadata().words)

    scene = build_short_scene(
        build_config(), metadata, CaptionSettings(), effects, FontBook(), []
    )

    assert not any(
        isinstance(node, (LineEffect, ParticleEffect, ImageNode))
        for node in scene.view.walk()
    )
    assert len(scene.view.children) == 3


def test_same_seed_builds_identical_frames() -> None:
    """Seeded scenes render byte-identical frames."""

    def render_frame(at_frame: int) -> bytes:
        scene = build_short_scene(
            build_config(),
            build_metadata(),
            CaptionSettings(),
            EffectSelection(particle_effect=ParticleEffectType.VORTEX),
            FontBook(),
            build_images(),
        )
        timeline = Timeline(FPS, on_settle=scene.view.layout)
        timeline.spawn(scene.process)
        rasterizer = FrameRasterizer(
            scene.view, build_background(WIDTH, HEIGHT, (0, 0, 0, 255))
        )
        frame_bytes = b""
        for index, _ in enumerate(timeline.frames(at_frame + 1)):
            if index == at_frame:
                frame_bytes = rasterizer.render_bytes()
        return frame_bytes

    assert render_frame(8) == render_frame(8)
