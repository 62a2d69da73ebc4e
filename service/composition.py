"""Assemble the short video scene and its root coroutine."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Sequence

from PIL import Image

from domain.effects import EffectSelection, HeaderEffectType, LineEffectType, ParticleEffectType
from domain.short_video import CaptionSettings, ShortVideoConfig, VideoMetadata
from service.background_effects import (
    LINE_EFFECT_HANDLERS,
    PARTICLE_EFFECT_HANDLERS,
    LineEffect,
    ParticleEffect,
)
from service.caption_plan import CaptionPlan, build_caption_plan
from service.captions import display_words
from service.header_effects import SlideHeader
from service.image_animations import SlideShow, build_slide_configs
from service.scene import FontBook, Node, View
from service.timeline import Process, all_of

REFERENCE_HEIGHT = 1920
HEADER_Y_RATIO = -0.406
CAPTION_Y_RATIO = 0.35
IMAGE_HEIGHT = 900
PARTICLE_DURATION_RATIO = 0.3
FULL_LENGTH_HEADER_EFFECTS = (
    HeaderEffectType.TYPEWRITER,
    HeaderEffectType.INFINITE_TYPEWRITER,
)


@dataclass
class ShortScene:
    """Scene graph plus the coroutine that animates it."""

    view: View
    process: Process
    caption_plan: CaptionPlan
    duration_seconds: float


def build_short_scene(
    config: ShortVideoConfig,
    metadata: VideoMetadata,
    settings: CaptionSettings,
    effects: EffectSelection,
    font_book: FontBook,
    images: Sequence[Image.Image],
    header_text: str | None = None,
) -> ShortScene:
    """Build the view and the concurrent header, slide, caption and effect processes."""
    rng = random.Random(config.seed)
    view = View(config.width, config.height, font_book)
    audio_seconds = metadata.audio_duration_seconds
    processes: list[Process] = []

    if effects.line_effect != LineEffectType.NONE:
        line_effect = LineEffect(effects.line, rng)
        view.add(line_effect)
        processes.append(LINE_EFFECT_HANDLERS[effects.line_effect](line_effect, audio_seconds))
    if effects.particle_effect != ParticleEffectType.NONE:
        particle_effect = ParticleEffect(effects.particles, rng)
        view.add(particle_effect)
        processes.append(
            PARTICLE_EFFECT_HANDLERS[effects.particle_effect](
                particle_effect, audio_seconds * PARTICLE_DURATION_RATIO
            )
        )

    header_container = view.add(Node(y=config.height * HEADER_Y_RATIO))
    body_container = view.add(Node())
    caption_container = view.add(Node(y=config.height * CAPTION_Y_RATIO))

    if header_text:
        header = SlideHeader(view, header_container, header_text, effects.header, font_book, rng)
        header_seconds = None
        if effects.header.effect in FULL_LENGTH_HEADER_EFFECTS:
            header_seconds = config.duration_seconds
        processes.append(header.play_effect(header_seconds))

    if images:
        slide_show = SlideShow(
            view,
            body_container,
            images,
            build_slide_configs(
                effects.image_mode, len(images), rng, effects.image_filter
            ),
            IMAGE_HEIGHT * config.height / REFERENCE_HEIGHT,
        )
        processes.append(slide_show.play_slides(audio_seconds))

    processes.append(
        display_words(caption_container, metadata.words, settings, font_book, config.width)
    )

    return ShortScene(
        view=view,
        process=all_of(*processes),
        caption_plan=build_caption_plan(metadata.words, settings),
        duration_seconds=config.duration_seconds,
    )
