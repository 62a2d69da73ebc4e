"""Effect types, configurations and presets for render_short_video."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple, Type, TypeVar

from domain.short_video import (
    INVALID_EFFECT_CODE,
    Rgba,
    RenderValidationError,
    parse_hex_color_to_rgba,
)

DEFAULT_ZOOM_INTENSITY = 0.15
DEFAULT_PAN_DISTANCE = 100.0
DEFAULT_IMAGE_BASE_Y = -50.0
DEFAULT_BLINK_COUNT = 3
DEFAULT_SHUTTER_SECONDS = 1.0

EnumType = TypeVar("EnumType", bound=Enum)


class ZoomType(str, Enum):
    """Slide zoom animations."""

    ZOOM_IN = "zoomIn"
    ZOOM_OUT = "zoomOut"
    ZOOM_IN_OUT = "zoomInOut"
    STATIC = "static"


class PanType(str, Enum):
    """Slide pan animations."""

    PAN_LEFT = "panLeft"
    PAN_RIGHT = "panRight"
    PAN_UP = "panUp"
    PAN_DOWN = "panDown"
    NONE = "none"


class ShutterType(str, Enum):
    """Slide shutter effects and transitions."""

    FLASH = "flash"
    BLINK = "blink"
    FADE = "fade"
    SHUTTER_TRANSITION = "shutterTransition"
    NONE = "none"


class FilterEffectType(str, Enum):
    """Hold-then-animate image filter effects."""

    FADE_IN = "fadeIn"
    FADE_OUT = "fadeOut"
    BLUR_IN = "blurIn"
    BLUR_OUT = "blurOut"
    BRIGHTNESS_IN = "brightnessIn"
    BRIGHTNESS_OUT = "brightnessOut"
    NONE = "none"


class ImageAnimationMode(str, Enum):
    """How slide animations are chosen."""

    ALTERNATING = "alternating"
    RANDOM = "random"


class HeaderEffectType(str, Enum):
    """Animated headline effects."""

    EXTRUDE_3D = "3d_extrude"
    TYPEWRITER = "typewriter"
    INFINITE_TYPEWRITER = "infinite_typewriter"
    PUNCH_ZOOM = "punch_zoom"
    HIGHLIGHT_WORDS = "highlight_words"
    BACKGROUND_IMAGE = "background_image"
    GLOW_EFFECT = "glow_effect"
    BOUNCE_IN = "bounce_in"
    SLIDE_SPLIT = "slide_split"
    RAINBOW_TEXT = "rainbow_text"
    SHAKE_EMPHASIS = "shake_emphasis"
    NONE = "none"


class LineEffectType(str, Enum):
    """Background line animations."""

    RADIAL_BURST = "radial_burst"
    SPIRAL_MOTION = "spiral_motion"
    PULSE_WAVE = "pulse_wave"
    FLOW_STREAM = "flow_stream"
    NONE = "none"


class ParticleEffectType(str, Enum):
    """Background particle animations."""

    EXPLOSION = "explosion"
    VORTEX = "vortex"
    METEOR_SHOWER = "meteor_shower"
    PULSE_RINGS = "pulse_rings"
    SWARM = "swarm"
    NONE = "none"


def parse_enum(enum_type: Type[EnumType], value: str) -> EnumType:
    """Parse an effect name into its enum member."""
    normalized = value.strip()
    for member in enum_type:
        if member.value.lower() == normalized.lower():
            return member
    raise RenderValidationError(
        INVALID_EFFECT_CODE, f"invalid {enum_type.__name__}: {value!r}"
    )


@dataclass(frozen=True)
class ImageAnimationConfig:
    """Per-slide image animation settings."""

    zoom: ZoomType = ZoomType.STATIC
    zoom_intensity: float = DEFAULT_ZOOM_INTENSITY
    pan: PanType = PanType.NONE
    pan_distance: float = DEFAULT_PAN_DISTANCE
    shutter: ShutterType = ShutterType.NONE
    shutter_seconds: float = DEFAULT_SHUTTER_SECONDS
    blink_count: int = DEFAULT_BLINK_COUNT
    filter_effect: FilterEffectType = FilterEffectType.NONE
    base_y: float = DEFAULT_IMAGE_BASE_Y

    def __post_init__(self) -> None:
        if self.zoom_intensity < 0:
            raise RenderValidationError(
                INVALID_EFFECT_CODE, "zoom_intensity must be non-negative"
            )
        if self.pan_distance < 0:
            raise RenderValidationError(
                INVALID_EFFECT_CODE, "pan_distance must be non-negative"
            )
        if self.shutter_seconds <= 0:
            raise RenderValidationError(
                INVALID_EFFECT_CODE, "shutter_seconds must be positive"
            )
        if self.blink_count < 1:
            raise RenderValidationError(
                INVALID_EFFECT_CODE, "blink_count must be at least 1"
            )


@dataclass(frozen=True)
class HeaderEffectConfig:
    """Header effect parameters; unset values fall back per effect."""

    effect: HeaderEffectType = HeaderEffectType.NONE
    duration_seconds: float = 1.0
    intensity: float | None = None
    highlight_words: Tuple[str, ...] = ()
    highlight_color: Rgba = (255, 107, 107, 255)
    background_image: str | None = None
    glow_color: Rgba = (50, 215, 75, 255)
    text_color: Rgba = (50, 215, 75, 255)
    stroke_color: Rgba = (30, 41, 59, 255)
    font_size: int = 110
    font_weight: int = 900

    def __post_init__(self) -> None:
        if self.duration_seconds <= 0:
            raise RenderValidationError(
                INVALID_EFFECT_CODE, "header duration must be positive"
            )
        if self.font_size <= 0:
            raise RenderValidationError(
                INVALID_EFFECT_CODE, "header font_size must be positive"
            )


@dataclass(frozen=True)
class LineEffectConfig:
    """Radial line field settings."""

    line_count: int = 60
    max_length: float = 1000.0
    color: Rgba = (64, 224, 208, 255)
    secondary_color: Rgba = (135, 206, 250, 255)
    opacity: float = 0.5

    def __post_init__(self) -> None:
        if self.line_count < 1:
            raise RenderValidationError(
                INVALID_EFFECT_CODE, "line_count must be at least 1"
            )
        if self.opacity < 0 or self.opacity > 1:
            raise RenderValidationError(
                INVALID_EFFECT_CODE, "line opacity must be in [0, 1]"
            )


@dataclass(frozen=True)
class ParticleEffectConfig:
    """Particle field settings."""

    particle_count: int = 60
    max_distance: float = 800.0
    color: Rgba = (255, 215, 0, 255)
    secondary_color: Rgba = (255, 248, 220, 255)
    intensity: float = 0.7

    def __post_init__(self) -> None:
        if self.particle_count < 1:
            raise RenderValidationError(
                INVALID_EFFECT_CODE, "particle_count must be at least 1"
            )
        if self.intensity < 0:
            raise RenderValidationError(
                INVALID_EFFECT_CODE, "particle intensity must be non-negative"
            )


@dataclass(frozen=True)
class EffectSelection:
    """Effects chosen for one short video."""

    header: HeaderEffectConfig = field(default_factory=HeaderEffectConfig)
    image_mode: ImageAnimationMode = ImageAnimationMode.ALTERNATING
    image_filter: FilterEffectType | None = None
    line_effect: LineEffectType = LineEffectType.RADIAL_BURST
    particle_effect: ParticleEffectType = ParticleEffectType.EXPLOSION
    line: LineEffectConfig = field(default_factory=LineEffectConfig)
    particles: ParticleEffectConfig = field(default_factory=ParticleEffectConfig)


HEADER_EFFECT_PRESETS = {
    "basic_3d": HeaderEffectConfig(
        effect=HeaderEffectType.EXTRUDE_3D,
        duration_seconds=1.0,
        intensity=3,
        text_color=parse_hex_color_to_rgba("#32D74B"),
        stroke_color=parse_hex_color_to_rgba("#1E293B"),
    ),
    "typewriter": HeaderEffectConfig(
        effect=HeaderEffectType.TYPEWRITER,
        duration_seconds=2.0,
        text_color=parse_hex_color_to_rgba("#32D74B"),
        stroke_color=parse_hex_color_to_rgba("#1E293B"),
    ),
    "power_punch": HeaderEffectConfig(
        effect=HeaderEffectType.PUNCH_ZOOM,
        duration_seconds=1.2,
        intensity=1.5,
        text_color=parse_hex_color_to_rgba("#FF6B6B"),
        stroke_color=parse_hex_color_to_rgba("#FFFFFF"),
    ),
    "highlight_demo": HeaderEffectConfig(
        effect=HeaderEffectType.HIGHLIGHT_WORDS,
        duration_seconds=1.5,
        highlight_words=("중요한", "핵심", "특별한"),
        highlight_color=parse_hex_color_to_rgba("#FFD93D"),
        text_color=parse_hex_color_to_rgba("#32D74B"),
        stroke_color=parse_hex_color_to_rgba("#1E293B"),
    ),
    "green_glow": HeaderEffectConfig(
        effect=HeaderEffectType.GLOW_EFFECT,
        duration_seconds=1.0,
        glow_color=parse_hex_color_to_rgba("#32D74B"),
        text_color=parse_hex_color_to_rgba("#FFFFFF"),
        stroke_color=parse_hex_color_to_rgba("#000000"),
    ),
    "bounce_in": HeaderEffectConfig(
        effect=HeaderEffectType.BOUNCE_IN,
        duration_seconds=1.0,
        text_color=parse_hex_color_to_rgba("#32D74B"),
        stroke_color=parse_hex_color_to_rgba("#1E293B"),
    ),
    "rainbow": HeaderEffectConfig(
        effect=HeaderEffectType.RAINBOW_TEXT,
        duration_seconds=3.0,
        stroke_color=parse_hex_color_to_rgba("#000000"),
    ),
    "shake": HeaderEffectConfig(
        effect=HeaderEffectType.SHAKE_EMPHASIS,
        duration_seconds=1.0,
        intensity=15,
        text_color=parse_hex_color_to_rgba("#FF6B6B"),
        stroke_color=parse_hex_color_to_rgba("#FFFFFF"),
    ),
}


def get_header_preset(name: str) -> HeaderEffectConfig:
    """Look up a named header preset."""
    preset = HEADER_EFFECT_PRESETS.get(name.strip().lower())
    if preset is None:
        raise RenderValidationError(
            INVALID_EFFECT_CODE, f"unknown header preset: {name!r}"
        )
    return preset
