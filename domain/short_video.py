"""Domain types and parsing for render_short_video."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
import os
import re
from typing import Any, Mapping, Sequence, Tuple

from PIL import ImageColor

INVALID_COLOR_CODE = "render_short_video.input.invalid_color"
INVALID_CONFIG_CODE = "render_short_video.input.invalid_config"
INVALID_CAPTION_CODE = "render_short_video.input.invalid_caption"
INVALID_METADATA_CODE = "render_short_video.input.invalid_metadata"
INVALID_WORD_CODE = "render_short_video.input.invalid_word"
INVALID_EFFECT_CODE = "render_short_video.input.invalid_effect"
EMPTY_WORDS_CODE = "render_short_video.input.empty_words"
INPUT_FILE_CODE = "render_short_video.input.file_error"
FONT_DIR_CODE = "render_short_video.input.fonts_missing"
FONT_LOAD_CODE = "render_short_video.input.fonts_unloadable"
IMAGE_FILE_CODE = "render_short_video.input.image_file"
AUDIO_FILE_CODE = "render_short_video.input.audio_track"

HEX_COLOR_PATTERN = re.compile(r"#([0-9a-fA-F]{6})([0-9a-fA-F]{2})?")
WORD_TEXT_KEYS = ("punctuated_word", "word", "text")

Rgba = Tuple[int, int, int, int]


class RenderValidationError(ValueError):
    """Validation error with a stable error code."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class TextAlignment(str, Enum):
    """Horizontal alignment of caption lines."""

    CENTER = "center"
    LEFT = "left"


@dataclass(frozen=True)
class Word:
    """A transcribed word with its audio timestamps in seconds."""

    text: str
    start: float
    end: float

    def __post_init__(self) -> None:
        if not self.text.strip():
            raise RenderValidationError(INVALID_WORD_CODE, "word text must be non-empty")
        if self.start < 0:
            raise RenderValidationError(
                INVALID_WORD_CODE, f"word start must be non-negative: {self.text!r}"
            )
        if self.end < self.start:
            raise RenderValidationError(
                INVALID_WORD_CODE, f"word ends before it starts: {self.text!r}"
            )

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class CaptionSettings:
    """Validated caption styling and batching options."""

    words_per_batch: int = 3
    font_size: int = 80
    font_weight: int = 800
    font_family: str | None = None
    base_color: Rgba = (255, 255, 255, 255)
    highlight_color: Rgba | None = (255, 215, 0, 255)
    highlight_background_color: Rgba | None = None
    stream_mode: bool = False
    alignment: TextAlignment = TextAlignment.CENTER
    max_width_percent: float = 80.0
    border_color: Rgba | None = (0, 0, 0, 255)
    border_width: int = 4
    shadow_color: Rgba | None = None
    shadow_blur: float = 0.0
    fade_in_enabled: bool = True
    trailing_hold_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.words_per_batch < 1:
            raise RenderValidationError(
                INVALID_CAPTION_CODE, "words_per_batch must be at least 1"
            )
        if self.font_size <= 0:
            raise RenderValidationError(
                INVALID_CAPTION_CODE, "font_size must be positive"
            )
        if self.font_weight < 100 or self.font_weight > 900:
            raise RenderValidationError(
                INVALID_CAPTION_CODE, "font_weight must be between 100 and 900"
            )
        if not isinstance(self.alignment, TextAlignment):
            raise RenderValidationError(INVALID_CAPTION_CODE, "alignment is invalid")
        if self.max_width_percent <= 0 or self.max_width_percent > 100:
            raise RenderValidationError(
                INVALID_CAPTION_CODE, "max_width_percent must be in (0, 100]"
            )
        if self.border_width < 0:
            raise RenderValidationError(
                INVALID_CAPTION_CODE, "border_width must be non-negative"
            )
        if self.shadow_blur < 0:
            raise RenderValidationError(
                INVALID_CAPTION_CODE, "shadow_blur must be non-negative"
            )
        if self.trailing_hold_seconds < 0:
            raise RenderValidationError(
                INVALID_CAPTION_CODE, "trailing_hold_seconds must be non-negative"
            )

    @property
    def effective_highlight_color(self) -> Rgba:
        """Highlight color, falling back to the base color."""
        if self.highlight_color is None:
            return self.base_color
        return self.highlight_color


@dataclass(frozen=True)
class GradientBackground:
    """Two-color vertical gradient."""

    top_rgba: Rgba
    bottom_rgba: Rgba


@dataclass(frozen=True)
class ShortVideoConfig:
    """Validated configuration for render_short_video."""

    output_video_file: str
    width: int
    height: int
    fps: int
    duration_seconds: float
    background_rgba: Rgba
    background_gradient: GradientBackground | None
    fonts_dir: str | None
    seed: int | None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise RenderValidationError(
                INVALID_CONFIG_CODE, "width and height must be positive"
            )
        if self.width % 2 or self.height % 2:
            raise RenderValidationError(
                INVALID_CONFIG_CODE, "width and height must be even for H.264 output"
            )
        if self.fps <= 0:
            raise RenderValidationError(INVALID_CONFIG_CODE, "fps must be positive")
        if self.duration_seconds <= 0:
            raise RenderValidationError(
                INVALID_CONFIG_CODE, "duration_seconds must be positive"
            )
        if not self.output_video_file.lower().endswith(".mp4"):
            raise RenderValidationError(
                INVALID_CONFIG_CODE, "output_video_file must end with .mp4"
            )
        if len(self.background_rgba) != 4:
            raise RenderValidationError(INVALID_CONFIG_CODE, "background_rgba is invalid")
        for channel in self.background_rgba:
            if channel < 0 or channel > 255:
                raise RenderValidationError(
                    INVALID_CONFIG_CODE, "background_rgba channel out of range"
                )
        if self.fonts_dir is not None and not self.fonts_dir.strip():
            raise RenderValidationError(
                INVALID_CONFIG_CODE, "fonts_dir must be non-empty"
            )


@dataclass(frozen=True)
class VideoMetadata:
    """Boundary artifact produced by the asset preparation step."""

    audio_path: str | None
    image_paths: Tuple[str, ...]
    words: Tuple[Word, ...]

    def __post_init__(self) -> None:
        if not self.words:
            raise RenderValidationError(EMPTY_WORDS_CODE, "metadata contains no words")

    @property
    def audio_duration_seconds(self) -> float:
        """Audio length implied by the transcript."""
        return self.words[-1].end


def parse_hex_color_to_rgba(color_value: str) -> Rgba:
    """Parse a color token into an RGBA tuple."""
    normalized = color_value.strip()
    if normalized.lower() == "transparent":
        return (0, 0, 0, 0)

    match_value = HEX_COLOR_PATTERN.fullmatch(normalized)
    if match_value:
        rgb_hex = match_value.group(1)
        alpha_hex = match_value.group(2) or "ff"
        return (
            int(rgb_hex[0:2], 16),
            int(rgb_hex[2:4], 16),
            int(rgb_hex[4:6], 16),
            int(alpha_hex, 16),
        )

    try:
        red_value, green_value, blue_value = ImageColor.getrgb(normalized)[:3]
    except ValueError as exc:
        raise RenderValidationError(
            INVALID_COLOR_CODE,
            f"invalid color value: {color_value!r}",
        ) from exc
    return (red_value, green_value, blue_value, 255)


def parse_optional_color(color_value: str | None) -> Rgba | None:
    """Parse a color that may be absent or empty."""
    if color_value is None or not str(color_value).strip():
        return None
    return parse_hex_color_to_rgba(str(color_value))


def parse_alignment(value: str) -> TextAlignment:
    """Parse a text alignment name."""
    try:
        return TextAlignment(value.strip().lower())
    except ValueError as exc:
        raise RenderValidationError(
            INVALID_CAPTION_CODE, f"invalid text alignment: {value!r}"
        ) from exc


def parse_word(entry: Any, index: int) -> Word:
    """Parse a single transcript entry."""
    if not isinstance(entry, Mapping):
        raise RenderValidationError(
            INVALID_WORD_CODE, f"word entry {index} must be an object"
        )
    text_value = None
    for key in WORD_TEXT_KEYS:
        if isinstance(entry.get(key), str) and entry[key].strip():
            text_value = entry[key].strip()
            break
    if text_value is None:
        raise RenderValidationError(
            INVALID_WORD_CODE, f"word entry {index} has no text"
        )
    try:
        start = float(entry["start"])
        end = float(entry["end"])
    except (KeyError, TypeError, ValueError) as exc:
        raise RenderValidationError(
            INVALID_WORD_CODE, f"word entry {index} has invalid timestamps"
        ) from exc
    return Word(text=text_value, start=start, end=end)


def parse_words(entries: Sequence[Any]) -> Tuple[Word, ...]:
    """Parse transcript entries into words, trusting their order."""
    if not entries:
        raise RenderValidationError(EMPTY_WORDS_CODE, "word list is empty")
    return tuple(parse_word(entry, index) for index, entry in enumerate(entries))


def setting_int(values: Mapping[str, Any], key: str) -> int:
    """Whole-number setting; JSON floats like 3.0 are accepted, 2.7 is not."""
    value = values[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise RenderValidationError(
            INVALID_CAPTION_CODE, f"{key} must be an integer, got {value!r}"
        )
    if isinstance(value, float) and not value.is_integer():
        raise RenderValidationError(
            INVALID_CAPTION_CODE, f"{key} must be a whole number, got {value!r}"
        )
    return int(value)


def setting_bool(values: Mapping[str, Any], key: str) -> bool:
    value = values[key]
    if not isinstance(value, bool):
        raise RenderValidationError(
            INVALID_CAPTION_CODE, f"{key} must be true or false, got {value!r}"
        )
    return value


def parse_caption_settings(
    values: Mapping[str, Any], base: CaptionSettings | None = None
) -> CaptionSettings:
    """Build caption settings from camelCase configuration keys."""
    settings = base or CaptionSettings()
    fields: dict[str, Any] = {
        "words_per_batch": settings.words_per_batch,
        "font_size": settings.font_size,
        "font_weight": settings.font_weight,
        "font_family": settings.font_family,
        "base_color": settings.base_color,
        "highlight_color": settings.highlight_color,
        "highlight_background_color": settings.highlight_background_color,
        "stream_mode": settings.stream_mode,
        "alignment": settings.alignment,
        "max_width_percent": settings.max_width_percent,
        "border_color": settings.border_color,
        "border_width": settings.border_width,
        "shadow_color": settings.shadow_color,
        "shadow_blur": settings.shadow_blur,
        "fade_in_enabled": settings.fade_in_enabled,
        "trailing_hold_seconds": settings.trailing_hold_seconds,
    }
    if "numSimultaneousWords" in values:
        fields["words_per_batch"] = setting_int(values, "numSimultaneousWords")
    if "fontSize" in values:
        fields["font_size"] = setting_int(values, "fontSize")
    if "fontWeight" in values:
        fields["font_weight"] = setting_int(values, "fontWeight")
    if "borderWidth" in values:
        fields["border_width"] = setting_int(values, "borderWidth")
    try:
        if "shadowBlur" in values:
            fields["shadow_blur"] = float(values["shadowBlur"])
        if "textBoxWidthInPercent" in values:
            fields["max_width_percent"] = float(values["textBoxWidthInPercent"])
        if "trailingHoldSeconds" in values:
            fields["trailing_hold_seconds"] = float(values["trailingHoldSeconds"])
    except (TypeError, ValueError) as exc:
        raise RenderValidationError(
            INVALID_CAPTION_CODE, f"invalid caption setting: {exc}"
        ) from exc
    if "fontFamily" in values:
        fields["font_family"] = values["fontFamily"] or None
    if "textColor" in values:
        fields["base_color"] = parse_hex_color_to_rgba(str(values["textColor"]))
    if "currentWordColor" in values:
        fields["highlight_color"] = parse_optional_color(values["currentWordColor"])
    if "currentWordBackgroundColor" in values:
        fields["highlight_background_color"] = parse_optional_color(
            values["currentWordBackgroundColor"]
        )
    if "borderColor" in values:
        fields["border_color"] = parse_optional_color(values["borderColor"])
    if "shadowColor" in values:
        fields["shadow_color"] = parse_optional_color(values["shadowColor"])
    if "textAlign" in values:
        fields["alignment"] = parse_alignment(str(values["textAlign"]))
    if "stream" in values:
        fields["stream_mode"] = setting_bool(values, "stream")
    if "fadeInAnimation" in values:
        fields["fade_in_enabled"] = setting_bool(values, "fadeInAnimation")
    return CaptionSettings(**fields)


def resolve_asset_path(path_value: str, base_dir: str) -> str:
    """Resolve a metadata path relative to the metadata file."""
    if os.path.isabs(path_value):
        return path_value
    return os.path.normpath(os.path.join(base_dir, path_value))


def parse_metadata(text_value: str, base_dir: str = ".") -> VideoMetadata:
    """Parse metadata JSON into VideoMetadata."""
    try:
        payload = json.loads(text_value)
    except json.JSONDecodeError as exc:
        raise RenderValidationError(
            INVALID_METADATA_CODE,
            f"metadata is not valid JSON at line {exc.lineno}",
        ) from exc
    if not isinstance(payload, Mapping):
        raise RenderValidationError(
            INVALID_METADATA_CODE, "metadata must be a JSON object"
        )

    words_value = payload.get("words")
    if not isinstance(words_value, list):
        raise RenderValidationError(
            INVALID_METADATA_CODE, "metadata words must be a list"
        )
    images_value = payload.get("images", [])
    if not isinstance(images_value, list) or not all(
        isinstance(item, str) and item.strip() for item in images_value
    ):
        raise RenderValidationError(
            INVALID_METADATA_CODE, "metadata images must be a list of paths"
        )
    audio_value = payload.get("audioUrl")
    if audio_value is not None and (
        not isinstance(audio_value, str) or not audio_value.strip()
    ):
        raise RenderValidationError(
            INVALID_METADATA_CODE, "metadata audioUrl must be a non-empty string"
        )

    return VideoMetadata(
        audio_path=resolve_asset_path(audio_value, base_dir) if audio_value else None,
        image_paths=tuple(resolve_asset_path(item, base_dir) for item in images_value),
        words=parse_words(words_value),
    )
