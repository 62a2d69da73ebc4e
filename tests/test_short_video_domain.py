"""Unit tests for metadata, caption settings and config parsing."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from domain.effects import (
    INVALID_EFFECT_CODE,
    HeaderEffectType,
    ZoomType,
    get_header_preset,
    parse_enum,
)
from domain.short_video import (
    EMPTY_WORDS_CODE,
    INVALID_CAPTION_CODE,
    INVALID_COLOR_CODE,
    INVALID_CONFIG_CODE,
    INVALID_METADATA_CODE,
    INVALID_WORD_CODE,
    CaptionSettings,
    RenderValidationError,
    ShortVideoConfig,
    TextAlignment,
    Word,
    parse_caption_settings,
    parse_hex_color_to_rgba,
    parse_metadata,
)


def build_config(**overrides: object) -> ShortVideoConfig:
    values = {
        "output_video_file": "short.mp4",
        "width": 1080,
        "height": 1920,
        "fps": 30,
        "duration_seconds": 2.0,
        "background_rgba": (0, 0, 0, 255),
        "background_gradient": None,
        "fonts_dir": None,
        "seed": None,
    }
    values.update(overrides)
    return ShortVideoConfig(**values)


def test_metadata_prefers_punctuated_words(tmp_path: Path) -> None:
    """punctuated_word wins over word and relative paths resolve."""
    payload = {
        "audioUrl": "audio/voice.wav",
        "images": ["images/one.png", "/abs/two.png"],
        "words": [
            {"word": "hello", "punctuated_word": "Hello,", "start": 0.0, "end": 0.4},
            {"text": "world", "start": 0.5, "end": 0.9},
        ],
    }

    metadata = parse_metadata(json.dumps(payload), str(tmp_path))

    assert [word.text for word in metadata.words] == ["Hello,", "world"]
    assert metadata.audio_path == os.path.join(str(tmp_path), "audio", "voice.wav")
    assert metadata.image_paths == (
        os.path.join(str(tmp_path), "images", "one.png"),
        "/abs/two.png",
    )
    assert metadata.audio_duration_seconds == pytest.approx(0.9)


def test_metadata_rejects_invalid_json() -> None:
    """Malformed JSON reports the metadata error code."""
    with pytest.raises(RenderValidationError) as error_info:
        parse_metadata("{not json")

    assert error_info.value.code == INVALID_METADATA_CODE


def test_metadata_rejects_empty_words() -> None:
    """A transcript without words cannot be captioned."""
    with pytest.raises(RenderValidationError) as error_info:
        parse_metadata(json.dumps({"images": [], "words": []}))

    assert error_info.value.code == EMPTY_WORDS_CODE


def test_word_validation() -> None:
    """Words need text and ordered, non-negative timestamps."""
    with pytest.raises(RenderValidationError) as error_info:
        Word("late", 1.0, 0.5)
    assert error_info.value.code == INVALID_WORD_CODE

    with pytest.raises(RenderValidationError):
        parse_metadata(json.dumps({"words": [{"word": "x", "start": "soon", "end": 1}]}))


def test_caption_settings_from_camel_case_keys() -> None:
    """Caption JSON keys map onto validated settings."""
    settings = parse_caption_settings(
        {
            "numSimultaneousWords": 4,
            "fontSize": 72,
            "textColor": "#112233",
            "currentWordColor": "",
            "currentWordBackgroundColor": "#00000080",
            "stream": True,
            "textAlign": "left",
            "fadeInAnimation": False,
        }
    )

    assert settings.words_per_batch == 4
    assert settings.font_size == 72
    assert settings.base_color == (17, 34, 51, 255)
    assert settings.highlight_color is None
    assert settings.effective_highlight_color == (17, 34, 51, 255)
    assert settings.highlight_background_color == (0, 0, 0, 128)
    assert settings.stream_mode is True
    assert settings.alignment == TextAlignment.LEFT
    assert settings.fade_in_enabled is False


def test_caption_overrides_keep_base_values() -> None:
    """Overrides only replace the keys they name."""
    base = CaptionSettings(words_per_batch=5, font_size=60)

    settings = parse_caption_settings({"stream": True}, base=base)

    assert settings.words_per_batch == 5
    assert settings.font_size == 60
    assert settings.stream_mode is True


@pytest.mark.parametrize(
    "values",
    [
        {"stream": "false"},
        {"fadeInAnimation": "false"},
        {"stream": 1},
        {"numSimultaneousWords": 2.7},
        {"numSimultaneousWords": "3"},
        {"fontSize": True},
    ],
)
def test_caption_settings_reject_loose_types(values: dict) -> None:
    """Flags must be JSON booleans and counts whole numbers."""
    with pytest.raises(RenderValidationError) as error_info:
        parse_caption_settings(values)

    assert error_info.value.code == INVALID_CAPTION_CODE


def test_caption_settings_accept_whole_floats() -> None:
    settings = parse_caption_settings({"numSimultaneousWords": 3.0, "stream": False})

    assert settings.words_per_batch == 3
    assert settings.stream_mode is False


def test_color_parsing() -> None:
    """Hex, hex with alpha, names and transparent are accepted."""
    assert parse_hex_color_to_rgba("#FFD700") == (255, 215, 0, 255)
    assert parse_hex_color_to_rgba("#FFD70080") == (255, 215, 0, 128)
    assert parse_hex_color_to_rgba("white") == (255, 255, 255, 255)
    assert parse_hex_color_to_rgba("transparent") == (0, 0, 0, 0)
    with pytest.raises(RenderValidationError) as error_info:
        parse_hex_color_to_rgba("#12")
    assert error_info.value.code == INVALID_COLOR_CODE


def test_config_requires_even_dimensions_and_mp4() -> None:
    """H.264 output needs even sizes and an .mp4 file."""
    build_config()
    with pytest.raises(RenderValidationError) as error_info:
        build_config(width=1081)
    assert error_info.value.code == INVALID_CONFIG_CODE
    with pytest.raises(RenderValidationError):
        build_config(output_video_file="short.mov")


def test_effect_names_parse_case_insensitively() -> None:
    """Effect names match their enum values regardless of case."""
    assert parse_enum(ZoomType, "ZOOMIN") == ZoomType.ZOOM_IN
    assert parse_enum(HeaderEffectType, "3d_extrude") == HeaderEffectType.EXTRUDE_3D
    with pytest.raises(RenderValidationError) as error_info:
        parse_enum(ZoomType, "spin")
    assert error_info.value.code == INVALID_EFFECT_CODE


def test_header_presets() -> None:
    """Named presets resolve to header configurations."""
    assert get_header_preset("typewriter").effect == HeaderEffectType.TYPEWRITER
    assert get_header_preset("Power_Punch").intensity == 1.5
    with pytest.raises(RenderValidationError):
        get_header_preset("missing")
