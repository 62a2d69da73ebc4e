#!/usr/bin/env -S uv run
# /// script
# requires-python = ">=3.11"
# dependencies = [
#   "pillow>=10.1",
#   "numpy>=1.26"
# ]
# ///
"""Render a captioned short video (header, slides, captions, effects) into an MP4."""

from __future__ import annotations

import argparse
import json
import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence, Tuple

from PIL import ImageFont

from domain.effects import (
    EffectSelection,
    FilterEffectType,
    HeaderEffectConfig,
    HeaderEffectType,
    ImageAnimationMode,
    LineEffectType,
    ParticleEffectType,
    get_header_preset,
    parse_enum,
)
from domain.short_video import (
    AUDIO_FILE_CODE,
    FONT_DIR_CODE,
    FONT_LOAD_CODE,
    INPUT_FILE_CODE,
    INVALID_CAPTION_CODE,
    INVALID_CONFIG_CODE,
    CaptionSettings,
    GradientBackground,
    RenderValidationError,
    ShortVideoConfig,
    VideoMetadata,
    parse_caption_settings,
    parse_hex_color_to_rgba,
    parse_metadata,
)
from service.caption_plan import build_caption_plan, caption_plan_to_dict
from service.composition import ShortScene, build_short_scene
from service.rasterizer import FrameRasterizer, build_background
from service.scene import FontBook, load_image
from service.timeline import Timeline

LOGGER = logging.getLogger("render_short_video")

FFMPEG_NOT_FOUND_CODE = "render_short_video.ffmpeg.not_found"
FFMPEG_EXEC_CODE = "render_short_video.ffmpeg.exec_error"
FFMPEG_UNSUPPORTED_CODE = "render_short_video.ffmpeg.unsupported"
FFMPEG_PROCESS_CODE = "render_short_video.ffmpeg.process_failed"
FFMPEG_PROBE_CODE = "render_short_video.ffmpeg.probe_error"
VIDEO_CODEC = "libx264"
VIDEO_CRF = "20"
VIDEO_PRESET = "veryfast"
INPUT_PIXEL_FORMAT = "rgb24"
OUTPUT_PIXEL_FORMAT = "yuv420p"
AUDIO_CODEC = "aac"
AUDIO_BITRATE = "192k"
AUDIO_PAD_FILTER = "apad"
FONT_EXTENSIONS = (".ttf", ".otf")
FONT_SAMPLE_SIZE = 48
BOLD_FONT_MARKERS = ("bold", "black", "heavy", "extrabold", "semibold")


class RenderPipelineError(RuntimeError):
    """Encoder or probe failure carrying a stable error code."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class RenderRequest:
    """Everything main() needs after argument parsing."""

    config: ShortVideoConfig
    metadata: VideoMetadata
    settings: CaptionSettings
    effects: EffectSelection
    header_text: str | None
    audio_track: str | None
    emit_plan: bool


def configure_logging() -> None:
    """Configure logging for CLI output."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")


def require_tool(tool_name: str) -> str:
    """Return the path of tool_name after checking that it runs."""
    tool_path = shutil.which(tool_name)
    if tool_path is None:
        raise RenderPipelineError(FFMPEG_NOT_FOUND_CODE, f"{tool_name} not on PATH")
    try:
        subprocess.run([tool_path, "-version"], capture_output=True, check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise RenderPipelineError(
            FFMPEG_EXEC_CODE, f"{tool_name} is on PATH but does not run"
        ) from exc
    return tool_path


def query_tool(tool_path: str, *args: str) -> str:
    """Run a read-only ffmpeg/ffprobe query and return its stdout."""
    result = subprocess.run(
        [tool_path, *args], capture_output=True, text=True, check=False
    )
    if result.returncode != 0:
        raise RenderPipelineError(
            FFMPEG_PROBE_CODE,
            f"{os.path.basename(tool_path)} exited with {result.returncode}: "
            f"{result.stderr.strip()}",
        )
    return result.stdout


def read_text_file(file_path: str) -> str:
    """Read a UTF-8 file, rejecting invalid byte sequences."""
    try:
        raw_bytes = Path(file_path).read_bytes()
    except OSError as exc:
        raise RenderValidationError(
            INPUT_FILE_CODE, f"cannot read input file {file_path}: {exc.strerror}"
        ) from exc
    try:
        return raw_bytes.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise RenderValidationError(
            INPUT_FILE_CODE, f"{file_path} has invalid UTF-8 at byte {exc.start}"
        ) from exc


def load_metadata(metadata_file: str) -> VideoMetadata:
    """Read the metadata file; asset paths resolve against its directory."""
    return parse_metadata(
        read_text_file(metadata_file), os.path.dirname(os.path.abspath(metadata_file))
    )


def load_caption_settings(settings_file: str | None) -> CaptionSettings:
    if settings_file is None:
        return CaptionSettings()
    try:
        values = json.loads(read_text_file(settings_file))
    except json.JSONDecodeError as exc:
        raise RenderValidationError(
            INVALID_CAPTION_CODE,
            f"caption settings are not valid JSON at line {exc.lineno}",
        ) from exc
    if not isinstance(values, dict):
        raise RenderValidationError(
            INVALID_CAPTION_CODE, "caption settings must be a JSON object"
        )
    return parse_caption_settings(values)


def probe_audio_seconds(audio_path: str) -> float:
    """Audio duration reported by ffprobe."""
    if not os.path.isfile(audio_path):
        raise RenderValidationError(AUDIO_FILE_CODE, f"audio track not found: {audio_path}")
    output = query_tool(
        require_tool("ffprobe"),
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "csv=p=0",
        audio_path,
    )
    try:
        seconds = float(output.strip())
    except ValueError as exc:
        raise RenderValidationError(
            AUDIO_FILE_CODE, f"ffprobe reported no duration for {audio_path}"
        ) from exc
    if seconds <= 0:
        raise RenderValidationError(
            AUDIO_FILE_CODE, f"audio track is empty: {audio_path}"
        )
    return seconds


def can_load_font(font_path: str) -> bool:
    try:
        ImageFont.truetype(font_path, size=FONT_SAMPLE_SIZE)
    except OSError as exc:
        LOGGER.warning("%s: skipped font %s (%s)", FONT_LOAD_CODE, font_path, exc)
        return False
    return True


def discover_fonts(fonts_dir: str) -> list[str]:
    """Loadable .ttf/.otf files in fonts_dir, sorted by name."""
    if not os.path.isdir(fonts_dir):
        raise RenderValidationError(
            FONT_DIR_CODE, f"fonts directory does not exist: {fonts_dir}"
        )
    candidates = sorted(
        entry.path
        for entry in os.scandir(fonts_dir)
        if entry.is_file() and entry.name.lower().endswith(FONT_EXTENSIONS)
    )
    if not candidates:
        raise RenderValidationError(FONT_DIR_CODE, f"no font files in {fonts_dir}")
    loadable = [path for path in candidates if can_load_font(path)]
    if not loadable:
        raise RenderValidationError(
            FONT_LOAD_CODE, f"none of the fonts in {fonts_dir} could be loaded"
        )
    return loadable


def select_font_pair(
    font_files: Sequence[str], font_family: str | None
) -> Tuple[str, str]:
    """Pick regular and bold font files, preferring the requested family."""
    candidates = list(font_files)
    if font_family:
        family_matches = [
            path
            for path in candidates
            if font_family.lower().replace(" ", "") in os.path.basename(path).lower()
        ]
        if family_matches:
            candidates = family_matches
        else:
            LOGGER.warning(
                "%s: font family %s not found, using %s",
                FONT_LOAD_CODE,
                font_family,
                os.path.basename(candidates[0]),
            )

    def is_bold(path: str) -> bool:
        base_name = os.path.basename(path).lower()
        return any(marker in base_name for marker in BOLD_FONT_MARKERS)

    regular_fonts = [path for path in candidates if not is_bold(path)]
    bold_fonts = [path for path in candidates if is_bold(path)]
    regular_font = regular_fonts[0] if regular_fonts else candidates[0]
    bold_font = bold_fonts[0] if bold_fonts else regular_font
    return regular_font, bold_font


def build_font_book(fonts_dir: str | None, font_family: str | None) -> FontBook:
    """Load fonts from fonts_dir, or use Pillow's built-in font."""
    if fonts_dir is None:
        return FontBook()
    regular_font, bold_font = select_font_pair(discover_fonts(fonts_dir), font_family)
    LOGGER.info(
        "render_short_video.fonts: regular=%s bold=%s",
        os.path.basename(regular_font),
        os.path.basename(bold_font),
    )
    return FontBook(regular_font, bold_font)


def parse_gradient(value: str) -> GradientBackground:
    """Parse FROM,TO into a vertical gradient."""
    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 2 or not all(parts):
        raise RenderValidationError(
            INVALID_CONFIG_CODE, f"background gradient must be FROM,TO: {value!r}"
        )
    return GradientBackground(
        top_rgba=parse_hex_color_to_rgba(parts[0]),
        bottom_rgba=parse_hex_color_to_rgba(parts[1]),
    )


def collect_caption_overrides(parsed: argparse.Namespace) -> dict[str, Any]:
    """Map caption CLI flags onto caption setting keys."""
    overrides: dict[str, Any] = {}
    if parsed.words_per_batch is not None:
        overrides["numSimultaneousWords"] = parsed.words_per_batch
    if parsed.stream is not None:
        overrides["stream"] = parsed.stream
    if parsed.fade_in is not None:
        overrides["fadeInAnimation"] = parsed.fade_in
    if parsed.caption_font_size is not None:
        overrides["fontSize"] = parsed.caption_font_size
    if parsed.caption_color is not None:
        overrides["textColor"] = parsed.caption_color
    if parsed.highlight_color is not None:
        overrides["currentWordColor"] = parsed.highlight_color
    if parsed.highlight_background_color is not None:
        overrides["currentWordBackgroundColor"] = parsed.highlight_background_color
    return overrides


def build_effect_selection(parsed: argparse.Namespace) -> EffectSelection:
    if parsed.header_preset is not None:
        header = get_header_preset(parsed.header_preset)
    else:
        header = HeaderEffectConfig(
            effect=parse_enum(HeaderEffectType, parsed.header_effect)
        )
    return EffectSelection(
        header=header,
        image_mode=parse_enum(ImageAnimationMode, parsed.image_animation),
        image_filter=(
            parse_enum(FilterEffectType, parsed.image_filter)
            if parsed.image_filter is not None
            else None
        ),
        line_effect=parse_enum(LineEffectType, parsed.line_effect),
        particle_effect=parse_enum(ParticleEffectType, parsed.particle_effect),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="render_short_video.py", add_help=True)
    parser.add_argument("--metadata-file", required=True, help="JSON with audioUrl, images, words")
    parser.add_argument("--output-video-file", default="short.mp4")
    parser.add_argument("--audio-track", default=None, help="overrides the metadata audioUrl")
    parser.add_argument("--width", type=int, default=1080)
    parser.add_argument("--height", type=int, default=1920)
    parser.add_argument("--fps", type=int, default=30)
    parser.add_argument("--duration-seconds", type=float, default=None)
    background_group = parser.add_mutually_exclusive_group()
    background_group.add_argument("--background", default="#000000", help="#RRGGBB or a color name")
    background_group.add_argument("--background-gradient", default=None, help="FROM,TO")
    parser.add_argument("--fonts-dir", default=None)
    parser.add_argument("--caption-settings-file", default=None)
    parser.add_argument("--words-per-batch", type=int, default=None)
    parser.add_argument("--stream", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--fade-in", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--caption-font-size", type=int, default=None)
    parser.add_argument("--caption-color", default=None)
    parser.add_argument("--highlight-color", default=None)
    parser.add_argument("--highlight-background-color", default=None)
    parser.add_argument("--header-text", default=None)
    header_group = parser.add_mutually_exclusive_group()
    header_group.add_argument("--header-effect", default=HeaderEffectType.NONE.value)
    header_group.add_argument("--header-preset", default=None)
    parser.add_argument("--image-animation", default=ImageAnimationMode.ALTERNATING.value)
    parser.add_argument(
        "--image-filter", default=None, help="filter for every slide; random mode picks one if unset"
    )
    parser.add_argument("--line-effect", default=LineEffectType.RADIAL_BURST.value)
    parser.add_argument("--particle-effect", default=ParticleEffectType.EXPLOSION.value)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument(
        "--emit-plan", action="store_true", help="print the caption plan as JSON and exit"
    )
    return parser


def resolve_duration(
    parsed: argparse.Namespace,
    metadata: VideoMetadata,
    settings: CaptionSettings,
    audio_track: str | None,
) -> float:
    """Explicit duration, else the longer of the captions and the audio."""
    if parsed.duration_seconds is not None:
        if audio_track:
            LOGGER.warning(
                "render_short_video.input.duration_override: audio is trimmed or "
                "padded to %.3fs",
                parsed.duration_seconds,
            )
        return parsed.duration_seconds
    caption_end = metadata.words[-1].end + settings.trailing_hold_seconds
    if audio_track is None or parsed.emit_plan:
        return caption_end
    return max(caption_end, probe_audio_seconds(audio_track))


def parse_args(argv: Sequence[str]) -> RenderRequest:
    """Parse CLI arguments into a RenderRequest."""
    parsed = build_parser().parse_args(argv)
    metadata = load_metadata(parsed.metadata_file)
    settings = parse_caption_settings(
        collect_caption_overrides(parsed),
        base=load_caption_settings(parsed.caption_settings_file),
    )
    effects = build_effect_selection(parsed)
    background_rgba = parse_hex_color_to_rgba(parsed.background)
    background_gradient = (
        parse_gradient(parsed.background_gradient) if parsed.background_gradient else None
    )
    audio_track = parsed.audio_track or metadata.audio_path

    config = ShortVideoConfig(
        output_video_file=parsed.output_video_file,
        width=parsed.width,
        height=parsed.height,
        fps=parsed.fps,
        duration_seconds=resolve_duration(parsed, metadata, settings, audio_track),
        background_rgba=background_rgba,
        background_gradient=background_gradient,
        fonts_dir=parsed.fonts_dir,
        seed=parsed.seed,
    )
    return RenderRequest(
        config=config,
        metadata=metadata,
        settings=settings,
        effects=effects,
        header_text=parsed.header_text,
        audio_track=audio_track,
        emit_plan=parsed.emit_plan,
    )


def check_encoder_support(ffmpeg_path: str, with_audio: bool) -> None:
    """Fail before rendering when ffmpeg lacks a required encoder or format."""
    encoders = query_tool(ffmpeg_path, "-hide_banner", "-encoders")
    pixel_formats = query_tool(ffmpeg_path, "-hide_banner", "-pix_fmts")
    missing = [name for name in (VIDEO_CODEC,) if name not in encoders]
    if with_audio and AUDIO_CODEC not in encoders:
        missing.append(AUDIO_CODEC)
    if OUTPUT_PIXEL_FORMAT not in pixel_formats:
        missing.append(OUTPUT_PIXEL_FORMAT)
    if missing:
        raise RenderPipelineError(
            FFMPEG_UNSUPPORTED_CODE, f"ffmpeg lacks support for {', '.join(missing)}"
        )


def build_ffmpeg_command(
    ffmpeg_path: str, config: ShortVideoConfig, audio_track: str | None
) -> list[str]:
    """ffmpeg arguments reading raw RGB frames from stdin."""
    command = [
        ffmpeg_path,
        "-y",
        "-loglevel",
        "error",
        "-f",
        "rawvideo",
        "-pix_fmt",
        INPUT_PIXEL_FORMAT,
        "-s",
        f"{config.width}x{config.height}",
        "-r",
        str(config.fps),
        "-i",
        "-",
    ]
    if audio_track:
        command += ["-i", audio_track, "-map", "0:v:0", "-map", "1:a:0"]
    command += [
        "-c:v",
        VIDEO_CODEC,
        "-crf",
        VIDEO_CRF,
        "-preset",
        VIDEO_PRESET,
        "-pix_fmt",
        OUTPUT_PIXEL_FORMAT,
    ]
    if audio_track:
        command += [
            "-c:a",
            AUDIO_CODEC,
            "-b:a",
            AUDIO_BITRATE,
            "-af",
            AUDIO_PAD_FILTER,
            "-shortest",
        ]
    else:
        command.append("-an")
    command += ["-movflags", "+faststart", config.output_video_file]
    return command


def compute_total_frames(duration_seconds: float, fps: int) -> int:
    """Number of frames covering duration_seconds."""
    total_frames = int(round(duration_seconds * fps))
    if total_frames < 1:
        raise RenderValidationError(
            INVALID_CONFIG_CODE, f"{duration_seconds}s at {fps} fps is shorter than one frame"
        )
    return total_frames


def emit_plan(request: RenderRequest) -> None:
    """Print the caption plan as JSON."""
    plan = build_caption_plan(request.metadata.words, request.settings)
    payload = caption_plan_to_dict(plan, request.config.fps)
    payload["duration_seconds"] = round(request.config.duration_seconds, 6)
    payload["total_frames"] = compute_total_frames(
        request.config.duration_seconds, request.config.fps
    )
    json.dump(payload, sys.stdout, ensure_ascii=True)


def render_video(
    config: ShortVideoConfig, scene: ShortScene, ffmpeg_path: str, audio_track: str | None
) -> None:
    """Step the scene timeline and pipe every rasterized frame into ffmpeg."""
    total_frames = compute_total_frames(scene.duration_seconds, config.fps)
    timeline = Timeline(config.fps, on_settle=scene.view.layout)
    timeline.spawn(scene.process)
    background = build_background(
        config.width,
        config.height,
        config.background_rgba,
        config.background_gradient,
        config.seed,
    )
    rasterizer = FrameRasterizer(scene.view, background)

    LOGGER.info(
        "render_short_video.render: frames=%d size=%dx%d fps=%d",
        total_frames,
        config.width,
        config.height,
        config.fps,
    )
    try:
        encoder = subprocess.Popen(
            build_ffmpeg_command(ffmpeg_path, config, audio_track),
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        raise RenderPipelineError(FFMPEG_EXEC_CODE, f"cannot start ffmpeg: {exc}") from exc

    try:
        try:
            for _ in timeline.frames(total_frames):
                encoder.stdin.write(rasterizer.render_bytes())
        except BrokenPipeError:
            LOGGER.error("%s: ffmpeg closed its input early", FFMPEG_PROCESS_CODE)
        _, stderr_bytes = encoder.communicate()
        if encoder.returncode != 0:
            raise RenderPipelineError(
                FFMPEG_PROCESS_CODE,
                f"ffmpeg exited with {encoder.returncode}: "
                f"{stderr_bytes.decode('utf-8', errors='replace').strip()}",
            )
    finally:
        if encoder.poll() is None:
            encoder.kill()
            encoder.wait()

    LOGGER.info("render_short_video.render: wrote %s", config.output_video_file)


def main() -> int:
    """CLI entrypoint."""
    configure_logging()

    try:
        request = parse_args(sys.argv[1:])
        if request.emit_plan:
            emit_plan(request)
            return 0
        font_book = build_font_book(request.config.fonts_dir, request.settings.font_family)
        images = [load_image(path) for path in request.metadata.image_paths]
        scene = build_short_scene(
            request.config,
            request.metadata,
            request.settings,
            request.effects,
            font_book,
            images,
            request.header_text,
        )
        ffmpeg_path = require_tool("ffmpeg")
        check_encoder_support(ffmpeg_path, with_audio=request.audio_track is not None)
        render_video(request.config, scene, ffmpeg_path, request.audio_track)
        return 0
    except (RenderValidationError, RenderPipelineError) as exc:
        LOGGER.error("%s: %s", exc.code, str(exc).strip())
        return 1
    except Exception as exc:
        LOGGER.error("render_short_video.unhandled_error: %s", str(exc).strip())
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
