"""Media file information utilities using FFprobe."""

import json
import logging
import subprocess
from dataclasses import dataclass

from overlay_export.config import Settings, get_settings
from overlay_export.exceptions import ProbeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VideoMetadata:
    """Dimensions and natural duration of the first video stream."""

    width: int
    height: int
    duration: float  # seconds


def _run_ffprobe(file_path: str, settings: Settings, *args: str) -> dict:
    """Run ffprobe and return parsed JSON."""
    cmd = [
        settings.ffprobe_path,
        "-v", "error",
        "-print_format", "json",
        *args,
        file_path,
    ]

    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, timeout=settings.probe_timeout_s
        )
    except FileNotFoundError:
        raise ProbeError(f"ffprobe not found: {settings.ffprobe_path}")
    except subprocess.TimeoutExpired:
        raise ProbeError(f"ffprobe timed out after {settings.probe_timeout_s:g}s")
    except OSError as e:
        raise ProbeError(f"Could not run ffprobe: {e}")

    if result.returncode != 0:
        raise ProbeError(f"ffprobe failed: {result.stderr.strip() or 'unreadable media'}")

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ProbeError(f"Failed to parse ffprobe output: {e}")


def _parse_duration(value) -> float | None:
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    return duration if duration > 0 else None


def get_video_metadata(file_path: str, settings: Settings | None = None) -> VideoMetadata:
    """
    Probe width, height and duration of the first video stream.

    The stream duration is preferred; the container duration is used when the
    stream does not report one (common for MKV/WebM).

    Args:
        file_path: Path to media file
        settings: Optional settings override

    Returns:
        VideoMetadata for the first video stream

    Raises:
        ProbeError: If ffprobe fails or no usable video stream exists
    """
    settings = settings or get_settings()
    data = _run_ffprobe(file_path, settings, "-show_format", "-show_streams")

    stream = next(
        (s for s in data.get("streams", []) if s.get("codec_type") == "video"),
        None,
    )
    if stream is None:
        raise ProbeError(f"No video stream found in: {file_path}")

    width = stream.get("width")
    height = stream.get("height")
    if not width or not height:
        raise ProbeError(f"Video dimensions not found in: {file_path}")

    duration = _parse_duration(stream.get("duration"))
    if duration is None:
        duration = _parse_duration(data.get("format", {}).get("duration"))
    if duration is None:
        raise ProbeError(f"Duration not found in: {file_path}")

    logger.info(f"[PROBE] {file_path}: {width}x{height}, {duration:.3f}s")
    return VideoMetadata(width=int(width), height=int(height), duration=duration)


def is_ffmpeg_available(settings: Settings | None = None) -> bool:
    """
    Check if the ffmpeg binary can be executed.

    Returns:
        True if `ffmpeg -version` exits cleanly, False otherwise
    """
    settings = settings or get_settings()
    try:
        result = subprocess.run(
            [settings.ffmpeg_path, "-version"], capture_output=True, timeout=10
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0
