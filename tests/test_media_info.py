"""
Tests for ffprobe metadata extraction.

Test cases:
1. Dimensions and duration from the first video stream
2. Container duration fallback
3. Probe failures raise ProbeError
"""

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from overlay_export.config import Settings
from overlay_export.exceptions import ProbeError
from overlay_export.utils.media_info import get_video_metadata, is_ffmpeg_available


def _completed(payload: dict | str, returncode: int = 0, stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stdout = payload if isinstance(payload, str) else json.dumps(payload)
    result.stderr = stderr
    return result


@pytest.fixture
def probe_settings() -> Settings:
    return Settings(ffprobe_path="ffprobe-test", probe_timeout_s=5)


class TestGetVideoMetadata:
    """Test metadata extraction with a mocked ffprobe."""

    def test_first_video_stream(self, probe_settings):
        """Audio streams before the video stream are skipped."""
        payload = {
            "streams": [
                {"codec_type": "audio", "duration": "12.0"},
                {"codec_type": "video", "width": 1920, "height": 1080, "duration": "60.040"},
            ],
            "format": {"duration": "61.0"},
        }
        with patch("subprocess.run", return_value=_completed(payload)) as run:
            meta = get_video_metadata("/tmp/in.mp4", probe_settings)

        assert (meta.width, meta.height) == (1920, 1080)
        assert meta.duration == pytest.approx(60.04)
        cmd = run.call_args[0][0]
        assert cmd[0] == "ffprobe-test"
        assert cmd[-1] == "/tmp/in.mp4"
        assert run.call_args[1]["timeout"] == 5

    def test_format_duration_fallback(self, probe_settings):
        """WebM streams often omit duration."""
        payload = {
            "streams": [{"codec_type": "video", "width": 640, "height": 360}],
            "format": {"duration": "8.5"},
        }
        with patch("subprocess.run", return_value=_completed(payload)):
            meta = get_video_metadata("/tmp/in.webm", probe_settings)
        assert meta.duration == 8.5

    def test_no_video_stream(self, probe_settings):
        payload = {"streams": [{"codec_type": "audio"}], "format": {"duration": "3"}}
        with patch("subprocess.run", return_value=_completed(payload)):
            with pytest.raises(ProbeError, match="No video stream"):
                get_video_metadata("/tmp/in.mp3", probe_settings)

    def test_missing_duration(self, probe_settings):
        payload = {"streams": [{"codec_type": "video", "width": 640, "height": 360}], "format": {}}
        with patch("subprocess.run", return_value=_completed(payload)):
            with pytest.raises(ProbeError, match="Duration"):
                get_video_metadata("/tmp/in.mp4", probe_settings)

    def test_ffprobe_error_exit(self, probe_settings):
        with patch("subprocess.run", return_value=_completed("", 1, "Invalid data found")):
            with pytest.raises(ProbeError, match="Invalid data found") as exc_info:
                get_video_metadata("/tmp/in.mp4", probe_settings)
        assert exc_info.value.code == "PROBE_FAILED"

    def test_ffprobe_missing(self, probe_settings):
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(ProbeError, match="not found"):
                get_video_metadata("/tmp/in.mp4", probe_settings)

    def test_ffprobe_not_executable(self, probe_settings):
        with patch("subprocess.run", side_effect=PermissionError("Permission denied")):
            with pytest.raises(ProbeError, match="Could not run ffprobe") as exc_info:
                get_video_metadata("/tmp/in.mp4", probe_settings)
        assert exc_info.value.code == "PROBE_FAILED"

    def test_ffprobe_timeout(self, probe_settings):
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("ffprobe", 5)):
            with pytest.raises(ProbeError, match="timed out"):
                get_video_metadata("/tmp/in.mp4", probe_settings)

    def test_invalid_json(self, probe_settings):
        with patch("subprocess.run", return_value=_completed("not json")):
            with pytest.raises(ProbeError, match="parse"):
                get_video_metadata("/tmp/in.mp4", probe_settings)


class TestFfmpegAvailable:
    """Test encoder availability check."""

    def test_available(self):
        with patch("subprocess.run", return_value=_completed("", 0)):
            assert is_ffmpeg_available(Settings()) is True

    def test_missing_binary(self):
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            assert is_ffmpeg_available(Settings()) is False

    def test_error_exit(self):
        with patch("subprocess.run", return_value=_completed("", 1)):
            assert is_ffmpeg_available(Settings()) is False
