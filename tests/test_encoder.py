"""Tests for the ffmpeg encoder adapter."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from overlay_export.config import Settings
from overlay_export.exceptions import EncodeError, EncodeTimeoutError
from overlay_export.render.encoder import FFmpegEncoder


def _process(returncode: int = 0, stderr: bytes = b"") -> MagicMock:
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(b"", stderr))
    proc.wait = AsyncMock(return_value=returncode)
    return proc


class TestBuildCommand:
    """Tests for FFmpeg command construction."""

    def test_fixed_codec_settings(self):
        cmd = FFmpegEncoder(Settings()).build_command("in.mp4", "out.mp4")
        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-i") + 1] == "in.mp4"
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-preset") + 1] == "medium"
        assert cmd[cmd.index("-crf") + 1] == "23"
        assert cmd[cmd.index("-c:a") + 1] == "aac"
        assert cmd[cmd.index("-b:a") + 1] == "128k"
        assert cmd[cmd.index("-movflags") + 1] == "+faststart"
        assert cmd[-3:] == ["-f", "mp4", "out.mp4"]

    def test_without_filter_or_cap(self):
        cmd = FFmpegEncoder(Settings()).build_command("in.mp4", "out.mp4")
        assert "-vf" not in cmd
        assert "-t" not in cmd

    def test_with_filter_graph(self):
        cmd = FFmpegEncoder(Settings()).build_command("in.mp4", "out.mp4", "drawtext=text=Hi")
        assert cmd[cmd.index("-vf") + 1] == "drawtext=text=Hi"
        assert cmd.index("-vf") > cmd.index("-i")

    def test_with_duration_cap(self):
        cmd = FFmpegEncoder(Settings()).build_command("in.mp4", "out.mp4", None, 20)
        assert cmd[cmd.index("-t") + 1] == "20.000"
        assert cmd.index("-t") < cmd.index("out.mp4")

    def test_custom_settings(self):
        settings = Settings(ffmpeg_path="/opt/ffmpeg", export_crf=18, export_preset="fast")
        cmd = FFmpegEncoder(settings).build_command("in.mp4", "out.mp4")
        assert cmd[0] == "/opt/ffmpeg"
        assert cmd[cmd.index("-crf") + 1] == "18"
        assert cmd[cmd.index("-preset") + 1] == "fast"


class TestEncode:
    """Tests for running the encoder with a mocked subprocess."""

    @pytest.mark.asyncio
    async def test_success(self):
        proc = _process()
        with patch(
            "overlay_export.render.encoder.asyncio.create_subprocess_exec",
            AsyncMock(return_value=proc),
        ) as create:
            result = await FFmpegEncoder(Settings()).encode("in.mp4", "out.mp4", "drawtext=text=Hi")

        assert result == "out.mp4"
        args = create.call_args[0]
        assert args[0] == "ffmpeg"
        assert "drawtext=text=Hi" in args

    @pytest.mark.asyncio
    async def test_non_zero_exit(self):
        proc = _process(1, b"frame=1\nError initializing filter 'drawtext'\n")
        with patch(
            "overlay_export.render.encoder.asyncio.create_subprocess_exec",
            AsyncMock(return_value=proc),
        ):
            with pytest.raises(EncodeError, match="drawtext") as exc_info:
                await FFmpegEncoder(Settings()).encode("in.mp4", "out.mp4")
        assert exc_info.value.code == "ENCODE_FAILED"

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        with patch(
            "overlay_export.render.encoder.asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError("ffmpeg")),
        ):
            with pytest.raises(EncodeError, match="Could not start ffmpeg"):
                await FFmpegEncoder(Settings()).encode("in.mp4", "out.mp4")

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        async def hang():
            await asyncio.sleep(10)

        proc = _process()
        proc.communicate = hang
        with patch(
            "overlay_export.render.encoder.asyncio.create_subprocess_exec",
            AsyncMock(return_value=proc),
        ):
            with pytest.raises(EncodeTimeoutError) as exc_info:
                await FFmpegEncoder(Settings(encode_timeout_s=0.05)).encode("in.mp4", "out.mp4")

        proc.kill.assert_called_once()
        proc.wait.assert_awaited()
        assert exc_info.value.code == "ENCODE_TIMEOUT"
        assert isinstance(exc_info.value, EncodeError)
