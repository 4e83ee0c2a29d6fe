"""FFmpeg encoder adapter for the export pipeline."""

import asyncio
import logging
from typing import Optional

from overlay_export.config import Settings, get_settings
from overlay_export.exceptions import EncodeError, EncodeTimeoutError

logger = logging.getLogger(__name__)

# Lines of ffmpeg stderr kept in error messages.
STDERR_TAIL_LINES = 20


class FFmpegEncoder:
    """Runs one ffmpeg encode with the fixed export codec settings."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def build_command(
        self,
        input_path: str,
        output_path: str,
        filter_graph: Optional[str] = None,
        duration_s: Optional[float] = None,
    ) -> list[str]:
        """Build the FFmpeg export command without executing it.

        Args:
            input_path: Source video
            output_path: Destination file (the container is forced, so any name works)
            filter_graph: Optional video filter graph (text overlays)
            duration_s: Optional hard cap on output duration

        Returns:
            FFmpeg command as list[str]
        """
        s = self.settings
        cmd = [
            s.ffmpeg_path,
            "-y",
            "-hide_banner",
            "-nostdin",
            "-i", input_path,
        ]
        if filter_graph:
            cmd.extend(["-vf", filter_graph])
        cmd.extend([
            "-c:v", s.export_video_codec,
            "-preset", s.export_preset,
            "-crf", str(s.export_crf),
            "-pix_fmt", "yuv420p",
            "-c:a", s.export_audio_codec,
            "-b:a", s.export_audio_bitrate,
            "-movflags", s.export_movflags,
        ])
        if duration_s is not None and duration_s > 0:
            cmd.extend(["-t", f"{duration_s:.3f}"])
        cmd.extend(["-f", s.export_container, output_path])
        return cmd

    async def encode(
        self,
        input_path: str,
        output_path: str,
        filter_graph: Optional[str] = None,
        duration_s: Optional[float] = None,
    ) -> str:
        """Encode ``input_path`` into ``output_path``.

        The process is killed if it outlives ``encode_timeout_s`` or the
        awaiting task is cancelled.

        Raises:
            EncodeTimeoutError: If the encode exceeded its time budget
            EncodeError: If ffmpeg is missing or exits non-zero
        """
        cmd = self.build_command(input_path, output_path, filter_graph, duration_s)
        logger.info(f"[ENCODE] Command: {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EncodeError(f"Could not start ffmpeg: {e}")

        timeout = self.settings.encode_timeout_s
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._kill(proc)
            logger.error(f"[ENCODE] Timed out after {timeout}s: {output_path}")
            raise EncodeTimeoutError(timeout)
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        if proc.returncode != 0:
            tail = "\n".join(
                stderr.decode("utf-8", errors="replace").strip().splitlines()[-STDERR_TAIL_LINES:]
            )
            logger.error(f"[ENCODE] FFmpeg exited with {proc.returncode}: {tail}")
            raise EncodeError(f"ffmpeg exited with code {proc.returncode}: {tail}")

        return output_path

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
