"""Retention sweeper for the input and output areas."""

import asyncio
import logging
import stat
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from overlay_export.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    scanned: int = 0
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class ArtifactSweeper:
    """Deletes files older than the retention period.

    Files another request removes mid-sweep are skipped; per-file failures
    are logged and the sweep continues.
    """

    def __init__(self, directories: Sequence[Path], retention_s: float):
        self.directories = [Path(d) for d in directories]
        self.retention_s = retention_s

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ArtifactSweeper":
        settings = settings or get_settings()
        return cls(
            [Path(settings.upload_dir), Path(settings.output_dir)],
            settings.retention_hours * 3600,
        )

    def sweep(self, now: Optional[float] = None) -> SweepReport:
        """Delete every regular file whose mtime is older than the retention."""
        now = time.time() if now is None else now
        cutoff = now - self.retention_s
        report = SweepReport()

        for directory in self.directories:
            try:
                entries = list(directory.iterdir())
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"[CLEANUP] Cannot list {directory}: {e}")
                continue

            for path in entries:
                try:
                    info = path.stat()
                except FileNotFoundError:
                    continue
                except OSError as e:
                    logger.warning(f"[CLEANUP] Cannot stat {path}: {e}")
                    report.failed.append(str(path))
                    continue
                if not stat.S_ISREG(info.st_mode):
                    continue

                report.scanned += 1
                if info.st_mtime >= cutoff:
                    continue

                try:
                    path.unlink()
                except FileNotFoundError:
                    continue
                except OSError as e:
                    logger.warning(f"[CLEANUP] Failed to delete {path}: {e}")
                    report.failed.append(str(path))
                    continue
                report.deleted.append(str(path))
                logger.info(f"[CLEANUP] Removed old file: {path.name}")

        if report.deleted or report.failed:
            logger.info(
                f"[CLEANUP] Sweep done: {len(report.deleted)} deleted, "
                f"{len(report.failed)} failed, {report.scanned} scanned"
            )
        return report


class CleanupScheduler:
    """Runs the sweeper periodically on the event loop."""

    def __init__(self, sweeper: ArtifactSweeper, interval_s: float):
        self.sweeper = sweeper
        self.interval_s = interval_s
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info(f"[CLEANUP] Scheduler started (every {self.interval_s:g}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("[CLEANUP] Scheduler stopped")

    async def run_once(self) -> SweepReport:
        return await asyncio.to_thread(self.sweeper.sweep)

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"[CLEANUP] Sweep failed: {e}")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_s)
            except asyncio.TimeoutError:
                pass
