"""
Export pipeline for a single uploaded video.

Each job runs through:
1. Probe dimensions and natural duration
2. Apply the duration cap and clamp overlay windows
3. Compile text overlays into a drawtext filter graph
4. Encode to a hidden partial file, then promote it to its public name

The uploaded input is always deleted when the job ends, whatever the outcome.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
from uuid import uuid4

from overlay_export.config import Settings, get_settings
from overlay_export.exceptions import OverlayExportError
from overlay_export.render.duration import clamp_overlays, effective_duration, is_capped
from overlay_export.render.encoder import FFmpegEncoder
from overlay_export.render.text_renderer import TextRenderer
from overlay_export.schemas.export import JobFailure, JobResult, JobSuccess
from overlay_export.schemas.overlay import TextOverlay
from overlay_export.services.storage_service import LocalStorageService, StoredAsset
from overlay_export.utils.media_info import VideoMetadata, get_video_metadata

logger = logging.getLogger(__name__)


class ExportStatus(Enum):
    """Export job status."""

    QUEUED = "queued"
    PROBING = "probing"
    COMPILING = "compiling"
    ENCODING = "encoding"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[ExportStatus, frozenset[ExportStatus]] = {
    ExportStatus.QUEUED: frozenset({ExportStatus.PROBING, ExportStatus.FAILED}),
    ExportStatus.PROBING: frozenset({ExportStatus.COMPILING, ExportStatus.FAILED}),
    ExportStatus.COMPILING: frozenset({ExportStatus.ENCODING, ExportStatus.FAILED}),
    ExportStatus.ENCODING: frozenset({ExportStatus.COMPLETED, ExportStatus.FAILED}),
    ExportStatus.COMPLETED: frozenset(),
    ExportStatus.FAILED: frozenset(),
}


@dataclass
class ExportJob:
    """One video export request."""

    asset: StoredAsset
    overlays: list[TextOverlay]
    requested_name: str = "video"
    max_duration: Optional[float] = None
    id: str = field(default_factory=lambda: uuid4().hex)
    status: ExportStatus = ExportStatus.QUEUED
    history: list[ExportStatus] = field(default_factory=lambda: [ExportStatus.QUEUED])
    metadata: Optional[VideoMetadata] = None
    effective_duration: Optional[float] = None
    filter_graph: Optional[str] = None
    output_filename: Optional[str] = None
    error: Optional[OverlayExportError] = None

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.status]

    def transition(self, status: ExportStatus) -> None:
        """Move to ``status``; illegal transitions are programming errors."""
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise RuntimeError(f"Illegal job transition {self.status.value} -> {status.value}")
        self.status = status
        self.history.append(status)


ProbeFunc = Callable[[str, Settings], VideoMetadata]


class ExportPipeline:
    """Runs export jobs against local storage and the ffmpeg encoder."""

    def __init__(
        self,
        storage: LocalStorageService,
        settings: Optional[Settings] = None,
        renderer: Optional[TextRenderer] = None,
        encoder: Optional[FFmpegEncoder] = None,
        probe: Optional[ProbeFunc] = None,
    ):
        self.settings = settings or get_settings()
        self.storage = storage
        self.renderer = renderer or TextRenderer(self.settings)
        self.encoder = encoder or FFmpegEncoder(self.settings)
        self._probe = probe or get_video_metadata

    async def run(self, job: ExportJob) -> JobResult:
        """
        Execute one export job to a terminal state.

        Job errors are returned as a JobFailure; cancellation is propagated
        after the job's files are cleaned up.

        Args:
            job: A queued job whose asset is in the input area

        Returns:
            JobSuccess with the download name, or JobFailure
        """
        started = time.monotonic()
        partial_path = None
        logger.info(f"[EXPORT] Job {job.id} started: {job.requested_name} ({len(job.overlays)} overlays)")

        try:
            job.transition(ExportStatus.PROBING)
            metadata = await asyncio.to_thread(self._probe, str(job.asset.path), self.settings)
            job.metadata = metadata

            job.transition(ExportStatus.COMPILING)
            duration = effective_duration(metadata.duration, job.max_duration)
            job.effective_duration = duration
            overlays = clamp_overlays(job.overlays, duration)
            job.filter_graph = self.renderer.compile_filter_graph(
                overlays, metadata.width, metadata.height
            )

            job.transition(ExportStatus.ENCODING)
            filename = self.storage.new_output_filename(job.requested_name)
            partial_path = self.storage.partial_output_path(filename)
            await self.encoder.encode(
                str(job.asset.path),
                str(partial_path),
                job.filter_graph,
                duration if is_capped(metadata.duration, job.max_duration) else None,
            )
            self.storage.promote_output(partial_path, filename)
            partial_path = None

            job.output_filename = filename
            job.transition(ExportStatus.COMPLETED)
            logger.info(
                f"[EXPORT] Job {job.id} completed in {time.monotonic() - started:.1f}s: {filename}"
            )
            return JobSuccess(
                filename=filename,
                download_url=self.storage.download_url(filename),
                original_name=job.requested_name,
            )

        except OverlayExportError as e:
            return self._fail(job, e)
        except asyncio.CancelledError:
            self._mark_failed(job, OverlayExportError("Export cancelled"))
            logger.warning(f"[EXPORT] Job {job.id} cancelled")
            raise
        except Exception as e:
            logger.exception(f"[EXPORT] Job {job.id} crashed: {e}")
            return self._fail(job, OverlayExportError(str(e) or e.__class__.__name__))
        finally:
            if partial_path is not None:
                self.storage.delete_file(partial_path)
            self.storage.delete_input(job.asset)

    def _mark_failed(self, job: ExportJob, error: OverlayExportError) -> None:
        job.error = error
        if not job.is_terminal:
            job.transition(ExportStatus.FAILED)

    def _fail(self, job: ExportJob, error: OverlayExportError) -> JobFailure:
        stage = job.status.value
        self._mark_failed(job, error)
        logger.warning(f"[EXPORT] Job {job.id} failed while {stage}: [{error.code}] {error.message}")
        return JobFailure(
            original_name=job.requested_name,
            error=error.message,
            code=error.code,
        )
