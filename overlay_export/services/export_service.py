"""Export submission service: single exports, batches, downloads, health."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

from overlay_export.config import Settings, get_settings
from overlay_export.exceptions import BatchValidationError, ValidationError
from overlay_export.render.pipeline import ExportJob, ExportPipeline, ExportStatus
from overlay_export.schemas.export import BatchResult, HealthResponse, JobFailure, JobResult, JobSuccess
from overlay_export.schemas.overlay import load_batch_metadata, parse_export_metadata, parse_overlays
from overlay_export.services.storage_service import LocalStorageService, StoredAsset
from overlay_export.utils.media_info import is_ffmpeg_available

logger = logging.getLogger(__name__)


class ExportService:
    """Accepts export submissions and runs them through the pipeline.

    Every asset handed to this service is deleted by the time the call
    returns or raises.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[LocalStorageService] = None,
        pipeline: Optional[ExportPipeline] = None,
    ):
        self.settings = settings or get_settings()
        self.storage = storage or LocalStorageService(self.settings)
        self.pipeline = pipeline or ExportPipeline(self.storage, self.settings)

    async def submit_single(
        self,
        asset: StoredAsset,
        overlays: Any = None,
        requested_name: Optional[str] = None,
        max_duration: Optional[float] = None,
    ) -> JobResult:
        """
        Export one video.

        Args:
            asset: Stored upload
            overlays: TextOverlay list, decoded JSON list, or JSON text
            requested_name: Base name for the output file
            max_duration: Optional duration cap in seconds (<= 0 means none)

        Returns:
            JobSuccess or JobFailure

        Raises:
            ValidationError: If the overlays are malformed (the asset is deleted)
        """
        try:
            parsed = parse_overlays(overlays)
        except ValidationError:
            self.storage.delete_input(asset)
            raise

        job = ExportJob(
            asset=asset,
            overlays=parsed,
            requested_name=requested_name or "video",
            max_duration=max_duration,
        )
        return await self.pipeline.run(job)

    async def submit_batch(self, assets: Sequence[StoredAsset], metadata: Any) -> BatchResult:
        """
        Export several videos, each with its own metadata entry.

        Items are matched to metadata by position. A failing item is reported
        in ``errors`` and does not stop the rest of the batch. Results keep the
        input order.

        Raises:
            BatchValidationError: If the batch is empty, too large, or the
                metadata count differs from the asset count (all assets are
                deleted)
        """
        if not assets:
            raise BatchValidationError("No video files provided")
        if len(assets) > self.settings.batch_max_items:
            self._discard(assets)
            raise BatchValidationError(
                f"Too many videos in batch ({len(assets)}, max: {self.settings.batch_max_items})"
            )

        try:
            items = load_batch_metadata(metadata)
        except ValidationError as e:
            self._discard(assets)
            logger.warning(f"[BATCH] Rejected metadata for {len(assets)} videos: {e.message}")
            failures = [
                JobFailure(original_name=asset.display_name, error=e.message, code=e.code)
                for asset in assets
            ]
            return BatchResult(
                processed_count=0, total_count=len(assets), results=[], errors=failures
            )

        if len(items) != len(assets):
            self._discard(assets)
            raise BatchValidationError(
                f"Got {len(assets)} videos but {len(items)} metadata entries"
            )

        logger.info(f"[BATCH] Processing {len(assets)} videos")
        semaphore = asyncio.Semaphore(max(1, self.settings.batch_concurrency))
        outcomes = await asyncio.gather(*(
            self._run_item(index, asset, item, semaphore)
            for index, (asset, item) in enumerate(zip(assets, items))
        ))

        results = [o for o in outcomes if isinstance(o, JobSuccess)]
        errors = [o for o in outcomes if isinstance(o, JobFailure)]
        logger.info(f"[BATCH] Completed: {len(results)}/{len(assets)} succeeded")
        return BatchResult(
            processed_count=len(results),
            total_count=len(assets),
            results=results,
            errors=errors,
        )

    async def _run_item(
        self,
        index: int,
        asset: StoredAsset,
        item: dict[str, Any],
        semaphore: asyncio.Semaphore,
    ) -> JobResult:
        try:
            meta = parse_export_metadata(item, index)
        except ValidationError as e:
            self.storage.delete_input(asset)
            name = item.get("name")
            return JobFailure(
                original_name=name if isinstance(name, str) else asset.display_name,
                error=e.message,
                code=e.code,
            )

        job = ExportJob(
            asset=asset,
            overlays=list(meta.text_overlays),
            requested_name=meta.name,
            max_duration=meta.max_duration,
        )
        try:
            async with semaphore:
                return await self.pipeline.run(job)
        except asyncio.CancelledError:
            # Cancelled while waiting for a slot; the pipeline never saw it.
            if job.status is ExportStatus.QUEUED:
                self.storage.delete_input(asset)
            raise

    def _discard(self, assets: Sequence[StoredAsset]) -> None:
        for asset in assets:
            self.storage.delete_input(asset)

    def fetch_output(self, filename: str) -> Path:
        """Resolve an output name for download (raises OutputNotFoundError)."""
        return self.storage.get_output_path(filename)

    async def health_probe(self) -> HealthResponse:
        available = await asyncio.to_thread(is_ffmpeg_available, self.settings)
        return HealthResponse(
            status="ok" if available else "degraded",
            encoder_available=available,
            timestamp=datetime.now(timezone.utc),
        )
