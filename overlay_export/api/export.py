"""Export API endpoints."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import FileResponse, JSONResponse

from overlay_export.api.deps import ExportServiceDep
from overlay_export.exceptions import BatchValidationError, MissingAssetError
from overlay_export.schemas.export import BatchResult, HealthResponse, JobFailure, JobResult
from overlay_export.services.storage_service import StoredAsset

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/process-video", response_model=JobResult)
async def process_video(
    service: ExportServiceDep,
    video: Annotated[Optional[UploadFile], File()] = None,
    text_overlays: Annotated[str, Form(alias="textOverlays")] = "[]",
    video_name: Annotated[Optional[str], Form(alias="videoName")] = None,
    max_duration: Annotated[Optional[float], Form(alias="maxDuration")] = None,
):
    """Burn text overlays into one uploaded video."""
    if video is None:
        raise MissingAssetError()

    asset = await asyncio.to_thread(
        service.storage.save_upload, video.file, video.filename, video.content_type
    )
    result = await service.submit_single(
        asset, text_overlays, video_name or Path(video.filename or "").stem, max_duration
    )
    if isinstance(result, JobFailure):
        return JSONResponse(status_code=500, content=result.model_dump(by_alias=True))
    return result


@router.post("/process-batch", response_model=BatchResult)
async def process_batch(
    service: ExportServiceDep,
    videos: Annotated[Optional[list[UploadFile]], File()] = None,
    videos_data: Annotated[str, Form(alias="videosData")] = "[]",
):
    """Export several uploaded videos, each with its own overlays."""
    if not videos:
        raise BatchValidationError("No video files provided")
    max_items = service.settings.batch_max_items
    if len(videos) > max_items:
        raise BatchValidationError(f"Too many videos in batch ({len(videos)}, max: {max_items})")

    assets: list[StoredAsset] = []
    try:
        for upload in videos:
            assets.append(await asyncio.to_thread(
                service.storage.save_upload, upload.file, upload.filename, upload.content_type
            ))
    except BaseException:
        for asset in assets:
            service.storage.delete_input(asset)
        raise

    return await service.submit_batch(assets, videos_data)


@router.get("/download/{filename}")
async def download(service: ExportServiceDep, filename: str):
    """Download a finished export."""
    path = service.fetch_output(filename)
    return FileResponse(path=str(path), media_type="video/mp4", filename=path.name)


@router.get("/health", response_model=HealthResponse)
async def health(service: ExportServiceDep):
    return await service.health_probe()


@router.get("/status", response_model=HealthResponse)
async def status(service: ExportServiceDep):
    return await service.health_probe()
