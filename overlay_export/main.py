import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from overlay_export.api import export
from overlay_export.api.deps import get_export_service
from overlay_export.config import get_settings
from overlay_export.constants.error_codes import get_error_spec
from overlay_export.exceptions import OverlayExportError
from overlay_export.schemas.envelope import ErrorInfo
from overlay_export.services.cleanup_service import ArtifactSweeper, CleanupScheduler

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    scheduler = None
    if settings.cleanup_enabled:
        provider = app.dependency_overrides.get(get_export_service, get_export_service)
        service = provider()
        scheduler = CleanupScheduler(
            ArtifactSweeper.from_settings(service.settings),
            service.settings.cleanup_interval_s,
        )
        scheduler.start()
    yield
    # Shutdown
    if scheduler is not None:
        await scheduler.stop()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OverlayExportError)
async def overlay_export_error_handler(request: Request, exc: OverlayExportError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"[{exc.code}] {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "details": jsonable_encoder(exc.to_error_info().model_dump(exclude_none=True)),
        },
    )


# Global exception handler to ensure errors return proper JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    spec = get_error_spec("INTERNAL_ERROR")
    error = ErrorInfo(
        code="INTERNAL_ERROR",
        message="Internal server error",
        retryable=spec.get("retryable", False),
        suggested_fix=spec.get("suggested_fix"),
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "details": jsonable_encoder(error.model_dump(exclude_none=True)),
        },
    )


# Routers
app.include_router(export.router, prefix="/api", tags=["export"])


@app.get("/")
async def root() -> dict[str, object]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "endpoints": [
            "POST /api/process-video",
            "POST /api/process-batch",
            "GET /api/download/{filename}",
            "GET /api/health",
            "GET /api/status",
        ],
    }


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=3001)
