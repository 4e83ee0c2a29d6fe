from datetime import datetime
from typing import Literal

from overlay_export.schemas.overlay import CamelModel


class JobSuccess(CamelModel):
    success: Literal[True] = True
    filename: str
    download_url: str
    original_name: str


class JobFailure(CamelModel):
    success: Literal[False] = False
    original_name: str
    error: str
    code: str = "INTERNAL_ERROR"


JobResult = JobSuccess | JobFailure


class BatchResult(CamelModel):
    processed_count: int
    total_count: int
    results: list[JobSuccess]
    errors: list[JobFailure]


class HealthResponse(CamelModel):
    status: str
    encoder_available: bool
    timestamp: datetime
