from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from overlay_export.services.export_service import ExportService


@lru_cache
def get_export_service() -> ExportService:
    return ExportService()


ExportServiceDep = Annotated[ExportService, Depends(get_export_service)]
