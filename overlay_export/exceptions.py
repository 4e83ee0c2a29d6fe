"""Custom exceptions for the overlay export service.

Every error carries a machine-readable code; retryability and the suggested
fix come from the error codes dictionary so HTTP responses and batch item
failures describe errors the same way.
"""

from typing import Any

from overlay_export.constants.error_codes import get_error_spec
from overlay_export.schemas.envelope import ErrorInfo, ErrorLocation


class OverlayExportError(Exception):
    """Base exception for all overlay export errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        location: ErrorLocation | None = None,
        suggested_fix: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.location = location
        self.suggested_fix = suggested_fix
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API responses."""
        spec = get_error_spec(self.code)
        return ErrorInfo(
            code=self.code,
            message=self.message,
            location=self.location,
            retryable=spec.get("retryable", False),
            suggested_fix=self.suggested_fix or spec.get("suggested_fix"),
        )


# =============================================================================
# Validation Errors (400) - rejected before a job exists
# =============================================================================


class ValidationError(OverlayExportError):
    """Base class for submission validation errors."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Invalid request"


class MissingAssetError(ValidationError):
    """No video file was provided."""

    code = "MISSING_ASSET"
    message = "No video file provided"


class AssetTooLargeError(ValidationError):
    """Uploaded video exceeds the size limit."""

    code = "ASSET_TOO_LARGE"
    status_code = 413
    message = "Video file is too large"

    def __init__(self, size_bytes: int | None = None, max_bytes: int | None = None):
        message = self.message
        if size_bytes is not None and max_bytes is not None:
            message = f"Video file is too large ({size_bytes} bytes, max: {max_bytes})"
        super().__init__(message)


class UnsupportedMediaTypeError(ValidationError):
    """Uploaded file is not a video."""

    code = "UNSUPPORTED_MEDIA_TYPE"
    status_code = 415
    message = "Only video files are allowed"

    def __init__(self, content_type: str | None = None):
        message = self.message
        if content_type:
            message = f"Only video files are allowed (got {content_type})"
        super().__init__(message)


class InvalidOverlayError(ValidationError):
    """Overlay data failed validation at the submission boundary."""

    code = "INVALID_OVERLAY"
    message = "Invalid text overlay"

    def __init__(
        self, message: str | None = None, *, field: str | None = None, index: int | None = None
    ):
        location = ErrorLocation(field=field, index=index) if field or index is not None else None
        super().__init__(message or self.message, location=location)


class BatchValidationError(ValidationError):
    """Batch shape is malformed (empty, too large, or misaligned)."""

    code = "BATCH_MISMATCH"
    message = "Invalid batch"


# =============================================================================
# Job Errors
# =============================================================================


class ProbeError(OverlayExportError):
    """Media could not be probed (unreadable, unsupported or no video stream)."""

    code = "PROBE_FAILED"
    status_code = 422
    message = "Could not read video metadata"


class FilterCompileError(OverlayExportError):
    """Overlay data violates an invariant required to build the filter graph."""

    code = "FILTER_COMPILE_FAILED"
    status_code = 422
    message = "Could not compile text overlays"

    def __init__(self, message: str | None = None, *, index: int | None = None, value: Any = None):
        msg = message or self.message
        if index is not None:
            msg = f"Overlay {index}: {msg}"
        if value is not None:
            msg = f"{msg} (got {value!r})"
        location = ErrorLocation(index=index) if index is not None else None
        super().__init__(msg, location=location)


class EncodeError(OverlayExportError):
    """The encoder failed."""

    code = "ENCODE_FAILED"
    status_code = 500
    message = "Video encoding failed"


class EncodeTimeoutError(EncodeError):
    """The encoder exceeded its time budget and was killed."""

    code = "ENCODE_TIMEOUT"
    status_code = 504
    message = "Video encoding timed out"

    def __init__(self, timeout_s: float | None = None):
        message = self.message
        if timeout_s is not None:
            message = f"Video encoding timed out after {timeout_s:g}s"
        super().__init__(message)


# =============================================================================
# Not Found Errors (404)
# =============================================================================


class NotFoundError(OverlayExportError):
    """Base class for resource not found errors."""

    code = "NOT_FOUND"
    status_code = 404
    message = "Not found"


class OutputNotFoundError(NotFoundError):
    """Requested output artifact does not exist."""

    code = "OUTPUT_NOT_FOUND"
    message = "File not found"

    def __init__(self, filename: str | None = None):
        message = f"File not found: {filename}" if filename else self.message
        super().__init__(message)


# =============================================================================
# System Errors (500)
# =============================================================================


class StorageError(OverlayExportError):
    """Storage error."""

    code = "STORAGE_ERROR"
    status_code = 500
    message = "Storage error"
