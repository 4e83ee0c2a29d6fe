"""Error codes dictionary for the export API.

Single source of truth for error codes, their retryability and the
suggested fix returned to callers alongside the error message.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Submission validation (not retryable, fix input)
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
    },
    "MISSING_ASSET": {
        "retryable": False,
        "suggested_fix": "Attach a video file to the request",
    },
    "ASSET_TOO_LARGE": {
        "retryable": False,
        "suggested_fix": "Upload a smaller video or trim it before exporting",
    },
    "UNSUPPORTED_MEDIA_TYPE": {
        "retryable": False,
        "suggested_fix": "Only video/* content types are accepted",
    },
    "INVALID_OVERLAY": {
        "retryable": False,
        "suggested_fix": "Check overlay positions (0-100), timing (startTime < endTime) and colors",
    },
    "BATCH_MISMATCH": {
        "retryable": False,
        "suggested_fix": "Send exactly one metadata entry per uploaded video, in the same order",
    },
    # ==========================================================================
    # Job failures
    # ==========================================================================
    "PROBE_FAILED": {
        "retryable": False,
        "suggested_fix": "The file is not a readable video; re-encode or upload a different file",
    },
    "FILTER_COMPILE_FAILED": {
        "retryable": False,
        "suggested_fix": "Fix the overlay data and submit again",
    },
    "ENCODE_FAILED": {
        "retryable": True,
    },
    "ENCODE_TIMEOUT": {
        "retryable": True,
        "suggested_fix": "Use a shorter duration cap or a smaller video",
    },
    # ==========================================================================
    # Download / system
    # ==========================================================================
    "NOT_FOUND": {
        "retryable": False,
    },
    "OUTPUT_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Exported files are kept for 24 hours; export the video again",
    },
    "STORAGE_ERROR": {
        "retryable": True,
    },
    "INTERNAL_ERROR": {
        "retryable": True,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code, falling back to INTERNAL_ERROR."""
    return ERROR_CODES.get(code, ERROR_CODES["INTERNAL_ERROR"])
