"""Text overlay and export metadata schemas.

Overlays arrive from the editor as camelCase JSON; they are validated once
here and carried through the pipeline as frozen models.
"""

import json
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from overlay_export.exceptions import InvalidOverlayError

TextAlign = Literal["left", "center", "right"]
Animation = Literal["none", "fadeIn", "slideUp", "typewriter"]

# "#RRGGBB", "#RRGGBBAA", "0xRRGGBB" or a bare color name ("white")
_COLOR_RE = re.compile(r"^(#|0x)?([0-9a-fA-F]{6}|[0-9a-fA-F]{8})$|^[A-Za-z]+$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class TextOverlay(CamelModel):
    """A timed, positioned text annotation. Later overlays draw on top."""

    id: str | None = None
    text: str = Field(min_length=1, max_length=1000)

    # Position and box size, percent of the frame
    x: float = Field(ge=0, le=100)
    y: float = Field(ge=0, le=100)
    width: float = Field(default=100, ge=0, le=100)
    height: float = Field(default=20, ge=0, le=100)

    font_size: float = Field(default=24, gt=0)
    font_weight: str = "400"
    font_family: str = "Inter"
    color: str = "#ffffff"
    outline_color: str = "#000000"
    outline_width: float = Field(default=0, ge=0)
    opacity: float = Field(default=1, ge=0, le=1)

    # Visibility window, seconds
    start_time: float = Field(ge=0)
    end_time: float

    text_align: TextAlign = "left"
    animation: Animation = "none"

    @field_validator("color", "outline_color")
    @classmethod
    def _check_color(cls, v: str) -> str:
        if not _COLOR_RE.match(v):
            raise ValueError(f"invalid color: {v!r}")
        return v

    @model_validator(mode="after")
    def _check_window(self) -> "TextOverlay":
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be greater than startTime")
        return self


class ExportMetadata(CamelModel):
    """Per-video export settings sent alongside an upload."""

    name: str = "video"
    text_overlays: list[TextOverlay] = Field(default_factory=list)
    max_duration: float | None = None


_overlay_list = TypeAdapter(list[TextOverlay])


def _describe(exc: PydanticValidationError) -> tuple[str, str | None]:
    """Build a human-readable message from the first validation error."""
    errors = exc.errors()
    if not errors:
        return "Validation failed", None
    first = errors[0]
    loc = " -> ".join(str(part) for part in first.get("loc", []))
    msg = first.get("msg", "Validation error")
    return (f"{loc}: {msg}" if loc else msg), (loc or None)


def _load_json(raw: Any, field: str) -> Any:
    if not isinstance(raw, (str, bytes)):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidOverlayError(f"{field} is not valid JSON: {e.msg}", field=field)


def parse_overlays(raw: Any) -> list[TextOverlay]:
    """Validate an overlay list given as JSON text or already-decoded data.

    Raises:
        InvalidOverlayError: If the payload is malformed or any overlay is invalid
    """
    if raw is None or raw == "":
        return []
    data = _load_json(raw, "textOverlays")
    try:
        return _overlay_list.validate_python(data)
    except PydanticValidationError as e:
        message, loc = _describe(e)
        raise InvalidOverlayError(message, field=loc or "textOverlays")


def parse_export_metadata(raw: Any, index: int | None = None) -> ExportMetadata:
    """Validate one batch item's metadata object."""
    try:
        return ExportMetadata.model_validate(raw)
    except PydanticValidationError as e:
        message, loc = _describe(e)
        raise InvalidOverlayError(message, field=loc, index=index)


def load_batch_metadata(raw: Any) -> list[Any]:
    """Decode the batch metadata payload into a list of raw item objects.

    Items are validated individually with ``parse_export_metadata`` so one
    bad item does not reject its siblings.
    """
    data = _load_json(raw or "[]", "videosData")
    if not isinstance(data, list):
        raise InvalidOverlayError("videosData must be a JSON array", field="videosData")
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise InvalidOverlayError("videosData items must be objects", field="videosData", index=i)
    return data
