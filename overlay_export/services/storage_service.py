import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO
from uuid import uuid4

from overlay_export.config import Settings, get_settings
from overlay_export.exceptions import (
    AssetTooLargeError,
    MissingAssetError,
    OutputNotFoundError,
    StorageError,
    UnsupportedMediaTypeError,
)

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
MAX_NAME_LENGTH = 100
CHUNK_SIZE = 1024 * 1024
PARTIAL_SUFFIX = ".partial"


def sanitize_name(name: str | None, default: str = "video") -> str:
    """Make a user-supplied name safe to embed in a file name."""
    cleaned = _UNSAFE_CHARS.sub("_", name or "").strip("._-")[:MAX_NAME_LENGTH]
    return cleaned or default


@dataclass(frozen=True)
class StoredAsset:
    """An uploaded video in the input area."""

    path: Path
    display_name: str
    content_type: str
    size: int


class LocalStorageService:
    """Input and output areas on the local filesystem.

    Uploads land in ``upload_dir`` under a unique name; exports are written
    to a hidden partial file in ``output_dir`` and promoted atomically.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.upload_dir = Path(self.settings.upload_dir)
        self.output_dir = Path(self.settings.output_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Input area
    # ------------------------------------------------------------------

    def save_upload(
        self,
        file_obj: BinaryIO | None,
        filename: str | None,
        content_type: str | None,
    ) -> StoredAsset:
        """Stream an upload into the input area.

        Raises:
            MissingAssetError: If no file or an empty file was provided
            UnsupportedMediaTypeError: If the content type is not video/*
            AssetTooLargeError: If the upload exceeds max_upload_size_mb
        """
        if file_obj is None:
            raise MissingAssetError()
        if not content_type or not content_type.startswith("video/"):
            raise UnsupportedMediaTypeError(content_type)

        max_bytes = self.settings.max_upload_size_bytes
        path = self.upload_dir / f"{uuid4().hex}-{sanitize_name(filename)}"
        size = 0
        try:
            with path.open("wb") as out:
                while True:
                    chunk = file_obj.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_bytes:
                        raise AssetTooLargeError(size, max_bytes)
                    out.write(chunk)
        except BaseException:
            self.delete_file(path)
            raise

        if size == 0:
            self.delete_file(path)
            raise MissingAssetError("Uploaded video is empty")

        return StoredAsset(
            path=path,
            display_name=filename or path.name,
            content_type=content_type,
            size=size,
        )

    def delete_input(self, asset: StoredAsset) -> bool:
        """Delete an uploaded asset."""
        return self.delete_file(asset.path)

    def delete_file(self, path: Path) -> bool:
        """Delete a file; failures are logged, never raised."""
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"[STORAGE] Failed to delete {path}: {e}")
            return False

    # ------------------------------------------------------------------
    # Output area
    # ------------------------------------------------------------------

    def new_output_filename(self, requested_name: str | None) -> str:
        """processed-<sanitized name>-<unique token>.<container>"""
        return (
            f"processed-{sanitize_name(requested_name)}-{uuid4().hex}"
            f".{self.settings.export_container}"
        )

    def partial_output_path(self, filename: str) -> Path:
        return self.output_dir / f".{filename}{PARTIAL_SUFFIX}"

    def promote_output(self, partial_path: Path, filename: str) -> Path:
        """Atomically move a finished encode to its public name."""
        final_path = self.output_dir / filename
        try:
            os.replace(partial_path, final_path)
        except OSError as e:
            raise StorageError(f"Could not finalize output {filename}: {e}")
        return final_path

    def get_output_path(self, filename: str) -> Path:
        """Resolve a download name to an existing output file.

        Raises:
            OutputNotFoundError: If the name is not a plain file name in the
                output area or the file does not exist
        """
        if (
            not filename
            or filename != os.path.basename(filename)
            or "\\" in filename
            or filename.startswith(".")
        ):
            raise OutputNotFoundError(filename)
        path = self.output_dir / filename
        if not path.is_file():
            raise OutputNotFoundError(filename)
        return path

    def output_exists(self, filename: str) -> bool:
        return (self.output_dir / filename).is_file()

    def download_url(self, filename: str) -> str:
        return f"/api/download/{filename}"
