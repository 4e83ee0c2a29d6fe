"""
Pytest fixtures for overlay export tests.

Tests that run a real encode are marked with @pytest.mark.requires_ffmpeg and
skipped when ffmpeg (with libx264 and drawtext) is not installed.
Run `pytest -m "not requires_ffmpeg"` to skip them explicitly.
"""

import shutil
import subprocess
import tempfile
from pathlib import Path
from uuid import uuid4

import pytest

from overlay_export.config import Settings
from overlay_export.services.storage_service import LocalStorageService, StoredAsset


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring ffmpeg with libx264 and drawtext"
    )


def _ffmpeg_ready() -> bool:
    if not shutil.which("ffmpeg") or not shutil.which("ffprobe"):
        return False
    try:
        encoders = subprocess.run(
            ["ffmpeg", "-hide_banner", "-encoders"], capture_output=True, text=True, timeout=10
        ).stdout
        filters = subprocess.run(
            ["ffmpeg", "-hide_banner", "-filters"], capture_output=True, text=True, timeout=10
        ).stdout
    except (OSError, subprocess.TimeoutExpired):
        return False
    return "libx264" in encoders and "drawtext" in filters


# Skip decorator for tests that run real encodes
requires_ffmpeg = pytest.mark.skipif(
    not _ffmpeg_ready(),
    reason="ffmpeg with libx264 and drawtext not available"
)


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="overlay_export_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_output_dir: Path) -> Settings:
    """Settings with storage areas inside the temp directory."""
    return Settings(
        upload_dir=str(temp_output_dir / "uploads"),
        output_dir=str(temp_output_dir / "output"),
        font_dir="/fonts",
        cleanup_enabled=False,
        max_upload_size_mb=1,
        encode_timeout_s=30,
    )


@pytest.fixture
def storage(settings: Settings) -> LocalStorageService:
    return LocalStorageService(settings)


@pytest.fixture
def make_asset(storage: LocalStorageService):
    """Factory writing a fake upload into the input area."""

    def _make(name: str = "clip.mp4", data: bytes = b"\x00fake-video") -> StoredAsset:
        path = storage.upload_dir / f"{uuid4().hex}-{name}"
        path.write_bytes(data)
        return StoredAsset(path=path, display_name=name, content_type="video/mp4", size=len(data))

    return _make
