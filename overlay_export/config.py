import json
from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Overlay Export API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "http://localhost:5173,http://localhost:3000"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # Artifact storage areas
    upload_dir: str = "/tmp/overlay-export/uploads"
    output_dir: str = "/tmp/overlay-export/output"

    # File Upload
    max_upload_size_mb: int = 500
    batch_max_items: int = 10
    # Jobs in flight per batch (1 = strictly sequential, one encoder at a time)
    batch_concurrency: int = 1

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    font_dir: str = "/usr/share/fonts/truetype/msttcorefonts"

    # Export encoding (fixed for every job)
    export_video_codec: str = "libx264"
    export_preset: str = "medium"
    export_crf: int = 23
    export_audio_codec: str = "aac"
    export_audio_bitrate: str = "128k"
    export_movflags: str = "+faststart"
    export_container: str = "mp4"

    # Timeouts (seconds)
    encode_timeout_s: float = 1800
    probe_timeout_s: float = 60

    # Artifact retention
    retention_hours: float = 24
    cleanup_interval_s: float = 3600
    cleanup_enabled: bool = True

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()
