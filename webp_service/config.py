"""Application configuration via environment variables."""

import os
import tempfile

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Server
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    # Storage
    temp_dir: str = os.path.join(tempfile.gettempdir(), "webp_service")
    max_upload_bytes: int = int(1.5 * 1024 * 1024 * 1024)  # 1.5 GB

    # Quality ladder
    max_output_bytes: int = 2 * 1024 * 1024  # 2 MB per converted image
    quality_start: int = 90
    quality_step: int = 10
    quality_floor: int = 10

    # Job processing
    max_concurrent_jobs: int = 4
    gc_every_files: int = 3
    yield_every_files: int = 5
    yield_seconds: float = 0.1
    cleanup_delay_seconds: float = 5.0
    job_ttl_hours: float = 2
    reaper_interval_seconds: float = 300

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
