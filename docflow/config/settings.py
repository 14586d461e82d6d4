from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    intake_tick_interval_seconds: float = Field(default=0.2, gt=0)
    intake_progress_step: int = Field(default=10, ge=1, le=100)
    extraction_tick_interval_seconds: float = Field(default=0.3, gt=0)
    extraction_progress_step: int = Field(default=15, ge=1, le=100)
    stage_handoff_delay_seconds: float = Field(default=1.0, ge=0)
    completion_delay_seconds: float = Field(default=0.5, ge=0)
    submission_stagger_seconds: float = Field(default=1.0, ge=0)
    extraction_timeout_seconds: float | None = Field(default=None, gt=0)

    extraction_backend: str = "static"
    pdf_engine: str = "pdfplumber"
    files_root: Path | None = None
    allowed_media_types: list[str] = Field(default_factory=list)
    max_size_bytes: int | None = Field(default=None, gt=0)
