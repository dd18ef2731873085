"""Environment-based configuration for FaceMatch."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from FACEMATCH_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FACEMATCH_",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8082
    log_level: str = "INFO"

    # Model artifact. The repo/filename pair is only consulted when model_path is missing.
    model_path: str = "models/arcface.onnx"
    model_repo_id: str | None = None
    model_filename: str = "arcface.onnx"
    models_dir: str = "models"

    # Preprocessing. Must match what the model was trained on.
    input_size: int = Field(default=112, ge=1)
    pixel_range: Literal["symmetric", "unit"] = "symmetric"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)
    queue_timeout: float = Field(default=5.0, gt=0)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)

    # Matching
    match_threshold: float = Field(default=0.6, ge=-1.0, le=1.0)

    # Persistence (None = in-memory store)
    database_url: str | None = "sqlite:///./facematch.db"


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
