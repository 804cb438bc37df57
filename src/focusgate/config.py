"""Environment-based configuration for FocusGate."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from FOCUSGATE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FOCUSGATE_",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device (accelerators are used only when the runtime reports them)
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Model artifact
    model_path: str = "models/blur_detection_model.onnx"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=4, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Preprocessing (None = crop window equals the model input size)
    crop_size: int | None = Field(default=None, ge=1)

    # Classifier decision
    blur_threshold: float = Field(default=0.99, ge=0.0, le=1.0)
    sharp_threshold: float = Field(default=0.1, ge=0.0, le=1.0)

    # Laplacian fallback. These differ on purpose; see DESIGN.md.
    transient_fallback_threshold: float = Field(default=150.0, ge=0.0)
    unavailable_fallback_threshold: float = Field(default=50.0, ge=0.0)

    # Queueing in front of the single inference worker
    queue_timeout: float = Field(default=5.0, gt=0.0)

    # Input limits
    max_image_pixels: int = Field(default=50_000_000, ge=1)
    max_file_size: int = Field(default=52_428_800, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
