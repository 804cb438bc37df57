"""Pydantic request/response schemas for the FocusGate API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BlurCheckResponse(BaseModel):
    """Result of a blur check on one uploaded image."""

    is_blur: bool
    blur_percentage: float = Field(description="Legacy view of is_blur: 100.0 (blurry) or 0.0 (sharp)")
    source: str = Field(description="'model', 'fallback_transient', or 'fallback_unavailable'")
    score: float | None = Field(default=None, description="Laplacian score when a fallback decided")
    probabilities: list[float] | None = Field(default=None, description="[blur, sharp] when the model decided")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    state: str = Field(description="'model_ready' or 'model_unavailable'")
    model_loaded: bool
    concurrent_requests: int
    queue_depth: int


class ModelInfoResponse(BaseModel):
    """Signature of the loaded blur classifier."""

    name: str
    input_size: int
    channels: int
    input_dtype: str
    output_shape: list[int | str | None]
    providers: list[str]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
