"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from focusgate.api.middleware import verify_api_key
from focusgate.api.schemas import (
    BlurCheckResponse,
    ErrorResponse,
    HealthResponse,
    ModelInfoResponse,
)
from focusgate.ml.errors import InvalidImageError
from focusgate.ml.preprocessing import decode_image

if TYPE_CHECKING:
    from focusgate.config import Settings
    from focusgate.ml.detector import BlurDetector
    from focusgate.ml.inference import InferencePool

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_detector(request: Request) -> BlurDetector:
    detector: BlurDetector = request.app.state.detector
    return detector


@router.post(
    "/check-blur",
    response_model=BlurCheckResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Check whether an image is blurry",
)
async def check_blur(request: Request, file: UploadFile) -> BlurCheckResponse:
    """Decode an uploaded image and return its blur verdict."""
    settings = _get_settings(request)
    data = await file.read()
    if len(data) > settings.max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"File exceeds {settings.max_file_size} bytes",
        )

    try:
        image = await run_in_threadpool(decode_image, data, max_pixels=settings.max_image_pixels)
    except InvalidImageError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    pool = _get_inference_pool(request)
    detector = _get_detector(request)
    try:
        verdict = await pool.run(detector.compute_verdict, image)
    except TimeoutError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Blur detector busy, try again later",
        ) from exc

    logger.info("%s: %s via %s", file.filename, "blur" if verdict.is_blurry else "sharp", verdict.source)
    return BlurCheckResponse(
        is_blur=verdict.is_blurry,
        blur_percentage=verdict.blur_percentage,
        source=verdict.source.value,
        score=verdict.score,
        probabilities=list(verdict.probabilities) if verdict.probabilities is not None else None,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    pool = _get_inference_pool(request)
    detector = _get_detector(request)
    return HealthResponse(
        status="ok",
        state=detector.state.value,
        model_loaded=detector.handle is not None,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/model",
    response_model=ModelInfoResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
    summary="Describe the loaded blur classifier",
)
async def model_info(request: Request) -> ModelInfoResponse:
    """Return the input/output signature of the loaded model."""
    handle = _get_detector(request).handle
    if handle is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No blur model loaded; Laplacian fallback in use",
        )
    return ModelInfoResponse(
        name=handle.path.name,
        input_size=handle.input_size,
        channels=handle.channels,
        input_dtype=handle.input_dtype.value,
        output_shape=list(handle.output_shape),
        providers=list(handle.providers),
    )
