"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from focusgate.api.routes import router
from focusgate.config import get_settings
from focusgate.ml.detector import BlurDetector
from focusgate.ml.inference import InferencePool
from focusgate.ml.model_manager import OnnxModelEngine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: load the model on startup, release it on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting FocusGate (device=%s, model=%s, threads=%s)",
        settings.device,
        settings.model_path,
        settings.intra_op_threads,
    )

    inference_pool = InferencePool(settings)
    detector = BlurDetector(OnnxModelEngine(settings), settings)
    app.state.inference_pool = inference_pool
    app.state.detector = detector

    # Load on the inference thread; requests are only served once this returns.
    state = await inference_pool.run(detector.initialize)

    logger.info("FocusGate ready (state=%s)", state)
    yield

    logger.info("Shutting down FocusGate")
    await inference_pool.run(detector.close)
    inference_pool.shutdown()
    logger.info("FocusGate shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="FocusGate",
        description="Blur detection for camera capture pipelines",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run("focusgate.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
