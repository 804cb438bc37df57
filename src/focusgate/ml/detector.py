"""Blur detector: classifier first, Laplacian fallback when it cannot answer.

State machine:

    MODEL_UNAVAILABLE --(successful load, once)--> MODEL_READY

In MODEL_READY every call runs preprocess -> normalize -> infer -> decide.
Any failure in that chain is logged and that single call is answered by the
Laplacian fallback with the transient threshold. In MODEL_UNAVAILABLE the
fallback answers every call with the unavailable threshold and inference is
never attempted. ``close()`` drops the detector back to MODEL_UNAVAILABLE.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import numpy as np

from focusgate.ml.decision import Verdict, VerdictSource, decide, fallback_is_blurry
from focusgate.ml.errors import ModelLoadError
from focusgate.ml.fallback import laplacian_score
from focusgate.ml.preprocessing import Preprocessor

if TYPE_CHECKING:
    from pathlib import Path

    from numpy.typing import NDArray

    from focusgate.config import Settings
    from focusgate.ml.model_manager import ModelEngine, ModelHandle
    from focusgate.ml.preprocessing import CapturedImage

logger = logging.getLogger(__name__)

DEFAULT_INPUT_SIZE = 224


class DetectorState(StrEnum):
    MODEL_UNAVAILABLE = "model_unavailable"
    MODEL_READY = "model_ready"


@dataclass
class _ScratchArena:
    """Buffers reused across calls. Only touched while holding the detector lock."""

    normalized: NDArray

    @classmethod
    def for_handle(cls, handle: ModelHandle) -> _ScratchArena:
        return cls(normalized=np.empty(handle.input_length, dtype=handle.input_dtype.numpy_dtype))


class BlurDetector:
    """Decides whether captured frames are blurry.

    ``compute_verdict`` always returns a :class:`Verdict`; classifier errors
    only show up in the logs. Calls are serialized, so one detector handles
    one frame at a time.
    """

    def __init__(self, engine: ModelEngine, settings: Settings) -> None:
        self._engine = engine
        self._settings = settings
        self._lock = threading.Lock()

        self._state = DetectorState.MODEL_UNAVAILABLE
        self._load_attempted = False
        self._closed = False

        self._preprocessor = Preprocessor(DEFAULT_INPUT_SIZE, crop_size=settings.crop_size)
        self._handle: ModelHandle | None = None
        self._arena: _ScratchArena | None = None

    # -- Lifecycle ----------------------------------------------------------

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def handle(self) -> ModelHandle | None:
        return self._handle

    def initialize(self, model_path: str | Path | None = None) -> DetectorState:
        """Load the classifier. Only the first call has any effect.

        A failed load leaves the detector on the fallback for good.
        """
        with self._lock:
            if self._load_attempted:
                logger.warning("Blur detector already initialized (state=%s); ignoring", self._state)
                return self._state
            self._load_attempted = True

            path = model_path if model_path is not None else self._settings.model_path
            try:
                handle = self._engine.load(path)
            except ModelLoadError as exc:
                logger.error("Blur model unavailable, using Laplacian fallback: %s", exc)
                return self._state

            self._handle = handle
            self._preprocessor.configure(handle.input_size)
            self._arena = _ScratchArena.for_handle(handle)
            self._state = DetectorState.MODEL_READY
            logger.info("Blur detector ready (input %sx%s, %s)", handle.input_size, handle.input_size, handle.input_dtype)
            return self._state

    def close(self) -> None:
        """Release the model. Later calls are answered by the fallback."""
        with self._lock:
            self._closed = True
            self._load_attempted = True
            self._state = DetectorState.MODEL_UNAVAILABLE
            self._handle = None
            self._arena = None
            self._engine.close()

    # -- Verdicts -----------------------------------------------------------

    def compute_verdict(self, image: CapturedImage) -> Verdict:
        """Return the blur verdict for ``image``. Never raises."""
        with self._lock:
            if self._closed:
                logger.warning("Blur detector is closed, using Laplacian fallback")
            if self._state is DetectorState.MODEL_READY:
                return self._classify(image)
            return self._fallback(
                image,
                self._settings.unavailable_fallback_threshold,
                VerdictSource.FALLBACK_UNAVAILABLE,
            )

    def is_blurry(self, image: CapturedImage) -> bool:
        return self.compute_verdict(image).is_blurry

    def blur_percentage(self, image: CapturedImage) -> float:
        """Legacy view of :meth:`compute_verdict`: 100.0 or 0.0."""
        return self.compute_verdict(image).blur_percentage

    # -- Internal -----------------------------------------------------------

    def _classify(self, image: CapturedImage) -> Verdict:
        try:
            probabilities = self._run_model(image)
        except Exception:
            logger.exception("Blur classification failed, using Laplacian fallback")
            return self._fallback(
                image,
                self._settings.transient_fallback_threshold,
                VerdictSource.FALLBACK_TRANSIENT,
            )

        is_blurry = decide(
            probabilities,
            blur_threshold=self._settings.blur_threshold,
            sharp_threshold=self._settings.sharp_threshold,
        )
        logger.debug(
            "Model verdict: blur=%.6f sharp=%.6f label=%s",
            probabilities[0] if len(probabilities) > 0 else 0.0,
            probabilities[1] if len(probabilities) > 1 else 0.0,
            "blur" if is_blurry else "sharp",
        )
        return Verdict(is_blurry=is_blurry, source=VerdictSource.MODEL, probabilities=probabilities)

    def _run_model(self, image: CapturedImage) -> tuple[float, ...]:
        handle, arena = self._handle, self._arena
        if handle is None or arena is None:
            raise RuntimeError("Model handle missing in MODEL_READY state")

        pixels = self._preprocessor.process(image)
        buffer = handle.normalizer.normalize(pixels, out=arena.normalized)
        return self._engine.infer(buffer)

    def _fallback(self, image: CapturedImage, threshold: float, source: VerdictSource) -> Verdict:
        score = laplacian_score(image)
        is_blurry = fallback_is_blurry(score, threshold)
        logger.debug("Laplacian verdict: score=%.2f threshold=%s label=%s", score, threshold, "blur" if is_blurry else "sharp")
        return Verdict(is_blurry=is_blurry, source=source, score=score)
