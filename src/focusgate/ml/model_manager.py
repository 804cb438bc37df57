"""Model engine: load the ONNX blur classifier and run inference.

Discovers the input/output signature once at load time, configures ONNX
Runtime threading, and picks accelerated execution providers only when the
installed runtime actually offers them.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import numpy as np
from onnxruntime import InferenceSession, SessionOptions, get_available_providers
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from focusgate.ml.errors import InferenceError, ModelLoadError
from focusgate.ml.normalization import RangeNormalizer, TensorDType

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from focusgate.config import Settings

logger = logging.getLogger(__name__)

CPU_PROVIDER = "CPUExecutionProvider"
EXPECTED_CHANNELS = 3


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class ModelEngine(Protocol):
    """Protocol for a loaded blur classifier."""

    @property
    def handle(self) -> ModelHandle | None:
        """Return the loaded model's handle, or None before a successful load."""
        ...

    def load(self, model_path: str | Path) -> ModelHandle:
        """Load a model artifact and discover its signature."""
        ...

    def infer(self, buffer: NDArray) -> tuple[float, ...]:
        """Run the classifier on a flat normalized buffer."""
        ...

    def close(self) -> None:
        """Release the underlying session."""
        ...


# ---------------------------------------------------------------------------
# Model signature
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelHandle:
    """Input/output signature of a loaded classifier. Never changes after load."""

    path: Path
    input_name: str
    output_name: str
    input_shape: tuple[int, ...]
    input_dtype: TensorDType
    output_shape: tuple[int | str | None, ...]
    output_type: str
    providers: tuple[str, ...]
    normalizer: RangeNormalizer

    @property
    def input_size(self) -> int:
        """Side S of the square model input."""
        return self.input_shape[-3]

    @property
    def channels(self) -> int:
        return self.input_shape[-1]

    @property
    def input_length(self) -> int:
        """Number of elements in one flattened input tensor."""
        return int(np.prod(self.input_shape))


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class OnnxModelEngine:
    """Owns a single ONNX Runtime session for the blur classifier."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._lock = threading.Lock()
        self._session: InferenceSession | None = None
        self._handle: ModelHandle | None = None

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    @property
    def handle(self) -> ModelHandle | None:
        return self._handle

    @property
    def is_loaded(self) -> bool:
        return self._handle is not None

    def load(self, model_path: str | Path) -> ModelHandle:
        """Create the session and discover the model signature.

        Raises:
            ModelLoadError: If the artifact is missing, corrupt, or its input
                is not a square 3-channel uint8/float32 tensor.
        """
        path = Path(model_path)
        if not path.is_file():
            raise ModelLoadError(f"Model artifact not found: {path}")

        try:
            session = InferenceSession(
                str(path),
                sess_options=self._session_options,
                providers=self._providers,
            )
        except Exception as exc:  # noqa: BLE001
            raise ModelLoadError(f"Failed to load model {path}: {exc}") from exc

        handle = self._describe(session, path)
        with self._lock:
            self._session = session
            self._handle = handle

        logger.info(
            "Loaded %s (input=%s %s, output=%s, providers=%s)",
            path.name,
            handle.input_shape,
            handle.input_dtype,
            handle.output_shape,
            ", ".join(handle.providers),
        )
        return handle

    def infer(self, buffer: NDArray) -> tuple[float, ...]:
        """Run one synchronous classification.

        Args:
            buffer: Flat buffer of ``handle.input_length`` elements in the
                model's input dtype.

        Returns:
            The flattened output probabilities.

        Raises:
            InferenceError: On a missing model, malformed buffer, or runtime failure.
        """
        with self._lock:
            session, handle = self._session, self._handle
        if session is None or handle is None:
            raise InferenceError("No model loaded")

        if buffer.size != handle.input_length:
            raise InferenceError(f"Input buffer has {buffer.size} elements, model expects {handle.input_length}")
        if buffer.dtype != handle.input_dtype.numpy_dtype:
            raise InferenceError(f"Input buffer dtype {buffer.dtype} does not match model dtype {handle.input_dtype}")

        tensor = buffer.reshape(handle.input_shape)
        try:
            outputs = session.run([handle.output_name], {handle.input_name: tensor})
        except Exception as exc:  # noqa: BLE001
            raise InferenceError(f"Inference failed: {exc}") from exc

        return tuple(float(value) for value in np.asarray(outputs[0], dtype=np.float64).reshape(-1))

    def close(self) -> None:
        """Drop the session. The engine stays unloaded afterwards."""
        with self._lock:
            self._session = None
            self._handle = None
        logger.info("Model session released")

    # -- Internal -----------------------------------------------------------

    def _describe(self, session: InferenceSession, path: Path) -> ModelHandle:
        try:
            model_input = session.get_inputs()[0]
            model_output = session.get_outputs()[0]
            input_dtype = TensorDType.from_onnx(model_input.type)
        except (IndexError, ValueError) as exc:
            raise ModelLoadError(f"Cannot discover signature of {path}: {exc}") from exc

        input_shape = self._resolve_input_shape(model_input.shape, path)
        return ModelHandle(
            path=path,
            input_name=model_input.name,
            output_name=model_output.name,
            input_shape=input_shape,
            input_dtype=input_dtype,
            output_shape=tuple(model_output.shape),
            output_type=model_output.type,
            providers=tuple(session.get_providers()),
            normalizer=RangeNormalizer(input_dtype),
        )

    @staticmethod
    def _resolve_input_shape(shape: list[int | str | None], path: Path) -> tuple[int, ...]:
        # Expected NHWC ([batch, height, width, channels]) or HWC.
        if len(shape) not in (3, 4):
            raise ModelLoadError(f"Model {path} has unsupported input rank {len(shape)}: {shape}")

        spatial = shape[-3:]
        if not all(isinstance(dim, int) and dim > 0 for dim in spatial):
            raise ModelLoadError(f"Model {path} has dynamic spatial dimensions: {shape}")
        height, width, channels = spatial
        if height != width:
            raise ModelLoadError(f"Model {path} input is not square: {height}x{width}")
        if channels != EXPECTED_CHANNELS:
            raise ModelLoadError(f"Model {path} expects {channels} channels, need {EXPECTED_CHANNELS}")

        if len(shape) == 4:
            # A symbolic batch dimension becomes a batch of one.
            return (1, height, width, channels)
        return (height, width, channels)

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        available = set(get_available_providers())
        device = self._settings.device
        requested: list[str | tuple[str, dict[str, object]]] = []
        if device == "cuda":
            requested.append(("CUDAExecutionProvider", {"device_id": 0}))
        elif device == "openvino":
            requested.append(("OpenVINOExecutionProvider", {"device_type": "CPU"}))

        providers: list[str | tuple[str, dict[str, object]]] = []
        for provider in requested:
            name = provider[0] if isinstance(provider, tuple) else provider
            if name in available:
                providers.append(provider)
            else:
                logger.warning("%s not available, running on CPU", name)
        providers.append(CPU_PROVIDER)
        return providers

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
