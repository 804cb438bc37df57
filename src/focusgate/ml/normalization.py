"""Convert preprocessed pixels into the numeric domain a model expects."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

# Float buffers whose sampled peak exceeds this are assumed to be on a 0-255 scale.
FLOAT_SCALE_CUTOFF: float = 1.5
SCALE_SAMPLE_SIZE: int = 100
PIXEL_MAX: float = 255.0


class TensorDType(StrEnum):
    """Numeric type of a model input tensor."""

    UINT8 = "uint8"
    FLOAT32 = "float32"

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(self.value)

    @classmethod
    def from_onnx(cls, onnx_type: str) -> TensorDType:
        """Map an ONNX Runtime type string such as ``tensor(float)``."""
        try:
            return _ONNX_TYPES[onnx_type]
        except KeyError:
            raise ValueError(f"Unsupported tensor type: {onnx_type}") from None


_ONNX_TYPES: dict[str, TensorDType] = {
    "tensor(uint8)": TensorDType.UINT8,
    "tensor(float)": TensorDType.FLOAT32,
}


def looks_pixel_scaled(buffer: NDArray[np.floating]) -> bool:
    """Return True if a float buffer appears to hold 0-255 values.

    Only the first :data:`SCALE_SAMPLE_SIZE` elements are inspected.
    """
    sample = buffer[:SCALE_SAMPLE_SIZE]
    if sample.size == 0:
        return False
    return float(np.max(np.abs(sample))) > FLOAT_SCALE_CUTOFF


def _widen_uint8(buffer: NDArray[np.uint8], out: NDArray | None) -> NDArray[np.float32]:
    return np.divide(buffer, np.float32(PIXEL_MAX), out=out, dtype=np.float32)


def _rescale_float(buffer: NDArray[np.floating], out: NDArray | None) -> NDArray[np.floating]:
    if looks_pixel_scaled(buffer):
        return np.divide(buffer, PIXEL_MAX, out=out, dtype=buffer.dtype if out is None else out.dtype)
    return _passthrough(buffer, out)


def _passthrough(buffer: NDArray, out: NDArray | None) -> NDArray:
    if out is None:
        return buffer
    np.copyto(out, buffer, casting="unsafe")
    return out


class RangeNormalizer:
    """Per-target normalization strategy, chosen once when a model is loaded.

    ``normalize`` flattens its input and returns a buffer of the same length:

    * uint8 source, float32 target: widen and divide by 255.
    * float source: divide by 255 only when the sampled peak exceeds 1.5,
      so already-normalized data is not scaled twice.
    * anything else: unchanged.
    """

    def __init__(self, target: TensorDType) -> None:
        self.target = target
        self._from_uint8 = _widen_uint8 if target is TensorDType.FLOAT32 else _passthrough

    def normalize(self, buffer: NDArray, out: NDArray | None = None) -> NDArray:
        """Normalize ``buffer``, optionally writing into a preallocated flat ``out``."""
        flat = np.asarray(buffer).reshape(-1)
        if out is not None and out.shape != flat.shape:
            raise ValueError(f"Output buffer has {out.size} elements, expected {flat.size}")

        if flat.dtype == np.uint8:
            return self._from_uint8(flat, out)
        if np.issubdtype(flat.dtype, np.floating):
            return _rescale_float(flat, out)
        return _passthrough(flat, out)
