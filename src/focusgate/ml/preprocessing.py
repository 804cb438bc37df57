"""Image intake and preprocessing for the blur classifier.

Handles decoding uploaded bytes into RGB arrays, validating captured frames,
and reshaping an arbitrary frame into the fixed square tensor the model
expects (center crop-or-pad, then bilinear resize).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import cv2
import numpy as np

from focusgate.ml.errors import InvalidImageError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

RGB_CHANNELS = 3


@dataclass(frozen=True)
class CapturedImage:
    """A decoded camera frame: HxWx3 (RGB) or HxWx4 (RGBA) uint8 pixels."""

    pixels: NDArray[np.uint8]

    def __post_init__(self) -> None:
        pixels = self.pixels
        if not isinstance(pixels, np.ndarray):
            raise InvalidImageError(f"Expected a numpy array, got {type(pixels).__name__}")
        if pixels.dtype != np.uint8:
            raise InvalidImageError(f"Expected 8-bit pixels, got dtype {pixels.dtype}")
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise InvalidImageError(f"Expected HxWx3 or HxWx4 pixels, got shape {pixels.shape}")
        if pixels.shape[0] < 1 or pixels.shape[1] < 1:
            raise InvalidImageError(f"Image must be at least 1x1, got {pixels.shape[1]}x{pixels.shape[0]}")

        # Frames are immutable once captured.
        frozen = pixels.view()
        frozen.flags.writeable = False
        object.__setattr__(self, "pixels", frozen)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])


def decode_image(image_bytes: bytes, max_pixels: int | None = None) -> CapturedImage:
    """Decode raw image bytes into an RGB :class:`CapturedImage`.

    Args:
        image_bytes: Raw file bytes (any format OpenCV can read).
        max_pixels: Optional upper bound on width * height.

    Returns:
        The decoded frame in RGB channel order.

    Raises:
        InvalidImageError: If the data cannot be decoded or exceeds the size limit.
    """
    if not image_bytes:
        raise InvalidImageError("Empty image payload")

    encoded = np.frombuffer(image_bytes, dtype=np.uint8)
    bgr = cv2.imdecode(encoded, cv2.IMREAD_COLOR)
    if bgr is None:
        raise InvalidImageError("Unable to decode image data")

    height, width = bgr.shape[:2]
    if max_pixels is not None and height * width > max_pixels:
        raise InvalidImageError(f"Image has {width}x{height} pixels, limit is {max_pixels}")

    rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
    return CapturedImage(rgb)


def crop_or_pad(pixels: NDArray[np.uint8], side: int) -> NDArray[np.uint8]:
    """Center-crop or zero-pad each spatial axis of ``pixels`` to ``side``."""
    height, width, channels = pixels.shape
    out = np.zeros((side, side, channels), dtype=pixels.dtype)

    src_y, dst_y, span_y = _axis_window(height, side)
    src_x, dst_x, span_x = _axis_window(width, side)
    out[dst_y : dst_y + span_y, dst_x : dst_x + span_x] = pixels[src_y : src_y + span_y, src_x : src_x + span_x]
    return out


def _axis_window(length: int, side: int) -> tuple[int, int, int]:
    # (source offset, destination offset, span) for one axis
    if length >= side:
        return (length - side) // 2, 0, side
    return 0, (side - length) // 2, length


class Preprocessor:
    """Turns any captured frame into an S x S x 3 uint8 model input.

    S follows the loaded model and is changed through :meth:`configure`.
    Pixel values keep their original range; scaling is the normalizer's job.
    """

    def __init__(self, target_size: int, crop_size: int | None = None) -> None:
        self._crop_size = crop_size
        self._target_size = 0
        self.configure(target_size)

    @property
    def target_size(self) -> int:
        return self._target_size

    @property
    def window_size(self) -> int:
        """Side of the square window taken from the source before resizing."""
        return self._crop_size or self._target_size

    def configure(self, target_size: int) -> None:
        """Reconfigure the output size, e.g. after loading a different model."""
        if target_size < 1:
            raise ValueError(f"target_size must be positive, got {target_size}")
        if target_size != self._target_size:
            logger.debug("Preprocessor target size %s -> %s", self._target_size, target_size)
        self._target_size = target_size

    def process(self, image: CapturedImage) -> NDArray[np.uint8]:
        """Return a contiguous (S, S, 3) uint8 array for ``image``."""
        rgb = image.pixels[:, :, :RGB_CHANNELS]
        square = crop_or_pad(rgb, self.window_size)

        size = self._target_size
        if square.shape[0] != size:
            square = cv2.resize(square, (size, size), interpolation=cv2.INTER_LINEAR)
        return np.ascontiguousarray(square)
