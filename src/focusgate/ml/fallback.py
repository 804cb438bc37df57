"""Model-free blur estimate from Laplacian edge strength.

The score is the mean squared response of a 3x3 Laplacian (centre +8, eight
neighbours -1) sampled on a sparse grid: every ``SAMPLE_STEP`` pixels in both
axes, staying ``SAMPLE_STEP`` pixels clear of every border. Higher scores mean
stronger edges, i.e. a sharper image.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from focusgate.ml.preprocessing import CapturedImage

SAMPLE_STEP: int = 4
LUMA_WEIGHTS: tuple[float, float, float] = (0.299, 0.587, 0.114)

_NEIGHBOUR_OFFSETS: tuple[tuple[int, int], ...] = (
    (-1, -1),
    (-1, 0),
    (-1, 1),
    (0, -1),
    (0, 1),
    (1, -1),
    (1, 0),
    (1, 1),
)


def luma(pixels: NDArray[np.uint8]) -> NDArray[np.float64]:
    """Rec. 601 luma of an HxWx3 (or HxWx4, alpha ignored) image."""
    red = pixels[:, :, 0].astype(np.float64)
    green = pixels[:, :, 1].astype(np.float64)
    blue = pixels[:, :, 2].astype(np.float64)
    w_r, w_g, w_b = LUMA_WEIGHTS
    return w_r * red + w_g * green + w_b * blue


def laplacian_score(image: CapturedImage) -> float:
    """Mean squared Laplacian response over the sampling grid.

    Returns 0.0 when the image is too small to contain a single sample.
    """
    gray = luma(image.pixels)
    height, width = gray.shape

    rows = np.arange(SAMPLE_STEP, height - SAMPLE_STEP, SAMPLE_STEP)
    cols = np.arange(SAMPLE_STEP, width - SAMPLE_STEP, SAMPLE_STEP)
    if rows.size == 0 or cols.size == 0:
        return 0.0

    centre = gray[np.ix_(rows, cols)]
    # Summing centre-minus-neighbour terms keeps flat regions at exactly zero.
    response = np.zeros_like(centre)
    for dy, dx in _NEIGHBOUR_OFFSETS:
        response += centre - gray[np.ix_(rows + dy, cols + dx)]

    return float(np.mean(response * response))
