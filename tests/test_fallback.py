"""Tests for the Laplacian fallback score."""

from __future__ import annotations

import math

import numpy as np
import pytest

from focusgate.ml.decision import fallback_is_blurry
from focusgate.ml.fallback import laplacian_score, luma
from focusgate.ml.preprocessing import CapturedImage


def _checkerboard(size: int, block: int) -> CapturedImage:
    ys, xs = np.indices((size, size))
    board = (((ys // block) + (xs // block)) % 2 * 255).astype(np.uint8)
    return CapturedImage(np.repeat(board[:, :, None], 3, axis=2))


class TestLuma:
    def test_weights(self) -> None:
        pixels = np.array([[[255, 0, 0], [0, 255, 0], [0, 0, 255]]], dtype=np.uint8)
        np.testing.assert_allclose(luma(pixels)[0], [0.299 * 255, 0.587 * 255, 0.114 * 255])

    def test_alpha_is_ignored(self) -> None:
        opaque = np.full((2, 2, 4), 100, dtype=np.uint8)
        transparent = opaque.copy()
        transparent[:, :, 3] = 0
        np.testing.assert_array_equal(luma(opaque), luma(transparent))


class TestLaplacianScore:
    @pytest.mark.parametrize("value", [0, 37, 128, 255])
    def test_flat_image_scores_zero(self, value: int) -> None:
        image = CapturedImage(np.full((224, 224, 3), value, dtype=np.uint8))
        assert laplacian_score(image) == 0.0

    def test_flat_colour_scores_zero(self) -> None:
        pixels = np.empty((64, 96, 3), dtype=np.uint8)
        pixels[:] = (12, 200, 77)
        assert laplacian_score(CapturedImage(pixels)) == 0.0

    def test_deterministic(self) -> None:
        rng = np.random.default_rng(1234)
        pixels = rng.integers(0, 256, size=(240, 320, 4), dtype=np.uint8)
        first = laplacian_score(CapturedImage(pixels))
        second = laplacian_score(CapturedImage(pixels.copy()))
        assert first == second

    def test_pixel_checkerboard_is_sharp(self) -> None:
        score = laplacian_score(_checkerboard(224, 1))
        # Every sample sits on a black pixel with four white edge neighbours: (4 * 255)^2.
        assert score == pytest.approx((4 * 255.0) ** 2)
        assert fallback_is_blurry(score, 50.0) is False

    def test_block_checkerboard_is_sharp(self) -> None:
        score = laplacian_score(_checkerboard(256, 8))
        assert score > 10_000
        assert fallback_is_blurry(score, 50.0) is False

    def test_black_frame_is_blurry(self) -> None:
        score = laplacian_score(CapturedImage(np.zeros((224, 224, 3), dtype=np.uint8)))
        assert score == 0.0
        assert fallback_is_blurry(score, 50.0) is True

    def test_smoothing_lowers_score(self) -> None:
        rng = np.random.default_rng(5)
        noisy = rng.integers(0, 256, size=(128, 128, 3)).astype(np.float64)
        # 4x4 box blur built from shifted sums keeps the test dependency-free.
        smooth = sum(np.roll(np.roll(noisy, dy, axis=0), dx, axis=1) for dy in range(4) for dx in range(4)) / 16
        sharp_score = laplacian_score(CapturedImage(noisy.astype(np.uint8)))
        smooth_score = laplacian_score(CapturedImage(smooth.astype(np.uint8)))
        assert smooth_score < sharp_score

    @pytest.mark.parametrize(("height", "width"), [(1, 1), (8, 8), (8, 200), (200, 8)])
    def test_too_small_to_sample(self, height: int, width: int) -> None:
        image = CapturedImage(np.full((height, width, 3), 255, dtype=np.uint8))
        assert laplacian_score(image) == 0.0

    def test_smallest_sampled_image(self) -> None:
        pixels = np.zeros((9, 9, 3), dtype=np.uint8)
        pixels[4, 4] = 255
        # Only (4, 4) is sampled: response 8 * 255.
        assert laplacian_score(CapturedImage(pixels)) == pytest.approx((8 * 255.0) ** 2)

    def test_score_is_finite_float(self) -> None:
        rng = np.random.default_rng(0)
        score = laplacian_score(CapturedImage(rng.integers(0, 256, size=(50, 70, 3), dtype=np.uint8)))
        assert isinstance(score, float)
        assert math.isfinite(score)
