"""Tests for pixel range normalization."""

from __future__ import annotations

import numpy as np
import pytest

from focusgate.ml.normalization import RangeNormalizer, TensorDType, looks_pixel_scaled


class TestTensorDType:
    def test_from_onnx(self) -> None:
        assert TensorDType.from_onnx("tensor(float)") is TensorDType.FLOAT32
        assert TensorDType.from_onnx("tensor(uint8)") is TensorDType.UINT8

    def test_unsupported_type(self) -> None:
        with pytest.raises(ValueError, match="Unsupported"):
            TensorDType.from_onnx("tensor(int64)")

    def test_numpy_dtype(self) -> None:
        assert TensorDType.FLOAT32.numpy_dtype == np.float32
        assert TensorDType.UINT8.numpy_dtype == np.uint8


class TestUint8Source:
    def test_float_target_lands_in_unit_range(self) -> None:
        rng = np.random.default_rng(7)
        pixels = rng.integers(0, 256, size=(32, 32, 3), dtype=np.uint8)
        pixels[0, 0] = (0, 255, 128)

        result = RangeNormalizer(TensorDType.FLOAT32).normalize(pixels)

        assert result.dtype == np.float32
        assert result.shape == (32 * 32 * 3,)
        assert result.min() >= 0.0
        assert result.max() <= 1.0
        assert result[0] == 0.0
        assert result[1] == pytest.approx(1.0)
        np.testing.assert_allclose(result, pixels.reshape(-1) / 255.0, rtol=1e-6)

    def test_uint8_target_passes_through(self) -> None:
        pixels = np.arange(12, dtype=np.uint8)
        result = RangeNormalizer(TensorDType.UINT8).normalize(pixels)
        assert result.dtype == np.uint8
        np.testing.assert_array_equal(result, pixels)

    def test_writes_into_scratch_buffer(self) -> None:
        pixels = np.full((4, 4, 3), 255, dtype=np.uint8)
        out = np.empty(48, dtype=np.float32)

        result = RangeNormalizer(TensorDType.FLOAT32).normalize(pixels, out=out)

        assert result is out
        np.testing.assert_allclose(out, 1.0)

    def test_mismatched_scratch_buffer_raises(self) -> None:
        with pytest.raises(ValueError, match="elements"):
            RangeNormalizer(TensorDType.FLOAT32).normalize(np.zeros(10, dtype=np.uint8), out=np.empty(9, np.float32))


class TestFloatSource:
    def test_already_normalized_is_unchanged(self) -> None:
        buffer = np.linspace(0.0, 1.0, 300, dtype=np.float32)
        result = RangeNormalizer(TensorDType.FLOAT32).normalize(buffer)
        np.testing.assert_array_equal(result, buffer)

    def test_values_up_to_cutoff_are_unchanged(self) -> None:
        buffer = np.array([1.5, -1.2, 0.3], dtype=np.float32)
        result = RangeNormalizer(TensorDType.FLOAT32).normalize(buffer)
        np.testing.assert_array_equal(result, buffer)

    def test_pixel_scale_is_divided(self) -> None:
        buffer = np.linspace(0.0, 255.0, 300, dtype=np.float32)
        result = RangeNormalizer(TensorDType.FLOAT32).normalize(buffer)
        np.testing.assert_allclose(result, buffer / 255.0, rtol=1e-6)
        assert result.max() <= 1.0

    def test_negative_magnitude_counts(self) -> None:
        buffer = np.array([-200.0, 10.0, 0.0], dtype=np.float32)
        result = RangeNormalizer(TensorDType.FLOAT32).normalize(buffer)
        np.testing.assert_allclose(result, buffer / 255.0, rtol=1e-6)

    def test_only_first_hundred_values_are_sampled(self) -> None:
        buffer = np.zeros(200, dtype=np.float32)
        buffer[150] = 255.0
        result = RangeNormalizer(TensorDType.FLOAT32).normalize(buffer)
        # The large value sits outside the sample, so nothing is rescaled.
        np.testing.assert_array_equal(result, buffer)

    def test_float64_into_float32_scratch(self) -> None:
        buffer = np.full(6, 51.0, dtype=np.float64)
        out = np.empty(6, dtype=np.float32)
        result = RangeNormalizer(TensorDType.FLOAT32).normalize(buffer, out=out)
        assert result is out
        np.testing.assert_allclose(out, 0.2, rtol=1e-6)


class TestLooksPixelScaled:
    def test_empty_buffer(self) -> None:
        assert looks_pixel_scaled(np.array([], dtype=np.float32)) is False

    def test_threshold(self) -> None:
        assert looks_pixel_scaled(np.array([1.5], dtype=np.float32)) is False
        assert looks_pixel_scaled(np.array([1.51], dtype=np.float32)) is True
