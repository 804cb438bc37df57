"""Tests for verdict thresholds."""

from __future__ import annotations

import dataclasses

import pytest

from focusgate.ml.decision import Verdict, VerdictSource, decide, fallback_is_blurry


class TestDecide:
    @pytest.mark.parametrize(
        ("probabilities", "expected"),
        [
            ((0.995, 0.005), True),  # confident blur
            ((0.99, 0.5), True),  # blur threshold is inclusive
            ((0.989, 0.5), False),
            ((0.5, 0.5), False),  # ambiguous but sharp enough
            ((0.85, 0.15), False),
            ((0.2, 0.09), True),  # sharp class too weak
            ((0.0, 0.1), False),  # sharp threshold is exclusive
            ((0.01, 0.99), False),
        ],
    )
    def test_double_threshold(self, probabilities: tuple[float, float], expected: bool) -> None:
        assert decide(probabilities) is expected

    def test_missing_values_default_to_zero(self) -> None:
        # sharp defaults to 0.0 < 0.1
        assert decide([0.3]) is True
        assert decide([]) is True

    def test_extra_outputs_are_ignored(self) -> None:
        assert decide([0.1, 0.9, 5.0]) is False

    def test_custom_thresholds(self) -> None:
        assert decide([0.8, 0.5], blur_threshold=0.75) is True
        assert decide([0.1, 0.4], sharp_threshold=0.5) is True


class TestFallbackRule:
    def test_strictly_below_threshold_is_blurry(self) -> None:
        assert fallback_is_blurry(149.9, 150.0) is True
        assert fallback_is_blurry(150.0, 150.0) is False
        assert fallback_is_blurry(0.0, 50.0) is True


class TestVerdict:
    def test_percentage_is_derived(self) -> None:
        assert Verdict(is_blurry=True, source=VerdictSource.MODEL).blur_percentage == 100.0
        assert Verdict(is_blurry=False, source=VerdictSource.MODEL).blur_percentage == 0.0

    def test_frozen(self) -> None:
        verdict = Verdict(is_blurry=False, source=VerdictSource.FALLBACK_UNAVAILABLE, score=12.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            verdict.is_blurry = True  # type: ignore[misc]
