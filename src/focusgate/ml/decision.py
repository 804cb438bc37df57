"""Verdict types and the thresholds that produce them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

DEFAULT_BLUR_THRESHOLD: float = 0.99
DEFAULT_SHARP_THRESHOLD: float = 0.1

BLURRY_PERCENTAGE: float = 100.0
SHARP_PERCENTAGE: float = 0.0


class VerdictSource(StrEnum):
    """Which path produced a verdict."""

    MODEL = "model"
    FALLBACK_TRANSIENT = "fallback_transient"
    FALLBACK_UNAVAILABLE = "fallback_unavailable"


@dataclass(frozen=True)
class Verdict:
    """Outcome of one blur check.

    ``is_blurry`` is the answer; the other fields are diagnostics.
    """

    is_blurry: bool
    source: VerdictSource
    probabilities: tuple[float, ...] | None = None
    score: float | None = None

    @property
    def blur_percentage(self) -> float:
        """Legacy numeric view: 100.0 for blurry, 0.0 for sharp, nothing in between."""
        return BLURRY_PERCENTAGE if self.is_blurry else SHARP_PERCENTAGE


def decide(
    probabilities: Sequence[float],
    blur_threshold: float = DEFAULT_BLUR_THRESHOLD,
    sharp_threshold: float = DEFAULT_SHARP_THRESHOLD,
) -> bool:
    """Classify a (blur, sharp) probability pair as blurry or not.

    Blurry when the blur class is near-certain or the sharp class is weak.
    Missing entries count as 0.0.
    """
    blur_prob = float(probabilities[0]) if len(probabilities) > 0 else 0.0
    sharp_prob = float(probabilities[1]) if len(probabilities) > 1 else 0.0
    return blur_prob >= blur_threshold or sharp_prob < sharp_threshold


def fallback_is_blurry(score: float, threshold: float) -> bool:
    """Laplacian fallback rule: weak edges mean blur."""
    return score < threshold
