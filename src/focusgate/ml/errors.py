"""Exception hierarchy for the blur detection engine."""

from __future__ import annotations


class FocusGateError(Exception):
    """Base class for all FocusGate errors."""


class ModelLoadError(FocusGateError):
    """The model artifact is missing, corrupt, or has an unusable signature.

    Not retried: the detector stays on the Laplacian fallback for the rest of
    the session.
    """


class InferenceError(FocusGateError):
    """A single classification failed (preprocessing, normalization or run)."""


class InvalidImageError(FocusGateError):
    """Caller-supplied image data cannot be used."""
