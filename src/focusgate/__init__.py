"""FocusGate: blur detection for camera capture pipelines."""

__version__ = "0.1.0"
