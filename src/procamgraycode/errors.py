"""Exception types raised by the capture and decode pipeline."""

from __future__ import annotations


class ProCamError(Exception):
    """Base class for session-level failures."""


class ConfigurationError(ProCamError, ValueError):
    """Invalid pattern, display or threshold settings.

    Raised before any camera or display I/O begins.
    """


class CaptureError(ProCamError, RuntimeError):
    """The camera could not be opened or failed to deliver a frame."""


class SequenceAlignmentError(ProCamError, ValueError):
    """Captured frames do not line up with the projected pattern set."""
