"""OpenCV camera used for synchronous pattern capture."""

from __future__ import annotations

import logging
import sys

import cv2
import numpy as np

from .errors import CaptureError

logger = logging.getLogger(__name__)


class OpenCVCamera:
    """Grabs single frames from a ``cv2.VideoCapture`` device.

    Frames come back as (H, W, 3) BGR uint8 arrays, exactly as OpenCV
    delivers them; intensity reduction happens when the frame sequence is
    assembled. Usable as a context manager so the device is released on
    every exit path.
    """

    def __init__(self, device_idx: int = 0):
        self.device_idx = device_idx
        self._cap: cv2.VideoCapture | None = None

    def initialize(self) -> None:
        self.terminate()
        # DirectShow first on Windows (virtual cameras only show up there)
        if sys.platform == "win32":
            self._cap = cv2.VideoCapture(self.device_idx, cv2.CAP_DSHOW)
            if not self._cap.isOpened():
                self._cap = cv2.VideoCapture(self.device_idx)
        else:
            self._cap = cv2.VideoCapture(self.device_idx)
        if not self._cap.isOpened():
            self._cap = None
            raise CaptureError(f"Cannot open camera device {self.device_idx}")

        w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info("Opened camera %d (%dx%d)", self.device_idx, w, h)

    def capture_frame(self) -> np.ndarray:
        """Read one frame, raising :class:`CaptureError` if none arrives."""
        if self._cap is None or not self._cap.isOpened():
            raise CaptureError(f"Camera {self.device_idx} is not open")
        ret, frame = self._cap.read()
        if not ret or frame is None:
            raise CaptureError(f"Camera {self.device_idx} returned no frame")
        return frame.copy()

    def terminate(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Released camera %d", self.device_idx)

    def __enter__(self) -> OpenCVCamera:
        self.initialize()
        return self

    def __exit__(self, *exc) -> None:
        self.terminate()
