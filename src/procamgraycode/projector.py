"""Fullscreen pattern output through OpenCV HighGUI windows."""

from __future__ import annotations

import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class ProjectorWindow:
    """A borderless fullscreen window placed on the projector output.

    Pattern images are upscaled with nearest-neighbour interpolation to the
    display size, so each Gray code cell covers a solid block of display
    pixels. ``poll_key`` and ``wait_key`` return ``None`` when no key was
    pressed.
    """

    def __init__(
        self,
        width: int,
        height: int,
        pos_x: int = 0,
        pos_y: int = 0,
        window_name: str = "Pattern",
        preview_name: str = "camera",
    ):
        self.width = width
        self.height = height
        self.pos_x = pos_x
        self.pos_y = pos_y
        self.window_name = window_name
        self.preview_name = preview_name
        self._open = False
        self._preview_open = False

    def open(self) -> None:
        cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(self.window_name, self.width, self.height)
        cv2.moveWindow(self.window_name, self.pos_x, self.pos_y)
        cv2.setWindowProperty(
            self.window_name, cv2.WND_PROP_FULLSCREEN, cv2.WINDOW_FULLSCREEN,
        )
        self._open = True
        logger.info(
            "Projector window %dx%d at (%d, %d)",
            self.width, self.height, self.pos_x, self.pos_y,
        )

    def show_fullscreen(self, image: np.ndarray) -> None:
        if not self._open:
            self.open()
        if image.shape[:2] != (self.height, self.width):
            image = cv2.resize(
                image, (self.width, self.height), interpolation=cv2.INTER_NEAREST,
            )
        cv2.imshow(self.window_name, image)

    def show_preview(self, image: np.ndarray, name: str | None = None) -> None:
        """Show *image* in an ordinary window on the primary monitor."""
        cv2.imshow(name or self.preview_name, image)
        if name is None:
            self._preview_open = True

    def poll_key(self) -> int | None:
        return self.wait_key(1)

    def wait_key(self, ms: int) -> int | None:
        # waitKey(0) would block forever; a zero settle still has to pump events
        key = cv2.waitKey(max(int(ms), 1))
        return None if key == -1 else key

    def close_preview(self) -> None:
        if self._preview_open:
            cv2.destroyWindow(self.preview_name)
            self._preview_open = False

    def close(self) -> None:
        self.close_preview()
        if self._open:
            cv2.destroyWindow(self.window_name)
            self._open = False

    def __enter__(self) -> ProjectorWindow:
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()
