from __future__ import annotations

import numpy as np
import pytest

from procamgraycode.capture import FrameSequence
from procamgraycode.errors import CaptureError

LOW = 30
HIGH = 220


def block_mapping(cam_w: int, cam_h: int, scale: int) -> tuple[np.ndarray, np.ndarray]:
    """Camera pixel (x, y) looks at pattern cell (x // scale, y // scale)."""
    xs = np.arange(cam_w) // scale
    ys = np.arange(cam_h) // scale
    proj_x = np.tile(xs[np.newaxis, :], (cam_h, 1))
    proj_y = np.tile(ys[:, np.newaxis], (1, cam_w))
    return proj_x, proj_y


def render(pattern: np.ndarray, proj_x: np.ndarray, proj_y: np.ndarray) -> np.ndarray:
    lit = pattern[proj_y, proj_x] > 0
    return np.where(lit, HIGH, LOW).astype(np.uint8)


def render_capture(pattern_set, proj_x, proj_y) -> list[np.ndarray]:
    return [render(img, proj_x, proj_y) for img in pattern_set]


class FakeScene:
    """Projector + camera pair: the camera sees whatever was shown last."""

    def __init__(self, proj_x, proj_y, fail_after: int | None = None, keys_after: int = 3):
        self.proj_x = proj_x
        self.proj_y = proj_y
        self.fail_after = fail_after
        self.keys_after = keys_after
        self.shown: list[np.ndarray] = []
        self.previews = 0
        self.waits: list[int] = []
        self.polls = 0
        self.captures = 0
        self.initialized = False
        self.terminated = False
        self.closed = False

    # display side
    def show_fullscreen(self, image):
        self.shown.append(image)

    def show_preview(self, image):
        self.previews += 1

    def poll_key(self):
        self.polls += 1
        return ord(" ") if self.polls >= self.keys_after else None

    def wait_key(self, ms):
        self.waits.append(ms)
        return None

    def close(self):
        self.closed = True

    # camera side
    def initialize(self):
        self.initialized = True

    def capture_frame(self):
        if self.fail_after is not None and self.captures >= self.fail_after:
            raise CaptureError("camera unplugged")
        self.captures += 1
        return render(self.shown[-1], self.proj_x, self.proj_y)

    def terminate(self):
        self.terminated = True


@pytest.fixture
def scene():
    proj_x, proj_y = block_mapping(32, 16, 4)
    return FakeScene(proj_x, proj_y)


def as_sequence(frames: list[np.ndarray]) -> FrameSequence:
    return FrameSequence.from_frames(frames)
