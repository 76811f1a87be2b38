"""Projecting the pattern set and collecting one camera frame per pattern."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Protocol

import cv2
import numpy as np

from .errors import CaptureError, SequenceAlignmentError

if TYPE_CHECKING:
    from .graycode import PatternSet

logger = logging.getLogger(__name__)

_FRAME_NAME_RE = re.compile(r"^cam_(\d+)\.png$")


class Camera(Protocol):
    def initialize(self) -> None: ...
    def capture_frame(self) -> np.ndarray: ...
    def terminate(self) -> None: ...


class Display(Protocol):
    def show_fullscreen(self, image: np.ndarray) -> None: ...
    def show_preview(self, image: np.ndarray) -> None: ...
    def poll_key(self) -> int | None: ...
    def wait_key(self, ms: int) -> int | None: ...
    def close(self) -> None: ...


def to_intensity(frame: np.ndarray) -> np.ndarray:
    """Reduce a camera frame to a single-channel (H, W) intensity image."""
    if frame.ndim == 2:
        return frame
    if frame.ndim == 3:
        channels = frame.shape[2]
        if channels == 1:
            return frame[:, :, 0]
        if channels == 3:
            return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        if channels == 4:
            return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
    raise SequenceAlignmentError(f"Unsupported frame shape {frame.shape}")


# -- Frame sequence -----------------------------------------------------------


@dataclass(frozen=True, eq=False)
class FrameSequence:
    """Captured intensity frames, one per projected pattern, in pattern order."""

    frames: tuple[np.ndarray, ...] = field(repr=False)

    def __post_init__(self):
        if not self.frames:
            raise SequenceAlignmentError("Frame sequence is empty")
        shape = self.frames[0].shape
        for i, f in enumerate(self.frames):
            if f.ndim != 2:
                raise SequenceAlignmentError(
                    f"Frame {i} is not single-channel: shape {f.shape}"
                )
            if f.shape != shape:
                raise SequenceAlignmentError(
                    f"Frame {i} has shape {f.shape}, expected {shape}"
                )

    @classmethod
    def from_frames(cls, frames: Iterable[np.ndarray]) -> FrameSequence:
        gray = []
        for f in frames:
            g = np.array(to_intensity(np.asarray(f)), copy=True)
            g.setflags(write=False)
            gray.append(g)
        return cls(tuple(gray))

    @property
    def height(self) -> int:
        return self.frames[0].shape[0]

    @property
    def width(self) -> int:
        return self.frames[0].shape[1]

    def validate_against(self, pattern_set: PatternSet) -> None:
        """Raise :class:`SequenceAlignmentError` unless frames and patterns pair up."""
        if len(self.frames) != len(pattern_set):
            raise SequenceAlignmentError(
                f"{len(self.frames)} frames captured for {len(pattern_set)} patterns"
            )

    def black(self) -> np.ndarray:
        return self.frames[-2]

    def white(self) -> np.ndarray:
        return self.frames[-1]

    def __len__(self) -> int:
        return len(self.frames)

    def __getitem__(self, index: int) -> np.ndarray:
        return self.frames[index]


# -- Frame persistence --------------------------------------------------------


def frame_filename(index: int) -> str:
    return f"cam_{index:02d}.png"


class FrameStore:
    """Writes captured frames as ``cam_NN.png`` into one directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def save(self, index: int, frame: np.ndarray) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        out_path = self.directory / frame_filename(index)
        if not cv2.imwrite(str(out_path), frame):
            raise OSError(f"Failed to write {out_path}")
        logger.debug("Saved %s", out_path.name)
        return out_path


def load_frames(directory: str | Path) -> FrameSequence:
    """Load ``cam_NN.png`` frames from *directory* in index order."""
    d = Path(directory)
    indexed = []
    for p in d.iterdir() if d.is_dir() else ():
        m = _FRAME_NAME_RE.match(p.name)
        if m:
            indexed.append((int(m.group(1)), p))
    if not indexed:
        raise FileNotFoundError(f"No cam_NN.png frames found in {d}")
    indexed.sort()

    expected = list(range(len(indexed)))
    if [i for i, _ in indexed] != expected:
        raise SequenceAlignmentError(
            f"Frame numbering in {d} is not contiguous from cam_00.png"
        )

    frames = []
    for _, p in indexed:
        img = cv2.imread(str(p), cv2.IMREAD_GRAYSCALE)
        if img is None:
            raise OSError(f"Could not read {p}")
        frames.append(img)
    logger.info("Loaded %d frames from %s", len(frames), d)
    return FrameSequence.from_frames(frames)


# -- Capture sequencer --------------------------------------------------------


class CaptureSequencer:
    """Shows each pattern, waits ``settle_ms``, grabs one camera frame.

    The camera and display are owned by the caller for the session; the
    sequencer only drives them. Any :class:`CaptureError` aborts the run,
    since a partial sequence cannot be decoded.
    """

    def __init__(
        self,
        display: Display,
        camera: Camera,
        settle_ms: int,
        frame_store: FrameStore | None = None,
    ):
        if settle_ms < 0:
            raise ValueError(f"settle_ms must be >= 0, got {settle_ms}")
        self.display = display
        self.camera = camera
        self.settle_ms = settle_ms
        self.frame_store = frame_store

    def preview(self, pattern_set: PatternSet) -> int:
        """Live camera view for aiming/focus until any key is pressed.

        Projects the finest row pattern so stripe sharpness can be judged.
        Returns the number of preview frames shown.
        """
        self.display.show_fullscreen(pattern_set[pattern_set.preview_index])
        logger.info("Camera preview running, press any key to start capture")
        shown = 0
        while True:
            self.display.show_preview(self._grab())
            shown += 1
            if self.display.poll_key() is not None:
                break
        logger.info("Preview finished after %d frames", shown)
        return shown

    def run(self, pattern_set: PatternSet) -> FrameSequence:
        captured: list[np.ndarray] = []
        total = len(pattern_set)
        logger.info("Capturing %d patterns (settle=%dms)", total, self.settle_ms)

        for i, pattern in enumerate(pattern_set):
            self.display.show_fullscreen(pattern)
            self.display.wait_key(self.settle_ms)
            frame = self._grab()
            if self.frame_store is not None:
                self.frame_store.save(i, frame)
            captured.append(frame)
            logger.debug(
                "Captured %d/%d (%s)", i + 1, total, pattern_set.describe(i),
            )

        frames = FrameSequence.from_frames(captured)
        frames.validate_against(pattern_set)
        logger.info(
            "Capture complete: %d frames at %dx%d",
            len(frames), frames.width, frames.height,
        )
        return frames

    def _grab(self) -> np.ndarray:
        frame = self.camera.capture_frame()
        if frame is None:
            raise CaptureError("Camera returned no frame")
        return frame
