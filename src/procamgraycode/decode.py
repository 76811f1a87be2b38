"""Gray code decode: camera pixel -> projector pixel.

Per camera pixel:
1. Shadow mask: white - black must exceed ``black_threshold``
2. Every bit, columns then rows, MSB first: |pos - neg| must reach
   ``white_threshold``, otherwise the pixel is dropped; bit = pos > neg
3. Gray-to-binary per axis
4. Decoded column/row must lie inside the pattern; out-of-range values are
   dropped, never clamped
5. Scale by the display stride

``decode_pixel`` is the reference single-pixel form. ``decode_band`` applies
the same rules to a block of rows with numpy and is what the builder uses.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from .errors import ConfigurationError, SequenceAlignmentError
from .graycode import (
    AXIS_COLUMNS,
    AXIS_ROWS,
    bit_plane_indices,
    expected_pattern_count,
    gray_to_binary,
    num_bits,
)

if TYPE_CHECKING:
    from .capture import FrameSequence
    from .graycode import PatternSet

logger = logging.getLogger(__name__)


def compute_shadow_mask(
    white: np.ndarray, black: np.ndarray, black_threshold: float,
) -> np.ndarray:
    """Boolean (H, W) mask of camera pixels lit by the projector."""
    diff = white.astype(np.float32) - black.astype(np.float32)
    return diff > black_threshold


class GrayCodeDecoder:
    """Stateless decoder for one pattern layout and threshold pair.

    Parameters
    ----------
    pattern_width, pattern_height : int
        Gray code resolution the frames were captured with.
    white_threshold : float
        Minimum |positive - negative| for a bit to be trusted.
    black_threshold : float
        Minimum white - black for a pixel to be foreground.
    step_x, step_y : int
        Display pixels per pattern cell; decoded cells are multiplied by
        these before being returned.
    """

    def __init__(
        self,
        pattern_width: int,
        pattern_height: int,
        white_threshold: float,
        black_threshold: float,
        step_x: int = 1,
        step_y: int = 1,
    ):
        if step_x < 1 or step_y < 1:
            raise ConfigurationError(f"stride must be >= 1, got {step_x}x{step_y}")
        self.pattern_width = pattern_width
        self.pattern_height = pattern_height
        self.white_threshold = white_threshold
        self.black_threshold = black_threshold
        self.step_x = step_x
        self.step_y = step_y

        self.bits_x = num_bits(pattern_width)
        self.bits_y = num_bits(pattern_height)
        self.pattern_count = expected_pattern_count(pattern_width, pattern_height)
        self._col_pairs = bit_plane_indices(self.bits_x, self.bits_y, AXIS_COLUMNS)
        self._row_pairs = bit_plane_indices(self.bits_x, self.bits_y, AXIS_ROWS)

    @classmethod
    def from_pattern_set(
        cls, pattern_set: PatternSet, step_x: int = 1, step_y: int = 1,
    ) -> GrayCodeDecoder:
        return cls(
            pattern_set.width,
            pattern_set.height,
            pattern_set.white_threshold,
            pattern_set.black_threshold,
            step_x=step_x,
            step_y=step_y,
        )

    # -- Checks ---------------------------------------------------------------

    def check_frames(self, frames: FrameSequence) -> None:
        """Reject a frame sequence that does not match this pattern layout."""
        if len(frames) != self.pattern_count:
            raise SequenceAlignmentError(
                f"{len(frames)} frames for a {self.pattern_width}x"
                f"{self.pattern_height} pattern set of {self.pattern_count}"
            )

    def check_mask(self, frames: FrameSequence, shadow_mask: np.ndarray) -> np.ndarray:
        """Return *shadow_mask* as a bool array after checking it against *frames*."""
        self.check_frames(frames)
        mask = np.asarray(shadow_mask, dtype=bool)
        if mask.shape != (frames.height, frames.width):
            raise SequenceAlignmentError(
                f"shadow mask shape {mask.shape} does not match "
                f"{frames.width}x{frames.height} frames"
            )
        return mask

    def shadow_mask(self, frames: FrameSequence) -> np.ndarray:
        self.check_frames(frames)
        mask = compute_shadow_mask(frames.white(), frames.black(), self.black_threshold)
        n = int(np.count_nonzero(mask))
        total = mask.size
        logger.info(
            "Shadow mask: %d/%d pixels lit (%.1f%%) [black_threshold=%.1f]",
            n, total, 100.0 * n / max(total, 1), self.black_threshold,
        )
        return mask

    # -- Single pixel ---------------------------------------------------------

    def decode_pixel(
        self,
        frames: FrameSequence,
        shadow_mask: np.ndarray,
        x: int,
        y: int,
        white_threshold: float | None = None,
    ) -> tuple[int, int] | None:
        """Projector display coordinate seen by camera pixel (x, y), or None."""
        shadow_mask = self.check_mask(frames, shadow_mask)
        if not shadow_mask[y, x]:
            return None
        wt = self.white_threshold if white_threshold is None else white_threshold

        col = self._decode_axis_pixel(frames, self._col_pairs, x, y, wt)
        if col is None:
            return None
        row = self._decode_axis_pixel(frames, self._row_pairs, x, y, wt)
        if row is None:
            return None

        if not (0 <= col < self.pattern_width and 0 <= row < self.pattern_height):
            return None
        return col * self.step_x, row * self.step_y

    @staticmethod
    def _decode_axis_pixel(
        frames: FrameSequence,
        pairs: list[tuple[int, int]],
        x: int,
        y: int,
        wt: float,
    ) -> int | None:
        gray = 0
        for pos_idx, neg_idx in pairs:
            pos = float(frames[pos_idx][y, x])
            neg = float(frames[neg_idx][y, x])
            if abs(pos - neg) < wt:
                return None
            gray = (gray << 1) | (1 if pos > neg else 0)
        return gray_to_binary(gray)

    # -- Row band -------------------------------------------------------------

    def decode_band(
        self,
        frames: FrameSequence,
        shadow_mask: np.ndarray,
        y0: int,
        y1: int,
        white_threshold: float | None = None,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Decode camera rows ``[y0, y1)``.

        Returns ``(valid, proj_x, proj_y)``, each shaped (y1 - y0, W).
        ``proj_x``/``proj_y`` are stride-scaled and zero where not valid.
        """
        shadow_mask = self.check_mask(frames, shadow_mask)
        wt = self.white_threshold if white_threshold is None else white_threshold
        rows = slice(y0, y1)

        col, col_ok = self._decode_axis_band(frames, self._col_pairs, rows, wt)
        row, row_ok = self._decode_axis_band(frames, self._row_pairs, rows, wt)

        valid = (
            shadow_mask[rows]
            & col_ok
            & row_ok
            & (col >= 0) & (col < self.pattern_width)
            & (row >= 0) & (row < self.pattern_height)
        )
        proj_x = np.where(valid, col * self.step_x, 0)
        proj_y = np.where(valid, row * self.step_y, 0)
        return valid, proj_x, proj_y

    @staticmethod
    def _decode_axis_band(
        frames: FrameSequence,
        pairs: list[tuple[int, int]],
        rows: slice,
        wt: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        shape = frames[0][rows].shape
        gray = np.zeros(shape, dtype=np.int64)
        reliable = np.ones(shape, dtype=bool)
        for pos_idx, neg_idx in pairs:
            diff = (
                frames[pos_idx][rows].astype(np.float32)
                - frames[neg_idx][rows].astype(np.float32)
            )
            reliable &= np.abs(diff) >= wt
            gray = (gray << 1) | (diff > 0).astype(np.int64)
        return gray_to_binary(gray), reliable
