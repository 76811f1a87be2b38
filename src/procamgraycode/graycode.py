"""Gray code pattern generation.

Sequence layout shared by the generator and the decoder::

    [0, 2*bits_x)              column bit-planes, MSB first, (pos, neg) pairs
    [2*bits_x, 2*(bx+by))      row bit-planes, MSB first, (pos, neg) pairs
    len - 2                    all black
    len - 1                    all white

Column bit-planes are vertical stripes encoding the projector column; row
bit-planes are horizontal stripes encoding the projector row.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from .errors import ConfigurationError

if TYPE_CHECKING:
    from .schema import SessionConfig

logger = logging.getLogger(__name__)

AXIS_COLUMNS = 0
AXIS_ROWS = 1


# -- Gray code utilities ------------------------------------------------------


def binary_to_gray(n):
    """Encode an int (or integer ndarray) as its reflected binary Gray code."""
    return n ^ (n >> 1)


def gray_to_binary(g):
    """Invert :func:`binary_to_gray` for an int or integer ndarray."""
    if isinstance(g, np.ndarray):
        n = g.copy()
        shift = n >> 1
        while np.any(shift):
            n ^= shift
            shift >>= 1
        return n
    n = g
    mask = n >> 1
    while mask:
        n ^= mask
        mask >>= 1
    return n


def num_bits(resolution: int) -> int:
    """Bit-planes needed to address *resolution* cells: ceil(log2(resolution))."""
    if resolution < 1:
        raise ConfigurationError(f"resolution must be positive, got {resolution}")
    return math.ceil(math.log2(resolution))


def expected_pattern_count(pattern_width: int, pattern_height: int) -> int:
    return 2 * num_bits(pattern_width) + 2 * num_bits(pattern_height) + 2


def bit_plane_indices(bits_x: int, bits_y: int, axis: int) -> list[tuple[int, int]]:
    """(positive, negative) sequence indices for *axis*, MSB first."""
    if axis == AXIS_COLUMNS:
        base, bits = 0, bits_x
    else:
        base, bits = 2 * bits_x, bits_y
    return [(base + 2 * k, base + 2 * k + 1) for k in range(bits)]


def generate_pattern(
    bit: int,
    axis: int,
    inverted: bool,
    proj_w: int,
    proj_h: int,
) -> np.ndarray:
    """Generate a single Gray code bit-plane.

    Parameters
    ----------
    bit : int
        Which bit of the Gray code to display (0 = least significant).
    axis : int
        ``AXIS_COLUMNS`` (vertical stripes) or ``AXIS_ROWS`` (horizontal).
    inverted : bool
        If True, return the negative image (255 - pattern).
    proj_w, proj_h : int
        Pattern resolution.

    Returns
    -------
    np.ndarray
        (proj_h, proj_w) uint8 image holding only 0 and 255.
    """
    length = proj_w if axis == AXIS_COLUMNS else proj_h
    gray = binary_to_gray(np.arange(length, dtype=np.int64))
    stripe = ((gray >> bit) & 1).astype(np.uint8) * 255

    if axis == AXIS_COLUMNS:
        pattern = np.tile(stripe[np.newaxis, :], (proj_h, 1))
    else:
        pattern = np.tile(stripe[:, np.newaxis], (1, proj_w))

    if inverted:
        pattern = 255 - pattern
    return pattern


# -- Pattern set --------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class PatternSet:
    """Ordered Gray code bit-planes followed by the black/white shadow pair.

    ``white_threshold`` and ``black_threshold`` ride along as decode-time
    parameters; generation does not use them.
    """

    width: int
    height: int
    white_threshold: float
    black_threshold: float
    images: tuple[np.ndarray, ...] = field(repr=False)

    @property
    def bits_x(self) -> int:
        return num_bits(self.width)

    @property
    def bits_y(self) -> int:
        return num_bits(self.height)

    @property
    def black_index(self) -> int:
        return len(self.images) - 2

    @property
    def white_index(self) -> int:
        return len(self.images) - 1

    @property
    def preview_index(self) -> int:
        """Pattern shown while the camera is being adjusted (finest row negative)."""
        return max(len(self.images) - 3, 0)

    def bit_plane_indices(self, axis: int) -> list[tuple[int, int]]:
        return bit_plane_indices(self.bits_x, self.bits_y, axis)

    def describe(self, index: int) -> str:
        """Human-readable label for the pattern at *index*."""
        if index == self.black_index:
            return "black"
        if index == self.white_index:
            return "white"
        total_x = 2 * self.bits_x
        if index < total_x:
            axis, bits, local = "X", self.bits_x, index
        else:
            axis, bits, local = "Y", self.bits_y, index - total_x
        sign = "neg" if local % 2 else "pos"
        return f"{axis} bit {bits - 1 - local // 2} ({sign})"

    def __len__(self) -> int:
        return len(self.images)

    def __iter__(self):
        return iter(self.images)

    def __getitem__(self, index: int) -> np.ndarray:
        return self.images[index]


# -- Generator ----------------------------------------------------------------


class PatternGenerator:
    """Builds the :class:`PatternSet` for a given pattern resolution.

    Usage::

        gen = PatternGenerator(256, 160, white_threshold=5, black_threshold=40)
        patterns = gen.generate()
    """

    def __init__(
        self,
        pattern_width: int,
        pattern_height: int,
        white_threshold: float,
        black_threshold: float,
        *,
        projector_width: int | None = None,
        projector_height: int | None = None,
    ):
        if pattern_width < 1 or pattern_height < 1:
            raise ConfigurationError(
                f"pattern size must be positive, got {pattern_width}x{pattern_height}"
            )
        if projector_width is not None and pattern_width > projector_width:
            raise ConfigurationError(
                f"pattern_width {pattern_width} exceeds projector width {projector_width}"
            )
        if projector_height is not None and pattern_height > projector_height:
            raise ConfigurationError(
                f"pattern_height {pattern_height} exceeds projector height {projector_height}"
            )
        if white_threshold <= 0 or black_threshold <= 0:
            raise ConfigurationError(
                f"thresholds must be positive (white={white_threshold}, "
                f"black={black_threshold})"
            )

        self.pattern_width = pattern_width
        self.pattern_height = pattern_height
        self.white_threshold = white_threshold
        self.black_threshold = black_threshold
        self.bits_x = num_bits(pattern_width)
        self.bits_y = num_bits(pattern_height)

    @classmethod
    def from_config(cls, config: SessionConfig) -> PatternGenerator:
        return cls(
            config.pattern_width,
            config.pattern_height,
            config.white_threshold,
            config.black_threshold,
            projector_width=config.display_width,
            projector_height=config.display_height,
        )

    def generate(self) -> PatternSet:
        w, h = self.pattern_width, self.pattern_height
        images: list[np.ndarray] = []

        for axis, bits in ((AXIS_COLUMNS, self.bits_x), (AXIS_ROWS, self.bits_y)):
            for capture_bit in range(bits):
                bit = (bits - 1) - capture_bit  # MSB first
                images.append(generate_pattern(bit, axis, False, w, h))
                images.append(generate_pattern(bit, axis, True, w, h))

        images.append(np.zeros((h, w), dtype=np.uint8))
        images.append(np.full((h, w), 255, dtype=np.uint8))

        for img in images:
            img.setflags(write=False)

        logger.info(
            "Generated %d patterns for %dx%d (%d bits_x, %d bits_y)",
            len(images), w, h, self.bits_x, self.bits_y,
        )
        return PatternSet(
            width=w,
            height=h,
            white_threshold=self.white_threshold,
            black_threshold=self.black_threshold,
            images=tuple(images),
        )


def generate(
    pattern_width: int,
    pattern_height: int,
    white_threshold: float,
    black_threshold: float,
) -> PatternSet:
    """Shorthand for ``PatternGenerator(...).generate()``."""
    return PatternGenerator(
        pattern_width, pattern_height, white_threshold, black_threshold,
    ).generate()
