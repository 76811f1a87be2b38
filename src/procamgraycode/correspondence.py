"""Assembling decoded pixels into the camera -> projector table and maps."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, NamedTuple

import numpy as np

from .errors import SequenceAlignmentError

if TYPE_CHECKING:
    from .capture import FrameSequence
    from .decode import GrayCodeDecoder

logger = logging.getLogger(__name__)


class CorrespondenceEntry(NamedTuple):
    camera_x: int
    camera_y: int
    projector_x: int
    projector_y: int


class CorrespondenceTable:
    """Valid correspondences as an (N, 4) int32 array in row-major scan order.

    Columns are ``camera_x, camera_y, projector_x, projector_y``.
    """

    def __init__(self, array: np.ndarray | None = None):
        if array is None:
            array = np.empty((0, 4), dtype=np.int32)
        array = np.asarray(array, dtype=np.int32).reshape(-1, 4)
        self.array = array

    def __len__(self) -> int:
        return len(self.array)

    def __iter__(self) -> Iterator[CorrespondenceEntry]:
        for cx, cy, px, py in self.array.tolist():
            yield CorrespondenceEntry(cx, cy, px, py)

    def __getitem__(self, index: int) -> CorrespondenceEntry:
        return CorrespondenceEntry(*self.array[index].tolist())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CorrespondenceTable):
            return NotImplemented
        return np.array_equal(self.array, other.array)

    def __repr__(self) -> str:
        return f"CorrespondenceTable({len(self)} entries)"


@dataclass
class ProjectorCoordinateMap:
    """Dense (H, W) projector x / y per camera pixel, zero where undecoded."""

    map_x: np.ndarray
    map_y: np.ndarray

    @classmethod
    def zeros(cls, cam_width: int, cam_height: int) -> ProjectorCoordinateMap:
        return cls(
            np.zeros((cam_height, cam_width), dtype=np.int32),
            np.zeros((cam_height, cam_width), dtype=np.int32),
        )


@dataclass
class DecodeStats:
    total_pixels: int
    foreground_pixels: int
    valid_pixels: int

    @property
    def coverage_pct(self) -> float:
        return 100.0 * self.valid_pixels / max(self.total_pixels, 1)

    def summary(self) -> str:
        return (
            f"{self.valid_pixels}/{self.total_pixels} camera pixels decoded "
            f"({self.coverage_pct:.1f}%), {self.foreground_pixels} lit"
        )


@dataclass
class CorrespondenceResult:
    table: CorrespondenceTable
    maps: ProjectorCoordinateMap
    valid_mask: np.ndarray
    stats: DecodeStats


# -- Builder ------------------------------------------------------------------


class CorrespondenceBuilder:
    """Decodes every camera pixel and collects the results.

    The frame is split into horizontal bands of ``band_rows`` rows that are
    decoded on a thread pool. Each band writes only its own rows of the maps
    and returns its own entries; bands are joined in order, so the table is
    row-major and identical between runs.
    """

    def __init__(self, max_workers: int | None = None, band_rows: int = 64):
        if band_rows < 1:
            raise ValueError(f"band_rows must be >= 1, got {band_rows}")
        self.max_workers = max_workers
        self.band_rows = band_rows

    def build(
        self,
        frames: FrameSequence,
        shadow_mask: np.ndarray,
        decoder: GrayCodeDecoder,
        cam_width: int,
        cam_height: int,
    ) -> CorrespondenceResult:
        decoder.check_frames(frames)
        if (frames.width, frames.height) != (cam_width, cam_height):
            raise SequenceAlignmentError(
                f"frames are {frames.width}x{frames.height}, "
                f"expected {cam_width}x{cam_height}"
            )
        # 0/255 masks from cv2 must select, not index
        shadow_mask = decoder.check_mask(frames, shadow_mask)

        maps = ProjectorCoordinateMap.zeros(cam_width, cam_height)
        valid_mask = np.zeros((cam_height, cam_width), dtype=bool)

        def decode_rows(y0: int, y1: int) -> np.ndarray:
            valid, proj_x, proj_y = decoder.decode_band(frames, shadow_mask, y0, y1)
            valid_mask[y0:y1] = valid
            maps.map_x[y0:y1][valid] = proj_x[valid]
            maps.map_y[y0:y1][valid] = proj_y[valid]
            ys, xs = np.nonzero(valid)
            return np.column_stack(
                [xs, ys + y0, proj_x[ys, xs], proj_y[ys, xs]],
            ).astype(np.int32)

        bands = [
            (y0, min(y0 + self.band_rows, cam_height))
            for y0 in range(0, cam_height, self.band_rows)
        ]
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(decode_rows, y0, y1) for y0, y1 in bands]
            parts = [f.result() for f in futures]

        array = (
            np.concatenate(parts, axis=0) if parts
            else np.empty((0, 4), dtype=np.int32)
        )
        table = CorrespondenceTable(array)
        stats = DecodeStats(
            total_pixels=cam_width * cam_height,
            foreground_pixels=int(np.count_nonzero(shadow_mask)),
            valid_pixels=len(table),
        )
        logger.info("Decode: %s (%d bands)", stats.summary(), len(bands))
        return CorrespondenceResult(table, maps, valid_mask, stats)


# -- Export -------------------------------------------------------------------


def write_csv(table: CorrespondenceTable, path: str | Path) -> Path:
    """Write ``cx, cy, px, py`` rows, no header."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", newline="") as f:
        for cx, cy, px, py in table.array.tolist():
            f.write(f"{cx}, {cy}, {px}, {py}\n")
    logger.info("Wrote %d correspondences to %s", len(table), p)
    return p


def read_csv(path: str | Path) -> CorrespondenceTable:
    rows = []
    for line_no, line in enumerate(Path(path).read_text().splitlines(), 1):
        if not line.strip():
            continue
        fields = [s.strip() for s in line.split(",")]
        if len(fields) != 4:
            raise ValueError(f"{path}:{line_no}: expected 4 fields, got {len(fields)}")
        rows.append([int(v) for v in fields])
    return CorrespondenceTable(np.array(rows, dtype=np.int32).reshape(-1, 4))


def visualize(
    maps: ProjectorCoordinateMap, display_width: int, display_height: int,
) -> np.ndarray:
    """BGR uint8 image: blue = projector x, green = projector y, both 0..255."""
    h, w = maps.map_x.shape
    viz = np.zeros((h, w, 3), dtype=np.uint8)
    sx = 255.0 / max(display_width - 1, 1)
    sy = 255.0 / max(display_height - 1, 1)
    viz[:, :, 0] = np.clip(maps.map_x * sx, 0, 255).astype(np.uint8)
    viz[:, :, 1] = np.clip(maps.map_y * sy, 0, 255).astype(np.uint8)
    return viz
