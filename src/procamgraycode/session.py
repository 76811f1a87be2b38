"""End-to-end session: generate -> preview -> capture -> decode -> export."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import cv2

from .camera import OpenCVCamera
from .capture import CaptureSequencer, FrameSequence, FrameStore
from .correspondence import (
    CorrespondenceBuilder,
    CorrespondenceResult,
    visualize,
    write_csv,
)
from .decode import GrayCodeDecoder
from .graycode import PatternGenerator, PatternSet
from .projector import ProjectorWindow
from .schema import SessionConfig

logger = logging.getLogger(__name__)


@dataclass
class SessionResult:
    frames: FrameSequence
    correspondence: CorrespondenceResult
    csv_path: Path
    visualization_path: Path


def decode_frames(
    config: SessionConfig,
    frames: FrameSequence,
    pattern_set: PatternSet | None = None,
    builder: CorrespondenceBuilder | None = None,
) -> CorrespondenceResult:
    """Decode a complete frame sequence captured with *config*'s patterns."""
    if pattern_set is None:
        pattern_set = PatternGenerator.from_config(config).generate()
    frames.validate_against(pattern_set)

    decoder = GrayCodeDecoder.from_pattern_set(
        pattern_set, step_x=config.step_x, step_y=config.step_y,
    )
    logger.info(
        "Decoding camera %dx%d against %dx%d patterns "
        "(white_threshold=%.1f, black_threshold=%.1f, stride %dx%d)",
        frames.width, frames.height, pattern_set.width, pattern_set.height,
        decoder.white_threshold, decoder.black_threshold,
        decoder.step_x, decoder.step_y,
    )
    shadow_mask = decoder.shadow_mask(frames)

    if builder is None:
        builder = CorrespondenceBuilder(max_workers=config.decode_workers)
    result = builder.build(frames, shadow_mask, decoder, frames.width, frames.height)

    if result.stats.coverage_pct < config.min_coverage_pct:
        logger.warning(
            "Only %s -- below the %.1f%% minimum. Check that the camera sees "
            "the projector, the settle delay and the thresholds.",
            result.stats.summary(), config.min_coverage_pct,
        )
    return result


def export_result(
    config: SessionConfig, result: CorrespondenceResult,
) -> tuple[Path, Path]:
    """Write the CSV table and the visualization image."""
    csv_path = write_csv(result.table, config.csv_path)
    viz = visualize(result.maps, config.display_width, config.display_height)
    viz_path = config.visualization_path
    viz_path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(viz_path), viz):
        raise OSError(f"Failed to write {viz_path}")
    logger.info("Saved visualization to %s", viz_path)
    return csv_path, viz_path


def write_patterns(pattern_set: PatternSet, directory: str | Path) -> list[Path]:
    """Write every pattern as ``pattern_NN.png`` for inspection."""
    d = Path(directory)
    d.mkdir(parents=True, exist_ok=True)
    paths = []
    for i, img in enumerate(pattern_set):
        out_path = d / f"pattern_{i:02d}.png"
        if not cv2.imwrite(str(out_path), img):
            raise OSError(f"Failed to write {out_path}")
        paths.append(out_path)
    logger.info("Wrote %d patterns to %s", len(paths), d)
    return paths


def run_session(
    config: SessionConfig,
    camera=None,
    display=None,
    preview: bool = True,
) -> SessionResult:
    """Run a full capture session and export the correspondence.

    *camera* and *display* default to :class:`OpenCVCamera` and
    :class:`ProjectorWindow` built from *config*. Both are released before
    decoding starts, and on any failure.
    """
    pattern_set = PatternGenerator.from_config(config).generate()

    if camera is None:
        camera = OpenCVCamera(config.camera_index)
    if display is None:
        display = ProjectorWindow(
            config.display_width, config.display_height,
            config.display_x, config.display_y,
        )
    store = FrameStore(config.capture_dir) if config.save_frames else None

    camera.initialize()
    try:
        sequencer = CaptureSequencer(display, camera, config.settle_ms, store)
        if preview:
            sequencer.preview(pattern_set)
        frames = sequencer.run(pattern_set)
    finally:
        camera.terminate()
        display.close()

    result = decode_frames(config, frames, pattern_set)
    csv_path, viz_path = export_result(config, result)
    return SessionResult(frames, result, csv_path, viz_path)
