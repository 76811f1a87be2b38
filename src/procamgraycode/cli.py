"""Command line entry point: ``procam-graycode {capture,decode,patterns}``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import cv2

from .capture import load_frames
from .correspondence import visualize
from .errors import ProCamError
from .graycode import PatternGenerator
from .schema import SessionConfig
from .session import decode_frames, export_result, run_session, write_patterns

logger = logging.getLogger(__name__)

# argparse dest -> SessionConfig field
_CONFIG_ARGS = {
    "display_width": "display_width",
    "display_height": "display_height",
    "display_x": "display_x",
    "display_y": "display_y",
    "step_x": "step_x",
    "step_y": "step_y",
    "pattern_width": "pattern_width",
    "pattern_height": "pattern_height",
    "white_threshold": "white_threshold",
    "black_threshold": "black_threshold",
    "settle_ms": "settle_ms",
    "camera": "camera_index",
    "output_dir": "output_dir",
    "workers": "decode_workers",
    "min_coverage": "min_coverage_pct",
}


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, default=None,
                        help="JSON file with SessionConfig fields")
    parser.add_argument("--display-width", type=int,
                        help="Projector width in pixels (default: 1280)")
    parser.add_argument("--display-height", type=int,
                        help="Projector height in pixels (default: 800)")
    parser.add_argument("--display-x", type=int,
                        help="Projector desktop offset X (default: 3440)")
    parser.add_argument("--display-y", type=int,
                        help="Projector desktop offset Y (default: 0)")
    parser.add_argument("--step-x", type=int,
                        help="Display pixels per pattern cell, X (default: 5)")
    parser.add_argument("--step-y", type=int,
                        help="Display pixels per pattern cell, Y (default: 5)")
    parser.add_argument("--pattern-width", type=int,
                        help="Pattern columns (default: display width / step)")
    parser.add_argument("--pattern-height", type=int,
                        help="Pattern rows (default: display height / step)")
    parser.add_argument("--white-threshold", type=float,
                        help="Min |pos - neg| per bit (default: 5)")
    parser.add_argument("--black-threshold", type=float,
                        help="Min white - black for foreground (default: 40)")
    parser.add_argument("--settle-ms", type=int,
                        help="Wait after each pattern before capture (default: 400)")
    parser.add_argument("--camera", type=int,
                        help="Camera device index (default: 0)")
    parser.add_argument("--output-dir", type=Path,
                        help="Where captured/, c2p.csv and c2p_viz.png go")
    parser.add_argument("--workers", type=int,
                        help="Decode threads (default: executor default)")
    parser.add_argument("--min-coverage", type=float,
                        help="Warn below this %% of decoded camera pixels (default: 1)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procam-graycode",
        description="Gray code projector-camera correspondence",
    )
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    cap = sub.add_parser("capture", help="Project, capture and decode")
    _add_config_args(cap)
    cap.add_argument("--no-preview", action="store_true",
                     help="Skip the camera adjustment preview")
    cap.add_argument("--no-save-frames", action="store_true",
                     help="Do not write captured/cam_NN.png")
    cap.add_argument("--show-result", action="store_true",
                     help="Show the visualization until a key is pressed")

    dec = sub.add_parser("decode", help="Decode previously captured frames")
    _add_config_args(dec)
    dec.add_argument("frames_dir", type=Path, nargs="?", default=None,
                     help="Directory of cam_NN.png (default: <output-dir>/captured)")
    dec.add_argument("--show-result", action="store_true",
                     help="Show the visualization until a key is pressed")

    pat = sub.add_parser("patterns", help="Write the pattern images")
    _add_config_args(pat)
    pat.add_argument("out_dir", type=Path, help="Destination directory")

    return parser


def config_from_args(args: argparse.Namespace) -> SessionConfig:
    overrides = {
        field: getattr(args, dest)
        for dest, field in _CONFIG_ARGS.items()
        if getattr(args, dest, None) is not None
    }
    if getattr(args, "no_save_frames", False):
        overrides["save_frames"] = False
    if args.config is not None:
        return SessionConfig.from_json(args.config, **overrides)
    return SessionConfig.create(**overrides)


def _show(config: SessionConfig, result) -> None:
    viz = visualize(result.maps, config.display_width, config.display_height)
    cv2.imshow("result", viz)
    cv2.waitKey(0)
    cv2.destroyWindow("result")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    try:
        config = config_from_args(args)

        if args.command == "patterns":
            pattern_set = PatternGenerator.from_config(config).generate()
            write_patterns(pattern_set, args.out_dir)
            return 0

        if args.command == "capture":
            session = run_session(config, preview=not args.no_preview)
            result = session.correspondence
        else:
            frames = load_frames(args.frames_dir or config.capture_dir)
            result = decode_frames(config, frames)
            export_result(config, result)

        print(result.stats.summary())
        if args.show_result:
            _show(config, result)
    except (ProCamError, OSError) as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
