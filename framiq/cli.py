"""Command line entry point.

    framiq batch INPUT_DIR OUTPUT_DIR [--ratio 4:5] [--border 10]
    framiq single IMAGE [--ratio square] [--border 5]
    framiq detect INPUT_DIR

Ratio and border default to the values stored in the settings file.
"""

from __future__ import annotations

import argparse
import os
import signal
import sys
from collections.abc import Sequence

from framiq.engine.aspect import TARGET_PRESETS, parse_aspect_ratio
from framiq.engine.codec import VipsCodec
from framiq.engine.geometry import validate_border_percent
from framiq.logger import get_logger
from framiq.pipeline import BatchPipeline, RunPhase, RunSnapshot
from framiq.settings_manager import SettingsManager, default_settings_path

EXIT_OK = 0
EXIT_FAILED = 1


def _ratio_arg(text: str):
    try:
        return parse_aspect_ratio(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _border_arg(text: str) -> float:
    try:
        return validate_border_percent(float(text))
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="framiq", description="Fit images onto an aspect-ratio canvas")
    parser.add_argument("--settings", help="Settings file (default: $FRAMIQ_SETTINGS or ~/.framiq/settings.json)")
    parser.add_argument("--log-level", help="Set log level")
    parser.add_argument("--log-cats", help="Set log categories")

    sub = parser.add_subparsers(dest="command", required=True)
    presets = ", ".join(TARGET_PRESETS)

    batch = sub.add_parser("batch", help="Frame every image of a directory")
    batch.add_argument("input_dir")
    batch.add_argument("output_dir")

    single = sub.add_parser("single", help="Frame one image next to the original")
    single.add_argument("image")

    for p in (batch, single):
        p.add_argument("--ratio", type=_ratio_arg, help=f"W:H or one of: {presets}")
        p.add_argument("--border", type=_border_arg, help="Passepartout in percent (0-50)")

    detect = sub.add_parser("detect", help="List the aspect ratios found in a directory")
    detect.add_argument("input_dir")
    return parser


def _apply_logging_options(args: argparse.Namespace) -> None:
    if args.log_level:
        os.environ["FRAMIQ_LOG_LEVEL"] = args.log_level
    if args.log_cats:
        os.environ["FRAMIQ_LOG_CATS"] = args.log_cats


def _report(snap: RunSnapshot | None) -> int:
    if snap is None:
        return EXIT_FAILED
    for name in snap.skipped_files:
        print(f"[X] {name}")
    print(f"{snap.phase.value}: processed {len(snap.processed_files)}, skipped {len(snap.skipped_files)}")
    return EXIT_FAILED if snap.phase == RunPhase.FAILED else EXIT_OK


def _sigint_handler(pipeline: BatchPipeline):
    """SIGINT handler that only raises the cancel flag.

    It runs on the thread that is also running the batch, so it must not take
    the run-state lock.
    """

    def _on_sigint(_signum, _frame) -> None:
        pipeline.request_cancel()

    return _on_sigint


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _apply_logging_options(args)
    logger = get_logger("cli")
    logger.debug("command: %s", args.command)

    settings = SettingsManager(args.settings or default_settings_path())
    pipeline = BatchPipeline(codec=VipsCodec(quality=settings.jpeg_quality))

    if args.command == "detect":
        groups = pipeline.detect_aspect_ratios(args.input_dir)
        for g in groups:
            print(f"{g.display_name:<20} {g.member_count:>5}  e.g. {g.sample_file_name}")
        return EXIT_OK

    ratio = args.ratio or settings.aspect_ratio
    border = settings.border_percent if args.border is None else args.border

    previous = signal.signal(signal.SIGINT, _sigint_handler(pipeline))
    try:
        if args.command == "batch":
            snap = pipeline.start(args.input_dir, args.output_dir, ratio, border)
            if snap is not None and snap.phase != RunPhase.FAILED:
                settings.set("last_input_dir", args.input_dir)
                settings.set("last_output_dir", args.output_dir)
        else:
            snap = pipeline.process_single_image(args.image, ratio, border)
    finally:
        signal.signal(signal.SIGINT, previous)

    if snap is not None and snap.phase != RunPhase.FAILED:
        settings.set("aspect_ratio", str(ratio))
        settings.set("border_percent", border)
    return _report(snap)


if __name__ == "__main__":
    sys.exit(main())
