"""Command-line argument parsing for target_scan."""

import argparse

from target_core import (
    VERSION,
    DEFAULT_TARGET_TYPE,
    DEFAULT_NUM_WORKERS,
    available_target_types,
)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return number


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""

    parser = argparse.ArgumentParser(
        prog="target-scan",
        description="Bullet hole detection and shot-group analysis for target photographs",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Target Scan {VERSION}",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Show diagnostic details and INFO logs"
    )
    parser.add_argument("--debug", action="store_true", help="Show DEBUG logs")
    parser.add_argument(
        "--locale",
        default=None,
        help="Message locale (default: $TARGET_SCAN_LOCALE or 'en')",
    )
    parser.add_argument(
        "--json", action="store_true", help="Print the result as JSON instead of text"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    # detect
    detect = subparsers.add_parser("detect", help="Detect hole candidates in target images")
    detect.add_argument("images", nargs="+", metavar="IMAGE", help="Cropped target image files")
    detect.add_argument("--config", default=None, help="Pipeline configuration (YAML/JSON)")
    detect.add_argument(
        "--target-type",
        choices=available_target_types(),
        default=None,
        help=f"Target type (default: config value or {DEFAULT_TARGET_TYPE})",
    )
    detect.add_argument(
        "--min-circularity", type=float, default=None, help="Override minimum circularity"
    )
    detect.add_argument(
        "--min-diameter", type=float, default=None, help="Override minimum hole diameter (px)"
    )
    detect.add_argument(
        "--max-diameter", type=float, default=None, help="Override maximum hole diameter (px)"
    )
    detect.add_argument(
        "--no-ring-filter",
        action="store_true",
        help="Keep contours that sit on scoring ring lines",
    )
    detect.add_argument(
        "--no-local-background",
        action="store_true",
        help="Score darkness without local background sampling",
    )
    detect.add_argument(
        "--workers",
        type=_positive_int,
        default=None,
        help=f"Worker threads (default: config value or {DEFAULT_NUM_WORKERS})",
    )
    detect.add_argument(
        "--timeout", type=float, default=None, help="Contour extraction timeout in seconds"
    )
    detect.add_argument(
        "--print-config",
        action="store_true",
        help="Print the effective configuration and exit",
    )

    # analyze
    analyze = subparsers.add_parser("analyze", help="Analyze a shot group")
    analyze.add_argument("shots_file", metavar="SHOTS_FILE", help="YAML/JSON list of {x, y, score}")
    analyze.add_argument(
        "--target-type",
        choices=available_target_types(),
        default=DEFAULT_TARGET_TYPE,
        help=f"Target type (default: {DEFAULT_TARGET_TYPE})",
    )
    analyze.add_argument(
        "--expected-count", type=int, default=None, help="Expected number of shots"
    )
    analyze.add_argument(
        "--project",
        type=int,
        default=0,
        metavar="N",
        help="Project the score of an N-shot round (0 disables)",
    )
    analyze.add_argument("--seed", type=int, default=None, help="Random seed for projection")

    # adapters
    subparsers.add_parser("adapters", help="List contour adapters and target types")

    return parser


def parse_args(argv=None):
    """Parse CLI arguments."""

    parser = build_arg_parser()
    return parser.parse_args(argv)
