"""Command-line application layer for target_core."""

from target_scan.app import run
from target_scan.cli import build_arg_parser, parse_args

__all__ = ["run", "build_arg_parser", "parse_args"]
