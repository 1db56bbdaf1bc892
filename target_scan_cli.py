#!/usr/bin/env python
#
# Target Scan CLI
# © 2025 Shinichi Morita (shin3tky)
#
# CLI entry point for target hole detection and shot-group analysis.
# This module handles output formatting and delegates to target_scan/target_core.
#

import os
import sys
import json
import logging
from typing import Any, Dict, List, Optional

import yaml

from target_core import TargetError, format_error_for_user, get_message
from target_core.i18n import DEFAULT_LOCALE
from target_scan.app import EXIT_ERROR, result_exit_code, run
from target_scan.cli import build_arg_parser

LOCALE_ENV_VAR = "TARGET_SCAN_LOCALE"


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Configure logging for CLI execution.

    ``--debug`` shows DEBUG logs from target_core (cache hits, stage timing,
    filter rejections); ``--verbose`` shows INFO. Otherwise the default
    warning level applies.
    """

    if not (verbose or debug):
        return

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(levelname)s:%(name)s:%(message)s",
        force=True,
    )


def _format_detect(result: Dict[str, Any], locale: str) -> List[str]:
    lines: List[str] = []
    for image in result["images"]:
        path = image["identifier"]
        if not image["succeeded"]:
            lines.append(get_message("ui.detect.failed", locale=locale, path=path, error=image["error"]))
            continue

        payload = image["result"]
        candidates = payload["candidates"]
        quality = payload["quality"]
        lines.append(get_message("ui.detect.summary", locale=locale, path=path, count=len(candidates)))
        lines.append(
            get_message(
                "ui.detect.quality",
                locale=locale,
                level=get_message(f"quality.level.{quality['quality_level']}", locale=locale),
                sharpness=quality["sharpness"],
                contrast=quality["contrast"],
                exposure=get_message(f"quality.exposure.{quality['exposure']}", locale=locale),
            )
        )
        if image.get("guidance"):
            lines.extend(f"  {line}" for line in image["guidance"].splitlines())
        for index, (candidate, acceptance) in enumerate(zip(candidates, image["acceptance"]), start=1):
            x, y = candidate["pixel_position"]
            lines.append(
                get_message(
                    "ui.detect.candidate",
                    locale=locale,
                    index=index,
                    x=x,
                    y=y,
                    score=candidate["score"],
                    confidence=candidate["confidence"],
                    acceptance=acceptance,
                )
            )
    return lines


def _format_analyze(result: Dict[str, Any], locale: str) -> List[str]:
    lines: List[str] = []
    validation = result["validation"]
    for error in validation["errors"]:
        lines.append(get_message("ui.analyze.error", locale=locale, message=error["message"]))
    for warning in validation["warnings"]:
        lines.append(get_message("ui.analyze.warning", locale=locale, message=warning["message"]))
    if result["rejected_shots"]:
        lines.append(
            get_message(
                "ui.analyze.excluded",
                locale=locale,
                shots=", ".join(str(index) for index in result["rejected_shots"]),
            )
        )

    analysis = result["analysis"]
    if analysis is None:
        lines.append(
            get_message(
                "ui.analyze.too_few_shots",
                locale=locale,
                minimum=result["minimum_shots"],
                count=result["accepted_shot_count"],
            )
        )
        return lines

    lines.append(get_message("ui.analyze.summary", locale=locale, count=analysis["shot_count"]))
    lines.append(
        get_message(
            "ui.analyze.mpi",
            locale=locale,
            x=analysis["mpi"]["x"],
            y=analysis["mpi"]["y"],
            std=analysis["standard_deviation"],
            spread=analysis["extreme_spread"],
        )
    )
    lines.append(get_message("ui.analyze.cep", locale=locale, cep50=analysis["cep50"], cep90=analysis["cep90"]))
    lines.append(
        get_message(
            "ui.analyze.ratings",
            locale=locale,
            consistency=get_message(f"analysis.rating.{analysis['consistency_rating']}", locale=locale),
            accuracy=get_message(f"analysis.rating.{analysis['accuracy_rating']}", locale=locale),
        )
    )
    bias = analysis["directional_bias"]
    if bias["description"]:
        lines.append(f"  {bias['description']}")

    for suggestion in result["suggestions"]:
        lines.append(f"  [{suggestion['category']}] {suggestion['title']}: {suggestion['description']}")
        lines.extend(f"    - {drill}" for drill in suggestion["drills"])

    projection = result["projection"]
    if projection is not None:
        lines.append(
            get_message(
                "ui.analyze.projection",
                locale=locale,
                expected=projection["expected_score"],
                maximum=projection["max_possible"],
                range=projection["confidence_range"],
            )
        )
    return lines


def format_result(result: Dict[str, Any], locale: str) -> str:
    action = result.get("action")
    if action == "detect":
        lines = _format_detect(result, locale)
    elif action == "analyze":
        lines = _format_analyze(result, locale)
    elif action == "print_config":
        return yaml.safe_dump(result["config"], sort_keys=False, allow_unicode=True).rstrip()
    elif action == "list_adapters":
        lines = [f"contour adapters: {', '.join(result['contour_adapters'])}"]
        lines.extend(
            f"target type: {target['name']} ({target['display_name']})"
            for target in result["target_types"]
        )
    else:
        lines = [json.dumps(result, indent=2, default=str)]
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    args.locale = args.locale or os.environ.get(LOCALE_ENV_VAR, DEFAULT_LOCALE)
    locale = args.locale

    _configure_logging(args.verbose, args.debug)

    try:
        result = run(args)
    except TargetError as e:
        # Handle target_core exceptions with user-friendly output
        print(
            format_error_for_user(e, verbose=args.verbose, locale=locale),
            file=sys.stderr,
        )
        return EXIT_ERROR
    except KeyboardInterrupt:
        print("\n" + get_message("ui.interrupt", locale=locale), file=sys.stderr)
        return 130
    except (ValueError, OSError) as e:
        # Invalid option values and unexpected I/O problems
        if args.verbose:
            import traceback

            traceback.print_exc()
        print(
            "\n"
            + get_message(
                "ui.error.unexpected",
                locale=locale,
                error_type=type(e).__name__,
                error_message=e,
            ),
            file=sys.stderr,
        )
        return EXIT_ERROR

    if args.json:
        print(json.dumps(result, indent=2, ensure_ascii=False, default=str))
    else:
        print(format_result(result, locale))
    return result_exit_code(result)


if __name__ == "__main__":
    sys.exit(main())
