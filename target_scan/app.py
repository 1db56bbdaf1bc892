"""Application runner for the target_scan CLI."""

import dataclasses
import logging
from typing import Any, Dict, List, Optional

import numpy as np

from target_core import (
    MIN_SHOTS_FOR_ANALYSIS,
    BatchPipelineProcessor,
    ConfigOverrides,
    ContourAdapterRegistry,
    ImprovementSuggestionGenerator,
    PatternAnalyzer,
    PipelineConfig,
    ScoreProjector,
    ShotValidator,
    TargetCropGeometry,
    available_target_types,
    create_default_executor,
    dump_config,
    get_target_type,
    load_pipeline_config,
    load_shots,
)
from target_core.i18n import DEFAULT_LOCALE

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_VALIDATION_ERROR = 2


def build_pipeline_config(args) -> PipelineConfig:
    """Load ``--config`` (if any) and apply the CLI overrides that are not per-call."""
    config = load_pipeline_config(args.config) if args.config else PipelineConfig()
    changes: Dict[str, Any] = {}
    if args.target_type:
        changes["target_type"] = args.target_type
    if args.workers is not None:
        changes["num_workers"] = args.workers
    if args.timeout is not None:
        changes["contour_timeout"] = args.timeout
    if args.no_local_background:
        changes["detection"] = dataclasses.replace(
            config.detection, use_local_background=False
        )
    return dataclasses.replace(config, **changes) if changes else config


def build_overrides(args) -> ConfigOverrides:
    return ConfigOverrides(
        min_circularity=args.min_circularity,
        min_hole_diameter=args.min_diameter,
        max_hole_diameter=args.max_diameter,
        filter_scoring_ring_artifacts=False if args.no_ring_filter else None,
    )


def _run_detect(args) -> Dict[str, Any]:
    config = build_pipeline_config(args)
    overrides = build_overrides(args)
    effective = config.detection.with_overrides(overrides)

    if args.print_config:
        payload = dump_config(config)
        payload["detection"] = effective.to_dict()
        return {"action": "print_config", "config": payload}

    crop = TargetCropGeometry.from_dict(config.crop) if config.crop else TargetCropGeometry()
    processor = BatchPipelineProcessor(
        executor=create_default_executor(config),
        max_workers=config.num_workers,
    )
    batch = processor.process(
        args.images,
        crop,
        config.target_type,
        config.detection,
        overrides=overrides,
    )

    images: List[Dict[str, Any]] = []
    for item in batch:
        entry = item.to_dict()
        if item.result is not None:
            entry["acceptance"] = [
                candidate.acceptance_level(effective) for candidate in item.result.candidates
            ]
            entry["guidance"] = item.result.quality.guidance(
                locale=args.locale or DEFAULT_LOCALE
            )
        images.append(entry)

    failed = sum(1 for item in batch if not item.succeeded)
    return {
        "action": "detect",
        "target_type": config.target_type,
        "images": images,
        "failed": failed,
        "exit_code": EXIT_ERROR if failed else EXIT_OK,
    }


def _run_analyze(args) -> Dict[str, Any]:
    locale = args.locale or DEFAULT_LOCALE
    target = get_target_type(args.target_type)
    shots = load_shots(args.shots_file)

    validator = ShotValidator(locale=locale)
    validation = validator.validate_shot_collection(
        shots, target, expected_count=args.expected_count
    )
    # Shots with blocking errors are reported but never analyzed
    rejected = [
        index
        for index, shot in enumerate(shots)
        if validator.validate_shot(
            shot.position, shot.score, target, getattr(shot, "confidence", None)
        ).has_errors
    ]
    accepted = [shot for index, shot in enumerate(shots) if index not in rejected]
    if rejected:
        logger.warning(
            "Excluding %d of %d shots with validation errors from analysis",
            len(rejected),
            len(shots),
        )
    analysis = PatternAnalyzer().analyze(accepted)

    result: Dict[str, Any] = {
        "action": "analyze",
        "target_type": target.name,
        "shot_count": len(shots),
        "accepted_shot_count": len(accepted),
        "rejected_shots": [index + 1 for index in rejected],
        "minimum_shots": MIN_SHOTS_FOR_ANALYSIS,
        "total_score": sum(shot.score for shot in accepted),
        "validation": validation.to_dict(),
        "analysis": None,
        "suggestions": [],
        "projection": None,
        "exit_code": EXIT_VALIDATION_ERROR if validation.has_errors else EXIT_OK,
    }
    if analysis is None:
        return result

    result["analysis"] = analysis.to_dict()
    result["suggestions"] = [
        suggestion.to_dict()
        for suggestion in ImprovementSuggestionGenerator(locale=locale).generate(analysis)
    ]
    if args.project > 0:
        projector = ScoreProjector(np.random.default_rng(args.seed))
        projection = projector.project(analysis, target, shot_count=args.project)
        result["projection"] = projection.to_dict()
        result["projection"]["confidence_range"] = projection.describe_range(locale=locale)
    return result


def _list_adapters() -> Dict[str, Any]:
    return {
        "action": "list_adapters",
        "contour_adapters": ContourAdapterRegistry.list_available(),
        "target_types": [get_target_type(name).to_dict() for name in available_target_types()],
        "exit_code": EXIT_OK,
    }


def run(args) -> Dict[str, Any]:
    """Execute the application logic using parsed arguments."""

    if args.command == "detect":
        return _run_detect(args)
    if args.command == "analyze":
        return _run_analyze(args)
    if args.command == "adapters":
        return _list_adapters()
    raise ValueError(f"Unknown command: {args.command}")


def result_exit_code(result: Optional[Dict[str, Any]]) -> int:
    if not result:
        return EXIT_OK
    return int(result.get("exit_code", EXIT_OK))
