#!/usr/bin/env python
#
# Target Scan - Configuration I/O
# © 2025 Shinichi Morita (shin3tky)
#

"""Load pipeline configuration and shot files for CLI usage."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from .exceptions import TargetConfigError
from .schema import PipelineConfig, Shot

SUPPORTED_CONFIG_EXTENSIONS = {".json", ".yaml", ".yml"}

logger = logging.getLogger(__name__)


def _read_structured_file(path: Path) -> Any:
    suffix = path.suffix.lower()
    if suffix == ".json":
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise TargetConfigError(
                "Invalid JSON file",
                filepath=str(path),
                original_error=exc,
            ) from exc
    if suffix in {".yaml", ".yml"}:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise TargetConfigError(
                "Invalid YAML file",
                filepath=str(path),
                original_error=exc,
            ) from exc
        return data if data is not None else {}
    raise TargetConfigError(
        "Unsupported configuration file format",
        filepath=str(path),
        context={"supported_extensions": sorted(SUPPORTED_CONFIG_EXTENSIONS)},
    )


def _resolve_file(path: Union[str, Path]) -> Path:
    file_path = Path(path)
    if not file_path.exists():
        raise TargetConfigError("Configuration file not found", filepath=str(file_path))
    if file_path.is_dir():
        raise TargetConfigError(
            "Configuration path must be a file, not a directory",
            filepath=str(file_path),
        )
    return file_path


def load_pipeline_config(path: Union[str, Path]) -> PipelineConfig:
    """Load pipeline configuration from a YAML/JSON file."""
    config_path = _resolve_file(path)
    data = _read_structured_file(config_path)
    if not isinstance(data, dict):
        raise TargetConfigError(
            "Configuration file must define an object at the top level",
            filepath=str(config_path),
        )
    try:
        config = PipelineConfig.from_dict(data)
    except (TypeError, ValueError, KeyError) as exc:
        raise TargetConfigError(
            "Invalid pipeline configuration",
            filepath=str(config_path),
            original_error=exc,
        ) from exc
    logger.debug("Loaded pipeline configuration from %s", config_path)
    return config


def load_shots(path: Union[str, Path]) -> List[Shot]:
    """Load shot records from a YAML/JSON file.

    The file holds either a list of ``{x, y, score}`` mappings or an object
    with a ``shots`` key containing that list.
    """
    shots_path = _resolve_file(path)
    data = _read_structured_file(shots_path)
    if isinstance(data, dict):
        data = data.get("shots")
    if not isinstance(data, list):
        raise TargetConfigError(
            "Shot file must contain a list of shots",
            filepath=str(shots_path),
            config_key="shots",
        )

    shots: List[Shot] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise TargetConfigError(
                "Shot entry must be an object",
                filepath=str(shots_path),
                context={"index": index},
            )
        try:
            shots.append(Shot.from_dict(entry))
        except (TypeError, ValueError, KeyError) as exc:
            raise TargetConfigError(
                "Invalid shot entry",
                filepath=str(shots_path),
                original_error=exc,
                context={"index": index},
            ) from exc
    logger.debug("Loaded %d shots from %s", len(shots), shots_path)
    return shots


def dump_config(config: PipelineConfig) -> Dict[str, Any]:
    """Return a YAML/JSON-serializable mapping for ``config``."""
    return config.to_dict()
