#!/usr/bin/env python
#
# Target Scan - Utility Functions
# © 2025 Shinichi Morita (shin3tky)
#

"""
Utility functions for content hashing and numeric helpers.
"""

import hashlib
import json
from typing import Any, Dict

import numpy as np


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Clamp ``value`` into ``[lower, upper]``."""
    return max(lower, min(upper, value))


def _to_json_compatible(value: Any) -> Any:
    """Convert NumPy scalars/arrays and tuples to JSON-native types."""
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, dict):
        return {str(key): _to_json_compatible(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_compatible(item) for item in value]
    return value


def compute_params_hash(params: Dict[str, Any]) -> str:
    """Create a stable hash from a parameter dictionary.

    The dictionary is serialized with sorted keys so that identical
    configurations hash identically across runs and processes.
    """
    params_clean = _to_json_compatible(params)
    params_json = json.dumps(params_clean, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(params_json.encode("utf-8")).hexdigest()


def compute_image_hash(pixels: np.ndarray) -> str:
    """Hash image content (shape, dtype and bytes) into a hex digest."""
    digest = hashlib.sha256()
    digest.update(str(pixels.shape).encode("ascii"))
    digest.update(str(pixels.dtype).encode("ascii"))
    digest.update(np.ascontiguousarray(pixels).tobytes())
    return digest.hexdigest()


def make_filtering_key(image_hash: str, config_hash: str) -> str:
    """Compose the filter-stage cache key ``<imageHash>_<configHash>``."""
    return f"{image_hash}_{config_hash}"
