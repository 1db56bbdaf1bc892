#!/usr/bin/env python
#
# Target Scan - Contour Adapter Discovery
# © 2025 Shinichi Morita (shin3tky)
#

"""Discovery utilities for contour adapter plugins."""

from __future__ import annotations

from importlib import metadata
import inspect
import logging
import warnings
from typing import Dict, Iterable, Type

from .base import BaseContourAdapter, _is_valid_contour_adapter
from .opencv_default import OpenCVContourAdapter

PLUGIN_GROUP = "target_scan.contour_adapter"

logger = logging.getLogger(__name__)

# Abstract bases never registered as plugins
_SKIP_CLASSES = frozenset(
    {
        "BaseContourAdapter",
        "DataclassContourAdapter",
        "PydanticContourAdapter",
    }
)


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    eps = metadata.entry_points()
    if hasattr(eps, "select"):
        return eps.select(group=PLUGIN_GROUP)
    return eps.get(PLUGIN_GROUP, [])  # type: ignore[attr-defined]


def _add_adapter(
    registry: Dict[str, Type[BaseContourAdapter]],
    adapter_cls: Type[BaseContourAdapter],
    origin: str,
) -> None:
    if not inspect.isclass(adapter_cls) or adapter_cls.__name__ in _SKIP_CLASSES:
        return

    if not _is_valid_contour_adapter(adapter_cls):
        warnings.warn(
            f"Skipping contour adapter from {origin}: "
            f"{adapter_cls.__module__}.{adapter_cls.__name__} does not inherit "
            "from BaseContourAdapter (or missing plugin_name).",
            stacklevel=3,
        )
        return

    name_lower = adapter_cls.plugin_name.lower()
    if name_lower in registry:
        existing = registry[name_lower]
        warnings.warn(
            f"Duplicate contour adapter name '{adapter_cls.plugin_name}' from {origin}; "
            f"keeping {existing.__module__}.{existing.__name__}",
            stacklevel=3,
        )
        return

    registry[name_lower] = adapter_cls


def _discover_adapters_internal() -> Dict[str, Type[BaseContourAdapter]]:
    """Discover adapters: built-ins first, then entry points sorted by name."""
    registry: Dict[str, Type[BaseContourAdapter]] = {}

    _add_adapter(registry, OpenCVContourAdapter, "built-in OpenCVContourAdapter")

    for ep in sorted(_iter_entry_points(), key=lambda e: e.name):
        try:
            adapter_cls = ep.load()
        except (ImportError, AttributeError) as exc:
            logger.warning(
                "Failed to load contour adapter entry point '%s' from %s: %s",
                ep.name,
                ep.value,
                exc,
            )
            continue
        _add_adapter(registry, adapter_cls, f"entry point {ep.name}")

    return registry


__all__ = ["PLUGIN_GROUP"]
