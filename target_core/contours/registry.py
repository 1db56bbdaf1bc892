#!/usr/bin/env python
#
# Target Scan - Contour Adapter Registry
# © 2025 Shinichi Morita (shin3tky)
#

"""
Registry for contour adapter plugins with discovery, registration, and
instantiation.

Use ``create`` with an explicit configuration (mapping or ``ConfigType``
instance); ``create_default`` builds the built-in ``opencv`` adapter.
"""

from __future__ import annotations

import logging
from typing import Dict, Type

from ..plugin_registry_base import PLUGIN_KIND_CONTOUR_ADAPTER, PluginRegistryBase
from ..schema import DEFAULT_CONTOUR_ADAPTER_NAME
from .base import BaseContourAdapter, _is_valid_contour_adapter

logger = logging.getLogger(__name__)


class ContourAdapterRegistry(PluginRegistryBase[BaseContourAdapter]):
    """Contour adapter registry.

    Example:
        >>> adapter = ContourAdapterRegistry.create("opencv", {"blur_kernel": 3})
        >>> polylines = adapter.extract(grayscale)

        >>> ContourAdapterRegistry.register(MyAdapter)
        >>> ContourAdapterRegistry.unregister("my_adapter")
    """

    _plugin_kind = PLUGIN_KIND_CONTOUR_ADAPTER
    _default_name = DEFAULT_CONTOUR_ADAPTER_NAME

    @classmethod
    def _discover_internal(cls) -> Dict[str, Type[BaseContourAdapter]]:
        # Imported lazily to avoid a circular import with discovery
        from .discovery import _discover_adapters_internal

        return _discover_adapters_internal()

    @classmethod
    def _is_valid_plugin(cls, adapter_cls: Type[BaseContourAdapter]) -> bool:
        return _is_valid_contour_adapter(adapter_cls)


__all__ = ["ContourAdapterRegistry"]
