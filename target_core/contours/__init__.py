#!/usr/bin/env python
#
# Target Scan - Contour Adapters Package
# © 2025 Shinichi Morita (shin3tky)
#

"""
Contour extraction adapters.
"""

from .base import (
    BaseContourAdapter,
    DataclassContourAdapter,
    NormalizedPolyline,
    PydanticContourAdapter,
    _is_valid_contour_adapter,
)
from .opencv_default import OpenCVContourAdapter, OpenCVContourConfig
from .registry import ContourAdapterRegistry
from .discovery import PLUGIN_GROUP

__all__ = [
    # Base classes
    "BaseContourAdapter",
    "DataclassContourAdapter",
    "PydanticContourAdapter",
    "NormalizedPolyline",
    "_is_valid_contour_adapter",
    # Built-in adapter
    "OpenCVContourAdapter",
    "OpenCVContourConfig",
    # Registry
    "ContourAdapterRegistry",
    "PLUGIN_GROUP",
]
