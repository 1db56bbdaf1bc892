#!/usr/bin/env python
#
# Target Scan - Contour Adapter Base Class
# © 2025 Shinichi Morita (shin3tky)
#

"""
Abstract base class for contour extraction adapters.

An adapter wraps a shape-detection primitive: given a grayscale image it
returns closed polylines in normalized ``[0, 1] x [0, 1]`` coordinates with
the Y axis pointing up (``ny = 1 - py / height``).
"""

from abc import ABC, abstractmethod
from dataclasses import is_dataclass
import logging
from typing import Any, Dict, Generic, List, Tuple, Type, TypeVar

from ..imaging import GrayscaleBuffer
from ..plugin_contract import BaseModel, require_config_type, require_plugin_name

ConfigType = TypeVar("ConfigType")

# One closed polyline in normalized coordinates
NormalizedPolyline = List[Tuple[float, float]]

logger = logging.getLogger(__name__)


class BaseContourAdapter(ABC, Generic[ConfigType]):
    """
    Interface for contour extraction plugins.

    Attributes:
        plugin_name: Unique identifier used by the registry
        name: Human-readable adapter name
        version: Adapter version string
    """

    plugin_name: str = ""  # Must be overridden by subclasses
    name: str = "BaseContourAdapter"
    version: str = "1.0.0"

    @abstractmethod
    def extract(self, grayscale: GrayscaleBuffer) -> List[NormalizedPolyline]:
        """
        Extract closed contours from ``grayscale``.

        Returns:
            Polylines with at least three points each, in normalized
            coordinates with Y up.
        """

    def get_info(self) -> Dict[str, str]:
        return {
            "plugin_name": self.plugin_name,
            "name": self.name,
            "version": self.version,
            "class": self.__class__.__name__,
        }


class DataclassContourAdapter(BaseContourAdapter[ConfigType], Generic[ConfigType]):
    """Base class for adapters configured by dataclasses.

    Subclasses define ``plugin_name`` and a dataclass ``ConfigType``; the
    provided ``config`` must be an instance of it.
    """

    ConfigType: Type[ConfigType]
    config: ConfigType

    def __init__(self, config: ConfigType) -> None:
        require_plugin_name(self.__class__, kind="contour adapter")

        config_type = require_config_type(self.__class__)
        if config_type is not None:
            if not is_dataclass(config_type):
                logger.error(
                    "ConfigType %s is not a dataclass for adapter %s",
                    config_type,
                    self.__class__.__name__,
                )
                raise TypeError(
                    "ConfigType must be a dataclass type for DataclassContourAdapter."
                )
            if not isinstance(config, config_type):
                logger.error(
                    "Config instance %s does not match dataclass %s for adapter %s",
                    type(config).__name__,
                    config_type.__name__,
                    self.__class__.__name__,
                )
                raise TypeError(
                    f"config must be an instance of {config_type.__name__}."
                )
        self.config = config
        logger.debug(
            "%s initialized with dataclass config %s",
            self.__class__.__name__,
            config,
        )


class PydanticContourAdapter(BaseContourAdapter[ConfigType], Generic[ConfigType]):
    """Base class for adapters configured by Pydantic models."""

    ConfigType: Type[ConfigType]
    config: ConfigType

    def __init__(self, config: ConfigType) -> None:
        if BaseModel is None:
            raise ImportError(
                "pydantic is required to use PydanticContourAdapter. Install pydantic first."
            )

        require_plugin_name(self.__class__, kind="contour adapter")

        config_type = require_config_type(self.__class__)
        if config_type is not None:
            if not issubclass(config_type, BaseModel):
                raise TypeError(
                    "ConfigType must be a pydantic BaseModel for PydanticContourAdapter."
                )
            if not isinstance(config, config_type):
                raise TypeError(
                    f"config must be an instance of {config_type.__name__}."
                )
        self.config = config


def _is_valid_contour_adapter(cls: Any) -> bool:
    """True for BaseContourAdapter subclasses with a non-empty plugin_name."""
    if not isinstance(cls, type) or not issubclass(cls, BaseContourAdapter):
        return False
    plugin_name = getattr(cls, "plugin_name", None)
    return isinstance(plugin_name, str) and plugin_name != ""
