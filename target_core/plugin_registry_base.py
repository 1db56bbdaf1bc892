#!/usr/bin/env python
#
# Target Scan - Plugin Registry Base
# © 2025 Shinichi Morita (shin3tky)
#

"""Shared registry utilities for plugin-based components."""

from __future__ import annotations

import logging
import warnings
from dataclasses import is_dataclass
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

# Module-level logger for registry operations
logger = logging.getLogger(__name__)

PLUGIN_KIND_GENERIC = "plugin"
PLUGIN_KIND_CONTOUR_ADAPTER = "contour adapter"

PluginType = TypeVar("PluginType")


class PluginRegistryBase(Generic[PluginType]):
    """Base class providing common registry behaviors.

    Subclasses implement ``_discover_internal`` and ``_is_valid_plugin``.

    Plugins expose a ``ConfigType`` attribute whose zero-argument constructor
    yields a complete default configuration. ``create`` coerces a mapping into
    that type (dataclass or Pydantic model) before instantiating the plugin.
    """

    _plugin_kind: str = PLUGIN_KIND_GENERIC
    _default_name: str = ""

    # Discovered plugins (built-ins + entry points), lazily initialized
    _discovered: Optional[Dict[str, Type[PluginType]]] = None

    # Runtime-registered plugins (for testing/dynamic plugins)
    _custom: Dict[str, Type[PluginType]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        # Each subclass gets its own registry state
        cls._discovered = None
        cls._custom = {}

    # ========================================
    # Discovery & Registration
    # ========================================
    @classmethod
    def _discover_internal(cls) -> Dict[str, Type[PluginType]]:
        raise NotImplementedError

    @classmethod
    def _is_valid_plugin(cls, plugin_cls: Type[PluginType]) -> bool:
        raise NotImplementedError

    @classmethod
    def discover(cls, force: bool = False) -> Dict[str, Type[PluginType]]:
        """Discover available plugins (cached, lazy)."""
        if cls._discovered is None or force:
            cls._discovered = cls._discover_internal()
            logger.debug(
                "%s.discover: found %d %s(s): %s",
                cls.__name__,
                len(cls._discovered),
                cls._plugin_kind,
                ", ".join(sorted(cls._discovered)) or "none",
            )
        return cls._discovered

    @classmethod
    def get(cls, name: str) -> Type[PluginType]:
        """Get plugin class by name (case-insensitive)."""
        name_lower = name.lower()

        # Runtime-registered plugins take priority
        if name_lower in cls._custom:
            return cls._custom[name_lower]

        discovered = cls.discover()
        if name_lower in discovered:
            return discovered[name_lower]

        available = cls.list_available()
        available_str = ", ".join(available) if available else "none"
        logger.warning(
            "%s.get('%s'): %s not found. Available: %s",
            cls.__name__,
            name,
            cls._plugin_kind,
            available_str,
        )
        raise KeyError(
            f"Unknown {cls._plugin_kind} '{name}'. Available: {available_str}"
        )

    @classmethod
    def register(cls, plugin_cls: Type[PluginType]) -> None:
        """Register a plugin class at runtime."""
        if not cls._is_valid_plugin(plugin_cls):
            logger.error(
                "%s.register: invalid %s class %s",
                cls.__name__,
                cls._plugin_kind,
                plugin_cls,
            )
            raise ValueError(
                f"Invalid {cls._plugin_kind} class: {plugin_cls}. "
                "Must inherit from the proper base and have non-empty plugin_name."
            )

        name = getattr(plugin_cls, "plugin_name")
        name_lower = name.lower()

        if name_lower in cls._custom:
            logger.warning(
                "%s.register: overwriting runtime-registered %s '%s'",
                cls.__name__,
                cls._plugin_kind,
                name,
            )
            warnings.warn(
                f"Overwriting existing runtime-registered {cls._plugin_kind} '{name}'",
                stacklevel=2,
            )

        cls._custom[name_lower] = plugin_cls
        logger.info(
            "%s.register: registered %s '%s' (%s.%s)",
            cls.__name__,
            cls._plugin_kind,
            name,
            plugin_cls.__module__,
            plugin_cls.__name__,
        )

    @classmethod
    def unregister(cls, name: str) -> bool:
        """Unregister a runtime-registered plugin by name."""
        removed = cls._custom.pop(name.lower(), None)
        if removed is None:
            return False
        logger.info(
            "%s.unregister: removed %s '%s'", cls.__name__, cls._plugin_kind, name
        )
        return True

    @classmethod
    def list_available(cls) -> List[str]:
        """List all available plugin names."""
        return sorted(set(cls.discover()) | set(cls._custom))

    # ========================================
    # Instantiation
    # ========================================
    @classmethod
    def create(
        cls,
        name: str,
        config: Optional[Union[Dict[str, Any], Any]] = None,
    ) -> PluginType:
        """Create a plugin instance.

        Args:
            name: Plugin name.
            config: None for defaults, a mapping coerced to ``ConfigType``,
                or a ``ConfigType`` instance.

        Raises:
            KeyError: If the plugin is not found.
            TypeError: If the config cannot be coerced.
            ValueError: If config validation fails.
        """
        plugin_cls = cls.get(name)
        coerced_config = cls._coerce_config(plugin_cls, config)
        try:
            instance = plugin_cls(coerced_config)
        except (TypeError, ValueError) as exc:
            logger.error(
                "Failed to instantiate %s '%s' (%s): %s",
                cls._plugin_kind,
                name,
                plugin_cls.__name__,
                exc,
            )
            raise
        logger.debug(
            "Created %s '%s' with config type %s",
            cls._plugin_kind,
            name,
            type(coerced_config).__name__,
        )
        return instance

    @classmethod
    def create_default(
        cls, config: Optional[Union[Dict[str, Any], Any]] = None
    ) -> PluginType:
        """Create the default plugin with its default configuration."""
        if not cls._default_name:
            raise TypeError(f"{cls.__name__} does not define a default plugin")
        return cls.create(cls._default_name, config)

    # ========================================
    # Internal Methods
    # ========================================
    @classmethod
    def _coerce_config(
        cls,
        plugin_cls: Type[PluginType],
        config: Optional[Union[Dict[str, Any], Any]],
    ) -> Any:
        """Coerce config to the plugin's expected ConfigType."""
        config_type = getattr(plugin_cls, "ConfigType", None)
        plugin_name = getattr(plugin_cls, "plugin_name", "unknown")

        if config is None:
            if config_type is None:
                return None
            try:
                return config_type()
            except TypeError as exc:
                raise TypeError(
                    f"Failed to create default config for {cls._plugin_kind} "
                    f"'{plugin_name}': {config_type.__name__} requires arguments."
                ) from exc

        if config_type is None or isinstance(config, config_type):
            return config

        if not isinstance(config, dict):
            return config

        if is_dataclass(config_type):
            try:
                return config_type(**config)
            except TypeError as exc:
                logger.error(
                    "_coerce_config(%s): cannot build %s from %r",
                    plugin_name,
                    config_type.__name__,
                    config,
                )
                raise TypeError(
                    f"Invalid config for {cls._plugin_kind} '{plugin_name}': {exc}"
                ) from exc

        # Pydantic v2 models
        if hasattr(config_type, "model_validate"):
            try:
                return config_type.model_validate(config)
            except ValueError as exc:
                raise ValueError(
                    f"Config validation failed for {cls._plugin_kind} "
                    f"'{plugin_name}': {exc}"
                ) from exc

        raise TypeError(
            f"Cannot coerce dict to {config_type.__name__} for {cls._plugin_kind} "
            f"'{plugin_name}': ConfigType is neither a dataclass nor a Pydantic model."
        )

    @classmethod
    def _reset(cls) -> None:
        """Reset registry state (for tests)."""
        cls._discovered = None
        cls._custom = {}


__all__ = ["PluginRegistryBase", "PLUGIN_KIND_CONTOUR_ADAPTER", "PLUGIN_KIND_GENERIC"]
