#!/usr/bin/env python
#
# Target Scan - Plugin Contract Helpers
# © 2025 Shinichi Morita (shin3tky)
#

"""Shared plugin contract helpers for target_core plugins."""

from __future__ import annotations

import importlib.util
from typing import Any

_PYDANTIC_SPEC = importlib.util.find_spec("pydantic")
if _PYDANTIC_SPEC:
    from pydantic import BaseModel
else:
    BaseModel = None


def require_plugin_name(cls: type, *, kind: str) -> str:
    """Validate and return the plugin name defined on a class.

    Raises:
        ValueError: If the plugin name is missing or empty.
    """
    plugin_name = getattr(cls, "plugin_name", "")
    if not isinstance(plugin_name, str) or not plugin_name:
        raise ValueError(
            f"{kind} {cls.__name__} must define a non-empty 'plugin_name' string."
        )
    return plugin_name


def require_config_type(cls: type) -> Any:
    """Fetch the ConfigType declared on a plugin class (if any)."""
    return getattr(cls, "ConfigType", None)


def forbid_unknown_keys(model: type) -> type:
    """Force a Pydantic model to reject unknown fields at parse time.

    Raises:
        ImportError: If pydantic is not installed.
        TypeError: If model is not a Pydantic BaseModel.
    """
    if BaseModel is None:
        raise ImportError(
            "pydantic is not installed; cannot enforce unknown key behavior."
        )
    if not isinstance(model, type) or not issubclass(model, BaseModel):
        raise TypeError("Model must inherit from pydantic.BaseModel.")

    merged_config = dict(getattr(model, "model_config", None) or {})
    merged_config["extra"] = "forbid"
    model.model_config = merged_config
    model.model_rebuild(force=True)
    return model


__all__ = [
    "require_plugin_name",
    "require_config_type",
    "forbid_unknown_keys",
]
