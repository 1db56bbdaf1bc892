#!/usr/bin/env python
#
# Target Scan - Message Catalogs
# © 2025 Shinichi Morita (shin3tky)
#

"""Localized message lookup for target_core.

User-facing strings (quality guidance, validation messages, coaching text and
CLI output) live in ``target_core/locales/<locale>/messages.yaml``. Keys are
dotted paths into the YAML tree. Templates use ``str.format`` placeholders and
a small ICU-style plural form::

    "{count, plural, one {# candidate} other {# candidates}}"
"""

from __future__ import annotations

import re
from functools import lru_cache
from importlib import resources
from logging import Logger
from typing import Any, Dict, List, Mapping, Optional

import yaml

DEFAULT_LOCALE = "en"
_LOCALES_PACKAGE = "target_core.locales"

# {name, plural, one {...} other {...}} with non-nested option bodies
_PLURAL_PATTERN = re.compile(
    r"\{\s*(?P<name>\w+)\s*,\s*plural\s*,(?P<options>(?:\s*=?\w+\s*\{[^{}]*\})+)\s*\}"
)
_PLURAL_OPTION_PATTERN = re.compile(r"(=?\w+)\s*\{([^{}]*)\}")


class _SafeDict(dict):
    """Dictionary that leaves unknown format keys untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def _candidate_locales(locale: Optional[str]) -> List[str]:
    normalized = (locale or DEFAULT_LOCALE).strip().replace("_", "-").lower()
    normalized = normalized or DEFAULT_LOCALE
    candidates = [normalized]
    language = normalized.split("-")[0]
    for fallback in (language, DEFAULT_LOCALE):
        if fallback not in candidates:
            candidates.append(fallback)
    return candidates


def _flatten(node: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    flat: Dict[str, str] = {}
    for key, value in node.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(_flatten(value, full_key))
        elif isinstance(value, list):
            flat[full_key] = "\n".join(str(item) for item in value)
        else:
            flat[full_key] = str(value)
    return flat


@lru_cache(maxsize=None)
def _load_catalog(locale: str) -> Dict[str, str]:
    """Load and flatten a locale catalog; missing catalogs are empty."""
    try:
        path = resources.files(_LOCALES_PACKAGE).joinpath(locale, "messages.yaml")
    except ModuleNotFoundError:
        return {}
    if not path.is_file():
        return {}

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError:
        return {}
    if not isinstance(data, Mapping):
        return {}
    return _flatten(data)


def _render_plurals(template: str, params: Mapping[str, Any], locale: str) -> str:
    language = locale.split("-")[0]

    def _replace(match: "re.Match[str]") -> str:
        options = dict(_PLURAL_OPTION_PATTERN.findall(match.group("options")))
        value = params.get(match.group("name"))
        if not isinstance(value, (int, float)):
            return options.get("other", match.group(0))
        exact = options.get(f"={value:g}")
        if exact is not None:
            selected = exact
        elif language != "ja" and value == 1 and "one" in options:
            selected = options["one"]
        else:
            selected = options.get("other", "")
        return selected.replace("#", f"{value:g}")

    return _PLURAL_PATTERN.sub(_replace, template)


def get_message(
    key: str,
    *,
    locale: str = DEFAULT_LOCALE,
    params: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> str:
    """Retrieve a localized message by key.

    Unknown keys return the key itself; missing parameters are left in place.
    """
    merged: Dict[str, Any] = dict(params or {})
    merged.update(kwargs)

    template = key
    candidates = _candidate_locales(locale)
    for candidate in candidates:
        catalog = _load_catalog(candidate)
        if key in catalog:
            template = catalog[key]
            break

    rendered = _render_plurals(template, merged, candidates[0])
    try:
        return rendered.format_map(_SafeDict(merged))
    except (ValueError, IndexError, TypeError):
        return rendered


def get_message_list(key: str, *, locale: str = DEFAULT_LOCALE) -> List[str]:
    """Retrieve a list-valued catalog entry (one item per line)."""
    message = get_message(key, locale=locale)
    if message == key:
        return []
    return message.splitlines()


def log_warning(
    logger: Logger,
    key: str,
    *,
    locale: str = DEFAULT_LOCALE,
    params: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> None:
    """Log a localized warning message."""
    logger.warning(get_message(key, locale=locale, params=params, **kwargs))


__all__ = ["DEFAULT_LOCALE", "get_message", "get_message_list", "log_warning"]
