#!/usr/bin/env python
#
# Target Scan - Custom Exceptions
# © 2025 Shinichi Morita (shin3tky)
#

"""
Custom exception classes for target hole detection.

Only resource-acquisition failures (image decode, contour extraction, config
files) are raised. Numeric edge cases inside the pipeline stages fall back to
documented constants, and shot/scan validation reports problems through
``ValidationResult`` rather than exceptions.

Exception Hierarchy:
    TargetError (base)
    ├── TargetLoadError (image decode failures)
    ├── TargetImageError (unsupported image arrays)
    ├── ContourExtractionError (contour adapter failures)
    ├── PipelineTimeoutError (contour stage exceeded its timeout)
    ├── PipelineCancelledError (invocation cancelled by the caller)
    ├── TargetValidationError (parameter/input validation)
    └── TargetConfigError (configuration errors)

Example:
    >>> try:
    ...     image = load_image("missing.jpg")
    ... except TargetLoadError as e:
    ...     print(e.get_diagnostic_info())
"""

from __future__ import annotations

import os
import platform
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from importlib import resources
from string import Template
from typing import Any, Dict, List, Optional

from .i18n import DEFAULT_LOCALE, get_message
from .schema import VERSION

# Key dependencies to include in diagnostic reports
_KEY_DEPENDENCIES = [
    "numpy",
    "opencv-python",
    "pyyaml",
    "pydantic",
]


def _get_package_versions() -> Dict[str, str]:
    """Collect versions of key dependencies.

    Returns:
        Dictionary mapping package names to version strings.
        Returns "not installed" for missing packages.
    """
    from importlib.metadata import PackageNotFoundError, version

    versions: Dict[str, str] = {}
    for pkg in _KEY_DEPENDENCIES:
        try:
            versions[pkg] = version(pkg)
        except PackageNotFoundError:
            versions[pkg] = "not installed"
    return versions


@lru_cache(maxsize=1)
def _load_diagnostic_template() -> Template:
    """Load the diagnostic report template."""
    template_path = resources.files(__package__).joinpath(
        "templates", "diagnostic_report.md.j2"
    )
    content = template_path.read_text(encoding="utf-8")
    return Template(content)


def _format_section(title: str, lines: List[str]) -> str:
    """Format a section with a title and a code block."""
    if not lines:
        return ""

    section_lines = [title, "", "```"]
    section_lines.extend(lines)
    section_lines.extend(["```", ""])
    return "\n".join(section_lines)


def _render_diagnostic_report(diagnostic: "DiagnosticInfo", *, locale: str) -> str:
    """Render a diagnostic report using the template and localized messages."""
    general_section = _format_section(
        get_message("ui.diagnostic.section.heading", locale=locale),
        [
            f"{get_message('ui.diagnostic.label.version', locale=locale)}: "
            f"{diagnostic.version}",
            f"{get_message('ui.diagnostic.label.python_version', locale=locale)}: "
            f"{diagnostic.python_version}",
            f"{get_message('ui.diagnostic.label.platform', locale=locale)}: "
            f"{diagnostic.platform}",
            f"{get_message('ui.diagnostic.label.timestamp', locale=locale)}: "
            f"{diagnostic.timestamp}",
        ],
    )

    file_section = ""
    if diagnostic.filepath:
        file_lines = [
            f"{get_message('ui.diagnostic.label.filepath', locale=locale)}: "
            f"{diagnostic.filepath}",
            f"{get_message('ui.diagnostic.label.file_exists', locale=locale)}: "
            f"{diagnostic.file_exists}",
        ]
        if diagnostic.file_size is not None:
            file_lines.append(
                f"{get_message('ui.diagnostic.label.file_size', locale=locale)}: "
                f"{diagnostic.file_size:,}"
            )
        file_section = _format_section(
            get_message("ui.diagnostic.section.file", locale=locale), file_lines
        )

    error_lines = [
        f"{get_message('ui.diagnostic.label.error_type', locale=locale)}: "
        f"{diagnostic.error_type}",
        f"{get_message('ui.diagnostic.label.error_message', locale=locale)}: "
        f"{diagnostic.error_message}",
    ]
    if diagnostic.original_error_type:
        error_lines.append(
            f"{get_message('ui.diagnostic.label.original_error', locale=locale)}: "
            f"{diagnostic.original_error_type}: {diagnostic.original_error_message}"
        )
    error_section = _format_section(
        get_message("ui.diagnostic.section.error", locale=locale), error_lines
    )

    context_section = ""
    if diagnostic.context:
        context_section = _format_section(
            get_message("ui.diagnostic.section.context", locale=locale),
            [f"{key}: {value}" for key, value in diagnostic.context.items()],
        )

    dependencies_section = ""
    if diagnostic.dependencies:
        dependencies_section = _format_section(
            get_message("ui.diagnostic.section.dependencies", locale=locale),
            [f"{pkg}: {ver}" for pkg, ver in sorted(diagnostic.dependencies.items())],
        )

    template = _load_diagnostic_template()
    return template.safe_substitute(
        title=get_message("ui.diagnostic.report.title", locale=locale),
        diagnostic_section=general_section,
        file_section=file_section,
        error_section=error_section,
        context_section=context_section,
        dependencies_section=dependencies_section,
    )


@dataclass
class DiagnosticInfo:
    """Structured diagnostic information for error reporting.

    Attributes:
        version: target_core version string.
        python_version: Python interpreter version.
        platform: Operating system and architecture.
        timestamp: ISO format timestamp when the error occurred.
        filepath: Path to the file that caused the error (if applicable).
        file_exists: Whether the file exists at the given path.
        file_size: Size of the file in bytes (if exists).
        error_type: Name of the exception class.
        error_message: The error message.
        original_error_type: Type of the wrapped original exception.
        original_error_message: Message from the wrapped original exception.
        context: Additional context-specific information.
    """

    version: str = ""
    python_version: str = ""
    platform: str = ""
    timestamp: str = ""
    filepath: Optional[str] = None
    file_exists: Optional[bool] = None
    file_size: Optional[int] = None
    error_type: str = ""
    error_message: str = ""
    original_error_type: Optional[str] = None
    original_error_message: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    dependencies: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "python_version": self.python_version,
            "platform": self.platform,
            "timestamp": self.timestamp,
            "filepath": self.filepath,
            "file_exists": self.file_exists,
            "file_size": self.file_size,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "original_error_type": self.original_error_type,
            "original_error_message": self.original_error_message,
            "context": self.context,
            "dependencies": self.dependencies,
        }

    def format_report(self, *, locale: str = DEFAULT_LOCALE) -> str:
        """Format diagnostic info as a Markdown report."""
        return _render_diagnostic_report(self, locale=locale)


def _collect_file_info(filepath: Optional[str]) -> tuple[Optional[bool], Optional[int]]:
    """Return (file_exists, file_size) for the given path."""
    if filepath is None:
        return None, None

    try:
        exists = os.path.exists(filepath)
        if exists:
            return exists, os.path.getsize(filepath)
        return exists, None
    except OSError:
        return None, None


def _build_diagnostic(
    error_type: str,
    error_message: str,
    *,
    filepath: Optional[str],
    original_error: Optional[BaseException],
    context: Dict[str, Any],
) -> DiagnosticInfo:
    file_exists, file_size = _collect_file_info(filepath)
    return DiagnosticInfo(
        version=VERSION,
        python_version=sys.version,
        platform=f"{platform.system()} {platform.release()} ({platform.machine()})",
        timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        filepath=filepath,
        file_exists=file_exists,
        file_size=file_size,
        error_type=error_type,
        error_message=error_message,
        original_error_type=(
            type(original_error).__name__ if original_error is not None else None
        ),
        original_error_message=(
            str(original_error) if original_error is not None else None
        ),
        context=context,
        dependencies=_get_package_versions(),
    )


class TargetError(Exception):
    """Base exception for all target_core errors.

    Attributes:
        message: Human-readable error message.
        filepath: Path to the related file (if applicable).
        original_error: The original exception that was caught (if wrapping).
        context: Additional context information as key-value pairs.

    Example:
        >>> raise TargetError("Something went wrong", context={"stage": "contours"})
    """

    def __init__(
        self,
        message: str,
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.filepath = filepath
        self.original_error = original_error
        self.context = context or {}

        # Build the full message
        full_message = message
        if filepath:
            full_message = f"{message} (file: {filepath})"
        if original_error:
            full_message = (
                f"{full_message}: {type(original_error).__name__}: {original_error}"
            )

        super().__init__(full_message)

    def get_diagnostic_info(self) -> DiagnosticInfo:
        """Generate diagnostic information for this error."""
        return _build_diagnostic(
            type(self).__name__,
            self.message,
            filepath=self.filepath,
            original_error=self.original_error,
            context=self.context,
        )

    def format_report(self, *, locale: str = DEFAULT_LOCALE) -> str:
        """Format this error as a Markdown diagnostic report."""
        return self.get_diagnostic_info().format_report(locale=locale)


class TargetLoadError(TargetError):
    """Exception raised when an image file cannot be read or decoded."""

    def __init__(
        self,
        message: str = "Failed to load image file",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=context,
        )


class TargetImageError(TargetError):
    """Exception raised when an image array has an unsupported shape or dtype.

    Attributes:
        shape: Shape of the rejected array (if known).
        dtype: Data type name of the rejected array (if known).
    """

    def __init__(
        self,
        message: str = "Unsupported image data",
        *,
        shape: Optional[tuple] = None,
        dtype: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.shape = shape
        self.dtype = dtype

        ctx = context.copy() if context else {}
        if shape is not None:
            ctx["shape"] = str(shape)
        if dtype is not None:
            ctx["dtype"] = dtype

        super().__init__(message, original_error=original_error, context=ctx)


class ContourExtractionError(TargetError):
    """Exception raised when the contour adapter fails.

    Detection cannot proceed without contours, so this error is surfaced to
    the caller with the underlying cause attached.

    Example:
        >>> raise ContourExtractionError(
        ...     "Contour extraction failed",
        ...     adapter_name="opencv",
        ...     original_error=exc,
        ... )
    """

    def __init__(
        self,
        message: str = "Contour extraction failed",
        *,
        adapter_name: Optional[str] = None,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.adapter_name = adapter_name

        ctx = context.copy() if context else {}
        if adapter_name:
            ctx["adapter_name"] = adapter_name

        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=ctx,
        )


class PipelineTimeoutError(TargetError):
    """Exception raised when contour extraction exceeds the caller's timeout."""

    def __init__(
        self,
        message: str = "Contour extraction timed out",
        *,
        timeout: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.timeout = timeout

        ctx = context.copy() if context else {}
        if timeout is not None:
            ctx["timeout_seconds"] = timeout

        super().__init__(message, context=ctx)


class PipelineCancelledError(TargetError):
    """Exception raised when a pipeline invocation is cancelled."""

    def __init__(
        self,
        message: str = "Pipeline invocation cancelled",
        *,
        stage: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.stage = stage

        ctx = context.copy() if context else {}
        if stage:
            ctx["stage"] = stage

        super().__init__(message, context=ctx)


class TargetValidationError(TargetError):
    """Exception raised when validation of parameters or inputs fails.

    Attributes:
        parameter_name: Name of the invalid parameter.
        provided_value: The value that was provided.
        expected: Description of what was expected.

    Example:
        >>> raise TargetValidationError(
        ...     "Invalid shot count",
        ...     parameter_name="shot_count",
        ...     provided_value=-5,
        ...     expected="positive integer",
        ... )
    """

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        parameter_name: Optional[str] = None,
        provided_value: Any = None,
        expected: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.parameter_name = parameter_name
        self.provided_value = provided_value
        self.expected = expected

        ctx = context.copy() if context else {}
        if parameter_name:
            ctx["parameter_name"] = parameter_name
        if provided_value is not None:
            ctx["provided_value"] = repr(provided_value)
        if expected:
            ctx["expected"] = expected

        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=ctx,
        )


class TargetConfigError(TargetError):
    """Exception raised when configuration is invalid.

    Attributes:
        config_key: The configuration key that has an issue.
        plugin_name: Name of the plugin (if plugin-related).
    """

    def __init__(
        self,
        message: str = "Configuration error",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        config_key: Optional[str] = None,
        plugin_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.config_key = config_key
        self.plugin_name = plugin_name

        ctx = context.copy() if context else {}
        if config_key:
            ctx["config_key"] = config_key
        if plugin_name:
            ctx["plugin_name"] = plugin_name

        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=ctx,
        )


# =============================================================================
# CLI Helper Functions
# =============================================================================


def format_error_for_user(
    error: TargetError, *, verbose: bool = False, locale: str = DEFAULT_LOCALE
) -> str:
    """Format an error message for CLI display.

    Args:
        error: The TargetError to format.
        verbose: If True, include full diagnostic information.
        locale: Locale code for message localization.

    Returns:
        Formatted error message string.
    """
    lines: List[str] = [
        "",
        "=" * 60,
        get_message("ui.error.header", locale=locale, message=error.message),
        "=" * 60,
    ]

    if error.filepath:
        lines.append(
            get_message("ui.error.filepath", locale=locale, filepath=error.filepath)
        )

    if error.original_error:
        lines.append(
            get_message(
                "ui.error.cause",
                locale=locale,
                error_type=type(error.original_error).__name__,
                error_message=error.original_error,
            )
        )

    if verbose:
        lines.extend(
            [
                "",
                get_message("ui.diagnostic.info", locale=locale),
                "-" * 60,
                error.format_report(locale=locale),
            ]
        )
    else:
        lines.extend(["", get_message("ui.diagnostic.hint.verbose", locale=locale)])

    lines.append("")
    return "\n".join(lines)


def create_diagnostic_from_exception(
    exc: BaseException,
    *,
    filepath: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
) -> DiagnosticInfo:
    """Create diagnostic info from any exception."""
    return _build_diagnostic(
        type(exc).__name__,
        str(exc),
        filepath=filepath,
        original_error=None,
        context=context or {},
    )


__all__ = [
    "DiagnosticInfo",
    "TargetError",
    "TargetLoadError",
    "TargetImageError",
    "ContourExtractionError",
    "PipelineTimeoutError",
    "PipelineCancelledError",
    "TargetValidationError",
    "TargetConfigError",
    "format_error_for_user",
    "create_diagnostic_from_exception",
]
