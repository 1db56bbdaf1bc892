#!/usr/bin/env python
#
# Target Scan - Exception Tests
# © 2025 Shinichi Morita (shin3tky)
#

"""
Unit tests for custom exception classes and diagnostic reporting.
"""

import os
import tempfile
import unittest

from target_core.exceptions import (
    ContourExtractionError,
    DiagnosticInfo,
    PipelineCancelledError,
    PipelineTimeoutError,
    TargetConfigError,
    TargetError,
    TargetImageError,
    TargetLoadError,
    TargetValidationError,
    create_diagnostic_from_exception,
    format_error_for_user,
)
from target_core.schema import VERSION


class TestTargetError(unittest.TestCase):
    """Test cases for the base TargetError exception."""

    def test_basic_creation(self):
        err = TargetError("Something went wrong")
        self.assertEqual(err.message, "Something went wrong")
        self.assertIsNone(err.filepath)
        self.assertIsNone(err.original_error)
        self.assertEqual(err.context, {})
        self.assertEqual(str(err), "Something went wrong")

    def test_full_message_includes_file_and_cause(self):
        cause = IOError("disk error")
        err = TargetError("Failed", filepath="/tmp/a.png", original_error=cause)
        self.assertEqual(str(err), "Failed (file: /tmp/a.png): OSError: disk error")

    def test_subclasses_share_base(self):
        for cls in (
            TargetLoadError,
            TargetImageError,
            ContourExtractionError,
            PipelineTimeoutError,
            PipelineCancelledError,
            TargetValidationError,
            TargetConfigError,
        ):
            self.assertTrue(issubclass(cls, TargetError), cls)


class TestSpecializedErrors(unittest.TestCase):
    """Each subclass records its own context keys."""

    def test_load_error_default_message(self):
        self.assertEqual(TargetLoadError().message, "Failed to load image file")

    def test_image_error_shape(self):
        err = TargetImageError(shape=(4, 4, 2), dtype="uint8")
        self.assertEqual(err.context, {"shape": "(4, 4, 2)", "dtype": "uint8"})
        self.assertEqual(err.shape, (4, 4, 2))

    def test_contour_error_adapter(self):
        err = ContourExtractionError(adapter_name="opencv", original_error=RuntimeError("x"))
        self.assertEqual(err.context["adapter_name"], "opencv")
        self.assertIn("RuntimeError: x", str(err))

    def test_timeout_and_cancel(self):
        self.assertEqual(PipelineTimeoutError(timeout=1.5).context, {"timeout_seconds": 1.5})
        self.assertEqual(PipelineCancelledError(stage="contours").context, {"stage": "contours"})
        self.assertEqual(PipelineCancelledError().context, {})

    def test_validation_error_context(self):
        err = TargetValidationError(
            "Invalid shot count",
            parameter_name="shot_count",
            provided_value=-5,
            expected="positive integer",
        )
        self.assertEqual(
            err.context,
            {"parameter_name": "shot_count", "provided_value": "-5", "expected": "positive integer"},
        )

    def test_config_error_context(self):
        err = TargetConfigError(config_key="detection", plugin_name="opencv")
        self.assertEqual(err.context, {"config_key": "detection", "plugin_name": "opencv"})


class TestDiagnostics(unittest.TestCase):
    def test_diagnostic_for_missing_file(self):
        err = TargetLoadError("File not found", filepath="/nonexistent/file.png")
        info = err.get_diagnostic_info()
        self.assertIsInstance(info, DiagnosticInfo)
        self.assertEqual(info.version, VERSION)
        self.assertEqual(info.error_type, "TargetLoadError")
        self.assertFalse(info.file_exists)
        self.assertIsNone(info.file_size)
        self.assertIn("numpy", info.dependencies)

    def test_diagnostic_for_existing_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "scan.png")
            with open(path, "wb") as handle:
                handle.write(b"12345")
            info = TargetLoadError(filepath=path).get_diagnostic_info()
        self.assertTrue(info.file_exists)
        self.assertEqual(info.file_size, 5)

    def test_report_sections(self):
        err = TargetConfigError(
            "Bad config",
            filepath="/nonexistent/config.yaml",
            original_error=ValueError("oops"),
            config_key="detection",
        )
        report = err.format_report()
        self.assertTrue(report.startswith("# Target Scan Diagnostic Report"))
        self.assertIn("## Error", report)
        self.assertIn("Original error: ValueError: oops", report)
        self.assertIn("config_key: detection", report)
        self.assertEqual(err.get_diagnostic_info().to_dict()["error_message"], "Bad config")

    def test_create_diagnostic_from_exception(self):
        info = create_diagnostic_from_exception(KeyError("k"), context={"stage": "filtering"})
        self.assertEqual(info.error_type, "KeyError")
        self.assertEqual(info.context, {"stage": "filtering"})
        self.assertIsNone(info.original_error_type)


class TestFormatErrorForUser(unittest.TestCase):
    def test_short_format(self):
        err = TargetLoadError("File not found", filepath="/x.png")
        text = format_error_for_user(err)
        self.assertIn("ERROR: File not found", text)
        self.assertIn("File: /x.png", text)
        self.assertIn("Run with --verbose for diagnostic details.", text)
        self.assertNotIn("## Environment", text)

    def test_verbose_format(self):
        err = ContourExtractionError(original_error=RuntimeError("boom"))
        text = format_error_for_user(err, verbose=True)
        self.assertIn("Cause: RuntimeError: boom", text)
        self.assertIn("Diagnostic information:", text)
        self.assertIn("## Environment", text)


if __name__ == "__main__":
    unittest.main()
