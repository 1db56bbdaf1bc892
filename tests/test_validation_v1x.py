"""
Tests for target_core.validation (shot, scan and integrity validation).
"""

import math
import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from target_core.exceptions import TargetConfigError  # noqa: E402
from target_core.geometry import OlympicPistolTarget, TargetCropGeometry  # noqa: E402
from target_core.quality import QualityAssessment  # noqa: E402
from target_core.schema import (  # noqa: E402
    EXPOSURE_UNDEREXPOSED,
    NormalizedTargetPosition,
    Shot,
)
from target_core.validation import (  # noqa: E402
    ERROR_COORDINATE_SYSTEM_MISMATCH,
    ERROR_CORRUPT_DATA,
    ERROR_GEOMETRY_INCONSISTENT,
    ERROR_IMAGE_TOO_SMALL,
    ERROR_INVALID_COORDINATES,
    ERROR_INVALID_SCORE,
    ERROR_UNKNOWN_TARGET_TYPE,
    WARNING_CALIBRATION_UNCERTAIN,
    WARNING_LOW_CONFIDENCE,
    WARNING_MANUAL_OVERRIDE,
    WARNING_OVERLAPPING_SHOTS,
    WARNING_PERSPECTIVE_DISTORTION,
    WARNING_POOR_IMAGE_QUALITY,
    WARNING_POSSIBLE_MISSED,
    WARNING_SHOT_OUTSIDE_TARGET,
    WARNING_UNUSUAL_SPACING,
    DataIntegrityChecker,
    InputSanitizer,
    ScanValidator,
    ShotValidator,
    ValidationResult,
    ValidationWarning,
    analyze_spacing,
    find_duplicates,
)

P = NormalizedTargetPosition


def codes(items):
    return [item.code for item in items]


class TestValidateShot(unittest.TestCase):
    def setUp(self):
        self.validator = ShotValidator()

    def test_consistent_shot(self):
        result = self.validator.validate_shot(P(0.0, 0.0), 10, "tetrathlon")
        self.assertTrue(result.is_valid)
        self.assertFalse(result.has_warnings)

    def test_outside_boundary_is_warning(self):
        result = self.validator.validate_shot(P(0.0, 1.2), 0, "tetrathlon")
        self.assertTrue(result.is_valid)
        self.assertEqual(codes(result.warnings), [WARNING_SHOT_OUTSIDE_TARGET])

    def test_far_outside_is_error(self):
        result = self.validator.validate_shot(P(0.0, 1.6), 0, "tetrathlon")
        self.assertFalse(result.is_valid)
        self.assertEqual(codes(result.errors), [ERROR_INVALID_COORDINATES])
        self.assertEqual(result.errors[0].message, "Shot position too far outside target boundary")

    def test_checks_accumulate(self):
        result = self.validator.validate_shot(P(3.0, 0.0), 0, "tetrathlon")
        self.assertEqual(codes(result.errors), [ERROR_INVALID_COORDINATES, ERROR_INVALID_COORDINATES])

    def test_non_finite_position(self):
        result = self.validator.validate_shot(P(math.nan, 0.0), 0, "tetrathlon")
        self.assertEqual(codes(result.errors), [ERROR_INVALID_COORDINATES])

    def test_small_score_difference_is_manual_override(self):
        result = self.validator.validate_shot(P(0.0, 0.0), 8, "tetrathlon")
        self.assertTrue(result.is_valid)
        self.assertEqual(codes(result.warnings), [WARNING_MANUAL_OVERRIDE])

    def test_large_score_difference_is_error(self):
        result = self.validator.validate_shot(P(0.0, 0.0), 4, "tetrathlon")
        self.assertEqual(codes(result.errors), [ERROR_INVALID_SCORE])
        self.assertEqual(result.errors[0].message, "Score 4 inconsistent with position (expected ~10)")

    def test_score_not_valid_for_target(self):
        result = self.validator.validate_shot(P(0.0, 0.0), 7, "tetrathlon")
        self.assertEqual(codes(result.errors), [ERROR_INVALID_SCORE, ERROR_INVALID_SCORE])
        self.assertIn("Tetrathlon", result.errors[1].message)
        # 9 is a valid olympic score within tolerance of the 10 ring
        self.assertTrue(self.validator.validate_shot(P(0.0, 0.0), 9, OlympicPistolTarget()).is_valid)

    def test_zero_score_skips_consistency(self):
        self.assertEqual(self.validator.validate_shot(P(0.0, 0.0), 0, "tetrathlon").warnings, ())

    def test_low_confidence(self):
        result = self.validator.validate_shot(P(0.0, 0.0), 10, "tetrathlon", confidence=0.3)
        self.assertEqual(codes(result.warnings), [WARNING_LOW_CONFIDENCE])
        self.assertEqual(result.warnings[0].message, "Detection confidence is low (30%)")
        self.assertEqual(result.warnings[0].field, "confidence")

    def test_unknown_target_type_is_error_result(self):
        with self.assertLogs("target_core.validation", level="WARNING"):
            result = self.validator.validate_shot(P(0.0, 0.0), 10, "nope")
        self.assertFalse(result.is_valid)
        self.assertEqual(codes(result.errors), [ERROR_UNKNOWN_TARGET_TYPE])
        self.assertEqual(result.errors[0].message, "Unknown target type: nope")
        self.assertEqual(result.errors[0].field, "target_type")


class TestValidateShotCollection(unittest.TestCase):
    def setUp(self):
        self.validator = ShotValidator()

    def test_empty_collection_is_valid(self):
        self.assertIs(self.validator.validate_shot_collection([], "tetrathlon"), ValidationResult.VALID)

    def test_collection_with_unknown_target_type(self):
        shots = [Shot(P(0.0, 0.0), 10)]
        with self.assertLogs("target_core.validation", level="WARNING"):
            result = self.validator.validate_shot_collection(shots, "nope")
        self.assertEqual(codes(result.errors), [ERROR_UNKNOWN_TARGET_TYPE])

    def test_count_mismatch(self):
        shots = [Shot(P(0.0, 0.0), 10)]
        result = self.validator.validate_shot_collection(shots, "tetrathlon", expected_count=5)
        self.assertEqual(codes(result.warnings), [WARNING_POSSIBLE_MISSED])
        self.assertEqual(result.warnings[0].message, "Expected 5 shots but found 1")

    def test_duplicates_use_one_based_indexes(self):
        shots = [Shot(P(0.3, 0.3), 6), Shot(P(0.0, 0.0), 10), Shot(P(0.01, 0.0), 10)]
        self.assertEqual(find_duplicates(shots), [(1, 2)])
        result = self.validator.validate_shot_collection(shots, "tetrathlon")
        self.assertIn(WARNING_OVERLAPPING_SHOTS, codes(result.warnings))
        self.assertTrue(
            any(w.message.startswith("Shots 2 and 3 may be duplicates") for w in result.warnings)
        )

    def test_per_shot_confidence_is_checked(self):
        shots = [Shot(P(0.0, 0.0), 10, confidence=0.2)]
        result = self.validator.validate_shot_collection(shots, "tetrathlon")
        self.assertEqual(codes(result.warnings), [WARNING_LOW_CONFIDENCE])

    def test_errors_are_logged(self):
        shots = [Shot(P(0.0, 0.0), 3)]
        with self.assertLogs("target_core.validation", "WARNING"):
            result = self.validator.validate_shot_collection(shots, "tetrathlon")
        self.assertFalse(result.is_valid)

    def test_spacing_warning(self):
        shots = [Shot(P(-0.6, 0.0), 0), Shot(P(0.6, 0.0), 0), Shot(P(0.0, 0.6), 0)]
        result = self.validator.validate_shot_collection(shots, "olympic")
        self.assertEqual(codes(result.warnings), [WARNING_UNUSUAL_SPACING])
        self.assertEqual(result.warnings[0].message, "Shots are widely spread - verify target alignment")


class TestAnalyzeSpacing(unittest.TestCase):
    def test_needs_three_shots(self):
        self.assertIsNone(analyze_spacing([Shot(P(0.0, 0.0)), Shot(P(1.0, 0.0))]))

    def test_clustered(self):
        shots = [Shot(P(0.0, 0.0)), Shot(P(0.025, 0.0)), Shot(P(0.0, 0.025))]
        self.assertEqual(analyze_spacing(shots), "clustered")

    def test_outlier(self):
        cluster = [Shot(P(0.03 * i, 0.03 * j)) for i in range(3) for j in range(3)][:8]
        self.assertEqual(analyze_spacing(cluster + [Shot(P(0.5, 0.0))]), "outlier")

    def test_normal_group(self):
        shots = [Shot(P(0.0, 0.0)), Shot(P(0.1, 0.0)), Shot(P(0.0, 0.1)), Shot(P(0.1, 0.1))]
        self.assertIsNone(analyze_spacing(shots))


class TestScanValidator(unittest.TestCase):
    def setUp(self):
        self.validator = ScanValidator()

    def test_image_size(self):
        result = self.validator.validate_image(100, 300)
        self.assertEqual(codes(result.errors), [ERROR_IMAGE_TOO_SMALL])
        self.assertEqual(result.errors[0].message, "Image too small (100 x 300, minimum 200)")
        self.assertTrue(self.validator.validate_image(200, 200).is_valid)

    def test_crop_geometry(self):
        self.assertIs(
            self.validator.validate_crop_geometry(TargetCropGeometry()).is_valid, True
        )
        bad = TargetCropGeometry(crop_rect=(0.0, 0.0, 0.0, 0.5), target_semi_axes=(0.0, 0.4))
        result = self.validator.validate_crop_geometry(bad)
        self.assertEqual(codes(result.errors), [ERROR_GEOMETRY_INCONSISTENT] * 2)
        self.assertEqual(codes(result.warnings), [WARNING_CALIBRATION_UNCERTAIN])

    def test_rotation_warning(self):
        result = self.validator.validate_crop_geometry(TargetCropGeometry(rotation_degrees=-60))
        self.assertEqual(codes(result.warnings), [WARNING_PERSPECTIVE_DISTORTION])

    def test_quality_warnings_never_invalidate(self):
        quality = QualityAssessment(
            sharpness=0.1, contrast=0.1, exposure=EXPOSURE_UNDEREXPOSED,
            noise_level=0.2, brightness=0.1,
        )
        result = self.validator.validate_quality(
            quality, perspective_severity=0.6, center_confidence=0.3
        )
        self.assertTrue(result.is_valid)
        self.assertEqual(
            codes(result.warnings),
            [WARNING_POOR_IMAGE_QUALITY] * 3
            + [WARNING_PERSPECTIVE_DISTORTION, WARNING_CALIBRATION_UNCERTAIN],
        )
        self.assertEqual(result.warnings[2].message, "Image too dark")

    def test_validate_scan_combines_results(self):
        shots = [Shot(P(0.0, 0.0), 10), Shot(P(0.2, 0.2), 8), Shot(P(-0.2, 0.1), 8)]
        result = self.validator.validate_scan(
            (150, 400), TargetCropGeometry(), QualityAssessment.default(), shots, "tetrathlon"
        )
        self.assertFalse(result.is_valid)
        self.assertEqual(codes(result.errors), [ERROR_IMAGE_TOO_SMALL])
        self.assertEqual(result.to_dict()["errors"][0]["field"], "image")


class TestValidationResult(unittest.TestCase):
    def test_combine(self):
        warning = ValidationWarning("w", "warn")
        combined = ValidationResult.combine(
            [ValidationResult.VALID, ValidationResult.from_issues(warnings=[warning])]
        )
        self.assertTrue(combined.is_valid)
        self.assertEqual(combined.warnings, (warning,))


class TestDataIntegrityChecker(unittest.TestCase):
    def setUp(self):
        self.checker = DataIntegrityChecker()

    def test_coordinate_system_version(self):
        self.assertTrue(self.checker.validate_coordinate_system_version(1).is_valid)
        result = self.checker.validate_coordinate_system_version(2)
        self.assertEqual(codes(result.errors), [ERROR_COORDINATE_SYSTEM_MISMATCH])
        self.assertEqual(result.errors[0].message, "Data uses coordinate system v2, current is v1")

    def test_totals(self):
        self.assertTrue(self.checker.verify_consistency(10, 95, 10).is_valid)
        self.assertEqual(codes(self.checker.verify_consistency(10, 101, 10).errors), [ERROR_CORRUPT_DATA])
        self.assertEqual(codes(self.checker.verify_consistency(10, -1, 10).errors), [ERROR_CORRUPT_DATA])

    def test_needs_reanalysis(self):
        self.assertTrue(DataIntegrityChecker.needs_reanalysis(0))
        self.assertFalse(DataIntegrityChecker.needs_reanalysis(1))
        self.assertTrue(DataIntegrityChecker.needs_reanalysis(1, current_version=2))


class TestInputSanitizer(unittest.TestCase):
    def test_score_for_unknown_target_type_raises(self):
        with self.assertRaises(TargetConfigError):
            InputSanitizer.sanitize_score(10, "nope")

    def test_coordinates(self):
        self.assertEqual(InputSanitizer.sanitize_coordinate(5.0), 2.0)
        self.assertEqual(InputSanitizer.sanitize_coordinate(-0.5), -0.5)
        self.assertIsNone(InputSanitizer.sanitize_coordinate(math.inf))
        self.assertEqual(InputSanitizer.sanitize_position(P(-3.0, 0.1)), P(-2.0, 0.1))
        self.assertIsNone(InputSanitizer.sanitize_position(P(0.0, math.nan)))

    def test_scores(self):
        self.assertEqual(InputSanitizer.sanitize_score(7, "tetrathlon"), 6)
        self.assertEqual(InputSanitizer.sanitize_score(11, "tetrathlon"), 10)
        self.assertEqual(InputSanitizer.sanitize_score(-3, "tetrathlon"), 0)
        self.assertEqual(InputSanitizer.sanitize_score(9, "olympic"), 9)

    def test_confidence(self):
        self.assertEqual(InputSanitizer.sanitize_confidence(1.5), 1.0)
        self.assertEqual(InputSanitizer.sanitize_confidence(-0.1), 0.0)
        self.assertEqual(InputSanitizer.sanitize_confidence(math.nan), 0.0)


if __name__ == "__main__":
    unittest.main()
