#!/usr/bin/env python
#
# Target Scan - Validation
# © 2025 Shinichi Morita (shin3tky)
#

"""
Data validation for shots and scans.

Validators never raise; they return a :class:`ValidationResult`. Errors
block persistence of the checked data, warnings are informational.
"""

from dataclasses import dataclass, field
import itertools
import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .exceptions import TargetConfigError
from .geometry import TargetCropGeometry, TargetType, get_target_type
from .i18n import DEFAULT_LOCALE, get_message
from .schema import (
    ALGORITHM_VERSION,
    COORDINATE_SYSTEM_VERSION,
    DUPLICATE_DISTANCE,
    EXPOSURE_GOOD,
    EXPOSURE_UNDEREXPOSED,
    LOW_CONFIDENCE_THRESHOLD,
    MAX_COORDINATE,
    MAX_RADIAL_DISTANCE,
    MIN_IMAGE_DIMENSION,
    SCORE_TOLERANCE,
    TARGET_BOUNDARY_RADIUS,
    NormalizedTargetPosition,
    ShotRecord,
)

logger = logging.getLogger(__name__)

# Warning codes
WARNING_SHOT_OUTSIDE_TARGET = "shot_outside_target"
WARNING_LOW_CONFIDENCE = "low_confidence"
WARNING_POOR_IMAGE_QUALITY = "poor_image_quality"
WARNING_PERSPECTIVE_DISTORTION = "perspective_distortion"
WARNING_UNUSUAL_SPACING = "unusual_spacing"
WARNING_OVERLAPPING_SHOTS = "overlapping_shots"
WARNING_POSSIBLE_MISSED = "possible_missed"
WARNING_MANUAL_OVERRIDE = "manual_override"
WARNING_CALIBRATION_UNCERTAIN = "calibration_uncertain"

# Error codes
ERROR_INVALID_COORDINATES = "invalid_coordinates"
ERROR_DUPLICATE_SHOT = "duplicate_shot"
ERROR_INVALID_SCORE = "invalid_score"
ERROR_CORRUPT_DATA = "corrupt_data"
ERROR_MISSING_FIELD = "missing_field"
ERROR_COORDINATE_SYSTEM_MISMATCH = "coord_system_mismatch"
ERROR_IMAGE_TOO_SMALL = "image_too_small"
ERROR_NO_TARGET_DETECTED = "no_target_detected"
ERROR_GEOMETRY_INCONSISTENT = "geometry_inconsistent"
ERROR_UNKNOWN_TARGET_TYPE = "unknown_target_type"

# Spacing heuristics (normalized units)
CLUSTERED_AVERAGE_DISTANCE = 0.03
CLUSTERED_MAX_DISTANCE = 0.05
WIDELY_SPREAD_AVERAGE_DISTANCE = 0.5
OUTLIER_FACTOR = 3.0

SMALL_TARGET_SEMI_AXIS = 0.15
MAX_ROTATION_DEGREES = 45.0
MAX_PERSPECTIVE_SEVERITY = 0.5
MIN_CENTER_CONFIDENCE = 0.5
MIN_SHARPNESS = 0.3
MIN_CONTRAST = 0.2


@dataclass(frozen=True)
class ValidationWarning:
    code: str
    message: str
    field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "field": self.field}


@dataclass(frozen=True)
class ValidationError:
    code: str
    message: str
    field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "field": self.field}


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    warnings: Tuple[ValidationWarning, ...] = field(default_factory=tuple)
    errors: Tuple[ValidationError, ...] = field(default_factory=tuple)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @classmethod
    def from_issues(
        cls,
        warnings: Iterable[ValidationWarning] = (),
        errors: Iterable[ValidationError] = (),
    ) -> "ValidationResult":
        errors = tuple(errors)
        return cls(is_valid=not errors, warnings=tuple(warnings), errors=errors)

    @classmethod
    def combine(cls, results: Iterable["ValidationResult"]) -> "ValidationResult":
        """Concatenate issues; valid only when every part is valid."""
        results = list(results)
        return cls(
            is_valid=all(result.is_valid for result in results),
            warnings=tuple(w for result in results for w in result.warnings),
            errors=tuple(e for result in results for e in result.errors),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "warnings": [warning.to_dict() for warning in self.warnings],
            "errors": [error.to_dict() for error in self.errors],
        }


ValidationResult.VALID = ValidationResult(is_valid=True)


def _resolve_target_type(target_type: Union[str, TargetType]) -> TargetType:
    if isinstance(target_type, str):
        return get_target_type(target_type)
    return target_type


def is_valid_coordinate(position: NormalizedTargetPosition) -> bool:
    return (
        position.is_finite
        and abs(position.x) <= MAX_COORDINATE
        and abs(position.y) <= MAX_COORDINATE
    )


class ShotValidator:
    """Checks single shots and shot collections."""

    def __init__(self, *, locale: str = DEFAULT_LOCALE) -> None:
        self.locale = locale

    def _msg(self, key: str, **params: Any) -> str:
        return get_message(f"validation.{key}", locale=self.locale, params=params)

    def _resolve(
        self, target_type: Union[str, TargetType]
    ) -> Tuple[Optional[TargetType], Optional[ValidationResult]]:
        """Resolve ``target_type``; unknown names become an error result."""
        try:
            return _resolve_target_type(target_type), None
        except TargetConfigError:
            error = ValidationError(
                ERROR_UNKNOWN_TARGET_TYPE,
                self._msg("unknown_target_type", name=target_type),
                "target_type",
            )
            logger.warning("Validation error: %s", error.message)
            return None, ValidationResult.from_issues(errors=[error])

    def validate_shot(
        self,
        position: NormalizedTargetPosition,
        score: int,
        target_type: Union[str, TargetType],
        confidence: Optional[float] = None,
    ) -> ValidationResult:
        target_type, unknown = self._resolve(target_type)
        if unknown is not None:
            return unknown
        warnings: List[ValidationWarning] = []
        errors: List[ValidationError] = []

        if not is_valid_coordinate(position):
            errors.append(
                ValidationError(
                    ERROR_INVALID_COORDINATES,
                    self._msg("shot.invalid_coordinates"),
                    "position",
                )
            )

        radial = position.radial_distance
        if radial > MAX_RADIAL_DISTANCE:
            errors.append(
                ValidationError(
                    ERROR_INVALID_COORDINATES, self._msg("shot.too_far_outside"), "position"
                )
            )
        elif radial > TARGET_BOUNDARY_RADIUS:
            warnings.append(
                ValidationWarning(
                    WARNING_SHOT_OUTSIDE_TARGET, self._msg("shot.outside_target"), "position"
                )
            )

        expected = target_type.score(position)
        if score != expected and score != 0:
            if abs(score - expected) > SCORE_TOLERANCE:
                errors.append(
                    ValidationError(
                        ERROR_INVALID_SCORE,
                        self._msg("shot.score_inconsistent", score=score, expected=expected),
                        "score",
                    )
                )
            else:
                warnings.append(
                    ValidationWarning(
                        WARNING_MANUAL_OVERRIDE, self._msg("shot.manual_override"), "score"
                    )
                )

        if score not in target_type.valid_scores:
            errors.append(
                ValidationError(
                    ERROR_INVALID_SCORE,
                    self._msg(
                        "shot.score_not_valid", score=score, target=target_type.display_name
                    ),
                    "score",
                )
            )

        if confidence is not None and confidence < LOW_CONFIDENCE_THRESHOLD:
            warnings.append(
                ValidationWarning(
                    WARNING_LOW_CONFIDENCE,
                    self._msg("shot.low_confidence", percent=confidence * 100.0),
                    "confidence",
                )
            )

        return ValidationResult.from_issues(warnings, errors)

    def validate_shot_collection(
        self,
        shots: Sequence[ShotRecord],
        target_type: Union[str, TargetType],
        expected_count: Optional[int] = None,
    ) -> ValidationResult:
        if not shots:
            return ValidationResult.VALID
        target_type, unknown = self._resolve(target_type)
        if unknown is not None:
            return unknown

        warnings: List[ValidationWarning] = []
        errors: List[ValidationError] = []

        if expected_count is not None and len(shots) != expected_count:
            warnings.append(
                ValidationWarning(
                    WARNING_POSSIBLE_MISSED,
                    self._msg(
                        "collection.count_mismatch", expected=expected_count, found=len(shots)
                    ),
                    "shot_count",
                )
            )

        for first, second in find_duplicates(shots):
            warnings.append(
                ValidationWarning(
                    WARNING_OVERLAPPING_SHOTS,
                    self._msg("collection.duplicates", first=first + 1, second=second + 1),
                    "position",
                )
            )

        for shot in shots:
            result = self.validate_shot(
                shot.position,
                shot.score,
                target_type,
                getattr(shot, "confidence", None),
            )
            warnings.extend(result.warnings)
            errors.extend(result.errors)

        spacing_key = analyze_spacing(shots)
        if spacing_key is not None:
            warnings.append(
                ValidationWarning(
                    WARNING_UNUSUAL_SPACING, self._msg(f"collection.{spacing_key}"), "position"
                )
            )

        result = ValidationResult.from_issues(warnings, errors)
        if result.has_errors:
            logger.warning(
                "Shot collection failed validation: %d error(s), %d warning(s)",
                len(result.errors),
                len(result.warnings),
            )
        return result


def find_duplicates(shots: Sequence[ShotRecord]) -> List[Tuple[int, int]]:
    """Index pairs of shots closer than the duplicate distance."""
    return [
        (i, j)
        for (i, a), (j, b) in itertools.combinations(enumerate(shots), 2)
        if a.position.distance_to(b.position) < DUPLICATE_DISTANCE
    ]


def analyze_spacing(shots: Sequence[ShotRecord]) -> Optional[str]:
    """Return the catalog key of a spacing anomaly, or None."""
    if len(shots) < 3:
        return None
    distances = [
        a.position.distance_to(b.position) for a, b in itertools.combinations(shots, 2)
    ]
    average = sum(distances) / len(distances)
    largest = max(distances)

    if average < CLUSTERED_AVERAGE_DISTANCE and largest < CLUSTERED_MAX_DISTANCE:
        return "clustered"
    if average > WIDELY_SPREAD_AVERAGE_DISTANCE:
        return "widely_spread"
    if largest > average * OUTLIER_FACTOR:
        return "outlier"
    return None


class ScanValidator:
    """Checks image size, crop geometry and acquisition quality of a scan."""

    minimum_image_dimension = MIN_IMAGE_DIMENSION

    def __init__(self, *, locale: str = DEFAULT_LOCALE) -> None:
        self.locale = locale
        self.shot_validator = ShotValidator(locale=locale)

    def _msg(self, key: str, **params: Any) -> str:
        return get_message(f"validation.scan.{key}", locale=self.locale, params=params)

    def validate_image(self, width: float, height: float) -> ValidationResult:
        minimum = self.minimum_image_dimension
        if width < minimum or height < minimum:
            return ValidationResult.from_issues(
                errors=[
                    ValidationError(
                        ERROR_IMAGE_TOO_SMALL,
                        self._msg("image_too_small", width=width, height=height, minimum=minimum),
                        "image",
                    )
                ]
            )
        return ValidationResult.VALID

    def validate_crop_geometry(self, geometry: TargetCropGeometry) -> ValidationResult:
        warnings: List[ValidationWarning] = []
        errors: List[ValidationError] = []

        _, _, crop_width, crop_height = geometry.crop_rect
        if crop_width <= 0 or crop_height <= 0:
            errors.append(
                ValidationError(
                    ERROR_GEOMETRY_INCONSISTENT, self._msg("invalid_crop"), "crop_rect"
                )
            )

        center_x, center_y = geometry.target_center_in_crop
        if not (0.0 <= center_x <= 1.0 and 0.0 <= center_y <= 1.0):
            errors.append(
                ValidationError(
                    ERROR_GEOMETRY_INCONSISTENT,
                    self._msg("center_outside_crop"),
                    "target_center_in_crop",
                )
            )

        semi_width, semi_height = geometry.target_semi_axes
        if semi_width <= 0 or semi_height <= 0:
            errors.append(
                ValidationError(
                    ERROR_GEOMETRY_INCONSISTENT,
                    self._msg("invalid_semi_axes"),
                    "target_semi_axes",
                )
            )
        if semi_width < SMALL_TARGET_SEMI_AXIS or semi_height < SMALL_TARGET_SEMI_AXIS:
            warnings.append(
                ValidationWarning(
                    WARNING_CALIBRATION_UNCERTAIN, self._msg("target_small"), "target_semi_axes"
                )
            )

        if abs(geometry.rotation_degrees) > MAX_ROTATION_DEGREES:
            warnings.append(
                ValidationWarning(
                    WARNING_PERSPECTIVE_DISTORTION, self._msg("rotated"), "rotation_degrees"
                )
            )

        return ValidationResult.from_issues(warnings, errors)

    def validate_quality(
        self,
        quality: Any,
        perspective_severity: Optional[float] = None,
        center_confidence: Optional[float] = None,
    ) -> ValidationResult:
        """Quality issues are warnings only; the result is always valid."""
        warnings: List[ValidationWarning] = []

        if quality.sharpness < MIN_SHARPNESS:
            warnings.append(
                ValidationWarning(WARNING_POOR_IMAGE_QUALITY, self._msg("blurry"), "sharpness")
            )
        if quality.contrast < MIN_CONTRAST:
            warnings.append(
                ValidationWarning(
                    WARNING_POOR_IMAGE_QUALITY, self._msg("low_contrast"), "contrast"
                )
            )
        if quality.exposure != EXPOSURE_GOOD:
            key = "too_dark" if quality.exposure == EXPOSURE_UNDEREXPOSED else "too_bright"
            warnings.append(
                ValidationWarning(WARNING_POOR_IMAGE_QUALITY, self._msg(key), "exposure")
            )
        if perspective_severity is not None and perspective_severity > MAX_PERSPECTIVE_SEVERITY:
            warnings.append(
                ValidationWarning(
                    WARNING_PERSPECTIVE_DISTORTION,
                    self._msg("perspective"),
                    "perspective_severity",
                )
            )
        if center_confidence is not None and center_confidence < MIN_CENTER_CONFIDENCE:
            warnings.append(
                ValidationWarning(
                    WARNING_CALIBRATION_UNCERTAIN,
                    self._msg("center_uncertain"),
                    "center_confidence",
                )
            )

        return ValidationResult(is_valid=True, warnings=tuple(warnings))

    def validate_scan(
        self,
        image_size: Tuple[float, float],
        crop_geometry: TargetCropGeometry,
        quality: Optional[Any],
        shots: Sequence[ShotRecord],
        target_type: Union[str, TargetType],
    ) -> ValidationResult:
        results = [
            self.validate_image(*image_size),
            self.validate_crop_geometry(crop_geometry),
        ]
        if quality is not None:
            results.append(self.validate_quality(quality))
        results.append(self.shot_validator.validate_shot_collection(shots, target_type))
        return ValidationResult.combine(results)


class DataIntegrityChecker:
    """Checks stored shooting data against current algorithm versions."""

    def __init__(self, *, locale: str = DEFAULT_LOCALE) -> None:
        self.locale = locale

    @staticmethod
    def needs_reanalysis(stored_version: int, current_version: int = ALGORITHM_VERSION) -> bool:
        return stored_version < current_version

    def validate_coordinate_system_version(self, version: int) -> ValidationResult:
        if version != COORDINATE_SYSTEM_VERSION:
            return ValidationResult.from_issues(
                errors=[
                    ValidationError(
                        ERROR_COORDINATE_SYSTEM_MISMATCH,
                        get_message(
                            "validation.integrity.coordinate_version",
                            locale=self.locale,
                            version=version,
                            current=COORDINATE_SYSTEM_VERSION,
                        ),
                        "coordinate_system_version",
                    )
                ]
            )
        return ValidationResult.VALID

    def verify_consistency(
        self, shot_count: int, total_score: int, max_score_per_shot: int
    ) -> ValidationResult:
        errors: List[ValidationError] = []
        maximum = shot_count * max_score_per_shot
        if total_score > maximum:
            errors.append(
                ValidationError(
                    ERROR_CORRUPT_DATA,
                    get_message(
                        "validation.integrity.total_exceeds_max",
                        locale=self.locale,
                        total=total_score,
                        maximum=maximum,
                    ),
                    "total_score",
                )
            )
        if total_score < 0:
            errors.append(
                ValidationError(
                    ERROR_CORRUPT_DATA,
                    get_message("validation.integrity.negative_total", locale=self.locale),
                    "total_score",
                )
            )
        return ValidationResult.from_issues(errors=errors)


class InputSanitizer:
    """Clamp user-entered shot data into valid ranges."""

    @staticmethod
    def sanitize_coordinate(value: float) -> Optional[float]:
        if not math.isfinite(value):
            return None
        return max(-MAX_COORDINATE, min(MAX_COORDINATE, value))

    @classmethod
    def sanitize_position(
        cls, position: NormalizedTargetPosition
    ) -> Optional[NormalizedTargetPosition]:
        x = cls.sanitize_coordinate(position.x)
        y = cls.sanitize_coordinate(position.y)
        if x is None or y is None:
            return None
        return NormalizedTargetPosition(x, y)

    @staticmethod
    def sanitize_score(score: int, target_type: Union[str, TargetType]) -> int:
        """Nearest valid score; ties resolve to the lower score.

        Raises:
            TargetConfigError: ``target_type`` names no registered target.
        """
        valid_scores = _resolve_target_type(target_type).valid_scores
        if not valid_scores:
            return 0
        clamped = max(min(valid_scores), min(max(valid_scores), score))
        return min(sorted(valid_scores), key=lambda candidate: abs(candidate - clamped))

    @staticmethod
    def sanitize_confidence(confidence: float) -> float:
        if not math.isfinite(confidence):
            return 0.0
        return max(0.0, min(1.0, confidence))
