#!/usr/bin/env python
#
# Target Scan - Schema definitions
# © 2025 Shinichi Morita (shin3tky)
#

"""
Data structures, constants, and type definitions for target hole detection
and shot-group analysis.
"""

from dataclasses import dataclass, field, replace
import math
import multiprocessing as mp
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

# ==========================================
# Version
# ==========================================
VERSION = "1.2.0"
ALGORITHM_VERSION = 1
COORDINATE_SYSTEM_VERSION = 1
PIPELINE_RESULT_SCHEMA_VERSION = 1

# ==========================================
# Default Settings
# ==========================================
DEFAULT_TARGET_TYPE = "tetrathlon"
DEFAULT_CONTOUR_ADAPTER_NAME = "opencv"
DEFAULT_NUM_WORKERS = max(1, mp.cpu_count() - 1)
DEFAULT_MAX_CACHE_SIZE = 20
DEFAULT_CONTOUR_TIMEOUT: Optional[float] = None  # seconds, None = wait forever

# Hole detection
DEFAULT_MIN_HOLE_DIAMETER = 10.0  # pixels
DEFAULT_MAX_HOLE_DIAMETER = 40.0  # pixels
DEFAULT_MIN_CIRCULARITY = 0.5
DEFAULT_AUTO_ACCEPT_CONFIDENCE = 0.85
DEFAULT_SUGGESTION_CONFIDENCE = 0.5
DEFAULT_MINIMUM_CONFIDENCE = 0.3
DEFAULT_SCORING_RING_TOLERANCE = 0.025
DEFAULT_MAX_CANDIDATES = 30

MIN_CONTOUR_POINTS = 6  # Contours with fewer boundary points are discarded
IDEAL_CIRCULARITY = 0.8
MIN_SIZE_FACTOR = 0.5
MIN_DARKNESS_FACTOR = 0.3
DARKNESS_Z_SCORE_SCALE = 3.0

# ==========================================
# Quality Assessment
# ==========================================
SHARPNESS_NORMALIZER = 500.0  # Laplacian variance divisor
CONTRAST_NORMALIZER = 64.0  # Half of the 8-bit dynamic range
NOISE_NORMALIZER = 20.0
UNDEREXPOSED_BRIGHTNESS = 0.25
OVEREXPOSED_BRIGHTNESS = 0.75
MIN_SHARPNESS_FOR_DETECTION = 0.3
MIN_CONTRAST_FOR_DETECTION = 0.2
HIGH_NOISE_LEVEL = 0.5
QUALITY_GOOD_SCORE = 0.7
QUALITY_ACCEPTABLE_SCORE = 0.5
NOISE_BLOCK_RADIUS = 2  # 5x5 blocks
NOISE_GRID_DIVISIONS = 20
NOISE_BORDER = 5

EXPOSURE_UNDEREXPOSED = "underexposed"
EXPOSURE_GOOD = "good"
EXPOSURE_OVEREXPOSED = "overexposed"
EXPOSURE_LEVELS = (EXPOSURE_UNDEREXPOSED, EXPOSURE_GOOD, EXPOSURE_OVEREXPOSED)

QUALITY_LEVEL_GOOD = "good"
QUALITY_LEVEL_ACCEPTABLE = "acceptable"
QUALITY_LEVEL_POOR = "poor"

# ==========================================
# Local Background
# ==========================================
BACKGROUND_FALLBACK_MEAN = 128.0  # Image midpoint
BACKGROUND_FALLBACK_STD = 30.0  # Typical spread
DEFAULT_DARKNESS_SIGMA = 2.0

# ==========================================
# Candidate Acceptance
# ==========================================
ACCEPTANCE_AUTO_ACCEPT = "auto_accept"
ACCEPTANCE_SUGGESTION = "suggestion"
ACCEPTANCE_REJECTED = "rejected"

# ==========================================
# Pattern Analysis
# ==========================================
MIN_SHOTS_FOR_ANALYSIS = 3
BIAS_SIGNIFICANCE_THRESHOLD = 0.08  # ~8% of target radius
DEFAULT_PROJECTION_ITERATIONS = 1000
DEFAULT_PROJECTION_SHOT_COUNT = 10

# ==========================================
# Validation
# ==========================================
MAX_COORDINATE = 2.0
MAX_RADIAL_DISTANCE = 1.5
TARGET_BOUNDARY_RADIUS = 1.0
SCORE_TOLERANCE = 2
LOW_CONFIDENCE_THRESHOLD = 0.5
DUPLICATE_DISTANCE = 0.02
MIN_IMAGE_DIMENSION = 200


# ==========================================
# Data Classes
# ==========================================
@dataclass(frozen=True)
class NormalizedTargetPosition:
    """Position in target-relative units.

    The scoring ring system is centered at the origin with the outer ring at
    a radius of about 1.0. ``+x`` points right and ``+y`` points up.
    """

    x: float
    y: float

    @property
    def radial_distance(self) -> float:
        return math.hypot(self.x, self.y)

    def elliptical_distance(self, aspect_ratio: float) -> float:
        """Distance with the horizontal axis scaled by the target aspect ratio."""
        if aspect_ratio == 0:
            return self.radial_distance
        return math.hypot(self.x / aspect_ratio, self.y)

    @property
    def angle_degrees(self) -> float:
        return math.degrees(math.atan2(self.y, self.x))

    def distance_to(self, other: "NormalizedTargetPosition") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NormalizedTargetPosition":
        return cls(x=float(data["x"]), y=float(data["y"]))


NormalizedTargetPosition.ZERO = NormalizedTargetPosition(0.0, 0.0)


@runtime_checkable
class ShotRecord(Protocol):
    """Anything with a normalized position and a recorded score."""

    @property
    def position(self) -> NormalizedTargetPosition: ...

    @property
    def score(self) -> int: ...


@dataclass(frozen=True)
class Shot:
    """Plain shot record accepted by the analyzers and validators."""

    position: NormalizedTargetPosition
    score: int = 0
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.position.x,
            "y": self.position.y,
            "score": self.score,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Shot":
        confidence = data.get("confidence")
        return cls(
            position=NormalizedTargetPosition(float(data["x"]), float(data["y"])),
            score=int(data.get("score", 0)),
            confidence=float(confidence) if confidence is not None else None,
        )


@dataclass(frozen=True)
class ConfigOverrides:
    """Per-invocation overrides for threshold tuning.

    Fields left as ``None`` keep the value from the base configuration.
    """

    min_circularity: Optional[float] = None
    min_hole_diameter: Optional[float] = None
    max_hole_diameter: Optional[float] = None
    scoring_ring_tolerance: Optional[float] = None
    filter_scoring_ring_artifacts: Optional[bool] = None

    @property
    def is_empty(self) -> bool:
        return all(value is None for value in self.to_dict().values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_circularity": self.min_circularity,
            "min_hole_diameter": self.min_hole_diameter,
            "max_hole_diameter": self.max_hole_diameter,
            "scoring_ring_tolerance": self.scoring_ring_tolerance,
            "filter_scoring_ring_artifacts": self.filter_scoring_ring_artifacts,
        }


@dataclass(frozen=True)
class HoleDetectionConfig:
    """Detection thresholds for bullet-hole candidates.

    Attributes:
        expected_hole_diameter_pixels: Inclusive (min, max) effective diameter.
        min_circularity: Minimum ``4*pi*area/perimeter**2`` to keep a contour.
        auto_accept_confidence: Confidence at or above which a candidate is
            accepted without review.
        suggestion_confidence: Confidence at or above which a candidate is
            offered as a suggestion.
        minimum_confidence: Lowest confidence reported to callers.
        filter_scoring_ring_artifacts: Reject contours sitting on ring lines.
        scoring_ring_tolerance: Normalized distance band around each ring.
        max_candidates: Upper bound on returned candidates.
        use_local_background: Weight confidence by local darkness z-score.
    """

    expected_hole_diameter_pixels: Tuple[float, float] = (
        DEFAULT_MIN_HOLE_DIAMETER,
        DEFAULT_MAX_HOLE_DIAMETER,
    )
    min_circularity: float = DEFAULT_MIN_CIRCULARITY
    auto_accept_confidence: float = DEFAULT_AUTO_ACCEPT_CONFIDENCE
    suggestion_confidence: float = DEFAULT_SUGGESTION_CONFIDENCE
    minimum_confidence: float = DEFAULT_MINIMUM_CONFIDENCE
    filter_scoring_ring_artifacts: bool = True
    scoring_ring_tolerance: float = DEFAULT_SCORING_RING_TOLERANCE
    max_candidates: int = DEFAULT_MAX_CANDIDATES
    use_local_background: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        diameters = self.expected_hole_diameter_pixels
        if not isinstance(diameters, tuple):
            diameters = tuple(diameters)
            object.__setattr__(self, "expected_hole_diameter_pixels", diameters)
        if len(diameters) != 2:
            raise ValueError(
                "expected_hole_diameter_pixels must contain exactly two values, "
                f"got {len(diameters)}"
            )
        low, high = float(diameters[0]), float(diameters[1])
        object.__setattr__(self, "expected_hole_diameter_pixels", (low, high))
        if low <= 0:
            raise ValueError(f"minimum hole diameter must be > 0, got {low}")
        if high < low:
            raise ValueError(
                f"maximum hole diameter ({high}) must be >= minimum ({low})"
            )
        if not 0.0 <= self.min_circularity <= 1.0:
            raise ValueError(
                f"min_circularity must be within [0, 1], got {self.min_circularity}"
            )
        for name in (
            "auto_accept_confidence",
            "suggestion_confidence",
            "minimum_confidence",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.scoring_ring_tolerance < 0:
            raise ValueError(
                "scoring_ring_tolerance must be >= 0, "
                f"got {self.scoring_ring_tolerance}"
            )
        if self.max_candidates < 1:
            raise ValueError(f"max_candidates must be >= 1, got {self.max_candidates}")

    @property
    def min_hole_diameter(self) -> float:
        return self.expected_hole_diameter_pixels[0]

    @property
    def max_hole_diameter(self) -> float:
        return self.expected_hole_diameter_pixels[1]

    @property
    def diameter_midpoint(self) -> float:
        return (self.min_hole_diameter + self.max_hole_diameter) / 2.0

    def with_overrides(
        self, overrides: Optional[ConfigOverrides]
    ) -> "HoleDetectionConfig":
        """Return a copy with any non-None override fields applied."""
        if overrides is None or overrides.is_empty:
            return self

        low = (
            overrides.min_hole_diameter
            if overrides.min_hole_diameter is not None
            else self.min_hole_diameter
        )
        high = (
            overrides.max_hole_diameter
            if overrides.max_hole_diameter is not None
            else self.max_hole_diameter
        )
        changes: Dict[str, Any] = {"expected_hole_diameter_pixels": (low, high)}
        if overrides.min_circularity is not None:
            changes["min_circularity"] = overrides.min_circularity
        if overrides.scoring_ring_tolerance is not None:
            changes["scoring_ring_tolerance"] = overrides.scoring_ring_tolerance
        if overrides.filter_scoring_ring_artifacts is not None:
            changes["filter_scoring_ring_artifacts"] = (
                overrides.filter_scoring_ring_artifacts
            )
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expected_hole_diameter_pixels": list(self.expected_hole_diameter_pixels),
            "min_circularity": self.min_circularity,
            "auto_accept_confidence": self.auto_accept_confidence,
            "suggestion_confidence": self.suggestion_confidence,
            "minimum_confidence": self.minimum_confidence,
            "filter_scoring_ring_artifacts": self.filter_scoring_ring_artifacts,
            "scoring_ring_tolerance": self.scoring_ring_tolerance,
            "max_candidates": self.max_candidates,
            "use_local_background": self.use_local_background,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HoleDetectionConfig":
        """Create configuration from dictionary.

        Unknown keys raise ``TypeError`` so that typos in configuration files
        are reported instead of silently ignored.
        """
        payload = dict(data)
        diameters = payload.get("expected_hole_diameter_pixels")
        if isinstance(diameters, dict):
            payload["expected_hole_diameter_pixels"] = (
                diameters["min"],
                diameters["max"],
            )
        elif diameters is not None:
            payload["expected_hole_diameter_pixels"] = tuple(diameters)
        return cls(**payload)


@dataclass
class PipelineConfig:
    """Configuration for the hole detection pipeline.

    Attributes:
        detection: Hole detection thresholds.
        target_type: Name of the target type used for scoring.
        crop: Crop geometry mapping (see ``TargetCropGeometry.from_dict``).
            ``None`` uses the default geometry.
        contour_adapter_name: Contour adapter plugin name. If None, uses default.
        contour_adapter_config: Configuration dict for the contour adapter.
        max_cache_size: Per-stage cache bound.
        contour_timeout: Seconds to wait for contour extraction (None = no limit).
        num_workers: Worker threads for batch processing.
    """

    detection: HoleDetectionConfig = field(default_factory=HoleDetectionConfig)
    target_type: str = DEFAULT_TARGET_TYPE
    crop: Optional[Dict[str, Any]] = None
    contour_adapter_name: Optional[str] = None
    contour_adapter_config: Optional[Dict[str, Any]] = None
    max_cache_size: int = DEFAULT_MAX_CACHE_SIZE
    contour_timeout: Optional[float] = DEFAULT_CONTOUR_TIMEOUT
    num_workers: int = DEFAULT_NUM_WORKERS

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_cache_size < 1:
            raise ValueError(f"max_cache_size must be >= 1, got {self.max_cache_size}")
        if self.contour_timeout is not None and self.contour_timeout <= 0:
            raise ValueError(
                f"contour_timeout must be > 0, got {self.contour_timeout}"
            )
        if self.num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {self.num_workers}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detection": self.detection.to_dict(),
            "target_type": self.target_type,
            "crop": self.crop,
            "contour_adapter_name": self.contour_adapter_name,
            "contour_adapter_config": self.contour_adapter_config,
            "max_cache_size": self.max_cache_size,
            "contour_timeout": self.contour_timeout,
            "num_workers": self.num_workers,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Create configuration from dictionary.

        Args:
            data: Dictionary containing configuration values.

        Returns:
            PipelineConfig instance.
        """
        detection_data = data.get("detection", {})
        if isinstance(detection_data, dict):
            detection = HoleDetectionConfig.from_dict(detection_data)
        else:
            detection = detection_data

        return cls(
            detection=detection,
            target_type=data.get("target_type", DEFAULT_TARGET_TYPE),
            crop=data.get("crop"),
            contour_adapter_name=data.get("contour_adapter_name"),
            contour_adapter_config=data.get("contour_adapter_config"),
            max_cache_size=data.get("max_cache_size", DEFAULT_MAX_CACHE_SIZE),
            contour_timeout=data.get("contour_timeout", DEFAULT_CONTOUR_TIMEOUT),
            num_workers=data.get("num_workers", DEFAULT_NUM_WORKERS),
        )


@dataclass(frozen=True)
class DetectedContour:
    """Closed contour in pixel space with derived shape metrics."""

    bounding_box: Tuple[float, float, float, float]  # x, y, width, height
    center_pixel: Tuple[float, float]
    area: float
    perimeter: float
    circularity: float
    aspect_ratio: float
    points: Tuple[Tuple[float, float], ...] = ()

    @property
    def equivalent_diameter(self) -> float:
        return 2.0 * math.sqrt(self.area / math.pi)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bounding_box": list(self.bounding_box),
            "center_pixel": list(self.center_pixel),
            "area": self.area,
            "perimeter": self.perimeter,
            "circularity": self.circularity,
            "aspect_ratio": self.aspect_ratio,
            "point_count": len(self.points),
        }


@dataclass(frozen=True)
class FilteredCandidate:
    """Contour after filtering, with its target-space position."""

    contour: DetectedContour
    normalized_position: NormalizedTargetPosition
    passed: bool
    rejection_reason: Optional[str] = None

    @property
    def diameter(self) -> float:
        return self.contour.equivalent_diameter

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contour": self.contour.to_dict(),
            "normalized_position": self.normalized_position.to_dict(),
            "passed": self.passed,
            "rejection_reason": self.rejection_reason,
        }


@dataclass(frozen=True)
class HoleFeatures:
    """Measured features of a hole candidate."""

    circularity: float
    aspect_ratio: float
    mean_intensity: float
    edge_strength: Optional[float]
    darkness_z_score: Optional[float]
    area: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "circularity": self.circularity,
            "aspect_ratio": self.aspect_ratio,
            "mean_intensity": self.mean_intensity,
            "edge_strength": self.edge_strength,
            "darkness_z_score": self.darkness_z_score,
            "area": self.area,
        }


@dataclass(frozen=True)
class DetectedHoleCandidate:
    """Scored hole candidate returned by the detection pipeline."""

    pixel_position: Tuple[float, float]
    target_position: NormalizedTargetPosition
    radius_pixels: float
    confidence: float
    features: HoleFeatures
    score: int

    def acceptance_level(self, config: Optional[HoleDetectionConfig] = None) -> str:
        """Classify the candidate against the configured confidence levels."""
        cfg = config or HoleDetectionConfig()
        if self.confidence >= cfg.auto_accept_confidence:
            return ACCEPTANCE_AUTO_ACCEPT
        if self.confidence >= cfg.suggestion_confidence:
            return ACCEPTANCE_SUGGESTION
        return ACCEPTANCE_REJECTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pixel_position": list(self.pixel_position),
            "target_position": self.target_position.to_dict(),
            "radius_pixels": self.radius_pixels,
            "confidence": self.confidence,
            "features": self.features.to_dict(),
            "score": self.score,
        }


@dataclass
class StageTiming:
    """Wall-clock seconds spent in each pipeline stage."""

    quality: float = 0.0
    preprocessing: float = 0.0
    contours: float = 0.0
    filtering: float = 0.0
    scoring: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.quality
            + self.preprocessing
            + self.contours
            + self.filtering
            + self.scoring
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "quality": self.quality,
            "preprocessing": self.preprocessing,
            "contours": self.contours,
            "filtering": self.filtering,
            "scoring": self.scoring,
        }


@dataclass(frozen=True)
class CacheStatistics:
    """Point-in-time snapshot of the stage cache."""

    preprocessing_count: int = 0
    contour_count: int = 0
    filtering_count: int = 0
    hits: int = 0
    misses: int = 0

    @property
    def total_lookups(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.total_lookups
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "preprocessing_count": self.preprocessing_count,
            "contour_count": self.contour_count,
            "filtering_count": self.filtering_count,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
        }


@dataclass
class PipelineExecutionResult:
    """Output of one pipeline invocation.

    ``accepted`` and ``rejected`` hold the filter-stage view of every contour
    for diagnostics; ``candidates`` is the ranked, scored output.
    """

    candidates: List[DetectedHoleCandidate]
    quality: Any  # QualityAssessment
    timing: StageTiming
    cache_statistics: CacheStatistics
    image_hash: str = ""
    accepted: List[FilteredCandidate] = field(default_factory=list)
    rejected: List[FilteredCandidate] = field(default_factory=list)
    schema_version: int = PIPELINE_RESULT_SCHEMA_VERSION

    @property
    def total_time(self) -> float:
        return self.timing.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "quality": self.quality.to_dict() if self.quality is not None else None,
            "timing": self.timing.to_dict(),
            "total_time": self.total_time,
            "cache_statistics": self.cache_statistics.to_dict(),
            "image_hash": self.image_hash,
            "accepted_count": len(self.accepted),
            "rejected": [candidate.to_dict() for candidate in self.rejected],
            "schema_version": self.schema_version,
        }
