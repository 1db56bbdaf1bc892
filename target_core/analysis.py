#!/usr/bin/env python
#
# Target Scan - Shot Pattern Analysis
# © 2025 Shinichi Morita (shin3tky)
#

"""
Statistical shot-group analysis for coaching feedback.

- PatternAnalyzer: MPI, dispersion, CEP50/CEP90 and directional bias for
  one group of at least three shots.
- SessionAggregator: shot-count weighted combination of several analyses
  with least-squares trends.
- ImprovementSuggestionGenerator: prioritized coaching suggestions.

All positions are in normalized target units (see NormalizedTargetPosition).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
import itertools
import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .i18n import DEFAULT_LOCALE, get_message, get_message_list
from .schema import (
    ALGORITHM_VERSION,
    BIAS_SIGNIFICANCE_THRESHOLD,
    MIN_SHOTS_FOR_ANALYSIS,
    NormalizedTargetPosition,
    ShotRecord,
)

logger = logging.getLogger(__name__)

# Ratings
RATING_EXCELLENT = "excellent"
RATING_GOOD = "good"
RATING_FAIR = "fair"
RATING_NEEDS_WORK = "needs_work"

CONSISTENCY_THRESHOLDS = (0.05, 0.10, 0.15)  # standard deviation
ACCURACY_THRESHOLDS = (0.05, 0.10, 0.20)  # MPI radial distance

STRONG_BIAS_MAGNITUDE = 0.3
MODERATE_BIAS_MAGNITUDE = 0.15
HIGH_PRIORITY_BIAS_MAGNITUDE = 0.2
LARGE_EXTREME_SPREAD = 0.4
TREND_THRESHOLD = 0.01

# Suggestion priorities
PRIORITY_LOW = 1
PRIORITY_MEDIUM = 2
PRIORITY_HIGH = 3

# Suggestion categories
CATEGORY_SIGHT_ALIGNMENT = "Sight Alignment"
CATEGORY_TRIGGER_CONTROL = "Trigger Control"
CATEGORY_HOLD_CONTROL = "Hold Control"
CATEGORY_MENTAL_FOCUS = "Mental Focus"
CATEGORY_STANCE = "Stance"
CATEGORY_GRIP = "Grip"

AnalysisInput = Union[ShotRecord, NormalizedTargetPosition]


def _rate(value: float, thresholds: Tuple[float, float, float]) -> str:
    excellent, good, fair = thresholds
    if value < excellent:
        return RATING_EXCELLENT
    if value < good:
        return RATING_GOOD
    if value < fair:
        return RATING_FAIR
    return RATING_NEEDS_WORK


def rating_label(rating: str, *, locale: str = DEFAULT_LOCALE) -> str:
    return get_message(f"analysis.rating.{rating}", locale=locale)


class ClockDirection(IntEnum):
    """Clock-face direction; 12 o'clock is up."""

    TWELVE = 12
    ONE = 1
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    ELEVEN = 11

    @classmethod
    def from_angle(cls, angle_degrees: float) -> "ClockDirection":
        """Map a math angle (0 = right, counter-clockwise) to a clock hour."""
        adjusted = (90.0 - angle_degrees + 360.0) % 360.0
        # round half away from zero
        hour = int(math.floor(adjusted / 30.0 + 0.5)) % 12
        return cls(12 if hour == 0 else hour)

    @property
    def description(self) -> str:
        return f"{int(self)} o'clock"


# Coaching catalog key per clock hour
_COACHING_KEYS: Dict[ClockDirection, str] = {
    ClockDirection.TWELVE: "hour_12",
    ClockDirection.SIX: "hour_6",
    ClockDirection.THREE: "hour_3",
    ClockDirection.NINE: "hour_9",
    ClockDirection.ONE: "high_right",
    ClockDirection.TWO: "high_right",
    ClockDirection.TEN: "high_left",
    ClockDirection.ELEVEN: "high_left",
    ClockDirection.FOUR: "low_right",
    ClockDirection.FIVE: "low_right",
    ClockDirection.SEVEN: "low_left",
    ClockDirection.EIGHT: "low_left",
}


@dataclass(frozen=True)
class DirectionalBias:
    """Systematic offset of the group center from the target center."""

    horizontal_bias: float
    vertical_bias: float
    magnitude: float
    is_significant: bool
    primary_direction: Optional[ClockDirection] = None

    @classmethod
    def none(cls) -> "DirectionalBias":
        return cls(0.0, 0.0, 0.0, False, None)

    def describe(self, *, locale: str = DEFAULT_LOCALE) -> Optional[str]:
        if not self.is_significant or self.primary_direction is None:
            return None
        if self.magnitude > STRONG_BIAS_MAGNITUDE:
            intensity_key = "strong"
        elif self.magnitude > MODERATE_BIAS_MAGNITUDE:
            intensity_key = "moderate"
        else:
            intensity_key = "slight"
        return get_message(
            "analysis.bias.description",
            locale=locale,
            intensity=get_message(f"analysis.bias.intensity.{intensity_key}", locale=locale),
            hour=int(self.primary_direction),
        )

    @property
    def description(self) -> Optional[str]:
        return self.describe()

    def coaching(self, *, locale: str = DEFAULT_LOCALE) -> Optional[str]:
        if not self.is_significant or self.primary_direction is None:
            return None
        key = _COACHING_KEYS[self.primary_direction]
        return get_message(f"analysis.coaching.{key}", locale=locale)

    @property
    def coaching_text(self) -> Optional[str]:
        return self.coaching()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "horizontal_bias": self.horizontal_bias,
            "vertical_bias": self.vertical_bias,
            "magnitude": self.magnitude,
            "is_significant": self.is_significant,
            "primary_direction": (
                int(self.primary_direction) if self.primary_direction is not None else None
            ),
            "description": self.description,
        }


@dataclass(frozen=True)
class PatternAnalysis:
    """Snapshot of one shot group's statistics."""

    mpi: NormalizedTargetPosition
    standard_deviation: float
    extreme_spread: float
    cep50: float
    cep90: float
    directional_bias: DirectionalBias
    shot_count: int
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    algorithm_version: int = ALGORITHM_VERSION

    @property
    def consistency_rating(self) -> str:
        return _rate(self.standard_deviation, CONSISTENCY_THRESHOLDS)

    @property
    def accuracy_rating(self) -> str:
        return _rate(self.mpi.radial_distance, ACCURACY_THRESHOLDS)

    @property
    def group_size(self) -> float:
        return self.cep90 * 2.0

    @property
    def needs_reanalysis(self) -> bool:
        return self.algorithm_version < ALGORITHM_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mpi": self.mpi.to_dict(),
            "standard_deviation": self.standard_deviation,
            "extreme_spread": self.extreme_spread,
            "cep50": self.cep50,
            "cep90": self.cep90,
            "group_size": self.group_size,
            "directional_bias": self.directional_bias.to_dict(),
            "shot_count": self.shot_count,
            "analyzed_at": self.analyzed_at.isoformat(),
            "algorithm_version": self.algorithm_version,
            "consistency_rating": self.consistency_rating,
            "accuracy_rating": self.accuracy_rating,
        }


def _position_of(item: AnalysisInput) -> NormalizedTargetPosition:
    if isinstance(item, NormalizedTargetPosition):
        return item
    return item.position


def calculate_mpi(positions: Sequence[NormalizedTargetPosition]) -> NormalizedTargetPosition:
    if not positions:
        return NormalizedTargetPosition.ZERO
    count = len(positions)
    return NormalizedTargetPosition(
        sum(p.x for p in positions) / count,
        sum(p.y for p in positions) / count,
    )


def calculate_standard_deviation(
    positions: Sequence[NormalizedTargetPosition], reference: NormalizedTargetPosition
) -> float:
    """Root mean squared distance from ``reference`` (0 for fewer than 2)."""
    if len(positions) <= 1:
        return 0.0
    squared = [(p.x - reference.x) ** 2 + (p.y - reference.y) ** 2 for p in positions]
    return math.sqrt(sum(squared) / len(positions))


def calculate_extreme_spread(positions: Sequence[NormalizedTargetPosition]) -> float:
    return max(
        (a.distance_to(b) for a, b in itertools.combinations(positions, 2)),
        default=0.0,
    )


def calculate_cep(
    positions: Sequence[NormalizedTargetPosition],
    reference: NormalizedTargetPosition,
    percentile: float,
) -> float:
    """Nearest-rank percentile of distances from ``reference``."""
    if not positions:
        return 0.0
    distances = sorted(p.distance_to(reference) for p in positions)
    index = min(int(len(distances) * percentile), len(distances) - 1)
    return distances[index]


def analyze_directional_bias(mpi: NormalizedTargetPosition) -> DirectionalBias:
    magnitude = mpi.radial_distance
    is_significant = magnitude > BIAS_SIGNIFICANCE_THRESHOLD
    direction = ClockDirection.from_angle(mpi.angle_degrees) if is_significant else None
    return DirectionalBias(
        horizontal_bias=mpi.x,
        vertical_bias=mpi.y,
        magnitude=magnitude,
        is_significant=is_significant,
        primary_direction=direction,
    )


class PatternAnalyzer:
    """Compute a :class:`PatternAnalysis` for one group of shots."""

    minimum_shots = MIN_SHOTS_FOR_ANALYSIS

    def analyze(self, shots: Sequence[AnalysisInput]) -> Optional[PatternAnalysis]:
        """Analyze ``shots``; returns None below the minimum shot count."""
        if len(shots) < self.minimum_shots:
            logger.debug(
                "Pattern analysis skipped: %d shots (minimum %d)",
                len(shots),
                self.minimum_shots,
            )
            return None

        positions = [_position_of(shot) for shot in shots]
        mpi = calculate_mpi(positions)
        analysis = PatternAnalysis(
            mpi=mpi,
            standard_deviation=calculate_standard_deviation(positions, mpi),
            extreme_spread=calculate_extreme_spread(positions),
            cep50=calculate_cep(positions, mpi, 0.50),
            cep90=calculate_cep(positions, mpi, 0.90),
            directional_bias=analyze_directional_bias(mpi),
            shot_count=len(positions),
        )
        logger.debug(
            "Pattern analysis: n=%d mpi=(%.3f, %.3f) std=%.3f",
            analysis.shot_count,
            mpi.x,
            mpi.y,
            analysis.standard_deviation,
        )
        return analysis


# ==========================================
# Session aggregation
# ==========================================
@dataclass(frozen=True)
class AggregatePattern:
    """Pattern statistics combined across sessions (oldest first)."""

    session_analyses: Tuple[PatternAnalysis, ...]
    overall_mpi: NormalizedTargetPosition
    overall_std_dev: float
    consistency_trend: float  # negative = improving
    accuracy_trend: float  # negative = improving
    total_shots: int
    session_count: int
    date_range: Tuple[datetime, datetime]

    @property
    def overall_consistency_rating(self) -> str:
        return _rate(self.overall_std_dev, CONSISTENCY_THRESHOLDS)

    def trend_description(self, *, locale: str = DEFAULT_LOCALE) -> str:
        if self.consistency_trend < -TREND_THRESHOLD and self.accuracy_trend < -TREND_THRESHOLD:
            key = "improving_both"
        elif self.consistency_trend < -TREND_THRESHOLD:
            key = "consistency_improving"
        elif self.accuracy_trend < -TREND_THRESHOLD:
            key = "accuracy_improving"
        elif self.consistency_trend > TREND_THRESHOLD or self.accuracy_trend > TREND_THRESHOLD:
            key = "variance"
        else:
            key = "stable"
        return get_message(f"analysis.trend.{key}", locale=locale)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_mpi": self.overall_mpi.to_dict(),
            "overall_std_dev": self.overall_std_dev,
            "consistency_trend": self.consistency_trend,
            "accuracy_trend": self.accuracy_trend,
            "total_shots": self.total_shots,
            "session_count": self.session_count,
            "date_range": [moment.isoformat() for moment in self.date_range],
            "overall_consistency_rating": self.overall_consistency_rating,
            "trend_description": self.trend_description(),
        }


def linear_trend(values: Sequence[float]) -> float:
    """Least-squares slope of ``values`` against their index."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = sum(range(n))
    sum_y = sum(values)
    sum_xy = sum(index * value for index, value in enumerate(values))
    sum_xx = sum(index * index for index in range(n))
    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


class SessionAggregator:
    """Combine several :class:`PatternAnalysis` snapshots."""

    def aggregate(self, analyses: Sequence[PatternAnalysis]) -> Optional[AggregatePattern]:
        if not analyses:
            return None
        total_shots = sum(analysis.shot_count for analysis in analyses)
        if total_shots <= 0:
            return None

        ordered = sorted(analyses, key=lambda analysis: analysis.analyzed_at)
        weights = [analysis.shot_count / total_shots for analysis in ordered]

        overall_mpi = NormalizedTargetPosition(
            sum(a.mpi.x * w for a, w in zip(ordered, weights)),
            sum(a.mpi.y * w for a, w in zip(ordered, weights)),
        )
        pooled_variance = sum(
            a.standard_deviation * a.standard_deviation * w for a, w in zip(ordered, weights)
        )

        return AggregatePattern(
            session_analyses=tuple(ordered),
            overall_mpi=overall_mpi,
            overall_std_dev=math.sqrt(pooled_variance),
            consistency_trend=linear_trend([a.standard_deviation for a in ordered]),
            accuracy_trend=linear_trend([a.mpi.radial_distance for a in ordered]),
            total_shots=total_shots,
            session_count=len(ordered),
            date_range=(ordered[0].analyzed_at, ordered[-1].analyzed_at),
        )


# ==========================================
# Improvement suggestions
# ==========================================
@dataclass(frozen=True)
class ImprovementSuggestion:
    priority: int
    category: str
    title: str
    description: str
    drills: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "priority": self.priority,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "drills": list(self.drills),
        }


class ImprovementSuggestionGenerator:
    """Derive prioritized coaching suggestions from a pattern analysis."""

    def __init__(self, *, locale: str = DEFAULT_LOCALE) -> None:
        self.locale = locale

    def _suggestion(
        self,
        key: str,
        priority: int,
        category: str,
        description: Optional[str] = None,
    ) -> ImprovementSuggestion:
        base = f"analysis.suggestion.{key}"
        return ImprovementSuggestion(
            priority=priority,
            category=category,
            title=get_message(f"{base}.title", locale=self.locale),
            description=(
                description
                if description is not None
                else get_message(f"{base}.description", locale=self.locale)
            ),
            drills=tuple(get_message_list(f"{base}.drills", locale=self.locale)),
        )

    def generate(self, analysis: PatternAnalysis) -> List[ImprovementSuggestion]:
        suggestions: List[ImprovementSuggestion] = []

        if analysis.accuracy_rating in (RATING_FAIR, RATING_NEEDS_WORK):
            suggestions.append(
                self._suggestion("sight_alignment", PRIORITY_HIGH, CATEGORY_SIGHT_ALIGNMENT)
            )

        consistency = analysis.consistency_rating
        if consistency == RATING_NEEDS_WORK:
            suggestions.append(
                self._suggestion("hold_control", PRIORITY_HIGH, CATEGORY_HOLD_CONTROL)
            )
        elif consistency == RATING_FAIR:
            suggestions.append(
                self._suggestion("improve_consistency", PRIORITY_MEDIUM, CATEGORY_HOLD_CONTROL)
            )

        bias = analysis.directional_bias
        coaching = bias.coaching(locale=self.locale)
        if coaching is not None:
            priority = (
                PRIORITY_HIGH if bias.magnitude > HIGH_PRIORITY_BIAS_MAGNITUDE else PRIORITY_MEDIUM
            )
            suggestions.append(
                self._suggestion(
                    "directional_bias", priority, CATEGORY_TRIGGER_CONTROL, description=coaching
                )
            )

        if analysis.extreme_spread > LARGE_EXTREME_SPREAD:
            suggestions.append(
                self._suggestion("shot_discipline", PRIORITY_MEDIUM, CATEGORY_MENTAL_FOCUS)
            )

        # sorted() is stable: equal priorities keep the order above
        return sorted(suggestions, key=lambda item: item.priority, reverse=True)
