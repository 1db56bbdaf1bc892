#!/usr/bin/env python
#
# Target Scan - Score Projection
# © 2025 Shinichi Morita (shin3tky)
#

"""
Monte Carlo score projection from a fitted shot pattern.

Each iteration simulates a full round: every shot is drawn from a circular
Gaussian centered at the MPI with the pattern's standard deviation (Box-Muller
with both uniforms inside ``(0.001, 0.999)``), scored by the target type and
summed. Results are reproducible in distribution only unless a seeded
``numpy.random.Generator`` is supplied.
"""

from dataclasses import dataclass
import logging
import math
from typing import Any, Dict, Optional, Union

import numpy as np

from .analysis import PatternAnalysis
from .geometry import TargetType, get_target_type
from .i18n import DEFAULT_LOCALE, get_message
from .schema import (
    DEFAULT_PROJECTION_ITERATIONS,
    DEFAULT_PROJECTION_SHOT_COUNT,
    NormalizedTargetPosition,
)

logger = logging.getLogger(__name__)

UNIFORM_LOW = 0.001
UNIFORM_HIGH = 0.999


@dataclass(frozen=True)
class ScoreProjection:
    expected_score: float
    low_estimate: float  # 10th percentile
    median_estimate: float  # 50th percentile
    high_estimate: float  # 90th percentile
    max_possible: float
    shot_count: int

    @property
    def expected_percentage(self) -> float:
        if self.max_possible <= 0:
            return 0.0
        return self.expected_score / self.max_possible * 100.0

    def describe_range(self, *, locale: str = DEFAULT_LOCALE) -> str:
        return get_message(
            "projection.confidence_range",
            locale=locale,
            low=self.low_estimate,
            high=self.high_estimate,
        )

    @property
    def confidence_range_description(self) -> str:
        return self.describe_range()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expected_score": self.expected_score,
            "low_estimate": self.low_estimate,
            "median_estimate": self.median_estimate,
            "high_estimate": self.high_estimate,
            "max_possible": self.max_possible,
            "shot_count": self.shot_count,
            "expected_percentage": self.expected_percentage,
            "confidence_range": self.confidence_range_description,
        }


class ScoreProjector:
    """Project round totals for a shooter's current pattern."""

    def __init__(self, rng: Optional[np.random.Generator] = None) -> None:
        self.rng = rng

    def project(
        self,
        analysis: PatternAnalysis,
        target_type: Union[str, TargetType],
        shot_count: int = DEFAULT_PROJECTION_SHOT_COUNT,
        iterations: int = DEFAULT_PROJECTION_ITERATIONS,
        rng: Optional[np.random.Generator] = None,
    ) -> ScoreProjection:
        """Simulate ``iterations`` rounds of ``shot_count`` shots.

        Args:
            analysis: Fitted pattern (MPI and standard deviation are used).
            target_type: Target type instance or registered name.
            shot_count: Shots per simulated round.
            iterations: Number of simulated rounds.
            rng: Random generator; falls back to the projector's generator,
                then to a fresh ``numpy.random.default_rng()``.

        Raises:
            ValueError: If ``shot_count`` is negative or ``iterations`` < 1.
        """
        if shot_count < 0:
            raise ValueError(f"shot_count must be >= 0, got {shot_count}")
        if iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {iterations}")
        if isinstance(target_type, str):
            target_type = get_target_type(target_type)
        generator = rng or self.rng or np.random.default_rng()

        mpi = analysis.mpi
        std_dev = analysis.standard_deviation
        totals = []
        for _ in range(iterations):
            u1 = generator.uniform(UNIFORM_LOW, UNIFORM_HIGH, size=shot_count)
            u2 = generator.uniform(UNIFORM_LOW, UNIFORM_HIGH, size=shot_count)
            radii = np.sqrt(-2.0 * np.log(u1)) * std_dev
            thetas = 2.0 * math.pi * u2
            xs = mpi.x + radii * np.cos(thetas)
            ys = mpi.y + radii * np.sin(thetas)
            totals.append(
                sum(
                    target_type.score(NormalizedTargetPosition(float(x), float(y)))
                    for x, y in zip(xs, ys)
                )
            )

        totals.sort()
        projection = ScoreProjection(
            expected_score=sum(totals) / iterations,
            low_estimate=float(totals[int(iterations * 0.10)]),
            median_estimate=float(totals[int(iterations * 0.50)]),
            high_estimate=float(totals[int(iterations * 0.90)]),
            max_possible=float(shot_count * target_type.max_score),
            shot_count=shot_count,
        )
        logger.debug(
            "Score projection (%s, %d shots x %d): expected %.1f, p10 %.0f, p90 %.0f",
            target_type.name,
            shot_count,
            iterations,
            projection.expected_score,
            projection.low_estimate,
            projection.high_estimate,
        )
        return projection
