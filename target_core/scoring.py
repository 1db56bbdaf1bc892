#!/usr/bin/env python
#
# Target Scan - Confidence Scoring
# © 2025 Shinichi Morita (shin3tky)
#

"""
Confidence scoring for filtered hole candidates.

Confidence starts at 1.0 and is multiplied by:

- circularity factor ``min(1, circularity / 0.8)``
- size factor ``max(0.5, 1 - |d - mid| / mid)`` against the expected range
- darkness factor ``min(1, max(0.3, z / 3))`` from the local background
  z-score, when local background scoring is enabled
"""

import logging
import math
from typing import Iterable, List, Optional

import numpy as np

from .background import LocalBackgroundEstimator
from .geometry import TargetType
from .imaging import GrayscaleBuffer
from .schema import (
    DARKNESS_Z_SCORE_SCALE,
    IDEAL_CIRCULARITY,
    MIN_DARKNESS_FACTOR,
    MIN_SIZE_FACTOR,
    DetectedHoleCandidate,
    FilteredCandidate,
    HoleDetectionConfig,
    HoleFeatures,
)

logger = logging.getLogger(__name__)


def circularity_factor(circularity: float) -> float:
    return min(1.0, circularity / IDEAL_CIRCULARITY)


def size_factor(diameter: float, midpoint: float) -> float:
    if midpoint <= 0:
        return MIN_SIZE_FACTOR
    return max(MIN_SIZE_FACTOR, 1.0 - abs(diameter - midpoint) / midpoint)


def darkness_factor(z_score: float) -> float:
    return min(1.0, max(MIN_DARKNESS_FACTOR, z_score / DARKNESS_Z_SCORE_SCALE))


class ConfidenceScorer:
    """Turn filtered candidates into ranked :class:`DetectedHoleCandidate` objects."""

    def __init__(
        self,
        config: HoleDetectionConfig,
        target_type: TargetType,
        background_estimator: Optional[LocalBackgroundEstimator] = None,
    ) -> None:
        self.config = config
        self.target_type = target_type
        self.background_estimator = background_estimator or LocalBackgroundEstimator()

    def score_candidate(
        self,
        candidate: FilteredCandidate,
        grayscale: GrayscaleBuffer,
        edge_map: Optional[np.ndarray] = None,
    ) -> DetectedHoleCandidate:
        contour = candidate.contour
        diameter = candidate.diameter
        cx, cy = contour.center_pixel
        px = min(max(int(cx), 0), grayscale.width - 1)
        py = min(max(int(cy), 0), grayscale.height - 1)
        center_intensity = float(grayscale.pixel_at(px, py))

        confidence = 1.0
        confidence *= circularity_factor(contour.circularity)
        confidence *= size_factor(diameter, self.config.diameter_midpoint)

        z_score: Optional[float] = None
        if self.config.use_local_background:
            radius = math.sqrt(contour.area / math.pi)
            background = self.background_estimator.estimate(
                contour.center_pixel, grayscale, int(radius), int(2.0 * radius)
            )
            z_score = background.z_score(center_intensity)
            confidence *= darkness_factor(z_score)

        edge_strength: Optional[float] = None
        if edge_map is not None:
            edge_strength = float(edge_map[py, px])

        features = HoleFeatures(
            circularity=contour.circularity,
            aspect_ratio=contour.aspect_ratio,
            mean_intensity=center_intensity,
            edge_strength=edge_strength,
            darkness_z_score=z_score,
            area=contour.area,
        )
        return DetectedHoleCandidate(
            pixel_position=(cx, cy),
            target_position=candidate.normalized_position,
            radius_pixels=diameter / 2.0,
            confidence=confidence,
            features=features,
            score=self.target_type.score(candidate.normalized_position),
        )

    def score(
        self,
        candidates: Iterable[FilteredCandidate],
        grayscale: GrayscaleBuffer,
        edge_map: Optional[np.ndarray] = None,
    ) -> List[DetectedHoleCandidate]:
        """Score and rank candidates by confidence (stable, descending)."""
        scored = [
            self.score_candidate(candidate, grayscale, edge_map)
            for candidate in candidates
        ]
        # sorted() is stable, so equal confidences keep their input order
        ranked = sorted(scored, key=lambda item: item.confidence, reverse=True)
        return ranked[: self.config.max_candidates]
