#!/usr/bin/env python
#
# Target Scan - Candidate Filtering
# © 2025 Shinichi Morita (shin3tky)
#

"""
Reject contours that cannot be bullet holes.

Checks run in a fixed order and the first failing check wins:

1. effective diameter below the expected range ("Too small")
2. effective diameter above the expected range ("Too large")
3. circularity below the minimum ("Not circular")
4. position on a scoring ring line ("Scoring ring"), when enabled
"""

from dataclasses import dataclass, field
import logging
from typing import Iterable, List, Optional

from .geometry import TargetCoordinateTransformer, TargetType
from .schema import (
    DetectedContour,
    FilteredCandidate,
    HoleDetectionConfig,
    NormalizedTargetPosition,
)

logger = logging.getLogger(__name__)

REJECTION_TOO_SMALL = "Too small"
REJECTION_TOO_LARGE = "Too large"
REJECTION_NOT_CIRCULAR = "Not circular"
REJECTION_SCORING_RING = "Scoring ring"


@dataclass
class FilteringResult:
    accepted: List[FilteredCandidate] = field(default_factory=list)
    rejected: List[FilteredCandidate] = field(default_factory=list)


class CandidateFilter:
    """Apply size, circularity and ring-artifact checks to contours."""

    def __init__(
        self,
        config: HoleDetectionConfig,
        target_type: TargetType,
        transformer: TargetCoordinateTransformer,
    ) -> None:
        self.config = config
        self.target_type = target_type
        self.transformer = transformer

    def rejection_reason(
        self, contour: DetectedContour, position: NormalizedTargetPosition
    ) -> Optional[str]:
        diameter = contour.equivalent_diameter
        if diameter < self.config.min_hole_diameter:
            return REJECTION_TOO_SMALL
        if diameter > self.config.max_hole_diameter:
            return REJECTION_TOO_LARGE
        if contour.circularity < self.config.min_circularity:
            return REJECTION_NOT_CIRCULAR
        if self.config.filter_scoring_ring_artifacts and self.target_type.is_on_scoring_ring(
            position, tolerance=self.config.scoring_ring_tolerance
        ):
            return REJECTION_SCORING_RING
        return None

    def filter(self, contours: Iterable[DetectedContour]) -> FilteringResult:
        result = FilteringResult()
        for contour in contours:
            position = self.transformer.to_target(contour.center_pixel)
            reason = self.rejection_reason(contour, position)
            candidate = FilteredCandidate(
                contour=contour,
                normalized_position=position,
                passed=reason is None,
                rejection_reason=reason,
            )
            if reason is None:
                result.accepted.append(candidate)
            else:
                logger.debug(
                    "Rejected contour at (%.1f, %.1f): %s (d=%.1f, c=%.2f)",
                    contour.center_pixel[0],
                    contour.center_pixel[1],
                    reason,
                    contour.equivalent_diameter,
                    contour.circularity,
                )
                result.rejected.append(candidate)
        return result
