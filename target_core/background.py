#!/usr/bin/env python
#
# Target Scan - Local Background Estimation
# © 2025 Shinichi Morita (shin3tky)
#

"""
Annulus sampling around a point to estimate local background intensity.

The annulus excludes the candidate hole interior so that the hole's own
darkness does not bias the estimate.
"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, Sequence, Union

import numpy as np

from .imaging import GrayscaleBuffer
from .schema import (
    BACKGROUND_FALLBACK_MEAN,
    BACKGROUND_FALLBACK_STD,
    DEFAULT_DARKNESS_SIGMA,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalBackground:
    mean_intensity: float
    std_dev: float

    @classmethod
    def fallback(cls) -> "LocalBackground":
        return cls(BACKGROUND_FALLBACK_MEAN, BACKGROUND_FALLBACK_STD)

    def z_score(self, intensity: float) -> float:
        """How many standard deviations ``intensity`` is darker than the mean."""
        if self.std_dev == 0:
            return 0.0
        return (self.mean_intensity - intensity) / self.std_dev

    def is_dark_enough(
        self, intensity: float, sigma_threshold: float = DEFAULT_DARKNESS_SIGMA
    ) -> bool:
        """True when ``intensity`` is strictly below ``mean - std * sigma_threshold``."""
        return intensity < self.mean_intensity - self.std_dev * sigma_threshold

    def to_dict(self) -> Dict[str, Any]:
        return {"mean_intensity": self.mean_intensity, "std_dev": self.std_dev}


class LocalBackgroundEstimator:
    """Sample an annulus of pixels around a position."""

    def estimate(
        self,
        position: Sequence[float],
        grayscale: Union[GrayscaleBuffer, np.ndarray],
        inner_radius: int,
        outer_radius: int,
    ) -> LocalBackground:
        """Estimate the background around ``position`` (pixel ``(x, y)``).

        Pixels whose rounded distance from the center lies in
        ``[inner_radius, outer_radius]`` and inside the image are sampled.
        Returns the fallback background when nothing is sampled.
        """
        pixels = grayscale.pixels if isinstance(grayscale, GrayscaleBuffer) else grayscale
        height, width = pixels.shape[:2]
        cx, cy = int(position[0]), int(position[1])
        outer = int(outer_radius)
        inner = int(inner_radius)

        x0, x1 = max(0, cx - outer), min(width - 1, cx + outer)
        y0, y1 = max(0, cy - outer), min(height - 1, cy + outer)
        if outer < 0 or x0 > x1 or y0 > y1:
            return LocalBackground.fallback()

        ys, xs = np.mgrid[y0 : y1 + 1, x0 : x1 + 1]
        # np.rint rounds half to even; match round-half-away-from-zero
        distance = np.floor(np.hypot(xs - cx, ys - cy) + 0.5)
        mask = (distance >= inner) & (distance <= outer)
        if not mask.any():
            logger.debug(
                "No annulus samples at (%d, %d) r=[%d, %d]", cx, cy, inner, outer
            )
            return LocalBackground.fallback()

        samples = pixels[y0 : y1 + 1, x0 : x1 + 1][mask].astype(np.float64)
        return LocalBackground(
            mean_intensity=float(samples.mean()),
            std_dev=float(samples.std()),
        )
