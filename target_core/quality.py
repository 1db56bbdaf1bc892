#!/usr/bin/env python
#
# Target Scan - Image Quality Assessment
# © 2025 Shinichi Morita (shin3tky)
#

"""
Image quality gate run before hole detection.

Four independent metrics are computed from the grayscale buffer:

- sharpness: variance of the 4-neighbor Laplacian response
- contrast: standard deviation of intensities
- brightness: mean intensity
- noise: median of local 5x5 block variances on a sparse grid

Exposure is classified from brightness once the metrics are joined.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
import math
from typing import Any, Dict, List, Optional, Union

import cv2
import numpy as np

from .exceptions import TargetError
from .i18n import DEFAULT_LOCALE, get_message
from .imaging import GrayscaleBuffer, GrayscaleConverter
from .schema import (
    CONTRAST_NORMALIZER,
    EXPOSURE_GOOD,
    EXPOSURE_OVEREXPOSED,
    EXPOSURE_UNDEREXPOSED,
    HIGH_NOISE_LEVEL,
    MIN_CONTRAST_FOR_DETECTION,
    MIN_SHARPNESS_FOR_DETECTION,
    NOISE_BLOCK_RADIUS,
    NOISE_BORDER,
    NOISE_GRID_DIVISIONS,
    NOISE_NORMALIZER,
    OVEREXPOSED_BRIGHTNESS,
    QUALITY_ACCEPTABLE_SCORE,
    QUALITY_GOOD_SCORE,
    QUALITY_LEVEL_ACCEPTABLE,
    QUALITY_LEVEL_GOOD,
    QUALITY_LEVEL_POOR,
    SHARPNESS_NORMALIZER,
    UNDEREXPOSED_BRIGHTNESS,
)
from .utils import clamp

logger = logging.getLogger(__name__)

DEFAULT_NOISE_LEVEL = 0.3
MIN_NOISE_DIMENSION = 10


@dataclass(frozen=True)
class QualityAssessment:
    """Quality metrics for one image.

    All numeric fields lie in ``[0, 1]``; ``exposure`` is one of
    ``EXPOSURE_LEVELS``.
    """

    sharpness: float
    contrast: float
    exposure: str
    noise_level: float
    brightness: float

    @classmethod
    def default(cls) -> "QualityAssessment":
        """Neutral assessment used when an image cannot be measured."""
        return cls(
            sharpness=0.5,
            contrast=0.5,
            exposure=EXPOSURE_GOOD,
            noise_level=DEFAULT_NOISE_LEVEL,
            brightness=0.5,
        )

    @property
    def is_acceptable_for_detection(self) -> bool:
        return (
            self.sharpness > MIN_SHARPNESS_FOR_DETECTION
            and self.contrast > MIN_CONTRAST_FOR_DETECTION
            and self.exposure == EXPOSURE_GOOD
        )

    @property
    def overall_score(self) -> float:
        """Weighted display score; independent of the detection gate."""
        exposure_score = 1.0 if self.exposure == EXPOSURE_GOOD else 0.3
        return (
            self.sharpness * 0.35
            + self.contrast * 0.25
            + exposure_score * 0.25
            + (1.0 - self.noise_level) * 0.15
        )

    @property
    def quality_level(self) -> str:
        score = self.overall_score
        if score >= QUALITY_GOOD_SCORE:
            return QUALITY_LEVEL_GOOD
        if score >= QUALITY_ACCEPTABLE_SCORE:
            return QUALITY_LEVEL_ACCEPTABLE
        return QUALITY_LEVEL_POOR

    def guidance_lines(self, *, locale: str = DEFAULT_LOCALE) -> List[str]:
        lines: List[str] = []
        if self.sharpness < MIN_SHARPNESS_FOR_DETECTION:
            lines.append(get_message("quality.guidance.blurry", locale=locale))
        if self.contrast < MIN_CONTRAST_FOR_DETECTION:
            lines.append(get_message("quality.guidance.low_contrast", locale=locale))
        if self.exposure == EXPOSURE_UNDEREXPOSED:
            lines.append(get_message("quality.guidance.too_dark", locale=locale))
        elif self.exposure == EXPOSURE_OVEREXPOSED:
            lines.append(get_message("quality.guidance.too_bright", locale=locale))
        if self.noise_level > HIGH_NOISE_LEVEL:
            lines.append(get_message("quality.guidance.noisy", locale=locale))
        return lines

    def guidance(self, *, locale: str = DEFAULT_LOCALE) -> Optional[str]:
        """Newline-joined remediation hints, or None when every metric passes."""
        lines = self.guidance_lines(locale=locale)
        return "\n".join(lines) if lines else None

    @property
    def user_guidance(self) -> Optional[str]:
        return self.guidance()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sharpness": self.sharpness,
            "contrast": self.contrast,
            "exposure": self.exposure,
            "noise_level": self.noise_level,
            "brightness": self.brightness,
            "overall_score": self.overall_score,
            "quality_level": self.quality_level,
            "is_acceptable_for_detection": self.is_acceptable_for_detection,
        }


def classify_exposure(brightness: float) -> str:
    if brightness < UNDEREXPOSED_BRIGHTNESS:
        return EXPOSURE_UNDEREXPOSED
    if brightness > OVEREXPOSED_BRIGHTNESS:
        return EXPOSURE_OVEREXPOSED
    return EXPOSURE_GOOD


def calculate_sharpness(pixels: np.ndarray) -> float:
    """Variance of the Laplacian ``[0,1,0;1,-4,1;0,1,0]`` over interior pixels."""
    height, width = pixels.shape
    if width <= 2 or height <= 2:
        return 0.0
    laplacian = cv2.Laplacian(pixels.astype(np.float64), cv2.CV_64F, ksize=1)
    return clamp(float(laplacian[1:-1, 1:-1].var()) / SHARPNESS_NORMALIZER)


def calculate_contrast(pixels: np.ndarray) -> float:
    if pixels.size == 0:
        return 0.0
    return clamp(float(pixels.astype(np.float64).std()) / CONTRAST_NORMALIZER)


def calculate_brightness(pixels: np.ndarray) -> float:
    if pixels.size == 0:
        return 0.0
    return clamp(float(pixels.astype(np.float64).mean()) / 255.0)


def calculate_noise(pixels: np.ndarray) -> float:
    """Median local block variance on a sparse grid, as a normalized level."""
    height, width = pixels.shape
    if width <= MIN_NOISE_DIMENSION or height <= MIN_NOISE_DIMENSION:
        return DEFAULT_NOISE_LEVEL

    step = max(1, min(width, height) // NOISE_GRID_DIVISIONS)
    r = NOISE_BLOCK_RADIUS
    p = pixels.astype(np.float64)
    variances: List[float] = []
    for y in range(NOISE_BORDER, height - NOISE_BORDER, step):
        for x in range(NOISE_BORDER, width - NOISE_BORDER, step):
            block = p[y - r : y + r + 1, x - r : x + r + 1]
            mean = block.mean()
            variances.append(float((block * block).mean() - mean * mean))

    if not variances:
        return DEFAULT_NOISE_LEVEL
    variances.sort()
    median = max(0.0, variances[len(variances) // 2])
    return clamp(math.sqrt(median) / NOISE_NORMALIZER)


class QualityAssessor:
    """Compute a :class:`QualityAssessment` for an image.

    Args:
        parallel: Run the four metrics on a thread pool.
        converter: Grayscale converter used for non-buffer inputs.
    """

    def __init__(
        self,
        *,
        parallel: bool = True,
        converter: Optional[GrayscaleConverter] = None,
    ) -> None:
        self.parallel = parallel
        self.converter = converter or GrayscaleConverter()

    def assess(self, image: Union[GrayscaleBuffer, np.ndarray]) -> QualityAssessment:
        """Assess ``image``; unmeasurable images yield the neutral default."""
        try:
            gray = self.converter.convert(image)
        except TargetError as exc:
            logger.warning("Quality assessment degraded to default: %s", exc)
            return QualityAssessment.default()

        if gray.is_empty:
            logger.warning("Quality assessment degraded to default: empty image")
            return QualityAssessment.default()

        pixels = gray.pixels
        if self.parallel:
            with ThreadPoolExecutor(max_workers=4) as executor:
                sharpness_future = executor.submit(calculate_sharpness, pixels)
                contrast_future = executor.submit(calculate_contrast, pixels)
                brightness_future = executor.submit(calculate_brightness, pixels)
                noise_future = executor.submit(calculate_noise, pixels)
                sharpness = sharpness_future.result()
                contrast = contrast_future.result()
                brightness = brightness_future.result()
                noise = noise_future.result()
        else:
            sharpness = calculate_sharpness(pixels)
            contrast = calculate_contrast(pixels)
            brightness = calculate_brightness(pixels)
            noise = calculate_noise(pixels)

        assessment = QualityAssessment(
            sharpness=sharpness,
            contrast=contrast,
            exposure=classify_exposure(brightness),
            noise_level=noise,
            brightness=brightness,
        )
        logger.debug(
            "Quality: sharpness=%.3f contrast=%.3f brightness=%.3f noise=%.3f exposure=%s",
            sharpness,
            contrast,
            brightness,
            noise,
            assessment.exposure,
        )
        return assessment
