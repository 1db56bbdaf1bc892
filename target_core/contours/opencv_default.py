#!/usr/bin/env python
#
# Target Scan - OpenCV Contour Adapter
# © 2025 Shinichi Morita (shin3tky)
#

"""Default contour adapter built on ``cv2.threshold`` and ``cv2.findContours``."""

from dataclasses import dataclass
import logging
from typing import List, Optional

import cv2
import numpy as np

from ..imaging import GrayscaleBuffer
from .base import DataclassContourAdapter, NormalizedPolyline

logger = logging.getLogger(__name__)


@dataclass
class OpenCVContourConfig:
    """Configuration for :class:`OpenCVContourAdapter`.

    Attributes:
        threshold: Fixed binarization threshold. ``None`` selects Otsu.
        blur_kernel: Odd Gaussian blur kernel size applied before
            thresholding; 0 disables blurring.
        min_points: Polylines with fewer points are dropped.
    """

    threshold: Optional[int] = None
    blur_kernel: int = 0
    min_points: int = 3

    def __post_init__(self) -> None:
        if self.threshold is not None and not 0 <= self.threshold <= 255:
            raise ValueError(f"threshold must be within [0, 255], got {self.threshold}")
        if self.blur_kernel < 0 or (self.blur_kernel and self.blur_kernel % 2 == 0):
            raise ValueError(
                f"blur_kernel must be 0 or a positive odd number, got {self.blur_kernel}"
            )
        if self.min_points < 3:
            raise ValueError(f"min_points must be >= 3, got {self.min_points}")


class OpenCVContourAdapter(DataclassContourAdapter[OpenCVContourConfig]):
    """Find dark blobs by inverse binarization and contour tracing.

    Dark regions (holes) become foreground, every contour is traced with
    ``RETR_LIST`` and ``CHAIN_APPROX_NONE`` so that the full boundary is kept.
    """

    plugin_name: str = "opencv"
    name: str = "OpenCVContourAdapter"
    version: str = "1.0.0"
    ConfigType = OpenCVContourConfig

    def extract(self, grayscale: GrayscaleBuffer) -> List[NormalizedPolyline]:
        pixels = grayscale.pixels
        height, width = pixels.shape
        if width == 0 or height == 0:
            return []

        image = pixels
        if self.config.blur_kernel:
            kernel = (self.config.blur_kernel, self.config.blur_kernel)
            image = cv2.GaussianBlur(image, kernel, 0)

        if self.config.threshold is None:
            _, binary = cv2.threshold(
                image, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU
            )
        else:
            _, binary = cv2.threshold(
                image, self.config.threshold, 255, cv2.THRESH_BINARY_INV
            )

        found = cv2.findContours(binary, cv2.RETR_LIST, cv2.CHAIN_APPROX_NONE)
        # OpenCV 3 returns (image, contours, hierarchy); 4 returns (contours, hierarchy)
        contours = found[-2]

        polylines: List[NormalizedPolyline] = []
        for contour in contours:
            points = contour.reshape(-1, 2).astype(np.float64)
            if len(points) < self.config.min_points:
                continue
            polylines.append(
                [(x / width, 1.0 - y / height) for x, y in points.tolist()]
            )

        logger.debug(
            "OpenCVContourAdapter: %d contours (%d kept) from %dx%d image",
            len(contours),
            len(polylines),
            width,
            height,
        )
        return polylines
