#!/usr/bin/env python
#
# Target Scan - Image I/O
# © 2025 Shinichi Morita (shin3tky)
#

"""
Image loading and grayscale conversion.
"""

from dataclasses import dataclass
import logging
import os
from typing import Any, Tuple, Union

import cv2
import numpy as np

from .exceptions import TargetImageError, TargetLoadError

# Module-level logger
logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff", ".webp")


@dataclass(frozen=True, eq=False)
class GrayscaleBuffer:
    """Immutable 8-bit grayscale image.

    ``pixels`` is a 2-D ``uint8`` array indexed ``[y, x]`` and is marked
    read-only on construction.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        pixels = self.pixels
        if pixels.ndim != 2:
            raise TargetImageError(
                "Grayscale buffer must be two-dimensional",
                shape=pixels.shape,
                dtype=str(pixels.dtype),
            )
        if pixels.dtype != np.uint8:
            pixels = pixels.astype(np.uint8)
        if pixels.flags.writeable:
            pixels = pixels.copy()
            pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def flat(self) -> np.ndarray:
        return self.pixels.reshape(-1)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def pixel_at(self, x: int, y: int) -> int:
        return int(self.pixels[y, x])


class GrayscaleConverter:
    """Convert image arrays to :class:`GrayscaleBuffer`.

    Accepted inputs:
        - ``GrayscaleBuffer`` (returned unchanged)
        - 2-D arrays (treated as grayscale)
        - 3-channel BGR and 4-channel BGRA arrays (OpenCV channel order)
        - single-channel ``(h, w, 1)`` arrays

    Floating point data is assumed to be in ``[0, 1]`` and scaled to 8 bits.
    16-bit integer data is shifted down to 8 bits.
    """

    def convert(self, image: Union[GrayscaleBuffer, np.ndarray, Any]) -> GrayscaleBuffer:
        if isinstance(image, GrayscaleBuffer):
            return image
        if not isinstance(image, np.ndarray):
            raise TargetImageError(
                f"Unsupported image type: {type(image).__name__}",
            )

        array = self._to_uint8(image)
        if array.ndim == 2:
            gray = array
        elif array.ndim == 3 and array.shape[2] == 1:
            gray = array[:, :, 0]
        elif array.ndim == 3 and array.shape[2] == 3:
            gray = cv2.cvtColor(array, cv2.COLOR_BGR2GRAY)
        elif array.ndim == 3 and array.shape[2] == 4:
            gray = cv2.cvtColor(array, cv2.COLOR_BGRA2GRAY)
        else:
            raise TargetImageError(
                "Unsupported image shape",
                shape=image.shape,
                dtype=str(image.dtype),
            )
        return GrayscaleBuffer(np.ascontiguousarray(gray))

    @staticmethod
    def _to_uint8(array: np.ndarray) -> np.ndarray:
        if array.dtype == np.uint8:
            return array
        if np.issubdtype(array.dtype, np.floating):
            scaled = np.clip(np.nan_to_num(array), 0.0, 1.0) * 255.0
            return np.round(scaled).astype(np.uint8)
        if array.dtype == np.uint16:
            return (array >> 8).astype(np.uint8)
        if np.issubdtype(array.dtype, np.integer) or array.dtype == np.bool_:
            return np.clip(array, 0, 255).astype(np.uint8)
        raise TargetImageError(
            "Unsupported image dtype",
            shape=array.shape,
            dtype=str(array.dtype),
        )


_DEFAULT_CONVERTER = GrayscaleConverter()


def to_grayscale(image: Union[GrayscaleBuffer, np.ndarray]) -> GrayscaleBuffer:
    """Convert ``image`` with the shared converter."""
    return _DEFAULT_CONVERTER.convert(image)


def load_image(filepath: str) -> np.ndarray:
    """
    Load an image file as a BGR array.

    Args:
        filepath: Path to the image file

    Returns:
        Decoded image as numpy array (uint8, BGR or grayscale)

    Raises:
        TargetLoadError: If the file does not exist, is not readable, or
            cannot be decoded.
    """
    logger.info("Loading image file: %s", filepath)

    if not os.path.exists(filepath):
        logger.error(
            "File not found: %s",
            filepath,
            extra={"error_category": "file_not_found", "filepath": filepath},
        )
        raise TargetLoadError(
            "File not found",
            filepath=filepath,
            context={"error_category": "file_not_found"},
        )

    if not os.access(filepath, os.R_OK):
        logger.error(
            "Permission denied: %s",
            filepath,
            extra={"error_category": "permission_denied", "filepath": filepath},
        )
        raise TargetLoadError(
            "Permission denied: cannot read file",
            filepath=filepath,
            context={"error_category": "permission_denied"},
        )

    try:
        image = cv2.imread(filepath, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        logger.error(
            "OpenCV failed to read file: %s - %s",
            filepath,
            e,
            extra={"error_category": "decode_error", "filepath": filepath},
        )
        raise TargetLoadError(
            "Failed to decode image file",
            filepath=filepath,
            original_error=e,
            context={"error_category": "decode_error"},
        ) from e

    if image is None:
        _, ext = os.path.splitext(filepath)
        logger.error(
            "Unsupported or corrupted image '%s': %s",
            ext or "unknown",
            filepath,
            extra={"error_category": "decode_error", "filepath": filepath},
        )
        raise TargetLoadError(
            "Failed to decode image file",
            filepath=filepath,
            context={
                "error_category": "decode_error",
                "detected_format": ext.lower() if ext else None,
                "supported_formats": list(SUPPORTED_IMAGE_EXTENSIONS),
            },
        )

    logger.debug(
        "Decoded image: %s (%dx%d)", filepath, image.shape[1], image.shape[0]
    )
    return image
