#!/usr/bin/env python
#
# Target Scan - Target Geometry
# © 2025 Shinichi Morita (shin3tky)
#

"""
Target types, crop geometry, and pixel/target coordinate transforms.

Two target types are supported:

- ``tetrathlon``: elliptical card scored 10/8/6/4/2 by elliptical distance.
- ``olympic``: circular 10m air pistol card scored 10..1 by radial distance.
"""

from dataclasses import dataclass
import logging
import math
from typing import Any, Dict, List, Sequence, Tuple

from .exceptions import TargetConfigError
from .schema import NormalizedTargetPosition

logger = logging.getLogger(__name__)

DEFAULT_RING_TOLERANCE = 0.02
NEAR_EDGE_DISTANCE = 0.95

TETRATHLON_ASPECT_RATIO = 0.77
TETRATHLON_PELLET_RADIUS = 0.035

PELLET_DIAMETER_MM = 4.5

# Ring diameters of the 10m air pistol target (mm)
OLYMPIC_TARGET_DIAMETER_MM = 155.5
OLYMPIC_RING_DIAMETERS_MM: Dict[int, float] = {
    10: 11.5,
    9: 27.5,
    8: 43.5,
    7: 59.5,
    6: 75.5,
    5: 91.5,
    4: 107.5,
    3: 123.5,
    2: 139.5,
    1: 155.5,
}


class TargetType:
    """Scoring geometry of a paper target.

    Subclasses provide ``scoring_radii`` as ``(score, outer_radius)`` pairs
    ordered from the innermost ring outward.
    """

    name: str = ""
    display_name: str = ""
    aspect_ratio: float = 1.0
    max_score: int = 10
    valid_scores: Tuple[int, ...] = ()
    scoring_radii: Tuple[Tuple[int, float], ...] = ()
    pellet_radius: float = 0.0

    def distance(self, position: NormalizedTargetPosition) -> float:
        """Distance used for scoring (radial unless overridden)."""
        return position.radial_distance

    def score_for_distance(self, distance: float) -> int:
        for score, radius in self.scoring_radii:
            if distance <= radius:
                return score
        return 0

    def score(self, position: NormalizedTargetPosition) -> int:
        return self.score_for_distance(self.distance(position))

    def score_with_pellet_edge(self, position: NormalizedTargetPosition) -> int:
        """Score using the pellet edge closest to the center."""
        edge_distance = max(0.0, self.distance(position) - self.pellet_radius)
        return self.score_for_distance(edge_distance)

    def is_within_target(self, position: NormalizedTargetPosition) -> bool:
        return self.distance(position) <= 1.0

    def is_near_edge(self, position: NormalizedTargetPosition) -> bool:
        distance = self.distance(position)
        return NEAR_EDGE_DISTANCE < distance <= 1.0

    def is_on_scoring_ring(
        self,
        position: NormalizedTargetPosition,
        tolerance: float = DEFAULT_RING_TOLERANCE,
    ) -> bool:
        """True when ``position`` lies within ``tolerance`` of any ring line."""
        distance = self.distance(position)
        return any(abs(distance - radius) < tolerance for _, radius in self.scoring_radii)

    def ring_radius(self, score: int) -> float:
        for ring_score, radius in self.scoring_radii:
            if ring_score == score:
                return radius
        raise KeyError(f"{self.name} target has no ring for score {score}")

    @property
    def ring_radii(self) -> List[float]:
        return [radius for _, radius in self.scoring_radii]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "aspect_ratio": self.aspect_ratio,
            "max_score": self.max_score,
            "valid_scores": list(self.valid_scores),
            "scoring_radii": {str(score): radius for score, radius in self.scoring_radii},
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class TetrathlonTarget(TargetType):
    """Elliptical tetrathlon card; width/height = 0.77."""

    name = "tetrathlon"
    display_name = "Tetrathlon (Elliptical)"
    aspect_ratio = TETRATHLON_ASPECT_RATIO
    max_score = 10
    valid_scores = (0, 2, 4, 6, 8, 10)
    scoring_radii = (
        (10, 0.092),
        (8, 0.319),
        (6, 0.546),
        (4, 0.773),
        (2, 1.0),
    )
    pellet_radius = TETRATHLON_PELLET_RADIUS

    def distance(self, position: NormalizedTargetPosition) -> float:
        return position.elliptical_distance(self.aspect_ratio)


class OlympicPistolTarget(TargetType):
    """Circular 10m air pistol card."""

    name = "olympic"
    display_name = "Olympic 10m Air Pistol"
    aspect_ratio = 1.0
    max_score = 10
    valid_scores = tuple(range(0, 11))
    scoring_radii = tuple(
        (score, diameter / OLYMPIC_TARGET_DIAMETER_MM)
        for score, diameter in sorted(
            OLYMPIC_RING_DIAMETERS_MM.items(), key=lambda item: item[1]
        )
    )
    pellet_radius = PELLET_DIAMETER_MM / OLYMPIC_TARGET_DIAMETER_MM


TARGET_TYPES: Dict[str, TargetType] = {
    TetrathlonTarget.name: TetrathlonTarget(),
    OlympicPistolTarget.name: OlympicPistolTarget(),
}


def available_target_types() -> List[str]:
    return sorted(TARGET_TYPES)


def get_target_type(name: str) -> TargetType:
    """Look up a target type by name (case-insensitive)."""
    key = (name or "").strip().lower()
    target = TARGET_TYPES.get(key)
    if target is None:
        raise TargetConfigError(
            f"Unknown target type: {name!r}",
            config_key="target_type",
            context={"available": available_target_types()},
        )
    return target


# ==========================================
# Crop Geometry
# ==========================================
@dataclass
class TargetCropGeometry:
    """Where the target sits inside the (already cropped) image.

    All values are normalized to the crop. The target center is the crop
    midpoint ``(0.5, 0.5)``.
    """

    crop_rect: Tuple[float, float, float, float] = (0.1, 0.1, 0.8, 0.8)
    target_semi_axes: Tuple[float, float] = (0.4, 0.45)
    rotation_degrees: float = 0.0
    axes_swapped: bool = False
    physical_aspect_ratio: float = TETRATHLON_ASPECT_RATIO

    def __post_init__(self) -> None:
        self.crop_rect = tuple(float(v) for v in self.crop_rect)
        self.target_semi_axes = tuple(float(v) for v in self.target_semi_axes)
        if len(self.crop_rect) != 4:
            raise ValueError("crop_rect must contain x, y, width, height")
        if len(self.target_semi_axes) != 2:
            raise ValueError("target_semi_axes must contain width and height")

    @property
    def target_center_in_crop(self) -> Tuple[float, float]:
        return (0.5, 0.5)

    @property
    def effective_semi_axes(self) -> Tuple[float, float]:
        """Semi-axes after applying ``axes_swapped``."""
        width, height = self.target_semi_axes
        return (height, width) if self.axes_swapped else (width, height)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "crop_rect": list(self.crop_rect),
            "target_semi_axes": list(self.target_semi_axes),
            "rotation_degrees": self.rotation_degrees,
            "axes_swapped": self.axes_swapped,
            "physical_aspect_ratio": self.physical_aspect_ratio,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TargetCropGeometry":
        defaults = cls()
        return cls(
            crop_rect=tuple(data.get("crop_rect", defaults.crop_rect)),
            target_semi_axes=tuple(
                data.get("target_semi_axes", defaults.target_semi_axes)
            ),
            rotation_degrees=float(
                data.get("rotation_degrees", defaults.rotation_degrees)
            ),
            axes_swapped=bool(data.get("axes_swapped", defaults.axes_swapped)),
            physical_aspect_ratio=float(
                data.get("physical_aspect_ratio", defaults.physical_aspect_ratio)
            ),
        )


def _rotate(x: float, y: float, degrees: float) -> Tuple[float, float]:
    radians = math.radians(degrees)
    cos_r = math.cos(radians)
    sin_r = math.sin(radians)
    return x * cos_r - y * sin_r, x * sin_r + y * cos_r


class TargetCoordinateTransformer:
    """Map between crop pixels and normalized target coordinates."""

    def __init__(self, geometry: TargetCropGeometry, image_size: Sequence[float]):
        width, height = image_size
        if width <= 0 or height <= 0:
            raise ValueError(f"image size must be positive, got {width}x{height}")
        self.geometry = geometry
        self.width = float(width)
        self.height = float(height)

    def to_target(self, pixel: Sequence[float]) -> NormalizedTargetPosition:
        """Convert a pixel position ``(x, y)`` to target coordinates."""
        center_x, center_y = self.geometry.target_center_in_crop
        x = pixel[0] / self.width - center_x
        y = center_y - pixel[1] / self.height  # image y grows downward

        if self.geometry.rotation_degrees != 0:
            x, y = _rotate(x, y, -self.geometry.rotation_degrees)

        semi_x, semi_y = self.geometry.effective_semi_axes
        return NormalizedTargetPosition(x / semi_x, y / semi_y)

    def to_pixel(self, position: NormalizedTargetPosition) -> Tuple[float, float]:
        """Inverse of :meth:`to_target`."""
        semi_x, semi_y = self.geometry.effective_semi_axes
        x = position.x * semi_x
        y = position.y * semi_y

        if self.geometry.rotation_degrees != 0:
            x, y = _rotate(x, y, self.geometry.rotation_degrees)

        center_x, center_y = self.geometry.target_center_in_crop
        return ((x + center_x) * self.width, (center_y - y) * self.height)

    def _pixel_scale(self) -> float:
        semi_x, semi_y = self.geometry.target_semi_axes
        return ((semi_x + semi_y) / 2.0) * ((self.width + self.height) / 2.0)

    def to_pixel_radius(self, normalized_radius: float) -> float:
        return normalized_radius * self._pixel_scale()

    def to_normalized_radius(self, pixel_radius: float) -> float:
        return pixel_radius / self._pixel_scale()
