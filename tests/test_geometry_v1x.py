"""
Tests for target_core.geometry (target types, crop geometry, transforms).
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from target_core.exceptions import TargetConfigError  # noqa: E402
from target_core.geometry import (  # noqa: E402
    OlympicPistolTarget,
    TargetCoordinateTransformer,
    TargetCropGeometry,
    TetrathlonTarget,
    available_target_types,
    get_target_type,
)
from target_core.schema import NormalizedTargetPosition  # noqa: E402


def P(x, y):
    return NormalizedTargetPosition(x, y)


class TestTetrathlonTarget(unittest.TestCase):
    def setUp(self):
        self.target = TetrathlonTarget()

    def test_scores_by_elliptical_distance(self):
        self.assertEqual(self.target.score(P(0.0, 0.0)), 10)
        self.assertEqual(self.target.score(P(0.0, 0.3)), 8)
        # 0.5 / 0.77 = 0.649 falls in the 4 ring, not the 6 ring
        self.assertEqual(self.target.score(P(0.5, 0.0)), 4)
        self.assertEqual(self.target.score(P(0.0, 1.0)), 2)
        self.assertEqual(self.target.score(P(0.0, 1.2)), 0)

    def test_pellet_edge_scores_higher(self):
        self.assertEqual(self.target.score(P(0.0, 0.1)), 8)
        self.assertEqual(self.target.score_with_pellet_edge(P(0.0, 0.1)), 10)

    def test_ring_proximity(self):
        self.assertTrue(self.target.is_on_scoring_ring(P(0.0, 0.319)))
        self.assertTrue(self.target.is_on_scoring_ring(P(0.0, 0.33)))
        self.assertFalse(self.target.is_on_scoring_ring(P(0.0, 0.2)))
        self.assertFalse(self.target.is_on_scoring_ring(P(0.0, 0.33), tolerance=0.005))

    def test_edge_and_bounds(self):
        self.assertTrue(self.target.is_within_target(P(0.0, 1.0)))
        self.assertFalse(self.target.is_within_target(P(0.0, 1.01)))
        self.assertTrue(self.target.is_near_edge(P(0.0, 0.97)))
        self.assertFalse(self.target.is_near_edge(P(0.0, 0.5)))

    def test_ring_radius_lookup(self):
        self.assertEqual(self.target.ring_radius(8), 0.319)
        with self.assertRaises(KeyError):
            self.target.ring_radius(9)
        self.assertEqual(len(self.target.ring_radii), 5)


class TestOlympicPistolTarget(unittest.TestCase):
    def setUp(self):
        self.target = OlympicPistolTarget()

    def test_ring_radii_ordered_inside_out(self):
        radii = self.target.ring_radii
        self.assertEqual(radii, sorted(radii))
        self.assertAlmostEqual(radii[-1], 1.0)
        self.assertAlmostEqual(self.target.ring_radius(10), 11.5 / 155.5)

    def test_scores_by_radial_distance(self):
        self.assertEqual(self.target.score(P(0.05, 0.0)), 10)
        self.assertEqual(self.target.score(P(0.0, 0.15)), 9)
        self.assertEqual(self.target.score(P(0.99, 0.0)), 1)
        self.assertEqual(self.target.score(P(1.1, 0.0)), 0)

    def test_valid_scores(self):
        self.assertEqual(self.target.valid_scores, tuple(range(11)))


class TestTargetTypeLookup(unittest.TestCase):
    def test_available(self):
        self.assertEqual(available_target_types(), ["olympic", "tetrathlon"])

    def test_lookup_is_case_insensitive(self):
        self.assertIsInstance(get_target_type(" Olympic "), OlympicPistolTarget)

    def test_unknown_type_raises_config_error(self):
        with self.assertRaises(TargetConfigError) as ctx:
            get_target_type("bogus")
        self.assertEqual(ctx.exception.context["available"], ["olympic", "tetrathlon"])

    def test_to_dict(self):
        data = get_target_type("tetrathlon").to_dict()
        self.assertEqual(data["valid_scores"], [0, 2, 4, 6, 8, 10])
        self.assertEqual(data["scoring_radii"]["10"], 0.092)


class TestTargetCropGeometry(unittest.TestCase):
    def test_rejects_malformed_rect(self):
        with self.assertRaises(ValueError):
            TargetCropGeometry(crop_rect=(0.0, 0.0, 1.0))

    def test_axes_swapped(self):
        geometry = TargetCropGeometry(target_semi_axes=(0.3, 0.4), axes_swapped=True)
        self.assertEqual(geometry.effective_semi_axes, (0.4, 0.3))

    def test_dict_round_trip_keeps_defaults(self):
        geometry = TargetCropGeometry.from_dict({"rotation_degrees": 12})
        self.assertEqual(geometry.rotation_degrees, 12.0)
        self.assertEqual(geometry.target_semi_axes, (0.4, 0.45))
        self.assertEqual(TargetCropGeometry.from_dict(geometry.to_dict()), geometry)


class TestTargetCoordinateTransformer(unittest.TestCase):
    def setUp(self):
        self.transformer = TargetCoordinateTransformer(TargetCropGeometry(), (200, 200))

    def test_center_maps_to_origin(self):
        position = self.transformer.to_target((100.0, 100.0))
        self.assertAlmostEqual(position.x, 0.0)
        self.assertAlmostEqual(position.y, 0.0)

    def test_axis_edges(self):
        right = self.transformer.to_target((180.0, 100.0))
        self.assertAlmostEqual(right.x, 1.0)
        # image y grows downward, target y grows upward
        top = self.transformer.to_target((100.0, 10.0))
        self.assertAlmostEqual(top.y, 1.0)

    def test_round_trip_with_rotation(self):
        geometry = TargetCropGeometry(rotation_degrees=30.0, axes_swapped=True)
        transformer = TargetCoordinateTransformer(geometry, (320, 240))
        for pixel in [(10.0, 20.0), (160.0, 120.0), (300.0, 5.0)]:
            back = transformer.to_pixel(transformer.to_target(pixel))
            self.assertAlmostEqual(back[0], pixel[0])
            self.assertAlmostEqual(back[1], pixel[1])

    def test_radius_conversion(self):
        self.assertAlmostEqual(self.transformer.to_pixel_radius(0.1), 8.5)
        self.assertAlmostEqual(self.transformer.to_normalized_radius(8.5), 0.1)

    def test_rejects_empty_image(self):
        with self.assertRaises(ValueError):
            TargetCoordinateTransformer(TargetCropGeometry(), (0, 100))


if __name__ == "__main__":
    unittest.main()
