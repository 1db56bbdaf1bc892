"""
Tests for target_core.analysis (pattern analysis, aggregation, suggestions).
"""

from datetime import datetime, timedelta, timezone
import math
import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from target_core.analysis import (  # noqa: E402
    CATEGORY_HOLD_CONTROL,
    CATEGORY_MENTAL_FOCUS,
    CATEGORY_SIGHT_ALIGNMENT,
    CATEGORY_TRIGGER_CONTROL,
    PRIORITY_HIGH,
    PRIORITY_MEDIUM,
    RATING_EXCELLENT,
    RATING_FAIR,
    RATING_GOOD,
    RATING_NEEDS_WORK,
    ClockDirection,
    DirectionalBias,
    ImprovementSuggestionGenerator,
    PatternAnalysis,
    PatternAnalyzer,
    SessionAggregator,
    analyze_directional_bias,
    calculate_cep,
    calculate_extreme_spread,
    calculate_standard_deviation,
    linear_trend,
    rating_label,
)
from target_core.schema import NormalizedTargetPosition, Shot  # noqa: E402

P = NormalizedTargetPosition
T0 = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_analysis(mpi, std, spread=0.1, shots=10, at=T0, version=1):
    return PatternAnalysis(
        mpi=mpi,
        standard_deviation=std,
        extreme_spread=spread,
        cep50=std,
        cep90=std * 1.5,
        directional_bias=analyze_directional_bias(mpi),
        shot_count=shots,
        analyzed_at=at,
        algorithm_version=version,
    )


class TestPatternAnalyzer(unittest.TestCase):
    def setUp(self):
        self.analyzer = PatternAnalyzer()

    def test_requires_three_shots(self):
        self.assertIsNone(self.analyzer.analyze([]))
        self.assertIsNone(self.analyzer.analyze([P(0, 0), P(0.1, 0.1)]))
        self.assertIsNotNone(self.analyzer.analyze([P(0, 0)] * 3))

    def test_square_group(self):
        shots = [Shot(P(0, 0), 10), Shot(P(1, 0), 2), Shot(P(0, 1), 2), Shot(P(1, 1), 0)]
        analysis = self.analyzer.analyze(shots)

        self.assertAlmostEqual(analysis.mpi.x, 0.5)
        self.assertAlmostEqual(analysis.mpi.y, 0.5)
        self.assertAlmostEqual(analysis.standard_deviation, math.sqrt(0.5))
        self.assertAlmostEqual(analysis.extreme_spread, math.sqrt(2.0))
        self.assertAlmostEqual(analysis.cep50, math.sqrt(0.5))
        self.assertAlmostEqual(analysis.cep90, math.sqrt(0.5))
        self.assertEqual(analysis.shot_count, 4)
        self.assertEqual(analysis.directional_bias.primary_direction, ClockDirection.TWO)

    def test_cep_ordering(self):
        shots = [P(0.01 * k, 0.0) for k in range(-5, 6)]
        analysis = self.analyzer.analyze(shots)
        self.assertLessEqual(analysis.cep50, analysis.cep90)
        self.assertLessEqual(analysis.cep90, analysis.extreme_spread)
        self.assertAlmostEqual(analysis.group_size, analysis.cep90 * 2.0)

    def test_identical_shots(self):
        analysis = self.analyzer.analyze([P(0.02, 0.02)] * 5)
        self.assertEqual(analysis.standard_deviation, 0.0)
        self.assertEqual(analysis.extreme_spread, 0.0)
        self.assertFalse(analysis.directional_bias.is_significant)
        self.assertEqual(analysis.consistency_rating, RATING_EXCELLENT)

    def test_to_dict(self):
        data = self.analyzer.analyze([P(0, 0), P(0.1, 0), P(0, 0.1)]).to_dict()
        self.assertEqual(data["shot_count"], 3)
        self.assertEqual(data["algorithm_version"], 1)
        self.assertIn(data["consistency_rating"], (RATING_EXCELLENT, RATING_GOOD))
        self.assertIn("T", data["analyzed_at"])


class TestStatisticsHelpers(unittest.TestCase):
    def test_nearest_rank_cep(self):
        positions = [P(float(d), 0.0) for d in range(1, 11)]
        self.assertEqual(calculate_cep(positions, P.ZERO, 0.5), 6.0)
        self.assertEqual(calculate_cep(positions, P.ZERO, 0.9), 10.0)
        self.assertEqual(calculate_cep(positions[:3], P.ZERO, 0.9), 3.0)
        self.assertEqual(calculate_cep([], P.ZERO, 0.5), 0.0)

    def test_small_inputs(self):
        self.assertEqual(calculate_standard_deviation([P(1, 1)], P.ZERO), 0.0)
        self.assertEqual(calculate_extreme_spread([P(1, 1)]), 0.0)

    def test_linear_trend(self):
        self.assertAlmostEqual(linear_trend([1.0, 2.0, 3.0]), 1.0)
        self.assertAlmostEqual(linear_trend([0.3, 0.2, 0.1]), -0.1)
        self.assertEqual(linear_trend([5.0]), 0.0)


class TestClockDirection(unittest.TestCase):
    def test_cardinal_angles(self):
        self.assertEqual(ClockDirection.from_angle(90), ClockDirection.TWELVE)
        self.assertEqual(ClockDirection.from_angle(0), ClockDirection.THREE)
        self.assertEqual(ClockDirection.from_angle(-90), ClockDirection.SIX)
        self.assertEqual(ClockDirection.from_angle(180), ClockDirection.NINE)

    def test_half_hour_rounds_up(self):
        # 15 degrees is exactly 2.5 hours past 12
        self.assertEqual(ClockDirection.from_angle(15), ClockDirection.THREE)
        self.assertEqual(ClockDirection.from_angle(-15), ClockDirection.FOUR)

    def test_description(self):
        self.assertEqual(ClockDirection.SEVEN.description, "7 o'clock")


class TestDirectionalBias(unittest.TestCase):
    def test_significance_threshold_is_strict(self):
        self.assertFalse(analyze_directional_bias(P(0.08, 0.0)).is_significant)
        bias = analyze_directional_bias(P(0.081, 0.0))
        self.assertTrue(bias.is_significant)
        self.assertEqual(bias.primary_direction, ClockDirection.THREE)

    def test_none(self):
        bias = DirectionalBias.none()
        self.assertIsNone(bias.description)
        self.assertIsNone(bias.coaching_text)
        self.assertIsNone(bias.to_dict()["primary_direction"])

    def test_description_intensity(self):
        self.assertEqual(
            analyze_directional_bias(P(0.0, 0.35)).description, "Strong bias toward 12 o'clock"
        )
        self.assertEqual(
            analyze_directional_bias(P(0.0, 0.2)).description, "Moderate bias toward 12 o'clock"
        )
        self.assertEqual(
            analyze_directional_bias(P(0.0, -0.1)).description, "Slight bias toward 6 o'clock"
        )

    def test_coaching_by_direction(self):
        self.assertTrue(analyze_directional_bias(P(0.0, -0.2)).coaching_text.startswith("Shots grouping low"))
        self.assertTrue(analyze_directional_bias(P(-0.15, -0.15)).coaching_text.startswith("Low-left"))
        self.assertTrue(analyze_directional_bias(P(0.15, 0.15)).coaching_text.startswith("High-right"))


class TestRatings(unittest.TestCase):
    def test_consistency_thresholds(self):
        ratings = [make_analysis(P.ZERO, std).consistency_rating for std in (0.04, 0.05, 0.12, 0.15)]
        self.assertEqual(ratings, [RATING_EXCELLENT, RATING_GOOD, RATING_FAIR, RATING_NEEDS_WORK])

    def test_accuracy_thresholds(self):
        ratings = [make_analysis(P(x, 0.0), 0.01).accuracy_rating for x in (0.0, 0.07, 0.15, 0.25)]
        self.assertEqual(ratings, [RATING_EXCELLENT, RATING_GOOD, RATING_FAIR, RATING_NEEDS_WORK])

    def test_rating_label(self):
        self.assertEqual(rating_label(RATING_NEEDS_WORK), "Needs Work")

    def test_needs_reanalysis(self):
        self.assertTrue(make_analysis(P.ZERO, 0.1, version=0).needs_reanalysis)
        self.assertFalse(make_analysis(P.ZERO, 0.1).needs_reanalysis)


class TestSessionAggregator(unittest.TestCase):
    def setUp(self):
        self.aggregator = SessionAggregator()

    def test_empty(self):
        self.assertIsNone(self.aggregator.aggregate([]))
        self.assertIsNone(self.aggregator.aggregate([make_analysis(P.ZERO, 0.1, shots=0)]))

    def test_weighted_combination_sorted_by_date(self):
        older = make_analysis(P(0.3, 0.0), 0.2, shots=3, at=T0)
        newer = make_analysis(P(0.1, 0.0), 0.1, shots=1, at=T0 + timedelta(days=7))

        aggregate = self.aggregator.aggregate([newer, older])

        self.assertEqual(aggregate.session_analyses, (older, newer))
        self.assertAlmostEqual(aggregate.overall_mpi.x, 0.25)
        self.assertAlmostEqual(aggregate.overall_std_dev, math.sqrt(0.0325))
        self.assertAlmostEqual(aggregate.consistency_trend, -0.1)
        self.assertAlmostEqual(aggregate.accuracy_trend, -0.2)
        self.assertEqual(aggregate.total_shots, 4)
        self.assertEqual(aggregate.session_count, 2)
        self.assertEqual(aggregate.date_range, (T0, T0 + timedelta(days=7)))
        self.assertEqual(aggregate.trend_description(), "Improving in both consistency and accuracy")

    def test_stable_and_variance(self):
        same = [make_analysis(P(0.1, 0.0), 0.1, at=T0 + timedelta(days=d)) for d in range(3)]
        self.assertEqual(self.aggregator.aggregate(same).trend_description(), "Stable performance")

        worse = [
            make_analysis(P(0.1, 0.0), 0.05, at=T0),
            make_analysis(P(0.1, 0.0), 0.20, at=T0 + timedelta(days=1)),
        ]
        aggregate = self.aggregator.aggregate(worse)
        self.assertEqual(aggregate.trend_description(), "Performance variance - review recent sessions")
        self.assertEqual(aggregate.to_dict()["session_count"], 2)


class TestImprovementSuggestionGenerator(unittest.TestCase):
    def setUp(self):
        self.generator = ImprovementSuggestionGenerator()

    def test_tight_centered_group_needs_nothing(self):
        self.assertEqual(self.generator.generate(make_analysis(P(0.01, 0.0), 0.02, spread=0.05)), [])

    def test_all_rules_in_priority_order(self):
        analysis = make_analysis(P(0.25, 0.0), 0.2, spread=0.5)
        suggestions = self.generator.generate(analysis)

        self.assertEqual(
            [(s.priority, s.category) for s in suggestions],
            [
                (PRIORITY_HIGH, CATEGORY_SIGHT_ALIGNMENT),
                (PRIORITY_HIGH, CATEGORY_HOLD_CONTROL),
                (PRIORITY_HIGH, CATEGORY_TRIGGER_CONTROL),
                (PRIORITY_MEDIUM, CATEGORY_MENTAL_FOCUS),
            ],
        )
        bias = suggestions[2]
        self.assertEqual(bias.title, "Correct Directional Bias")
        self.assertEqual(bias.description, analysis.directional_bias.coaching_text)
        self.assertEqual(len(bias.drills), 2)

    def test_moderate_bias_and_fair_consistency(self):
        suggestions = self.generator.generate(make_analysis(P(0.0, 0.09), 0.12))
        self.assertEqual(
            [(s.priority, s.title) for s in suggestions],
            [(PRIORITY_MEDIUM, "Improve Consistency"), (PRIORITY_MEDIUM, "Correct Directional Bias")],
        )

    def test_to_dict(self):
        data = self.generator.generate(make_analysis(P.ZERO, 0.2))[0].to_dict()
        self.assertEqual(data["title"], "Hold Control")
        self.assertEqual(data["drills"][0], "Balance exercises")


if __name__ == "__main__":
    unittest.main()
