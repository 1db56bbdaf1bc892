"""
Tests for the target_scan CLI layer, application runner and entry point.
"""

import io
import json
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

import cv2
import numpy as np
import yaml

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import target_scan_cli  # noqa: E402
from target_core import DEFAULT_NUM_WORKERS, DEFAULT_TARGET_TYPE  # noqa: E402
from target_scan import app  # noqa: E402
from target_scan.cli import parse_args  # noqa: E402

GROUP = [
    {"x": 0.0, "y": 0.0, "score": 10},
    {"x": 0.05, "y": 0.0, "score": 10},
    {"x": -0.05, "y": 0.0, "score": 10},
    {"x": 0.0, "y": 0.05, "score": 10},
    {"x": 0.0, "y": -0.05, "score": 10},
]


class _TempDirTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def write_shots(self, shots, name="shots.yaml"):
        path = self.tmpdir / name
        path.write_text(yaml.safe_dump(shots), encoding="utf-8")
        return str(path)

    def write_target_image(self, name="target.png"):
        image = np.full((100, 100), 220, dtype=np.uint8)
        cv2.circle(image, (50, 50), 6, 20, -1)
        path = self.tmpdir / name
        cv2.imwrite(str(path), image)
        return str(path)


class TestArgumentParsing(unittest.TestCase):
    def test_detect_defaults(self):
        args = parse_args(["detect", "a.png", "b.png"])
        self.assertEqual(args.command, "detect")
        self.assertEqual(args.images, ["a.png", "b.png"])
        self.assertIsNone(args.config)
        self.assertIsNone(args.target_type)
        self.assertIsNone(args.workers)
        self.assertFalse(args.no_ring_filter)
        self.assertFalse(args.print_config)
        self.assertIsNone(args.locale)

    def test_workers_must_be_positive(self):
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                parse_args(["detect", "a.png", "--workers", "0"])

    def test_analyze_defaults(self):
        args = parse_args(["analyze", "shots.yaml"])
        self.assertEqual(args.target_type, DEFAULT_TARGET_TYPE)
        self.assertEqual(args.project, 0)
        self.assertIsNone(args.seed)
        self.assertIsNone(args.expected_count)

    def test_unknown_target_type_rejected(self):
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                parse_args(["analyze", "shots.yaml", "--target-type", "rifle"])

    def test_command_required(self):
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                parse_args([])


class TestAppLayer(_TempDirTestCase):
    def test_adapters_listing(self):
        result = app.run(parse_args(["adapters"]))
        self.assertIn("opencv", result["contour_adapters"])
        names = [target["name"] for target in result["target_types"]]
        self.assertEqual(names, ["olympic", "tetrathlon"])
        self.assertEqual(app.result_exit_code(result), app.EXIT_OK)

    def test_analyze_group(self):
        result = app.run(parse_args(["analyze", self.write_shots(GROUP)]))
        self.assertEqual(result["shot_count"], 5)
        self.assertEqual(result["total_score"], 50)
        self.assertIsNotNone(result["analysis"])
        self.assertAlmostEqual(result["analysis"]["mpi"]["x"], 0.0)
        self.assertIsNone(result["projection"])
        self.assertEqual(result["exit_code"], app.EXIT_OK)

    def test_analyze_with_projection(self):
        args = parse_args(["analyze", self.write_shots(GROUP), "--project", "10", "--seed", "1"])
        result = app.run(args)
        projection = result["projection"]
        self.assertIsNotNone(projection)
        self.assertIn("confidence", projection["confidence_range"])

        again = app.run(args)
        self.assertEqual(again["projection"], projection)

    def test_analyze_too_few_shots(self):
        result = app.run(parse_args(["analyze", self.write_shots(GROUP[:2])]))
        self.assertIsNone(result["analysis"])
        self.assertEqual(result["suggestions"], [])
        self.assertEqual(result["exit_code"], app.EXIT_OK)

    def test_analyze_invalid_score_is_validation_error(self):
        shots = [dict(shot) for shot in GROUP]
        shots[0]["score"] = 7
        result = app.run(parse_args(["analyze", self.write_shots(shots)]))
        self.assertTrue(result["validation"]["errors"])
        self.assertEqual(result["exit_code"], app.EXIT_VALIDATION_ERROR)

    def test_analyze_excludes_shots_with_errors(self):
        shots = [
            {"x": 0.0, "y": 0.0, "score": 10},
            {"x": 0.01, "y": 0.0, "score": 10},
            {"x": 0.0, "y": 0.01, "score": 10},
            {"x": 1.9, "y": 1.9, "score": 0},
        ]
        result = app.run(parse_args(["analyze", self.write_shots(shots)]))

        self.assertEqual(result["shot_count"], 4)
        self.assertEqual(result["accepted_shot_count"], 3)
        self.assertEqual(result["rejected_shots"], [4])
        self.assertEqual(result["total_score"], 30)
        analysis = result["analysis"]
        self.assertEqual(analysis["shot_count"], 3)
        self.assertAlmostEqual(analysis["mpi"]["x"], 0.01 / 3)
        self.assertAlmostEqual(analysis["mpi"]["y"], 0.01 / 3)
        self.assertEqual(result["exit_code"], app.EXIT_VALIDATION_ERROR)

    def test_analyze_too_few_valid_shots(self):
        shots = [dict(shot) for shot in GROUP[:3]]
        shots[2].update(x=1.9, y=1.9)
        result = app.run(parse_args(["analyze", self.write_shots(shots)]))
        self.assertEqual(result["accepted_shot_count"], 2)
        self.assertIsNone(result["analysis"])
        self.assertIsNone(result["projection"])

    def test_detect_image(self):
        result = app.run(parse_args(["detect", self.write_target_image()]))
        self.assertEqual(result["action"], "detect")
        self.assertEqual(result["failed"], 0)
        image = result["images"][0]
        self.assertTrue(image["succeeded"])
        self.assertEqual(
            len(image["acceptance"]), len(image["result"]["candidates"])
        )
        self.assertEqual(result["exit_code"], app.EXIT_OK)

    def test_detect_missing_file_counts_as_failure(self):
        missing = str(self.tmpdir / "missing.png")
        result = app.run(parse_args(["detect", self.write_target_image(), missing]))
        self.assertEqual(result["failed"], 1)
        self.assertFalse(result["images"][1]["succeeded"])
        self.assertEqual(result["exit_code"], app.EXIT_ERROR)

    def test_print_config_applies_overrides(self):
        args = parse_args(
            [
                "detect",
                "unused.png",
                "--print-config",
                "--min-circularity",
                "0.6",
                "--no-ring-filter",
            ]
        )
        result = app.run(args)
        self.assertEqual(result["action"], "print_config")
        detection = result["config"]["detection"]
        self.assertEqual(detection["min_circularity"], 0.6)
        self.assertFalse(detection["filter_scoring_ring_artifacts"])

    def test_build_pipeline_config_from_file(self):
        config_path = self.tmpdir / "config.yaml"
        config_path.write_text("target_type: olympic\nnum_workers: 2\n", encoding="utf-8")

        config = app.build_pipeline_config(
            parse_args(["detect", "a.png", "--config", str(config_path), "--workers", "3"])
        )
        self.assertEqual(config.target_type, "olympic")
        self.assertEqual(config.num_workers, 3)

        config = app.build_pipeline_config(parse_args(["detect", "a.png", "--no-local-background"]))
        self.assertEqual(config.num_workers, DEFAULT_NUM_WORKERS)
        self.assertFalse(config.detection.use_local_background)

    def test_unknown_command(self):
        args = parse_args(["adapters"])
        args.command = "bogus"
        with self.assertRaises(ValueError):
            app.run(args)

    def test_result_exit_code_defaults(self):
        self.assertEqual(app.result_exit_code(None), app.EXIT_OK)
        self.assertEqual(app.result_exit_code({"action": "x"}), app.EXIT_OK)


class TestMainEntryPoint(_TempDirTestCase):
    def run_main(self, argv):
        stdout, stderr = io.StringIO(), io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = target_scan_cli.main(argv)
        return code, stdout.getvalue(), stderr.getvalue()

    def test_adapters_output(self):
        code, out, _ = self.run_main(["adapters"])
        self.assertEqual(code, 0)
        self.assertIn("opencv", out)
        self.assertIn("tetrathlon", out)

    def test_json_output(self):
        code, out, _ = self.run_main(["--json", "analyze", self.write_shots(GROUP)])
        self.assertEqual(code, 0)
        payload = json.loads(out)
        self.assertEqual(payload["action"], "analyze")
        self.assertEqual(payload["shot_count"], 5)

    def test_text_output(self):
        code, out, _ = self.run_main(["analyze", self.write_shots(GROUP)])
        self.assertEqual(code, 0)
        self.assertIn("5 shots analyzed", out)

    def test_missing_shots_file(self):
        code, _, err = self.run_main(["analyze", str(self.tmpdir / "none.yaml")])
        self.assertEqual(code, 1)
        self.assertIn("ERROR: Configuration file not found", err)

    def test_keyboard_interrupt(self):
        with patch("target_scan_cli.run", side_effect=KeyboardInterrupt):
            code, _, err = self.run_main(["adapters"])
        self.assertEqual(code, 130)
        self.assertIn("Interrupted by user", err)

    def test_unexpected_error(self):
        with patch("target_scan_cli.run", side_effect=ValueError("bad value")):
            code, _, err = self.run_main(["adapters"])
        self.assertEqual(code, 1)
        self.assertIn("ValueError: bad value", err)

    def test_locale_option(self):
        code, out, _ = self.run_main(["--locale", "ja", "analyze", self.write_shots(GROUP)])
        self.assertEqual(code, 0)
        self.assertIn("5 発を分析しました", out)

    def test_locale_environment_variable(self):
        with patch.dict(os.environ, {target_scan_cli.LOCALE_ENV_VAR: "ja"}):
            _, out, _ = self.run_main(["analyze", self.write_shots(GROUP)])
        self.assertIn("5 発を分析しました", out)

    def test_excluded_shots_are_reported(self):
        shots = [dict(shot) for shot in GROUP]
        shots.append({"x": 1.9, "y": 1.9, "score": 0})
        code, out, _ = self.run_main(["analyze", self.write_shots(shots)])
        self.assertEqual(code, 2)
        self.assertIn("excluded from analysis (validation errors): shot 6", out)
        self.assertIn("5 shots analyzed", out)

    def test_validation_error_exit_code(self):
        shots = [dict(shot) for shot in GROUP]
        shots[0]["score"] = 7
        code, out, _ = self.run_main(["analyze", self.write_shots(shots)])
        self.assertEqual(code, 2)
        self.assertIn("error:", out)


if __name__ == "__main__":
    unittest.main()
