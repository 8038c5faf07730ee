import json
import tempfile
import unittest
from pathlib import Path

import numpy as np

from Fruit_Grading.config import get_preset
from Fruit_Grading.labels import RIPENESS_LABELS
from Fruit_Grading.orchestrator import GradingPipeline
from Fruit_Grading.run_config import apply_run_config, collect_cli_dests, load_run_config
from Fruit_Grading.runner import _parse_ort_providers, build_parser, format_summary, resolve_pipeline_config


class TestRunConfig(unittest.TestCase):
    def setUp(self) -> None:
        self.parser = build_parser()

    def _apply(self, argv, payload):
        args = self.parser.parse_args(argv)
        apply_run_config(
            args=args,
            payload=payload,
            cli_dests=collect_cli_dests(self.parser, argv),
            parser=self.parser,
        )
        return args

    def test_payload_fills_unset_args(self) -> None:
        args = self._apply(
            [],
            {"folder": "imgs", "preset": "available_sale", "limit": 5, "recursive": True, "timeout_s": 2},
        )
        self.assertEqual(args.folder, "imgs")
        self.assertEqual(args.preset, "available_sale")
        self.assertEqual(args.limit, 5)
        self.assertTrue(args.recursive)
        self.assertEqual(args.timeout_s, 2.0)

    def test_cli_flags_win(self) -> None:
        args = self._apply(["--limit", "7", "--out-dir=out"], {"limit": 5, "out_dir": "data2"})
        self.assertEqual(args.limit, 7)
        self.assertEqual(args.out_dir, "out")

    def test_onnx_providers_list(self) -> None:
        args = self._apply([], {"onnx_providers": ["CUDAExecutionProvider", "CPUExecutionProvider"]})
        self.assertEqual(args.onnx_providers, "CUDAExecutionProvider,CPUExecutionProvider")
        self.assertEqual(_parse_ort_providers(args.onnx_providers), ["CUDAExecutionProvider", "CPUExecutionProvider"])

    def test_input_block(self) -> None:
        args = self._apply([], {"input": {"image": "mango.jpg"}, "lang": "en"})
        self.assertEqual(args.image, "mango.jpg")
        self.assertIsNone(args.folder)
        self.assertEqual(args.lang, "en")

    def test_rejections(self) -> None:
        for payload in (
            {"config": "other.json"},
            {"image": "a.jpg", "folder": "imgs"},
            {"input": {"folder": "imgs"}, "image": "a.jpg"},
            {"input": {"video": "clip.mp4"}},
            {"input": "imgs"},
            {"onnx_providers": []},
            {"mystery": 1},
            {"recursive": "yes"},
            {"limit": 2.5},
            {"models_dir": ""},
        ):
            with self.subTest(payload=payload):
                with self.assertRaises(ValueError):
                    self._apply([], payload)

    def test_load_run_config(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "run.json"
            path.write_text(json.dumps({"preset": "ripening"}), encoding="utf-8")
            self.assertEqual(load_run_config(path), {"preset": "ripening"})
            path.write_text("[1, 2]", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_run_config(path)
        with self.assertRaises(FileNotFoundError):
            load_run_config(Path("/nonexistent/run.json"))


class TestRunnerHelpers(unittest.TestCase):
    def test_resolve_pipeline_config_overrides(self) -> None:
        args = build_parser().parse_args(
            ["--preset", "size_classification", "--defect-conf", "0.4", "--timeout-s", "0", "--max-workers", "2"]
        )
        cfg = resolve_pipeline_config(args)
        self.assertEqual(cfg.name, "size_classification")
        self.assertEqual(cfg.defect.conf_threshold, 0.4)
        self.assertIsNone(cfg.model_timeout_s)
        self.assertEqual(cfg.max_workers, 2)

    def test_preset_and_pipeline_config_conflict(self) -> None:
        args = build_parser().parse_args(["--preset", "ripening", "--pipeline-config", "p.json"])
        with self.assertRaises(ValueError):
            resolve_pipeline_config(args)

    def test_format_summary(self) -> None:
        ripe = np.zeros((1, 6), dtype=np.float32)
        ripe[0, RIPENESS_LABELS.index("ripe")] = 5.0
        handles = {
            "detection": lambda blob: np.zeros((1, 5, 0), dtype=np.float32),
            "ripeness": lambda blob: ripe,
            "defect": lambda blob: np.zeros((1, 7, 0), dtype=np.float32),
        }
        with GradingPipeline(get_preset(), handles) as pipeline:
            result = pipeline.analyze(np.full((240, 320, 3), 128, dtype=np.uint8))
        lines = format_summary(result, lang="en")
        self.assertEqual(lines[0], "decision: Accept (sellable)")
        self.assertTrue(lines[2].startswith("size: medium (350-500g) area=76800"))
        self.assertIn("defects: none", lines)
        self.assertIn("notes: detection_fallback_full_frame, variety_model_unavailable", lines)
        self.assertTrue(format_summary(result)[0].startswith("decision: 판매 가능"))
        self.assertFalse(any(line.startswith("fruit:") for line in lines))

    def test_format_summary_names_detected_fruit(self) -> None:
        head = np.zeros((1, 5, 1), dtype=np.float32)
        head[0, :, 0] = (280.0, 280.0, 400.0, 320.0, 0.9)
        ripe = np.zeros((1, 6), dtype=np.float32)
        ripe[0, RIPENESS_LABELS.index("ripe")] = 5.0
        handles = {
            "detection": lambda blob: head,
            "ripeness": lambda blob: ripe,
            "defect": lambda blob: np.zeros((1, 7, 0), dtype=np.float32),
        }
        with GradingPipeline(get_preset("ripening"), handles) as pipeline:
            result = pipeline.analyze(np.full((240, 320, 3), 128, dtype=np.uint8))
        self.assertTrue(result.detection_succeeded)
        self.assertIn("fruit: 망고 0.90", format_summary(result))
        self.assertIn("fruit: Mango 0.90", format_summary(result, lang="en"))


if __name__ == "__main__":
    unittest.main()
