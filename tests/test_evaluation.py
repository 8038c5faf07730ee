import threading
import unittest
from pathlib import Path

import numpy as np

from Fruit_Grading.config import get_preset
from Fruit_Grading.evaluation import (
    default_size_targets,
    evaluate_images,
    render_at_area,
    run_size_simulation,
    summarize_ms,
)
from Fruit_Grading.features import compute_features
from Fruit_Grading.labels import RIPENESS_LABELS, SizeBucket
from Fruit_Grading.orchestrator import GradingPipeline
from Fruit_Grading.size import SizeTable


def _fruit_head() -> np.ndarray:
    # One "Mango" candidate at model-space center (280, 280), 400x320.
    out = np.zeros((1, 5, 1), dtype=np.float32)
    out[0, :, 0] = (280.0, 280.0, 400.0, 320.0, 0.9)
    return out


def _pipeline(test: unittest.TestCase) -> GradingPipeline:
    ripe = np.zeros((1, 6), dtype=np.float32)
    ripe[0, RIPENESS_LABELS.index("ripe")] = 5.0
    handles = {
        "detection": lambda blob: _fruit_head(),
        "ripeness": lambda blob: ripe,
        "defect": lambda blob: np.zeros((1, 7, 0), dtype=np.float32),
        "variety": None,
    }
    pipeline = GradingPipeline(get_preset("ripening"), handles)
    test.addCleanup(pipeline.close)
    return pipeline


FRAME = np.full((240, 320, 3), 128, dtype=np.uint8)


def _loader(path: Path) -> np.ndarray:
    if path.name.startswith("missing"):
        raise FileNotFoundError(f"Could not read image at path: {path}")
    return FRAME


class TestEvaluateImages(unittest.TestCase):
    def test_batch_summary_counts_failures_as_misses(self) -> None:
        paths = [Path("a.jpg"), Path("missing.jpg"), Path("b.jpg")]
        seen = []
        report, outcomes = evaluate_images(
            _pipeline(self),
            paths,
            expected_ripeness="ripe",
            loader=_loader,
            progress=lambda done, total: seen.append((done, total)),
        )
        self.assertEqual(report.total, 3)
        self.assertEqual(report.graded, 2)
        self.assertEqual(report.correct, 2)
        self.assertAlmostEqual(report.accuracy, 200.0 / 3.0)
        self.assertEqual(report.ripeness_counts, {"ripe": 2})
        self.assertEqual(report.decision_counts, {"Accept": 2})
        self.assertEqual(report.size_counts, {"small": 2})
        self.assertEqual(len(report.errors), 1)
        self.assertEqual(report.errors[0][0], "missing.jpg")
        self.assertTrue(report.errors[0][1].startswith("FileNotFoundError"))
        self.assertEqual(report.timings["total"].n, 2)
        self.assertAlmostEqual(report.feature_means.mean_g, 128.0)
        self.assertEqual(seen, [(1, 3), (2, 3), (3, 3)])
        self.assertIsNone(outcomes[1].result)
        self.assertFalse(report.cancelled)

    def test_no_expected_label_means_no_accuracy(self) -> None:
        report, _ = evaluate_images(_pipeline(self), [Path("a.jpg")], loader=_loader)
        self.assertIsNone(report.accuracy)
        self.assertEqual(report.correct, 0)

    def test_cancel_stops_the_batch(self) -> None:
        cancel = threading.Event()
        cancel.set()
        report, outcomes = evaluate_images(_pipeline(self), [Path("a.jpg")], cancel=cancel, loader=_loader)
        self.assertTrue(report.cancelled)
        self.assertEqual(outcomes, [])
        self.assertIsNone(report.feature_means)


class TestTimingSummary(unittest.TestCase):
    def test_percentiles(self) -> None:
        s = summarize_ms([4.0, 1.0, 3.0, 2.0])
        self.assertEqual(s.n, 4)
        self.assertAlmostEqual(s.mean_ms, 2.5)
        self.assertAlmostEqual(s.p50_ms, 2.5)
        self.assertAlmostEqual(s.p95_ms, 3.85)

    def test_empty(self) -> None:
        s = summarize_ms([])
        self.assertEqual((s.n, s.mean_ms, s.p95_ms), (0, 0.0, 0.0))


class TestFeatures(unittest.TestCase):
    def test_uniform_image(self) -> None:
        f = compute_features(np.full((50, 40, 3), (200, 150, 100), dtype=np.uint8))
        self.assertAlmostEqual(f.mean_r, 200.0)
        self.assertAlmostEqual(f.mean_b, 100.0)
        self.assertEqual(f.edge_density, 0.0)
        self.assertEqual(f.dark_blob_ratio, 0.0)

    def test_dark_half(self) -> None:
        img = np.full((40, 40, 3), 200, dtype=np.uint8)
        img[:, :20] = 10
        f = compute_features(img)
        self.assertAlmostEqual(f.dark_blob_ratio, 50.0)
        self.assertGreater(f.edge_density, 0.0)


class TestSizeSimulation(unittest.TestCase):
    def test_default_targets_fall_inside_their_buckets(self) -> None:
        from Fruit_Grading.size import estimate_size

        for table in (SizeTable(), SizeTable((0, 45000, 80000, 130000))):
            for bucket, area in default_size_targets(table).items():
                self.assertEqual(estimate_size(area, table), bucket)

    def test_render_at_area(self) -> None:
        crop = np.full((100, 200, 3), 255, dtype=np.uint8)
        canvas, area = render_at_area(crop, 20000)
        self.assertEqual(canvas.shape, (640, 640, 3))
        self.assertEqual(area, 20000)
        self.assertEqual(int(np.count_nonzero(canvas[:, :, 0])), 20000)

    def test_render_is_clamped_to_canvas(self) -> None:
        crop = np.full((100, 200, 3), 255, dtype=np.uint8)
        _, area = render_at_area(crop, 10**7)
        self.assertEqual(area, 640 * 320)

    def test_trials_per_bucket(self) -> None:
        # The fake detector always reports the same model-space box: on a 640 canvas
        # that is 400x320 = 128000 px, a large fruit.
        report = run_size_simulation(_pipeline(self), [Path("a.jpg")], loader=_loader)
        self.assertEqual(report.total, 4)
        self.assertEqual(report.correct, 1)
        self.assertEqual(report.per_bucket[SizeBucket.LARGE.value], (1, 1))
        self.assertEqual(report.per_bucket[SizeBucket.SMALL.value], (0, 1))
        self.assertEqual(report.skipped, ())

    def test_unreadable_images_are_skipped(self) -> None:
        report = run_size_simulation(_pipeline(self), [Path("missing.jpg")], loader=_loader)
        self.assertEqual(report.total, 0)
        self.assertEqual(report.skipped, ("missing.jpg",))
        self.assertEqual(report.accuracy, 0.0)


if __name__ == "__main__":
    unittest.main()
