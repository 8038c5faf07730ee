import csv
import json
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from Fruit_Grading.decision import Decision, GradeDecision
from Fruit_Grading.evaluation import ImageOutcome, SizeSimulationReport, SizeTrial, evaluate_images
from Fruit_Grading.labels import SizeBucket
from Fruit_Grading.reporting import (
    CSV_FIELDS,
    today_date_str,
    write_batch_csv,
    write_evaluation_report,
    write_result_json,
    write_run_config,
)
from Fruit_Grading.result import PassTimings, PipelineResult, defect_area_ratio
from vision_kit.types import Box, ClassificationResult, Detection


def _result() -> PipelineResult:
    roi = Detection(label="Mango", confidence=0.9, box=Box(40, 20, 200, 160), class_id=0)
    spots = (
        Detection(label="brown-spot", confidence=0.6, box=Box(50, 30, 10, 10), class_id=0),
        Detection(label="brown-spot", confidence=0.5, box=Box(235, 30, 10, 10), class_id=0),
    )
    return PipelineResult(
        roi=roi,
        detection_succeeded=True,
        ripeness=ClassificationResult(ranked=(("ripe", 0.8), ("unripe", 0.2))),
        defects=spots,
        defect_counts={"brown-spot": 2},
        variety=ClassificationResult(ranked=(("Alphonso", 0.7), ("Neelam", 0.3))),
        variety_label="Alphonso",
        size=SizeBucket.SMALL,
        decision=GradeDecision(Decision.ACCEPT, "sellable", "sellable"),
        defect_area_ratio=defect_area_ratio(roi.box, spots),
        image_size=(320, 240),
        timings=PassTimings(detection_ms=5.0, ripeness_ms=2.0, defect_ms=4.0, variety_ms=1.0, total_ms=12.0),
    )


class TestResultSerialization(unittest.TestCase):
    def test_area_ratio_clips_to_roi(self) -> None:
        # Second spot hangs half outside the ROI.
        self.assertAlmostEqual(_result().defect_area_ratio, 150.0 / 32000.0)

    def test_to_dict(self) -> None:
        d = _result().to_dict()
        self.assertEqual(d["decision"], "Accept")
        self.assertEqual(d["rule"], "sellable")
        self.assertEqual(d["size"], "small")
        self.assertEqual(d["roi_area"], 32000)
        self.assertEqual(d["ripeness"]["label"], "ripe")
        self.assertEqual(d["variety"], {"label": "Alphonso", "confidence": 0.7})
        self.assertEqual(d["roi"]["box"], {"x": 40, "y": 20, "width": 200, "height": 160})
        self.assertEqual(d["timings"]["total_ms"], 12.0)
        self.assertEqual(d["notes"], [])
        json.dumps(d)


class TestReporting(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.out = Path(tmpdir.name)

    def test_result_json(self) -> None:
        path = write_result_json(out_dir=self.out, date="2026-01-02", name="mango_01", result=_result())
        self.assertEqual(path, self.out / "results" / "2026-01-02" / "mango_01.json")
        payload = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(payload["defect_counts"], {"brown-spot": 2})

    def test_batch_csv_keeps_failed_rows(self) -> None:
        outcomes = [
            ImageOutcome(path=Path("a.jpg"), result=_result()),
            ImageOutcome(path=Path("b.jpg"), error="InvalidInput: empty image"),
        ]
        path = write_batch_csv(out_dir=self.out, date="2026-01-02", outcomes=outcomes)
        with path.open(encoding="utf-8", newline="") as f:
            rows = list(csv.DictReader(f))
        self.assertEqual(list(rows[0].keys()), list(CSV_FIELDS))
        self.assertEqual(rows[0]["decision"], "Accept")
        self.assertEqual(rows[0]["defect_counts"], "brown-spot=2")
        self.assertEqual(rows[0]["defect_count"], "2")
        self.assertEqual(rows[1]["file"], "b.jpg")
        self.assertEqual(rows[1]["decision"], "")
        self.assertEqual(rows[1]["error"], "InvalidInput: empty image")

    def test_evaluation_report_with_size_simulation(self) -> None:
        report, _ = evaluate_images(None, [])  # empty batch never touches the pipeline
        size_report = SizeSimulationReport(
            total=1,
            correct=1,
            accuracy=100.0,
            per_bucket={"small": (1, 1)},
            trials=(SizeTrial("a.jpg", SizeBucket.SMALL, 30000, SizeBucket.SMALL, True),),
        )
        path = write_evaluation_report(out_dir=self.out, date="2026-01-02", report=report, size_report=size_report)
        payload = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(payload["evaluation"]["total"], 0)
        self.assertEqual(payload["size_simulation"]["trials"][0]["target"], "small")
        self.assertEqual(payload["size_simulation"]["per_bucket"]["small"], [1, 1])

    def test_run_config(self) -> None:
        path = write_run_config(out_dir=self.out, date="2026-01-02", run_config={"pipeline": "ripening"})
        self.assertEqual(json.loads(path.read_text(encoding="utf-8")), {"pipeline": "ripening"})

    def test_date_str(self) -> None:
        self.assertEqual(today_date_str(datetime(2026, 3, 4, 12, 0)), "2026-03-04")


if __name__ == "__main__":
    unittest.main()
