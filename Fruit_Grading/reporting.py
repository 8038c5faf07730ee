"""
JSON / CSV artifacts for grading runs.

Layout under `out_dir`:
    results/<date>/<image_stem>.json     one PipelineResult per image
    reports/<date>/grading.csv           one row per image of a batch
    reports/<date>/evaluation.json       EvaluationReport (+ size simulation when run)
    reports/<date>/run_config.json       arguments the run was started with
"""

from __future__ import annotations

import csv
import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .evaluation import EvaluationReport, ImageOutcome, SizeSimulationReport
from .result import PipelineResult

CSV_FIELDS = (
    "file",
    "decision",
    "reason",
    "rule",
    "ripeness",
    "ripeness_confidence",
    "variety",
    "size",
    "roi_area",
    "defect_count",
    "defect_counts",
    "defect_area_ratio",
    "detection_succeeded",
    "total_ms",
    "notes",
    "error",
)


def write_result_json(*, out_dir: Path, date: str, name: str, result: PipelineResult) -> Path:
    result_dir = out_dir / "results" / date
    result_dir.mkdir(parents=True, exist_ok=True)
    path = result_dir / f"{name}.json"
    path.write_text(json.dumps(result.to_dict(), indent=2, sort_keys=True, ensure_ascii=False), encoding="utf-8")
    return path


def outcome_to_row(outcome: ImageOutcome) -> Dict[str, Any]:
    row: Dict[str, Any] = {key: "" for key in CSV_FIELDS}
    row["file"] = outcome.path.name
    r = outcome.result
    if r is None:
        row["error"] = outcome.error or ""
        return row
    row.update(
        decision=r.decision.decision.value,
        reason=r.decision.reason,
        rule=r.decision.rule,
        ripeness=r.ripeness.top_label,
        ripeness_confidence=round(r.ripeness.top_confidence, 4),
        variety=r.variety_label,
        size=r.size.value,
        roi_area=round(r.roi_area, 1),
        defect_count=len(r.defects),
        defect_counts=";".join(f"{k}={v}" for k, v in r.defect_counts.items()),
        defect_area_ratio=round(r.defect_area_ratio, 4),
        detection_succeeded=r.detection_succeeded,
        total_ms=round(r.timings.total_ms, 2),
        notes=";".join(r.notes),
    )
    return row


def write_batch_csv(*, out_dir: Path, date: str, outcomes: Iterable[ImageOutcome]) -> Path:
    """
    One row per image; failed images keep their row with the `error` column set.
    """
    rows: List[Dict[str, Any]] = [outcome_to_row(o) for o in outcomes]
    report_dir = out_dir / "reports" / date
    report_dir.mkdir(parents=True, exist_ok=True)
    path = report_dir / "grading.csv"
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(CSV_FIELDS))
        writer.writeheader()
        writer.writerows(rows)
    return path


def write_evaluation_report(
    *,
    out_dir: Path,
    date: str,
    report: EvaluationReport,
    size_report: Optional[SizeSimulationReport] = None,
) -> Path:
    payload: Dict[str, Any] = {"evaluation": asdict(report)}
    if size_report is not None:
        size_payload = asdict(size_report)
        size_payload["trials"] = [
            {**asdict(t), "target": t.target.value, "measured": None if t.measured is None else t.measured.value}
            for t in size_report.trials
        ]
        payload["size_simulation"] = size_payload
    report_dir = out_dir / "reports" / date
    report_dir.mkdir(parents=True, exist_ok=True)
    path = report_dir / "evaluation.json"
    path.write_text(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False), encoding="utf-8")
    return path


def write_run_config(*, out_dir: Path, date: str, run_config: Dict[str, Any]) -> Path:
    report_dir = out_dir / "reports" / date
    report_dir.mkdir(parents=True, exist_ok=True)
    path = report_dir / "run_config.json"
    path.write_text(json.dumps(run_config, indent=2, sort_keys=True), encoding="utf-8")
    return path


def today_date_str(now: Optional[datetime] = None) -> str:
    dt = now or datetime.now()
    return dt.strftime("%Y-%m-%d")
