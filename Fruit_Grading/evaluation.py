"""
Offline checks of a configured pipeline against a folder of images.

- `evaluate_images`: grade every image, compare ripeness with an expected label,
  and summarize tallies, mean image features and pass latencies.
- `run_size_simulation`: re-render each detected fruit at known pixel areas and
  check the size estimator puts every rendering in the intended bucket.
"""

from __future__ import annotations

import logging
import math
import statistics
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .errors import AnalysisCancelled, GradingError
from .features import ImageFeatures, compute_features
from .ingest import read_image_rgb
from .labels import SizeBucket
from .orchestrator import GradingPipeline
from .result import PipelineResult
from .size import SizeTable

logger = logging.getLogger(__name__)

ImageLoader = Callable[[Path], np.ndarray]
ProgressFn = Callable[[int, int], None]


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p90_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    if q < 0.0 or q > 100.0:
        raise ValueError("q must be in [0, 100].")
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    if lo == hi:
        return float(sorted_values[lo])
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def summarize_ms(values_ms: Sequence[float]) -> TimingSummary:
    ms_sorted = sorted(float(v) for v in values_ms)
    return TimingSummary(
        n=len(ms_sorted),
        mean_ms=float(statistics.fmean(ms_sorted)) if ms_sorted else 0.0,
        p50_ms=_percentile(ms_sorted, 50.0) if ms_sorted else 0.0,
        p90_ms=_percentile(ms_sorted, 90.0) if ms_sorted else 0.0,
        p95_ms=_percentile(ms_sorted, 95.0) if ms_sorted else 0.0,
    )


def summarize_timings(results: Sequence[PipelineResult]) -> Dict[str, TimingSummary]:
    return {
        "detection": summarize_ms([r.timings.detection_ms for r in results]),
        "ripeness": summarize_ms([r.timings.ripeness_ms for r in results]),
        "defect": summarize_ms([r.timings.defect_ms for r in results]),
        "variety": summarize_ms([r.timings.variety_ms for r in results]),
        "total": summarize_ms([r.timings.total_ms for r in results]),
    }


@dataclass(frozen=True)
class ImageOutcome:
    path: Path
    result: Optional[PipelineResult] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class EvaluationReport:
    total: int
    graded: int
    expected_label: Optional[str]
    correct: int
    accuracy: Optional[float]
    ripeness_counts: Dict[str, int]
    decision_counts: Dict[str, int]
    size_counts: Dict[str, int]
    feature_means: Optional[ImageFeatures]
    timings: Dict[str, TimingSummary]
    errors: Tuple[Tuple[str, str], ...] = ()
    cancelled: bool = False


def _mean_features(features: Sequence[ImageFeatures]) -> Optional[ImageFeatures]:
    if not features:
        return None
    return ImageFeatures(
        mean_r=float(statistics.fmean(f.mean_r for f in features)),
        mean_g=float(statistics.fmean(f.mean_g for f in features)),
        mean_b=float(statistics.fmean(f.mean_b for f in features)),
        edge_density=float(statistics.fmean(f.edge_density for f in features)),
        dark_blob_ratio=float(statistics.fmean(f.dark_blob_ratio for f in features)),
    )


def evaluate_images(
    pipeline: GradingPipeline,
    paths: Sequence[Path],
    *,
    expected_ripeness: Optional[str] = None,
    cancel: Optional[threading.Event] = None,
    loader: ImageLoader = read_image_rgb,
    progress: Optional[ProgressFn] = None,
) -> Tuple[EvaluationReport, List[ImageOutcome]]:
    """
    Grade `paths` one by one.

    A failure on one image is recorded and the batch moves on. Setting `cancel`
    stops the batch between (or during) images; the report covers what finished.
    """
    outcomes: List[ImageOutcome] = []
    features: List[ImageFeatures] = []
    cancelled = False

    for i, path in enumerate(paths):
        if cancel is not None and cancel.is_set():
            cancelled = True
            break
        try:
            image = loader(path)
            result = pipeline.analyze(image, cancel=cancel)
            features.append(compute_features(image))
        except AnalysisCancelled:
            cancelled = True
            break
        except (GradingError, FileNotFoundError, ValueError) as exc:
            logger.warning("Failed to grade %s: %s", path, exc)
            outcomes.append(ImageOutcome(path=path, error=f"{type(exc).__name__}: {exc}"))
        else:
            outcomes.append(ImageOutcome(path=path, result=result))
        if progress is not None:
            progress(i + 1, len(paths))

    results = [o.result for o in outcomes if o.result is not None]
    correct = 0
    accuracy: Optional[float] = None
    if expected_ripeness is not None:
        correct = sum(1 for r in results if r.ripeness.top_label == expected_ripeness)
        # Images that failed to grade count as misses.
        accuracy = (correct / len(outcomes) * 100.0) if outcomes else 0.0

    report = EvaluationReport(
        total=len(outcomes),
        graded=len(results),
        expected_label=expected_ripeness,
        correct=correct,
        accuracy=accuracy,
        ripeness_counts=dict(Counter(r.ripeness.top_label for r in results)),
        decision_counts=dict(Counter(r.decision.decision.value for r in results)),
        size_counts=dict(Counter(r.size.value for r in results)),
        feature_means=_mean_features(features),
        timings=summarize_timings(results),
        errors=tuple((str(o.path), o.error) for o in outcomes if o.error is not None),
        cancelled=cancelled,
    )
    logger.info(
        "Evaluated %d images (%d graded, %d errors)%s",
        report.total,
        report.graded,
        len(report.errors),
        " [cancelled]" if cancelled else "",
    )
    return report, outcomes


# ---------------------------------------------------------------------- #
# Size simulation
# ---------------------------------------------------------------------- #
@dataclass(frozen=True)
class SizeTrial:
    file: str
    target: SizeBucket
    rendered_area: int
    measured: Optional[SizeBucket]
    correct: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class SizeSimulationReport:
    total: int
    correct: int
    accuracy: float
    per_bucket: Dict[str, Tuple[int, int]]
    trials: Tuple[SizeTrial, ...] = field(default_factory=tuple)
    skipped: Tuple[str, ...] = ()
    cancelled: bool = False


def default_size_targets(table: SizeTable) -> Dict[SizeBucket, float]:
    """
    One area safely inside each bucket: below the first bound, midpoints for the
    two middle buckets, and 15% above the last bound.
    """
    b = table.bounds
    return {
        SizeBucket.SMALL: b[1] * 0.75,
        SizeBucket.MEDIUM: (b[1] + b[2]) / 2.0,
        SizeBucket.LARGE: (b[2] + b[3]) / 2.0,
        SizeBucket.EXTRA_LARGE: b[3] * 1.15,
    }


def render_at_area(crop_rgb: np.ndarray, target_area: float, canvas_size: int = 640) -> Tuple[np.ndarray, int]:
    """
    Resize `crop_rgb` (keeping aspect) to roughly `target_area` pixels and center it on a black canvas.

    Returns the canvas and the rendered width * height.
    """
    h, w = crop_rgb.shape[:2]
    aspect = w / h
    new_h = int(math.sqrt(target_area / aspect))
    new_w = int(new_h * aspect)
    if new_w > canvas_size:
        new_w = canvas_size
        new_h = int(new_w / aspect)
    if new_h > canvas_size:
        new_h = canvas_size
        new_w = int(new_h * aspect)
    new_w = max(1, new_w)
    new_h = max(1, new_h)

    resized = cv2.resize(crop_rgb, (new_w, new_h), interpolation=cv2.INTER_LINEAR)
    canvas = np.zeros((canvas_size, canvas_size, 3), dtype=np.uint8)
    x = (canvas_size - new_w) // 2
    y = (canvas_size - new_h) // 2
    canvas[y : y + new_h, x : x + new_w] = resized
    return canvas, new_w * new_h


def run_size_simulation(
    pipeline: GradingPipeline,
    paths: Sequence[Path],
    *,
    targets: Optional[Dict[SizeBucket, float]] = None,
    canvas_size: int = 640,
    cancel: Optional[threading.Event] = None,
    loader: ImageLoader = read_image_rgb,
) -> SizeSimulationReport:
    """
    For each image: detect the fruit, crop it, render it once per size bucket, re-grade
    every rendering and compare the measured bucket with the intended one.

    Images where no fruit is detected are skipped (listed in `skipped`).
    """
    targets = targets or default_size_targets(pipeline.config.size_table)
    trials: List[SizeTrial] = []
    skipped: List[str] = []
    t0 = time.perf_counter()
    cancelled = False

    for path in paths:
        if cancelled or (cancel is not None and cancel.is_set()):
            cancelled = True
            break
        try:
            image = loader(path)
            base = pipeline.analyze(image, cancel=cancel)
        except AnalysisCancelled:
            cancelled = True
            break
        except (GradingError, FileNotFoundError, ValueError) as exc:
            logger.warning("Size simulation skipped %s: %s", path, exc)
            skipped.append(str(path))
            continue
        if not base.detection_succeeded:
            skipped.append(str(path))
            continue

        x1, y1, x2, y2 = base.roi.as_xyxy()
        crop = image[int(y1) : int(math.ceil(y2)), int(x1) : int(math.ceil(x2))]
        if crop.size == 0:
            skipped.append(str(path))
            continue

        for bucket, area in targets.items():
            canvas, rendered = render_at_area(crop, area, canvas_size)
            try:
                measured = pipeline.analyze(canvas, cancel=cancel).size
            except AnalysisCancelled:
                cancelled = True
                break
            except GradingError as exc:
                trials.append(SizeTrial(path.name, bucket, rendered, None, False, error=str(exc)))
                continue
            trials.append(SizeTrial(path.name, bucket, rendered, measured, measured is bucket))

    per_bucket: Dict[str, Tuple[int, int]] = {}
    for bucket in SizeBucket:
        rows = [t for t in trials if t.target is bucket]
        per_bucket[bucket.value] = (sum(1 for t in rows if t.correct), len(rows))
    correct = sum(1 for t in trials if t.correct)
    report = SizeSimulationReport(
        total=len(trials),
        correct=correct,
        accuracy=(correct / len(trials) * 100.0) if trials else 0.0,
        per_bucket=per_bucket,
        trials=tuple(trials),
        skipped=tuple(skipped),
        cancelled=cancelled,
    )
    logger.info(
        "Size simulation: %d/%d correct over %d images in %.1fs",
        report.correct,
        report.total,
        len(paths) - len(skipped),
        time.perf_counter() - t0,
    )
    return report
