from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from vision_kit.types import Box, ClassificationResult, Detection

from .decision import GradeDecision
from .labels import SizeBucket


@dataclass(frozen=True)
class PassTimings:
    """Wall time per pass, milliseconds. A pass that did not run stays at 0."""

    detection_ms: float = 0.0
    ripeness_ms: float = 0.0
    defect_ms: float = 0.0
    variety_ms: float = 0.0
    total_ms: float = 0.0


@dataclass(frozen=True)
class PipelineResult:
    roi: Detection
    detection_succeeded: bool
    ripeness: ClassificationResult
    defects: Tuple[Detection, ...]
    defect_counts: Mapping[str, int]
    variety: Optional[ClassificationResult]
    # "" when the variety pass was unavailable, failed or timed out
    variety_label: str
    size: SizeBucket
    decision: GradeDecision
    defect_area_ratio: float
    image_size: Tuple[int, int]
    timings: PassTimings = field(default_factory=PassTimings)
    notes: Tuple[str, ...] = ()

    @property
    def roi_area(self) -> float:
        return self.roi.box.area

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roi": _detection_to_dict(self.roi),
            "detection_succeeded": self.detection_succeeded,
            "ripeness": {
                "label": self.ripeness.top_label,
                "confidence": self.ripeness.top_confidence,
                "ranked": [[label, conf] for label, conf in self.ripeness.ranked],
            },
            "defects": [_detection_to_dict(d) for d in self.defects],
            "defect_counts": dict(self.defect_counts),
            "variety": None
            if self.variety is None
            else {"label": self.variety.top_label, "confidence": self.variety.top_confidence},
            "variety_label": self.variety_label,
            "size": self.size.value,
            "roi_area": self.roi_area,
            "decision": self.decision.decision.value,
            "reason": self.decision.reason,
            "rule": self.decision.rule,
            "defect_area_ratio": self.defect_area_ratio,
            "image_size": list(self.image_size),
            "timings": asdict(self.timings),
            "notes": list(self.notes),
        }


def _detection_to_dict(d: Detection) -> Dict[str, Any]:
    return {"label": d.label, "confidence": d.confidence, "box": asdict(d.box), "class_id": d.class_id}


def defect_area_ratio(roi: Box, defects: Tuple[Detection, ...]) -> float:
    """
    Sum of defect box areas (clipped to the ROI) over the ROI area.

    Overlapping defect boxes are counted twice; the ratio can exceed 1 on heavily
    spotted fruit and is not clamped.
    """
    if roi.area <= 0:
        return 0.0
    covered = sum(d.box.intersect(roi).area for d in defects)
    return float(covered / roi.area)
