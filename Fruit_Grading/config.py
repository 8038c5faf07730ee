from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from vision_kit.metadata import load_labels

from .decision import DecisionConfig
from .labels import RIPENESS_LABELS, DefectLabel
from .size import SizeTable

ROLES = ("detection", "ripeness", "defect", "variety")
MANDATORY_ROLES = ("detection", "ripeness", "defect")


@dataclass(frozen=True)
class ModelSpec:
    labels: Tuple[str, ...]
    input_size: int
    conf_threshold: float = 0.0
    # "letterbox" keeps aspect (detection heads), "resize" stretches (classifiers)
    preprocess: str = "resize"
    apply_softmax: bool = True
    mandatory: bool = True
    filename: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", tuple(str(x) for x in self.labels))
        if not self.labels:
            raise ValueError("labels must not be empty")
        if len(set(self.labels)) != len(self.labels):
            raise ValueError(f"labels must be unique, got {self.labels}")
        if self.input_size < 32:
            raise ValueError("input_size must be >= 32")
        if not (0.0 <= self.conf_threshold < 1.0):
            raise ValueError("conf_threshold must be within [0, 1)")
        if self.preprocess not in ("letterbox", "resize"):
            raise ValueError("preprocess must be 'letterbox' or 'resize'")


@dataclass(frozen=True)
class PipelineConfig:
    name: str
    detection: ModelSpec
    ripeness: ModelSpec
    defect: ModelSpec
    variety: Optional[ModelSpec] = None
    overlap_threshold: float = 0.45
    max_detections: int = 300
    # Detection labels accepted as the fruit to grade; empty means any label.
    target_labels: Tuple[str, ...] = ()
    size_table: SizeTable = field(default_factory=SizeTable)
    decision: DecisionConfig = field(default_factory=DecisionConfig)
    model_timeout_s: Optional[float] = 30.0
    max_workers: int = 3
    pad_color: Tuple[int, int, int] = (114, 114, 114)

    def __post_init__(self) -> None:
        object.__setattr__(self, "target_labels", tuple(str(x) for x in self.target_labels))
        if not (0.0 <= self.overlap_threshold <= 1.0):
            raise ValueError("overlap_threshold must be within [0, 1]")
        if self.max_detections < 1:
            raise ValueError("max_detections must be >= 1")
        if self.model_timeout_s is not None and self.model_timeout_s <= 0:
            raise ValueError("model_timeout_s must be > 0 (or None to disable)")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if len(self.pad_color) != 3 or any(not (0 <= int(c) <= 255) for c in self.pad_color):
            raise ValueError("pad_color must be three values within [0, 255]")
        for role in MANDATORY_ROLES:
            if not self.spec_for(role).mandatory:
                raise ValueError(f"{role} model cannot be optional")
        if self.variety is not None and self.variety.mandatory:
            raise ValueError("variety model must be optional")
        # Detection boxes are mapped back through a single letterbox scale.
        for role in ("detection", "defect"):
            if self.spec_for(role).preprocess != "letterbox":
                raise ValueError(f"{role} model must use letterbox preprocessing")
        unknown = sorted(set(self.target_labels) - set(self.detection.labels))
        if unknown:
            raise ValueError(f"target_labels not in detection labels: {unknown}")

    def spec_for(self, role: str) -> Optional[ModelSpec]:
        if role not in ROLES:
            raise ValueError(f"Unknown model role: {role!r}")
        return getattr(self, role)


FRUIT_LABELS = (
    "Apple",
    "Banana",
    "Orange",
    "Mango",
    "Grape",
    "Guava",
    "Kiwi",
    "Lemon",
    "Litchi",
    "Pomegranate",
    "Strawberry",
    "Watermelon",
)

INDIAN_VARIETIES = ("Alphonso", "Amrapali", "Dasheri", "Langra", "Mallika", "Neelam", "Pairi", "Ramkela", "Totapuri")

PAKISTANI_VARIETIES = (
    "Anwar Ratool",
    "Chaunsa (Black)",
    "Chaunsa (Summer Bahisht)",
    "Chaunsa (White)",
    "Dosehri",
    "Fajri",
    "Langra",
    "Sindhri",
)


def _detection(labels: Tuple[str, ...]) -> ModelSpec:
    return ModelSpec(labels=labels, input_size=640, conf_threshold=0.5, preprocess="letterbox", filename="detection.onnx")


def _ripeness() -> ModelSpec:
    return ModelSpec(labels=RIPENESS_LABELS, input_size=224, preprocess="resize", filename="best.onnx")


def _defect(labels: Tuple[str, ...]) -> ModelSpec:
    return ModelSpec(
        labels=labels, input_size=640, conf_threshold=0.3, preprocess="letterbox", filename="defect_detection.onnx"
    )


def _variety(labels: Tuple[str, ...]) -> ModelSpec:
    return ModelSpec(labels=labels, input_size=224, preprocess="resize", mandatory=False, filename="mango_classify.onnx")


_DEFECTS_BLACK_FIRST = (DefectLabel.BLACK_SPOT.value, DefectLabel.BROWN_SPOT.value, DefectLabel.SCAB.value)
_DEFECTS_BROWN_FIRST = (DefectLabel.BROWN_SPOT.value, DefectLabel.BLACK_SPOT.value, DefectLabel.SCAB.value)


def _sale_preset(name: str, bounds: Tuple[float, float, float, float]) -> PipelineConfig:
    return PipelineConfig(
        name=name,
        detection=_detection(FRUIT_LABELS),
        ripeness=_ripeness(),
        defect=_defect(_DEFECTS_BROWN_FIRST),
        variety=_variety(PAKISTANI_VARIETIES),
        target_labels=("Mango",),
        size_table=SizeTable(bounds),
    )


PRESETS: Dict[str, PipelineConfig] = {
    "ripening": PipelineConfig(
        name="ripening",
        detection=_detection(("Mango",)),
        ripeness=_ripeness(),
        defect=_defect(_DEFECTS_BLACK_FIRST),
        variety=_variety(INDIAN_VARIETIES),
    ),
    "available_sale": _sale_preset("available_sale", (0, 50000, 100000, 150000)),
    "size_classification": _sale_preset("size_classification", (0, 45000, 80000, 130000)),
    "speed_measurement": _sale_preset("speed_measurement", (0, 50000, 100000, 150000)),
}

DEFAULT_PRESET = "ripening"


def get_preset(name: str = DEFAULT_PRESET) -> PipelineConfig:
    try:
        return PRESETS[name]
    except KeyError:
        raise ValueError(f"Unknown preset {name!r}. Available: {sorted(PRESETS)}") from None


def _require_number(payload: Dict[str, Any], key: str) -> float:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _labels_override(payload: Dict[str, Any], key: str, base_dir: Path) -> Optional[Tuple[str, ...]]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string")
    path = Path(value)
    if not path.is_absolute():
        path = base_dir / path
    return tuple(load_labels(path))


def load_pipeline_config(path: Path) -> PipelineConfig:
    """
    Load a deployment config: a named preset plus a few overrides.

    Example:
        {"schema_version": 1, "preset": "size_classification", "defect_conf": 0.35}

    Label file paths are resolved relative to the config file.
    """
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pipeline config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pipeline config must be a JSON object")

    allowed = {
        "schema_version",
        "preset",
        "detection_conf",
        "defect_conf",
        "overlap_threshold",
        "size_bounds",
        "brown_spot_limit",
        "model_timeout_s",
        "max_workers",
        "target_labels",
        "detection_labels_file",
        "ripeness_labels_file",
        "defect_labels_file",
        "variety_labels_file",
        "notes",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pipeline config keys: {unknown}")

    if _require_int(payload, "schema_version") != 1:
        raise ValueError("pipeline config schema_version must be 1")
    preset = payload.get("preset", DEFAULT_PRESET)
    if not isinstance(preset, str):
        raise ValueError("preset must be a string")
    cfg = get_preset(preset)
    notes = payload.get("notes")
    if notes is not None and not isinstance(notes, str):
        raise ValueError("notes must be a string if provided")

    base_dir = path.resolve().parent
    detection = cfg.detection
    ripeness = cfg.ripeness
    defect = cfg.defect
    variety = cfg.variety

    labels = _labels_override(payload, "detection_labels_file", base_dir)
    if labels is not None:
        detection = replace(detection, labels=labels)
    labels = _labels_override(payload, "ripeness_labels_file", base_dir)
    if labels is not None:
        ripeness = replace(ripeness, labels=labels)
    labels = _labels_override(payload, "defect_labels_file", base_dir)
    if labels is not None:
        defect = replace(defect, labels=labels)
    labels = _labels_override(payload, "variety_labels_file", base_dir)
    if labels is not None:
        if variety is None:
            raise ValueError(f"preset {preset!r} has no variety model to relabel")
        variety = replace(variety, labels=labels)

    if "detection_conf" in payload:
        detection = replace(detection, conf_threshold=_require_number(payload, "detection_conf"))
    if "defect_conf" in payload:
        defect = replace(defect, conf_threshold=_require_number(payload, "defect_conf"))

    overrides: Dict[str, Any] = {}
    if "overlap_threshold" in payload:
        overrides["overlap_threshold"] = _require_number(payload, "overlap_threshold")
    if "size_bounds" in payload:
        bounds = payload["size_bounds"]
        if not isinstance(bounds, list) or any(isinstance(b, bool) or not isinstance(b, (int, float)) for b in bounds):
            raise ValueError("size_bounds must be a list of numbers")
        overrides["size_table"] = SizeTable(tuple(bounds))
    if "brown_spot_limit" in payload:
        overrides["decision"] = replace(cfg.decision, brown_spot_limit=_require_int(payload, "brown_spot_limit"))
    if "model_timeout_s" in payload:
        overrides["model_timeout_s"] = None if payload["model_timeout_s"] is None else _require_number(payload, "model_timeout_s")
    if "max_workers" in payload:
        overrides["max_workers"] = _require_int(payload, "max_workers")
    if "target_labels" in payload:
        targets = payload["target_labels"]
        if not isinstance(targets, list) or not all(isinstance(t, str) for t in targets):
            raise ValueError("target_labels must be a list of strings")
        overrides["target_labels"] = tuple(targets)

    return replace(
        cfg,
        detection=detection,
        ripeness=ripeness,
        defect=defect,
        variety=variety,
        **overrides,
    )
