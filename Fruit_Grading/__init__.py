"""
Fruit grading layer built on top of `vision_kit`.

Model runtime stays in `vision_kit/`; this package owns the grading semantics:
- labels / display names
- presets + deployment config
- decision rules and size buckets
- the inference orchestrator (GradingPipeline)
- batch evaluation, reporting and the CLI runner
"""

from __future__ import annotations

from .config import PRESETS, ModelSpec, PipelineConfig, get_preset, load_pipeline_config
from .decision import Decision, DecisionConfig, GradeDecision, decide, tally_defects
from .errors import AnalysisCancelled, ConfigurationError, GradingError, InvalidInput, ModelInvocationFailure, ModelTimeout
from .labels import DefectLabel, RipenessLabel, SizeBucket
from .orchestrator import GradingPipeline, load_handles
from .result import PassTimings, PipelineResult
from .size import SizeTable, estimate_size

__all__ = [
    "PRESETS",
    "ModelSpec",
    "PipelineConfig",
    "get_preset",
    "load_pipeline_config",
    "Decision",
    "DecisionConfig",
    "GradeDecision",
    "decide",
    "tally_defects",
    "AnalysisCancelled",
    "ConfigurationError",
    "GradingError",
    "InvalidInput",
    "ModelInvocationFailure",
    "ModelTimeout",
    "DefectLabel",
    "RipenessLabel",
    "SizeBucket",
    "GradingPipeline",
    "load_handles",
    "PassTimings",
    "PipelineResult",
    "SizeTable",
    "estimate_size",
]
