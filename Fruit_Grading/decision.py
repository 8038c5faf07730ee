"""
Grade decision engine.

An ordered, first-match rule table over the ripeness label and the per-label
defect counts. Rule order is significant: a pathogen always rejects, even on a
fruit that would otherwise be accepted.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, Mapping, Tuple, Union

from vision_kit.types import Detection

from .labels import DefectLabel, RipenessLabel, parse_ripeness


class Decision(str, Enum):
    ACCEPT = "Accept"
    CONDITIONAL = "Conditional"
    REJECT = "Reject"
    HOLD = "Hold"


@dataclass(frozen=True)
class DecisionConfig:
    pathogen_labels: FrozenSet[str] = field(default_factory=lambda: frozenset({DefectLabel.SCAB.value}))
    brown_spot_limit: int = 10

    def __post_init__(self) -> None:
        if self.brown_spot_limit < 1:
            raise ValueError("brown_spot_limit must be >= 1")
        object.__setattr__(self, "pathogen_labels", frozenset(str(x) for x in self.pathogen_labels))


@dataclass(frozen=True)
class GradeDecision:
    decision: Decision
    reason: str
    rule: str


def tally_defects(detections: Iterable[Detection]) -> Dict[str, int]:
    """Per-label defect counts, labels in first-seen order."""
    return dict(Counter(d.label for d in detections))


_Rule = Tuple[str, Callable[[Union[RipenessLabel, str], Mapping[str, int], DecisionConfig], bool], Decision, str]

_SELLABLE = {RipenessLabel.HALF_RIPE, RipenessLabel.RIPE, RipenessLabel.RIPE_WITH_MINOR_DEFECT}
_NEEDS_RIPENING = {RipenessLabel.UNRIPE, RipenessLabel.BREAKING}


def _count(counts: Mapping[str, int], label: DefectLabel) -> int:
    return int(counts.get(label.value, 0))


RULES: Tuple[_Rule, ...] = (
    (
        "pathogen",
        lambda r, c, cfg: any(c.get(label, 0) > 0 for label in cfg.pathogen_labels),
        Decision.REJECT,
        "pathogen detected",
    ),
    (
        "overripe_decaying",
        lambda r, c, cfg: r is RipenessLabel.UNHEALTHY
        and (_count(c, DefectLabel.BLACK_SPOT) >= 1 or _count(c, DefectLabel.BROWN_SPOT) >= 1),
        Decision.REJECT,
        "overripe and decaying",
    ),
    (
        "black_spot",
        lambda r, c, cfg: _count(c, DefectLabel.BLACK_SPOT) >= 1,
        Decision.CONDITIONAL,
        "processing-grade only",
    ),
    (
        "brown_spot_excess",
        lambda r, c, cfg: _count(c, DefectLabel.BROWN_SPOT) >= cfg.brown_spot_limit,
        Decision.CONDITIONAL,
        "excess surface spotting",
    ),
    (
        "needs_ripening",
        lambda r, c, cfg: r in _NEEDS_RIPENING,
        Decision.CONDITIONAL,
        "needs further ripening",
    ),
    (
        "sellable",
        lambda r, c, cfg: r in _SELLABLE,
        Decision.ACCEPT,
        "sellable",
    ),
    (
        "overripe",
        lambda r, c, cfg: r is RipenessLabel.UNHEALTHY,
        Decision.REJECT,
        "overripe",
    ),
)


def decide(
    ripeness_label: Union[RipenessLabel, str],
    defect_counts: Mapping[str, int],
    cfg: DecisionConfig = DecisionConfig(),
) -> GradeDecision:
    ripeness = parse_ripeness(ripeness_label) if isinstance(ripeness_label, str) else ripeness_label
    counts = {str(getattr(k, "value", k)): int(v) for k, v in defect_counts.items()}
    for name, matches, decision, reason in RULES:
        if matches(ripeness, counts, cfg):
            return GradeDecision(decision=decision, reason=reason, rule=name)
    return GradeDecision(decision=Decision.HOLD, reason="undetermined", rule="fallback")
