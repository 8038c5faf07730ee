"""
Label vocabularies of the shipped models.

Model outputs are matched through these string enums. A label the enum does not
know (a retrained model with a new class, a typo in a label file) is kept as a
plain string: it never raises, it just matches no rule that names it.
"""

from __future__ import annotations

from enum import Enum
from typing import Union


class RipenessLabel(str, Enum):
    BREAKING = "breaking-stage"
    HALF_RIPE = "half-ripe-stage"
    UNHEALTHY = "un-healthy"
    RIPE = "ripe"
    RIPE_WITH_MINOR_DEFECT = "ripe_with_consumable_disease"
    UNRIPE = "unripe"


class DefectLabel(str, Enum):
    BLACK_SPOT = "black-spot"
    BROWN_SPOT = "brown-spot"
    SCAB = "scab"


class SizeBucket(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    EXTRA_LARGE = "extra_large"


# Output order of the ripeness classifier (best.onnx) in every deployment.
RIPENESS_LABELS = (
    RipenessLabel.BREAKING.value,
    RipenessLabel.HALF_RIPE.value,
    RipenessLabel.UNHEALTHY.value,
    RipenessLabel.RIPE.value,
    RipenessLabel.RIPE_WITH_MINOR_DEFECT.value,
    RipenessLabel.UNRIPE.value,
)


def parse_ripeness(label: str) -> Union[RipenessLabel, str]:
    try:
        return RipenessLabel(label)
    except ValueError:
        return label


def parse_defect(label: str) -> Union[DefectLabel, str]:
    try:
        return DefectLabel(label)
    except ValueError:
        return label
