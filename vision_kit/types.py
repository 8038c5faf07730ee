from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Box:
    """
    Axis-aligned rectangle in original image pixel coordinates.

    Stored as (x, y, width, height); width and height are never negative.
    """

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Box width/height must be >= 0, got {(self.width, self.height)}")

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> "Box":
        return cls(x=float(x1), y=float(y1), width=max(0.0, float(x2 - x1)), height=max(0.0, float(y2 - y1)))

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height

    def intersect(self, other: "Box") -> "Box":
        """
        Overlapping region of two boxes; a zero-area box when they do not touch.
        """
        ax1, ay1, ax2, ay2 = self.as_xyxy()
        bx1, by1, bx2, by2 = other.as_xyxy()
        x1 = max(ax1, bx1)
        y1 = max(ay1, by1)
        x2 = min(ax2, bx2)
        y2 = min(ay2, by2)
        if x2 <= x1 or y2 <= y1:
            return Box(x=x1, y=y1, width=0.0, height=0.0)
        return Box.from_xyxy(x1, y1, x2, y2)

    def clip_to(self, width: int, height: int) -> "Box":
        return self.intersect(Box(0.0, 0.0, float(width), float(height)))


@dataclass(frozen=True)
class Detection:
    """
    One decoded candidate: label from the producing model's label set, score, and box.
    """

    label: str
    confidence: float
    box: Box
    class_id: Optional[int] = None

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.box.as_xyxy()


@dataclass(frozen=True)
class ClassificationResult:
    """
    Softmax-ranked output of a classification-style pass.

    `ranked` is sorted by descending confidence and sums to 1.0.
    """

    ranked: Tuple[Tuple[str, float], ...]

    def __post_init__(self) -> None:
        if not self.ranked:
            raise ValueError("ClassificationResult needs at least one (label, confidence) pair")

    @property
    def top_label(self) -> str:
        return self.ranked[0][0]

    @property
    def top_confidence(self) -> float:
        return self.ranked[0][1]

    def confidence_of(self, label: str) -> float:
        for name, conf in self.ranked:
            if name == label:
                return conf
        return 0.0
