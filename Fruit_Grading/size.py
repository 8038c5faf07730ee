from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Tuple

from .labels import SizeBucket

_BUCKETS = (SizeBucket.SMALL, SizeBucket.MEDIUM, SizeBucket.LARGE, SizeBucket.EXTRA_LARGE)


@dataclass(frozen=True)
class SizeTable:
    """
    Inclusive lower bounds (pixel area of the fruit box) for small / medium / large / extra large.
    """

    bounds: Tuple[float, float, float, float] = (0.0, 50000.0, 100000.0, 150000.0)

    def __post_init__(self) -> None:
        bounds = tuple(float(b) for b in self.bounds)
        if len(bounds) != len(_BUCKETS):
            raise ValueError(f"size table needs {len(_BUCKETS)} bounds, got {len(bounds)}")
        if bounds[0] != 0.0:
            raise ValueError("first size bound must be 0")
        if any(b >= nxt for b, nxt in zip(bounds, bounds[1:])):
            raise ValueError(f"size bounds must be strictly ascending, got {bounds}")
        object.__setattr__(self, "bounds", bounds)


def estimate_size(area: float, table: SizeTable = SizeTable()) -> SizeBucket:
    """
    Bucket a pixel area; an area exactly on a bound belongs to the upper bucket.
    """
    if area < 0:
        raise ValueError(f"area must be >= 0, got {area}")
    idx = bisect_right(table.bounds, float(area)) - 1
    return _BUCKETS[idx]
