from dataclasses import dataclass
import numpy as np


@dataclass
class NMSConfig:
    # Fraction of a candidate's own area that may overlap an already kept box.
    overlap_threshold: float = 0.45
    max_detections: int = 300


def containment_nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy containment suppression. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, highest score first.

    A candidate is dropped when its intersection with any kept box exceeds
    `overlap_threshold` of the candidate's own area. Unlike IoU this is asymmetric:
    a small box mostly inside a kept one goes, a partial neighbour stays.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int32)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)

    order = np.argsort(-scores, kind="stable")
    keep = []

    for i in order:
        if len(keep) >= cfg.max_detections:
            break
        if keep:
            k = np.asarray(keep)
            xx1 = np.maximum(x1[i], x1[k])
            yy1 = np.maximum(y1[i], y1[k])
            xx2 = np.minimum(x2[i], x2[k])
            yy2 = np.minimum(y2[i], y2[k])

            w = np.maximum(0.0, xx2 - xx1)
            h = np.maximum(0.0, yy2 - yy1)
            inter = w * h
            if np.any(inter > cfg.overlap_threshold * areas[i]):
                continue
        keep.append(int(i))

    return np.array(keep, dtype=np.int32)
