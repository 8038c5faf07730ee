from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .nms import NMSConfig, containment_nms
from .types import Box, Detection


@dataclass(frozen=True)
class DecodeConfig:
    """
    Thresholds for decoding a detection-style model output.
    """
    conf_threshold: float = 0.25
    overlap_threshold: float = 0.45
    max_detections: int = 300

    def __post_init__(self) -> None:
        if not (0.0 <= self.conf_threshold <= 1.0):
            raise ValueError("conf_threshold must be within [0, 1]")
        if not (0.0 <= self.overlap_threshold <= 1.0):
            raise ValueError("overlap_threshold must be within [0, 1]")
        if self.max_detections < 1:
            raise ValueError("max_detections must be >= 1")


@dataclass(frozen=True)
class Geometry:
    """
    Where the model input came from: letterbox scale/padding plus the crop offset
    of the analyzed region inside the original image.
    """
    scale: float = 1.0
    pad_x: float = 0.0
    pad_y: float = 0.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def __post_init__(self) -> None:
        if self.scale <= 0:
            raise ValueError("scale must be > 0")


class DetectionDecoder:
    """
    Decoder for channel-first detection heads shaped (1, 4 + C, A):

    - rows 0..3: cx, cy, w, h in letterboxed model space
    - rows 4..4+C: per-class confidence for each of the A candidates

    Rows beyond 4 + C (extra heads some exports append) are ignored.
    """

    def __init__(self, cfg: DecodeConfig):
        self.cfg = cfg

    def process(
        self,
        preds: np.ndarray,
        labels: Sequence[str],
        geometry: Geometry = Geometry(),
    ) -> List[Detection]:
        """
        Convert raw model output into detections in original image coordinates.

        Args:
            preds: model output for a single image
            labels: ordered label set of the model (length C)
            geometry: letterbox scale/pad and crop offset used to build the input
        """

        boxes_xyxy, scores, class_ids = self._decode(preds, len(labels))
        if boxes_xyxy.size == 0:
            return []

        # Filter by score (strictly above threshold)
        keep = scores > self.cfg.conf_threshold
        boxes_xyxy, scores, class_ids = boxes_xyxy[keep], scores[keep], class_ids[keep]
        if boxes_xyxy.size == 0:
            return []

        boxes_xyxy = self._scale_boxes(boxes_xyxy, geometry)

        keep_idx = containment_nms(
            boxes_xyxy,
            scores,
            NMSConfig(overlap_threshold=self.cfg.overlap_threshold, max_detections=self.cfg.max_detections),
        )
        boxes_xyxy, scores, class_ids = boxes_xyxy[keep_idx], scores[keep_idx], class_ids[keep_idx]

        return [
            Detection(
                label=str(labels[int(cls_id)]),
                confidence=float(score),
                box=Box.from_xyxy(x1, y1, x2, y2),
                class_id=int(cls_id),
            )
            for (x1, y1, x2, y2), score, cls_id in zip(boxes_xyxy, scores, class_ids)
        ]

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _decode(self, preds: np.ndarray, num_classes: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Split a (1, 4 + C, A) head into xyxy boxes (model space), best score and class id per anchor.
        """

        if num_classes < 1:
            raise ValueError("At least one label is required to decode detections.")

        p = np.asarray(preds, dtype=np.float32)
        if p.ndim == 3:
            if p.shape[0] != 1:
                raise ValueError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
            p = p[0]
        if p.ndim != 2:
            raise ValueError(f"Unsupported detection output shape: {np.asarray(preds).shape}")
        if p.shape[0] < 4 + num_classes:
            raise ValueError(
                f"Detection output has {p.shape[0]} rows, expected at least {4 + num_classes} "
                f"(4 box rows + {num_classes} classes)."
            )
        if p.shape[1] == 0:
            empty = np.empty((0,), dtype=np.float32)
            return np.empty((0, 4), dtype=np.float32), empty, empty.astype(np.int64)

        boxes = p[0:4, :].T  # (A, 4) as cx, cy, w, h
        class_scores = p[4 : 4 + num_classes, :]
        class_ids = np.argmax(class_scores, axis=0)
        scores = class_scores[class_ids, np.arange(class_scores.shape[1])]

        # Convert cxcywh -> xyxy
        cx, cy, w_box, h_box = boxes.T
        x1 = cx - w_box / 2
        y1 = cy - h_box / 2
        x2 = cx + w_box / 2
        y2 = cy + h_box / 2
        boxes_xyxy = np.stack([x1, y1, x2, y2], axis=1)

        return boxes_xyxy, scores, class_ids

    def _scale_boxes(self, boxes: np.ndarray, geometry: Geometry) -> np.ndarray:
        """
        Map boxes from letterboxed model space to original image space.
        """

        out = boxes.astype(np.float64, copy=True)
        out[:, [0, 2]] = (out[:, [0, 2]] - geometry.pad_x) / geometry.scale + geometry.offset_x
        out[:, [1, 3]] = (out[:, [1, 3]] - geometry.pad_y) / geometry.scale + geometry.offset_y
        return out
