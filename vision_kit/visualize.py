from __future__ import annotations

from typing import Iterable, Sequence, Tuple

import cv2
import numpy as np

from .letterbox import check_image
from .types import Detection

Color = Tuple[int, int, int]

_FONT = cv2.FONT_HERSHEY_SIMPLEX
_TEXT_COLOR: Color = (255, 255, 255)


def _clamp_xyxy(det: Detection, w: int, h: int) -> Tuple[int, int, int, int]:
    x1, y1, x2, y2 = det.as_xyxy()
    return (
        min(max(int(round(x1)), 0), w - 1),
        min(max(int(round(y1)), 0), h - 1),
        min(max(int(round(x2)), 0), w - 1),
        min(max(int(round(y2)), 0), h - 1),
    )


def _put_tag(out: np.ndarray, text: str, x: int, y_top: int, color: Color, font_scale: float, thickness: int) -> None:
    # Filled background sized to the text, clipped to the image.
    h, w = out.shape[:2]
    (tw, th), baseline = cv2.getTextSize(text, _FONT, font_scale, thickness)
    y_bottom = min(y_top + th + baseline, h - 1)
    cv2.rectangle(out, (x, y_top), (min(x + tw, w - 1), y_bottom), color, thickness=-1)
    cv2.putText(out, text, (x, min(y_top + th, h - 1)), _FONT, font_scale, _TEXT_COLOR, thickness, cv2.LINE_AA)


def draw_detections(
    image_rgb: np.ndarray,
    detections: Iterable[Detection],
    *,
    color: Color = (255, 69, 0),
    show_score: bool = True,
    box_thickness: int = 2,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw one group of boxes (same color) on an RGB image and return a copy.

    The tag sits above the box when there is room, otherwise just inside its top edge.
    A detection with an empty label gets a box only, unless `show_score` is set.
    """
    w, h = check_image(image_rgb)
    out = np.ascontiguousarray(image_rgb.copy())

    for det in detections:
        x1, y1, x2, y2 = _clamp_xyxy(det, w, h)
        cv2.rectangle(out, (x1, y1), (x2, y2), color, thickness=box_thickness)

        parts = [det.label] if det.label else []
        if show_score:
            parts.append(f"{det.confidence:.2f}")
        if not parts:
            continue
        text = " ".join(parts)
        _, th = cv2.getTextSize(text, _FONT, font_scale, font_thickness)[0]
        y_top = y1 - th - 4
        _put_tag(out, text, x1, y_top if y_top >= 0 else y1, color, font_scale, font_thickness)

    return out


def draw_caption(
    image_rgb: np.ndarray,
    lines: Sequence[str],
    *,
    color: Color = (40, 40, 40),
    font_scale: float = 0.6,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Stack `lines` in the top-left corner (e.g. a grading summary) and return a copy.

    Hershey fonts are ASCII only; pass English text.
    """
    check_image(image_rgb)
    out = np.ascontiguousarray(image_rgb.copy())
    y = 0
    for line in lines:
        (_, th), baseline = cv2.getTextSize(line, _FONT, font_scale, font_thickness)
        _put_tag(out, line, 0, y, color, font_scale, font_thickness)
        y += th + baseline + 2
    return out
