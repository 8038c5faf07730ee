from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from vision_kit.letterbox import check_image

# All three channels below this count as a dark (rot / bruise) pixel.
DARK_PIXEL_MAX = 60


@dataclass(frozen=True)
class ImageFeatures:
    mean_r: float
    mean_g: float
    mean_b: float
    edge_density: float  # % of pixels on a Canny edge
    dark_blob_ratio: float  # % of pixels darker than DARK_PIXEL_MAX on every channel


def compute_features(image_rgb: np.ndarray, *, canny_low: int = 50, canny_high: int = 150) -> ImageFeatures:
    w, h = check_image(image_rgb)
    total = float(w * h)
    img = np.ascontiguousarray(image_rgb, dtype=np.uint8)

    means = img.reshape(-1, 3).mean(axis=0)
    gray = cv2.cvtColor(img, cv2.COLOR_RGB2GRAY)
    edges = cv2.Canny(gray, canny_low, canny_high)
    dark = np.all(img < DARK_PIXEL_MAX, axis=2)

    return ImageFeatures(
        mean_r=float(means[0]),
        mean_g=float(means[1]),
        mean_b=float(means[2]),
        edge_density=float(np.count_nonzero(edges)) / total * 100.0,
        dark_blob_ratio=float(np.count_nonzero(dark)) / total * 100.0,
    )
