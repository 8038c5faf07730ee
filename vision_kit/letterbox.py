from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np


class InvalidInput(ValueError):
    """Raised when an image cannot be transformed (empty or malformed array)."""


@dataclass(frozen=True)
class LetterboxResult:
    image: np.ndarray
    scale: float
    pad_x: int
    pad_y: int

    def to_original(self, x: float, y: float) -> Tuple[float, float]:
        """
        Map a point from letterboxed (model) space back to source image space.
        """
        return (x - self.pad_x) / self.scale, (y - self.pad_y) / self.scale

    def to_model(self, x: float, y: float) -> Tuple[float, float]:
        return x * self.scale + self.pad_x, y * self.scale + self.pad_y


def check_image(image: np.ndarray) -> Tuple[int, int]:
    """
    Validate an (H, W, 3) array and return (width, height).
    """
    if image is None or not hasattr(image, "shape"):
        raise InvalidInput("image must be a NumPy array (RGB).")
    if image.ndim != 3 or image.shape[2] != 3:
        raise InvalidInput(f"Expected image shape (H, W, 3), got {getattr(image, 'shape', None)}")
    h, w = image.shape[:2]
    if w == 0 or h == 0:
        raise InvalidInput(f"Image has zero width or height: {(w, h)}")
    return int(w), int(h)


def letterbox(
    image: np.ndarray,
    size: int = 640,
    color: Tuple[int, int, int] = (114, 114, 114),
) -> LetterboxResult:
    """
    Aspect-preserving resize into a `size` x `size` canvas, centered with constant padding.

    Returns:
        LetterboxResult with the padded image, the scale applied to the source, and
        the left/top padding (floor of half the leftover on each axis).
    """
    if size <= 0:
        raise ValueError("size must be > 0")
    w, h = check_image(image)

    scale = min(size / w, size / h)
    resized_w = max(1, int(round(w * scale)))
    resized_h = max(1, int(round(h * scale)))
    pad_x = (size - resized_w) // 2
    pad_y = (size - resized_h) // 2

    if (w, h) != (resized_w, resized_h):
        resized = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)
    else:
        resized = image

    canvas = np.empty((size, size, 3), dtype=np.uint8)
    canvas[:, :] = np.asarray(color, dtype=np.uint8)
    canvas[pad_y : pad_y + resized_h, pad_x : pad_x + resized_w] = resized

    return LetterboxResult(image=canvas, scale=float(scale), pad_x=int(pad_x), pad_y=int(pad_y))


def resize_square(image: np.ndarray, size: int) -> np.ndarray:
    """
    Stretch-resize to `size` x `size` (classification inputs do not keep aspect).
    """
    if size <= 0:
        raise ValueError("size must be > 0")
    w, h = check_image(image)
    if (w, h) == (size, size):
        return image
    return cv2.resize(image, (size, size), interpolation=cv2.INTER_LINEAR)

