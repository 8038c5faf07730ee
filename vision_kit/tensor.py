from __future__ import annotations

import numpy as np


def encode_chw(image_rgb: np.ndarray) -> np.ndarray:
    """
    Encode an N x N RGB uint8 image as a float32 (3, N, N) array with values channel / 255.0.

    No resizing happens here; crop, resize or letterbox first.
    """
    if image_rgb is None or not hasattr(image_rgb, "shape"):
        raise TypeError("image_rgb must be a NumPy array (RGB).")
    if image_rgb.ndim != 3 or image_rgb.shape[2] != 3:
        raise ValueError(f"Expected image shape (N, N, 3), got {getattr(image_rgb, 'shape', None)}")
    h, w = image_rgb.shape[:2]
    if h != w:
        raise ValueError(f"Tensor encoder expects a square image, got {w}x{h}")

    chw = np.transpose(image_rgb.astype(np.float32) / 255.0, (2, 0, 1))
    return np.ascontiguousarray(chw)


def to_blob(image_rgb: np.ndarray) -> np.ndarray:
    # (3, N, N) -> (1, 3, N, N)
    return encode_chw(image_rgb)[None, ...]
