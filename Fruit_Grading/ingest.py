from __future__ import annotations

from pathlib import Path
from typing import List, Sequence, Union

import cv2
import numpy as np

IMAGE_EXTS = ("jpg", "jpeg", "png")


def read_image_rgb(path: Union[str, Path]) -> np.ndarray:
    img = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {path}")
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


def write_image_rgb(path: Union[str, Path], image_rgb: np.ndarray) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    ok = cv2.imwrite(str(path), cv2.cvtColor(image_rgb, cv2.COLOR_RGB2BGR))
    if not ok:
        raise RuntimeError(f"Failed to write image: {path}")


def iter_image_files(
    folder: Union[str, Path],
    *,
    limit: int = 100,
    exts: Sequence[str] = IMAGE_EXTS,
    recursive: bool = False,
) -> List[Path]:
    """
    Sorted image paths in `folder`, at most `limit` of them (0 = no limit).
    """
    folder = Path(folder)
    if not folder.is_dir():
        raise FileNotFoundError(f"Image folder not found: {folder}")
    if limit < 0:
        raise ValueError("limit must be >= 0")

    wanted = {e.lstrip(".").lower() for e in exts}
    candidates = folder.rglob("*") if recursive else folder.iterdir()
    paths = sorted(p for p in candidates if p.is_file() and p.suffix.lower().lstrip(".") in wanted)
    if limit:
        paths = paths[:limit]
    return paths
