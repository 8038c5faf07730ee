from __future__ import annotations

from typing import Sequence

import numpy as np

from .types import ClassificationResult


def softmax(logits: np.ndarray) -> np.ndarray:
    z = np.asarray(logits, dtype=np.float64).reshape(-1)
    z = z - np.max(z)
    e = np.exp(z)
    return e / e.sum()


def rank_classification(
    output: np.ndarray,
    labels: Sequence[str],
    *,
    apply_softmax: bool = True,
) -> ClassificationResult:
    """
    Turn a (1, C) or (C,) classifier output into a ranked ClassificationResult.

    Args:
        output: raw model output for a single image
        labels: ordered label set; index i in the output is labels[i]
        apply_softmax: False when the export already ends in a softmax layer;
            the probabilities are then only renormalized to sum to 1
    """
    p = np.asarray(output)
    if p.ndim == 2:
        if p.shape[0] != 1:
            raise ValueError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
        p = p[0]
    if p.ndim != 1:
        raise ValueError(f"Unsupported classifier output shape: {np.asarray(output).shape}")
    if p.shape[0] != len(labels):
        raise ValueError(f"Classifier produced {p.shape[0]} scores for {len(labels)} labels")
    p = p.astype(np.float64)
    if not np.all(np.isfinite(p)):
        raise ValueError("Classifier output contains NaN or inf")

    if apply_softmax:
        probs = softmax(p)
    else:
        probs = np.clip(p, 0.0, None)
        total = probs.sum()
        if total <= 0:
            raise ValueError("Classifier probabilities sum to zero")
        probs = probs / total

    order = np.argsort(-probs, kind="stable")
    ranked = tuple((str(labels[i]), float(probs[i])) for i in order)
    return ClassificationResult(ranked=ranked)
