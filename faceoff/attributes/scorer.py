from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from faceoff import config
from faceoff.types import AgeResult, ClassificationResult
from faceoff.utils.math import safe_div


def softmax(logits: Sequence[float]) -> np.ndarray:
    """Numerically stable softmax over a 1D logit vector.

    A length-1 input gives [1.0]. Any +inf logits share the whole mass
    equally; NaN counts as -inf. If the normalizer is zero or not finite the
    result is all zeros rather than NaN.
    """
    x = np.asarray(logits, dtype=np.float64).reshape(-1)
    if x.size == 0:
        return x
    pos_inf = np.isposinf(x)
    if np.any(pos_inf):
        return pos_inf.astype(np.float64) / float(np.count_nonzero(pos_inf))
    finite = np.isfinite(x)
    if not np.any(finite):
        return np.zeros_like(x)
    shifted = np.where(finite, x - np.max(x[finite]), -np.inf)
    exp = np.exp(shifted)
    denom = float(np.sum(exp))
    if denom <= 0.0 or not np.isfinite(denom):
        return np.zeros_like(x)
    return exp / denom


def top_k(probs: Sequence[float], k: int = 1) -> List[int]:
    """Indices of the k largest probabilities; ties go to the lower index."""
    p = np.asarray(probs, dtype=np.float64).reshape(-1)
    if p.size == 0 or k <= 0:
        return []
    order = np.argsort(-p, kind="stable")
    return [int(i) for i in order[: int(min(k, p.size))]]


def argmax_label(probs: Sequence[float], labels: Sequence[str]) -> ClassificationResult:
    """Top-1 label with its probability as confidence.

    Classes beyond `labels` are reported as "class_<i>".
    """
    p = np.asarray(probs, dtype=np.float64).reshape(-1)
    if p.size == 0:
        raise ValueError("empty probability vector")
    names = [labels[i] if i < len(labels) else f"class_{i}" for i in range(int(p.size))]
    best = top_k(p, 1)[0]
    return ClassificationResult(
        label=names[best],
        confidence=_unit(p[best]),
        probabilities={names[i]: _unit(p[i]) for i in range(int(p.size))},
    )


def classify_logits(logits: Sequence[float], labels: Sequence[str]) -> ClassificationResult:
    return argmax_label(softmax(logits), labels)


def blend_age(
    bucket_ages: Sequence[float],
    probs: Sequence[float],
    correction_threshold: Optional[float] = config.AGE_CORRECTION_THRESHOLD,
    correction_factor: float = config.AGE_CORRECTION_FACTOR,
) -> AgeResult:
    """Blend the two most likely age buckets into one estimate.

    estimate = (age1 * p1 + age2 * p2) / (p1 + p2), then multiplied by
    `correction_factor` when it exceeds `correction_threshold`
    (None disables the correction). Confidence is p1, the top bucket's
    probability.
    """
    p = np.asarray(probs, dtype=np.float64).reshape(-1)
    ages = [float(a) for a in bucket_ages]
    n = min(len(ages), int(p.size))
    if n == 0:
        raise ValueError("age blending needs at least one bucket")
    p = p[:n]

    order = top_k(p, 2)
    i1 = order[0]
    p1 = float(p[i1])
    if len(order) > 1:
        i2 = order[1]
        p2 = float(p[i2])
        total = p1 + p2
        if total > 0.0:
            estimate = safe_div(ages[i1] * p1 + ages[i2] * p2, total)
        else:
            estimate = ages[i1]
    else:
        estimate = ages[i1]

    if correction_threshold is not None and estimate > float(correction_threshold):
        estimate *= float(correction_factor)
    return AgeResult(estimate=float(estimate), confidence=_unit(p1), bucket=int(i1))


def _unit(v: float) -> float:
    f = float(v)
    if not np.isfinite(f):
        return 0.0
    return min(1.0, max(0.0, f))
