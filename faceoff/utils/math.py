from __future__ import annotations

from typing import Sequence

import numpy as np


def safe_div(num: float, denom: float, eps: float = 1e-12) -> float:
    """Divide, returning 0.0 instead of inf/nan when `denom` is ~0 or the result is not finite."""
    d = float(denom)
    if abs(d) <= eps:
        return 0.0
    out = float(num) / d
    if not np.isfinite(out):
        return 0.0
    return out


def box_area_xywh(box: Sequence[float]) -> float:
    _, _, w, h = [float(v) for v in box]
    return max(0.0, w) * max(0.0, h)


def iou_xywh(a: Sequence[float], b: Sequence[float]) -> float:
    """IoU of two (x, y, w, h) boxes.

    Union is area_a + area_b - intersection; a non-positive union yields 0.0.
    """
    ax, ay, aw, ah = [float(v) for v in a]
    bx, by, bw, bh = [float(v) for v in b]
    xx1 = max(ax, bx)
    yy1 = max(ay, by)
    xx2 = min(ax + aw, bx + bw)
    yy2 = min(ay + ah, by + bh)
    inter = max(0.0, xx2 - xx1) * max(0.0, yy2 - yy1)
    union = box_area_xywh(a) + box_area_xywh(b) - inter
    if union <= 0.0:
        return 0.0
    return safe_div(inter, union)


def clamp(v: float, lo: float, hi: float) -> float:
    if v < lo:
        return float(lo)
    if v > hi:
        return float(hi)
    return float(v)
