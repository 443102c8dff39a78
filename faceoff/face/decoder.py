from __future__ import annotations

from typing import List, Sequence, Tuple, Union

import numpy as np

from faceoff import config
from faceoff.errors import InferenceFailure
from faceoff.face.anchors import AnchorGrid
from faceoff.types import Anchor, DetectedFace

AnchorsLike = Union[AnchorGrid, np.ndarray, Sequence[Anchor]]


def _as_anchor_array(anchors: AnchorsLike) -> np.ndarray:
    if isinstance(anchors, AnchorGrid):
        return anchors.array
    if isinstance(anchors, np.ndarray):
        return anchors.reshape(-1, 4)
    return np.asarray([(a.center_x, a.center_y, a.width, a.height) for a in anchors], dtype=np.float64).reshape(-1, 4)


def _as_rows(arr: np.ndarray, cols: int, name: str) -> np.ndarray:
    """Accept (1, N, cols) or (N, cols) model outputs."""
    a = np.asarray(arr, dtype=np.float64)
    if a.ndim == 3 and a.shape[0] == 1:
        a = a[0]
    if a.ndim != 2 or a.shape[1] != cols:
        raise InferenceFailure(f"{name} output must be (N, {cols}) or (1, N, {cols}), got {tuple(np.shape(arr))}")
    return a


def face_probabilities(scores: np.ndarray) -> np.ndarray:
    """Two-logit (background, face) softmax, evaluated stably per row.

    A +inf face logit against a background that is not +inf or NaN gives 1.0;
    any other non-finite result gives 0.0.
    """
    logits = np.asarray(scores, dtype=np.float64)
    with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
        shifted = logits - np.max(logits, axis=1, keepdims=True)
        exp = np.exp(shifted)
        denom = np.sum(exp, axis=1)
        p = np.where(denom > 0, exp[:, 1] / denom, 0.0)
    p = np.where(np.isfinite(p), p, 0.0)
    bg = logits[:, 0]
    face_wins = np.isposinf(logits[:, 1]) & ~np.isposinf(bg) & ~np.isnan(bg)
    return np.where(face_wins, 1.0, p)


def decode(
    regression: np.ndarray,
    scores: np.ndarray,
    anchors: AnchorsLike,
    confidence_threshold: float,
    input_size: Tuple[int, int] = config.DETECTOR_INPUT_SIZE,
    variances: Tuple[float, float, float, float] = config.DETECTOR_VARIANCES,
    min_box_size: float = config.DETECTOR_MIN_BOX_SIZE,
    scores_are_probabilities: bool = False,
) -> List[DetectedFace]:
    """Turn raw per-anchor outputs into candidate faces.

    Args:
        regression: (N, 4) offsets (dx, dy, dw, dh) per anchor.
        scores: (N, 2) logits (background, face) per anchor; already-softmaxed
            probabilities if `scores_are_probabilities`.
        anchors: the detector's anchor grid; row i pairs with anchor i.
        confidence_threshold: candidates with face probability below this are skipped.
        input_size: detector input (w, h) in pixels.
        variances: (v0, v1, v2, v3) the model was trained with.
        min_box_size: clamped boxes narrower or shorter than this (px) are dropped.

    Returns:
        Faces in anchor order, in detector-input pixel coordinates.
    """
    anc = _as_anchor_array(anchors)
    reg = _as_rows(regression, 4, "regression")
    sc = _as_rows(scores, 2, "score")
    n = int(anc.shape[0])
    if reg.shape[0] != n or sc.shape[0] != n:
        raise InferenceFailure(
            f"output rows do not match anchors: regression={reg.shape[0]}, scores={sc.shape[0]}, anchors={n}"
        )

    if scores_are_probabilities:
        probs = np.where(np.isfinite(sc[:, 1]), sc[:, 1], 0.0)
    else:
        probs = face_probabilities(sc)

    keep = probs >= float(confidence_threshold)
    if not np.any(keep):
        return []

    in_w, in_h = float(input_size[0]), float(input_size[1])
    v0, v1, v2, v3 = [float(v) for v in variances]

    a = anc[keep]
    r = reg[keep]
    p = probs[keep]
    idx = np.nonzero(keep)[0]

    with np.errstate(over="ignore", invalid="ignore"):
        cx = a[:, 0] + r[:, 0] * v0 * a[:, 2]
        cy = a[:, 1] + r[:, 1] * v1 * a[:, 3]
        bw = np.exp(r[:, 2] * v2) * a[:, 2]
        bh = np.exp(r[:, 3] * v3) * a[:, 3]

        x1 = np.clip((cx - bw / 2.0) * in_w, 0.0, in_w)
        y1 = np.clip((cy - bh / 2.0) * in_h, 0.0, in_h)
        x2 = np.clip((cx + bw / 2.0) * in_w, 0.0, in_w)
        y2 = np.clip((cy + bh / 2.0) * in_h, 0.0, in_h)

    out: List[DetectedFace] = []
    min_size = float(min_box_size)
    for j in range(int(idx.shape[0])):
        box = (x1[j], y1[j], x2[j], y2[j])
        if not all(np.isfinite(v) for v in box):
            continue
        w = float(x2[j] - x1[j])
        h = float(y2[j] - y1[j])
        if w < min_size or h < min_size or w <= 0.0 or h <= 0.0:
            continue
        conf = float(min(1.0, max(0.0, p[j])))
        out.append(DetectedFace(confidence=conf, x=float(x1[j]), y=float(y1[j]), width=w, height=h))
    return out
