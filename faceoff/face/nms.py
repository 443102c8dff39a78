from __future__ import annotations

from typing import List, Sequence

from faceoff.types import DetectedFace
from faceoff.utils.math import clamp, iou_xywh


def suppress(faces: Sequence[DetectedFace], iou_threshold: float) -> List[DetectedFace]:
    """Greedy NMS.

    Candidates are visited by confidence (descending; equal confidences keep
    their input order). A candidate is kept unless its IoU with an already
    kept box exceeds `iou_threshold`. Output is confidence-descending.
    """
    if not faces:
        return []

    # sorted() is stable, so ties keep input order.
    ordered = sorted(faces, key=lambda f: f.confidence, reverse=True)
    thr = float(iou_threshold)

    keep: List[DetectedFace] = []
    for f in ordered:
        box = f.xywh
        is_dup = False
        for k in keep:
            if iou_xywh(box, k.xywh) > thr:
                is_dup = True
                break
        if not is_dup:
            keep.append(f)
    return keep


def rescale(
    faces: Sequence[DetectedFace],
    scale_x: float,
    scale_y: float,
    bound_width: float,
    bound_height: float,
) -> List[DetectedFace]:
    """Map boxes from detector-input space to original-image space.

    x and width are multiplied by `scale_x`, y and height by `scale_y`; the
    result is clamped into [0, bound_width] x [0, bound_height]. Boxes that
    collapse under clamping are dropped.
    """
    sx = float(scale_x)
    sy = float(scale_y)
    bw = float(bound_width)
    bh = float(bound_height)

    out: List[DetectedFace] = []
    for f in faces:
        x1 = clamp(f.x * sx, 0.0, bw)
        y1 = clamp(f.y * sy, 0.0, bh)
        x2 = clamp((f.x + f.width) * sx, 0.0, bw)
        y2 = clamp((f.y + f.height) * sy, 0.0, bh)
        if x2 - x1 <= 0.0 or y2 - y1 <= 0.0:
            continue
        out.append(DetectedFace(confidence=f.confidence, x=x1, y=y1, width=x2 - x1, height=y2 - y1))
    return out
