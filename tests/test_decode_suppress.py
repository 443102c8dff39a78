from __future__ import annotations

from pathlib import Path
import sys

import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from faceoff.errors import InferenceFailure
from faceoff.face import decoder, nms
from faceoff.face.anchors import AnchorGrid
from faceoff.types import Anchor, DetectedFace
from faceoff.utils.math import iou_xywh


def _one_anchor_outputs(face_margin: float, offsets=(0.0, 0.0, 0.0, 0.0)):
    scores = np.array([[0.0, face_margin]], dtype=np.float32)
    boxes = np.array([offsets], dtype=np.float32)
    return boxes, scores


def test_zero_offsets_decode_to_the_anchor_box():
    anchors = [Anchor(0.5, 0.5, 0.25, 0.5)]
    boxes, scores = _one_anchor_outputs(5.0)

    faces = decoder.decode(boxes, scores, anchors, 0.5, input_size=(320, 240))

    assert len(faces) == 1
    f = faces[0]
    assert f.x == pytest.approx(120.0)
    assert f.y == pytest.approx(60.0)
    assert f.width == pytest.approx(80.0)
    assert f.height == pytest.approx(120.0)
    assert f.confidence == pytest.approx(1.0 / (1.0 + np.exp(-5.0)))


def test_offsets_use_variances():
    anchors = [Anchor(0.5, 0.5, 0.2, 0.2)]
    # dx=1 -> center shifts by 1 * 0.1 * 0.2 = 0.02; dw=1 -> width * exp(0.2)
    boxes, scores = _one_anchor_outputs(5.0, offsets=(1.0, 0.0, 1.0, 0.0))

    f = decoder.decode(boxes, scores, anchors, 0.5, input_size=(100, 100))[0]

    w = 0.2 * np.exp(0.2) * 100
    cx = (0.5 + 0.02) * 100
    assert f.width == pytest.approx(w)
    assert f.x == pytest.approx(cx - w / 2)
    assert f.height == pytest.approx(20.0)


def test_below_threshold_is_skipped():
    anchors = [Anchor(0.5, 0.5, 0.25, 0.25)]
    boxes, scores = _one_anchor_outputs(0.0)  # p = 0.5
    assert decoder.decode(boxes, scores, anchors, 0.51, input_size=(320, 240)) == []
    assert len(decoder.decode(boxes, scores, anchors, 0.5, input_size=(320, 240))) == 1


def test_boxes_are_clamped_to_the_input():
    anchors = [Anchor(0.0, 0.0, 0.5, 0.5)]
    boxes, scores = _one_anchor_outputs(5.0)

    f = decoder.decode(boxes, scores, anchors, 0.5, input_size=(320, 240))[0]

    assert f.x == 0.0 and f.y == 0.0
    assert f.width == pytest.approx(80.0)
    assert f.height == pytest.approx(60.0)


def test_degenerate_boxes_are_rejected():
    anchors = [Anchor(0.5, 0.5, 0.001, 0.5)]  # 0.32 px wide at 320
    boxes, scores = _one_anchor_outputs(5.0)
    assert decoder.decode(boxes, scores, anchors, 0.5, input_size=(320, 240), min_box_size=1.0) == []


def test_huge_logits_do_not_produce_nan():
    anchors = [Anchor(0.5, 0.5, 0.25, 0.25)]
    scores = np.array([[-1e4, 1e4]], dtype=np.float32)
    boxes = np.zeros((1, 4), dtype=np.float32)
    f = decoder.decode(boxes, scores, anchors, 0.5, input_size=(320, 240))[0]
    assert f.confidence == pytest.approx(1.0)


def test_row_mismatch_is_an_inference_failure():
    grid = AnchorGrid(64, 64, [32], [[16.0]])
    with pytest.raises(InferenceFailure):
        decoder.decode(np.zeros((1, 3, 4)), np.zeros((1, 3, 2)), grid, 0.5, input_size=(64, 64))


def test_detections_are_monotonic_in_threshold():
    rng = np.random.default_rng(7)
    grid = AnchorGrid(320, 240, [16, 32], [[16.0, 32.0], [64.0]])
    n = len(grid)
    scores = rng.normal(0.0, 3.0, size=(n, 2)).astype(np.float32)
    boxes = rng.normal(0.0, 1.0, size=(n, 4)).astype(np.float32)

    def keyed(t):
        faces = decoder.decode(boxes, scores, grid, t, input_size=(320, 240))
        return {tuple(round(v, 4) for v in f.xywh) for f in faces}

    low, high = keyed(0.3), keyed(0.8)
    assert high <= low
    assert len(low) > len(high) > 0


def test_iou_scenario():
    assert iou_xywh((0, 0, 10, 10), (5, 5, 10, 10)) == pytest.approx(25.0 / 175.0)
    assert iou_xywh((0, 0, 0, 0), (0, 0, 0, 0)) == 0.0


def test_suppress_keeps_highest_and_sorts_descending():
    a = DetectedFace(0.8, 0, 0, 10, 10)
    b = DetectedFace(0.9, 1, 1, 10, 10)  # overlaps a heavily
    c = DetectedFace(0.7, 50, 50, 10, 10)

    kept = nms.suppress([a, b, c], 0.3)

    assert kept == [b, c]


def test_suppress_ties_keep_input_order():
    a = DetectedFace(0.9, 0, 0, 10, 10)
    b = DetectedFace(0.9, 1, 0, 10, 10)
    assert nms.suppress([a, b], 0.3) == [a]
    assert nms.suppress([b, a], 0.3) == [b]


def test_suppress_threshold_is_exclusive():
    a = DetectedFace(0.9, 0, 0, 10, 10)
    b = DetectedFace(0.8, 5, 5, 10, 10)  # IoU = 1/7
    assert nms.suppress([a, b], 25.0 / 175.0) == [a, b]
    assert nms.suppress([a, b], 0.1) == [a]


def test_suppress_output_has_no_overlapping_pairs():
    rng = np.random.default_rng(3)
    faces = [
        DetectedFace(float(rng.uniform(0.5, 1.0)), float(x), float(y), float(w), float(w))
        for x, y, w in zip(rng.uniform(0, 200, 60), rng.uniform(0, 200, 60), rng.uniform(10, 60, 60))
    ]
    thr = 0.3

    kept = nms.suppress(faces, thr)

    assert kept
    for f in kept:
        assert f in faces
    for i in range(len(kept)):
        for j in range(i + 1, len(kept)):
            assert iou_xywh(kept[i].xywh, kept[j].xywh) <= thr
    confs = [f.confidence for f in kept]
    assert confs == sorted(confs, reverse=True)


def test_rescale_round_trip():
    f = DetectedFace(0.9, 12.5, 30.0, 40.0, 55.0)
    sx, sy = 640 / 320, 480 / 240

    up = nms.rescale([f], sx, sy, 640, 480)[0]
    back = nms.rescale([up], 1 / sx, 1 / sy, 320, 240)[0]

    assert up.x == pytest.approx(25.0)
    assert up.height == pytest.approx(110.0)
    for attr in ("x", "y", "width", "height"):
        assert getattr(back, attr) == pytest.approx(getattr(f, attr))
    assert back.confidence == f.confidence


def test_rescale_keeps_boxes_inside_the_image():
    f = DetectedFace(0.9, 300.0, 200.0, 20.0, 40.0)
    out = nms.rescale([f], 2.0, 2.0, 630, 470)[0]
    assert out.x + out.width <= 630
    assert out.y + out.height <= 470
    assert out.width > 0 and out.height > 0


def test_infinite_face_logit_is_a_certain_face():
    probs = decoder.face_probabilities(np.array([[0.0, np.inf], [np.inf, 0.0], [-np.inf, np.inf], [np.nan, np.inf]]))
    np.testing.assert_allclose(probs, [1.0, 0.0, 1.0, 0.0])

    anchors = [Anchor(0.5, 0.5, 0.25, 0.25)]
    scores = np.array([[0.0, np.inf]], dtype=np.float32)
    faces = decoder.decode(np.zeros((1, 4), dtype=np.float32), scores, anchors, 0.7, input_size=(320, 240))
    assert len(faces) == 1
    assert faces[0].confidence == 1.0
