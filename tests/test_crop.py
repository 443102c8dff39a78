from __future__ import annotations

from pathlib import Path
import sys

import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from faceoff.errors import DegenerateCrop
from faceoff.face.crop import compute_crop_rect
from faceoff.types import CropRect, DetectedFace


def _face(x, y, w, h, conf=0.9):
    return DetectedFace(conf, float(x), float(y), float(w), float(h))


def test_centered_face_gets_padded_square():
    rect = compute_crop_rect(_face(192, 172, 256, 256), 640, 480, 1.4)
    # side 358.4 around (320, 300)
    assert rect == CropRect(140, 120, 358, 358)


def test_uses_the_longer_side():
    rect = compute_crop_rect(_face(300, 200, 40, 100), 640, 480, 1.0)
    assert rect.width == rect.height == 100
    assert rect.x == 270 and rect.y == 200


def test_top_left_overflow_shifts_the_square_inward():
    rect = compute_crop_rect(_face(0, 0, 100, 100), 640, 480, 1.4)
    assert rect == CropRect(0, 0, 140, 140)


def test_right_edge_overflow_shifts_left():
    rect = compute_crop_rect(_face(560, 0, 80, 80), 640, 480, 1.4)
    assert rect == CropRect(528, 0, 112, 112)


def test_crop_larger_than_image_is_clamped_to_the_image():
    rect = compute_crop_rect(_face(10, 10, 80, 80), 100, 100, 1.4)
    assert rect == CropRect(0, 0, 100, 100)


def test_crop_always_lies_inside_the_image():
    rng = np.random.default_rng(11)
    img_w, img_h = 320, 200
    for _ in range(200):
        w = float(rng.uniform(2, 150))
        h = float(rng.uniform(2, 150))
        x = float(rng.uniform(0, img_w - w)) if w < img_w else 0.0
        y = float(rng.uniform(0, img_h - h)) if h < img_h else 0.0
        rect = compute_crop_rect(_face(x, y, w, h), img_w, img_h, float(rng.uniform(1.0, 2.0)))
        assert rect.x >= 0 and rect.y >= 0
        assert rect.width > 0 and rect.height > 0
        assert rect.x + rect.width <= img_w
        assert rect.y + rect.height <= img_h


@pytest.mark.parametrize("w, h", [(0.0, 0.0), (0.5, 0.5)])
def test_collapsed_crop_raises(w, h):
    with pytest.raises(DegenerateCrop):
        compute_crop_rect(_face(10, 10, w, h), 640, 480, 1.4)


def test_tight_crop_is_the_face_box_intersected_with_the_image():
    assert compute_crop_rect(_face(10.7, 20.2, 30.5, 40.9), 640, 480, None) == CropRect(10, 20, 30, 40)
    assert compute_crop_rect(_face(-10, 5, 50, 20), 640, 480, None) == CropRect(0, 5, 40, 20)


def test_tight_crop_outside_the_image_raises():
    with pytest.raises(DegenerateCrop):
        compute_crop_rect(_face(700, 10, 20, 20), 640, 480, None)
