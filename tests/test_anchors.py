from __future__ import annotations

from pathlib import Path
import sys

import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from faceoff import config
from faceoff.face import anchors
from faceoff.face.anchors import AnchorGrid


def test_rfb320_anchor_count_and_reproducible_order():
    a1 = anchors.generate(320, 240, config.DETECTOR_STRIDES, config.DETECTOR_BOX_SIZES)
    a2 = anchors.generate(320, 240, config.DETECTOR_STRIDES, config.DETECTOR_BOX_SIZES)

    # 40x30*3 + 20x15*2 + 10x8*2 + 5x4*3
    assert len(a1) == 3600 + 600 + 160 + 60 == 4420
    assert a1 == a2

    grid = AnchorGrid(320, 240, config.DETECTOR_STRIDES, config.DETECTOR_BOX_SIZES)
    assert len(grid) == 4420
    assert list(grid.anchors) == a1


def test_first_cell_emits_box_sizes_in_listed_order():
    a = anchors.generate(320, 240, [8], [[10.0, 16.0, 24.0]])
    first = a[:3]
    for anc, size in zip(first, (10.0, 16.0, 24.0)):
        assert anc.center_x == pytest.approx(0.5 / 40)
        assert anc.center_y == pytest.approx(0.5 / 30)
        assert anc.width == pytest.approx(size / 320)
        assert anc.height == pytest.approx(size / 240)

    # row-major: the 4th anchor is the next cell to the right
    assert a[3].center_x == pytest.approx(1.5 / 40)
    assert a[3].center_y == pytest.approx(0.5 / 30)
    # first anchor of row 2 comes after 40 cells * 3 sizes
    assert a[120].center_x == pytest.approx(0.5 / 40)
    assert a[120].center_y == pytest.approx(1.5 / 30)


def test_feature_map_size_rounds_up():
    # ceil(100 / 64) = 2, ceil(50 / 64) = 1
    a = anchors.generate(100, 50, [64], [[32.0]])
    assert len(a) == 2
    assert a[0].center_x == pytest.approx(0.25)
    assert a[1].center_x == pytest.approx(0.75)
    assert a[0].center_y == pytest.approx(0.5)


def test_strides_are_emitted_in_configured_order():
    coarse_first = anchors.generate(64, 64, [32, 16], [[20.0], [10.0]])
    assert coarse_first[0].width == pytest.approx(20.0 / 64)
    assert coarse_first[4].width == pytest.approx(10.0 / 64)
    assert len(coarse_first) == 4 + 16


def test_grid_array_is_read_only():
    grid = AnchorGrid(320, 240, config.DETECTOR_STRIDES, config.DETECTOR_BOX_SIZES)
    with pytest.raises(ValueError):
        grid.array[0, 0] = 1.0
    assert grid.array.shape == (4420, 4)
    assert np.all(grid.array[:, 2:] > 0)


@pytest.mark.parametrize(
    "strides, sizes",
    [
        ([8, 16], [[10.0]]),
        ([0], [[10.0]]),
        ([8], [[]]),
        ([8], [[-1.0]]),
    ],
)
def test_invalid_configuration_is_rejected(strides, sizes):
    with pytest.raises(ValueError):
        AnchorGrid(320, 240, strides, sizes)
