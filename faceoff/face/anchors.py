from __future__ import annotations

import math

from typing import List, Sequence, Tuple

import numpy as np

from faceoff.types import Anchor


def generate(
    input_width: int,
    input_height: int,
    strides: Sequence[int],
    box_sizes_per_stride: Sequence[Sequence[float]],
) -> List[Anchor]:
    """Generate the ordered anchor list for a multi-scale detector.

    For stride index i the feature map is ceil(W/s) x ceil(H/s). Cells are
    visited in row-major order and, within a cell, box sizes in listed order.
    The position of each anchor is the row index of the model output it
    pairs with, so `strides` must be given in the order the model was trained.
    """
    return [Anchor(*row) for row in _generate_array(input_width, input_height, strides, box_sizes_per_stride).tolist()]


def _generate_array(
    input_width: int,
    input_height: int,
    strides: Sequence[int],
    box_sizes_per_stride: Sequence[Sequence[float]],
) -> np.ndarray:
    w = int(input_width)
    h = int(input_height)
    if w <= 0 or h <= 0:
        raise ValueError(f"input size must be positive, got {input_width}x{input_height}")
    if len(strides) != len(box_sizes_per_stride):
        raise ValueError(
            f"strides ({len(strides)}) and box_sizes_per_stride ({len(box_sizes_per_stride)}) must have the same length"
        )

    rows: List[Tuple[float, float, float, float]] = []
    for stride, sizes in zip(strides, box_sizes_per_stride):
        s = int(stride)
        if s <= 0:
            raise ValueError(f"stride must be positive, got {stride}")
        if not sizes or any(float(b) <= 0 for b in sizes):
            raise ValueError(f"box sizes for stride {s} must be non-empty and positive, got {list(sizes)}")

        fm_w = int(math.ceil(w / s))
        fm_h = int(math.ceil(h / s))
        for fy in range(fm_h):
            cy = (fy + 0.5) / fm_h
            for fx in range(fm_w):
                cx = (fx + 0.5) / fm_w
                for b in sizes:
                    rows.append((cx, cy, float(b) / w, float(b) / h))

    return np.asarray(rows, dtype=np.float64).reshape(-1, 4)


class AnchorGrid:
    """Immutable anchor set for one detector configuration.

    Built once and shared read-only by every inference call (and thread).
    """

    def __init__(
        self,
        input_width: int,
        input_height: int,
        strides: Sequence[int],
        box_sizes_per_stride: Sequence[Sequence[float]],
    ):
        self.input_width = int(input_width)
        self.input_height = int(input_height)
        self.strides: Tuple[int, ...] = tuple(int(s) for s in strides)
        self.box_sizes: Tuple[Tuple[float, ...], ...] = tuple(tuple(float(b) for b in bs) for bs in box_sizes_per_stride)

        arr = _generate_array(self.input_width, self.input_height, self.strides, self.box_sizes)
        arr.setflags(write=False)
        self._array = arr

    @property
    def array(self) -> np.ndarray:
        """(N, 4) float64 [center_x, center_y, width, height], read-only."""
        return self._array

    @property
    def anchors(self) -> Tuple[Anchor, ...]:
        return tuple(Anchor(*row) for row in self._array.tolist())

    def __len__(self) -> int:
        return int(self._array.shape[0])

    def __getitem__(self, idx: int) -> Anchor:
        return Anchor(*self._array[idx].tolist())
