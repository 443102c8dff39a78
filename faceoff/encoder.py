"""Pixel region -> normalized NCHW float32 tensor.

One encoder serves every model in the pipeline; models differ only in the
`EncodeProfile` they are configured with.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from faceoff import config, imaging
from faceoff.errors import InvalidRegion

RAW = "raw"
MEAN_SUBTRACT_BGR = "mean_subtract_bgr"
STANDARDIZE = "standardize"
GRAYSCALE_SYMMETRIC = "grayscale_symmetric"

PROFILE_KINDS = (RAW, MEAN_SUBTRACT_BGR, STANDARDIZE, GRAYSCALE_SYMMETRIC)


@dataclass(frozen=True)
class EncodeProfile:
    """How pixel intensities in [0, 255] become tensor values.

    - raw: v / 255, channels R,G,B
    - mean_subtract_bgr: v - mean[c], channels B,G,R, no scaling (Caffe-style)
    - standardize: (v / 255 - mean[c]) / std[c], channels R,G,B
    - grayscale_symmetric: one channel, (gray / 255) * 2 - 1
    """

    kind: str = RAW
    mean: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    std: Tuple[float, float, float] = (1.0, 1.0, 1.0)

    def __post_init__(self) -> None:
        if self.kind not in PROFILE_KINDS:
            raise ValueError(f"Unsupported profile kind={self.kind}. Use one of: {', '.join(PROFILE_KINDS)}")
        if len(self.mean) != 3 or len(self.std) != 3:
            raise ValueError("mean and std must have exactly 3 components")
        if any(float(s) == 0.0 for s in self.std):
            raise ValueError(f"std components must be non-zero, got {self.std}")

    @property
    def channels(self) -> int:
        return 1 if self.kind == GRAYSCALE_SYMMETRIC else 3


RAW_PROFILE = EncodeProfile(RAW)
CAFFE_PROFILE = EncodeProfile(MEAN_SUBTRACT_BGR, mean=config.CAFFE_MEAN_BGR)
IMAGENET_PROFILE = EncodeProfile(STANDARDIZE, mean=config.IMAGENET_MEAN, std=config.IMAGENET_STD)
DETECTOR_PROFILE = EncodeProfile(STANDARDIZE, mean=config.DETECTOR_MEAN, std=config.DETECTOR_STD)
GRAYSCALE_PROFILE = EncodeProfile(GRAYSCALE_SYMMETRIC)


def encode(region: np.ndarray, target_width: int, target_height: int, profile: EncodeProfile) -> np.ndarray:
    """Resize a BGR region to (target_width, target_height) and encode it.

    Returns a contiguous float32 array shaped (1, C, target_height, target_width),
    channel-major and row-major within each channel.

    Raises:
        InvalidRegion: the region or the target has zero width or height.
    """
    if region is None or region.ndim < 2 or region.shape[0] == 0 or region.shape[1] == 0:
        raise InvalidRegion("cannot encode an empty region")
    if int(target_width) <= 0 or int(target_height) <= 0:
        raise InvalidRegion(f"encode target must be positive, got {target_width}x{target_height}")

    resized = imaging.resize(region, int(target_width), int(target_height))
    if profile.kind == GRAYSCALE_SYMMETRIC:
        gray = imaging.to_grayscale(resized).astype(np.float32)
        chw = ((gray / 255.0) * 2.0 - 1.0)[np.newaxis, :, :]
    else:
        if resized.ndim == 2:
            resized = np.repeat(resized[:, :, np.newaxis], 3, axis=2)
        px = resized[:, :, :3].astype(np.float32)  # (H, W, 3) BGR
        if profile.kind == MEAN_SUBTRACT_BGR:
            chw = px.transpose(2, 0, 1) - np.asarray(profile.mean, dtype=np.float32).reshape(3, 1, 1)
        else:
            rgb = px[:, :, ::-1].transpose(2, 0, 1) / 255.0
            if profile.kind == RAW:
                chw = rgb
            else:
                mean = np.asarray(profile.mean, dtype=np.float32).reshape(3, 1, 1)
                std = np.asarray(profile.std, dtype=np.float32).reshape(3, 1, 1)
                chw = (rgb - mean) / std
    return np.ascontiguousarray(chw[np.newaxis, ...], dtype=np.float32)
