"""Image capability boundary backed by OpenCV.

Images are `np.ndarray` of shape (H, W, 3), dtype uint8, BGR channel order.
"""

from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from faceoff.errors import InvalidInput, InvalidRegion
from faceoff.types import CropRect


def load(data: Optional[bytes]) -> np.ndarray:
    """Decode encoded image bytes (JPEG/PNG/...) into a BGR image."""
    if not data:
        raise InvalidInput("image bytes are empty")
    buf = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        raise InvalidInput(f"failed to decode {len(data)} image bytes")
    return image


def size(image: np.ndarray) -> Tuple[int, int]:
    """Return (width, height)."""
    h, w = image.shape[:2]
    return int(w), int(h)


def resize(image: np.ndarray, width: int, height: int) -> np.ndarray:
    if int(width) <= 0 or int(height) <= 0:
        raise InvalidRegion(f"resize target must be positive, got {width}x{height}")
    if image is None or image.size == 0 or image.shape[0] == 0 or image.shape[1] == 0:
        raise InvalidRegion("cannot resize an empty region")
    return cv2.resize(image, (int(width), int(height)), interpolation=cv2.INTER_LINEAR)


def crop(image: np.ndarray, rect: CropRect) -> np.ndarray:
    """Crop `rect`, intersected with the image bounds. Returns a copy."""
    w, h = size(image)
    x1 = max(0, int(rect.x))
    y1 = max(0, int(rect.y))
    x2 = min(w, int(rect.x) + int(rect.width))
    y2 = min(h, int(rect.y) + int(rect.height))
    if x2 <= x1 or y2 <= y1:
        raise InvalidRegion(f"crop {rect} does not intersect image {w}x{h}")
    return image[y1:y2, x1:x2].copy()


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Single-channel (H, W) luminance image."""
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def encode_png(image: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", image)
    if not ok:
        raise InvalidInput("PNG encoding failed")
    return buf.tobytes()


def pixel_at(image: np.ndarray, x: int, y: int) -> Tuple[int, int, int]:
    """(R, G, B) at column x, row y."""
    b, g, r = [int(v) for v in image[int(y), int(x)][:3]]
    return r, g, b
