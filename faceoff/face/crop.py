from __future__ import annotations

from typing import Optional

from faceoff import config
from faceoff.errors import DegenerateCrop
from faceoff.types import CropRect, DetectedFace


def compute_crop_rect(
    face: DetectedFace,
    image_width: int,
    image_height: int,
    padding_factor: Optional[float] = config.EMOTION_CROP_PADDING,
) -> CropRect:
    """Padded square around a face, shifted and clamped into the image.

    The square has side max(face.width, face.height) * padding_factor and is
    centered on the face. An edge that overflows the image pushes the
    opposite edge outward by the same amount so the size is kept where the
    image allows; both edges are then clamped to the image bounds.

    `padding_factor=None` returns the face box itself intersected with the
    image (the tight crop the age/gender nets were trained on).

    Raises:
        DegenerateCrop: the resulting width or height is <= 0.
    """
    img_w = float(image_width)
    img_h = float(image_height)

    if padding_factor is None:
        left = max(0.0, face.x)
        top = max(0.0, face.y)
        right = min(img_w, face.x + face.width)
        bottom = min(img_h, face.y + face.height)
        return _to_rect(left, top, right - left, bottom - top, face)

    center_x = face.x + face.width / 2.0
    center_y = face.y + face.height / 2.0
    desired = max(face.width, face.height) * float(padding_factor)

    left = center_x - desired / 2.0
    top = center_y - desired / 2.0
    right = left + desired
    bottom = top + desired

    if left < 0:
        right += abs(left)
        left = 0.0
    if top < 0:
        bottom += abs(top)
        top = 0.0
    if right > img_w:
        left -= right - img_w
        right = img_w
    if bottom > img_h:
        top -= bottom - img_h
        bottom = img_h

    left = max(0.0, left)
    top = max(0.0, top)
    width = min(right - left, img_w - left)
    height = min(bottom - top, img_h - top)
    return _to_rect(left, top, width, height, face)


def _to_rect(left: float, top: float, width: float, height: float, face: DetectedFace) -> CropRect:
    rect = CropRect(x=int(left), y=int(top), width=int(max(0.0, width)), height=int(max(0.0, height)))
    if rect.width <= 0 or rect.height <= 0:
        raise DegenerateCrop(
            f"crop collapsed to {rect.width}x{rect.height} for face at ({face.x:.1f}, {face.y:.1f})",
            details={"rect": rect, "face": face},
        )
    return rect
