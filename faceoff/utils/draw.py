from __future__ import annotations

from functools import lru_cache
from typing import List, Sequence, Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from faceoff.config import FONT_LIST
from faceoff.types import EnrichedFace

# BGR
BOX_COLOR = (80, 200, 120)
TEXT_COLOR = (255, 255, 255)


@lru_cache(maxsize=64)
def _get_font(font_size: int) -> ImageFont.ImageFont:
    """Return the first loadable font from FONT_LIST (cached), else PIL's default."""
    for p in FONT_LIST:
        try:
            return ImageFont.truetype(p, int(font_size))
        except OSError:
            continue
    return ImageFont.load_default()


def draw_texts(
    img: np.ndarray,
    items: Sequence[Tuple[str, Tuple[int, int], int, Tuple[int, int, int]]],
) -> None:
    """Draw multiple texts onto one image with a single PIL conversion.

    Args:
        img: OpenCV BGR image, modified in-place.
        items: sequence of (text, (x, y), font_size_px, bgr_color)
    """
    if img is None or len(items) == 0:
        return

    pil_img = Image.fromarray(cv2.cvtColor(img, cv2.COLOR_BGR2RGB))
    draw = ImageDraw.Draw(pil_img)
    for text, org, font_size, bgr in items:
        font = _get_font(int(font_size))
        # PIL uses RGB
        draw.text(tuple(org), str(text), font=font, fill=(int(bgr[2]), int(bgr[1]), int(bgr[0])))
    img[:] = cv2.cvtColor(np.array(pil_img), cv2.COLOR_RGB2BGR)


def face_caption(ef: EnrichedFace) -> List[str]:
    """Label lines for one face, skipping absent enrichments."""
    lines = [f"face {ef.face.confidence:.2f}"]
    if ef.emotion is not None:
        lines.append(f"{ef.emotion.label} {ef.emotion.confidence:.0%}")
    if ef.gender is not None:
        lines.append(f"{ef.gender.label} {ef.gender.confidence:.0%}")
    if ef.age is not None:
        lines.append(f"age {ef.age.estimate:.0f}")
    return lines


def draw_faces(img: np.ndarray, faces: Sequence[EnrichedFace], font_size: int = 14) -> np.ndarray:
    """Return a copy of `img` with boxes and captions for every face."""
    vis = img.copy()
    h, w = vis.shape[:2]
    items = []
    for ef in faces:
        x1, y1, x2, y2 = [int(round(v)) for v in ef.face.xyxy]
        cv2.rectangle(vis, (x1, y1), (x2, y2), BOX_COLOR, 2)

        lines = face_caption(ef)
        line_h = int(font_size) + 4
        # Put the caption above the box, or inside it when there is no room.
        ty = y1 - line_h * len(lines) - 2
        if ty < 0:
            ty = min(h - line_h * len(lines), y1 + 2)
        tx = max(0, min(w - 1, x1 + 2))
        for k, text in enumerate(lines):
            items.append((text, (tx, max(0, ty + k * line_h)), int(font_size), TEXT_COLOR))

    draw_texts(vis, items)
    return vis
