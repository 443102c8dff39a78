from typing import Dict, List, Optional, Tuple

from faceoff.types import AgeResult, ClassificationResult, DetectedFace, EnrichedFace


def serialize_face(face: DetectedFace, image_size: Optional[Tuple[int, int]] = None) -> Dict:
    """Serialize a detection into JSON-safe form and optionally add normalized coords.

    image_size: (w, h) of the original image
    """
    x, y, w, h = [float(v) for v in face.xywh]
    out = {
        "confidence": round(float(face.confidence), 4),
        "bbox": [int(round(x)), int(round(y)), int(round(x + w)), int(round(y + h))],
        "xywh": [round(x, 2), round(y, 2), round(w, 2), round(h, 2)],
        "center": [int((2 * x + w) / 2), int((2 * y + h) / 2)],
    }

    if image_size is not None:
        iw, ih = int(image_size[0]), int(image_size[1])
        if iw > 0 and ih > 0:
            x1, y1, x2, y2 = out["bbox"]
            out["bbox_norm"] = [round(x1 / iw, 4), round(y1 / ih, 4), round(x2 / iw, 4), round(y2 / ih, 4)]
            cx, cy = out["center"]
            out["center_norm"] = [round(cx / iw, 4), round(cy / ih, 4)]
        else:
            out["bbox_norm"] = None
            out["center_norm"] = None

    return out


def serialize_label(result: Optional[ClassificationResult]) -> Optional[Dict]:
    if result is None:
        return None
    return {
        "label": str(result.label),
        "confidence": round(float(result.confidence), 4),
        "probabilities": {str(k): round(float(v), 4) for k, v in result.probabilities.items()},
    }


def serialize_age(result: Optional[AgeResult]) -> Optional[Dict]:
    if result is None:
        return None
    return {
        "estimate": round(float(result.estimate), 2),
        "confidence": round(float(result.confidence), 4),
        "bucket": int(result.bucket),
    }


def serialize_enriched(faces: List[EnrichedFace], image_size: Optional[Tuple[int, int]] = None) -> List[Dict]:
    """Serialize pipeline output; absent enrichments become null."""
    out: List[Dict] = []
    for i, ef in enumerate(faces):
        d = serialize_face(ef.face, image_size)
        d["index"] = i
        d["age"] = serialize_age(ef.age)
        d["gender"] = serialize_label(ef.gender)
        d["emotion"] = serialize_label(ef.emotion)
        out.append(d)
    return out
