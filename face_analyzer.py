"""Command-line entry: detect faces in one image and enrich them with emotion/age/gender.

The models are ONNX files; classifiers without a model path are skipped.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from pathlib import Path
from typing import List, Optional

import cv2

from faceoff import config, imaging
from faceoff.errors import InvalidInput
from faceoff.face.detector import DetectorConfig
from faceoff.pipeline import PipelineConfig, build_pipeline
from faceoff.utils.draw import draw_faces
from faceoff.utils.log import LoggingSink, get_logger
from faceoff.utils.serializer import serialize_enriched

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Face detection with emotion/age/gender enrichment")
    parser.add_argument("input", help="input image path")
    parser.add_argument("--detector", "-d", required=True, help="face detector ONNX model (RFB-320 layout)")
    parser.add_argument("--emotion", help="emotion ONNX model", default=None)
    parser.add_argument(
        "--emotion-profile",
        type=str,
        default="color",
        choices=["color", "ferplus"],
        help="emotion preprocessing: color (224 RGB, ImageNet) or ferplus (64 grayscale)",
    )
    parser.add_argument("--age", help="age bucket ONNX model", default=None)
    parser.add_argument("--gender", help="gender ONNX model", default=None)
    parser.add_argument(
        "--threshold",
        "-t",
        type=float,
        default=config.DEFAULT_CONFIDENCE_THRESHOLD,
        help=f"face confidence threshold (default {config.DEFAULT_CONFIDENCE_THRESHOLD})",
    )
    parser.add_argument(
        "--iou-threshold",
        type=float,
        default=config.DETECTOR_IOU_THRESHOLD,
        help=f"NMS IoU threshold (default {config.DETECTOR_IOU_THRESHOLD})",
    )
    parser.add_argument(
        "--device",
        type=str,
        default="auto",
        choices=["auto", "cpu", "gpu"],
        help="compute device: auto/cpu/gpu (auto uses the GPU when CUDA is available)",
    )
    parser.add_argument("--face-workers", type=int, default=1, help="classify faces of one image concurrently")
    parser.add_argument("--output-json", "-j", help="write results as JSON to this path", default=None)
    parser.add_argument("--output-image", "-o", help="write an annotated copy of the image", default=None)
    parser.add_argument("--trace", action="store_true", help="log every pipeline stage")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"input not found: {input_path}")
        return 2

    sink = None
    if args.trace:
        logging.getLogger("faceoff.events").setLevel(logging.DEBUG)
        sink = LoggingSink()

    pipeline = build_pipeline(
        detector_model=args.detector,
        emotion_model=args.emotion,
        age_model=args.age,
        gender_model=args.gender,
        device=args.device,
        emotion_profile=args.emotion_profile,
        detector_cfg=DetectorConfig(iou_threshold=float(args.iou_threshold)),
        cfg=PipelineConfig(confidence_threshold=float(args.threshold), face_workers=int(args.face_workers)),
        sink=sink,
    )

    image = None
    image_size = None
    faces = []
    try:
        image = imaging.load(input_path.read_bytes())
    except InvalidInput as e:
        logger.warning(f"cannot decode {input_path}: {e}")
    else:
        image_size = imaging.size(image)
        faces = pipeline.detect_and_enrich_image(image, float(args.threshold))

    result = {
        "input": str(input_path),
        "image_size": list(image_size) if image_size else None,
        "faces": serialize_enriched(faces, image_size),
    }

    if not faces:
        logger.warning("no faces detected")
    else:
        logger.info(f"detected {len(faces)} face(s)")
        for i, ef in enumerate(faces):
            parts = [f"face {i + 1}: conf={ef.face.confidence:.3f}"]
            if ef.emotion is not None:
                parts.append(f"emotion={ef.emotion.label} ({ef.emotion.confidence:.2f})")
            if ef.gender is not None:
                parts.append(f"gender={ef.gender.label} ({ef.gender.confidence:.2f})")
            if ef.age is not None:
                parts.append(f"age={ef.age.estimate:.1f} ({ef.age.confidence:.2f})")
            logger.info(", ".join(parts))

    if args.output_json:
        out = Path(args.output_json)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(result, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"results written to {out}")
    else:
        print(json.dumps(result, ensure_ascii=False, indent=2))

    if args.output_image:
        if image is None:
            logger.error(f"cannot annotate {input_path}: image could not be decoded")
            return 1
        vis = draw_faces(image, faces)
        out_img = Path(args.output_image)
        out_img.parent.mkdir(parents=True, exist_ok=True)
        if not cv2.imwrite(str(out_img), vis):
            logger.error(f"failed to write {out_img}")
            return 1
        logger.info(f"annotated image written to {out_img}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
