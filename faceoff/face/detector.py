from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from faceoff import config, imaging
from faceoff.encoder import DETECTOR_PROFILE, EncodeProfile, encode
from faceoff.engine import BoundOutputs, InferenceEngine, OutputBinding
from faceoff.face import decoder, nms
from faceoff.face.anchors import AnchorGrid
from faceoff.types import DetectedFace
from faceoff.utils.log import get_logger

logger = get_logger(__name__)

SCORES = "scores"
BOXES = "boxes"


@dataclass
class DetectorConfig:
    input_size: Tuple[int, int] = config.DETECTOR_INPUT_SIZE  # (w, h)
    strides: List[int] = field(default_factory=lambda: list(config.DETECTOR_STRIDES))
    box_sizes: List[List[float]] = field(default_factory=lambda: [list(b) for b in config.DETECTOR_BOX_SIZES])
    variances: Tuple[float, float, float, float] = config.DETECTOR_VARIANCES
    profile: EncodeProfile = DETECTOR_PROFILE
    iou_threshold: float = config.DETECTOR_IOU_THRESHOLD
    # Guard against numerical noise, not a business rule.
    min_box_size: float = config.DETECTOR_MIN_BOX_SIZE
    # Some exports end the graph in a softmax; then column 1 is used as-is.
    scores_are_probabilities: bool = False
    binding: OutputBinding = field(default_factory=lambda: OutputBinding(roles={SCORES: "scores", BOXES: "boxes"}))


class FaceDetector:
    """Anchor-based face detector stage.

    The anchor grid is derived from `DetectorConfig` once, here, and is never
    mutated afterwards; one detector can serve concurrent calls as long as
    its engine can.
    """

    def __init__(self, engine: InferenceEngine, cfg: Optional[DetectorConfig] = None):
        self.engine = engine
        self.cfg = cfg or DetectorConfig()
        in_w, in_h = self.cfg.input_size
        self.anchors = AnchorGrid(int(in_w), int(in_h), self.cfg.strides, self.cfg.box_sizes)
        self._bound: BoundOutputs = self.cfg.binding.bind(engine)
        logger.info(
            f"detector ready: input={in_w}x{in_h}, anchors={len(self.anchors)}, outputs={self._bound.outputs}"
        )

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        in_w, in_h = self.cfg.input_size
        return encode(image, int(in_w), int(in_h), self.cfg.profile)

    def infer(self, tensor: np.ndarray) -> Dict[str, np.ndarray]:
        return self.engine.run({self._bound.input_name: tensor})

    def decode(self, outputs: Dict[str, np.ndarray], confidence_threshold: float) -> List[DetectedFace]:
        """Candidate faces in detector-input pixels; [] if the outputs are unusable."""
        scores = self._bound.pick(outputs, SCORES)
        boxes = self._bound.pick(outputs, BOXES)
        if scores is None or boxes is None or scores.size == 0 or boxes.size == 0:
            logger.warning("detector returned no usable outputs; treating as zero detections")
            return []
        return decoder.decode(
            boxes,
            scores,
            self.anchors,
            confidence_threshold,
            input_size=self.cfg.input_size,
            variances=self.cfg.variances,
            min_box_size=self.cfg.min_box_size,
            scores_are_probabilities=self.cfg.scores_are_probabilities,
        )

    def suppress(self, faces: List[DetectedFace]) -> List[DetectedFace]:
        return nms.suppress(faces, self.cfg.iou_threshold)

    def rescale(self, faces: List[DetectedFace], image_width: int, image_height: int) -> List[DetectedFace]:
        in_w, in_h = self.cfg.input_size
        return nms.rescale(
            faces,
            float(image_width) / float(in_w),
            float(image_height) / float(in_h),
            image_width,
            image_height,
        )

    def detect(
        self, image: np.ndarray, confidence_threshold: float = config.DEFAULT_CONFIDENCE_THRESHOLD
    ) -> List[DetectedFace]:
        """Faces in original-image pixels, confidence-descending."""
        img_w, img_h = imaging.size(image)
        outputs = self.infer(self.preprocess(image))
        faces = self.suppress(self.decode(outputs, confidence_threshold))
        return self.rescale(faces, img_w, img_h)
