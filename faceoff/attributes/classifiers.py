from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from faceoff import config, imaging
from faceoff.attributes.scorer import argmax_label, blend_age, softmax
from faceoff.encoder import CAFFE_PROFILE, GRAYSCALE_PROFILE, IMAGENET_PROFILE, EncodeProfile, encode
from faceoff.engine import InferenceEngine, OutputBinding
from faceoff.errors import InferenceFailure
from faceoff.face.crop import compute_crop_rect
from faceoff.types import AgeResult, ClassificationResult, DetectedFace
from faceoff.utils.log import get_logger

logger = get_logger(__name__)

LOGITS = "logits"


@dataclass
class ClassifierConfig:
    input_size: Tuple[int, int]  # (w, h)
    profile: EncodeProfile
    labels: List[str] = field(default_factory=list)
    # None -> tight face box; otherwise padded square (see compute_crop_rect)
    crop_padding: Optional[float] = None
    # False when the graph already ends in a softmax layer
    apply_softmax: bool = True
    binding: OutputBinding = field(default_factory=lambda: OutputBinding(roles={LOGITS: 0}))


def emotion_color_config() -> ClassifierConfig:
    """EfficientNet emotion model: 224x224 RGB with ImageNet statistics."""
    return ClassifierConfig(
        input_size=config.EMOTION_INPUT_SIZE,
        profile=IMAGENET_PROFILE,
        labels=list(config.EMOTION_LABELS),
        crop_padding=config.EMOTION_CROP_PADDING,
    )


def emotion_ferplus_config() -> ClassifierConfig:
    """FER+ emotion model: 64x64 grayscale scaled to [-1, 1]."""
    return ClassifierConfig(
        input_size=config.FERPLUS_INPUT_SIZE,
        profile=GRAYSCALE_PROFILE,
        labels=list(config.FERPLUS_LABELS),
        crop_padding=config.EMOTION_CROP_PADDING,
    )


def gender_config() -> ClassifierConfig:
    return ClassifierConfig(
        input_size=config.GENDER_INPUT_SIZE,
        profile=CAFFE_PROFILE,
        labels=list(config.GENDER_LABELS),
    )


def age_config() -> ClassifierConfig:
    # The age net emits bucket probabilities directly.
    return ClassifierConfig(
        input_size=config.AGE_INPUT_SIZE,
        profile=CAFFE_PROFILE,
        apply_softmax=False,
    )


class FaceClassifier:
    """Crop -> encode -> infer -> score for one face.

    Subclasses only decide how the output vector becomes a result.
    """

    name = "classifier"

    def __init__(self, engine: InferenceEngine, cfg: ClassifierConfig):
        self.engine = engine
        self.cfg = cfg
        # Fail fast on a mis-configured output name, not on the first face.
        self._bound = cfg.binding.bind(engine)

    def classify(self, image: np.ndarray, face: DetectedFace):
        """Classify `face` inside the original-resolution `image`.

        Raises:
            DegenerateCrop: the crop collapsed.
            InvalidRegion: the crop or resize target is empty.
            InferenceFailure: the engine failed or returned no logits.
        """
        img_w, img_h = imaging.size(image)
        rect = compute_crop_rect(face, img_w, img_h, self.cfg.crop_padding)

        region = imaging.crop(image, rect)
        w, h = self.cfg.input_size
        tensor = encode(region, int(w), int(h), self.cfg.profile)
        results = self.engine.run({self._bound.input_name: tensor})

        out = self._bound.pick(results, LOGITS)
        if out is None or out.size == 0:
            raise InferenceFailure(f"{self.name}: model returned no '{LOGITS}' output")

        # (1, C) or (C,) -> (C,)
        vec = out.reshape(out.shape[0], -1)[0] if out.ndim > 1 else out.reshape(-1)
        probs = softmax(vec) if self.cfg.apply_softmax else np.asarray(vec, dtype=np.float64)
        return self._score(probs)

    def _score(self, probs: np.ndarray):
        raise NotImplementedError


class EmotionClassifier(FaceClassifier):
    name = "emotion"

    def _score(self, probs: np.ndarray) -> ClassificationResult:
        result = argmax_label(probs, self.cfg.labels)
        logger.debug(
            "emotion probabilities: " + ", ".join(f"{k}={v:.2%}" for k, v in result.probabilities.items())
        )
        return result


class GenderClassifier(FaceClassifier):
    name = "gender"

    def _score(self, probs: np.ndarray) -> ClassificationResult:
        return argmax_label(probs, self.cfg.labels)


class AgeClassifier(FaceClassifier):
    name = "age"

    def __init__(
        self,
        engine: InferenceEngine,
        cfg: ClassifierConfig,
        bucket_ages: Optional[List[float]] = None,
        correction_threshold: Optional[float] = config.AGE_CORRECTION_THRESHOLD,
        correction_factor: float = config.AGE_CORRECTION_FACTOR,
    ):
        super().__init__(engine, cfg)
        self.bucket_ages = list(bucket_ages) if bucket_ages is not None else list(config.AGE_BUCKETS)
        self.correction_threshold = correction_threshold
        self.correction_factor = float(correction_factor)

    def _score(self, probs: np.ndarray) -> AgeResult:
        if probs.size != len(self.bucket_ages):
            logger.warning(f"age model emitted {probs.size} buckets, configured {len(self.bucket_ages)}")
        return blend_age(
            self.bucket_ages,
            probs,
            correction_threshold=self.correction_threshold,
            correction_factor=self.correction_factor,
        )

