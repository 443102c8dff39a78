"""Image bytes -> detected faces -> per-face emotion/age/gender.

Per image the pipeline walks:

    START -> PREPROCESSED -> INFERRED -> DECODED -> SUPPRESSED -> RESCALED
          -> (per face) CLASSIFIED -> AGGREGATED -> DONE

Bad input and detector failure short-circuit to DONE with an empty result.
A failing classifier only leaves its own field empty for that face.
"""

from __future__ import annotations

import time

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Union

import numpy as np

from faceoff import config, imaging
from faceoff.attributes.classifiers import (
    AgeClassifier,
    EmotionClassifier,
    FaceClassifier,
    GenderClassifier,
    age_config,
    emotion_color_config,
    emotion_ferplus_config,
    gender_config,
)
from faceoff.engine import OnnxInferenceEngine
from faceoff.errors import DegenerateCrop, FaceOffError, InferenceFailure, InvalidInput, InvalidRegion
from faceoff.face.detector import DetectorConfig, FaceDetector
from faceoff.types import DetectedFace, EnrichedFace
from faceoff.utils.log import EventSink, emit, get_logger

logger = get_logger(__name__)


class PipelineStage(str, Enum):
    START = "start"
    PREPROCESSED = "preprocessed"
    INFERRED = "inferred"
    DECODED = "decoded"
    SUPPRESSED = "suppressed"
    RESCALED = "rescaled"
    CLASSIFIED = "classified"
    AGGREGATED = "aggregated"
    DONE = "done"


@dataclass
class PipelineConfig:
    confidence_threshold: float = config.DEFAULT_CONFIDENCE_THRESHOLD
    # >1 classifies faces of one image concurrently (bounded by the engines themselves).
    face_workers: int = 1


class FaceAnalysisPipeline:
    """Detector plus optional emotion/age/gender classifiers.

    Any classifier may be None; its field then stays empty on every face.
    """

    def __init__(
        self,
        detector: FaceDetector,
        emotion: Optional[EmotionClassifier] = None,
        age: Optional[AgeClassifier] = None,
        gender: Optional[GenderClassifier] = None,
        cfg: Optional[PipelineConfig] = None,
        sink: Optional[EventSink] = None,
    ):
        self.detector = detector
        self.emotion = emotion
        self.age = age
        self.gender = gender
        self.cfg = cfg or PipelineConfig()
        self.sink = sink

    def _stage(self, stage: PipelineStage, **payload) -> None:
        emit(self.sink, "stage", stage=stage.value, **payload)

    def detect_and_enrich(
        self, image_bytes: Optional[bytes], confidence_threshold: Optional[float] = None
    ) -> List[EnrichedFace]:
        """Decode `image_bytes` and run the full pipeline.

        Missing or undecodable bytes return [] without raising.
        """
        self._stage(PipelineStage.START, size=len(image_bytes) if image_bytes else 0)
        try:
            image = imaging.load(image_bytes)
        except InvalidInput as e:
            logger.warning(f"skipping image: {e.message}")
            self._stage(PipelineStage.DONE, faces=0, reason="invalid_input")
            return []
        return self._run(image, confidence_threshold)

    def detect_and_enrich_image(
        self, image: Optional[np.ndarray], confidence_threshold: Optional[float] = None
    ) -> List[EnrichedFace]:
        """Same as `detect_and_enrich` for an already decoded BGR image."""
        self._stage(PipelineStage.START, size=0 if image is None else int(image.size))
        return self._run(image, confidence_threshold)

    def detect_and_enrich_many(
        self,
        images: Iterable[Optional[bytes]],
        confidence_threshold: Optional[float] = None,
        max_workers: int = 4,
    ) -> List[List[EnrichedFace]]:
        """Process independent images in parallel; results keep input order."""
        items = list(images)
        if not items:
            return []
        workers = int(max(1, min(int(max_workers), len(items))))
        if workers == 1:
            return [self.detect_and_enrich(b, confidence_threshold) for b in items]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda b: self.detect_and_enrich(b, confidence_threshold), items))

    def _run(self, image: Optional[np.ndarray], confidence_threshold: Optional[float]) -> List[EnrichedFace]:
        if image is None or image.size == 0:
            self._stage(PipelineStage.DONE, faces=0, reason="empty_image")
            return []

        thr = float(self.cfg.confidence_threshold if confidence_threshold is None else confidence_threshold)
        t0 = time.time()
        faces = self._detect(image, thr)
        if not faces:
            self._stage(PipelineStage.DONE, faces=0, seconds=round(time.time() - t0, 4))
            return []

        enriched = self._enrich_all(image, faces)
        self._stage(PipelineStage.AGGREGATED, faces=len(enriched))
        self._stage(PipelineStage.DONE, faces=len(enriched), seconds=round(time.time() - t0, 4))
        return enriched

    def _detect(self, image: np.ndarray, threshold: float) -> List[DetectedFace]:
        img_w, img_h = imaging.size(image)
        try:
            tensor = self.detector.preprocess(image)
            self._stage(PipelineStage.PREPROCESSED, shape=tuple(tensor.shape))
            outputs = self.detector.infer(tensor)
        except (InferenceFailure, InvalidRegion) as e:
            logger.warning(f"face detection failed, returning no faces: {e}")
            return []
        self._stage(PipelineStage.INFERRED, outputs=sorted(outputs))

        try:
            candidates = self.detector.decode(outputs, threshold)
        except InferenceFailure as e:
            logger.warning(f"could not decode detector output, returning no faces: {e}")
            return []
        self._stage(PipelineStage.DECODED, candidates=len(candidates))

        kept = self.detector.suppress(candidates)
        self._stage(PipelineStage.SUPPRESSED, kept=len(kept))

        faces = self.detector.rescale(kept, img_w, img_h)
        self._stage(PipelineStage.RESCALED, faces=len(faces), image_size=(img_w, img_h))
        return faces

    def _enrich_all(self, image: np.ndarray, faces: List[DetectedFace]) -> List[EnrichedFace]:
        workers = int(max(1, min(int(self.cfg.face_workers), len(faces))))
        if workers == 1:
            return [self._enrich(image, i, f) for i, f in enumerate(faces)]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda p: self._enrich(image, p[0], p[1]), enumerate(faces)))

    def _enrich(self, image: np.ndarray, index: int, face: DetectedFace) -> EnrichedFace:
        return EnrichedFace(
            face=face,
            age=self._classify(self.age, image, index, face),
            gender=self._classify(self.gender, image, index, face),
            emotion=self._classify(self.emotion, image, index, face),
        )

    def _classify(self, classifier: Optional[FaceClassifier], image: np.ndarray, index: int, face: DetectedFace):
        if classifier is None:
            return None
        try:
            result = classifier.classify(image, face)
        except (DegenerateCrop, InvalidRegion) as e:
            logger.warning(f"face {index}: skipping {classifier.name}, bad crop: {e}")
            return None
        except FaceOffError as e:
            logger.warning(f"face {index}: {classifier.name} failed: {e}")
            return None
        except Exception as e:
            logger.warning(f"face {index}: {classifier.name} raised {type(e).__name__}: {e}")
            return None
        self._stage(PipelineStage.CLASSIFIED, face=index, classifier=classifier.name)
        return result


def build_pipeline(
    detector_model: Union[str, Path],
    emotion_model: Optional[Union[str, Path]] = None,
    age_model: Optional[Union[str, Path]] = None,
    gender_model: Optional[Union[str, Path]] = None,
    device: str = "auto",
    emotion_profile: str = "color",
    detector_cfg: Optional[DetectorConfig] = None,
    cfg: Optional[PipelineConfig] = None,
    sink: Optional[EventSink] = None,
) -> FaceAnalysisPipeline:
    """Wire ONNX models into a pipeline; classifiers without a model path are left out."""
    detector = FaceDetector(OnnxInferenceEngine(detector_model, device=device), detector_cfg)

    emotion = None
    if emotion_model:
        prof = str(emotion_profile).strip().lower()
        if prof == "color":
            emo_cfg = emotion_color_config()
        elif prof == "ferplus":
            emo_cfg = emotion_ferplus_config()
        else:
            raise ValueError(f"Unsupported emotion_profile={emotion_profile}. Use one of: color, ferplus")
        emotion = EmotionClassifier(OnnxInferenceEngine(emotion_model, device=device), emo_cfg)

    age = AgeClassifier(OnnxInferenceEngine(age_model, device=device), age_config()) if age_model else None
    gender = (
        GenderClassifier(OnnxInferenceEngine(gender_model, device=device), gender_config()) if gender_model else None
    )

    return FaceAnalysisPipeline(detector, emotion=emotion, age=age, gender=gender, cfg=cfg, sink=sink)


def detect_and_enrich(
    pipeline: FaceAnalysisPipeline,
    image_bytes: Optional[bytes],
    confidence_threshold: float = config.DEFAULT_CONFIDENCE_THRESHOLD,
) -> List[EnrichedFace]:
    return pipeline.detect_and_enrich(image_bytes, confidence_threshold)
