from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Anchor:
    """Reference box, normalized to the detector input resolution."""

    center_x: float
    center_y: float
    width: float
    height: float


@dataclass(frozen=True)
class DetectedFace:
    confidence: float
    x: float
    y: float
    width: float
    height: float

    @property
    def xyxy(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @property
    def xywh(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class CropRect:
    x: int
    y: int
    width: int
    height: int

    @property
    def xyxy(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)


@dataclass(frozen=True)
class ClassificationResult:
    """Top-1 label of a categorical head (emotion, gender)."""

    label: str
    confidence: float
    # label -> probability for every class the model emitted
    probabilities: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class AgeResult:
    estimate: float
    confidence: float  # probability of the top bucket, not of the blended estimate
    bucket: int = -1


@dataclass(frozen=True)
class EnrichedFace:
    face: DetectedFace
    age: Optional[AgeResult] = None
    gender: Optional[ClassificationResult] = None
    emotion: Optional[ClassificationResult] = None
