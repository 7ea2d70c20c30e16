"""Data models and type definitions"""
import enum
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional

import numpy as np
from typing_extensions import Literal, TypedDict

# (height, width, 3) uint8 RGB array
PixelGrid = np.ndarray


class ExtractionMode(str, enum.Enum):
    FACE_REGION = "face_region"
    FALLBACK = "fallback"


class Box(TypedDict):
    x: int
    y: int
    width: int
    height: int


class DetectionOptions(TypedDict):
    performanceMode: Literal["fast", "accurate"]
    minFaceSizeFraction: float


class BoundingBox(NamedTuple):
    """Face bounding box in pixel coordinates."""

    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def clip(self, width: int, height: int) -> "BoundingBox":
        """Clip the box to an image of the given size.

        The result may have zero width or height when the box lies
        outside the image.
        """
        left = min(max(0, self.left), width)
        top = min(max(0, self.top), height)
        right = max(left, min(width, self.right))
        bottom = max(top, min(height, self.bottom))
        return BoundingBox(left, top, right - left, bottom - top)

    def to_dict(self) -> Box:
        return {
            'x': int(self.left),
            'y': int(self.top),
            'width': int(self.width),
            'height': int(self.height)
        }


@dataclass(frozen=True)
class FeatureVector:
    """Fixed-length feature vector tagged with the mode that produced it."""

    values: np.ndarray
    mode: ExtractionMode

    def __post_init__(self):
        values = np.array(self.values, dtype=np.float64).reshape(-1)
        values.flags.writeable = False
        object.__setattr__(self, "values", values)

    def __len__(self) -> int:
        return int(self.values.shape[0])

    def __eq__(self, other) -> bool:
        if not isinstance(other, FeatureVector):
            return NotImplemented
        return self.mode == other.mode and np.array_equal(self.values, other.values)

    def __hash__(self) -> int:
        return hash((self.mode, self.values.tobytes()))

    def tolist(self) -> List[float]:
        return self.values.tolist()


class ComparisonReport(TypedDict):
    isMatch: bool
    confidence: float
    message: str
    usedFallback: bool
    distance: Optional[float]
    threshold: float
    referenceFace: Optional[Box]
    actualFace: Optional[Box]


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one face comparison."""

    is_match: bool
    confidence: float
    message: str
    used_fallback: bool
    distance: Optional[float] = None
    threshold: float = 0.0
    reference_box: Optional[BoundingBox] = field(default=None)
    probe_box: Optional[BoundingBox] = field(default=None)

    def to_dict(self) -> ComparisonReport:
        return {
            'isMatch': bool(self.is_match),
            'confidence': round(float(self.confidence), 2),
            'message': self.message,
            'usedFallback': bool(self.used_fallback),
            'distance': None if self.distance is None else float(self.distance),
            'threshold': float(self.threshold),
            'referenceFace': self.reference_box.to_dict() if self.reference_box else None,
            'actualFace': self.probe_box.to_dict() if self.probe_box else None
        }


FeatureLayout = Dict[str, int]
