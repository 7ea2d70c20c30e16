"""Offline face verification from hand-crafted image features."""
from .config import VerificationConfig
from .core import (
    FaceComparator,
    FaceDetector,
    FeatureCache,
    FeatureExtractor,
    HaarCascadeFaceDetector,
    HogFaceDetector,
    compare_faces
)
from .errors import (
    ComparisonError,
    DetectionError,
    ExtractionError,
    FaceMatchError,
    ImageFormatError,
    ImageNotFoundError
)
from .models import BoundingBox, ExtractionMode, FeatureVector, VerificationResult

__all__ = [
    'VerificationConfig',
    'FaceComparator',
    'FaceDetector',
    'FeatureCache',
    'FeatureExtractor',
    'HaarCascadeFaceDetector',
    'HogFaceDetector',
    'compare_faces',
    'ComparisonError',
    'DetectionError',
    'ExtractionError',
    'FaceMatchError',
    'ImageFormatError',
    'ImageNotFoundError',
    'BoundingBox',
    'ExtractionMode',
    'FeatureVector',
    'VerificationResult'
]
