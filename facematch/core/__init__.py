"""Core face location, feature extraction and matching functionality"""
from .cache import FeatureCache, region_fingerprint
from .face_detection import (
    FaceDetector,
    FaceLocator,
    HaarCascadeFaceDetector,
    HogFaceDetector,
    select_largest_face
)
from .features import FeatureExtractor, feature_layout
from .pipeline import FaceComparator, compare_faces
from .region import extract, extract_region, fallback_region
from .similarity import decide, euclidean_distance, score

__all__ = [
    'FeatureCache',
    'region_fingerprint',
    'FaceDetector',
    'FaceLocator',
    'HaarCascadeFaceDetector',
    'HogFaceDetector',
    'select_largest_face',
    'FeatureExtractor',
    'feature_layout',
    'FaceComparator',
    'compare_faces',
    'extract',
    'extract_region',
    'fallback_region',
    'decide',
    'euclidean_distance',
    'score'
]
