"""Data models and type definitions"""
from .types import (
    Box,
    BoundingBox,
    ComparisonReport,
    DetectionOptions,
    ExtractionMode,
    FeatureLayout,
    FeatureVector,
    PixelGrid,
    VerificationResult
)

__all__ = [
    'Box',
    'BoundingBox',
    'ComparisonReport',
    'DetectionOptions',
    'ExtractionMode',
    'FeatureLayout',
    'FeatureVector',
    'PixelGrid',
    'VerificationResult'
]
