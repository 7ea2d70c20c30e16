"""Feature vector scoring and the match decision."""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from ..config import VerificationConfig
from ..errors import ComparisonError
from ..models.types import BoundingBox, ExtractionMode, FeatureVector, VerificationResult

logger = logging.getLogger(__name__)

MATCH_MESSAGE = "Face verified successfully! Confidence: {confidence:.1f}%"
NO_MATCH_MESSAGE = "Face does not match. Confidence: {confidence:.1f}%"
FALLBACK_SUFFIX = " (fallback mode)"


def euclidean_distance(features1: FeatureVector, features2: FeatureVector) -> float:
    """Euclidean distance between two vectors of the same mode and length.

    Raises:
        ComparisonError: If the vectors come from different extraction modes
            or have different lengths.
    """
    if features1.mode != features2.mode:
        raise ComparisonError(
            f"Cannot compare {features1.mode.value} features with {features2.mode.value} features")
    if len(features1) != len(features2):
        raise ComparisonError(
            f"Feature vector lengths differ: {len(features1)} != {len(features2)}")
    return float(np.linalg.norm(features1.values - features2.values))


def confidence_from_distance(distance: float, scale: float) -> float:
    """Map a distance to a confidence in [0, 100]; 0 means at least `scale` apart."""
    if not math.isfinite(distance):
        return 0.0
    normalized = min(distance / scale, 1.0)
    return float(min(100.0, max(0.0, (1.0 - normalized) * 100.0)))


def distance_scale(mode: ExtractionMode, config: VerificationConfig) -> float:
    if mode == ExtractionMode.FALLBACK:
        return config.fallback_distance_scale
    return config.face_distance_scale


def score(features1: FeatureVector, features2: FeatureVector,
          config: Optional[VerificationConfig] = None) -> Tuple[float, float]:
    """Compare two feature vectors.

    Args:
        features1: Reference features.
        features2: Probe features.
        config: Calibration settings.

    Returns:
        Tuple of (confidence in [0, 100], raw distance).

    Raises:
        ComparisonError: If the vectors cannot be compared.
    """
    config = config or VerificationConfig()
    distance = euclidean_distance(features1, features2)
    scale = distance_scale(features1.mode, config)
    confidence = confidence_from_distance(distance, scale)
    logger.debug(f"Raw distance: {distance:.4f}, scale: {scale}, confidence: {confidence:.2f}%")
    return confidence, distance


def match_threshold(used_fallback: bool, config: Optional[VerificationConfig] = None) -> float:
    config = config or VerificationConfig()
    return config.fallback_match_threshold if used_fallback else config.face_match_threshold


def decide(
    confidence: float,
    used_fallback: bool,
    config: Optional[VerificationConfig] = None,
    distance: Optional[float] = None,
    reference_box: Optional[BoundingBox] = None,
    probe_box: Optional[BoundingBox] = None,
) -> VerificationResult:
    """Turn a confidence into a match verdict.

    Fallback comparisons need a higher confidence to match.
    """
    confidence = float(min(100.0, max(0.0, confidence)))
    threshold = match_threshold(used_fallback, config)
    is_match = confidence >= threshold

    template = MATCH_MESSAGE if is_match else NO_MATCH_MESSAGE
    message = template.format(confidence=confidence)
    if used_fallback:
        message += FALLBACK_SUFFIX

    logger.info(f"Threshold: {threshold:.0f}%, confidence: {confidence:.2f}%, match: {is_match}")
    return VerificationResult(
        is_match=is_match,
        confidence=confidence,
        message=message,
        used_fallback=used_fallback,
        distance=distance,
        threshold=threshold,
        reference_box=reference_box,
        probe_box=probe_box
    )
