"""Configuration settings for the face matching pipeline."""

import os
from dataclasses import dataclass, fields, replace

# Image loading
MAX_IMAGE_DIMENSION = 1024  # Larger images are reduced by an integer factor

# Face detection
PERFORMANCE_MODE = "fast"
MIN_FACE_SIZE_FRACTION = 0.1  # Minimum face size relative to the shorter side
DETECTION_TIMEOUT = 10.0  # Seconds

# Region extraction
FACE_PADDING_RATIO = 0.3  # Padding around detected face, relative to its larger side
FALLBACK_SIZE = 300  # Square size used when no face is found

# Feature extraction
SPATIAL_GRID_SIZE = 4
HISTOGRAM_BINS = 16
PATTERN_BINS = 16
EDGE_BINS = 16
MAX_SAMPLE_SIDE = 512
CACHE_CAPACITY = 8

# Scoring
FACE_DISTANCE_SCALE = 5.0
FALLBACK_DISTANCE_SCALE = 3.5
FACE_MATCH_THRESHOLD = 70.0
FALLBACK_MATCH_THRESHOLD = 85.0


@dataclass(frozen=True)
class VerificationConfig:
    max_image_dimension: int = MAX_IMAGE_DIMENSION
    performance_mode: str = PERFORMANCE_MODE
    min_face_size_fraction: float = MIN_FACE_SIZE_FRACTION
    detection_timeout: float = DETECTION_TIMEOUT
    face_padding_ratio: float = FACE_PADDING_RATIO
    fallback_size: int = FALLBACK_SIZE
    spatial_grid_size: int = SPATIAL_GRID_SIZE
    histogram_bins: int = HISTOGRAM_BINS
    max_sample_side: int = MAX_SAMPLE_SIDE
    cache_capacity: int = CACHE_CAPACITY
    face_distance_scale: float = FACE_DISTANCE_SCALE
    fallback_distance_scale: float = FALLBACK_DISTANCE_SCALE
    face_match_threshold: float = FACE_MATCH_THRESHOLD
    fallback_match_threshold: float = FALLBACK_MATCH_THRESHOLD
    # Run the two per-image pipelines on worker threads.
    parallel: bool = True

    def validate(self) -> "VerificationConfig":
        """Check value ranges and return self.

        Raises:
            ValueError: If any setting is out of range.
        """
        for name in ("max_image_dimension", "fallback_size", "spatial_grid_size",
                     "histogram_bins", "max_sample_side"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        for name in ("face_distance_scale", "fallback_distance_scale", "detection_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        for name in ("face_match_threshold", "fallback_match_threshold"):
            if not 0.0 <= getattr(self, name) <= 100.0:
                raise ValueError(f"{name} must be within [0, 100]")
        if self.cache_capacity < 0:
            raise ValueError("cache_capacity must be >= 0")
        if self.face_padding_ratio < 0:
            raise ValueError("face_padding_ratio must be >= 0")
        if not 0.0 <= self.min_face_size_fraction <= 1.0:
            raise ValueError("min_face_size_fraction must be within [0, 1]")
        if self.performance_mode not in ("fast", "accurate"):
            raise ValueError(f"Unknown performance mode: {self.performance_mode}")
        return self

    @classmethod
    def from_env(cls, prefix: str = "FACEMATCH_", environ=None) -> "VerificationConfig":
        """Build a config from defaults overridden by environment variables.

        Each field maps to ``<prefix><FIELD_NAME>``, e.g.
        ``FACEMATCH_FACE_MATCH_THRESHOLD=72``.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for field in fields(cls):
            raw = environ.get(prefix + field.name.upper())
            if raw is None:
                continue
            overrides[field.name] = _parse_value(field.name, field.type, raw)
        return replace(cls(), **overrides).validate()


def _parse_value(name: str, type_name, raw: str):
    type_name = getattr(type_name, "__name__", type_name)
    try:
        if type_name == "bool":
            lowered = raw.strip().lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off"):
                return False
            raise ValueError(raw)
        if type_name == "int":
            return int(raw)
        if type_name == "float":
            return float(raw)
        return raw.strip()
    except ValueError as e:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from e
