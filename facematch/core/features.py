"""Hand-crafted face feature extraction.

A region is described by five blocks, concatenated in this order:

1. skin: mean and standard deviation of R, G, B over skin-coloured pixels
   (each divided by 255) and the skin fraction of sampled pixels. 7 values.
2. spatial: mean R, G, B (divided by 255) of each cell of an N x N grid,
   cells in row-major order. N * N * 3 values.
3. color: per-channel histogram with equal-width bins over [0, 255], as
   fractions of sampled pixels; all R bins, then G, then B. 3 * bins values.
4. texture: histogram of a 4-neighbour binary pattern over interior pixels,
   as fractions of interior pixels. 16 values.
5. edge: histogram of 3x3 Sobel gradient magnitude over interior pixels,
   16 levels wide per bin with the last bin open-ended. 16 values.

The layout depends only on the configuration, never on the region size.
Everything is deterministic, so an identical region always yields an
identical vector.
"""

import logging
import math
from typing import Optional

import cv2
import numpy as np

from ..config import EDGE_BINS, PATTERN_BINS, VerificationConfig
from ..errors import ExtractionError
from ..models.types import ExtractionMode, FeatureLayout, FeatureVector, PixelGrid
from .cache import FeatureCache, region_fingerprint

logger = logging.getLogger(__name__)

SKIN_FEATURES = 7
EDGE_BIN_WIDTH = 16

# Luma weights for grayscale conversion
LUMA_R = 0.299
LUMA_G = 0.587
LUMA_B = 0.114


def feature_layout(config: Optional[VerificationConfig] = None) -> FeatureLayout:
    """Block names mapped to their lengths, in vector order."""
    config = config or VerificationConfig()
    return {
        'skin': SKIN_FEATURES,
        'spatial': config.spatial_grid_size * config.spatial_grid_size * 3,
        'color': config.histogram_bins * 3,
        'texture': PATTERN_BINS,
        'edge': EDGE_BINS,
    }


def is_skin(pixels: np.ndarray) -> np.ndarray:
    """Boolean mask of skin-coloured pixels for an (n, 3) RGB array."""
    rgb = pixels.astype(np.int32)
    r, g, b = rgb[:, 0], rgb[:, 1], rgb[:, 2]
    return (
        (r > 95) & (g > 40) & (b > 20)
        & (r > g) & (r > b)
        & (np.abs(r - g) > 15)
        & (r - np.minimum(g, b) > 15)
    )


def to_grayscale(region: PixelGrid) -> np.ndarray:
    """Integer luma, truncated towards zero."""
    rgb = region.astype(np.float64)
    gray = LUMA_R * rgb[:, :, 0] + LUMA_G * rgb[:, :, 1] + LUMA_B * rgb[:, :, 2]
    return np.floor(gray).astype(np.int32)


def sample_stride(height: int, width: int, max_sample_side: int) -> int:
    return max(1, math.ceil(max(height, width) / max_sample_side))


def skin_tone_features(pixels: np.ndarray) -> np.ndarray:
    features = np.zeros(SKIN_FEATURES, dtype=np.float64)
    if len(pixels) == 0:
        return features

    mask = is_skin(pixels)
    count = int(np.count_nonzero(mask))
    if count == 0:
        return features

    skin = pixels[mask].astype(np.float64)
    features[0:3] = skin.mean(axis=0) / 255.0
    features[3:6] = skin.std(axis=0) / 255.0
    features[6] = count / len(pixels)
    return features


def spatial_color_features(region: PixelGrid, grid_size: int) -> np.ndarray:
    height, width = region.shape[:2]
    ys = [(i * height) // grid_size for i in range(grid_size + 1)]
    xs = [(i * width) // grid_size for i in range(grid_size + 1)]

    features = np.zeros((grid_size, grid_size, 3), dtype=np.float64)
    for gy in range(grid_size):
        for gx in range(grid_size):
            cell = region[ys[gy]:ys[gy + 1], xs[gx]:xs[gx + 1]]
            if cell.size == 0:
                continue
            features[gy, gx] = cell.reshape(-1, 3).mean(axis=0) / 255.0
    return features.reshape(-1)


def color_histogram_features(pixels: np.ndarray, bins: int) -> np.ndarray:
    features = np.zeros((3, bins), dtype=np.float64)
    total = len(pixels)
    if total == 0:
        return features.reshape(-1)

    indices = pixels.astype(np.int32) * bins // 256
    for channel in range(3):
        counts = np.bincount(indices[:, channel], minlength=bins)
        features[channel] = counts[:bins] / total
    return features.reshape(-1)


def texture_features(gray: np.ndarray) -> np.ndarray:
    features = np.zeros(PATTERN_BINS, dtype=np.float64)
    height, width = gray.shape
    if height < 3 or width < 3:
        return features

    center = gray[1:-1, 1:-1]
    pattern = (
        (gray[:-2, :-2] >= center).astype(np.int32)         # (x-1, y-1)
        | (gray[:-2, 1:-1] >= center).astype(np.int32) << 1  # (x, y-1)
        | (gray[:-2, 2:] >= center).astype(np.int32) << 2    # (x+1, y-1)
        | (gray[1:-1, 2:] >= center).astype(np.int32) << 3   # (x+1, y)
    )
    counts = np.bincount(pattern.reshape(-1) % PATTERN_BINS, minlength=PATTERN_BINS)
    return counts / center.size


def edge_features(gray: np.ndarray) -> np.ndarray:
    features = np.zeros(EDGE_BINS, dtype=np.float64)
    height, width = gray.shape
    if height < 3 or width < 3:
        return features

    source = gray.astype(np.float64)
    gx = cv2.Sobel(source, cv2.CV_64F, 1, 0, ksize=3)[1:-1, 1:-1]
    gy = cv2.Sobel(source, cv2.CV_64F, 0, 1, ksize=3)[1:-1, 1:-1]
    magnitude = np.floor(np.sqrt(gx * gx + gy * gy)).astype(np.int64)
    indices = np.minimum(EDGE_BINS - 1, magnitude // EDGE_BIN_WIDTH)
    counts = np.bincount(indices.reshape(-1), minlength=EDGE_BINS)
    return counts / indices.size


class FeatureExtractor:
    """Computes feature vectors, optionally memoized in a FeatureCache."""

    def __init__(self, config: Optional[VerificationConfig] = None,
                 cache: Optional[FeatureCache] = None):
        self.config = config or VerificationConfig()
        self.cache = cache
        self.layout = feature_layout(self.config)
        self.length = sum(self.layout.values())

    def extract(self, region: PixelGrid,
                mode: ExtractionMode = ExtractionMode.FACE_REGION) -> FeatureVector:
        """Extract the feature vector of a region.

        Args:
            region: Face region or fallback image.
            mode: Extraction mode the vector is tagged with.

        Returns:
            Feature vector of length ``self.length``.

        Raises:
            ExtractionError: If the region is not RGB or has no pixels.
        """
        if region.ndim != 3 or region.shape[2] != 3:
            raise ExtractionError(f"Expected an RGB region, got shape {region.shape}")
        if region.shape[0] == 0 or region.shape[1] == 0:
            raise ExtractionError(f"Cannot extract features from region of shape {region.shape}")

        mode = ExtractionMode(mode)
        key = None
        if self.cache is not None:
            key = region_fingerprint(region, mode)
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Feature cache hit for {key}")
                return cached

        vector = FeatureVector(self._compute(region), mode)
        if key is not None:
            self.cache.put(key, vector)
        return vector

    def _compute(self, region: PixelGrid) -> np.ndarray:
        height, width = region.shape[:2]
        stride = sample_stride(height, width, self.config.max_sample_side)
        sampled = region[::stride, ::stride].reshape(-1, 3)
        gray = to_grayscale(region)

        blocks = [
            skin_tone_features(sampled),
            spatial_color_features(region, self.config.spatial_grid_size),
            color_histogram_features(sampled, self.config.histogram_bins),
            texture_features(gray),
            edge_features(gray),
        ]
        values = np.concatenate(blocks)
        logger.debug(f"Extracted {values.shape[0]} features from {width}x{height} region (stride {stride})")
        return values
