from __future__ import annotations

import numpy as np
import pytest

from facematch.config import VerificationConfig
from facematch.core.cache import FeatureCache
from facematch.core.features import (
    FeatureExtractor,
    color_histogram_features,
    edge_features,
    feature_layout,
    is_skin,
    sample_stride,
    skin_tone_features,
    spatial_color_features,
    texture_features,
    to_grayscale,
)
from facematch.errors import ExtractionError
from facematch.models.types import ExtractionMode

from conftest import gradient_face, noise_image, solid_image


def _block(vector, name, layout):
    start = 0
    for block, length in layout.items():
        if block == name:
            return vector.values[start:start + length]
        start += length
    raise KeyError(name)


def test_reference_layout():
    layout = feature_layout()
    assert list(layout) == ['skin', 'spatial', 'color', 'texture', 'edge']
    assert layout == {'skin': 7, 'spatial': 48, 'color': 48, 'texture': 16, 'edge': 16}
    assert FeatureExtractor().length == 135


def test_layout_follows_config():
    config = VerificationConfig(spatial_grid_size=3, histogram_bins=8)
    extractor = FeatureExtractor(config)
    assert extractor.layout['spatial'] == 27
    assert extractor.layout['color'] == 24
    assert len(extractor.extract(noise_image(0))) == extractor.length


@pytest.mark.parametrize("size", [(100, 80), (333, 257), (3, 3), (1, 1), (2, 7)])
def test_vector_length_does_not_depend_on_region_size(size):
    extractor = FeatureExtractor()
    assert len(extractor.extract(noise_image(7, size=size))) == 135


def test_extraction_is_deterministic():
    extractor = FeatureExtractor()
    region = noise_image(11, size=(600, 400))
    first = extractor.extract(region)
    second = extractor.extract(region.copy())
    assert first == second
    assert first.mode == ExtractionMode.FACE_REGION


def test_vector_is_read_only():
    vector = FeatureExtractor().extract(noise_image(12))
    with pytest.raises(ValueError):
        vector.values[0] = 1.0


def test_empty_region_is_rejected():
    with pytest.raises(ExtractionError):
        FeatureExtractor().extract(np.zeros((0, 4, 3), dtype=np.uint8))


@pytest.mark.parametrize("shape", [(8, 8, 4), (8, 8), (8, 8, 1)])
def test_non_rgb_region_is_rejected(shape):
    with pytest.raises(ExtractionError, match="RGB"):
        FeatureExtractor().extract(np.zeros(shape, dtype=np.uint8))


@pytest.mark.parametrize(
    "pixel, expected",
    [
        ((200, 150, 120), True),
        ((96, 41, 21), True),
        ((95, 41, 21), False),   # R too low
        ((150, 140, 100), False),  # |R - G| too small
        ((255, 0, 0), False),    # G too low
        ((0, 0, 255), False),
        ((120, 130, 50), False),  # R < G
    ],
)
def test_skin_rule(pixel, expected):
    assert bool(is_skin(np.array([pixel], dtype=np.uint8))[0]) is expected


def test_skin_features_on_uniform_skin():
    pixels = np.array([(200, 150, 120)] * 10 + [(0, 0, 255)] * 10, dtype=np.uint8)
    features = skin_tone_features(pixels)
    assert features[:3] == pytest.approx([200 / 255, 150 / 255, 120 / 255])
    assert features[3:6] == pytest.approx([0.0, 0.0, 0.0])
    assert features[6] == pytest.approx(0.5)


def test_skin_features_are_zero_without_skin():
    pixels = solid_image((0, 0, 255), size=(10, 10)).reshape(-1, 3)
    assert not skin_tone_features(pixels).any()


def test_spatial_features_follow_cells():
    region = np.zeros((4, 4, 3), dtype=np.uint8)
    region[:2, :2] = (255, 0, 0)
    features = spatial_color_features(region, 2).reshape(2, 2, 3)
    assert features[0, 0] == pytest.approx([1.0, 0.0, 0.0])
    assert features[1, 1] == pytest.approx([0.0, 0.0, 0.0])


def test_spatial_features_handle_regions_smaller_than_grid():
    features = spatial_color_features(solid_image((255, 255, 255), size=(2, 2)), 4)
    assert features.shape == (48,)
    assert features.max() == pytest.approx(1.0)


def test_color_histogram_fractions():
    pixels = np.array([(0, 128, 255), (15, 16, 255)], dtype=np.uint8)
    features = color_histogram_features(pixels, 16).reshape(3, 16)
    assert features[0, 0] == pytest.approx(1.0)
    assert features[1, 8] == pytest.approx(0.5)
    assert features[1, 1] == pytest.approx(0.5)
    assert features[2, 15] == pytest.approx(1.0)
    assert features.sum(axis=1) == pytest.approx([1.0, 1.0, 1.0])


def test_grayscale_uses_truncated_luma():
    region = np.array([[(100, 50, 25)]], dtype=np.uint8)
    # 29.9 + 29.35 + 2.85 = 62.1
    assert to_grayscale(region)[0, 0] == 62


def test_texture_of_flat_region_is_single_pattern():
    gray = np.full((5, 5), 100, dtype=np.int32)
    features = texture_features(gray)
    assert features[15] == pytest.approx(1.0)
    assert features.sum() == pytest.approx(1.0)


def test_texture_bits():
    gray = np.array([[9, 0, 0], [0, 5, 0], [0, 0, 0]], dtype=np.int32)
    # only the top-left neighbour is >= centre
    assert texture_features(gray)[1] == pytest.approx(1.0)


def test_edge_histogram_buckets_sobel_magnitude():
    flat = np.full((6, 6), 50, dtype=np.int32)
    assert edge_features(flat)[0] == pytest.approx(1.0)

    step = np.zeros((3, 3), dtype=np.int32)
    step[:, 2] = 255
    # gx = 4 * 255 = 1020, beyond the last bin
    assert edge_features(step)[15] == pytest.approx(1.0)


def test_tiny_regions_have_empty_texture_and_edge_blocks():
    layout = feature_layout()
    vector = FeatureExtractor().extract(solid_image((200, 150, 120), size=(2, 2)))
    assert not _block(vector, 'texture', layout).any()
    assert not _block(vector, 'edge', layout).any()
    assert _block(vector, 'skin', layout)[6] == pytest.approx(1.0)


def test_sample_stride_is_deterministic():
    assert sample_stride(300, 300, 512) == 1
    assert sample_stride(1024, 700, 512) == 2
    assert sample_stride(1025, 10, 512) == 3


def test_cache_does_not_change_results():
    region = gradient_face()
    plain = FeatureExtractor().extract(region)

    cache = FeatureCache(capacity=4)
    cached_extractor = FeatureExtractor(cache=cache)
    first = cached_extractor.extract(region)
    second = cached_extractor.extract(region)

    assert np.array_equal(plain.values, first.values)
    assert np.array_equal(plain.values, second.values)
    assert plain.values.tobytes() == second.values.tobytes()
    assert cache.stats['hits'] == 1
    assert cache.stats['misses'] == 1


def test_cache_keys_include_mode():
    cache = FeatureCache(capacity=4)
    extractor = FeatureExtractor(cache=cache)
    region = noise_image(21)
    face = extractor.extract(region, ExtractionMode.FACE_REGION)
    fallback = extractor.extract(region, ExtractionMode.FALLBACK)
    assert face.mode == ExtractionMode.FACE_REGION
    assert fallback.mode == ExtractionMode.FALLBACK
    assert len(cache) == 2
