"""Two-image face comparison pipeline.

Each image is loaded and searched for a face independently (on worker
threads by default). Once both are done, the pipeline picks a mode: face
regions when both images have a face, otherwise the whole images. It then
extracts features from both regions in that mode, scores them and applies
the match policy.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, wait
from typing import NamedTuple, Optional, Tuple, Union

import numpy as np

from ..config import VerificationConfig
from ..errors import ImageFormatError
from ..models.types import BoundingBox, DetectionOptions, ExtractionMode, PixelGrid, VerificationResult
from ..utils.image import as_pixel_grid, decode_image, load_image
from ..utils.timing import timed
from .cache import FeatureCache
from .face_detection import FaceDetector, FaceLocator, HaarCascadeFaceDetector
from .features import FeatureExtractor
from .region import extract
from .similarity import decide, score

logger = logging.getLogger(__name__)

ImageSource = Union[str, "os.PathLike[str]", bytes, np.ndarray]


class LocatedImage(NamedTuple):
    grid: PixelGrid
    box: Optional[BoundingBox]


class FaceComparator:
    """Compares two face images.

    Without a cache argument the comparator owns a feature cache sized by
    ``config.cache_capacity``. A cache passed in may be shared between
    comparators. Close the comparator (or use it as a context manager) when
    done.
    """

    def __init__(
        self,
        detector: Optional[FaceDetector] = None,
        config: Optional[VerificationConfig] = None,
        cache: Optional[FeatureCache] = None,
    ):
        self.config = (config or VerificationConfig()).validate()
        self.detector = detector if detector is not None else HaarCascadeFaceDetector()
        options: DetectionOptions = {
            'performanceMode': self.config.performance_mode,
            'minFaceSizeFraction': self.config.min_face_size_fraction
        }
        self.locator = FaceLocator(self.detector, options, timeout=self.config.detection_timeout)
        self.cache = cache if cache is not None else FeatureCache(self.config.cache_capacity)
        self.extractor = FeatureExtractor(self.config, self.cache)

    def load(self, source: ImageSource) -> PixelGrid:
        """Turn a path, encoded bytes or an array into a pixel grid."""
        if isinstance(source, np.ndarray):
            return as_pixel_grid(source, self.config.max_image_dimension)
        if isinstance(source, (bytes, bytearray)):
            return decode_image(bytes(source), self.config.max_image_dimension)
        if isinstance(source, (str, os.PathLike)):
            return load_image(source, self.config.max_image_dimension)
        raise ImageFormatError(f"Unsupported image source: {type(source).__name__}")

    def _locate(self, source: ImageSource, role: str) -> LocatedImage:
        prefix = f"{role.capitalize()}: "
        with timed(f"{role} load", logger):
            grid = self.load(source)
        logger.info(f"{prefix}Image size: {grid.shape[1]}x{grid.shape[0]}")
        with timed(f"{role} face detection", logger):
            box = self.locator.locate(grid, prefix)
        if box is None:
            logger.warning(f"{prefix}No face detected")
        return LocatedImage(grid, box)

    def _locate_both(self, source_a: ImageSource, source_b: ImageSource) -> Tuple[LocatedImage, LocatedImage]:
        if not self.config.parallel:
            return self._locate(source_a, "reference"), self._locate(source_b, "probe")

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="face-pipeline") as pool:
            future_a = pool.submit(self._locate, source_a, "reference")
            future_b = pool.submit(self._locate, source_b, "probe")
            # Join both before raising, so no pipeline outlives the call.
            wait([future_a, future_b])
            return future_a.result(), future_b.result()

    def _region(self, located: LocatedImage, used_fallback: bool) -> PixelGrid:
        region, _ = extract(
            located.grid,
            None if used_fallback else located.box,
            self.config.face_padding_ratio,
            self.config.fallback_size
        )
        return region

    def compare(self, source_a: ImageSource, source_b: ImageSource) -> VerificationResult:
        """Compare a reference image with a probe image.

        Args:
            source_a: Reference image (path, encoded bytes or pixel grid).
            source_b: Probe image.

        Returns:
            The verification result.

        Raises:
            ImageNotFoundError: If an image cannot be loaded.
            DetectionError: If face detection faults or times out.
            ExtractionError: If a face region is degenerate.
            ComparisonError: If the feature vectors cannot be compared.
        """
        with timed("compare faces", logger):
            reference, probe = self._locate_both(source_a, source_b)
            used_fallback = reference.box is None or probe.box is None
            if used_fallback:
                logger.warning("No face in one or both images, using fallback comparison")

            # Both regions must come from the same mode
            mode = ExtractionMode.FALLBACK if used_fallback else ExtractionMode.FACE_REGION
            region_a = self._region(reference, used_fallback)
            region_b = self._region(probe, used_fallback)

            with timed("feature extraction", logger):
                features_a = self.extractor.extract(region_a, mode)
                features_b = self.extractor.extract(region_b, mode)

            confidence, distance = score(features_a, features_b, self.config)
            logger.info(f"Raw distance: {distance:.4f}, confidence: {confidence:.2f}%")

            return decide(
                confidence,
                used_fallback,
                self.config,
                distance=distance,
                reference_box=None if used_fallback else reference.box,
                probe_box=None if used_fallback else probe.box
            )

    def close(self) -> None:
        self.locator.close()

    def __enter__(self) -> "FaceComparator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def compare_faces(
    source_a: ImageSource,
    source_b: ImageSource,
    detector: Optional[FaceDetector] = None,
    config: Optional[VerificationConfig] = None,
    cache: Optional[FeatureCache] = None,
) -> VerificationResult:
    """Compare two face images with a comparator scoped to this call.

    Args:
        source_a: Reference image.
        source_b: Probe image.
        detector: Face detector, defaults to the OpenCV Haar cascade.
        config: Pipeline settings.
        cache: Optional feature cache shared across calls.

    Returns:
        The verification result.
    """
    with FaceComparator(detector=detector, config=config, cache=cache) as comparator:
        return comparator.compare(source_a, source_b)
