"""Face detection and face location module.

This module defines the detector capability the pipeline depends on, two
concrete detectors (an OpenCV Haar cascade and the ``face_recognition`` HOG/CNN
models) and the ``FaceLocator`` that runs a detector under a timeout and picks
the face to compare.
"""

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import List, Optional, Protocol

import cv2
import numpy as np

from ..config import DETECTION_TIMEOUT, MIN_FACE_SIZE_FRACTION, PERFORMANCE_MODE
from ..errors import DetectionError
from ..models.types import BoundingBox, DetectionOptions, PixelGrid

logger = logging.getLogger(__name__)


def default_options() -> DetectionOptions:
    return {
        'performanceMode': PERFORMANCE_MODE,
        'minFaceSizeFraction': MIN_FACE_SIZE_FRACTION
    }


class FaceDetector(Protocol):
    """Capability required from a face detector."""

    def detect_faces(self, grid: PixelGrid, options: DetectionOptions) -> List[BoundingBox]:
        """Detect faces in an RGB pixel grid.

        Args:
            grid: Input image as (height, width, 3) uint8 RGB.
            options: Performance mode and minimum face size.

        Returns:
            Bounding boxes of all faces found, possibly empty.
        """
        ...


def _min_face_pixels(grid: PixelGrid, options: DetectionOptions) -> int:
    height, width = grid.shape[:2]
    return int(min(height, width) * float(options.get('minFaceSizeFraction', 0.0)))


class HaarCascadeFaceDetector:
    """Frontal face detector based on the OpenCV Haar cascade."""

    CASCADE_FILE = "haarcascade_frontalface_default.xml"

    # (scaleFactor, minNeighbors) per performance mode
    PARAMETERS = {
        'fast': (1.1, 5),
        'accurate': (1.05, 6),
    }

    def __init__(self, cascade_path: Optional[str] = None):
        """Load the cascade.

        Args:
            cascade_path: Cascade XML file. Defaults to the frontal face
                cascade shipped with OpenCV.

        Raises:
            DetectionError: If the cascade cannot be loaded.
        """
        try:
            if cascade_path is None:
                cascade_path = cv2.data.haarcascades + self.CASCADE_FILE
            self._classifier = cv2.CascadeClassifier(cascade_path)
        except Exception as e:
            # Haar cascades are part of the OpenCV 4.x API
            raise DetectionError(f"OpenCV {cv2.__version__} cannot load a Haar cascade: {str(e)}") from e
        if self._classifier.empty():
            raise DetectionError(f"Failed to load Haar cascade: {cascade_path}")

    def detect_faces(self, grid: PixelGrid, options: DetectionOptions) -> List[BoundingBox]:
        gray = cv2.cvtColor(np.ascontiguousarray(grid), cv2.COLOR_RGB2GRAY)
        scale_factor, min_neighbors = self.PARAMETERS.get(
            options.get('performanceMode', PERFORMANCE_MODE), self.PARAMETERS['fast'])
        min_side = max(1, _min_face_pixels(grid, options))

        faces = self._classifier.detectMultiScale(
            gray,
            scaleFactor=scale_factor,
            minNeighbors=min_neighbors,
            minSize=(min_side, min_side)
        )
        return [BoundingBox(int(x), int(y), int(w), int(h)) for (x, y, w, h) in faces]


class HogFaceDetector:
    """Face detector backed by the ``face_recognition`` library.

    Fast mode uses the HOG model, accurate mode the CNN model.
    """

    MODELS = {
        'fast': 'hog',
        'accurate': 'cnn',
    }

    def __init__(self, upsample: int = 1):
        # Imported lazily: dlib is heavy and optional.
        import face_recognition

        self._face_recognition = face_recognition
        self.upsample = int(upsample)

    def detect_faces(self, grid: PixelGrid, options: DetectionOptions) -> List[BoundingBox]:
        model = self.MODELS.get(options.get('performanceMode', PERFORMANCE_MODE), 'hog')
        locations = self._face_recognition.face_locations(
            np.ascontiguousarray(grid),
            number_of_times_to_upsample=self.upsample,
            model=model
        )

        min_side = _min_face_pixels(grid, options)
        boxes = []
        for (top, right, bottom, left) in locations:
            w = right - left
            h = bottom - top
            # Filter out small faces (likely false detections)
            if min(w, h) < min_side:
                continue
            boxes.append(BoundingBox(int(left), int(top), int(w), int(h)))
        return boxes


def select_largest_face(boxes: List[BoundingBox]) -> Optional[BoundingBox]:
    """Pick the box with the largest area; the first one wins ties."""
    largest: Optional[BoundingBox] = None
    for box in boxes:
        if largest is None or box.area > largest.area:
            largest = box
    return largest


class FaceLocator:
    """Runs a face detector with a timeout and selects one face per image.

    Every ``locate`` call runs the detector on its own daemon thread, so the
    timeout starts when detection starts and concurrent callers never wait
    behind each other. Python threads cannot be interrupted: a detector that
    overruns finishes in the background and its result is discarded.
    """

    def __init__(
        self,
        detector: FaceDetector,
        options: Optional[DetectionOptions] = None,
        timeout: float = DETECTION_TIMEOUT,
    ):
        self.detector = detector
        self.options: DetectionOptions = options or default_options()
        self.timeout = float(timeout)
        self._closed = False

    def _run(self, grid: PixelGrid, future: Future) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(self.detector.detect_faces(grid, self.options))
        except BaseException as e:
            future.set_exception(e)

    def locate(self, grid: PixelGrid, prefix: str = "") -> Optional[BoundingBox]:
        """Find the face to compare in a pixel grid.

        Args:
            grid: Input image.
            prefix: Prefix for logging messages.

        Returns:
            The largest detected face, clipped to the grid, or None when no
            face was found.

        Raises:
            DetectionError: If the locator is closed, or the detector faults,
                returns malformed boxes or exceeds the timeout.
        """
        if self._closed:
            raise DetectionError("Face locator is closed")

        height, width = grid.shape[:2]
        future: Future = Future()
        worker = threading.Thread(target=self._run, args=(grid, future), name="face-detect", daemon=True)
        worker.start()
        try:
            boxes = future.result(timeout=self.timeout)
            candidates = []
            for box in boxes or []:
                clipped = BoundingBox(*(int(v) for v in box)).clip(width, height)
                if clipped.area > 0:
                    candidates.append(clipped)
        except FutureTimeoutError as e:
            logger.error(f"{prefix}Face detection timed out after {self.timeout:.1f}s")
            raise DetectionError(f"Face detection timed out after {self.timeout:.1f}s") from e
        except DetectionError:
            raise
        except Exception as e:
            logger.error(f"{prefix}Face detection failed: {str(e)}")
            raise DetectionError(f"Face detection failed: {str(e)}") from e

        logger.info(f"{prefix}Found {len(candidates)} faces")
        face = select_largest_face(candidates)
        if face is not None:
            logger.debug(f"{prefix}Selected face {face.to_dict()}")
        return face

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "FaceLocator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
