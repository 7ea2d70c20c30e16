from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np
import pytest
from PIL import Image

from facematch.models.types import BoundingBox, DetectionOptions, PixelGrid


class StubDetector:
    """Deterministic detector returning fixed boxes.

    `boxes` may be a list (returned for every image) or a callable taking
    the grid and returning a list.
    """

    def __init__(
        self,
        boxes: List[BoundingBox] | Callable[[PixelGrid], List[BoundingBox]] | None = None,
        error: Optional[Exception] = None,
        block: Optional[threading.Event] = None,
        delay: float = 0.0,
    ):
        self.boxes = boxes if boxes is not None else []
        self.error = error
        self.block = block
        self.delay = delay
        self.calls: List[DetectionOptions] = []
        self._lock = threading.Lock()

    def detect_faces(self, grid: PixelGrid, options: DetectionOptions) -> List[BoundingBox]:
        with self._lock:
            self.calls.append(options)
        if self.block is not None:
            self.block.wait(timeout=5.0)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if callable(self.boxes):
            return list(self.boxes(grid))
        return list(self.boxes)


def solid_image(color, size=(300, 300)) -> np.ndarray:
    width, height = size
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :] = color
    return image


def gradient_face(brightness: float = 1.0, size: int = 240) -> np.ndarray:
    """Horizontal skin-tone ramp, the same on every row."""
    t = np.linspace(0.0, 1.0, size)
    row = np.stack([40 + 160 * t, 20 + 100 * t, 10 + 70 * t], axis=-1)
    image = np.repeat(row[np.newaxis, :, :], size, axis=0)
    return np.clip(image * brightness, 0, 255).astype(np.uint8)


def noise_image(seed: int, size=(120, 90)) -> np.ndarray:
    width, height = size
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


@pytest.fixture
def face_box() -> BoundingBox:
    # Central face in a 240x240 gradient_face image
    return BoundingBox(60, 60, 120, 120)


@pytest.fixture
def write_image(tmp_path: Path):
    def _write(array: np.ndarray, name: str = "image.png", **save_kwargs) -> Path:
        path = tmp_path / name
        Image.fromarray(array).save(path, **save_kwargs)
        return path

    return _write
