"""Image loading utilities.

This module turns image files, encoded image bytes and caller-supplied arrays
into pixel grids: read-only ``(height, width, 3)`` uint8 RGB arrays that are
right-side-up and bounded in size.
"""

import io
import logging
import os
from typing import Tuple, Union

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import MAX_IMAGE_DIMENSION
from ..errors import ImageFormatError, ImageNotFoundError
from ..models.types import PixelGrid

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def reduction_factor(width: int, height: int, max_dimension: int = MAX_IMAGE_DIMENSION) -> int:
    """Integer factor that brings the larger side down towards max_dimension.

    The reduced larger side never drops below ``max_dimension``.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        max_dimension: Largest side allowed without reduction.

    Returns:
        Reduction factor, 1 when no reduction is needed.
    """
    larger = max(width, height)
    if larger <= max_dimension:
        return 1
    return max(1, larger // max_dimension)


def _to_grid(image: Image.Image, max_dimension: int) -> PixelGrid:
    # Orientation must be fixed before anything looks at coordinates.
    image = ImageOps.exif_transpose(image)
    if image.mode != 'RGB':
        image = image.convert('RGB')

    factor = reduction_factor(image.width, image.height, max_dimension)
    if factor > 1:
        logger.debug(f"Reducing {image.width}x{image.height} image by factor {factor}")
        image = image.reduce(factor)

    grid = np.array(image, dtype=np.uint8)
    grid.flags.writeable = False
    return grid


def load_image(path: PathLike, max_dimension: int = MAX_IMAGE_DIMENSION) -> PixelGrid:
    """Load an image file into a pixel grid.

    Args:
        path: Path to the image file. A ``file://`` prefix is accepted.
        max_dimension: Images with a larger side above this are reduced.

    Returns:
        Read-only RGB pixel grid.

    Raises:
        ImageNotFoundError: If the file does not exist or cannot be decoded.
    """
    filename = os.fspath(path)
    if filename.startswith('file://'):
        filename = filename[len('file://'):]

    if not os.path.isfile(filename):
        raise ImageNotFoundError(f"Image file does not exist: {filename}")

    try:
        with Image.open(filename) as image:
            grid = _to_grid(image, max_dimension)
    except (UnidentifiedImageError, Image.DecompressionBombError) as e:
        raise ImageNotFoundError(f"Failed to decode image {filename}: {str(e)}") from e
    except (OSError, MemoryError, ValueError) as e:
        raise ImageNotFoundError(f"Failed to read image {filename}: {str(e)}") from e

    logger.debug(f"Loaded {filename}: {grid.shape[1]}x{grid.shape[0]}")
    return grid


def decode_image(data: bytes, max_dimension: int = MAX_IMAGE_DIMENSION) -> PixelGrid:
    """Decode an encoded image (JPEG, PNG, ...) held in memory.

    Raises:
        ImageFormatError: If the bytes cannot be decoded as an image.
    """
    if not data:
        raise ImageFormatError("Image data is empty")
    try:
        with Image.open(io.BytesIO(data)) as image:
            return _to_grid(image, max_dimension)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, MemoryError, ValueError) as e:
        raise ImageFormatError(f"Failed to decode image data: {str(e)}") from e


def as_pixel_grid(array: np.ndarray, max_dimension: int = MAX_IMAGE_DIMENSION) -> PixelGrid:
    """Validate a caller-supplied array and return it as a pixel grid.

    Accepts grayscale ``(h, w)``, RGB ``(h, w, 3)`` and RGBA ``(h, w, 4)``
    uint8 arrays. The result is always a new read-only RGB array, reduced
    by the same integer factor as a loaded file of that size.

    Raises:
        ImageFormatError: If the array has an unsupported shape or dtype.
    """
    if not isinstance(array, np.ndarray):
        raise ImageFormatError(f"Expected numpy array, got {type(array).__name__}")
    if array.dtype != np.uint8:
        raise ImageFormatError(f"Expected uint8 pixels, got {array.dtype}")

    if array.ndim == 2:
        grid = np.repeat(array[:, :, np.newaxis], 3, axis=2)
    elif array.ndim == 3 and array.shape[2] in (3, 4):
        grid = np.array(array[:, :, :3], copy=True)
    else:
        raise ImageFormatError(f"Unsupported image shape: {array.shape}")

    if grid.shape[0] == 0 or grid.shape[1] == 0:
        raise ImageFormatError(f"Image has no pixels: {array.shape}")

    factor = reduction_factor(grid.shape[1], grid.shape[0], max_dimension)
    if factor > 1:
        logger.debug(f"Reducing {grid.shape[1]}x{grid.shape[0]} array by factor {factor}")
        grid = np.array(Image.fromarray(np.ascontiguousarray(grid), 'RGB').reduce(factor), dtype=np.uint8)

    grid = np.ascontiguousarray(grid)
    grid.flags.writeable = False
    return grid


def resize_grid(grid: PixelGrid, size: Tuple[int, int]) -> PixelGrid:
    """Resize a pixel grid to (width, height).

    Note:
        Uses area interpolation, which averages source pixels when shrinking.
    """
    resized = cv2.resize(np.ascontiguousarray(grid), size, interpolation=cv2.INTER_AREA)
    resized.flags.writeable = False
    return resized


def crop_grid(grid: PixelGrid, left: int, top: int, right: int, bottom: int) -> PixelGrid:
    """Copy a rectangle out of a pixel grid."""
    cropped = np.array(grid[top:bottom, left:right], copy=True)
    cropped.flags.writeable = False
    return cropped
