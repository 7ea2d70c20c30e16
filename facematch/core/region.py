"""Face region extraction."""

import logging
from typing import Optional, Tuple

from ..config import FACE_PADDING_RATIO, FALLBACK_SIZE
from ..errors import ExtractionError
from ..models.types import BoundingBox, PixelGrid
from ..utils.image import crop_grid, resize_grid

logger = logging.getLogger(__name__)


def padded_box(box: BoundingBox, width: int, height: int,
               padding_ratio: float = FACE_PADDING_RATIO) -> BoundingBox:
    """Grow a box by padding_ratio of its larger side and clip it to the image."""
    padding = int(max(box.width, box.height) * padding_ratio)
    grown = BoundingBox(
        box.left - padding,
        box.top - padding,
        box.width + 2 * padding,
        box.height + 2 * padding
    )
    return grown.clip(width, height)


def extract_region(grid: PixelGrid, box: BoundingBox,
                   padding_ratio: float = FACE_PADDING_RATIO) -> PixelGrid:
    """Crop a padded face region.

    Args:
        grid: Source image.
        box: Detected face.
        padding_ratio: Padding added on every side, relative to the larger
            side of the box.

    Returns:
        Independent copy of the padded region.

    Raises:
        ExtractionError: If the clipped region is empty.
    """
    height, width = grid.shape[:2]
    region = padded_box(box, width, height, padding_ratio)
    if region.width <= 0 or region.height <= 0:
        raise ExtractionError(f"Face region {box.to_dict()} is empty after clipping to {width}x{height}")

    logger.debug(f"Extracting face region: {region.left},{region.top} {region.width}x{region.height}")
    return crop_grid(grid, region.left, region.top, region.right, region.bottom)


def fallback_region(grid: PixelGrid, size: int = FALLBACK_SIZE) -> PixelGrid:
    """Resize the whole image to a size x size square."""
    return resize_grid(grid, (size, size))


def extract(grid: PixelGrid, box: Optional[BoundingBox],
            padding_ratio: float = FACE_PADDING_RATIO,
            fallback_size: int = FALLBACK_SIZE) -> Tuple[PixelGrid, bool]:
    """Return (region, used_fallback) for an image and an optional face box."""
    if box is None:
        return fallback_region(grid, fallback_size), True
    return extract_region(grid, box, padding_ratio), False
