"""Utility functions for image loading and timing"""
from .image import (
    as_pixel_grid,
    crop_grid,
    decode_image,
    load_image,
    reduction_factor,
    resize_grid
)
from .timing import timed

__all__ = [
    'as_pixel_grid',
    'crop_grid',
    'decode_image',
    'load_image',
    'reduction_factor',
    'resize_grid',
    'timed'
]
