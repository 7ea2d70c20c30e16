"""Stage timing helpers."""

import logging
import time
from contextlib import contextmanager

logger = logging.getLogger(__name__)


@contextmanager
def timed(label: str, log: logging.Logger = logger):
    """Log how long the enclosed block took, in milliseconds.

    The duration is logged even when the block raises.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration = (time.perf_counter() - start) * 1000.0
        log.debug(f"{label}: {duration:.1f}ms")
