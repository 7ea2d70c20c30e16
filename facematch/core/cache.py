"""Bounded, thread-safe feature vector cache."""

import threading
import zlib
from collections import deque
from typing import Deque, Dict, Optional, Tuple

import numpy as np

from ..config import CACHE_CAPACITY
from ..models.types import ExtractionMode, FeatureVector, PixelGrid

CacheKey = Tuple[str, int, int, int]


def region_fingerprint(region: PixelGrid, mode: ExtractionMode) -> CacheKey:
    """Coarse content key: mode, dimensions and a CRC32 of the pixels.

    Not collision-proof; it only decides whether a cached vector is reused.
    """
    height, width = region.shape[:2]
    checksum = zlib.crc32(np.ascontiguousarray(region).tobytes())
    return (ExtractionMode(mode).value, int(height), int(width), int(checksum))


class FeatureCache:
    """First-in first-out cache of feature vectors.

    When full, the entry inserted earliest is evicted. Reads do not change
    the eviction order, and putting an existing key replaces its vector
    in place.
    """

    def __init__(self, capacity: int = CACHE_CAPACITY):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = int(capacity)
        self._entries: Dict[CacheKey, FeatureVector] = {}
        self._order: Deque[CacheKey] = deque()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: CacheKey) -> Optional[FeatureVector]:
        with self._lock:
            vector = self._entries.get(key)
            if vector is None:
                self.misses += 1
            else:
                self.hits += 1
            return vector

    def put(self, key: CacheKey, vector: FeatureVector) -> None:
        if self.capacity == 0:
            return
        with self._lock:
            if key in self._entries:
                self._entries[key] = vector
                return
            while len(self._order) >= self.capacity:
                oldest = self._order.popleft()
                del self._entries[oldest]
                self.evictions += 1
            self._entries[key] = vector
            self._order.append(key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._order.clear()

    @property
    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                'size': len(self._entries),
                'capacity': self.capacity,
                'hits': self.hits,
                'misses': self.misses,
                'evictions': self.evictions
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries
