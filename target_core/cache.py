#!/usr/bin/env python
#
# Target Scan - Stage Cache
# © 2025 Shinichi Morita (shin3tky)
#

"""
Per-stage memoization for the detection pipeline.

Three independent bounded maps hold preprocessing, contour and filtering
results. Preprocessing and contour entries are keyed by the image content
hash; filtering entries by ``<imageHash>_<configHash>`` so every threshold
experiment on one image can be invalidated together.

All access goes through a single lock. The maps are never handed out.
"""

import logging
import threading
from typing import Any, Dict, Optional

from .schema import DEFAULT_MAX_CACHE_SIZE, CacheStatistics
from .utils import make_filtering_key

logger = logging.getLogger(__name__)

STAGE_PREPROCESSING = "preprocessing"
STAGE_CONTOURS = "contours"
STAGE_FILTERING = "filtering"
CACHED_STAGES = (STAGE_PREPROCESSING, STAGE_CONTOURS, STAGE_FILTERING)


class StageCache:
    """Thread-safe bounded cache for the cacheable pipeline stages.

    When a map holds ``max_cache_size`` entries, the oldest half (by
    insertion order) is evicted before the next insert.
    """

    def __init__(self, max_cache_size: int = DEFAULT_MAX_CACHE_SIZE) -> None:
        if max_cache_size < 1:
            raise ValueError(f"max_cache_size must be >= 1, got {max_cache_size}")
        self.max_cache_size = max_cache_size
        self._lock = threading.Lock()
        self._maps: Dict[str, Dict[str, Any]] = {stage: {} for stage in CACHED_STAGES}
        self._hits = 0
        self._misses = 0

    # ------------------------------------------------------------------
    # Generic access
    # ------------------------------------------------------------------
    def _get(self, stage: str, key: str) -> Optional[Any]:
        with self._lock:
            entries = self._maps[stage]
            if key in entries:
                self._hits += 1
                logger.debug("Cache hit: %s[%s]", stage, key[:16])
                return entries[key]
            self._misses += 1
            logger.debug("Cache miss: %s[%s]", stage, key[:16])
            return None

    def _put(self, stage: str, key: str, value: Any) -> None:
        with self._lock:
            entries = self._maps[stage]
            if key not in entries and len(entries) >= self.max_cache_size:
                evict_count = len(entries) // 2
                for old_key in list(entries)[:evict_count]:
                    del entries[old_key]
                logger.debug("Evicted %d %s entries", evict_count, stage)
            entries[key] = value

    # ------------------------------------------------------------------
    # Stage accessors
    # ------------------------------------------------------------------
    def get_preprocessing(self, image_hash: str) -> Optional[Any]:
        return self._get(STAGE_PREPROCESSING, image_hash)

    def cache_preprocessing(self, result: Any, image_hash: str) -> None:
        self._put(STAGE_PREPROCESSING, image_hash, result)

    def get_contours(self, image_hash: str) -> Optional[Any]:
        return self._get(STAGE_CONTOURS, image_hash)

    def cache_contours(self, result: Any, image_hash: str) -> None:
        self._put(STAGE_CONTOURS, image_hash, result)

    def get_filtering(self, key: str) -> Optional[Any]:
        return self._get(STAGE_FILTERING, key)

    def cache_filtering(self, result: Any, key: str) -> None:
        self._put(STAGE_FILTERING, key, result)

    @staticmethod
    def filtering_key(image_hash: str, config_hash: str) -> str:
        return make_filtering_key(image_hash, config_hash)

    # ------------------------------------------------------------------
    # Invalidation and statistics
    # ------------------------------------------------------------------
    def clear_for_image(self, image_hash: str) -> None:
        """Drop every entry derived from ``image_hash``."""
        prefix = f"{image_hash}_"
        with self._lock:
            self._maps[STAGE_PREPROCESSING].pop(image_hash, None)
            self._maps[STAGE_CONTOURS].pop(image_hash, None)
            filtering = self._maps[STAGE_FILTERING]
            for key in [k for k in filtering if k.startswith(prefix)]:
                del filtering[key]
        logger.debug("Cleared cache entries for image %s", image_hash[:16])

    def clear_all(self) -> None:
        with self._lock:
            for entries in self._maps.values():
                entries.clear()
            self._hits = 0
            self._misses = 0

    def statistics(self) -> CacheStatistics:
        with self._lock:
            return CacheStatistics(
                preprocessing_count=len(self._maps[STAGE_PREPROCESSING]),
                contour_count=len(self._maps[STAGE_CONTOURS]),
                filtering_count=len(self._maps[STAGE_FILTERING]),
                hits=self._hits,
                misses=self._misses,
            )

    def __len__(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._maps.values())
