#!/usr/bin/env python
#
# Target Scan - Detection Pipeline
# © 2025 Shinichi Morita (shin3tky)
#

"""
Hole detection pipeline orchestration.

Stages run in a fixed order for every invocation::

    Quality -> Preprocess -> Contours -> Filter -> Score

Preprocess and Contours are cached by image content hash, Filter by
``<imageHash>_<configHash>``. Quality and Score are always recomputed.

Cache writes are committed only after the whole invocation succeeds, so a
timeout, a cancellation or a contour failure leaves the cache untouched.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
import logging
import math
from pathlib import Path
import threading
import time
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import cv2
import numpy as np

from .cache import StageCache
from .contours import BaseContourAdapter, ContourAdapterRegistry
from .exceptions import (
    ContourExtractionError,
    PipelineCancelledError,
    PipelineTimeoutError,
    TargetError,
)
from .filtering import CandidateFilter, FilteringResult
from .geometry import (
    TargetCoordinateTransformer,
    TargetCropGeometry,
    TargetType,
    get_target_type,
)
from .imaging import GrayscaleBuffer, GrayscaleConverter, load_image
from .quality import QualityAssessment, QualityAssessor
from .schema import (
    DEFAULT_NUM_WORKERS,
    MIN_CONTOUR_POINTS,
    ConfigOverrides,
    DetectedContour,
    HoleDetectionConfig,
    PipelineConfig,
    PipelineExecutionResult,
    StageTiming,
)
from .scoring import ConfidenceScorer
from .utils import compute_image_hash, compute_params_hash

# Module-level logger
logger = logging.getLogger(__name__)

# Poll interval while waiting on contour extraction with a cancel token
_CANCEL_POLL_SECONDS = 0.05

ImageInput = Union[GrayscaleBuffer, np.ndarray]


# ==========================================
# Stage results
# ==========================================
@dataclass(frozen=True, eq=False)
class PreprocessingResult:
    """Grayscale buffer and gradient magnitude map for one image."""

    grayscale: GrayscaleBuffer
    edge_map: Optional[np.ndarray] = None


@dataclass(frozen=True)
class ContourDetectionResult:
    contours: Tuple[DetectedContour, ...]
    image_size: Tuple[int, int]


# ==========================================
# Stage helpers
# ==========================================
def compute_edge_map(pixels: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude ``sqrt(gx^2 + gy^2)`` for interior pixels.

    Border pixels are left at 0.
    """
    height, width = pixels.shape
    edges = np.zeros((height, width), dtype=np.float64)
    if width >= 3 and height >= 3:
        p = pixels.astype(np.float64)
        gx = cv2.Sobel(p, cv2.CV_64F, 1, 0, ksize=3)
        gy = cv2.Sobel(p, cv2.CV_64F, 0, 1, ksize=3)
        edges[1:-1, 1:-1] = cv2.magnitude(gx, gy)[1:-1, 1:-1]
    edges.setflags(write=False)
    return edges


def polyline_to_contour(
    points: Sequence[Tuple[float, float]], width: int, height: int
) -> Optional[DetectedContour]:
    """Convert a normalized polyline (Y up) to a pixel-space contour.

    Returns None for polylines with fewer than ``MIN_CONTOUR_POINTS`` points.
    """
    if len(points) < MIN_CONTOUR_POINTS:
        return None

    pixel_points = tuple(
        (float(nx) * width, (1.0 - float(ny)) * height) for nx, ny in points
    )
    xs = [x for x, _ in pixel_points]
    ys = [y for _, y in pixel_points]
    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)
    box_width = max_x - min_x
    box_height = max_y - min_y

    area = box_width * box_height
    perimeter = 2.0 * (box_width + box_height)
    circularity = 4.0 * math.pi * area / (perimeter * perimeter) if perimeter > 0 else 0.0
    aspect_ratio = box_width / box_height if box_height > 0 else 1.0

    return DetectedContour(
        bounding_box=(min_x, min_y, box_width, box_height),
        center_pixel=(min_x + box_width / 2.0, min_y + box_height / 2.0),
        area=area,
        perimeter=perimeter,
        circularity=circularity,
        aspect_ratio=aspect_ratio,
        points=pixel_points,
    )


def filtering_config_hash(
    config: HoleDetectionConfig,
    target_type: TargetType,
    crop_geometry: TargetCropGeometry,
) -> str:
    """Hash everything the filter stage depends on besides the image."""
    return compute_params_hash(
        {
            "detection": config.to_dict(),
            "target_type": target_type.name,
            "crop": crop_geometry.to_dict(),
        }
    )


def _check_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info("Pipeline cancelled before stage '%s'", stage)
        raise PipelineCancelledError(stage=stage)


# ==========================================
# Pipeline executor
# ==========================================
class PipelineExecutor:
    """
    Run the five-stage hole detection pipeline against one shared cache.

    Example:
        >>> executor = PipelineExecutor()
        >>> result = executor.execute(image, TargetCropGeometry(), "tetrathlon")
        >>> [c.confidence for c in result.candidates]
    """

    def __init__(
        self,
        *,
        cache: Optional[StageCache] = None,
        contour_adapter: Optional[BaseContourAdapter] = None,
        quality_assessor: Optional[QualityAssessor] = None,
        converter: Optional[GrayscaleConverter] = None,
        default_timeout: Optional[float] = None,
    ) -> None:
        self.cache = cache if cache is not None else StageCache()
        self.contour_adapter = contour_adapter or ContourAdapterRegistry.create_default()
        self.quality_assessor = quality_assessor or QualityAssessor()
        self.converter = converter or GrayscaleConverter()
        self.default_timeout = default_timeout

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "PipelineExecutor":
        """Build an executor (cache and contour adapter) from ``config``."""
        if config.contour_adapter_name:
            adapter = ContourAdapterRegistry.create(
                config.contour_adapter_name, config.contour_adapter_config
            )
        else:
            adapter = ContourAdapterRegistry.create_default(
                config.contour_adapter_config
            )
        return cls(
            cache=StageCache(config.max_cache_size),
            contour_adapter=adapter,
            default_timeout=config.contour_timeout,
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def _assess_quality(self, grayscale: GrayscaleBuffer) -> QualityAssessment:
        try:
            return self.quality_assessor.assess(grayscale)
        except Exception as exc:  # degrade to default
            logger.warning(
                "Quality assessment failed, using default: %s: %s",
                type(exc).__name__,
                exc,
            )
            return QualityAssessment.default()

    def _preprocess(self, grayscale: GrayscaleBuffer) -> PreprocessingResult:
        return PreprocessingResult(
            grayscale=grayscale,
            edge_map=compute_edge_map(grayscale.pixels),
        )

    def _run_adapter(self, grayscale: GrayscaleBuffer) -> List[Any]:
        try:
            return list(self.contour_adapter.extract(grayscale))
        except TargetError:
            raise
        except Exception as exc:
            adapter_name = getattr(self.contour_adapter, "plugin_name", None)
            logger.error(
                "Contour adapter '%s' failed: %s: %s",
                adapter_name,
                type(exc).__name__,
                exc,
            )
            raise ContourExtractionError(
                adapter_name=adapter_name, original_error=exc
            ) from exc

    def _extract_polylines(
        self,
        grayscale: GrayscaleBuffer,
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> List[Any]:
        if timeout is None and cancel_event is None:
            return self._run_adapter(grayscale)

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="contours")
        try:
            future = pool.submit(self._run_adapter, grayscale)
            deadline = None if timeout is None else time.monotonic() + timeout
            while True:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    future.cancel()
                    logger.error("Contour extraction timed out after %.3fs", timeout)
                    raise PipelineTimeoutError(timeout=timeout)
                poll = remaining
                if cancel_event is not None:
                    poll = (
                        _CANCEL_POLL_SECONDS
                        if remaining is None
                        else min(remaining, _CANCEL_POLL_SECONDS)
                    )
                done, _ = wait([future], timeout=poll)
                if done:
                    return future.result()
                if cancel_event is not None and cancel_event.is_set():
                    future.cancel()
                    logger.info("Pipeline cancelled during contour extraction")
                    raise PipelineCancelledError(stage="contours")
        finally:
            # Abandon a still-running adapter call instead of blocking on it
            pool.shutdown(wait=False)

    def _detect_contours(
        self,
        grayscale: GrayscaleBuffer,
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> ContourDetectionResult:
        polylines = self._extract_polylines(grayscale, timeout, cancel_event)
        width, height = grayscale.width, grayscale.height
        contours: List[DetectedContour] = []
        for points in polylines:
            contour = polyline_to_contour(points, width, height)
            if contour is not None:
                contours.append(contour)
        logger.debug(
            "Contour stage: %d polylines, %d usable contours",
            len(polylines),
            len(contours),
        )
        return ContourDetectionResult(contours=tuple(contours), image_size=(width, height))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def execute(
        self,
        image: ImageInput,
        crop_geometry: Optional[TargetCropGeometry] = None,
        target_type: Union[str, TargetType, None] = None,
        config: Optional[HoleDetectionConfig] = None,
        *,
        overrides: Optional[ConfigOverrides] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PipelineExecutionResult:
        """
        Detect hole candidates in a cropped target image.

        Args:
            image: Cropped target image (grayscale, BGR or BGRA array).
            crop_geometry: Target placement in the crop. Defaults apply if None.
            target_type: Target type instance or name (default tetrathlon).
            config: Detection thresholds.
            overrides: Per-call threshold overrides.
            timeout: Seconds to wait for contour extraction.
            cancel_event: Set to abandon the invocation.

        Returns:
            PipelineExecutionResult with ranked candidates, quality,
            per-stage timing and cache statistics.

        Raises:
            ContourExtractionError: The contour adapter failed.
            PipelineTimeoutError: Contour extraction exceeded ``timeout``.
            PipelineCancelledError: ``cancel_event`` was set.
            TargetImageError: ``image`` cannot be converted to grayscale.
        """
        geometry = crop_geometry or TargetCropGeometry()
        if target_type is None or isinstance(target_type, str):
            target = get_target_type(target_type or "tetrathlon")
        else:
            target = target_type
        effective = (config or HoleDetectionConfig()).with_overrides(overrides)
        if timeout is None:
            timeout = self.default_timeout

        timing = StageTiming()
        pending_writes: List[Tuple[Callable[[Any, str], None], Any, str]] = []

        grayscale = self.converter.convert(image)
        image_hash = compute_image_hash(grayscale.pixels)

        # Stage 1: quality
        _check_cancelled(cancel_event, "quality")
        start = time.perf_counter()
        quality = self._assess_quality(grayscale)
        timing.quality = time.perf_counter() - start

        if grayscale.is_empty:
            logger.warning(
                "Empty image (%dx%d), skipping detection", grayscale.width, grayscale.height
            )
            return PipelineExecutionResult(
                candidates=[],
                quality=quality,
                timing=timing,
                cache_statistics=self.cache.statistics(),
                image_hash=image_hash,
                accepted=[],
                rejected=[],
            )

        # Stage 2: preprocessing
        _check_cancelled(cancel_event, "preprocessing")
        start = time.perf_counter()
        preprocessing = self.cache.get_preprocessing(image_hash)
        if preprocessing is None:
            preprocessing = self._preprocess(grayscale)
            pending_writes.append((self.cache.cache_preprocessing, preprocessing, image_hash))
        timing.preprocessing = time.perf_counter() - start

        # Stage 3: contours
        _check_cancelled(cancel_event, "contours")
        start = time.perf_counter()
        contour_result = self.cache.get_contours(image_hash)
        if contour_result is None:
            contour_result = self._detect_contours(
                preprocessing.grayscale, timeout, cancel_event
            )
            pending_writes.append((self.cache.cache_contours, contour_result, image_hash))
        timing.contours = time.perf_counter() - start

        # Stage 4: filtering
        _check_cancelled(cancel_event, "filtering")
        start = time.perf_counter()
        filter_key = self.cache.filtering_key(
            image_hash, filtering_config_hash(effective, target, geometry)
        )
        filtering: Optional[FilteringResult] = self.cache.get_filtering(filter_key)
        if filtering is None:
            transformer = TargetCoordinateTransformer(geometry, grayscale.size)
            filtering = CandidateFilter(effective, target, transformer).filter(
                contour_result.contours
            )
            pending_writes.append((self.cache.cache_filtering, filtering, filter_key))
        timing.filtering = time.perf_counter() - start

        # Stage 5: scoring
        _check_cancelled(cancel_event, "scoring")
        start = time.perf_counter()
        candidates = ConfidenceScorer(effective, target).score(
            filtering.accepted, preprocessing.grayscale, preprocessing.edge_map
        )
        timing.scoring = time.perf_counter() - start

        for store, value, key in pending_writes:
            store(value, key)

        logger.info(
            "Pipeline complete: %d candidates (%d accepted, %d rejected contours) in %.3fs",
            len(candidates),
            len(filtering.accepted),
            len(filtering.rejected),
            timing.total,
        )
        logger.debug("Stage timing: %s", timing.to_dict())

        return PipelineExecutionResult(
            candidates=candidates,
            quality=quality,
            timing=timing,
            cache_statistics=self.cache.statistics(),
            image_hash=image_hash,
            accepted=list(filtering.accepted),
            rejected=list(filtering.rejected),
        )

    def clear_cache_for_image(self, image: ImageInput) -> str:
        """Invalidate every cached stage for ``image``; returns its hash."""
        image_hash = compute_image_hash(self.converter.convert(image).pixels)
        self.cache.clear_for_image(image_hash)
        return image_hash


# ==========================================
# Batch processing
# ==========================================
@dataclass
class BatchProcessingResult:
    identifier: str
    result: Optional[PipelineExecutionResult] = None
    error: Optional[TargetError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.result is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "succeeded": self.succeeded,
            "result": self.result.to_dict() if self.result is not None else None,
            "error": str(self.error) if self.error is not None else None,
        }


BatchItem = Union[str, Path, Tuple[str, ImageInput]]


@dataclass
class BatchPipelineProcessor:
    """Run one :class:`PipelineExecutor` over many images on a thread pool.

    Items are file paths (decoded with ``load_image``) or
    ``(identifier, image)`` pairs. All workers share the executor's cache.
    Failures are captured per item and never abort the batch.
    """

    executor: PipelineExecutor = field(default_factory=PipelineExecutor)
    max_workers: int = DEFAULT_NUM_WORKERS

    def _process_one(
        self,
        item: BatchItem,
        crop_geometry: Optional[TargetCropGeometry],
        target_type: Union[str, TargetType, None],
        config: Optional[HoleDetectionConfig],
        overrides: Optional[ConfigOverrides],
        cancel_event: Optional[threading.Event],
    ) -> BatchProcessingResult:
        if isinstance(item, (str, Path)):
            identifier = str(item)
        else:
            identifier = str(item[0])
        try:
            image = load_image(identifier) if isinstance(item, (str, Path)) else item[1]
            result = self.executor.execute(
                image,
                crop_geometry,
                target_type,
                config,
                overrides=overrides,
                cancel_event=cancel_event,
            )
        except TargetError as exc:
            logger.warning("Batch item '%s' failed: %s", identifier, exc)
            return BatchProcessingResult(identifier=identifier, error=exc)
        except Exception as exc:
            # Wrap unexpected exceptions
            logger.warning(
                "Batch item '%s' failed: %s: %s", identifier, type(exc).__name__, exc
            )
            wrapped = TargetError(
                "Unexpected processing error",
                original_error=exc,
                context={"error_category": "processing_failed"},
            )
            return BatchProcessingResult(identifier=identifier, error=wrapped)
        return BatchProcessingResult(identifier=identifier, result=result)

    def process(
        self,
        items: Iterable[BatchItem],
        crop_geometry: Optional[TargetCropGeometry] = None,
        target_type: Union[str, TargetType, None] = None,
        config: Optional[HoleDetectionConfig] = None,
        *,
        overrides: Optional[ConfigOverrides] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[BatchProcessingResult]:
        """Process ``items``; results are returned in input order."""
        item_list = list(items)
        if not item_list:
            return []

        workers = max(1, min(self.max_workers, len(item_list)))
        logger.info("Processing %d images with %d workers", len(item_list), workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(
                    self._process_one,
                    item,
                    crop_geometry,
                    target_type,
                    config,
                    overrides,
                    cancel_event,
                )
                for item in item_list
            ]
            results = [future.result() for future in futures]

        failed = sum(1 for result in results if not result.succeeded)
        if failed:
            logger.warning("%d of %d batch items failed", failed, len(results))
        return results


def create_default_executor(config: Optional[PipelineConfig] = None) -> PipelineExecutor:
    """Create an executor from ``config`` (or defaults)."""
    return PipelineExecutor.from_config(config or PipelineConfig())
