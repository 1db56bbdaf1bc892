#!/usr/bin/env python
#
# Target Scan - Core Package
# © 2025 Shinichi Morita (shin3tky)
#

"""
Shooting target analysis core library.

This package provides the core functionality for target scanning:
- schema: Data structures, configuration and constants
- geometry: Target types, crop geometry and coordinate transforms
- imaging: Grayscale conversion and image loading
- quality: Image quality gate
- background / filtering / scoring: Hole candidate stages
- contours: Contour extraction adapters
- cache: Per-stage result cache
- pipeline: Detection orchestration
- analysis / projection: Shot-group statistics and score projection
- validation: Shot and scan validation

Logging:
    This library uses Python's standard logging module. By default, a NullHandler
    is attached to prevent "No handler found" warnings. To see log output, configure
    logging in your application:

    Example:
        >>> import logging
        >>> logging.basicConfig(level=logging.DEBUG)

    Or attach a handler to the 'target_core' logger:

        >>> import logging
        >>> logger = logging.getLogger('target_core')
        >>> logger.addHandler(logging.StreamHandler())
        >>> logger.setLevel(logging.DEBUG)
"""

import logging

# Configure library-level logger with NullHandler to prevent
# "No handler found" warnings when the library is used without
# explicit logging configuration.
_logger = logging.getLogger(__name__)
_logger.addHandler(logging.NullHandler())

from .schema import (
    VERSION,
    ALGORITHM_VERSION,
    COORDINATE_SYSTEM_VERSION,
    DEFAULT_TARGET_TYPE,
    DEFAULT_CONTOUR_ADAPTER_NAME,
    DEFAULT_MAX_CACHE_SIZE,
    DEFAULT_NUM_WORKERS,
    MIN_SHOTS_FOR_ANALYSIS,
    ACCEPTANCE_AUTO_ACCEPT,
    ACCEPTANCE_SUGGESTION,
    ACCEPTANCE_REJECTED,
    EXPOSURE_UNDEREXPOSED,
    EXPOSURE_GOOD,
    EXPOSURE_OVEREXPOSED,
    QUALITY_LEVEL_GOOD,
    QUALITY_LEVEL_ACCEPTABLE,
    QUALITY_LEVEL_POOR,
    NormalizedTargetPosition,
    ShotRecord,
    Shot,
    ConfigOverrides,
    HoleDetectionConfig,
    PipelineConfig,
    DetectedContour,
    FilteredCandidate,
    HoleFeatures,
    DetectedHoleCandidate,
    StageTiming,
    CacheStatistics,
    PipelineExecutionResult,
)

from .exceptions import (
    DiagnosticInfo,
    TargetError,
    TargetLoadError,
    TargetImageError,
    ContourExtractionError,
    PipelineTimeoutError,
    PipelineCancelledError,
    TargetValidationError,
    TargetConfigError,
    format_error_for_user,
    create_diagnostic_from_exception,
)
from .i18n import get_message

from .config_io import load_pipeline_config, load_shots, dump_config

from .geometry import (
    TargetType,
    TetrathlonTarget,
    OlympicPistolTarget,
    TARGET_TYPES,
    available_target_types,
    get_target_type,
    TargetCropGeometry,
    TargetCoordinateTransformer,
)

from .imaging import GrayscaleBuffer, GrayscaleConverter, to_grayscale, load_image

from .quality import QualityAssessment, QualityAssessor

from .background import LocalBackground, LocalBackgroundEstimator

from .cache import StageCache

from .contours import (
    BaseContourAdapter,
    DataclassContourAdapter,
    PydanticContourAdapter,
    OpenCVContourAdapter,
    OpenCVContourConfig,
    ContourAdapterRegistry,
)

from .filtering import CandidateFilter, FilteringResult

from .scoring import ConfidenceScorer

from .pipeline import (
    PipelineExecutor,
    BatchPipelineProcessor,
    BatchProcessingResult,
    create_default_executor,
)

from .analysis import (
    ClockDirection,
    DirectionalBias,
    PatternAnalysis,
    PatternAnalyzer,
    AggregatePattern,
    SessionAggregator,
    ImprovementSuggestion,
    ImprovementSuggestionGenerator,
)

from .projection import ScoreProjection, ScoreProjector

from .validation import (
    ValidationWarning,
    ValidationError,
    ValidationResult,
    ShotValidator,
    ScanValidator,
    DataIntegrityChecker,
    InputSanitizer,
)

__all__ = [
    # Version
    "VERSION",
    "ALGORITHM_VERSION",
    "COORDINATE_SYSTEM_VERSION",
    # Constants
    "DEFAULT_TARGET_TYPE",
    "DEFAULT_CONTOUR_ADAPTER_NAME",
    "DEFAULT_MAX_CACHE_SIZE",
    "DEFAULT_NUM_WORKERS",
    "MIN_SHOTS_FOR_ANALYSIS",
    "ACCEPTANCE_AUTO_ACCEPT",
    "ACCEPTANCE_SUGGESTION",
    "ACCEPTANCE_REJECTED",
    "EXPOSURE_UNDEREXPOSED",
    "EXPOSURE_GOOD",
    "EXPOSURE_OVEREXPOSED",
    "QUALITY_LEVEL_GOOD",
    "QUALITY_LEVEL_ACCEPTABLE",
    "QUALITY_LEVEL_POOR",
    # Data Classes
    "NormalizedTargetPosition",
    "ShotRecord",
    "Shot",
    "ConfigOverrides",
    "HoleDetectionConfig",
    "PipelineConfig",
    "DetectedContour",
    "FilteredCandidate",
    "HoleFeatures",
    "DetectedHoleCandidate",
    "StageTiming",
    "CacheStatistics",
    "PipelineExecutionResult",
    # Exceptions
    "DiagnosticInfo",
    "TargetError",
    "TargetLoadError",
    "TargetImageError",
    "ContourExtractionError",
    "PipelineTimeoutError",
    "PipelineCancelledError",
    "TargetValidationError",
    "TargetConfigError",
    "format_error_for_user",
    "create_diagnostic_from_exception",
    "get_message",
    # Config I/O
    "load_pipeline_config",
    "load_shots",
    "dump_config",
    # Geometry
    "TargetType",
    "TetrathlonTarget",
    "OlympicPistolTarget",
    "TARGET_TYPES",
    "available_target_types",
    "get_target_type",
    "TargetCropGeometry",
    "TargetCoordinateTransformer",
    # Imaging
    "GrayscaleBuffer",
    "GrayscaleConverter",
    "to_grayscale",
    "load_image",
    # Stages
    "QualityAssessment",
    "QualityAssessor",
    "LocalBackground",
    "LocalBackgroundEstimator",
    "StageCache",
    "CandidateFilter",
    "FilteringResult",
    "ConfidenceScorer",
    # Contour adapters
    "BaseContourAdapter",
    "DataclassContourAdapter",
    "PydanticContourAdapter",
    "OpenCVContourAdapter",
    "OpenCVContourConfig",
    "ContourAdapterRegistry",
    # Pipeline
    "PipelineExecutor",
    "BatchPipelineProcessor",
    "BatchProcessingResult",
    "create_default_executor",
    # Analysis
    "ClockDirection",
    "DirectionalBias",
    "PatternAnalysis",
    "PatternAnalyzer",
    "AggregatePattern",
    "SessionAggregator",
    "ImprovementSuggestion",
    "ImprovementSuggestionGenerator",
    "ScoreProjection",
    "ScoreProjector",
    # Validation
    "ValidationWarning",
    "ValidationError",
    "ValidationResult",
    "ShotValidator",
    "ScanValidator",
    "DataIntegrityChecker",
    "InputSanitizer",
]
