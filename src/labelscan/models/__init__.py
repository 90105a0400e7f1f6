"""Data models for labelscan.

Pydantic models for the data flowing between the recognition pipeline and
the analysis engine. Result models are frozen so they can be cached and
persisted verbatim by callers.

Model Hierarchy:
- RecognitionRequest → RecognitionResult (words + region of interest)
- raw text + ProfileSnapshot → AnalysisResult (matches + risk)
"""

from .analysis import (
    AnalysisResult,
    MatchRecord,
    ProfileSnapshot,
    TextQuality,
)
from .base import (
    BoundingBox,
    DietType,
    FrozenModel,
    MatchKind,
    Orientation,
    PipelineState,
    ProductCategory,
    RiskLevel,
    RoiMethod,
)
from .recognition import (
    EngineOutput,
    RecognitionOptions,
    RecognitionRequest,
    RecognitionResult,
    RecognizedWord,
    RegionOfInterest,
)

__all__ = [
    # Base types
    "BoundingBox",
    "DietType",
    "FrozenModel",
    "MatchKind",
    "Orientation",
    "PipelineState",
    "ProductCategory",
    "RiskLevel",
    "RoiMethod",
    # Recognition
    "EngineOutput",
    "RecognitionOptions",
    "RecognitionRequest",
    "RecognitionResult",
    "RecognizedWord",
    "RegionOfInterest",
    # Analysis
    "AnalysisResult",
    "MatchRecord",
    "ProfileSnapshot",
    "TextQuality",
]
