"""Recognition pipeline stages for labelscan.

Stages (in request order):
1. stage_prepare - Load, downscale, crop/upscale and contrast-normalize images
2. stage_ocr - Recognition engine boundary (Tesseract adapter, engine handle)
3. stage_roi - Region-of-interest selection from low-resolution word boxes
4. stage_orient - Rotation search over 0/90/180/270

The orchestrator wires the stages together behind the request cache.
"""

from .cache import RequestCache, recognition_cache
from .orchestrator import ProgressSink, RecognitionOrchestrator
from .request_key import build_request_key, compute_content_hash
from .stage_ocr import EngineHandle, RecognitionEngine, TesseractEngine
from .stage_orient import RotationSearch, rotate_image, score_text
from .stage_prepare import enhance_for_ocr, load_image
from .stage_roi import RoiDetector

__all__ = [
    # Cache
    "RequestCache",
    "recognition_cache",
    # Orchestration
    "ProgressSink",
    "RecognitionOrchestrator",
    "build_request_key",
    "compute_content_hash",
    # Engine
    "EngineHandle",
    "RecognitionEngine",
    "TesseractEngine",
    # Orientation
    "RotationSearch",
    "rotate_image",
    "score_text",
    # Preparation
    "enhance_for_ocr",
    "load_image",
    # Region of interest
    "RoiDetector",
]
