"""Recognition Orchestrator - Photo to recognized text plus region of interest.

Per request:

    INIT → (LOW_RES_SCAN →) ROI_SELECT → CROP_ENHANCE → ROTATION_SEARCH → DONE

with CANCELLED and FAILED reachable from any state. The whole pipeline runs
inside the request cache's single-flight ``execute``, so identical request
keys do the expensive recognition work at most once per TTL window.
"""

import asyncio
import logging
from typing import Callable, Optional

import numpy as np

from labelscan.config import settings
from labelscan.errors import CancelledError
from labelscan.models import (
    BoundingBox,
    EngineOutput,
    Orientation,
    PipelineState,
    RecognitionRequest,
    RecognitionResult,
    RecognizedWord,
    RegionOfInterest,
    RoiMethod,
)
from labelscan.pipeline.cache import RequestCache, recognition_cache
from labelscan.pipeline.stage_ocr import EngineHandle, TesseractEngine
from labelscan.pipeline.stage_orient import RotationSearch, unrotate_box
from labelscan.pipeline.stage_prepare import (
    crop_and_upscale,
    downscale_for_scan,
    encode_preview,
    enhance_for_ocr,
    load_image,
)
from labelscan.pipeline.stage_roi import RoiDetector

logger = logging.getLogger(__name__)

ProgressSink = Callable[[float], None]

MAX_WORDS = 300

# Progress milestones
PROGRESS_START = 0.0
PROGRESS_ENGINE_READY = 0.05
PROGRESS_IMAGE_LOADED = 0.12
PROGRESS_LOW_RES = 0.22
PROGRESS_FULL_IMAGE = 0.35
PROGRESS_ROI_SELECTED = 0.38
PROGRESS_CROP_READY = 0.55
PROGRESS_RECOGNIZED = 0.95
PROGRESS_DONE = 1.0


class ProgressReporter:
    """Forwards monotonically non-decreasing progress to a caller sink.

    Progress is advisory: a failing sink is logged and otherwise ignored.
    """

    def __init__(self, sink: Optional[ProgressSink] = None):
        self.sink = sink
        self.value: Optional[float] = None

    def report(self, value: float) -> None:
        value = min(1.0, max(0.0, value))
        if self.value is not None and value <= self.value:
            return
        self.value = value
        if self.sink is None:
            return
        try:
            self.sink(value)
        except Exception:
            logger.warning("Progress sink raised; ignoring", exc_info=True)


class _RunState:
    """Tracks the state machine of one request for logging."""

    def __init__(self, request_key: str):
        self.request_key = request_key
        self.state = PipelineState.INIT

    def transition(self, state: PipelineState) -> None:
        logger.debug("[%s] %s -> %s", self.request_key, self.state.value, state.value)
        self.state = state


def _discard_outcome(task: asyncio.Future) -> None:
    """Retrieve the outcome of an abandoned engine call."""
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Abandoned recognition failed: %r", task.exception())


def _to_source_box(
    box: BoundingBox,
    orientation: Orientation,
    processed_width: int,
    processed_height: int,
    scale: float,
    offset_x: int,
    offset_y: int,
    image_width: int,
    image_height: int,
) -> BoundingBox:
    """Map a box from the recognized image back into the original photo."""
    upright = unrotate_box(box, orientation, processed_width, processed_height)
    x = upright.x / scale + offset_x
    y = upright.y / scale + offset_y
    x = min(max(0.0, x), float(image_width))
    y = min(max(0.0, y), float(image_height))
    width = min(upright.width / scale, image_width - x)
    height = min(upright.height / scale, image_height - y)
    return BoundingBox(x=x, y=y, width=max(0.0, width), height=max(0.0, height))


class RecognitionOrchestrator:
    """Coordinates image preparation, region selection, rotation search and caching.

    Uses a single ``EngineHandle``; distinct request keys may run concurrently
    but engine access is serialized by the handle.
    """

    def __init__(
        self,
        engine: EngineHandle,
        cache: Optional[RequestCache] = None,
        roi_detector: Optional[RoiDetector] = None,
        rotation_search: Optional[RotationSearch] = None,
        low_res_max_dim: Optional[int] = None,
        target_width: Optional[int] = None,
        cache_ttl: Optional[float] = None,
        preview_quality: Optional[int] = None,
    ):
        """Initialize the orchestrator.

        Args:
            engine: Handle owning the recognition engine.
            cache: Request cache (default: process-wide recognition cache).
            roi_detector: Region selector.
            rotation_search: Orientation search (accept score from settings).
            low_res_max_dim: Longer-edge bound of the low-resolution scan.
            target_width: Width the region crop is upscaled towards.
            cache_ttl: TTL for cached results in seconds.
            preview_quality: JPEG quality of the preview image.
        """
        self.engine = engine
        self.cache = cache if cache is not None else recognition_cache
        self.roi_detector = roi_detector or RoiDetector()
        self.rotation_search = rotation_search or RotationSearch(settings.rotation_accept_score)
        self.low_res_max_dim = low_res_max_dim or settings.low_res_max_dim
        self.target_width = target_width or settings.roi_target_width
        self.cache_ttl = cache_ttl if cache_ttl is not None else settings.ocr_cache_ttl_seconds
        self.preview_quality = preview_quality or settings.preview_jpeg_quality

    @classmethod
    def with_tesseract(cls, cache: Optional[RequestCache] = None) -> "RecognitionOrchestrator":
        """Orchestrator backed by a Tesseract engine configured from settings."""
        return cls(EngineHandle(TesseractEngine()), cache=cache)

    async def run_recognition(
        self,
        request: RecognitionRequest,
        progress: Optional[ProgressSink] = None,
    ) -> RecognitionResult:
        """Recognize a label photo.

        Args:
            request: Recognition request.
            progress: Optional sink receiving values in [0, 1].

        Returns:
            RecognitionResult, possibly served from cache.

        Raises:
            InputError: Missing or undecodable image.
            EngineError: Recognition engine failure.
            CancelledError: The request's cancellation token fired.
        """
        reporter = ProgressReporter(progress)
        key = request.request_key

        if not request.options.force_refresh:
            cached = self.cache.lookup(key)
            if cached is not None:
                logger.debug("[%s] served from cache", key)
                reporter.report(PROGRESS_DONE)
                return cached

        result = await self.cache.execute(
            key,
            lambda: self._run_pipeline(request, reporter),
            ttl=self.cache_ttl,
        )
        reporter.report(PROGRESS_DONE)
        return result

    async def _run_pipeline(
        self,
        request: RecognitionRequest,
        reporter: ProgressReporter,
    ) -> RecognitionResult:
        run = _RunState(request.request_key)
        reporter.report(PROGRESS_START)

        try:
            self._check_cancelled(request)
            await self._configure(request)
            reporter.report(PROGRESS_ENGINE_READY)

            image = await asyncio.to_thread(load_image, request.image)
            self._check_cancelled(request)
            reporter.report(PROGRESS_IMAGE_LOADED)

            if request.options.use_smart_roi:
                result = await self._recognize_region(request, image, run, reporter)
            else:
                result = await self._recognize_full(request, image, run, reporter)

            reporter.report(PROGRESS_RECOGNIZED)
            run.transition(PipelineState.DONE)
            logger.info(
                "[%s] recognized %d words (roi=%s, rotation=%d)",
                request.request_key,
                len(result.words),
                result.roi.method.value,
                result.roi.rotation.value,
            )
            return result

        except CancelledError:
            run.transition(PipelineState.CANCELLED)
            logger.info("[%s] cancelled", request.request_key)
            raise
        except Exception:
            run.transition(PipelineState.FAILED)
            logger.exception("[%s] recognition failed", request.request_key)
            raise

    async def _recognize_region(
        self,
        request: RecognitionRequest,
        image: np.ndarray,
        run: _RunState,
        reporter: ProgressReporter,
    ) -> RecognitionResult:
        height, width = image.shape[:2]

        run.transition(PipelineState.LOW_RES_SCAN)
        low, scale = await asyncio.to_thread(downscale_for_scan, image, self.low_res_max_dim)
        self._check_cancelled(request)
        reporter.report(PROGRESS_LOW_RES)
        low_output = await self._recognize(low, request)

        run.transition(PipelineState.ROI_SELECT)
        roi = self.roi_detector.select(low_output.words, scale, width, height)
        reporter.report(PROGRESS_ROI_SELECTED)

        run.transition(PipelineState.CROP_ENHANCE)
        # Image work runs off the event loop; cancellation is honoured between steps
        crop, crop_scale = await asyncio.to_thread(crop_and_upscale, image, roi, self.target_width)
        self._check_cancelled(request)
        processed = await asyncio.to_thread(enhance_for_ocr, crop)
        self._check_cancelled(request)
        preview = await asyncio.to_thread(self._build_preview, processed)
        self._check_cancelled(request)
        reporter.report(PROGRESS_CROP_READY)

        run.transition(PipelineState.ROTATION_SEARCH)
        best = await self.rotation_search.search(
            processed,
            lambda img: self._recognize(img, request),
            enabled=request.options.use_auto_rotate,
        )

        proc_h, proc_w = processed.shape[:2]
        words = self._source_words(
            best.output,
            best.orientation,
            proc_w,
            proc_h,
            crop_scale,
            roi.x,
            roi.y,
            width,
            height,
        )
        return RecognitionResult(
            raw_text=best.text,
            words=words,
            roi=roi.with_rotation(best.orientation),
            preview_image=preview,
        )

    async def _recognize_full(
        self,
        request: RecognitionRequest,
        image: np.ndarray,
        run: _RunState,
        reporter: ProgressReporter,
    ) -> RecognitionResult:
        height, width = image.shape[:2]
        reporter.report(PROGRESS_FULL_IMAGE)

        run.transition(PipelineState.ROTATION_SEARCH)
        best = await self.rotation_search.search(
            image,
            lambda img: self._recognize(img, request),
            enabled=request.options.use_auto_rotate,
        )

        words = self._source_words(
            best.output, best.orientation, width, height, 1.0, 0, 0, width, height
        )
        roi = RegionOfInterest.full_image(width, height, RoiMethod.FULL)
        return RecognitionResult(
            raw_text=best.text,
            words=words,
            roi=roi.with_rotation(best.orientation),
        )

    def _source_words(
        self,
        output: EngineOutput,
        orientation: Orientation,
        processed_width: int,
        processed_height: int,
        scale: float,
        offset_x: int,
        offset_y: int,
        image_width: int,
        image_height: int,
    ) -> list[RecognizedWord]:
        words = []
        for word in output.words:
            text = (word.text or "").strip()
            if not text:
                continue
            bbox = _to_source_box(
                word.bbox,
                orientation,
                processed_width,
                processed_height,
                scale,
                offset_x,
                offset_y,
                image_width,
                image_height,
            )
            words.append(RecognizedWord(text=text, bbox=bbox, confidence=word.confidence))
            if len(words) >= MAX_WORDS:
                break
        return words

    def _build_preview(self, processed: np.ndarray) -> bytes:
        try:
            return encode_preview(processed, self.preview_quality)
        except Exception:
            logger.warning("Preview generation failed; continuing without preview", exc_info=True)
            return b""

    def _check_cancelled(self, request: RecognitionRequest) -> None:
        if request.cancel_token is not None:
            request.cancel_token.raise_if_cancelled()

    async def _configure(self, request: RecognitionRequest) -> None:
        await self._race_cancel(self.engine.configure(request.languages), request)

    async def _recognize(self, image: np.ndarray, request: RecognitionRequest) -> EngineOutput:
        return await self._race_cancel(self.engine.recognize(image, request.languages), request)

    async def _race_cancel(self, coro, request: RecognitionRequest):
        """Await an engine coroutine, resolving early if the request is cancelled.

        An abandoned engine call keeps running to completion so the engine
        lock is only released once the engine is idle again.
        """
        token = request.cancel_token
        if token is None:
            return await coro

        if token.cancelled:
            coro.close()
            raise CancelledError(token.reason)

        engine_task = asyncio.ensure_future(coro)
        cancel_task = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {engine_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            engine_task.add_done_callback(_discard_outcome)
            raise
        finally:
            cancel_task.cancel()

        if engine_task not in done:
            engine_task.add_done_callback(_discard_outcome)
            raise CancelledError(token.reason)

        result = engine_task.result()
        token.raise_if_cancelled()
        return result
