"""OCR Stage - Recognition engine boundary.

The recognition engine (pixels to characters) is an external capability.
This module defines the narrow interface the pipeline depends on, a
Tesseract adapter for it, and ``EngineHandle``, which owns the single
stateful engine instance and serializes access to it.
"""

import asyncio
import logging
from typing import Optional, Protocol

import cv2
import numpy as np
import pytesseract
from PIL import Image

from labelscan.config import settings
from labelscan.errors import EngineError
from labelscan.models import BoundingBox, EngineOutput, RecognizedWord

logger = logging.getLogger(__name__)


class RecognitionEngine(Protocol):
    """Blocking recognition engine."""

    def configure(self, languages: list[str]) -> None:
        """Load the given language set."""
        ...

    def recognize(self, image: np.ndarray) -> EngineOutput:
        """Recognize text and word boxes in an image."""
        ...


def language_key(languages: list[str]) -> str:
    """Stable key for a language set, e.g. ``kor+eng``."""
    return "+".join(languages)


class TesseractEngine:
    """Recognition engine using Tesseract.

    Extracts text with word-level bounding boxes and confidence scores.
    """

    def __init__(
        self,
        psm: Optional[int] = None,
        oem: Optional[int] = None,
        config: Optional[str] = None,
    ):
        """Initialize Tesseract engine.

        Args:
            psm: Page segmentation mode (6 = assume uniform block of text).
            oem: OCR Engine mode (1 = LSTM only).
            config: Additional Tesseract config string.
        """
        self.psm = psm if psm is not None else settings.tesseract_psm
        self.oem = oem if oem is not None else settings.tesseract_oem
        self.config = config or ""
        self.language = "eng"

    def _build_config(self) -> str:
        """Build Tesseract configuration string."""
        config_parts = [
            f"--psm {self.psm}",
            f"--oem {self.oem}",
        ]
        if self.config:
            config_parts.append(self.config)
        return " ".join(config_parts)

    def configure(self, languages: list[str]) -> None:
        """Select the language set used by subsequent calls.

        Raises:
            EngineError: If a requested language is not installed.
        """
        try:
            available = set(pytesseract.get_languages(config=""))
        except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError) as exc:
            raise EngineError(f"Tesseract is not available: {exc}") from exc

        missing = [lang for lang in languages if lang not in available]
        if missing:
            raise EngineError(f"Tesseract languages not installed: {', '.join(missing)}")

        self.language = language_key(languages)

    def recognize(self, image: np.ndarray) -> EngineOutput:
        """Recognize text with word-level boxes.

        Args:
            image: Image as numpy array (grayscale or BGR).

        Returns:
            EngineOutput with line-structured text and pixel-space word boxes.
        """
        if len(image.shape) == 3:
            pil_image = Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
        else:
            pil_image = Image.fromarray(image)

        try:
            data = pytesseract.image_to_data(
                pil_image,
                lang=self.language,
                config=self._build_config(),
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError, RuntimeError) as exc:
            raise EngineError(f"Tesseract recognition failed: {exc}") from exc

        return parse_tesseract_data(data)


def parse_tesseract_data(data: dict) -> EngineOutput:
    """Convert ``pytesseract.image_to_data`` output into an EngineOutput.

    Words are joined with spaces within a line and lines with newlines.
    """
    words = []
    lines: dict[tuple, list[str]] = {}

    n_boxes = len(data.get("text", []))
    for i in range(n_boxes):
        text = str(data["text"][i]).strip()
        try:
            conf = float(data["conf"][i])
        except (TypeError, ValueError):
            conf = -1.0

        # Skip structural rows and empty words
        if not text or conf < 0:
            continue

        bbox = BoundingBox(
            x=float(data["left"][i]),
            y=float(data["top"][i]),
            width=float(data["width"][i]),
            height=float(data["height"][i]),
        )
        words.append(
            RecognizedWord(text=text, bbox=bbox, confidence=min(1.0, conf / 100.0))
        )

        line_id = (
            data.get("block_num", [0] * n_boxes)[i],
            data.get("par_num", [0] * n_boxes)[i],
            data.get("line_num", [0] * n_boxes)[i],
        )
        lines.setdefault(line_id, []).append(text)

    raw_text = "\n".join(" ".join(parts) for parts in lines.values())
    return EngineOutput(text=raw_text, words=words)


class EngineHandle:
    """Owns the shared recognition engine.

    Reconfiguration and recognition run under one lock, so a language change
    can never interleave with an in-flight recognition. Blocking engine calls
    run in a worker thread.
    """

    def __init__(self, engine: RecognitionEngine):
        self.engine = engine
        self._lock = asyncio.Lock()
        self._language_key: Optional[str] = None

    @property
    def language_key(self) -> Optional[str]:
        """Language set the engine is currently configured for."""
        return self._language_key

    async def _ensure_languages(self, languages: list[str]) -> None:
        key = language_key(languages)
        if key == self._language_key:
            return
        logger.info("Configuring recognition engine for %s", key)
        try:
            await asyncio.to_thread(self.engine.configure, languages)
        except EngineError:
            self._language_key = None
            raise
        except Exception as exc:
            self._language_key = None
            raise EngineError(f"Engine configuration failed: {exc}") from exc
        self._language_key = key

    async def configure(self, languages: list[str]) -> None:
        """Configure the engine for a language set if it changed."""
        async with self._lock:
            await self._ensure_languages(languages)

    async def recognize(self, image: np.ndarray, languages: list[str]) -> EngineOutput:
        """Recognize an image with the given language set.

        Raises:
            EngineError: If configuration or recognition fails.
        """
        async with self._lock:
            await self._ensure_languages(languages)
            try:
                return await asyncio.to_thread(self.engine.recognize, image)
            except EngineError:
                raise
            except Exception as exc:
                raise EngineError(f"Recognition failed: {exc}") from exc
