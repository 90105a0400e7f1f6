"""Orientation Stage - Find the rotation under which the label reads best.

Recognizes the crop as-is first and only tries 90°, 180° and 270° when the
upright result scores poorly. Scores favour Hangul, then digits, then Latin
letters, so a confidently read Korean label wins over noise.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable

import cv2
import numpy as np

from labelscan.models import BoundingBox, EngineOutput, Orientation

logger = logging.getLogger(__name__)

HANGUL_WEIGHT = 3.0
DIGIT_WEIGHT = 1.0
LATIN_WEIGHT = 0.5

# Upright result good enough to skip the other angles
ACCEPT_SCORE = 120.0

SEARCH_ORDER = [Orientation.DEG_90, Orientation.DEG_180, Orientation.DEG_270]

_HANGUL = re.compile(r"[가-힣]")
_DIGIT = re.compile(r"[0-9]")
_LATIN = re.compile(r"[A-Za-z]")


def score_text(text: str) -> float:
    """Legibility score of recognized text.

    Args:
        text: Recognized text.

    Returns:
        hangul*3 + digits*1 + latin*0.5
    """
    text = text or ""
    return (
        len(_HANGUL.findall(text)) * HANGUL_WEIGHT
        + len(_DIGIT.findall(text)) * DIGIT_WEIGHT
        + len(_LATIN.findall(text)) * LATIN_WEIGHT
    )


def rotate_image(image: np.ndarray, orientation: Orientation) -> np.ndarray:
    """Rotate an image clockwise by the given orientation.

    Args:
        image: Image as numpy array.
        orientation: Clockwise rotation to apply.

    Returns:
        Rotated image.
    """
    if orientation == Orientation.DEG_0:
        return image
    elif orientation == Orientation.DEG_90:
        return cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)
    elif orientation == Orientation.DEG_180:
        return cv2.rotate(image, cv2.ROTATE_180)
    elif orientation == Orientation.DEG_270:
        return cv2.rotate(image, cv2.ROTATE_90_COUNTERCLOCKWISE)
    return image


def unrotate_box(
    box: BoundingBox,
    orientation: Orientation,
    width: int,
    height: int,
) -> BoundingBox:
    """Map a box from a rotated image back into the unrotated image.

    Args:
        box: Box in the rotated image's pixel space.
        orientation: Clockwise rotation that produced the rotated image.
        width: Unrotated image width.
        height: Unrotated image height.

    Returns:
        Box in the unrotated image's pixel space.
    """
    if orientation == Orientation.DEG_90:
        return BoundingBox(x=box.y, y=height - box.x2, width=box.height, height=box.width)
    elif orientation == Orientation.DEG_180:
        return BoundingBox(x=width - box.x2, y=height - box.y2, width=box.width, height=box.height)
    elif orientation == Orientation.DEG_270:
        return BoundingBox(x=width - box.y2, y=box.x, width=box.height, height=box.width)
    return box


@dataclass
class RotationCandidate:
    """Recognition result for one orientation."""

    orientation: Orientation
    output: EngineOutput
    score: float

    @property
    def text(self) -> str:
        return self.output.text.strip()


Recognizer = Callable[[np.ndarray], Awaitable[EngineOutput]]


class RotationSearch:
    """Tries orientations of an image and keeps the best-scoring read.

    Ties keep the earliest orientation tried, so 0° wins when nothing
    scores better.
    """

    def __init__(self, accept_score: float = ACCEPT_SCORE):
        """Initialize rotation search.

        Args:
            accept_score: Upright score at which other angles are skipped.
        """
        self.accept_score = accept_score

    async def search(
        self,
        image: np.ndarray,
        recognize: Recognizer,
        enabled: bool = True,
    ) -> RotationCandidate:
        """Recognize the image under the best orientation.

        Args:
            image: Image to recognize.
            recognize: Async recognition callable.
            enabled: When False only the upright image is recognized.

        Returns:
            Best candidate.
        """
        output = await recognize(image)
        best = RotationCandidate(Orientation.DEG_0, output, score_text(output.text.strip()))

        if not enabled:
            return best

        if best.score >= self.accept_score:
            logger.debug("Upright score %.1f accepted without rotation", best.score)
            return best

        for orientation in SEARCH_ORDER:
            rotated = await asyncio.to_thread(rotate_image, image, orientation)
            output = await recognize(rotated)
            score = score_text(output.text.strip())
            logger.debug("Rotation %d° scored %.1f", orientation.value, score)
            if score > best.score:
                best = RotationCandidate(orientation, output, score)

        return best
