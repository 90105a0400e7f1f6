"""Region-of-Interest Stage - Pick the label area to recognize at full resolution.

Works on word boxes from a low-resolution full-image scan:
1. Keyword ROI - union of words containing ingredient/nutrition/allergen markers
2. Density ROI - union of legible, confident words
3. Fallback - the entire image; uncertain evidence never shrinks the search space
"""

import logging
import math
import re
from typing import Optional

from labelscan.models import BoundingBox, RecognizedWord, RegionOfInterest, RoiMethod

logger = logging.getLogger(__name__)

# Markers that usually sit on or next to the ingredient panel
ROI_KEYWORDS = [
    "원재료",
    "원재료명",
    "함유",
    "포함",
    "알레르기",
    "영양",
    "영양정보",
    "ingredients",
    "contains",
    "allergen",
    "nutrition",
]

MIN_KEYWORD_HITS = 3
MIN_DENSE_WORDS = 8
MIN_WORD_CONFIDENCE = 0.55

# Minimum candidate size in low-resolution pixels
MIN_ROI_WIDTH = 120
MIN_ROI_HEIGHT = 80

PAD_X_RATIO = 0.08
PAD_Y_RATIO = 0.12
MIN_PAD_PX = 16

_LEGIBLE_CHAR = re.compile(r"[0-9A-Za-z가-힣]")
_WHITESPACE = re.compile(r"\s+")


def _large_enough(box: BoundingBox) -> bool:
    return box.width >= MIN_ROI_WIDTH and box.height >= MIN_ROI_HEIGHT


def keyword_region(
    words: list[RecognizedWord],
    keywords: Optional[list[str]] = None,
) -> Optional[BoundingBox]:
    """Union of words containing a label keyword.

    Args:
        words: Low-resolution word boxes.
        keywords: Lowercase keywords (default ``ROI_KEYWORDS``).

    Returns:
        Bounding box, or None with fewer than three hits or a too-small union.
    """
    keywords = keywords or ROI_KEYWORDS
    hits = []
    for word in words:
        text = _WHITESPACE.sub("", word.text or "").lower()
        if not text:
            continue
        if any(k in text for k in keywords):
            hits.append(word.bbox)

    if len(hits) < MIN_KEYWORD_HITS:
        return None

    box = BoundingBox.union(hits)
    return box if _large_enough(box) else None


def density_region(
    words: list[RecognizedWord],
    min_confidence: float = MIN_WORD_CONFIDENCE,
) -> Optional[BoundingBox]:
    """Union of legible, confidently recognized words.

    Returns:
        Bounding box, or None with fewer than eight such words or a too-small union.
    """
    good = []
    for word in words:
        text = (word.text or "").strip()
        if len(text) < 2:
            continue
        if not _LEGIBLE_CHAR.search(text):
            continue
        if word.confidence < min_confidence:
            continue
        good.append(word.bbox)

    if len(good) < MIN_DENSE_WORDS:
        return None

    box = BoundingBox.union(good)
    return box if _large_enough(box) else None


def find_candidate_region(
    words: list[RecognizedWord],
) -> Optional[tuple[BoundingBox, RoiMethod]]:
    """Try keyword then density heuristics; first success wins."""
    box = keyword_region(words)
    if box is not None:
        return box, RoiMethod.KEYWORD

    box = density_region(words)
    if box is not None:
        return box, RoiMethod.DENSITY

    return None


def to_original_region(
    box: BoundingBox,
    scale: float,
    image_width: int,
    image_height: int,
    method: RoiMethod,
) -> RegionOfInterest:
    """Rescale a low-resolution box to the original image, pad and clamp it.

    Args:
        box: Candidate box in low-resolution pixels.
        scale: Downscale factor used for the low-resolution scan.
        image_width: Original image width.
        image_height: Original image height.
        method: Heuristic that produced the box.

    Returns:
        Region inside the original image bounds.
    """
    inv = 1.0 / scale if scale > 0 else 1.0
    x = box.x * inv
    y = box.y * inv
    width = box.width * inv
    height = box.height * inv

    pad_x = max(MIN_PAD_PX, width * PAD_X_RATIO)
    pad_y = max(MIN_PAD_PX, height * PAD_Y_RATIO)

    x0 = min(max(0.0, x - pad_x), image_width - 1)
    y0 = min(max(0.0, y - pad_y), image_height - 1)
    x1 = min(float(image_width), x + width + pad_x)
    y1 = min(float(image_height), y + height + pad_y)

    left = int(math.floor(x0))
    top = int(math.floor(y0))
    right = max(left + 1, int(math.ceil(x1)))
    bottom = max(top + 1, int(math.ceil(y1)))

    return RegionOfInterest(
        x=left,
        y=top,
        width=min(right, image_width) - left,
        height=min(bottom, image_height) - top,
        method=method,
    )


class RoiDetector:
    """Selects the crop region for final recognition."""

    def select(
        self,
        words: list[RecognizedWord],
        scale: float,
        image_width: int,
        image_height: int,
    ) -> RegionOfInterest:
        """Choose a region from low-resolution word boxes.

        Args:
            words: Words recognized on the downscaled image.
            scale: Downscale factor (low-res = original * scale).
            image_width: Original image width in pixels.
            image_height: Original image height in pixels.

        Returns:
            Region in original coordinates; the whole image when nothing qualifies.
        """
        candidate = find_candidate_region(words)
        if candidate is None:
            logger.debug("No ROI candidate among %d words; using full image", len(words))
            return RegionOfInterest.full_image(image_width, image_height, RoiMethod.FALLBACK)

        box, method = candidate
        roi = to_original_region(box, scale, image_width, image_height, method)
        logger.debug(
            "ROI %s at (%d, %d) %dx%d",
            method.value, roi.x, roi.y, roi.width, roi.height,
        )
        return roi
