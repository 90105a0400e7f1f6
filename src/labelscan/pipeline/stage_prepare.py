"""Image Preparation Stage - Load, downscale, crop and enhance label photos.

Produces the images fed to the recognition engine:
- a low-resolution copy for the region-of-interest scan
- an upscaled, contrast-normalized crop of the region for final recognition
- a JPEG preview of that crop for the caller
"""

import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from labelscan.errors import InputError
from labelscan.models import RegionOfInterest

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes, bytearray, np.ndarray]

# Low-resolution scan bound (longer edge)
LOW_RES_MAX_DIM = 1100

# Crop upscaling
TARGET_CROP_WIDTH = 3000
MIN_UPSCALE = 1.0
MAX_UPSCALE = 5.0

# Mild pass: linear contrast around mid-gray
SIMPLE_CONTRAST = 1.3
# Strong pass: contrast around a darker midpoint to flatten uneven lighting
ENHANCED_CONTRAST = 1.5
ENHANCED_PIVOT = 100.0


def load_image(source: ImageSource) -> np.ndarray:
    """Decode an image source into a BGR array.

    Args:
        source: File path, encoded image bytes, or an already decoded array.

    Returns:
        BGR image as numpy array.

    Raises:
        InputError: If the source is missing or cannot be decoded.
    """
    if source is None:
        raise InputError("No image source provided")

    if isinstance(source, np.ndarray):
        image = source
    elif isinstance(source, (bytes, bytearray)):
        if not source:
            raise InputError("Image bytes are empty")
        buffer = np.frombuffer(bytes(source), dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    else:
        path = Path(source)
        if not path.is_file():
            raise InputError(f"Image file not found: {path}")
        image = cv2.imread(str(path), cv2.IMREAD_COLOR)

    if image is None or image.size == 0:
        raise InputError("Image could not be decoded")

    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    elif image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

    height, width = image.shape[:2]
    if width < 1 or height < 1:
        raise InputError("Image has no pixels")

    return image


def downscale_for_scan(
    image: np.ndarray,
    max_dim: int = LOW_RES_MAX_DIM,
) -> tuple[np.ndarray, float]:
    """Shrink an image so its longer edge is at most ``max_dim``.

    Never enlarges.

    Returns:
        Tuple of (low-resolution image, scale factor applied).
    """
    height, width = image.shape[:2]
    scale = min(1.0, max_dim / max(width, height))
    if scale >= 1.0:
        return image, 1.0

    low_w = max(1, round(width * scale))
    low_h = max(1, round(height * scale))
    low = cv2.resize(image, (low_w, low_h), interpolation=cv2.INTER_AREA)
    return low, scale


def crop_scale_factor(crop_width: int, target_width: int = TARGET_CROP_WIDTH) -> float:
    """Upscale factor bringing a crop to the target width, clamped to [1, 5]."""
    return float(np.clip(target_width / max(1, crop_width), MIN_UPSCALE, MAX_UPSCALE))


def crop_and_upscale(
    image: np.ndarray,
    roi: RegionOfInterest,
    target_width: int = TARGET_CROP_WIDTH,
) -> tuple[np.ndarray, float]:
    """Crop the original-resolution image to the region and upscale it.

    Returns:
        Tuple of (upscaled crop, scale factor applied).
    """
    height, width = image.shape[:2]
    x1 = max(0, roi.x)
    y1 = max(0, roi.y)
    x2 = min(width, roi.x + roi.width)
    y2 = min(height, roi.y + roi.height)

    if x2 <= x1 or y2 <= y1:
        raise InputError(f"Region {roi.x},{roi.y} {roi.width}x{roi.height} is outside the image")

    crop = image[y1:y2, x1:x2]
    scale = crop_scale_factor(x2 - x1, target_width)
    if scale == 1.0:
        return crop.copy(), scale

    out_w = max(1, round((x2 - x1) * scale))
    out_h = max(1, round((y2 - y1) * scale))
    upscaled = cv2.resize(crop, (out_w, out_h), interpolation=cv2.INTER_CUBIC)
    return upscaled, scale


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert to single-channel float luminance (BT.601 weights)."""
    if image.ndim == 2:
        return image.astype(np.float32)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY).astype(np.float32)


def normalize_simple(image: np.ndarray) -> np.ndarray:
    """Grayscale plus mild linear contrast around mid-gray."""
    gray = to_grayscale(image)
    intercept = 128.0 * (1.0 - SIMPLE_CONTRAST)
    return np.clip(gray * SIMPLE_CONTRAST + intercept, 0, 255).astype(np.uint8)


def normalize_enhanced(image: np.ndarray) -> np.ndarray:
    """Stronger contrast centered on a darker midpoint."""
    gray = to_grayscale(image)
    return np.clip((gray - ENHANCED_PIVOT) * ENHANCED_CONTRAST + 128.0, 0, 255).astype(np.uint8)


def enhance_for_ocr(image: np.ndarray) -> np.ndarray:
    """Apply both normalization passes; the second compounds the first.

    Args:
        image: BGR or grayscale crop.

    Returns:
        Grayscale uint8 image.
    """
    return normalize_enhanced(normalize_simple(image))


def encode_preview(image: np.ndarray, quality: int = 85) -> bytes:
    """Encode a processed crop as JPEG for display.

    Returns:
        JPEG bytes, or empty bytes if the encoder produced nothing.
    """
    ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        logger.warning("Preview encoding returned no data")
        return b""
    return buffer.tobytes()
