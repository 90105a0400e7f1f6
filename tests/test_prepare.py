"""Tests for image loading and preparation."""

import cv2
import numpy as np
import pytest

from labelscan.errors import InputError
from labelscan.models import RegionOfInterest, RoiMethod
from labelscan.pipeline.stage_prepare import (
    crop_and_upscale,
    crop_scale_factor,
    downscale_for_scan,
    encode_preview,
    enhance_for_ocr,
    load_image,
    normalize_enhanced,
    normalize_simple,
)


class TestLoadImage:
    """Tests for image decoding."""

    def test_array_passthrough(self, small_image):
        """A BGR array is returned as-is."""
        assert load_image(small_image) is small_image

    def test_grayscale_converted_to_bgr(self):
        """Single-channel arrays gain three channels."""
        image = load_image(np.zeros((20, 30), dtype=np.uint8))
        assert image.shape == (20, 30, 3)

    def test_encoded_bytes(self, small_image):
        """PNG bytes are decoded."""
        ok, buffer = cv2.imencode(".png", small_image)
        assert ok
        image = load_image(buffer.tobytes())
        assert image.shape == small_image.shape

    def test_path(self, tmp_path, small_image):
        """Image files are read from disk."""
        path = tmp_path / "label.png"
        cv2.imwrite(str(path), small_image)
        assert load_image(path).shape == small_image.shape

    def test_none_rejected(self):
        """A missing source raises InputError."""
        with pytest.raises(InputError):
            load_image(None)

    def test_missing_file_rejected(self, tmp_path):
        """A path that does not exist raises InputError."""
        with pytest.raises(InputError, match="not found"):
            load_image(tmp_path / "missing.jpg")

    def test_garbage_bytes_rejected(self):
        """Bytes that are not an image raise InputError."""
        with pytest.raises(InputError):
            load_image(b"definitely not a jpeg")

    def test_empty_bytes_rejected(self):
        with pytest.raises(InputError):
            load_image(b"")


class TestDownscale:
    """Tests for the low-resolution scan copy."""

    def test_longer_edge_bounded(self, label_image):
        """A 1600x1200 image is reduced to 1100 on its longer edge."""
        low, scale = downscale_for_scan(label_image, 1100)

        assert max(low.shape[:2]) == 1100
        assert scale == pytest.approx(1100 / 1600)

    def test_small_image_untouched(self, small_image):
        """Images already within bounds are never enlarged."""
        low, scale = downscale_for_scan(small_image, 1100)
        assert low is small_image
        assert scale == 1.0


class TestCropAndUpscale:
    """Tests for region cropping."""

    @pytest.mark.parametrize(
        "crop_width, expected",
        [(3000, 1.0), (6000, 1.0), (1000, 3.0), (300, 5.0), (100, 5.0)],
    )
    def test_scale_factor_clamped(self, crop_width, expected):
        """Scale brings the crop toward 3000 px, clamped to [1, 5]."""
        assert crop_scale_factor(crop_width, 3000) == pytest.approx(expected)

    def test_crop_is_upscaled(self, label_image):
        """A 600 px wide crop is enlarged five times."""
        roi = RegionOfInterest(x=100, y=200, width=600, height=300, method=RoiMethod.KEYWORD)
        crop, scale = crop_and_upscale(label_image, roi, 3000)

        assert scale == 5.0
        assert crop.shape[:2] == (1500, 3000)

    def test_region_clipped_to_image(self, small_image):
        """Regions extending past the edge are clipped."""
        roi = RegionOfInterest(x=300, y=200, width=500, height=500, method=RoiMethod.DENSITY)
        crop, scale = crop_and_upscale(small_image, roi, 100)

        assert scale == 1.0
        assert crop.shape[:2] == (100, 100)

    def test_region_outside_rejected(self, small_image):
        """A region entirely outside the image is an input error."""
        roi = RegionOfInterest(x=1000, y=1000, width=10, height=10, method=RoiMethod.DENSITY)
        with pytest.raises(InputError):
            crop_and_upscale(small_image, roi)


class TestEnhance:
    """Tests for contrast normalization."""

    def test_simple_pass_keeps_mid_gray(self):
        """Mid-gray is the fixed point of the mild pass."""
        image = np.full((4, 4), 128, dtype=np.uint8)
        out = normalize_simple(image).astype(int)
        assert (np.abs(out - 128) <= 1).all()

    def test_enhanced_pass_pivots_on_100(self):
        """A value of 100 maps to 128 in the strong pass."""
        image = np.full((4, 4), 100, dtype=np.uint8)
        assert (normalize_enhanced(image) == 128).all()

    def test_output_is_grayscale_uint8(self, label_image):
        """Both passes yield a single-channel uint8 image."""
        out = enhance_for_ocr(label_image)
        assert out.ndim == 2
        assert out.dtype == np.uint8
        assert out.shape == label_image.shape[:2]

    def test_contrast_is_stretched(self):
        """Dark ink gets darker and light paper lighter."""
        image = np.array([[60, 200]], dtype=np.uint8)
        out = enhance_for_ocr(image)
        assert out[0, 0] < 60
        assert out[0, 1] > 200


class TestEncodePreview:
    """Tests for preview encoding."""

    def test_jpeg_bytes(self, small_image):
        """Output starts with the JPEG SOI marker."""
        data = encode_preview(enhance_for_ocr(small_image), 85)
        assert data[:2] == b"\xff\xd8"
