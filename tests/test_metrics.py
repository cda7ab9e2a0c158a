"""
Unit tests for metrics extraction and upload handling.
"""
import numpy as np
import pytest
from PIL import Image

from conftest import encode
from filter_advisor.config import AdvisorConfig
from filter_advisor.errors import ExtractionError, UnsupportedMediaError
from filter_advisor.image_handler import ImagePreprocessor, ImageUploadHandler
from filter_advisor.metrics import (
    SYNTHETIC_BLUR_RANGE,
    SYNTHETIC_BRIGHTNESS_RANGE,
    SYNTHETIC_CONTRAST_RANGE,
    OpenCVMetricsExtractor,
    SyntheticMetricsExtractor,
    blur_score,
    luminance,
    build_extractor,
)
from filter_advisor.models import ImageMetrics, ImageUpload


@pytest.mark.unit
class TestOpenCVMetricsExtractor:

    def test_blurred_scores_higher_than_sharp(self, sharp_image, blurred_image):
        extractor = OpenCVMetricsExtractor()
        sharp = extractor.extract_from_array(sharp_image)
        blurred = extractor.extract_from_array(blurred_image)
        assert blurred.blur > sharp.blur
        assert sharp.blur < 100

    @pytest.mark.parametrize("variance, expected", [(0.0, 1000.0), (100.0, 500.0), (900.0, 100.0)])
    def test_blur_score(self, variance, expected):
        assert blur_score(variance) == pytest.approx(expected)

    def test_brightness_and_contrast_of_flat_image(self):
        flat = np.full((16, 16, 3), 200, dtype=np.uint8)
        result = OpenCVMetricsExtractor().extract_from_array(flat)
        assert result.brightness == pytest.approx(200.0)
        assert result.contrast == pytest.approx(0.0)
        assert result.blur == pytest.approx(1000.0)

    def test_checkerboard_contrast(self, sharp_image):
        result = OpenCVMetricsExtractor().extract_from_array(sharp_image)
        assert result.brightness == pytest.approx(127.5)
        assert result.contrast == pytest.approx(127.5)

    def test_extract_upload_is_deterministic(self, png_upload):
        extractor = OpenCVMetricsExtractor()
        assert extractor.extract(png_upload) == extractor.extract(png_upload)

    def test_extract_jpeg(self, jpeg_upload):
        result = OpenCVMetricsExtractor().extract(jpeg_upload)
        assert isinstance(result, ImageMetrics)
        assert result.blur > 0

    def test_undecodable_upload(self, broken_upload):
        with pytest.raises(ExtractionError):
            OpenCVMetricsExtractor().extract(broken_upload)

    def test_oversized_upload_is_an_extraction_error(self, huge_png_upload):
        with pytest.raises(ExtractionError, match="huge.png"):
            OpenCVMetricsExtractor().extract(huge_png_upload)

    def test_empty_array(self):
        with pytest.raises(ExtractionError):
            OpenCVMetricsExtractor().extract_from_array(np.zeros((0, 0), dtype=np.uint8))


@pytest.mark.unit
class TestLuminance:

    def test_rgb_and_rgba_agree(self, noisy_image):
        alpha = np.full(noisy_image.shape[:2] + (1,), 255, dtype=np.uint8)
        rgba = np.concatenate([noisy_image, alpha], axis=-1)
        assert np.array_equal(luminance(noisy_image), luminance(rgba))

    def test_single_plane_passes_through(self, sharp_image):
        gray = sharp_image[:, :, 0]
        assert luminance(gray) is gray
        assert np.array_equal(luminance(gray[:, :, np.newaxis]), gray)

    @pytest.mark.parametrize("array", [
        np.zeros((0, 4), dtype=np.uint8),
        np.zeros((4, 4), dtype=np.float32),
        np.zeros((4, 4, 2), dtype=np.uint8),
        np.zeros((2, 4, 4, 3), dtype=np.uint8),
    ])
    def test_rejects_unmeasurable_arrays(self, array):
        with pytest.raises(ExtractionError):
            luminance(array)

    def test_extractors_share_the_checks(self):
        with pytest.raises(ExtractionError):
            SyntheticMetricsExtractor(seed=1).extract_from_array(np.zeros((4, 4), dtype=np.int64))


@pytest.mark.unit
class TestSyntheticMetricsExtractor:

    def test_values_within_ranges(self, png_upload):
        extractor = SyntheticMetricsExtractor(seed=7)
        for _ in range(200):
            result = extractor.extract(png_upload)
            assert SYNTHETIC_BLUR_RANGE[0] <= result.blur < SYNTHETIC_BLUR_RANGE[1]
            assert SYNTHETIC_BRIGHTNESS_RANGE[0] <= result.brightness < SYNTHETIC_BRIGHTNESS_RANGE[1]
            assert SYNTHETIC_CONTRAST_RANGE[0] <= result.contrast < SYNTHETIC_CONTRAST_RANGE[1]

    def test_reproducible_with_seed(self, png_upload):
        first = SyntheticMetricsExtractor(seed=3).extract(png_upload)
        second = SyntheticMetricsExtractor(seed=3).extract(png_upload)
        assert first == second

    def test_still_rejects_undecodable(self, broken_upload):
        with pytest.raises(ExtractionError):
            SyntheticMetricsExtractor(seed=1).extract(broken_upload)


@pytest.mark.unit
class TestBuildExtractor:

    def test_default_is_opencv(self):
        extractor = build_extractor(AdvisorConfig(max_processing_size=256))
        assert isinstance(extractor, OpenCVMetricsExtractor)
        assert extractor.max_size == 256

    def test_synthetic(self):
        assert isinstance(build_extractor(AdvisorConfig(metrics_mode="synthetic")), SyntheticMetricsExtractor)


@pytest.mark.unit
class TestImageMetrics:

    @pytest.mark.parametrize("field", ["blur", "brightness", "contrast"])
    def test_rejects_negative(self, field):
        values = {"blur": 1.0, "brightness": 1.0, "contrast": 1.0, field: -0.5}
        with pytest.raises(ValueError):
            ImageMetrics(**values)

    def test_rejects_nan(self):
        with pytest.raises(ValueError):
            ImageMetrics(blur=float("nan"), brightness=1.0, contrast=1.0)

    def test_immutable(self):
        snapshot = ImageMetrics(blur=1.0, brightness=2.0, contrast=3.0)
        with pytest.raises(AttributeError):
            snapshot.blur = 5.0


@pytest.mark.unit
class TestImageUploadHandler:

    @pytest.mark.parametrize("mime_type", ["image/jpeg", "image/png", "image/jpg", "IMAGE/PNG"])
    def test_accepts_jpeg_and_png(self, png_upload, mime_type):
        upload = ImageUpload(png_upload.filename, png_upload.data, mime_type)
        ImageUploadHandler.validate_upload(upload)

    @pytest.mark.parametrize("mime_type", ["image/gif", "image/bmp", "application/pdf", ""])
    def test_rejects_other_types(self, png_upload, mime_type):
        upload = ImageUpload(png_upload.filename, png_upload.data, mime_type)
        with pytest.raises(UnsupportedMediaError):
            ImageUploadHandler.validate_upload(upload)

    def test_rejects_empty(self):
        with pytest.raises(UnsupportedMediaError):
            ImageUploadHandler.validate_upload(ImageUpload("empty.png", b"", "image/png"))

    def test_rejects_too_large(self, png_upload):
        with pytest.raises(UnsupportedMediaError):
            ImageUploadHandler.validate_upload(png_upload, max_file_size=10)

    def test_get_image_info(self, png_upload):
        image = ImageUploadHandler.load_image(png_upload)
        info = ImageUploadHandler.get_image_info(image, png_upload)
        assert (info.width, info.height) == (64, 64)
        assert info.channels == 3
        assert info.file_size == png_upload.size
        assert info.filename == "board.png"

    def test_load_image_rejects_decompression_bomb(self, huge_png_upload):
        with pytest.raises(ExtractionError, match="huge.png"):
            ImageUploadHandler.load_image(huge_png_upload)


@pytest.mark.unit
class TestImagePreprocessor:

    def test_downscales_keeping_aspect(self):
        image = Image.new("RGB", (400, 200), (10, 20, 30))
        array = ImagePreprocessor.preprocess_image(image, max_size=100)
        assert array.shape == (50, 100, 3)

    def test_rgba_composited_on_white(self):
        rgba = np.zeros((4, 4, 4), dtype=np.uint8)
        array = ImagePreprocessor.preprocess_image(Image.fromarray(rgba))
        assert np.all(array == 255)

    def test_grayscale_png_becomes_rgb(self, sharp_image):
        upload = ImageUpload("gray.png", encode(sharp_image[:, :, 0].copy(), "PNG"), "image/png")
        array = ImagePreprocessor.preprocess_image(ImageUploadHandler.load_image(upload))
        assert array.shape == (64, 64, 3)
