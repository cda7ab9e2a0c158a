"""
Image quality metrics extraction.

Blur is a 0-1000 score derived from the variance of the Laplacian, where
higher means blurrier: a Laplacian variance of 100 (a common "too blurry"
cut-off) maps to 500 and a variance of 900 maps to 100. Brightness is the
mean gray level and contrast the standard deviation of gray levels.

A synthetic extractor draws metrics from fixed ranges for development,
still rejecting input that does not decode.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import cv2
import numpy as np

from filter_advisor.config import AdvisorConfig
from filter_advisor.errors import ExtractionError
from filter_advisor.image_handler import decode_upload
from filter_advisor.models import ImageMetrics, ImageUpload

logger = logging.getLogger(__name__)

BLUR_SCALE = 1000.0
LAPLACIAN_REFERENCE = 100.0

SYNTHETIC_BLUR_RANGE = (50.0, 850.0)
SYNTHETIC_BRIGHTNESS_RANGE = (30.0, 230.0)
SYNTHETIC_CONTRAST_RANGE = (20.0, 100.0)

# Channel count -> OpenCV conversion to a single luminance plane
_TO_GRAY = {
    3: cv2.COLOR_RGB2GRAY,
    4: cv2.COLOR_RGBA2GRAY,
}


def blur_score(laplacian_variance: float) -> float:
    """Convert a Laplacian variance (higher = sharper) to a blur score (higher = blurrier)."""
    return BLUR_SCALE * LAPLACIAN_REFERENCE / (LAPLACIAN_REFERENCE + laplacian_variance)


def luminance(image: np.ndarray) -> np.ndarray:
    """
    Reduce a uint8 image array to the gray plane the metrics are measured on.

    Accepts single-plane arrays, (H, W, 1) arrays, RGB and RGBA.

    Raises:
        ExtractionError: For empty arrays, other dtypes or other channel counts
    """
    if not isinstance(image, np.ndarray) or image.size == 0:
        raise ExtractionError("Image array is empty")
    if image.dtype != np.uint8:
        raise ExtractionError(f"Expected a uint8 image array, got {image.dtype}")
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0]
    if image.ndim == 3 and image.shape[2] in _TO_GRAY:
        return cv2.cvtColor(image, _TO_GRAY[image.shape[2]])
    raise ExtractionError(f"Cannot measure an image array of shape {image.shape}")


class MetricsExtractor(ABC):
    """Computes ImageMetrics for an uploaded image or an already decoded array."""

    def __init__(self, max_size: int = 1024):
        self.max_size = max_size

    def extract(self, upload: ImageUpload) -> ImageMetrics:
        """
        Decode an upload and compute its metrics.

        Raises:
            ExtractionError: If the upload is not a decodable image
        """
        _, pixels = decode_upload(upload, max_size=self.max_size)
        metrics = self.extract_from_array(pixels)
        logger.info(
            "Metrics for %s: blur=%.2f brightness=%.2f contrast=%.2f",
            upload.filename, metrics.blur, metrics.brightness, metrics.contrast,
        )
        return metrics

    @abstractmethod
    def extract_from_array(self, image: np.ndarray) -> ImageMetrics:
        """
        Compute metrics for a decoded uint8 image array.

        Raises:
            ExtractionError: If the array cannot be measured
        """


class OpenCVMetricsExtractor(MetricsExtractor):
    """Deterministic metrics computed from the pixels with OpenCV."""

    def extract_from_array(self, image: np.ndarray) -> ImageMetrics:
        gray = luminance(image)
        try:
            laplacian = cv2.Laplacian(gray, cv2.CV_64F)
        except cv2.error as e:
            raise ExtractionError(f"Laplacian failed: {e}") from e

        sharpness = float(laplacian.var())
        blur = blur_score(sharpness)
        logger.debug("Laplacian variance %.2f -> blur %.2f", sharpness, blur)
        brightness = float(np.mean(gray))
        contrast = float(np.std(gray))
        return ImageMetrics(blur=blur, brightness=brightness, contrast=contrast)


class SyntheticMetricsExtractor(MetricsExtractor):
    """Stand-in that draws random metrics from the development ranges."""

    def __init__(self, seed: Optional[int] = None, max_size: int = 1024):
        super().__init__(max_size)
        self.rng = np.random.default_rng(seed)

    def extract_from_array(self, image: np.ndarray) -> ImageMetrics:
        # Same input checks as the real extractor, only the values are made up
        luminance(image)
        return ImageMetrics(
            blur=float(self.rng.uniform(*SYNTHETIC_BLUR_RANGE)),
            brightness=float(self.rng.uniform(*SYNTHETIC_BRIGHTNESS_RANGE)),
            contrast=float(self.rng.uniform(*SYNTHETIC_CONTRAST_RANGE)),
        )


def build_extractor(config: AdvisorConfig) -> MetricsExtractor:
    """Create the extractor selected by ``config.metrics_mode``."""
    if config.metrics_mode == "synthetic":
        return SyntheticMetricsExtractor(seed=config.synthetic_seed, max_size=config.max_processing_size)
    return OpenCVMetricsExtractor(max_size=config.max_processing_size)
