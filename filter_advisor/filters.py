"""
Filter application pipeline.

Applies one of the fixed filters with a given kernel size to an image array
and encodes the result as PNG. The source array is never modified; each call
produces a new derived image, and identical inputs give byte-identical output.
"""
import io
import logging
from typing import Callable, Dict

import cv2
import numpy as np
from PIL import Image
from scipy import ndimage

from filter_advisor.errors import ApplicationError
from filter_advisor.models import FilterDescriptor, FilterType, TransformedImage

logger = logging.getLogger(__name__)

# Detail gain used by the high pass filter for a 3x3 kernel; larger kernels
# get proportionally less gain.
HIGHPASS_BASE_GAIN = 1.5
HIGHPASS_MIN_GAIN = 0.5


def gaussian_filter(image: np.ndarray, kernel_size: int) -> np.ndarray:
    """Weighted local smoothing; sigma is derived from the kernel size."""
    return cv2.GaussianBlur(image, (kernel_size, kernel_size), 0)


def median_filter(image: np.ndarray, kernel_size: int) -> np.ndarray:
    """Order-statistic smoothing over a kernel_size x kernel_size window."""
    if kernel_size == 1:
        return image.copy()
    return cv2.medianBlur(image, kernel_size)


def lowpass_filter(image: np.ndarray, kernel_size: int) -> np.ndarray:
    """Box average over the window, attenuating high spatial frequencies."""
    size = (kernel_size, kernel_size) + (1,) * (image.ndim - 2)
    smoothed = ndimage.uniform_filter(image.astype(np.float32), size=size, mode='reflect')
    return np.clip(np.rint(smoothed), 0, 255).astype(np.uint8)


def highpass_gain(kernel_size: int) -> float:
    """Amount of extracted detail added back; smaller kernels sharpen harder."""
    return max(HIGHPASS_MIN_GAIN, HIGHPASS_BASE_GAIN * 2 / (kernel_size // 2 + 1))


def highpass_filter(image: np.ndarray, kernel_size: int) -> np.ndarray:
    """Remove the low frequencies and add the remaining detail back to the image."""
    original = image.astype(np.float32)
    low = cv2.GaussianBlur(original, (kernel_size, kernel_size), 0)
    detail = original - low
    sharpened = original + highpass_gain(kernel_size) * detail
    return np.clip(np.rint(sharpened), 0, 255).astype(np.uint8)


FILTER_FUNCTIONS: Dict[FilterType, Callable[[np.ndarray, int], np.ndarray]] = {
    FilterType.GAUSSIAN: gaussian_filter,
    FilterType.MEDIAN: median_filter,
    FilterType.LOWPASS: lowpass_filter,
    FilterType.HIGHPASS: highpass_filter,
}


def encode_png(pixels: np.ndarray) -> bytes:
    """
    Encode an image array as PNG.

    Args:
        pixels: Grayscale or RGB uint8 array

    Returns:
        PNG file content
    """
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format='PNG')
    return buffer.getvalue()


class FilterPipeline:
    """Applies a FilterDescriptor to an image array."""

    def __init__(self, filters: Dict[FilterType, Callable[[np.ndarray, int], np.ndarray]] = None):
        self.filters = dict(FILTER_FUNCTIONS if filters is None else filters)

    def apply(self, image: np.ndarray, descriptor: FilterDescriptor) -> TransformedImage:
        """
        Apply a filter to an image.

        Args:
            image: Grayscale (H, W) or RGB (H, W, 3) uint8 array
            descriptor: Filter type and kernel size

        Returns:
            TransformedImage holding the filtered pixels and their PNG encoding

        Raises:
            ApplicationError: If the image is not a usable array or the filter fails
        """
        self._check_image(image)

        filter_fn = self.filters.get(descriptor.filter_type)
        if filter_fn is None:
            raise ApplicationError(f"No implementation for filter {descriptor.filter_type.value!r}")

        try:
            filtered = filter_fn(image, descriptor.kernel_size)
            png_bytes = encode_png(filtered)
        except (cv2.error, ValueError, TypeError, OSError) as e:
            logger.warning("Applying %s failed: %s", descriptor, e)
            raise ApplicationError(f"Could not apply {descriptor.filter_type.label}: {e}") from e

        filtered.setflags(write=False)
        logger.info(
            "Applied %s (kernel %d) to %dx%d image",
            descriptor.filter_type.value, descriptor.kernel_size, image.shape[1], image.shape[0],
        )
        return TransformedImage(descriptor=descriptor, pixels=filtered, png_bytes=png_bytes)

    @staticmethod
    def _check_image(image: np.ndarray) -> None:
        if not isinstance(image, np.ndarray):
            raise ApplicationError(f"Expected an image array, got {type(image).__name__}")
        if image.dtype != np.uint8:
            raise ApplicationError(f"Expected a uint8 image, got {image.dtype}")
        if image.ndim not in (2, 3) or (image.ndim == 3 and image.shape[2] != 3):
            raise ApplicationError(f"Expected a grayscale or RGB image, got shape {image.shape}")
        if image.shape[0] == 0 or image.shape[1] == 0:
            raise ApplicationError("Image is empty")
