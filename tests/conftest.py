"""
Shared fixtures for the Image Filter Advisor tests.
"""
import struct
import zlib
from io import BytesIO

import cv2
import numpy as np
import pytest
from PIL import Image

from filter_advisor.analysis import RecommendationService
from filter_advisor.filters import FilterPipeline
from filter_advisor.metrics import MetricsExtractor
from filter_advisor.models import ImageMetrics, ImageUpload
from filter_advisor.session import FilterSession


def encode(array: np.ndarray, fmt: str) -> bytes:
    buffer = BytesIO()
    Image.fromarray(array).save(buffer, format=fmt)
    return buffer.getvalue()


class FixedMetricsExtractor(MetricsExtractor):
    """Returns preset metrics and records the arrays it was asked to measure."""

    def __init__(self, metrics: ImageMetrics):
        super().__init__()
        self.metrics = metrics
        self.calls = 0
        self.arrays = []

    def extract_from_array(self, image: np.ndarray) -> ImageMetrics:
        self.calls += 1
        self.arrays.append(image)
        return self.metrics


def png_chunk(chunk_type: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + chunk_type + data + struct.pack(">I", zlib.crc32(chunk_type + data))


def oversized_png(width: int, height: int) -> bytes:
    """A tiny PNG file whose header declares ``width`` x ``height`` RGB pixels."""
    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + png_chunk(b"IHDR", header)
        + png_chunk(b"IDAT", zlib.compress(b"\x00"))
        + png_chunk(b"IEND", b"")
    )


# =============================================================================
# Image Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def sharp_image():
    """64x64 RGB checkerboard with hard edges."""
    tile = np.kron([[0, 1] * 4, [1, 0] * 4] * 4, np.ones((8, 8)))
    gray = (tile * 255).astype(np.uint8)
    return np.stack([gray, gray, gray], axis=-1)


@pytest.fixture(scope="session")
def blurred_image(sharp_image):
    return cv2.GaussianBlur(sharp_image, (15, 15), 5)


@pytest.fixture(scope="session")
def noisy_image():
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, (48, 64, 3), dtype=np.uint8)


@pytest.fixture
def png_upload(sharp_image):
    return ImageUpload(filename="board.png", data=encode(sharp_image, "PNG"), mime_type="image/png")


@pytest.fixture
def jpeg_upload(noisy_image):
    return ImageUpload(filename="noise.jpg", data=encode(noisy_image, "JPEG"), mime_type="image/jpeg")


@pytest.fixture
def broken_upload():
    return ImageUpload(filename="broken.png", data=b"definitely not a png", mime_type="image/png")


@pytest.fixture
def huge_png_upload():
    # 20000 x 20000 is far beyond Pillow's decompression bomb limit
    return ImageUpload(filename="huge.png", data=oversized_png(20000, 20000), mime_type="image/png")


# =============================================================================
# Session Fixtures
# =============================================================================

@pytest.fixture
def default_metrics():
    return ImageMetrics(blur=300.0, brightness=120.0, contrast=50.0)


@pytest.fixture
def service():
    service = RecommendationService(delay=0.0)
    yield service
    service.shutdown()


@pytest.fixture
def session(default_metrics, service):
    session = FilterSession(
        extractor=FixedMetricsExtractor(default_metrics),
        service=service,
        pipeline=FilterPipeline(),
    )
    yield session
    session.close()
