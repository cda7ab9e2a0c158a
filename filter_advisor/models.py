"""
Data models for the Image Filter Advisor application.
"""
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

import numpy as np


KERNEL_SIZE_MIN = 1
KERNEL_SIZE_MAX = 31
DEFAULT_KERNEL_SIZE = 5


class FilterType(str, Enum):
    """The closed set of filters the application can apply."""
    GAUSSIAN = "gaussian"
    MEDIAN = "median"
    LOWPASS = "lowpass"
    HIGHPASS = "highpass"

    @property
    def label(self) -> str:
        return _FILTER_LABELS[self]

    @property
    def description(self) -> str:
        return _FILTER_DESCRIPTIONS[self]

    @property
    def tagline(self) -> str:
        return _FILTER_TAGLINES[self]


_FILTER_LABELS = {
    FilterType.GAUSSIAN: "Gaussian Blur",
    FilterType.MEDIAN: "Median Blur",
    FilterType.LOWPASS: "Low Pass",
    FilterType.HIGHPASS: "High Pass",
}

_FILTER_DESCRIPTIONS = {
    FilterType.GAUSSIAN: "Smooths the image using Gaussian distribution, reducing noise while preserving edges.",
    FilterType.MEDIAN: "Removes salt-and-pepper noise while preserving sharp edges in the image.",
    FilterType.LOWPASS: "Removes high-frequency details, creating a smooth, soft appearance.",
    FilterType.HIGHPASS: "Enhances edges and fine details, creating a sharpened effect.",
}

_FILTER_TAGLINES = {
    FilterType.GAUSSIAN: "Smooth & soft",
    FilterType.MEDIAN: "Noise reduction",
    FilterType.LOWPASS: "Remove details",
    FilterType.HIGHPASS: "Enhance edges",
}


class RationaleClass(str, Enum):
    """Named bucket selecting a fixed explanation template."""
    LOW_BLUR = "low_blur"
    HIGH_BLUR = "high_blur"
    DARK = "dark"
    BRIGHT = "bright"
    DEFAULT = "default"


class DisplayState(str, Enum):
    """Display state of the currently uploaded image."""
    NO_IMAGE = "no_image"
    UPLOADED = "uploaded"
    SUGGESTED = "suggested"
    APPLIED = "applied"


@dataclass(frozen=True)
class ImageMetrics:
    """Quality metrics computed once per uploaded image."""
    blur: float        # 0-1000 score from the Laplacian variance, higher = blurrier
    brightness: float  # mean gray level, 0-255
    contrast: float    # standard deviation of gray levels

    def __post_init__(self):
        for name in ("blur", "brightness", "contrast"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number, got {value!r}")
            if math.isnan(value) or value < 0:
                raise ValueError(f"{name} must be a non-negative number, got {value!r}")


@dataclass(frozen=True)
class FilterDescriptor:
    """A filter type together with its kernel size."""
    filter_type: FilterType = FilterType.GAUSSIAN
    kernel_size: int = DEFAULT_KERNEL_SIZE

    def __post_init__(self):
        if not isinstance(self.filter_type, FilterType):
            raise ValueError(f"Unknown filter type: {self.filter_type!r}")
        if isinstance(self.kernel_size, bool) or not isinstance(self.kernel_size, int):
            raise ValueError(f"kernel_size must be an integer, got {self.kernel_size!r}")
        if not KERNEL_SIZE_MIN <= self.kernel_size <= KERNEL_SIZE_MAX or self.kernel_size % 2 == 0:
            raise ValueError(
                f"kernel_size must be odd and within [{KERNEL_SIZE_MIN}, {KERNEL_SIZE_MAX}], "
                f"got {self.kernel_size}"
            )


_EMPHASIS = re.compile(r"\*\*")


@dataclass(frozen=True)
class Recommendation:
    """A suggested filter and the explanation for choosing it."""
    filter_type: FilterType
    rationale_class: RationaleClass
    rationale: str  # "**...**" marks emphasized spans

    def segments(self) -> List[Tuple[str, bool]]:
        """
        Split the rationale into plain and emphasized parts.

        Returns:
            List of (text, is_emphasized) tuples in reading order, empty parts dropped
        """
        parts = _EMPHASIS.split(self.rationale)
        return [(part, i % 2 == 1) for i, part in enumerate(parts) if part]


@dataclass(frozen=True)
class ImageUpload:
    """Raw uploaded image as handed over by the presentation layer."""
    filename: str
    data: bytes = field(repr=False)
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ImageInfo:
    """Contains basic information about an uploaded image."""
    filename: str
    width: int
    height: int
    channels: int
    file_size: int
    color_mode: str
    bit_depth: int


@dataclass(frozen=True)
class TransformedImage:
    """Derived artifact produced by applying a filter to an image."""
    descriptor: FilterDescriptor
    pixels: np.ndarray = field(repr=False, compare=False)
    png_bytes: bytes = field(repr=False)

    def download_name(self, original_filename: str) -> str:
        """Build the file name offered for download, e.g. ``photo_gaussian_k5.png``."""
        stem = original_filename.rsplit(".", 1)[0] if "." in original_filename else original_filename
        stem = stem or "image"
        return f"{stem}_{self.descriptor.filter_type.value}_k{self.descriptor.kernel_size}.png"
