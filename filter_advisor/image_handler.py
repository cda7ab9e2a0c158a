"""
Image upload validation and preprocessing for the Image Filter Advisor.
"""
import io
import logging
from typing import Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from filter_advisor.errors import ExtractionError, UnsupportedMediaError
from filter_advisor.models import ImageInfo, ImageUpload

logger = logging.getLogger(__name__)


class ImageUploadHandler:
    """Handles image upload validation, decoding and basic information extraction."""

    SUPPORTED_MIME_TYPES = ('image/jpeg', 'image/png')
    MIME_ALIASES = {'image/jpg': 'image/jpeg', 'image/pjpeg': 'image/jpeg'}
    SUPPORTED_EXTENSIONS = ['jpg', 'jpeg', 'png']
    MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB in bytes

    @staticmethod
    def normalize_mime_type(mime_type: str) -> str:
        """Lower-case a declared MIME type, drop parameters and resolve aliases."""
        base = (mime_type or '').split(';', 1)[0].strip().lower()
        return ImageUploadHandler.MIME_ALIASES.get(base, base)

    @staticmethod
    def validate_upload(upload: ImageUpload, max_file_size: int = MAX_FILE_SIZE) -> None:
        """
        Validate an uploaded image before anything is decoded.

        Args:
            upload: Uploaded image bytes with declared MIME type
            max_file_size: Largest accepted upload in bytes

        Raises:
            UnsupportedMediaError: If the upload is empty, too large or not JPEG/PNG
        """
        if upload is None or upload.size == 0:
            raise UnsupportedMediaError("No file selected or the file is empty")

        if upload.size > max_file_size:
            raise UnsupportedMediaError(
                f"File too large, please choose a file smaller than {max_file_size / 1024 / 1024:.0f}MB"
            )

        mime_type = ImageUploadHandler.normalize_mime_type(upload.mime_type)
        if mime_type not in ImageUploadHandler.SUPPORTED_MIME_TYPES:
            raise UnsupportedMediaError(
                f"Unsupported media type {upload.mime_type!r}. "
                f"Supported formats: {', '.join(ImageUploadHandler.SUPPORTED_EXTENSIONS).upper()}"
            )

    @staticmethod
    def load_image(upload: ImageUpload) -> Image.Image:
        """
        Decode an uploaded image.

        Args:
            upload: Uploaded image bytes

        Returns:
            Fully loaded PIL Image

        Raises:
            ExtractionError: If the bytes are not a decodable image, or the
                header declares more pixels than Pillow's decompression bomb limit
        """
        try:
            image = Image.open(io.BytesIO(upload.data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.warning("Could not decode %s: %s", upload.filename, e)
            raise ExtractionError(f"Cannot read image file {upload.filename!r}: {e}") from e
        return image

    @staticmethod
    def get_image_info(image: Image.Image, upload: ImageUpload) -> ImageInfo:
        """
        Extract basic information from the image.

        Args:
            image: Decoded PIL Image
            upload: The upload it was decoded from

        Returns:
            ImageInfo describing the image
        """
        return ImageInfo(
            filename=upload.filename,
            width=image.width,
            height=image.height,
            channels=len(image.getbands()),
            file_size=upload.size,
            color_mode=image.mode,
            bit_depth=8 if image.mode in ['1', 'L', 'P', 'RGB', 'RGBA', 'LA'] else 16,
        )


class ImagePreprocessor:
    """Handles image preprocessing and format standardization."""

    @staticmethod
    def preprocess_image(image: Image.Image, max_size: int = 1024) -> np.ndarray:
        """
        Convert an image to an RGB array, downscaling large images for faster processing.

        Args:
            image: PIL Image object
            max_size: Maximum dimension for processing (default: 1024)

        Returns:
            RGB uint8 image array
        """
        # Resize large images for faster processing
        if max(image.size) > max_size:
            width, height = image.size
            if width > height:
                new_width = max_size
                new_height = max(1, int(height * max_size / width))
            else:
                new_height = max_size
                new_width = max(1, int(width * max_size / height))

            image = image.resize((new_width, new_height), Image.Resampling.LANCZOS)

        # Convert to RGB if necessary
        if image.mode != 'RGB':
            if image.mode in ('RGBA', 'LA', 'P'):
                # Create white background for transparent images
                image = image.convert('RGBA')
                background = Image.new('RGB', image.size, (255, 255, 255))
                background.paste(image, mask=image.split()[-1])
                image = background
            else:
                image = image.convert('RGB')

        return np.array(image)


def decode_upload(upload: ImageUpload, max_size: int = 1024) -> Tuple[Image.Image, np.ndarray]:
    """
    Decode an upload once and prepare the RGB array used for metrics and filtering.

    Args:
        upload: Uploaded image bytes
        max_size: Maximum dimension of the returned array

    Returns:
        Tuple of (decoded PIL Image, RGB uint8 array)

    Raises:
        ExtractionError: If the bytes do not decode or cannot be converted to RGB
    """
    image = ImageUploadHandler.load_image(upload)
    try:
        pixels = ImagePreprocessor.preprocess_image(image, max_size=max_size)
    except (OSError, ValueError) as e:
        logger.warning("Could not convert %s to RGB: %s", upload.filename, e)
        raise ExtractionError(f"Cannot convert {upload.filename!r} to RGB: {e}") from e
    return image, pixels
