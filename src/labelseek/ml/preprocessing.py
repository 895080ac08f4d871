"""Image decoding and preprocessing pipeline.

Handles format validation, decoding, EXIF orientation, colour conversion,
size validation, and conversion to the normalized tensor layout expected by
ImageNet classifiers.
"""

from __future__ import annotations

import io
import logging
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from labelseek.errors import ImageReadError, ImageTooLargeError, UnsupportedImageError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from labelseek.config import Settings

logger = logging.getLogger(__name__)

RESIZE_SHORTER_SIDE = 256
CROP_SIZE = 224
IMAGENET_MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
IMAGENET_STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)


class ImageFormat(StrEnum):
    PNG = "PNG"
    JPEG = "JPEG"
    WEBP = "WEBP"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_pillow(cls, name: str | None) -> ImageFormat:
        """Map a Pillow format name; anything unrecognized is ``UNKNOWN``."""
        try:
            return cls(name) if name else cls.UNKNOWN
        except ValueError:
            return cls.UNKNOWN


ACCEPTED_FORMATS = frozenset({ImageFormat.PNG, ImageFormat.JPEG, ImageFormat.WEBP})


class ImagePreprocessor:
    """Decodes images with Pillow and prepares classifier input tensors."""

    def __init__(self, settings: Settings) -> None:
        self._max_pixels = settings.max_image_pixels
        self._max_file_size = settings.max_file_size

    def open_image(self, image_path: str) -> tuple[Image.Image, str]:
        """Open an image file and return it with its canonical absolute path.

        Raises:
            ImageReadError: If the file is missing or cannot be read.
            UnsupportedImageError: If the format is not PNG, JPEG or WebP.
            ImageTooLargeError: If the image exceeds the configured limits.
        """
        path = Path(image_path)
        try:
            absolute_path = str(path.resolve(strict=True))
            size = path.stat().st_size
        except OSError as e:
            raise ImageReadError(f"Could not read image {image_path}: {e}") from e
        if size > self._max_file_size:
            raise ImageTooLargeError(f"{image_path} is {size} bytes, limit is {self._max_file_size}")

        try:
            with Image.open(path) as image:
                return self._load(image, image_path), absolute_path
        except Image.DecompressionBombError as e:
            raise ImageTooLargeError(f"{image_path}: {e}") from e
        except UnidentifiedImageError as e:
            raise UnsupportedImageError(f"{image_path}: format is not supported") from e
        except OSError as e:
            raise ImageReadError(f"Could not read image {image_path}: {e}") from e

    def decode_bytes(self, data: bytes, name: str = "<upload>") -> Image.Image:
        """Decode uploaded image bytes.

        Raises:
            ImageTooLargeError: If the payload or image exceeds the configured limits.
            UnsupportedImageError: If the bytes are not a PNG, JPEG or WebP image.
            ImageReadError: If the image is truncated or corrupt.
        """
        if len(data) > self._max_file_size:
            raise ImageTooLargeError(f"{name} is {len(data)} bytes, limit is {self._max_file_size}")
        try:
            with Image.open(io.BytesIO(data)) as image:
                return self._load(image, name)
        except Image.DecompressionBombError as e:
            raise ImageTooLargeError(f"{name}: {e}") from e
        except UnidentifiedImageError as e:
            raise UnsupportedImageError(f"{name}: format is not supported") from e
        except OSError as e:
            raise ImageReadError(f"Could not decode image {name}: {e}") from e

    def to_tensor(self, image: Image.Image) -> NDArray[np.float32]:
        """Resize, center-crop and normalize an RGB image into a 1x3x224x224 tensor."""
        width, height = image.size
        scale = RESIZE_SHORTER_SIDE / min(width, height)
        resized = image.resize(
            (max(CROP_SIZE, round(width * scale)), max(CROP_SIZE, round(height * scale))),
            Image.Resampling.BILINEAR,
        )
        cropped = ImageOps.fit(resized, (CROP_SIZE, CROP_SIZE), centering=(0.5, 0.5))

        pixels = np.asarray(cropped, dtype=np.float32) / 255.0
        pixels = (pixels - IMAGENET_MEAN) / IMAGENET_STD
        return np.ascontiguousarray(pixels.transpose(2, 0, 1)[np.newaxis, ...], dtype=np.float32)

    # -- Internal -----------------------------------------------------------

    def _load(self, image: Image.Image, name: str) -> Image.Image:
        image_format = ImageFormat.from_pillow(image.format)
        if image_format not in ACCEPTED_FORMATS:
            raise UnsupportedImageError(f"{name}: format {image_format} is not supported")

        width, height = image.size
        if width * height > self._max_pixels:
            raise ImageTooLargeError(f"{name} has {width * height} pixels, limit is {self._max_pixels}")

        image = ImageOps.exif_transpose(image)
        logger.debug("Decoded %s (%s, %dx%d)", name, image_format, width, height)
        return image.convert("RGB")
