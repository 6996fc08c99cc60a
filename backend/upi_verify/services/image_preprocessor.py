"""
Image Preprocessor — Normalizes payment screenshots before OCR.

Bounds the longest side, converts to RGB and boosts contrast/sharpness so
the small reference text on payment-app receipts reads cleanly.
"""
import io
import logging

from PIL import Image, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError

from upi_verify.config import get_settings
from upi_verify.errors import PreprocessingFailed

logger = logging.getLogger(__name__)

BRIGHTNESS = 1.1
CONTRAST = 1.2
SATURATION = 0.8
SHARPEN_RADIUS = 1.5
SHARPEN_PERCENT = 150
SHARPEN_THRESHOLD = 3


class ImagePreprocessor:
    """Stateless screenshot normalizer; one instance can be shared across threads."""

    def __init__(self, max_dimension: int | None = None):
        self.max_dimension = max_dimension or get_settings().PREPROCESS_MAX_DIMENSION

    def preprocess(self, raw_image: bytes) -> bytes:
        """Return the normalized screenshot as PNG bytes.

        Raises:
            PreprocessingFailed: If the bytes cannot be decoded as an image.
        """
        if not raw_image:
            raise PreprocessingFailed("Empty image payload")

        try:
            with Image.open(io.BytesIO(raw_image)) as source:
                source.load()
                image = ImageOps.exif_transpose(source)
                image = self._bound_size(image)
                image = image.convert("RGB")

                image = ImageEnhance.Brightness(image).enhance(BRIGHTNESS)
                image = ImageEnhance.Contrast(image).enhance(CONTRAST)
                image = ImageEnhance.Color(image).enhance(SATURATION)
                image = image.filter(
                    ImageFilter.UnsharpMask(
                        radius=SHARPEN_RADIUS, percent=SHARPEN_PERCENT, threshold=SHARPEN_THRESHOLD
                    )
                )

                buffer = io.BytesIO()
                image.save(buffer, format="PNG")
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
            logger.warning("Screenshot preprocessing failed: %s", e)
            raise PreprocessingFailed("Image preprocessing failed: the file is not a readable image") from e

        logger.debug("Preprocessed screenshot to %sx%s", *image.size)
        return buffer.getvalue()

    def _bound_size(self, image: Image.Image) -> Image.Image:
        """Shrink so the longest side is at most ``max_dimension``; never upscale."""
        width, height = image.size
        longest = max(width, height)
        if longest <= self.max_dimension:
            return image

        scale = self.max_dimension / longest
        new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
        return image.resize(new_size, Image.LANCZOS)
