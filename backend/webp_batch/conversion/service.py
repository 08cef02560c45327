"""WebP encoding service backed by Pillow."""
import io
import logging
from typing import Optional

from PIL import Image

from webp_batch.conversion.models import ConvertedImage, EncodeOptions
from webp_batch.errors import ConversionError
from webp_batch.filenames import derive_output_filename

logger = logging.getLogger("webp_batch.service")

ENCODING_FAILED_MESSAGE = "Image conversion failed, please try again later"


class ConversionService:
    """Encodes raw image bytes to WebP."""

    def __init__(self, options: Optional[EncodeOptions] = None):
        self.options = options or EncodeOptions()
        logger.info(
            "ConversionService initialized with quality=%s effort=%s",
            self.options.quality,
            self.options.effort,
        )

    @staticmethod
    def _prepare(img: Image.Image) -> Image.Image:
        """Bring the decoded image into a mode the WebP encoder accepts, keeping transparency."""
        if img.mode in ("RGB", "RGBA"):
            return img
        has_alpha = img.mode in ("LA", "PA", "RGBa", "La") or (
            img.mode == "P" and "transparency" in img.info
        )
        return img.convert("RGBA" if has_alpha else "RGB")

    def encode(self, data: bytes) -> bytes:
        """Encode image bytes to WebP. Only the first frame of animated inputs is kept."""
        with Image.open(io.BytesIO(data)) as img:
            img.seek(0)
            work = self._prepare(img)
            out = io.BytesIO()
            work.save(out, format="WEBP", quality=self.options.quality, method=self.options.effort)
        return out.getvalue()

    def convert(self, data: bytes, filename: str) -> ConvertedImage:
        """Convert one uploaded file. Raises ConversionError when the bytes cannot be encoded."""
        try:
            encoded = self.encode(data)
        except Exception as e:
            logger.exception("Image conversion failed for %s: %s", filename, e)
            raise ConversionError(ENCODING_FAILED_MESSAGE) from e
        result = ConvertedImage(data=encoded, filename=derive_output_filename(filename))
        logger.info("Converted %s -> %s (%s -> %s bytes)", filename, result.filename, len(data), result.size)
        return result


# Singleton
_conversion_service: Optional[ConversionService] = None


def get_conversion_service() -> ConversionService:
    global _conversion_service
    if _conversion_service is None:
        _conversion_service = ConversionService()
    return _conversion_service
