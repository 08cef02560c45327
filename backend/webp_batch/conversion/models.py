"""Conversion request/response models."""
from dataclasses import dataclass

from webp_batch.config import OUTPUT_MEDIA_TYPE, WEBP_EFFORT, WEBP_QUALITY


@dataclass(frozen=True)
class EncodeOptions:
    quality: int = WEBP_QUALITY
    effort: int = WEBP_EFFORT


@dataclass(frozen=True)
class ConvertedImage:
    """Encoded output plus the metadata the endpoint sends with it."""

    data: bytes
    filename: str
    content_type: str = OUTPUT_MEDIA_TYPE

    @property
    def size(self) -> int:
        return len(self.data)
