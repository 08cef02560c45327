"""Upload rules: allowed media types and maximum size."""
from pathlib import Path
from typing import Optional

from webp_batch.config import ALLOWED_MEDIA_TYPES, EXTENSION_MEDIA_TYPES, MAX_FILE_SIZE_BYTES, MAX_FILE_SIZE_MB
from webp_batch.errors import ValidationError

SUPPORTED_LABEL = "JPEG, PNG, GIF, BMP, TIFF, WebP"
MISSING_FILE_MESSAGE = "No file provided"
UNSUPPORTED_TYPE_MESSAGE = f"Unsupported file format. Supported formats: {SUPPORTED_LABEL}"
FILE_TOO_LARGE_MESSAGE = f"File size cannot exceed {MAX_FILE_SIZE_MB}MB"


def guess_media_type(filename: str) -> Optional[str]:
    """Media type for a local file, from its extension. None when unknown."""
    return EXTENSION_MEDIA_TYPES.get(Path(filename).suffix.lower())


def is_allowed_media_type(media_type: Optional[str]) -> bool:
    return (media_type or "").lower() in ALLOWED_MEDIA_TYPES


def missing_file_error() -> ValidationError:
    return ValidationError(MISSING_FILE_MESSAGE, ValidationError.MISSING_FILE)


def validate_upload(filename: Optional[str], media_type: Optional[str], size: Optional[int]) -> None:
    """Raise ValidationError when the file is of a disallowed type or too large.

    Type is checked before size, so a file breaking both rules is reported as unsupported.
    """
    if not is_allowed_media_type(media_type):
        raise ValidationError(UNSUPPORTED_TYPE_MESSAGE, ValidationError.UNSUPPORTED_TYPE, filename=filename)
    if size is not None and size > MAX_FILE_SIZE_BYTES:
        raise ValidationError(FILE_TOO_LARGE_MESSAGE, ValidationError.FILE_TOO_LARGE, filename=filename)
