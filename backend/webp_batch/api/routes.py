"""API routes for single-file WebP conversion."""
import asyncio
import logging
import time
from typing import Optional

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import Response
from sqlalchemy.exc import SQLAlchemyError

from webp_batch.config import (
    ALLOWED_MEDIA_TYPES,
    MAX_FILE_SIZE_BYTES,
    MAX_FILE_SIZE_MB,
    OUTPUT_MEDIA_TYPE,
    WEBP_EFFORT,
    WEBP_QUALITY,
)
from webp_batch.conversion.service import get_conversion_service
from webp_batch.db import get_stats, record_conversion
from webp_batch.errors import ConverterError, ValidationError
from webp_batch.filenames import content_disposition
from webp_batch.validation import FILE_TOO_LARGE_MESSAGE, missing_file_error, validate_upload

logger = logging.getLogger("webp_batch.api")
router = APIRouter(prefix="/api", tags=["converter"])

CHUNK_SIZE = 1024 * 1024


def _record(filename: Optional[str], status: str, **kwargs) -> None:
    """Log a conversion; the log is best effort and never fails the request."""
    try:
        record_conversion(filename, status, **kwargs)
    except SQLAlchemyError as e:
        logger.warning("Could not record conversion of %s: %s", filename, e)


async def _read_limited(file: UploadFile, max_bytes: int) -> bytes:
    """Read the upload in chunks, stopping as soon as it exceeds max_bytes."""
    chunks = []
    total = 0
    while chunk := await file.read(CHUNK_SIZE):
        total += len(chunk)
        if total > max_bytes:
            raise ValidationError(FILE_TOO_LARGE_MESSAGE, ValidationError.FILE_TOO_LARGE, filename=file.filename)
        chunks.append(chunk)
    return b"".join(chunks)


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/limits")
def get_limits():
    """Return upload limits for the client."""
    return {
        "allowed_media_types": list(ALLOWED_MEDIA_TYPES),
        "max_file_size_mb": MAX_FILE_SIZE_MB,
        "max_file_size_bytes": MAX_FILE_SIZE_BYTES,
        "output_media_type": OUTPUT_MEDIA_TYPE,
        "quality": WEBP_QUALITY,
        "effort": WEBP_EFFORT,
    }


@router.get("/stats")
def conversion_stats():
    """Aggregated stats over all recorded conversions."""
    return get_stats()


@router.post("/convert-to-webp")
async def convert_to_webp(file: Optional[UploadFile] = File(None)):
    """Convert one uploaded image to WebP and return the encoded bytes."""
    if file is None:
        raise missing_file_error()
    started = time.perf_counter()
    try:
        # Declared size first (cheap), then the streamed size (authoritative)
        validate_upload(file.filename, file.content_type, file.size)
        data = await _read_limited(file, MAX_FILE_SIZE_BYTES)
        svc = get_conversion_service()
        result = await asyncio.to_thread(svc.convert, data, file.filename or "")
    except ConverterError as e:
        logger.warning("Rejected %s: %s", file.filename, e.message)
        _record(
            file.filename,
            "failed",
            media_type=file.content_type,
            input_bytes=file.size,
            error=e.code,
            duration_seconds=time.perf_counter() - started,
        )
        raise
    finally:
        await file.close()

    headers = {"Content-Disposition": content_disposition(result.filename)}
    _record(
        file.filename,
        "completed",
        media_type=file.content_type,
        input_bytes=len(data),
        output_bytes=result.size,
        duration_seconds=time.perf_counter() - started,
    )
    return Response(
        content=result.data,
        media_type=result.content_type,
        headers=headers,
    )
