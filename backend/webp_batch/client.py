"""Async client for the conversion endpoint."""
import logging
import re
from typing import Optional
from urllib.parse import unquote

import httpx

from webp_batch.batch.models import SourceFile
from webp_batch.config import CONVERTER_URL, OUTPUT_MEDIA_TYPE, REQUEST_TIMEOUT
from webp_batch.conversion.models import ConvertedImage
from webp_batch.errors import ConversionError
from webp_batch.filenames import derive_output_filename

logger = logging.getLogger("webp_batch.client")

CONVERT_PATH = "/api/convert-to-webp"
DEFAULT_FAILURE_MESSAGE = "Conversion failed"

_FILENAME_STAR_RE = re.compile(r"filename\*\s*=\s*UTF-8'[^']*'([^;]+)", re.I)
_FILENAME_RE = re.compile(r"filename\s*=\s*([^;]+)", re.I)


def _filename_from_disposition(value: Optional[str]) -> Optional[str]:
    """Prefer the percent-encoded UTF-8 name (filename*) over the plain ASCII one."""
    if not value:
        return None
    m = _FILENAME_STAR_RE.search(value)
    if m:
        return unquote(m.group(1).strip()) or None
    m = _FILENAME_RE.search(value)
    if not m:
        return None
    return m.group(1).strip().strip('"\'') or None


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return DEFAULT_FAILURE_MESSAGE


class ConverterClient:
    """Submits one file per request to the endpoint; use as an async context manager."""

    def __init__(
        self,
        base_url: str = CONVERTER_URL,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def convert(self, source: SourceFile) -> ConvertedImage:
        """Upload source and return the encoded result. Raises ConversionError on any failure."""
        client = self._ensure_client()
        files = {"file": (source.name, source.data, source.media_type or "application/octet-stream")}
        try:
            response = await client.post(CONVERT_PATH, files=files)
        except httpx.TimeoutException as e:
            logger.warning("Conversion of %s timed out after %ss", source.name, self.timeout)
            raise ConversionError("Conversion timed out", ConversionError.NETWORK_ERROR, status_code=504) from e
        except httpx.HTTPError as e:
            logger.warning("Conversion request for %s failed: %s", source.name, e)
            raise ConversionError(
                f"Could not reach converter: {e}" if str(e) else "Could not reach converter",
                ConversionError.NETWORK_ERROR,
                status_code=502,
            ) from e

        if response.status_code != 200:
            message = _error_message(response)
            logger.warning("Converter rejected %s (%s): %s", source.name, response.status_code, message)
            raise ConversionError(message, ConversionError.HTTP_ERROR, status_code=response.status_code)

        filename = _filename_from_disposition(response.headers.get("content-disposition"))
        return ConvertedImage(
            data=response.content,
            filename=filename or derive_output_filename(source.name),
            content_type=response.headers.get("content-type", OUTPUT_MEDIA_TYPE),
        )
