"""Pytest fixtures for the WebP batch converter tests."""

import asyncio
import io
import os
from typing import Callable, Optional

import pytest
from PIL import Image

# Set test environment variables BEFORE any imports
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from webp_batch.batch import BatchOrchestrator, MemorySink, PreviewRegistry, SourceFile  # noqa: E402
from webp_batch.conversion.models import ConvertedImage  # noqa: E402
from webp_batch.errors import ConversionError  # noqa: E402
from webp_batch.filenames import derive_output_filename  # noqa: E402


def make_image_bytes(fmt: str = "JPEG", size=(8, 8), mode: str = "RGB", color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format=fmt)
    return buf.getvalue()


def make_source(name: str = "photo.jpg", media_type: Optional[str] = "image/jpeg", data: Optional[bytes] = None, size: int = -1) -> SourceFile:
    return SourceFile(name=name, media_type=media_type, data=data if data is not None else b"raw-" + name.encode(), size=size)


class FakeConverter:
    """Stands in for ConverterClient: fails for configured names, tracks calls and overlap."""

    def __init__(self, fail: Optional[dict] = None, delay: float = 0.0):
        self.fail = dict(fail or {})
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.before_return: Optional[Callable] = None

    async def convert(self, source: SourceFile) -> ConvertedImage:
        self.calls.append(source.name)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if self.before_return is not None:
                await self.before_return(source)
            failure = self.fail.get(source.name)
            if isinstance(failure, BaseException):
                raise failure
            if failure:
                raise ConversionError(failure)
            return ConvertedImage(data=b"webp:" + source.data, filename=derive_output_filename(source.name))
        finally:
            self.in_flight -= 1


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes("JPEG")


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG", mode="RGBA", color=(0, 120, 255, 128))


@pytest.fixture
def converter():
    return FakeConverter()


@pytest.fixture
def previews():
    return PreviewRegistry()


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def notices():
    return []


@pytest.fixture
def orchestrator(converter, previews, sink, notices):
    orch = BatchOrchestrator(converter, previews=previews, sink=sink, progress_tick=0.005)
    orch.on_notice(notices.append)
    return orch


@pytest.fixture
def clean_db():
    from webp_batch import db

    db.clear_conversions()
    yield db
    db.clear_conversions()
