"""Tests for the Pillow-backed WebP encoding service."""

import io

import pytest
from PIL import Image

from conftest import make_image_bytes
from webp_batch.conversion import ConversionService, EncodeOptions
from webp_batch.conversion.service import ENCODING_FAILED_MESSAGE, get_conversion_service
from webp_batch.errors import ConversionError


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


class TestConversionService:
    @pytest.fixture
    def service(self):
        return ConversionService(EncodeOptions(quality=80, effort=4))

    def test_convert_jpeg(self, service, jpeg_bytes):
        result = service.convert(jpeg_bytes, "holiday.jpg")

        assert result.filename == "holiday.webp"
        assert result.content_type == "image/webp"
        assert result.data[:4] == b"RIFF" and result.data[8:12] == b"WEBP"
        assert result.size == len(result.data)
        img = _open(result.data)
        assert img.format == "WEBP"
        assert img.size == (8, 8)

    def test_transparency_is_kept(self, service, png_bytes):
        img = _open(service.convert(png_bytes, "logo.png").data)

        assert img.mode == "RGBA"

    def test_palette_with_transparency_becomes_rgba(self, service):
        buf = io.BytesIO()
        palette = Image.new("P", (4, 4), 0)
        palette.info["transparency"] = 0
        palette.save(buf, format="GIF", transparency=0)

        img = _open(service.convert(buf.getvalue(), "anim.gif").data)

        assert img.mode == "RGBA"

    @pytest.mark.parametrize("fmt,mode", [("BMP", "RGB"), ("TIFF", "CMYK"), ("PNG", "L")])
    def test_other_inputs(self, service, fmt, mode):
        color = (0, 0, 0, 0) if mode == "CMYK" else (10 if mode == "L" else (1, 2, 3))
        data = make_image_bytes(fmt, mode=mode, color=color)

        img = _open(service.convert(data, f"x.{fmt.lower()}").data)

        assert img.format == "WEBP"

    def test_garbage_raises_conversion_error(self, service):
        with pytest.raises(ConversionError) as exc_info:
            service.convert(b"definitely not an image", "broken.png")

        assert exc_info.value.code == ConversionError.ENCODING_FAILED
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == ENCODING_FAILED_MESSAGE

    def test_singleton(self):
        assert get_conversion_service() is get_conversion_service()

    def test_default_options(self):
        service = ConversionService()

        assert service.options.quality == 85
        assert service.options.effort == 4
