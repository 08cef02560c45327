"""Tests for the conversion endpoint."""

import pytest
from fastapi.testclient import TestClient

from webp_batch.config import MAX_FILE_SIZE_BYTES
from webp_batch.main import app
from webp_batch.validation import FILE_TOO_LARGE_MESSAGE, MISSING_FILE_MESSAGE, UNSUPPORTED_TYPE_MESSAGE


class TestConvertEndpoint:
    @pytest.fixture
    def client(self, clean_db):
        with TestClient(app) as client:
            yield client

    def test_convert_success(self, client, jpeg_bytes):
        response = client.post(
            "/api/convert-to-webp",
            files={"file": ("beach.photo.jpg", jpeg_bytes, "image/jpeg")},
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/webp"
        assert response.headers["content-disposition"] == 'attachment; filename="beach.webp"'
        assert int(response.headers["content-length"]) == len(response.content)
        assert response.content[8:12] == b"WEBP"

    def test_non_ascii_filename(self, client, jpeg_bytes):
        response = client.post(
            "/api/convert-to-webp",
            files={"file": ("照片.jpg", jpeg_bytes, "image/jpeg")},
        )

        assert response.status_code == 200
        assert response.headers["content-disposition"] == (
            "attachment; filename=\"__.webp\"; filename*=UTF-8''%E7%85%A7%E7%89%87.webp"
        )
        assert response.content[8:12] == b"WEBP"
        stats = client.get("/api/stats").json()
        assert (stats["conversions"], stats["failures"]) == (1, 0)

    def test_missing_file(self, client):
        response = client.post(
            "/api/convert-to-webp",
            files={"attachment": ("a.jpg", b"x", "image/jpeg")},
        )

        assert response.status_code == 400
        assert response.json() == {"error": MISSING_FILE_MESSAGE, "code": "missing_file"}

    def test_unsupported_type(self, client):
        response = client.post(
            "/api/convert-to-webp",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 415
        assert response.json() == {"error": UNSUPPORTED_TYPE_MESSAGE, "code": "unsupported_type"}

    def test_oversized_file(self, client):
        response = client.post(
            "/api/convert-to-webp",
            files={"file": ("big.png", b"\0" * (MAX_FILE_SIZE_BYTES + 1), "image/png")},
        )

        assert response.status_code == 413
        assert response.json() == {"error": FILE_TOO_LARGE_MESSAGE, "code": "file_too_large"}

    def test_encoding_failure(self, client):
        response = client.post(
            "/api/convert-to-webp",
            files={"file": ("broken.png", b"not really a png", "image/png")},
        )

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "encoding_failed"
        assert body["error"]

    def test_conversions_are_recorded(self, client, jpeg_bytes):
        client.post("/api/convert-to-webp", files={"file": ("a.jpg", jpeg_bytes, "image/jpeg")})
        client.post("/api/convert-to-webp", files={"file": ("b.txt", b"x", "text/plain")})

        stats = client.get("/api/stats").json()

        assert stats["conversions"] == 1
        assert stats["failures"] == 1
        assert stats["total_input_bytes"] == len(jpeg_bytes)
        assert stats["total_output_bytes"] > 0


class TestInfoEndpoints:
    @pytest.fixture
    def client(self):
        return TestClient(app)

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_limits(self, client):
        limits = client.get("/api/limits").json()

        assert limits["max_file_size_mb"] == 10
        assert limits["max_file_size_bytes"] == MAX_FILE_SIZE_BYTES
        assert "image/png" in limits["allowed_media_types"]
        assert limits["output_media_type"] == "image/webp"

    def test_stats_empty(self, client, clean_db):
        stats = client.get("/api/stats").json()

        assert stats["conversions"] == 0
        assert stats["compression_percent"] == 0.0
