"""Tests for preview handles, download sinks and archive packaging."""

import io
import zipfile

import pytest

from conftest import make_source
from webp_batch.batch import DirectorySink, MemorySink, PreviewRegistry
from webp_batch.batch.archive import archive_filename, build_archive
from webp_batch.batch.models import SourceFile


class TestPreviewRegistry:
    def test_acquire_and_release(self):
        registry = PreviewRegistry()
        source = make_source()

        handle = registry.acquire(source)

        assert handle.startswith("preview:")
        assert registry.resolve(handle) is source
        registry.release(handle)
        assert registry.resolve(handle) is None
        assert len(registry) == 0
        assert (registry.acquired, registry.released) == (1, 1)

    def test_unknown_handle(self):
        with pytest.raises(KeyError):
            PreviewRegistry().release("preview:unknown")


class TestSinks:
    def test_directory_sink_does_not_overwrite(self, tmp_path):
        sink = DirectorySink(tmp_path / "out")

        first = sink.save("a.webp", b"1")
        second = sink.save("a.webp", b"2")

        assert first.name == "a.webp"
        assert second.name == "a (1).webp"
        assert first.read_bytes() == b"1"
        assert second.read_bytes() == b"2"

    def test_directory_sink_strips_directories(self, tmp_path):
        path = DirectorySink(tmp_path).save("../escape.webp", b"x")

        assert path.parent == tmp_path

    def test_memory_sink(self):
        sink = MemorySink()

        assert sink.save("a.webp", b"x") == "a.webp"
        assert sink.saved == [("a.webp", b"x")]


class TestArchive:
    def test_entries_and_content(self):
        data = build_archive([("a.webp", b"aaa"), ("b.webp", b"bbb")])

        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert zf.namelist() == ["a.webp", "b.webp"]
            assert zf.read("b.webp") == b"bbb"

    def test_archive_filename(self):
        assert archive_filename(1700000000.5) == "converted-images-1700000000500.zip"


def test_source_file_from_path(tmp_path):
    path = tmp_path / "Scan.TIF"
    path.write_bytes(b"1234")

    source = SourceFile.from_path(path)

    assert source.name == "Scan.TIF"
    assert source.media_type == "image/tiff"
    assert source.size == 4
    assert source.data == b"1234"
