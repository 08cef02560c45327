"""Download sinks: where a single result or an archive ends up when the user saves it."""
import logging
from pathlib import Path
from typing import Optional, Union

from webp_batch.config import OUTPUT_DIR

logger = logging.getLogger("webp_batch.sinks")


class DirectorySink:
    """Writes downloads into a directory, never overwriting an existing file."""

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        self.directory = Path(directory) if directory else OUTPUT_DIR

    def _free_path(self, filename: str) -> Path:
        path = self.directory / Path(filename).name
        n = 1
        while path.exists():
            path = self.directory / f"{Path(filename).stem} ({n}){Path(filename).suffix}"
            n += 1
        return path

    def save(self, filename: str, data: bytes) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._free_path(filename)
        path.write_bytes(data)
        logger.info("Saved %s (%s bytes)", path, len(data))
        return path


class MemorySink:
    """Keeps saved downloads in memory, in save order."""

    def __init__(self):
        self.saved: list[tuple[str, bytes]] = []

    def save(self, filename: str, data: bytes) -> str:
        self.saved.append((filename, data))
        return filename
