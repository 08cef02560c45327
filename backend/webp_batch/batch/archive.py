"""Zip packaging of completed results."""
import io
import logging
import time
import zipfile
from typing import Iterable, Optional

from webp_batch.filenames import unique_names

logger = logging.getLogger("webp_batch.archive")


def archive_filename(now: Optional[float] = None) -> str:
    return f"converted-images-{int((now if now is not None else time.time()) * 1000)}.zip"


def build_archive(entries: Iterable[tuple[str, bytes]]) -> bytes:
    """Zip (filename, data) entries into memory. Repeated names get -1, -2 ... suffixes."""
    entries = list(entries)
    names = unique_names([name for name, _ in entries])
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for arcname, (_, data) in zip(names, entries):
            zf.writestr(arcname, data)
    logger.info("Created zip with %s entries (%s bytes)", len(entries), buf.tell())
    return buf.getvalue()
