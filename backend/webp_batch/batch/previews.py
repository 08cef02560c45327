"""Preview handles: revocable references to a source file's bytes, owned by one job item."""
import logging
import uuid
from typing import Optional

from webp_batch.batch.models import SourceFile

logger = logging.getLogger("webp_batch.previews")

HANDLE_PREFIX = "preview:"


class PreviewRegistry:
    """Hands out preview handles and tracks which ones are still live.

    Every acquire must be paired with exactly one release; releasing a handle twice
    or releasing one this registry never issued raises KeyError.
    """

    def __init__(self):
        self._live: dict[str, SourceFile] = {}
        self.acquired = 0
        self.released = 0

    def acquire(self, source: SourceFile) -> str:
        handle = f"{HANDLE_PREFIX}{uuid.uuid4().hex}"
        self._live[handle] = source
        self.acquired += 1
        return handle

    def release(self, handle: str) -> None:
        try:
            del self._live[handle]
        except KeyError:
            logger.error("Release of unknown or already released preview %s", handle)
            raise
        self.released += 1

    def resolve(self, handle: str) -> Optional[SourceFile]:
        return self._live.get(handle)

    @property
    def live_handles(self) -> list[str]:
        return list(self._live)

    def __len__(self) -> int:
        return len(self._live)
