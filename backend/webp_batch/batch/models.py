"""In-memory batch state: source files, job items and notices."""
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from webp_batch.conversion.models import ConvertedImage
from webp_batch.filenames import derive_output_filename
from webp_batch.validation import guess_media_type


class JobStatus(str, Enum):
    PENDING = "pending"
    CONVERTING = "converting"
    COMPLETED = "completed"
    ERROR = "error"


# Allowed state changes; removal is handled by the orchestrator, not here
TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.CONVERTING},
    JobStatus.ERROR: {JobStatus.CONVERTING},
    JobStatus.CONVERTING: {JobStatus.COMPLETED, JobStatus.ERROR},
    JobStatus.COMPLETED: set(),
}

ELIGIBLE_STATUSES = (JobStatus.PENDING, JobStatus.ERROR)


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str


@dataclass(frozen=True)
class SourceFile:
    """A file as the user handed it over: name, declared media type, size and bytes."""

    name: str
    media_type: Optional[str]
    data: bytes = field(repr=False)
    size: int = -1

    def __post_init__(self):
        if self.size < 0:
            object.__setattr__(self, "size", len(self.data))

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "SourceFile":
        path = Path(path)
        return cls(name=path.name, media_type=guess_media_type(path.name), data=path.read_bytes())


def generate_item_id() -> str:
    """Millisecond timestamp plus a random suffix."""
    return f"{int(time.time() * 1000)}{uuid.uuid4().hex[:9]}"


@dataclass
class JobItem:
    """One file moving through pending -> converting -> completed | error."""

    id: str
    source: SourceFile
    preview: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    result: Optional[ConvertedImage] = None
    error: Optional[str] = None

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def output_filename(self) -> str:
        return derive_output_filename(self.source.name)

    @property
    def is_converting(self) -> bool:
        return self.status is JobStatus.CONVERTING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.source.name,
            "media_type": self.source.media_type,
            "size": self.source.size,
            "status": self.status.value,
            "progress": self.progress,
            "error": self.error,
            "output_filename": self.output_filename,
            "output_size": self.result.size if self.result else None,
        }
