from .models import JobItem, JobStatus, Notice, NoticeLevel, SourceFile
from .orchestrator import BatchOrchestrator
from .previews import PreviewRegistry
from .sinks import DirectorySink, MemorySink

__all__ = [
    "BatchOrchestrator",
    "DirectorySink",
    "JobItem",
    "JobStatus",
    "MemorySink",
    "Notice",
    "NoticeLevel",
    "PreviewRegistry",
    "SourceFile",
]
