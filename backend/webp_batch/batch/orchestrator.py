"""Batch orchestrator: tracks job items and drives them one at a time through the converter."""
import asyncio
import contextlib
import logging
from typing import Callable, Iterable, Optional

from webp_batch.batch import archive
from webp_batch.batch.models import (
    ELIGIBLE_STATUSES,
    TRANSITIONS,
    JobItem,
    JobStatus,
    Notice,
    NoticeLevel,
    SourceFile,
    generate_item_id,
)
from webp_batch.batch.previews import PreviewRegistry
from webp_batch.batch.sinks import DirectorySink
from webp_batch.config import PROGRESS_CEILING, PROGRESS_STEP, PROGRESS_TICK_SECONDS
from webp_batch.errors import (
    ConverterError,
    OperationPreconditionError,
    PackagingError,
    StateTransitionError,
    ValidationError,
)
from webp_batch.validation import validate_upload

logger = logging.getLogger("webp_batch.orchestrator")

ChangeListener = Callable[[JobItem], None]
NoticeListener = Callable[[Notice], None]

NOTHING_TO_CONVERT = "No files waiting for conversion"
ALREADY_CONVERTING = "A batch conversion is already running"
ALL_CONVERTED = "All files converted"
NOTHING_TO_DOWNLOAD = "No converted files to download"
BATCH_DOWNLOADED = "Batch download complete"
ARCHIVE_FAILED = "Failed to create download archive"
FALLBACK_ERROR = "Conversion failed"
CANCELLED_ERROR = "Conversion cancelled"


class BatchOrchestrator:
    """Ordered batch of job items with sequential conversion and aggregate downloads.

    converter: object with ``async convert(SourceFile) -> ConvertedImage`` (see ConverterClient).
    previews: issues and revokes preview handles; each item owns exactly one until removed.
    sink: object with ``save(filename, data)`` used for single and archive downloads.

    All mutation happens on the event loop through these methods; each state change is
    applied in one step and then published to change listeners.
    """

    def __init__(
        self,
        converter,
        previews: Optional[PreviewRegistry] = None,
        sink=None,
        progress_tick: float = PROGRESS_TICK_SECONDS,
        progress_step: int = PROGRESS_STEP,
        progress_ceiling: int = PROGRESS_CEILING,
    ):
        self.converter = converter
        self.previews = previews if previews is not None else PreviewRegistry()
        self.sink = sink if sink is not None else DirectorySink()
        self.progress_tick = progress_tick
        self.progress_step = progress_step
        self.progress_ceiling = min(progress_ceiling, 99)
        self._items: dict[str, JobItem] = {}
        self.is_converting = False
        self.all_completed = False
        self.last_rejections: list[ValidationError] = []
        self.last_refusal: Optional[OperationPreconditionError] = None
        self._change_listeners: list[ChangeListener] = []
        self._notice_listeners: list[NoticeListener] = []

    # ---- queries ----

    @property
    def items(self) -> list[JobItem]:
        return list(self._items.values())

    def get(self, item_id: str) -> Optional[JobItem]:
        return self._items.get(item_id)

    def completed_items(self) -> list[JobItem]:
        return [i for i in self._items.values() if i.status is JobStatus.COMPLETED and i.result is not None]

    def counts(self) -> dict[str, int]:
        counts = {s.value: 0 for s in JobStatus}
        for item in self._items.values():
            counts[item.status.value] += 1
        return counts

    def __len__(self) -> int:
        return len(self._items)

    # ---- listeners ----

    def on_change(self, listener: ChangeListener) -> None:
        self._change_listeners.append(listener)

    def on_notice(self, listener: NoticeListener) -> None:
        self._notice_listeners.append(listener)

    def _notify(self, level: NoticeLevel, message: str) -> Notice:
        notice = Notice(level, message)
        log = logger.warning if level is NoticeLevel.ERROR else logger.info
        log("%s", message)
        for listener in self._notice_listeners:
            listener(notice)
        return notice

    def _refuse(self, message: str) -> None:
        self.last_refusal = OperationPreconditionError(message)
        self._notify(NoticeLevel.ERROR, message)

    def _publish(self, item: JobItem) -> None:
        for listener in self._change_listeners:
            listener(item)

    # ---- state machine ----

    def _transition(self, item: JobItem, target: JobStatus, *, result=None, error: Optional[str] = None) -> None:
        if target not in TRANSITIONS[item.status]:
            raise StateTransitionError(item.id, item.status.value, target.value)
        item.status = target
        if target is JobStatus.CONVERTING:
            item.progress = 0
            item.result = None
            item.error = None
        elif target is JobStatus.COMPLETED:
            item.progress = 100
            item.result = result
            item.error = None
        else:
            item.progress = 0
            item.result = None
            item.error = error or FALLBACK_ERROR
        self._publish(item)

    def _new_id(self) -> str:
        item_id = generate_item_id()
        while item_id in self._items:
            item_id = generate_item_id()
        return item_id

    # ---- operations ----

    def add_files(self, files: Iterable[SourceFile]) -> int:
        """Validate and append files as pending items. Returns how many were accepted."""
        accepted: list[JobItem] = []
        rejections: list[ValidationError] = []
        for source in files:
            try:
                validate_upload(source.name, source.media_type, source.size)
            except ValidationError as e:
                rejections.append(e)
                self._notify(NoticeLevel.ERROR, f"{source.name}: {e.message}")
                continue
            item = JobItem(id=self._new_id(), source=source)
            item.preview = self.previews.acquire(source)
            accepted.append(item)
        self.last_rejections = rejections

        if accepted:
            for item in accepted:
                self._items[item.id] = item
                self._publish(item)
            self.all_completed = False
            self._notify(NoticeLevel.SUCCESS, f"Added {len(accepted)} file(s)")
        return len(accepted)

    def _release_preview(self, item: JobItem) -> None:
        if item.preview is not None:
            handle, item.preview = item.preview, None
            self.previews.release(handle)

    def remove_item(self, item_id: str) -> bool:
        """Remove one item and release its preview. In-flight items cannot be removed."""
        item = self._items.get(item_id)
        if item is None:
            return False
        if item.is_converting:
            self._refuse(f"{item.name}: cannot remove a file while it is converting")
            return False
        self._release_preview(item)
        del self._items[item_id]
        logger.info("Removed %s (%s)", item.name, item_id)
        return True

    def clear_all(self) -> bool:
        """Release every preview, empty the batch and reset flags. Refused during a run."""
        if self.is_converting:
            self._refuse("Cannot clear the list while a batch conversion is running")
            return False
        for item in self._items.values():
            self._release_preview(item)
        count = len(self._items)
        self._items.clear()
        self.is_converting = False
        self.all_completed = False
        self.last_rejections = []
        logger.info("Cleared %s item(s)", count)
        return True

    async def _tick_progress(self, item: JobItem) -> None:
        while True:
            await asyncio.sleep(self.progress_tick)
            if item.status is not JobStatus.CONVERTING:
                return
            advanced = min(item.progress + self.progress_step, self.progress_ceiling)
            if advanced != item.progress:
                item.progress = advanced
                self._publish(item)

    async def convert_single(self, item: JobItem) -> JobItem:
        """Run one item through converting -> completed | error. Never raises for conversion failures."""
        if self._items.get(item.id) is not item or item.status not in ELIGIBLE_STATUSES:
            self._refuse(f"{item.name}: not waiting for conversion")
            return item

        self._transition(item, JobStatus.CONVERTING)
        ticker = asyncio.create_task(self._tick_progress(item))
        try:
            result = await self.converter.convert(item.source)
        except asyncio.CancelledError:
            self._transition(item, JobStatus.ERROR, error=CANCELLED_ERROR)
            logger.warning("Conversion of %s cancelled", item.name)
            raise
        except ConverterError as e:
            error = e.message
        except Exception as e:
            logger.exception("Unexpected failure converting %s: %s", item.name, e)
            error = str(e) or FALLBACK_ERROR
        else:
            error = None
        finally:
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker

        if error is None:
            self._transition(item, JobStatus.COMPLETED, result=result)
            logger.info("Converted %s -> %s", item.name, item.output_filename)
        else:
            self._transition(item, JobStatus.ERROR, error=error)
            logger.warning("Conversion of %s failed: %s", item.name, error)
        return item

    async def convert_all(self) -> bool:
        """Convert every pending or failed item, strictly one after another, in batch order."""
        if self.is_converting:
            self._refuse(ALREADY_CONVERTING)
            return False
        eligible = [i for i in self._items.values() if i.status in ELIGIBLE_STATUSES]
        if not eligible:
            self._refuse(NOTHING_TO_CONVERT)
            return False

        self.is_converting = True
        logger.info("Batch run started: %s item(s)", len(eligible))
        try:
            for item in eligible:
                # Removed since the run started
                if self._items.get(item.id) is not item:
                    continue
                await self.convert_single(item)
        finally:
            self.is_converting = False
        self.all_completed = True
        self._notify(NoticeLevel.SUCCESS, ALL_CONVERTED)
        return True

    def download_item(self, item: JobItem):
        """Save one result under its derived filename. Returns the sink's location, or None."""
        if item.result is None:
            return None
        try:
            return self.sink.save(item.output_filename, item.result.data)
        except Exception as e:
            logger.exception("Saving %s failed: %s", item.output_filename, e)
            self._notify(NoticeLevel.ERROR, f"{item.output_filename}: could not save file")
            return None

    async def download_all(self):
        """Save every completed result: directly when there is one, as a zip archive otherwise."""
        completed = self.completed_items()
        if not completed:
            self._refuse(NOTHING_TO_DOWNLOAD)
            return None
        if len(completed) == 1:
            return self.download_item(completed[0])

        entries = [(item.output_filename, item.result.data) for item in completed]
        try:
            data = await asyncio.to_thread(archive.build_archive, entries)
            location = self.sink.save(archive.archive_filename(), data)
        except Exception as e:
            error = PackagingError(ARCHIVE_FAILED)
            logger.exception("%s: %s", error.message, e)
            self._notify(NoticeLevel.ERROR, error.message)
            return None
        self._notify(NoticeLevel.SUCCESS, BATCH_DOWNLOADED)
        return location
