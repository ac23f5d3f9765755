"""Multi-file estimate imports tracked as batches"""

import threading
import time
import uuid
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple, Optional, Union

from ..models.schemas import (
    BatchFile,
    BatchStatus,
    DocumentValidation,
    ImportContext,
    ImportResult,
)
from ..utils.logging import logger

Content = Union[str, bytes]
ProcessFn = Callable[..., ImportResult]
ValidateFn = Callable[[Content, Optional[str]], DocumentValidation]

_FINISHED_FILE_STATES = {"completed", "failed", "skipped"}


class BatchEntry(NamedTuple):
    """A file handed to a batch; ``error`` marks a file rejected before parsing"""
    file_name: Optional[str]
    content: Optional[Content] = None
    error: Optional[str] = None


def status_message(batch: BatchStatus) -> str:
    stats = batch.statistics
    if batch.status == "created":
        return "Batch created and ready to start"
    if batch.status == "processing":
        return f"Processing {stats.processed_files}/{stats.total_files} files"
    if batch.status == "paused":
        return "Batch processing paused due to errors"
    return f"Batch completed: {stats.successful_files} successful, {stats.failed_files} failed"


class BatchProcessor:
    """
    In-process registry of batch imports.

    Files run one after another through the import callable, each under its
    own import id. With ``validate_first`` a file whose validation reports an
    error is marked failed without being imported. With ``pause_on_error``
    the first failed file pauses the batch and the remaining files are
    skipped.
    """

    def __init__(self, process: ProcessFn, validate: ValidateFn) -> None:
        self._process = process
        self._validate = validate
        self._batches: Dict[str, BatchStatus] = {}
        self._contents: Dict[str, Dict[str, Content]] = {}
        self._lock = threading.Lock()

    def create_batch(
        self,
        entries: List[BatchEntry],
        user_id: Optional[str] = None,
        shop_id: Optional[str] = None,
        auto_create: bool = False,
        validate_first: bool = True,
        pause_on_error: bool = False,
    ) -> BatchStatus:
        if not entries:
            raise ValueError("A batch needs at least one file")

        batch_id = uuid.uuid4().hex
        files = []
        contents: Dict[str, Content] = {}
        for index, entry in enumerate(entries):
            file_id = uuid.uuid4().hex
            if entry.error is not None:
                files.append(BatchFile(
                    file_id=file_id, index=index, file_name=entry.file_name, status="failed", error=entry.error
                ))
            else:
                files.append(BatchFile(file_id=file_id, index=index, file_name=entry.file_name))
                contents[file_id] = entry.content

        batch = BatchStatus(
            batch_id=batch_id,
            user_id=user_id,
            shop_id=shop_id,
            auto_create=auto_create,
            validate_first=validate_first,
            pause_on_error=pause_on_error,
            files=files,
            created_at=datetime.utcnow(),
        )
        self._refresh(batch)

        with self._lock:
            self._batches[batch_id] = batch
            self._contents[batch_id] = contents

        logger.log_step("batch_created", {
            "batch_id": batch_id,
            "total_files": len(files),
            "rejected_files": len(files) - len(contents),
            "auto_create": auto_create,
            "validate_first": validate_first,
            "pause_on_error": pause_on_error,
        })
        return batch.model_copy(deep=True)

    def run_batch(self, batch_id: str) -> BatchStatus:
        """Process every pending file of a created batch; returns the final status."""
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None:
                raise KeyError(batch_id)
            if batch.status != "created":
                raise ValueError(f"Batch {batch_id} is already {batch.status}")
            batch.status = "processing"
            batch.statistics.start_time = datetime.utcnow()
            self._refresh(batch)
            contents = self._contents.pop(batch_id, {})
            snapshot = batch.model_copy(deep=True)

        logger.log_step("batch_started", {"batch_id": batch_id, "pending_files": len(contents)})

        # Files rejected at upload already count as failures
        paused = snapshot.pause_on_error and any(file.status == "failed" for file in snapshot.files)
        for file in snapshot.files:
            if file.status != "pending":
                continue
            if paused:
                self._update_file(batch_id, file.index, status="skipped", error="Skipped after an earlier failure")
                continue
            if not self._run_file(snapshot, file, contents.pop(file.file_id)) and snapshot.pause_on_error:
                paused = True

        with self._lock:
            batch.status = "paused" if paused else "completed"
            batch.statistics.end_time = datetime.utcnow()
            self._refresh(batch)
            final = batch.model_copy(deep=True)

        logger.log_step("batch_finished", {
            "batch_id": batch_id,
            "status": final.status,
            "successful_files": final.statistics.successful_files,
            "failed_files": final.statistics.failed_files,
            "skipped_files": final.statistics.skipped_files,
            "processing_time_ms": final.statistics.processing_time_ms,
        })
        return final

    def _run_file(self, batch: BatchStatus, file: BatchFile, content: Content) -> bool:
        self._update_file(batch.batch_id, file.index, status="processing")
        started = time.perf_counter()
        changes = {}
        try:
            if batch.validate_first:
                report = self._validate(content, file.file_name)
                changes.update(file_type=report.file_type, validation=report.validation)
                if not report.validation.is_valid:
                    raise ValueError(f"Validation failed: {report.validation.errors[0]}")

            context = ImportContext(
                file_name=file.file_name,
                upload_id=file.file_id,
                user_id=batch.user_id,
                shop_id=batch.shop_id,
            )
            result = self._process(content, context, auto_create=batch.auto_create)
        except Exception as exc:
            logger.log_error("batch_file_failed", {
                "batch_id": batch.batch_id,
                "file_id": file.file_id,
                "file_name": file.file_name,
                "error_type": type(exc).__name__,
                "error": str(exc),
            })
            self._update_file(
                batch.batch_id,
                file.index,
                status="failed",
                error=str(exc),
                processing_time_ms=(time.perf_counter() - started) * 1000,
                **changes,
            )
            return False

        self._update_file(
            batch.batch_id,
            file.index,
            status="completed",
            import_id=result.import_id,
            file_type=result.metadata.source_format,
            validation=result.validation,
            auto_creation_success=result.auto_creation_success,
            processing_time_ms=(time.perf_counter() - started) * 1000,
        )
        return True

    def _update_file(self, batch_id: str, index: int, **changes) -> None:
        with self._lock:
            batch = self._batches[batch_id]
            batch.files[index] = batch.files[index].model_copy(update=changes)
            self._refresh(batch)

    @staticmethod
    def _refresh(batch: BatchStatus) -> None:
        files = batch.files
        stats = batch.statistics
        stats.total_files = len(files)
        stats.successful_files = sum(1 for file in files if file.status == "completed")
        stats.failed_files = sum(1 for file in files if file.status == "failed")
        stats.skipped_files = sum(1 for file in files if file.status == "skipped")
        stats.processed_files = sum(1 for file in files if file.status in _FINISHED_FILE_STATES)
        if stats.start_time is not None:
            end = stats.end_time or datetime.utcnow()
            stats.processing_time_ms = (end - stats.start_time).total_seconds() * 1000
        batch.progress = round(stats.processed_files * 100 / stats.total_files) if stats.total_files else 0
        batch.message = status_message(batch)

    def get(self, batch_id: str) -> Optional[BatchStatus]:
        with self._lock:
            batch = self._batches.get(batch_id)
            return batch.model_copy(deep=True) if batch else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._batches)
