"""In-process ledger of estimate import attempts"""

import calendar
import math
import threading
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from ..models.schemas import (
    FileType,
    ImportPage,
    ImportRecord,
    ImportResult,
    ImportStatistics,
    Pagination,
)
from ..utils.exceptions import DuplicateImportError
from ..utils.logging import logger

TERMINAL_STATUSES = {"completed", "failed"}
PERIODS = ("day", "week", "month", "year")
GROUPINGS = ("day", "week", "month")


def _months_ago(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_start(period: str, now: datetime) -> datetime:
    if period == "day":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return _months_ago(now, 1)
    if period == "year":
        return _months_ago(now, 12)
    raise ValueError(f"Unsupported statistics period: {period}")


def group_key(moment: datetime, group_by: str) -> str:
    if group_by == "day":
        return moment.strftime("%Y-%m-%d")
    if group_by == "week":
        iso_year, iso_week, _ = moment.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if group_by == "month":
        return moment.strftime("%Y-%m")
    raise ValueError(f"Unsupported statistics grouping: {group_by}")


class ImportLedger:
    """
    Thread-safe record of every ingestion attempt, keyed by import id.

    Records move from ``processing`` to ``completed`` or ``failed`` and never
    leave a terminal status. Reads hand out copies, so callers cannot mutate
    ledger state.
    """

    def __init__(self) -> None:
        self._records: Dict[str, ImportRecord] = {}
        self._lock = threading.Lock()

    @staticmethod
    def new_import_id() -> str:
        return uuid.uuid4().hex

    def record(self, record: ImportRecord) -> ImportRecord:
        """
        Insert a record as-is under its import id.

        An id that is already in the ledger is rejected, so a terminal record
        can never be replaced by one in another status.
        """
        with self._lock:
            existing = self._records.get(record.import_id)
            if existing is not None:
                raise DuplicateImportError(
                    f"Import id already recorded: {record.import_id} ({existing.status})"
                )
            self._records[record.import_id] = record.model_copy(deep=True)
        return record

    def start(
        self,
        file_type: FileType,
        file_name: Optional[str] = None,
        user_id: Optional[str] = None,
        import_id: Optional[str] = None,
    ) -> ImportRecord:
        """Register a new ``processing`` record, honouring a caller-supplied id."""
        with self._lock:
            if import_id is None:
                import_id = self.new_import_id()
                while import_id in self._records:
                    import_id = self.new_import_id()
            elif import_id in self._records:
                raise DuplicateImportError(f"Import id already recorded: {import_id}")

            record = ImportRecord(
                import_id=import_id,
                file_name=file_name,
                file_type=file_type,
                status="processing",
                start_time=datetime.utcnow(),
                user_id=user_id,
            )
            self._records[import_id] = record
            return record.model_copy(deep=True)

    def complete(
        self, import_id: str, result: ImportResult, processing_time_ms: Optional[float] = None
    ) -> ImportRecord:
        return self._finish(import_id, "completed", processing_time_ms, result=result)

    def fail(self, import_id: str, error: str, processing_time_ms: Optional[float] = None) -> ImportRecord:
        return self._finish(import_id, "failed", processing_time_ms, error=error)

    def _finish(
        self,
        import_id: str,
        status: str,
        processing_time_ms: Optional[float],
        result: Optional[ImportResult] = None,
        error: Optional[str] = None,
    ) -> ImportRecord:
        with self._lock:
            record = self._records.get(import_id)
            if record is None:
                raise KeyError(import_id)
            if record.status in TERMINAL_STATUSES:
                raise ValueError(f"Import {import_id} is already {record.status}")

            end_time = datetime.utcnow()
            if processing_time_ms is None:
                processing_time_ms = (end_time - record.start_time).total_seconds() * 1000
            updated = record.model_copy(update={
                "status": status,
                "end_time": end_time,
                "processing_time_ms": processing_time_ms,
                "result": result,
                "error": error,
            })
            self._records[import_id] = updated

        logger.log_step("import_record_finalized", {
            "import_id": import_id,
            "status": status,
            "processing_time_ms": processing_time_ms,
        })
        return updated.model_copy(deep=True)

    def attach_result(self, import_id: str, result: ImportResult) -> Optional[ImportRecord]:
        """Replace the result payload of a completed record without touching its status."""
        with self._lock:
            record = self._records.get(import_id)
            if record is None:
                return None
            updated = record.model_copy(update={"result": result})
            self._records[import_id] = updated
            return updated.model_copy(deep=True)

    def get(self, import_id: str) -> Optional[ImportRecord]:
        with self._lock:
            record = self._records.get(import_id)
            return record.model_copy(deep=True) if record else None

    def delete(self, import_id: str) -> bool:
        with self._lock:
            return self._records.pop(import_id, None) is not None

    def _snapshot(self) -> List[ImportRecord]:
        with self._lock:
            return list(self._records.values())

    def list(
        self,
        status: Optional[str] = None,
        user_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> ImportPage:
        """Filtered page of records, newest first."""
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be positive")

        records = self._snapshot()
        if status:
            records = [record for record in records if record.status == status]
        if user_id:
            records = [record for record in records if record.user_id == user_id]
        records.sort(key=lambda record: record.start_time, reverse=True)

        total = len(records)
        total_pages = math.ceil(total / page_size)
        start = (page - 1) * page_size
        selected = [record.model_copy(deep=True) for record in records[start:start + page_size]]

        return ImportPage(
            imports=selected,
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_items=total,
                items_per_page=page_size,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
        )

    def statistics(
        self, period: str = "month", group_by: str = "day", now: Optional[datetime] = None
    ) -> ImportStatistics:
        """Aggregate counts and timings for imports started within ``period``."""
        if group_by not in GROUPINGS:
            raise ValueError(f"Unsupported statistics grouping: {group_by}")
        now = now or datetime.utcnow()
        since = period_start(period, now)

        records = [record for record in self._snapshot() if record.start_time >= since]
        completed = [record for record in records if record.status == "completed"]
        total_time = sum(record.processing_time_ms or 0.0 for record in completed)

        file_types: Dict[str, int] = {}
        buckets: Dict[str, Dict[str, int]] = {}
        for record in records:
            file_types[record.file_type] = file_types.get(record.file_type, 0) + 1
            bucket = buckets.setdefault(
                group_key(record.start_time, group_by),
                {"total": 0, "successful": 0, "failed": 0},
            )
            bucket["total"] += 1
            if record.status == "completed":
                bucket["successful"] += 1
            elif record.status == "failed":
                bucket["failed"] += 1

        return ImportStatistics(
            period=period,
            group_by=group_by,
            total_imports=len(records),
            successful_imports=len(completed),
            failed_imports=sum(1 for record in records if record.status == "failed"),
            avg_processing_time_ms=total_time / len(completed) if completed else 0.0,
            total_processing_time_ms=total_time,
            file_types=file_types,
            breakdown=[{"period": key, **counts} for key, counts in sorted(buckets.items())],
        )

    def purge_older_than(self, days: int, now: Optional[datetime] = None) -> int:
        """Remove records started more than ``days`` ago; returns how many went."""
        if days < 0:
            raise ValueError("days must not be negative")
        cutoff = (now or datetime.utcnow()) - timedelta(days=days)
        with self._lock:
            expired = [key for key, record in self._records.items() if record.start_time < cutoff]
            for key in expired:
                del self._records[key]

        logger.log_step("import_records_purged", {"days": days, "removed": len(expired)})
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
