"""Estimate import orchestration: parse, normalize, total, validate, reconcile"""

import time
from pathlib import Path
from typing import Dict, List, Optional, Union

from fastapi import UploadFile

from ..config import Settings, settings
from ..models.parsed import ParsedDocument
from ..models.schemas import (
    AutoCreationError,
    BatchStatus,
    DamageSummary,
    DocumentValidation,
    ImportContext,
    ImportMetadata,
    ImportPage,
    ImportRecord,
    ImportResult,
    ImportStatistics,
    ValidationResult,
)
from ..parsers import PARSERS, DocumentParser, detect_file_type, normalize_file_type
from ..utils.exceptions import MalformedDocumentError
from ..utils.logging import logger
from ..utils.mongo import MongoDBManager
from .batch_processor import BatchEntry, BatchProcessor
from .financials import compute_totals
from .import_ledger import ImportLedger
from .mongo_stores import MongoCustomerStore, MongoJobStore, MongoVehicleStore
from .normalizer import build_damage_lines, normalize
from .reconciler import Reconciler
from .stores import InMemoryCustomerStore, InMemoryJobStore, InMemoryVehicleStore
from .validator import validate

Content = Union[str, bytes]


class ImportService:
    """Entry points for BMS and EMS ingestion with optional auto-creation."""

    def __init__(
        self,
        ledger: ImportLedger,
        reconciler: Reconciler,
        min_auto_create_score: int = 0,
        max_file_size_bytes: Optional[int] = None,
        parsers: Optional[Dict[str, DocumentParser]] = None,
        retention_days: Optional[int] = None,
        store_manager: Optional[MongoDBManager] = None,
        max_batch_files: Optional[int] = None,
    ) -> None:
        self.ledger = ledger
        self.reconciler = reconciler
        self.min_auto_create_score = min_auto_create_score
        self.max_file_size_bytes = max_file_size_bytes
        self.parsers = parsers or dict(PARSERS)
        self.retention_days = retention_days if retention_days is not None else settings.IMPORT_RETENTION_DAYS
        self.store_manager = store_manager
        self.allowed_extensions = {ext.lower() for ext in settings.ALLOWED_EXTENSIONS}
        self.max_batch_files = max_batch_files if max_batch_files is not None else settings.MAX_BATCH_FILES
        self.batches = BatchProcessor(self.process_with_auto_creation, self.validate_document)
        logger.log_step("import_service_initialized", {
            "formats": sorted(self.parsers),
            "allowed_extensions": sorted(self.allowed_extensions),
            "min_auto_create_score": min_auto_create_score,
            "dev_mode": reconciler.dev_mode,
        })

    def process_bms(self, content: Content, context: Optional[ImportContext] = None) -> ImportResult:
        return self._process(content, "BMS", context or ImportContext())

    def process_ems(self, content: Content, context: Optional[ImportContext] = None) -> ImportResult:
        return self._process(content, "EMS", context or ImportContext())

    def process_document(
        self,
        content: Content,
        context: Optional[ImportContext] = None,
        file_type: Optional[str] = None,
    ) -> ImportResult:
        """Process content whose format is given or detected from name and content."""
        context = context or ImportContext()
        if file_type:
            file_type = normalize_file_type(file_type)
        else:
            file_type = detect_file_type(content, context.file_name)
        return self._process(content, file_type, context)

    def process_with_auto_creation(
        self,
        content: Content,
        context: Optional[ImportContext] = None,
        auto_create: bool = True,
        file_type: Optional[str] = None,
    ) -> ImportResult:
        """
        Process a document and, when requested, reconcile it into the stores.

        A missing shop id outside development mode raises TenantScopeError
        before any store is touched. Store failures never discard the parsed
        result; they are reported through ``auto_creation_error``.
        """
        context = context or ImportContext()
        result = self.process_document(content, context, file_type)
        if not auto_create:
            return result
        return self.auto_create(result, context.shop_id)

    async def process_upload(
        self,
        upload: UploadFile,
        context: Optional[ImportContext] = None,
        auto_create: bool = False,
    ) -> ImportResult:
        """Read an uploaded file and run it through process_with_auto_creation."""
        context = context or ImportContext()
        if not context.file_name:
            context = context.model_copy(update={"file_name": upload.filename})

        content = await self.read_upload(upload, context.file_name)
        return self.process_with_auto_creation(content, context, auto_create=auto_create)

    async def read_upload(self, upload: UploadFile, file_name: Optional[str] = None) -> bytes:
        """Read an upload, enforcing the extension allow-list and size limits."""
        file_name = file_name or upload.filename
        extension = Path(file_name or "").suffix.lower().lstrip(".")
        if extension and extension not in self.allowed_extensions:
            logger.log_error("unsupported_file_extension", {
                "filename": file_name,
                "extension": extension
            })
            raise ValueError(f"Unsupported file type: {extension}")

        content = await upload.read()
        if not content:
            raise ValueError(f"Uploaded file '{file_name}' is empty")
        if self.max_file_size_bytes is not None and len(content) > self.max_file_size_bytes:
            logger.log_error("file_too_large", {
                "filename": file_name,
                "size_bytes": len(content),
                "max_bytes": self.max_file_size_bytes
            })
            raise ValueError(
                f"File '{file_name}' exceeds the maximum size of {self.max_file_size_bytes} bytes"
            )
        return content

    def validate_document(
        self,
        content: Content,
        file_name: Optional[str] = None,
        file_type: Optional[str] = None,
    ) -> DocumentValidation:
        """
        Parse, normalize, total and score a document without importing it.

        Nothing is written to the ledger or the stores. Content that cannot be
        parsed is reported as an invalid document with a score of 0 instead of
        raising.
        """
        if file_type:
            file_type = normalize_file_type(file_type)
        else:
            file_type = detect_file_type(content, file_name)

        try:
            document = self.parsers[file_type].parse(content)
        except MalformedDocumentError as exc:
            logger.log_warning("document_unparseable", {
                "file_name": file_name,
                "file_type": file_type,
                "error": str(exc),
            })
            return DocumentValidation(
                file_name=file_name,
                file_type=file_type,
                parsed=False,
                validation=ValidationResult(is_valid=False, errors=[str(exc)], score=0),
            )

        lines = build_damage_lines(document)
        totals = compute_totals(document, lines)
        customer, vehicle, lines, _ = normalize(document, lines, totals)
        validation = validate(document, customer, vehicle, lines, totals)
        logger.log_step("document_validated", {
            "file_name": file_name,
            "file_type": file_type,
            "is_valid": validation.is_valid,
            "score": validation.score,
        })
        return DocumentValidation(
            file_name=file_name,
            file_type=file_type,
            estimate_type=document.metadata.estimate_type if document.metadata else None,
            validation=validation,
            totals=totals,
            total_lines=len(lines),
        )

    async def validate_upload(self, upload: UploadFile) -> DocumentValidation:
        content = await self.read_upload(upload)
        return self.validate_document(content, upload.filename)

    async def create_batch(
        self,
        uploads: List[UploadFile],
        context: Optional[ImportContext] = None,
        auto_create: bool = False,
        validate_first: bool = True,
        pause_on_error: bool = False,
    ) -> BatchStatus:
        """
        Register a batch of uploads for later processing with run_batch.

        Uploads rejected by the extension or size checks join the batch as
        failed files instead of rejecting the whole batch.
        """
        if not uploads:
            raise ValueError("No files provided")
        if len(uploads) > self.max_batch_files:
            raise ValueError(f"A batch accepts at most {self.max_batch_files} files")

        context = context or ImportContext()
        entries = []
        for upload in uploads:
            try:
                entries.append(BatchEntry(upload.filename, await self.read_upload(upload)))
            except ValueError as exc:
                entries.append(BatchEntry(upload.filename, error=str(exc)))

        return self.batches.create_batch(
            entries,
            user_id=context.user_id,
            shop_id=context.shop_id,
            auto_create=auto_create,
            validate_first=validate_first,
            pause_on_error=pause_on_error,
        )

    def run_batch(self, batch_id: str) -> BatchStatus:
        return self.batches.run_batch(batch_id)

    def get_batch_status(self, batch_id: str) -> Optional[BatchStatus]:
        return self.batches.get(batch_id)

    def auto_create(self, result: ImportResult, shop_id: Optional[str]) -> ImportResult:
        """Reconcile an already-processed result and record the outcome on it."""
        shop_id = self.reconciler.resolve_shop_id(shop_id)

        if result.validation.score < self.min_auto_create_score:
            error = AutoCreationError(
                stage="gate",
                message=(
                    f"Validation score {result.validation.score} is below the "
                    f"auto-creation minimum of {self.min_auto_create_score}"
                ),
            )
            logger.log_warning("auto_creation_skipped", {
                "import_id": result.import_id,
                "score": result.validation.score,
                "min_score": self.min_auto_create_score,
            })
            updated = result.model_copy(update={
                "auto_creation_success": False,
                "auto_creation_error": error,
                "requires_manual_intervention": True,
            })
        else:
            outcome = self.reconciler.reconcile(
                result.customer,
                result.vehicle,
                result.job,
                shop_id,
                import_id=result.import_id,
                import_result=result,
            )
            updated = result.model_copy(update={
                "reconciliation": outcome,
                "auto_creation_success": outcome.success,
                "auto_creation_error": outcome.error,
                "requires_manual_intervention": not outcome.success,
            })

        self.ledger.attach_result(result.import_id, updated)
        return updated

    def _process(self, content: Content, file_type: str, context: ImportContext) -> ImportResult:
        parser = self.parsers[file_type]
        record = self.ledger.start(
            file_type,
            file_name=context.file_name,
            user_id=context.user_id,
            import_id=context.upload_id,
        )
        logger.log_import(record.import_id, file_type, context.file_name)

        started = time.perf_counter()
        try:
            document = parser.parse(content)
            result = self._build_result(document, record.import_id, started)
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.ledger.fail(record.import_id, str(exc), elapsed_ms)
            logger.log_error("import_failed", {
                "import_id": record.import_id,
                "file_type": file_type,
                "file_name": context.file_name,
                "error": str(exc),
            })
            raise

        self.ledger.complete(record.import_id, result, result.metadata.processing_time_ms)
        logger.log_step("import_completed", {
            "import_id": record.import_id,
            "file_type": file_type,
            "is_valid": result.validation.is_valid,
            "score": result.validation.score,
            "processing_time_ms": result.metadata.processing_time_ms,
        })
        return result

    def _build_result(self, document: ParsedDocument, import_id: str, started: float) -> ImportResult:
        lines = build_damage_lines(document)
        totals = compute_totals(document, lines)
        customer, vehicle, lines, job = normalize(document, lines, totals)
        validation = validate(document, customer, vehicle, lines, totals)
        logger.log_validation(import_id, validation.is_valid, validation.score)

        source = document.metadata
        return ImportResult(
            import_id=import_id,
            customer=customer,
            vehicle=vehicle,
            job=job,
            document_info=document.estimate.model_dump(exclude_none=True),
            claim_info=document.claim.model_dump(exclude_none=True),
            damage=DamageSummary(
                damage_lines=lines,
                total_lines=len(lines),
                parts_total=totals.parts_total,
                labor_total=totals.labor_total,
                tax_total=totals.tax_total,
                total_amount=totals.grand_total,
            ),
            validation=validation,
            metadata=ImportMetadata(
                import_id=import_id,
                processing_time_ms=(time.perf_counter() - started) * 1000,
                source_format=source.source_format if source else None,
                estimate_type=source.estimate_type if source else None,
                parser_version=source.parser_version if source else None,
                parsed_at=source.parsed_at if source else None,
            ),
        )

    # Ledger access for the HTTP layer

    def get_import(self, import_id: str) -> Optional[ImportRecord]:
        return self.ledger.get(import_id)

    def list_imports(
        self,
        status: Optional[str] = None,
        user_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> ImportPage:
        return self.ledger.list(status=status, user_id=user_id, page=page, page_size=page_size)

    def get_statistics(self, period: str = "month", group_by: str = "day") -> ImportStatistics:
        return self.ledger.statistics(period=period, group_by=group_by)

    def delete_import(self, import_id: str) -> bool:
        return self.ledger.delete(import_id)

    def cleanup_old_imports(self, days: Optional[int] = None) -> int:
        return self.ledger.purge_older_than(days if days is not None else self.retention_days)

    def close(self) -> None:
        if self.store_manager is not None:
            self.store_manager.close()


def create_import_service(app_settings: Settings = settings) -> ImportService:
    """Compose an ImportService with the stores selected by STORE_BACKEND."""
    backend = app_settings.STORE_BACKEND.lower()
    manager = None
    if backend == "mongo":
        manager = MongoDBManager(app_settings.MONGODB_URI, app_settings.DATABASE_NAME)
        customer_store = MongoCustomerStore(manager, app_settings.CUSTOMER_COLLECTION_NAME)
        vehicle_store = MongoVehicleStore(manager, app_settings.VEHICLE_COLLECTION_NAME)
        job_store = MongoJobStore(manager, app_settings.JOB_COLLECTION_NAME)
    elif backend == "memory":
        customer_store = InMemoryCustomerStore()
        vehicle_store = InMemoryVehicleStore()
        job_store = InMemoryJobStore()
    else:
        raise ValueError(f"Unsupported STORE_BACKEND: {app_settings.STORE_BACKEND}")

    reconciler = Reconciler(
        customer_store,
        vehicle_store,
        job_store,
        dev_mode=app_settings.DEV_MODE,
        dev_shop_id=app_settings.DEV_SHOP_ID,
    )
    return ImportService(
        ledger=ImportLedger(),
        reconciler=reconciler,
        min_auto_create_score=app_settings.MIN_AUTO_CREATE_SCORE,
        max_file_size_bytes=app_settings.max_file_size_bytes,
        retention_days=app_settings.IMPORT_RETENTION_DAYS,
        store_manager=manager,
        max_batch_files=app_settings.MAX_BATCH_FILES,
    )
