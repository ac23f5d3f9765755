"""Estimate import routes"""

import time
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, Request, UploadFile
from pydantic import BaseModel

from ..models.schemas import (
    BatchStatus,
    DocumentValidation,
    ImportContext,
    ImportPage,
    ImportRecord,
    ImportResult,
    ImportStatistics,
)
from ..services.import_service import ImportService
from ..utils.exceptions import (
    DuplicateImportError,
    MalformedDocumentError,
    TenantScopeError,
    UnsupportedFileTypeError,
)
from ..utils.logging import logger

router = APIRouter(prefix="/api/v1", tags=["Imports"])


class ImportResponse(BaseModel):
    success: bool
    message: str
    data: ImportResult


class DeleteResponse(BaseModel):
    success: bool
    message: str


class CleanupResponse(BaseModel):
    success: bool
    removed: int
    days: int


class ValidationResponse(BaseModel):
    success: bool
    message: str
    data: DocumentValidation


class BatchCreatedResponse(BaseModel):
    success: bool
    batch_id: str
    message: str
    total_files: int
    status_url: str


def get_import_service(request: Request) -> ImportService:
    return request.app.state.import_service


@router.post("/imports/", response_model=ImportResponse)
async def upload_estimate(
    request: Request,
    file: UploadFile = File(...),
    auto_create: bool = Form(False),
    shop_id: Optional[str] = Form(None),
    user_id: Optional[str] = Form(None),
    upload_id: Optional[str] = Form(None),
    service: ImportService = Depends(get_import_service),
):
    """
    Import a BMS (.xml/.bms) or EMS (.ems/.txt) estimate file.

    With ``auto_create`` set, the extracted customer and vehicle are matched
    or created for ``shop_id`` and a job is created. Store failures come back
    as ``auto_creation_error`` with ``requires_manual_intervention`` set.
    """
    start_time = time.time()

    logger.log_step("import_request_received", {
        "method": request.method,
        "url": str(request.url),
        "client": request.client.host if request.client else "unknown",
        "filename": file.filename,
        "auto_create": auto_create
    })

    context = ImportContext(
        file_name=file.filename,
        upload_id=upload_id,
        user_id=user_id,
        shop_id=shop_id,
    )

    try:
        result = await service.process_upload(file, context, auto_create=auto_create)
    except (MalformedDocumentError, UnsupportedFileTypeError, ValueError) as exc:
        logger.log_error("import_rejected", {
            "filename": file.filename,
            "error": str(exc),
            "process_time": time.time() - start_time
        })
        raise HTTPException(status_code=400, detail=str(exc))
    except TenantScopeError as exc:
        logger.log_error("import_tenant_missing", {"filename": file.filename, "error": str(exc)})
        raise HTTPException(status_code=403, detail=str(exc))
    except DuplicateImportError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except Exception as exc:
        logger.log_error("import_failed", {
            "filename": file.filename,
            "error": str(exc),
            "process_time": time.time() - start_time
        })
        raise HTTPException(status_code=500, detail="Failed to import estimate.")

    if result.requires_manual_intervention:
        message = "Estimate imported; customer, vehicle or job creation needs manual review."
    elif result.auto_creation_success:
        message = "Estimate imported and job created."
    else:
        message = "Estimate imported successfully."

    logger.log_step("import_request_completed", {
        "import_id": result.import_id,
        "process_time": time.time() - start_time
    })

    return ImportResponse(success=True, message=message, data=result)


@router.post("/imports/validate", response_model=ValidationResponse)
async def validate_estimate(
    file: UploadFile = File(...),
    service: ImportService = Depends(get_import_service),
):
    """Parse and score an estimate file without importing it"""
    try:
        report = await service.validate_upload(file)
    except (UnsupportedFileTypeError, ValueError) as exc:
        logger.log_error("validation_rejected", {"filename": file.filename, "error": str(exc)})
        raise HTTPException(status_code=400, detail=str(exc))

    message = "Document is valid." if report.validation.is_valid else "Document has validation errors."
    return ValidationResponse(success=True, message=message, data=report)


@router.post("/imports/batch", response_model=BatchCreatedResponse, status_code=202)
async def upload_batch(
    background_tasks: BackgroundTasks,
    files: List[UploadFile] = File(...),
    auto_create: bool = Form(False),
    shop_id: Optional[str] = Form(None),
    user_id: Optional[str] = Form(None),
    validate_first: bool = Form(True),
    pause_on_error: bool = Form(False),
    service: ImportService = Depends(get_import_service),
):
    """
    Queue several estimate files for import.

    Files are processed in the background after the response is sent; poll
    ``/imports/batch-status/{batch_id}`` for per-file outcomes.
    """
    context = ImportContext(user_id=user_id, shop_id=shop_id)
    try:
        batch = await service.create_batch(
            files,
            context,
            auto_create=auto_create,
            validate_first=validate_first,
            pause_on_error=pause_on_error,
        )
    except ValueError as exc:
        logger.log_error("batch_rejected", {"file_count": len(files), "error": str(exc)})
        raise HTTPException(status_code=400, detail=str(exc))

    background_tasks.add_task(service.run_batch, batch.batch_id)

    return BatchCreatedResponse(
        success=True,
        batch_id=batch.batch_id,
        message="Batch upload started",
        total_files=batch.statistics.total_files,
        status_url=f"{router.prefix}/imports/batch-status/{batch.batch_id}",
    )


@router.get("/imports/batch-status/{batch_id}", response_model=BatchStatus)
async def batch_status(batch_id: str, service: ImportService = Depends(get_import_service)):
    batch = service.get_batch_status(batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail=f"Batch not found: {batch_id}")
    return batch


@router.get("/imports/", response_model=ImportPage)
async def list_imports(
    status: Optional[str] = Query(None, pattern="^(processing|completed|failed)$"),
    user_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    service: ImportService = Depends(get_import_service),
):
    """Import history, newest first"""
    return service.list_imports(status=status, user_id=user_id, page=page, page_size=page_size)


@router.get("/imports/statistics", response_model=ImportStatistics)
async def import_statistics(
    period: str = Query("month", pattern="^(day|week|month|year)$"),
    group_by: str = Query("day", pattern="^(day|week|month)$"),
    service: ImportService = Depends(get_import_service),
):
    return service.get_statistics(period=period, group_by=group_by)


@router.post("/imports/cleanup", response_model=CleanupResponse)
async def cleanup_imports(
    days: Optional[int] = Query(None, ge=0),
    service: ImportService = Depends(get_import_service),
):
    """Purge import records older than ``days`` (default: configured retention)"""
    removed = service.cleanup_old_imports(days)
    return CleanupResponse(
        success=True,
        removed=removed,
        days=days if days is not None else service.retention_days,
    )


@router.get("/imports/{import_id}", response_model=ImportRecord)
async def get_import(import_id: str, service: ImportService = Depends(get_import_service)):
    record = service.get_import(import_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Import not found: {import_id}")
    return record


@router.delete("/imports/{import_id}", response_model=DeleteResponse)
async def delete_import(import_id: str, service: ImportService = Depends(get_import_service)):
    if not service.delete_import(import_id):
        raise HTTPException(status_code=404, detail=f"Import not found: {import_id}")
    return DeleteResponse(success=True, message=f"Import {import_id} deleted.")


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "agent": "estimate_import_agent"
    }
