"""Estimate import service models"""

from datetime import datetime
from typing import List, Optional, Dict, Any, Literal

from pydantic import BaseModel, Field

FileType = Literal["BMS", "EMS"]
ImportStatus = Literal["processing", "completed", "failed"]


class ImportContext(BaseModel):
    """Caller-supplied context for a single ingestion call"""
    file_name: Optional[str] = None
    upload_id: Optional[str] = None
    user_id: Optional[str] = None
    shop_id: Optional[str] = None


class NormalizedCustomer(BaseModel):
    """Customer fragment extracted from an estimate"""
    first_name: str = ""
    last_name: str = ""
    full_name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    insurance: str = ""


class NormalizedVehicle(BaseModel):
    """Vehicle fragment extracted from an estimate"""
    year: Optional[int] = None
    make: str = ""
    model: str = ""
    vin: str = ""
    license: str = ""
    mileage: int = 0
    color: str = ""
    engine: str = ""
    transmission: str = ""


class DamageLine(BaseModel):
    """A single part or labor entry"""
    id: str
    line_number: int
    type: Literal["part", "labor"]
    category: Literal["Parts", "Labor"]
    description: str = ""
    part_number: str = ""
    operation: str = ""
    quantity: float = 0.0
    unit_price: float = 0.0
    hours: float = 0.0
    rate: float = 0.0
    extended_price: float = 0.0


class JobSeed(BaseModel):
    """Job proposal derived from the estimate, before any store write"""
    job_number: str
    status: str = "estimate"
    estimate_number: str = ""
    ro_number: str = ""
    claim_number: str = ""
    insurance_company: str = ""
    deductible: float = 0.0
    total_amount: float = 0.0
    parts_count: int = 0
    labor_count: int = 0
    line_items_count: int = 0
    created_at: str


class FinancialSummary(BaseModel):
    parts_total: float = 0.0
    labor_total: float = 0.0
    tax_total: float = 0.0
    grand_total: float = 0.0
    parts_total_sourced: bool = False
    labor_total_sourced: bool = False
    tax_total_sourced: bool = False
    grand_total_sourced: bool = False


class DamageSummary(BaseModel):
    damage_lines: List[DamageLine] = Field(default_factory=list)
    total_lines: int = 0
    parts_total: float = 0.0
    labor_total: float = 0.0
    tax_total: float = 0.0
    total_amount: float = 0.0


class ValidationResult(BaseModel):
    """Completeness and consistency verdict for an import"""
    is_valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    score: int = Field(default=100, ge=0, le=100)


class AutoCreationError(BaseModel):
    stage: Literal["gate", "customer", "vehicle", "job"]
    message: str
    requires_manual_intervention: bool = True


class ResolvedRecord(BaseModel):
    """A store record plus whether it was matched or newly created"""
    origin: Literal["existing", "created"]
    record: Dict[str, Any]

    @property
    def id(self) -> Optional[str]:
        return self.record.get("id")


class ReconciliationOutcome(BaseModel):
    shop_id: str
    customer: Optional[ResolvedRecord] = None
    vehicle: Optional[ResolvedRecord] = None
    job: Optional[Dict[str, Any]] = None
    success: bool = False
    error: Optional[AutoCreationError] = None


class ImportMetadata(BaseModel):
    import_id: str
    processing_time_ms: float
    source_format: Optional[str] = None
    estimate_type: Optional[str] = None
    parser_version: Optional[str] = None
    parsed_at: Optional[str] = None


class ImportResult(BaseModel):
    """Structured output of a single ingestion call"""
    import_id: str
    customer: NormalizedCustomer
    vehicle: NormalizedVehicle
    job: JobSeed
    document_info: Dict[str, Any] = Field(default_factory=dict)
    claim_info: Dict[str, Any] = Field(default_factory=dict)
    damage: DamageSummary
    validation: ValidationResult
    metadata: ImportMetadata

    # Populated only on the auto-creation path
    reconciliation: Optional[ReconciliationOutcome] = None
    auto_creation_success: Optional[bool] = None
    auto_creation_error: Optional[AutoCreationError] = None
    requires_manual_intervention: bool = False


class ImportRecord(BaseModel):
    """Ledger entry for one ingestion attempt"""
    import_id: str
    file_name: Optional[str] = None
    file_type: FileType
    status: ImportStatus = "processing"
    start_time: datetime
    end_time: Optional[datetime] = None
    processing_time_ms: Optional[float] = None
    user_id: Optional[str] = None
    result: Optional[ImportResult] = None
    error: Optional[str] = None


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next: bool
    has_prev: bool


class ImportPage(BaseModel):
    imports: List[ImportRecord]
    pagination: Pagination


class ImportStatistics(BaseModel):
    period: str
    group_by: str
    total_imports: int = 0
    successful_imports: int = 0
    failed_imports: int = 0
    avg_processing_time_ms: float = 0.0
    total_processing_time_ms: float = 0.0
    file_types: Dict[str, int] = Field(default_factory=dict)
    breakdown: List[Dict[str, Any]] = Field(default_factory=list)


class DocumentValidation(BaseModel):
    """Verdict for a document that was checked but not imported"""
    file_name: Optional[str] = None
    file_type: FileType
    estimate_type: Optional[str] = None
    parsed: bool = True
    validation: ValidationResult
    totals: FinancialSummary = Field(default_factory=FinancialSummary)
    total_lines: int = 0


BatchState = Literal["created", "processing", "paused", "completed"]
BatchFileState = Literal["pending", "processing", "completed", "failed", "skipped"]


class BatchFile(BaseModel):
    """One file of a batch import; ``file_id`` doubles as its import id"""
    file_id: str
    index: int
    file_name: Optional[str] = None
    file_type: Optional[FileType] = None
    status: BatchFileState = "pending"
    import_id: Optional[str] = None
    processing_time_ms: Optional[float] = None
    validation: Optional[ValidationResult] = None
    auto_creation_success: Optional[bool] = None
    error: Optional[str] = None


class BatchStatistics(BaseModel):
    total_files: int = 0
    processed_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    skipped_files: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    processing_time_ms: float = 0.0


class BatchStatus(BaseModel):
    batch_id: str
    status: BatchState = "created"
    progress: int = Field(default=0, ge=0, le=100)
    user_id: Optional[str] = None
    shop_id: Optional[str] = None
    auto_create: bool = False
    validate_first: bool = True
    pause_on_error: bool = False
    statistics: BatchStatistics = Field(default_factory=BatchStatistics)
    files: List[BatchFile] = Field(default_factory=list)
    created_at: datetime
    message: str = ""
