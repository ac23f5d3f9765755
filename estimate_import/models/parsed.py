"""Intermediate parse tree shared by the BMS and EMS parsers.

Every field is optional: parsers only set what the source document actually
carried, and leave everything else as ``None``. Defaults are applied later by
the normalizer.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ParsedCustomer(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    home_phone: Optional[str] = None
    work_phone: Optional[str] = None
    cell_phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None
    insurance: Optional[str] = None
    claim_number: Optional[str] = None
    policy_number: Optional[str] = None


class ParsedVehicle(BaseModel):
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    trim: Optional[str] = None
    vin: Optional[str] = None
    license: Optional[str] = None
    mileage: Optional[int] = None
    color: Optional[str] = None
    engine: Optional[str] = None
    transmission: Optional[str] = None
    drivable: Optional[bool] = None
    shop_ro_number: Optional[str] = None


class ParsedEstimate(BaseModel):
    estimate_number: Optional[str] = None
    ro_number: Optional[str] = None
    shop_ro_number: Optional[str] = None
    date: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None
    currency: Optional[str] = None
    estimating_system: Optional[str] = None
    system_version: Optional[str] = None
    shop_name: Optional[str] = None
    shop_address: Optional[str] = None
    shop_city: Optional[str] = None
    shop_state: Optional[str] = None
    shop_zip: Optional[str] = None
    shop_phone: Optional[str] = None
    shop_email: Optional[str] = None
    estimator_name: Optional[str] = None


class ParsedClaim(BaseModel):
    claim_number: Optional[str] = None
    policy_number: Optional[str] = None
    loss_date: Optional[str] = None
    deductible: Optional[float] = None
    deductible_type: Optional[str] = None
    insurance_company: Optional[str] = None
    agent_name: Optional[str] = None
    agent_phone: Optional[str] = None
    adjuster_name: Optional[str] = None
    adjuster_phone: Optional[str] = None
    adjuster_email: Optional[str] = None


class ParsedPart(BaseModel):
    line_number: Optional[int] = None
    description: Optional[str] = None
    part_number: Optional[str] = None
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    extended_price: Optional[float] = None
    oem_price: Optional[float] = None
    part_type: Optional[str] = None
    source: Optional[str] = None
    is_material: bool = False


class ParsedLabor(BaseModel):
    line_number: Optional[int] = None
    operation: Optional[str] = None
    description: Optional[str] = None
    labor_type: Optional[str] = None
    hours: Optional[float] = None
    rate: Optional[float] = None
    extended_price: Optional[float] = None


class ParsedFinancial(BaseModel):
    parts_total: Optional[float] = None
    labor_total: Optional[float] = None
    materials_total: Optional[float] = None
    subtotal: Optional[float] = None
    tax_total: Optional[float] = None
    grand_total: Optional[float] = None
    deductible: Optional[float] = None


class SpecialRequirements(BaseModel):
    adas_calibration: bool = False
    post_scan: bool = False
    four_wheel_alignment: bool = False


class ParseMetadata(BaseModel):
    source_format: str
    parser_version: str
    parsed_at: str
    estimate_type: Optional[str] = None
    total_lines: Optional[int] = None
    unknown_tags: List[str] = Field(default_factory=list)


class ParsedDocument(BaseModel):
    """Loosely-populated parse tree produced once per ingestion call."""
    customer: ParsedCustomer = Field(default_factory=ParsedCustomer)
    vehicle: ParsedVehicle = Field(default_factory=ParsedVehicle)
    estimate: ParsedEstimate = Field(default_factory=ParsedEstimate)
    claim: ParsedClaim = Field(default_factory=ParsedClaim)
    parts: List[ParsedPart] = Field(default_factory=list)
    labor: List[ParsedLabor] = Field(default_factory=list)
    financial: ParsedFinancial = Field(default_factory=ParsedFinancial)
    special_requirements: SpecialRequirements = Field(default_factory=SpecialRequirements)
    notes: List[str] = Field(default_factory=list)
    metadata: Optional[ParseMetadata] = None
