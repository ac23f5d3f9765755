"""Completeness and consistency scoring for imported estimates"""

from typing import List

from ..models.parsed import ParsedDocument
from ..models.schemas import (
    DamageLine,
    FinancialSummary,
    NormalizedCustomer,
    NormalizedVehicle,
    ValidationResult,
)

CUSTOMER_NAME_PENALTY = 10
VEHICLE_MAKE_MODEL_PENALTY = 10
VEHICLE_YEAR_PENALTY = 5
NON_POSITIVE_TOTAL_PENALTY = 20
NO_LINES_PENALTY = 15

VIN_LENGTH = 17


def validate(
    document: ParsedDocument,
    customer: NormalizedCustomer,
    vehicle: NormalizedVehicle,
    lines: List[DamageLine],
    totals: FinancialSummary,
) -> ValidationResult:
    """
    Score an import from 100 down by fixed penalties.

    Only a non-positive grand total is an error; every other rule is a
    warning. The score is clamped to 0..100 and nothing here raises.
    """
    errors: List[str] = []
    warnings: List[str] = []
    score = 100

    if not customer.first_name or not customer.last_name:
        warnings.append("Customer name is missing or incomplete")
        score -= CUSTOMER_NAME_PENALTY

    if not vehicle.make or not vehicle.model:
        warnings.append("Vehicle make/model is missing")
        score -= VEHICLE_MAKE_MODEL_PENALTY

    if not vehicle.year:
        warnings.append("Vehicle year is missing")
        score -= VEHICLE_YEAR_PENALTY

    if totals.grand_total <= 0:
        errors.append("Total amount must be greater than zero")
        score -= NON_POSITIVE_TOTAL_PENALTY

    if not lines:
        warnings.append("No parts or labor items found")
        score -= NO_LINES_PENALTY

    if vehicle.vin and len(vehicle.vin) != VIN_LENGTH:
        warnings.append(f"VIN '{vehicle.vin}' is {len(vehicle.vin)} characters, expected {VIN_LENGTH}")

    if document.metadata and document.metadata.unknown_tags:
        warnings.append("Ignored unrecognized sections: " + ", ".join(document.metadata.unknown_tags))

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        score=max(0, min(100, score)),
    )
