"""Normalization of parsed estimates into canonical fragments.

Every function here is total: missing strings become ``""``, missing numbers
become zero, and nothing raises for incomplete input.
"""

import time
from datetime import datetime
from typing import List, Optional, Tuple

from ..models.parsed import ParsedCustomer, ParsedDocument, ParsedVehicle
from ..models.schemas import DamageLine, FinancialSummary, JobSeed, NormalizedCustomer, NormalizedVehicle
from .financials import compute_totals


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _amount(value: Optional[float]) -> float:
    return float(value) if value else 0.0


def split_full_name(full_name: str) -> Tuple[str, str]:
    """First whitespace token is the first name, the remainder the last name."""
    tokens = full_name.split()
    if not tokens:
        return "", ""
    return tokens[0], " ".join(tokens[1:])


def normalize_customer(customer: ParsedCustomer, insurance_company: Optional[str] = None) -> NormalizedCustomer:
    first_name = _clean(customer.first_name)
    last_name = _clean(customer.last_name)
    if not first_name and not last_name:
        first_name, last_name = split_full_name(_clean(customer.name))

    full_name = _clean(customer.name) or " ".join(part for part in (first_name, last_name) if part)

    return NormalizedCustomer(
        first_name=first_name,
        last_name=last_name,
        full_name=full_name,
        phone=_clean(customer.phone or customer.cell_phone or customer.home_phone or customer.work_phone),
        email=_clean(customer.email),
        address=_clean(customer.address),
        city=_clean(customer.city),
        state=_clean(customer.state),
        zip=_clean(customer.zip),
        insurance=_clean(customer.insurance or insurance_company),
    )


def normalize_vehicle(vehicle: ParsedVehicle) -> NormalizedVehicle:
    year = vehicle.year if vehicle.year and vehicle.year > 0 else None
    return NormalizedVehicle(
        year=year,
        make=_clean(vehicle.make),
        model=_clean(vehicle.model),
        vin=_clean(vehicle.vin).replace(" ", "").upper(),
        license=_clean(vehicle.license),
        mileage=max(int(vehicle.mileage or 0), 0),
        color=_clean(vehicle.color),
        engine=_clean(vehicle.engine),
        transmission=_clean(vehicle.transmission),
    )


def build_damage_lines(document: ParsedDocument) -> List[DamageLine]:
    """
    Flatten parsed parts and labor into damage lines.

    Line numbers default to position, with labor numbered after the parts.
    Extended price is quantity x unit price for parts and hours x rate for
    labor unless the source supplied a non-zero extended value.
    """
    lines: List[DamageLine] = []

    for position, part in enumerate(document.parts, start=1):
        quantity = part.quantity or 1.0
        unit_price = _amount(part.unit_price)
        extended = part.extended_price or round(quantity * unit_price, 2)
        lines.append(DamageLine(
            id=f"part-{position}",
            line_number=part.line_number or position,
            type="part",
            category="Parts",
            description=_clean(part.description),
            part_number=_clean(part.part_number),
            quantity=quantity,
            unit_price=unit_price,
            extended_price=extended,
        ))

    parts_count = len(document.parts)
    for position, labor in enumerate(document.labor, start=1):
        hours = _amount(labor.hours)
        rate = _amount(labor.rate)
        extended = labor.extended_price or round(hours * rate, 2)
        lines.append(DamageLine(
            id=f"labor-{position}",
            line_number=labor.line_number or parts_count + position,
            type="labor",
            category="Labor",
            description=_clean(labor.description or labor.operation),
            operation=_clean(labor.operation),
            hours=hours,
            rate=rate,
            extended_price=extended,
        ))

    return lines


def build_job_seed(document: ParsedDocument, lines: List[DamageLine], totals: FinancialSummary) -> JobSeed:
    estimate = document.estimate
    claim = document.claim
    estimate_number = _clean(estimate.estimate_number)
    ro_number = _clean(estimate.ro_number or estimate.shop_ro_number)
    job_number = estimate_number or ro_number or f"JOB-{int(time.time() * 1000)}"

    deductible = claim.deductible if claim.deductible is not None else document.financial.deductible

    return JobSeed(
        job_number=job_number,
        estimate_number=estimate_number or job_number,
        ro_number=ro_number,
        claim_number=_clean(claim.claim_number or document.customer.claim_number),
        insurance_company=_clean(claim.insurance_company or document.customer.insurance),
        deductible=_amount(deductible),
        total_amount=totals.grand_total,
        parts_count=len(document.parts),
        labor_count=len(document.labor),
        line_items_count=len(lines),
        created_at=datetime.utcnow().isoformat(),
    )


def normalize(
    document: ParsedDocument,
    lines: Optional[List[DamageLine]] = None,
    totals: Optional[FinancialSummary] = None,
) -> Tuple[NormalizedCustomer, NormalizedVehicle, List[DamageLine], JobSeed]:
    """
    Turn a ParsedDocument into customer, vehicle, damage lines and job seed.

    Callers that already built the damage lines or totals pass them in so
    they are not derived twice.
    """
    if lines is None:
        lines = build_damage_lines(document)
    if totals is None:
        totals = compute_totals(document, lines)
    customer = normalize_customer(document.customer, document.claim.insurance_company)
    vehicle = normalize_vehicle(document.vehicle)
    return customer, vehicle, lines, build_job_seed(document, lines, totals)
