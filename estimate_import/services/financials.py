"""Financial aggregation for normalized estimates"""

from typing import List, Optional, Tuple

from ..models.parsed import ParsedDocument
from ..models.schemas import DamageLine, FinancialSummary


def _sourced(value: Optional[float], fallback: float) -> Tuple[float, bool]:
    """Explicit non-zero source value wins, otherwise the computed fallback."""
    if value:
        return value, True
    return fallback, False


def compute_totals(document: ParsedDocument, lines: List[DamageLine]) -> FinancialSummary:
    """
    Compute parts, labor, tax and grand totals for an estimate.

    Each aggregate is taken from the source financial block when present and
    non-zero, and otherwise summed from the damage lines. The grand total is
    the source grand total when supplied, else parts + labor + tax, and is
    clamped at zero.
    """
    source = document.financial

    parts_sum = round(sum(line.extended_price for line in lines if line.type == "part"), 2)
    labor_sum = round(sum(line.extended_price for line in lines if line.type == "labor"), 2)

    parts_total, parts_sourced = _sourced(source.parts_total, parts_sum)
    labor_total, labor_sourced = _sourced(source.labor_total, labor_sum)
    tax_total, tax_sourced = _sourced(source.tax_total, 0.0)

    if source.grand_total:
        grand_total, grand_sourced = source.grand_total, True
    else:
        grand_total, grand_sourced = parts_total + labor_total + tax_total, False

    return FinancialSummary(
        parts_total=parts_total,
        labor_total=labor_total,
        tax_total=tax_total,
        grand_total=max(grand_total, 0.0),
        parts_total_sourced=parts_sourced,
        labor_total_sourced=labor_sourced,
        tax_total_sourced=tax_sourced,
        grand_total_sourced=grand_sourced,
    )
