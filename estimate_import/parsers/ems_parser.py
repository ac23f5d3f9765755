"""EMS (pipe-delimited text) estimate parser.

One record per line, the first field being a two-letter record type::

    HD|shop name|address|city|state|zip|phone|email
    VH|year|make|model|vin|license|mileage|color
    CO|first name|last name|phone|address|city|state|zip|email
    IN|insurance company|policy number|agent name|agent phone
    CL|claim number|loss date|deductible|adjuster name|adjuster phone
    LI|type|description|quantity|price|extended|line number|part number
    PA|part number|description|quantity|price|oem price|type|source
    LA|operation|description|hours|rate|extended|type
    TO|label|amount|label|amount|...
    TX|tax type|tax rate|tax amount
    DE|deductible amount|deductible type
    NO|note text

A backslash escapes the following character, so ``\\|`` is a literal pipe.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from ..models.parsed import ParseMetadata, ParsedDocument, ParsedLabor, ParsedPart
from ..utils.exceptions import MalformedDocumentError
from ..utils.logging import logger
from .coercion import int_value, numeric_value, text_value

EmsContent = Union[str, bytes]

TOTAL_LABELS = {
    "parts": "parts_total",
    "labor": "labor_total",
    "materials": "materials_total",
    "subtotal": "subtotal",
    "tax": "tax_total",
    "total": "grand_total",
    "grandtotal": "grand_total",
}


def split_record(line: str) -> List[str]:
    """Split an EMS line on unescaped pipes and strip each field."""
    fields: List[str] = []
    current: List[str] = []
    escaped = False

    for char in line:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == "|":
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    if current or fields:
        fields.append("".join(current).strip())
    return fields


def _field(fields: List[str], index: int) -> Optional[str]:
    if index < len(fields):
        return text_value(fields[index])
    return None


class EMSParser:
    """Parser for flat, pipe-delimited EMS estimate files."""

    file_type = "EMS"
    parser_version = "1.0.0"

    def __init__(self) -> None:
        self.record_handlers: Dict[str, Callable[[List[str], ParsedDocument], None]] = {
            "HD": self._parse_header,
            "VH": self._parse_vehicle,
            "CO": self._parse_customer,
            "IN": self._parse_insurance,
            "CL": self._parse_claim,
            "LI": self._parse_line_item,
            "PA": self._parse_part,
            "LA": self._parse_labor,
            "TO": self._parse_totals,
            "TX": self._parse_tax,
            "DE": self._parse_deductible,
            "NO": self._parse_note,
        }

    def parse(self, content: EmsContent) -> ParsedDocument:
        if isinstance(content, bytes):
            content = content.decode("utf-8-sig", errors="replace")
        if content is None or not content.strip():
            raise MalformedDocumentError("EMS content is empty", file_type=self.file_type)

        lines = [line.strip() for line in content.lstrip("\ufeff").splitlines()]
        lines = [line for line in lines if line]

        document = ParsedDocument()
        unknown_types: List[str] = []
        recognized = 0

        for line in lines:
            fields = split_record(line)
            if not fields:
                continue
            record_type = fields[0].upper()
            handler = self.record_handlers.get(record_type)
            if handler is None:
                if record_type not in unknown_types:
                    unknown_types.append(record_type)
                logger.log_warning("ems_unknown_record_type", {"record_type": record_type})
                continue
            handler(fields, document)
            recognized += 1

        if recognized == 0:
            logger.log_error("ems_no_known_records", {"total_lines": len(lines)})
            raise MalformedDocumentError(
                "EMS content contains no recognizable record types", file_type=self.file_type
            )

        document.metadata = ParseMetadata(
            source_format=self.file_type,
            parser_version=self.parser_version,
            parsed_at=datetime.utcnow().isoformat(),
            total_lines=len(lines),
            unknown_tags=unknown_types,
        )

        logger.log_step("ems_parse_completed", {
            "total_lines": len(lines),
            "parts_count": len(document.parts),
            "labor_count": len(document.labor),
            "unknown_record_types": unknown_types,
        })
        return document

    def _parse_header(self, fields: List[str], document: ParsedDocument) -> None:
        estimate = document.estimate
        estimate.shop_name = _field(fields, 1)
        estimate.shop_address = _field(fields, 2)
        estimate.shop_city = _field(fields, 3)
        estimate.shop_state = _field(fields, 4)
        estimate.shop_zip = _field(fields, 5)
        estimate.shop_phone = _field(fields, 6)
        estimate.shop_email = _field(fields, 7)

    def _parse_vehicle(self, fields: List[str], document: ParsedDocument) -> None:
        vehicle = document.vehicle
        vehicle.year = int_value(_field(fields, 1))
        vehicle.make = _field(fields, 2)
        vehicle.model = _field(fields, 3)
        vehicle.vin = _field(fields, 4)
        vehicle.license = _field(fields, 5)
        vehicle.mileage = int_value(_field(fields, 6))
        vehicle.color = _field(fields, 7)

    def _parse_customer(self, fields: List[str], document: ParsedDocument) -> None:
        customer = document.customer
        customer.first_name = _field(fields, 1)
        customer.last_name = _field(fields, 2)
        customer.name = text_value(f"{customer.first_name or ''} {customer.last_name or ''}")
        customer.phone = _field(fields, 3)
        customer.address = _field(fields, 4)
        customer.city = _field(fields, 5)
        customer.state = _field(fields, 6)
        customer.zip = _field(fields, 7)
        customer.email = _field(fields, 8)

    def _parse_insurance(self, fields: List[str], document: ParsedDocument) -> None:
        company = _field(fields, 1)
        document.claim.insurance_company = company
        document.customer.insurance = company
        document.claim.policy_number = _field(fields, 2)
        document.customer.policy_number = document.claim.policy_number
        document.claim.agent_name = _field(fields, 3)
        document.claim.agent_phone = _field(fields, 4)

    def _parse_claim(self, fields: List[str], document: ParsedDocument) -> None:
        claim = document.claim
        claim.claim_number = _field(fields, 1)
        document.customer.claim_number = claim.claim_number
        claim.loss_date = _field(fields, 2)
        claim.deductible = numeric_value(_field(fields, 3))
        claim.adjuster_name = _field(fields, 4)
        claim.adjuster_phone = _field(fields, 5)

    def _parse_line_item(self, fields: List[str], document: ParsedDocument) -> None:
        if len(fields) < 3:
            return
        line_type = (_field(fields, 1) or "PART").upper()
        description = _field(fields, 2)
        quantity = numeric_value(_field(fields, 3))
        price = numeric_value(_field(fields, 4))
        extended = numeric_value(_field(fields, 5))
        line_number = int_value(_field(fields, 6))

        if "LABOR" in line_type:
            document.labor.append(ParsedLabor(
                line_number=line_number,
                description=description,
                labor_type=line_type,
                hours=quantity,
                rate=price,
                extended_price=extended,
            ))
        elif "PART" in line_type or "MATERIAL" in line_type:
            document.parts.append(ParsedPart(
                line_number=line_number,
                description=description,
                part_number=_field(fields, 7),
                quantity=quantity,
                unit_price=price,
                extended_price=extended,
                part_type=line_type,
                is_material="MATERIAL" in line_type,
            ))
        else:
            logger.log_warning("ems_uncategorized_line_item", {"type": line_type, "description": description})

    def _parse_part(self, fields: List[str], document: ParsedDocument) -> None:
        if len(fields) < 3:
            return
        document.parts.append(ParsedPart(
            part_number=_field(fields, 1),
            description=_field(fields, 2),
            quantity=numeric_value(_field(fields, 3)),
            unit_price=numeric_value(_field(fields, 4)),
            oem_price=numeric_value(_field(fields, 5)),
            part_type=_field(fields, 6) or "NEW",
            source=_field(fields, 7) or "OEM",
        ))

    def _parse_labor(self, fields: List[str], document: ParsedDocument) -> None:
        if len(fields) < 3:
            return
        document.labor.append(ParsedLabor(
            operation=_field(fields, 1),
            description=_field(fields, 2),
            hours=numeric_value(_field(fields, 3)),
            rate=numeric_value(_field(fields, 4)),
            extended_price=numeric_value(_field(fields, 5)),
            labor_type=_field(fields, 6) or "BODY",
        ))

    def _parse_totals(self, fields: List[str], document: ParsedDocument) -> None:
        # Label/amount pairs; unknown labels are skipped
        for index in range(1, len(fields) - 1, 2):
            label = (fields[index] or "").lower().replace(" ", "").replace("_", "")
            attribute = TOTAL_LABELS.get(label)
            if attribute:
                setattr(document.financial, attribute, numeric_value(fields[index + 1]))

    def _parse_tax(self, fields: List[str], document: ParsedDocument) -> None:
        amount = numeric_value(_field(fields, 3))
        if amount is None:
            return
        document.financial.tax_total = (document.financial.tax_total or 0.0) + amount

    def _parse_deductible(self, fields: List[str], document: ParsedDocument) -> None:
        amount = numeric_value(_field(fields, 1))
        document.financial.deductible = amount
        if document.claim.deductible is None:
            document.claim.deductible = amount
        deductible_type = _field(fields, 2)
        if deductible_type:
            document.claim.deductible_type = deductible_type

    def _parse_note(self, fields: List[str], document: ParsedDocument) -> None:
        note = _field(fields, 1)
        if note:
            document.notes.append(note)


ems_parser = EMSParser()
