"""BMS (XML) estimate parser.

Handles the Mitchell/CIECA ``VehicleDamageEstimateAddRq`` dialect, the generic
upper-case ``BMS_ESTIMATE`` layout and the simple ``Estimate`` family of roots.
Tag lookups ignore namespaces, case and underscores, so ``FirstName``,
``firstName`` and ``FIRST_NAME`` all resolve to the same field.
"""

import re
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Iterable, List, Optional, Union

from ..models.parsed import (
    ParseMetadata,
    ParsedClaim,
    ParsedCustomer,
    ParsedDocument,
    ParsedEstimate,
    ParsedFinancial,
    ParsedLabor,
    ParsedPart,
    ParsedVehicle,
    SpecialRequirements,
)
from ..utils.exceptions import MalformedDocumentError
from ..utils.logging import logger
from .coercion import bool_value, first_present, format_phone, int_value, numeric_value, text_value

ROOT_DIALECTS = {
    "vehicledamageestimateaddrq": "mitchell_bms",
    "bmsestimate": "generic_bms",
    "estimate": "simple_estimate",
    "estimatedata": "estimate_data",
    "estimateinfo": "estimate_info",
}

KNOWN_SECTIONS = {
    "customer", "customerinfo", "claiminfo", "insurance", "admininfo",
    "refclaimnum", "vehicle", "vehicleinfo", "estimateinfo", "documentinfo",
    "rquid", "repairordernum", "claimnumber", "policynumber", "policynum",
    "applicationinfo", "lineitems", "damageassessment", "damagelineinfo",
    "totals", "repairtotalsinfo", "specialrequirements", "notes",
    "eventinfo", "profileinfo",
}

RO_MEMO_PATTERN = re.compile(r"RO\s*:\s*(\d+)", re.IGNORECASE)

XmlContent = Union[str, bytes]


def _key(name: str) -> str:
    return name.replace("_", "").replace("-", "").lower()


def _local(tag: str) -> str:
    if "}" in tag:
        tag = tag.split("}", 1)[1]
    if ":" in tag:
        tag = tag.split(":", 1)[1]
    return tag


def _strip_namespaces(root: ET.Element) -> None:
    for element in root.iter():
        if isinstance(element.tag, str):
            element.tag = _local(element.tag)


def _children(element: Optional[ET.Element], *names: str) -> List[ET.Element]:
    """All direct children whose tag matches any of ``names``."""
    if element is None:
        return []
    keys = {_key(name) for name in names}
    return [child for child in element if isinstance(child.tag, str) and _key(child.tag) in keys]


def _child(element: Optional[ET.Element], *names: str) -> Optional[ET.Element]:
    """First direct child matching ``names``, honouring the order of ``names``."""
    if element is None:
        return None
    for name in names:
        key = _key(name)
        for child in element:
            if isinstance(child.tag, str) and _key(child.tag) == key:
                return child
    return None


def _path(element: Optional[ET.Element], *steps: str) -> Optional[ET.Element]:
    current = element
    for step in steps:
        current = _child(current, step)
        if current is None:
            return None
    return current


def _text(element: Optional[ET.Element], *names: str) -> Optional[str]:
    return text_value(_child(element, *names))


def _has_children(element: Optional[ET.Element]) -> bool:
    return element is not None and len(element) > 0


def _join_name(first: Optional[str], last: Optional[str]) -> Optional[str]:
    return text_value(f"{first or ''} {last or ''}")


class BMSParser:
    """Parser for tag-structured BMS estimate documents."""

    file_type = "BMS"
    parser_version = "4.0"

    def parse(self, content: XmlContent) -> ParsedDocument:
        root = self._load(content)
        estimate_type = ROOT_DIALECTS.get(_key(root.tag))
        if estimate_type is None:
            logger.log_error("bms_unrecognized_root", {"root": root.tag})
            raise MalformedDocumentError(
                f"No valid estimate root found in BMS file (found <{root.tag}>)",
                file_type=self.file_type,
            )

        logger.log_step("bms_parse_started", {"estimate_type": estimate_type})

        vehicle = self._extract_vehicle(root)
        estimate = self._extract_estimate(root)
        if vehicle.shop_ro_number and not estimate.shop_ro_number:
            estimate.shop_ro_number = vehicle.shop_ro_number

        customer = self._extract_customer(root)
        parts = self._extract_parts(root)
        labor = self._extract_labor(root)

        document = ParsedDocument(
            customer=customer,
            vehicle=vehicle,
            estimate=estimate,
            claim=self._extract_claim(root, customer, estimate),
            parts=parts,
            labor=labor,
            financial=self._extract_financial(root),
            special_requirements=self._extract_special_requirements(root, parts, labor),
            notes=self._extract_notes(root),
            metadata=ParseMetadata(
                source_format=self.file_type,
                parser_version=self.parser_version,
                parsed_at=datetime.utcnow().isoformat(),
                estimate_type=estimate_type,
                total_lines=len(parts) + len(labor),
                unknown_tags=self._unknown_sections(root),
            ),
        )

        logger.log_step("bms_parse_completed", {
            "estimate_type": estimate_type,
            "parts_count": len(parts),
            "labor_count": len(labor),
        })
        return document

    def _load(self, content: XmlContent) -> ET.Element:
        if isinstance(content, bytes):
            content = content.decode("utf-8-sig", errors="replace")
        if content is None or not content.strip():
            raise MalformedDocumentError("BMS content is empty", file_type=self.file_type)

        try:
            root = ET.fromstring(content.lstrip("\ufeff").strip())
        except ET.ParseError as exc:
            logger.log_error("bms_xml_parse_failed", {"error": str(exc)})
            raise MalformedDocumentError(
                f"BMS content is not well-formed XML: {exc}",
                file_type=self.file_type,
                original_error=exc,
            ) from exc

        _strip_namespaces(root)
        return root

    # Customer

    def _extract_customer(self, root: ET.Element) -> ParsedCustomer:
        customer = ParsedCustomer()

        simple = _child(root, "Customer")
        if simple is not None:
            customer.first_name = _text(simple, "FirstName")
            customer.last_name = _text(simple, "LastName")
            customer.name = _text(simple, "Name", "FullName") or _join_name(customer.first_name, customer.last_name)
            customer.phone = _text(simple, "Phone", "PhoneNumber")
            customer.email = _text(simple, "Email")
            self._apply_flat_address(customer, simple)

        generic = _child(root, "CUSTOMER_INFO")
        if generic is not None:
            customer.first_name = _text(generic, "FIRST_NAME")
            customer.last_name = _text(generic, "LAST_NAME")
            customer.name = _join_name(customer.first_name, customer.last_name)
            customer.phone = _text(generic, "PHONE")
            customer.email = _text(generic, "EMAIL")
            self._apply_flat_address(customer, generic)

        claim_info = _child(root, "CLAIM_INFO")
        if claim_info is not None:
            customer.claim_number = _text(claim_info, "CLAIM_NUMBER")
            customer.policy_number = _text(claim_info, "POLICY_NUMBER")
            customer.insurance = _text(claim_info, "INSURANCE_COMPANY")

        insurance = _child(root, "Insurance")
        if insurance is not None:
            customer.insurance = customer.insurance or _text(insurance, "Company")
            customer.claim_number = customer.claim_number or _text(insurance, "ClaimNumber")
            customer.policy_number = customer.policy_number or _text(insurance, "PolicyNumber")

        admin = _child(root, "AdminInfo")
        owner = _path(admin, "Owner", "Party")
        if owner is not None:
            self._apply_party(customer, owner, overwrite=True)

        policy_holder = _path(admin, "PolicyHolder", "Party")
        if not customer.name and policy_holder is not None:
            self._apply_party(customer, policy_holder, overwrite=False)

        carrier = text_value(_path(admin, "InsuranceCompany", "Party", "OrgInfo", "CompanyName"))
        if carrier:
            customer.insurance = carrier

        claim_number = _text(root, "RefClaimNum")
        if claim_number is not None:
            customer.claim_number = claim_number if claim_number.upper() != "N/A" else None
        claim_number = text_value(_path(root, "ClaimInfo", "ClaimNum"))
        if not customer.claim_number and claim_number and claim_number.upper() != "N/A":
            customer.claim_number = claim_number

        return customer

    def _apply_flat_address(self, customer: ParsedCustomer, element: ET.Element) -> None:
        address = _child(element, "Address")
        if _has_children(address):
            customer.address = _text(address, "Street", "Address1")
            customer.city = _text(address, "City")
            customer.state = _text(address, "State", "StateProvince")
            customer.zip = _text(address, "Zip", "PostalCode")
        else:
            customer.address = text_value(address)
            customer.city = _text(element, "City")
            customer.state = _text(element, "State")
            customer.zip = _text(element, "Zip", "PostalCode")

    def _apply_party(self, customer: ParsedCustomer, party: ET.Element, overwrite: bool) -> None:
        """Copy name, phones, email and address from a Mitchell party block.

        With ``overwrite`` false only fields that are still empty are filled.
        """
        def assign(field: str, value: Optional[str]) -> None:
            if value is None:
                return
            if overwrite or not getattr(customer, field):
                setattr(customer, field, value)

        person_name = _path(party, "PersonInfo", "PersonName")
        if person_name is not None:
            first = _text(person_name, "FirstName")
            last = _text(person_name, "LastName")
            assign("first_name", first)
            assign("last_name", last)
            assign("name", _join_name(first, last))

        for comm in _children(_child(party, "ContactInfo"), "Communications"):
            qualifier = (_text(comm, "CommQualifier") or "").upper()
            phone = format_phone(_text(comm, "CommPhone"))
            if phone:
                if qualifier == "HP":
                    assign("home_phone", phone)
                elif qualifier == "WP":
                    assign("work_phone", phone)
                elif qualifier in ("CP", "MP"):
                    assign("cell_phone", phone)
                if not customer.phone:
                    customer.phone = phone
            elif qualifier == "EM":
                assign("email", _text(comm, "CommEmail"))

        address = _path(party, "PersonInfo", "Communications", "Address")
        if address is not None:
            line1 = _text(address, "Address1")
            line2 = _text(address, "Address2")
            assign("address", text_value(" ".join(part for part in (line1, line2) if part)))
            assign("city", _text(address, "City"))
            assign("state", _text(address, "StateProvince", "State"))
            assign("zip", _text(address, "PostalCode", "Zip"))
            assign("country", _text(address, "Country"))

    # Vehicle

    def _extract_vehicle(self, root: ET.Element) -> ParsedVehicle:
        vehicle = ParsedVehicle()

        for flat in (_child(root, "Vehicle"), _child(root, "VEHICLE_INFO")):
            if flat is None:
                continue
            vehicle.year = int_value(_text(flat, "Year"))
            vehicle.make = _text(flat, "Make")
            vehicle.model = _text(flat, "Model")
            vehicle.trim = _text(flat, "Trim")
            vehicle.vin = _text(flat, "VIN")
            vehicle.license = _text(flat, "LicensePlate", "License")
            vehicle.color = _text(flat, "Color")
            vehicle.engine = _text(flat, "EngineType", "Engine")
            vehicle.transmission = _text(flat, "Transmission")
            vehicle.mileage = int_value(_text(flat, "Mileage", "Odometer"))
            vehicle.drivable = bool_value(_text(flat, "Drivable"))

        info = _child(root, "VehicleInfo")
        if info is None:
            return vehicle

        vin = text_value(_path(info, "VINInfo", "VIN", "VINNum"))
        if vin:
            vehicle.vin = vin
        plate = text_value(_path(info, "License", "LicensePlateNum"))
        if plate:
            vehicle.license = plate

        desc = _child(info, "VehicleDesc")
        if desc is not None:
            vehicle.year = first_present(int_value(_text(desc, "ModelYear")), vehicle.year)
            vehicle.make = _text(desc, "MakeDesc") or vehicle.make
            vehicle.model = _text(desc, "ModelName") or vehicle.model
            vehicle.trim = _text(desc, "SubModelDesc", "TrimCode") or vehicle.trim
            odometer = int_value(text_value(_path(desc, "OdometerInfo", "OdometerReading")))
            if odometer is not None:
                vehicle.mileage = odometer
            memo = _text(desc, "VehicleDescMemo")
            match = RO_MEMO_PATTERN.search(memo or "")
            if match:
                vehicle.shop_ro_number = match.group(1)

        powertrain = _child(info, "Powertrain")
        if powertrain is not None:
            vehicle.engine = _text(powertrain, "EngineDesc") or vehicle.engine
            vehicle.transmission = (
                text_value(_path(powertrain, "TransmissionInfo", "TransmissionDesc")) or vehicle.transmission
            )

        drivable = bool_value(_text(info, "DrivableInd"))
        if drivable is not None:
            vehicle.drivable = drivable

        color = text_value(_path(info, "Paint", "Exterior", "Color", "ColorName"))
        if color:
            vehicle.color = color

        return vehicle

    # Estimate and claim

    @staticmethod
    def _estimate_info(root: ET.Element) -> Optional[ET.Element]:
        info = _child(root, "EstimateInfo")
        if info is None and _key(root.tag) == "estimateinfo":
            return root
        return info

    def _extract_estimate(self, root: ET.Element) -> ParsedEstimate:
        estimate = ParsedEstimate()

        info = self._estimate_info(root)
        if info is not None:
            estimate.estimate_number = _text(info, "EstimateNumber")
            estimate.date = _text(info, "EstimateDate")
            estimate.type = _text(info, "EstimateType")
            estimate.status = _text(info, "Status")

        document_info = _child(root, "DocumentInfo")
        if document_info is not None:
            estimate.estimate_number = estimate.estimate_number or _text(document_info, "DocumentID")
            estimate.date = estimate.date or _text(document_info, "CreateDateTime")
            estimate.status = estimate.status or _text(document_info, "DocumentStatus")
            estimate.type = estimate.type or _text(document_info, "DocumentType")
            estimate.currency = text_value(_path(document_info, "CurrencyInfo", "CurCode"))

        estimate.ro_number = first_present(
            _text(root, "RqUID"),
            _text(root, "RepairOrderNum"),
            _text(document_info, "RepairOrderNum"),
        )

        for app in _children(root, "ApplicationInfo"):
            if (_text(app, "ApplicationType") or "").lower() == "estimating":
                estimate.estimating_system = _text(app, "ApplicationName")
                estimate.system_version = _text(app, "ApplicationVer")

        admin = _child(root, "AdminInfo")
        facility = _path(admin, "RepairFacility", "Party")
        if facility is not None:
            org = _child(facility, "OrgInfo")
            estimate.shop_name = _text(org, "CompanyName")
            for comm in _children(org, "Communications"):
                address = _child(comm, "Address")
                if address is not None:
                    estimate.shop_address = _text(address, "Address1")
                    estimate.shop_city = _text(address, "City")
                    estimate.shop_state = _text(address, "StateProvince")
                    estimate.shop_zip = _text(address, "PostalCode")
            for comm in _children(_child(facility, "ContactInfo"), "Communications"):
                qualifier = (_text(comm, "CommQualifier") or "").upper()
                if qualifier == "WP":
                    estimate.shop_phone = format_phone(_text(comm, "CommPhone"))
                elif qualifier == "EM":
                    estimate.shop_email = _text(comm, "CommEmail")

        estimator_name = _path(admin, "Estimator", "Party", "PersonInfo", "PersonName")
        if estimator_name is not None:
            estimate.estimator_name = _join_name(
                _text(estimator_name, "FirstName"), _text(estimator_name, "LastName")
            )

        return estimate

    def _extract_claim(
        self, root: ET.Element, customer: ParsedCustomer, estimate: ParsedEstimate
    ) -> ParsedClaim:
        claim = ParsedClaim(
            claim_number=customer.claim_number,
            insurance_company=customer.insurance,
        )

        info = self._estimate_info(root)
        claim_number = first_present(
            claim.claim_number,
            _text(info, "ClaimNumber"),
            _text(root, "ClaimNumber"),
        )
        if claim_number and claim_number.upper() != "N/A":
            claim.claim_number = claim_number
        claim.loss_date = first_present(
            _text(info, "AccidentDate"),
            text_value(_path(root, "ClaimInfo", "LossInfo", "Facts", "LossDateTime")),
        )

        claim.policy_number = first_present(
            customer.policy_number,
            text_value(_path(root, "ClaimInfo", "PolicyInfo", "PolicyNum")),
            _text(root, "PolicyNumber"),
            _text(root, "PolicyNum"),
        )

        deductible_info = _path(root, "ClaimInfo", "PolicyInfo", "CoverageInfo", "Coverage", "DeductibleInfo")
        if deductible_info is not None:
            claim.deductible = numeric_value(_text(deductible_info, "DeductibleAmt"))
            claim.deductible_type = _text(deductible_info, "DeductibleStatus")

        insurance = _child(root, "Insurance")
        simple_adjuster = _child(insurance, "Adjuster")
        if simple_adjuster is not None:
            claim.adjuster_name = _text(simple_adjuster, "Name")
            claim.adjuster_phone = format_phone(_text(simple_adjuster, "Phone"))
            claim.adjuster_email = _text(simple_adjuster, "Email")
        if insurance is not None and claim.deductible is None:
            claim.deductible = numeric_value(_text(insurance, "Deductible"))

        adjuster = _path(root, "AdminInfo", "Adjuster", "Party")
        if adjuster is not None:
            person_name = _path(adjuster, "PersonInfo", "PersonName")
            if person_name is not None:
                claim.adjuster_name = _join_name(_text(person_name, "FirstName"), _text(person_name, "LastName"))
            for comm in _children(_child(adjuster, "ContactInfo"), "Communications"):
                qualifier = (_text(comm, "CommQualifier") or "").upper()
                if qualifier in ("CP", "WP") and _text(comm, "CommPhone"):
                    claim.adjuster_phone = format_phone(_text(comm, "CommPhone"))
                elif qualifier == "EM":
                    claim.adjuster_email = _text(comm, "CommEmail")

        return claim

    # Line items

    def _extract_parts(self, root: ET.Element) -> List[ParsedPart]:
        parts: List[ParsedPart] = []

        for index, line in enumerate(_children(_child(root, "LineItems"), "LineItem"), start=1):
            line_type = (_text(line, "Type") or "").lower()
            if line_type not in ("part", "material"):
                continue
            parts.append(ParsedPart(
                line_number=first_present(int_value(_text(line, "LineNumber")), index),
                description=_text(line, "Description"),
                part_number=_text(line, "PartNumber"),
                quantity=numeric_value(_text(line, "Quantity")),
                unit_price=numeric_value(_text(line, "UnitPrice", "Price")),
                extended_price=numeric_value(_text(line, "PartsAmount", "ExtendedPrice")),
                part_type=_text(line, "Type"),
                is_material=line_type == "material",
            ))

        damage_lines = _path(root, "DAMAGE_ASSESSMENT", "DAMAGE_LINES")
        for index, line in enumerate(_children(damage_lines, "LINE_ITEM"), start=1):
            if _text(line, "PART_NAME") is None:
                continue
            parts.append(ParsedPart(
                line_number=first_present(int_value(_text(line, "LINE_NUMBER")), index),
                description=_text(line, "PART_NAME"),
                part_number=_text(line, "PART_NUMBER"),
                quantity=numeric_value(_text(line, "QUANTITY")),
                unit_price=numeric_value(_text(line, "PART_COST")),
                part_type=_text(line, "PART_TYPE"),
            ))

        for line in _children(root, "DamageLineInfo"):
            part_info = _child(line, "PartInfo")
            if part_info is not None:
                parts.append(ParsedPart(
                    line_number=int_value(_text(line, "LineNum")),
                    description=_text(line, "LineDesc"),
                    part_number=_text(part_info, "PartNum"),
                    quantity=numeric_value(_text(part_info, "Quantity")),
                    unit_price=numeric_value(_text(part_info, "PartPrice")),
                    oem_price=numeric_value(_text(part_info, "OEMPartPrice")),
                    part_type=_text(part_info, "PartType"),
                    source=_text(part_info, "PartSourceCode"),
                ))
            elif _child(line, "MaterialType") is not None or _child(line, "OtherChargesInfo") is not None:
                material_type = _text(line, "MaterialType")
                parts.append(ParsedPart(
                    line_number=int_value(_text(line, "LineNum")),
                    description=_text(line, "LineDesc"),
                    part_number=material_type or "Material",
                    quantity=1.0,
                    unit_price=numeric_value(text_value(_path(line, "OtherChargesInfo", "Price"))),
                    part_type=material_type or "MATERIAL",
                    source="99",
                    is_material=True,
                ))

        return parts

    def _extract_labor(self, root: ET.Element) -> List[ParsedLabor]:
        labor: List[ParsedLabor] = []

        for index, line in enumerate(_children(_child(root, "LineItems"), "LineItem"), start=1):
            if (_text(line, "Type") or "").lower() != "labor":
                continue
            labor.append(ParsedLabor(
                line_number=first_present(int_value(_text(line, "LineNumber")), index),
                operation=_text(line, "Operation"),
                description=_text(line, "Description"),
                labor_type=_text(line, "LaborType"),
                hours=numeric_value(_text(line, "LaborHours", "Hours")),
                rate=numeric_value(_text(line, "LaborRate", "Rate")),
                extended_price=numeric_value(_text(line, "LaborAmount", "ExtendedPrice")),
            ))

        damage_lines = _path(root, "DAMAGE_ASSESSMENT", "DAMAGE_LINES")
        for index, line in enumerate(_children(damage_lines, "LINE_ITEM"), start=1):
            hours = numeric_value(_text(line, "LABOR_HOURS"))
            amount = numeric_value(_text(line, "LABOR_AMOUNT"))
            if not hours and not amount:
                continue
            labor.append(ParsedLabor(
                operation=_text(line, "OPERATION_TYPE"),
                description=_text(line, "PART_NAME", "DESCRIPTION"),
                labor_type=_text(line, "LABOR_TYPE"),
                hours=hours,
                rate=numeric_value(_text(line, "LABOR_RATE")),
                extended_price=amount,
            ))

        for line in _children(root, "DamageLineInfo"):
            labor_info = _child(line, "LaborInfo")
            # Labor attached to a part line is priced with that part
            if labor_info is None or _child(line, "PartInfo") is not None:
                continue
            labor.append(ParsedLabor(
                line_number=int_value(_text(line, "LineNum")),
                operation=_text(labor_info, "LaborOperation"),
                description=_text(line, "LineDesc"),
                labor_type=_text(labor_info, "LaborType"),
                hours=numeric_value(_text(labor_info, "LaborHours")),
                rate=numeric_value(_text(labor_info, "LaborRate")),
                extended_price=numeric_value(_text(labor_info, "LaborAmt")),
            ))

        return labor

    # Financials

    def _extract_financial(self, root: ET.Element) -> ParsedFinancial:
        financial = ParsedFinancial()

        totals = _child(root, "Totals")
        if totals is not None:
            financial.parts_total = numeric_value(_text(totals, "PartsTotal"))
            financial.labor_total = numeric_value(_text(totals, "LaborTotal"))
            financial.materials_total = numeric_value(_text(totals, "MaterialsTotal"))
            financial.subtotal = numeric_value(_text(totals, "Subtotal"))
            financial.tax_total = numeric_value(_text(totals, "Tax", "TaxTotal"))
            financial.grand_total = numeric_value(_text(totals, "GrandTotal", "Total"))

        insurance = _child(root, "Insurance")
        if insurance is not None:
            financial.deductible = numeric_value(_text(insurance, "Deductible"))

        assessment = _child(root, "DAMAGE_ASSESSMENT")
        if assessment is not None:
            financial.labor_total = first_present(financial.labor_total, numeric_value(_text(assessment, "LABOR_TOTAL")))
            financial.parts_total = first_present(financial.parts_total, numeric_value(_text(assessment, "PARTS_TOTAL")))
            financial.materials_total = first_present(
                financial.materials_total, numeric_value(_text(assessment, "PAINT_MATERIALS_TOTAL"))
            )
            financial.tax_total = first_present(financial.tax_total, numeric_value(_text(assessment, "TAX_TOTAL")))
            breakdown = _child(assessment, "TOTALS_BREAKDOWN")
            financial.subtotal = first_present(financial.subtotal, numeric_value(_text(breakdown, "SUBTOTAL")))
            financial.deductible = first_present(financial.deductible, numeric_value(_text(breakdown, "DEDUCTIBLE")))
            financial.grand_total = first_present(
                financial.grand_total,
                numeric_value(_text(assessment, "TOTAL_ESTIMATE")),
                numeric_value(_text(breakdown, "FINAL_TOTAL")),
            )

        repair_totals = _child(root, "RepairTotalsInfo")
        if repair_totals is not None:
            self._apply_repair_totals(financial, repair_totals)

        deductible_amount = numeric_value(text_value(_path(
            root, "ClaimInfo", "PolicyInfo", "CoverageInfo", "Coverage", "DeductibleInfo", "DeductibleAmt"
        )))
        if deductible_amount is not None:
            financial.deductible = deductible_amount

        return financial

    def _apply_repair_totals(self, financial: ParsedFinancial, totals: ET.Element) -> None:
        labor = self._sum_amounts(_children(totals, "LaborTotalsInfo"))
        if labor is not None:
            financial.labor_total = labor
        parts = self._sum_amounts(_children(totals, "PartsTotalsInfo"))
        if parts is not None:
            financial.parts_total = parts
        materials = self._sum_amounts(_children(totals, "OtherChargesTotalsInfo"))
        if materials is not None:
            financial.materials_total = materials

        net_total = None
        for summary in _children(totals, "SummaryTotalsInfo"):
            total_type = (_text(summary, "TotalType") or "").upper()
            sub_type = (_text(summary, "TotalSubType") or "").upper()
            amount = numeric_value(_text(summary, "TotalAmt"))
            if total_type == "TOT" and sub_type == "TT":
                financial.grand_total = amount
            elif total_type == "NETTOTAL":
                net_total = amount
        if not financial.grand_total and net_total is not None:
            financial.grand_total = net_total

        tax_total = None
        for adjustment in _children(totals, "Adjustments"):
            adjustment_type = (_text(adjustment, "AdjustmentType") or "").lower()
            description = (_text(adjustment, "AdjustmentDesc") or "").lower()
            amount = numeric_value(_text(adjustment, "AdjustmentAmt"))
            if amount is None:
                continue
            if adjustment_type == "tax":
                tax_total = (tax_total or 0.0) + amount
            elif "deductible" in description and not financial.deductible:
                financial.deductible = abs(amount)
        if tax_total is not None:
            financial.tax_total = tax_total

    @staticmethod
    def _sum_amounts(blocks: Iterable[ET.Element]) -> Optional[float]:
        amounts = [numeric_value(_text(block, "TotalAmt")) for block in blocks]
        amounts = [amount for amount in amounts if amount is not None]
        return sum(amounts) if amounts else None

    # Everything else

    def _extract_special_requirements(
        self, root: ET.Element, parts: List[ParsedPart], labor: List[ParsedLabor]
    ) -> SpecialRequirements:
        requirements = SpecialRequirements()

        descriptions = [line.description for line in parts] + [line.description for line in labor]
        for description in descriptions:
            lowered = (description or "").lower()
            if "adas" in lowered or "calibration" in lowered:
                requirements.adas_calibration = True
            if "scan" in lowered or "diagnostic" in lowered:
                requirements.post_scan = True
            if "alignment" in lowered or "4 wheel align" in lowered:
                requirements.four_wheel_alignment = True

        flags = _child(root, "SpecialRequirements")
        if flags is not None:
            requirements.adas_calibration = requirements.adas_calibration or bool(bool_value(_text(flags, "ADASCalibration")))
            requirements.post_scan = requirements.post_scan or bool(bool_value(_text(flags, "PostScan")))
            requirements.four_wheel_alignment = (
                requirements.four_wheel_alignment or bool(bool_value(_text(flags, "FourWheelAlignment")))
            )

        return requirements

    def _extract_notes(self, root: ET.Element) -> List[str]:
        notes_element = _child(root, "Notes")
        if notes_element is None:
            return []
        if not _has_children(notes_element):
            note = text_value(notes_element)
            return [note] if note else []
        notes = [text_value(note) for note in _children(notes_element, "Note")]
        return [note for note in notes if note]

    def _unknown_sections(self, root: ET.Element) -> List[str]:
        unknown = []
        for child in root:
            if isinstance(child.tag, str) and _key(child.tag) not in KNOWN_SECTIONS and child.tag not in unknown:
                unknown.append(child.tag)
        return unknown


bms_parser = BMSParser()
