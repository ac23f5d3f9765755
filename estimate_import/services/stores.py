"""Customer, vehicle and job store contracts plus in-memory implementations.

Records are plain dicts carrying an ``id`` and the ``shop_id`` they belong to.
Every lookup is scoped to a shop.
"""

import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..models.schemas import ImportResult

Record = Dict[str, Any]

CUSTOMER_CRITERIA = ("id", "email", "phone", "first_name", "last_name")

PLACEHOLDER_VINS = {"N/A", "NA", "NONE", "NULL", "UNKNOWN", "TBD", "TBA", "NOVIN", "NO VIN"}


def is_placeholder_vin(vin: Optional[str]) -> bool:
    """Empty, filler-word and single-repeated-character VINs never match."""
    cleaned = (vin or "").strip().upper()
    return not cleaned or cleaned in PLACEHOLDER_VINS or len(set(cleaned)) == 1


def new_record_id() -> str:
    return uuid.uuid4().hex


def customer_record(fields: Dict[str, Any], shop_id: str) -> Record:
    return {
        "id": new_record_id(),
        "shop_id": shop_id,
        "first_name": fields.get("first_name", ""),
        "last_name": fields.get("last_name", ""),
        "email": fields.get("email", ""),
        "phone": fields.get("phone", ""),
        "address": fields.get("address", ""),
        "city": fields.get("city", ""),
        "state": fields.get("state", ""),
        "zip": fields.get("zip", ""),
        "insurance_company": fields.get("insurance_company", ""),
        "created_at": datetime.utcnow().isoformat(),
    }


def vehicle_record(fields: Dict[str, Any], owner_customer_id: str, shop_id: str) -> Record:
    return {
        "id": new_record_id(),
        "shop_id": shop_id,
        "customer_id": owner_customer_id,
        "vin": fields.get("vin", ""),
        "year": fields.get("year"),
        "make": fields.get("make", ""),
        "model": fields.get("model", ""),
        "license": fields.get("license", ""),
        "mileage": fields.get("mileage", 0),
        "color": fields.get("color", ""),
        "engine": fields.get("engine", ""),
        "transmission": fields.get("transmission", ""),
        "created_at": datetime.utcnow().isoformat(),
    }


def job_record(import_result: ImportResult, customer_id: str, vehicle_id: str, shop_id: str) -> Record:
    job = import_result.job
    return {
        "id": new_record_id(),
        "shop_id": shop_id,
        "customer_id": customer_id,
        "vehicle_id": vehicle_id,
        "import_id": import_result.import_id,
        "job_number": job.job_number,
        "status": job.status,
        "estimate_number": job.estimate_number,
        "ro_number": job.ro_number,
        "claim_number": job.claim_number,
        "insurance_company": job.insurance_company,
        "deductible": job.deductible,
        "total_amount": job.total_amount,
        "parts_total": import_result.damage.parts_total,
        "labor_total": import_result.damage.labor_total,
        "tax_total": import_result.damage.tax_total,
        "line_items_count": job.line_items_count,
        "created_at": datetime.utcnow().isoformat(),
    }


class CustomerStore(Protocol):
    def find(self, criteria: Dict[str, Any], shop_id: str) -> List[Record]:
        """Records in ``shop_id`` matching every given criterion."""
        ...

    def create(self, fields: Dict[str, Any], shop_id: str) -> Record:
        ...


class VehicleStore(Protocol):
    def find_or_create(
        self, fields: Dict[str, Any], owner_customer_id: str, shop_id: str
    ) -> Tuple[Record, bool]:
        """Return ``(vehicle, created)``; matches on VIN within the owner's vehicles."""
        ...


class JobStore(Protocol):
    def create_from_import(
        self, import_result: ImportResult, customer_id: str, vehicle_id: str, shop_id: str
    ) -> Record:
        ...


class InMemoryCustomerStore:
    def __init__(self) -> None:
        self._records: Dict[str, Record] = {}
        self._lock = threading.Lock()

    def find(self, criteria: Dict[str, Any], shop_id: str) -> List[Record]:
        unknown = set(criteria) - set(CUSTOMER_CRITERIA)
        if unknown:
            raise ValueError(f"Unsupported customer criteria: {sorted(unknown)}")
        with self._lock:
            return [
                dict(record)
                for record in self._records.values()
                if record["shop_id"] == shop_id
                and all(record.get(key) == value for key, value in criteria.items())
            ]

    def create(self, fields: Dict[str, Any], shop_id: str) -> Record:
        record = customer_record(fields, shop_id)
        with self._lock:
            self._records[record["id"]] = record
        return dict(record)

    def all(self) -> List[Record]:
        with self._lock:
            return [dict(record) for record in self._records.values()]


class InMemoryVehicleStore:
    def __init__(self) -> None:
        self._records: Dict[str, Record] = {}
        self._lock = threading.Lock()

    def find_or_create(
        self, fields: Dict[str, Any], owner_customer_id: str, shop_id: str
    ) -> Tuple[Record, bool]:
        vin = (fields.get("vin") or "").strip().upper()
        with self._lock:
            if not is_placeholder_vin(vin):
                for record in self._records.values():
                    if (
                        record["shop_id"] == shop_id
                        and record["customer_id"] == owner_customer_id
                        and record["vin"] == vin
                    ):
                        return dict(record), False

            record = vehicle_record({**fields, "vin": vin}, owner_customer_id, shop_id)
            self._records[record["id"]] = record
            return dict(record), True

    def all(self) -> List[Record]:
        with self._lock:
            return [dict(record) for record in self._records.values()]


class InMemoryJobStore:
    def __init__(self) -> None:
        self._records: Dict[str, Record] = {}
        self._lock = threading.Lock()

    def create_from_import(
        self, import_result: ImportResult, customer_id: str, vehicle_id: str, shop_id: str
    ) -> Record:
        record = job_record(import_result, customer_id, vehicle_id, shop_id)
        with self._lock:
            self._records[record["id"]] = record
        return dict(record)

    def all(self) -> List[Record]:
        with self._lock:
            return [dict(record) for record in self._records.values()]
