"""MongoDB-backed customer, vehicle and job stores"""

from typing import Any, Dict, List, Optional, Tuple

from ..config import settings
from ..models.schemas import ImportResult
from ..utils.mongo import MongoDBManager
from .stores import (
    CUSTOMER_CRITERIA,
    Record,
    customer_record,
    is_placeholder_vin,
    job_record,
    vehicle_record,
)


class MongoCustomerStore:
    def __init__(self, manager: MongoDBManager, collection_name: Optional[str] = None):
        self.manager = manager
        self.collection_name = collection_name or settings.CUSTOMER_COLLECTION_NAME

    def find(self, criteria: Dict[str, Any], shop_id: str) -> List[Record]:
        unknown = set(criteria) - set(CUSTOMER_CRITERIA)
        if unknown:
            raise ValueError(f"Unsupported customer criteria: {sorted(unknown)}")
        query = {"shop_id": shop_id}
        query.update(criteria)
        return self.manager.find(self.collection_name, query)

    def create(self, fields: Dict[str, Any], shop_id: str) -> Record:
        record = customer_record(fields, shop_id)
        self.manager.insert(self.collection_name, record)
        return record


class MongoVehicleStore:
    def __init__(self, manager: MongoDBManager, collection_name: Optional[str] = None):
        self.manager = manager
        self.collection_name = collection_name or settings.VEHICLE_COLLECTION_NAME

    def find_or_create(
        self, fields: Dict[str, Any], owner_customer_id: str, shop_id: str
    ) -> Tuple[Record, bool]:
        vin = (fields.get("vin") or "").strip().upper()
        if not is_placeholder_vin(vin):
            existing = self.manager.find_one(self.collection_name, {
                "shop_id": shop_id,
                "customer_id": owner_customer_id,
                "vin": vin,
            })
            if existing:
                return existing, False

        record = vehicle_record({**fields, "vin": vin}, owner_customer_id, shop_id)
        self.manager.insert(self.collection_name, record)
        return record, True


class MongoJobStore:
    def __init__(self, manager: MongoDBManager, collection_name: Optional[str] = None):
        self.manager = manager
        self.collection_name = collection_name or settings.JOB_COLLECTION_NAME

    def create_from_import(
        self, import_result: ImportResult, customer_id: str, vehicle_id: str, shop_id: str
    ) -> Record:
        record = job_record(import_result, customer_id, vehicle_id, shop_id)
        self.manager.insert(self.collection_name, record)
        return record
