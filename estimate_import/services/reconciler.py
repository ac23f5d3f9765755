"""Find-or-create reconciliation of imported customers and vehicles"""

from typing import Any, Dict, Iterator, Optional, Tuple

from ..models.schemas import (
    AutoCreationError,
    DamageSummary,
    ImportMetadata,
    ImportResult,
    JobSeed,
    NormalizedCustomer,
    NormalizedVehicle,
    ReconciliationOutcome,
    ResolvedRecord,
    ValidationResult,
)
from ..utils.exceptions import ReconciliationError, TenantScopeError
from ..utils.logging import logger
from .stores import CustomerStore, JobStore, VehicleStore, is_placeholder_vin


class Reconciler:
    """
    Resolves an import's customer and vehicle against the stores, then
    creates a job linked to both.

    Customers match on email, then phone, then exact first and last name,
    stopping at the first hit. Vehicles match on VIN among the resolved
    customer's vehicles. Jobs are always new.
    """

    def __init__(
        self,
        customer_store: CustomerStore,
        vehicle_store: VehicleStore,
        job_store: JobStore,
        dev_mode: bool = False,
        dev_shop_id: Optional[str] = None,
    ):
        self.customer_store = customer_store
        self.vehicle_store = vehicle_store
        self.job_store = job_store
        self.dev_mode = dev_mode
        self.dev_shop_id = dev_shop_id

    def resolve_shop_id(self, shop_id: Optional[str]) -> str:
        """Return the shop scope, substituting the development shop in dev mode."""
        if shop_id:
            return shop_id
        if self.dev_mode and self.dev_shop_id:
            logger.log_warning("dev_shop_id_fallback", {"shop_id": self.dev_shop_id})
            return self.dev_shop_id
        raise TenantScopeError("Shop ID is required for estimate import")

    def reconcile(
        self,
        customer: NormalizedCustomer,
        vehicle: NormalizedVehicle,
        job_seed: JobSeed,
        shop_id: Optional[str],
        import_id: Optional[str] = None,
        import_result: Optional[ImportResult] = None,
    ) -> ReconciliationOutcome:
        shop_id = self.resolve_shop_id(shop_id)
        outcome = ReconciliationOutcome(shop_id=shop_id)
        if import_result is None:
            import_result = self._bare_result(customer, vehicle, job_seed, import_id)
        import_id = import_id or import_result.import_id

        try:
            stage = "customer"
            outcome.customer, matched_on = self._resolve_customer(customer, shop_id)

            stage = "vehicle"
            if is_placeholder_vin(vehicle.vin):
                logger.log_warning("vehicle_vin_unmatchable", {"import_id": import_id, "vin": vehicle.vin})
            vehicle_record, created = self.vehicle_store.find_or_create(
                self._vehicle_fields(vehicle), outcome.customer.id, shop_id
            )
            outcome.vehicle = ResolvedRecord(origin="created" if created else "existing", record=vehicle_record)

            stage = "job"
            outcome.job = self.job_store.create_from_import(
                import_result, outcome.customer.id, outcome.vehicle.id, shop_id
            )
            outcome.success = True
        except Exception as exc:
            error = ReconciliationError(f"{stage} store operation failed: {exc}", stage=stage, original_error=exc)
            logger.log_error("reconciliation_failed", {
                "import_id": import_id,
                "stage": error.stage,
                "error": str(exc),
                "customer_id": outcome.customer.id if outcome.customer else None,
            })
            outcome.error = AutoCreationError(stage=error.stage, message=str(error))
            return outcome

        logger.log_reconciliation(import_id, {
            "shop_id": shop_id,
            "customer_id": outcome.customer.id,
            "customer_origin": outcome.customer.origin,
            "customer_matched_on": matched_on,
            "vehicle_id": outcome.vehicle.id,
            "vehicle_origin": outcome.vehicle.origin,
            "job_id": outcome.job.get("id"),
        })
        return outcome

    def _resolve_customer(
        self, customer: NormalizedCustomer, shop_id: str
    ) -> Tuple[ResolvedRecord, Optional[str]]:
        for label, criteria in self._customer_criteria(customer):
            matches = self.customer_store.find(criteria, shop_id)
            if matches:
                return ResolvedRecord(origin="existing", record=matches[0]), label

        created = self.customer_store.create(self._customer_fields(customer), shop_id)
        return ResolvedRecord(origin="created", record=created), None

    @staticmethod
    def _customer_criteria(customer: NormalizedCustomer) -> Iterator[Tuple[str, Dict[str, Any]]]:
        if customer.email:
            yield "email", {"email": customer.email}
        if customer.phone:
            yield "phone", {"phone": customer.phone}
        if customer.first_name and customer.last_name:
            yield "name", {"first_name": customer.first_name, "last_name": customer.last_name}

    @staticmethod
    def _customer_fields(customer: NormalizedCustomer) -> Dict[str, Any]:
        return {
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "email": customer.email,
            "phone": customer.phone,
            "address": customer.address,
            "city": customer.city,
            "state": customer.state,
            "zip": customer.zip,
            "insurance_company": customer.insurance,
        }

    @staticmethod
    def _vehicle_fields(vehicle: NormalizedVehicle) -> Dict[str, Any]:
        return vehicle.model_dump()

    @staticmethod
    def _bare_result(
        customer: NormalizedCustomer,
        vehicle: NormalizedVehicle,
        job_seed: JobSeed,
        import_id: Optional[str],
    ) -> ImportResult:
        # Without a ledger entry the job carries no import reference
        import_id = import_id or ""
        return ImportResult(
            import_id=import_id,
            customer=customer,
            vehicle=vehicle,
            job=job_seed,
            damage=DamageSummary(total_amount=job_seed.total_amount),
            validation=ValidationResult(),
            metadata=ImportMetadata(import_id=import_id, processing_time_ms=0.0),
        )
