import asyncio
import io
import unittest
from unittest.mock import MagicMock, patch

from fastapi import UploadFile

from estimate_import.models.schemas import ImportContext
from estimate_import.services.import_ledger import ImportLedger
from estimate_import.services.import_service import ImportService, create_import_service
from estimate_import.services.reconciler import Reconciler
from estimate_import.services.stores import InMemoryCustomerStore, InMemoryJobStore, InMemoryVehicleStore
from estimate_import.tests.fixtures import (
    COMPLETE_ESTIMATE,
    EMS_ESTIMATE,
    MITCHELL_BMS,
    SPARSE_ESTIMATE,
    estimate_for,
)
from estimate_import.utils.exceptions import (
    DuplicateImportError,
    MalformedDocumentError,
    TenantScopeError,
    UnsupportedFileTypeError,
)


class TestImportService(unittest.TestCase):

    def setUp(self):
        self.customers = InMemoryCustomerStore()
        self.vehicles = InMemoryVehicleStore()
        self.jobs = InMemoryJobStore()
        self.ledger = ImportLedger()
        self.service = self._service()

    def _service(self, vehicles=None, **kwargs):
        reconciler = Reconciler(self.customers, vehicles or self.vehicles, self.jobs)
        return ImportService(self.ledger, reconciler, **kwargs)

    def test_complete_estimate(self):
        result = self.service.process_bms(COMPLETE_ESTIMATE, ImportContext(file_name="a.xml", user_id="u1"))

        self.assertEqual(result.damage.parts_total, 150.0)
        self.assertEqual(result.damage.labor_total, 120.0)
        self.assertEqual(result.damage.tax_total, 0.0)
        self.assertEqual(result.damage.total_amount, 270.0)
        self.assertEqual(result.damage.total_lines, 3)
        self.assertTrue(result.validation.is_valid)
        self.assertEqual(result.validation.score, 100)
        self.assertEqual(result.job.job_number, "EST-A")
        self.assertEqual(result.job.total_amount, 270.0)
        self.assertEqual(result.metadata.import_id, result.import_id)
        self.assertEqual(result.metadata.source_format, "BMS")
        self.assertIsNone(result.auto_creation_success)

        record = self.ledger.get(result.import_id)
        self.assertEqual(record.status, "completed")
        self.assertEqual(record.file_name, "a.xml")
        self.assertEqual(record.user_id, "u1")
        self.assertEqual(record.result.import_id, result.import_id)

    def test_sparse_estimate(self):
        result = self.service.process_bms(SPARSE_ESTIMATE)

        self.assertEqual(result.damage.total_amount, 0.0)
        self.assertFalse(result.validation.is_valid)
        self.assertIn("Total amount must be greater than zero", result.validation.errors)
        self.assertIn("Vehicle make/model is missing", result.validation.warnings)
        self.assertIn("Vehicle year is missing", result.validation.warnings)
        self.assertIn("No parts or labor items found", result.validation.warnings)
        self.assertLessEqual(result.validation.score, 45)
        self.assertEqual(self.ledger.get(result.import_id).status, "completed")

    def test_same_email_reuses_customer(self):
        first = self.service.process_with_auto_creation(
            estimate_for("repeat@example.com"), ImportContext(file_name="one.xml", shop_id="shop-1")
        )
        second = self.service.process_with_auto_creation(
            estimate_for("repeat@example.com", first_name="J", last_name="Doe-Smith"),
            ImportContext(file_name="two.xml", shop_id="shop-1"),
        )

        self.assertTrue(first.auto_creation_success)
        self.assertTrue(second.auto_creation_success)
        self.assertEqual(len(self.customers.all()), 1)
        self.assertEqual(first.reconciliation.customer.origin, "created")
        self.assertEqual(second.reconciliation.customer.origin, "existing")
        self.assertEqual(second.reconciliation.customer.id, first.reconciliation.customer.id)
        self.assertEqual(len(self.jobs.all()), 2)

    def test_vehicle_store_failure_needs_manual_intervention(self):
        vehicles = MagicMock()
        vehicles.find_or_create.side_effect = RuntimeError("vehicle store unavailable")
        service = self._service(vehicles=vehicles)

        result = service.process_with_auto_creation(COMPLETE_ESTIMATE, ImportContext(shop_id="shop-1"))

        self.assertFalse(result.auto_creation_success)
        self.assertTrue(result.requires_manual_intervention)
        self.assertEqual(result.auto_creation_error.stage, "vehicle")
        self.assertEqual(result.reconciliation.customer.origin, "created")
        self.assertEqual(len(self.customers.all()), 1)
        # Parsed result survives the failed write
        self.assertEqual(result.damage.total_amount, 270.0)
        self.assertTrue(result.validation.is_valid)

        stored = self.ledger.get(result.import_id)
        self.assertEqual(stored.status, "completed")
        self.assertTrue(stored.result.requires_manual_intervention)

    def test_missing_shop_raises_before_store_writes(self):
        with self.assertRaises(TenantScopeError):
            self.service.process_with_auto_creation(COMPLETE_ESTIMATE, ImportContext(file_name="a.xml"))
        self.assertEqual(self.customers.all(), [])

    def test_auto_create_disabled_skips_reconciliation(self):
        result = self.service.process_with_auto_creation(COMPLETE_ESTIMATE, auto_create=False)
        self.assertIsNone(result.reconciliation)
        self.assertEqual(self.customers.all(), [])

    def test_low_score_is_gated(self):
        service = self._service(min_auto_create_score=50)
        result = service.process_with_auto_creation(SPARSE_ESTIMATE, ImportContext(shop_id="shop-1"))

        self.assertFalse(result.auto_creation_success)
        self.assertTrue(result.requires_manual_intervention)
        self.assertEqual(result.auto_creation_error.stage, "gate")
        self.assertIsNone(result.reconciliation)
        self.assertEqual(self.customers.all(), [])

    def test_malformed_document_is_recorded_as_failed(self):
        with self.assertRaises(MalformedDocumentError):
            self.service.process_bms("<Estimate><Customer>", ImportContext(upload_id="bad-1"))

        record = self.ledger.get("bad-1")
        self.assertEqual(record.status, "failed")
        self.assertIn("well-formed", record.error)
        self.assertIsNone(record.result)

    def test_process_document_detects_format(self):
        result = self.service.process_document(EMS_ESTIMATE, ImportContext(file_name="job.ems"))
        self.assertEqual(result.metadata.source_format, "EMS")
        self.assertEqual(self.ledger.get(result.import_id).file_type, "EMS")

        result = self.service.process_document(MITCHELL_BMS)
        self.assertEqual(result.metadata.estimate_type, "mitchell_bms")
        self.assertEqual(result.damage.total_amount, 700.25)

        with self.assertRaises(UnsupportedFileTypeError):
            self.service.process_document(EMS_ESTIMATE, file_type="PDF")

    def test_upload_id_is_import_id(self):
        result = self.service.process_ems(EMS_ESTIMATE, ImportContext(upload_id="upload-7"))
        self.assertEqual(result.import_id, "upload-7")
        with self.assertRaises(DuplicateImportError):
            self.service.process_ems(EMS_ESTIMATE, ImportContext(upload_id="upload-7"))

    def test_process_upload(self):
        upload = UploadFile(file=io.BytesIO(COMPLETE_ESTIMATE.encode("utf-8")), filename="estimate.xml")
        result = asyncio.run(self.service.process_upload(upload, ImportContext(shop_id="shop-1"), auto_create=True))

        self.assertTrue(result.auto_creation_success)
        self.assertEqual(self.ledger.get(result.import_id).file_name, "estimate.xml")

    def test_process_upload_rejects_empty_and_oversized_files(self):
        empty = UploadFile(file=io.BytesIO(b""), filename="empty.xml")
        with self.assertRaises(ValueError):
            asyncio.run(self.service.process_upload(empty))

        service = self._service(max_file_size_bytes=10)
        large = UploadFile(file=io.BytesIO(COMPLETE_ESTIMATE.encode("utf-8")), filename="large.xml")
        with self.assertRaises(ValueError):
            asyncio.run(service.process_upload(large))

        scanned = UploadFile(file=io.BytesIO(COMPLETE_ESTIMATE.encode("utf-8")), filename="estimate.pdf")
        with self.assertRaises(ValueError):
            asyncio.run(self.service.process_upload(scanned))
        self.assertEqual(len(self.ledger), 0)

    def test_validate_document_leaves_no_trace(self):
        report = self.service.validate_document(COMPLETE_ESTIMATE, "a.xml")

        self.assertTrue(report.parsed)
        self.assertEqual(report.file_type, "BMS")
        self.assertEqual(report.file_name, "a.xml")
        self.assertTrue(report.validation.is_valid)
        self.assertEqual(report.validation.score, 100)
        self.assertEqual(report.totals.grand_total, 270.0)
        self.assertEqual(report.total_lines, 3)
        self.assertEqual(len(self.ledger), 0)
        self.assertEqual(self.customers.all(), [])

    def test_validate_document_reports_problems(self):
        sparse = self.service.validate_document(SPARSE_ESTIMATE)
        self.assertFalse(sparse.validation.is_valid)
        self.assertIn("Total amount must be greater than zero", sparse.validation.errors)

        broken = self.service.validate_document("<Estimate><Customer>", "broken.xml")
        self.assertFalse(broken.parsed)
        self.assertFalse(broken.validation.is_valid)
        self.assertEqual(broken.validation.score, 0)
        self.assertEqual(len(broken.validation.errors), 1)
        self.assertEqual(len(self.ledger), 0)

        with self.assertRaises(UnsupportedFileTypeError):
            self.service.validate_document(EMS_ESTIMATE, file_type="PDF")

    def test_validate_upload_applies_upload_checks(self):
        upload = UploadFile(file=io.BytesIO(EMS_ESTIMATE.encode("utf-8")), filename="job.ems")
        report = asyncio.run(self.service.validate_upload(upload))
        self.assertEqual(report.file_type, "EMS")

        scanned = UploadFile(file=io.BytesIO(b"%PDF-1.4"), filename="scan.pdf")
        with self.assertRaises(ValueError):
            asyncio.run(self.service.validate_upload(scanned))
        self.assertEqual(len(self.ledger), 0)

    def test_totals_are_computed_once_per_import(self):
        with patch("estimate_import.services.normalizer.compute_totals") as recompute:
            result = self.service.process_bms(COMPLETE_ESTIMATE)
        recompute.assert_not_called()
        self.assertEqual(result.job.total_amount, result.damage.total_amount)

    def test_history_passthroughs(self):
        result = self.service.process_bms(COMPLETE_ESTIMATE)

        self.assertEqual(self.service.get_import(result.import_id).import_id, result.import_id)
        self.assertEqual(self.service.list_imports().pagination.total_items, 1)
        self.assertEqual(self.service.get_statistics(period="day").total_imports, 1)
        self.assertEqual(self.service.cleanup_old_imports(), 0)
        self.assertTrue(self.service.delete_import(result.import_id))
        self.assertIsNone(self.service.get_import(result.import_id))


class TestCreateImportService(unittest.TestCase):

    def test_memory_backend(self):
        app_settings = MagicMock(
            STORE_BACKEND="memory",
            DEV_MODE=True,
            DEV_SHOP_ID="dev-shop",
            MIN_AUTO_CREATE_SCORE=0,
            max_file_size_bytes=1024,
            IMPORT_RETENTION_DAYS=7,
            MAX_BATCH_FILES=4,
        )
        service = create_import_service(app_settings)

        self.assertIsInstance(service.reconciler.customer_store, InMemoryCustomerStore)
        self.assertEqual(service.reconciler.dev_shop_id, "dev-shop")
        self.assertEqual(service.max_file_size_bytes, 1024)
        self.assertEqual(service.retention_days, 7)
        self.assertEqual(service.max_batch_files, 4)
        self.assertIsNone(service.store_manager)

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            create_import_service(MagicMock(STORE_BACKEND="redis"))


if __name__ == '__main__':
    unittest.main()
