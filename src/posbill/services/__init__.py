from .catalog_service import CatalogService
from .scan_service import ScanChannel, KeystrokeBurstListener, OpticalScanner, ManualEntry
from .bill_list_service import BillListService
from .reconciliation_service import BillReconciliationService
from .payment_status_service import PaymentStatusService
from .document_service import DocumentService
from .billing_service import BillingSession

__all__ = [
    "CatalogService",
    "ScanChannel",
    "KeystrokeBurstListener",
    "OpticalScanner",
    "ManualEntry",
    "BillListService",
    "BillReconciliationService",
    "PaymentStatusService",
    "DocumentService",
    "BillingSession",
]
