from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from posbill.config import Settings
from posbill.repositories.http_repo import HttpBillingRepository
from posbill.services.bill_list_service import BillListService
from posbill.services.billing_service import BillingSession, Notifier
from posbill.services.catalog_service import CatalogService
from posbill.services.document_service import DocumentService
from posbill.services.payment_status_service import PaymentStatusService
from posbill.services.reconciliation_service import BillReconciliationService


@dataclass(frozen=True)
class AppContainer:
    settings: Settings
    repo: HttpBillingRepository
    catalog: CatalogService
    bills: BillListService
    reconciliation: BillReconciliationService
    payment_status: PaymentStatusService
    documents: DocumentService

    def open_billing_session(self, customer_id: str, existing_bill_id: str | None = None, notify: Notifier | None = None) -> BillingSession:
        return BillingSession(
            catalog=self.catalog,
            saver=self.reconciliation,
            bill_list=self.bills,
            customer_id=customer_id,
            existing_bill_id=existing_bill_id,
            gap_ms=self.settings.scan_gap_ms,
            increment_repeat_scans=self.settings.increment_repeat_scans,
            notify=notify,
        )


def build_container(settings: Settings, navigate: Callable[[str], None] | None = None, repo=None) -> AppContainer:
    repo = repo or HttpBillingRepository(settings.api_url, token=settings.api_token, timeout=settings.api_timeout)

    catalog = CatalogService(repo)
    bills = BillListService(repo)
    reconciliation = BillReconciliationService(repo, compensate_partial_saves=settings.compensate_partial_saves)
    payment_status = PaymentStatusService(repo, bills, navigate=navigate)
    documents = DocumentService(repo, bills, payment_status)

    return AppContainer(
        settings=settings,
        repo=repo,
        catalog=catalog,
        bills=bills,
        reconciliation=reconciliation,
        payment_status=payment_status,
        documents=documents,
    )
