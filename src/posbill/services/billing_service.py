from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from posbill.domain.errors import PartialSaveError, RemoteServiceError, ValidationError
from posbill.domain.ledger import LineItemLedger
from posbill.domain.models import SALE, LineItemRow, SaveResult
from posbill.services.bill_list_service import BillListService
from posbill.services.catalog_service import CatalogService
from posbill.services.reconciliation_service import BillReconciliationService
from posbill.services.scan_service import (
    CameraStream,
    KeystrokeBurstListener,
    ManualEntry,
    OpticalScanner,
    ScanChannel,
    ScanEvent,
)

log = logging.getLogger("posbill.billing")

Notifier = Callable[[str, str], None]


class BillingSession:
    """State of one open "New Bill" dialog.

    Created when the dialog opens (empty, or seeded from an existing bill) and
    thrown away when it closes. All scan sources feed ``handle_scan`` through
    one channel.
    """

    def __init__(
        self,
        catalog: CatalogService,
        saver: BillReconciliationService,
        bill_list: BillListService,
        customer_id: str,
        existing_bill_id: str | None = None,
        gap_ms: int = 100,
        increment_repeat_scans: bool = False,
        notify: Notifier | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not customer_id:
            raise ValidationError("Customer ID is missing.")
        self.catalog = catalog
        self.saver = saver
        self.bill_list = bill_list
        self.customer_id = customer_id
        self.existing_bill_id = existing_bill_id
        self.increment_repeat_scans = increment_repeat_scans
        self.notify: Notifier = notify or (lambda _msg, _kind: None)
        self.closed = False

        self.ledger = LineItemLedger()
        self.bill_no: Optional[str] = None
        if existing_bill_id:
            self.ledger.load_rows(bill_list.rows_for_bill(existing_bill_id))
            self.bill_no = bill_list.bill_no_for(existing_bill_id)
        else:
            self.ledger.add_row(SALE)

        self.channel = ScanChannel()
        self.channel.subscribe(self.handle_scan)
        self.keyboard = KeystrokeBurstListener(self.channel, gap_ms=gap_ms, clock=clock)
        self.manual = ManualEntry(self.channel)
        self.camera: Optional[OpticalScanner] = None
        self.keyboard.activate()

        log.info("billing_session_opened customer_id=%s bill_id=%s", customer_id, existing_bill_id)

    def attach_camera(self, open_camera: Callable[[str], CameraStream], decode: Callable[[object], Optional[str]]) -> OpticalScanner:
        if self.camera is not None:
            self.camera.stop()
        self.camera = OpticalScanner(self.channel, open_camera, decode)
        if not self.camera.start():
            self.notify(self.camera.error or "Camera not available.", "error")
        return self.camera

    def handle_scan(self, event: ScanEvent) -> Optional[LineItemRow]:
        if self.closed:
            log.info("scan_ignored_closed code=%s", event.code)
            return None

        product = self.catalog.match(event.code)
        if product is None:
            log.warning("scan_unmatched code=%s source=%s", event.code, event.source)
            self.notify(f"Product not found: {event.code}", "error")
            return None

        if self.increment_repeat_scans:
            existing = next(
                (r for r in self.ledger.sale_rows if not r.is_placeholder and r.item_code.lower() == product.item_code.lower()),
                None,
            )
            if existing is not None:
                return self.ledger.set_field(existing.id, "quantity", existing.quantity + 1)

        row = self.ledger.fill_placeholder(product)
        log.info("scan_filled code=%s row_id=%s", product.item_code, row.id)
        return row

    def save(self) -> SaveResult:
        if self.closed:
            raise ValidationError("The billing dialog is closed.")
        try:
            result = self.saver.save(self.ledger, self.customer_id, self.existing_bill_id, self.bill_no)
        except PartialSaveError as e:
            # the bill is stored; a retry must update it, not create another
            if e.bill_id and e.bill_id != self.existing_bill_id:
                log.warning("billing_session_adopted_bill bill_id=%s bill_no=%s", e.bill_id, e.bill_no)
                self.existing_bill_id = e.bill_id
                self.bill_no = e.bill_no or self.bill_no
            raise
        log.info("bill_saved bill_id=%s return_id=%s", result.bill_id, result.return_id)

        self.ledger.clear()
        try:
            self.bill_list.refresh(self.customer_id)
        except RemoteServiceError as e:
            log.warning("bill_list_refresh_failed customer_id=%s error=%s", self.customer_id, e)
            self.notify(f"Saved, but the bill list could not be refreshed: {e}", "warn")
        self.close()
        return result

    def close(self) -> None:
        if self.closed:
            return
        self.keyboard.deactivate()
        if self.camera is not None:
            self.camera.stop()
        self.ledger.clear()
        self.closed = True
        log.info("billing_session_closed customer_id=%s", self.customer_id)
