from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from posbill.domain.errors import ValidationError
from posbill.domain.models import DRAFT, PAID, PAYMENT_STATUSES
from posbill.repositories.contracts import BillingGateway
from posbill.services.bill_list_service import BillListService

log = logging.getLogger("posbill.billing")

DRAFTS_ROUTE = "drafts"


@dataclass(frozen=True)
class PendingStatusChange:
    bill_id: str
    status: str


class PaymentStatusService:
    """Unpaid / Paid / Draft changes, always request -> confirm -> apply.

    Draft moves the bill out of this screen, so it navigates away instead of
    touching the row cache.
    """

    def __init__(
        self,
        repo: BillingGateway,
        bill_list: BillListService,
        navigate: Callable[[str], None] | None = None,
        max_workers: int = 4,
    ):
        self.repo = repo
        self.bill_list = bill_list
        self.navigate = navigate or (lambda _route: None)
        self.max_workers = max_workers
        self.pending: Optional[PendingStatusChange] = None

    def request_transition(self, bill_id: str, status: str) -> PendingStatusChange:
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"Unknown payment status: {status}")
        if not bill_id:
            raise ValidationError("Bill ID is missing.")
        self.pending = PendingStatusChange(bill_id, status)
        return self.pending

    def cancel(self) -> None:
        self.pending = None

    def confirm(self) -> Optional[PendingStatusChange]:
        change = self.pending
        if change is None:
            return None
        try:
            self.repo.update_bill_payment_status(change.bill_id, change.status)
        finally:
            self.pending = None

        log.info("payment_status_updated bill_id=%s status=%s", change.bill_id, change.status)
        if change.status == DRAFT:
            self.navigate(DRAFTS_ROUTE)
        else:
            self.bill_list.set_payment_status(change.bill_id, change.status)
        return change

    def mark_paid(self, bill_ids: Iterable[str]) -> list[str]:
        """Best effort: every bill is tried, failures are only logged."""
        ids = list(dict.fromkeys(b for b in bill_ids if b))
        if not ids:
            return []

        def _one(bill_id: str) -> Optional[str]:
            try:
                self.repo.update_bill_payment_status(bill_id, PAID)
                return bill_id
            except Exception as e:
                log.warning("auto_mark_paid_failed bill_id=%s error=%s", bill_id, e)
                return None

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(ids))) as pool:
            results = list(pool.map(_one, ids))

        done = [b for b in results if b]
        for bill_id in done:
            self.bill_list.set_payment_status(bill_id, PAID)
        log.info("auto_mark_paid requested=%s succeeded=%s", len(ids), len(done))
        return done
