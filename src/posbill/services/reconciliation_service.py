from __future__ import annotations

import logging
from typing import Iterable, Optional

from posbill.domain.errors import PartialSaveError, RemoteServiceError, ValidationError
from posbill.domain.ledger import LineItemLedger
from posbill.domain.models import RETURN, SALE, LineItemRow, SaveResult
from posbill.repositories.contracts import BillingGateway
from posbill.repositories.http_repo import extract_id

log = logging.getLogger("posbill.billing")

RETURN_REASON = "Returned at billing counter"
PAYMENT_MODE = "Cash"
BILL_NOTES = "Bill created from admin panel."


def project_items(rows: Iterable[LineItemRow]) -> list[dict]:
    """Wire form of ledger rows; blank rows and non-positive quantities are dropped."""
    items = []
    for row in rows:
        if row.is_placeholder or row.quantity <= 0:
            continue
        items.append({
            "productId": row.product_id,
            "itemCode": row.item_code,
            "itemName": row.item_name,
            "companyName": row.company_name,
            "hsnCode": row.hsn_code,
            "packing": row.packing,
            "batch": "" if row.batch == "N/A" else row.batch,
            "qty": row.quantity,
            "rate": row.unit_price,
            "mrp": row.unit_price,
            "discountPercent": row.discount_percent,
            "gstPercent": row.gst_percent,
            "taxableAmount": row.taxable_amount,
        })
    return items


def _bill_no(created: object) -> Optional[str]:
    if not isinstance(created, dict):
        return None
    for record in (created, created.get("bill"), created.get("data")):
        if isinstance(record, dict) and record.get("billNo"):
            return str(record["billNo"])
    return None


class BillReconciliationService:
    """Persists a ledger as a sales bill plus, when needed, a sales return against it.

    Steps run in order and stop at the first failure. Completed steps are not
    undone unless ``compensate_partial_saves`` is set, in which case a bill
    created by this save is deleted when its return cannot be recorded.
    """

    def __init__(self, repo: BillingGateway, compensate_partial_saves: bool = False):
        self.repo = repo
        self.compensate_partial_saves = compensate_partial_saves

    def _validate(self, customer_id: str, sale_items: list[dict], return_items: list[dict], existing_bill_id: Optional[str]) -> None:
        if not customer_id:
            raise ValidationError("Customer ID is missing.")
        if not sale_items and not return_items:
            raise ValidationError("Please add at least one product with a quantity.")
        for it in sale_items + return_items:
            if not it["productId"]:
                raise ValidationError(f"Select a catalog product for item '{it['itemCode']}' before saving.")
        if return_items and not sale_items and not existing_bill_id:
            raise ValidationError("A return must be associated with a sales bill.")

    def save(
        self,
        ledger: LineItemLedger,
        customer_id: str,
        existing_bill_id: str | None = None,
        bill_no: str | None = None,
    ) -> SaveResult:
        sale_items = project_items(ledger.rows(SALE))
        return_items = project_items(ledger.rows(RETURN))
        self._validate(customer_id, sale_items, return_items, existing_bill_id)

        bill_id = existing_bill_id
        created_bill = False
        payload = {
            "customerId": customer_id,
            "items": sale_items,
            "paymentMode": PAYMENT_MODE,
            "notes": BILL_NOTES,
        }
        # a new bill gets its number from the server
        if bill_no:
            payload["billNo"] = bill_no

        if existing_bill_id:
            # a return-only save still truncates the bill's stale lines
            self.repo.update_bill(existing_bill_id, payload)
            log.info("bill_updated bill_id=%s items=%s", existing_bill_id, len(sale_items))
        elif sale_items:
            created = self.repo.create_bill(payload)
            bill_id = extract_id(created)
            if not bill_id:
                raise RemoteServiceError("Bill was saved but the server returned no bill id.")
            created_bill = True
            bill_no = _bill_no(created) or bill_no
            log.info("bill_created bill_id=%s customer_id=%s items=%s", bill_id, customer_id, len(sale_items))

        return_id = None
        if return_items:
            if not bill_id:
                raise ValidationError("A return must be associated with a sales bill.")
            refund = ledger.totals(RETURN).total
            try:
                created_return = self.repo.create_sales_return({
                    "billId": bill_id,
                    "customerId": customer_id,
                    "reason": RETURN_REASON,
                    "refundAmount": refund,
                    "items": return_items,
                })
            except RemoteServiceError as e:
                log.error("partial_save bill_id=%s created=%s return_failed=%s", bill_id, created_bill, e)
                if created_bill and self.compensate_partial_saves and self._compensate(bill_id):
                    raise
                raise PartialSaveError(str(e), e.status_code, bill_id=bill_id, bill_no=bill_no) from e
            return_id = extract_id(created_return)
            log.info("sales_return_created return_id=%s bill_id=%s refund=%.2f items=%s", return_id, bill_id, refund, len(return_items))

        return SaveResult(bill_id=bill_id, return_id=return_id)

    def _compensate(self, bill_id: str) -> bool:
        try:
            self.repo.delete_bill(bill_id)
        except RemoteServiceError as e:
            log.error("partial_save_compensation_failed bill_id=%s error=%s", bill_id, e)
            return False
        log.warning("partial_save_compensated bill_id=%s", bill_id)
        return True
