from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from posbill.domain.errors import ValidationError
from posbill.domain.models import PAID, UNPAID, BillRow
from posbill.domain.money import to_number, to_quantity
from posbill.repositories.contracts import BillingGateway
from posbill.repositories.http_repo import ref_id

log = logging.getLogger(__name__)


def customer_info(bill: dict) -> tuple[str, str]:
    ref = bill.get("customerId")
    ref = ref if isinstance(ref, dict) else {}
    name = bill.get("customerName") or ref.get("name") or " ".join(
        p for p in (ref.get("firstName"), ref.get("lastName")) if p
    )
    code = bill.get("customerCode") or ref.get("customerCode") or ""
    return str(name or ""), str(code)


def flatten_bills(bills: Iterable[dict]) -> list[BillRow]:
    """One row per bill item, numbered across all of the customer's bills."""
    rows: list[BillRow] = []
    for bill in bills:
        bill_id = str(bill.get("_id") or bill.get("id") or "")
        name, code = customer_info(bill)
        for idx, item in enumerate(bill.get("items") or []):
            sno = len(rows) + 1
            rows.append(BillRow(
                id=str(item.get("_id") or f"{bill_id}-{idx}"),
                bill_id=bill_id,
                bill_no=bill.get("billNo"),
                sno=f"{sno:02d}.",
                ad_item_code=f"AD{sno:04d}",
                payment_status=str(bill.get("paymentStatus") or UNPAID),
                customer_name=name,
                customer_code=code,
                product_id=ref_id(item.get("productId")),
                item_code=str(item.get("itemCode") or ""),
                item_name=str(item.get("itemName") or ""),
                company_name=str(item.get("companyName") or ""),
                hsn_code=str(item.get("hsnCode") or ""),
                packing=str(item.get("packing") or ""),
                lot=str(item.get("batch") or "N/A"),
                mrp=to_number(item.get("rate") or item.get("mrp")),
                qty=to_quantity(item.get("qty")),
                discount_percent=to_number(item.get("discountPercent")),
                gst_percent=to_number(item.get("gstPercent")),
                net_amount=to_number(item.get("total") or item.get("taxableAmount")),
            ))
    return rows


class BillListService:
    """Bill rows for the customer on screen.

    The cache is always rebuilt from the server; only payment-status changes
    are applied locally.
    """

    def __init__(self, repo: BillingGateway):
        self.repo = repo
        self.customer_id: Optional[str] = None
        self.customer_name = ""
        self.customer_code = ""
        self.rows: list[BillRow] = []

    def refresh(self, customer_id: str | None = None) -> list[BillRow]:
        customer_id = customer_id or self.customer_id
        if not customer_id:
            raise ValidationError("No Customer ID provided.")
        if customer_id != self.customer_id:
            self.rows = []
            self.customer_name = self.customer_code = ""
        self.customer_id = customer_id

        bills = self.repo.get_bills_by_customer(customer_id)
        self.rows = flatten_bills(bills)
        if bills:
            self.customer_name, self.customer_code = customer_info(bills[0])
        log.info("bills_refreshed customer_id=%s bills=%s rows=%s", customer_id, len(bills), len(self.rows))
        return self.rows

    def bill_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for r in self.rows:
            seen.setdefault(r.bill_id, None)
        return list(seen)

    def rows_for_bill(self, bill_id: str) -> list[BillRow]:
        return [r for r in self.rows if r.bill_id == bill_id]

    def bill_no_for(self, bill_id: str) -> Optional[str]:
        return next((r.bill_no for r in self.rows if r.bill_id == bill_id), None)

    def non_paid_bill_ids(self) -> list[str]:
        return [b for b in self.bill_ids() if any(r.payment_status != PAID for r in self.rows_for_bill(b))]

    def set_payment_status(self, bill_id: str, status: str) -> int:
        changed = 0
        for i, r in enumerate(self.rows):
            if r.bill_id == bill_id:
                self.rows[i] = replace(r, payment_status=status)
                changed += 1
        return changed

    def delete_bill(self, bill_id: str) -> None:
        self.repo.delete_bill(bill_id)
        log.info("bill_deleted bill_id=%s", bill_id)
        if self.customer_id:
            self.refresh()
        else:
            self.rows = [r for r in self.rows if r.bill_id != bill_id]
