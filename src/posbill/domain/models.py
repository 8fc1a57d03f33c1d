from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

SALE = "sale"
RETURN = "return"
LEDGER_LISTS = (SALE, RETURN)

UNPAID = "Unpaid"
PAID = "Paid"
DRAFT = "Draft"
PAYMENT_STATUSES = (UNPAID, PAID, DRAFT)


@dataclass(frozen=True)
class Product:
    id: str
    item_code: str
    name: str
    brand: str
    mrp: float
    discount_percent: float
    gst_percent: float
    hsn_code: str = ""
    pack_size: str = ""


@dataclass
class LineItemRow:
    id: str
    sno: int
    product_id: Optional[str] = None
    item_code: str = ""
    item_name: str = ""
    company_name: str = ""
    hsn_code: str = ""
    packing: str = ""
    batch: str = ""
    unit_price: float = 0.0
    quantity: int = 0
    discount_percent: float = 0.0
    gst_percent: float = 0.0
    taxable_amount: float = 0.0

    @property
    def is_placeholder(self) -> bool:
        return not (self.item_code or "").strip()


@dataclass(frozen=True)
class Totals:
    gross: float = 0.0
    discount_amount: float = 0.0
    tax_amount: float = 0.0
    total: float = 0.0


@dataclass(frozen=True)
class BillSummary:
    sale: Totals
    returns: Totals
    gross_total: float
    net_payable: float
    amount_due: float
    refund_amount: float

    @property
    def is_refund(self) -> bool:
        return self.net_payable < 0


@dataclass(frozen=True)
class SaveResult:
    bill_id: Optional[str]
    return_id: Optional[str] = None


@dataclass(frozen=True)
class BillRow:
    id: str
    bill_id: str
    bill_no: Optional[str]
    sno: str
    ad_item_code: str
    payment_status: str
    customer_name: str = ""
    customer_code: str = ""
    product_id: Optional[str] = None
    item_code: str = ""
    item_name: str = ""
    company_name: str = ""
    hsn_code: str = ""
    packing: str = ""
    lot: str = "N/A"
    mrp: float = 0.0
    qty: int = 0
    discount_percent: float = 0.0
    gst_percent: float = 0.0
    net_amount: float = 0.0


@dataclass(frozen=True)
class BillDocument:
    url: str
    html: Optional[str] = None
