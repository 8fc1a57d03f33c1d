import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_product(code: str = "X123", mrp: float = 100.0, discount: float = 10.0, gst: float = 18.0, pid: str | None = None):
    from posbill.domain.models import Product

    return Product(
        id=pid or f"p-{code}",
        item_code=code,
        name=f"Item {code}",
        brand="Lakme",
        mrp=mrp,
        discount_percent=discount,
        gst_percent=gst,
        hsn_code="3304",
        pack_size="1 pc",
    )


class FakeBillingRepo:
    """In-memory stand-in for the billing REST API; records every call."""

    def __init__(self, products=None, bills=None):
        from posbill.domain.errors import RemoteServiceError

        self._error = RemoteServiceError
        self.products = list(products or [])
        self.bills = {b["_id"]: b for b in (bills or [])}
        self.calls: list[tuple] = []
        self.fail_on: dict[str, str] = {}
        self.fail_bills: set[str] = set()
        self._next = 1

    def _maybe_fail(self, op: str):
        if op in self.fail_on:
            raise self._error(self.fail_on[op], 500)

    def list_products(self):
        self.calls.append(("list_products",))
        self._maybe_fail("list_products")
        return list(self.products)

    def get_bills_by_customer(self, customer_id):
        self.calls.append(("get_bills_by_customer", customer_id))
        self._maybe_fail("get_bills_by_customer")
        return [b for b in self.bills.values() if b.get("customerId") == customer_id]

    def get_bill_drafts(self):
        self.calls.append(("get_bill_drafts",))
        return [b for b in self.bills.values() if b.get("paymentStatus") == "Draft"]

    def create_bill(self, payload):
        self.calls.append(("create_bill", payload))
        self._maybe_fail("create_bill")
        bill_id = f"bill-{self._next}"
        self._next += 1
        self.bills[bill_id] = {"_id": bill_id, "billNo": f"B-{bill_id}", "paymentStatus": "Unpaid", **payload}
        return {"success": True, "bill": {"_id": bill_id, "billNo": self.bills[bill_id]["billNo"]}}

    def update_bill(self, bill_id, payload):
        self.calls.append(("update_bill", bill_id, payload))
        self._maybe_fail("update_bill")
        self.bills.setdefault(bill_id, {"_id": bill_id}).update(payload)
        return {"success": True, "bill": {"_id": bill_id}}

    def delete_bill(self, bill_id):
        self.calls.append(("delete_bill", bill_id))
        self._maybe_fail("delete_bill")
        self.bills.pop(bill_id, None)

    def create_sales_return(self, payload):
        self.calls.append(("create_sales_return", payload))
        self._maybe_fail("create_sales_return")
        return {"success": True, "saleReturn": {"_id": "ret-1", **payload}}

    def update_bill_payment_status(self, bill_id, status):
        self.calls.append(("update_bill_payment_status", bill_id, status))
        if bill_id in self.fail_bills:
            raise self._error("status update failed", 500)
        self._maybe_fail("update_bill_payment_status")
        self.bills.setdefault(bill_id, {"_id": bill_id})["paymentStatus"] = status

    def generate_bill_document(self, customer_id):
        self.calls.append(("generate_bill_document", customer_id))
        self._maybe_fail("generate_bill_document")
        return {"success": True, "url": "data:text/html;base64,PGgxPkJpbGw8L2gxPg=="}

    def ops(self) -> list[str]:
        return [c[0] for c in self.calls]
