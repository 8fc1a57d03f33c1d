from __future__ import annotations

from typing import Any, Protocol

from posbill.domain.models import Product


class BillingGateway(Protocol):
    def list_products(self) -> list[Product]: ...
    def get_bills_by_customer(self, customer_id: str) -> list[dict]: ...
    def get_bill_drafts(self) -> list[dict]: ...
    def create_bill(self, payload: dict) -> dict: ...
    def update_bill(self, bill_id: str, payload: dict) -> dict: ...
    def delete_bill(self, bill_id: str) -> None: ...
    def create_sales_return(self, payload: dict) -> dict: ...
    def update_bill_payment_status(self, bill_id: str, status: str) -> None: ...
    def generate_bill_document(self, customer_id: str) -> dict[str, Any]: ...
