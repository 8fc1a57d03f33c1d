from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from posbill.domain.errors import RemoteServiceError
from posbill.domain.models import Product
from posbill.domain.money import to_number

log = logging.getLogger(__name__)


def extract_id(data: object) -> Optional[str]:
    """Find the record id in a create/update response.

    The API answers either with the record itself or wrapped as
    {"bill": {...}}, {"data": {...}} or {"saleReturn": {...}}.
    """
    if not isinstance(data, dict):
        return None
    for key in ("_id", "id"):
        if data.get(key):
            return str(data[key])
    for key in ("bill", "data", "saleReturn", "salesReturn", "return"):
        nested = data.get(key)
        if isinstance(nested, dict):
            found = extract_id(nested)
            if found:
                return found
    return None


def ref_id(value: object) -> Optional[str]:
    # populated references come back as {"_id": ..., ...}
    if isinstance(value, dict):
        return extract_id(value)
    return str(value) if value not in (None, "") else None


def product_from_api(d: dict) -> Product:
    return Product(
        id=str(d.get("_id") or d.get("id") or ""),
        item_code=str(d.get("itemCode") or ""),
        name=str(d.get("productName") or ""),
        brand=str(d.get("brandName") or ""),
        mrp=to_number(d.get("mrp")),
        discount_percent=to_number(d.get("discount")),
        gst_percent=to_number(d.get("gst")),
        hsn_code=str(d.get("hsnCode") or ""),
        pack_size=str(d.get("packSize") or ""),
    )


class HttpBillingRepository:
    """REST gateway for the billing backend (products, bills, sale returns)."""

    def __init__(self, base_url: str, token: str | None = None, timeout: float = 10.0, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _server_message(response: requests.Response | None) -> Optional[str]:
        if response is None:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return None

    def _request(self, method: str, path: str, fail_msg: str, json: dict | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, json=json, headers=self._headers(), timeout=self.timeout)
            r.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            message = self._server_message(e.response) or fail_msg
            log.warning("api_error method=%s path=%s status=%s message=%s", method, path, status, message)
            raise RemoteServiceError(message, status) from e
        except requests.RequestException as e:
            log.warning("api_unreachable method=%s path=%s error=%s", method, path, e)
            raise RemoteServiceError(fail_msg) from e

        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError as e:
            raise RemoteServiceError(f"{fail_msg} (unexpected response)", r.status_code) from e

    # ---------- products ----------
    def list_products(self) -> list[Product]:
        body = self._request("GET", "/products", "Failed to fetch products.")
        data = body.get("data") if isinstance(body, dict) else None
        rows = data.get("rows") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            log.error("invalid_product_payload keys=%s", list(body) if isinstance(body, dict) else type(body).__name__)
            raise RemoteServiceError("Could not load product list.")
        return [product_from_api(d) for d in rows if isinstance(d, dict)]

    # ---------- bills ----------
    def get_bills_by_customer(self, customer_id: str) -> list[dict]:
        body = self._request("GET", f"/bills/customer/{customer_id}", "Could not fetch bills.")
        if not isinstance(body, dict):
            raise RemoteServiceError("Could not fetch bills.")
        if body.get("success") is False:
            raise RemoteServiceError(str(body.get("message") or "Bill not found."))
        bills = body.get("bills")
        return bills if isinstance(bills, list) else []

    def get_bill_drafts(self) -> list[dict]:
        body = self._request("GET", "/bills/drafts", "Could not fetch bill drafts.")
        if isinstance(body, list):
            return body
        if not isinstance(body, dict):
            raise RemoteServiceError("Could not fetch bill drafts.")
        for key in ("bills", "drafts", "data"):
            if isinstance(body.get(key), list):
                return body[key]
        return []

    def create_bill(self, payload: dict) -> dict:
        return self._request("POST", "/bills/add", "Failed to save the bill. Please try again.", json=payload)

    def update_bill(self, bill_id: str, payload: dict) -> dict:
        return self._request("PUT", f"/bills/update/{bill_id}", "Failed to update the bill. Please try again.", json=payload)

    def delete_bill(self, bill_id: str) -> None:
        self._request("DELETE", f"/bills/{bill_id}", "Failed to delete the bill.")

    def update_bill_payment_status(self, bill_id: str, status: str) -> None:
        self._request("PUT", f"/bills/status/{bill_id}", "Failed to update status", json={"paymentStatus": status})

    def generate_bill_document(self, customer_id: str) -> dict:
        return self._request("GET", f"/bills/generate/customer/{customer_id}", "Failed to generate bill. Please try again.")

    # ---------- returns ----------
    def create_sales_return(self, payload: dict) -> dict:
        return self._request("POST", "/sale-returns/add", "Failed to process return.", json=payload)
