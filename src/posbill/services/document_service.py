from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

from posbill.domain.errors import RemoteServiceError, ValidationError
from posbill.domain.models import BillDocument
from posbill.repositories.contracts import BillingGateway
from posbill.services.bill_list_service import BillListService
from posbill.services.payment_status_service import PaymentStatusService

log = logging.getLogger("posbill.billing")


def decode_data_url(url: str) -> Optional[str]:
    """HTML text of a ``data:...;base64,`` URL, or None for any other URL."""
    if not url.startswith("data:") or "," not in url:
        return None
    header, _, body = url.partition(",")
    if ";base64" not in header:
        return body
    try:
        return base64.b64decode(body).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise RemoteServiceError("Generated bill could not be decoded.") from e


class DocumentService:
    def __init__(self, repo: BillingGateway, bill_list: BillListService, payment_status: PaymentStatusService):
        self.repo = repo
        self.bill_list = bill_list
        self.payment_status = payment_status

    def generate(self, customer_id: str) -> BillDocument:
        if not customer_id:
            raise ValidationError("Customer ID is missing.")

        # generating the document settles the bills shown; failures do not block it
        self.payment_status.mark_paid(self.bill_list.non_paid_bill_ids())

        response = self.repo.generate_bill_document(customer_id)
        url = response.get("url") if isinstance(response, dict) else None
        if not (isinstance(response, dict) and response.get("success") and url):
            message = response.get("message") if isinstance(response, dict) else None
            raise RemoteServiceError(message or "Bill generated but no viewable file was returned.")

        html = decode_data_url(str(url))
        log.info("bill_document_generated customer_id=%s inline=%s", customer_id, html is not None)
        return BillDocument(url=str(url), html=html)
