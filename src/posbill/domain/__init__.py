from .models import Product, LineItemRow, Totals, BillSummary, SaveResult, BillRow, BillDocument
from .errors import ValidationError, NotFoundError, RemoteServiceError, PartialSaveError, CameraError, DeviceNotFoundError
from .ledger import LineItemLedger

__all__ = [
    "Product",
    "LineItemRow",
    "Totals",
    "BillSummary",
    "SaveResult",
    "BillRow",
    "BillDocument",
    "LineItemLedger",
    "ValidationError",
    "NotFoundError",
    "RemoteServiceError",
    "PartialSaveError",
    "CameraError",
    "DeviceNotFoundError",
]
