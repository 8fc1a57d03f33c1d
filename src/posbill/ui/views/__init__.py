from .bills_view import BillsView
from .bill_dialog import BillDialog
from .drafts_view import DraftsView

__all__ = ["BillsView", "BillDialog", "DraftsView"]
