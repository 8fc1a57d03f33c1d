from __future__ import annotations

from tkinter import ttk
import logging

from posbill.domain.errors import AppError
from posbill.services.bill_list_service import customer_info

log = logging.getLogger(__name__)


class DraftsView:
    def __init__(self, notebook: ttk.Notebook, app):
        self.app = app
        self.frame = ttk.Frame(notebook)
        notebook.add(self.frame, text="Drafts")
        self._build()

    def _build(self):
        top = ttk.Frame(self.frame)
        top.pack(fill="x", padx=10, pady=10)
        ttk.Button(top, text="Refresh", command=self.refresh).pack(side="left")

        cols = ("bill_no", "customer", "items", "status")
        self.tree = ttk.Treeview(self.frame, columns=cols, show="headings", height=18)
        heads = {"bill_no": "Bill No.", "customer": "Customer", "items": "Items", "status": "Status"}
        widths = {"bill_no": 140, "customer": 320, "items": 80, "status": 120}
        for c in cols:
            self.tree.heading(c, text=heads[c])
            self.tree.column(c, width=widths[c], anchor="w")
        self.tree.pack(fill="both", expand=True, padx=10, pady=(0, 10))

    def refresh(self):
        try:
            drafts = self.app.container.repo.get_bill_drafts()
        except AppError as e:
            self.app.handle_error("Drafts refresh failed", e, "Could not fetch bill drafts.")
            return

        for item in self.tree.get_children():
            self.tree.delete(item)
        for b in drafts:
            customer, _code = customer_info(b)
            self.tree.insert("", "end", values=(
                b.get("billNo") or "", customer or "", len(b.get("items") or []), b.get("paymentStatus") or "Draft",
            ))
