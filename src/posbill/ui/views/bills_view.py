from __future__ import annotations

import tkinter as tk
from tkinter import ttk, messagebox
from datetime import datetime
import logging
import webbrowser

from posbill.domain.errors import AppError
from posbill.domain.models import PAYMENT_STATUSES, UNPAID
from posbill.ui.views.bill_dialog import BillDialog

log = logging.getLogger(__name__)


class BillsView:
    def __init__(self, notebook: ttk.Notebook, app):
        self.app = app
        self.frame = ttk.Frame(notebook)
        notebook.add(self.frame, text="Bills")

        self.header_var = tk.StringVar(value="Bill Listing > Customer")
        self.status_pick = tk.StringVar(value=UNPAID)

        self._build()

    def _build(self):
        tab = self.frame

        top = ttk.Frame(tab)
        top.pack(fill="x", padx=10, pady=10)
        ttk.Label(top, textvariable=self.header_var, style="Title.TLabel").pack(side="left")

        ttk.Button(top, text="Generate bill", command=self.generate_document).pack(side="right")
        ttk.Button(top, text="New Bill", style="Big.TButton", command=self.new_bill).pack(side="right", padx=10)

        box = ttk.LabelFrame(tab, text="Bill items (double click to edit the bill)")
        box.pack(fill="both", expand=True, padx=10, pady=(0, 10))

        cols = ("sno", "ad", "code", "name", "company", "hsn", "packing", "lot", "mrp", "qty", "cd", "net", "tax", "status")
        self.tree = ttk.Treeview(box, columns=cols, show="headings", height=18)
        heads = {
            "sno": "SNO.", "ad": "Ad. item code", "code": "ITEM CODE", "name": "ITEM NAME", "company": "COMPANY NAME",
            "hsn": "HSN CODE", "packing": "PACKING", "lot": "LOT", "mrp": "MRP", "qty": "QTY", "cd": "C.D",
            "net": "NET AMOUNT", "tax": "TAX", "status": "PAYMENT STATUS",
        }
        widths = {"sno": 50, "ad": 90, "code": 90, "name": 220, "company": 120, "hsn": 80, "packing": 70,
                  "lot": 70, "mrp": 70, "qty": 50, "cd": 50, "net": 100, "tax": 50, "status": 110}
        for c in cols:
            self.tree.heading(c, text=heads[c])
            self.tree.column(c, width=widths[c], anchor="w")
        self.tree.pack(fill="both", expand=True, padx=10, pady=10)
        self.tree.bind("<Double-1>", lambda _e: self.edit_bill())

        actions = ttk.Frame(box)
        actions.pack(fill="x", padx=10, pady=(0, 10))
        ttk.Button(actions, text="Edit bill", command=self.edit_bill).pack(side="left")
        ttk.Button(actions, text="Delete bill", command=self.delete_bill).pack(side="left", padx=10)

        ttk.Label(actions, text="Payment status").pack(side="left", padx=(20, 6))
        ttk.Combobox(actions, textvariable=self.status_pick, values=list(PAYMENT_STATUSES), width=10, state="readonly")\
            .pack(side="left")
        ttk.Button(actions, text="Change status", command=self.change_status).pack(side="left", padx=10)

    def _selected_bill_id(self) -> str | None:
        sel = self.tree.selection()
        if not sel:
            self.app.toast("Select a bill row first.", kind="warn", ms=1500)
            return None
        return sel[0].split("::", 1)[0]

    def refresh(self):
        customer_id = self.app.customer_id
        try:
            self.app.bills.refresh(customer_id)
        except AppError as e:
            self.app.handle_error("Bill refresh failed", e, "Could not fetch bills.")
        self.render()

    def render(self):
        for item in self.tree.get_children():
            self.tree.delete(item)

        bills = self.app.bills
        self.header_var.set(f"Bill Listing > {bills.customer_name or 'Customer'}")
        for r in bills.rows:
            self.tree.insert("", "end", iid=f"{r.bill_id}::{r.id}", values=(
                r.sno, r.ad_item_code, r.item_code, r.item_name or "N/A", r.company_name, r.hsn_code or "N/A",
                r.packing or "N/A", r.lot or "N/A", f"{r.mrp:.2f}", r.qty, f"{r.discount_percent:g}%",
                f"{r.net_amount:.2f}", f"{r.gst_percent:g}%", r.payment_status,
            ))

    def new_bill(self):
        if not self.app.customer_id:
            self.app.toast("Please select a customer to create a new bill.", kind="info")
            return
        self._open_dialog(None)

    def edit_bill(self):
        bill_id = self._selected_bill_id()
        if bill_id:
            self._open_dialog(bill_id)

    def _open_dialog(self, bill_id: str | None):
        try:
            session = self.app.container.open_billing_session(
                self.app.customer_id, existing_bill_id=bill_id, notify=self.app.toast
            )
        except AppError as e:
            self.app.handle_error("Billing dialog failed", e, "Could not open the bill.")
            return
        BillDialog(self.app, session, on_saved=self.render)

    def delete_bill(self):
        bill_id = self._selected_bill_id()
        if not bill_id:
            return
        if not messagebox.askyesno("Delete", "Are you sure you want to delete this bill?", parent=self.app):
            return
        try:
            self.app.bills.delete_bill(bill_id)
        except AppError as e:
            self.app.handle_error("Delete bill failed", e, "Failed to delete the bill.")
            return
        self.app.toast("Bill deleted successfully!", kind="success")
        self.render()

    def change_status(self):
        bill_id = self._selected_bill_id()
        if not bill_id:
            return
        status = self.status_pick.get()
        try:
            self.app.payment_status.request_transition(bill_id, status)
        except AppError as e:
            self.app.handle_error("Status change rejected", e, "Failed to update status")
            return

        if not messagebox.askyesno("Payment status", f"Change the payment status to {status}?", parent=self.app):
            self.app.payment_status.cancel()
            return
        try:
            self.app.payment_status.confirm()
        except AppError as e:
            self.app.handle_error("Status change failed", e, "Failed to update status")
            return
        self.app.toast("Payment status updated", kind="success")
        self.render()

    def generate_document(self):
        customer_id = self.app.customer_id
        try:
            doc = self.app.documents.generate(customer_id)
        except AppError as e:
            self.app.handle_error("Bill generation failed", e, "Failed to generate bill. Please try again.")
            return

        if doc.html is not None:
            self.app.documents_dir.mkdir(parents=True, exist_ok=True)
            ts = datetime.now().strftime("%Y%m%d_%H%M%S")
            path = self.app.documents_dir / f"bill_{customer_id}_{ts}.html"
            path.write_text(doc.html, encoding="utf-8")
            webbrowser.open(path.as_uri())
        else:
            webbrowser.open(doc.url)
        self.app.toast("Bill generated successfully!", kind="success")
        self.render()
