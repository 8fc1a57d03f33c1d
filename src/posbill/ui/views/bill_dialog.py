from __future__ import annotations

import tkinter as tk
from tkinter import ttk, messagebox
import logging

from posbill.domain.errors import AppError
from posbill.domain.models import RETURN, SALE

log = logging.getLogger(__name__)

CAMERA_POLL_MS = 150


class BillDialog(tk.Toplevel):
    """New/edit bill window. Owns one BillingSession for its lifetime."""

    def __init__(self, app, session, on_saved=None):
        super().__init__(app)
        self.app = app
        self.session = session
        self.on_saved = on_saved
        self.title(f"Bill #{session.bill_no}" if session.existing_bill_id else "New Bill")
        self.geometry("1280x720")

        self.manual_var = tk.StringVar()
        self.pick_var = tk.StringVar()
        self.return_qty_var = tk.StringVar(value="1")
        self.edit_vars = {f: tk.StringVar() for f in ("quantity", "unit_price", "discount_percent", "gst_percent", "batch")}
        self.totals_var = tk.StringVar()
        self.camera_var = tk.StringVar(value="")
        self._pick_map: dict[str, object] = {}
        self._camera_after_id = None

        self._build()
        self.bind("<Key>", self._on_key)
        self.protocol("WM_DELETE_WINDOW", self.close)
        self.render()

    # ---------- layout ----------
    def _build(self):
        top = ttk.LabelFrame(self, text="Scan or enter item code")
        top.pack(fill="x", padx=10, pady=10)

        self.manual_entry = ttk.Entry(top, textvariable=self.manual_var, width=24)
        self.manual_entry.grid(row=0, column=0, padx=10, pady=8, sticky="w")
        self.manual_entry.bind("<Return>", lambda _e: self.submit_manual())
        ttk.Button(top, text="Add", command=self.submit_manual).grid(row=0, column=1, padx=(0, 10), pady=8)

        state = "normal" if self.app.camera_backend else "disabled"
        ttk.Button(top, text="Camera", command=self.toggle_camera, state=state).grid(row=0, column=2, padx=10, pady=8)
        ttk.Label(top, textvariable=self.camera_var).grid(row=0, column=3, padx=10, pady=8, sticky="w")

        ttk.Label(top, text="Product").grid(row=1, column=0, padx=10, pady=(0, 8), sticky="w")
        self.combo = ttk.Combobox(top, textvariable=self.pick_var, width=56)
        self.combo.grid(row=1, column=1, columnspan=2, padx=10, pady=(0, 8), sticky="w")
        self.combo.bind("<KeyRelease>", lambda _e: self._filter_products())
        ttk.Button(top, text="Use for selected row", command=self.use_picked_product)\
            .grid(row=1, column=3, padx=10, pady=(0, 8), sticky="w")
        self._filter_products()

        mid = ttk.Frame(self)
        mid.pack(fill="both", expand=True, padx=10)

        self.sale_tree = self._tree(mid, "Sale items")
        self.return_tree = self._tree(mid, "Returned items")

        edit = ttk.LabelFrame(self, text="Selected sale row")
        edit.pack(fill="x", padx=10, pady=10)
        labels = {"quantity": "Qty", "unit_price": "MRP", "discount_percent": "C.D %", "gst_percent": "Tax %", "batch": "Lot"}
        for i, (field, label) in enumerate(labels.items()):
            ttk.Label(edit, text=label).grid(row=0, column=i * 2, padx=(10, 4), pady=8)
            ttk.Entry(edit, textvariable=self.edit_vars[field], width=10).grid(row=0, column=i * 2 + 1, pady=8)
        ttk.Button(edit, text="Apply", command=self.apply_edits).grid(row=0, column=10, padx=10)
        ttk.Button(edit, text="Add row", command=self.add_row).grid(row=0, column=11)
        ttk.Button(edit, text="Remove row", command=self.remove_row).grid(row=0, column=12, padx=10)

        ttk.Label(edit, text="Return qty").grid(row=1, column=0, padx=(10, 4), pady=(0, 8))
        ttk.Entry(edit, textvariable=self.return_qty_var, width=10).grid(row=1, column=1, pady=(0, 8))
        ttk.Button(edit, text="Return →", command=self.return_selected).grid(row=1, column=2, columnspan=2, pady=(0, 8))
        ttk.Button(edit, text="← Undo return", command=self.undo_selected_return)\
            .grid(row=1, column=4, columnspan=2, pady=(0, 8))

        bottom = ttk.Frame(self)
        bottom.pack(fill="x", padx=10, pady=(0, 10))
        ttk.Label(bottom, textvariable=self.totals_var, style="Total.TLabel").pack(side="left")
        ttk.Button(bottom, text="Save", style="Big.TButton", command=self.save).pack(side="right")
        ttk.Button(bottom, text="Cancel", command=self.close).pack(side="right", padx=10)

        self.sale_tree.bind("<<TreeviewSelect>>", lambda _e: self._load_selected())

    def _tree(self, parent, title: str) -> ttk.Treeview:
        box = ttk.LabelFrame(parent, text=title)
        box.pack(side="left", fill="both", expand=True, padx=(0, 10))
        cols = ("sno", "code", "name", "company", "lot", "mrp", "qty", "cd", "taxable", "tax")
        tree = ttk.Treeview(box, columns=cols, show="headings", height=12)
        heads = {"sno": "SNO", "code": "ITEM CODE", "name": "ITEM NAME", "company": "COMPANY", "lot": "Lot",
                 "mrp": "MRP", "qty": "QTY", "cd": "CD", "taxable": "NET", "tax": "TAX"}
        widths = {"sno": 40, "code": 80, "name": 160, "company": 90, "lot": 50, "mrp": 60, "qty": 40,
                  "cd": 40, "taxable": 70, "tax": 40}
        for c in cols:
            tree.heading(c, text=heads[c])
            tree.column(c, width=widths[c], anchor="w")
        tree.pack(fill="both", expand=True, padx=10, pady=10)
        return tree

    # ---------- rendering ----------
    def render(self):
        ledger = self.session.ledger
        for tree, rows in ((self.sale_tree, ledger.sale_rows), (self.return_tree, ledger.return_rows)):
            for item in tree.get_children():
                tree.delete(item)
            for r in rows:
                tree.insert("", "end", iid=r.id, values=(
                    f"{r.sno:02d}.", r.item_code, r.item_name, r.company_name, r.batch or "N/A",
                    f"{r.unit_price:.2f}", r.quantity, f"{r.discount_percent:g}", f"{r.taxable_amount:.2f}",
                    f"{r.gst_percent:g}",
                ))

        s = ledger.summary()
        due = f"Refund amount: {s.refund_amount:.2f}" if s.is_refund else f"Amount due: {s.amount_due:.2f}"
        self.totals_var.set(
            f"Gross: {s.gross_total:.2f} | Discount: {s.sale.discount_amount:.2f} | "
            f"Tax: {s.sale.tax_amount:.2f} | Returns: {s.returns.total:.2f} | {due}"
        )

    def _selected(self, tree: ttk.Treeview) -> str | None:
        sel = tree.selection()
        return sel[0] if sel else None

    def _load_selected(self):
        row_id = self._selected(self.sale_tree)
        if not row_id:
            return
        _which, row = self.session.ledger.find_row(row_id)
        for field, var in self.edit_vars.items():
            var.set(str(getattr(row, field)))

    def _filter_products(self):
        try:
            products = self.app.catalog.search(self.pick_var.get())
        except AppError as e:
            self.app.handle_error("Product search failed", e, "Failed to fetch products.")
            products = []
        self._pick_map = {f"{p.item_code} - {p.name} ({p.brand})": p for p in products}
        self.combo["values"] = list(self._pick_map)

    # ---------- input capture ----------
    def _on_key(self, event):
        # typing in an entry is not scanner input
        if isinstance(event.widget, (tk.Entry, ttk.Entry, ttk.Combobox)):
            return
        key = event.char if event.char and event.char.isprintable() else event.keysym
        if self.session.keyboard.on_key(key):
            self.render()

    def submit_manual(self):
        if self.session.manual.submit(self.manual_var.get()):
            self.manual_var.set("")
            self.render()

    def toggle_camera(self):
        camera = self.session.camera
        if camera is not None and camera.state == camera.SCANNING:
            self._stop_camera()
            return
        open_camera, decode = self.app.camera_backend
        camera = self.session.attach_camera(open_camera, decode)
        if camera.state == camera.SCANNING:
            self.camera_var.set(f"Camera on ({camera.facing})")
            self._poll_camera()
        else:
            self.camera_var.set(camera.error or "Camera error")

    def _poll_camera(self):
        camera = self.session.camera
        if camera is None or camera.state != camera.SCANNING:
            return
        if camera.poll():
            self.render()
        self._camera_after_id = self.after(CAMERA_POLL_MS, self._poll_camera)

    def _stop_camera(self):
        if self._camera_after_id is not None:
            self.after_cancel(self._camera_after_id)
            self._camera_after_id = None
        if self.session.camera is not None:
            self.session.camera.stop()
        self.camera_var.set("")

    # ---------- ledger actions ----------
    def _run(self, context: str, fn, fallback: str) -> bool:
        try:
            fn()
        except AppError as e:
            self.app.handle_error(context, e, fallback)
            return False
        self.render()
        return True

    def use_picked_product(self):
        product = self._pick_map.get(self.pick_var.get())
        row_id = self._selected(self.sale_tree)
        if not product or not row_id:
            self.app.toast("Pick a product and a sale row.", kind="warn")
            return
        self._run("Select product", lambda: self.session.ledger.select_product(row_id, product), "Could not set product.")

    def apply_edits(self):
        row_id = self._selected(self.sale_tree)
        if not row_id:
            return

        def apply():
            for field, var in self.edit_vars.items():
                self.session.ledger.set_field(row_id, field, var.get())

        self._run("Edit row", apply, "Could not update the row.")

    def add_row(self):
        self._run("Add row", lambda: self.session.ledger.add_row(SALE), "Could not add a row.")

    def remove_row(self):
        row_id = self._selected(self.sale_tree)
        if row_id:
            self._run("Remove row", lambda: self.session.ledger.remove_row(SALE, row_id), "Could not remove the row.")
            return
        row_id = self._selected(self.return_tree)
        if row_id:
            self._run("Remove row", lambda: self.session.ledger.remove_row(RETURN, row_id), "Could not remove the row.")

    def return_selected(self):
        row_id = self._selected(self.sale_tree)
        if not row_id:
            self.app.toast("Select a sale row to return.", kind="warn")
            return
        qty = self.return_qty_var.get()
        if self._run("Return item", lambda: self.session.ledger.return_item(row_id, qty), "Could not return the item."):
            self.app.toast("Item moved to returns.", kind="info", ms=1500)

    def undo_selected_return(self):
        row_id = self._selected(self.return_tree)
        if not row_id:
            self.app.toast("Select a returned row to undo.", kind="warn")
            return
        self._run("Undo return", lambda: self.session.ledger.undo_return(row_id), "Could not undo the return.")

    # ---------- lifecycle ----------
    def save(self):
        try:
            result = self.session.save()
        except AppError as e:
            self.app.handle_error("Save bill failed", e, "Failed to save the bill. Please try again.")
            return
        msg = "Bill updated successfully!" if self.session.existing_bill_id else "Bill saved successfully!"
        if result.return_id:
            msg += " Return recorded."
        self.app.toast(msg, kind="success")
        self._teardown()
        if self.on_saved:
            self.on_saved()

    def close(self):
        if not self.session.ledger.is_empty():
            if not messagebox.askyesno("Discard", "Discard the unsaved bill?", parent=self):
                return
        self.session.close()
        self._teardown()

    def _teardown(self):
        self._stop_camera()
        self.destroy()
