from __future__ import annotations

import tkinter as tk
from tkinter import ttk, messagebox
import logging
from pathlib import Path

from posbill.domain.errors import AppError
from posbill.services.payment_status_service import DRAFTS_ROUTE
from posbill.ui.views.bills_view import BillsView
from posbill.ui.views.drafts_view import DraftsView

log = logging.getLogger(__name__)


class App(tk.Tk):
    def __init__(self, container, logs_dir: str, documents_dir: str, camera_backend=None):
        super().__init__()
        self.title("Shop Billing")
        self.geometry("1360x760")
        self.minsize(1120, 640)

        self.container = container
        self.catalog = container.catalog
        self.bills = container.bills
        self.payment_status = container.payment_status
        self.documents = container.documents
        self.payment_status.navigate = self.navigate

        self.logs_dir = logs_dir
        self.documents_dir = Path(documents_dir)
        # (open_camera, decode) pair; without one the dialog offers manual entry only
        self.camera_backend = camera_backend

        self.customer_var = tk.StringVar()
        self.status_var = tk.StringVar(value="")
        self._toast_after_id = None

        self._build_styles()
        self._build_topbar()

        self.nb = ttk.Notebook(self)
        self.nb.pack(fill="both", expand=True, padx=12, pady=(0, 8))

        self.bills_view = BillsView(self.nb, self)
        self.drafts_view = DraftsView(self.nb, self)

        self._build_status_bar()
        self.protocol("WM_DELETE_WINDOW", self.on_exit)

        self.load_catalog(silent=True)
        self.toast("Ready.", kind="info", ms=1200)

    def _build_styles(self):
        style = ttk.Style(self)
        try:
            style.configure("Big.TButton", padding=(14, 10))
            style.configure("Title.TLabel", font=("Segoe UI", 12, "bold"))
            style.configure("Total.TLabel", font=("Segoe UI", 11, "bold"))
        except tk.TclError as e:
            log.exception("UI style setup failed: %s", e)

    def _build_topbar(self):
        top = ttk.Frame(self)
        top.pack(fill="x", padx=12, pady=10)

        ttk.Label(top, text="Customer ID").pack(side="left")
        entry = ttk.Entry(top, textvariable=self.customer_var, width=32)
        entry.pack(side="left", padx=10)
        entry.bind("<Return>", lambda _e: self.bills_view.refresh())
        ttk.Button(top, text="Load bills", command=lambda: self.bills_view.refresh()).pack(side="left")
        ttk.Button(top, text="Reload products", command=lambda: self.load_catalog(force=True)).pack(side="left", padx=10)

        ttk.Label(top, text=f"API: {self.container.settings.api_url}").pack(side="right")

    def _build_status_bar(self):
        bar = ttk.Frame(self)
        bar.pack(fill="x", padx=12, pady=(0, 10))
        ttk.Label(bar, textvariable=self.status_var).pack(side="left")
        ttk.Label(bar, text=f"Logs: {self.logs_dir}").pack(side="right")

    @property
    def customer_id(self) -> str:
        return self.customer_var.get().strip()

    def toast(self, msg: str, kind: str = "info", ms: int = 2500):
        prefix = {"info": "ℹ ", "success": "✅ ", "warn": "⚠ ", "error": "❌ "}.get(kind, "")
        self.status_var.set(prefix + msg)
        if self._toast_after_id is not None:
            self.after_cancel(self._toast_after_id)
        self._toast_after_id = self.after(ms, lambda: self.status_var.set(""))

    def handle_error(self, context: str, exc: Exception, fallback: str):
        if isinstance(exc, AppError):
            log.warning("%s: %s", context, exc)
            self.toast(str(exc) or fallback, kind="error", ms=4000)
        else:
            log.exception("%s: %s", context, exc)
            self.toast(fallback, kind="error", ms=4000)

    def load_catalog(self, force: bool = False, silent: bool = False):
        try:
            products = self.catalog.load(force=force)
        except AppError as e:
            self.handle_error("Catalog load failed", e, "Failed to fetch products.")
            return
        if not silent:
            self.toast(f"{len(products)} products loaded.", kind="success")

    def navigate(self, route: str):
        if route == DRAFTS_ROUTE:
            self.drafts_view.refresh()
            self.nb.select(self.drafts_view.frame)

    def on_exit(self):
        if messagebox.askokcancel("Exit", "Close the billing console?", parent=self):
            self.destroy()
