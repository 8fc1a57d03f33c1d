from __future__ import annotations

import itertools
from dataclasses import replace
from typing import Iterable

from posbill.domain.errors import NotFoundError, ValidationError
from posbill.domain.models import (
    LEDGER_LISTS,
    RETURN,
    SALE,
    BillRow,
    BillSummary,
    LineItemRow,
    Product,
    Totals,
)
from posbill.domain.money import compute, to_number, to_quantity

PRICED_FIELDS = frozenset({"unit_price", "quantity", "discount_percent", "gst_percent"})
TEXT_FIELDS = frozenset({"item_code", "item_name", "company_name", "hsn_code", "packing", "batch"})
EDITABLE_FIELDS = PRICED_FIELDS | TEXT_FIELDS | {"product_id"}


def _recompute(row: LineItemRow) -> None:
    row.taxable_amount = compute(row.unit_price, row.quantity, row.discount_percent, row.gst_percent).taxable_amount


def _renumber(rows: list[LineItemRow]) -> None:
    for n, row in enumerate(rows, start=1):
        row.sno = n


class LineItemLedger:
    """Sale rows and Return rows of the bill being edited.

    Row ids are unique across both lists and never handed out twice. Every
    mutation either completes on both lists or raises before touching them.
    """

    def __init__(self, id_prefix: str = "row"):
        self.sale_rows: list[LineItemRow] = []
        self.return_rows: list[LineItemRow] = []
        self._id_prefix = id_prefix
        self._ids = itertools.count(1)

    # ---------- lookup ----------
    def _new_id(self) -> str:
        return f"{self._id_prefix}-{next(self._ids)}"

    def _rows(self, which: str) -> list[LineItemRow]:
        if which not in LEDGER_LISTS:
            raise ValidationError(f"Unknown ledger list: {which}")
        return self.sale_rows if which == SALE else self.return_rows

    def rows(self, which: str) -> list[LineItemRow]:
        return list(self._rows(which))

    def find_row(self, row_id: str) -> tuple[str, LineItemRow]:
        for which in LEDGER_LISTS:
            for row in self._rows(which):
                if row.id == row_id:
                    return which, row
        raise NotFoundError(f"Row not found: {row_id}")

    def _find_in(self, which: str, row_id: str) -> LineItemRow:
        for row in self._rows(which):
            if row.id == row_id:
                return row
        raise NotFoundError(f"Row not found in {which} list: {row_id}")

    def is_empty(self) -> bool:
        return all(r.is_placeholder for r in self.sale_rows + self.return_rows)

    # ---------- row edits ----------
    def add_row(self, which: str = SALE) -> LineItemRow:
        rows = self._rows(which)
        row = LineItemRow(id=self._new_id(), sno=len(rows) + 1)
        rows.append(row)
        return row

    def set_field(self, row_id: str, field: str, value: object) -> LineItemRow:
        if field not in EDITABLE_FIELDS:
            raise ValidationError(f"Field '{field}' cannot be edited.")
        _which, row = self.find_row(row_id)

        if field == "quantity":
            setattr(row, field, to_quantity(value))
        elif field in PRICED_FIELDS:
            setattr(row, field, to_number(value))
        elif field == "product_id":
            row.product_id = str(value) if value not in (None, "") else None
        else:
            setattr(row, field, "" if value is None else str(value))

        if field in PRICED_FIELDS:
            _recompute(row)
        return row

    def remove_row(self, which: str, row_id: str) -> None:
        rows = self._rows(which)
        row = self._find_in(which, row_id)
        rows.remove(row)
        _renumber(rows)

    def _ensure_trailing_placeholder(self, row: LineItemRow) -> None:
        if self.sale_rows and self.sale_rows[-1] is row:
            self.add_row(SALE)

    def select_product(self, row_id: str, product: Product) -> LineItemRow:
        _which, row = self.find_row(row_id)
        row.product_id = product.id
        row.item_code = product.item_code
        row.item_name = product.name
        row.company_name = product.brand
        row.hsn_code = product.hsn_code
        row.packing = product.pack_size
        row.unit_price = to_number(product.mrp)
        row.discount_percent = to_number(product.discount_percent)
        row.gst_percent = to_number(product.gst_percent)
        row.quantity = row.quantity or 1
        _recompute(row)
        self._ensure_trailing_placeholder(row)
        return row

    def fill_placeholder(self, product: Product) -> LineItemRow:
        """Put a scanned product on the first blank Sale row, appending one if needed."""
        target = next((r for r in self.sale_rows if r.is_placeholder), None)
        if target is None:
            target = self.add_row(SALE)
        return self.select_product(target.id, product)

    # ---------- sale <-> return ----------
    def return_item(self, sale_row_id: str, requested_qty: object) -> LineItemRow:
        row = self._find_in(SALE, sale_row_id)
        if row.is_placeholder:
            raise ValidationError("Select a product before returning it.")

        qty_value = to_number(requested_qty)
        if qty_value != int(qty_value):
            raise ValidationError("Return quantity must be a whole number.")
        qty = int(qty_value)
        if qty < 1:
            raise ValidationError("Return quantity must be >= 1.")
        if qty > row.quantity:
            raise ValidationError(f"Cannot return more than {row.quantity} unit(s).")

        returned = replace(row, id=self._new_id(), sno=len(self.return_rows) + 1, quantity=qty)
        _recompute(returned)

        if qty == row.quantity:
            self.sale_rows.remove(row)
            _renumber(self.sale_rows)
        else:
            row.quantity -= qty
            _recompute(row)
        self.return_rows.append(returned)
        return returned

    def undo_return(self, return_row_id: str) -> LineItemRow:
        returned = self._find_in(RETURN, return_row_id)

        target = None
        if returned.product_id is not None:
            target = next(
                (r for r in self.sale_rows if not r.is_placeholder and r.product_id == returned.product_id),
                None,
            )

        if target is not None:
            target.quantity += returned.quantity
            _recompute(target)
        else:
            target = replace(returned, id=self._new_id(), sno=len(self.sale_rows) + 1)
            if self.sale_rows and self.sale_rows[-1].is_placeholder:
                self.sale_rows.insert(len(self.sale_rows) - 1, target)
            else:
                self.sale_rows.append(target)

        self.return_rows.remove(returned)
        _renumber(self.sale_rows)
        _renumber(self.return_rows)
        return target

    # ---------- totals ----------
    def totals(self, which: str) -> Totals:
        gross = discount = tax = total = 0.0
        for row in self._rows(which):
            if row.is_placeholder:
                continue
            m = compute(row.unit_price, row.quantity, row.discount_percent, row.gst_percent)
            gross += m.gross
            discount += m.discount_amount
            tax += m.tax_amount
            total += m.total
        return Totals(
            gross=round(gross, 2),
            discount_amount=round(discount, 2),
            tax_amount=round(tax, 2),
            total=round(total, 2),
        )

    def summary(self) -> BillSummary:
        sale = self.totals(SALE)
        returns = self.totals(RETURN)
        net = round(sale.total - returns.total, 2)
        return BillSummary(
            sale=sale,
            returns=returns,
            gross_total=round(sale.gross - returns.gross, 2),
            net_payable=net,
            amount_due=net if net >= 0 else 0.0,
            refund_amount=-net if net < 0 else 0.0,
        )

    # ---------- lifecycle ----------
    def load_rows(self, bill_rows: Iterable[BillRow]) -> None:
        """Seed the Sale list from an existing bill, followed by one blank row."""
        self.clear()
        for src in bill_rows:
            row = LineItemRow(
                id=self._new_id(),
                sno=len(self.sale_rows) + 1,
                product_id=src.product_id,
                item_code=src.item_code,
                item_name=src.item_name,
                company_name=src.company_name,
                hsn_code=src.hsn_code,
                packing=src.packing,
                batch="" if src.lot == "N/A" else src.lot,
                unit_price=to_number(src.mrp),
                quantity=to_quantity(src.qty),
                discount_percent=to_number(src.discount_percent),
                gst_percent=to_number(src.gst_percent),
            )
            _recompute(row)
            self.sale_rows.append(row)
        self.add_row(SALE)

    def clear(self) -> None:
        self.sale_rows.clear()
        self.return_rows.clear()

    def quantity_of(self, which: str, product_id: str) -> int:
        return sum(r.quantity for r in self._rows(which) if r.product_id == product_id and not r.is_placeholder)
