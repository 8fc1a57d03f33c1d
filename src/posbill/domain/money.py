from __future__ import annotations

from dataclasses import dataclass


def to_number(value: object) -> float:
    """Coerce form input to a float; anything unparsable counts as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        n = float(value)
    else:
        try:
            n = float(str(value).strip())
        except ValueError:
            return 0.0
    # NaN and infinities are not prices
    if n != n or n in (float("inf"), float("-inf")):
        return 0.0
    return n


def to_quantity(value: object) -> int:
    return int(to_number(value))


@dataclass(frozen=True)
class MoneyBreakdown:
    gross: float
    discount_amount: float
    taxable_amount: float
    tax_amount: float
    total: float

    @property
    def cgst(self) -> float:
        return round(self.tax_amount / 2, 2)

    @property
    def sgst(self) -> float:
        return round(self.tax_amount / 2, 2)


def compute(unit_price: object, quantity: object, discount_percent: object, gst_percent: object) -> MoneyBreakdown:
    """
    gross    = price * qty
    taxable  = gross - gross * discount% / 100
    tax      = 2 * (taxable * gst% / 200)     (CGST + SGST)
    total    = taxable + tax

    Rounded to 2 decimals on the way out. Never raises.
    """
    price = to_number(unit_price)
    qty = to_number(quantity)
    discount = to_number(discount_percent)
    gst = to_number(gst_percent)

    gross = price * qty
    discount_amount = gross * discount / 100
    taxable = gross - discount_amount
    half_gst = taxable * gst / 200
    tax_amount = half_gst * 2
    total = taxable + tax_amount

    return MoneyBreakdown(
        gross=round(gross, 2),
        discount_amount=round(discount_amount, 2),
        taxable_amount=round(taxable, 2),
        tax_amount=round(tax_amount, 2),
        total=round(total, 2),
    )
