from dataclasses import asdict

import pytest

from posbill.domain.errors import NotFoundError, ValidationError
from posbill.domain.ledger import LineItemLedger
from posbill.domain.models import RETURN, SALE, BillRow

from conftest import make_product


def _ledger_with(qty: int = 5, product=None):
    ledger = LineItemLedger()
    row = ledger.add_row(SALE)
    ledger.select_product(row.id, product or make_product("P1"))
    ledger.set_field(row.id, "quantity", qty)
    return ledger, row


def _snapshot(row):
    d = asdict(row)
    d.pop("id")
    d.pop("sno")
    return d


def test_select_product_fills_row_and_appends_placeholder():
    ledger = LineItemLedger()
    row = ledger.add_row(SALE)
    ledger.select_product(row.id, make_product("P1", mrp=100, discount=10, gst=18))

    assert row.quantity == 1
    assert row.taxable_amount == 90.0
    assert row.company_name == "Lakme"
    assert len(ledger.sale_rows) == 2
    assert ledger.sale_rows[-1].is_placeholder


def test_select_product_keeps_user_quantity():
    ledger = LineItemLedger()
    row = ledger.add_row(SALE)
    ledger.set_field(row.id, "quantity", "4")
    ledger.select_product(row.id, make_product("P1", mrp=10, discount=0, gst=0))

    assert row.quantity == 4
    assert row.taxable_amount == 40.0


def test_set_field_recomputes_only_for_priced_fields():
    ledger, row = _ledger_with(qty=2, product=make_product("P1", mrp=100, discount=10, gst=18))
    assert row.taxable_amount == 180.0

    before = _snapshot(row)
    ledger.set_field(row.id, "batch", row.batch)
    assert _snapshot(row) == before

    ledger.set_field(row.id, "batch", "LOT-9")
    assert row.taxable_amount == 180.0

    ledger.set_field(row.id, "discount_percent", "not a number")
    assert row.discount_percent == 0.0
    assert row.taxable_amount == 200.0


def test_set_field_rejects_derived_field():
    ledger, row = _ledger_with()

    with pytest.raises(ValidationError):
        ledger.set_field(row.id, "taxable_amount", 1)


def test_partial_return_splits_quantity():
    ledger, row = _ledger_with(qty=5, product=make_product("P", mrp=100, discount=10, gst=18))

    returned = ledger.return_item(row.id, 2)

    assert row.quantity == 3
    assert row.taxable_amount == 270.0
    assert ledger.return_rows == [returned]
    assert returned.quantity == 2
    assert returned.taxable_amount == 180.0
    assert returned.id != row.id
    assert returned.product_id == row.product_id


def test_full_return_moves_row():
    ledger, row = _ledger_with(qty=5)

    returned = ledger.return_item(row.id, 5)

    assert all(r.product_id != row.product_id for r in ledger.sale_rows)
    assert len(ledger.return_rows) == 1
    assert returned.quantity == 5
    assert returned.taxable_amount == row.taxable_amount


def test_over_quantity_return_is_rejected_without_mutation():
    ledger, row = _ledger_with(qty=3)
    sale_before = [_snapshot(r) for r in ledger.sale_rows]

    with pytest.raises(ValidationError):
        ledger.return_item(row.id, 4)
    with pytest.raises(ValidationError):
        ledger.return_item(row.id, 0)
    with pytest.raises(ValidationError):
        ledger.return_item(row.id, 1.5)

    assert [_snapshot(r) for r in ledger.sale_rows] == sale_before
    assert ledger.return_rows == []


def test_placeholder_cannot_be_returned():
    ledger, _row = _ledger_with(qty=3)
    placeholder = ledger.sale_rows[-1]

    with pytest.raises(ValidationError):
        ledger.return_item(placeholder.id, 1)


@pytest.mark.parametrize("qty", [1, 2, 5])
def test_return_then_undo_restores_sale_row(qty):
    ledger, row = _ledger_with(qty=5, product=make_product("P", mrp=99.99, discount=7.5, gst=12))
    before = _snapshot(row)

    returned = ledger.return_item(row.id, qty)
    restored = ledger.undo_return(returned.id)

    assert _snapshot(restored) == before
    assert ledger.return_rows == []
    assert sum(1 for r in ledger.sale_rows if r.product_id == row.product_id) == 1
    assert ledger.sale_rows[-1].is_placeholder


def test_undo_after_partial_returns_merges_into_existing_row():
    ledger, row = _ledger_with(qty=6)
    first = ledger.return_item(row.id, 2)
    second = ledger.return_item(row.id, 3)

    ledger.undo_return(first.id)
    assert row.quantity == 3
    ledger.undo_return(second.id)

    assert row.quantity == 6
    assert ledger.quantity_of(RETURN, row.product_id) == 0


def test_product_never_positive_in_both_lists_after_return_undo_pair():
    ledger, row = _ledger_with(qty=4)
    pid = row.product_id

    returned = ledger.return_item(row.id, 4)
    assert ledger.quantity_of(SALE, pid) == 0
    assert ledger.quantity_of(RETURN, pid) == 4

    ledger.undo_return(returned.id)
    assert ledger.quantity_of(SALE, pid) == 4
    assert ledger.quantity_of(RETURN, pid) == 0


def test_row_ids_unique_across_lists_and_never_reused():
    ledger, row = _ledger_with(qty=5)
    ledger.return_item(row.id, 1)
    ledger.remove_row(SALE, ledger.sale_rows[-1].id)
    fresh = ledger.add_row(SALE)
    ledger.clear()
    after_clear = ledger.add_row(SALE)

    seen = {row.id, fresh.id, after_clear.id}
    assert len(seen) == 3


def test_serial_numbers_stay_contiguous():
    ledger = LineItemLedger()
    ledger.add_row(SALE)
    a = ledger.fill_placeholder(make_product("A"))
    b = ledger.fill_placeholder(make_product("B"))
    c = ledger.fill_placeholder(make_product("C"))
    ledger.set_field(c.id, "quantity", 2)

    ledger.remove_row(SALE, a.id)
    assert [r.sno for r in ledger.sale_rows] == [1, 2, 3]

    first = ledger.return_item(b.id, 1)
    second = ledger.return_item(c.id, 1)
    assert [r.sno for r in ledger.sale_rows] == [1, 2]
    assert [r.sno for r in ledger.return_rows] == [1, 2]

    ledger.undo_return(first.id)
    assert [r.sno for r in ledger.sale_rows] == [1, 2, 3]
    assert ledger.return_rows == [second]
    assert second.sno == 1


def test_remove_row_unknown_id():
    ledger = LineItemLedger()

    with pytest.raises(NotFoundError):
        ledger.remove_row(SALE, "nope")


def test_summary_reports_refund_when_returns_exceed_sales():
    ledger, row = _ledger_with(qty=1, product=make_product("P", mrp=100, discount=0, gst=0))
    ledger.return_item(row.id, 1)

    s = ledger.summary()

    assert s.sale.total == 0.0
    assert s.returns.total == 100.0
    assert s.net_payable == -100.0
    assert s.is_refund
    assert s.refund_amount == 100.0
    assert s.amount_due == 0.0


def test_summary_amount_due_nets_out_returns():
    ledger, row = _ledger_with(qty=5, product=make_product("P", mrp=100, discount=10, gst=18))
    ledger.return_item(row.id, 2)

    s = ledger.summary()

    assert s.sale.total == 318.6
    assert s.returns.total == 212.4
    assert s.amount_due == pytest.approx(106.2)
    assert s.gross_total == 100.0


def test_load_rows_seeds_sale_list_and_placeholder():
    ledger = LineItemLedger()
    ledger.load_rows([
        BillRow(id="i1", bill_id="b1", bill_no="B-1", sno="01.", ad_item_code="AD0001", payment_status="Unpaid",
                product_id="p-1", item_code="A1", mrp=50, qty=2, discount_percent=0, gst_percent=18, lot="N/A"),
    ])

    assert len(ledger.sale_rows) == 2
    seeded = ledger.sale_rows[0]
    assert seeded.batch == ""
    assert seeded.taxable_amount == 100.0
    assert ledger.sale_rows[1].is_placeholder
