import pytest

from posbill.domain.errors import PartialSaveError, RemoteServiceError, ValidationError
from posbill.domain.models import SALE
from posbill.services.bill_list_service import BillListService
from posbill.services.billing_service import BillingSession
from posbill.services.catalog_service import CatalogService
from posbill.services.reconciliation_service import BillReconciliationService
from posbill.services.scan_service import FACING_REAR, SOURCE_MANUAL, ScanEvent

from conftest import FakeBillingRepo, make_product


def _session(repo, customer_id="cust-1", existing_bill_id=None, **kw):
    messages = []
    bills = BillListService(repo)
    if existing_bill_id:
        bills.refresh(customer_id)
    session = BillingSession(
        CatalogService(repo),
        BillReconciliationService(repo),
        bills,
        customer_id,
        existing_bill_id=existing_bill_id,
        notify=lambda msg, kind: messages.append((kind, msg)),
        **kw,
    )
    return session, messages


def _existing_bill():
    return {
        "_id": "b-1",
        "billNo": "B-0007",
        "customerId": "cust-1",
        "customerName": "Asha Rao",
        "paymentStatus": "Unpaid",
        "items": [
            {"_id": "it-1", "productId": {"_id": "p-A", "productName": "Item A"}, "itemCode": "A",
             "itemName": "Item A", "qty": 3, "rate": 100, "discountPercent": 10, "gstPercent": 18, "batch": ""},
        ],
    }


def test_session_requires_customer():
    repo = FakeBillingRepo()

    with pytest.raises(ValidationError):
        _session(repo, customer_id="")


def test_new_session_starts_with_one_blank_row():
    session, _ = _session(FakeBillingRepo())

    rows = session.ledger.rows(SALE)
    assert len(rows) == 1 and rows[0].is_placeholder
    assert session.keyboard.active


def test_keyboard_scan_fills_placeholder_and_appends_new_one():
    repo = FakeBillingRepo(products=[make_product("X123", mrp=100, discount=10, gst=18)])
    session, messages = _session(repo)

    for i, ch in enumerate("x123"):
        session.keyboard.on_key(ch, timestamp=i * 0.01)
    session.keyboard.on_key("Return", timestamp=0.05)

    rows = session.ledger.rows(SALE)
    assert rows[0].item_code == "X123"
    assert rows[0].quantity == 1
    assert rows[0].taxable_amount == 90.0
    assert rows[-1].is_placeholder and len(rows) == 2
    assert messages == []


def test_unknown_code_notifies_and_leaves_ledger_alone():
    repo = FakeBillingRepo(products=[make_product("X123")])
    session, messages = _session(repo)

    session.manual.submit("NOPE")

    assert messages == [("error", "Product not found: NOPE")]
    assert len(session.ledger.rows(SALE)) == 1


def test_repeat_scan_uses_next_row_by_default():
    repo = FakeBillingRepo(products=[make_product("X123")])
    session, _ = _session(repo)

    session.manual.submit("X123")
    session.manual.submit("X123")

    filled = [r for r in session.ledger.rows(SALE) if not r.is_placeholder]
    assert [(r.item_code, r.quantity) for r in filled] == [("X123", 1), ("X123", 1)]


def test_repeat_scan_increments_when_enabled():
    repo = FakeBillingRepo(products=[make_product("X123")])
    session, _ = _session(repo, increment_repeat_scans=True)

    session.manual.submit("X123")
    session.manual.submit("x123")

    filled = [r for r in session.ledger.rows(SALE) if not r.is_placeholder]
    assert [(r.item_code, r.quantity) for r in filled] == [("X123", 2)]


def test_save_clears_refreshes_and_closes():
    repo = FakeBillingRepo(products=[make_product("X123")])
    session, _ = _session(repo)
    session.manual.submit("X123")

    result = session.save()

    assert result.bill_id == "bill-1"
    assert repo.ops()[-2:] == ["create_bill", "get_bills_by_customer"]
    assert session.closed
    assert session.ledger.is_empty()
    assert not session.keyboard.active
    assert [r.item_code for r in session.bill_list.rows] == ["X123"]


def test_failed_save_keeps_session_open_with_rows():
    repo = FakeBillingRepo(products=[make_product("X123")])
    repo.fail_on["create_bill"] = "Server down"
    session, _ = _session(repo)
    session.manual.submit("X123")

    with pytest.raises(Exception, match="Server down"):
        session.save()

    assert not session.closed
    assert session.ledger.rows(SALE)[0].item_code == "X123"


def test_retry_after_failed_return_updates_the_stored_bill():
    repo = FakeBillingRepo(products=[make_product("X123")])
    session, _ = _session(repo)
    session.manual.submit("X123")
    row = session.ledger.sale_rows[0]
    session.ledger.set_field(row.id, "quantity", 3)
    session.ledger.return_item(row.id, 1)
    repo.fail_on["create_sales_return"] = "Return service unavailable"

    with pytest.raises(PartialSaveError, match="Return service unavailable"):
        session.save()

    assert not session.closed
    assert session.existing_bill_id == "bill-1"
    assert session.bill_no == "B-bill-1"

    del repo.fail_on["create_sales_return"]
    result = session.save()

    assert repo.ops().count("create_bill") == 1
    assert repo.ops()[-3:] == ["update_bill", "create_sales_return", "get_bills_by_customer"]
    update = next(c for c in repo.calls if c[0] == "update_bill")
    assert update[1] == "bill-1"
    assert update[2]["billNo"] == "B-bill-1"
    assert [(i["itemCode"], i["qty"]) for i in update[2]["items"]] == [("X123", 2)]
    assert result.bill_id == "bill-1"
    assert session.closed


def test_retry_after_compensated_save_creates_a_fresh_bill():
    repo = FakeBillingRepo(products=[make_product("X123")])
    bills = BillListService(repo)
    session = BillingSession(
        CatalogService(repo), BillReconciliationService(repo, compensate_partial_saves=True), bills, "cust-1",
    )
    session.manual.submit("X123")
    session.ledger.return_item(session.ledger.sale_rows[0].id, 1)
    session.manual.submit("X123")
    repo.fail_on["create_sales_return"] = "boom"

    with pytest.raises(RemoteServiceError) as exc:
        session.save()

    assert not isinstance(exc.value, PartialSaveError)
    assert session.existing_bill_id is None
    assert "bill-1" not in repo.bills


def test_refresh_failure_after_save_only_warns():
    repo = FakeBillingRepo(products=[make_product("X123")])
    session, messages = _session(repo)
    session.manual.submit("X123")
    repo.fail_on["get_bills_by_customer"] = "timeout"

    session.save()

    assert session.closed
    assert messages and messages[0][0] == "warn"


def test_scans_after_close_are_ignored():
    repo = FakeBillingRepo(products=[make_product("X123")])
    session, _ = _session(repo)
    session.close()
    session.close()

    assert session.handle_scan(ScanEvent("X123", SOURCE_MANUAL)) is None
    with pytest.raises(ValidationError):
        session.save()


def test_edit_existing_bill_with_partial_return():
    repo = FakeBillingRepo(products=[make_product("A")], bills=[_existing_bill()])
    session, _ = _session(repo, existing_bill_id="b-1")

    seeded = session.ledger.rows(SALE)
    assert session.bill_no == "B-0007"
    assert seeded[0].product_id == "p-A"
    assert seeded[0].taxable_amount == 270.0
    assert seeded[-1].is_placeholder

    session.ledger.return_item(seeded[0].id, 1)
    result = session.save()

    assert repo.ops()[-3:] == ["update_bill", "create_sales_return", "get_bills_by_customer"]
    update = next(c for c in repo.calls if c[0] == "update_bill")
    assert update[1] == "b-1"
    assert [(i["itemCode"], i["qty"]) for i in update[2]["items"]] == [("A", 2)]
    ret = next(c for c in repo.calls if c[0] == "create_sales_return")[1]
    assert ret["billId"] == "b-1"
    assert ret["refundAmount"] == 106.2
    assert result.bill_id == "b-1"


def test_camera_failure_notifies_and_keyboard_still_works():
    from posbill.domain.errors import CameraError

    repo = FakeBillingRepo(products=[make_product("X123")])
    session, messages = _session(repo)

    def open_camera(facing):
        raise CameraError(f"{facing} blocked")

    scanner = session.attach_camera(open_camera, lambda frame: None)

    assert scanner.state == scanner.ERROR
    assert messages[0][0] == "error"
    assert FACING_REAR in messages[0][1]

    session.manual.submit("X123")
    assert session.ledger.rows(SALE)[0].item_code == "X123"
