"""
Inventory ledger tests: reserve / release / commit / adjust / transfer_stock.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from stockroom.errors import (
    BelowReserved,
    InsufficientStock,
    InvariantViolation,
    ProductNotFound,
    ValidationError,
    WarehouseInactive,
    WarehouseNotFound,
)
from stockroom.services import inventory_service, ledger_service
from stockroom.services.concurrency import run_with_retry

from conftest import ledger_state


def test_get_available_is_zero_for_missing_row(db_session, product, store):
    assert ledger_service.get_available(product.id, store.id) == Decimal("0")
    assert ledger_service.get_record(product.id, store.id) is None


def test_reserve_holds_stock_without_touching_quantity(db_session, product, store, stock):
    stock(product, store, 10)

    ledger_service.reserve(product.id, store.id, 4)

    assert ledger_state(product, store) == (Decimal("10"), Decimal("4"))
    assert ledger_service.get_available(product.id, store.id) == Decimal("6")


def test_reserve_beyond_available_fails_and_leaves_row_unchanged(db_session, product, store, stock):
    stock(product, store, 10)
    ledger_service.reserve(product.id, store.id, 8)

    with pytest.raises(InsufficientStock) as exc_info:
        ledger_service.reserve(product.id, store.id, 3)

    item = exc_info.value.items[0]
    assert item["product_id"] == product.id
    assert item["warehouse_id"] == store.id
    assert item["available_quantity"] == "2.00"
    assert ledger_state(product, store) == (Decimal("10"), Decimal("8"))


def test_reserve_on_missing_row_is_insufficient_stock(db_session, product, store):
    with pytest.raises(InsufficientStock):
        ledger_service.reserve(product.id, store.id, 1)
    assert ledger_service.get_record(product.id, store.id) is None


@pytest.mark.parametrize("bad", [0, -1, "abc", None, True])
def test_reserve_rejects_non_positive_or_non_numeric(db_session, product, store, stock, bad):
    stock(product, store, 10)
    with pytest.raises(ValidationError):
        ledger_service.reserve(product.id, store.id, bad)
    assert ledger_state(product, store) == (Decimal("10"), Decimal("0"))


def test_release_drops_hold_and_floors_at_zero(db_session, product, store, stock):
    stock(product, store, 10)
    ledger_service.reserve(product.id, store.id, 3)

    ledger_service.release(product.id, store.id, 2)
    assert ledger_state(product, store) == (Decimal("10"), Decimal("1"))

    ledger_service.release(product.id, store.id, 5)
    assert ledger_state(product, store) == (Decimal("10"), Decimal("0"))


def test_release_on_missing_row_is_invariant_violation(db_session, product, store):
    with pytest.raises(InvariantViolation):
        ledger_service.release(product.id, store.id, 1)


def test_commit_reservation_deducts_quantity_and_hold(db_session, product, store, stock):
    stock(product, store, 10)
    ledger_service.reserve(product.id, store.id, 4)

    ledger_service.commit_reservation(product.id, store.id, 4)

    assert ledger_state(product, store) == (Decimal("6"), Decimal("0"))


def test_commit_more_than_reserved_is_invariant_violation(db_session, product, store, stock):
    stock(product, store, 10)
    ledger_service.reserve(product.id, store.id, 2)

    with pytest.raises(InvariantViolation):
        ledger_service.commit_reservation(product.id, store.id, 3)

    assert ledger_state(product, store) == (Decimal("10"), Decimal("2"))


def test_quantity_changes_only_through_commits(db_session, product, store, stock):
    stock(product, store, 100)
    steps = [
        ("reserve", 10), ("reserve", 5), ("release", 3), ("commit", 7),
        ("reserve", 20), ("commit", 15), ("release", 10), ("reserve", 1),
    ]
    committed = Decimal("0")
    for op, qty in steps:
        if op == "reserve":
            ledger_service.reserve(product.id, store.id, qty)
        elif op == "release":
            ledger_service.release(product.id, store.id, qty)
        else:
            ledger_service.commit_reservation(product.id, store.id, qty)
            committed += qty

        quantity, reserved = ledger_state(product, store)
        assert quantity == Decimal("100") - committed
        assert Decimal("0") <= reserved <= quantity


def test_fractional_quantities_do_not_drift(db_session, product, store, stock):
    stock(product, store, "1.00")
    for _ in range(10):
        ledger_service.reserve(product.id, store.id, 0.1)

    assert ledger_state(product, store) == (Decimal("1.00"), Decimal("1.00"))
    assert ledger_service.get_available(product.id, store.id) == Decimal("0")


def test_commit_false_leaves_transaction_to_caller(db_session, product, store, stock):
    stock(product, store, 10)

    ledger_service.reserve(product.id, store.id, 4, commit=False)
    db_session.rollback()

    assert ledger_state(product, store) == (Decimal("10"), Decimal("0"))


def test_adjust_sets_quantity_and_creates_row(db_session, product, store):
    record = ledger_service.adjust(product.id, store.id, 12)
    assert record.quantity == Decimal("12")
    assert ledger_state(product, store) == (Decimal("12"), Decimal("0"))

    ledger_service.adjust(product.id, store.id, 0)
    assert ledger_state(product, store) == (Decimal("0"), Decimal("0"))


def test_adjust_cannot_cut_into_reserved_stock(db_session, product, store, stock):
    stock(product, store, 10)
    ledger_service.reserve(product.id, store.id, 6)

    with pytest.raises(BelowReserved) as exc_info:
        ledger_service.adjust(product.id, store.id, 5)

    assert exc_info.value.details["items"][0]["reserved_quantity"] == "6.00"
    assert ledger_state(product, store) == (Decimal("10"), Decimal("6"))

    ledger_service.adjust(product.id, store.id, 6)
    assert ledger_state(product, store) == (Decimal("6"), Decimal("6"))


def test_adjust_rejects_negative(db_session, product, store):
    with pytest.raises(ValidationError):
        ledger_service.adjust(product.id, store.id, -1)


def test_transfer_stock_conserves_total(db_session, product, store, depot, stock):
    stock(product, store, 20)
    ledger_service.reserve(product.id, store.id, 5)

    ledger_service.transfer_stock(product.id, store.id, depot.id, 5)

    assert ledger_state(product, store) == (Decimal("15"), Decimal("0"))
    assert ledger_state(product, depot) == (Decimal("5"), Decimal("0"))


def test_transfer_stock_short_shipment_releases_remainder(db_session, product, store, depot, stock):
    stock(product, store, 20)
    ledger_service.reserve(product.id, store.id, 5)

    ledger_service.transfer_stock(product.id, store.id, depot.id, 3, reserved=5)

    assert ledger_state(product, store) == (Decimal("17"), Decimal("0"))
    assert ledger_state(product, depot) == (Decimal("3"), Decimal("0"))


def test_transfer_stock_without_reservation_applies_nothing(db_session, product, store, depot, stock):
    stock(product, store, 20)

    with pytest.raises(InvariantViolation):
        ledger_service.transfer_stock(product.id, store.id, depot.id, 5)

    assert ledger_state(product, store) == (Decimal("20"), Decimal("0"))
    assert ledger_service.get_record(product.id, depot.id) is None


def test_transfer_stock_same_warehouse_rejected(db_session, product, store, stock):
    stock(product, store, 20)
    with pytest.raises(ValidationError):
        ledger_service.transfer_stock(product.id, store.id, store.id, 5)


def test_lock_records_returns_keys_in_ascending_order(db_session, product, mug, store, depot, stock):
    stock(product, depot, 1)
    stock(mug, store, 1)

    keys = [(mug.id, store.id), (product.id, depot.id), (product.id, store.id)]
    locked = ledger_service.lock_records(keys)

    assert list(locked) == sorted(keys)
    assert locked[(product.id, store.id)] is None
    db_session.rollback()


def test_audit_ledger_is_empty_for_consistent_rows(db_session, product, mug, store, stock):
    stock(product, store, 10)
    stock(mug, store, 3)
    ledger_service.reserve(product.id, store.id, 10)

    assert inventory_service.audit_ledger() == []


def test_low_stock_lists_rows_at_or_below_minimum(db_session, product, mug, store, depot, stock):
    stock(product, store, 5)   # minimum_stock_level 5 -> low
    stock(product, depot, 6)
    stock(mug, store, 1)       # minimum 0 -> fine

    low = inventory_service.list_low_stock()
    assert [(r.product_id, r.warehouse_id) for r in low] == [(product.id, store.id)]

    assert inventory_service.list_low_stock(warehouse_id=depot.id) == []


def test_sub_cent_quantities_are_rejected_not_rounded(db_session, product, store, depot, stock):
    stock(product, store, "1.00")

    with pytest.raises(ValidationError):
        ledger_service.reserve(product.id, store.id, "0.004")
    with pytest.raises(ValidationError):
        ledger_service.adjust(product.id, store.id, "10.005")
    with pytest.raises(ValidationError):
        ledger_service.receive(product.id, store.id, 0.125)

    ledger_service.reserve(product.id, store.id, "0.50")
    with pytest.raises(ValidationError):
        ledger_service.transfer_stock(product.id, store.id, depot.id, "0.499", reserved="0.50")

    assert ledger_state(product, store) == (Decimal("1.00"), Decimal("0.50"))
    assert ledger_service.get_record(product.id, depot.id) is None


def test_quantity_beyond_column_range_is_rejected(db_session, product, store):
    with pytest.raises(ValidationError):
        ledger_service.receive(product.id, store.id, "10000000000")
    assert ledger_service.get_record(product.id, store.id) is None


def test_adjust_requires_known_product_and_active_warehouse(db_session, product, store, closed_store):
    with pytest.raises(ProductNotFound):
        ledger_service.adjust(99999, store.id, 5)
    with pytest.raises(WarehouseNotFound):
        ledger_service.adjust(product.id, 99999, 5)
    with pytest.raises(WarehouseInactive):
        ledger_service.adjust(product.id, closed_store.id, 5)

    assert ledger_service.get_record(99999, store.id) is None
    assert ledger_service.get_record(product.id, 99999) is None
    assert ledger_service.get_record(product.id, closed_store.id) is None


def test_run_with_retry_retries_duplicate_row_insert(db_session, product, store):
    attempts = []

    def create_row():
        attempts.append(1)
        if len(attempts) == 1:
            raise IntegrityError("INSERT INTO inventory", {}, Exception("UNIQUE constraint failed"))
        return ledger_service.receive(product.id, store.id, 2)

    record = run_with_retry(create_row, backoff_base=0)

    assert len(attempts) == 2
    assert record.quantity == Decimal("2")
