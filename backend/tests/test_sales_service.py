"""
Sale Transaction Engine tests.

Covers reservation on create, all-or-nothing failure, totals, commission,
completion/cancellation and the ONLINE packing hook.
"""

import re
from decimal import Decimal

import pytest

from stockroom.errors import (
    CashierNotFound,
    InsufficientStock,
    InvalidStateTransition,
    InvalidWarehouseForSaleType,
    ProductNotFound,
    SaleNotFound,
    ValidationError,
    WarehouseInactive,
    WarehouseNotFound,
)
from stockroom.models import InventoryRecord, Packing, Sale
from stockroom.services import ledger_service, sales_service
from stockroom.services.repositories import Repositories

from conftest import ledger_state


def retail(warehouse, *items, **extra):
    return {"warehouse_id": warehouse.id, "sale_type": "RETAIL", "items": list(items), **extra}


def line(product, quantity, **extra):
    return {"product_id": product.id, "quantity": quantity, **extra}


def test_create_sale_reserves_stock_and_stays_pending(db_session, product, store, stock):
    stock(product, store, 10)

    sale = sales_service.create_sale(retail(store, line(product, 10)))

    assert sale.status == "PENDING"
    assert re.match(r"^SALE-\d{14}-[0-9A-F]{6}$", sale.sale_number)
    assert ledger_state(product, store) == (Decimal("10"), Decimal("10"))
    assert ledger_service.get_available(product.id, store.id) == Decimal("0")


def test_second_sale_on_exhausted_stock_fails(db_session, product, store, stock):
    stock(product, store, 10)
    sales_service.create_sale(retail(store, line(product, 10)))

    with pytest.raises(InsufficientStock) as exc_info:
        sales_service.create_sale(retail(store, line(product, 1)))

    assert exc_info.value.items[0]["product_id"] == product.id
    assert db_session.query(Sale).count() == 1
    assert ledger_state(product, store) == (Decimal("10"), Decimal("10"))


def test_one_short_line_rejects_whole_sale(db_session, product, mug, store, stock):
    stock(product, store, 10)
    stock(mug, store, 2)
    before = {key: ledger_state(*key) for key in [(product, store), (mug, store)]}

    with pytest.raises(InsufficientStock) as exc_info:
        sales_service.create_sale(retail(store, line(product, 3), line(mug, 5)))

    failed = exc_info.value.items
    assert [item["product_id"] for item in failed] == [mug.id]
    assert failed[0]["lines"] == [1]
    assert failed[0]["available_quantity"] == "2.00"
    assert {key: ledger_state(*key) for key in before} == before
    assert db_session.query(Sale).count() == 0


def test_every_short_line_is_reported(db_session, product, mug, store, stock):
    stock(product, store, 1)

    with pytest.raises(InsufficientStock) as exc_info:
        sales_service.create_sale(retail(store, line(product, 3), line(mug, 1)))

    assert sorted(item["product_id"] for item in exc_info.value.items) == sorted([product.id, mug.id])
    assert db_session.query(InventoryRecord).filter_by(product_id=mug.id).count() == 0


def test_repeated_product_lines_are_checked_together(db_session, product, store, stock):
    stock(product, store, 5)

    with pytest.raises(InsufficientStock) as exc_info:
        sales_service.create_sale(retail(store, line(product, 3), line(product, 3)))

    assert exc_info.value.items[0]["lines"] == [0, 1]
    assert exc_info.value.items[0]["requested_quantity"] == "6"
    assert ledger_state(product, store) == (Decimal("5"), Decimal("0"))


def test_totals_use_catalog_price_and_discounts(db_session, product, mug, store, stock):
    stock(product, store, 10)
    stock(mug, store, 10)

    sale = sales_service.create_sale(retail(
        store,
        line(product, 2, discount_amount="1.50"),       # 2 * 10.00 - 1.50 = 18.50
        line(mug, 3, unit_price="2.75"),                # 3 * 2.75 = 8.25
        tax_amount="2.00",
        discount_amount="0.75",
    ))

    assert sale.subtotal == Decimal("26.75")
    assert sale.total_amount == Decimal("28.00")
    items = {item.product_id: item for item in sale.items}
    assert items[product.id].unit_price == Decimal("10.00")
    assert items[product.id].total_amount == Decimal("18.50")
    assert items[product.id].cost_price == Decimal("4.00")
    assert items[mug.id].unit_price == Decimal("2.75")


def test_cost_price_is_a_snapshot(db_session, product, store, stock):
    stock(product, store, 10)
    sale = sales_service.create_sale(retail(store, line(product, 1)))

    product.cost_price = Decimal("9.99")
    db_session.commit()

    db_session.refresh(sale)
    assert sale.items[0].cost_price == Decimal("4.00")


def test_wholesale_sale_earns_cashier_commission(db_session, product, store, cashier, stock):
    stock(product, store, 10)

    sale = sales_service.create_sale(
        {"warehouse_id": store.id, "sale_type": "WHOLESALE", "items": [line(product, 3)]},
        cashier.id,
    )

    # wholesale price 8.00 * 3 = 24.00, 5% commission
    assert sale.total_amount == Decimal("24.00")
    assert sale.commission_amount == Decimal("1.20")
    assert sale.cashier_id == cashier.id


def test_retail_sale_has_no_commission(db_session, product, store, cashier, stock):
    stock(product, store, 10)
    sale = sales_service.create_sale(retail(store, line(product, 3)), cashier.id)
    assert sale.commission_amount is None


def test_commission_needs_a_rate(db_session, product, store, manager, stock):
    stock(product, store, 10)
    sale = sales_service.create_sale(
        {"warehouse_id": store.id, "sale_type": "WHOLESALE", "items": [line(product, 1)]},
        manager.id,
    )
    assert sale.commission_amount is None


def test_commission_rounds_half_up():
    class _Cashier:
        commission_rate = Decimal("5.00")

    assert sales_service.calculate_commission("WHOLESALE", _Cashier(), Decimal("0.30")) == Decimal("0.02")
    assert sales_service.calculate_commission("ONLINE", _Cashier(), Decimal("100.00")) is None
    assert sales_service.calculate_commission("WHOLESALE", None, Decimal("100.00")) is None


def test_unknown_cashier_rejected(db_session, product, store, stock):
    stock(product, store, 10)
    with pytest.raises(CashierNotFound):
        sales_service.create_sale(retail(store, line(product, 1)), 9999)
    assert ledger_state(product, store) == (Decimal("10"), Decimal("0"))


def test_missing_and_inactive_products_reported_together(db_session, product, mug, store, stock):
    stock(product, store, 10)
    mug.is_active = False
    db_session.commit()

    with pytest.raises(ProductNotFound) as exc_info:
        sales_service.create_sale(retail(
            store,
            line(product, 1),
            line(mug, 1),
            {"product_id": 424242, "quantity": 1},
        ))

    reasons = {item["product_id"]: item["reason"] for item in exc_info.value.details["items"]}
    assert reasons == {mug.id: "inactive", 424242: "not_found"}
    assert ledger_state(product, store) == (Decimal("10"), Decimal("0"))


def test_warehouse_checks(db_session, product, store, web_shop, closed_store):
    with pytest.raises(WarehouseNotFound):
        sales_service.create_sale({"warehouse_id": 9999, "sale_type": "RETAIL", "items": [line(product, 1)]})

    with pytest.raises(WarehouseInactive):
        sales_service.create_sale(retail(closed_store, line(product, 1)))

    with pytest.raises(InvalidWarehouseForSaleType):
        sales_service.create_sale(retail(web_shop, line(product, 1)))

    with pytest.raises(InvalidWarehouseForSaleType):
        sales_service.create_sale({"warehouse_id": store.id, "sale_type": "ONLINE", "items": [line(product, 1)]})


@pytest.mark.parametrize("payload", [
    None,
    {"sale_type": "RETAIL", "items": []},
    {"sale_type": "BARTER", "items": [{"product_id": 1, "quantity": 1}]},
    {"sale_type": "RETAIL", "items": [{"product_id": 1, "quantity": 0}]},
    {"sale_type": "RETAIL", "items": [{"product_id": 1, "quantity": "1.005"}]},
    {"sale_type": "RETAIL", "items": [{"product_id": "1.5", "quantity": 1}]},
    {"sale_type": "RETAIL", "items": [{"product_id": 1, "quantity": 1, "unit_price": -1}]},
])
def test_invalid_input_rejected_before_any_mutation(db_session, store, payload):
    if payload is not None:
        payload = {"warehouse_id": store.id, **payload}
    with pytest.raises(ValidationError):
        sales_service.create_sale(payload)
    assert db_session.query(Sale).count() == 0


def test_discount_larger_than_line_rejected(db_session, product, store, stock):
    stock(product, store, 10)
    with pytest.raises(ValidationError):
        sales_service.create_sale(retail(store, line(product, 1, discount_amount="10.01")))
    with pytest.raises(ValidationError):
        sales_service.create_sale(retail(store, line(product, 1), discount_amount="10.01"))
    assert ledger_state(product, store) == (Decimal("10"), Decimal("0"))


def test_complete_sale_commits_reservations(db_session, product, mug, store, stock):
    stock(product, store, 10)
    stock(mug, store, 10)
    sale = sales_service.create_sale(retail(store, line(product, 4), line(mug, 1), line(product, 1)))

    completed = sales_service.complete_sale(sale.id)

    assert completed.status == "COMPLETED"
    assert completed.completed_at is not None
    assert ledger_state(product, store) == (Decimal("5"), Decimal("0"))
    assert ledger_state(mug, store) == (Decimal("9"), Decimal("0"))


def test_cancel_pending_sale_restores_available(db_session, product, store, stock):
    stock(product, store, 10)
    before = ledger_service.get_available(product.id, store.id)
    sale = sales_service.create_sale(retail(store, line(product, 7)))

    cancelled = sales_service.cancel_sale(sale.id)

    assert cancelled.status == "CANCELLED"
    assert cancelled.cancelled_at is not None
    assert ledger_service.get_available(product.id, store.id) == before
    assert ledger_state(product, store) == (Decimal("10"), Decimal("0"))


def test_terminal_sales_reject_further_transitions(db_session, product, store, stock):
    stock(product, store, 10)
    done = sales_service.create_sale(retail(store, line(product, 2)))
    sales_service.complete_sale(done.id)
    gone = sales_service.create_sale(retail(store, line(product, 2)))
    sales_service.cancel_sale(gone.id)

    with pytest.raises(InvalidStateTransition):
        sales_service.complete_sale(done.id)
    with pytest.raises(InvalidStateTransition):
        sales_service.cancel_sale(done.id)
    with pytest.raises(InvalidStateTransition) as exc_info:
        sales_service.cancel_sale(gone.id)

    assert exc_info.value.details["current_status"] == "CANCELLED"
    # No double release / double commit
    assert ledger_state(product, store) == (Decimal("8"), Decimal("0"))


def test_unknown_sale(db_session):
    with pytest.raises(SaleNotFound):
        sales_service.complete_sale(12345)
    with pytest.raises(SaleNotFound):
        sales_service.get_sale(12345)


def test_online_sale_enqueues_packing(db_session, product, web_shop, stock):
    stock(product, web_shop, 5)

    sale = sales_service.create_sale({
        "warehouse_id": web_shop.id,
        "sale_type": "ONLINE",
        "items": [line(product, 2)],
        "customer_name": "Ada",
    })

    packing = db_session.query(Packing).filter_by(sale_id=sale.id).one()
    assert packing.status == "PENDING"
    assert sale.packing.id == packing.id


def test_physical_sale_has_no_packing(db_session, product, store, stock):
    stock(product, store, 5)
    sale = sales_service.create_sale(retail(store, line(product, 1)))
    assert sale.packing is None


def test_list_sales_filters(db_session, product, store, depot, stock):
    stock(product, store, 10)
    stock(product, depot, 10)
    first = sales_service.create_sale(retail(store, line(product, 1)))
    sales_service.create_sale(retail(depot, line(product, 1)))
    sales_service.complete_sale(first.id)

    assert [s.id for s in sales_service.list_sales(status="COMPLETED")] == [first.id]
    assert [s.id for s in sales_service.list_sales(warehouse_id=store.id)] == [first.id]
    assert len(sales_service.list_sales()) == 2


class _InMemory:
    def __init__(self, rows):
        self.rows = {row.id: row for row in rows}

    def find_by_id(self, id_):
        return self.rows.get(id_)


def test_injected_repositories_are_used_for_lookups(db_session, product, store, stock):
    stock(product, store, 10)

    class _Product:
        id = product.id
        is_active = True
        retail_price = Decimal("1.00")
        wholesale_price = Decimal("1.00")
        cost_price = Decimal("0.50")

    repos = Repositories(products=_InMemory([_Product()]))
    sale = sales_service.create_sale(retail(store, line(product, 2)), repos=repos)

    assert sale.total_amount == Decimal("2.00")
    assert sale.items[0].cost_price == Decimal("0.50")
