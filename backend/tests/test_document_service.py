import pytest

from stockroom.errors import DocumentNumberError
from stockroom.services import document_service, sales_service

from conftest import ledger_state


def _sell_one(warehouse, product):
    return sales_service.create_sale({
        "warehouse_id": warehouse.id,
        "sale_type": "RETAIL",
        "items": [{"product_id": product.id, "quantity": 1}],
    })


def test_prefix_comes_from_config(app, db_session):
    app.config["TRANSFER_NUMBER_PREFIX"] = "XFER"
    try:
        assert document_service.next_document_number("TRANSFER").startswith("XFER-")
    finally:
        app.config["TRANSFER_NUMBER_PREFIX"] = "TRANS"


def test_collision_is_retried(db_session, product, store, stock, monkeypatch):
    stock(product, store, 5)
    taken = _sell_one(store, product).sale_number

    candidates = iter([taken, taken, "SALE-FRESH"])
    monkeypatch.setattr(document_service, "_candidate", lambda prefix: next(candidates))

    assert _sell_one(store, product).sale_number == "SALE-FRESH"


def test_exhausted_attempts_raise(db_session, product, store, stock, monkeypatch):
    stock(product, store, 5)
    taken = _sell_one(store, product).sale_number
    monkeypatch.setattr(document_service, "_candidate", lambda prefix: taken)

    with pytest.raises(DocumentNumberError):
        _sell_one(store, product)

    # Reservation of the failed sale was rolled back
    assert ledger_state(product, store)[1] == 1


def test_unknown_document_type(app, db_session):
    with pytest.raises(DocumentNumberError):
        document_service.next_document_number("INVOICE")
