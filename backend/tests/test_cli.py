from decimal import Decimal

from stockroom.models import InventoryRecord, Product, User, Warehouse
from stockroom.services import ledger_service

from conftest import ledger_state


def test_seed_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=['system', 'seed'])
    assert first.exit_code == 0, first.output
    assert 'DONE Seed complete' in first.output

    second = runner.invoke(args=['system', 'seed'])
    assert second.exit_code == 0, second.output
    assert 'into 0 ledger row(s)' in second.output

    assert db_session.query(Warehouse).count() == 3
    assert db_session.query(User).count() == 3
    assert db_session.query(Product).count() == 3
    assert db_session.query(InventoryRecord).count() == 9


def test_audit_reports_consistent_ledger(app, db_session, product, store, stock):
    stock(product, store, 4)
    ledger_service.reserve(product.id, store.id, 4)

    result = app.test_cli_runner().invoke(args=['inventory', 'audit'])

    assert result.exit_code == 0
    assert 'PASS Ledger is consistent' in result.output


def test_adjust_command(app, db_session, product, store, stock):
    stock(product, store, 4)
    ledger_service.reserve(product.id, store.id, 3)
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        'inventory', 'adjust', '--product-id', str(product.id), '--warehouse-id', str(store.id), '--quantity', '8',
    ])
    assert result.exit_code == 0, result.output
    assert ledger_state(product, store) == (Decimal("8"), Decimal("3"))

    result = runner.invoke(args=[
        'inventory', 'adjust', '--product-id', str(product.id), '--warehouse-id', str(store.id), '--quantity', '2',
    ])
    assert result.exit_code == 1
    assert 'BELOW_RESERVED' in result.output
    assert ledger_state(product, store) == (Decimal("8"), Decimal("3"))


def test_adjust_command_rejects_unknown_product(app, db_session, store):
    result = app.test_cli_runner().invoke(args=[
        'inventory', 'adjust', '--product-id', '99999', '--warehouse-id', str(store.id), '--quantity', '5',
    ])

    assert result.exit_code == 1
    assert 'PRODUCT_NOT_FOUND' in result.output
    assert db_session.query(InventoryRecord).count() == 0
