"""
Pytest fixtures for the stockroom backend tests.

Provides the test database, catalog/warehouse/staff fixtures, a stock helper
and the test client.
"""

from decimal import Decimal

import pytest
from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Product, User, Warehouse
from stockroom.models.catalog import WAREHOUSE_TYPE_ONLINE, WAREHOUSE_TYPE_PHYSICAL
from stockroom.services import ledger_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _warehouse(db_session, name, type_, is_active=True):
    warehouse = Warehouse(name=name, type=type_, is_active=is_active)
    db_session.add(warehouse)
    db_session.commit()
    return warehouse


@pytest.fixture(scope='function')
def store(db_session):
    """Physical warehouse taking RETAIL/WHOLESALE sales."""
    return _warehouse(db_session, "Main Store", WAREHOUSE_TYPE_PHYSICAL)


@pytest.fixture(scope='function')
def depot(db_session):
    """Second physical warehouse (transfer counterpart)."""
    return _warehouse(db_session, "Back Warehouse", WAREHOUSE_TYPE_PHYSICAL)


@pytest.fixture(scope='function')
def web_shop(db_session):
    """Online warehouse; its sales go through packing."""
    return _warehouse(db_session, "Web Shop", WAREHOUSE_TYPE_ONLINE)


@pytest.fixture(scope='function')
def closed_store(db_session):
    return _warehouse(db_session, "Closed Store", WAREHOUSE_TYPE_PHYSICAL, is_active=False)


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(
        sku="TEE-001",
        name="T-Shirt",
        cost_price=Decimal("4.00"),
        retail_price=Decimal("10.00"),
        wholesale_price=Decimal("8.00"),
        minimum_stock_level=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def mug(db_session):
    product = Product(
        sku="MUG-001",
        name="Mug",
        cost_price=Decimal("1.00"),
        retail_price=Decimal("3.00"),
        wholesale_price=Decimal("2.50"),
        minimum_stock_level=0,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def cashier(db_session):
    """Cashier earning 5% commission."""
    user = User(username="cashier", full_name="Front Cashier", role="CASHIER", commission_rate=Decimal("5.00"))
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def manager(db_session):
    """Manager without a commission rate."""
    user = User(username="manager", full_name="Store Manager", role="MANAGER")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def stock(db_session):
    """Receive on-hand stock: stock(product, warehouse, quantity)."""
    def _stock(product, warehouse, quantity):
        return ledger_service.receive(product.id, warehouse.id, quantity)
    return _stock


def ledger_state(product, warehouse):
    """(quantity, reserved_quantity) of a ledger row; (0, 0) when missing."""
    record = ledger_service.get_record(product.id, warehouse.id)
    if record is None:
        return Decimal("0"), Decimal("0")
    db.session.refresh(record)
    return record.quantity, record.reserved_quantity


def actor(user) -> dict:
    """Headers carrying the acting user resolved by the upstream auth layer."""
    return {'X-User-Id': str(user.id)}
