# Overview: Flask CLI command groups for bootstrap and ledger maintenance.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; use `flask db upgrade` elsewhere).
# - python -m flask system seed
#   Idempotent demo data: a physical and an online warehouse, staff users,
#   a few products with opening stock.
#
# Ledger maintenance:
# - python -m flask inventory audit
#   List ledger rows violating 0 <= reserved <= quantity; exits 1 if any.
# - python -m flask inventory adjust --product-id 1 --warehouse-id 1 --quantity 40
#   Stock-take correction (never below the reserved quantity).

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .errors import StockroomError
from .extensions import db
from .models import Product, User, Warehouse
from .models.catalog import WAREHOUSE_TYPE_ONLINE, WAREHOUSE_TYPE_PHYSICAL
from .services import inventory_service, ledger_service


SEED_WAREHOUSES = [
    {"name": "Main Store", "type": WAREHOUSE_TYPE_PHYSICAL, "address": "1 Market Street"},
    {"name": "Back Warehouse", "type": WAREHOUSE_TYPE_PHYSICAL, "address": "5 Depot Road"},
    {"name": "Web Shop", "type": WAREHOUSE_TYPE_ONLINE, "address": None},
]

SEED_USERS = [
    {"username": "manager", "full_name": "Store Manager", "role": "MANAGER", "commission_rate": None},
    {"username": "cashier", "full_name": "Front Cashier", "role": "CASHIER", "commission_rate": Decimal("5.00")},
    {"username": "packer", "full_name": "Warehouse Packer", "role": "WAREHOUSE", "commission_rate": None},
]

SEED_PRODUCTS = [
    {"sku": "TEE-BLK-M", "name": "T-Shirt Black M", "cost_price": "6.00",
     "retail_price": "15.00", "wholesale_price": "10.00", "minimum_stock_level": 10},
    {"sku": "MUG-WHT", "name": "White Mug", "cost_price": "2.50",
     "retail_price": "8.00", "wholesale_price": "5.50", "minimum_stock_level": 20},
    {"sku": "RICE-5KG", "name": "Rice 5kg", "base_unit": "bag", "cost_price": "7.20",
     "retail_price": "11.90", "wholesale_price": "9.40", "minimum_stock_level": 5},
]

# Opening stock per product at each seeded warehouse
SEED_STOCK = Decimal("50")


@click.group("system")
def system_group():
    """System bootstrap commands."""


@system_group.command("init-db")
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command("seed")
@with_appcontext
def seed():
    """
    Seed demo warehouses, users and products with opening stock.

    Safe to run repeatedly: existing rows (matched by name, username or sku)
    are reused and opening stock is only received into empty ledger rows.
    """
    click.echo("START Seeding demo data...")

    warehouses = []
    for row in SEED_WAREHOUSES:
        warehouse = db.session.query(Warehouse).filter_by(name=row["name"]).first()
        if warehouse is None:
            warehouse = Warehouse(**row)
            db.session.add(warehouse)
            click.echo(f"PASS Created warehouse: {row['name']} ({row['type']})")
        warehouses.append(warehouse)

    for row in SEED_USERS:
        if db.session.query(User).filter_by(username=row["username"]).first() is None:
            db.session.add(User(**row))
            click.echo(f"PASS Created user: {row['username']} ({row['role']})")

    products = []
    for row in SEED_PRODUCTS:
        product = db.session.query(Product).filter_by(sku=row["sku"]).first()
        if product is None:
            product = Product(**{
                **row,
                "cost_price": Decimal(row["cost_price"]),
                "retail_price": Decimal(row["retail_price"]),
                "wholesale_price": Decimal(row["wholesale_price"]),
            })
            db.session.add(product)
            click.echo(f"PASS Created product: {row['sku']}")
        products.append(product)

    db.session.commit()

    received = 0
    for warehouse in warehouses:
        for product in products:
            record = ledger_service.get_record(product.id, warehouse.id)
            if record is None or record.quantity == 0:
                ledger_service.receive(product.id, warehouse.id, SEED_STOCK)
                received += 1

    click.echo(f"PASS Received opening stock into {received} ledger row(s)")
    click.echo("DONE Seed complete")


@click.group("inventory")
def inventory_group():
    """Inventory ledger maintenance."""


@inventory_group.command("audit")
@with_appcontext
def audit():
    """Report ledger rows that break 0 <= reserved_quantity <= quantity."""
    violations = inventory_service.audit_ledger()
    if not violations:
        click.echo("PASS Ledger is consistent")
        return

    for row in violations:
        click.echo(
            f"FAIL product={row['product_id']} warehouse={row['warehouse_id']} "
            f"quantity={row['quantity']} reserved={row['reserved_quantity']} "
            f"problems={','.join(row['problems'])}"
        )
    raise click.exceptions.Exit(1)


@inventory_group.command("adjust")
@click.option("--product-id", type=int, required=True, help="Product ID")
@click.option("--warehouse-id", type=int, required=True, help="Warehouse ID")
@click.option("--quantity", required=True, help="New on-hand quantity")
@with_appcontext
def adjust(product_id, warehouse_id, quantity):
    """Stock-take correction for one ledger row."""
    try:
        record = ledger_service.adjust(product_id, warehouse_id, quantity)
    except StockroomError as e:
        raise click.ClickException(f"{e.code}: {e.message}")

    click.echo(
        f"PASS product={record.product_id} warehouse={record.warehouse_id} "
        f"quantity={record.quantity} reserved={record.reserved_quantity}"
    )


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
