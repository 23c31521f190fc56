# Overview: Read-side stock queries used by reporting/dashboard collaborators and the CLI.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import InventoryRecord, Product
from . import ledger_service


def get_available_stock(product_id: int, warehouse_id: int) -> Decimal:
    """Available (sellable) quantity; 0 when the product was never stocked there."""
    return ledger_service.get_available(product_id, warehouse_id)


def list_inventory(warehouse_id: int | None = None) -> list[InventoryRecord]:
    query = db.session.query(InventoryRecord)
    if warehouse_id is not None:
        query = query.filter(InventoryRecord.warehouse_id == warehouse_id)
    return query.order_by(InventoryRecord.warehouse_id.asc(), InventoryRecord.product_id.asc()).all()


def list_low_stock(warehouse_id: int | None = None) -> list[InventoryRecord]:
    """Ledger rows at or below their product's minimum_stock_level (active products only)."""
    query = (
        db.session.query(InventoryRecord)
        .join(Product, Product.id == InventoryRecord.product_id)
        .filter(
            Product.is_active.is_(True),
            InventoryRecord.quantity <= Product.minimum_stock_level,
        )
    )
    if warehouse_id is not None:
        query = query.filter(InventoryRecord.warehouse_id == warehouse_id)
    return query.order_by(InventoryRecord.warehouse_id.asc(), InventoryRecord.product_id.asc()).all()


def audit_ledger() -> list[dict]:
    """
    Return every ledger row violating 0 <= reserved_quantity <= quantity.

    An empty list is the healthy state; anything else indicates a bug or a
    write that bypassed the ledger service.
    """
    violations = []
    for record in db.session.query(InventoryRecord).order_by(InventoryRecord.id.asc()):
        problems = []
        if record.quantity < 0:
            problems.append("negative_quantity")
        if record.reserved_quantity < 0:
            problems.append("negative_reserved")
        if record.reserved_quantity > record.quantity:
            problems.append("reserved_exceeds_quantity")
        if problems:
            violations.append({**record.to_dict(), "problems": problems})
    return violations
