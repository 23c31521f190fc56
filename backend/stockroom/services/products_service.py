# Overview: Product deletion policy; products with stock or document history are deactivated, not deleted.

from __future__ import annotations

from ..extensions import db
from ..errors import ProductInUse, ProductNotFound
from ..models import InventoryRecord, Product, SaleItem, StockTransferItem
from .concurrency import lock_for_update, transaction


def product_history(product_id: int) -> dict:
    """Count the rows that reference a product."""
    return {
        "inventory_records": db.session.query(InventoryRecord).filter_by(product_id=product_id).count(),
        "sale_items": db.session.query(SaleItem).filter_by(product_id=product_id).count(),
        "transfer_items": db.session.query(StockTransferItem).filter_by(product_id=product_id).count(),
    }


def _load_product_for_update(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise ProductNotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def delete_product(product_id: int) -> None:
    """
    Hard-delete a product that was never stocked, sold or transferred.

    Raises:
        ProductNotFound
        ProductInUse: ledger or document history exists; deactivate instead
    """
    with transaction():
        product = _load_product_for_update(product_id)
        history = product_history(product_id)
        if any(history.values()):
            raise ProductInUse(
                f"Product {product_id} has stock or document history; deactivate it instead",
                details={"product_id": product_id, "history": history},
            )
        db.session.delete(product)


def deactivate_product(product_id: int) -> Product:
    """Soft delete: the product can no longer be sold or transferred."""
    with transaction():
        product = _load_product_for_update(product_id)
        product.is_active = False
    return product
