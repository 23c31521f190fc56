from __future__ import annotations

from ..extensions import db
from ..money import to_str
from ..time_utils import to_utc_z, utcnow


class InventoryRecord(db.Model):
    """
    Ledger row: on-hand and reserved stock for one (product, warehouse).

    INVARIANTS:
    - 0 <= reserved_quantity <= quantity, enforced by the ledger service and
      backed by CHECK constraints.
    - available = quantity - reserved_quantity is the only stock that may be
      sold or transferred out.
    - Rows are created lazily on first reference and never deleted.

    This row is the unit of locking: every mutation happens under
    SELECT ... FOR UPDATE on the rows it touches.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_product_warehouse"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        db.CheckConstraint("reserved_quantity >= 0", name="ck_inventory_reserved_non_negative"),
        db.CheckConstraint("reserved_quantity <= quantity", name="ck_inventory_reserved_within_quantity"),
        db.Index("ix_inventory_quantity", "quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    reserved_quantity = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def available_quantity(self):
        return self.quantity - self.reserved_quantity

    def __repr__(self) -> str:
        return (
            f"<InventoryRecord product_id={self.product_id} warehouse_id={self.warehouse_id} "
            f"quantity={self.quantity} reserved={self.reserved_quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "quantity": to_str(self.quantity),
            "reserved_quantity": to_str(self.reserved_quantity),
            "available_quantity": to_str(self.available_quantity),
            "last_updated": to_utc_z(self.last_updated),
            "version_id": self.version_id,
        }
