from __future__ import annotations

from ..extensions import db
from ..money import to_str
from ..time_utils import to_utc_z


class StockTransfer(db.Model):
    """
    Inter-warehouse stock transfer document.

    LIFECYCLE:
    1. PENDING: Requested; item quantities reserved at the source warehouse
    2. IN_TRANSIT: Picked up; stock stays reserved at the source
    3. COMPLETED: Source reservation committed, destination incremented
    4. CANCELLED: Reservations released (from PENDING or IN_TRANSIT)

    Cancelled transfers are kept as an audit log and never deleted.
    """
    __tablename__ = "stock_transfers"
    __table_args__ = (
        db.CheckConstraint("from_warehouse_id <> to_warehouse_id", name="ck_stock_transfers_distinct_warehouses"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # e.g. "TRANS-20260101120000-9B01CD"
    transfer_number = db.Column(db.String(50), nullable=False, unique=True, index=True)

    from_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    to_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    requested_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # PENDING, IN_TRANSIT, COMPLETED, CANCELLED
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    # Physical pickup time (set on IN_TRANSIT)
    transfer_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    from_warehouse = db.relationship("Warehouse", foreign_keys=[from_warehouse_id])
    to_warehouse = db.relationship("Warehouse", foreign_keys=[to_warehouse_id])
    requester = db.relationship("User", foreign_keys=[requested_by])
    approver = db.relationship("User", foreign_keys=[approved_by])

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "transfer_number": self.transfer_number,
            "from_warehouse_id": self.from_warehouse_id,
            "to_warehouse_id": self.to_warehouse_id,
            "requested_by": self.requested_by,
            "approved_by": self.approved_by,
            "status": self.status,
            "transfer_date": to_utc_z(self.transfer_date),
            "notes": self.notes,
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class StockTransferItem(db.Model):
    """
    Line item on a transfer.

    transferred_quantity stays NULL until completion and may be lower than
    requested_quantity when the shipment is short.
    """
    __tablename__ = "stock_transfer_items"
    __table_args__ = (
        db.UniqueConstraint("transfer_id", "product_id", name="uq_stock_transfer_items_transfer_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transfer_id = db.Column(db.Integer, db.ForeignKey("stock_transfers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    requested_quantity = db.Column(db.Numeric(12, 2), nullable=False)
    transferred_quantity = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    transfer = db.relationship(
        "StockTransfer",
        backref=db.backref("items", lazy=True, order_by="StockTransferItem.id", cascade="all, delete-orphan"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transfer_id": self.transfer_id,
            "product_id": self.product_id,
            "requested_quantity": to_str(self.requested_quantity),
            "transferred_quantity": to_str(self.transferred_quantity),
        }
