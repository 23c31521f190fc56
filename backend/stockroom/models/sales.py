from __future__ import annotations

from ..extensions import db
from ..money import to_str
from ..time_utils import to_utc_z, utcnow

SALE_TYPE_RETAIL = "RETAIL"
SALE_TYPE_WHOLESALE = "WHOLESALE"
SALE_TYPE_ONLINE = "ONLINE"
SALE_TYPES = (SALE_TYPE_RETAIL, SALE_TYPE_WHOLESALE, SALE_TYPE_ONLINE)

SALE_STATUS_PENDING = "PENDING"
SALE_STATUS_COMPLETED = "COMPLETED"
SALE_STATUS_CANCELLED = "CANCELLED"
SALE_STATUS_REFUNDED = "REFUNDED"
SALE_STATUSES = (SALE_STATUS_PENDING, SALE_STATUS_COMPLETED, SALE_STATUS_CANCELLED, SALE_STATUS_REFUNDED)


class Sale(db.Model):
    """
    Sale document.

    LIFECYCLE:
    1. PENDING: Created; every item's quantity is reserved in the ledger
    2. COMPLETED: Reservations converted to permanent deductions
    3. CANCELLED: Reservations released
    4. REFUNDED: Set by the payments collaborator; terminal for the core

    Monetary fields are fixed-point (Numeric(12, 2)).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_sale_date", "sale_date"),
        db.Index("ix_sales_warehouse_status", "warehouse_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable, globally unique (e.g., "SALE-20260101120000-4F2A1C")
    sale_number = db.Column(db.String(50), nullable=False, unique=True, index=True)

    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    customer_name = db.Column(db.String(100), nullable=True)
    customer_contact = db.Column(db.String(100), nullable=True)

    # RETAIL, WHOLESALE, ONLINE
    sale_type = db.Column(db.String(16), nullable=False)

    # PENDING, COMPLETED, CANCELLED, REFUNDED
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    commission_amount = db.Column(db.Numeric(12, 2), nullable=True)

    tracking_number = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    warehouse = db.relationship("Warehouse")
    cashier = db.relationship("User")

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_number": self.sale_number,
            "warehouse_id": self.warehouse_id,
            "cashier_id": self.cashier_id,
            "customer_name": self.customer_name,
            "customer_contact": self.customer_contact,
            "sale_type": self.sale_type,
            "status": self.status,
            "subtotal": to_str(self.subtotal),
            "tax_amount": to_str(self.tax_amount),
            "discount_amount": to_str(self.discount_amount),
            "total_amount": to_str(self.total_amount),
            "commission_amount": to_str(self.commission_amount),
            "tracking_number": self.tracking_number,
            "notes": self.notes,
            "sale_date": to_utc_z(self.sale_date),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Line item on a sale.

    cost_price is copied from the product when the sale is created, so later
    catalog price edits never change historical margin.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    # Snapshot at sale time
    cost_price = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship(
        "Sale",
        backref=db.backref("items", lazy=True, order_by="SaleItem.id", cascade="all, delete-orphan"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": to_str(self.quantity),
            "unit_price": to_str(self.unit_price),
            "discount_amount": to_str(self.discount_amount),
            "total_amount": to_str(self.total_amount),
            "cost_price": to_str(self.cost_price),
        }
