from __future__ import annotations

from ..extensions import db
from ..money import to_str
from ..time_utils import to_utc_z

WAREHOUSE_TYPE_PHYSICAL = "PHYSICAL"
WAREHOUSE_TYPE_ONLINE = "ONLINE"
WAREHOUSE_TYPES = (WAREHOUSE_TYPE_PHYSICAL, WAREHOUSE_TYPE_ONLINE)


class Product(db.Model):
    """
    Product master data.

    Maintained by the catalog collaborator; the fulfillment core only reads
    it (is_active, prices) and snapshots cost_price onto sale items.

    Products with ledger or document history are deactivated, never deleted,
    so historical SaleItem cost snapshots keep a valid product reference.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(50), nullable=False, unique=True, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Unit of measure stock quantities are expressed in (e.g. "pcs", "kg")
    base_unit = db.Column(db.String(20), nullable=False, default="pcs")

    cost_price = db.Column(db.Numeric(12, 2), nullable=False)
    retail_price = db.Column(db.Numeric(12, 2), nullable=False)
    wholesale_price = db.Column(db.Numeric(12, 2), nullable=False)

    minimum_stock_level = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "base_unit": self.base_unit,
            "cost_price": to_str(self.cost_price),
            "retail_price": to_str(self.retail_price),
            "wholesale_price": to_str(self.wholesale_price),
            "minimum_stock_level": self.minimum_stock_level,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Warehouse(db.Model):
    """
    Stock location.

    PHYSICAL warehouses take RETAIL and WHOLESALE sales; ONLINE warehouses
    take ONLINE sales, which are fulfilled through the packing workflow.
    """
    __tablename__ = "warehouses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)

    # PHYSICAL, ONLINE
    type = db.Column(db.String(16), nullable=False, default=WAREHOUSE_TYPE_PHYSICAL)

    address = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.name!r} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
