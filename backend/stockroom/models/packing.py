from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Packing(db.Model):
    """
    Fulfillment record for an ONLINE sale (exactly one per sale).

    LIFECYCLE (strictly forward, one step at a time):
    PENDING -> IN_PROGRESS -> PACKED -> SHIPPED

    Logistics metadata only; packing never touches the inventory ledger.
    """
    __tablename__ = "packing"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, unique=True)
    packer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # PENDING, IN_PROGRESS, PACKED, SHIPPED
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    packed_date = db.Column(db.DateTime(timezone=True), nullable=True)
    shipped_date = db.Column(db.DateTime(timezone=True), nullable=True)
    tracking_info = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    sale = db.relationship("Sale", backref=db.backref("packing", uselist=False, lazy=True))
    packer = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "packer_id": self.packer_id,
            "status": self.status,
            "packed_date": to_utc_z(self.packed_date),
            "shipped_date": to_utc_z(self.shipped_date),
            "tracking_info": self.tracking_info,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
