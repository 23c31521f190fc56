from __future__ import annotations

from ..extensions import db
from ..money import to_str
from ..time_utils import to_utc_z

USER_ROLES = ("SYSTEM_ADMIN", "APP_ADMIN", "MANAGER", "CASHIER", "WAREHOUSE")


class User(db.Model):
    """
    Staff account as seen by the fulfillment core.

    Accounts are managed (and authenticated) elsewhere. The core only looks
    users up to validate cashiers, transfer requesters and packers, and to
    read commission_rate.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), nullable=False, unique=True)
    full_name = db.Column(db.String(100), nullable=False)

    # SYSTEM_ADMIN, APP_ADMIN, MANAGER, CASHIER, WAREHOUSE
    role = db.Column(db.String(16), nullable=False, default="CASHIER")

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Percent of the sale total (e.g. 5.00 == 5%)
    commission_rate = db.Column(db.Numeric(5, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "commission_rate": to_str(self.commission_rate),
            "created_at": to_utc_z(self.created_at),
        }
