from __future__ import annotations

from ..extensions import db
from lotledger.time_utils import to_utc_z


class Tenant(db.Model):
    """
    Multi-tenant root: every business account is a Tenant.

    WHY: Shared-database multi-tenancy with strict isolation.
    Users, lots and sale transactions all carry tenant_id, and no data may
    cross tenant boundaries.

    DESIGN:
    - Tenants are created at signup and are immutable afterwards except for
      settings (business_name, lot_prefix).
    - email is globally unique (one account per business email).
    - lot_prefix drives generate_lot_number ("LOT-" -> "LOT-0001").
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    lot_prefix = db.Column(db.String(32), nullable=False, default="LOT-")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} business_name={self.business_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_name": self.business_name,
            "email": self.email,
            "settings": {"lot_prefix": self.lot_prefix},
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
