from __future__ import annotations

from ..extensions import db
from lotledger.time_utils import to_utc_z


class Lot(db.Model):
    """
    Inventory lot: colors -> sizes with running financial totals.

    MULTI-TENANT: Lots are scoped to tenants via tenant_id.
    lot_number is unique within a tenant, not globally.

    TOTALS:
    - total_investment_cents: sum(quantity * purchase_cost_cents), fixed at
      create/replace time.
    - total_revenue_cents: sum of completed sale amounts.
    - total_profit_cents: sum of realized per-sale margins. Only the sale
      engine adds to it; it is never recomputed as revenue - investment.

    CONCURRENCY:
    version_id is an optimistic-lock column. The sale engine also takes the
    row lock (or the SQLite write lock) before reading stock.
    """
    __tablename__ = "lots"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "lot_number", name="uq_lots_tenant_lot_number"),
        db.Index("ix_lots_tenant_created", "tenant_id", "created_at"),
        db.CheckConstraint("total_investment_cents >= 0", name="ck_lots_investment_nonneg"),
        db.CheckConstraint("total_revenue_cents >= 0", name="ck_lots_revenue_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    lot_number = db.Column(db.String(64), nullable=False)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    total_investment_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_revenue_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_profit_cents = db.Column(db.BigInteger, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    colors = db.relationship(
        "LotColor",
        back_populates="lot",
        order_by="LotColor.position",
        cascade="all, delete-orphan",
    )
    creator = db.relationship("User", foreign_keys=[created_by])

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Lot id={self.id} lot_number={self.lot_number!r} tenant_id={self.tenant_id}>"

    def size_index(self) -> dict[str, dict[str, "LotSize"]]:
        """
        Keyed lookup: color name -> size label -> LotSize.

        Display order stays on the ordered ``colors``/``sizes`` relationships.
        """
        return {
            color.color: {size.size: size for size in color.sizes}
            for color in self.colors
        }

    def iter_sizes(self):
        for color in self.colors:
            for size in color.sizes:
                yield color, size

    @property
    def total_quantity(self) -> int:
        return sum(size.quantity for _, size in self.iter_sizes())

    @property
    def remaining_quantity(self) -> int:
        return sum(size.remaining_quantity for _, size in self.iter_sizes())

    @property
    def has_stock(self) -> bool:
        return any(size.remaining_quantity > 0 for _, size in self.iter_sizes())

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "lot_number": self.lot_number,
            "created_by": self.created_by,
            "total_investment_cents": self.total_investment_cents,
            "total_revenue_cents": self.total_revenue_cents,
            "total_profit_cents": self.total_profit_cents,
            "total_quantity": self.total_quantity,
            "remaining_quantity": self.remaining_quantity,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if self.creator is not None:
            data["creator"] = {"id": self.creator.id, "name": self.creator.name, "email": self.creator.email}
        if include_items:
            data["items"] = [color.to_dict() for color in self.colors]
        return data


class LotColor(db.Model):
    __tablename__ = "lot_colors"
    __table_args__ = (
        db.UniqueConstraint("lot_id", "color", name="uq_lot_colors_lot_color"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    lot_id = db.Column(db.Integer, db.ForeignKey("lots.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    color = db.Column(db.String(64), nullable=False)

    lot = db.relationship("Lot", back_populates="colors")
    sizes = db.relationship(
        "LotSize",
        back_populates="color_entry",
        order_by="LotSize.position",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "color": self.color,
            "sizes": [size.to_dict() for size in self.sizes],
        }


class LotSize(db.Model):
    """
    Smallest tracked stock unit: one (color, size) pair.

    INVARIANT: 0 <= remaining_quantity <= quantity, enforced here and by the
    sale engine. quantity never changes after creation except through a full
    lot replace, which also resets remaining_quantity.
    """
    __tablename__ = "lot_sizes"
    __table_args__ = (
        db.UniqueConstraint("color_id", "size", name="uq_lot_sizes_color_size"),
        db.CheckConstraint("quantity >= 1", name="ck_lot_sizes_quantity_positive"),
        db.CheckConstraint(
            "remaining_quantity >= 0 AND remaining_quantity <= quantity",
            name="ck_lot_sizes_remaining_bounds",
        ),
        db.CheckConstraint("purchase_cost_cents >= 0", name="ck_lot_sizes_purchase_nonneg"),
        db.CheckConstraint("sell_cost_cents >= 0", name="ck_lot_sizes_sell_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    color_id = db.Column(db.Integer, db.ForeignKey("lot_colors.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    size = db.Column(db.String(32), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    remaining_quantity = db.Column(db.Integer, nullable=False)

    # Authoritative storage in cents
    purchase_cost_cents = db.Column(db.Integer, nullable=False)
    sell_cost_cents = db.Column(db.Integer, nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    color_entry = db.relationship("LotColor", back_populates="sizes")

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def sold_quantity(self) -> int:
        return self.quantity - self.remaining_quantity

    def to_dict(self) -> dict:
        return {
            "size": self.size,
            "quantity": self.quantity,
            "remaining_quantity": self.remaining_quantity,
            "sold_quantity": self.sold_quantity,
            "purchase_cost_cents": self.purchase_cost_cents,
            "sell_cost_cents": self.sell_cost_cents,
        }
