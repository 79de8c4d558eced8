from __future__ import annotations

from ..extensions import db
from lotledger.time_utils import to_utc_z


class SaleTransaction(db.Model):
    """
    Immutable record of one completed sale against a lot.

    LOT REFERENCE: lot_id is a plain back-reference with no foreign key.
    Deleting a lot never touches its transactions, so lot_id may point at a
    row that no longer exists. Readers resolve it to a "deleted lot"
    placeholder instead of treating it as a data error.

    IMMUTABILITY: Created only by the sale engine, never updated or deleted.
    """
    __tablename__ = "sale_transactions"
    __table_args__ = (
        db.Index("ix_sale_tx_tenant_created", "tenant_id", "created_at"),
        db.Index("ix_sale_tx_tenant_lot", "tenant_id", "lot_id"),
        db.CheckConstraint("total_revenue_cents >= 0", name="ck_sale_tx_revenue_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    # Non-owning reference (no FK on purpose: lots can be deleted)
    lot_id = db.Column(db.Integer, nullable=False, index=True)

    sold_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    customer_name = db.Column(db.String(255), nullable=True)
    invoice_number = db.Column(db.String(64), nullable=True)

    total_revenue_cents = db.Column(db.BigInteger, nullable=False)
    # Realized margin of this sale; the same amount added to Lot.total_profit_cents
    total_profit_cents = db.Column(db.BigInteger, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "SaleTransactionItem",
        back_populates="transaction",
        order_by="SaleTransactionItem.position",
        cascade="all, delete-orphan",
    )
    seller = db.relationship("User", foreign_keys=[sold_by])

    def __repr__(self) -> str:
        return f"<SaleTransaction id={self.id} lot_id={self.lot_id} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "lot_id": self.lot_id,
            "sold_by": self.sold_by,
            "customer_name": self.customer_name,
            "invoice_number": self.invoice_number,
            "sold_items": [item.to_dict() for item in self.items],
            "total_revenue_cents": self.total_revenue_cents,
            "total_profit_cents": self.total_profit_cents,
            "created_at": to_utc_z(self.created_at),
        }
        if self.seller is not None:
            data["seller"] = {"id": self.seller.id, "name": self.seller.name, "email": self.seller.email}
        return data


class SaleTransactionItem(db.Model):
    __tablename__ = "sale_transaction_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_sale_tx_items_quantity_positive"),
        db.CheckConstraint("sell_price_cents >= 0", name="ck_sale_tx_items_price_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("sale_transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = db.Column(db.Integer, nullable=False)

    color = db.Column(db.String(64), nullable=False)
    size = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    # Price snapshot taken from the lot at processing time
    sell_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.BigInteger, nullable=False)

    purchase_cost_cents = db.Column(db.Integer, nullable=False)
    line_profit_cents = db.Column(db.BigInteger, nullable=False)

    transaction = db.relationship("SaleTransaction", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "color": self.color,
            "size": self.size,
            "quantity": self.quantity,
            "sell_price_cents": self.sell_price_cents,
            "line_total_cents": self.line_total_cents,
        }
