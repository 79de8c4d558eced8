"""Initial ledger schema: tenants, users, sessions, lots, sale transactions

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("lot_prefix", sa.String(32), nullable=False, server_default="LOT-"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("tenants", schema=None) as batch_op:
        batch_op.create_index("ix_tenants_email", ["email"], unique=True)
        batch_op.create_index("ix_tenants_is_active", ["is_active"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default="staff"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('admin', 'staff')", name="ck_users_role"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_tenant_id", ["tenant_id"], unique=False)
        batch_op.create_index("ix_users_email", ["email"], unique=False)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("user_agent", sa.String(255), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("session_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_session_tokens_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_session_tokens_tenant_id", ["tenant_id"], unique=False)
        batch_op.create_index("ix_session_tokens_token_hash", ["token_hash"], unique=True)
        batch_op.create_index("ix_session_tokens_expires_at", ["expires_at"], unique=False)
        batch_op.create_index("ix_session_tokens_user_active", ["user_id", "is_revoked"], unique=False)

    op.create_table(
        "lots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("lot_number", sa.String(64), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("total_investment_cents", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_revenue_cents", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_profit_cents", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("total_investment_cents >= 0", name="ck_lots_investment_nonneg"),
        sa.CheckConstraint("total_revenue_cents >= 0", name="ck_lots_revenue_nonneg"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "lot_number", name="uq_lots_tenant_lot_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("lots", schema=None) as batch_op:
        batch_op.create_index("ix_lots_tenant_id", ["tenant_id"], unique=False)
        batch_op.create_index("ix_lots_created_by", ["created_by"], unique=False)
        batch_op.create_index("ix_lots_tenant_created", ["tenant_id", "created_at"], unique=False)

    op.create_table(
        "lot_colors",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("color", sa.String(64), nullable=False),
        sa.ForeignKeyConstraint(["lot_id"], ["lots.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lot_id", "color", name="uq_lot_colors_lot_color"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("lot_colors", schema=None) as batch_op:
        batch_op.create_index("ix_lot_colors_lot_id", ["lot_id"], unique=False)

    op.create_table(
        "lot_sizes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("color_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("size", sa.String(32), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("remaining_quantity", sa.Integer(), nullable=False),
        sa.Column("purchase_cost_cents", sa.Integer(), nullable=False),
        sa.Column("sell_cost_cents", sa.Integer(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("quantity >= 1", name="ck_lot_sizes_quantity_positive"),
        sa.CheckConstraint(
            "remaining_quantity >= 0 AND remaining_quantity <= quantity",
            name="ck_lot_sizes_remaining_bounds",
        ),
        sa.CheckConstraint("purchase_cost_cents >= 0", name="ck_lot_sizes_purchase_nonneg"),
        sa.CheckConstraint("sell_cost_cents >= 0", name="ck_lot_sizes_sell_nonneg"),
        sa.ForeignKeyConstraint(["color_id"], ["lot_colors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("color_id", "size", name="uq_lot_sizes_color_size"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("lot_sizes", schema=None) as batch_op:
        batch_op.create_index("ix_lot_sizes_color_id", ["color_id"], unique=False)

    # lot_id carries no foreign key: transactions outlive their lot
    op.create_table(
        "sale_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=False),
        sa.Column("sold_by", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("invoice_number", sa.String(64), nullable=True),
        sa.Column("total_revenue_cents", sa.BigInteger(), nullable=False),
        sa.Column("total_profit_cents", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("total_revenue_cents >= 0", name="ck_sale_tx_revenue_nonneg"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["sold_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_sale_transactions_tenant_id", ["tenant_id"], unique=False)
        batch_op.create_index("ix_sale_transactions_lot_id", ["lot_id"], unique=False)
        batch_op.create_index("ix_sale_transactions_sold_by", ["sold_by"], unique=False)
        batch_op.create_index("ix_sale_tx_tenant_created", ["tenant_id", "created_at"], unique=False)
        batch_op.create_index("ix_sale_tx_tenant_lot", ["tenant_id", "lot_id"], unique=False)

    op.create_table(
        "sale_transaction_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transaction_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("color", sa.String(64), nullable=False),
        sa.Column("size", sa.String(32), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("sell_price_cents", sa.Integer(), nullable=False),
        sa.Column("line_total_cents", sa.BigInteger(), nullable=False),
        sa.Column("purchase_cost_cents", sa.Integer(), nullable=False),
        sa.Column("line_profit_cents", sa.BigInteger(), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="ck_sale_tx_items_quantity_positive"),
        sa.CheckConstraint("sell_price_cents >= 0", name="ck_sale_tx_items_price_nonneg"),
        sa.ForeignKeyConstraint(["transaction_id"], ["sale_transactions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_transaction_items", schema=None) as batch_op:
        batch_op.create_index("ix_sale_transaction_items_transaction_id", ["transaction_id"], unique=False)


def downgrade():
    op.drop_table("sale_transaction_items")
    op.drop_table("sale_transactions")
    op.drop_table("lot_sizes")
    op.drop_table("lot_colors")
    op.drop_table("lots")
    op.drop_table("session_tokens")
    op.drop_table("users")
    op.drop_table("tenants")
