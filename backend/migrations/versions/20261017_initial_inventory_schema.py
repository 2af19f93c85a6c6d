"""Initial inventory schema: products, inventory_history, daily_inventory_snapshots

Revision ID: 20261017_initial_inventory
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_initial_inventory"
down_revision = None
branch_labels = None
depends_on = None


def _quantity():
    return sa.Numeric(precision=14, scale=3, asdecimal=True)


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("cost_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("selling_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quantity", _quantity(), nullable=False, server_default="0"),
        sa.Column("reorder_level", _quantity(), nullable=False, server_default="10"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("sku", name="uq_products_sku"),
        sa.CheckConstraint("reorder_level >= 0", name="ck_products_reorder_level_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_name", "products", ["name"])
    op.create_index("ix_products_active", "products", ["is_active"])

    op.create_table(
        "inventory_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "product_id",
            sa.Integer(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("activity_type", sa.String(length=32), nullable=False),
        sa.Column("quantity_before", _quantity(), nullable=False, server_default="0"),
        sa.Column("quantity_change", _quantity(), nullable=False),
        sa.Column("quantity_after", _quantity(), nullable=False),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.String(length=255), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity_change <> 0", name="ck_invhist_nonzero_change"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_history_product_id", "inventory_history", ["product_id"])
    op.create_index("ix_inventory_history_activity_type", "inventory_history", ["activity_type"])
    op.create_index("ix_inventory_history_occurred_at", "inventory_history", ["occurred_at"])
    op.create_index("ix_invhist_product_created", "inventory_history", ["product_id", "created_at"])
    op.create_index("ix_invhist_reference", "inventory_history", ["reference_type", "reference_id"])

    op.create_table(
        "daily_inventory_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "product_id",
            sa.Integer(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("opening_stock", _quantity(), nullable=False, server_default="0"),
        sa.Column("purchases", _quantity(), nullable=False, server_default="0"),
        sa.Column("sales", _quantity(), nullable=False, server_default="0"),
        sa.Column("adjustments", _quantity(), nullable=False, server_default="0"),
        sa.Column("closing_stock", _quantity(), nullable=False, server_default="0"),
        sa.Column("max_stock", _quantity(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("product_id", "snapshot_date", name="uq_daily_snapshots_product_date"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_daily_inventory_snapshots_product_id", "daily_inventory_snapshots", ["product_id"])
    op.create_index("ix_daily_inventory_snapshots_snapshot_date", "daily_inventory_snapshots", ["snapshot_date"])


def downgrade():
    op.drop_index("ix_daily_inventory_snapshots_snapshot_date", table_name="daily_inventory_snapshots")
    op.drop_index("ix_daily_inventory_snapshots_product_id", table_name="daily_inventory_snapshots")
    op.drop_table("daily_inventory_snapshots")

    op.drop_index("ix_invhist_reference", table_name="inventory_history")
    op.drop_index("ix_invhist_product_created", table_name="inventory_history")
    op.drop_index("ix_inventory_history_occurred_at", table_name="inventory_history")
    op.drop_index("ix_inventory_history_activity_type", table_name="inventory_history")
    op.drop_index("ix_inventory_history_product_id", table_name="inventory_history")
    op.drop_table("inventory_history")

    op.drop_index("ix_products_active", table_name="products")
    op.drop_index("ix_products_name", table_name="products")
    op.drop_table("products")
