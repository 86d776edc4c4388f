"""create inventory item and stock movement tables

Revision ID: 0001_create_inventory_tables
Revises: 
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa


revision = "0001_create_inventory_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "inventory_item",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("quantity", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("unit", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("min_stock", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("supplier", sa.String(length=255)),
        sa.Column("expiration_date", sa.Date()),
        sa.Column("location", sa.String(length=120)),
        sa.Column("description", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "stock_movement",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("item_id", sa.String(length=36), nullable=False),
        sa.Column("movement_type", sa.String(length=20), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 2), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2)),
        sa.Column("reason", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("reference", sa.String(length=120)),
        sa.Column("notes", sa.Text()),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_stock_movement_item_id", "stock_movement", ["item_id"])
    op.create_index("ix_stock_movement_user_id", "stock_movement", ["user_id"])


def downgrade():
    op.drop_index("ix_stock_movement_user_id", table_name="stock_movement")
    op.drop_index("ix_stock_movement_item_id", table_name="stock_movement")
    op.drop_table("stock_movement")
    op.drop_table("inventory_item")
