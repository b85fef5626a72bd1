"""stock ledger

Revision ID: 0001_stock_ledger
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_stock_ledger"
down_revision = None
branch_labels = None
depends_on = None


WAREHOUSE_TYPE = sa.Enum("main", "store", "virtual", name="inventory_warehouse_type")
MOVEMENT_DIRECTION = sa.Enum("inbound", "outbound", name="inventory_movement_direction")
MOVEMENT_TYPE = sa.Enum("purchase", "sale", "transfer", "adjust", "return", "use", name="inventory_movement_type")
CLIENT_TYPE = sa.Enum("personal", "company", name="inventory_client_type")
PURCHASE_STATUS = sa.Enum(
    "draft",
    "pending_approval",
    "pending_inbound",
    "approved",
    "paid",
    "rejected",
    "cancelled",
    name="purchase_status",
)


def upgrade() -> None:
    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sku", sa.String(length=100), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("unit", sa.String(length=50), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False, server_default="uncategorized"),
        sa.Column("safety_stock", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("unit_cost", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("sale_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("spec_fields_json", sa.Text(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "inventory_warehouses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False, unique=True),
        sa.Column("type", WAREHOUSE_TYPE, nullable=False, server_default="main"),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("capacity", sa.Numeric(14, 2), nullable=True),
        sa.Column("manager", sa.String(length=200), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "inventory_stock_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=False),
        sa.Column("warehouse_id", sa.Integer(), sa.ForeignKey("inventory_warehouses.id"), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("reserved", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("item_id", "warehouse_id", name="uq_stock_snapshot_item_warehouse"),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_snapshot_quantity_non_negative"),
        sa.CheckConstraint("reserved >= 0 AND reserved <= quantity", name="ck_stock_snapshot_reserved_bounds"),
    )
    op.create_table(
        "purchases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("purchase_number", sa.String(length=50), nullable=False, unique=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=True),
        sa.Column("quantity", sa.Numeric(14, 2), nullable=False),
        sa.Column("inbound_quantity", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("status", PURCHASE_STATUS, nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("direction", MOVEMENT_DIRECTION, nullable=False),
        sa.Column("type", MOVEMENT_TYPE, nullable=False),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=False),
        sa.Column("warehouse_id", sa.Integer(), sa.ForeignKey("inventory_warehouses.id"), nullable=False),
        sa.Column("related_order_id", sa.String(length=100), nullable=True),
        sa.Column("related_purchase_id", sa.Integer(), sa.ForeignKey("purchases.id"), nullable=True),
        sa.Column("paired_movement_id", sa.Integer(), sa.ForeignKey("inventory_movements.id"), nullable=True),
        sa.Column("client_id", sa.String(length=100), nullable=True),
        sa.Column("client_type", CLIENT_TYPE, nullable=True),
        sa.Column("client_name", sa.String(length=200), nullable=True),
        sa.Column("client_contact", sa.String(length=200), nullable=True),
        sa.Column("client_phone", sa.String(length=50), nullable=True),
        sa.Column("client_address", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Numeric(14, 2), nullable=False),
        sa.Column("unit_cost", sa.Numeric(14, 2), nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("operator_id", sa.String(length=100), nullable=True),
        sa.Column("operator_name", sa.String(length=200), nullable=True),
        sa.Column("occurred_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("attributes_json", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_inventory_movement_quantity_positive"),
    )
    op.create_index("ix_inventory_movements_item_warehouse", "inventory_movements", ["item_id", "warehouse_id"])
    op.create_index("ix_inventory_movements_occurred_at", "inventory_movements", ["occurred_at"])
    op.create_index("ix_inventory_movements_related_order", "inventory_movements", ["related_order_id"])
    op.create_index("ix_inventory_movements_paired_movement", "inventory_movements", ["paired_movement_id"])


def downgrade() -> None:
    op.drop_index("ix_inventory_movements_paired_movement", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_related_order", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_occurred_at", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_item_warehouse", table_name="inventory_movements")
    op.drop_table("inventory_movements")
    op.drop_table("purchases")
    op.drop_table("inventory_stock_snapshots")
    op.drop_table("inventory_warehouses")
    op.drop_table("inventory_items")
    bind = op.get_bind()
    for enum_type in (PURCHASE_STATUS, CLIENT_TYPE, MOVEMENT_TYPE, MOVEMENT_DIRECTION, WAREHOUSE_TYPE):
        enum_type.drop(bind, checkfirst=True)
