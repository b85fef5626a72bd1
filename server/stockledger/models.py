from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base


WAREHOUSE_TYPES = ("main", "store", "virtual")
MOVEMENT_DIRECTIONS = ("inbound", "outbound")
MOVEMENT_TYPES = ("purchase", "sale", "transfer", "adjust", "return", "use")
CLIENT_TYPES = ("personal", "company")
PURCHASE_STATUSES = (
    "draft",
    "pending_approval",
    "pending_inbound",
    "approved",
    "paid",
    "rejected",
    "cancelled",
)


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id = Column(Integer, primary_key=True)
    sku = Column(String(100), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    unit = Column(String(50), nullable=False)
    category = Column(String(100), nullable=False, default="uncategorized")
    safety_stock = Column(Numeric(14, 2), nullable=False, default=0)
    unit_cost = Column(Numeric(14, 2), nullable=False, default=0)
    sale_price = Column(Numeric(14, 2), nullable=True)
    image_url = Column(Text, nullable=True)
    spec_fields_json = Column(Text, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    snapshots = relationship("StockSnapshot", back_populates="item")


class Warehouse(Base):
    __tablename__ = "inventory_warehouses"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    code = Column(String(50), nullable=False, unique=True)
    type = Column(Enum(*WAREHOUSE_TYPES, name="inventory_warehouse_type"), nullable=False, default="main")
    address = Column(Text, nullable=True)
    capacity = Column(Numeric(14, 2), nullable=True)
    manager = Column(String(200), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    snapshots = relationship("StockSnapshot", back_populates="warehouse")


class StockSnapshot(Base):
    __tablename__ = "inventory_stock_snapshots"

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("inventory_warehouses.id"), nullable=False)
    quantity = Column(Numeric(14, 2), nullable=False, default=0)
    reserved = Column(Numeric(14, 2), nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    item = relationship("InventoryItem", back_populates="snapshots")
    warehouse = relationship("Warehouse", back_populates="snapshots")

    __table_args__ = (
        UniqueConstraint("item_id", "warehouse_id", name="uq_stock_snapshot_item_warehouse"),
        CheckConstraint("quantity >= 0", name="ck_stock_snapshot_quantity_non_negative"),
        CheckConstraint("reserved >= 0 AND reserved <= quantity", name="ck_stock_snapshot_reserved_bounds"),
    )

    @property
    def available(self):
        return Decimal(self.quantity or 0) - Decimal(self.reserved or 0)


class InventoryMovement(Base):
    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True)
    direction = Column(Enum(*MOVEMENT_DIRECTIONS, name="inventory_movement_direction"), nullable=False)
    type = Column(Enum(*MOVEMENT_TYPES, name="inventory_movement_type"), nullable=False)
    item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("inventory_warehouses.id"), nullable=False)
    related_order_id = Column(String(100), nullable=True)
    related_purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=True)
    paired_movement_id = Column(Integer, ForeignKey("inventory_movements.id"), nullable=True)
    client_id = Column(String(100), nullable=True)
    client_type = Column(Enum(*CLIENT_TYPES, name="inventory_client_type"), nullable=True)
    client_name = Column(String(200), nullable=True)
    client_contact = Column(String(200), nullable=True)
    client_phone = Column(String(50), nullable=True)
    client_address = Column(Text, nullable=True)
    quantity = Column(Numeric(14, 2), nullable=False)
    unit_cost = Column(Numeric(14, 2), nullable=True)
    amount = Column(Numeric(14, 2), nullable=True)
    operator_id = Column(String(100), nullable=True)
    operator_name = Column(String(200), nullable=True)
    occurred_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    attributes_json = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    item = relationship("InventoryItem")
    warehouse = relationship("Warehouse")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_movement_quantity_positive"),
        Index("ix_inventory_movements_item_warehouse", "item_id", "warehouse_id"),
        Index("ix_inventory_movements_occurred_at", "occurred_at"),
        Index("ix_inventory_movements_related_order", "related_order_id"),
        Index("ix_inventory_movements_paired_movement", "paired_movement_id"),
    )


class Purchase(Base):
    """Purchase request owned by the purchasing workflow.

    The inventory engine only reads ``status``/``quantity`` and writes
    ``inbound_quantity`` (plus the pending_inbound -> approved transition).
    """

    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True)
    purchase_number = Column(String(50), nullable=False, unique=True)
    item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=True)
    quantity = Column(Numeric(14, 2), nullable=False)
    inbound_quantity = Column(Numeric(14, 2), nullable=False, default=0)
    unit_price = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(Enum(*PURCHASE_STATUSES, name="purchase_status"), nullable=False, default="draft")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    item = relationship("InventoryItem")

    @property
    def remaining_quantity(self):
        return Decimal(self.quantity or 0) - Decimal(self.inbound_quantity or 0)
