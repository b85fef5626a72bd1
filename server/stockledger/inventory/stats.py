from datetime import date, datetime

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session

from stockledger.models import InventoryItem, InventoryMovement, StockSnapshot, Warehouse
from stockledger.sql_expressions import occurred_on
from stockledger.utils import quantize_money


LOW_STOCK_LIMIT = 20


def get_inventory_stats(db: Session, today: date | None = None) -> dict:
    """Read-only dashboard rollups over live items and warehouses."""
    today = today or datetime.utcnow().date()

    total_items = db.query(func.count(InventoryItem.id)).filter(InventoryItem.is_deleted.is_(False)).scalar() or 0
    total_warehouses = db.query(func.count(Warehouse.id)).filter(Warehouse.is_deleted.is_(False)).scalar() or 0

    total_quantity = (
        db.query(func.coalesce(func.sum(StockSnapshot.quantity - StockSnapshot.reserved), 0))
        .join(Warehouse, and_(Warehouse.id == StockSnapshot.warehouse_id, Warehouse.is_deleted.is_(False)))
        .join(InventoryItem, and_(InventoryItem.id == StockSnapshot.item_id, InventoryItem.is_deleted.is_(False)))
        .scalar()
    )

    live_available = (
        db.query(
            StockSnapshot.item_id.label("item_id"),
            func.sum(StockSnapshot.quantity - StockSnapshot.reserved).label("available"),
        )
        .join(Warehouse, and_(Warehouse.id == StockSnapshot.warehouse_id, Warehouse.is_deleted.is_(False)))
        .group_by(StockSnapshot.item_id)
        .subquery()
    )
    available = func.coalesce(live_available.c.available, 0)
    low_stock_rows = (
        db.query(InventoryItem.id, InventoryItem.name, InventoryItem.safety_stock, available.label("available"))
        .outerjoin(live_available, live_available.c.item_id == InventoryItem.id)
        .filter(InventoryItem.is_deleted.is_(False), available < InventoryItem.safety_stock)
        .order_by(available.asc(), InventoryItem.name.asc())
        .limit(LOW_STOCK_LIMIT)
        .all()
    )

    todays_inbound, todays_outbound = (
        db.query(
            func.coalesce(func.sum(case((InventoryMovement.direction == "inbound", InventoryMovement.quantity), else_=0)), 0),
            func.coalesce(func.sum(case((InventoryMovement.direction == "outbound", InventoryMovement.quantity), else_=0)), 0),
        )
        .filter(occurred_on(InventoryMovement.occurred_at, today))
        .one()
    )

    return {
        "total_items": int(total_items),
        "total_warehouses": int(total_warehouses),
        "total_quantity": quantize_money(total_quantity or 0),
        "low_stock_items": [
            {
                "item_id": item_id,
                "name": name,
                "available": quantize_money(row_available or 0),
                "safety_stock": quantize_money(safety_stock or 0),
            }
            for item_id, name, safety_stock, row_available in low_stock_rows
        ],
        "todays_inbound": quantize_money(todays_inbound or 0),
        "todays_outbound": quantize_money(todays_outbound or 0),
    }
