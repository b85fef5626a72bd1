from datetime import datetime
from decimal import Decimal
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from stockledger.db import atomic
from stockledger.inventory.errors import InventoryError, InventoryErrorCode
from stockledger.models import InventoryMovement, StockSnapshot, Warehouse
from stockledger.utils import to_decimal


logger = logging.getLogger(__name__)

# Provisioned on every startup; listed in this order.
OPERATIONAL_WAREHOUSES: list[dict] = [
    {"code": "SCHOOL", "name": "School", "type": "main"},
    {"code": "COMPANY", "name": "Company", "type": "store"},
]
OPERATIONAL_WAREHOUSE_CODES = [config["code"] for config in OPERATIONAL_WAREHOUSES]

WAREHOUSE_FIELDS = ("name", "code", "type", "address", "capacity", "manager")


def fetch_warehouse(db: Session, warehouse_id: int) -> Warehouse | None:
    return (
        db.query(Warehouse)
        .filter(Warehouse.id == warehouse_id, Warehouse.is_deleted.is_(False))
        .first()
    )


def get_warehouse(db: Session, warehouse_id: int) -> Warehouse | None:
    return fetch_warehouse(db, warehouse_id)


def get_warehouse_by_code(db: Session, code: str) -> Warehouse | None:
    return db.query(Warehouse).filter(Warehouse.code == code, Warehouse.is_deleted.is_(False)).first()


def get_warehouse_usage_map(db: Session) -> dict[int, tuple[Decimal, Decimal]]:
    rows = (
        db.query(
            StockSnapshot.warehouse_id,
            func.coalesce(func.sum(StockSnapshot.quantity), 0),
            func.coalesce(func.sum(StockSnapshot.reserved), 0),
        )
        .group_by(StockSnapshot.warehouse_id)
        .all()
    )
    return {warehouse_id: (Decimal(quantity or 0), Decimal(reserved or 0)) for warehouse_id, quantity, reserved in rows}


def list_warehouses(db: Session) -> list[tuple[Warehouse, Decimal, Decimal]]:
    warehouses = db.query(Warehouse).filter(Warehouse.is_deleted.is_(False)).order_by(Warehouse.name.asc()).all()
    usage = get_warehouse_usage_map(db)
    results = []
    for warehouse in warehouses:
        quantity, reserved = usage.get(warehouse.id, (Decimal("0"), Decimal("0")))
        results.append((warehouse, quantity, reserved))
    return results


def ensure_operational_warehouses(db: Session) -> None:
    """Insert, restore or correct the fixed operational warehouses. Safe to call repeatedly."""
    with atomic(db):
        for config in OPERATIONAL_WAREHOUSES:
            existing = db.query(Warehouse).filter(Warehouse.code == config["code"]).first()
            if not existing:
                db.add(Warehouse(code=config["code"], name=config["name"], type=config["type"], is_deleted=False))
                logger.info("Provisioned operational warehouse code=%s", config["code"])
                continue
            if existing.is_deleted or existing.name != config["name"] or existing.type != config["type"]:
                existing.name = config["name"]
                existing.type = config["type"]
                existing.is_deleted = False
                existing.deleted_at = None
                logger.info("Restored operational warehouse code=%s", config["code"])


def list_operational_warehouses(db: Session) -> list[tuple[Warehouse, Decimal, Decimal]]:
    ensure_operational_warehouses(db)
    order = {code: index for index, code in enumerate(OPERATIONAL_WAREHOUSE_CODES)}
    rows = [row for row in list_warehouses(db) if row[0].code in order]
    return sorted(rows, key=lambda row: order[row[0].code])


def create_warehouse(db: Session, payload: dict) -> Warehouse:
    warehouse = Warehouse(is_deleted=False, **{key: payload.get(key) for key in WAREHOUSE_FIELDS})
    db.add(warehouse)
    db.flush()
    logger.info("Created warehouse id=%s code=%s", warehouse.id, warehouse.code)
    return warehouse


def update_warehouse(db: Session, warehouse_id: int, payload: dict) -> Warehouse | None:
    warehouse = fetch_warehouse(db, warehouse_id)
    if not warehouse:
        return None
    for key, value in payload.items():
        if key in WAREHOUSE_FIELDS:
            setattr(warehouse, key, value)
    db.flush()
    return warehouse


def delete_warehouse(db: Session, warehouse_id: int) -> bool:
    with atomic(db):
        warehouse = (
            db.query(Warehouse)
            .filter(Warehouse.id == warehouse_id, Warehouse.is_deleted.is_(False))
            .with_for_update()
            .first()
        )
        if not warehouse:
            return False

        quantity, reserved = (
            db.query(
                func.coalesce(func.sum(StockSnapshot.quantity), 0),
                func.coalesce(func.sum(StockSnapshot.reserved), 0),
            )
            .filter(StockSnapshot.warehouse_id == warehouse_id)
            .one()
        )
        if to_decimal(quantity) > 0 or to_decimal(reserved) > 0:
            raise InventoryError(InventoryErrorCode.WAREHOUSE_IN_USE)

        movement_count = (
            db.query(func.count(InventoryMovement.id)).filter(InventoryMovement.warehouse_id == warehouse_id).scalar()
        )
        if movement_count:
            raise InventoryError(InventoryErrorCode.WAREHOUSE_IN_USE)

        warehouse.is_deleted = True
        warehouse.deleted_at = datetime.utcnow()
    logger.info("Deleted warehouse id=%s", warehouse_id)
    return True
