from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockledger.inventory.errors import InventoryError, InventoryErrorCode
from stockledger.models import StockSnapshot
from stockledger.sql_expressions import snapshot_increment_update, snapshot_increment_upsert, snapshot_insert


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotState:
    item_id: int
    warehouse_id: int
    quantity: Decimal
    reserved: Decimal

    @property
    def available(self) -> Decimal:
        return self.quantity - self.reserved


def get_snapshot(db: Session, item_id: int, warehouse_id: int) -> SnapshotState:
    row = (
        db.query(StockSnapshot)
        .filter(StockSnapshot.item_id == item_id, StockSnapshot.warehouse_id == warehouse_id)
        .populate_existing()
        .first()
    )
    if not row:
        return SnapshotState(item_id, warehouse_id, Decimal("0"), Decimal("0"))
    return SnapshotState(item_id, warehouse_id, Decimal(row.quantity or 0), Decimal(row.reserved or 0))


def available_quantity(db: Session, item_id: int, warehouse_id: int) -> Decimal:
    snapshot = get_snapshot(db, item_id, warehouse_id)
    logger.debug(
        "Snapshot availability lookup: item_id=%s warehouse_id=%s quantity=%s reserved=%s",
        item_id,
        warehouse_id,
        snapshot.quantity,
        snapshot.reserved,
    )
    return snapshot.available


def add_quantity(db: Session, item_id: int, warehouse_id: int, delta: Decimal) -> None:
    """Increment on-hand quantity, creating the snapshot row on first use."""
    dialect_name = db.get_bind().dialect.name
    stmt = snapshot_increment_upsert(item_id, warehouse_id, delta, dialect_name=dialect_name)
    if stmt is not None:
        db.execute(stmt)
        return

    result = db.execute(snapshot_increment_update(item_id, warehouse_id, delta))
    if result.rowcount:
        return
    try:
        with db.begin_nested():
            db.execute(snapshot_insert(item_id, warehouse_id, delta))
    except IntegrityError:
        # Row appeared between the update and the insert.
        db.execute(snapshot_increment_update(item_id, warehouse_id, delta))


def decrement_quantity(db: Session, item_id: int, warehouse_id: int, qty: Decimal) -> bool:
    """Remove ``qty`` from on-hand only if that much is unreserved; False when nothing changed."""
    result = db.execute(
        update(StockSnapshot)
        .where(
            StockSnapshot.item_id == item_id,
            StockSnapshot.warehouse_id == warehouse_id,
            StockSnapshot.quantity - StockSnapshot.reserved >= qty,
        )
        .values(quantity=StockSnapshot.quantity - qty, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return bool(result.rowcount)


def adjust_reserved(db: Session, item_id: int, warehouse_id: int, delta: Decimal) -> None:
    """Move ``reserved`` by ``delta``, keeping it within ``[0, quantity]``."""
    if delta >= 0:
        guard = StockSnapshot.reserved + delta <= StockSnapshot.quantity
        failure = InventoryErrorCode.RESERVE_INSUFFICIENT
    else:
        guard = StockSnapshot.reserved + delta >= 0
        failure = InventoryErrorCode.RESERVE_EXCEEDS

    result = db.execute(
        update(StockSnapshot)
        .where(StockSnapshot.item_id == item_id, StockSnapshot.warehouse_id == warehouse_id, guard)
        .values(reserved=StockSnapshot.reserved + delta, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        raise InventoryError(failure)
