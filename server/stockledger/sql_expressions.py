from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import and_, insert, update
from sqlalchemy.dialects import postgresql, sqlite

from .models import StockSnapshot


def snapshot_increment_upsert(item_id: int, warehouse_id: int, delta: Decimal, *, dialect_name: str):
    """Return an INSERT ... ON CONFLICT statement adding ``delta`` to a snapshot row.

    Returns None for dialects without ON CONFLICT support; callers then fall
    back to update-then-insert.
    """
    values = {
        "item_id": item_id,
        "warehouse_id": warehouse_id,
        "quantity": delta,
        "reserved": Decimal("0"),
        "updated_at": datetime.utcnow(),
    }
    if dialect_name == "postgresql":
        stmt = postgresql.insert(StockSnapshot).values(**values)
    elif dialect_name == "sqlite":
        stmt = sqlite.insert(StockSnapshot).values(**values)
    else:
        return None

    return stmt.on_conflict_do_update(
        index_elements=[StockSnapshot.item_id, StockSnapshot.warehouse_id],
        set_={
            "quantity": StockSnapshot.quantity + stmt.excluded.quantity,
            "updated_at": stmt.excluded.updated_at,
        },
    )


def snapshot_increment_update(item_id: int, warehouse_id: int, delta: Decimal):
    return (
        update(StockSnapshot)
        .where(StockSnapshot.item_id == item_id, StockSnapshot.warehouse_id == warehouse_id)
        .values(quantity=StockSnapshot.quantity + delta, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )


def snapshot_insert(item_id: int, warehouse_id: int, quantity: Decimal):
    return insert(StockSnapshot).values(
        item_id=item_id,
        warehouse_id=warehouse_id,
        quantity=quantity,
        reserved=Decimal("0"),
        updated_at=datetime.utcnow(),
    )


def occurred_on(column, day: date):
    """Match a datetime column against one calendar day.

    SQLite has no DATE type, so compare against a half-open datetime range.
    """
    start = datetime.combine(day, time.min)
    return and_(column >= start, column < start + timedelta(days=1))
