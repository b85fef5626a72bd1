from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Column, DateTime, MetaData, Table, create_engine, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import sessionmaker

from stockledger.db import Base
from stockledger.inventory import snapshots
from stockledger.models import InventoryItem, Warehouse
from stockledger.sql_expressions import occurred_on, snapshot_increment_upsert


def test_snapshot_upsert_compiles_on_conflict_for_postgres_and_sqlite():
    for name, dialect in (("postgresql", postgresql.dialect()), ("sqlite", sqlite.dialect())):
        stmt = snapshot_increment_upsert(1, 2, Decimal("3"), dialect_name=name)
        compiled = str(stmt.compile(dialect=dialect))

        assert "ON CONFLICT (item_id, warehouse_id) DO UPDATE" in compiled
        assert "inventory_stock_snapshots.quantity + excluded.quantity" in compiled


def test_snapshot_upsert_has_no_form_for_other_dialects():
    assert snapshot_increment_upsert(1, 2, Decimal("3"), dialect_name="mssql") is None


def test_occurred_on_uses_half_open_day_range():
    metadata = MetaData()
    movements = Table("movements", metadata, Column("occurred_at", DateTime))

    compiled = select(movements).where(occurred_on(movements.c.occurred_at, date(2026, 1, 31))).compile(
        dialect=postgresql.dialect()
    )

    assert "occurred_at >= %(occurred_at_1)s" in str(compiled)
    assert "occurred_at < %(occurred_at_2)s" in str(compiled)
    assert compiled.params["occurred_at_1"] == datetime(2026, 1, 31)
    assert compiled.params["occurred_at_2"] == datetime(2026, 2, 1)


def test_add_quantity_creates_then_increments_snapshot():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)

    with SessionLocal() as db:
        item = InventoryItem(sku="S-1", name="Swab", unit="pcs", category="uncategorized")
        warehouse = Warehouse(name="Main", code="MAIN", type="main")
        db.add_all([item, warehouse])
        db.flush()

        snapshots.add_quantity(db, item.id, warehouse.id, Decimal("2"))
        snapshots.add_quantity(db, item.id, warehouse.id, Decimal("1.5"))

        state = snapshots.get_snapshot(db, item.id, warehouse.id)
        assert state.quantity == Decimal("3.5")
        assert state.reserved == Decimal("0")

        assert snapshots.decrement_quantity(db, item.id, warehouse.id, Decimal("4")) is False
        assert snapshots.decrement_quantity(db, item.id, warehouse.id, Decimal("3.5")) is True
        assert snapshots.get_snapshot(db, item.id, warehouse.id).quantity == Decimal("0")
