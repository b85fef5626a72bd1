import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stockledger.db import Base
from stockledger.inventory.warehouses import ensure_operational_warehouses, get_warehouse_by_code
from stockledger.main import app
from stockledger.models import InventoryItem


@pytest.fixture(autouse=True)
def reset_dependency_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def db():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture()
def warehouses(db):
    """The two operational warehouses, keyed by code."""
    ensure_operational_warehouses(db)
    return {code: get_warehouse_by_code(db, code) for code in ("SCHOOL", "COMPANY")}


@pytest.fixture()
def make_item(db):
    def _make_item(sku="SKU-1", name="Widget", **fields):
        fields.setdefault("unit", "pcs")
        fields.setdefault("category", "uncategorized")
        item = InventoryItem(sku=sku, name=name, **fields)
        db.add(item)
        db.commit()
        return item

    return _make_item
