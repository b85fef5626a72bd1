from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger import seed
from stockledger.db import Base
from stockledger.models import InventoryItem, Warehouse


def _make_session_local():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)
    return TestingSessionLocal, engine


def test_seed_provisions_warehouses_without_demo_items(monkeypatch):
    TestingSessionLocal, engine = _make_session_local()
    monkeypatch.setattr(seed, "SessionLocal", TestingSessionLocal)
    monkeypatch.delenv("SEED_DEMO_ITEMS", raising=False)

    seed.run_seed()

    with TestingSessionLocal() as db:
        codes = sorted(code for (code,) in db.query(Warehouse.code).all())
        assert codes == ["COMPANY", "SCHOOL"]
        assert db.query(InventoryItem).count() == 0

    Base.metadata.drop_all(engine)


def test_seed_demo_items_is_repeatable(monkeypatch):
    TestingSessionLocal, engine = _make_session_local()
    monkeypatch.setattr(seed, "SessionLocal", TestingSessionLocal)
    monkeypatch.setenv("SEED_DEMO_ITEMS", "1")

    seed.run_seed()
    seed.run_seed()

    with TestingSessionLocal() as db:
        assert db.query(InventoryItem).count() == len(seed.DEMO_ITEMS)
        assert db.query(Warehouse).count() == 2
        ethanol = db.query(InventoryItem).filter(InventoryItem.sku == "CHM-ETH-500").one()
        assert ethanol.category == "chemicals"

    Base.metadata.drop_all(engine)
