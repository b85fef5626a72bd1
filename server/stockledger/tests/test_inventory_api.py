from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger.db import Base, get_db, is_lock_timeout
from stockledger.main import app
from stockledger.models import InventoryItem
from stockledger.purchasing.service import create_purchase
from stockledger.routers import inventory as inventory_router


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestingSessionLocal() as db:
        db.add_all(
            [
                InventoryItem(sku="CHM-1", name="Ethanol", unit="bottle", category="chemicals",
                              unit_cost=Decimal("2.00"), sale_price=Decimal("5.00"), safety_stock=Decimal("3")),
                InventoryItem(sku="LAB-1", name="Beaker", unit="pcs", category="lab consumables"),
            ]
        )
        db.flush()
        create_purchase(db, {"item_id": 1, "quantity": Decimal("6"), "purchase_number": "PUR-100"})
        db.commit()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    Base.metadata.drop_all(engine)


def _warehouse_ids(client):
    response = client.get("/api/inventory/warehouses/operational")
    assert response.status_code == 200
    return {row["code"]: row["id"] for row in response.json()}


def test_startup_provisions_operational_warehouses(client: TestClient):
    response = client.get("/api/inventory/warehouses/operational")

    assert response.status_code == 200
    assert [(row["code"], row["type"]) for row in response.json()] == [("SCHOOL", "main"), ("COMPANY", "store")]


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_item_crud(client: TestClient):
    created = client.post(
        "/api/inventory/items",
        json={"sku": "OFF-1", "name": "Labels", "unit": "roll", "category": "stationery"},
    )
    assert created.status_code == 201
    item = created.json()
    assert item["category"] == "office"
    assert item["stock_quantity"] == "0"

    duplicate = client.post("/api/inventory/items", json={"sku": "OFF-1", "name": "Other", "unit": "roll"})
    assert duplicate.status_code == 409

    updated = client.patch(f"/api/inventory/items/{item['id']}", json={"name": "Label roll"})
    assert updated.status_code == 200
    assert updated.json()["name"] == "Label roll"

    assert client.delete(f"/api/inventory/items/{item['id']}").status_code == 204
    assert client.get(f"/api/inventory/items/{item['id']}").status_code == 404
    assert client.patch(f"/api/inventory/items/{item['id']}", json={"name": "x"}).status_code == 404


def test_inbound_and_outbound_flow(client: TestClient):
    ids = _warehouse_ids(client)

    inbound = client.post(
        "/api/inventory/inbound",
        json={"item_id": 1, "warehouse_id": ids["SCHOOL"], "quantity": "10", "type": "adjust"},
        headers={"X-Operator-Id": "u-7", "X-Operator-Name": "Dana"},
    )
    assert inbound.status_code == 201
    assert inbound.json()["operator_id"] == "u-7"
    assert inbound.json()["operator_name"] == "Dana"
    assert inbound.json()["warehouse_name"] == "School"

    sale = client.post(
        "/api/inventory/outbound",
        json={
            "item_id": 1,
            "warehouse_id": ids["SCHOOL"],
            "quantity": "4",
            "type": "sale",
            "client_name": "Acme Labs",
            "client_type": "company",
        },
    )
    assert sale.status_code == 201
    assert sale.json()["amount"] == "20.00"
    assert sale.json()["client_name"] == "Acme Labs"
    assert sale.json()["operator_id"] == "system"

    too_much = client.post(
        "/api/inventory/outbound",
        json={"item_id": 1, "warehouse_id": ids["SCHOOL"], "quantity": "7", "type": "use"},
    )
    assert too_much.status_code == 409
    assert too_much.json()["detail"]["code"] == "INSUFFICIENT_STOCK"

    item = client.get("/api/inventory/items/1").json()
    assert Decimal(item["stock_quantity"]) == Decimal("6")


def test_outbound_rejects_non_positive_quantity(client: TestClient):
    ids = _warehouse_ids(client)

    response = client.post(
        "/api/inventory/outbound",
        json={"item_id": 1, "warehouse_id": ids["SCHOOL"], "quantity": "0", "type": "sale"},
    )

    assert response.status_code == 422


def test_transfer_endpoints(client: TestClient):
    ids = _warehouse_ids(client)
    client.post(
        "/api/inventory/inbound",
        json={"item_id": 2, "warehouse_id": ids["SCHOOL"], "quantity": "5", "type": "adjust"},
    )

    missing_target = client.post(
        "/api/inventory/outbound",
        json={"item_id": 2, "warehouse_id": ids["SCHOOL"], "quantity": "1", "type": "transfer"},
    )
    assert missing_target.status_code == 400
    assert missing_target.json()["detail"]["code"] == "TRANSFER_TARGET_REQUIRED"

    transfer = client.post(
        "/api/inventory/outbound",
        json={
            "item_id": 2,
            "warehouse_id": ids["SCHOOL"],
            "target_warehouse_id": ids["COMPANY"],
            "quantity": "2",
            "type": "transfer",
        },
    )
    assert transfer.status_code == 201
    transfer_id = transfer.json()["related_order_id"]

    orders = client.get("/api/inventory/transfers").json()
    assert [order["transfer_id"] for order in orders] == [transfer_id]
    assert orders[0]["source_warehouse_name"] == "School"
    assert orders[0]["target_warehouse_name"] == "Company"

    detail = client.get(f"/api/inventory/transfers/{transfer_id}")
    assert detail.status_code == 200
    assert {row["direction"] for row in detail.json()["movements"]} == {"inbound", "outbound"}
    assert client.get("/api/inventory/transfers/nope").status_code == 404

    warehouses = {row["code"]: row for row in client.get("/api/inventory/warehouses").json()}
    assert Decimal(warehouses["SCHOOL"]["stock_quantity"]) == Decimal("3")
    assert Decimal(warehouses["COMPANY"]["stock_quantity"]) == Decimal("2")


def test_purchase_receipt_endpoints(client: TestClient):
    ids = _warehouse_ids(client)

    received = client.post(
        "/api/inventory/inbound",
        json={
            "item_id": 1,
            "warehouse_id": ids["COMPANY"],
            "quantity": "6",
            "type": "purchase",
            "related_purchase_id": 1,
            "unit_cost": "2.50",
        },
    )
    assert received.status_code == 201
    assert received.json()["amount"] == "15.00"

    progress = client.get("/api/inventory/purchases/1/receipt").json()
    assert progress["status"] == "approved"
    assert progress["fully_received"] is True

    exceeded = client.post(
        "/api/inventory/inbound",
        json={"item_id": 1, "warehouse_id": ids["COMPANY"], "quantity": "1", "type": "purchase", "related_purchase_id": 1},
    )
    assert exceeded.status_code == 400
    assert exceeded.json()["detail"]["code"] == "PURCHASE_INBOUND_EXCEEDS"

    unknown = client.post(
        "/api/inventory/inbound",
        json={"item_id": 1, "warehouse_id": ids["COMPANY"], "quantity": "1", "type": "purchase", "related_purchase_id": 99},
    )
    assert unknown.status_code == 404
    assert client.get("/api/inventory/purchases/99/receipt").status_code == 404


def test_reserve_release_and_revert(client: TestClient):
    ids = _warehouse_ids(client)
    client.post(
        "/api/inventory/inbound",
        json={"item_id": 1, "warehouse_id": ids["SCHOOL"], "quantity": "4", "type": "adjust"},
    )

    reserved = client.post(
        "/api/inventory/reserve",
        json={"item_id": 1, "warehouse_id": ids["SCHOOL"], "quantity": "3"},
    )
    assert reserved.status_code == 201
    assert Decimal(reserved.json()["available"]) == Decimal("1")

    over = client.post("/api/inventory/release", json={"item_id": 1, "warehouse_id": ids["SCHOOL"], "quantity": "5"})
    assert over.status_code == 409
    assert over.json()["detail"]["code"] == "RESERVE_EXCEEDS"

    released = client.post("/api/inventory/release", json={"item_id": 1, "warehouse_id": ids["SCHOOL"], "quantity": "3"})
    assert released.status_code == 200
    assert Decimal(released.json()["reserved"]) == Decimal("0")

    sale = client.post(
        "/api/inventory/outbound",
        json={"item_id": 1, "warehouse_id": ids["SCHOOL"], "quantity": "4", "type": "sale"},
    ).json()
    assert client.delete(f"/api/inventory/outbound/{sale['id']}").status_code == 204
    assert client.delete(f"/api/inventory/outbound/{sale['id']}").status_code == 404

    movements = client.get("/api/inventory/movements", params={"item_id": 1}).json()
    assert movements["total"] == 1
    assert movements["data"][0]["direction"] == "inbound"


def test_warehouse_delete_guard_and_stats(client: TestClient):
    ids = _warehouse_ids(client)
    client.post(
        "/api/inventory/inbound",
        json={"item_id": 1, "warehouse_id": ids["SCHOOL"], "quantity": "2", "type": "adjust"},
    )

    blocked = client.delete(f"/api/inventory/warehouses/{ids['SCHOOL']}")
    assert blocked.status_code == 409
    assert blocked.json()["detail"]["code"] == "WAREHOUSE_IN_USE"

    spare = client.post("/api/inventory/warehouses", json={"name": "Spare", "code": "SPARE", "type": "virtual"})
    assert spare.status_code == 201
    assert client.delete(f"/api/inventory/warehouses/{spare.json()['id']}").status_code == 204
    assert client.get(f"/api/inventory/warehouses/{spare.json()['id']}").status_code == 404

    stats = client.get("/api/inventory/stats").json()
    assert stats["total_items"] == 2
    assert stats["total_warehouses"] == 2
    assert Decimal(stats["total_quantity"]) == Decimal("2")
    assert [row["item_id"] for row in stats["low_stock_items"]] == [1]


class _DriverError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


def test_lock_wait_timeout_maps_to_503(client: TestClient, monkeypatch):
    def busy(*args, **kwargs):
        raise OperationalError("SELECT ... FOR UPDATE", {}, _DriverError("lock timeout", pgcode="55P03"))

    monkeypatch.setattr(inventory_router, "create_outbound_record", busy)
    ids = _warehouse_ids(client)

    response = client.post(
        "/api/inventory/outbound",
        json={"item_id": 1, "warehouse_id": ids["SCHOOL"], "quantity": "1", "type": "sale"},
    )

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "LOCK_TIMEOUT"


def test_other_operational_errors_are_not_reported_as_lock_timeouts(client: TestClient, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, _DriverError("server closed the connection", pgcode="08006"))

    monkeypatch.setattr(inventory_router, "create_inbound_record", broken)
    ids = _warehouse_ids(client)

    with pytest.raises(OperationalError):
        client.post(
            "/api/inventory/inbound",
            json={"item_id": 1, "warehouse_id": ids["SCHOOL"], "quantity": "1", "type": "adjust"},
        )


def test_is_lock_timeout_reads_sqlstate():
    assert is_lock_timeout(OperationalError("stmt", {}, _DriverError("x", pgcode="55P03")))
    assert not is_lock_timeout(OperationalError("stmt", {}, _DriverError("no such table: inventory_items")))
    assert is_lock_timeout(OperationalError("stmt", {}, _DriverError("database is locked")))
