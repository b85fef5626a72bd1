from decimal import Decimal

import pytest

from stockledger.inventory import catalog
from stockledger.inventory.errors import InventoryError, InventoryErrorCode
from stockledger.inventory.schemas import InventoryInboundCreate
from stockledger.inventory.service import create_inbound_record
from stockledger.inventory.warehouses import (
    create_warehouse,
    delete_warehouse,
    ensure_operational_warehouses,
    list_operational_warehouses,
)
from stockledger.models import Warehouse


def test_normalize_category_maps_aliases_and_blanks():
    assert catalog.normalize_category(None) == "uncategorized"
    assert catalog.normalize_category("  ") == "uncategorized"
    assert catalog.normalize_category("Reagents") == "chemicals"
    assert catalog.normalize_category("office_supplies") == "office"
    assert catalog.normalize_category("Finished Goods") == "finished goods"
    assert catalog.normalize_category("Bespoke") == "Bespoke"


def test_parse_spec_fields_skips_malformed_entries():
    raw = (
        '[{"key": "grade", "label": "Grade", "options": ["A", "B"], "defaultValue": "A"},'
        ' {"label": "no key"}, "junk", {"key": "size", "label": "Size", "options": [1, 2]}]'
    )

    assert catalog.parse_spec_fields(raw) == [
        {"key": "grade", "label": "Grade", "options": ["A", "B"], "default_value": "A"},
        {"key": "size", "label": "Size"},
    ]
    assert catalog.parse_spec_fields("{not json") is None
    assert catalog.parse_spec_fields('{"key": "grade"}') is None
    assert catalog.parse_spec_fields("") is None


def test_parse_attributes_stringifies_values():
    assert catalog.parse_attributes('{"grade": "A", "lot": 7, "skip": null}') == {"grade": "A", "lot": "7"}
    assert catalog.parse_attributes("[1, 2]") is None
    assert catalog.parse_attributes("broken") is None


def test_create_item_normalizes_category_and_serializes_spec_fields(db):
    item = catalog.create_item(
        db,
        {
            "sku": "CHM-1",
            "name": "Acetone",
            "unit": "bottle",
            "category": "reagent",
            "spec_fields": [{"key": "purity", "label": "Purity", "default_value": "99%"}],
        },
    )
    db.commit()

    assert item.category == "chemicals"
    assert catalog.parse_spec_fields(item.spec_fields_json) == [
        {"key": "purity", "label": "Purity", "default_value": "99%"}
    ]


def test_list_items_searches_name_and_sku(db, warehouses, make_item):
    make_item(sku="ABC-1", name="Beaker")
    make_item(sku="XYZ-9", name="Flask")
    stocked = make_item(sku="ABC-2", name="Pipette")
    create_inbound_record(
        db,
        InventoryInboundCreate(
            item_id=stocked.id, warehouse_id=warehouses["SCHOOL"].id, quantity=Decimal("4"), type="adjust"
        ),
    )

    rows = catalog.list_items(db, search="abc")

    assert [(item.name, stock) for item, stock in rows] == [
        ("Beaker", Decimal("0")),
        ("Pipette", Decimal("4")),
    ]


def test_delete_item_refuses_items_with_history(db, warehouses, make_item):
    item = make_item()
    create_inbound_record(
        db,
        InventoryInboundCreate(item_id=item.id, warehouse_id=warehouses["SCHOOL"].id, quantity=Decimal("2"), type="adjust"),
    )

    with pytest.raises(InventoryError) as exc:
        catalog.delete_item(db, item.id)

    assert exc.value.code == InventoryErrorCode.ITEM_IN_USE
    assert catalog.fetch_item(db, item.id) is not None


def test_delete_unused_item_tombstones_it(db, make_item):
    item = make_item()

    assert catalog.delete_item(db, item.id) is True

    assert catalog.fetch_item(db, item.id) is None
    assert catalog.get_item(db, item.id) is None
    assert catalog.delete_item(db, item.id) is False


def test_delete_warehouse_with_stock_is_refused(db, warehouses, make_item):
    item = make_item()
    school = warehouses["SCHOOL"]
    create_inbound_record(
        db,
        InventoryInboundCreate(item_id=item.id, warehouse_id=school.id, quantity=Decimal("1"), type="adjust"),
    )

    with pytest.raises(InventoryError) as exc:
        delete_warehouse(db, school.id)

    assert exc.value.code == InventoryErrorCode.WAREHOUSE_IN_USE


def test_delete_empty_warehouse(db):
    warehouse = create_warehouse(db, {"name": "Overflow", "code": "OVF", "type": "virtual"})
    db.commit()

    assert delete_warehouse(db, warehouse.id) is True
    assert delete_warehouse(db, warehouse.id) is False


def test_ensure_operational_warehouses_is_idempotent_and_restores(db):
    ensure_operational_warehouses(db)
    ensure_operational_warehouses(db)
    assert db.query(Warehouse).count() == 2

    school = db.query(Warehouse).filter(Warehouse.code == "SCHOOL").one()
    school.is_deleted = True
    school.name = "Renamed"
    db.commit()

    rows = list_operational_warehouses(db)

    assert [warehouse.code for warehouse, _, _ in rows] == ["SCHOOL", "COMPANY"]
    db.refresh(school)
    assert school.is_deleted is False
    assert school.name == "School"
    assert db.query(Warehouse).count() == 2
