import logging
import os
from decimal import Decimal

from sqlalchemy.orm import Session

from .db import SessionLocal
from .inventory.catalog import create_item
from .inventory.warehouses import ensure_operational_warehouses
from .models import InventoryItem


logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "TRUE", "yes", "YES"}

DEMO_ITEMS = [
    {
        "sku": "CHM-ETH-500",
        "name": "Ethanol 500ml",
        "unit": "bottle",
        "category": "chemicals",
        "safety_stock": Decimal("10"),
        "unit_cost": Decimal("18.50"),
        "sale_price": Decimal("32.00"),
        "spec_fields": [
            {"key": "grade", "label": "Grade", "options": ["A", "B"], "default_value": "A"},
        ],
    },
    {
        "sku": "LAB-BKR-250",
        "name": "Beaker 250ml",
        "unit": "pcs",
        "category": "lab consumables",
        "safety_stock": Decimal("25"),
        "unit_cost": Decimal("6.00"),
        "sale_price": Decimal("12.00"),
    },
    {
        "sku": "OFF-LBL-100",
        "name": "Label roll",
        "unit": "pcs",
        "category": "office",
        "safety_stock": Decimal("5"),
        "unit_cost": Decimal("2.40"),
    },
]


def _seed_demo_items(db: Session) -> int:
    created = 0
    for payload in DEMO_ITEMS:
        if db.query(InventoryItem).filter(InventoryItem.sku == payload["sku"]).first():
            continue
        create_item(db, payload)
        created += 1
    return created


def run_seed():
    db: Session = SessionLocal()
    try:
        ensure_operational_warehouses(db)

        if os.getenv("SEED_DEMO_ITEMS", "0") in TRUTHY:
            created = _seed_demo_items(db)
            logger.info("Seeded %s demo inventory items", created)
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_seed()
