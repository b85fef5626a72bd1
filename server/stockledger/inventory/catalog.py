from datetime import datetime
from decimal import Decimal
import json
import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from stockledger.db import atomic
from stockledger.inventory.errors import InventoryError, InventoryErrorCode
from stockledger.models import InventoryItem, InventoryMovement, StockSnapshot
from stockledger.utils import to_decimal


logger = logging.getLogger(__name__)

UNCATEGORIZED = "uncategorized"

CATEGORY_OPTIONS = (
    "chemicals",
    "lab consumables",
    "raw materials",
    "semi-finished",
    "finished goods",
    "accessories",
    "equipment",
    "tools",
    "office",
    "safety",
    "testing samples",
    "pantry",
    "services",
    UNCATEGORIZED,
)

CATEGORY_ALIASES = {
    "chemical": "chemicals",
    "reagent": "chemicals",
    "reagents": "chemicals",
    "chemical reagent": "chemicals",
    "chemical reagents": "chemicals",
    "consumables": "lab consumables",
    "glassware": "lab consumables",
    "raw material": "raw materials",
    "material": "raw materials",
    "materials": "raw materials",
    "semi": "semi-finished",
    "semi finished": "semi-finished",
    "finished": "finished goods",
    "accessory": "accessories",
    "devices": "equipment",
    "tool": "tools",
    "stationery": "office",
    "office supplies": "office",
    "safety supplies": "safety",
    "ppe": "safety",
    "test": "testing samples",
    "testing": "testing samples",
    "kitchen": "pantry",
    "service": "services",
    "other": UNCATEGORIZED,
    "others": UNCATEGORIZED,
    "misc": UNCATEGORIZED,
}


def _alias_key(value: str) -> str:
    return " ".join(value.strip().lower().replace("_", " ").replace("-", " ").split())


def normalize_category(value: str | None) -> str:
    raw = (value or "").strip()
    if not raw:
        return UNCATEGORIZED
    if raw in CATEGORY_OPTIONS:
        return raw
    alias = CATEGORY_ALIASES.get(_alias_key(raw))
    if alias:
        return alias
    if _alias_key(raw) in CATEGORY_OPTIONS:
        return _alias_key(raw)
    return raw


def _load_json(raw: Any) -> Any:
    if raw is None:
        return None
    if isinstance(raw, (list, dict)):
        return raw
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    text = str(raw).strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        logger.warning("Ignoring malformed inventory JSON column: %.80r", text)
        return None


def parse_spec_fields(raw: Any) -> list[dict] | None:
    """Parse a stored attribute schema; malformed data reads as absent."""
    data = _load_json(raw)
    if not isinstance(data, list):
        return None
    fields: list[dict] = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        key = entry.get("key")
        label = entry.get("label")
        if not isinstance(key, str) or not key.strip() or not isinstance(label, str):
            continue
        field = {"key": key.strip(), "label": label}
        options = entry.get("options")
        if isinstance(options, list) and all(isinstance(option, str) for option in options):
            field["options"] = options
        for name in ("unit", "description"):
            if isinstance(entry.get(name), str):
                field[name] = entry[name]
        default_value = entry.get("default_value", entry.get("defaultValue"))
        if isinstance(default_value, str):
            field["default_value"] = default_value
        fields.append(field)
    return fields or None


def parse_attributes(raw: Any) -> dict[str, str] | None:
    data = _load_json(raw)
    if not isinstance(data, dict):
        return None
    attributes = {str(key): str(value) for key, value in data.items() if value is not None}
    return attributes or None


def default_attributes(spec_fields: list[dict] | None) -> dict[str, str] | None:
    if not spec_fields:
        return None
    defaults = {}
    for field in spec_fields:
        value = (field.get("default_value") or "").strip()
        if field.get("key") and value:
            defaults[field["key"]] = value
    return defaults or None


def serialize_spec_fields(spec_fields: list | None) -> str | None:
    if not spec_fields:
        return None
    normalized = [field.model_dump(exclude_none=True) if hasattr(field, "model_dump") else field for field in spec_fields]
    return json.dumps(parse_spec_fields(normalized) or [])


def fetch_item(db: Session, item_id: int, *, lock: bool = False) -> InventoryItem | None:
    query = db.query(InventoryItem).filter(InventoryItem.id == item_id, InventoryItem.is_deleted.is_(False))
    if lock:
        query = query.with_for_update()
    return query.first()


def get_item(db: Session, item_id: int) -> tuple[InventoryItem, Decimal] | None:
    item = fetch_item(db, item_id)
    if not item:
        return None
    total = (
        db.query(func.coalesce(func.sum(StockSnapshot.quantity), 0))
        .filter(StockSnapshot.item_id == item_id)
        .scalar()
    )
    return item, Decimal(total or 0)


def list_items(
    db: Session,
    *,
    search: str | None = None,
    category: str | None = None,
) -> list[tuple[InventoryItem, Decimal]]:
    query = db.query(InventoryItem).filter(InventoryItem.is_deleted.is_(False))
    if search:
        like = f"%{search.strip().lower()}%"
        query = query.filter(
            func.lower(InventoryItem.name).like(like) | func.lower(InventoryItem.sku).like(like)
        )
    if category:
        query = query.filter(InventoryItem.category == normalize_category(category))
    items = query.order_by(InventoryItem.name.asc()).all()

    stock_rows = (
        db.query(StockSnapshot.item_id, func.coalesce(func.sum(StockSnapshot.quantity), 0))
        .group_by(StockSnapshot.item_id)
        .all()
    )
    stock_by_item = {item_id: Decimal(total or 0) for item_id, total in stock_rows}
    return [(item, stock_by_item.get(item.id, Decimal("0"))) for item in items]


def _apply_item_fields(item: InventoryItem, payload: dict) -> None:
    for key in ("sku", "name", "unit", "safety_stock", "unit_cost", "sale_price", "image_url"):
        if key in payload:
            setattr(item, key, payload[key])
    if "category" in payload:
        item.category = normalize_category(payload["category"])
    if "spec_fields" in payload:
        item.spec_fields_json = serialize_spec_fields(payload["spec_fields"])


def create_item(db: Session, payload: dict) -> InventoryItem:
    item = InventoryItem(
        safety_stock=Decimal("0"),
        unit_cost=Decimal("0"),
        category=UNCATEGORIZED,
        is_deleted=False,
    )
    _apply_item_fields(item, payload)
    if "category" not in payload:
        item.category = UNCATEGORIZED
    db.add(item)
    db.flush()
    logger.info("Created inventory item id=%s sku=%s", item.id, item.sku)
    return item


def update_item(db: Session, item_id: int, payload: dict) -> InventoryItem | None:
    item = fetch_item(db, item_id)
    if not item:
        return None
    _apply_item_fields(item, payload)
    db.flush()
    return item


def delete_item(db: Session, item_id: int) -> bool:
    """Tombstone an item that has never held stock or appeared in the ledger."""
    with atomic(db):
        item = fetch_item(db, item_id, lock=True)
        if not item:
            return False

        quantity, reserved = (
            db.query(
                func.coalesce(func.sum(StockSnapshot.quantity), 0),
                func.coalesce(func.sum(StockSnapshot.reserved), 0),
            )
            .filter(StockSnapshot.item_id == item_id)
            .one()
        )
        if to_decimal(quantity) > 0 or to_decimal(reserved) > 0:
            raise InventoryError(InventoryErrorCode.ITEM_IN_USE)

        movement_count = db.query(func.count(InventoryMovement.id)).filter(InventoryMovement.item_id == item_id).scalar()
        if movement_count:
            raise InventoryError(InventoryErrorCode.ITEM_IN_USE)

        item.is_deleted = True
        item.deleted_at = datetime.utcnow()
    logger.info("Deleted inventory item id=%s", item_id)
    return True
