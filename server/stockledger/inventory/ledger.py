"""Append-only movement ledger.

Movements are the audit record of every stock change. Client and operator
details are copied onto the row when it is written so that history stays
accurate after the directory records they came from change.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
import json
import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from stockledger.models import InventoryMovement


logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


@dataclass
class MovementFilters:
    direction: Optional[str] = None
    type: Optional[str] = None
    item_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    related_purchase_id: Optional[int] = None
    related_order_id: Optional[str] = None
    occurred_from: Optional[date] = None
    occurred_to: Optional[date] = None


def append_movement(
    db: Session,
    *,
    direction: str,
    type: str,
    item_id: int,
    warehouse_id: int,
    quantity: Decimal,
    unit_cost: Decimal | None = None,
    amount: Decimal | None = None,
    operator_id: str | None = None,
    operator_name: str | None = None,
    occurred_at: datetime | None = None,
    related_order_id: str | None = None,
    related_purchase_id: int | None = None,
    paired_movement_id: int | None = None,
    client: dict | None = None,
    attributes: dict[str, str] | None = None,
    notes: str | None = None,
) -> InventoryMovement:
    client = client or {}
    movement = InventoryMovement(
        direction=direction,
        type=type,
        item_id=item_id,
        warehouse_id=warehouse_id,
        quantity=quantity,
        unit_cost=unit_cost,
        amount=amount,
        operator_id=operator_id,
        operator_name=operator_name,
        occurred_at=occurred_at or datetime.utcnow(),
        related_order_id=related_order_id,
        related_purchase_id=related_purchase_id,
        paired_movement_id=paired_movement_id,
        client_id=client.get("client_id"),
        client_type=client.get("client_type"),
        client_name=client.get("client_name"),
        client_contact=client.get("client_contact"),
        client_phone=client.get("client_phone"),
        client_address=client.get("client_address"),
        attributes_json=json.dumps(attributes, ensure_ascii=False, sort_keys=True) if attributes else None,
        notes=notes,
        created_at=datetime.utcnow(),
    )
    db.add(movement)
    db.flush()
    logger.debug(
        "Appended %s %s movement id=%s item_id=%s warehouse_id=%s quantity=%s",
        direction,
        type,
        movement.id,
        item_id,
        warehouse_id,
        quantity,
    )
    return movement


def fetch_movement(db: Session, movement_id: int, *, lock: bool = False) -> InventoryMovement | None:
    query = db.query(InventoryMovement).filter(InventoryMovement.id == movement_id)
    if lock:
        query = query.with_for_update().populate_existing()
    return query.first()


def paired_inbound(db: Session, movement: InventoryMovement) -> InventoryMovement | None:
    """The inbound half written alongside an outbound transfer row."""
    return (
        db.query(InventoryMovement)
        .filter(InventoryMovement.paired_movement_id == movement.id, InventoryMovement.direction == "inbound")
        .with_for_update()
        .first()
    )


def query_movements(
    db: Session,
    filters: MovementFilters | None = None,
    *,
    page: int = 1,
    page_size: int = 50,
) -> tuple[list[InventoryMovement], int]:
    filters = filters or MovementFilters()
    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

    query = db.query(InventoryMovement)
    if filters.direction:
        query = query.filter(InventoryMovement.direction == filters.direction)
    if filters.type:
        query = query.filter(InventoryMovement.type == filters.type)
    if filters.item_id is not None:
        query = query.filter(InventoryMovement.item_id == filters.item_id)
    if filters.warehouse_id is not None:
        query = query.filter(InventoryMovement.warehouse_id == filters.warehouse_id)
    if filters.related_purchase_id is not None:
        query = query.filter(InventoryMovement.related_purchase_id == filters.related_purchase_id)
    if filters.related_order_id:
        query = query.filter(InventoryMovement.related_order_id == filters.related_order_id)
    if filters.occurred_from:
        query = query.filter(InventoryMovement.occurred_at >= datetime.combine(filters.occurred_from, time.min))
    if filters.occurred_to:
        query = query.filter(
            InventoryMovement.occurred_at < datetime.combine(filters.occurred_to, time.min) + timedelta(days=1)
        )

    total = query.with_entities(func.count(InventoryMovement.id)).scalar() or 0
    rows = (
        query.options(selectinload(InventoryMovement.item), selectinload(InventoryMovement.warehouse))
        .order_by(InventoryMovement.occurred_at.desc(), InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


def transfer_movements(db: Session, transfer_id: str) -> list[InventoryMovement]:
    return (
        db.query(InventoryMovement)
        .options(selectinload(InventoryMovement.item), selectinload(InventoryMovement.warehouse))
        .filter(InventoryMovement.type == "transfer", InventoryMovement.related_order_id == transfer_id)
        .order_by(InventoryMovement.direction.desc(), InventoryMovement.id.asc())
        .all()
    )


def _transfer_order(transfer_id: str, movements: list[InventoryMovement]) -> dict:
    source = next((row for row in movements if row.direction == "outbound"), None)
    inbound = [row for row in movements if row.direction == "inbound"]
    target = next((row for row in inbound if source and row.paired_movement_id == source.id), None)
    target = target or next(iter(inbound), None)
    primary = source or target
    return {
        "transfer_id": transfer_id,
        "item_id": primary.item_id,
        "item_name": primary.item.name if primary.item else None,
        "item_sku": primary.item.sku if primary.item else None,
        "quantity": primary.quantity,
        "unit_cost": primary.unit_cost,
        "amount": primary.amount,
        "source_warehouse_id": source.warehouse_id if source else None,
        "source_warehouse_name": source.warehouse.name if source and source.warehouse else None,
        "target_warehouse_id": target.warehouse_id if target else None,
        "target_warehouse_name": target.warehouse.name if target and target.warehouse else None,
        "operator_id": primary.operator_id,
        "occurred_at": primary.occurred_at,
        "notes": primary.notes,
    }


def list_transfer_orders(db: Session, limit: int = 50) -> list[dict]:
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    transfer_ids = [
        transfer_id
        for transfer_id, _ in (
            db.query(InventoryMovement.related_order_id, func.max(InventoryMovement.occurred_at))
            .filter(InventoryMovement.type == "transfer", InventoryMovement.related_order_id.isnot(None))
            .group_by(InventoryMovement.related_order_id)
            .order_by(func.max(InventoryMovement.occurred_at).desc())
            .limit(limit)
            .all()
        )
    ]
    return [_transfer_order(transfer_id, transfer_movements(db, transfer_id)) for transfer_id in transfer_ids]


def get_transfer_detail(db: Session, transfer_id: str) -> dict | None:
    movements = transfer_movements(db, transfer_id)
    if not movements:
        return None
    detail = _transfer_order(transfer_id, movements)
    detail["movements"] = movements
    return detail
