from datetime import datetime
from decimal import Decimal
import logging
import uuid

from sqlalchemy.orm import Session

from stockledger.db import atomic
from stockledger.inventory import ledger, snapshots
from stockledger.inventory.catalog import default_attributes, fetch_item, parse_spec_fields
from stockledger.inventory.errors import InventoryError, InventoryErrorCode
from stockledger.inventory.schemas import (
    InventoryInboundCreate,
    InventoryOutboundCreate,
    InventoryReservePayload,
)
from stockledger.inventory.warehouses import fetch_warehouse
from stockledger.models import InventoryItem, InventoryMovement
from stockledger.purchasing.service import lock_purchase_for_receipt, record_purchase_receipt
from stockledger.utils import line_amount, quantize_money


logger = logging.getLogger(__name__)

SYSTEM_OPERATOR = "system"
CLIENT_FIELDS = ("client_id", "client_type", "client_name", "client_contact", "client_phone", "client_address")


def _require_positive(quantity: Decimal) -> Decimal:
    quantity = Decimal(quantity)
    if quantity <= 0:
        raise InventoryError(InventoryErrorCode.INVALID_QUANTITY)
    return quantity


def _lock_item(db: Session, item_id: int) -> InventoryItem:
    item = fetch_item(db, item_id, lock=True)
    if not item:
        raise InventoryError(InventoryErrorCode.ITEM_NOT_FOUND)
    return item


def _require_warehouse(db: Session, warehouse_id: int) -> None:
    if not fetch_warehouse(db, warehouse_id):
        raise InventoryError(InventoryErrorCode.WAREHOUSE_NOT_FOUND)


def _resolve_attributes(item: InventoryItem, attributes: dict[str, str] | None) -> dict[str, str] | None:
    if attributes:
        return attributes
    return default_attributes(parse_spec_fields(item.spec_fields_json))


def _outbound_unit_cost(item: InventoryItem, movement_type: str) -> Decimal | None:
    candidates = [item.unit_cost]
    if movement_type == "sale":
        candidates.insert(0, item.sale_price)
    for value in candidates:
        if value is not None and Decimal(value) > 0:
            return quantize_money(value)
    return None


def create_inbound_record(
    db: Session,
    payload: InventoryInboundCreate,
    operator_id: str = SYSTEM_OPERATOR,
    operator_name: str | None = None,
) -> InventoryMovement:
    quantity = _require_positive(payload.quantity)

    with atomic(db):
        item = _lock_item(db, payload.item_id)
        _require_warehouse(db, payload.warehouse_id)

        purchase = None
        if payload.type == "purchase":
            purchase = lock_purchase_for_receipt(
                db,
                payload.related_purchase_id,
                item_id=item.id,
                quantity=quantity,
            )

        unit_cost = Decimal(payload.unit_cost) if payload.unit_cost is not None else Decimal(item.unit_cost or 0)
        movement = ledger.append_movement(
            db,
            direction="inbound",
            type=payload.type,
            item_id=item.id,
            warehouse_id=payload.warehouse_id,
            quantity=quantity,
            unit_cost=quantize_money(unit_cost) if unit_cost > 0 else None,
            amount=line_amount(unit_cost, quantity),
            operator_id=operator_id,
            operator_name=operator_name,
            occurred_at=payload.occurred_at,
            related_purchase_id=purchase.id if purchase is not None else None,
            attributes=_resolve_attributes(item, payload.attributes),
            notes=payload.notes,
        )
        snapshots.add_quantity(db, item.id, payload.warehouse_id, quantity)

        if purchase is not None:
            item.unit_cost = quantize_money(unit_cost)
            item.updated_at = datetime.utcnow()
            record_purchase_receipt(purchase, quantity)

    logger.info(
        "Recorded inbound movement id=%s type=%s item_id=%s warehouse_id=%s quantity=%s purchase_id=%s",
        movement.id,
        movement.type,
        movement.item_id,
        movement.warehouse_id,
        quantity,
        movement.related_purchase_id,
    )
    return movement


def create_outbound_record(
    db: Session,
    payload: InventoryOutboundCreate,
    operator_id: str = SYSTEM_OPERATOR,
    operator_name: str | None = None,
) -> InventoryMovement:
    quantity = _require_positive(payload.quantity)
    is_transfer = payload.type == "transfer"

    with atomic(db):
        item = _lock_item(db, payload.item_id)
        _require_warehouse(db, payload.warehouse_id)

        if is_transfer:
            if payload.target_warehouse_id is None:
                raise InventoryError(InventoryErrorCode.TRANSFER_TARGET_REQUIRED)
            if payload.target_warehouse_id == payload.warehouse_id:
                raise InventoryError(InventoryErrorCode.TRANSFER_SAME_WAREHOUSE)
            if not fetch_warehouse(db, payload.target_warehouse_id):
                raise InventoryError(InventoryErrorCode.TRANSFER_TARGET_NOT_FOUND)

        available = snapshots.available_quantity(db, item.id, payload.warehouse_id)
        if available < quantity:
            raise InventoryError(InventoryErrorCode.INSUFFICIENT_STOCK)
        if not snapshots.decrement_quantity(db, item.id, payload.warehouse_id, quantity):
            raise InventoryError(InventoryErrorCode.INSUFFICIENT_STOCK)

        unit_cost = _outbound_unit_cost(item, payload.type)
        amount = line_amount(unit_cost, quantity)
        attributes = _resolve_attributes(item, payload.attributes)
        occurred_at = payload.occurred_at or datetime.utcnow()
        transfer_id = (payload.related_order_id or uuid.uuid4().hex) if is_transfer else None

        movement = ledger.append_movement(
            db,
            direction="outbound",
            type=payload.type,
            item_id=item.id,
            warehouse_id=payload.warehouse_id,
            quantity=quantity,
            unit_cost=unit_cost,
            amount=amount,
            operator_id=operator_id,
            operator_name=operator_name,
            occurred_at=occurred_at,
            related_order_id=transfer_id if is_transfer else payload.related_order_id,
            client={field: getattr(payload, field) for field in CLIENT_FIELDS},
            attributes=attributes,
            notes=payload.notes,
        )

        if is_transfer:
            ledger.append_movement(
                db,
                direction="inbound",
                type="transfer",
                item_id=item.id,
                warehouse_id=payload.target_warehouse_id,
                quantity=quantity,
                unit_cost=unit_cost,
                amount=amount,
                operator_id=operator_id,
                operator_name=operator_name,
                occurred_at=occurred_at,
                related_order_id=transfer_id,
                paired_movement_id=movement.id,
                attributes=attributes,
                notes=payload.notes,
            )
            snapshots.add_quantity(db, item.id, payload.target_warehouse_id, quantity)

    logger.info(
        "Recorded outbound movement id=%s type=%s item_id=%s warehouse_id=%s quantity=%s transfer_id=%s",
        movement.id,
        movement.type,
        movement.item_id,
        movement.warehouse_id,
        quantity,
        transfer_id,
    )
    return movement


def revert_outbound_movement(db: Session, movement_id: int) -> None:
    """Administrative correction: undo an outbound movement and drop its ledger row.

    Transfers are undone as a pair; the destination must still hold the
    transferred quantity unreserved.
    """
    with atomic(db):
        item_id = db.query(InventoryMovement.item_id).filter(InventoryMovement.id == movement_id).scalar()
        if item_id is None:
            raise InventoryError(InventoryErrorCode.MOVEMENT_NOT_FOUND)
        db.query(InventoryItem).filter(InventoryItem.id == item_id).with_for_update().first()

        # Re-read under the item lock; a concurrent revert may have removed it.
        movement = ledger.fetch_movement(db, movement_id, lock=True)
        if not movement:
            raise InventoryError(InventoryErrorCode.MOVEMENT_NOT_FOUND)
        if movement.direction != "outbound":
            raise InventoryError(InventoryErrorCode.MOVEMENT_NOT_REVERTIBLE)
        quantity = Decimal(movement.quantity)

        if movement.type == "transfer":
            paired = ledger.paired_inbound(db, movement)
            if paired is not None:
                if not snapshots.decrement_quantity(db, paired.item_id, paired.warehouse_id, Decimal(paired.quantity)):
                    raise InventoryError(InventoryErrorCode.INSUFFICIENT_STOCK)
                db.delete(paired)
                db.flush()

        snapshots.add_quantity(db, movement.item_id, movement.warehouse_id, quantity)
        db.delete(movement)

    logger.info("Reverted outbound movement id=%s", movement_id)


def reserve_stock(db: Session, payload: InventoryReservePayload) -> snapshots.SnapshotState:
    quantity = _require_positive(payload.quantity)
    with atomic(db):
        _lock_item(db, payload.item_id)
        _require_warehouse(db, payload.warehouse_id)
        snapshots.adjust_reserved(db, payload.item_id, payload.warehouse_id, quantity)
        state = snapshots.get_snapshot(db, payload.item_id, payload.warehouse_id)
    logger.info(
        "Reserved stock item_id=%s warehouse_id=%s quantity=%s",
        payload.item_id,
        payload.warehouse_id,
        quantity,
    )
    return state


def release_reserved_stock(db: Session, payload: InventoryReservePayload) -> snapshots.SnapshotState:
    quantity = _require_positive(payload.quantity)
    with atomic(db):
        _lock_item(db, payload.item_id)
        _require_warehouse(db, payload.warehouse_id)
        snapshots.adjust_reserved(db, payload.item_id, payload.warehouse_id, -quantity)
        state = snapshots.get_snapshot(db, payload.item_id, payload.warehouse_id)
    logger.info(
        "Released reserved stock item_id=%s warehouse_id=%s quantity=%s",
        payload.item_id,
        payload.warehouse_id,
        quantity,
    )
    return state
