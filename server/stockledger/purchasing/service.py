from datetime import datetime
from decimal import Decimal
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from stockledger.inventory.errors import InventoryError, InventoryErrorCode
from stockledger.models import Purchase
from stockledger.utils import QUANTITY_TOLERANCE, to_decimal


logger = logging.getLogger(__name__)

# Statuses in which goods may still be received against a purchase.
RECEIVABLE_STATUSES = {"pending_inbound", "approved", "paid"}
AWAITING_RECEIPT = "pending_inbound"
FULLY_RECEIVED = "approved"


def _next_purchase_number(db: Session) -> str:
    count = db.query(func.count(Purchase.id)).scalar() or 0
    return f"PUR-{count + 1:05d}"


def create_purchase(db: Session, payload: dict) -> Purchase:
    """Register a purchase row. Used by the purchasing workflow and by seeds/tests."""
    payload = dict(payload)
    if not payload.get("purchase_number"):
        payload["purchase_number"] = _next_purchase_number(db)
    payload.setdefault("inbound_quantity", Decimal("0"))
    payload.setdefault("status", AWAITING_RECEIPT)
    purchase = Purchase(**payload)
    db.add(purchase)
    db.flush()
    return purchase


def lock_purchase_for_receipt(db: Session, purchase_id: int | None, *, item_id: int, quantity: Decimal) -> Purchase:
    """Lock the purchase row and check that ``quantity`` of ``item_id`` can be received against it."""
    if purchase_id is None:
        raise InventoryError(InventoryErrorCode.PURCHASE_NOT_FOUND)
    purchase = db.query(Purchase).filter(Purchase.id == purchase_id).with_for_update().first()
    if not purchase:
        raise InventoryError(InventoryErrorCode.PURCHASE_NOT_FOUND)
    if purchase.status not in RECEIVABLE_STATUSES:
        raise InventoryError(InventoryErrorCode.PURCHASE_STATUS_INVALID)
    if purchase.item_id is not None and purchase.item_id != item_id:
        raise InventoryError(InventoryErrorCode.PURCHASE_ITEM_MISMATCH)

    remaining = purchase.remaining_quantity
    if quantity > remaining + QUANTITY_TOLERANCE:
        logger.info(
            "Rejected receipt above remaining quantity: purchase_id=%s requested=%s remaining=%s",
            purchase.id,
            quantity,
            remaining,
        )
        raise InventoryError(InventoryErrorCode.PURCHASE_INBOUND_EXCEEDS)
    return purchase


def record_purchase_receipt(purchase: Purchase, quantity: Decimal) -> Purchase:
    """Add received quantity; a fully received purchase awaiting receipt becomes approved."""
    received = to_decimal(purchase.inbound_quantity) + quantity
    purchase.inbound_quantity = received
    if received + QUANTITY_TOLERANCE >= to_decimal(purchase.quantity) and purchase.status == AWAITING_RECEIPT:
        purchase.status = FULLY_RECEIVED
        logger.info("Purchase id=%s fully received; status -> %s", purchase.id, FULLY_RECEIVED)
    purchase.updated_at = datetime.utcnow()
    return purchase


def is_fully_received(purchase: Purchase) -> bool:
    return to_decimal(purchase.inbound_quantity) + QUANTITY_TOLERANCE >= to_decimal(purchase.quantity)
