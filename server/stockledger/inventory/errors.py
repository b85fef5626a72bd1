from enum import Enum


class InventoryErrorCode(str, Enum):
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
    WAREHOUSE_NOT_FOUND = "WAREHOUSE_NOT_FOUND"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    TRANSFER_TARGET_REQUIRED = "TRANSFER_TARGET_REQUIRED"
    TRANSFER_TARGET_NOT_FOUND = "TRANSFER_TARGET_NOT_FOUND"
    TRANSFER_SAME_WAREHOUSE = "TRANSFER_SAME_WAREHOUSE"
    RESERVE_INSUFFICIENT = "RESERVE_INSUFFICIENT"
    RESERVE_EXCEEDS = "RESERVE_EXCEEDS"
    ITEM_IN_USE = "ITEM_IN_USE"
    WAREHOUSE_IN_USE = "WAREHOUSE_IN_USE"
    PURCHASE_NOT_FOUND = "PURCHASE_NOT_FOUND"
    PURCHASE_STATUS_INVALID = "PURCHASE_STATUS_INVALID"
    PURCHASE_ITEM_MISMATCH = "PURCHASE_ITEM_MISMATCH"
    PURCHASE_INBOUND_EXCEEDS = "PURCHASE_INBOUND_EXCEEDS"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    MOVEMENT_NOT_FOUND = "MOVEMENT_NOT_FOUND"
    MOVEMENT_NOT_REVERTIBLE = "MOVEMENT_NOT_REVERTIBLE"


NOT_FOUND_CODES: set[InventoryErrorCode] = {
    InventoryErrorCode.ITEM_NOT_FOUND,
    InventoryErrorCode.WAREHOUSE_NOT_FOUND,
    InventoryErrorCode.TRANSFER_TARGET_NOT_FOUND,
    InventoryErrorCode.PURCHASE_NOT_FOUND,
    InventoryErrorCode.MOVEMENT_NOT_FOUND,
}

CONFLICT_CODES: set[InventoryErrorCode] = {
    InventoryErrorCode.INSUFFICIENT_STOCK,
    InventoryErrorCode.RESERVE_INSUFFICIENT,
    InventoryErrorCode.RESERVE_EXCEEDS,
    InventoryErrorCode.ITEM_IN_USE,
    InventoryErrorCode.WAREHOUSE_IN_USE,
}


class InventoryError(ValueError):
    """Raised by inventory operations; ``code`` is stable for callers to branch on."""

    def __init__(self, code: InventoryErrorCode, message: str | None = None):
        self.code = InventoryErrorCode(code)
        super().__init__(message or self.code.value)

    def status_code(self) -> int:
        if self.code in NOT_FOUND_CODES:
            return 404
        if self.code in CONFLICT_CODES:
            return 409
        return 400
