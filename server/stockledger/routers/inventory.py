from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from stockledger.db import get_db, is_lock_timeout
from stockledger.inventory import catalog, schemas, stats, warehouses
from stockledger.inventory.errors import InventoryError
from stockledger.inventory.ledger import (
    MovementFilters,
    get_transfer_detail,
    list_transfer_orders,
    query_movements,
)
from stockledger.inventory.service import (
    create_inbound_record,
    create_outbound_record,
    release_reserved_stock,
    reserve_stock,
    revert_outbound_movement,
)
from stockledger.models import InventoryItem, InventoryMovement, Purchase, Warehouse
from stockledger.purchasing.schemas import PurchaseReceiptProgress
from stockledger.purchasing.service import is_fully_received


router = APIRouter(prefix="/api/inventory", tags=["inventory"])


def _raise_inventory_error(exc: InventoryError):
    raise HTTPException(status_code=exc.status_code(), detail={"code": exc.code.value, "message": str(exc)})


def _raise_operational_error(exc: OperationalError):
    if not is_lock_timeout(exc):
        raise exc
    raise HTTPException(status_code=503, detail={"code": "LOCK_TIMEOUT", "message": "Inventory is busy, retry later."})


def _operator(
    operator_id: str = Header(default="system", alias="X-Operator-Id"),
    operator_name: Optional[str] = Header(default=None, alias="X-Operator-Name"),
) -> tuple[str, Optional[str]]:
    return operator_id, operator_name


def _to_item_response(item: InventoryItem, stock_quantity) -> schemas.InventoryItemResponse:
    return schemas.InventoryItemResponse(
        id=item.id,
        sku=item.sku,
        name=item.name,
        unit=item.unit,
        category=item.category,
        safety_stock=item.safety_stock,
        unit_cost=item.unit_cost,
        sale_price=item.sale_price,
        image_url=item.image_url,
        spec_fields=catalog.parse_spec_fields(item.spec_fields_json),
        stock_quantity=stock_quantity,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


def _to_warehouse_response(warehouse: Warehouse, quantity, reserved) -> schemas.WarehouseResponse:
    return schemas.WarehouseResponse(
        id=warehouse.id,
        name=warehouse.name,
        code=warehouse.code,
        type=warehouse.type,
        address=warehouse.address,
        capacity=warehouse.capacity,
        manager=warehouse.manager,
        stock_quantity=quantity,
        stock_reserved=reserved,
        created_at=warehouse.created_at,
        updated_at=warehouse.updated_at,
    )


def _to_movement_response(movement: InventoryMovement) -> schemas.InventoryMovementResponse:
    return schemas.InventoryMovementResponse(
        id=movement.id,
        direction=movement.direction,
        type=movement.type,
        item_id=movement.item_id,
        warehouse_id=movement.warehouse_id,
        related_order_id=movement.related_order_id,
        related_purchase_id=movement.related_purchase_id,
        paired_movement_id=movement.paired_movement_id,
        client_id=movement.client_id,
        client_type=movement.client_type,
        client_name=movement.client_name,
        client_contact=movement.client_contact,
        client_phone=movement.client_phone,
        client_address=movement.client_address,
        quantity=movement.quantity,
        unit_cost=movement.unit_cost,
        amount=movement.amount,
        operator_id=movement.operator_id,
        operator_name=movement.operator_name,
        occurred_at=movement.occurred_at,
        attributes=catalog.parse_attributes(movement.attributes_json),
        notes=movement.notes,
        created_at=movement.created_at,
        item_name=movement.item.name if movement.item else None,
        warehouse_name=movement.warehouse.name if movement.warehouse else None,
    )


@router.get("/items", response_model=List[schemas.InventoryItemResponse])
def list_inventory_items(
    search: Optional[str] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return [_to_item_response(item, stock) for item, stock in catalog.list_items(db, search=search, category=category)]


@router.post("/items", response_model=schemas.InventoryItemResponse, status_code=status.HTTP_201_CREATED)
def create_inventory_item(payload: schemas.InventoryItemCreate, db: Session = Depends(get_db)):
    try:
        item = catalog.create_item(db, payload.model_dump())
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="An item with this SKU already exists.")
    db.refresh(item)
    return _to_item_response(item, 0)


@router.get("/items/{item_id}", response_model=schemas.InventoryItemResponse)
def get_inventory_item(item_id: int, db: Session = Depends(get_db)):
    found = catalog.get_item(db, item_id)
    if not found:
        raise HTTPException(status_code=404, detail="Item not found.")
    return _to_item_response(*found)


@router.patch("/items/{item_id}", response_model=schemas.InventoryItemResponse)
def update_inventory_item(item_id: int, payload: schemas.InventoryItemUpdate, db: Session = Depends(get_db)):
    try:
        item = catalog.update_item(db, item_id, payload.model_dump(exclude_unset=True))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="An item with this SKU already exists.")
    if not item:
        raise HTTPException(status_code=404, detail="Item not found.")
    return _to_item_response(*catalog.get_item(db, item_id))


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_inventory_item(item_id: int, db: Session = Depends(get_db)):
    try:
        deleted = catalog.delete_item(db, item_id)
    except InventoryError as exc:
        _raise_inventory_error(exc)
    if not deleted:
        raise HTTPException(status_code=404, detail="Item not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/warehouses", response_model=List[schemas.WarehouseResponse])
def list_inventory_warehouses(db: Session = Depends(get_db)):
    return [_to_warehouse_response(*row) for row in warehouses.list_warehouses(db)]


@router.get("/warehouses/operational", response_model=List[schemas.WarehouseResponse])
def list_operational_inventory_warehouses(db: Session = Depends(get_db)):
    return [_to_warehouse_response(*row) for row in warehouses.list_operational_warehouses(db)]


@router.post("/warehouses", response_model=schemas.WarehouseResponse, status_code=status.HTTP_201_CREATED)
def create_inventory_warehouse(payload: schemas.WarehouseCreate, db: Session = Depends(get_db)):
    try:
        warehouse = warehouses.create_warehouse(db, payload.model_dump())
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A warehouse with this code already exists.")
    db.refresh(warehouse)
    return _to_warehouse_response(warehouse, 0, 0)


@router.get("/warehouses/{warehouse_id}", response_model=schemas.WarehouseResponse)
def get_inventory_warehouse(warehouse_id: int, db: Session = Depends(get_db)):
    warehouse = warehouses.get_warehouse(db, warehouse_id)
    if not warehouse:
        raise HTTPException(status_code=404, detail="Warehouse not found.")
    quantity, reserved = warehouses.get_warehouse_usage_map(db).get(warehouse.id, (0, 0))
    return _to_warehouse_response(warehouse, quantity, reserved)


@router.patch("/warehouses/{warehouse_id}", response_model=schemas.WarehouseResponse)
def update_inventory_warehouse(warehouse_id: int, payload: schemas.WarehouseUpdate, db: Session = Depends(get_db)):
    try:
        warehouse = warehouses.update_warehouse(db, warehouse_id, payload.model_dump(exclude_unset=True))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A warehouse with this code already exists.")
    if not warehouse:
        raise HTTPException(status_code=404, detail="Warehouse not found.")
    db.refresh(warehouse)
    quantity, reserved = warehouses.get_warehouse_usage_map(db).get(warehouse.id, (0, 0))
    return _to_warehouse_response(warehouse, quantity, reserved)


@router.delete("/warehouses/{warehouse_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_inventory_warehouse(warehouse_id: int, db: Session = Depends(get_db)):
    try:
        deleted = warehouses.delete_warehouse(db, warehouse_id)
    except InventoryError as exc:
        _raise_inventory_error(exc)
    if not deleted:
        raise HTTPException(status_code=404, detail="Warehouse not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/inbound", response_model=schemas.InventoryMovementResponse, status_code=status.HTTP_201_CREATED)
def create_inbound(
    payload: schemas.InventoryInboundCreate,
    operator: tuple[str, Optional[str]] = Depends(_operator),
    db: Session = Depends(get_db),
):
    try:
        movement = create_inbound_record(db, payload, operator_id=operator[0], operator_name=operator[1])
    except InventoryError as exc:
        _raise_inventory_error(exc)
    except OperationalError as exc:
        _raise_operational_error(exc)
    return _to_movement_response(movement)


@router.post("/outbound", response_model=schemas.InventoryMovementResponse, status_code=status.HTTP_201_CREATED)
def create_outbound(
    payload: schemas.InventoryOutboundCreate,
    operator: tuple[str, Optional[str]] = Depends(_operator),
    db: Session = Depends(get_db),
):
    try:
        movement = create_outbound_record(db, payload, operator_id=operator[0], operator_name=operator[1])
    except InventoryError as exc:
        _raise_inventory_error(exc)
    except OperationalError as exc:
        _raise_operational_error(exc)
    return _to_movement_response(movement)


@router.delete("/outbound/{movement_id}", status_code=status.HTTP_204_NO_CONTENT)
def revert_outbound(movement_id: int, db: Session = Depends(get_db)):
    try:
        revert_outbound_movement(db, movement_id)
    except InventoryError as exc:
        _raise_inventory_error(exc)
    except OperationalError as exc:
        _raise_operational_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reserve", response_model=schemas.StockSnapshotResponse, status_code=status.HTTP_201_CREATED)
def reserve_inventory(payload: schemas.InventoryReservePayload, db: Session = Depends(get_db)):
    try:
        state = reserve_stock(db, payload)
    except InventoryError as exc:
        _raise_inventory_error(exc)
    except OperationalError as exc:
        _raise_operational_error(exc)
    return schemas.StockSnapshotResponse(
        item_id=state.item_id,
        warehouse_id=state.warehouse_id,
        quantity=state.quantity,
        reserved=state.reserved,
        available=state.available,
    )


@router.post("/release", response_model=schemas.StockSnapshotResponse)
def release_inventory(payload: schemas.InventoryReservePayload, db: Session = Depends(get_db)):
    try:
        state = release_reserved_stock(db, payload)
    except InventoryError as exc:
        _raise_inventory_error(exc)
    except OperationalError as exc:
        _raise_operational_error(exc)
    return schemas.StockSnapshotResponse(
        item_id=state.item_id,
        warehouse_id=state.warehouse_id,
        quantity=state.quantity,
        reserved=state.reserved,
        available=state.available,
    )


@router.get("/movements", response_model=schemas.InventoryMovementPage)
def list_inventory_movements(
    direction: Optional[str] = Query(default=None, pattern="^(inbound|outbound)$"),
    type: Optional[str] = None,
    item_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    related_purchase_id: Optional[int] = None,
    related_order_id: Optional[str] = None,
    occurred_from: Optional[date] = None,
    occurred_to: Optional[date] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    filters = MovementFilters(
        direction=direction,
        type=type,
        item_id=item_id,
        warehouse_id=warehouse_id,
        related_purchase_id=related_purchase_id,
        related_order_id=related_order_id,
        occurred_from=occurred_from,
        occurred_to=occurred_to,
    )
    rows, total = query_movements(db, filters, page=page, page_size=page_size)
    return schemas.InventoryMovementPage(
        data=[_to_movement_response(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/transfers", response_model=List[schemas.TransferOrderResponse])
def list_inventory_transfers(limit: int = Query(default=50, ge=1, le=200), db: Session = Depends(get_db)):
    return [schemas.TransferOrderResponse(**order) for order in list_transfer_orders(db, limit=limit)]


@router.get("/transfers/{transfer_id}", response_model=schemas.TransferDetailResponse)
def get_inventory_transfer(transfer_id: str, db: Session = Depends(get_db)):
    detail = get_transfer_detail(db, transfer_id)
    if not detail:
        raise HTTPException(status_code=404, detail="Transfer not found.")
    movements = detail.pop("movements")
    return schemas.TransferDetailResponse(**detail, movements=[_to_movement_response(row) for row in movements])


@router.get("/purchases/{purchase_id}/receipt", response_model=PurchaseReceiptProgress)
def get_purchase_receipt_progress(purchase_id: int, db: Session = Depends(get_db)):
    purchase = db.query(Purchase).filter(Purchase.id == purchase_id).first()
    if not purchase:
        raise HTTPException(status_code=404, detail="Purchase not found.")
    return PurchaseReceiptProgress(
        id=purchase.id,
        purchase_number=purchase.purchase_number,
        item_id=purchase.item_id,
        quantity=purchase.quantity,
        inbound_quantity=purchase.inbound_quantity,
        status=purchase.status,
        fully_received=is_fully_received(purchase),
        updated_at=purchase.updated_at,
    )


@router.get("/stats", response_model=schemas.InventoryStatsResponse)
def get_stats(db: Session = Depends(get_db)):
    return schemas.InventoryStatsResponse(**stats.get_inventory_stats(db))
