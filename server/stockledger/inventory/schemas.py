from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal


DecimalValue = condecimal(max_digits=14, decimal_places=2)

WarehouseType = Literal["main", "store", "virtual"]
InboundType = Literal["purchase", "adjust", "return"]
OutboundType = Literal["sale", "transfer", "adjust", "return", "use"]
ClientType = Literal["personal", "company"]


class SpecField(BaseModel):
    key: str
    label: str
    options: Optional[List[str]] = None
    unit: Optional[str] = None
    description: Optional[str] = None
    default_value: Optional[str] = None


class InventoryItemBase(BaseModel):
    sku: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    unit: str = Field(..., min_length=1, max_length=50)
    category: Optional[str] = None
    safety_stock: DecimalValue = Field(default=Decimal("0"), ge=0)
    unit_cost: DecimalValue = Field(default=Decimal("0"), ge=0)
    sale_price: Optional[DecimalValue] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    spec_fields: Optional[List[SpecField]] = None


class InventoryItemCreate(InventoryItemBase):
    pass


class InventoryItemUpdate(BaseModel):
    sku: Optional[str] = Field(default=None, min_length=1, max_length=100)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=50)
    category: Optional[str] = None
    safety_stock: Optional[DecimalValue] = Field(default=None, ge=0)
    unit_cost: Optional[DecimalValue] = Field(default=None, ge=0)
    sale_price: Optional[DecimalValue] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    spec_fields: Optional[List[SpecField]] = None


class InventoryItemResponse(BaseModel):
    id: int
    sku: str
    name: str
    unit: str
    category: str
    safety_stock: DecimalValue
    unit_cost: DecimalValue
    sale_price: Optional[DecimalValue] = None
    image_url: Optional[str] = None
    spec_fields: Optional[List[SpecField]] = None
    stock_quantity: DecimalValue = Decimal("0")
    created_at: datetime
    updated_at: datetime


class WarehouseBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=50)
    type: WarehouseType
    address: Optional[str] = None
    capacity: Optional[DecimalValue] = Field(default=None, ge=0)
    manager: Optional[str] = None


class WarehouseCreate(WarehouseBase):
    pass


class WarehouseUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    type: Optional[WarehouseType] = None
    address: Optional[str] = None
    capacity: Optional[DecimalValue] = Field(default=None, ge=0)
    manager: Optional[str] = None


class WarehouseResponse(WarehouseBase):
    id: int
    stock_quantity: DecimalValue = Decimal("0")
    stock_reserved: DecimalValue = Decimal("0")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InventoryInboundCreate(BaseModel):
    item_id: int
    warehouse_id: int
    quantity: DecimalValue = Field(..., gt=0)
    type: InboundType
    related_purchase_id: Optional[int] = None
    unit_cost: Optional[DecimalValue] = Field(default=None, ge=0)
    occurred_at: Optional[datetime] = None
    attributes: Optional[Dict[str, str]] = None
    notes: Optional[str] = None


class InventoryOutboundCreate(BaseModel):
    item_id: int
    warehouse_id: int
    quantity: DecimalValue = Field(..., gt=0)
    type: OutboundType
    target_warehouse_id: Optional[int] = None
    related_order_id: Optional[str] = Field(default=None, max_length=100)
    client_id: Optional[str] = None
    client_type: Optional[ClientType] = None
    client_name: Optional[str] = None
    client_contact: Optional[str] = None
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    occurred_at: Optional[datetime] = None
    attributes: Optional[Dict[str, str]] = None
    notes: Optional[str] = None


class InventoryReservePayload(BaseModel):
    item_id: int
    warehouse_id: int
    quantity: DecimalValue = Field(..., gt=0)


class StockSnapshotResponse(BaseModel):
    item_id: int
    warehouse_id: int
    quantity: DecimalValue
    reserved: DecimalValue
    available: DecimalValue


class InventoryMovementResponse(BaseModel):
    id: int
    direction: str
    type: str
    item_id: int
    warehouse_id: int
    related_order_id: Optional[str] = None
    related_purchase_id: Optional[int] = None
    paired_movement_id: Optional[int] = None
    client_id: Optional[str] = None
    client_type: Optional[str] = None
    client_name: Optional[str] = None
    client_contact: Optional[str] = None
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    quantity: DecimalValue
    unit_cost: Optional[DecimalValue] = None
    amount: Optional[DecimalValue] = None
    operator_id: Optional[str] = None
    operator_name: Optional[str] = None
    occurred_at: datetime
    attributes: Optional[Dict[str, str]] = None
    notes: Optional[str] = None
    created_at: datetime
    item_name: Optional[str] = None
    warehouse_name: Optional[str] = None


class InventoryMovementPage(BaseModel):
    data: List[InventoryMovementResponse]
    total: int
    page: int
    page_size: int


class TransferOrderResponse(BaseModel):
    transfer_id: str
    item_id: int
    item_name: Optional[str] = None
    item_sku: Optional[str] = None
    quantity: DecimalValue
    unit_cost: Optional[DecimalValue] = None
    amount: Optional[DecimalValue] = None
    source_warehouse_id: Optional[int] = None
    source_warehouse_name: Optional[str] = None
    target_warehouse_id: Optional[int] = None
    target_warehouse_name: Optional[str] = None
    operator_id: Optional[str] = None
    occurred_at: datetime
    notes: Optional[str] = None


class TransferDetailResponse(TransferOrderResponse):
    movements: List[InventoryMovementResponse]


class LowStockItem(BaseModel):
    item_id: int
    name: str
    available: DecimalValue
    safety_stock: DecimalValue


class InventoryStatsResponse(BaseModel):
    total_items: int
    total_warehouses: int
    total_quantity: DecimalValue
    low_stock_items: List[LowStockItem]
    todays_inbound: DecimalValue
    todays_outbound: DecimalValue
