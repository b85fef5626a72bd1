from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal


DecimalValue = condecimal(max_digits=14, decimal_places=2)


class PurchaseReceiptProgress(BaseModel):
    id: int
    purchase_number: str
    item_id: Optional[int] = None
    quantity: DecimalValue
    inbound_quantity: DecimalValue = Field(default=0, ge=0)
    status: str
    fully_received: bool
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
