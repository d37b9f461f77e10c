# schemas/sale_return.py

from pydantic import BaseModel
from datetime import datetime
from typing import List
from decimal import Decimal

class ReturnItemCreate(BaseModel):
    sale_item_id: int
    quantity_returned: int
    unit_price: Decimal | None = None

class ReturnCreate(BaseModel):
    notes: str | None = None
    items: List[ReturnItemCreate]

class ReturnItemResponse(BaseModel):
    id: int
    sale_item_id: int
    product_id: int
    product_name: str
    quantity_returned: int
    unit_price: Decimal
    total_price: Decimal

class ReturnResponse(BaseModel):
    id: int
    sale_id: int
    customer_name: str
    sale_status: str
    created_by: int
    created_by_name: str | None
    notes: str | None
    total_refund_amount: Decimal
    created_at: datetime
    items: List[ReturnItemResponse]
